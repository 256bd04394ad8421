"""Client-visible gateway errors."""
from __future__ import annotations

from fastapi import HTTPException


class GatewayError(HTTPException):
    """Base error; `message` is rendered as {"error": message}."""

    status_code_default = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        super().__init__(status_code=status_code or self.status_code_default, detail=message)


class ClientError(GatewayError):
    status_code_default = 400


class UnauthorizedError(GatewayError):
    status_code_default = 401

    def __init__(self, message: str = "Unauthorized: Invalid or missing API Key.") -> None:
        super().__init__(message)


class BatchExhaustedError(GatewayError):
    """Every upstream call in a batch was rejected."""

    status_code_default = 502

    def __init__(self, message: str = "Upstream generation failed.") -> None:
        super().__init__(message)
