"""Run the gateway under uvicorn using the environment configuration."""
from __future__ import annotations
import logging

import uvicorn

from magicstudio_gateway.common.logging_setup import resolve_level
from magicstudio_gateway.serve.fastapi_app import SETTINGS, app

def uvicorn_log_level(level: int | str) -> str:
    """Canonical lower-case level name as uvicorn expects it ("WARN" becomes "warning")."""
    number = max(resolve_level(level), logging.DEBUG)
    return logging.getLevelName(number).lower()

def main() -> None:
    uvicorn.run(
        app,
        host=SETTINGS.host,
        port=SETTINGS.port,
        log_level=uvicorn_log_level(SETTINGS.log_level),
    )

if __name__ == "__main__":
    main()
