"""Multipart form construction for the MagicStudio art generator."""
from __future__ import annotations
import time
import uuid

# Sent with every upstream call; the upstream only serves browser-looking clients.
UPSTREAM_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Origin": "https://magicstudio.com",
    "Referer": "https://magicstudio.com/",
    "User-Agent": "Mozilla/5.0 (compatible; magicstudio-gateway/2.0)",
}

def build_form(prompt: str, client_id: str) -> dict[str, tuple[None, str]]:
    """
    Build the multipart fields for one generation attempt.

    Each call gets its own anonymous user id and timestamp, so calls in the
    same batch are never correlated upstream.

    Args:
        prompt: Text prompt, assumed already validated.
        client_id: Configured upstream client identifier.

    Returns:
        Mapping suitable for the ``files=`` argument of httpx, which forces a
        multipart/form-data body with plain (filename-less) fields.
    """
    fields = {
        "prompt": prompt,
        "output_format": "bytes",
        "user_profile_id": "null",
        "anonymous_user_id": str(uuid.uuid4()),
        "request_timestamp": str(int(time.time() * 1000)),
        "user_is_subscribed": "false",
        "client_id": client_id,
    }
    return {name: (None, value) for name, value in fields.items()}
