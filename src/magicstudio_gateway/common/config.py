"""Process configuration, read once from the environment."""
from __future__ import annotations
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_UPSTREAM_URL = "https://ai-api.magicstudio.com/api/ai-art-generator"
DEFAULT_CLIENT_ID = "pSgX7WgjukXCBoYwDM8G8GLnRRkvAoJlqa5eAVvj95o"
DEFAULT_MODEL = "magic-art-generator"

@dataclass(frozen=True)
class Settings:
    api_key: str = "default-unsafe-key"
    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_client_id: str = DEFAULT_CLIENT_ID
    default_model: str = DEFAULT_MODEL
    known_models: tuple[str, ...] = field(default=(DEFAULT_MODEL,))
    upstream_timeout: float = 120.0
    max_images: int = 10
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            load_env_file: Load a local .env file first (existing variables win).
        """
        if load_env_file:
            load_dotenv()

        default_model = os.getenv("DEFAULT_MODEL", DEFAULT_MODEL)
        raw_models = os.getenv("KNOWN_MODELS", "")
        known = tuple(m.strip() for m in raw_models.split(",") if m.strip())
        if not known:
            known = (default_model,)

        return cls(
            api_key=os.getenv("API_KEY", "default-unsafe-key"),
            upstream_url=os.getenv("UPSTREAM_URL", DEFAULT_UPSTREAM_URL),
            upstream_client_id=os.getenv("UPSTREAM_CLIENT_ID", DEFAULT_CLIENT_ID),
            default_model=default_model,
            known_models=known,
            upstream_timeout=float(os.getenv("UPSTREAM_TIMEOUT", "120")),
            max_images=int(os.getenv("MAX_IMAGES", "10")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
