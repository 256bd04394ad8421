"""
MagicStudio gateway package.

Provides:
- OpenAI-compatible HTTP surface (models, images, chat completions) via FastAPI
- Concurrent fan-out of image generations to the MagicStudio upstream via httpx
"""

__version__ = "2.0.2"
