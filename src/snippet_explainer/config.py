"""Runtime settings passed explicitly into generators, stores, and handlers."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_GEMINI_KEY_FILE = Path(".api_keys/Gemini.md")
DEFAULT_DB_PATH = Path(".snippet_explainer/explainer.db")
DEFAULT_MODEL_NAME = "gemini-3-flash-preview"


def resolve_gemini_api_key(key_file: Path = DEFAULT_GEMINI_KEY_FILE) -> str | None:
    """Resolve the Gemini API key from environment or fallback file.

    Resolution order:
    1. ``GEMINI_API_KEY`` environment variable.
    2. ``key_file`` plaintext contents.

    Args:
        key_file: Optional fallback file containing only the API key.

    Returns:
        The non-empty API key when found, otherwise ``None``.
    """
    api_key = (os.getenv("GEMINI_API_KEY") or "").strip()
    if api_key:
        return api_key

    if key_file.exists():
        fallback_key = key_file.read_text(encoding="utf-8").strip()
        if fallback_key:
            return fallback_key

    return None


class Settings(BaseModel):
    """Model credentials, generation parameters, and the store location."""

    gemini_api_key: str | None = None
    model_name: str = DEFAULT_MODEL_NAME
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=2000, gt=0)
    db_path: Path = DEFAULT_DB_PATH

    @property
    def model_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @classmethod
    def from_env(cls, key_file: Path = DEFAULT_GEMINI_KEY_FILE) -> Settings:
        """Build settings from ``GEMINI_API_KEY``, ``EXPLAINER_MODEL`` and ``EXPLAINER_DB_PATH``."""
        model_name = (os.getenv("EXPLAINER_MODEL") or "").strip() or DEFAULT_MODEL_NAME
        db_path = (os.getenv("EXPLAINER_DB_PATH") or "").strip()
        return cls(
            gemini_api_key=resolve_gemini_api_key(key_file=key_file),
            model_name=model_name,
            db_path=Path(db_path) if db_path else DEFAULT_DB_PATH,
        )
