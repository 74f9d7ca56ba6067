"""Runtime settings and logging setup."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

DEFAULT_DB_PATH = str(Path.home() / ".tutorhub" / "tutorhub.db")
DEFAULT_FEEDBACK_URL = "https://api.openai.com/v1"
DEFAULT_FEEDBACK_MODEL = "gpt-4o-mini"


@dataclass
class Settings:
    db_path: str = DEFAULT_DB_PATH
    # Bootstrap identifier for the first administrator account.
    admin_id: str = ""
    feedback_base_url: str = DEFAULT_FEEDBACK_URL
    feedback_model: str = DEFAULT_FEEDBACK_MODEL
    feedback_api_key: Optional[str] = None
    feedback_timeout: float = 60.0
    log_level: str = "WARNING"


def load_settings(environ: Optional[dict] = None) -> Settings:
    """Build settings from environment variables, falling back to defaults."""
    env = os.environ if environ is None else environ
    return Settings(
        db_path=env.get("TUTORHUB_DB_PATH") or DEFAULT_DB_PATH,
        admin_id=env.get("TUTORHUB_ADMIN_ID", ""),
        feedback_base_url=env.get("TUTORHUB_FEEDBACK_URL") or DEFAULT_FEEDBACK_URL,
        feedback_model=env.get("TUTORHUB_FEEDBACK_MODEL") or DEFAULT_FEEDBACK_MODEL,
        feedback_api_key=env.get("TUTORHUB_FEEDBACK_API_KEY") or env.get("OPENAI_API_KEY"),
        feedback_timeout=float(env.get("TUTORHUB_FEEDBACK_TIMEOUT") or 60.0),
        log_level=(env.get("TUTORHUB_LOG_LEVEL") or "WARNING").upper(),
    )


def configure_logging(level: str = "WARNING") -> logging.Logger:
    """Attach a rich handler to the package logger (idempotent)."""
    logger = logging.getLogger("tutorhub")
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(show_path=False, markup=False))
    return logger
