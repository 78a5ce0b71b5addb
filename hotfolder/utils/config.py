"""
Configuration management for Hotfolder.

Uses pydantic-settings to load configuration from environment variables
and .env files. Command-line overrides are passed to ``get_settings`` and
take precedence over both.
"""

import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if sys.platform == "win32":
    DEFAULT_TEXT_METHODS = "notepad"
    DEFAULT_PDF_METHODS = "sumatra,adobe,shell_print,pdftoprinter,print_verb,gsprint"
    DEFAULT_DOCUMENT_METHODS = "print_verb"
else:
    DEFAULT_TEXT_METHODS = "lp,lpr"
    DEFAULT_PDF_METHODS = "lp,lpr"
    DEFAULT_DOCUMENT_METHODS = "lp"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Folder Configuration
    watch_path: Path = Path("~/Documents/WatchedItems")
    move_to_folder: Optional[Path] = Path("~/Documents/ProcessedFiles")
    use_polling: bool = False
    poll_interval: float = 1.0

    # Printing Configuration
    enable_printing: bool = True
    printer_name: Optional[str] = None
    text_print_methods: str = DEFAULT_TEXT_METHODS
    pdf_print_methods: str = DEFAULT_PDF_METHODS
    document_print_methods: str = DEFAULT_DOCUMENT_METHODS
    text_print_timeout: float = 30.0
    pdf_print_timeout: float = 30.0
    document_print_timeout: float = 30.0
    temp_dir: Optional[Path] = None
    temp_cleanup_delay: float = 10.0
    verify_spooler: bool = True

    # Timing Configuration (seconds)
    settle_delay: float = 2.0
    print_cooldown: float = 8.0
    strategy_pause: float = 2.0
    spool_wait: float = 8.0
    move_retries: int = 3
    move_backoff: float = 2.0
    restart_delay: float = 5.0
    max_restart_delay: float = 60.0
    health_check_interval: float = 1.0
    heartbeat_interval: float = 300.0
    shutdown_grace: float = 2.0

    # Content Configuration
    display_limit: int = 2000
    max_text_bytes: int = 10 * 1024 * 1024

    # Logging Configuration
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("move_to_folder", "printer_name", "temp_dir", "log_file", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        """Treat empty strings as "not configured"."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("watch_path", "move_to_folder", "temp_dir", "log_file")
    @classmethod
    def _expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    def get_text_print_methods(self) -> list[str]:
        """Parse text print methods into ordered list."""
        return _split_methods(self.text_print_methods)

    def get_pdf_print_methods(self) -> list[str]:
        """Parse PDF print methods into ordered list."""
        return _split_methods(self.pdf_print_methods)

    def get_document_print_methods(self) -> list[str]:
        """Parse office document print methods into ordered list."""
        return _split_methods(self.document_print_methods)


def _split_methods(raw: str) -> list[str]:
    return [m.strip().lower() for m in raw.split(",") if m.strip()]


@lru_cache()
def get_settings(**overrides) -> Settings:
    """
    Get cached settings instance.

    Args:
        **overrides: Explicit values (e.g. from the command line). ``None``
            values are ignored so the environment or default applies.

    Returns:
        Settings with overrides applied on top of environment values
    """
    return Settings(**{key: value for key, value in overrides.items() if value is not None})
