"""
Helper utilities for Hotfolder.

Common functions used across domains.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
from uuid import uuid4

TRUNCATION_NOTICE = "\n[... content truncated for display ...]"


def generate_uuid() -> str:
    """Generate a unique identifier."""
    return str(uuid4())


def normalise_path(path: Path) -> Path:
    """Return a resolved version of ``path`` without forcing existence."""
    try:
        return Path(path).expanduser().resolve()
    except (FileNotFoundError, RuntimeError):
        return Path(path).expanduser().absolute()


def get_file_extension(path: Path) -> str:
    """Get lowercase file extension without dot."""
    return path.suffix.lstrip('.').lower()


def format_bytes(bytes_count: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024.0:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024.0
    return f"{bytes_count:.1f} PB"


def truncate_for_display(text: str, limit: int = 2000) -> str:
    """
    Truncate text for log output.

    Args:
        text: Full text
        limit: Maximum characters kept

    Returns:
        Text unchanged if within limit, otherwise the first ``limit``
        characters followed by a truncation notice
    """
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_NOTICE


def archive_timestamp(moment: Optional[datetime] = None) -> str:
    """Filesystem-safe timestamp used to disambiguate archived names."""
    moment = moment or datetime.now()
    return moment.strftime("%Y-%m-%dT%H-%M-%S")


def disambiguated_name(file_name: str, stamp: str, counter: int) -> str:
    """
    Build an alternative file name for a collision.

    ``report.txt`` becomes ``report_<stamp>_<counter>.txt``.
    """
    path = Path(file_name)
    return f"{path.stem}_{stamp}_{counter}{path.suffix}"
