"""
Pydantic models for Hotfolder.

Shared data models across the application.
"""

import os
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =====================================================
# Intake Models
# =====================================================

class PrintType(str, Enum):
    """How a classified file is handed to the printer."""
    TEXT = "text"
    ORIGINAL = "original"
    SKIP = "skip"


class WatchedFile(BaseModel):
    """De-duplication identity of a file arrival."""
    model_config = ConfigDict(frozen=True)

    file_name: str
    modified: float
    size: int

    @classmethod
    def from_stat(cls, file_name: str, stats: os.stat_result) -> "WatchedFile":
        """Build the identity triple from ``os.stat`` output."""
        return cls(file_name=file_name, modified=stats.st_mtime, size=stats.st_size)


class FileClassification(BaseModel):
    """Result of inspecting a newly arrived file."""
    print_type: PrintType
    display_content: str
    size_bytes: int = 0
    extension: str = ""
    content: Optional[str] = None  # full text, only for print_type == text

    @property
    def printable(self) -> bool:
        return self.print_type != PrintType.SKIP


# =====================================================
# Printing Models
# =====================================================

class DocumentKind(str, Enum):
    """Selects which strategy list a job runs through."""
    TEXT = "text"
    PDF = "pdf"
    DOCUMENT = "document"


class PrintAttempt(BaseModel):
    """One strategy invocation inside a chain run."""
    strategy: str
    success: bool
    reason: Optional[str] = None


class PrintOutcome(BaseModel):
    """Final result of running a job through the strategy chain."""
    job_id: str
    file_name: str
    success: bool
    strategy: Optional[str] = None
    attempts: List[PrintAttempt] = Field(default_factory=list)
    error: Optional[str] = None  # failure before any strategy ran

    @property
    def reasons(self) -> List[str]:
        """Failure reasons in attempt order."""
        return [a.reason for a in self.attempts if not a.success and a.reason]

    @property
    def last_reason(self) -> Optional[str]:
        if self.error:
            return self.error
        reasons = self.reasons
        return reasons[-1] if reasons else None
