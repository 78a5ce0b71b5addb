"""Print job handed from the intake pipeline to the print queue."""

from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from hotfolder.models.schemas import DocumentKind, FileClassification, PrintOutcome, PrintType
from hotfolder.utils.helpers import generate_uuid


@dataclass
class PrintJob:
    """
    A file waiting to be printed.

    ``content`` carries the decoded text for text jobs and is None for
    documents printed in their original format. ``future`` resolves exactly
    once: with a PrintOutcome on success or a PrintJobFailure on failure.
    """

    file_path: Path
    file_name: str
    print_type: PrintType
    content: Optional[str] = None
    job_id: str = field(default_factory=generate_uuid)
    future: Future = field(default_factory=Future, repr=False, compare=False)

    @classmethod
    def from_classification(cls, path: Path, classification: FileClassification) -> "PrintJob":
        return cls(
            file_path=Path(path),
            file_name=Path(path).name,
            print_type=classification.print_type,
            content=classification.content if classification.print_type == PrintType.TEXT else None,
        )

    @property
    def kind(self) -> DocumentKind:
        """Document kind used to pick the strategy list."""
        if self.print_type == PrintType.TEXT:
            return DocumentKind.TEXT
        if Path(self.file_name).suffix.lower() == ".pdf":
            return DocumentKind.PDF
        return DocumentKind.DOCUMENT

    def resolve(self, outcome: PrintOutcome) -> bool:
        """Report success. Returns False if the job was already resolved."""
        try:
            self.future.set_result(outcome)
        except InvalidStateError:
            return False
        return True

    def fail(self, error: Exception) -> bool:
        """Report failure. Returns False if the job was already resolved."""
        try:
            self.future.set_exception(error)
        except InvalidStateError:
            return False
        return True
