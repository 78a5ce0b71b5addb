"""
File classifier for the intake domain.

Decides how a newly arrived file is handled:

1. Office/PDF documents are printed in their original format
2. Known text formats are decoded and printed as rendered text
3. Anything else is sniffed; text passes, binary is skipped

Classification never raises. Read and decode failures degrade to ``skip``
with a descriptive summary so the file is still archived.
"""

import codecs
import re
from pathlib import Path

from loguru import logger

from hotfolder.errors import ClassificationError
from hotfolder.models.schemas import FileClassification, PrintType
from hotfolder.utils.helpers import get_file_extension, truncate_for_display

ORIGINAL_FORMAT_EXTENSIONS = {"docx", "doc", "pdf", "xls", "xlsx", "ppt", "pptx"}
TEXT_EXTENSIONS = {"txt", "log", "json", "xml", "csv", "html", "css", "js"}

SNIFF_BYTES = 8192
BINARY_RUN = re.compile(r"[\x00-\x08\x0E-\x1F\x7F-\xFF]{10,}")


def looks_binary(text: str) -> bool:
    """Null bytes or a long run of control/high characters mean binary data."""
    return "\0" in text or BINARY_RUN.search(text) is not None


class FileClassifier:
    """Content classification and bounded content extraction."""

    def __init__(self, display_limit: int = 2000, max_text_bytes: int = 10 * 1024 * 1024):
        """
        Initialize classifier.

        Args:
            display_limit: Characters of content shown in logs
            max_text_bytes: Largest text file that is loaded for printing
        """
        self.display_limit = display_limit
        self.max_text_bytes = max_text_bytes

    def classify(self, path: Path) -> FileClassification:
        """
        Classify a file and extract its displayable content.

        Args:
            path: File to inspect

        Returns:
            FileClassification with print type, display text and size
        """
        path = Path(path)
        extension = get_file_extension(path)

        try:
            size = path.stat().st_size
        except OSError as e:
            logger.warning(f"Could not stat {path.name}: {e}")
            return FileClassification(
                print_type=PrintType.SKIP,
                display_content=f"[Error reading file: {e}]",
                extension=extension,
            )

        if extension in ORIGINAL_FORMAT_EXTENSIONS:
            return FileClassification(
                print_type=PrintType.ORIGINAL,
                display_content=(
                    f"[{extension.upper()} Document]\n"
                    f"File: {path.name}\n"
                    f"Size: {size} bytes\n"
                    "This document will be printed in its original format."
                ),
                size_bytes=size,
                extension=extension,
            )

        if extension in TEXT_EXTENSIONS:
            try:
                content = self._read_text(path, size)
            except ClassificationError as e:
                return FileClassification(
                    print_type=PrintType.SKIP,
                    display_content=f"[Error reading text file: {e}]",
                    size_bytes=size,
                    extension=extension,
                )
            return self._text_result(content, size, extension)

        try:
            if self._sniff_binary(path):
                raise ClassificationError("Binary content detected")
            content = self._read_text(path, size)
            if looks_binary(content):
                raise ClassificationError("Binary content detected")
        except ClassificationError as e:
            logger.debug(f"Treating {path.name} as binary: {e}")
            return FileClassification(
                print_type=PrintType.SKIP,
                display_content=(
                    f"[Binary/Unknown file - {size} bytes]\n"
                    f"File type: {extension or 'unknown'}\n"
                    "Use a specialized application to view this file."
                ),
                size_bytes=size,
                extension=extension,
            )

        return self._text_result(content, size, extension)

    def display(self, classification: FileClassification) -> str:
        """Content as it should appear in the log."""
        return truncate_for_display(classification.display_content, self.display_limit)

    def _text_result(self, content: str, size: int, extension: str) -> FileClassification:
        return FileClassification(
            print_type=PrintType.TEXT,
            display_content=content,
            size_bytes=size,
            extension=extension,
            content=content,
        )

    def _read_text(self, path: Path, size: int) -> str:
        """Read and decode a whole file as UTF-8."""
        if size > self.max_text_bytes:
            raise ClassificationError(f"file too large ({size} bytes)")

        try:
            return path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise ClassificationError(f"not valid UTF-8 ({e.reason} at byte {e.start})") from e
        except OSError as e:
            raise ClassificationError(str(e)) from e

    def _sniff_binary(self, path: Path) -> bool:
        """
        Inspect the head of a file without reading all of it.

        A multi-byte character cut at the sniff boundary is tolerated.
        """
        try:
            with path.open("rb") as f:
                head = f.read(SNIFF_BYTES)
        except OSError as e:
            raise ClassificationError(str(e)) from e

        try:
            text = codecs.getincrementaldecoder("utf-8")().decode(head, final=False)
        except UnicodeDecodeError:
            return True

        return looks_binary(text)
