"""
Print strategies for the printing domain.

Each strategy is one external mechanism that can put a file on paper:
a text renderer, a PDF viewer with a silent-print switch, the OS print
verb, or a standalone PDF print utility. Strategies share one capability,
``attempt(job, printer_name)``, which either returns or raises
PrintStrategyFailure.

External programs are located by absolute path or by name on PATH and run
through ``subprocess.run`` with a timeout. The runner is injectable so tests
can substitute a fake.
"""

import os
import shutil
import subprocess
import sys
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from hotfolder.domains.printing.job import PrintJob
from hotfolder.errors import PrintStrategyFailure
from hotfolder.models.schemas import DocumentKind

CommandRunner = Callable[..., subprocess.CompletedProcess]

RULE = "=" * 60

# PowerShell treats all of these as single quotes inside a literal.
POWERSHELL_QUOTES = "'‘’‚‛"


def powershell_literal(value: str) -> str:
    """Quote ``value`` as a PowerShell single-quoted string literal."""
    escaped = "".join(c + c if c in POWERSHELL_QUOTES else c for c in value)
    return f"'{escaped}'"


class PrintStrategy(ABC):
    """One way of sending a file to the printer."""

    name: str = "strategy"
    kinds: frozenset = frozenset()

    def handles(self, kind: DocumentKind) -> bool:
        return kind in self.kinds

    @property
    def location(self) -> Optional[str]:
        """Where the external program was found, if it applies."""
        return None

    @abstractmethod
    def attempt(self, job: PrintJob, printer_name: Optional[str] = None) -> None:
        """
        Print a job.

        Raises:
            PrintStrategyFailure: if this mechanism could not print the job
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"


class CommandStrategy(PrintStrategy):
    """Runs an external program against the file being printed."""

    def __init__(
        self,
        name: str,
        kinds: Iterable[DocumentKind],
        executables: Sequence[str],
        variants: Sequence[Sequence[str]],
        timeout: float = 30.0,
        success_marker: Optional[str] = None,
        failure_markers: Sequence[str] = (),
        settle: float = 0.0,
        runner: CommandRunner = subprocess.run,
        quote: Optional[Callable[[str], str]] = None,
    ):
        """
        Initialize command strategy.

        Args:
            name: Strategy name used in configuration and logs
            kinds: Document kinds this program can print
            executables: Candidate absolute paths or PATH names, in order
            variants: Argument lists tried in order; ``{file}`` and
                ``{printer}`` are substituted
            timeout: Seconds allowed per invocation
            success_marker: Text that must appear on stdout
            failure_markers: Text that must not appear on stderr
            settle: Seconds to wait after a successful invocation
            runner: Callable with the ``subprocess.run`` signature
            quote: Applied to substituted values when a variant embeds them
                in a script string rather than passing them as arguments
        """
        self.name = name
        self.kinds = frozenset(kinds)
        self.executables = tuple(executables)
        self.variants = tuple(tuple(v) for v in variants)
        self.timeout = timeout
        self.success_marker = success_marker
        self.failure_markers = tuple(failure_markers)
        self.settle = settle
        self.runner = runner
        self.quote = quote

    @property
    def location(self) -> Optional[str]:
        return self.locate()

    def locate(self) -> Optional[str]:
        """Return the first candidate executable that exists."""
        for candidate in self.executables:
            candidate = os.path.expandvars(candidate)
            if os.path.isabs(candidate):
                if Path(candidate).is_file():
                    return candidate
                continue
            found = shutil.which(candidate)
            if found:
                return found
        return None

    def attempt(self, job: PrintJob, printer_name: Optional[str] = None) -> None:
        self.print_path(job.file_path, printer_name)

    def print_path(self, path: Path, printer_name: Optional[str] = None) -> None:
        """Print a file through this program, trying each argument variant."""
        executable = self.locate()
        if executable is None:
            raise PrintStrategyFailure(self.name, f"{self.name} not found")

        variants = [
            v for v in self.variants
            if printer_name or not any("{printer}" in arg for arg in v)
        ]
        if not variants:
            raise PrintStrategyFailure(self.name, "requires a printer name but none is configured")

        logger.info(f"Found {self.name} at: {executable}")
        last_failure = None

        for index, variant in enumerate(variants, 1):
            argv = [executable] + [self._substitute(arg, path, printer_name) for arg in variant]
            try:
                self._run(argv)
            except PrintStrategyFailure as e:
                last_failure = e
                if len(variants) > 1:
                    logger.warning(f"{self.name} variant {index} failed: {e.reason}")
                continue

            if self.settle:
                time.sleep(self.settle)
            return

        raise last_failure

    def _substitute(self, arg: str, path: Path, printer_name: Optional[str]) -> str:
        file_value, printer_value = str(path), printer_name or ""
        if self.quote is not None:
            file_value, printer_value = self.quote(file_value), self.quote(printer_value)
        return arg.format(file=file_value, printer=printer_value)

    def _run(self, argv: List[str]) -> None:
        logger.debug(f"Running: {subprocess.list2cmdline(argv)}")

        try:
            result = self.runner(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            raise PrintStrategyFailure(self.name, f"{argv[0]} not found")
        except subprocess.TimeoutExpired:
            raise PrintStrategyFailure(self.name, f"timeout after {self.timeout:g}s")
        except OSError as e:
            raise PrintStrategyFailure(self.name, str(e))

        stdout = (result.stdout or "").strip()
        stderr = (result.stderr or "").strip()

        if stdout:
            logger.debug(f"{self.name} output: {stdout}")
        if stderr:
            logger.warning(f"{self.name} stderr: {stderr}")

        if result.returncode != 0:
            detail = stderr or stdout or "no output"
            raise PrintStrategyFailure(self.name, f"exit code {result.returncode}: {detail}")

        if self.success_marker and self.success_marker not in stdout:
            raise PrintStrategyFailure(self.name, f"did not report '{self.success_marker}'")

        for marker in self.failure_markers:
            if marker in stderr:
                raise PrintStrategyFailure(self.name, stderr)


class TextRenderStrategy(PrintStrategy):
    """
    Renders text content into a print-ready document and prints that.

    The rendering lives in the temporary directory and is removed after
    ``cleanup_delay`` seconds on success, immediately on failure.
    """

    kinds = frozenset({DocumentKind.TEXT})

    def __init__(
        self,
        delegate: CommandStrategy,
        temp_dir: Optional[Path] = None,
        cleanup_delay: float = 10.0,
    ):
        self.delegate = delegate
        self.name = delegate.name
        self.temp_dir = Path(temp_dir) if temp_dir else None
        self.cleanup_delay = cleanup_delay

    @property
    def location(self) -> Optional[str]:
        return self.delegate.locate()

    def render(self, job: PrintJob) -> str:
        """Build the printable document for a text job."""
        content = job.content or ""
        return "\n".join([
            "HOTFOLDER PRINT JOB",
            RULE,
            f"File: {job.file_name}",
            f"Original Path: {job.file_path}",
            f"Processed: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Size: {len(content)} characters",
            RULE,
            "",
            content,
            "",
            RULE,
            "End of Document",
            "",
        ])

    def attempt(self, job: PrintJob, printer_name: Optional[str] = None) -> None:
        temp_dir = self.temp_dir or Path(tempfile.gettempdir())
        temp_path = temp_dir / f"hotfolder_{job.job_id[:8]}_{int(time.time() * 1000)}.txt"

        try:
            temp_dir.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(self.render(job), encoding="utf-8")
        except OSError as e:
            raise PrintStrategyFailure(self.name, f"could not write rendering: {e}")

        logger.debug(f"Created temp file: {temp_path}")

        try:
            self.delegate.print_path(temp_path, printer_name)
        except PrintStrategyFailure:
            remove_quietly(temp_path)
            raise

        self._schedule_cleanup(temp_path)

    def _schedule_cleanup(self, temp_path: Path):
        if self.cleanup_delay <= 0:
            remove_quietly(temp_path)
            return

        timer = threading.Timer(self.cleanup_delay, remove_quietly, args=(temp_path,))
        timer.daemon = True
        timer.start()


def remove_quietly(path: Path):
    """Best-effort removal of a temporary rendering."""
    try:
        if path.exists():
            path.unlink()
            logger.debug(f"Cleaned up temp file: {path.name}")
    except OSError as e:
        logger.warning(f"Could not clean up temp file {path.name}: {e}")


class SpoolerProbe:
    """Lists queued print jobs for post-print diagnostics."""

    def __init__(self, runner: CommandRunner = subprocess.run, timeout: float = 5.0):
        self.runner = runner
        self.timeout = timeout

    def command(self, printer_name: Optional[str] = None) -> List[str]:
        if sys.platform == "win32":
            query = "Get-CimInstance Win32_PrintJob"
            if printer_name:
                query += f" | Where-Object {{ $_.Name -like {powershell_literal(f'*{printer_name}*')} }}"
            query += " | Select-Object Name, Document, JobStatus | Format-List"
            return ["powershell", "-NoProfile", "-Command", query]

        argv = ["lpstat", "-o"]
        if printer_name:
            argv.append(printer_name)
        return argv

    def verify(self, job: PrintJob, printer_name: Optional[str] = None) -> Optional[str]:
        """
        Log the spooler contents after a successful print.

        Returns:
            Spooler listing, empty string if nothing is queued, or None if
            the spooler could not be queried
        """
        try:
            result = self.runner(
                self.command(printer_name),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Could not check printer queue: {e}")
            return None

        listing = (result.stdout or "").strip()
        if listing:
            logger.info(f"Printer queue contains:\n{listing}")
        else:
            logger.info(f"Printer queue is empty ({job.file_name} may have completed quickly)")
        return listing


# =====================================================
# Registry
# =====================================================

@dataclass(frozen=True)
class CommandSpec:
    """Static description of a built-in print mechanism."""
    executables: Tuple[str, ...]
    variants: Tuple[Tuple[str, ...], ...]
    kinds: frozenset
    success_marker: Optional[str] = None
    failure_markers: Tuple[str, ...] = field(default_factory=tuple)
    settle: float = 0.0
    quote: Optional[Callable[[str], str]] = None


ALL_KINDS = frozenset(DocumentKind)
PDF_ONLY = frozenset({DocumentKind.PDF})

BUILTIN_COMMANDS: Dict[str, CommandSpec] = {
    "notepad": CommandSpec(
        executables=("notepad.exe",),
        variants=(("/pt", "{file}", "{printer}"), ("/p", "{file}")),
        kinds=frozenset({DocumentKind.TEXT}),
    ),
    "lp": CommandSpec(
        executables=("lp",),
        variants=(("-d", "{printer}", "{file}"), ("{file}",)),
        kinds=ALL_KINDS,
    ),
    "lpr": CommandSpec(
        executables=("lpr",),
        variants=(("-P", "{printer}", "{file}"), ("{file}",)),
        kinds=ALL_KINDS,
    ),
    "sumatra": CommandSpec(
        executables=(
            r"%LOCALAPPDATA%\SumatraPDF\SumatraPDF.exe",
            r"C:\Program Files\SumatraPDF\SumatraPDF.exe",
            r"C:\Program Files (x86)\SumatraPDF\SumatraPDF.exe",
            "SumatraPDF",
        ),
        variants=(
            ("-print-to", "{printer}", "-silent", "{file}"),
            ("-print-to-default", "-silent", "{file}"),
        ),
        kinds=PDF_ONLY,
    ),
    "adobe": CommandSpec(
        executables=(
            r"C:\Program Files\Adobe\Acrobat DC\Acrobat\Acrobat.exe",
            r"C:\Program Files (x86)\Adobe\Acrobat Reader DC\Reader\AcroRd32.exe",
            r"C:\Program Files\Adobe\Acrobat Reader DC\Reader\AcroRd32.exe",
        ),
        variants=(
            ("/s", "/o", "/h", "/t", "{file}", "{printer}"),
            ("/N", "/T", "{file}", "{printer}"),
            ("/p", "/h", "{file}"),
        ),
        kinds=PDF_ONLY,
        settle=5.0,
    ),
    "shell_print": CommandSpec(
        executables=(r"%SystemRoot%\System32\print.exe", "print.exe"),
        variants=(("/d:{printer}", "{file}"), ("{file}",)),
        kinds=frozenset({DocumentKind.TEXT, DocumentKind.PDF}),
        failure_markers=("Error", "failed"),
    ),
    "pdftoprinter": CommandSpec(
        executables=(
            r"C:\Program Files\PDFtoPrinter\PDFtoPrinter.exe",
            r"C:\Program Files (x86)\PDFtoPrinter\PDFtoPrinter.exe",
            "PDFtoPrinter.exe",
        ),
        variants=(("{file}", "{printer}"), ("{file}",)),
        kinds=PDF_ONLY,
    ),
    "gsprint": CommandSpec(
        executables=(
            r"C:\Program Files\Ghostgum\gsview\gsprint.exe",
            r"C:\Program Files (x86)\Ghostgum\gsview\gsprint.exe",
            r"C:\GSPrint\gsprint.exe",
            "gsprint",
        ),
        variants=(("-printer", "{printer}", "{file}"), ("{file}",)),
        kinds=PDF_ONLY,
    ),
    "print_verb": CommandSpec(
        executables=("powershell.exe", "pwsh"),
        variants=((
            "-NoProfile",
            "-Command",
            "Start-Process -LiteralPath {file} -Verb Print -WindowStyle Hidden",
        ),),
        kinds=frozenset({DocumentKind.PDF, DocumentKind.DOCUMENT}),
        settle=5.0,
        quote=powershell_literal,
    ),
}


def build_strategy(
    name: str,
    kind: DocumentKind,
    timeout: float,
    runner: CommandRunner = subprocess.run,
    temp_dir: Optional[Path] = None,
    cleanup_delay: float = 10.0,
) -> Optional[PrintStrategy]:
    """
    Build a built-in strategy for one document kind.

    Returns:
        The strategy, or None if the name is unknown or cannot print this kind
    """
    spec = BUILTIN_COMMANDS.get(name)
    if spec is None:
        logger.warning(f"Unknown print method '{name}', ignoring")
        return None
    if kind not in spec.kinds:
        logger.warning(f"Print method '{name}' cannot print {kind.value} documents, ignoring")
        return None

    command = CommandStrategy(
        name=name,
        kinds=spec.kinds,
        executables=spec.executables,
        variants=spec.variants,
        timeout=timeout,
        success_marker=spec.success_marker,
        failure_markers=spec.failure_markers,
        settle=spec.settle,
        runner=runner,
        quote=spec.quote,
    )
    if kind == DocumentKind.TEXT:
        return TextRenderStrategy(command, temp_dir=temp_dir, cleanup_delay=cleanup_delay)
    return command


def build_strategies(settings, runner: CommandRunner = subprocess.run) -> Dict[DocumentKind, List[PrintStrategy]]:
    """
    Build the ordered strategy lists for every document kind from settings.

    Args:
        settings: Application settings
        runner: Callable with the ``subprocess.run`` signature

    Returns:
        Mapping of document kind to strategies in priority order
    """
    plan = {
        DocumentKind.TEXT: (settings.get_text_print_methods(), settings.text_print_timeout),
        DocumentKind.PDF: (settings.get_pdf_print_methods(), settings.pdf_print_timeout),
        DocumentKind.DOCUMENT: (settings.get_document_print_methods(), settings.document_print_timeout),
    }

    strategies: Dict[DocumentKind, List[PrintStrategy]] = {}
    for kind, (names, timeout) in plan.items():
        built = [
            build_strategy(
                name,
                kind,
                timeout,
                runner=runner,
                temp_dir=settings.temp_dir,
                cleanup_delay=settings.temp_cleanup_delay,
            )
            for name in names
        ]
        strategies[kind] = [s for s in built if s is not None]
        logger.debug(f"{kind.value} print methods: {[s.name for s in strategies[kind]]}")

    return strategies
