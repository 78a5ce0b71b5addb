"""
Print strategy chain for the printing domain.

Runs a job through the ordered strategies for its document kind until one
succeeds. Each failure is recorded and the next strategy is tried after a
short pacing pause. A success is followed by a best-effort spooler check
that is purely diagnostic.
"""

import subprocess
import time
from typing import Dict, List, Mapping, Optional, Sequence

from loguru import logger

from hotfolder.domains.printing.job import PrintJob
from hotfolder.domains.printing.strategies import PrintStrategy, SpoolerProbe, build_strategies
from hotfolder.errors import PrintStrategyFailure
from hotfolder.models.schemas import DocumentKind, PrintAttempt, PrintOutcome

MISSING_TOOL_HINTS = [
    "Install Adobe Reader or SumatraPDF for better PDF printing support",
    "Download Adobe Reader: https://get.adobe.com/reader/",
    "Download SumatraPDF: https://www.sumatrapdfreader.org/download-free-pdf-viewer.html",
    "Download PDFtoPrinter: https://github.com/mhitza/PDFtoPrinter",
    "Download GSPrint: http://www.ghostgum.com.au/software/gsview.htm",
]

HINTS = [
    (("not found",), MISSING_TOOL_HINTS),
    (("timeout", "timed out"), ["Print operation timed out - printer might be slow or offline"]),
    (("access is denied", "permission denied"), ["Permission denied - try running the service as administrator"]),
    (
        ("no application is associated",),
        [
            "PDF file association issue - reinstall Adobe Reader or set a default PDF viewer",
            "Run: assoc .pdf=AcroExch.Document.DC (in an admin command prompt)",
        ],
    ),
]


def remediation_hints(reasons: Sequence[str]) -> List[str]:
    """
    Map failure reasons to actionable hints.

    Args:
        reasons: Failure reasons collected while printing a job

    Returns:
        Hints for every failure signature found, without duplicates
    """
    text = " ".join(reasons).lower()
    hints: List[str] = []
    for signatures, messages in HINTS:
        if any(signature in text for signature in signatures):
            hints.extend(m for m in messages if m not in hints)
    return hints


class PrintStrategyChain:
    """Ordered fallback over print strategies, grouped by document kind."""

    def __init__(
        self,
        strategies: Mapping[DocumentKind, Sequence[PrintStrategy]],
        printer_name: Optional[str] = None,
        pause: float = 2.0,
        spool_wait: float = 8.0,
        verifier: Optional[SpoolerProbe] = None,
    ):
        """
        Initialize strategy chain.

        Args:
            strategies: Strategies per document kind, highest priority first
            printer_name: Destination printer, or None for the system default
            pause: Seconds between a failed strategy and the next one
            spool_wait: Seconds to let the spooler pick up a job before verifying
            verifier: Optional spooler probe run after a success
        """
        self.strategies: Dict[DocumentKind, List[PrintStrategy]] = {
            kind: list(items) for kind, items in strategies.items()
        }
        self.printer_name = printer_name
        self.pause = pause
        self.spool_wait = spool_wait
        self.verifier = verifier

    def strategies_for(self, kind: DocumentKind) -> List[PrintStrategy]:
        return self.strategies.get(kind, [])

    def attempt(self, job: PrintJob) -> PrintOutcome:
        """
        Print a job with the first strategy that works.

        Args:
            job: Job to print

        Returns:
            PrintOutcome; ``success`` is False when every strategy failed
        """
        outcome = PrintOutcome(job_id=job.job_id, file_name=job.file_name, success=False)
        logger.info(f"Preparing to print: {job.file_name} ({job.print_type.value})")

        if not job.file_path.exists():
            outcome.error = f"File not found: {job.file_path}"
            logger.error(outcome.error)
            return outcome

        strategies = self.strategies_for(job.kind)
        if not strategies:
            outcome.error = f"No print methods configured for {job.kind.value} documents"
            logger.error(outcome.error)
            return outcome

        for index, strategy in enumerate(strategies, 1):
            logger.info(f"Trying print method {index}/{len(strategies)}: {strategy.name}")

            try:
                strategy.attempt(job, self.printer_name)
            except PrintStrategyFailure as e:
                reason = e.reason
            except Exception as e:
                reason = f"unexpected error: {e}"
            else:
                outcome.attempts.append(PrintAttempt(strategy=strategy.name, success=True))
                outcome.success = True
                outcome.strategy = strategy.name
                logger.success(f"Print method {index} ({strategy.name}) succeeded for {job.file_name}")
                self._verify(job)
                return outcome

            outcome.attempts.append(PrintAttempt(strategy=strategy.name, success=False, reason=reason))
            logger.warning(f"Print method {index} ({strategy.name}) failed: {reason}")

            if index < len(strategies) and self.pause:
                time.sleep(self.pause)

        logger.error(f"All print methods failed for {job.file_name}. Last error: {outcome.last_reason}")
        return outcome

    def _verify(self, job: PrintJob):
        """Diagnostic spooler check; never changes the outcome."""
        if self.verifier is None:
            return

        if self.spool_wait:
            logger.info("Waiting for print job to spool...")
            time.sleep(self.spool_wait)

        try:
            self.verifier.verify(job, self.printer_name)
        except Exception as e:
            logger.warning(f"Could not verify print queue: {e}")


def build_chain(settings, runner=subprocess.run) -> PrintStrategyChain:
    """Build the strategy chain described by settings."""
    return PrintStrategyChain(
        build_strategies(settings, runner=runner),
        printer_name=settings.printer_name,
        pause=settings.strategy_pause,
        spool_wait=settings.spool_wait,
        verifier=SpoolerProbe(runner=runner) if settings.verify_spooler else None,
    )
