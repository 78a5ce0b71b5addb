"""
Watch supervisor for the intake domain.

Owns the watchdog subscription on the watch directory and turns file
arrivals into actions: classify, optionally print, then archive. Events
are de-duplicated on ``(name, mtime, size)`` and handled one at a time.
When the subscription itself fails, the supervisor tears it down and
resubscribes with a growing delay until it succeeds or is stopped.

    UNINITIALIZED -> WATCHING -> (ERRORING -> WATCHING | STOPPED)
"""

import stat
import threading
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Set

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from hotfolder.domains.intake.archive import ArchiveMover
from hotfolder.domains.intake.classifier import FileClassifier
from hotfolder.domains.printing.chain import build_chain, remediation_hints
from hotfolder.domains.printing.job import PrintJob
from hotfolder.domains.printing.print_queue import PrintQueue
from hotfolder.errors import InitializationError, PrintJobFailure, WatchSubscriptionError
from hotfolder.models.schemas import FileClassification, PrintOutcome, WatchedFile
from hotfolder.utils.config import Settings
from hotfolder.utils.helpers import format_bytes, normalise_path

BANNER = "=" * 50


class WatchState(str, Enum):
    """Lifecycle of the watch subscription."""
    UNINITIALIZED = "uninitialized"
    WATCHING = "watching"
    ERRORING = "erroring"
    STOPPED = "stopped"


class ArrivalLedger:
    """
    Files already seen by the supervisor.

    Pre-existing files are known by name only; arrivals by their full
    identity triple. Entries live for the whole process.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._preexisting: Set[str] = set()
        self._seen: Set[WatchedFile] = set()

    def seed(self, names: Iterable[str]):
        with self._lock:
            self._preexisting.update(names)

    def is_preexisting(self, name: str) -> bool:
        with self._lock:
            return name in self._preexisting

    def release(self, name: str):
        """Forget a pre-existing name once that file has left the folder."""
        with self._lock:
            self._preexisting.discard(name)

    def record(self, identity: WatchedFile) -> bool:
        """
        Remember an arrival.

        Returns:
            True if the identity was new, False if already recorded
        """
        with self._lock:
            if identity in self._seen:
                return False
            self._seen.add(identity)
            return True

    def __contains__(self, identity: WatchedFile) -> bool:
        with self._lock:
            return identity in self._seen

    @property
    def preexisting(self) -> Set[str]:
        with self._lock:
            return set(self._preexisting)


class ArrivalEventHandler(FileSystemEventHandler):
    """Watchdog handler that forwards file events to the supervisor."""

    def __init__(self, supervisor: "WatchSupervisor"):
        super().__init__()
        self.supervisor = supervisor

    def on_created(self, event: FileSystemEvent):
        """Handle file creation."""
        if event.is_directory:
            return
        self.supervisor.handle_path(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        """Handle file modification; a rewrite changes the identity triple."""
        if event.is_directory:
            return
        self.supervisor.handle_path(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        """Handle rename/move into or within the folder."""
        if event.is_directory:
            return
        self.supervisor.handle_departure(event.src_path)

        dest = getattr(event, "dest_path", None)
        if dest:
            self.supervisor.handle_path(dest)

    def on_deleted(self, event: FileSystemEvent):
        """Handle file deletion."""
        if event.is_directory:
            return
        self.supervisor.handle_departure(event.src_path)


class WatchSupervisor:
    """Watch directory orchestrator."""

    def __init__(
        self,
        settings: Settings,
        classifier: Optional[FileClassifier] = None,
        archiver: Optional[ArchiveMover] = None,
        print_queue: Optional[PrintQueue] = None,
        observer_factory: Optional[Callable[[], object]] = None,
    ):
        """
        Initialize watch supervisor.

        Args:
            settings: Application settings
            classifier: File classifier (built from settings if omitted)
            archiver: Archive mover (built from settings if omitted)
            print_queue: Print queue; built from settings when printing is
                enabled and none is given
            observer_factory: Callable returning a new watchdog observer
        """
        self.settings = settings
        self.watch_path = normalise_path(settings.watch_path)

        self.classifier = classifier or FileClassifier(
            display_limit=settings.display_limit,
            max_text_bytes=settings.max_text_bytes,
        )
        self.archiver = archiver or ArchiveMover(
            settings.move_to_folder,
            retries=settings.move_retries,
            backoff=settings.move_backoff,
        )
        if print_queue is None and settings.enable_printing:
            print_queue = PrintQueue(build_chain(settings), cooldown=settings.print_cooldown)
        self.print_queue = print_queue

        self.ledger = ArrivalLedger()
        self.handler = ArrivalEventHandler(self)
        self.state = WatchState.UNINITIALIZED
        self.restart_attempts = 0

        self._observer_factory = observer_factory or self._default_observer
        self._observer = None
        self._initialized = False
        self._gate = threading.Lock()
        self._stop_event = threading.Event()
        self._restart_delay = settings.restart_delay

    # Lifecycle -----------------------------------------------------------------

    def initialize(self):
        """
        Prepare the watch directory and remember the files already in it.

        Raises:
            InitializationError: if the directory cannot be created or listed
        """
        try:
            if not self.watch_path.exists():
                self.watch_path.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created directory: {self.watch_path}")

            existing = [p.name for p in self.watch_path.iterdir() if p.is_file()]
        except OSError as e:
            raise InitializationError(self.watch_path, str(e)) from e

        self.ledger.seed(existing)
        self._initialized = True

        logger.info(f"Watching folder: {self.watch_path}")
        logger.info(f"Initial files: {', '.join(sorted(existing)) or 'none'}")

    def start(self) -> bool:
        """
        Subscribe to filesystem events.

        Returns:
            True if watching, False if the subscription failed and will be
            retried by ``run``
        """
        if not self._initialized:
            self.initialize()

        try:
            self._subscribe()
        except WatchSubscriptionError as e:
            logger.error(f"Failed to start file system watcher: {e}")
            self._transition(WatchState.ERRORING)
            return False

        self._transition(WatchState.WATCHING)
        logger.success("File system watcher started successfully")
        return True

    def run(self):
        """Supervise the subscription until a stop is requested."""
        logger.info("Hotfolder supervisor running...")
        last_heartbeat = time.monotonic()

        while not self._stop_event.is_set():
            try:
                self.check_subscription()
            except Exception as e:
                logger.error(f"Unexpected supervisor error: {e}")

            interval = self.settings.heartbeat_interval
            if interval and time.monotonic() - last_heartbeat >= interval:
                logger.info(f"Service heartbeat: {datetime.now().strftime('%H:%M:%S')}")
                last_heartbeat = time.monotonic()

            self._stop_event.wait(self.settings.health_check_interval)

    def request_stop(self):
        """Ask ``run`` to return; safe to call from a signal handler."""
        self._stop_event.set()

    def stop(self):
        """Close the subscription and stop the print queue. Terminal."""
        if self.state == WatchState.STOPPED:
            return

        logger.info("Shutting down file watcher...")
        self._stop_event.set()
        self._transition(WatchState.STOPPED)
        self._teardown()

        if self.print_queue is not None:
            self.print_queue.stop()

    # Subscription supervision --------------------------------------------------

    def subscription_error(self) -> Optional[str]:
        """Describe what is wrong with the subscription, or None if healthy."""
        if self._observer is None:
            return "no active subscription"
        if not self._observer.is_alive():
            return "observer thread stopped"
        if not self.watch_path.is_dir():
            return f"watch directory missing: {self.watch_path}"
        return None

    def check_subscription(self):
        """Move to ERRORING on a broken subscription and try to recover."""
        if self.state == WatchState.WATCHING:
            error = self.subscription_error()
            if error is None:
                return
            logger.error(f"Watcher error: {error}")
            self._transition(WatchState.ERRORING)

        if self.state == WatchState.ERRORING:
            self.restart()

    def restart(self) -> bool:
        """
        Tear down and resubscribe after a delay.

        The delay doubles after every failed attempt up to
        ``max_restart_delay`` and resets once watching again.

        Returns:
            True if the subscription is back, False otherwise
        """
        self.restart_attempts += 1
        delay = self._restart_delay
        logger.info(f"Attempting to restart file watcher in {delay:g}s (attempt {self.restart_attempts})...")

        self._teardown()
        if self._stop_event.wait(delay):
            return False

        try:
            self.watch_path.mkdir(parents=True, exist_ok=True)
            self._subscribe()
        except (OSError, WatchSubscriptionError) as e:
            logger.error(f"Failed to restart watcher: {e}")
            self._restart_delay = min(delay * 2, self.settings.max_restart_delay)
            return False

        if self._stop_event.is_set():
            self._teardown()
            return False

        self._restart_delay = self.settings.restart_delay
        self._transition(WatchState.WATCHING)
        logger.success("File watcher restarted successfully")
        return True

    def _default_observer(self):
        if self.settings.use_polling:
            return PollingObserver(timeout=self.settings.poll_interval)
        return Observer()

    def _subscribe(self):
        observer = self._observer_factory()
        observer.daemon = True
        try:
            observer.schedule(self.handler, str(self.watch_path), recursive=False)
            observer.start()
        except Exception as e:
            raise WatchSubscriptionError(f"cannot watch {self.watch_path}: {e}") from e
        self._observer = observer

    def _teardown(self):
        observer, self._observer = self._observer, None
        if observer is None:
            return
        try:
            observer.stop()
            if observer.is_alive():
                observer.join(timeout=self.settings.shutdown_grace)
        except Exception as e:
            logger.warning(f"Error stopping observer: {e}")

    def _transition(self, state: WatchState):
        if state != self.state:
            logger.debug(f"Watch state: {self.state.value} -> {state.value}")
            self.state = state

    # Event handling ------------------------------------------------------------

    def handle_path(self, raw_path: str):
        """
        Handle a filesystem event for a path in the watch directory.

        Events are serialized: only one is turned into an action at a time.
        Errors are logged and never propagate to the observer.
        """
        if not self._initialized or self.state == WatchState.STOPPED:
            return

        path = Path(raw_path)
        if normalise_path(path.parent) != self.watch_path:
            return

        with self._gate:
            if self.state == WatchState.STOPPED:
                return
            try:
                self._admit(path)
            except Exception as e:
                logger.error(f"Error handling file event for {path.name}: {e}")

    def handle_departure(self, raw_path: str):
        """A file left the folder; a new file with its name is a new arrival."""
        path = Path(raw_path)
        if normalise_path(path.parent) == self.watch_path:
            self.ledger.release(path.name)

    def _admit(self, path: Path):
        try:
            stats = path.stat()
        except FileNotFoundError:
            return

        if not stat.S_ISREG(stats.st_mode):
            return

        if self.ledger.is_preexisting(path.name):
            return

        if not self.ledger.record(WatchedFile.from_stat(path.name, stats)):
            return

        logger.info(f"Detected new file: {path.name}")

        if self.settings.settle_delay and self._stop_event.wait(self.settings.settle_delay):
            return

        try:
            settled = path.stat()
        except FileNotFoundError:
            logger.warning(f"File disappeared before processing: {path.name}")
            return

        self.ledger.record(WatchedFile.from_stat(path.name, settled))
        self.process_file(path)

    def process_file(self, path: Path) -> Optional[FileClassification]:
        """
        Classify, optionally print, then archive a settled file.

        The move is attempted even when classification or printing failed.

        Args:
            path: File in the watch directory

        Returns:
            The classification, or None if classification itself failed
        """
        classification = None
        try:
            classification = self.classifier.classify(path)
            self._log_arrival(path, classification)

            if self.settings.enable_printing and self.print_queue is not None and classification.printable:
                self._print(path, classification)

        except Exception as e:
            logger.error(f"Error processing file {path}: {e}")

        self.archiver.move(path, path.name)
        return classification

    def _print(self, path: Path, classification: FileClassification) -> Optional[PrintOutcome]:
        """Queue a print job and wait until it has been printed or has failed."""
        job = PrintJob.from_classification(path, classification)
        future = self.print_queue.enqueue(job)

        try:
            outcome = future.result()
        except PrintJobFailure as e:
            logger.error(f"Print operation failed for {e.file_name}: {e.reason}")
            reasons = e.outcome.reasons if e.outcome is not None else [e.reason]
            for hint in remediation_hints(reasons or [e.reason]):
                logger.info(f"Hint: {hint}")
            return None

        logger.success(f"Print job completed: {job.file_name} via {outcome.strategy}")
        return outcome

    def _log_arrival(self, path: Path, classification: FileClassification):
        logger.info(BANNER)
        logger.info(f"NEW FILE: {path.name}")
        logger.info(f"Path: {path}")
        logger.info(f"Size: {format_bytes(classification.size_bytes)}")
        logger.info(f"Print Type: {classification.print_type.value}")
        logger.info(BANNER)
        logger.info(self.classifier.display(classification))
        logger.info(BANNER)
