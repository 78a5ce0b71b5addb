import threading
import time
from collections import namedtuple
from pathlib import Path

import pytest

from hotfolder.domains.printing.strategies import PrintStrategy
from hotfolder.errors import PrintStrategyFailure
from hotfolder.models.schemas import DocumentKind
from hotfolder.utils.config import Settings

Call = namedtuple("Call", "strategy file_name start end")


class PrintRecorder:
    """Creates fake strategies and records every attempt they make."""

    def __init__(self):
        self.calls: list[Call] = []
        self.max_active = 0
        self._active = 0
        self._lock = threading.Lock()

    def strategy(self, name, fail=False, duration=0.0, reason=None, kinds=None):
        return RecordingStrategy(self, name, fail, duration, reason, kinds)

    @property
    def names(self):
        return [c.strategy for c in self.calls]

    def enter(self):
        with self._lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)

    def leave(self, call: Call):
        with self._lock:
            self._active -= 1
            self.calls.append(call)


class RecordingStrategy(PrintStrategy):
    def __init__(self, recorder, name, fail, duration, reason, kinds):
        self.recorder = recorder
        self.name = name
        self.fail = fail
        self.duration = duration
        self.reason = reason or f"{name} exit code 1"
        self.kinds = frozenset(kinds or DocumentKind)

    def attempt(self, job, printer_name=None):
        self.recorder.enter()
        start = time.monotonic()
        try:
            if self.duration:
                time.sleep(self.duration)
            if self.fail:
                raise PrintStrategyFailure(self.name, self.reason)
        finally:
            self.recorder.leave(Call(self.name, job.file_name, start, time.monotonic()))


class FakeObserver:
    """Stands in for a watchdog observer."""

    def __init__(self, fail=False):
        self.fail = fail
        self.alive = False
        self.daemon = False
        self.scheduled = []

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        if self.fail:
            raise OSError("inotify watch limit reached")
        self.alive = True

    def stop(self):
        self.alive = False

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return self.alive


def wait_until(predicate, timeout=10.0, interval=0.05):
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def recorder():
    return PrintRecorder()


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings with fast timings rooted in ``tmp_path``."""

    def _make(**overrides):
        values = dict(
            watch_path=tmp_path / "watched",
            move_to_folder=tmp_path / "archive",
            enable_printing=False,
            settle_delay=0,
            print_cooldown=0,
            strategy_pause=0,
            spool_wait=0,
            verify_spooler=False,
            move_backoff=0,
            restart_delay=0.01,
            max_restart_delay=0.04,
            health_check_interval=0.02,
            heartbeat_interval=0,
            shutdown_grace=0.5,
            temp_dir=tmp_path / "tmp",
            temp_cleanup_delay=0,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"
