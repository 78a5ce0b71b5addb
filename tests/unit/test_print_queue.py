import threading

import pytest

from hotfolder.domains.printing.chain import PrintStrategyChain
from hotfolder.domains.printing.job import PrintJob
from hotfolder.domains.printing.print_queue import PrintQueue
from hotfolder.errors import PrintJobFailure
from hotfolder.models.schemas import DocumentKind, PrintOutcome, PrintType

from conftest import wait_until


def _job(tmp_path, name):
    path = tmp_path / name
    path.write_text(f"contents of {name}")
    return PrintJob(file_path=path, file_name=name, print_type=PrintType.TEXT, content=path.read_text())


def _chain(*strategies):
    return PrintStrategyChain({DocumentKind.TEXT: list(strategies)}, pause=0)


def test_job_resolves_with_outcome(tmp_path, recorder):
    queue = PrintQueue(_chain(recorder.strategy("lp")), cooldown=0)

    outcome = queue.enqueue(_job(tmp_path, "a.txt")).result(timeout=5)

    assert isinstance(outcome, PrintOutcome)
    assert outcome.success
    assert outcome.strategy == "lp"


def test_failed_job_raises_print_job_failure(tmp_path, recorder):
    queue = PrintQueue(_chain(recorder.strategy("lp", fail=True, reason="lp not found")), cooldown=0)

    future = queue.enqueue(_job(tmp_path, "a.txt"))

    error = future.exception(timeout=5)
    assert isinstance(error, PrintJobFailure)
    assert error.reason == "lp not found"
    assert error.outcome.attempts[0].strategy == "lp"


def test_jobs_print_in_fifo_order_one_at_a_time(tmp_path, recorder):
    queue = PrintQueue(_chain(recorder.strategy("lp", duration=0.02)), cooldown=0)
    names = [f"job{i}.txt" for i in range(6)]

    futures = [queue.enqueue(_job(tmp_path, name)) for name in names]
    for future in futures:
        future.result(timeout=5)

    assert [c.file_name for c in recorder.calls] == names
    assert recorder.max_active == 1


def test_concurrent_producers_never_overlap(tmp_path, recorder):
    queue = PrintQueue(_chain(recorder.strategy("lp", duration=0.02)), cooldown=0)
    jobs = [_job(tmp_path, f"p{i}.txt") for i in range(8)]
    futures = []
    lock = threading.Lock()

    def produce(job):
        future = queue.enqueue(job)
        with lock:
            futures.append(future)

    threads = [threading.Thread(target=produce, args=(job,)) for job in jobs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for future in futures:
        assert future.result(timeout=5).success
    assert len(recorder.calls) == 8
    assert recorder.max_active == 1


def test_cooldown_separates_jobs(tmp_path, recorder):
    queue = PrintQueue(_chain(recorder.strategy("lp")), cooldown=0.3)

    first = queue.enqueue(_job(tmp_path, "one.txt"))
    second = queue.enqueue(_job(tmp_path, "two.txt"))
    first.result(timeout=5)
    second.result(timeout=5)

    gap = recorder.calls[1].start - recorder.calls[0].end
    assert gap >= 0.25


def test_failure_does_not_block_later_jobs(tmp_path):
    class FlakyChain:
        def attempt(self, job):
            if job.file_name == "bad.txt":
                raise RuntimeError("driver crashed")
            return PrintOutcome(job_id=job.job_id, file_name=job.file_name, success=True, strategy="lp")

    queue = PrintQueue(FlakyChain(), cooldown=0)

    bad = queue.enqueue(_job(tmp_path, "bad.txt"))
    good = queue.enqueue(_job(tmp_path, "good.txt"))

    with pytest.raises(PrintJobFailure, match="driver crashed"):
        bad.result(timeout=5)
    assert good.result(timeout=5).success


def test_worker_restarts_after_going_idle(tmp_path, recorder):
    queue = PrintQueue(_chain(recorder.strategy("lp")), cooldown=0)

    queue.enqueue(_job(tmp_path, "first.txt")).result(timeout=5)
    assert wait_until(lambda: not queue.is_running, timeout=5)

    queue.enqueue(_job(tmp_path, "second.txt")).result(timeout=5)
    assert [c.file_name for c in recorder.calls] == ["first.txt", "second.txt"]


def test_stop_fails_waiting_jobs(tmp_path, recorder):
    release = threading.Event()

    class BlockingChain:
        def attempt(self, job):
            release.wait(5)
            return PrintOutcome(job_id=job.job_id, file_name=job.file_name, success=True, strategy="lp")

    queue = PrintQueue(BlockingChain(), cooldown=0)
    running = queue.enqueue(_job(tmp_path, "running.txt"))
    assert wait_until(lambda: queue.pending == 0, timeout=5)
    waiting = queue.enqueue(_job(tmp_path, "waiting.txt"))

    queue.stop()
    release.set()

    assert running.result(timeout=5).success
    with pytest.raises(PrintJobFailure, match="print queue stopped"):
        waiting.result(timeout=5)

    late = queue.enqueue(_job(tmp_path, "late.txt"))
    with pytest.raises(PrintJobFailure, match="print queue stopped"):
        late.result(timeout=1)


def test_job_resolves_only_once(tmp_path):
    job = _job(tmp_path, "once.txt")
    outcome = PrintOutcome(job_id=job.job_id, file_name=job.file_name, success=True)

    assert job.resolve(outcome)
    assert not job.fail(PrintJobFailure(job.file_name, "late failure"))
    assert not job.resolve(outcome)
    assert job.future.result() is outcome
