"""
Sequential print queue for the printing domain.

Any number of producers enqueue jobs; one background worker prints them in
FIFO order, never two at a time, and waits a cooldown window after every
job so the external print subsystem can settle. The worker goes idle when
the queue is empty and is started again by the next enqueue.
"""

import threading
from collections import deque
from concurrent.futures import Future
from typing import Deque, Optional

from loguru import logger

from hotfolder.domains.printing.chain import PrintStrategyChain
from hotfolder.domains.printing.job import PrintJob
from hotfolder.errors import PrintJobFailure


class PrintQueue:
    """Single-consumer FIFO of print jobs."""

    def __init__(self, chain: PrintStrategyChain, cooldown: float = 8.0):
        """
        Initialize print queue.

        Args:
            chain: Strategy chain used to print each job
            cooldown: Seconds to wait after a job before starting the next
        """
        self.chain = chain
        self.cooldown = cooldown

        self._jobs: Deque[PrintJob] = deque()
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._stopped = threading.Event()

    @property
    def pending(self) -> int:
        """Jobs waiting behind the one being printed."""
        with self._lock:
            return len(self._jobs)

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._worker is not None

    def enqueue(self, job: PrintJob) -> Future:
        """
        Add a job to the tail of the queue.

        Args:
            job: Job to print

        Returns:
            The job's future; resolves with a PrintOutcome on success or
            raises PrintJobFailure once the job has failed
        """
        with self._lock:
            if self._stopped.is_set():
                job.fail(PrintJobFailure(job.file_name, "print queue stopped"))
                return job.future

            self._jobs.append(job)
            logger.info(f"Added to print queue: {job.file_name} (Queue length: {len(self._jobs)})")

            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._drain, name="print-queue-worker", daemon=True
                )
                self._worker.start()

        return job.future

    def stop(self, timeout: Optional[float] = None):
        """
        Stop the queue.

        Jobs still waiting are resolved as failed; the job being printed,
        if any, finishes normally.

        Args:
            timeout: Seconds to wait for the worker to exit, None to not wait
        """
        with self._lock:
            self._stopped.set()
            abandoned = list(self._jobs)
            self._jobs.clear()
            worker = self._worker

        for job in abandoned:
            job.fail(PrintJobFailure(job.file_name, "print queue stopped"))

        if abandoned:
            logger.warning(f"Print queue stopped with {len(abandoned)} job(s) unprinted")

        if worker is not None and timeout is not None:
            worker.join(timeout)

    def _drain(self):
        logger.info("Starting print queue processing...")

        while True:
            with self._lock:
                if not self._jobs or self._stopped.is_set():
                    self._worker = None
                    break
                job = self._jobs.popleft()
                remaining = len(self._jobs)

            logger.info(f"Processing print job: {job.file_name} ({remaining} remaining)")
            self._print(job)

            logger.info("Waiting between print jobs...")
            self._stopped.wait(self.cooldown)

        logger.info("Print queue processing completed")

    def _print(self, job: PrintJob):
        """Run one job through the chain and resolve it exactly once."""
        try:
            outcome = self.chain.attempt(job)
        except Exception as e:
            logger.error(f"Print job failed for {job.file_name}: {e}")
            job.fail(PrintJobFailure(job.file_name, f"unexpected error: {e}"))
            return

        if outcome.success:
            job.resolve(outcome)
        else:
            job.fail(PrintJobFailure(job.file_name, outcome.last_reason or "unknown error", outcome))
