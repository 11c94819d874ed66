"""Batch-barrier scheduling of frame render processes.

Jobs are split into consecutive batches of ``max_concurrency``. A batch is
launched in ascending index order and fully drained before the next one
starts, so at most ``max_concurrency`` child processes exist at any instant.
A slow job stalls the following batch even when other slots are idle.

A single thread supervises every child by polling, which lets completions
be reported in exit order without any worker threads.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol

from dragonfly.core.contracts import FrameJob, JobOutcome, JobStatus
from dragonfly.core.errors import JobFailedError, JobTimedOutError

logger = logging.getLogger(__name__)


class ProcessHandle(Protocol):
    """The part of ``subprocess.Popen`` the barrier relies on."""

    returncode: int | None

    def poll(self) -> int | None: ...

    def wait(self, timeout: float | None = None) -> int: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


Launcher = Callable[[FrameJob], ProcessHandle]
ProgressCallback = Callable[[int, int], None]


def batched(jobs: Sequence[FrameJob], size: int) -> Iterable[Sequence[FrameJob]]:
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    for start in range(0, len(jobs), size):
        yield jobs[start:start + size]


class _Running:
    __slots__ = ("job", "handle", "started")

    def __init__(self, job: FrameJob, handle: ProcessHandle, started: float):
        self.job = job
        self.handle = handle
        self.started = started


class BatchBarrier:
    """A fixed-size group of spawned handles joined together."""

    def __init__(
        self,
        capacity: int,
        job_timeout: float | None = None,
        poll_interval: float = 0.05,
        kill_grace: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.job_timeout = job_timeout
        self.poll_interval = poll_interval
        self.kill_grace = kill_grace
        self._clock = clock
        self._running: list[_Running] = []

    def __len__(self) -> int:
        return len(self._running)

    @property
    def full(self) -> bool:
        return len(self._running) >= self.capacity

    def add(self, job: FrameJob, handle: ProcessHandle) -> None:
        if self.full:
            raise RuntimeError(f"Batch already holds {self.capacity} processes")
        self._running.append(_Running(job, handle, self._clock()))

    def join_all(self, on_done: Callable[[JobOutcome], None] | None = None) -> list[JobOutcome]:
        """Wait for every handle to exit; outcomes are in completion order."""
        outcomes: list[JobOutcome] = []
        pending = list(self._running)
        try:
            while pending:
                finished, pending = self._poll_round(pending)
                for outcome in finished:
                    outcomes.append(outcome)
                    if on_done is not None:
                        on_done(outcome)
                self._pause(pending)
        finally:
            # a raising callback still leaves no child behind
            while pending:
                _, pending = self._poll_round(pending)
                self._pause(pending)
            self._running.clear()
        return outcomes

    def _poll_round(self, pending: list[_Running]) -> tuple[list[JobOutcome], list[_Running]]:
        finished: list[JobOutcome] = []
        still_running: list[_Running] = []
        for entry in pending:
            outcome = self._check(entry)
            if outcome is None:
                still_running.append(entry)
            else:
                finished.append(outcome)
        return finished, still_running

    def _pause(self, pending: list[_Running]) -> None:
        if pending and self.poll_interval > 0:
            time.sleep(self.poll_interval)

    def _check(self, entry: _Running) -> JobOutcome | None:
        returncode = entry.handle.poll()
        if returncode is not None:
            status = JobStatus.COMPLETED if returncode == 0 else JobStatus.FAILED
            if status is JobStatus.FAILED:
                logger.error(f"Frame {entry.job.index} exited with status {returncode}")
            return JobOutcome(job=entry.job, status=status, returncode=returncode)

        if self.job_timeout is not None and self._clock() - entry.started >= self.job_timeout:
            returncode = self._stop(entry)
            logger.error(f"Frame {entry.job.index} timed out after {self.job_timeout}s")
            return JobOutcome(job=entry.job, status=JobStatus.TIMED_OUT, returncode=returncode)
        return None

    def _stop(self, entry: _Running) -> int:
        entry.handle.terminate()
        try:
            return entry.handle.wait(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            logger.warning(f"Frame {entry.job.index} ignored terminate, killing")
            entry.handle.kill()
            return entry.handle.wait()


def first_failure(outcomes: Iterable[JobOutcome]) -> JobOutcome | None:
    return next((o for o in outcomes if not o.ok), None)


def run_batches(
    jobs: Sequence[FrameJob],
    launch: Launcher,
    max_concurrency: int,
    progress: ProgressCallback | None = None,
    job_timeout: float | None = None,
    poll_interval: float = 0.05,
    kill_grace: float = 5.0,
) -> list[JobOutcome]:
    """Run every job through ``launch`` with a batch barrier.

    Raises JobFailedError (JobTimedOutError for timeouts) for the first
    unsuccessful job once its batch has drained; later batches are not
    started and frames already written stay on disk.
    """
    total = len(jobs)
    all_outcomes: list[JobOutcome] = []

    def _on_done(outcome: JobOutcome) -> None:
        all_outcomes.append(outcome)
        if progress is not None:
            progress(len(all_outcomes), total)

    for batch_no, batch in enumerate(batched(jobs, max_concurrency)):
        barrier = BatchBarrier(
            max_concurrency,
            job_timeout=job_timeout,
            poll_interval=poll_interval,
            kill_grace=kill_grace,
        )
        logger.debug(
            f"Batch {batch_no}: frames {batch[0].index}..{batch[-1].index}"
        )
        for job in batch:
            try:
                handle = launch(job)
            except Exception as exc:
                # reap what this batch already started before propagating
                barrier.join_all(_on_done)
                if not isinstance(exc, OSError):
                    raise
                outcome = JobOutcome(job=job, status=JobStatus.FAILED)
                raise JobFailedError(
                    outcome, f"Could not start renderer for frame {job.index}: {exc}"
                ) from exc
            barrier.add(job, handle)

        outcomes = barrier.join_all(_on_done)
        failure = first_failure(outcomes)
        if failure is not None:
            if failure.status is JobStatus.TIMED_OUT:
                raise JobTimedOutError(failure, job_timeout)
            raise JobFailedError(failure)

    return all_outcomes
