"""
Job queue, job registry, and print orchestration for Receipt Spooler.

This module owns:
- The Processor: a FIFO queue plus the Idle/Busy flag that serializes access
  to the single printer
- The per-job pipeline: fetch -> connect -> print -> cleanup
- An in-memory job registry with basic lifecycle (queued -> running ->
  success/error/skipped)

It is Flask-agnostic; any event source only needs to call `enqueue`.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Mapping, Optional, Union

from receipt_spooler.core.config import default_spool_path
from receipt_spooler.core.errors import CleanupError, ConfigError, SpoolerError, error_kind
from receipt_spooler.printing.connection import ConnectionManager, PrinterAddress
from receipt_spooler.printing.executor import PrintExecutor
from receipt_spooler.printing.fetcher import ImageFetcher, LocalImageResource

logger = logging.getLogger(__name__)

JOBS_MAX = 200
TERMINAL_STATUSES = ("success", "error", "skipped")


class ProcessorState(str, enum.Enum):
    IDLE = "idle"
    BUSY = "busy"


class JobState(str, enum.Enum):
    QUEUED = "queued"
    FETCHING = "fetching"
    CONNECTING = "connecting"
    PRINTING = "printing"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class JobDescriptor:
    source_uri: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Processor:
    """
    Serializes print jobs onto one printer.

    `enqueue` may be called from any thread. Jobs run one at a time, in the
    order they were enqueued, either on a background worker thread
    (autostart) or in whichever thread calls `drain()`.
    """

    def __init__(
        self,
        fetcher: ImageFetcher,
        connections: ConnectionManager,
        executor: PrintExecutor,
        *,
        autostart: bool = True,
        jobs_max: int = JOBS_MAX,
    ):
        self.fetcher = fetcher
        self.connections = connections
        self.executor = executor
        self.autostart = autostart
        self.jobs_max = jobs_max

        self._queue: Deque[JobDescriptor] = deque()
        self._state = ProcessorState.IDLE
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._thread: Optional[threading.Thread] = None
        # Held from connect through close; nothing else may open the printer meanwhile.
        self._device_lock = threading.Lock()
        self._last_connect: tuple[bool, Optional[str]] = (True, None)

        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._jobs_lock = threading.RLock()
        self.processed = 0
        self.failed = 0

    # Queue

    @property
    def state(self) -> ProcessorState:
        return self._state

    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)

    def enqueue(self, job: Union[JobDescriptor, str]) -> JobDescriptor:
        """
        Append a job and trigger a drain. Never waits for job execution.
        """
        if isinstance(job, str):
            job = JobDescriptor(source_uri=job)
        self._create_record(job)
        with self._lock:
            self._queue.append(job)
            self._idle.clear()
            start = self.autostart and self._state is ProcessorState.IDLE
            size = len(self._queue)
        logger.info("Enqueued job for %s queue_size=%d", job.source_uri, size, extra={"job_id": job.id})
        if start:
            self._start_worker()
        return job

    def drain(self) -> int:
        """
        Process queued jobs until the queue is empty.

        A no-op (returns 0) when another drain is running or nothing is
        queued. Returns the number of jobs processed.
        """
        with self._lock:
            if self._state is ProcessorState.BUSY or not self._queue:
                return 0
            self._state = ProcessorState.BUSY

        count = 0
        finished = False
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        self._state = ProcessorState.IDLE
                        self._idle.set()
                        finished = True
                        return count
                    job = self._queue.popleft()
                self._run_job(job)
                count += 1
        finally:
            if not finished:
                with self._lock:
                    self._state = ProcessorState.IDLE
                    pending = bool(self._queue)
                    if not pending:
                        self._idle.set()
                if pending and self.autostart:
                    logger.warning("Drain interrupted with %d job(s) queued; restarting worker", self.queue_size())
                    self._start_worker()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the queue is empty and no job is running.
        """
        return self._idle.wait(timeout)

    def _start_worker(self) -> None:
        t = threading.Thread(target=self.drain, daemon=True, name="receipt-spooler-worker")
        self._thread = t
        t.start()

    # Pipeline

    def _run_job(self, job: JobDescriptor) -> None:
        """
        Run one job to completion. Never raises; outcomes go to the log and
        the job registry.
        """
        extra = {"job_id": job.id}
        resource: Optional[LocalImageResource] = None
        final = JobState.DONE
        outcome: Dict[str, Any] = {"status": "success"}
        self._update_job(job.id, status="running")
        logger.info("Starting job for %s", job.source_uri, extra=extra)
        try:
            self._update_job(job.id, state=JobState.FETCHING.value)
            resource = self.fetcher.fetch(job.source_uri)

            self._update_job(job.id, state=JobState.CONNECTING.value)
            with self._device_lock, self.connections.session() as handle:
                self._last_connect = (True, None) if handle is not None else (False, "printer_unreachable")
                if handle is None:
                    outcome = {
                        "status": "skipped",
                        "error": f"printer {self.connections.address} unavailable",
                        "error_kind": "PrinterConnectionError",
                    }
                    logger.error(
                        "Skipping print for %s: printer unavailable",
                        job.source_uri,
                        extra={**extra, "error_kind": "PrinterConnectionError"},
                    )
                else:
                    self._update_job(job.id, state=JobState.PRINTING.value)
                    self.executor.render(handle, resource)
        except SpoolerError as e:
            final = JobState.FAILED
            outcome = {"status": "error", "error": str(e), "error_kind": e.kind}
            logger.error("Job failed: %s", e, exc_info=True, extra={**extra, "error_kind": e.kind})
        except Exception as e:
            final = JobState.FAILED
            outcome = {"status": "error", "error": str(e), "error_kind": error_kind(e)}
            logger.exception("Job failed unexpectedly: %s", e, extra={**extra, "error_kind": "internal"})
        finally:
            self._update_job(job.id, state=JobState.CLEANUP.value)
            self._cleanup(job, resource)

        self.processed += 1
        if outcome["status"] != "success":
            self.failed += 1
        else:
            logger.info("Job printed successfully", extra=extra)
        self._update_job(job.id, state=final.value, **outcome)

    def _cleanup(self, job: JobDescriptor, resource: Optional[LocalImageResource]) -> None:
        if resource is None:
            return
        try:
            os.remove(resource.path)
        except FileNotFoundError:
            return
        except OSError as e:
            err = CleanupError(f"Could not delete {resource.path}: {e}")
            logger.warning("%s", err, extra={"job_id": job.id, "error_kind": err.kind})
            return
        logger.info("Removed spooled image %s", resource.path.name, extra={"job_id": job.id})

    # Job registry

    def _prune_jobs_if_needed(self) -> None:
        with self._jobs_lock:
            excess = len(self._jobs) - self.jobs_max
            if excess <= 0:
                return
            # Only finished jobs are evicted; live ones must stay addressable.
            finished = [j for j in self._jobs.values() if j.get("status") in TERMINAL_STATUSES]
            finished.sort(key=lambda j: j.get("created_at", ""))
            for j in finished[:excess]:
                self._jobs.pop(j["id"], None)

    def _create_record(self, job: JobDescriptor) -> None:
        now = _utc_now_iso()
        record = {
            "id": job.id,
            "source_uri": job.source_uri,
            "status": "queued",
            "state": JobState.QUEUED.value,
            "error": None,
            "error_kind": None,
            "created_at": now,
            "updated_at": now,
        }
        with self._jobs_lock:
            self._jobs[job.id] = record
            self._prune_jobs_if_needed()

    def _update_job(self, job_id: str, **updates: Any) -> None:
        with self._jobs_lock:
            job = self._jobs.get(job_id)
            if not job:
                return
            job.update(updates)
            job["updated_at"] = _utc_now_iso()

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        with self._jobs_lock:
            job = self._jobs.get(job_id)
            return dict(job) if job else None

    def list_jobs(self) -> List[Dict[str, Any]]:
        """
        Return job records sorted by created_at descending.
        """
        with self._jobs_lock:
            items = [dict(v) for v in self._jobs.values()]
        items.sort(key=lambda j: j.get("created_at", ""), reverse=True)
        return items

    def status(self) -> Dict[str, Any]:
        alive = bool(self._thread) and self._thread.is_alive()  # type: ignore[union-attr]
        return {
            "state": self._state.value,
            "queue_size": self.queue_size(),
            "worker_alive": alive,
            "processed": self.processed,
            "failed": self.failed,
        }

    def printer_reachable(self) -> tuple[bool, Optional[str]]:
        """
        Printer reachability for health checks.

        Connects only while no job holds the device; during a print it reports
        the outcome of that job's own connect instead of opening a second
        socket.
        """
        if not self._device_lock.acquire(blocking=False):
            return self._last_connect
        try:
            result = self.connections.ping()
        finally:
            self._device_lock.release()
        self._last_connect = result
        return result


def build_processor(config: Mapping[str, Any], *, autostart: bool = True) -> Processor:
    """
    Wire a Processor to the network printer, HTTP fetcher and image executor
    described by a resolved config mapping.
    """
    host = str(config.get("printer_host") or "").strip()
    if not host:
        raise ConfigError("printer_host is not configured")
    try:
        port = int(config.get("printer_port", 9100))
        retries = int(config.get("connect_retries", 3))
        backoff = float(config.get("connect_backoff_seconds", 1.0))
        timeout = float(config.get("printer_timeout", 60.0))
        fetch_timeout = float(config.get("fetch_timeout", 30.0))
        jobs_max = int(config.get("jobs_max", JOBS_MAX))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric config value: {e}") from e

    connections = ConnectionManager(
        PrinterAddress(host, port),
        retries=retries,
        backoff=backoff,
        profile=config.get("printer_profile") or None,
        timeout=timeout,
    )
    fetcher = ImageFetcher(str(config.get("spool_dir") or default_spool_path()), timeout=fetch_timeout)
    executor = PrintExecutor(impl=str(config.get("image_impl") or ""))
    return Processor(fetcher, connections, executor, autostart=autostart, jobs_max=jobs_max)


__all__ = [
    "JOBS_MAX",
    "JobDescriptor",
    "JobState",
    "Processor",
    "ProcessorState",
    "build_processor",
]
