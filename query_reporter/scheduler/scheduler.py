"""Query scheduler using APScheduler."""

import logging
import sqlite3
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, FrozenSet, Iterator, List, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
)

from ..clients.database_client import DatabaseClient, NoResultsError
from .handlers import check_result_kind
from .triggers import build_trigger

logger = logging.getLogger(__name__)

OVERLAP_POLICIES = ("skip", "allow")


class ScheduleError(ValueError):
    """Raised when one or more job schedules cannot be parsed."""


class RegistryFrozenError(RuntimeError):
    """Raised when adding a job after the scheduler has started."""


@dataclass(frozen=True)
class QueryJob:
    """A named query run on a cron schedule, with a handler for its result."""

    name: str
    cron: str
    query: str
    handler: Callable[[Any], Any] = field(compare=False, repr=False)
    accepts: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], handler: Callable[[Any], Any]) -> "QueryJob":
        """Create from a job dictionary and an already-built handler."""
        handler_cfg = data.get("handler") or {}
        accepts = handler_cfg.get("accepts") or []
        return cls(
            name=data.get("name", ""),
            cron=data.get("cron", ""),
            query=data.get("query", ""),
            handler=handler,
            accepts=frozenset("null" if kind is None else str(kind) for kind in accepts),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "cron": self.cron,
            "query": self.query,
            "accepts": sorted(self.accepts),
        }


class JobRegistry:
    """Ordered, append-only collection of jobs.

    Jobs are accepted as-is: schedule syntax, name uniqueness and query
    shape are only checked once the scheduler arms or runs them.
    """

    def __init__(self):
        self._jobs: List[QueryJob] = []
        self._frozen = False

    def add_job(self, job: QueryJob) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot add job {job.name}: scheduler already started")
        self._jobs.append(job)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def find(self, name: str) -> Optional[QueryJob]:
        """Return the first job registered under name."""
        return next((job for job in self._jobs if job.name == name), None)

    def __iter__(self) -> Iterator[QueryJob]:
        return iter(tuple(self._jobs))

    def __len__(self) -> int:
        return len(self._jobs)


@dataclass
class CycleExecution:
    """Record of one execution cycle."""

    job_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str = "running"  # running, success, no_results, query_failed, handler_failed, skipped
    error: Optional[str] = None
    result: Any = None
    result_kind: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "job_name": self.job_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "status": self.status,
            "error": self.error,
            "result": self.result,
            "result_kind": self.result_kind,
        }


class QueryScheduler:
    """Runs registered queries on their cron schedules.

    Wraps APScheduler's background scheduler: every firing runs the job's
    query on a worker thread and passes the scalar result to the job's
    handler. Errors are logged and contained in the cycle that raised them.
    """

    def __init__(
        self,
        database: DatabaseClient,
        registry: Optional[JobRegistry] = None,
        timezone: str = "UTC",
        overlap_policy: str = "skip",
        strict_schedules: bool = True,
        history_size: int = 100,
        max_instances: int = 3
    ):
        """Initialize the scheduler.

        Args:
            database: Shared database client used by every job
            registry: Job registry (a new empty one if not given)
            timezone: Timezone for cron schedules
            overlap_policy: "skip" drops a firing while the same job's previous
                            cycle is still running, "allow" lets them overlap
            strict_schedules: Refuse to start if any schedule is invalid;
                              otherwise log and leave that job unarmed
            history_size: Number of execution records kept in memory
            max_instances: Concurrent cycles APScheduler allows per job
        """
        if overlap_policy not in OVERLAP_POLICIES:
            raise ValueError(f"Unknown overlap policy: {overlap_policy}")

        self.database = database
        self.registry = registry if registry is not None else JobRegistry()
        self.timezone = timezone
        self.overlap_policy = overlap_policy
        self.strict_schedules = strict_schedules
        self.max_instances = max_instances
        self.executions: Deque[CycleExecution] = deque(maxlen=history_size)

        # Registration index -> APScheduler job id
        self._armed: Dict[int, str] = {}
        self._cycle_locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        self.scheduler = BackgroundScheduler(timezone=timezone)

        # Add event listeners
        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES)

    def add_job(self, job: QueryJob) -> None:
        """Register a job. Must be called before start()."""
        self.registry.add_job(job)
        logger.debug(f"Registered job: {job.name} ({job.cron})")

    def _parse_schedules(self) -> Tuple[List[Tuple[int, QueryJob, BaseTrigger]], List[str]]:
        """Parse every job's cron expression in registration order."""
        parsed = []
        failures = []
        for index, job in enumerate(self.registry):
            try:
                trigger = build_trigger(job.cron, timezone=self.timezone)
            except (ValueError, TypeError) as e:
                failures.append(f"{job.name} ({job.cron!r}): {e}")
                continue
            parsed.append((index, job, trigger))
        return parsed, failures

    def start(self) -> None:
        """Arm every registered job and start the background scheduler.

        Returns immediately; cycles run on APScheduler's worker threads.

        Raises:
            ScheduleError: In strict mode, if any schedule is invalid. No job
                           is armed in that case.
        """
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.registry.freeze()
        parsed, failures = self._parse_schedules()

        if failures:
            if self.strict_schedules:
                raise ScheduleError("Invalid schedules: " + "; ".join(failures))
            for failure in failures:
                logger.error(f"Invalid schedule, job not armed: {failure}")

        for index, job, trigger in parsed:
            aps_job = self.scheduler.add_job(
                self._run_cycle,
                trigger=trigger,
                name=job.name,
                args=[job],
                coalesce=True,
                max_instances=self.max_instances,
                misfire_grace_time=30,
            )
            self._armed[index] = aps_job.id
            logger.info(f"Armed job: {job.name} ({job.cron})")

        self.scheduler.start()
        logger.info(f"Scheduler started with {len(parsed)}/{len(self.registry)} jobs armed")

    def stop(self, wait: bool = True) -> None:
        """Stop the scheduler. In-flight cycles are not cancelled."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")

    def _lock_for(self, job: QueryJob) -> threading.Lock:
        with self._locks_guard:
            return self._cycle_locks.setdefault(id(job), threading.Lock())

    def _run_cycle(self, job: QueryJob) -> CycleExecution:
        """Run one execution cycle: query, then handler.

        Never raises; the outcome is logged and recorded.
        """
        execution = CycleExecution(
            job_name=job.name,
            start_time=datetime.now(timezone.utc),
        )

        lock = None
        if self.overlap_policy == "skip":
            lock = self._lock_for(job)
            if not lock.acquire(blocking=False):
                execution.status = "skipped"
                execution.end_time = datetime.now(timezone.utc)
                logger.warning(f"Skipping job {job.name}: previous cycle still running")
                self.executions.append(execution)
                return execution

        try:
            self._execute(job, execution)
        finally:
            if lock is not None:
                lock.release()

        execution.end_time = datetime.now(timezone.utc)
        self.executions.append(execution)
        return execution

    def _execute(self, job: QueryJob, execution: CycleExecution) -> None:
        logger.debug(f"Executing job: {job.name}")

        try:
            result = self.database.fetch_scalar(job.query)
        except NoResultsError as e:
            execution.status = "no_results"
            execution.error = str(e)
            logger.error(f"Error executing job {job.name}: {e}")
            return
        except (sqlite3.Error, sqlite3.Warning) as e:
            # Warning covers multi-statement query text
            execution.status = "query_failed"
            execution.error = str(e)
            logger.error(f"Error executing job {job.name}: {e}")
            return

        execution.result = result

        try:
            execution.result_kind = check_result_kind(result, job.accepts)
            job.handler(result)
        except Exception as e:
            # Covers ResultTypeError and whatever the handler raises
            execution.status = "handler_failed"
            execution.error = str(e)
            logger.error(f"Error handling result for job {job.name}: {e}")
            return

        execution.status = "success"
        logger.info(f"Job {job.name} completed with result {result!r}")

    def run_job_now(self, name: str) -> Optional[CycleExecution]:
        """Execute a job's cycle immediately on the calling thread.

        Args:
            name: Name of the job to run

        Returns:
            CycleExecution record, or None if no job has that name
        """
        job = self.registry.find(name)
        if job is None:
            logger.error(f"Job not found: {name}")
            return None
        return self._run_cycle(job)

    def list_jobs(self) -> List[Dict[str, Any]]:
        """List registered jobs with their next run times."""
        result = []
        for index, job in enumerate(self.registry):
            next_run = None
            aps_id = self._armed.get(index)
            if aps_id:
                aps_job = self.scheduler.get_job(aps_id)
                next_run = getattr(aps_job, "next_run_time", None) if aps_job else None

            result.append({
                "name": job.name,
                "cron": job.cron,
                "armed": aps_id is not None,
                "next_run": next_run.isoformat() if next_run else None,
            })
        return result

    def get_recent_executions(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get recent execution records, newest first."""
        recent = sorted(
            list(self.executions),
            key=lambda x: x.start_time,
            reverse=True
        )[:limit]
        return [e.to_dict() for e in recent]

    def _on_job_executed(self, event: JobEvent) -> None:
        """Handle completed job execution."""
        logger.debug(f"Job executed: {event.job_id}")

    def _on_job_error(self, event: JobEvent) -> None:
        """Handle job execution error."""
        logger.error(f"Job failed: {event.job_id}, error: {getattr(event, 'exception', None)}")

    def _on_job_missed(self, event: JobEvent) -> None:
        """Handle firings APScheduler did not run."""
        logger.warning(f"Job firing not run: {event.job_id} (event code {event.code})")
