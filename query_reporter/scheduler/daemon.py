"""Scheduler daemon for running in background."""

import logging
import signal
import time
from datetime import datetime
from datetime import timezone as dt_timezone
from typing import Any, Dict, List, Optional

from ..clients.database_client import DatabaseClient, DatabaseError
from ..clients.report_client import ReportClient
from ..notifications.slack_notifier import SlackNotifier
from ..utils.helpers import get_database_path, get_endpoint_url
from .scheduler import QueryScheduler, ScheduleError
from .triggers import build_trigger

logger = logging.getLogger(__name__)


class SchedulerDaemon:
    """Daemon process for running scheduled queries.

    Manages the query scheduler lifecycle and handles OS signals
    for shutdown.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        credentials: Dict[str, Any],
        data_dir: Optional[str] = None
    ):
        """Initialize the daemon.

        Args:
            config: Application configuration
            credentials: Credentials for the reporting endpoint and Slack
            data_dir: Optional override of the database directory
        """
        self.config = config
        self.credentials = credentials
        self.data_dir = data_dir

        self.running = False
        self.database: Optional[DatabaseClient] = None
        self.scheduler: Optional[QueryScheduler] = None

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.running = False

    def _job_definitions(self) -> List[Dict[str, Any]]:
        from ..jobs import DEFAULT_JOBS

        # An explicit empty (or null) list means no jobs
        if "jobs" not in self.config:
            return DEFAULT_JOBS
        return self.config["jobs"] or []

    def _create_report_client(self) -> Optional[ReportClient]:
        """Create the reporting endpoint client, if an endpoint is configured."""
        endpoint_url = get_endpoint_url(self.config)
        if not endpoint_url:
            return None

        reporting_config = self.config.get("reporting", {})
        return ReportClient(
            endpoint_url=endpoint_url,
            api_token=self.credentials.get("reporting", {}).get("api_token"),
            timeout=reporting_config.get("timeout", 30),
            max_retries=reporting_config.get("max_retries", 3),
        )

    def _create_slack_notifier(self) -> SlackNotifier:
        webhook = (
            self.credentials.get("slack", {}).get("webhook_url")
            or self.config.get("notifications", {}).get("slack", {}).get("default_webhook")
        )
        return SlackNotifier(webhook)

    def _open_database(self) -> DatabaseClient:
        """Open the shared database handle.

        Raises:
            DatabaseError: If the database cannot be opened
        """
        if self.database is None:
            self.database = DatabaseClient(get_database_path(self.config, self.data_dir))
        return self.database

    def _build_scheduler(self) -> QueryScheduler:
        """Create the scheduler and register every configured job."""
        from ..jobs import load_jobs

        database = self._open_database()
        scheduler_config = self.config.get("scheduler", {})

        scheduler = QueryScheduler(
            database,
            timezone=scheduler_config.get("timezone", "UTC"),
            overlap_policy=scheduler_config.get("overlap_policy", "skip"),
            strict_schedules=scheduler_config.get("strict_schedules", True),
            history_size=scheduler_config.get("history_size", 100),
            max_instances=scheduler_config.get("max_instances", 3),
        )

        jobs = load_jobs(
            self._job_definitions(),
            report_client=self._create_report_client(),
            slack_notifier=self._create_slack_notifier(),
        )
        for job in jobs:
            scheduler.add_job(job)

        if not jobs:
            logger.warning("No jobs configured. Add jobs to config/config.yaml")

        return scheduler

    def start(self) -> None:
        """Start the daemon and block until SIGINT or SIGTERM.

        Raises:
            DatabaseError: If the database cannot be opened
            ScheduleError: If a schedule is invalid in strict mode
        """
        logger.info("Starting scheduler daemon...")

        try:
            self.scheduler = self._build_scheduler()
            self.scheduler.start()
        except (DatabaseError, ScheduleError) as e:
            self._send_startup_alert(e)
            raise

        self.running = True

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        for job in self.scheduler.list_jobs():
            if job["armed"]:
                logger.info(f"Job {job['name']} next run at {job['next_run']}")

        logger.info(f"Scheduler daemon started with {len(self.scheduler.registry)} jobs")

        # Main loop
        try:
            while self.running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def _send_startup_alert(self, error: Exception) -> None:
        """Alert the configured Slack webhook that the daemon failed to start."""
        notifier = self._create_slack_notifier()
        if not notifier.default_webhook:
            return

        notifier.send_alert(
            title="Query Reporter failed to start",
            message=f"`{type(error).__name__}`: {error}",
            severity="critical",
        )

    def stop(self) -> None:
        """Stop the daemon without waiting for in-flight cycles."""
        logger.info("Stopping scheduler daemon...")

        if self.scheduler:
            self.scheduler.stop(wait=False)

        if self.database:
            self.database.close()
            self.database = None

        self.running = False
        logger.info("Scheduler daemon stopped")

    def run_job(self, name: str) -> bool:
        """Run a specific job immediately.

        Args:
            name: Name of the job to run

        Returns:
            True if the cycle completed successfully
        """
        if not self.scheduler:
            self.scheduler = self._build_scheduler()

        execution = self.scheduler.run_job_now(name)
        return execution is not None and execution.status == "success"

    def check(self) -> Dict[str, Any]:
        """Check the database and every schedule without starting anything.

        Returns:
            Dictionary with "database" (bool) and "invalid_schedules" (list)
        """
        database = self._open_database()
        invalid = []
        timezone = self.config.get("scheduler", {}).get("timezone", "UTC")
        for job in self._job_definitions():
            try:
                build_trigger(job.get("cron", ""), timezone=timezone)
            except (ValueError, TypeError) as e:
                invalid.append(f"{job.get('name')}: {e}")

        return {
            "database": database.test_connection(),
            "invalid_schedules": invalid,
        }

    def list_jobs(self) -> List[Dict[str, Any]]:
        """List all configured jobs with their next run times.

        Returns:
            List of job info; next_run is None for an invalid schedule
        """
        timezone = self.config.get("scheduler", {}).get("timezone", "UTC")
        now = datetime.now(dt_timezone.utc)
        result = []
        for job in self._job_definitions():
            try:
                next_run = build_trigger(job.get("cron", ""), timezone=timezone).get_next_fire_time(None, now)
            except (ValueError, TypeError):
                next_run = None

            result.append({
                "name": job.get("name"),
                "cron": job.get("cron"),
                "query": job.get("query"),
                "handler": (job.get("handler") or {}).get("type", "log"),
                "next_run": next_run.isoformat() if next_run else None,
            })
        return result
