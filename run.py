#!/usr/bin/env python3
"""CLI entry point for Query Reporter."""

import argparse
import logging
import sys

from query_reporter.clients.database_client import DatabaseError
from query_reporter.notifications.slack_notifier import SlackNotifier
from query_reporter.scheduler.daemon import SchedulerDaemon
from query_reporter.scheduler.scheduler import ScheduleError
from query_reporter.utils.helpers import get_database_path, load_config, load_credentials, setup_logging


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Query Reporter - run SQL queries on cron schedules and report the results"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to custom config file"
    )

    parser.add_argument(
        "--credentials",
        type=str,
        help="Path to credentials file"
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        help="Directory containing the database file (default: $DATA_DIR or ../data)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument(
        "--run-job",
        type=str,
        metavar="NAME",
        help="Execute a specific job immediately and exit"
    )

    action_group.add_argument(
        "--list-jobs",
        action="store_true",
        help="List all configured jobs"
    )

    action_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Check the database and schedules without starting the scheduler"
    )

    action_group.add_argument(
        "--test-slack",
        action="store_true",
        help="Send a test Slack notification"
    )

    return parser.parse_args(argv)


def list_jobs(daemon: SchedulerDaemon) -> None:
    """Print all configured jobs."""
    jobs = daemon.list_jobs()

    if not jobs:
        print("No jobs configured.")
        print("Add jobs to config/config.yaml")
        return

    print("\nConfigured Jobs:")
    print("-" * 60)

    for job in jobs:
        print(f"  Name: {job['name']}")
        print(f"    Cron:    {job['cron']}")
        print(f"    Handler: {job['handler']}")
        print(f"    Next:    {job['next_run'] or 'invalid schedule'}")
        print(f"    Query:   {job['query']}")
        print()


def dry_run(daemon: SchedulerDaemon) -> int:
    """Check the database and schedules; return the exit code."""
    status = daemon.check()

    print(f"Database: {'OK' if status['database'] else 'FAILED'}")
    if status["invalid_schedules"]:
        print("Invalid schedules:")
        for problem in status["invalid_schedules"]:
            print(f"  {problem}")
    else:
        print("Schedules: OK")

    return 0 if status["database"] and not status["invalid_schedules"] else 1


def test_slack(config, credentials) -> int:
    """Send a test message to the configured Slack webhook."""
    webhook = (
        credentials.get("slack", {}).get("webhook_url")
        or config.get("notifications", {}).get("slack", {}).get("default_webhook")
    )
    if not webhook:
        print("No Slack webhook configured.")
        return 1

    ok = SlackNotifier(webhook).test_connection()
    print("Slack notification sent." if ok else "Slack notification failed.")
    return 0 if ok else 1


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
        credentials = load_credentials(args.credentials)
    except FileNotFoundError as e:
        setup_logging("DEBUG" if args.verbose else "INFO")
        logging.getLogger(__name__).error(str(e))
        sys.exit(1)

    log_config = config.get("logging", {})
    logger = setup_logging(
        "DEBUG" if args.verbose else log_config.get("level", "INFO"),
        log_file=log_config.get("file"),
    )

    if args.test_slack:
        sys.exit(test_slack(config, credentials))

    daemon = SchedulerDaemon(config, credentials, data_dir=args.data_dir)

    if args.list_jobs:
        list_jobs(daemon)
        return

    try:
        if args.dry_run:
            sys.exit(dry_run(daemon))

        if args.run_job:
            logger.info(f"Running job: {args.run_job}")
            success = daemon.run_job(args.run_job)
            print(f"Job '{args.run_job}' {'completed successfully' if success else 'failed'}.")
            for record in daemon.scheduler.get_recent_executions(limit=1):
                print(f"  Status: {record['status']}")
                print(f"  Result: {record['result']!r}")
                if record["error"]:
                    print(f"  Error:  {record['error']}")
            sys.exit(0 if success else 1)

        logger.info(f"Using database {get_database_path(config, args.data_dir)}")
        daemon.start()

    except DatabaseError as e:
        logger.error(f"Error creating scheduler: {e}")
        sys.exit(1)
    except ScheduleError as e:
        logger.error(str(e))
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
