"""Tests for result handlers."""

import logging
from unittest.mock import MagicMock

import pytest
import requests

from query_reporter.jobs import DEFAULT_JOBS, load_jobs
from query_reporter.scheduler.handlers import (
    HandlerConfig,
    HandlerError,
    ResultTypeError,
    build_handler,
    build_payload,
    check_result_kind,
    result_kind,
)


class TestResultKind:
    """Tests for result classification."""

    @pytest.mark.parametrize("value,kind", [
        (None, "null"),
        (42, "integer"),
        (80.5, "real"),
        ("2022-12-12", "text"),
        (b"\x00\x01", "blob"),
    ])
    def test_kinds(self, value, kind):
        """Test each sqlite3 value type."""
        assert result_kind(value) == kind

    def test_unsupported_type(self):
        """Test that non-sqlite values are rejected."""
        with pytest.raises(ResultTypeError):
            result_kind([1, 2])

        with pytest.raises(ResultTypeError):
            result_kind(True)

    def test_check_accepts_anything_when_empty(self):
        """Test that an empty accepts set allows every kind."""
        assert check_result_kind("x", frozenset()) == "text"

    def test_check_rejects_other_kind(self):
        """Test a clear mismatch error."""
        with pytest.raises(ResultTypeError) as exc_info:
            check_result_kind(None, frozenset({"integer", "real"}))

        assert "'null'" in str(exc_info.value)
        assert "integer, real" in str(exc_info.value)


class TestHandlerConfig:
    """Tests for HandlerConfig dataclass."""

    def test_from_dict_full(self):
        """Test creating config from complete dictionary."""
        data = {
            "type": "slack",
            "label": "Average weight",
            "fields": {"Start Date": "2022-12-12"},
            "accepts": [None, "real"],
            "webhook_url": "https://hooks.slack.com/test",
        }

        config = HandlerConfig.from_dict(data)

        assert config.type == "slack"
        assert config.label == "Average weight"
        assert config.fields == {"Start Date": "2022-12-12"}
        assert config.accepts == ["null", "real"]
        assert config.webhook_url == "https://hooks.slack.com/test"

    def test_from_dict_defaults(self):
        """Test defaults when creating from an empty dict."""
        config = HandlerConfig.from_dict({})

        assert config.type == "log"
        assert config.label == "Result"
        assert config.fields == {}
        assert config.accepts == []

    def test_to_dict(self):
        """Test converting config to dictionary."""
        config = HandlerConfig(type="post", label="Total Registrations", fields={"Date": "2022-12-17"})

        result = config.to_dict()

        assert result["type"] == "post"
        assert result["label"] == "Total Registrations"
        assert result["fields"] == {"Date": "2022-12-17"}


class TestBuildHandler:
    """Tests for the handler factory."""

    def test_build_payload(self):
        """Test that the labelled value comes with the static fields."""
        config = HandlerConfig(
            type="post",
            label="Average weight",
            fields={"Start Date": "2022-12-12", "End Date": "2022-12-19"},
        )

        assert build_payload(config, 80.0) == {
            "Average weight": 80.0,
            "Start Date": "2022-12-12",
            "End Date": "2022-12-19",
        }

    def test_post_handler(self):
        """Test that a post handler sends the payload."""
        report_client = MagicMock()
        config = HandlerConfig(type="post", label="Total Registrations", fields={"Date": "2022-12-17"})

        handler = build_handler(config, job_name="Daily Registrations", report_client=report_client)
        handler(2)

        report_client.post_result.assert_called_once_with({"Total Registrations": 2, "Date": "2022-12-17"})

    def test_post_handler_propagates_failure(self):
        """Test that delivery errors reach the scheduler."""
        report_client = MagicMock()
        report_client.post_result.side_effect = requests.exceptions.ConnectionError("refused")

        handler = build_handler(HandlerConfig(type="post"), report_client=report_client)

        with pytest.raises(requests.exceptions.ConnectionError):
            handler(1)

    def test_post_handler_requires_client(self):
        """Test that a post handler needs an endpoint."""
        with pytest.raises(ValueError):
            build_handler(HandlerConfig(type="post"), job_name="orphan")

    def test_log_handler(self, caplog):
        """Test that a log handler logs the labelled value."""
        caplog.set_level(logging.INFO)
        config = HandlerConfig(type="log", label="Average weight", fields={"Start Date": "2022-12-12"})

        handler = build_handler(config)
        handler(None)

        assert "Average weight: None (Start Date: 2022-12-12)" in caplog.text

    def test_slack_handler(self):
        """Test that a slack handler sends a result notification."""
        notifier = MagicMock()
        notifier.send_result_notification.return_value = True
        config = HandlerConfig(type="slack", label="Total Registrations", fields={"Date": "2022-12-17"})

        handler = build_handler(config, job_name="Daily Registrations", slack_notifier=notifier)
        handler(2)

        notifier.send_result_notification.assert_called_once_with(
            job_name="Daily Registrations",
            label="Total Registrations",
            value=2,
            fields={"Date": "2022-12-17"},
            webhook_url=None,
        )

    def test_slack_handler_failure(self):
        """Test that an undelivered Slack message fails the handler."""
        notifier = MagicMock()
        notifier.send_result_notification.return_value = False

        handler = build_handler(HandlerConfig(type="slack"), slack_notifier=notifier)

        with pytest.raises(HandlerError):
            handler(1)

    def test_slack_handler_requires_notifier(self):
        """Test that a slack handler needs a notifier."""
        with pytest.raises(ValueError):
            build_handler(HandlerConfig(type="slack"))

    def test_unknown_type(self):
        """Test that unknown handler types are rejected."""
        with pytest.raises(ValueError) as exc_info:
            build_handler(HandlerConfig(type="email"))

        assert "email" in str(exc_info.value)

    def test_unknown_accepts_kind(self):
        """Test that unknown result kinds are rejected."""
        with pytest.raises(ValueError):
            build_handler(HandlerConfig(type="log", accepts=["decimal"]))


class TestLoadJobs:
    """Tests for building jobs from configuration."""

    def test_default_jobs(self):
        """Test the built-in job set."""
        report_client = MagicMock()

        jobs = load_jobs(DEFAULT_JOBS, report_client=report_client)

        assert [j.name for j in jobs] == ["Average Weight", "Daily Registrations"]
        assert all(j.cron == "* * * * *" for j in jobs)
        assert jobs[0].accepts == frozenset({"null", "integer", "real"})

        jobs[0].handler(80.0)
        report_client.post_result.assert_called_once_with({
            "Average weight": 80.0,
            "Start Date": "2022-12-12",
            "End Date": "2022-12-19",
        })

    def test_default_jobs_need_endpoint(self):
        """Test that the built-in jobs cannot be built without an endpoint."""
        with pytest.raises(ValueError):
            load_jobs(DEFAULT_JOBS)

    def test_order_preserved(self):
        """Test that jobs keep their configured order."""
        job_dicts = [
            {"name": f"job-{i}", "cron": "0 * * * *", "query": "SELECT 1", "handler": {"type": "log"}}
            for i in range(3)
        ]

        jobs = load_jobs(job_dicts)

        assert [j.name for j in jobs] == ["job-0", "job-1", "job-2"]
