"""Result handlers selected by job configuration."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from ..clients.report_client import ReportClient
from ..notifications.slack_notifier import SlackNotifier

logger = logging.getLogger(__name__)

RESULT_KINDS = ("null", "integer", "real", "text", "blob")
HANDLER_TYPES = ("post", "log", "slack")


class ResultTypeError(TypeError):
    """Raised when a result is not of a kind the handler accepts."""


class HandlerError(Exception):
    """Raised when a handler could not deliver a result."""


def result_kind(value: Any) -> str:
    """Map a scalar query result to its kind.

    Args:
        value: Value returned by the database

    Returns:
        One of "null", "integer", "real", "text", "blob"

    Raises:
        ResultTypeError: For values sqlite3 never returns
    """
    if value is None:
        return "null"
    # bool is an int subclass; sqlite3 never returns it, so it is rejected
    if isinstance(value, bool):
        raise ResultTypeError(f"Unsupported result type: {type(value).__name__}")
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "real"
    if isinstance(value, str):
        return "text"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "blob"
    raise ResultTypeError(f"Unsupported result type: {type(value).__name__}")


def check_result_kind(value: Any, accepts: FrozenSet[str]) -> str:
    """Classify a result and check it against the accepted kinds.

    Raises:
        ResultTypeError: If accepts is non-empty and the kind is not in it
    """
    kind = result_kind(value)
    if accepts and kind not in accepts:
        raise ResultTypeError(
            f"Result of kind '{kind}' not accepted (expected one of: {', '.join(sorted(accepts))})"
        )
    return kind


@dataclass
class HandlerConfig:
    """Configuration for a job's result handler."""

    type: str = "log"  # post, log, slack
    label: str = "Result"
    fields: Dict[str, Any] = field(default_factory=dict)
    accepts: List[str] = field(default_factory=list)
    webhook_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HandlerConfig":
        """Create from dictionary."""
        return cls(
            type=data.get("type", "log"),
            label=data.get("label", "Result"),
            fields=dict(data.get("fields") or {}),
            # YAML reads a bare null as None
            accepts=["null" if kind is None else str(kind) for kind in data.get("accepts") or []],
            webhook_url=data.get("webhook_url"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type,
            "label": self.label,
            "fields": self.fields,
            "accepts": self.accepts,
            "webhook_url": self.webhook_url,
        }


def build_payload(config: HandlerConfig, value: Any) -> Dict[str, Any]:
    """Build the labelled payload for a result."""
    payload = {config.label: value}
    payload.update(config.fields)
    return payload


def build_handler(
    config: HandlerConfig,
    job_name: str = "",
    report_client: Optional[ReportClient] = None,
    slack_notifier: Optional[SlackNotifier] = None
) -> Callable[[Any], None]:
    """Build the handler callable for a job.

    Args:
        config: Handler configuration
        job_name: Name of the owning job (used in log lines and Slack headers)
        report_client: Client for "post" handlers
        slack_notifier: Notifier for "slack" handlers

    Returns:
        Function taking the scalar result

    Raises:
        ValueError: For an unknown handler type, an unknown result kind,
                    or a missing collaborator
    """
    unknown = [kind for kind in config.accepts if kind not in RESULT_KINDS]
    if unknown:
        raise ValueError(f"Unknown result kinds for {job_name or 'handler'}: {', '.join(unknown)}")

    if config.type == "post":
        if report_client is None:
            raise ValueError(f"Handler for {job_name or 'job'} posts results but no reporting endpoint is configured")

        def post_result(value: Any) -> None:
            logger.info(f"{config.label}: {value}")
            report_client.post_result(build_payload(config, value))

        return post_result

    if config.type == "log":

        def log_result(value: Any) -> None:
            extras = ", ".join(f"{k}: {v}" for k, v in config.fields.items())
            logger.info(f"{config.label}: {value}" + (f" ({extras})" if extras else ""))

        return log_result

    if config.type == "slack":
        if slack_notifier is None:
            raise ValueError(f"Handler for {job_name or 'job'} sends to Slack but no webhook is configured")

        def send_to_slack(value: Any) -> None:
            sent = slack_notifier.send_result_notification(
                job_name=job_name,
                label=config.label,
                value=value,
                fields=config.fields,
                webhook_url=config.webhook_url,
            )
            if not sent:
                raise HandlerError("Slack notification was not delivered")

        return send_to_slack

    raise ValueError(f"Unknown handler type: {config.type} (expected one of: {', '.join(HANDLER_TYPES)})")
