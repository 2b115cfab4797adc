"""Slack notification sender for query results."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class SlackNotifier:
    """Send notifications to Slack via webhooks.

    Uses Slack Block Kit for rich message formatting.
    """

    def __init__(self, webhook_url: Optional[str] = None):
        """Initialize the Slack notifier.

        Args:
            webhook_url: Default Slack webhook URL
        """
        self.default_webhook = webhook_url

    def send_message(
        self,
        text: str,
        webhook_url: Optional[str] = None,
        blocks: Optional[List[Dict]] = None
    ) -> bool:
        """Send a simple message to Slack.

        Args:
            text: Message text (used as fallback)
            webhook_url: Override webhook URL
            blocks: Optional Block Kit blocks

        Returns:
            True if message was sent successfully
        """
        url = webhook_url or self.default_webhook
        if not url:
            logger.error("No Slack webhook URL configured")
            return False

        try:
            payload = {"text": text}
            if blocks:
                payload["blocks"] = blocks

            response = requests.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=10
            )

            if response.status_code == 200:
                logger.info("Slack message sent successfully")
                return True
            else:
                logger.error(f"Slack API error: {response.status_code} - {response.text}")
                return False

        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send Slack message: {e}")
            return False

    def send_result_notification(
        self,
        job_name: str,
        label: str,
        value: Any,
        fields: Optional[Dict[str, Any]] = None,
        webhook_url: Optional[str] = None
    ) -> bool:
        """Send a query result to Slack.

        Args:
            job_name: Name of the job that produced the result
            label: Human-readable label for the value
            value: Scalar query result
            fields: Extra labelled values shown beside the result
            webhook_url: Override webhook URL

        Returns:
            True if notification was sent successfully
        """
        blocks = self._build_result_blocks(job_name, label, value, fields or {})
        text = f"{job_name}: {label} = {value}"
        return self.send_message(text, webhook_url=webhook_url, blocks=blocks)

    def send_alert(
        self,
        title: str,
        message: str,
        severity: str = "warning",
        webhook_url: Optional[str] = None
    ) -> bool:
        """Send an operational alert.

        Args:
            title: Alert title
            message: Alert message (mrkdwn)
            severity: "warning" or anything more severe
            webhook_url: Override webhook URL

        Returns:
            True if alert was sent successfully
        """
        emoji = ":warning:" if severity == "warning" else ":rotating_light:"
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{emoji} {title}",
                    "emoji": True
                }
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": message}
            },
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"Severity: *{severity.upper()}* | {stamp}"}
                ]
            }
        ]

        return self.send_message(title, webhook_url=webhook_url, blocks=blocks)

    def _build_result_blocks(
        self,
        job_name: str,
        label: str,
        value: Any,
        fields: Dict[str, Any]
    ) -> List[Dict]:
        """Build Block Kit blocks for a result notification."""
        shown = "n/a" if value is None else value
        section_fields = [{"type": "mrkdwn", "text": f"*{label}:*\n{shown}"}]
        for name, extra in fields.items():
            section_fields.append({"type": "mrkdwn", "text": f"*{name}:*\n{extra}"})

        return [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f":bar_chart: {job_name}",
                    "emoji": True
                }
            },
            {
                # Slack allows at most 10 fields per section
                "type": "section",
                "fields": section_fields[:10]
            },
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": f"Generated at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
                    }
                ]
            }
        ]

    def test_connection(self, webhook_url: Optional[str] = None) -> bool:
        """Test Slack webhook connection.

        Args:
            webhook_url: Override webhook URL

        Returns:
            True if connection is successful
        """
        return self.send_message(
            text="Query Reporter: Connection test successful!",
            webhook_url=webhook_url,
            blocks=[
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": ":white_check_mark: *Query Reporter*\nSlack integration test successful!"
                    }
                }
            ]
        )
