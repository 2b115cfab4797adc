"""Notifications module for Slack alerts."""

from .slack_notifier import SlackNotifier

__all__ = ["SlackNotifier"]
