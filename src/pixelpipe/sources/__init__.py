"""Notification sources."""

from pixelpipe.sources.sqs import SQSNotificationSource

__all__ = ["SQSNotificationSource"]
