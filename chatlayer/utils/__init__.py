"""Utility functions for chatlayer."""

from chatlayer.utils.events import EventEmitter, Subscription
from chatlayer.utils.logging import configure_logging, configure_logging_from

__all__ = [
    "EventEmitter",
    "Subscription",
    "configure_logging",
    "configure_logging_from",
]
