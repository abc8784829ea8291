"""
UnitEcon Event Channel - Public API
=====================================
State is committed first, then heard.
"""

from core.events.dispatcher import deliver
from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidSubscriberError,
)
from core.events.registry import StateChannel, Subscriber

__all__ = [
    "deliver",
    "StateChannel",
    "Subscriber",
    "EventBusError",
    "InvalidSubscriberError",
    "DuplicateSubscriberError",
]
