"""
UnitEcon Event Channel - Errors
=================================
Error types for the publish/subscribe layer.
Subscriber failures are never raised; only registration misuse is.
"""


class EventBusError(Exception):
    """Base error for channel operations."""
    pass


class InvalidSubscriberError(EventBusError):
    """Subscriber is not callable."""

    def __init__(self, subscriber: object):
        self.subscriber = subscriber
        super().__init__(
            f"Subscriber must be callable, got {type(subscriber).__name__}."
        )


class DuplicateSubscriberError(EventBusError):
    """Same callback already subscribed to this channel."""

    def __init__(self, channel_name: str, handler_name: str):
        self.channel_name = channel_name
        self.handler_name = handler_name
        super().__init__(
            f"Handler '{handler_name}' already subscribed "
            f"to channel '{channel_name}'."
        )
