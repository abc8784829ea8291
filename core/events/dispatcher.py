"""
UnitEcon Event Channel - Delivery
===================================
Delivers one message to a list of subscribers.

Delivery behavior:
1. Call subscribers sequentially, in subscription order
2. Catch each subscriber's exception separately
3. Log the failure
4. Continue with the next subscriber

A failing subscriber must NOT:
- Prevent delivery to the others
- Propagate into the publisher
- Roll back the state that was published

This module does NOT copy, modify or interpret the message.
"""

import logging
from typing import Any, Callable, Sequence

logger = logging.getLogger("unitecon.events")


def deliver(
    message: Any,
    subscribers: Sequence[Callable[[Any], None]],
    channel_name: str = "state",
) -> dict:
    """
    Deliver `message` to every subscriber.

    Returns:
        {
            'channel': str,
            'subscribers_notified': int,
            'subscribers_failed': int,
            'failures': list[dict]
        }

    This function NEVER raises.
    """
    result = {
        "channel": channel_name,
        "subscribers_notified": 0,
        "subscribers_failed": 0,
        "failures": [],
    }

    for handler in subscribers:
        handler_name = getattr(handler, "__qualname__", str(handler))

        try:
            handler(message)
            result["subscribers_notified"] += 1

        except Exception as exc:
            result["subscribers_failed"] += 1
            result["failures"].append({
                "handler": handler_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            })

            logger.error(
                f"Subscriber failed: {handler_name} on "
                f"channel '{channel_name}': {exc}",
                exc_info=True,
            )
            # Continue to next subscriber

    if result["subscribers_failed"]:
        logger.debug(
            f"Delivery on '{channel_name}': "
            f"{result['subscribers_notified']} notified, "
            f"{result['subscribers_failed']} failed"
        )

    return result
