"""In-process realtime notifier.

Subscribers (websocket fan-out, tests) register per event name. Publishing is
best-effort: a failing subscriber is logged and never breaks the request that
produced the event.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

DATA_CORRECTION_SUBMITTED = "DataCorrectionSubmitted"
DOCUMENT_UPLOADED = "DocumentUploaded"
APPLICATION_STATUS_CHANGED = "ApplicationStatusChanged"

Subscriber = Callable[[str, dict[str, Any]], Any]

_subscribers: dict[str, list[Subscriber]] = defaultdict(list)


def subscribe(event_name: str, callback: Subscriber) -> None:
    _subscribers[event_name].append(callback)


def unsubscribe(event_name: str, callback: Subscriber) -> None:
    if callback in _subscribers.get(event_name, []):
        _subscribers[event_name].remove(callback)


def clear() -> None:
    _subscribers.clear()


async def publish(event_name: str, payload: dict[str, Any]) -> int:
    """Deliver an event to every subscriber. Returns how many succeeded.

    This function never raises.
    """
    delivered = 0
    for callback in list(_subscribers.get(event_name, [])):
        try:
            result = callback(event_name, payload)
            if inspect.isawaitable(result):
                await result
            delivered += 1
        except Exception:
            logger.warning("Subscriber %r failed for event %s", callback, event_name, exc_info=True)
    return delivered
