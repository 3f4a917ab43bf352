"""In-process publish/subscribe for comment domain events.

Example:
    events = CommentEventBus()
    events.on(CommentEvent.CREATED, notify_moderators)
    await events.emit(CommentEvent.CREATED, payload)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from comment_guard.db.time import utcnow

logger = logging.getLogger(__name__)


class CommentEvent(str, Enum):
    """Kinds of events emitted by the comment services."""

    CREATED = "comment.created"
    AUTO_APPROVED = "comment.auto_approved"
    EDITED = "comment.edited"
    DELETED = "comment.deleted"
    HARD_DELETED = "comment.hard_deleted"
    RESTORED = "comment.restored"
    APPROVED = "comment.approved"
    REJECTED = "comment.rejected"
    SPAM_DETECTED = "comment.spam_detected"
    FLAGGED = "comment.flagged"
    UNFLAGGED = "comment.unflagged"
    PINNED = "comment.pinned"
    UNPINNED = "comment.unpinned"
    RESOLVED = "comment.resolved"
    UNRESOLVED = "comment.unresolved"
    VOTED = "comment.voted"


@dataclass(frozen=True)
class CommentEventPayload:
    """Data delivered to every listener of an event."""

    event: CommentEvent
    comment_id: str
    post_id: str
    user_id: str | None = None
    moderator_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


Listener = Callable[[CommentEventPayload], Awaitable[None] | None]


@dataclass(eq=False)
class _Subscription:
    listener: Listener
    once: bool = False


class CommentEventBus:
    """Registry of event kind to listeners with failure-tolerant dispatch."""

    def __init__(self) -> None:
        self._subscriptions: dict[CommentEvent, list[_Subscription]] = {}

    def on(self, event: CommentEvent, listener: Listener) -> Callable[[], None]:
        """Subscribe to an event; returns a callable that unsubscribes."""
        return self._subscribe(event, _Subscription(listener))

    def once(self, event: CommentEvent, listener: Listener) -> Callable[[], None]:
        """Subscribe for the next emission only."""
        return self._subscribe(event, _Subscription(listener, once=True))

    def _subscribe(self, event: CommentEvent, subscription: _Subscription) -> Callable[[], None]:
        self._subscriptions.setdefault(event, []).append(subscription)
        return lambda: self._discard(event, subscription)

    def _discard(self, event: CommentEvent, subscription: _Subscription) -> bool:
        subscriptions = self._subscriptions.get(event)
        if not subscriptions or subscription not in subscriptions:
            return False
        subscriptions.remove(subscription)
        if not subscriptions:
            del self._subscriptions[event]
        return True

    def off(self, event: CommentEvent, listener: Listener) -> None:
        """Unsubscribe the earliest registration of a listener; unknown listeners are ignored."""
        for subscription in self._subscriptions.get(event, []):
            if subscription.listener == listener:
                self._discard(event, subscription)
                return

    async def emit(self, event: CommentEvent, payload: CommentEventPayload) -> None:
        """Call every listener in registration order.

        Awaitable results run concurrently and are joined; a failing listener is
        logged and never affects the others or the emitter.
        """
        subscriptions = self._subscriptions.get(event)
        if not subscriptions:
            return

        pending: list[Awaitable[Any]] = []
        for subscription in list(subscriptions):
            # A once subscription is removed before its call; if it is already gone it has fired.
            if subscription.once and not self._discard(event, subscription):
                continue
            try:
                result = subscription.listener(payload)
            except Exception:
                logger.exception("Error in %s listener %r", event.value, subscription.listener)
                continue
            if inspect.isawaitable(result):
                pending.append(result)

        if not pending:
            return

        results = await asyncio.gather(*pending, return_exceptions=True)
        for outcome in results:
            if isinstance(outcome, BaseException):
                logger.error(
                    "Error in %s listener: %s",
                    event.value,
                    outcome,
                    exc_info=outcome,
                )

    def remove_all(self, event: CommentEvent | None = None) -> None:
        """Remove listeners for one event, or for every event."""
        if event is None:
            self._subscriptions.clear()
            return
        self._subscriptions.pop(event, None)

    @property
    def event_names(self) -> list[CommentEvent]:
        """Events that currently have at least one listener."""
        return list(self._subscriptions)
