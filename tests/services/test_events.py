"""Tests for the in-process comment event bus."""

import logging

import pytest

from comment_guard.services.events import CommentEvent, CommentEventBus, CommentEventPayload


def _payload(event: CommentEvent = CommentEvent.CREATED) -> CommentEventPayload:
    return CommentEventPayload(event=event, comment_id="c-1", post_id="p-1", user_id="u-1")


@pytest.mark.asyncio
async def test_sync_and_async_listeners_receive_payload() -> None:
    bus = CommentEventBus()
    received: list[str] = []

    def sync_listener(payload: CommentEventPayload) -> None:
        received.append(f"sync:{payload.comment_id}")

    async def async_listener(payload: CommentEventPayload) -> None:
        received.append(f"async:{payload.comment_id}")

    bus.on(CommentEvent.CREATED, sync_listener)
    bus.on(CommentEvent.CREATED, async_listener)

    await bus.emit(CommentEvent.CREATED, _payload())

    assert received == ["sync:c-1", "async:c-1"]


@pytest.mark.asyncio
async def test_emit_only_reaches_matching_event() -> None:
    bus = CommentEventBus()
    received: list[CommentEventPayload] = []
    bus.on(CommentEvent.APPROVED, received.append)

    await bus.emit(CommentEvent.CREATED, _payload())

    assert received == []


@pytest.mark.asyncio
async def test_failing_sync_listener_is_isolated(caplog) -> None:
    bus = CommentEventBus()
    received: list[CommentEventPayload] = []

    def broken(_payload: CommentEventPayload) -> None:
        raise ValueError("listener exploded")

    bus.on(CommentEvent.CREATED, broken)
    bus.on(CommentEvent.CREATED, received.append)

    with caplog.at_level(logging.ERROR, logger="comment_guard.services.events"):
        await bus.emit(CommentEvent.CREATED, _payload())

    assert len(received) == 1
    assert "Error in comment.created listener" in caplog.text


@pytest.mark.asyncio
async def test_failing_async_listener_does_not_cancel_others(caplog, mocker) -> None:
    bus = CommentEventBus()
    healthy = mocker.AsyncMock()

    async def broken(_payload: CommentEventPayload) -> None:
        raise RuntimeError("async listener exploded")

    bus.on(CommentEvent.FLAGGED, broken)
    bus.on(CommentEvent.FLAGGED, healthy)

    with caplog.at_level(logging.ERROR, logger="comment_guard.services.events"):
        await bus.emit(CommentEvent.FLAGGED, _payload(CommentEvent.FLAGGED))

    healthy.assert_awaited_once()
    assert "async listener exploded" in caplog.text


@pytest.mark.asyncio
async def test_once_listener_fires_a_single_time(mocker) -> None:
    bus = CommentEventBus()
    listener = mocker.Mock(return_value=None)
    bus.once(CommentEvent.VOTED, listener)

    await bus.emit(CommentEvent.VOTED, _payload(CommentEvent.VOTED))
    await bus.emit(CommentEvent.VOTED, _payload(CommentEvent.VOTED))

    listener.assert_called_once()
    assert CommentEvent.VOTED not in bus.event_names


@pytest.mark.asyncio
async def test_same_listener_registered_once_twice(mocker) -> None:
    bus = CommentEventBus()
    listener = mocker.Mock(return_value=None)
    bus.once(CommentEvent.CREATED, listener)
    bus.once(CommentEvent.CREATED, listener)

    await bus.emit(CommentEvent.CREATED, _payload())
    assert listener.call_count == 2

    await bus.emit(CommentEvent.CREATED, _payload())
    await bus.emit(CommentEvent.CREATED, _payload())

    assert listener.call_count == 2
    assert bus.event_names == []


@pytest.mark.asyncio
async def test_once_and_on_registrations_are_independent(mocker) -> None:
    bus = CommentEventBus()
    listener = mocker.Mock(return_value=None)
    bus.on(CommentEvent.CREATED, listener)
    bus.once(CommentEvent.CREATED, listener)

    await bus.emit(CommentEvent.CREATED, _payload())
    await bus.emit(CommentEvent.CREATED, _payload())

    assert listener.call_count == 3


@pytest.mark.asyncio
async def test_unsubscribe_callable_targets_its_own_registration(mocker) -> None:
    bus = CommentEventBus()
    listener = mocker.Mock(return_value=None)
    cancel_once = bus.once(CommentEvent.FLAGGED, listener)
    bus.on(CommentEvent.FLAGGED, listener)

    cancel_once()
    await bus.emit(CommentEvent.FLAGGED, _payload(CommentEvent.FLAGGED))
    await bus.emit(CommentEvent.FLAGGED, _payload(CommentEvent.FLAGGED))

    assert listener.call_count == 2


@pytest.mark.asyncio
async def test_unsubscribe_callable_and_off(mocker) -> None:
    bus = CommentEventBus()
    first = mocker.Mock(return_value=None)
    second = mocker.Mock(return_value=None)
    unsubscribe = bus.on(CommentEvent.PINNED, first)
    bus.on(CommentEvent.PINNED, second)

    unsubscribe()
    bus.off(CommentEvent.PINNED, second)
    bus.off(CommentEvent.PINNED, second)

    await bus.emit(CommentEvent.PINNED, _payload(CommentEvent.PINNED))

    first.assert_not_called()
    second.assert_not_called()


def test_remove_all_and_event_names() -> None:
    bus = CommentEventBus()
    bus.on(CommentEvent.CREATED, lambda payload: None)
    bus.on(CommentEvent.DELETED, lambda payload: None)
    assert set(bus.event_names) == {CommentEvent.CREATED, CommentEvent.DELETED}

    bus.remove_all(CommentEvent.CREATED)
    assert bus.event_names == [CommentEvent.DELETED]

    bus.remove_all()
    assert bus.event_names == []


@pytest.mark.asyncio
async def test_emit_without_listeners_is_a_no_op() -> None:
    await CommentEventBus().emit(CommentEvent.RESTORED, _payload(CommentEvent.RESTORED))


def test_payload_carries_timestamp() -> None:
    payload = _payload()
    assert payload.timestamp.tzinfo is not None
    assert payload.data == {}
