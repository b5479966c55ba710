"""In-memory event exchange and helpers that bridge events between exchanges."""

from __future__ import annotations

import asyncio
import dataclasses
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .ids import validate_identifier

_FILTER_FIELDS = ("topic", "namespace")
_CONDITION_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?:(==|!=|~=)\s*(.*?))?\s*$")
_CLOSED = object()

_Condition = Callable[["Envelope"], bool]


@dataclass(frozen=True)
class Envelope:
    """A published event together with where and when it was published."""

    timestamp: datetime
    namespace: str
    topic: str
    event: Any


def _validate_topic(topic: str) -> None:
    if not topic:
        raise ValueError("must not be empty for event")
    if not topic.startswith("/"):
        raise ValueError(f"must start with '/' for event topic {topic!r}")
    if len(topic) == 1:
        raise ValueError(f"must have at least one component for event topic {topic!r}")
    for component in topic[1:].split("/"):
        try:
            validate_identifier(component)
        except ValueError as exc:
            raise ValueError(
                f"failed validation on component {component!r} of topic {topic!r}: {exc}"
            ) from exc


def _validate_envelope(envelope: Envelope) -> None:
    validate_identifier(envelope.namespace)
    _validate_topic(envelope.topic)
    if envelope.timestamp is None:
        raise ValueError("timestamp must be set on forwarded event")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        quote = value[0]
        return value[1:-1].replace("\\" + quote, quote).replace("\\\\", "\\")
    return value


def _parse_condition(text: str) -> _Condition:
    match = _CONDITION_RE.match(text)
    if not match:
        raise ValueError(f"invalid filter condition {text!r}")
    field_name, operator, raw_value = match.groups()

    def field_value(envelope: Envelope) -> str | None:
        if field_name not in _FILTER_FIELDS:
            return None
        return getattr(envelope, field_name)

    if operator is None:
        return lambda envelope: bool(field_value(envelope))

    value = _unquote(raw_value)
    if operator == "==":
        return lambda envelope: field_value(envelope) == value
    if operator == "!=":
        return lambda envelope: (
            field_value(envelope) is not None and field_value(envelope) != value
        )
    try:
        pattern = re.compile(value)
    except re.error as exc:
        raise ValueError(f"invalid regular expression in filter {text!r}: {exc}") from exc

    def regex_match(envelope: Envelope) -> bool:
        current = field_value(envelope)
        return current is not None and pattern.search(current) is not None

    return regex_match


def _parse_filter(text: str) -> list[_Condition]:
    """Parse a filter of comma separated conditions, all of which must hold."""
    if not text.strip():
        raise ValueError("filter must not be empty")
    return [_parse_condition(part) for part in text.split(",")]


class _Subscription:
    """A queue of envelopes published on an exchange that pass its filters."""

    def __init__(self, exchange: Exchange, filters: list[list[_Condition]]) -> None:
        self._exchange = exchange
        self._filters = filters
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    def _matches(self, envelope: Envelope) -> bool:
        if not self._filters:
            return True
        return any(all(cond(envelope) for cond in conds) for conds in self._filters)

    def _offer(self, envelope: Envelope) -> None:
        if not self._closed and self._matches(envelope):
            self._queue.put_nowait(envelope)

    async def get(self) -> Envelope:
        """Wait for and return the next envelope; EOFError once closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise EOFError("subscription closed")
        return item

    def close(self) -> None:
        """Stop receiving; envelopes already queued are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._exchange._remove(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> _Subscription:
        return self

    async def __anext__(self) -> Envelope:
        try:
            return await self.get()
        except EOFError:
            raise StopAsyncIteration from None

    def __enter__(self) -> _Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Exchange:
    """Broadcasts published events to every matching subscription."""

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    def publish(self, namespace: str, topic: str, event: Any) -> Envelope:
        """Wrap ``event`` in a new envelope stamped now and broadcast it."""
        validate_identifier(namespace)
        _validate_topic(topic)
        envelope = Envelope(
            timestamp=datetime.now(timezone.utc),
            namespace=namespace,
            topic=topic,
            event=event,
        )
        self._broadcast(envelope)
        return envelope

    def forward(self, envelope: Envelope) -> None:
        """Broadcast an existing envelope unchanged."""
        _validate_envelope(envelope)
        self._broadcast(envelope)

    def subscribe(self, *args: str) -> _Subscription:
        """Subscribe to envelopes matching any of the given filters.

        Each filter is a comma separated list of conditions on ``topic`` or
        ``namespace`` using ``==``, ``!=`` or ``~=`` (regular expression), or
        a bare field name requiring it to be set. Without filters every
        envelope is received.
        """
        filters = [_parse_filter(text) for text in args]
        subscription = _Subscription(self, filters)
        self._subscriptions.append(subscription)
        return subscription

    def _broadcast(self, envelope: Envelope) -> None:
        for subscription in list(self._subscriptions):
            subscription._offer(envelope)

    def _remove(self, subscription: _Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


class GetterService:
    """Hands out events from an exchange one at a time, by long polling."""

    def __init__(self, source: Exchange) -> None:
        self._subscription = source.subscribe()

    async def get_event(self) -> Envelope:
        """Return the next buffered event, waiting until one is available."""
        received = await self._subscription.get()
        return dataclasses.replace(received)

    def close(self) -> None:
        """Stop receiving events from the source."""
        self._subscription.close()


def attach(source: GetterService, sink: Exchange) -> asyncio.Task[None]:
    """Forward every event retrieved from ``source`` to ``sink``.

    Returns the running task; it ends with the first error raised while
    getting or forwarding, and is stopped by cancelling it.
    """

    async def _run() -> None:
        while True:
            envelope = await source.get_event()
            sink.forward(dataclasses.replace(envelope))

    return asyncio.get_running_loop().create_task(_run())


def republish(source: Exchange, sink: Exchange, namespace: str) -> asyncio.Task[None]:
    """Publish every event from ``source`` on ``sink`` under ``namespace``.

    The subscription is made before returning, so nothing published after
    the call is missed. Timestamps and namespaces are set anew by publishing.
    """
    subscription = source.subscribe()

    async def _run() -> None:
        try:
            while True:
                envelope = await subscription.get()
                sink.publish(namespace, envelope.topic, envelope.event)
        finally:
            subscription.close()

    return asyncio.get_running_loop().create_task(_run())