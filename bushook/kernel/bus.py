# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Redis Subject Bus — Subject-addressed Pub/Sub with request/reply.

Subjects map onto Redis channels (`<prefix>:<subject>`); wildcard subjects
are served by PSUBSCRIBE. Replies are one-shot publishes to the reply
subject carried in the BusMessage envelope.

A single listener task reads the shared Pub/Sub connection. When the
connection drops it keeps re-subscribing on a fixed interval until the
total reconnect window runs out, after which the bus is closed for good.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from bushook.core.config import HookSettings
from bushook.core.errors import (
    BusClosedError,
    BusConnectionError,
    BusError,
    BusTimeoutError,
    ReplyTransportError,
    SubjectError,
)
from bushook.kernel.redis_client import create_redis
from bushook.protocols.schema import BusMessage
from bushook.protocols.subjects import (
    get_channel,
    get_pattern,
    is_wildcard,
    subject_from_channel,
    subject_matches,
    validate_subject,
)

logger = logging.getLogger("bushook.bus")

MessageHandler = Callable[[BusMessage], Awaitable[None]]

INBOX_PREFIX = "_INBOX"

_TRANSPORT_ERRORS = (RedisError, OSError)


def _text(value: Any) -> str:
    """Channel and pattern names arrive as bytes; payloads stay bytes."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""


@dataclass(eq=False)
class Subscription:
    """One handler registered on a subject (exact or wildcard)."""

    subject: str
    handler: MessageHandler
    channel: str  # Redis channel, or glob when is_pattern
    is_pattern: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def accepts(self, subject: str) -> bool:
        return subject_matches(self.subject, subject) if self.is_pattern else True


class RedisBus:
    """
    Subject bus on top of Redis Pub/Sub.

    Delivery is sequential per bus: handlers must hand long work off to
    their own tasks and return quickly.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        prefix: str = "hook",
        reconnect_wait: float = 1.0,
        reconnect_total_wait: float = 600.0,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._reconnect_wait = reconnect_wait
        self._reconnect_total_wait = reconnect_total_wait
        self._subs: List[Subscription] = []
        self._pubsub: Optional[aioredis.client.PubSub] = None
        self._listener: Optional[asyncio.Task] = None
        self._reconnecting = False
        self._closed = asyncio.Event()
        self._last_error: Optional[BaseException] = None

    @classmethod
    def from_settings(cls, settings: HookSettings) -> RedisBus:
        return cls(
            create_redis(settings),
            prefix=settings.CHANNEL_PREFIX,
            reconnect_wait=settings.RECONNECT_WAIT,
            reconnect_total_wait=settings.RECONNECT_TOTAL_WAIT,
        )

    @property
    def redis(self) -> aioredis.Redis:
        return self._redis

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def url(self) -> str:
        kwargs: Dict[str, Any] = getattr(self._redis.connection_pool, "connection_kwargs", {})
        if kwargs.get("path"):
            return f"unix://{kwargs['path']}"
        return f"{kwargs.get('host', 'localhost')}:{kwargs.get('port', 6379)}"

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subs)

    # ── Connect ─────────────────────────────────────────────────

    async def connect(self) -> None:
        """Verify the server is reachable. Raises BusConnectionError."""
        try:
            await self._redis.ping()
        except _TRANSPORT_ERRORS as exc:
            self._last_error = exc
            raise BusConnectionError(f"Cannot connect to {self.url}: {exc}") from exc
        logger.info("Connected [%s]", self.url)

    # ── Publish ─────────────────────────────────────────────────

    async def publish(
        self,
        subject: str,
        data: bytes = b"",
        reply: Optional[str] = None,
    ) -> int:
        """
        Publish `data` on a concrete subject.

        Returns the number of subscribers that received the message.
        """
        self._ensure_open()
        errors = validate_subject(subject, allow_wildcards=False)
        if errors:
            raise SubjectError(f"Cannot publish to '{subject}': {'; '.join(errors)}")
        msg = BusMessage(subject=subject, data=data, reply=reply)
        try:
            count = await self._redis.publish(get_channel(self._prefix, subject), msg.to_json())
        except _TRANSPORT_ERRORS as exc:
            raise BusError(f"Publish to '{subject}' failed: {exc}") from exc
        logger.debug("Published %d bytes to %s (%d receivers)", len(data), subject, count)
        return count

    async def respond(self, msg: BusMessage, data: bytes) -> int:
        """Send a one-shot reply to `msg`. Raises ReplyTransportError."""
        if not msg.reply:
            raise ReplyTransportError(f"Message on '{msg.subject}' has no reply subject")
        try:
            return await self.publish(msg.reply, data)
        except (BusError, SubjectError) as exc:
            raise ReplyTransportError(f"Reply to '{msg.reply}' failed: {exc}") from exc

    async def request(
        self,
        subject: str,
        data: bytes = b"",
        timeout: float = 5.0,
    ) -> BusMessage:
        """Publish with a fresh inbox as reply subject and wait for the first reply."""
        inbox = f"{INBOX_PREFIX}.{uuid.uuid4().hex}"
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        async def _on_reply(reply: BusMessage) -> None:
            if not future.done():
                future.set_result(reply)

        sub = await self.subscribe(inbox, _on_reply)
        try:
            await self.publish(subject, data, reply=inbox)
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise BusTimeoutError(f"No reply on '{subject}' within {timeout}s") from None
        finally:
            await self.unsubscribe(sub)

    # ── Subscribe ───────────────────────────────────────────────

    async def subscribe(self, subject: str, handler: MessageHandler) -> Subscription:
        """
        Register `handler` for every message on `subject`.

        Raises SubjectError for a malformed subject and BusError when the
        server rejects the subscription.
        """
        self._ensure_open()
        errors = validate_subject(subject)
        if errors:
            raise SubjectError(f"Invalid subject '{subject}': {'; '.join(errors)}")

        wildcard = is_wildcard(subject)
        channel = get_pattern(self._prefix, subject) if wildcard else get_channel(self._prefix, subject)
        sub = Subscription(subject=subject, handler=handler, channel=channel, is_pattern=wildcard)

        # While reconnecting, the new pubsub picks it up from self._subs
        if not self._reconnecting and not self._is_channel_live(sub):
            pubsub = self._get_pubsub()
            try:
                if wildcard:
                    await pubsub.psubscribe(channel)
                else:
                    await pubsub.subscribe(channel)
            except _TRANSPORT_ERRORS as exc:
                raise BusError(f"Subscribe to '{subject}' failed: {exc}") from exc

        self._subs.append(sub)
        if not self._reconnecting:
            self._ensure_listener()
        return sub

    async def unsubscribe(self, sub: Subscription) -> None:
        """Remove a subscription; the channel is dropped once unused."""
        if sub not in self._subs:
            return
        self._subs.remove(sub)
        if self._is_channel_live(sub) or self._pubsub is None or self._reconnecting:
            return
        try:
            if sub.is_pattern:
                await self._pubsub.punsubscribe(sub.channel)
            else:
                await self._pubsub.unsubscribe(sub.channel)
        except _TRANSPORT_ERRORS as exc:
            logger.warning("Unsubscribe from %s failed: %s", sub.subject, exc)

    def _is_channel_live(self, sub: Subscription) -> bool:
        return any(
            s.channel == sub.channel and s.is_pattern == sub.is_pattern
            for s in self._subs
        )

    def _get_pubsub(self) -> aioredis.client.PubSub:
        if self._pubsub is None:
            self._pubsub = self._redis.pubsub()
        return self._pubsub

    def _ensure_listener(self) -> None:
        if self._listener is None or self._listener.done():
            self._listener = asyncio.create_task(self._listen(self._get_pubsub()))

    # ── Delivery ────────────────────────────────────────────────

    async def _listen(self, pubsub: aioredis.client.PubSub) -> None:
        while True:
            try:
                async for message in pubsub.listen():
                    try:
                        await self._deliver(message)
                    except Exception as exc:
                        logger.error("Dropping undeliverable message: %s", exc)
                # listen() ends once nothing is subscribed
                return
            except _TRANSPORT_ERRORS as exc:
                new_pubsub = await self._reconnect(exc)
                if new_pubsub is None:
                    return
                pubsub = new_pubsub

    async def _deliver(self, message: Dict[str, Any]) -> None:
        kind = message.get("type")
        channel = _text(message.get("channel"))
        if kind == "message":
            candidates = [s for s in self._subs if not s.is_pattern and s.channel == channel]
        elif kind == "pmessage":
            candidates = [s for s in self._subs if s.is_pattern and s.channel == _text(message.get("pattern"))]
        else:
            return

        subject = subject_from_channel(self._prefix, channel)
        if validate_subject(subject, allow_wildcards=False):
            logger.warning("Dropping message on malformed channel %r", channel)
            return
        targets = [s for s in candidates if s.accepts(subject)]
        if not targets:
            return

        msg = BusMessage.from_channel(subject, message["data"])
        for sub in targets:
            try:
                await sub.handler(msg)
            except Exception as exc:
                logger.error("Bus handler error on %s: %s", sub.subject, exc)

    # ── Reconnect ───────────────────────────────────────────────

    async def _reconnect(self, exc: BaseException) -> Optional[aioredis.client.PubSub]:
        """
        Re-subscribe everything on a fresh Pub/Sub connection.

        Returns the new PubSub, or None once the reconnect window is spent
        (the bus is then closed and wait_closed() returns).
        """
        self._last_error = exc
        self._reconnecting = True
        logger.warning(
            "Disconnected due to: %s, will attempt reconnects for %.0fm",
            exc, self._reconnect_total_wait / 60,
        )
        await self._discard_pubsub()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._reconnect_total_wait
        try:
            while loop.time() < deadline:
                await asyncio.sleep(self._reconnect_wait)
                try:
                    pubsub = await self._resubscribe()
                except _TRANSPORT_ERRORS as err:
                    self._last_error = err
                    logger.debug("Reconnect attempt failed: %s", err)
                    continue
                logger.info("Reconnected [%s]", self.url)
                return pubsub
        finally:
            self._reconnecting = False

        self._closed.set()
        return None

    async def _resubscribe(self) -> aioredis.client.PubSub:
        pubsub = self._redis.pubsub()
        channels = sorted({s.channel for s in self._subs if not s.is_pattern})
        patterns = sorted({s.channel for s in self._subs if s.is_pattern})
        try:
            if channels:
                await pubsub.subscribe(*channels)
            if patterns:
                await pubsub.psubscribe(*patterns)
        except _TRANSPORT_ERRORS:
            with contextlib.suppress(*_TRANSPORT_ERRORS):
                await pubsub.aclose()
            raise
        self._pubsub = pubsub
        return pubsub

    async def _discard_pubsub(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is not None:
            with contextlib.suppress(*_TRANSPORT_ERRORS):
                await pubsub.aclose()

    # ── Lifecycle ───────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self._closed.is_set():
            raise BusClosedError(f"Bus is closed: {self._last_error or 'closed by caller'}")

    async def wait_closed(self) -> Optional[BaseException]:
        """Block until the bus closes; returns the terminal error, if any."""
        await self._closed.wait()
        return self._last_error

    async def close(self) -> None:
        """Cancel the listener and drop all subscriptions."""
        listener, self._listener = self._listener, None
        if listener is not None and listener is not asyncio.current_task():
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
        self._subs.clear()
        if self._pubsub is not None:
            with contextlib.suppress(*_TRANSPORT_ERRORS):
                await self._pubsub.unsubscribe()
                await self._pubsub.punsubscribe()
        await self._discard_pubsub()
        self._closed.set()
