# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Redis Connection Factory — Builds the async client for the subject bus.
"""

from __future__ import annotations

from typing import Any, Dict

import redis.asyncio as aioredis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry
from redis.exceptions import (
    ConnectionError,
    TimeoutError,
    BusyLoadingError,
)

from bushook.core.config import HookSettings

_RETRY = Retry(ExponentialBackoff(cap=2, base=0.1), retries=3)
_RETRY_ERRORS = [ConnectionError, TimeoutError, BusyLoadingError, OSError]


def uses_tls(settings: HookSettings) -> bool:
    return bool(settings.TLS_CERT or settings.TLS_KEY or settings.TLS_CA_CERT)


def build_redis_url(settings: HookSettings) -> str:
    """Return the connection URL, upgraded to rediss:// when TLS is configured."""
    url = settings.REDIS_URL
    if uses_tls(settings) and url.startswith("redis://"):
        url = "rediss://" + url[len("redis://"):]
    return url


def connection_kwargs(settings: HookSettings) -> Dict[str, Any]:
    """Keyword arguments for redis.asyncio.from_url derived from settings."""
    kwargs: Dict[str, Any] = {
        "decode_responses": False,
        "client_name": settings.CLIENT_NAME,
        "health_check_interval": 15,
        "retry_on_timeout": True,
        "retry_on_error": _RETRY_ERRORS,
        "retry": _RETRY,
        "socket_connect_timeout": 5,
        "socket_keepalive": True,
    }
    if settings.REDIS_USERNAME:
        kwargs["username"] = settings.REDIS_USERNAME
    if settings.REDIS_PASSWORD:
        kwargs["password"] = settings.REDIS_PASSWORD

    if settings.TLS_CERT and settings.TLS_KEY:
        kwargs["ssl_certfile"] = settings.TLS_CERT
        kwargs["ssl_keyfile"] = settings.TLS_KEY
    if settings.TLS_CA_CERT:
        kwargs["ssl_ca_certs"] = settings.TLS_CA_CERT
    return kwargs


def create_redis(settings: HookSettings) -> aioredis.Redis:
    """
    Create the async Redis client for the bus.

    No socket read timeout is set: the Pub/Sub listener blocks on reads
    indefinitely, and liveness is covered by health checks.
    """
    return aioredis.from_url(build_redis_url(settings), **connection_kwargs(settings))
