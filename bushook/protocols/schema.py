# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
BusHook Protocol Schema — The message envelope on the wire.

Every message on a subject channel is a JSON BusMessage:
    {"subject": "deploy.web", "data": "<base64>", "reply": "_INBOX.ab12..."}

Payloads are opaque bytes, so `data` is base64 on the wire. A channel
payload that is not an envelope (e.g. from `redis-cli PUBLISH`) is taken
verbatim as `data` with no reply target.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_serializer, field_validator


class BusMessage(BaseModel):
    """A single delivery on the subject bus."""

    subject: str = Field(
        ...,
        min_length=1,
        description="Concrete subject the message was published on",
    )
    data: bytes = Field(
        default=b"",
        description="Opaque payload (base64 in JSON form)",
    )
    reply: Optional[str] = Field(
        default=None,
        description="Reply subject; present only if the sender expects a reply",
    )

    # ── Validators ──────────────────────────────────────────────

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64(cls, v: Any) -> Any:
        """Text input is base64 (JSON form); bytes pass through."""
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error:
                raise ValueError("data must be base64 encoded")
        return v

    @field_validator("reply")
    @classmethod
    def empty_reply_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_serializer("data")
    def encode_base64(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")

    # ── Helpers ─────────────────────────────────────────────────

    @property
    def expects_reply(self) -> bool:
        return self.reply is not None

    def to_json(self) -> str:
        """Serialize to JSON string (for Redis transport)."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> BusMessage:
        """Deserialize from JSON text or raw channel bytes."""
        return cls.model_validate_json(data)

    @classmethod
    def from_channel(cls, subject: str, raw: str | bytes) -> BusMessage:
        """Decode a channel payload, falling back to a raw no-reply message."""
        try:
            msg = cls.from_json(raw)
        except ValidationError:
            if isinstance(raw, str):
                raw = raw.encode("utf-8")
            return cls(subject=subject, data=raw)
        # The channel is authoritative for the subject
        if msg.subject != subject:
            msg = msg.model_copy(update={"subject": subject})
        return msg

    def __repr__(self) -> str:
        return (
            f"BusMessage(subject={self.subject!r}, size={len(self.data)}, "
            f"reply={self.reply!r})"
        )
