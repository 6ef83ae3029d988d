# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Subject Helper — Subject syntax, wildcard matching and channel naming.

Subjects are dot-separated tokens, e.g. `deploy.web.prod`.
  - `*` matches exactly one token:      `deploy.*.prod`
  - `>` matches one or more tokens, last position only: `deploy.>`

Every subject travels on the Redis channel `<prefix>:<subject>`.
"""

from __future__ import annotations

from typing import List

SINGLE_WILDCARD = "*"
FULL_WILDCARD = ">"

_GLOB_SPECIAL = set("*?[]\\")


def split_subject(subject: str) -> List[str]:
    return subject.split(".")


def is_wildcard(subject: str) -> bool:
    """True if any token of `subject` is a wildcard."""
    return any(t in (SINGLE_WILDCARD, FULL_WILDCARD) for t in split_subject(subject))


def validate_subject(subject: str, allow_wildcards: bool = True) -> List[str]:
    """
    Return the list of problems with `subject` (empty = valid).

    Examples:
        validate_subject("deploy.web")  -> []
        validate_subject("deploy..web") -> ["empty token at position 2"]
        validate_subject("a.>.b")       -> ["'>' is only allowed as the last token"]
    """
    if not subject:
        return ["subject is empty"]
    errors = []
    if any(c.isspace() for c in subject):
        errors.append("subject contains whitespace")
    tokens = split_subject(subject)
    for i, token in enumerate(tokens, start=1):
        if not token:
            errors.append(f"empty token at position {i}")
        elif token == FULL_WILDCARD and i != len(tokens):
            errors.append("'>' is only allowed as the last token")
    if not allow_wildcards and is_wildcard(subject):
        errors.append("wildcards are not allowed here")
    return errors


def subject_matches(pattern: str, subject: str) -> bool:
    """
    Token-exact match of a concrete `subject` against `pattern`.

    Examples:
        subject_matches("a.*.c", "a.b.c") -> True
        subject_matches("a.*", "a.b.c")   -> False
        subject_matches("a.>", "a.b.c")   -> True
        subject_matches("a.>", "a")       -> False
    """
    p_tokens = split_subject(pattern)
    s_tokens = split_subject(subject)
    for i, p in enumerate(p_tokens):
        if p == FULL_WILDCARD:
            return len(s_tokens) > i
        if i >= len(s_tokens):
            return False
        if p != SINGLE_WILDCARD and p != s_tokens[i]:
            return False
    return len(p_tokens) == len(s_tokens)


def _escape_glob(text: str) -> str:
    return "".join(f"\\{c}" if c in _GLOB_SPECIAL else c for c in text)


def get_channel(prefix: str, subject: str) -> str:
    """
    Build the Redis channel for a concrete subject.

    Example:
        get_channel("hook", "deploy.web") -> "hook:deploy.web"
    """
    return f"{prefix}:{subject}"


def get_pattern(prefix: str, subject: str) -> str:
    """
    Build the PSUBSCRIBE glob for a wildcard subject.

    The glob over-matches (Redis `*` crosses dots); deliveries must be
    re-checked with subject_matches().

    Example:
        get_pattern("hook", "deploy.*.prod") -> "hook:deploy.*.prod"
    """
    tokens = [
        "*" if t in (SINGLE_WILDCARD, FULL_WILDCARD) else _escape_glob(t)
        for t in split_subject(subject)
    ]
    return f"{_escape_glob(prefix)}:{'.'.join(tokens)}"


def subject_from_channel(prefix: str, channel: str) -> str:
    """Strip the `<prefix>:` namespace from a channel name."""
    head = f"{prefix}:"
    return channel[len(head):] if channel.startswith(head) else channel
