# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Route Table — Load and validate hook definitions.

A hook file is TOML (or YAML, by suffix) with one `hooks` array:

    [[hooks]]
    subject = "deploy.web"
    command = "/usr/local/bin/deploy web"
    workdir = "/srv/web"

    [[hooks]]
    subject = "report"
    inline  = "wc -l | tee /tmp/last-report"

The action of each entry is resolved once here; execution only looks at
the resolved ActionKind.
"""

from __future__ import annotations

import enum
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from bushook.core.errors import ConfigError
from bushook.protocols.subjects import validate_subject

logger = logging.getLogger("bushook.routes")

SHELL = "sh"

YAML_SUFFIXES = (".yaml", ".yml")


class ActionKind(str, enum.Enum):
    INLINE = "inline"
    COMMAND = "command"
    EMPTY = "empty"


@dataclass(frozen=True)
class Action:
    """What to run for a message. Exactly one variant, fixed at load time."""

    kind: ActionKind
    text: str = ""
    argv: Tuple[str, ...] = ()

    @classmethod
    def inline(cls, script: str) -> Action:
        """Shell script text, run as `sh -c <script>`."""
        return cls(ActionKind.INLINE, script, (SHELL, "-c", script))

    @classmethod
    def command(cls, line: str) -> Action:
        """Program and arguments split on whitespace; no shell involved."""
        return cls(ActionKind.COMMAND, line, tuple(line.split()))

    @classmethod
    def empty(cls) -> Action:
        return cls(ActionKind.EMPTY)

    @property
    def is_empty(self) -> bool:
        return self.kind is ActionKind.EMPTY

    @property
    def display(self) -> str:
        """Short name for log lines."""
        return SHELL if self.kind is ActionKind.INLINE else self.text


@dataclass(frozen=True)
class RouteEntry:
    """Binding of one subject to one action."""

    subject: str
    action: Action
    workdir: Optional[str] = None


class RouteTable:
    """Ordered, read-only collection of route entries."""

    def __init__(self, entries: List[RouteEntry] | Tuple[RouteEntry, ...] = ()) -> None:
        self._entries: Tuple[RouteEntry, ...] = tuple(entries)

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> RouteEntry:
        return self._entries[index]

    @property
    def entries(self) -> Tuple[RouteEntry, ...]:
        return self._entries

    def subjects(self) -> List[str]:
        return [e.subject for e in self._entries]

    def __repr__(self) -> str:
        return f"RouteTable({self.subjects()!r})"


class HookItem(BaseModel):
    """One `[[hooks]]` table as written in the config file."""

    subject: str = Field(..., min_length=1)
    command: str = ""
    inline: str = ""
    workdir: str = ""

    model_config = {"extra": "forbid"}

    @field_validator("subject")
    @classmethod
    def subject_must_be_valid(cls, v: str) -> str:
        errors = validate_subject(v)
        if errors:
            raise ValueError(f"invalid subject '{v}': {'; '.join(errors)}")
        return v

    def to_entry(self) -> RouteEntry:
        if self.inline.strip():
            if self.command.strip():
                logger.warning(
                    "[%s]: both inline and command set, using inline", self.subject,
                )
            action = Action.inline(self.inline)
        elif self.command.strip():
            action = Action.command(self.command)
        else:
            action = Action.empty()
        return RouteEntry(
            subject=self.subject,
            action=action,
            workdir=self.workdir or None,
        )


def _lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


def build_route_table(config: Any, source: Optional[str] = None) -> RouteTable:
    """Validate a parsed config document and resolve it into a RouteTable."""
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigError("top level must be a table", source)

    hooks = _lower_keys(config).get("hooks", [])
    if not isinstance(hooks, list):
        raise ConfigError("'hooks' must be an array of tables", source)

    entries = []
    for i, raw in enumerate(hooks):
        if not isinstance(raw, dict):
            raise ConfigError(f"hooks[{i}] must be a table", source)
        try:
            item = HookItem.model_validate(_lower_keys(raw))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'entry'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigError(f"hooks[{i}]: {problems}", source) from exc
        entries.append(item.to_entry())
    return RouteTable(entries)


def load_routes_from_string(content: str, fmt: str = "toml", source: Optional[str] = None) -> RouteTable:
    """Parse hook definitions from a TOML or YAML string."""
    try:
        if fmt == "yaml":
            config = yaml.safe_load(content)
        else:
            config = tomllib.loads(content)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot parse {fmt}: {exc}", source) from exc
    return build_route_table(config, source)


def load_routes(path: str | Path) -> RouteTable:
    """Load hook definitions from a file; YAML by suffix, TOML otherwise."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"cannot read hook file: {exc}", str(path)) from exc
    fmt = "yaml" if path.suffix.lower() in YAML_SUFFIXES else "toml"
    table = load_routes_from_string(content, fmt=fmt, source=str(path))
    logger.info("Loaded %d hooks from %s", len(table), path)
    return table
