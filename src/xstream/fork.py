"""Split one token stream into several keyed by namespace.

Tokens that match no selector are dropped, never gathered into a catch-all
output. Each output keeps the input order of its tokens, and an empty input
forks to an empty mapping.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence, TypeAlias

from xstream.invariants import decision_protocol, never
from xstream.model import Token, TokenStream, is_within_path, scopes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exact:
    names: tuple[str, ...]

    def __post_init__(self) -> None:
        names = (self.names,) if isinstance(self.names, str) else self.names
        object.__setattr__(self, "names", tuple(dict.fromkeys(names)))


@dataclass(frozen=True)
class Under:
    prefix: str


@dataclass(frozen=True)
class Regex:
    pattern: str

    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.pattern)


@dataclass(frozen=True)
class All:
    pass


ForkSelector: TypeAlias = Exact | Under | Regex | All
Channels: TypeAlias = dict[str, TokenStream]


def _group(stream: Sequence[Token], names: Sequence[str]) -> Channels:
    wanted = set(names)
    grouped: Channels = {}
    for item in stream:
        if item.scope in wanted:
            grouped.setdefault(item.scope, []).append(item)
    return {name: grouped[name] for name in names if name in grouped}


@decision_protocol
def fork(stream: Sequence[Token], selector: ForkSelector) -> Channels:
    if isinstance(selector, Exact):
        channels = _group(stream, selector.names)
    elif isinstance(selector, Under):
        matched = [
            item for item in stream if is_within_path(item.scope, selector.prefix)
        ]
        channels = {selector.prefix: matched} if matched else {}
    elif isinstance(selector, Regex):
        pattern = selector.compiled()
        names = [name for name in scopes(stream) if pattern.search(name)]
        channels = _group(stream, names)
    elif isinstance(selector, All):
        channels = _group(stream, scopes(stream))
    else:
        never("unknown fork selector", selector=repr(selector))
    kept = sum(len(tokens) for tokens in channels.values())
    logger.debug(
        "fork %s: %d channels, %d of %d tokens kept",
        type(selector).__name__,
        len(channels),
        kept,
        len(stream),
    )
    return channels


def fork_by_namespace(stream: Sequence[Token], names: Sequence[str]) -> Channels:
    return fork(stream, Exact(names))


def fork_all(stream: Sequence[Token]) -> Channels:
    return fork(stream, All())
