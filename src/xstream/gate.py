"""Admit, reject, filter or synchronize token streams by predicate.

Stream-level conditions (``MinTokens``, ``MaxTokens``, ``RequireNamespace``)
return the stream unchanged or ``None``. ``ContainsValue`` is a token-level
filter and returns the matching subset, which may be empty.
``Sync`` admits a group only when every member passes; otherwise the whole
group is rejected. Passed to ``gate``, it admits the gated stream only
alongside its peers.

The switching gates at the bottom (``xor_gate``, ``timed_gate``) alternate
between input streams instead of judging them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence, TypeAlias

from xstream.invariants import decision_protocol, never, require
from xstream.model import Token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MinTokens:
    count: int

    def __post_init__(self) -> None:
        require(int(self.count) >= 0, "negative token threshold", count=self.count)


@dataclass(frozen=True)
class MaxTokens:
    count: int

    def __post_init__(self) -> None:
        require(int(self.count) >= 0, "negative token threshold", count=self.count)


@dataclass(frozen=True)
class RequireNamespace:
    name: str


@dataclass(frozen=True)
class ContainsValue:
    pattern: str

    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.pattern)


@dataclass(frozen=True)
class Sync:
    streams: tuple[tuple[Token, ...], ...]
    condition: MinTokens | MaxTokens | RequireNamespace | ContainsValue

    def __post_init__(self) -> None:
        if isinstance(self.condition, Sync):
            never("sync condition cannot itself be a sync")
        object.__setattr__(
            self, "streams", tuple(tuple(stream) for stream in self.streams)
        )

    def evaluate(self) -> list[list[Token]] | None:
        return sync(self.streams, self.condition)


GateCondition: TypeAlias = MinTokens | MaxTokens | RequireNamespace | ContainsValue | Sync


@decision_protocol
def gate(stream: Sequence[Token], condition: GateCondition) -> list[Token] | None:
    """Admit, reject or filter ``stream``.

    Under ``Sync`` the stream joins the group of peer streams and passes only
    when the whole group does; its own outcome under the inner condition is
    returned.
    """
    if isinstance(condition, Sync):
        outcomes = sync([stream, *condition.streams], condition.condition)
        return None if outcomes is None else outcomes[0]
    if isinstance(condition, MinTokens):
        admitted = len(stream) >= condition.count
    elif isinstance(condition, MaxTokens):
        admitted = len(stream) <= condition.count
    elif isinstance(condition, RequireNamespace):
        admitted = any(item.scope == condition.name for item in stream)
    elif isinstance(condition, ContainsValue):
        pattern = condition.compiled()
        kept = [item for item in stream if pattern.search(item.value)]
        logger.debug("gate %r kept %d of %d tokens", condition, len(kept), len(stream))
        return kept
    else:
        never("unknown gate condition", condition=repr(condition))
    logger.debug(
        "gate %r %s stream of %d tokens",
        condition,
        "admitted" if admitted else "rejected",
        len(stream),
    )
    return list(stream) if admitted else None


def passes(outcome: list[Token] | None, condition: GateCondition) -> bool:
    """Whether a ``gate`` outcome counts as admission; a filter must keep a token."""
    if outcome is None:
        return False
    if isinstance(condition, Sync):
        condition = condition.condition
    if isinstance(condition, ContainsValue):
        return bool(outcome)
    return True


def admits(stream: Sequence[Token], condition: GateCondition) -> bool:
    """Whether ``stream`` satisfies ``condition``; a filter passes when it keeps a token."""
    return passes(gate(stream, condition), condition)


@decision_protocol
def sync(
    streams: Sequence[Sequence[Token]], condition: GateCondition
) -> list[list[Token]] | None:
    """All-or-nothing admission of a group of streams.

    Every stream is evaluated before the decision is made; a single failure
    rejects the group and no partial result is returned.
    """
    outcomes = [gate(stream, condition) for stream in streams]
    failed = [
        index
        for index, outcome in enumerate(outcomes)
        if not passes(outcome, condition)
    ]
    if failed:
        logger.debug("sync %r rejected group; failing streams %s", condition, failed)
        return None
    return [outcome for outcome in outcomes if outcome is not None]


def xor_gate(streams: Sequence[Sequence[Token]]) -> list[Token]:
    """Position ``i`` belongs to stream ``i % n``; only its token ``i`` passes."""
    if not streams:
        return []
    width = len(streams)
    longest = max(len(stream) for stream in streams)
    result: list[Token] = []
    for index in range(longest):
        owner = streams[index % width]
        if index < len(owner):
            result.append(owner[index])
    return result


def timed_gate(streams: Sequence[Sequence[Token]], every: int) -> list[Token]:
    """Take ``every`` tokens from one stream, then switch to the next.

    Exhausted streams are skipped until all are drained.
    """
    if every <= 0 or not streams:
        return []
    cursors = [0] * len(streams)
    remaining = sum(len(stream) for stream in streams)
    result: list[Token] = []
    current = 0
    while remaining:
        stream = streams[current]
        start = cursors[current]
        chunk = stream[start : start + every]
        result.extend(chunk)
        cursors[current] += len(chunk)
        remaining -= len(chunk)
        current = (current + 1) % len(streams)
    return result
