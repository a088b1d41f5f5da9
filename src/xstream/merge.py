"""Recombine token streams under an ordering strategy and a collision policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence, TypeAlias

from xstream.invariants import decision_protocol, never
from xstream.model import GLOBAL_NAMESPACE, Namespace, Token

logger = logging.getLogger(__name__)

DUPE_PREFIX = "dupe"


class CollisionPolicy(str, Enum):
    KEEP_FIRST = "keep_first"
    KEEP_LAST = "keep_last"
    ANNOTATE = "annotate"


@dataclass(frozen=True)
class Concat:
    pass


@dataclass(frozen=True)
class Interleave:
    pass


@dataclass(frozen=True)
class Priority:
    order: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "order", tuple(self.order))


@dataclass(frozen=True)
class Dedupe:
    pass


@dataclass(frozen=True)
class Sort:
    pass


MergeStrategy: TypeAlias = Concat | Interleave | Priority | Dedupe | Sort

STRATEGY_NAMES: dict[str, type] = {
    "concat": Concat,
    "interleave": Interleave,
    "priority": Priority,
    "dedupe": Dedupe,
    "sort": Sort,
}


def strategy_from_name(name: str, priority: Sequence[str] = ()) -> MergeStrategy:
    kind = STRATEGY_NAMES.get(name.strip().lower())
    if kind is None:
        never("unknown merge strategy", strategy=name)
    if kind is Priority:
        return Priority(tuple(priority))
    return kind()


def concat(streams: Sequence[Sequence[Token]]) -> list[Token]:
    return [item for stream in streams for item in stream]


def interleave(streams: Sequence[Sequence[Token]]) -> list[Token]:
    result: list[Token] = []
    longest = max((len(stream) for stream in streams), default=0)
    for index in range(longest):
        for stream in streams:
            if index < len(stream):
                result.append(stream[index])
    return result


def prioritize(tokens: Sequence[Token], order: Sequence[str]) -> list[Token]:
    groups: dict[str, list[Token]] = {}
    for item in tokens:
        groups.setdefault(item.scope, []).append(item)
    result: list[Token] = []
    for namespace in dict.fromkeys(order):
        result.extend(groups.pop(namespace, []))
    for remaining in groups.values():
        result.extend(remaining)
    return result


def sort_tokens(tokens: Sequence[Token]) -> list[Token]:
    # sorted() is stable, so equal (namespace, key) pairs keep source order.
    return sorted(tokens, key=lambda item: item.identity)


def _dupe_marker(item: Token) -> Token:
    namespace = item.namespace
    if namespace is None:
        namespace = Namespace((GLOBAL_NAMESPACE,))
    return Token(namespace, f"{DUPE_PREFIX}:{item.key}", "true")


@decision_protocol
def resolve_collisions(tokens: Sequence[Token], policy: CollisionPolicy) -> list[Token]:
    """Apply ``policy`` to tokens sharing a ``(namespace, key)`` identity.

    ``KEEP_FIRST`` drops every later duplicate. ``KEEP_LAST`` drops every
    earlier one, so the survivor stays at its own position. ``ANNOTATE``
    keeps everything and inserts a ``dupe:<key>="true"`` marker in the same
    namespace right before each repeat.
    """
    policy = CollisionPolicy(policy)
    if policy is CollisionPolicy.KEEP_FIRST:
        seen: set[tuple[str, str]] = set()
        kept: list[Token] = []
        for item in tokens:
            if item.identity not in seen:
                seen.add(item.identity)
                kept.append(item)
        return kept
    if policy is CollisionPolicy.KEEP_LAST:
        last_index = {item.identity: index for index, item in enumerate(tokens)}
        return [
            item for index, item in enumerate(tokens) if last_index[item.identity] == index
        ]
    if policy is CollisionPolicy.ANNOTATE:
        repeated: set[tuple[str, str]] = set()
        annotated: list[Token] = []
        for item in tokens:
            if item.identity in repeated:
                annotated.append(_dupe_marker(item))
            else:
                repeated.add(item.identity)
            annotated.append(item)
        return annotated
    never("unknown collision policy", policy=str(policy))


@decision_protocol
def merge(
    streams: Sequence[Sequence[Token]],
    strategy: MergeStrategy | None = None,
    collision: CollisionPolicy | None = None,
) -> list[Token]:
    """Merge ``streams`` into one.

    Zero streams merge to ``[]`` and a single stream comes back unchanged
    whatever the strategy. ``Dedupe`` resolves collisions with ``KEEP_LAST``
    unless ``collision`` says otherwise; the other strategies only resolve
    collisions when ``collision`` is given.
    """
    if strategy is None:
        strategy = Concat()
    if not streams:
        return []
    if len(streams) == 1:
        return list(streams[0])

    if isinstance(strategy, Concat):
        merged = concat(streams)
    elif isinstance(strategy, Interleave):
        merged = interleave(streams)
    elif isinstance(strategy, Priority):
        merged = prioritize(concat(streams), strategy.order)
    elif isinstance(strategy, Dedupe):
        merged = resolve_collisions(
            concat(streams), collision or CollisionPolicy.KEEP_LAST
        )
        collision = None
    elif isinstance(strategy, Sort):
        merged = sort_tokens(concat(streams))
    else:
        never("unknown merge strategy", strategy=repr(strategy))

    if collision is not None:
        merged = resolve_collisions(merged, collision)
    logger.debug(
        "merge %s over %d streams -> %d tokens",
        type(strategy).__name__,
        len(streams),
        len(merged),
    )
    return merged
