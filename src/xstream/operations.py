"""Text-in/text-out stream operations and pipelines.

``StreamOp`` is a closed set of variants; ``apply`` is the single dispatch
point, so every operation can be listed, configured and tested like data.
``Pipeline`` composes fork, gate, merge, transform and rename stages over
the same wire text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Sequence, TypeAlias

from xstream.fork import ForkSelector, fork
from xstream.gate import GateCondition, gate, passes, sync
from xstream.invariants import decision_protocol, never
from xstream.merge import CollisionPolicy, Concat, MergeStrategy, merge
from xstream.model import Token, scopes
from xstream.parser import EXPANDED_SEPARATOR, format_stream, is_token_streamable, parse
from xstream.transform import (
    TransformKind,
    apply_transform,
    prefix_namespaces,
    rename_key,
    rename_namespace,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Count:
    pass


@dataclass(frozen=True)
class Validate:
    pass


@dataclass(frozen=True)
class ExtractKeys:
    pass


@dataclass(frozen=True)
class ExtractValues:
    pass


@dataclass(frozen=True)
class ExtractNamespaces:
    pass


@dataclass(frozen=True)
class FilterKeys:
    contains: str


@dataclass(frozen=True)
class FilterNamespace:
    namespace: str


@dataclass(frozen=True)
class ToLines:
    pass


@dataclass(frozen=True)
class FromLines:
    pass


@dataclass(frozen=True)
class Transform:
    kind: TransformKind

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", TransformKind(self.kind))


StreamOp: TypeAlias = (
    Count
    | Validate
    | ExtractKeys
    | ExtractValues
    | ExtractNamespaces
    | FilterKeys
    | FilterNamespace
    | ToLines
    | FromLines
    | Transform
)

OPERATION_NAMES: dict[str, type] = {
    "count": Count,
    "validate": Validate,
    "keys": ExtractKeys,
    "values": ExtractValues,
    "namespaces": ExtractNamespaces,
    "filter-keys": FilterKeys,
    "filter-namespace": FilterNamespace,
    "to-lines": ToLines,
    "from-lines": FromLines,
    "transform": Transform,
}


def _qualified_key(item: Token) -> str:
    if item.namespace is None:
        return item.key
    return f"{item.namespace}:{item.key}"


@decision_protocol
def apply(op: StreamOp, text: str) -> str:
    """Run one operation over wire text and return its text result.

    Raises ``ParseError`` for malformed input, except ``Validate`` (which
    reports it) and ``FromLines`` (whose input is one token per line).
    """
    if isinstance(op, Validate):
        return "valid" if is_token_streamable(text) else "invalid"
    if isinstance(op, FromLines):
        lines = [line.strip() for line in text.splitlines()]
        return format_stream(parse(EXPANDED_SEPARATOR.join(line for line in lines if line)))

    tokens = parse(text)
    if isinstance(op, Count):
        return str(len(tokens))
    if isinstance(op, ExtractKeys):
        return "\n".join(_qualified_key(item) for item in tokens)
    if isinstance(op, ExtractValues):
        return "\n".join(item.value for item in tokens)
    if isinstance(op, ExtractNamespaces):
        return "\n".join(scopes(tokens))
    if isinstance(op, FilterKeys):
        return format_stream(item for item in tokens if op.contains in item.key)
    if isinstance(op, FilterNamespace):
        return format_stream(item for item in tokens if item.scope == op.namespace)
    if isinstance(op, ToLines):
        return "\n".join(item.render() for item in tokens)
    if isinstance(op, Transform):
        return format_stream(apply_transform(tokens, op.kind))
    never("unknown stream operation", op=repr(op))


@dataclass(frozen=True)
class ForkStage:
    selector: ForkSelector


@dataclass(frozen=True)
class GateStage:
    condition: GateCondition


@dataclass(frozen=True)
class SyncStage:
    condition: GateCondition


@dataclass(frozen=True)
class MergeStage:
    strategy: MergeStrategy = field(default_factory=Concat)
    collision: CollisionPolicy | None = None


@dataclass(frozen=True)
class TransformStage:
    kind: TransformKind


@dataclass(frozen=True)
class RenameKeyStage:
    old: str
    new: str


@dataclass(frozen=True)
class RenameNamespaceStage:
    old: str
    new: str


@dataclass(frozen=True)
class PrefixStage:
    prefix: str


Stage: TypeAlias = (
    ForkStage
    | GateStage
    | SyncStage
    | MergeStage
    | TransformStage
    | RenameKeyStage
    | RenameNamespaceStage
    | PrefixStage
)


def _run_stage(stage: Stage, streams: list[list[Token]]) -> list[list[Token]]:
    if isinstance(stage, ForkStage):
        return [
            channel
            for stream in streams
            for channel in fork(stream, stage.selector).values()
        ]
    if isinstance(stage, GateStage):
        kept: list[list[Token]] = []
        for stream in streams:
            outcome = gate(stream, stage.condition)
            if outcome is None or not passes(outcome, stage.condition):
                continue
            kept.append(outcome)
        return kept
    if isinstance(stage, SyncStage):
        return sync(streams, stage.condition) or []
    if isinstance(stage, MergeStage):
        if not streams:
            return []
        return [merge(streams, stage.strategy, stage.collision)]
    if isinstance(stage, TransformStage):
        return [apply_transform(stream, stage.kind) for stream in streams]
    if isinstance(stage, RenameKeyStage):
        return [rename_key(stream, stage.old, stage.new) for stream in streams]
    if isinstance(stage, RenameNamespaceStage):
        return [rename_namespace(stream, stage.old, stage.new) for stream in streams]
    if isinstance(stage, PrefixStage):
        return [prefix_namespaces(stream, stage.prefix) for stream in streams]
    never("unknown pipeline stage", stage=repr(stage))


@dataclass(frozen=True)
class Pipeline:
    """Immutable chain of stages; builder methods return a new pipeline."""

    stages: tuple[Stage, ...] = ()

    def then(self, stage: Stage) -> Pipeline:
        return replace(self, stages=(*self.stages, stage))

    def fork(self, selector: ForkSelector) -> Pipeline:
        return self.then(ForkStage(selector))

    def gate(self, condition: GateCondition) -> Pipeline:
        return self.then(GateStage(condition))

    def sync(self, condition: GateCondition) -> Pipeline:
        return self.then(SyncStage(condition))

    def merge(
        self,
        strategy: MergeStrategy | None = None,
        collision: CollisionPolicy | None = None,
    ) -> Pipeline:
        return self.then(MergeStage(strategy or Concat(), collision))

    def transform(self, kind: TransformKind | str) -> Pipeline:
        return self.then(TransformStage(TransformKind(kind)))

    def rename_key(self, old: str, new: str) -> Pipeline:
        return self.then(RenameKeyStage(old, new))

    def rename_namespace(self, old: str, new: str) -> Pipeline:
        return self.then(RenameNamespaceStage(old, new))

    def prefix_namespaces(self, prefix: str) -> Pipeline:
        return self.then(PrefixStage(prefix))

    def run_tokens(self, tokens: Sequence[Token]) -> list[list[Token]]:
        streams: list[list[Token]] = [list(tokens)]
        for stage in self.stages:
            streams = _run_stage(stage, streams)
            logger.debug("stage %s -> %d streams", type(stage).__name__, len(streams))
        return streams

    def run(self, text: str) -> str:
        """Parse, run every stage and concatenate the surviving streams."""
        streams = self.run_tokens(parse(text))
        return format_stream(merge(streams, Concat()))
