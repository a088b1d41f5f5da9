"""Namespace-aware index over a token stream.

``TokenBucket.build`` groups tokens by resolved namespace. Three modes:

- ``FLAT``: a map from namespace text to its key/value table.
- ``TREE``: an arena of segment nodes linked by index; values live on the
  nodes and exact lookups walk the tree.
- ``HYBRID``: both, over the same tables.

Namespaces keep first-seen order. A repeated ``(namespace, key)`` overwrites
the earlier value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator

from xstream.invariants import never
from xstream.model import (
    GLOBAL_NAMESPACE,
    NAMESPACE_DELIMITER,
    SWITCH_KEY,
    Namespace,
    Token,
    is_within_path,
    key_needs_prefix,
    parent_path,
)
from xstream.parser import EXPANDED_SEPARATOR, parse

logger = logging.getLogger(__name__)

Table = dict[str, str]
_ROOT = 0


class BucketMode(str, Enum):
    FLAT = "flat"
    TREE = "tree"
    HYBRID = "hybrid"


def table_tokens(namespace: str, table: Table) -> list[Token]:
    """Tokens of one bucket table; the ``global`` table yields unscoped tokens."""
    scope = None if namespace == GLOBAL_NAMESPACE else Namespace.parse(namespace)
    return [Token(scope, key, value) for key, value in table.items()]


@dataclass
class _Node:
    segment: str
    path: str
    parent: int | None
    children: list[int] = field(default_factory=list)
    values: Table | None = None


class NamespaceTree:
    """Segment tree stored as a flat node list with index links."""

    def __init__(self) -> None:
        self._nodes: list[_Node] = [_Node(segment="", path="", parent=None)]
        self._by_path: dict[str, int] = {"": _ROOT}

    def __len__(self) -> int:
        return len(self._nodes) - 1

    def ensure(self, path: str) -> int:
        index = self._by_path.get(path)
        if index is not None:
            return index
        current = _ROOT
        walked: list[str] = []
        for segment in path.split(NAMESPACE_DELIMITER):
            walked.append(segment)
            current = self._child(current, segment, NAMESPACE_DELIMITER.join(walked))
        return current

    def _child(self, parent: int, segment: str, path: str) -> int:
        existing = self._by_path.get(path)
        if existing is not None:
            return existing
        index = len(self._nodes)
        self._nodes.append(_Node(segment=segment, path=path, parent=parent))
        self._nodes[parent].children.append(index)
        self._by_path[path] = index
        return index

    def find(self, path: str) -> int | None:
        if not path:
            return _ROOT
        current = _ROOT
        for segment in path.split(NAMESPACE_DELIMITER):
            match = None
            for child in self._nodes[current].children:
                if self._nodes[child].segment == segment:
                    match = child
                    break
            if match is None:
                return None
            current = match
        return current

    def table(self, index: int) -> Table:
        node = self._nodes[index]
        if node.values is None:
            node.values = {}
        return node.values

    def attach(self, index: int, table: Table) -> None:
        self._nodes[index].values = table

    def values(self, path: str) -> Table | None:
        index = self.find(path)
        if index is None:
            return None
        return self._nodes[index].values

    def children(self, path: str) -> list[str]:
        index = self.find(path)
        if index is None:
            return []
        return [self._nodes[child].path for child in self._nodes[index].children]

    def parent(self, path: str) -> str | None:
        index = self.find(path)
        if index is None or index == _ROOT:
            return None
        parent = self._nodes[index].parent
        return None if parent is None else self._nodes[parent].path

    def walk(self, path: str = "") -> Iterator[str]:
        """Pre-order paths of ``path`` and its descendants that hold values."""
        start = self.find(path)
        if start is None:
            return
        stack = [start]
        while stack:
            index = stack.pop()
            node = self._nodes[index]
            if node.values is not None:
                yield node.path
            stack.extend(reversed(node.children))


class TokenBucket:
    def __init__(self, mode: BucketMode = BucketMode.HYBRID) -> None:
        self.mode = BucketMode(mode)
        self._order: list[str] = []
        self._flat: dict[str, Table] | None = None
        self._tree: NamespaceTree | None = None
        if self.mode in (BucketMode.FLAT, BucketMode.HYBRID):
            self._flat = {}
        if self.mode in (BucketMode.TREE, BucketMode.HYBRID):
            self._tree = NamespaceTree()

    @classmethod
    def build(
        cls, tokens: Iterable[Token], mode: BucketMode = BucketMode.HYBRID
    ) -> TokenBucket:
        bucket = cls(mode)
        count = 0
        for item in tokens:
            bucket.insert(item.scope, item.key, item.value)
            count += 1
        logger.debug(
            "built %s bucket: %d tokens in %d namespaces",
            bucket.mode.value,
            count,
            len(bucket._order),
        )
        return bucket

    @classmethod
    def from_text(cls, text: str, mode: BucketMode = BucketMode.HYBRID) -> TokenBucket:
        return cls.build(parse(text), mode)

    def insert(self, namespace: str, key: str, value: str) -> None:
        table: Table | None = None
        if self._flat is not None:
            table = self._flat.get(namespace)
            if table is None:
                table = {}
                self._flat[namespace] = table
                self._order.append(namespace)
        if self._tree is not None:
            index = self._tree.ensure(namespace)
            if table is None:
                if self._tree.values(namespace) is None:
                    self._order.append(namespace)
                table = self._tree.table(index)
            else:
                # Hybrid: the node shares the flat table.
                self._tree.attach(index, table)
        if table is None:
            never("bucket has neither flat nor tree index", mode=self.mode.value)
        table[key] = value

    @property
    def namespaces(self) -> list[str]:
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, namespace: object) -> bool:
        return isinstance(namespace, str) and self.get_namespace(namespace) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))

    def items(self) -> list[tuple[str, Table]]:
        return [(namespace, self._table(namespace)) for namespace in self._order]

    def _table(self, namespace: str) -> Table:
        table = self.get_namespace(namespace)
        if table is None:
            never("ordered namespace missing from index", namespace=namespace)
        return table

    def get_namespace(self, namespace: str) -> Table | None:
        if self._flat is not None:
            return self._flat.get(namespace)
        if self._tree is not None:
            return self._tree.values(namespace)
        return None

    def get(self, namespace: str, key: str) -> str | None:
        table = self.get_namespace(namespace)
        if table is None:
            return None
        return table.get(key)

    def get_children(self, namespace: str) -> list[str]:
        if self._tree is None:
            return []
        return self._tree.children(namespace)

    def get_all_under(self, prefix: str) -> list[tuple[str, Table]]:
        return [
            (namespace, self._table(namespace))
            for namespace in self._order
            if is_within_path(namespace, prefix)
        ]

    def get_siblings(self, namespace: str) -> list[str]:
        if self._tree is None or self._tree.find(namespace) is None:
            return []
        parent = parent_path(namespace)
        return [path for path in self._tree.children(parent) if path != namespace]

    def namespace_tokens(self, namespace: str) -> list[Token] | None:
        table = self.get_namespace(namespace)
        return None if table is None else table_tokens(namespace, table)

    def to_tokens(self) -> list[Token]:
        tokens: list[Token] = []
        for namespace, table in self.items():
            tokens.extend(table_tokens(namespace, table))
        return tokens

    def to_config_string(self, separator: str = EXPANDED_SEPARATOR) -> str:
        """Serialize with one ``ns=`` switch per namespace group."""
        parts: list[str] = []
        for namespace, table in self.items():
            parts.append(f'{SWITCH_KEY}="{namespace}"')
            for key, value in table.items():
                if key_needs_prefix(key):
                    parts.append(f'{namespace}:{key}="{value}"')
                else:
                    parts.append(f'{key}="{value}"')
        return separator.join(parts)
