"""Token and namespace records shared by every stream stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, TypeAlias

from xstream.exceptions import InvalidNamespaceSegment

GLOBAL_NAMESPACE = "global"
NAMESPACE_DELIMITER = "."
SWITCH_KEY = "ns"

_FORBIDDEN_SEGMENT_CHARS = frozenset(":=;\"'")


def segment_problem(segment: str) -> str:
    """Return why ``segment`` cannot be a namespace segment, or ``""``."""
    if not segment:
        return "empty segment"
    for char in segment:
        if char.isspace():
            return "whitespace in segment"
        if char in _FORBIDDEN_SEGMENT_CHARS:
            return f"reserved character {char!r} in segment"
    return ""


@dataclass(frozen=True, order=True)
class Namespace:
    """Dot-separated hierarchical path, e.g. ``svc.api``."""

    parts: tuple[str, ...]

    @classmethod
    def parse(cls, text: str, *, raw: str | None = None, position: int = 0) -> Namespace:
        parts = tuple(text.split(NAMESPACE_DELIMITER))
        for part in parts:
            problem = segment_problem(part)
            if problem:
                raise InvalidNamespaceSegment(
                    text if raw is None else raw,
                    position,
                    f"{problem} in namespace {text!r}",
                )
        return cls(parts)

    @property
    def parent(self) -> Namespace | None:
        if len(self.parts) <= 1:
            return None
        return Namespace(self.parts[:-1])

    @property
    def depth(self) -> int:
        return len(self.parts)

    @property
    def leaf(self) -> str:
        return self.parts[-1]

    def is_ancestor_of(self, other: Namespace) -> bool:
        return (
            len(other.parts) > len(self.parts)
            and other.parts[: len(self.parts)] == self.parts
        )

    def is_within(self, other: Namespace) -> bool:
        """True when ``self`` equals ``other`` or descends from it."""
        return self == other or other.is_ancestor_of(self)

    def child(self, segment: str) -> Namespace:
        return Namespace((*self.parts, segment))

    def __str__(self) -> str:
        return NAMESPACE_DELIMITER.join(self.parts)


def is_within_path(path: str, prefix: str) -> bool:
    """Structural prefix test over dotted text (``a.b`` is within ``a``, ``ab`` is not)."""
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + NAMESPACE_DELIMITER)


def key_needs_prefix(key: str) -> bool:
    """Keys that would be misread as a switch or a prefix when written bare."""
    return key == SWITCH_KEY or ":" in key


def parent_path(path: str) -> str:
    head, sep, _ = path.rpartition(NAMESPACE_DELIMITER)
    return head if sep else ""


@dataclass(frozen=True)
class Token:
    namespace: Namespace | None
    key: str
    value: str = field(default="")

    @property
    def scope(self) -> str:
        """Resolved namespace text; unscoped tokens live in ``global``."""
        if self.namespace is None:
            return GLOBAL_NAMESPACE
        return str(self.namespace)

    @property
    def identity(self) -> tuple[str, str]:
        return (self.scope, self.key)

    def with_value(self, value: str) -> Token:
        return Token(self.namespace, self.key, value)

    def render(self) -> str:
        if self.namespace is not None:
            head = f"{self.namespace}:{self.key}"
        elif key_needs_prefix(self.key):
            head = f"{GLOBAL_NAMESPACE}:{self.key}"
        else:
            head = self.key
        return f'{head}="{self.value}"'

    def __str__(self) -> str:
        return self.render()


TokenStream: TypeAlias = list[Token]


def token(text_namespace: str | None, key: str, value: str) -> Token:
    """Convenience constructor taking the namespace as dotted text."""
    if text_namespace is None:
        return Token(None, key, value)
    return Token(Namespace.parse(text_namespace), key, value)


def scopes(tokens: Iterable[Token]) -> list[str]:
    """Distinct resolved namespaces in first-seen order."""
    seen: dict[str, None] = {}
    for item in tokens:
        seen.setdefault(item.scope, None)
    return list(seen)
