"""Invariant markers for xstream."""

from __future__ import annotations

from typing import Callable, NoReturn, TypeVar

from xstream.exceptions import NeverThrown

FuncT = TypeVar("FuncT", bound=Callable[..., object])


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable.

    Used as the fallthrough of exhaustive variant dispatch and for variant
    construction that would violate an invariant. The env payload is attached
    to the raised error for diagnostics only.
    """
    raise NeverThrown(reason or "never() marker reached", env=env)


def require(condition: bool, reason: str, **env: object) -> None:
    if not condition:
        never(reason, **env)


def decision_protocol(func: FuncT) -> FuncT:
    """Marker decorator for explicit decision-protocol control surfaces."""
    return func
