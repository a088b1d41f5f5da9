"""Token-level rewrites: value codecs, case, renames and masking.

Every function takes a token sequence and returns a new list; inputs are
never mutated. Decoders leave a value untouched when it does not decode, or
when the decoded text could not be written back to the wire (contains ``;``).
"""

from __future__ import annotations

import base64
import binascii
import logging
from enum import Enum
from typing import Callable, Iterable, Sequence
from urllib.parse import quote, unquote

from xstream.model import GLOBAL_NAMESPACE, Namespace, Token

logger = logging.getLogger(__name__)

MASK = "***"
DEFAULT_SENSITIVE_KEYS: tuple[str, ...] = ("pass", "password", "secret", "token", "key")


class TransformKind(str, Enum):
    UPPER = "upper"
    LOWER = "lower"
    BASE64_ENCODE = "base64-encode"
    BASE64_DECODE = "base64-decode"
    URL_ENCODE = "url-encode"
    URL_DECODE = "url-decode"
    MASK_SENSITIVE = "mask-sensitive"


def _wire_safe(value: str) -> bool:
    return ";" not in value


def map_values(tokens: Iterable[Token], fn: Callable[[str], str]) -> list[Token]:
    return [item.with_value(fn(item.value)) for item in tokens]


def upper(tokens: Iterable[Token]) -> list[Token]:
    return map_values(tokens, str.upper)


def lower(tokens: Iterable[Token]) -> list[Token]:
    return map_values(tokens, str.lower)


def base64_encode(tokens: Iterable[Token]) -> list[Token]:
    return map_values(
        tokens, lambda value: base64.b64encode(value.encode("utf-8")).decode("ascii")
    )


def _b64decode(value: str) -> str:
    try:
        decoded = base64.b64decode(value.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError):
        return value
    return decoded if _wire_safe(decoded) else value


def base64_decode(tokens: Iterable[Token]) -> list[Token]:
    return map_values(tokens, _b64decode)


def url_encode(tokens: Iterable[Token]) -> list[Token]:
    return map_values(tokens, lambda value: quote(value, safe=""))


def _url_decode(value: str) -> str:
    decoded = unquote(value)
    return decoded if _wire_safe(decoded) else value


def url_decode(tokens: Iterable[Token]) -> list[Token]:
    return map_values(tokens, _url_decode)


def mask_sensitive(
    tokens: Iterable[Token], keys: Sequence[str] = DEFAULT_SENSITIVE_KEYS
) -> list[Token]:
    sensitive = {key.lower() for key in keys}
    return [
        item.with_value(MASK) if item.key.lower() in sensitive else item
        for item in tokens
    ]


def rename_key(tokens: Iterable[Token], old: str, new: str) -> list[Token]:
    return [
        Token(item.namespace, new, item.value) if item.key == old else item
        for item in tokens
    ]


def rename_namespace(tokens: Iterable[Token], old: str, new: str) -> list[Token]:
    """Move ``old`` and everything below it under ``new``."""
    source = Namespace.parse(old)
    target = Namespace.parse(new)
    renamed: list[Token] = []
    for item in tokens:
        namespace = item.namespace
        if namespace is not None and namespace.is_within(source):
            namespace = Namespace(target.parts + namespace.parts[source.depth :])
        renamed.append(Token(namespace, item.key, item.value))
    return renamed


def prefix_namespaces(tokens: Iterable[Token], prefix: str) -> list[Token]:
    """Nest every namespace under ``prefix``; global tokens move to ``prefix``.

    Tokens written with an explicit ``global:`` prefix are global too.
    """
    root = Namespace.parse(prefix)
    return [
        Token(
            root
            if item.namespace is None or item.scope == GLOBAL_NAMESPACE
            else Namespace(root.parts + item.namespace.parts),
            item.key,
            item.value,
        )
        for item in tokens
    ]


_BY_KIND: dict[TransformKind, Callable[[Iterable[Token]], list[Token]]] = {
    TransformKind.UPPER: upper,
    TransformKind.LOWER: lower,
    TransformKind.BASE64_ENCODE: base64_encode,
    TransformKind.BASE64_DECODE: base64_decode,
    TransformKind.URL_ENCODE: url_encode,
    TransformKind.URL_DECODE: url_decode,
    TransformKind.MASK_SENSITIVE: mask_sensitive,
}


def apply_transform(tokens: Iterable[Token], kind: TransformKind | str) -> list[Token]:
    resolved = TransformKind(kind)
    result = _BY_KIND[resolved](tokens)
    logger.debug("transform %s over %d tokens", resolved.value, len(result))
    return result
