"""Strict parser and serializer for the token-stream wire format.

Grammar::

    token      ::= [namespace ":"] key "=" value
    stream     ::= token (";" " "? token)* ";"?
    namespace  ::= segment ("." segment)*
    value      ::= '"' text '"' | "'" text "'" | bare

A bare ``ns=<namespace>`` token is a control instruction: it switches the
active namespace for the unprefixed tokens that follow and is never emitted.
Parsing stops at the first malformed segment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from xstream.exceptions import (
    EmptyKey,
    IllegalWhitespace,
    MalformedToken,
    ParseError,
    UnterminatedQuote,
)
from xstream.model import GLOBAL_NAMESPACE, SWITCH_KEY, Namespace, Token

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = ";"
EXPANDED_SEPARATOR = "; "
COMPACT_SEPARATOR = ";"
_QUOTES = ("\"", "'")


@dataclass
class ParserContext:
    """Per-invocation scan state; discarded when parsing ends."""

    active: Namespace | None = None
    emit: bool = True
    tokens: list[Token] = field(default_factory=list)
    switches: int = 0


def _segments(text: str) -> Iterator[tuple[str, int, bool]]:
    start = 0
    while True:
        end = text.find(TOKEN_SEPARATOR, start)
        if end == -1:
            yield text[start:], start, True
            return
        yield text[start:end], start, False
        start = end + 1


def _find_unescaped(text: str, char: str) -> int:
    index = text.find(char)
    while index > 0 and text[index - 1] == "\\":
        index = text.find(char, index + 1)
    return index


def _unquote(value: str, raw: str, position: int) -> str:
    if value and value[0] in _QUOTES:
        quote = value[0]
        if len(value) < 2 or value[-1] != quote:
            raise UnterminatedQuote(raw, position, f"value opened with {quote} is not closed")
        return value[1:-1]
    return value


def _scan_segment(
    ctx: ParserContext,
    segment: str,
    position: int,
    *,
    first: bool,
    last: bool,
) -> None:
    body = segment
    if not first and body.startswith(" "):
        body = body[1:]
    if not body:
        if last:
            return
        raise MalformedToken(segment, position, "empty token")
    if body[0].isspace():
        raise IllegalWhitespace(segment, position, "extra whitespace before token")
    if body[-1].isspace():
        raise IllegalWhitespace(segment, position, "whitespace before ';'")

    eq = _find_unescaped(body, "=")
    if eq == -1:
        raise MalformedToken(segment, position, "missing '=' separator")
    key_part = body[:eq]
    value_part = body[eq + 1 :]
    if key_part and key_part[-1].isspace():
        raise IllegalWhitespace(segment, position, "space before '='")
    if value_part and value_part[0].isspace():
        raise IllegalWhitespace(segment, position, "space after '='")
    if not key_part:
        raise EmptyKey(segment, position)
    if any(char.isspace() for char in key_part):
        raise IllegalWhitespace(segment, position, "whitespace in key or namespace")

    ns_text, sep, key = key_part.partition(":")
    if not sep:
        key = key_part
    if not key:
        raise EmptyKey(segment, position)
    namespace = Namespace.parse(ns_text, raw=segment, position=position) if sep else None
    value = _unquote(value_part, segment, position)

    if not sep and key == SWITCH_KEY:
        ctx.switches += 1
        if value == GLOBAL_NAMESPACE:
            ctx.active = None
        else:
            ctx.active = Namespace.parse(value, raw=segment, position=position)
        return
    if ctx.emit:
        ctx.tokens.append(Token(namespace if sep else ctx.active, key, value))


def _scan(text: str, ctx: ParserContext) -> ParserContext:
    first = True
    for segment, position, last in _segments(text):
        _scan_segment(ctx, segment, position, first=first, last=last)
        first = False
    return ctx


def parse(text: str) -> list[Token]:
    """Parse wire text into tokens, failing on the first malformed segment."""
    ctx = _scan(text, ParserContext())
    logger.debug(
        "parsed %d tokens (%d namespace switches)", len(ctx.tokens), ctx.switches
    )
    return ctx.tokens


def validate(text: str) -> None:
    """Raise the ``ParseError`` ``parse`` would raise, without building tokens."""
    _scan(text, ParserContext(emit=False))


def is_token_streamable(text: str) -> bool:
    try:
        validate(text)
    except ParseError:
        return False
    return True


def format_stream(tokens: Iterable[Token], separator: str = EXPANDED_SEPARATOR) -> str:
    """Render tokens as wire text; every value is double-quoted."""
    return separator.join(item.render() for item in tokens)
