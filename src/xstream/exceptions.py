"""Error taxonomy for xstream."""

from __future__ import annotations


class XStreamError(Exception):
    """Root of every error raised by xstream."""


class NeverThrown(XStreamError, RuntimeError):
    """Raised by ``never()`` when a path assumed unreachable is reached.

    The keyword payload passed to ``never()`` is kept on ``env`` so callers can
    report which value broke the assumption.
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.env = dict(env or {})


class ParseError(XStreamError, ValueError):
    """A segment of token-stream text failed the grammar.

    ``raw`` is the offending segment as it appeared in the input and
    ``position`` is the character offset where that segment starts.
    """

    kind = "parse_error"

    def __init__(self, raw: str, position: int, detail: str = ""):
        self.raw = raw
        self.position = position
        self.detail = detail
        message = f"{self.kind} at {position}: {raw!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MalformedToken(ParseError):
    kind = "malformed_token"


class EmptyKey(ParseError):
    kind = "empty_key"


class IllegalWhitespace(ParseError):
    kind = "illegal_whitespace"


class UnterminatedQuote(ParseError):
    kind = "unterminated_quote"


class InvalidNamespaceSegment(ParseError):
    kind = "invalid_namespace_segment"


class AdapterError(XStreamError):
    """External format (JSON/CSV) could not be converted to a token stream."""
