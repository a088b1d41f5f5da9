"""xstream package root."""

from xstream.bucket import BucketMode, TokenBucket
from xstream.exceptions import (
    AdapterError,
    EmptyKey,
    IllegalWhitespace,
    InvalidNamespaceSegment,
    MalformedToken,
    NeverThrown,
    ParseError,
    UnterminatedQuote,
    XStreamError,
)
from xstream.fork import fork
from xstream.gate import gate, sync
from xstream.invariants import never
from xstream.merge import CollisionPolicy, merge
from xstream.model import Namespace, Token
from xstream.parser import format_stream, is_token_streamable, parse

__all__ = [
    "__version__",
    "AdapterError",
    "BucketMode",
    "CollisionPolicy",
    "EmptyKey",
    "IllegalWhitespace",
    "InvalidNamespaceSegment",
    "MalformedToken",
    "Namespace",
    "NeverThrown",
    "ParseError",
    "Token",
    "TokenBucket",
    "UnterminatedQuote",
    "XStreamError",
    "format_stream",
    "fork",
    "gate",
    "is_token_streamable",
    "merge",
    "never",
    "parse",
    "sync",
]

__version__ = "0.1.0"
