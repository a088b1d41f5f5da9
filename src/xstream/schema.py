from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel

from xstream.bucket import TokenBucket
from xstream.exceptions import ParseError
from xstream.model import Namespace, Token


class TokenDTO(BaseModel):
    namespace: Optional[str] = None
    key: str
    value: str


class ForkResponseDTO(BaseModel):
    selector: str
    channels: Dict[str, List[TokenDTO]]


class BucketDTO(BaseModel):
    mode: str
    namespaces: Dict[str, Dict[str, str]]


class ParseErrorDTO(BaseModel):
    kind: str
    raw: str
    position: int
    detail: str = ""


def token_dto(item: Token) -> TokenDTO:
    namespace = None if item.namespace is None else str(item.namespace)
    return TokenDTO(namespace=namespace, key=item.key, value=item.value)


def token_from_dto(dto: TokenDTO) -> Token:
    namespace = None if dto.namespace is None else Namespace.parse(dto.namespace)
    return Token(namespace, dto.key, dto.value)


def bucket_dto(bucket: TokenBucket) -> BucketDTO:
    return BucketDTO(
        mode=bucket.mode.value,
        namespaces={namespace: dict(table) for namespace, table in bucket.items()},
    )


def parse_error_dto(error: ParseError) -> ParseErrorDTO:
    return ParseErrorDTO(
        kind=error.kind, raw=error.raw, position=error.position, detail=error.detail
    )
