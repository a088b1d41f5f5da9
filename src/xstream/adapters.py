"""Convert JSON and CSV documents to and from token-stream text.

The engines never see JSON or CSV; these helpers sit in front of or behind
them and always hand over wire text.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from typing import Mapping

from xstream.bucket import BucketMode, TokenBucket
from xstream.exceptions import AdapterError, ParseError
from xstream.json_types import JSONObject, JSONValue
from xstream.model import NAMESPACE_DELIMITER, Namespace, Token
from xstream.parser import EXPANDED_SEPARATOR, parse
from xstream.schema import bucket_dto

logger = logging.getLogger(__name__)


def _scalar_text(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    # Booleans, null, numbers and arrays keep their JSON spelling.
    return json.dumps(value, separators=(",", ":"))


def _checked_key(key: str, source: str) -> str:
    if "=" in key:
        raise AdapterError(f"{source} {key!r} contains '=' and cannot be a token key")
    return key


def _flatten(
    payload: Mapping[str, JSONValue], path: tuple[str, ...], out: list[str]
) -> None:
    for key, value in payload.items():
        if isinstance(value, dict):
            _flatten(value, (*path, str(key)), out)
            continue
        text = _scalar_text(value)
        if ";" in text:
            raise AdapterError(f"value for {key!r} contains ';' and cannot be streamed")
        try:
            namespace = Namespace.parse(NAMESPACE_DELIMITER.join(path)) if path else None
        except ParseError as exc:
            raise AdapterError(f"JSON key path {path!r} is not a namespace: {exc}") from exc
        out.append(Token(namespace, _checked_key(str(key), "JSON key"), text).render())


def _checked(text: str, source: str) -> str:
    try:
        parse(text)
    except ParseError as exc:
        raise AdapterError(f"{source} produced an invalid token stream: {exc}") from exc
    return text


def json_to_stream(text: str) -> str:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise AdapterError(f"JSON parse error: {exc}") from exc
    if not isinstance(payload, dict):
        raise AdapterError("JSON input must be an object")
    parts: list[str] = []
    _flatten(payload, (), parts)
    if not parts:
        raise AdapterError("empty JSON object")
    logger.debug("json adapter produced %d tokens", len(parts))
    return _checked(EXPANDED_SEPARATOR.join(parts), "JSON")


def stream_to_json(text: str) -> str:
    """Bucket view of a stream: ``{namespace: {key: value}}``."""
    try:
        bucket = TokenBucket.from_text(text, BucketMode.FLAT)
    except ParseError as exc:
        raise AdapterError(f"invalid token stream: {exc}") from exc
    document: JSONObject = dict(bucket_dto(bucket).namespaces)
    return json.dumps(document, indent=2, sort_keys=True)


def csv_to_stream(text: str) -> str:
    """Each data row becomes namespace ``row<i>``; ragged rows are skipped."""
    rows = list(csv.reader(io.StringIO(text.strip())))
    if len(rows) < 2:
        raise AdapterError("CSV must have a header and at least one data row")
    headers = [_checked_key(header.strip(), "CSV header") for header in rows[0]]
    parts: list[str] = []
    for index, row in enumerate(rows[1:]):
        if len(row) != len(headers):
            logger.debug("skipping CSV row %d: %d cells for %d headers", index, len(row), len(headers))
            continue
        for header, cell in zip(headers, row):
            cell = cell.strip()
            if not header or not cell:
                continue
            if ";" in cell:
                raise AdapterError(f"cell {header!r} in row {index} contains ';'")
            parts.append(f'row{index}:{header}="{cell}"')
    if not parts:
        raise AdapterError("no CSV data found")
    return _checked(EXPANDED_SEPARATOR.join(parts), "CSV")
