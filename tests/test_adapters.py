from __future__ import annotations

import json

import pytest

from xstream.adapters import csv_to_stream, json_to_stream, stream_to_json
from xstream.exceptions import AdapterError
from xstream.model import token
from xstream.parser import parse


def test_json_object_becomes_stream() -> None:
    text = json_to_stream(
        json.dumps(
            {
                "host": "h",
                "db": {"user": "a", "port": 5432},
                "flags": [1, 2],
                "on": True,
                "off": None,
            }
        )
    )
    assert text == (
        'host="h"; db:user="a"; db:port="5432"; flags="[1,2]"; on="true"; off="null"'
    )


def test_nested_json_objects_become_dotted_namespaces() -> None:
    text = json_to_stream('{"svc": {"api": {"port": 80}, "name": "core"}}')
    assert parse(text) == [token("svc.api", "port", "80"), token("svc", "name", "core")]


def test_json_switch_key_stays_data() -> None:
    assert parse(json_to_stream('{"ns": "x", "k": "v"}')) == [
        token("global", "ns", "x"),
        token(None, "k", "v"),
    ]


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "[1, 2]",
        "{}",
        '{"a": "x;y"}',
        '{"a b": "1"}',
        '{"bad ns": {"k": "v"}}',
    ],
)
def test_json_rejections(payload: str) -> None:
    with pytest.raises(AdapterError):
        json_to_stream(payload)


def test_stream_to_json_groups_by_namespace(mixed_stream: str) -> None:
    document = json.loads(stream_to_json(mixed_stream))
    assert document == {
        "global": {"host": "localhost", "debug": "true"},
        "db": {"user": "admin", "pass": "secret"},
        "ui": {"theme": "dark"},
    }


def test_stream_to_json_rejects_invalid_stream() -> None:
    with pytest.raises(AdapterError):
        stream_to_json("a = 1")


def test_csv_rows_become_row_namespaces() -> None:
    text = csv_to_stream("name,age\nalice,30\nbob\ncarol,41\n")
    assert text == 'row0:name="alice"; row0:age="30"; row2:name="carol"; row2:age="41"'


def test_csv_skips_empty_cells_and_headers() -> None:
    text = csv_to_stream("name,,city\nalice,x,\n")
    assert text == 'row0:name="alice"'


@pytest.mark.parametrize(
    "payload",
    ["name,age", "", "a,b\n,\n", "a\nx;y\n", "a b\n1\n"],
)
def test_csv_rejections(payload: str) -> None:
    with pytest.raises(AdapterError):
        csv_to_stream(payload)


def test_keys_containing_equals_are_rejected() -> None:
    with pytest.raises(AdapterError, match="JSON key 'a=b'"):
        json_to_stream('{"a=b": "v"}')
    with pytest.raises(AdapterError, match="JSON key 'k=1'"):
        json_to_stream('{"db": {"k=1": "v"}}')
    with pytest.raises(AdapterError, match="CSV header 'a=b'"):
        csv_to_stream("a=b,c\n1,2\n")
