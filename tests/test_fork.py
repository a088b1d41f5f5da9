from __future__ import annotations

import pytest

from xstream.exceptions import NeverThrown
from xstream.fork import All, Exact, Regex, Under, fork, fork_all, fork_by_namespace
from xstream.model import Token, token
from xstream.parser import parse


def test_exact_fork_splits_named_namespaces(mixed_stream: str) -> None:
    channels = fork(parse(mixed_stream), Exact(("ui", "db")))
    assert list(channels) == ["ui", "db"]
    assert channels["db"] == [token("db", "user", "admin"), token("db", "pass", "secret")]
    assert channels["ui"] == [token("ui", "theme", "dark")]


def test_exact_fork_drops_unmatched_and_missing(mixed_stream: str) -> None:
    channels = fork(parse(mixed_stream), Exact(("db", "nowhere")))
    assert list(channels) == ["db"]
    assert all(item.scope == "db" for item in channels["db"])


def test_exact_accepts_single_name_and_dedupes() -> None:
    assert Exact("db").names == ("db",)
    assert Exact(["a", "b", "a"]).names == ("a", "b")


def test_global_namespace_can_be_forked(mixed_stream: str) -> None:
    channels = fork_by_namespace(parse(mixed_stream), ["global"])
    assert channels == {
        "global": [Token(None, "host", "localhost"), Token(None, "debug", "true")]
    }


def test_under_fork_collects_descendants() -> None:
    stream = parse('svc.api:a=1; svcx:b=2; svc:c=3; svc.db.main:d=4; top=5')
    channels = fork(stream, Under("svc"))
    assert list(channels) == ["svc"]
    assert [item.key for item in channels["svc"]] == ["a", "c", "d"]
    assert fork(stream, Under("nothing")) == {}


def test_regex_fork_searches_namespace_text() -> None:
    stream = parse('db_main:a=1; db_replica:b=2; cache:c=3; db_main:d=4')
    channels = fork(stream, Regex(r"^db_"))
    assert list(channels) == ["db_main", "db_replica"]
    assert [item.key for item in channels["db_main"]] == ["a", "d"]


def test_fork_all_partitions_every_token(mixed_stream: str) -> None:
    stream = parse(mixed_stream)
    channels = fork_all(stream)
    assert list(channels) == ["global", "db", "ui"]
    assert sum(len(items) for items in channels.values()) == len(stream)
    assert fork(stream, All()) == channels


def test_fork_keeps_relative_order() -> None:
    stream = parse("a:k=1; b:k=2; a:k=3; a:j=4")
    assert [item.value for item in fork_all(stream)["a"]] == ["1", "3", "4"]


def test_empty_stream_forks_to_empty_mapping() -> None:
    assert fork([], All()) == {}
    assert fork([], Exact(("a",))) == {}


def test_unknown_selector_is_an_invariant_violation() -> None:
    with pytest.raises(NeverThrown):
        fork(parse("a=1"), "db")  # type: ignore[arg-type]


def test_exact_fork_keeps_order_within_each_output() -> None:
    stream = parse('ui:btn="click"; db:host="local"; ui:theme="dark"')
    assert fork(stream, Exact(("ui", "db"))) == {
        "ui": [token("ui", "btn", "click"), token("ui", "theme", "dark")],
        "db": [token("db", "host", "local")],
    }
