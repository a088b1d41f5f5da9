from __future__ import annotations

from collections import Counter

import pytest

from xstream.bucket import BucketMode, TokenBucket
from xstream.fork import All, fork
from xstream.gate import MaxTokens, MinTokens, RequireNamespace, gate, sync
from xstream.merge import CollisionPolicy, Concat, Dedupe, Interleave, Sort, merge
from xstream.parser import COMPACT_SEPARATOR, format_stream, parse

STREAMS = [
    "",
    "a=1",
    'host="localhost"; ns=db; user="admin"; pass="secret"; ui:theme="dark"; ns=global; debug="true"',
    "ns=a.b; k=1; ns=a; k=2; a.b.c:k=3; k=4;",
    "x='single'; y=\"double\"; z=bare; e=; q=\"with 'inner'\"",
    "k=1; k=2; db:k=3; db:k=4; k=5",
    "cfg:ns=data; global:ns=other; n:dupe:k=true",
    "expr=a=b=c; path=/usr/bin; url=http://h:80/x",
]


@pytest.mark.parametrize("text", STREAMS)
@pytest.mark.parametrize("separator", ["; ", COMPACT_SEPARATOR])
def test_format_then_parse_is_identity(text: str, separator: str) -> None:
    tokens = parse(text)
    assert parse(format_stream(tokens, separator)) == tokens


@pytest.mark.parametrize("text", STREAMS)
def test_fork_all_then_concat_preserves_the_multiset(text: str) -> None:
    tokens = parse(text)
    channels = fork(tokens, All())
    merged = merge(list(channels.values()), Concat())
    assert Counter(merged) == Counter(tokens)


@pytest.mark.parametrize("text", STREAMS)
def test_fork_outputs_preserve_relative_order(text: str) -> None:
    tokens = parse(text)
    for name, channel in fork(tokens, All()).items():
        assert channel == [item for item in tokens if item.scope == name]


@pytest.mark.parametrize("text", STREAMS)
@pytest.mark.parametrize("mode", list(BucketMode))
def test_bucket_config_string_reparses_to_same_tables(text: str, mode: BucketMode) -> None:
    bucket = TokenBucket.from_text(text, mode)
    rebuilt = TokenBucket.from_text(bucket.to_config_string(), mode)
    assert rebuilt.items() == bucket.items()


@pytest.mark.parametrize("text", STREAMS)
def test_dedupe_leaves_unique_identities(text: str) -> None:
    tokens = parse(text)
    channels = list(fork(tokens, All()).values())
    for policy in (CollisionPolicy.KEEP_FIRST, CollisionPolicy.KEEP_LAST):
        merged = merge(channels + [tokens], Dedupe(), policy)
        identities = [item.identity for item in merged]
        assert len(identities) == len(set(identities))
        assert set(identities) == {item.identity for item in tokens}


@pytest.mark.parametrize("text", STREAMS)
def test_merge_strategies_keep_every_token(text: str) -> None:
    tokens = parse(text)
    channels = list(fork(tokens, All()).values())
    for strategy in (Concat(), Interleave(), Sort()):
        assert Counter(merge(channels, strategy)) == Counter(tokens)


@pytest.mark.parametrize("text", STREAMS)
@pytest.mark.parametrize(
    "condition", [MinTokens(1), MaxTokens(3), RequireNamespace("db")]
)
def test_gate_is_idempotent_and_sync_agrees(text: str, condition) -> None:
    tokens = parse(text)
    once = gate(tokens, condition)
    if once is not None:
        assert gate(once, condition) == once
    assert (sync([tokens], condition) is None) == (once is None)
