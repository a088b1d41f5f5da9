from __future__ import annotations

import logging
import re
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from xstream.adapters import csv_to_stream, json_to_stream, stream_to_json
from xstream.bucket import BucketMode, TokenBucket, table_tokens
from xstream.config import (
    as_int,
    bucket_defaults,
    gate_defaults,
    merge_defaults,
    merge_payload,
    normalize_name_list,
    parse_defaults,
    transform_defaults,
)
from xstream.exceptions import AdapterError, NeverThrown, ParseError
from xstream.fork import All, Exact, ForkSelector, Regex, Under, fork
from xstream.gate import (
    ContainsValue,
    GateCondition,
    MaxTokens,
    MinTokens,
    RequireNamespace,
    gate as run_gate,
    passes,
)
from xstream.merge import CollisionPolicy, merge as run_merge, strategy_from_name
from xstream.operations import OPERATION_NAMES, FilterKeys, FilterNamespace, Transform, apply
from xstream.parser import EXPANDED_SEPARATOR, format_stream, parse
from xstream.schema import ForkResponseDTO, bucket_dto, parse_error_dto, token_dto
from xstream.transform import TransformKind, apply_transform, mask_sensitive

app = typer.Typer(add_completion=False, help="Parse, fork, merge and gate token streams.")

EXIT_REJECTED = 1
EXIT_INVALID = 2
_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _config_path(ctx: typer.Context) -> Optional[Path]:
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    value = obj.get("config")
    return value if isinstance(value, Path) else None


def _separator(ctx: typer.Context) -> str:
    value = parse_defaults(config_path=_config_path(ctx)).get("separator")
    return value if isinstance(value, str) and value.startswith(";") else EXPANDED_SEPARATOR


def _read_stdin() -> str:
    return sys.stdin.read().rstrip("\r\n")


@contextmanager
def _invalid_input_exits() -> Iterator[None]:
    try:
        yield
    except ParseError as exc:
        typer.echo(f"invalid token stream: {exc}", err=True)
        raise typer.Exit(code=EXIT_INVALID) from exc
    except (AdapterError, NeverThrown, ValueError, re.error) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=EXIT_INVALID) from exc


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine decisions to stderr."),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to xstream.toml."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )
    ctx.obj = {"config": config}


@app.command()
def validate(
    as_json: bool = typer.Option(False, "--json", help="Report a parse error as JSON on stderr."),
) -> None:
    """Exit 0 when stdin is a valid token stream."""
    text = _read_stdin()
    if as_json:
        try:
            tokens = parse(text)
        except ParseError as exc:
            typer.echo(parse_error_dto(exc).model_dump_json(), err=True)
            raise typer.Exit(code=EXIT_INVALID) from exc
    else:
        with _invalid_input_exits():
            tokens = parse(text)
    typer.echo(f"valid ({len(tokens)} tokens)")


@app.command("parse")
def parse_command() -> None:
    """Print one resolved token per line."""
    with _invalid_input_exits():
        tokens = parse(_read_stdin())
    for item in tokens:
        typer.echo(item.render())


@app.command()
def op(
    name: str = typer.Argument(..., help=f"One of: {', '.join(OPERATION_NAMES)}."),
    arg: Optional[str] = typer.Option(None, "--arg", help="Operation argument."),
) -> None:
    """Apply a single stream operation to stdin."""
    kind = OPERATION_NAMES.get(name)
    if kind is None:
        raise typer.BadParameter(f"unknown operation {name!r}", param_hint="name")
    takes_arg = kind in (FilterKeys, FilterNamespace, Transform)
    if takes_arg and arg is None:
        raise typer.BadParameter(f"{name} requires --arg", param_hint="--arg")
    with _invalid_input_exits():
        operation = kind(arg) if takes_arg else kind()
        typer.echo(apply(operation, _read_stdin()))


@app.command()
def bucket(
    ctx: typer.Context,
    mode: Optional[BucketMode] = typer.Option(None, "--mode", case_sensitive=False),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="Exact namespace lookup."),
    under: Optional[str] = typer.Option(None, "--under", help="Namespace and its descendants."),
    children: Optional[str] = typer.Option(None, "--children", help="Immediate children of a namespace."),
    siblings: Optional[str] = typer.Option(None, "--siblings", help="Namespaces sharing a parent."),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Index stdin by namespace and query it."""
    options = merge_payload(
        {"mode": None if mode is None else mode.value},
        bucket_defaults(config_path=_config_path(ctx)),
    )
    with _invalid_input_exits():
        resolved_mode = BucketMode(str(options.get("mode", BucketMode.HYBRID.value)).lower())
        index = TokenBucket.build(parse(_read_stdin()), resolved_mode)
    if children is not None:
        for path in index.get_children(children):
            typer.echo(path)
        return
    if siblings is not None:
        for path in index.get_siblings(siblings):
            typer.echo(path)
        return
    if namespace is not None:
        found = index.namespace_tokens(namespace)
        if found is None:
            typer.echo(f"namespace {namespace!r} not found", err=True)
            raise typer.Exit(code=EXIT_REJECTED)
        typer.echo(format_stream(found, _separator(ctx)))
        return
    if under is not None:
        for path, table in index.get_all_under(under):
            typer.echo(format_stream(table_tokens(path, table), _separator(ctx)))
        return
    if as_json:
        typer.echo(bucket_dto(index).model_dump_json(indent=2))
        return
    typer.echo(index.to_config_string(_separator(ctx)))


def _fork_selector(
    exact: List[str], under: Optional[str], regex: Optional[str], all_: bool
) -> ForkSelector:
    chosen = [bool(exact), under is not None, regex is not None, all_]
    if sum(chosen) != 1:
        raise typer.BadParameter("choose exactly one of --exact, --under, --regex, --all")
    if exact:
        return Exact(tuple(exact))
    if under is not None:
        return Under(under)
    if regex is not None:
        return Regex(regex)
    return All()


@app.command("fork")
def fork_command(
    ctx: typer.Context,
    exact: List[str] = typer.Option([], "--exact", help="Namespace to split out (repeatable)."),
    under: Optional[str] = typer.Option(None, "--under"),
    regex: Optional[str] = typer.Option(None, "--regex"),
    all_: bool = typer.Option(False, "--all"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Split stdin into one stream per matching namespace."""
    selector = _fork_selector(exact, under, regex, all_)
    with _invalid_input_exits():
        channels = fork(parse(_read_stdin()), selector)
    if as_json:
        response = ForkResponseDTO(
            selector=type(selector).__name__.lower(),
            channels={
                name: [token_dto(item) for item in tokens]
                for name, tokens in channels.items()
            },
        )
        typer.echo(response.model_dump_json(indent=2))
        return
    for name, tokens in channels.items():
        typer.echo(f"{name}: {format_stream(tokens, _separator(ctx))}")


@app.command("merge")
def merge_command(
    ctx: typer.Context,
    stream: List[str] = typer.Option([], "--stream", help="Input stream text (repeatable)."),
    strategy: Optional[str] = typer.Option(
        None, "--strategy", help="concat, interleave, priority, dedupe or sort."
    ),
    priority: List[str] = typer.Option([], "--priority", help="Namespace emitted first (repeatable)."),
    collision: Optional[CollisionPolicy] = typer.Option(None, "--collision", case_sensitive=False),
) -> None:
    """Merge streams given with --stream, or one stream per stdin line."""
    options = merge_payload(
        {
            "strategy": strategy,
            "priority": priority or None,
            "collision": None if collision is None else collision.value,
        },
        merge_defaults(config_path=_config_path(ctx)),
    )
    texts = list(stream) or [line for line in _read_stdin().splitlines() if line.strip()]
    with _invalid_input_exits():
        resolved = strategy_from_name(
            str(options.get("strategy", "concat")),
            normalize_name_list(options.get("priority")),
        )
        policy = options.get("collision")
        merged = run_merge(
            [parse(text) for text in texts],
            resolved,
            None if policy is None else CollisionPolicy(str(policy)),
        )
    typer.echo(format_stream(merged, _separator(ctx)))


@app.command("gate")
def gate_command(
    ctx: typer.Context,
    min_tokens: Optional[int] = typer.Option(None, "--min-tokens"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens"),
    require_namespace: Optional[str] = typer.Option(None, "--require-namespace"),
    contains: Optional[str] = typer.Option(None, "--contains", help="Keep tokens whose value matches."),
) -> None:
    """Admit stdin (exit 0) or reject it (exit 1)."""
    options = merge_payload(
        {"min_tokens": min_tokens, "max_tokens": max_tokens},
        gate_defaults(config_path=_config_path(ctx)),
    )
    conditions: list[GateCondition] = []
    with _invalid_input_exits():
        low = as_int(options.get("min_tokens"))
        high = as_int(options.get("max_tokens"))
        if low is not None:
            conditions.append(MinTokens(low))
        if high is not None:
            conditions.append(MaxTokens(high))
        if require_namespace is not None:
            conditions.append(RequireNamespace(require_namespace))
        if contains is not None:
            conditions.append(ContainsValue(contains))
        current: Optional[list] = parse(_read_stdin())
        for condition in conditions:
            current = run_gate(current, condition)
            if not passes(current, condition):
                typer.echo(f"rejected by {condition!r}", err=True)
                raise typer.Exit(code=EXIT_REJECTED)
    typer.echo(format_stream(current or [], _separator(ctx)))


@app.command("transform")
def transform_command(
    ctx: typer.Context,
    kinds: List[TransformKind] = typer.Argument(..., case_sensitive=False),
) -> None:
    """Apply value transforms to stdin, in order."""
    sensitive = normalize_name_list(
        transform_defaults(config_path=_config_path(ctx)).get("sensitive_keys")
    )
    with _invalid_input_exits():
        tokens = parse(_read_stdin())
    for kind in kinds:
        if kind is TransformKind.MASK_SENSITIVE and sensitive:
            tokens = mask_sensitive(tokens, sensitive)
        else:
            tokens = apply_transform(tokens, kind)
    typer.echo(format_stream(tokens, _separator(ctx)))


@app.command("from-json")
def from_json() -> None:
    """Convert a JSON object on stdin to a token stream."""
    with _invalid_input_exits():
        typer.echo(json_to_stream(_read_stdin()))


@app.command("to-json")
def to_json() -> None:
    """Convert a token stream on stdin to a JSON object keyed by namespace."""
    with _invalid_input_exits():
        typer.echo(stream_to_json(_read_stdin()))


@app.command("from-csv")
def from_csv() -> None:
    """Convert CSV on stdin to a token stream, one namespace per row."""
    with _invalid_input_exits():
        typer.echo(csv_to_stream(_read_stdin()))


def run() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
