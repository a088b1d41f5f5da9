from __future__ import annotations

import os
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "xstream.toml"
CONFIG_ENV = "XSTREAM_CONFIG"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def resolve_config_path(
    root: Path | None = None, config_path: Path | None = None
) -> Path:
    if config_path is not None:
        return config_path
    env_path = os.getenv(CONFIG_ENV, "").strip()
    if env_path:
        return Path(env_path)
    base = root if root is not None else Path.cwd()
    return base / DEFAULT_CONFIG_NAME


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _load_toml(resolve_config_path(root=root, config_path=config_path))


def _section(name: str, root: Path | None, config_path: Path | None) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def parse_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section("parse", root, config_path)


def bucket_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section("bucket", root, config_path)


def merge_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section("merge", root, config_path)


def gate_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section("gate", root, config_path)


def transform_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section("transform", root, config_path)


def normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def as_int(value: TomlValue) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    """Overlay explicit values on config defaults; ``None`` means unset."""
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged
