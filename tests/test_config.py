from __future__ import annotations

from pathlib import Path

from xstream.config import (
    CONFIG_ENV,
    DEFAULT_CONFIG_NAME,
    as_int,
    bucket_defaults,
    gate_defaults,
    load_config,
    merge_defaults,
    merge_payload,
    normalize_name_list,
    parse_defaults,
    resolve_config_path,
    transform_defaults,
)


def test_section_defaults_read_toml(write_config) -> None:
    path = write_config(
        """
        [parse]
        separator = ";"

        [bucket]
        mode = "tree"

        [merge]
        strategy = "priority"
        priority = ["db", "ui"]
        collision = "annotate"

        [gate]
        min_tokens = 2
        max_tokens = 10

        [transform]
        sensitive_keys = ["pin"]
        """
    )
    assert parse_defaults(config_path=path) == {"separator": ";"}
    assert bucket_defaults(config_path=path)["mode"] == "tree"
    merge = merge_defaults(config_path=path)
    assert merge["strategy"] == "priority"
    assert merge["priority"] == ["db", "ui"]
    assert merge["collision"] == "annotate"
    assert gate_defaults(config_path=path) == {"min_tokens": 2, "max_tokens": 10}
    assert transform_defaults(config_path=path)["sensitive_keys"] == ["pin"]


def test_default_config_name_under_root(tmp_path: Path, write_config, env_scope) -> None:
    write_config('[bucket]\nmode = "flat"', name=DEFAULT_CONFIG_NAME)
    with env_scope({CONFIG_ENV: None}):
        assert resolve_config_path(root=tmp_path) == tmp_path / DEFAULT_CONFIG_NAME
        assert bucket_defaults(root=tmp_path) == {"mode": "flat"}


def test_env_var_overrides_root(tmp_path: Path, write_config, env_scope) -> None:
    write_config('[bucket]\nmode = "flat"', name=DEFAULT_CONFIG_NAME)
    other = write_config('[bucket]\nmode = "tree"', name="other.toml")
    with env_scope({CONFIG_ENV: str(other)}):
        assert resolve_config_path(root=tmp_path) == other
        assert bucket_defaults(root=tmp_path) == {"mode": "tree"}


def test_explicit_path_beats_env(tmp_path: Path, write_config, env_scope) -> None:
    explicit = write_config('[gate]\nmin_tokens = 1', name="explicit.toml")
    with env_scope({CONFIG_ENV: str(tmp_path / "missing.toml")}):
        assert resolve_config_path(root=tmp_path, config_path=explicit) == explicit
        assert gate_defaults(config_path=explicit) == {"min_tokens": 1}


def test_missing_or_invalid_config_is_empty(tmp_path: Path, write_config) -> None:
    assert load_config(config_path=tmp_path / "absent.toml") == {}
    broken = write_config("[merge\nstrategy =", name="broken.toml")
    assert load_config(config_path=broken) == {}


def test_non_table_section_is_ignored(write_config) -> None:
    path = write_config('merge = "dedupe"')
    assert merge_defaults(config_path=path) == {}


def test_normalize_name_list() -> None:
    assert normalize_name_list(None) == []
    assert normalize_name_list("db, ui,,") == ["db", "ui"]
    assert normalize_name_list(["db", "ui,cache", 3, " "]) == ["db", "ui", "cache"]
    assert normalize_name_list(7) == []


def test_as_int() -> None:
    assert as_int(3) == 3
    assert as_int("-4") == -4
    assert as_int(True) is None
    assert as_int("three") is None
    assert as_int(None) is None


def test_merge_payload_prefers_explicit_values() -> None:
    defaults = {"strategy": "dedupe", "collision": "keep_first"}
    merged = merge_payload({"strategy": "sort", "collision": None, "priority": None}, defaults)
    assert merged == {"strategy": "sort", "collision": "keep_first"}
    assert defaults == {"strategy": "dedupe", "collision": "keep_first"}
