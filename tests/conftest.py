from __future__ import annotations

import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for _path in (ROOT, ROOT / "src"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


import pytest

from tests.env_helpers import env_scope as _env_scope

MIXED_STREAM = (
    'host="localhost"; ns=db; user="admin"; pass="secret"; '
    'ui:theme="dark"; ns=global; debug="true"'
)


@pytest.fixture
def mixed_stream() -> str:
    return MIXED_STREAM


@pytest.fixture
def env_scope():
    return _env_scope


@pytest.fixture
def write_config(tmp_path: Path):
    def _write(body: str, name: str = "xstream.toml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
        return path

    return _write
