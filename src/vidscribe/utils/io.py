"""File I/O utilities — atomic text writes, YAML config and JSON reports."""

from __future__ import annotations

import io
import json
import tempfile
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

_yaml = YAML()
_yaml.preserve_quotes = True
_yaml.default_flow_style = False


def write_atomic(path: Path | str, text: str) -> None:
    """Write text next to the target, then rename over it.

    Readers of a rollup report or config file never observe a half-written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        suffix=path.suffix,
        delete=False,
        encoding="utf-8",
    ) as tmp:
        tmp.write(text)
        tmp_path = Path(tmp.name)

    tmp_path.replace(path)


def read_yaml(path: Path | str) -> dict:
    """Read a YAML mapping; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return dict(_yaml.load(f) or {})


def write_yaml(path: Path | str, data: dict) -> None:
    buf = io.StringIO()
    _yaml.dump(data, buf)
    write_atomic(path, buf.getvalue())


def read_json(path: Path | str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path | str, data: Any) -> None:
    write_atomic(path, json.dumps(data, indent=2, default=str))
