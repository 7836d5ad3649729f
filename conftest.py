"""Root conftest: applies .env.test to the environment before settings are imported."""
from __future__ import annotations

import os
from pathlib import Path


def _load_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip()
    return values


_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for _key, _value in _load_env_file(_env_test).items():
        os.environ.setdefault(_key, _value)
