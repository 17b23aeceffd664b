from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterator, Optional


_ENV_LINE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=(.*)$")


def _strip_value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    # Unquoted values may carry a trailing comment.
    return value.split(" #", 1)[0].rstrip()


def _read_pairs(path: Path) -> Iterator[tuple[str, str]]:
    try:
        text = path.read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return
    for line in text.splitlines():
        match = _ENV_LINE.match(line.strip())
        if match:
            yield match.group(1), _strip_value(match.group(2))


def load_env_file(path: Path) -> list[str]:
    """Fill unset or blank environment variables from a dotenv file.

    Variables that already hold a non-empty value are left alone. Returns the
    keys that were written.
    """
    if not path.is_file():
        return []
    applied: list[str] = []
    for key, value in _read_pairs(path):
        if str(os.environ.get(key) or "").strip():
            continue
        os.environ[key] = value
        applied.append(key)
    return applied


def project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def load_env_files(anchor: Optional[Path] = None) -> list[Path]:
    """Load ``.env`` from ``anchor`` (default: cwd), then from the project root."""
    seen: list[Path] = []
    for base in (Path(anchor or Path.cwd()), project_root()):
        env_path = (base / ".env").resolve()
        if env_path not in seen:
            seen.append(env_path)
            load_env_file(env_path)
    return seen
