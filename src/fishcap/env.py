"""Developer `.env` loading for API keys and client tuning."""

from __future__ import annotations

import os
from pathlib import Path

_ENV_LOADED = False


def _parse_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    line = line.removeprefix("export ").strip()
    if "=" not in line:
        return None

    key, value = (part.strip() for part in line.split("=", 1))
    if not key:
        return None

    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return key, value


def find_env_file(start: Path | None = None) -> Path | None:
    """Return the nearest `.env` at or above ``start`` (default: cwd)."""
    base = start or Path.cwd()
    for directory in (base, *base.parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return candidate
    return None


def load_dotenv(*, override: bool = False) -> Path | None:
    """
    Load the nearest `.env` into ``os.environ`` once per process.

    Variables already set in the environment win unless ``override`` is true.
    Returns the file that was read, if any.
    """
    global _ENV_LOADED
    if _ENV_LOADED and not override:
        return None

    env_path = find_env_file()
    _ENV_LOADED = True
    if env_path is None:
        return None

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_line(raw_line)
        if parsed is None:
            continue
        key, value = parsed
        if override or key not in os.environ:
            os.environ[key] = value

    return env_path
