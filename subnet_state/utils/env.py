from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

# Load .env once on import so every reader below sees the same values.
load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    """Read a string env var, stripping whitespace."""
    return (os.getenv(name, default) or "").strip()


def _env_int(name: str, default: int = 0) -> int:
    """Read an int env var, falling back to `default` when unset or blank."""
    v = _env_str(name, "")
    if not v:
        return int(default)
    return int(v)


def _env_float(name: str, default: float = 0.0) -> float:
    """Read a float env var, falling back to `default` when unset or blank."""
    v = _env_str(name, "")
    if not v:
        return float(default)
    return float(v)


def _env_opt_int(name: str) -> Optional[int]:
    """
    Read an int env var that has no default.

    Returns None when the variable is unset or blank and raises ValueError when
    it is set to something that is not an integer.
    """
    v = _env_str(name, "")
    if not v:
        return None
    return int(v)
