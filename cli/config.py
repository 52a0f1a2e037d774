from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0

_BASE_URL_ENV = "API_BASE_URL"
_TIMEOUT_ENV = "CLI_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT


def _env_timeout() -> float:
    raw = (os.getenv(_TIMEOUT_ENV) or "").strip()
    try:
        timeout = float(raw) if raw else DEFAULT_TIMEOUT
    except ValueError:
        return DEFAULT_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_TIMEOUT


def load_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    """Resolve CLI settings: explicit flags first, then environment, then defaults."""
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    return CLIConfig(
        base_url=url.rstrip("/"),
        timeout=timeout if timeout is not None else _env_timeout(),
    )
