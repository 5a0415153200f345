"""Configuration helpers for the flow visualization engine."""

from __future__ import annotations

import json
import math
import os
from functools import lru_cache
from pathlib import Path
from typing import Iterable

_DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "..", "config", "flowviz.json")
_LAYOUT_ALGORITHMS = ("hierarchical", "force", "circular", "grid", "dagre")

DEFAULT_STATE_DIR = Path("storage/flowviz/diagrams")
DEFAULT_STATE_DB = Path("storage/flowviz/diagrams.db")


def _load_json(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _config_payload() -> dict:
    return _load_json(os.getenv("FLOWVIZ_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)


def _coerce_positive(raw: object) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip().replace("_", "")
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _number_from_sources(env_keys: Iterable[str], field: str, fallback: float) -> float:
    for key in env_keys:
        parsed = _coerce_positive(os.getenv(key))
        if parsed is not None:
            return parsed
    parsed = _coerce_positive(_config_payload().get(field))
    if parsed is not None:
        return parsed
    return fallback


@lru_cache(maxsize=1)
def get_fallback_gas() -> int:
    """Gas assumed for a step that declares no gas limit."""

    return int(_number_from_sources(("FLOWVIZ_FALLBACK_GAS",), "fallbackGas", 100_000))


@lru_cache(maxsize=1)
def get_block_gas_limit() -> int:
    """Upper bound used to flag operations that cannot fit a single block."""

    return int(_number_from_sources(("FLOWVIZ_BLOCK_GAS_LIMIT",), "blockGasLimit", 30_000_000))


@lru_cache(maxsize=1)
def get_step_base_ms() -> float:
    return _number_from_sources(("FLOWVIZ_STEP_BASE_MS",), "stepBaseMs", 1000.0)


@lru_cache(maxsize=1)
def get_gas_per_ms() -> float:
    return _number_from_sources(("FLOWVIZ_GAS_PER_MS",), "gasPerMs", 50.0)


@lru_cache(maxsize=1)
def get_default_layout_algorithm() -> str:
    candidates = [os.getenv("FLOWVIZ_LAYOUT_ALGORITHM"), _config_payload().get("layoutAlgorithm")]
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip().lower() in _LAYOUT_ALGORITHMS:
            return candidate.strip().lower()
    return "hierarchical"


def get_state_backend() -> str:
    return os.environ.get("FLOWVIZ_STATE_BACKEND", "file").strip().lower()


def get_state_location(backend: str) -> Path:
    if backend == "sqlite":
        return Path(os.environ.get("FLOWVIZ_STATE_URL", str(DEFAULT_STATE_DB)))
    return Path(os.environ.get("FLOWVIZ_STATE_DIR", str(DEFAULT_STATE_DIR)))


def clear_caches() -> None:
    """Drop memoised settings so environment overrides take effect."""

    for getter in (
        get_fallback_gas,
        get_block_gas_limit,
        get_step_base_ms,
        get_gas_per_ms,
        get_default_layout_algorithm,
    ):
        getter.cache_clear()
