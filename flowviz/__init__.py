"""Flow visualization for multi-step smart-contract operations."""

from __future__ import annotations

from importlib import import_module
from types import ModuleType
from typing import Any, Dict

_MODULES = [
    "analytics",
    "builder",
    "config",
    "engine",
    "export",
    "layout",
    "models",
    "progress",
    "simulator",
    "state",
    "styles",
]

# Public names re-exported from their defining module on first access.
_EXPORTS = {
    "FlowVisualizationEngine": "engine",
    "DiagramNotFoundError": "engine",
    "DiagramStateError": "state",
    "ExportError": "export",
    "UnsupportedFormatError": "export",
}

__all__ = list(_MODULES) + list(_EXPORTS)

_CACHE: Dict[str, ModuleType] = {}


def _module(name: str) -> ModuleType:
    if name not in _CACHE:
        _CACHE[name] = import_module(f".{name}", __name__)
    return _CACHE[name]


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        return getattr(_module(_EXPORTS[name]), name)
    if name in _MODULES:
        return _module(name)
    raise AttributeError(name)


def __dir__() -> list[str]:
    return sorted(set(__all__ + list(globals().keys())))
