"""Shared fixtures for the flow visualization suites."""

from __future__ import annotations

import os
import sys
from typing import Callable, Sequence

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

pytest.importorskip("pydantic")

from flowviz import config
from flowviz.models import Operation, OperationMetadata, Step
from flowviz_helpers import CONTRACT_A, CONTRACT_B, build_step

_ENV_KEYS = (
    "FLOWVIZ_FALLBACK_GAS",
    "FLOWVIZ_BLOCK_GAS_LIMIT",
    "FLOWVIZ_STEP_BASE_MS",
    "FLOWVIZ_GAS_PER_MS",
    "FLOWVIZ_LAYOUT_ALGORITHM",
    "FLOWVIZ_STATE_BACKEND",
    "FLOWVIZ_STATE_URL",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FLOWVIZ_CONFIG_PATH", str(tmp_path / "absent.json"))
    monkeypatch.setenv("FLOWVIZ_STATE_DIR", str(tmp_path / "diagrams"))
    config.clear_caches()
    yield
    config.clear_caches()


@pytest.fixture
def make_operation() -> Callable[..., Operation]:
    def _make(steps: Sequence[Step] = (), op_id: str = "op-1", **metadata) -> Operation:
        payload = {"title": "Test operation"}
        payload.update(metadata)
        return Operation(
            id=op_id,
            type="batch",
            metadata=OperationMetadata(**payload),
            steps=list(steps),
        )

    return _make


@pytest.fixture
def three_step_operation(make_operation) -> Operation:
    return make_operation(
        [
            build_step("s0", CONTRACT_A, "approve", gas_limit=50_000),
            build_step("s1", CONTRACT_B, "swap", gas_limit=120_000, value=10**17),
            build_step("s2", CONTRACT_A, "transfer", gas_limit=60_000),
        ]
    )
