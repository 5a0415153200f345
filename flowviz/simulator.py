"""Predictive dry run of an operation's steps for preview before execution."""

from __future__ import annotations

from typing import List, Optional

from .builder import build_flow_diagram, short_address
from .config import get_block_gas_limit, get_fallback_gas, get_gas_per_ms, get_step_base_ms
from .layout import apply_layout
from .models import (
    LayoutConfig,
    Operation,
    SimulationResults,
    SimulationVisualization,
    StateChange,
    Step,
    StepSimulationResult,
)

_HIGH_VALUE_WEI = 10**18
_MEDIUM_VALUE_WEI = 10**16


def _append_issue(issues: List[str], message: str) -> None:
    if message not in issues:
        issues.append(message)


def _value_impact(value: int) -> str:
    if value >= _HIGH_VALUE_WEI:
        return "high"
    if value >= _MEDIUM_VALUE_WEI:
        return "medium"
    return "low"


def estimate_execution_time(gas: int) -> float:
    """Deterministic wall-clock estimate in milliseconds for ``gas`` units."""

    return round(get_step_base_ms() + gas / get_gas_per_ms(), 3)


def simulate_step(step: Step) -> StepSimulationResult:
    warnings: List[str] = []
    errors: List[str] = []

    if step.gas_limit is None:
        gas_estimate = get_fallback_gas()
        warnings.append(f"No gas limit declared; assuming {gas_estimate}.")
    else:
        gas_estimate = step.gas_limit

    if not step.contract.strip():
        errors.append("CALL_TARGET_MISSING")
    if not step.function.strip():
        errors.append("CALL_DATA_MISSING")

    state_changes: List[StateChange] = []
    if step.value:
        state_changes.append(
            StateChange(
                contract=step.contract,
                property="balance",
                before=None,
                after=step.value,
                impact=_value_impact(step.value),
            )
        )

    return StepSimulationResult(
        step_id=step.id,
        success=not errors,
        gas_estimate=gas_estimate,
        execution_time=estimate_execution_time(gas_estimate),
        state_changes=state_changes,
        warnings=warnings,
        errors=errors,
    )


def _cross_step_issues(operation: Operation, total_gas: int, results: List[StepSimulationResult]) -> List[str]:
    issues: List[str] = []
    block_limit = get_block_gas_limit()
    if total_gas > block_limit:
        _append_issue(issues, f"Total gas estimate {total_gas} exceeds the block gas limit of {block_limit}.")

    declared = operation.metadata.estimated_gas
    if declared and total_gas > declared:
        _append_issue(issues, f"Simulated gas {total_gas} exceeds the declared estimate of {declared}.")

    failing = sum(1 for result in results if not result.success)
    if failing:
        _append_issue(issues, f"{failing} step(s) failed static validation.")

    for previous, step in zip(operation.steps, operation.steps[1:]):
        if previous.contract == step.contract and previous.function == step.function:
            _append_issue(
                issues,
                f"Steps {previous.id} and {step.id} call {step.function} on "
                f"{short_address(step.contract)} back to back.",
            )
    return issues


def simulate_operation(operation: Operation, layout: Optional[LayoutConfig] = None) -> SimulationVisualization:
    """Return a freshly built diagram decorated with predicted per-step outcomes.

    The pass is offline: it ignores execution progress and does not touch any
    diagram held by an engine registry.
    """

    config = layout or LayoutConfig()
    diagram = build_flow_diagram(operation, config)
    apply_layout(diagram.nodes, diagram.edges, config)

    step_results = [simulate_step(step) for step in operation.steps]
    total_gas = sum(result.gas_estimate for result in step_results)
    duration = sum(result.execution_time for result in step_results)
    successes = sum(1 for result in step_results if result.success)
    success_rate = successes / len(step_results) if step_results else 0.0

    return SimulationVisualization(
        **diagram.model_dump(),
        simulation_results=SimulationResults(
            step_results=step_results,
            total_gas_estimate=total_gas,
            estimated_duration=duration,
            success_rate=success_rate,
            potential_issues=_cross_step_issues(operation, total_gas, step_results),
        ),
    )


__all__ = ["estimate_execution_time", "simulate_operation", "simulate_step"]
