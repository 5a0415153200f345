"""Graph Builder: turn an operation's ordered steps into a node/edge diagram."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Mapping, Optional

from .models import (
    DiagramMetadata,
    EdgeData,
    EdgeMetadata,
    FlowDiagram,
    FlowEdge,
    FlowNode,
    LayoutConfig,
    NodeData,
    NodeMetadata,
    Operation,
    Position,
    Step,
)
from .styles import contract_node_style, edge_style, operation_node_style, step_node_style

# Seed coordinates; the force layout depends on them for reproducible output.
_STEP_X = -200.0
_CONTRACT_X = 200.0
_FIRST_STEP_Y = 200.0
_STEP_PITCH = 150.0
_CONTRACT_DROP = 100.0

_OPERATION_STATUS = {
    "completed": "success",
    "failed": "error",
    "executing": "active",
    "pending": "pending",
}


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_layout_config(
    overrides: LayoutConfig | Mapping[str, Any] | None = None,
    *,
    base: LayoutConfig | None = None,
    default_algorithm: str | None = None,
) -> LayoutConfig:
    """Merge a partial layout configuration over ``base`` (or the defaults).

    Nested sections such as ``spacing`` merge key by key, so
    ``{"spacing": {"node": 80}}`` keeps the default level and rank spacing.
    """

    base = base.model_copy(deep=True) if base is not None else LayoutConfig()
    if default_algorithm:
        base.algorithm = default_algorithm  # type: ignore[assignment]
    if overrides is None:
        return base
    if isinstance(overrides, LayoutConfig):
        overrides = overrides.model_dump(exclude_unset=True)
    return LayoutConfig.model_validate(_merge(base.model_dump(), overrides))


def operation_status(status: str) -> str:
    return _OPERATION_STATUS.get(status, "waiting")


def step_status(step: Step) -> str:
    if step.executed:
        return "success"
    if step.error:
        return "error"
    return "pending"


def short_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def contract_type(address: str) -> str:
    del address
    return "Smart Contract"


def _operation_node(operation: Operation) -> FlowNode:
    return FlowNode(
        id=f"operation-{operation.id}",
        type="operation",
        position=Position(x=0, y=0),
        data=NodeData(
            name=operation.metadata.title,
            status=operation_status(operation.status),
            metadata=NodeMetadata(
                description=operation.metadata.description,
                tags=list(operation.metadata.tags),
            ),
        ),
        style=operation_node_style(operation.type),
    )


def _step_node(step: Step, index: int, y: float) -> FlowNode:
    status = step_status(step)
    return FlowNode(
        id=f"step-{step.id}",
        type="step",
        position=Position(x=_STEP_X, y=y),
        data=NodeData(
            name=f"Step {index + 1}: {step.function}",
            status=status,
            metadata=NodeMetadata(
                description=f"Execute {step.function} on {step.contract}",
                functions=[step.function],
                tags=["transaction-step"],
                step_id=step.id,
                step_index=index,
            ),
            progress=100 if step.executed else 0,
        ),
        style=step_node_style(status),
    )


def _contract_node(address: str, y: float) -> FlowNode:
    kind = contract_type(address)
    return FlowNode(
        id=f"contract-{address}",
        type="contract",
        position=Position(x=_CONTRACT_X, y=y),
        data=NodeData(
            name=f"Contract {short_address(address)}",
            address=address,
            status="active",
            metadata=NodeMetadata(
                contract_type=kind,
                description=f"{kind} contract",
                tags=["contract", kind.lower()],
            ),
        ),
        style=contract_node_style(kind),
    )


def _call_edge(step: Step, index: int, source: str, target: str, timestamp: float) -> FlowEdge:
    status = "confirmed" if step.executed else "pending"
    return FlowEdge(
        id=f"edge-{step.id}-{step.contract}",
        source=source,
        target=target,
        type="call",
        data=EdgeData(
            timestamp=timestamp,
            status=status,
            amount=step.value,
            gas_used=step.gas_used,
            transaction_hash=step.transaction_hash,
            label=step.function,
            metadata=EdgeMetadata(
                function_name=step.function,
                parameters=list(step.args),
                gas_estimate=step.gas_limit,
                value=step.value,
                step_index=index,
            ),
        ),
        animated=not step.executed,
        style=edge_style("call", status),
    )


def _dependency_edge(previous: Step, step: Step, source: str, target: str, timestamp: float) -> FlowEdge:
    return FlowEdge(
        id=f"dep-{previous.id}-{step.id}",
        source=source,
        target=target,
        type="dependency",
        data=EdgeData(
            timestamp=timestamp,
            status="simulated",
            metadata=EdgeMetadata(description="Sequential dependency"),
        ),
        animated=False,
        style=edge_style("dependency", "simulated"),
    )


def build_flow_diagram(operation: Operation, layout: Optional[LayoutConfig] = None) -> FlowDiagram:
    """Return the seeded, not yet laid out diagram for ``operation``.

    Nodes and edges are emitted in step order. Contract nodes are shared by
    every step that targets the same address, and steps are chained by
    ``dependency`` edges ``i-1 -> i``.
    """

    timestamp = time.time()
    nodes: List[FlowNode] = [_operation_node(operation)]
    edges: List[FlowEdge] = []
    contract_ids: Dict[str, str] = {}
    step_ids: List[str] = []

    y = _FIRST_STEP_Y
    for index, step in enumerate(operation.steps):
        step_node = _step_node(step, index, y)
        nodes.append(step_node)
        step_ids.append(step_node.id)

        contract_id = contract_ids.get(step.contract)
        if contract_id is None:
            contract = _contract_node(step.contract, y + _CONTRACT_DROP)
            nodes.append(contract)
            contract_id = contract_ids[step.contract] = contract.id

        edges.append(_call_edge(step, index, step_node.id, contract_id, timestamp))
        if index > 0:
            previous = operation.steps[index - 1]
            edges.append(_dependency_edge(previous, step, step_ids[index - 1], step_node.id, timestamp))
        y += _STEP_PITCH

    metadata = operation.metadata
    return FlowDiagram(
        id=f"flow-{operation.id}",
        nodes=nodes,
        edges=edges,
        layout=layout or LayoutConfig(),
        metadata=DiagramMetadata(
            operation_id=operation.id,
            operation_type=operation.type,
            total_steps=len(operation.steps),
            estimated_gas=metadata.estimated_gas or 0,
            estimated_duration=float(metadata.estimated_cost or 0),
        ),
    )


__all__ = [
    "build_flow_diagram",
    "contract_type",
    "operation_status",
    "resolve_layout_config",
    "short_address",
    "step_status",
]
