"""Analytics aggregation over a diagram and its latest execution snapshot."""

from __future__ import annotations

from typing import Dict, List, Optional

from .models import (
    EdgeMetric,
    ExecutionProgress,
    FlowAnalytics,
    FlowDiagram,
    FlowEdge,
    GasUsagePoint,
    NodeMetric,
    TimelineEvent,
)


def _call_edges(diagram: FlowDiagram) -> List[FlowEdge]:
    return [edge for edge in diagram.edges if edge.type == "call"]


def _edge_gas(edge: FlowEdge) -> int:
    if edge.data.gas_used is not None:
        return edge.data.gas_used
    return edge.data.metadata.gas_estimate or 0


def _step_outcomes(diagram: FlowDiagram, progress: Optional[ExecutionProgress]) -> Dict[str, str]:
    """Map step node ids to ``success``, ``error`` or ``pending``."""

    completed = set(progress.completed_steps) if progress else set()
    failed = set(progress.failed_steps) if progress else set()
    outcomes: Dict[str, str] = {}
    for node in diagram.step_nodes():
        step_id = node.data.metadata.step_id or node.id[len("step-"):]
        if step_id in completed or (progress is None and node.data.status == "success"):
            outcomes[node.id] = "success"
        elif step_id in failed or (progress is None and node.data.status == "error"):
            outcomes[node.id] = "error"
        else:
            outcomes[node.id] = "pending"
    return outcomes


def build_flow_analytics(
    diagram: FlowDiagram,
    progress: Optional[ExecutionProgress],
    *,
    gas_price: int = 0,
) -> FlowAnalytics:
    """Summarise gas, timing and per-contract activity.

    ``total_cost`` is ``total_gas_used * gas_price`` (wei); it stays 0 unless the
    caller supplies a price.
    """

    outcomes = _step_outcomes(diagram, progress)
    calls = _call_edges(diagram)
    timestamp = diagram.metadata.created_at.timestamp()
    steps = diagram.step_nodes()
    step_count = len(steps)
    average_step_time = (progress.elapsed_time / step_count) if progress and step_count else 0.0

    gas_history: List[GasUsagePoint] = []
    timeline: List[TimelineEvent] = []
    cumulative = 0
    edges_by_step = {edge.source: edge for edge in calls}
    for offset, node in enumerate(steps):
        outcome = outcomes[node.id]
        edge = edges_by_step.get(node.id)
        event_time = timestamp + offset * average_step_time
        if outcome == "success" and edge is not None:
            gas = _edge_gas(edge)
            cumulative += gas
            gas_history.append(
                GasUsagePoint(timestamp=event_time, step=node.id, gas_used=gas, cumulative_gas=cumulative)
            )
        timeline.append(
            TimelineEvent(
                timestamp=event_time,
                step=node.id,
                event=node.data.name,
                status=outcome,  # type: ignore[arg-type]
                duration=average_step_time if outcome != "pending" else None,
            )
        )

    node_metrics: List[NodeMetric] = []
    for node in diagram.nodes:
        if node.type != "contract":
            continue
        incoming = [edge for edge in calls if edge.target == node.id]
        finished = [edge for edge in incoming if outcomes.get(edge.source) != "pending"]
        succeeded = [edge for edge in incoming if outcomes.get(edge.source) == "success"]
        node_metrics.append(
            NodeMetric(
                node_id=node.id,
                interactions=len(incoming),
                gas_consumed=sum(_edge_gas(edge) for edge in succeeded),
                success_rate=len(succeeded) / len(finished) if finished else 0.0,
                average_response_time=average_step_time if finished else 0.0,
            )
        )

    edge_metrics: List[EdgeMetric] = []
    for edge in calls:
        outcome = outcomes.get(edge.source, "pending")
        executions = 0 if outcome == "pending" else 1
        gas = _edge_gas(edge) if outcome == "success" else 0
        edge_metrics.append(
            EdgeMetric(
                edge_id=edge.id,
                executions=executions,
                total_gas=gas,
                average_gas=gas,
                success_rate=1.0 if outcome == "success" else 0.0,
                average_latency=average_step_time if executions else 0.0,
            )
        )

    if progress is not None:
        success_rate = len(progress.completed_steps) / progress.total_steps if progress.total_steps else 0.0
        total_gas_used = progress.gas_used
        execution_time = progress.elapsed_time
    else:
        succeeded_steps = [value for value in outcomes.values() if value == "success"]
        success_rate = len(succeeded_steps) / step_count if step_count else 0.0
        total_gas_used = cumulative
        execution_time = 0.0

    return FlowAnalytics(
        operation_id=diagram.metadata.operation_id,
        total_gas_used=total_gas_used,
        total_cost=total_gas_used * gas_price,
        execution_time=execution_time,
        success_rate=success_rate,
        total_value=sum(edge.data.metadata.value or 0 for edge in calls),
        gas_history=gas_history,
        timeline=timeline,
        node_metrics=node_metrics,
        edge_metrics=edge_metrics,
    )


__all__ = ["build_flow_analytics"]
