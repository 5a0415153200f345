"""Shared Pydantic models for the flow visualization engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

NodeType = Literal["contract", "user", "token", "operation", "step"]
NodeStatus = Literal["active", "pending", "success", "error", "waiting"]
EdgeType = Literal["transaction", "approval", "transfer", "call", "dependency", "data"]
EdgeStatus = Literal["pending", "confirmed", "failed", "simulated"]
LayoutAlgorithm = Literal["hierarchical", "force", "circular", "grid", "dagre"]
LayoutDirection = Literal["horizontal", "vertical", "TB", "BT", "LR", "RL"]
OperationType = Literal["swap", "batch", "conditional", "timelocked"]
OperationStatus = Literal["pending", "simulating", "executing", "completed", "failed", "reverted"]
Impact = Literal["low", "medium", "high"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Operation Source inputs
# ---------------------------------------------------------------------------


class Step(BaseModel):
    """A single contract call inside an operation."""

    id: str
    contract: str
    function: str
    args: List[Any] = Field(default_factory=list)
    value: Optional[int] = Field(default=None, ge=0)
    gas_limit: Optional[int] = Field(default=None, ge=0)
    executed: bool = False
    transaction_hash: Optional[str] = None
    gas_used: Optional[int] = Field(default=None, ge=0)
    error: Optional[str] = None


class OperationMetadata(BaseModel):
    title: str
    description: str = ""
    category: str = "general"
    estimated_gas: Optional[int] = Field(default=None, ge=0)
    estimated_cost: Optional[int] = Field(default=None, ge=0)
    risk_level: Impact = "low"
    tags: List[str] = Field(default_factory=list)


class Operation(BaseModel):
    """Ordered sequence of dependent steps executed against one or more contracts."""

    id: str
    type: OperationType = "batch"
    status: OperationStatus = "pending"
    metadata: OperationMetadata
    steps: List[Step] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("steps")
    @classmethod
    def _unique_step_ids(cls, steps: List[Step]) -> List[Step]:
        seen = set()
        for step in steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id: {step.id}")
            seen.add(step.id)
        return steps


# ---------------------------------------------------------------------------
# Diagram model
# ---------------------------------------------------------------------------


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class NodeMetadata(BaseModel):
    contract_type: Optional[str] = None
    token_symbol: Optional[str] = None
    balance: Optional[int] = None
    functions: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    step_id: Optional[str] = None
    step_index: Optional[int] = Field(default=None, ge=0)


class NodeStyle(BaseModel):
    background_color: Optional[str] = None
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    opacity: Optional[float] = None
    border_style: Optional[Literal["solid", "dashed", "dotted"]] = None
    box_shadow: Optional[str] = None


class NodeData(BaseModel):
    name: str
    address: Optional[str] = None
    status: NodeStatus = "pending"
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)
    progress: Optional[float] = Field(default=None, ge=0, le=100)


class FlowNode(BaseModel):
    id: str
    type: NodeType
    position: Position = Field(default_factory=Position)
    data: NodeData
    style: NodeStyle = Field(default_factory=NodeStyle)


class EdgeMetadata(BaseModel):
    function_name: Optional[str] = None
    parameters: List[Any] = Field(default_factory=list)
    gas_estimate: Optional[int] = None
    value: Optional[int] = None
    description: Optional[str] = None
    step_index: Optional[int] = Field(default=None, ge=0)


class EdgeStyle(BaseModel):
    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_dasharray: Optional[str] = None
    opacity: Optional[float] = None


class EdgeData(BaseModel):
    amount: Optional[int] = None
    gas_used: Optional[int] = None
    timestamp: float
    status: EdgeStatus = "pending"
    transaction_hash: Optional[str] = None
    label: Optional[str] = None
    metadata: EdgeMetadata = Field(default_factory=EdgeMetadata)


class FlowEdge(BaseModel):
    id: str
    source: str
    target: str
    type: EdgeType
    data: EdgeData
    animated: bool = False
    style: EdgeStyle = Field(default_factory=EdgeStyle)


class Spacing(BaseModel):
    node: float = Field(default=100, gt=0)
    level: float = Field(default=150, gt=0)
    rank: float = Field(default=100, gt=0)


class AnimationConfig(BaseModel):
    enabled: bool = True
    duration: int = Field(default=500, ge=0)
    easing: Literal["linear", "ease", "ease-in", "ease-out", "ease-in-out"] = "ease-in-out"


class ForceConfig(BaseModel):
    """Constants for the force-directed layout."""

    iterations: int = Field(default=100, ge=0)
    attraction: float = 0.01
    repulsion: float = 10000.0
    damping: float = 0.95


class LayoutConfig(BaseModel):
    algorithm: LayoutAlgorithm = "hierarchical"
    direction: LayoutDirection = "TB"
    spacing: Spacing = Field(default_factory=Spacing)
    clustering: bool = True
    animation: AnimationConfig = Field(default_factory=AnimationConfig)
    force: ForceConfig = Field(default_factory=ForceConfig)


class DiagramMetadata(BaseModel):
    operation_id: str
    operation_type: str
    created_at: datetime = Field(default_factory=_utcnow)
    total_steps: int = Field(default=0, ge=0)
    estimated_gas: int = 0
    estimated_duration: float = 0


class FlowDiagram(BaseModel):
    """Node/edge graph of an operation with layout-assigned positions."""

    id: str
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    metadata: DiagramMetadata

    def node(self, node_id: str) -> Optional[FlowNode]:
        return next((node for node in self.nodes if node.id == node_id), None)

    def step_nodes(self) -> List[FlowNode]:
        return [node for node in self.nodes if node.type == "step"]


# ---------------------------------------------------------------------------
# Progress and simulation
# ---------------------------------------------------------------------------


class ExecutionProgress(BaseModel):
    """Point-in-time execution snapshot produced by the Operation Source."""

    operation_id: str
    current_step: int = Field(default=0, ge=0)
    total_steps: int = Field(default=0, ge=0)
    completed_steps: List[str] = Field(default_factory=list)
    failed_steps: List[str] = Field(default_factory=list)
    current_step_progress: float = Field(default=0, ge=0, le=100)
    overall_progress: float = Field(default=0, ge=0, le=100)
    elapsed_time: float = Field(default=0, ge=0)
    estimated_time_remaining: float = Field(default=0, ge=0)
    gas_used: int = Field(default=0, ge=0)


class StateChange(BaseModel):
    contract: str
    property: str
    before: Any = None
    after: Any = None
    impact: Impact = "low"


class StepSimulationResult(BaseModel):
    step_id: str
    success: bool
    gas_estimate: int
    execution_time: float
    state_changes: List[StateChange] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class SimulationResults(BaseModel):
    step_results: List[StepSimulationResult] = Field(default_factory=list)
    total_gas_estimate: int = 0
    estimated_duration: float = 0
    success_rate: float = 0
    potential_issues: List[str] = Field(default_factory=list)


class SimulationVisualization(FlowDiagram):
    simulation_results: SimulationResults


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class GasUsagePoint(BaseModel):
    timestamp: float
    step: str
    gas_used: int
    cumulative_gas: int


class TimelineEvent(BaseModel):
    timestamp: float
    step: str
    event: str
    status: Literal["success", "error", "pending"]
    duration: Optional[float] = None


class NodeMetric(BaseModel):
    node_id: str
    interactions: int = 0
    gas_consumed: int = 0
    success_rate: float = 0
    average_response_time: float = 0


class EdgeMetric(BaseModel):
    edge_id: str
    executions: int = 0
    total_gas: int = 0
    average_gas: int = 0
    success_rate: float = 0
    average_latency: float = 0


class FlowAnalytics(BaseModel):
    operation_id: str
    total_gas_used: int = 0
    total_cost: int = 0
    execution_time: float = 0
    success_rate: float = 0
    total_value: int = 0
    gas_history: List[GasUsagePoint] = Field(default_factory=list)
    timeline: List[TimelineEvent] = Field(default_factory=list)
    node_metrics: List[NodeMetric] = Field(default_factory=list)
    edge_metrics: List[EdgeMetric] = Field(default_factory=list)


__all__ = [
    "AnimationConfig",
    "DiagramMetadata",
    "EdgeData",
    "EdgeMetadata",
    "EdgeMetric",
    "EdgeStyle",
    "ExecutionProgress",
    "FlowAnalytics",
    "FlowDiagram",
    "FlowEdge",
    "FlowNode",
    "ForceConfig",
    "GasUsagePoint",
    "LayoutConfig",
    "NodeData",
    "NodeMetadata",
    "NodeMetric",
    "NodeStyle",
    "Operation",
    "OperationMetadata",
    "Position",
    "SimulationResults",
    "SimulationVisualization",
    "Spacing",
    "StateChange",
    "Step",
    "StepSimulationResult",
    "TimelineEvent",
]
