"""Progress Tracker: project an execution snapshot onto diagram state."""

from __future__ import annotations

from .models import ExecutionProgress, FlowDiagram
from .styles import edge_style, step_node_style


def apply_progress(diagram: FlowDiagram, progress: ExecutionProgress) -> FlowDiagram:
    """Overwrite step node and step edge state from ``progress``.

    Only the latest snapshot matters; nothing is accumulated, so applying the
    same snapshot twice is a no-op and ``current_step`` may move backwards when
    a step is retried.
    """

    completed = set(progress.completed_steps)
    failed = set(progress.failed_steps)

    for position, node in enumerate(diagram.step_nodes()):
        meta = node.data.metadata
        step_id = meta.step_id or node.id[len("step-"):]
        index = meta.step_index if meta.step_index is not None else position
        if step_id in completed:
            status, value = "success", 100.0
        elif step_id in failed:
            status, value = "error", 0.0
        elif index == progress.current_step:
            status, value = "active", float(progress.current_step_progress)
        else:
            status, value = "pending", 0.0
        node.data.status = status  # type: ignore[assignment]
        node.data.progress = value
        node.style = step_node_style(status)

    for edge in diagram.edges:
        index = edge.data.metadata.step_index
        if index is None:
            continue
        if index < progress.current_step:
            edge.data.status = "confirmed"
            edge.animated = False
        elif index == progress.current_step:
            edge.data.status = "pending"
            edge.animated = True
        else:
            edge.data.status = "pending"
            edge.animated = False
        edge.style = edge_style(edge.type, edge.data.status)

    return diagram


__all__ = ["apply_progress"]
