"""Flow visualization engine tying builder, layout, progress, simulation and export together."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from prometheus_client import Counter, Histogram

from .analytics import build_flow_analytics
from .builder import build_flow_diagram, resolve_layout_config
from .config import get_default_layout_algorithm
from .export import check_format, render
from .layout import apply_layout
from .models import (
    ExecutionProgress,
    FlowAnalytics,
    FlowDiagram,
    LayoutConfig,
    Operation,
    SimulationVisualization,
)
from .progress import apply_progress
from .simulator import simulate_operation
from .state import DiagramStateError, DiagramStateStore, get_store

_LOGGER = logging.getLogger(__name__)

_BUILD_LATENCY = Histogram(
    "flowviz_build_latency_seconds",
    "Time spent building and laying out flow diagrams.",
)
_SIM_LATENCY = Histogram(
    "flowviz_simulate_latency_seconds",
    "Time spent simulating operations.",
)
_PROGRESS_UPDATES = Counter("flowviz_progress_updates_total", "Execution progress snapshots applied.")
_EXPORTS = Counter("flowviz_exports_total", "Diagram exports.", ["format"])
_STORE_FAILURES = Counter("flowviz_store_failures_total", "Diagram persistence failures.")


class DiagramNotFoundError(LookupError):
    """Raised when no diagram is registered for an operation id."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Flow diagram not found for operation {operation_id}")
        self.operation_id = operation_id


class FlowVisualizationEngine:
    """Registry of live diagrams keyed by operation id.

    One instance is created per application session and passed to whoever
    needs it. It is not thread-safe: every call is expected to come from the
    same event loop, and each call applies its mutation fully before
    returning.
    """

    def __init__(
        self,
        store: DiagramStateStore | None = None,
        *,
        default_layout: LayoutConfig | Mapping[str, Any] | None = None,
        persist: bool = True,
    ) -> None:
        self._default_layout = resolve_layout_config(
            default_layout, default_algorithm=get_default_layout_algorithm()
        )
        self._diagrams: Dict[str, FlowDiagram] = {}
        self._progress: Dict[str, ExecutionProgress] = {}
        self._simulations: Dict[str, SimulationVisualization] = {}
        self._store: DiagramStateStore | None = None
        if persist:
            try:
                self._store = store if store is not None else get_store()
            except DiagramStateError as exc:
                _LOGGER.warning("flowviz.state.unavailable", extra={"error": str(exc)})
        self._load_persisted()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load_persisted(self) -> None:
        if self._store is None:
            return
        try:
            restored = self._store.load_all()
        except DiagramStateError as exc:
            _LOGGER.warning("flowviz.state.load_failed", extra={"error": str(exc)})
            return
        self._diagrams.update(restored)
        if restored:
            _LOGGER.info("flowviz.state.restored", extra={"diagrams": len(restored)})

    def _persist(self, diagram: FlowDiagram) -> None:
        if self._store is None:
            return
        try:
            self._store.save(diagram)
        except DiagramStateError as exc:
            _STORE_FAILURES.inc()
            _LOGGER.warning(
                "flowviz.state.save_failed",
                extra={"diagram_id": diagram.id, "error": str(exc)},
            )

    def _layout(self, overrides: LayoutConfig | Mapping[str, Any] | None) -> LayoutConfig:
        return resolve_layout_config(overrides, base=self._default_layout)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def generate_flow_diagram(
        self,
        operation: Operation,
        layout_config: LayoutConfig | Mapping[str, Any] | None = None,
    ) -> FlowDiagram:
        """Build, lay out, register and persist the diagram for ``operation``."""

        with _BUILD_LATENCY.time():
            layout = self._layout(layout_config)
            diagram = build_flow_diagram(operation, layout)
            apply_layout(diagram.nodes, diagram.edges, layout)
        if operation.id in self._diagrams:
            _LOGGER.info("flowviz.diagram.rebuilt", extra={"operation_id": operation.id})
        self._diagrams[operation.id] = diagram
        self._persist(diagram)
        _LOGGER.info(
            "flowviz.diagram.generated",
            extra={
                "operation_id": operation.id,
                "algorithm": layout.algorithm,
                "nodes": len(diagram.nodes),
                "edges": len(diagram.edges),
            },
        )
        return diagram

    def update_flow_progress(self, operation_id: str, progress: ExecutionProgress) -> None:
        """Record ``progress`` and project it onto the registered diagram in place."""

        self._progress[operation_id] = progress
        _PROGRESS_UPDATES.inc()
        diagram = self._diagrams.get(operation_id)
        if diagram is None:
            _LOGGER.debug("flowviz.progress.no_diagram", extra={"operation_id": operation_id})
            return
        apply_progress(diagram, progress)
        self._persist(diagram)
        _LOGGER.debug(
            "flowviz.progress.applied",
            extra={
                "operation_id": operation_id,
                "current_step": progress.current_step,
                "overall_progress": progress.overall_progress,
            },
        )

    def get_flow_diagram(self, operation_id: str) -> Optional[FlowDiagram]:
        return self._diagrams.get(operation_id)

    def get_execution_progress(self, operation_id: str) -> Optional[ExecutionProgress]:
        return self._progress.get(operation_id)

    def get_all_flow_diagrams(self) -> List[FlowDiagram]:
        return list(self._diagrams.values())

    def simulate_flow(self, operation: Operation) -> SimulationVisualization:
        """Return the cached simulation for ``operation``, computing it on first use."""

        cached = self._simulations.get(operation.id)
        if cached is not None:
            return cached
        with _SIM_LATENCY.time():
            simulation = simulate_operation(operation, self._layout(None))
        self._simulations[operation.id] = simulation
        results = simulation.simulation_results
        _LOGGER.info(
            "flowviz.simulation.completed",
            extra={
                "operation_id": operation.id,
                "total_gas": results.total_gas_estimate,
                "success_rate": results.success_rate,
                "issues": results.potential_issues,
            },
        )
        return simulation

    def export_flow_diagram(self, operation_id: str, fmt: str) -> str:
        normalized = check_format(fmt)
        diagram = self._diagrams.get(operation_id)
        if diagram is None:
            raise DiagramNotFoundError(operation_id)
        output = render(diagram, normalized)
        _EXPORTS.labels(format=normalized).inc()
        _LOGGER.info("flowviz.diagram.exported", extra={"operation_id": operation_id, "format": normalized})
        return output

    def generate_flow_analytics(self, operation_id: str, *, gas_price: int = 0) -> FlowAnalytics:
        diagram = self._diagrams.get(operation_id)
        if diagram is None:
            raise DiagramNotFoundError(operation_id)
        return build_flow_analytics(diagram, self._progress.get(operation_id), gas_price=gas_price)

    def remove_flow_diagram(self, operation_id: str) -> bool:
        """Evict a diagram from the registry and the store."""

        diagram = self._diagrams.pop(operation_id, None)
        self._progress.pop(operation_id, None)
        if self._store is not None:
            try:
                self._store.delete(operation_id)
            except DiagramStateError as exc:
                _STORE_FAILURES.inc()
                _LOGGER.warning("flowviz.state.delete_failed", extra={"operation_id": operation_id, "error": str(exc)})
        return diagram is not None

    def clear_cache(self) -> None:
        """Drop cached simulations; live diagrams are untouched."""

        self._simulations.clear()


__all__ = ["DiagramNotFoundError", "FlowVisualizationEngine"]
