import json
import logging

import pytest

pytest.importorskip("prometheus_client")

from flowviz.engine import DiagramNotFoundError, FlowVisualizationEngine
from flowviz.export import UnsupportedFormatError
from flowviz.models import ExecutionProgress
from flowviz.state import DiagramStateError, FileDiagramStateStore


@pytest.fixture
def store(tmp_path):
    return FileDiagramStateStore(tmp_path / "diagrams")


@pytest.fixture
def engine(store):
    return FlowVisualizationEngine(store)


def _progress(**overrides):
    payload = {
        "operation_id": "op-1",
        "current_step": 1,
        "total_steps": 3,
        "completed_steps": ["s0"],
        "current_step_progress": 40,
        "overall_progress": 46,
    }
    payload.update(overrides)
    return ExecutionProgress(**payload)


def test_generate_registers_diagram(engine, three_step_operation):
    diagram = engine.generate_flow_diagram(three_step_operation)

    assert engine.get_flow_diagram("op-1") is diagram
    assert engine.get_all_flow_diagrams() == [diagram]
    assert diagram.layout.algorithm == "hierarchical"


def test_generate_accepts_partial_layout(engine, three_step_operation):
    diagram = engine.generate_flow_diagram(three_step_operation, {"algorithm": "dagre", "direction": "LR"})

    assert diagram.layout.algorithm == "dagre"
    assert diagram.layout.spacing.level == 150
    assert diagram.node("step-s1").position.x == 150


def test_default_layout_from_environment(monkeypatch, store, three_step_operation):
    from flowviz import config

    monkeypatch.setenv("FLOWVIZ_LAYOUT_ALGORITHM", "grid")
    config.clear_caches()
    engine = FlowVisualizationEngine(store)

    assert engine.generate_flow_diagram(three_step_operation).layout.algorithm == "grid"


def test_regenerating_replaces_diagram(engine, three_step_operation):
    first = engine.generate_flow_diagram(three_step_operation)
    second = engine.generate_flow_diagram(three_step_operation)

    assert first is not second
    assert engine.get_all_flow_diagrams() == [second]


def test_progress_updates_registered_diagram(engine, three_step_operation):
    engine.generate_flow_diagram(three_step_operation)
    progress = _progress()
    engine.update_flow_progress("op-1", progress)

    diagram = engine.get_flow_diagram("op-1")
    assert [node.data.status for node in diagram.step_nodes()] == ["success", "active", "pending"]
    assert engine.get_execution_progress("op-1") is progress


def test_progress_for_unknown_operation_is_recorded(engine):
    progress = _progress(operation_id="ghost")
    engine.update_flow_progress("ghost", progress)

    assert engine.get_flow_diagram("ghost") is None
    assert engine.get_execution_progress("ghost") is progress


def test_diagrams_survive_restart(store, three_step_operation):
    engine = FlowVisualizationEngine(store)
    engine.generate_flow_diagram(three_step_operation)
    engine.update_flow_progress("op-1", _progress())

    restarted = FlowVisualizationEngine(store)
    diagram = restarted.get_flow_diagram("op-1")

    assert diagram == engine.get_flow_diagram("op-1")
    assert diagram.step_nodes()[1].data.status == "active"
    assert restarted.get_execution_progress("op-1") is None


def test_engine_without_persistence(tmp_path, three_step_operation):
    engine = FlowVisualizationEngine(persist=False)
    engine.generate_flow_diagram(three_step_operation)

    assert not (tmp_path / "diagrams").exists()
    assert FlowVisualizationEngine(persist=False).get_flow_diagram("op-1") is None


class _BrokenStore(FileDiagramStateStore):
    def save(self, diagram):
        raise DiagramStateError("disk full")


def test_store_failures_do_not_break_generation(tmp_path, three_step_operation, caplog):
    engine = FlowVisualizationEngine(_BrokenStore(tmp_path))

    with caplog.at_level(logging.WARNING, logger="flowviz.engine"):
        diagram = engine.generate_flow_diagram(three_step_operation)

    assert engine.get_flow_diagram("op-1") is diagram
    assert any(record.message == "flowviz.state.save_failed" for record in caplog.records)


def test_simulation_is_cached_and_isolated(engine, three_step_operation):
    live = engine.generate_flow_diagram(three_step_operation)
    engine.update_flow_progress("op-1", _progress())
    snapshot = live.model_dump()

    first = engine.simulate_flow(three_step_operation)
    assert engine.simulate_flow(three_step_operation) is first
    assert engine.get_flow_diagram("op-1") is live
    assert live.model_dump() == snapshot
    assert all(node.data.status == "pending" for node in first.step_nodes())

    engine.clear_cache()
    assert engine.simulate_flow(three_step_operation) is not first
    assert engine.get_flow_diagram("op-1") is live


def test_export_checks_format_before_lookup(engine):
    with pytest.raises(UnsupportedFormatError):
        engine.export_flow_diagram("missing", "yaml")
    with pytest.raises(DiagramNotFoundError) as excinfo:
        engine.export_flow_diagram("missing", "json")
    assert excinfo.value.operation_id == "missing"


def test_export_json_matches_registry(engine, three_step_operation):
    engine.generate_flow_diagram(three_step_operation)
    parsed = json.loads(engine.export_flow_diagram("op-1", "json"))
    diagram = engine.get_flow_diagram("op-1")

    assert [node["id"] for node in parsed["nodes"]] == [node.id for node in diagram.nodes]
    assert [edge["id"] for edge in parsed["edges"]] == [edge.id for edge in diagram.edges]


def test_analytics_requires_diagram(engine, three_step_operation):
    with pytest.raises(DiagramNotFoundError):
        engine.generate_flow_analytics("op-1")

    engine.generate_flow_diagram(three_step_operation)
    engine.update_flow_progress("op-1", _progress(gas_used=48_000))
    analytics = engine.generate_flow_analytics("op-1", gas_price=2)

    assert analytics.total_gas_used == 48_000
    assert analytics.total_cost == 96_000


def test_remove_flow_diagram(engine, store, three_step_operation):
    engine.generate_flow_diagram(three_step_operation)
    engine.update_flow_progress("op-1", _progress())

    assert engine.remove_flow_diagram("op-1") is True
    assert engine.get_flow_diagram("op-1") is None
    assert engine.get_execution_progress("op-1") is None
    assert store.load("op-1") is None
    assert engine.remove_flow_diagram("op-1") is False


def test_malformed_records_do_not_block_startup(store, tmp_path, three_step_operation):
    FlowVisualizationEngine(store).generate_flow_diagram(three_step_operation)
    (tmp_path / "diagrams" / "corrupt.json").write_text('{"id": 1}', encoding="utf-8")

    restarted = FlowVisualizationEngine(store)

    assert [diagram.id for diagram in restarted.get_all_flow_diagrams()] == ["flow-op-1"]


def test_undecodable_record_does_not_block_startup(store, tmp_path, three_step_operation):
    FlowVisualizationEngine(store).generate_flow_diagram(three_step_operation)
    (tmp_path / "diagrams" / "bad.json").write_bytes(b"\xff\xfe\x00garbage")

    restarted = FlowVisualizationEngine(store)

    assert [diagram.id for diagram in restarted.get_all_flow_diagrams()] == ["flow-op-1"]
