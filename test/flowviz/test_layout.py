import logging
import math

import pytest

from flowviz.builder import build_flow_diagram, resolve_layout_config
from flowviz.layout import LAYER_ORDER, apply_layout, compute_ranks
from flowviz.models import EdgeData, FlowEdge, FlowNode, NodeData

from flowviz_helpers import CONTRACT_A, CONTRACT_B


def _positions(diagram):
    return {node.id: (node.position.x, node.position.y) for node in diagram.nodes}


def _laid_out(operation, **overrides):
    config = resolve_layout_config(overrides)
    diagram = build_flow_diagram(operation, config)
    apply_layout(diagram.nodes, diagram.edges, config)
    return diagram


def test_hierarchical_layers_follow_type_order(three_step_operation):
    positions = _positions(_laid_out(three_step_operation, algorithm="hierarchical"))

    assert positions["operation-op-1"] == (0.0, 0.0)
    assert positions["step-s0"] == (-100.0, 150.0)
    assert positions["step-s1"] == (0.0, 150.0)
    assert positions["step-s2"] == (100.0, 150.0)
    assert positions[f"contract-{CONTRACT_A}"] == (-50.0, 300.0)
    assert positions[f"contract-{CONTRACT_B}"] == (50.0, 300.0)
    assert LAYER_ORDER[:3] == ("operation", "step", "contract")


@pytest.mark.parametrize("algorithm", ["hierarchical", "force", "dagre", "circular", "grid"])
def test_layouts_are_deterministic(three_step_operation, algorithm):
    first = _positions(_laid_out(three_step_operation, algorithm=algorithm))
    second = _positions(_laid_out(three_step_operation, algorithm=algorithm))

    assert first == second
    assert all(math.isfinite(x) and math.isfinite(y) for x, y in first.values())


def test_layout_leaves_edges_untouched(three_step_operation):
    config = resolve_layout_config({"algorithm": "force"})
    diagram = build_flow_diagram(three_step_operation, config)
    before = [edge.model_dump() for edge in diagram.edges]

    nodes, edges = apply_layout(diagram.nodes, diagram.edges, config)

    assert nodes is diagram.nodes
    assert [edge.model_dump() for edge in edges] == before


def test_force_layout_separates_nodes(three_step_operation):
    seeded = build_flow_diagram(three_step_operation)
    laid_out = _laid_out(three_step_operation, algorithm="force")

    assert _positions(laid_out) != _positions(seeded)
    points = list(_positions(laid_out).values())
    assert len(set(points)) == len(points)


def test_force_layout_with_zero_iterations_keeps_seed(three_step_operation):
    seeded = _positions(build_flow_diagram(three_step_operation))
    laid_out = _laid_out(three_step_operation, algorithm="force", force={"iterations": 0})

    assert _positions(laid_out) == seeded


def test_dagre_ranks_follow_edges(three_step_operation):
    diagram = build_flow_diagram(three_step_operation)
    ranks = compute_ranks(diagram.nodes, diagram.edges)

    assert ranks["operation-op-1"] == 0
    assert ranks["step-s0"] == 0
    assert ranks["step-s1"] == 1
    assert ranks["step-s2"] == 2
    assert ranks[f"contract-{CONTRACT_B}"] == 2
    assert ranks[f"contract-{CONTRACT_A}"] == 3


def test_dagre_left_to_right_swaps_axes(three_step_operation):
    top_down = _positions(_laid_out(three_step_operation, algorithm="dagre", direction="TB"))
    left_right = _positions(_laid_out(three_step_operation, algorithm="dagre", direction="LR"))

    assert top_down["step-s1"] == (0.0, 150.0)
    assert left_right["step-s1"] == (150.0, 0.0)
    for node_id, (x, y) in top_down.items():
        assert left_right[node_id] == (y, x)


def _node(node_id):
    return FlowNode(id=node_id, type="step", data=NodeData(name=node_id))


def _edge(source, target):
    return FlowEdge(id=f"{source}-{target}", source=source, target=target, type="dependency", data=EdgeData(timestamp=0))


def test_cycle_keeps_rank_zero_and_warns(caplog):
    nodes = [_node("a"), _node("b"), _node("c")]
    edges = [_edge("a", "b"), _edge("b", "a"), _edge("c", "a")]

    with caplog.at_level(logging.WARNING, logger="flowviz.layout"):
        ranks = compute_ranks(nodes, edges)

    assert ranks == {"a": 0, "b": 0, "c": 0}
    assert any(record.message == "flowviz.layout.cycle" for record in caplog.records)


def test_circular_layout_spaces_neighbours(three_step_operation):
    diagram = _laid_out(three_step_operation, algorithm="circular")
    radii = {round(math.hypot(node.position.x, node.position.y), 6) for node in diagram.nodes}

    assert len(radii) == 1
    first, second = diagram.nodes[0].position, diagram.nodes[1].position
    assert math.hypot(first.x - second.x, first.y - second.y) >= 100 - 1e-9


def test_grid_layout_fills_rows(three_step_operation):
    diagram = _laid_out(three_step_operation, algorithm="grid")
    positions = [(node.position.x, node.position.y) for node in diagram.nodes]

    assert positions == [
        (0.0, 0.0),
        (100.0, 0.0),
        (200.0, 0.0),
        (0.0, 150.0),
        (100.0, 150.0),
        (200.0, 150.0),
    ]


def test_empty_graph_layouts():
    for algorithm in ("hierarchical", "force", "dagre", "circular", "grid"):
        config = resolve_layout_config({"algorithm": algorithm})
        assert apply_layout([], [], config) == ([], [])


def test_force_layout_settles_when_rerun(three_step_operation):
    config = resolve_layout_config({"algorithm": "force", "force": {"iterations": 1}})
    diagram = build_flow_diagram(three_step_operation, config)

    moves = []
    previous = _positions(diagram)
    for _ in range(60):
        apply_layout(diagram.nodes, diagram.edges, config)
        current = _positions(diagram)
        moves.append(
            max(math.hypot(x - previous[node_id][0], y - previous[node_id][1]) for node_id, (x, y) in current.items())
        )
        previous = current

    assert all(later <= earlier + 1e-9 for earlier, later in zip(moves, moves[1:]))
    assert moves[-1] < moves[0]
