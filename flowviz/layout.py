"""Layout Engine: assign 2-D coordinates to diagram nodes.

Every algorithm mutates ``node.position`` in place and returns the same node
and edge lists, so callers holding references to them observe the new
coordinates. Edges carry no geometry and pass through untouched.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Callable, Dict, List, Sequence, Tuple

from .models import FlowEdge, FlowNode, LayoutConfig, Position

_LOGGER = logging.getLogger(__name__)

LAYER_ORDER: Tuple[str, ...] = ("operation", "step", "contract", "token", "user")

LayoutResult = Tuple[List[FlowNode], List[FlowEdge]]


def _centered(index: int, count: int, pitch: float) -> float:
    return (index - (count - 1) / 2) * pitch


def hierarchical_layout(nodes: List[FlowNode], edges: List[FlowEdge], config: LayoutConfig) -> LayoutResult:
    layers: Dict[str, List[FlowNode]] = {}
    for node in nodes:
        layers.setdefault(node.type, []).append(node)

    y = 0.0
    for layer in LAYER_ORDER:
        members = layers.get(layer, [])
        if not members:
            continue
        pitch = config.spacing.node if len(members) > 1 else 0.0
        for index, node in enumerate(members):
            node.position = Position(x=_centered(index, len(members), pitch), y=y)
        y += config.spacing.level
    return nodes, edges


def force_layout(nodes: List[FlowNode], edges: List[FlowEdge], config: LayoutConfig) -> LayoutResult:
    """Coulomb repulsion between every pair plus damped spring attraction on edges.

    There is no random jitter: the fixed point is a function of the positions
    the nodes carry on entry.
    """

    force = config.force
    points = [[node.position.x, node.position.y] for node in nodes]
    index_of = {node.id: idx for idx, node in enumerate(nodes)}
    links = [
        (index_of[edge.source], index_of[edge.target])
        for edge in edges
        if edge.source in index_of and edge.target in index_of
    ]

    for _ in range(force.iterations):
        for i in range(len(points)):
            a = points[i]
            for j in range(i + 1, len(points)):
                b = points[j]
                dx = b[0] - a[0]
                dy = b[1] - a[1]
                distance = math.hypot(dx, dy) or 1.0
                magnitude = force.repulsion / (distance * distance)
                fx = dx / distance * magnitude
                fy = dy / distance * magnitude
                a[0] -= fx
                a[1] -= fy
                b[0] += fx
                b[1] += fy

        for source, target in links:
            a = points[source]
            b = points[target]
            dx = b[0] - a[0]
            dy = b[1] - a[1]
            distance = math.hypot(dx, dy) or 1.0
            magnitude = force.attraction * distance
            fx = dx / distance * magnitude * force.damping
            fy = dy / distance * magnitude * force.damping
            a[0] += fx
            a[1] += fy
            b[0] -= fx
            b[1] -= fy

    for node, (x, y) in zip(nodes, points):
        node.position = Position(x=x, y=y)
    return nodes, edges


def compute_ranks(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> Dict[str, int]:
    """Breadth-first peel of in-degree-zero layers.

    Nodes caught in a cycle never reach in-degree zero and keep rank 0.
    """

    in_degree: Dict[str, int] = {node.id: 0 for node in nodes}
    successors: Dict[str, List[str]] = {node.id: [] for node in nodes}
    for edge in edges:
        if edge.source not in in_degree or edge.target not in in_degree:
            continue
        in_degree[edge.target] += 1
        successors[edge.source].append(edge.target)

    ranks: Dict[str, int] = {node.id: 0 for node in nodes}
    queue = deque(node.id for node in nodes if in_degree[node.id] == 0)
    rank = 0
    while queue:
        for _ in range(len(queue)):
            node_id = queue.popleft()
            ranks[node_id] = rank
            for target in successors[node_id]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)
        rank += 1

    stuck = [node_id for node_id, degree in in_degree.items() if degree > 0]
    if stuck:
        _LOGGER.warning("flowviz.layout.cycle", extra={"nodes": stuck})
    return ranks


def dagre_layout(nodes: List[FlowNode], edges: List[FlowEdge], config: LayoutConfig) -> LayoutResult:
    ranks = compute_ranks(nodes, edges)
    groups: Dict[int, List[FlowNode]] = {}
    for node in nodes:
        groups.setdefault(ranks[node.id], []).append(node)

    for rank, members in groups.items():
        main = rank * config.spacing.level
        for index, node in enumerate(members):
            cross = _centered(index, len(members), config.spacing.node)
            if config.direction == "LR":
                node.position = Position(x=main, y=cross)
            else:
                node.position = Position(x=cross, y=main)
    return nodes, edges


def circular_layout(nodes: List[FlowNode], edges: List[FlowEdge], config: LayoutConfig) -> LayoutResult:
    count = len(nodes)
    if count == 1:
        nodes[0].position = Position(x=0, y=0)
        return nodes, edges
    # Chord between neighbours is at least the node spacing.
    radius = config.spacing.level
    if count:
        radius = max(radius, config.spacing.node / (2 * math.sin(math.pi / count)))
    for index, node in enumerate(nodes):
        angle = 2 * math.pi * index / count
        node.position = Position(x=radius * math.cos(angle), y=radius * math.sin(angle))
    return nodes, edges


def grid_layout(nodes: List[FlowNode], edges: List[FlowEdge], config: LayoutConfig) -> LayoutResult:
    columns = max(1, math.ceil(math.sqrt(len(nodes))))
    for index, node in enumerate(nodes):
        row, column = divmod(index, columns)
        x = column * config.spacing.node
        y = row * config.spacing.level
        if config.direction == "LR":
            x, y = y, x
        node.position = Position(x=x, y=y)
    return nodes, edges


_ALGORITHMS: Dict[str, Callable[[List[FlowNode], List[FlowEdge], LayoutConfig], LayoutResult]] = {
    "hierarchical": hierarchical_layout,
    "force": force_layout,
    "dagre": dagre_layout,
    "circular": circular_layout,
    "grid": grid_layout,
}


def apply_layout(nodes: List[FlowNode], edges: List[FlowEdge], config: LayoutConfig) -> LayoutResult:
    """Position ``nodes`` with the algorithm selected by ``config``."""

    algorithm = _ALGORITHMS.get(config.algorithm)
    if algorithm is None:  # pragma: no cover - LayoutConfig validates the selector
        return nodes, edges
    return algorithm(nodes, edges, config)


__all__ = [
    "LAYER_ORDER",
    "apply_layout",
    "circular_layout",
    "compute_ranks",
    "dagre_layout",
    "force_layout",
    "grid_layout",
    "hierarchical_layout",
]
