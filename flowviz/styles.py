"""Static style lookup tables for diagram nodes and edges."""

from __future__ import annotations

from typing import Dict

from .models import EdgeStyle, NodeStyle

_OPERATION_COLORS: Dict[str, tuple[str, str]] = {
    "swap": ("#E3F2FD", "#1976D2"),
    "batch": ("#F3E5F5", "#7B1FA2"),
    "conditional": ("#E8F5E8", "#388E3C"),
    "timelocked": ("#FFF3E0", "#F57C00"),
}

_STEP_COLORS: Dict[str, tuple[str, str]] = {
    "success": ("#E8F5E8", "#4CAF50"),
    "error": ("#FFEBEE", "#F44336"),
    "pending": ("#FFF8E1", "#FF9800"),
    "active": ("#E3F2FD", "#2196F3"),
}

_NEUTRAL = ("#F5F5F5", "#9E9E9E")

_EDGE_STATUS_COLORS: Dict[str, str] = {
    "confirmed": "#4CAF50",
    "pending": "#FF9800",
    "failed": "#F44336",
    "simulated": "#9E9E9E",
}

_EDGE_TYPE_STYLES: Dict[str, Dict[str, object]] = {
    "call": {},
    "dependency": {"stroke_dasharray": "5,5"},
    "transfer": {"stroke_width": 3},
    "approval": {"stroke_dasharray": "2,2"},
}


def operation_node_style(operation_type: str) -> NodeStyle:
    background, border = _OPERATION_COLORS.get(operation_type, ("#F5F5F5", "#757575"))
    return NodeStyle(background_color=background, border_color=border, border_width=2, opacity=1)


def step_node_style(status: str) -> NodeStyle:
    background, border = _STEP_COLORS.get(status, _NEUTRAL)
    return NodeStyle(background_color=background, border_color=border, border_width=1, opacity=1)


def contract_node_style(contract_type: str | None = None) -> NodeStyle:
    del contract_type
    return NodeStyle(
        background_color="#E1F5FE",
        border_color="#0277BD",
        border_width=2,
        opacity=1,
        box_shadow="0 2px 4px rgba(0,0,0,0.1)",
    )


def edge_style(edge_type: str, status: str) -> EdgeStyle:
    values: Dict[str, object] = {"stroke_width": 2, "opacity": 1}
    values.update(_EDGE_TYPE_STYLES.get(edge_type, {}))
    values["stroke_color"] = _EDGE_STATUS_COLORS.get(status, "#757575")
    return EdgeStyle(**values)


__all__ = ["contract_node_style", "edge_style", "operation_node_style", "step_node_style"]
