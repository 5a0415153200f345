"""Serialise diagrams to JSON, SVG and PNG."""

from __future__ import annotations

import base64
import html
import io
from typing import Dict, List, Tuple

try:  # pragma: no cover - optional dependency for raster export.
    from matplotlib.backends.backend_agg import FigureCanvasAgg  # type: ignore
    from matplotlib.figure import Figure  # type: ignore
    from matplotlib.patches import Rectangle  # type: ignore
except Exception:  # pragma: no cover - keep JSON/SVG export working without matplotlib.
    Figure = None  # type: ignore[assignment,misc]
    FigureCanvasAgg = None  # type: ignore[assignment,misc]
    Rectangle = None  # type: ignore[assignment,misc]

from .models import FlowDiagram, FlowNode

EXPORT_FORMATS = ("json", "svg", "png")

NODE_WIDTH = 100
NODE_HEIGHT = 50
_PADDING = 40
_PNG_DPI = 100


class ExportError(RuntimeError):
    """Raised when a diagram cannot be rendered."""


class UnsupportedFormatError(ExportError, ValueError):
    """Raised when an export format outside ``EXPORT_FORMATS`` is requested."""

    def __init__(self, fmt: str) -> None:
        super().__init__(f"Unsupported format: {fmt}")
        self.format = fmt


def check_format(fmt: str) -> str:
    normalized = (fmt or "").strip().lower()
    if normalized not in EXPORT_FORMATS:
        raise UnsupportedFormatError(fmt)
    return normalized


def _bounds(nodes: List[FlowNode]) -> Tuple[float, float, float, float]:
    if not nodes:
        return 0.0, 0.0, float(NODE_WIDTH), float(NODE_HEIGHT)
    min_x = min(node.position.x for node in nodes)
    min_y = min(node.position.y for node in nodes)
    max_x = max(node.position.x for node in nodes) + NODE_WIDTH
    max_y = max(node.position.y for node in nodes) + NODE_HEIGHT
    return min_x, min_y, max_x, max_y


def _centres(diagram: FlowDiagram) -> Dict[str, Tuple[float, float]]:
    return {
        node.id: (node.position.x + NODE_WIDTH / 2, node.position.y + NODE_HEIGHT / 2)
        for node in diagram.nodes
    }


def _fmt(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text if text not in {"", "-0"} else "0"


def to_json(diagram: FlowDiagram) -> str:
    return diagram.model_dump_json(indent=2)


def to_svg(diagram: FlowDiagram) -> str:
    """Lines for edges underneath one labelled rectangle per node."""

    min_x, min_y, max_x, max_y = _bounds(diagram.nodes)
    left, top = min_x - _PADDING, min_y - _PADDING
    width, height = max_x - min_x + 2 * _PADDING, max_y - min_y + 2 * _PADDING
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{_fmt(width)}" height="{_fmt(height)}" '
        f'viewBox="{_fmt(left)} {_fmt(top)} {_fmt(width)} {_fmt(height)}">'
    ]

    centres = _centres(diagram)
    for edge in diagram.edges:
        if edge.source not in centres or edge.target not in centres:
            continue
        (x1, y1), (x2, y2) = centres[edge.source], centres[edge.target]
        style = edge.style
        dash = f' stroke-dasharray="{style.stroke_dasharray}"' if style.stroke_dasharray else ""
        parts.append(
            f'<line id="{html.escape(edge.id, quote=True)}" x1="{_fmt(x1)}" y1="{_fmt(y1)}" '
            f'x2="{_fmt(x2)}" y2="{_fmt(y2)}" stroke="{style.stroke_color or "#757575"}" '
            f'stroke-width="{_fmt(style.stroke_width or 1)}"{dash}/>'
        )

    for node in diagram.nodes:
        style = node.style
        x, y = node.position.x, node.position.y
        parts.append(
            f'<rect id="{html.escape(node.id, quote=True)}" x="{_fmt(x)}" y="{_fmt(y)}" '
            f'width="{NODE_WIDTH}" height="{NODE_HEIGHT}" fill="{style.background_color or "#FFFFFF"}" '
            f'stroke="{style.border_color or "#000000"}" stroke-width="{_fmt(style.border_width or 1)}"/>'
        )
        parts.append(
            f'<text x="{_fmt(x + 10)}" y="{_fmt(y + NODE_HEIGHT / 2)}" font-size="12">'
            f"{html.escape(node.data.name)}</text>"
        )

    parts.append("</svg>")
    return "\n".join(parts)


def to_png(diagram: FlowDiagram) -> str:
    """Rasterise the diagram with matplotlib and return a base64 data URI."""

    if Figure is None:
        raise ExportError("matplotlib not available; install matplotlib to export PNG diagrams")

    min_x, min_y, max_x, max_y = _bounds(diagram.nodes)
    width = max_x - min_x + 2 * _PADDING
    height = max_y - min_y + 2 * _PADDING
    figure = Figure(figsize=(max(width, 200) / _PNG_DPI, max(height, 150) / _PNG_DPI), dpi=_PNG_DPI)
    FigureCanvasAgg(figure)
    axes = figure.add_axes((0, 0, 1, 1))
    axes.set_xlim(min_x - _PADDING, max_x + _PADDING)
    # Screen coordinates grow downwards.
    axes.set_ylim(max_y + _PADDING, min_y - _PADDING)
    axes.axis("off")

    centres = _centres(diagram)
    for edge in diagram.edges:
        if edge.source not in centres or edge.target not in centres:
            continue
        (x1, y1), (x2, y2) = centres[edge.source], centres[edge.target]
        linestyle = "--" if edge.style.stroke_dasharray else "-"
        axes.plot(
            [x1, x2],
            [y1, y2],
            color=edge.style.stroke_color or "#757575",
            linewidth=edge.style.stroke_width or 1,
            linestyle=linestyle,
            zorder=1,
        )

    for node in diagram.nodes:
        axes.add_patch(
            Rectangle(
                (node.position.x, node.position.y),
                NODE_WIDTH,
                NODE_HEIGHT,
                facecolor=node.style.background_color or "#FFFFFF",
                edgecolor=node.style.border_color or "#000000",
                linewidth=node.style.border_width or 1,
                zorder=2,
            )
        )
        axes.text(
            node.position.x + 5,
            node.position.y + NODE_HEIGHT / 2,
            node.data.name,
            fontsize=6,
            verticalalignment="center",
            clip_on=True,
            zorder=3,
        )

    buffer = io.BytesIO()
    figure.savefig(buffer, format="png", dpi=_PNG_DPI)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


_RENDERERS = {"json": to_json, "svg": to_svg, "png": to_png}


def render(diagram: FlowDiagram, fmt: str) -> str:
    return _RENDERERS[check_format(fmt)](diagram)


__all__ = [
    "EXPORT_FORMATS",
    "ExportError",
    "UnsupportedFormatError",
    "check_format",
    "render",
    "to_json",
    "to_png",
    "to_svg",
]
