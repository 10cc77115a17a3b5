"""Render laid-out ELK graphs to SVG."""
from __future__ import annotations

import math
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Set

from .model import Edge, Graph, Node, load_graph
from .palette import COLORS, LEGEND_LABELS, style_for

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
FONT_FAMILY = "Inter, -apple-system, sans-serif"

MARGIN = 40.0
CHAR_WIDTH_RATIO = 0.58
NODE_RADIUS = 6.0
CONTAINER_RADIUS = 8.0
NODE_TEXT_INSET = 16.0
SUBTITLE_TEXT_INSET = 12.0
SUBTITLE_FONT_SIZE = 10.0
SUBTITLE_LINE_HEIGHT = 13.0
EDGE_LABEL_FONT_SIZE = 10.0
TITLE_FONT_SIZE = 18.0

LEGEND_RESERVE = 60.0
LEGEND_OFFSET = 20.0
LEGEND_COLUMNS = 4
LEGEND_COLUMN_WIDTH = 180.0
LEGEND_ROW_HEIGHT = 18.0
LEGEND_SWATCH = 12.0


def _q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def wrap_text(text: str, max_width: float, font_size: float = 13.0) -> List[str]:
    """Split text into lines that roughly fit max_width.

    Widths are estimated from the font size rather than measured, so a label
    may overflow by a character or two. Words are never broken.
    """
    char_width = font_size * CHAR_WIDTH_RATIO
    max_chars = math.floor(max_width / char_width) if char_width > 0 else 0
    if len(text) <= max_chars:
        return [text]
    lines: List[str] = []
    current = ""
    for word in text.split():
        if current and len(current) + 1 + len(word) > max_chars:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        lines.append(current)
    return lines or [text]


async def render_graph(data: Dict[str, Any], engine: Any = None, *, legend: Optional[bool] = None) -> str:
    """Lay out a raw ELK graph with engine and render it.

    With engine=None the graph is assumed to carry coordinates already.
    """
    laid_out = await engine.layout(data) if engine is not None else data
    return render_svg(load_graph(laid_out), legend=legend)


def render_svg(graph: Graph, *, legend: Optional[bool] = None) -> str:
    show_legend = graph.legend if legend is None else legend
    legend_keys = _collect_legend_keys(graph.children) if show_legend else []

    total_w = graph.width + 2 * MARGIN
    total_h = graph.height + 2 * MARGIN + (LEGEND_RESERVE if legend_keys else 0.0)

    svg_root = ET.Element(
        _q("svg"),
        {
            "width": _fmt(total_w),
            "height": _fmt(total_h),
            "viewBox": f"{_fmt(-MARGIN)} {_fmt(-MARGIN)} {_fmt(total_w)} {_fmt(total_h)}",
        },
    )
    defs = ET.SubElement(svg_root, _q("defs"))
    markers = _emit_markers(defs, _collect_edge_colors(graph.edges, graph.children))

    ET.SubElement(
        svg_root,
        _q("rect"),
        {
            "class": "background",
            "x": _fmt(-MARGIN),
            "y": _fmt(-MARGIN),
            "width": _fmt(total_w),
            "height": _fmt(total_h),
            "fill": "#FFFFFF",
            "rx": "12",
        },
    )

    if graph.title:
        title = ET.SubElement(
            svg_root,
            _q("text"),
            {
                "class": "title",
                "x": _fmt(graph.width / 2),
                "y": _fmt(-MARGIN / 2 + 5),
                "text-anchor": "middle",
                "font-family": FONT_FAMILY,
                "font-size": _fmt(TITLE_FONT_SIZE),
                "font-weight": "700",
                "fill": "#1E293B",
            },
        )
        title.text = _xml_text(graph.title)

    for node in graph.children:
        _render_node(svg_root, node, 0.0, 0.0)

    _render_edges(svg_root, graph.edges, graph.children, 0.0, 0.0, markers)

    if legend_keys:
        _render_legend(svg_root, legend_keys, graph.height + LEGEND_OFFSET)

    return XML_DECLARATION + ET.tostring(svg_root, encoding="unicode") + "\n"


def _render_node(parent: ET.Element, node: Node, offset_x: float, offset_y: float) -> None:
    x = offset_x + node.x
    y = offset_y + node.y

    if node.is_container:
        style = node.container_style
        ET.SubElement(
            parent,
            _q("rect"),
            {
                "class": "container",
                "x": _fmt(x),
                "y": _fmt(y),
                "width": _fmt(node.width),
                "height": _fmt(node.height),
                "rx": _fmt(CONTAINER_RADIUS),
                "ry": _fmt(CONTAINER_RADIUS),
                "fill": style.fill,
                "stroke": style.stroke,
                "stroke-width": "2",
                "stroke-dasharray": "6,3",
            },
        )
        heading = ET.SubElement(
            parent,
            _q("text"),
            {
                "class": "container-label",
                "x": _fmt(x + 10),
                "y": _fmt(y + 20),
                "font-family": FONT_FAMILY,
                "font-size": "12",
                "font-weight": "700",
                "fill": style.text,
                "letter-spacing": "0.05em",
            },
        )
        heading.text = _xml_text(node.label)
        for child in node.children:
            _render_node(parent, child, x, y)
        return

    style = style_for(node.category)
    ET.SubElement(
        parent,
        _q("rect"),
        {
            "class": "node",
            "x": _fmt(x),
            "y": _fmt(y),
            "width": _fmt(node.width),
            "height": _fmt(node.height),
            "rx": _fmt(NODE_RADIUS),
            "ry": _fmt(NODE_RADIUS),
            "fill": style.fill,
            "stroke": style.stroke,
            "stroke-width": "1.5",
        },
    )

    font_size = node.font_size
    lines = wrap_text(node.label, node.width - NODE_TEXT_INSET, font_size)
    line_height = font_size + 3
    start_y = y + (node.height - len(lines) * line_height) / 2 + font_size
    center_x = x + node.width / 2
    for idx, line in enumerate(lines):
        text_el = ET.SubElement(
            parent,
            _q("text"),
            {
                "class": "node-label",
                "x": _fmt(center_x),
                "y": _fmt(start_y + idx * line_height),
                "text-anchor": "middle",
                "font-family": FONT_FAMILY,
                "font-size": _fmt(font_size),
                "font-weight": "600",
                "fill": style.text,
            },
        )
        text_el.text = _xml_text(line)

    if node.subtitle:
        sub_top = start_y + len(lines) * line_height
        sub_lines = wrap_text(node.subtitle, node.width - SUBTITLE_TEXT_INSET, SUBTITLE_FONT_SIZE)
        for idx, line in enumerate(sub_lines):
            text_el = ET.SubElement(
                parent,
                _q("text"),
                {
                    "class": "node-subtitle",
                    "x": _fmt(center_x),
                    "y": _fmt(sub_top + idx * SUBTITLE_LINE_HEIGHT),
                    "text-anchor": "middle",
                    "font-family": FONT_FAMILY,
                    "font-size": _fmt(SUBTITLE_FONT_SIZE),
                    "fill": style.text,
                    "opacity": "0.8",
                },
            )
            text_el.text = _xml_text(line)


def _render_edges(
    parent: ET.Element,
    edges: List[Edge],
    nodes: List[Node],
    offset_x: float,
    offset_y: float,
    markers: Dict[str, str],
) -> None:
    for edge in edges:
        _render_edge(parent, edge, offset_x, offset_y, markers)
    # Edges owned by a node are relative to that node's origin.
    for node in nodes:
        if node.children or node.edges:
            _render_edges(parent, node.edges, node.children, offset_x + node.x, offset_y + node.y, markers)


def _render_edge(
    parent: ET.Element,
    edge: Edge,
    offset_x: float,
    offset_y: float,
    markers: Dict[str, str],
) -> None:
    for section in edge.sections:
        parts = []
        for idx, point in enumerate(section.points()):
            command = "M" if idx == 0 else "L"
            parts.append(f"{command} {_fmt(point.x + offset_x)} {_fmt(point.y + offset_y)}")
        attrs = {
            "class": "edge",
            "d": " ".join(parts),
            "fill": "none",
            "stroke": edge.color,
            "stroke-width": _fmt(edge.stroke_width),
            "marker-end": f"url(#{markers[edge.color]})",
        }
        if edge.dashed:
            attrs["stroke-dasharray"] = "5,3"
        ET.SubElement(parent, _q("path"), attrs)

    for label in edge.labels:
        if not label.placed:
            continue
        lx = label.x + offset_x
        ly = label.y + offset_y
        ET.SubElement(
            parent,
            _q("rect"),
            {
                "class": "edge-label-bg",
                "x": _fmt(lx - 2),
                "y": _fmt(ly - 1),
                "width": _fmt(label.width + 4),
                "height": _fmt(label.height + 2),
                "rx": "3",
                "fill": "white",
                "opacity": "0.9",
            },
        )
        text_el = ET.SubElement(
            parent,
            _q("text"),
            {
                "class": "edge-label",
                "x": _fmt(lx + label.width / 2),
                "y": _fmt(ly + 12),
                "text-anchor": "middle",
                "font-family": FONT_FAMILY,
                "font-size": _fmt(EDGE_LABEL_FONT_SIZE),
                "fill": "#475569",
            },
        )
        text_el.text = _xml_text(label.text)


def _collect_edge_colors(edges: List[Edge], nodes: List[Node]) -> List[str]:
    colors: List[str] = []
    seen: Set[str] = set()

    def visit(edge_list: List[Edge], node_list: List[Node]) -> None:
        for edge in edge_list:
            if edge.color not in seen:
                seen.add(edge.color)
                colors.append(edge.color)
        for node in node_list:
            visit(node.edges, node.children)

    visit(edges, nodes)
    return colors


def _emit_markers(defs: ET.Element, colors: List[str]) -> Dict[str, str]:
    taken: Set[str] = set()
    markers: Dict[str, str] = {}
    for color in colors:
        slug = re.sub(r"[^A-Za-z0-9_-]", "", color) or "edge"
        marker_id = _reserve_unique_id(taken, f"arrowhead-{slug}")
        markers[color] = marker_id
        marker = ET.SubElement(
            defs,
            _q("marker"),
            {
                "id": marker_id,
                "markerWidth": "8",
                "markerHeight": "6",
                "refX": "8",
                "refY": "3",
                "orient": "auto",
            },
        )
        ET.SubElement(marker, _q("polygon"), {"points": "0 0, 8 3, 0 6", "fill": color})
    return markers


def _collect_legend_keys(nodes: List[Node]) -> List[str]:
    keys: List[str] = []

    def visit(node_list: List[Node]) -> None:
        for node in node_list:
            if node.is_container:
                visit(node.children)
                continue
            key = node.color_key
            # Only canonical keys get a row; aliases and "container" are never shown.
            if key in LEGEND_LABELS and key not in keys:
                keys.append(key)

    visit(nodes)
    return keys


def _render_legend(parent: ET.Element, keys: List[str], top: float) -> None:
    left = 10.0
    heading = ET.SubElement(
        parent,
        _q("text"),
        {
            "class": "legend-title",
            "x": _fmt(left),
            "y": _fmt(top),
            "font-family": FONT_FAMILY,
            "font-size": "11",
            "font-weight": "700",
            "fill": "#64748B",
        },
    )
    heading.text = "LEGEND"

    columns = min(len(keys), LEGEND_COLUMNS)
    for idx, key in enumerate(keys):
        col = idx % columns
        row = idx // columns
        x = left + col * LEGEND_COLUMN_WIDTH
        y = top + 8 + row * LEGEND_ROW_HEIGHT
        style = COLORS[key]
        ET.SubElement(
            parent,
            _q("rect"),
            {
                "class": "legend-swatch",
                "x": _fmt(x),
                "y": _fmt(y),
                "width": _fmt(LEGEND_SWATCH),
                "height": _fmt(LEGEND_SWATCH),
                "rx": "2",
                "fill": style.fill,
                "stroke": style.stroke,
                "stroke-width": "1",
            },
        )
        label = ET.SubElement(
            parent,
            _q("text"),
            {
                "class": "legend-label",
                "x": _fmt(x + LEGEND_SWATCH + 5),
                "y": _fmt(y + LEGEND_SWATCH - 1),
                "font-family": FONT_FAMILY,
                "font-size": "10",
                "fill": "#475569",
            },
        )
        label.text = LEGEND_LABELS[key]


# Characters XML 1.0 cannot carry, even escaped.
_XML_ILLEGAL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _xml_text(value: str) -> str:
    return _XML_ILLEGAL.sub("", value)


def _reserve_unique_id(existing: Set[str], base: str) -> str:
    if base not in existing:
        existing.add(base)
        return base
    idx = 1
    while True:
        candidate = f"{base}-{idx}"
        if candidate not in existing:
            existing.add(candidate)
            return candidate
        idx += 1


def _fmt(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")
