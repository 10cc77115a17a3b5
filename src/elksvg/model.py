"""Load ELK JSON graphs into typed structures."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .errors import GraphParseError
from .palette import ColorStyle, container_style_for, resolve_color

DEFAULT_NODE_WIDTH = 120.0
DEFAULT_NODE_HEIGHT = 40.0
DEFAULT_FONT_SIZE = 13.0
DEFAULT_EDGE_COLOR = "#64748B"
DEFAULT_STROKE_WIDTH = 1.5


@dataclass
class Point:
    x: float
    y: float


@dataclass
class Section:
    start: Point
    end: Point
    bends: List[Point] = field(default_factory=list)

    def points(self) -> List[Point]:
        return [self.start, *self.bends, self.end]


@dataclass
class EdgeLabel:
    text: str
    x: Optional[float] = None
    y: Optional[float] = None
    width: float = 0.0
    height: float = 0.0

    @property
    def placed(self) -> bool:
        return bool(self.text) and self.x is not None and self.y is not None


@dataclass
class Edge:
    edge_id: str
    sources: List[str]
    targets: List[str]
    labels: List[EdgeLabel]
    color: str = DEFAULT_EDGE_COLOR
    dashed: bool = False
    stroke_width: float = DEFAULT_STROKE_WIDTH
    sections: List[Section] = field(default_factory=list)


@dataclass
class Node:
    node_id: str
    label: str
    # Raw key as written in the input; category is the resolved canonical key.
    color_key: Optional[str]
    category: str
    container_style: ColorStyle
    x: float = 0.0
    y: float = 0.0
    width: float = DEFAULT_NODE_WIDTH
    height: float = DEFAULT_NODE_HEIGHT
    subtitle: Optional[str] = None
    font_size: float = DEFAULT_FONT_SIZE
    children: List["Node"] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    @property
    def is_container(self) -> bool:
        return len(self.children) > 0


@dataclass
class Graph:
    title: Optional[str]
    legend: bool
    width: float
    height: float
    children: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)


def parse_graph_text(text: Union[str, bytes]) -> Dict[str, Any]:
    """Decode a JSON graph document, raising GraphParseError on bad input.

    Bytes are decoded as UTF-8. The non-standard NaN/Infinity tokens are
    rejected.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise GraphParseError(f"input is not valid UTF-8: {exc.reason} at byte {exc.start}") from exc
    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise GraphParseError(f"failed to parse JSON: {exc.msg}", line=exc.lineno, column=exc.colno) from exc
    if not isinstance(data, dict):
        raise GraphParseError(f"graph must be a JSON object (got {type(data).__name__})")
    return data


def _reject_constant(token: str) -> Any:
    raise GraphParseError(f"failed to parse JSON: {token} is not a valid JSON number")


def load_graph(data: Dict[str, Any]) -> Graph:
    children = [_load_node(item) for item in _list_of_dicts(data.get("children"))]
    edges = [_load_edge(item) for item in _list_of_dicts(data.get("edges"))]

    width = _number(data.get("width"), None)
    height = _number(data.get("height"), None)
    if width is None or height is None:
        extent_w, extent_h = _children_extent(children)
        width = extent_w if width is None else width
        height = extent_h if height is None else height

    title = data.get("title")
    return Graph(
        title=str(title) if title else None,
        legend=data.get("legend") is not False,
        width=width,
        height=height,
        children=children,
        edges=edges,
    )


def _load_node(data: Dict[str, Any]) -> Node:
    node_id = str(data.get("id", ""))
    color_key = data.get("color") if isinstance(data.get("color"), str) else None
    subtitle = data.get("subtitle")
    return Node(
        node_id=node_id,
        label=_node_label(data, node_id),
        color_key=color_key,
        category=resolve_color(color_key),
        container_style=container_style_for(data.get("containerColor")),
        x=_number(data.get("x"), 0.0),
        y=_number(data.get("y"), 0.0),
        width=_number(data.get("width"), DEFAULT_NODE_WIDTH) or DEFAULT_NODE_WIDTH,
        height=_number(data.get("height"), DEFAULT_NODE_HEIGHT) or DEFAULT_NODE_HEIGHT,
        subtitle=str(subtitle) if subtitle else None,
        font_size=_number(data.get("fontSize"), DEFAULT_FONT_SIZE) or DEFAULT_FONT_SIZE,
        children=[_load_node(item) for item in _list_of_dicts(data.get("children"))],
        edges=[_load_edge(item) for item in _list_of_dicts(data.get("edges"))],
    )


def _node_label(data: Dict[str, Any], node_id: str) -> str:
    label = data.get("label")
    if label:
        return str(label)
    for item in _list_of_dicts(data.get("labels")):
        if item.get("text"):
            return str(item["text"])
    return node_id


def _load_edge(data: Dict[str, Any]) -> Edge:
    color = data.get("edgeColor")
    return Edge(
        edge_id=str(data.get("id", "")),
        sources=[str(item) for item in data.get("sources") or []],
        targets=[str(item) for item in data.get("targets") or []],
        labels=[_load_edge_label(item) for item in _list_of_dicts(data.get("labels"))],
        color=str(color) if color else DEFAULT_EDGE_COLOR,
        dashed=bool(data.get("dashed")),
        stroke_width=_number(data.get("strokeWidth"), DEFAULT_STROKE_WIDTH) or DEFAULT_STROKE_WIDTH,
        sections=[
            section
            for section in (_load_section(item) for item in _list_of_dicts(data.get("sections")))
            if section is not None
        ],
    )


def _load_edge_label(data: Dict[str, Any]) -> EdgeLabel:
    text = data.get("text")
    return EdgeLabel(
        text=str(text) if text is not None else "",
        x=_number(data.get("x"), None),
        y=_number(data.get("y"), None),
        width=_number(data.get("width"), 0.0),
        height=_number(data.get("height"), 0.0),
    )


def _load_section(data: Dict[str, Any]) -> Optional[Section]:
    start = _point(data.get("startPoint"))
    end = _point(data.get("endPoint"))
    if start is None or end is None:
        return None
    bends = [point for point in (_point(item) for item in data.get("bendPoints") or []) if point is not None]
    return Section(start=start, end=end, bends=bends)


def _point(value: Any) -> Optional[Point]:
    if not isinstance(value, dict):
        return None
    return Point(_number(value.get("x"), 0.0), _number(value.get("y"), 0.0))


def _children_extent(children: List[Node]) -> tuple[float, float]:
    width = max((child.x + child.width for child in children), default=0.0)
    height = max((child.y + child.height for child in children), default=0.0)
    return width, height


def _list_of_dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _number(value: Any, default: Optional[float]) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    try:
        number = float(value)
    except OverflowError:
        return default
    return number if math.isfinite(number) else default
