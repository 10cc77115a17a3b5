"""Public API for elksvg."""
from .errors import (
    ElkSvgError,
    GraphParseError,
    LayoutFailedError,
    LayoutUnavailableError,
    RasterConversionError,
)
from .layout import ElkLayout, locate_engine
from .model import Graph, load_graph, parse_graph_text
from .render import render_graph, render_svg, wrap_text

__all__ = [
    "ElkLayout",
    "ElkSvgError",
    "Graph",
    "GraphParseError",
    "LayoutFailedError",
    "LayoutUnavailableError",
    "RasterConversionError",
    "load_graph",
    "locate_engine",
    "parse_graph_text",
    "render_graph",
    "render_svg",
    "wrap_text",
]
