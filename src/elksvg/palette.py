"""Semantic colour categories for nodes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ColorStyle:
    fill: str
    stroke: str
    text: str


DEFAULT_CATEGORY = "neutral"
CONTAINER_KEY = "container"

COLORS: Dict[str, ColorStyle] = {
    "action": ColorStyle("#3B82F6", "#1E40AF", "#FFFFFF"),
    "external": ColorStyle("#14B8A6", "#0D9488", "#FFFFFF"),
    "decision": ColorStyle("#EC4899", "#BE185D", "#FFFFFF"),
    "user": ColorStyle("#F97316", "#EA580C", "#FFFFFF"),
    "success": ColorStyle("#10B981", "#047857", "#FFFFFF"),
    "negative": ColorStyle("#EF4444", "#B91C1C", "#FFFFFF"),
    "neutral": ColorStyle("#6B7280", "#374151", "#FFFFFF"),
    "data": ColorStyle("#F59E0B", "#D97706", "#1F2937"),
}

CONTAINER_STYLE = ColorStyle("#F3F4F6", "#D1D5DB", "#374151")

# Deprecated keys still accepted in input files.
LEGACY_ALIASES: Dict[str, str] = {
    "core": "action",
    "provider": "external",
    "tool": "success",
    "output": "data",
    "context": "decision",
    "state": "user",
    "highlight": "negative",
    "model": "action",
    "graph": "action",
    "step": "action",
}

LEGEND_LABELS: Dict[str, str] = {
    "action": "System action",
    "external": "External service",
    "decision": "Decision point",
    "user": "User action",
    "success": "Positive outcome",
    "negative": "Negative outcome",
    "neutral": "Neutral / info",
    "data": "Data / artifact",
}


def resolve_color(key: Optional[str]) -> str:
    """Map a node colour key (canonical or legacy) to one of the eight categories."""
    if isinstance(key, str):
        if key in COLORS:
            return key
        if key in LEGACY_ALIASES:
            return LEGACY_ALIASES[key]
    return DEFAULT_CATEGORY


def style_for(key: Optional[str]) -> ColorStyle:
    return COLORS[resolve_color(key)]


def container_style_for(key: Optional[str]) -> ColorStyle:
    if isinstance(key, str) and (key in COLORS or key in LEGACY_ALIASES):
        return style_for(key)
    return CONTAINER_STYLE


def palette_keys() -> list[str]:
    return [*COLORS, CONTAINER_KEY, *LEGACY_ALIASES]
