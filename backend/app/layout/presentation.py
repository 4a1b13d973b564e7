"""Presentation policy for node groups: colors, radii and label fonts."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Tuple

from backend.app.contracts import NodeGroup


@dataclass(frozen=True)
class GroupStyle:
    """Visual attributes shared by every node of one group."""

    label: str
    color: str
    radius_base: float
    weight_cap: float
    font_size: int
    font_weight: str


GROUP_STYLES: Mapping[NodeGroup, GroupStyle] = MappingProxyType(
    {
        NodeGroup.PAPER: GroupStyle("Paper", "#4f46e5", 12.0, 5.0, 10, "bold"),
        NodeGroup.AUTHOR: GroupStyle("Author", "#059669", 8.0, 3.0, 8, "normal"),
        NodeGroup.INSTITUTE: GroupStyle("Institute", "#d97706", 10.0, 0.0, 8, "normal"),
        NodeGroup.CONCEPT: GroupStyle("Concept", "#64748b", 5.0, 3.0, 8, "normal"),
        NodeGroup.METHOD: GroupStyle("Method", "#db2777", 5.0, 3.0, 8, "normal"),
    }
)

_missing = set(NodeGroup) - set(GROUP_STYLES)
if _missing:  # pragma: no cover - guards edits to NodeGroup
    raise RuntimeError(f"Missing presentation styles for groups: {sorted(g.value for g in _missing)}")

LABEL_OFFSET = 4.0
EDGE_COLOR = "#cbd5e1"
EDGE_WIDTH = 1.5
NODE_STROKE = "#ffffff"
NODE_STROKE_WIDTH = 2.0
LABEL_COLOR = "#334155"


def style_for(group: NodeGroup) -> GroupStyle:
    return GROUP_STYLES[group]


def node_radius(group: NodeGroup, weight: float) -> float:
    """Return the rendered radius: group base plus weight, capped per group."""

    style = GROUP_STYLES[group]
    return style.radius_base + min(max(weight, 0.0), style.weight_cap)


def tooltip(label: str, group: NodeGroup) -> str:
    return f"{label} ({group.value})"


def legend() -> List[Tuple[str, str]]:
    """Return ``(label, color)`` pairs in table order."""

    return [(style.label, style.color) for style in GROUP_STYLES.values()]


__all__ = [
    "EDGE_COLOR",
    "EDGE_WIDTH",
    "GROUP_STYLES",
    "GroupStyle",
    "LABEL_COLOR",
    "LABEL_OFFSET",
    "NODE_STROKE",
    "NODE_STROKE_WIDTH",
    "legend",
    "node_radius",
    "style_for",
    "tooltip",
]
