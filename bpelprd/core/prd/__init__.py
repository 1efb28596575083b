"""PRD rendering: markdown, JSON summary, diagram and completeness gates."""

from .diagram import render_activity_diagram
from .gates import GAP_TABLE_COLUMNS, get_gates, run_gates
from .mapping import ComponentMapping, map_components
from .renderer import SECTION_TITLES, RenderOptions, render_markdown
from .summary import build_summary

__all__ = [
    "ComponentMapping",
    "GAP_TABLE_COLUMNS",
    "RenderOptions",
    "SECTION_TITLES",
    "build_summary",
    "get_gates",
    "map_components",
    "render_activity_diagram",
    "render_markdown",
    "run_gates",
]
