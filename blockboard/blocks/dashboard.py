"""
Render a public dashboard (as returned by ``GET /dashboards/{id}``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from blockboard.blocks.display import BlockContext, MetricView
from blockboard.blocks.registry import UnknownBlockTypeError, resolve

logger = logging.getLogger(__name__)

LOAD_ERROR_TITLE = "Couldn't load the data"


@dataclass
class DashboardView:
    id: int
    name: str
    blocks: list[MetricView] = field(default_factory=list)


def render_block(block: dict, context: BlockContext) -> MetricView:
    """
    Render one stored block. A block that cannot be rendered becomes an
    error view instead of taking the whole dashboard down.
    """
    try:
        registered = resolve(block["type"])
    except UnknownBlockTypeError as exc:
        logger.error("%s (block %s)", exc, block.get("id"))
        return MetricView(title=LOAD_ERROR_TITLE, error=exc)

    try:
        view = registered.display().render(block.get("settings") or {}, context)
    except (KeyError, TypeError) as exc:
        logger.warning("Block %s has unusable settings: %r", block.get("id"), exc)
        return MetricView(title=LOAD_ERROR_TITLE, error=exc)

    if view.error is not None:
        view.title = LOAD_ERROR_TITLE
    return view


def render_dashboard(
    dashboard: dict, context: BlockContext | None = None
) -> DashboardView:
    context = context or BlockContext()
    return DashboardView(
        id=dashboard["id"],
        name=dashboard["name"],
        blocks=[render_block(block, context) for block in dashboard.get("blocks", [])],
    )
