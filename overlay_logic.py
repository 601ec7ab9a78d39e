"""
Overlay Coordinate Transform.

Maps a rectangle given in a document's natural (unscaled) page space onto the
rendered viewport:
- Discrete page model: percentages of the natural page, one page visible
- Continuous scroll model: pixels inside a scaled surface that is paged
  virtually by viewport height
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_NATURAL_PAGE_SIZE = (595.0, 842.0)  # A4 in points


class PagingModel(Enum):
    DISCRETE = "discrete"
    CONTINUOUS = "continuous"


class RectUnit(Enum):
    PERCENT = "percent"
    PIXELS = "px"


@dataclass(frozen=True)
class RectParams:
    """User rectangle in natural page units, plus the page and zoom it targets."""

    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 100.0
    page_number: int = 1
    scale: float = 1.0

    def with_changes(self, **changes) -> "RectParams":
        """
        Return a copy with ``changes`` applied.

        Negative geometry becomes 0 and a non-positive scale keeps the current
        one; the page number is left for clamp_page_number.
        """
        for key in ("x", "y", "width", "height"):
            if key in changes:
                changes[key] = max(0.0, float(changes[key]))
        if "scale" in changes:
            scale = float(changes["scale"])
            if not scale > 0:
                changes.pop("scale")
            else:
                changes["scale"] = scale
        if "page_number" in changes:
            changes["page_number"] = int(changes["page_number"])
        return replace(self, **changes)


@dataclass(frozen=True)
class ViewportRect:
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0
    unit: RectUnit = RectUnit.PERCENT

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_pixels(self, rendered_width: float, rendered_height: float) -> "ViewportRect":
        """Resolve a percentage rectangle against the rendered page size."""
        if self.unit is RectUnit.PIXELS:
            return self
        fx = rendered_width / 100.0
        fy = rendered_height / 100.0
        return ViewportRect(
            self.left * fx,
            self.top * fy,
            self.width * fx,
            self.height * fy,
            RectUnit.PIXELS,
        )


def _unknown(value: Optional[float]) -> bool:
    return value is None or not value > 0


def to_viewport_rect(
    rect: RectParams,
    natural_page_width: Optional[float],
    natural_page_height: Optional[float],
    rendered_viewport_width: Optional[float] = None,
    rendered_viewport_height: Optional[float] = None,
    paging_model: PagingModel = PagingModel.DISCRETE,
) -> ViewportRect:
    """
    Convert a natural-space rectangle to viewport coordinates.

    Args:
        rect: Rectangle parameters in natural page units
        natural_page_width: Unscaled page width
        natural_page_height: Unscaled page height
        rendered_viewport_width: Measured viewport width in pixels
        rendered_viewport_height: Measured viewport height in pixels
            (the virtual page height of the continuous model)
        paging_model: DISCRETE or CONTINUOUS

    Returns:
        Percentages of the page (discrete) or pixels in the scrolling surface
        (continuous). All zero when the natural size is unknown.
    """
    if _unknown(natural_page_width) or _unknown(natural_page_height):
        logger.debug("Natural page size unknown; overlay collapsed to zero")
        unit = (
            RectUnit.PIXELS
            if paging_model is PagingModel.CONTINUOUS
            else RectUnit.PERCENT
        )
        return ViewportRect(unit=unit)

    if paging_model is PagingModel.DISCRETE:
        return ViewportRect(
            left=rect.x / natural_page_width * 100.0,
            top=rect.y / natural_page_height * 100.0,
            width=rect.width / natural_page_width * 100.0,
            height=rect.height / natural_page_height * 100.0,
            unit=RectUnit.PERCENT,
        )

    # Continuous: preceding virtual pages are a whole viewport height each.
    page_height = 0.0 if _unknown(rendered_viewport_height) else rendered_viewport_height
    page_offset = (max(1, rect.page_number) - 1) * page_height
    return ViewportRect(
        left=rect.x * rect.scale,
        top=page_offset + rect.y * rect.scale,
        width=rect.width * rect.scale,
        height=rect.height * rect.scale,
        unit=RectUnit.PIXELS,
    )


def clamp_page_number(page_number: int, page_count: Optional[int]) -> int:
    """Clamp into [1, page_count]; an unknown or zero count forces page 1."""
    if not page_count or page_count < 1:
        return 1
    return min(max(1, int(page_number)), int(page_count))


def virtual_page_count(content_height: float, viewport_height: float) -> int:
    """Number of viewport-high pages needed to show ``content_height``."""
    if content_height is None or content_height <= 0:
        return 1
    if _unknown(viewport_height):
        return 1
    return max(1, math.ceil(content_height / viewport_height))


def scroll_offset_for_page(page_number: int, viewport_height: float) -> float:
    if _unknown(viewport_height):
        return 0.0
    return (max(1, page_number) - 1) * viewport_height
