"""
Document Instance Registry.

Keeps one independent slot per document kind so switching kinds never loses
what was loaded for another kind. The active view is a projection of the
selected slot, never a copy that can drift.

Asynchronous results (decoded uploads, page counts, viewport measurements)
carry a generation token; results whose token no longer matches the slot are
dropped.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from overlay_logic import (
    DEFAULT_NATURAL_PAGE_SIZE,
    PagingModel,
    RectParams,
    ViewportRect,
    clamp_page_number,
    to_viewport_rect,
)

logger = logging.getLogger(__name__)


class DocumentKind(Enum):
    PAGINATED = "pdf"
    MARKUP = "html"
    PLAIN_TEXT = "text"


PAGING_MODELS = {
    DocumentKind.PAGINATED: PagingModel.DISCRETE,
    DocumentKind.MARKUP: PagingModel.CONTINUOUS,
}


class InstanceState(Enum):
    EMPTY = "empty"
    LOADED = "loaded"


@dataclass
class DocumentInstance:
    raw_handle: Any = None
    text_content: Optional[str] = None
    page_count: Optional[int] = None
    generation: int = 0
    loaded: bool = False
    rect: RectParams = field(default_factory=RectParams)
    natural_size: Optional[tuple] = None
    viewport_size: Optional[tuple] = None
    layout_generation: int = 0

    @property
    def state(self) -> InstanceState:
        return InstanceState.LOADED if self.loaded else InstanceState.EMPTY


@dataclass(frozen=True)
class ActiveView:
    kind: Optional[DocumentKind] = None
    raw_handle: Any = None
    text_content: Optional[str] = None
    page_count: Optional[int] = None
    rect: RectParams = RectParams()

    @property
    def is_empty(self) -> bool:
        return self.raw_handle is None and self.text_content is None


class DocumentRegistry:
    """
    Single writer for per-kind document state.

    Handlers:
    - upload / begin_upload + complete_upload for new content
    - on_page_count_known, on_natural_page_size_known, on_viewport_measured
      for values reported by the renderer
    - update_rect_params for user rectangle parameters
    """

    def __init__(self, natural_page_size: tuple = DEFAULT_NATURAL_PAGE_SIZE):
        self.default_natural_size = natural_page_size
        self._instances = {}
        self._active_kind: Optional[DocumentKind] = None
        self._new_instances()

    def _new_instances(self) -> None:
        previous = self._instances
        self._instances = {}
        for kind in DocumentKind:
            # Generations keep counting across resets so pending callbacks stay stale.
            old = previous.get(kind)
            self._instances[kind] = DocumentInstance(
                generation=old.generation + 1 if old else 0,
                layout_generation=old.layout_generation + 1 if old else 0,
                natural_size=self._default_natural_size(kind),
            )

    def _default_natural_size(self, kind: DocumentKind) -> Optional[tuple]:
        return self.default_natural_size if kind is DocumentKind.PAGINATED else None

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    @property
    def active_kind(self) -> Optional[DocumentKind]:
        return self._active_kind

    @property
    def active_view(self) -> ActiveView:
        if self._active_kind is None:
            return ActiveView()
        inst = self._instances[self._active_kind]
        return ActiveView(
            kind=self._active_kind,
            raw_handle=inst.raw_handle,
            text_content=inst.text_content,
            page_count=inst.page_count,
            rect=inst.rect,
        )

    def instance(self, kind: DocumentKind) -> DocumentInstance:
        return self._instances[kind]

    def select_kind(self, kind: Optional[DocumentKind]) -> ActiveView:
        """Make ``kind`` active (or none) and return the resulting view."""
        self._active_kind = kind
        return self.active_view

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def begin_upload(self, kind: DocumentKind) -> int:
        """Start an upload whose content arrives later; returns its token."""
        inst = self._instances[kind]
        inst.generation += 1
        return inst.generation

    def complete_upload(
        self,
        kind: DocumentKind,
        token: int,
        raw_handle: Any,
        text_content: Optional[str],
    ) -> bool:
        """Store decoded content if ``token`` is still the latest upload."""
        inst = self._instances[kind]
        if token != inst.generation:
            logger.debug(
                "Dropping stale upload for %s (token %d, current %d)",
                kind.value,
                token,
                inst.generation,
            )
            return False

        inst.raw_handle = raw_handle
        inst.text_content = text_content
        inst.page_count = None
        inst.loaded = True
        inst.viewport_size = None
        inst.natural_size = self._default_natural_size(kind)
        inst.layout_generation += 1
        self._clamp_page(kind)
        logger.info("Loaded %s document (generation %d)", kind.value, token)
        return True

    def upload(
        self, kind: DocumentKind, raw_handle: Any, text_content: Optional[str]
    ) -> None:
        self.complete_upload(kind, self.begin_upload(kind), raw_handle, text_content)

    def generation(self, kind: DocumentKind) -> int:
        return self._instances[kind].generation

    def reset(self) -> None:
        """Clear every slot to empty and deselect the active kind."""
        self._new_instances()
        self._active_kind = None
        logger.info("Registry reset")

    # ------------------------------------------------------------------
    # Values reported by the renderer
    # ------------------------------------------------------------------

    def begin_measure(self, kind: DocumentKind) -> int:
        """Token for a layout measurement of the current content and scale."""
        return self._instances[kind].layout_generation

    def _stale_layout(self, kind: DocumentKind, token: Optional[int], what: str) -> bool:
        inst = self._instances[kind]
        if token is not None and token != inst.layout_generation:
            logger.debug(
                "Dropping stale %s for %s (token %d, current %d)",
                what,
                kind.value,
                token,
                inst.layout_generation,
            )
            return True
        return False

    def report_page_count(
        self, kind: DocumentKind, count: Optional[int], token: Optional[int] = None
    ) -> bool:
        """
        Store the page count for ``kind``.

        The count is kept even when ``kind`` is not active; the active view
        only shows it once that kind is selected again.
        """
        if self._stale_layout(kind, token, "page count"):
            return False
        inst = self._instances[kind]
        inst.page_count = None if count is None else max(0, int(count))
        self._clamp_page(kind)
        return True

    def on_page_count_known(self, count: int, token: Optional[int] = None) -> bool:
        if self._active_kind is None:
            return False
        return self.report_page_count(self._active_kind, count, token)

    def on_natural_page_size_known(
        self,
        width: float,
        height: float,
        kind: Optional[DocumentKind] = None,
        token: Optional[int] = None,
    ) -> bool:
        kind = kind or self._active_kind
        if kind is None or self._stale_layout(kind, token, "page size"):
            return False
        self._instances[kind].natural_size = (float(width), float(height))
        return True

    def on_viewport_measured(
        self,
        width: float,
        height: float,
        kind: Optional[DocumentKind] = None,
        token: Optional[int] = None,
    ) -> bool:
        kind = kind or self._active_kind
        if kind is None or self._stale_layout(kind, token, "viewport size"):
            return False
        inst = self._instances[kind]
        inst.viewport_size = (float(width), float(height))
        if PAGING_MODELS.get(kind) is PagingModel.CONTINUOUS:
            # The virtual page of a flowing document is the viewport itself.
            inst.natural_size = inst.viewport_size
        self._clamp_page(kind)
        return True

    # ------------------------------------------------------------------
    # Rectangle parameters
    # ------------------------------------------------------------------

    def rect_params(self, kind: Optional[DocumentKind] = None) -> RectParams:
        kind = kind or self._active_kind
        if kind is None:
            return RectParams()
        return self._instances[kind].rect

    def update_rect_params(
        self, kind: Optional[DocumentKind] = None, **changes
    ) -> RectParams:
        """
        Apply user parameter changes to the rectangle of ``kind``.

        A scale change on a continuously scrolling kind invalidates its page
        count and measured viewport; measurements taken before the change are
        then ignored. The page number is clamped after every change, so an
        invalidated count puts the rectangle back on page 1.
        """
        kind = kind or self._active_kind
        if kind is None:
            return RectParams()
        inst = self._instances[kind]
        old_scale = inst.rect.scale
        inst.rect = inst.rect.with_changes(**changes)

        if (
            inst.rect.scale != old_scale
            and PAGING_MODELS.get(kind) is PagingModel.CONTINUOUS
        ):
            inst.page_count = None
            inst.viewport_size = None
            inst.layout_generation += 1
        self._clamp_page(kind)
        return inst.rect

    def reset_rect_params(self, kind: Optional[DocumentKind] = None) -> RectParams:
        kind = kind or self._active_kind
        if kind is None:
            return RectParams()
        self._instances[kind].rect = RectParams()
        self._clamp_page(kind)
        return self._instances[kind].rect

    def _clamp_page(self, kind: DocumentKind) -> None:
        inst = self._instances[kind]
        page = clamp_page_number(inst.rect.page_number, inst.page_count)
        if page != inst.rect.page_number:
            inst.rect = replace(inst.rect, page_number=page)

    # ------------------------------------------------------------------
    # Overlay
    # ------------------------------------------------------------------

    def viewport_rect(self, kind: Optional[DocumentKind] = None) -> Optional[ViewportRect]:
        """Overlay rectangle for ``kind`` (default active); None for plain text."""
        kind = kind or self._active_kind
        model = PAGING_MODELS.get(kind)
        if model is None:
            return None
        inst = self._instances[kind]
        natural_w, natural_h = inst.natural_size or (None, None)
        viewport_w, viewport_h = inst.viewport_size or (None, None)
        return to_viewport_rect(
            inst.rect, natural_w, natural_h, viewport_w, viewport_h, model
        )
