"""Visibility and viewport filtering over page-provided element records."""

from __future__ import annotations

from webreach.models.elements import ElementRecord, Viewport

# Nodes inside these never receive pointer input.
_HIDDEN_DISPLAYS = frozenset({"none"})


def is_interactable(
    record: ElementRecord,
    viewport: Viewport | None = None,
    *,
    constrain_to_viewport: bool = False,
    buffer_px: float = 100.0,
) -> bool:
    """Decide whether a node can plausibly receive pointer input.

    A node passes when its box has non-zero area, it is not hidden by
    ``display``/``visibility``/``opacity``, and it is not ``aria-hidden``.
    With *constrain_to_viewport*, its viewport-space box must also intersect
    the viewport expanded by *buffer_px* on every side.  Box geometry is
    translated through the node's frame context first, so nodes inside
    iframes are judged in top-level coordinates.
    """
    rect = record.rect
    if rect.width <= 0 or rect.height <= 0:
        return False
    if record.display in _HIDDEN_DISPLAYS:
        return False
    if record.visibility in ("hidden", "collapse"):
        return False
    if record.opacity <= 0:
        return False
    if record.aria_hidden:
        return False

    if constrain_to_viewport and viewport is not None:
        box = record.viewport_rect
        if box.x + box.width < -buffer_px or box.y + box.height < -buffer_px:
            return False
        if box.x > viewport.width + buffer_px or box.y > viewport.height + buffer_px:
            return False
    return True
