"""DOM snapshot serializer and marker registry.

A snapshot enumerates the interactive elements of the page (main document,
shadow roots and same-origin iframes), names them, and tags each retained
node with a marker id so later tool calls can address it as ``id/<n>``.
Marker ids are valid until the next snapshot or main-frame navigation.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from webreach.browser.visibility import is_interactable
from webreach.models.elements import ElementRecord, Snapshot, SnapshotElement
from webreach.settings import Settings, get_settings

if TYPE_CHECKING:
    from webreach.browser.runtime import PageBridge

logger = logging.getLogger(__name__)

_CSS_IDENT_RE = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")

# Ids produced by frameworks or build tools rather than by a human author.
_GENERATED_ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^:r[0-9a-z]+:$"),  # React useId
    re.compile(r"^(ember|react-|mui-|radix-|headlessui-|yui_|ext-|gwt-|j_id)", re.IGNORECASE),
    re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-", re.IGNORECASE),  # uuid
    re.compile(r"\d{3,}"),
    re.compile(r"^[a-z0-9]{16,}$", re.IGNORECASE),
    re.compile(r"[:.]"),
)

_INPUT_ROLES = {
    "checkbox": "checkbox",
    "radio": "radio",
    "range": "slider",
    "number": "spinbutton",
    "search": "searchbox",
    "submit": "button",
    "button": "button",
    "reset": "button",
    "image": "button",
}


class MarkerRegistry:
    """Tracks which snapshot generation currently owns the page's marker ids."""

    def __init__(self) -> None:
        self.generation = 0
        self.count = 0
        self.valid = False
        self.url = ""

    def begin(self) -> int:
        """Start a new generation; prior markers stop resolving immediately."""
        self.generation += 1
        self.valid = False
        self.count = 0
        return self.generation

    def commit(self, count: int, url: str = "") -> None:
        self.count = count
        self.url = url
        self.valid = True

    def invalidate(self, reason: str = "") -> None:
        if self.valid:
            logger.debug("Marker registry invalidated (generation %d): %s", self.generation, reason or "reset")
        self.valid = False
        self.count = 0

    def staleness(self, marker: int) -> str:
        """Return why *marker* cannot resolve, or ``""`` when it can."""
        if not self.valid:
            return "marker registry is stale or empty; take a new snapshot"
        if not 0 <= marker < self.count:
            return f"marker {marker} is not in the current snapshot ({self.count} element(s))"
        return ""

    def is_current(self, marker: int) -> bool:
        return not self.staleness(marker)


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------


def implicit_role(record: ElementRecord) -> str:
    """Explicit ``role`` attribute, else the role implied by tag and type."""
    if record.role:
        return record.role
    tag = record.tag
    if tag == "a":
        return "link" if record.attr("href") else "generic"
    if tag in ("button", "summary"):
        return "button"
    if tag == "select":
        return "combobox"
    if tag == "textarea":
        return "textbox"
    if tag == "input":
        return _INPUT_ROLES.get(record.input_type, "textbox")
    if record.attr("contenteditable") in ("", "true") and "contenteditable" in record.attrs:
        return "textbox"
    return "generic"


def accessible_name(record: ElementRecord, max_len: int = 80) -> str:
    """Derive the accessible name through the fallback chain.

    ``aria-label`` > ``aria-labelledby`` text > ``title`` > placeholder >
    inner text > icon label > ``<label for>`` text.
    """
    for value in (
        record.attr("aria-label"),
        record.labelledby_text,
        record.attr("title"),
        record.attr("placeholder") or record.attr("aria-placeholder"),
        record.text,
        record.icon_label,
        record.label_for_text,
    ):
        value = _truncate(value or "", max_len)
        if value:
            return value
    return ""


def looks_generated(element_id: str) -> bool:
    return any(p.search(element_id) for p in _GENERATED_ID_PATTERNS)


def suggest_selector(record: ElementRecord, marker: int, settings: Settings | None = None) -> str:
    """Pick the most stable selector string for *record*.

    Priority: ``data-testid`` attribute selector, short ``aria/<label>``,
    a hand-written ``id``, short ``text/<t>`` for buttons and links, and
    finally the snapshot marker ``id/<n>``.
    """
    limits = (settings or get_settings()).snapshot

    testid = record.attr("data-testid")
    if testid:
        return f'[data-testid="{_quote(testid)}"]'

    label = record.attr("aria-label")
    if label and len(label) <= limits.short_label_max_len:
        return f"aria/{label}"

    element_id = record.attr("id")
    if element_id and not looks_generated(element_id):
        if _CSS_IDENT_RE.match(element_id):
            return f"#{element_id}"
        return f'[id="{_quote(element_id)}"]'

    text = _truncate(record.text, limits.short_text_max_len + 1)
    if text and len(text) <= limits.short_text_max_len and implicit_role(record) in ("button", "link"):
        return f"text/{text}"

    return f"id/{marker}"


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _truncate(text: str, max_len: int) -> str:
    """Collapse whitespace and cut to *max_len* with an ellipsis."""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= max_len:
        return text
    return text[:max_len] + "…"


def _aria_bool(record: ElementRecord, name: str) -> bool | None:
    value = record.attr(name).lower()
    if value in ("true", "false"):
        return value == "true"
    return None


def build_element(record: ElementRecord, marker: int, settings: Settings | None = None) -> SnapshotElement:
    """Turn one retained record into its ``SnapshotElement``."""
    settings = settings or get_settings()
    limits = settings.snapshot
    box = record.viewport_rect
    checked = record.checked if record.checked is not None else _aria_bool(record, "aria-checked")
    return SnapshotElement(
        id=marker,
        role=implicit_role(record),
        name=accessible_name(record, limits.name_max_len),
        suggested_selector=suggest_selector(record, marker, settings),
        x=round(box.x),
        y=round(box.y),
        width=round(box.width),
        height=round(box.height),
        description=_truncate(record.describedby_text, limits.description_max_len),
        expanded=_aria_bool(record, "aria-expanded"),
        selected=_aria_bool(record, "aria-selected"),
        disabled=record.disabled,
        checked=checked,
    )


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------


class SnapshotSerializer:
    """Builds snapshots for one page and keeps its marker registry current."""

    def __init__(self, bridge: PageBridge, markers: MarkerRegistry, settings: Settings | None = None) -> None:
        self._bridge = bridge
        self._markers = markers
        self._settings = settings or get_settings()

    def snapshot(self, constrain_to_viewport: bool = False) -> Snapshot:
        """Enumerate, filter, name and mark the page's interactive elements."""
        nodes = self._bridge.collect("snapshot_collect")
        try:
            buffer_px = self._settings.resolver.viewport_buffer_px
            retained = [
                (index, record)
                for index, record in enumerate(nodes.records)
                if is_interactable(
                    record, nodes.viewport, constrain_to_viewport=constrain_to_viewport, buffer_px=buffer_px
                )
            ]
            limit = self._settings.snapshot.max_elements
            truncated = len(retained) > limit
            retained = retained[:limit]

            generation = self._markers.begin()
            elements: list[SnapshotElement] = []
            picks: list[list[int]] = []
            for marker, (index, record) in enumerate(retained):
                elements.append(build_element(record, marker, self._settings))
                picks.append([index, marker])

            self._bridge.call("snapshot_mark", set=nodes.handle, picks=picks, generation=generation)
            self._markers.commit(len(elements), nodes.url)
        finally:
            nodes.dispose()

        logger.info(
            "Snapshot generation %d: %d element(s)%s", generation, len(elements), " (truncated)" if truncated else ""
        )
        return Snapshot(
            url=nodes.url,
            title=nodes.title,
            viewport=nodes.viewport,
            elements=elements,
            generation=generation,
            truncated=truncated,
        )


def format_snapshot(snapshot: Snapshot) -> str:
    """Render a snapshot as a compact numbered listing for an LLM prompt."""
    lines = [
        f"Page: {snapshot.title}",
        f"URL: {snapshot.url}",
        f"Viewport: {snapshot.viewport.width:.0f}x{snapshot.viewport.height:.0f}",
        "",
        "--- Interactive Elements ---",
    ]
    for el in snapshot.elements:
        parts = [f"[{el.id}]", el.role]
        if el.name:
            parts.append(f'"{el.name}"')
        parts.append(f"selector={el.suggested_selector}")
        parts.append(f"({el.x},{el.y})")
        if el.disabled:
            parts.append("DISABLED")
        if el.checked:
            parts.append("CHECKED")
        if el.expanded is not None:
            parts.append("EXPANDED" if el.expanded else "COLLAPSED")
        if el.selected:
            parts.append("SELECTED")
        if el.description:
            parts.append(f'desc="{el.description}"')
        lines.append(" ".join(parts))
    if snapshot.truncated:
        lines.append("(more elements omitted)")
    return "\n".join(lines)
