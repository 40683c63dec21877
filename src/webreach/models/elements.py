"""Element, frame and snapshot value types.

``ElementRecord`` mirrors the plain object the in-page runtime returns for
every node it collects.  Geometry in a record is *local* to the node's owning
document; ``FrameContext.to_viewport`` is the only place local coordinates are
translated into top-level viewport space.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle

FrameKind = Literal["document", "shadow", "iframe"]


@dataclass(frozen=True)
class Rect:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Rect":
        data = data or {}
        return cls(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            width=float(data.get("width", 0.0)),
            height=float(data.get("height", 0.0)),
        )


@dataclass(frozen=True)
class Viewport:
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Viewport":
        data = data or {}
        return cls(width=float(data.get("width", 0.0)), height=float(data.get("height", 0.0)))


@dataclass(frozen=True)
class FrameContext:
    """The document that owns a node plus its pixel offset from the top viewport.

    Shadow roots share their host's coordinate space, so they carry the
    offset of the document they live in.  Each same-origin iframe adds its
    own content-box position.
    """

    kind: FrameKind = "document"
    offset_x: float = 0.0
    offset_y: float = 0.0
    depth: int = 0

    def to_viewport(self, x: float, y: float) -> tuple[float, float]:
        """Translate a local coordinate into top-level viewport space."""
        return (x + self.offset_x, y + self.offset_y)

    def to_local(self, x: float, y: float) -> tuple[float, float]:
        """Translate a top-level viewport coordinate into this frame's space."""
        return (x - self.offset_x, y - self.offset_y)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FrameContext":
        data = data or {}
        return cls(
            kind=data.get("kind", "document"),
            offset_x=float(data.get("ox", 0.0)),
            offset_y=float(data.get("oy", 0.0)),
            depth=int(data.get("depth", 0)),
        )


@dataclass
class ElementRecord:
    """Raw per-node facts gathered in the page."""

    order: int
    tag: str
    rect: Rect = field(default_factory=Rect)
    frame: FrameContext = field(default_factory=FrameContext)
    role: str = ""
    input_type: str = ""
    display: str = ""
    visibility: str = ""
    opacity: float = 1.0
    aria_hidden: bool = False
    disabled: bool = False
    checked: bool | None = None
    # Stacking position of the open modal containing the node, -1 outside any
    modal_layer: int = -1
    text: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    # Accessible-name ingredients (snapshot collection only)
    labelledby_text: str = ""
    describedby_text: str = ""
    icon_label: str = ""
    label_for_text: str = ""
    # Text-query ranking hints
    exact: bool = False
    actionable: bool = False

    @property
    def viewport_rect(self) -> Rect:
        """Bounding box in top-level viewport space."""
        return self.rect.translated(self.frame.offset_x, self.frame.offset_y)

    def attr(self, name: str) -> str:
        return (self.attrs.get(name) or "").strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElementRecord":
        style = data.get("style") or {}
        try:
            opacity = float(style.get("opacity", 1.0))
        except (TypeError, ValueError):
            opacity = 1.0
        return cls(
            order=int(data.get("order", 0)),
            tag=(data.get("tag") or "").lower(),
            rect=Rect.from_dict(data.get("rect")),
            frame=FrameContext.from_dict(data.get("frame")),
            role=(data.get("role") or "").strip().lower(),
            input_type=(data.get("type") or "").lower(),
            display=style.get("display", ""),
            visibility=style.get("visibility", ""),
            opacity=opacity,
            aria_hidden=bool(data.get("aria_hidden")),
            disabled=bool(data.get("disabled")),
            checked=data.get("checked"),
            modal_layer=int(data.get("modal_layer", -1)),
            text=data.get("text") or "",
            attrs={k: str(v) for k, v in (data.get("attrs") or {}).items() if v is not None},
            labelledby_text=data.get("labelledby_text") or "",
            describedby_text=data.get("describedby_text") or "",
            icon_label=data.get("icon_label") or "",
            label_for_text=data.get("label_for_text") or "",
            exact=bool(data.get("exact")),
            actionable=bool(data.get("actionable")),
        )


@dataclass
class Candidate:
    """A resolved node: its handle, owning frame context and match score."""

    record: ElementRecord
    handle: ElementHandle | None = None
    score: int = 0
    clamped: bool = False

    @property
    def frame(self) -> FrameContext:
        return self.record.frame

    def center(self) -> tuple[float, float]:
        """Center of the node in top-level viewport coordinates."""
        return self.record.viewport_rect.center


@dataclass
class SnapshotElement:
    """One addressable interactive element in a snapshot."""

    id: int
    role: str
    name: str
    suggested_selector: str
    x: float
    y: float
    width: float
    height: float
    description: str = ""
    expanded: bool | None = None
    selected: bool | None = None
    disabled: bool = False
    checked: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["suggestedSelector"] = data.pop("suggested_selector")
        return {k: v for k, v in data.items() if v not in (None, "")}


@dataclass
class Snapshot:
    """Result of a snapshot call."""

    url: str
    title: str
    viewport: Viewport
    elements: list[SnapshotElement] = field(default_factory=list)
    generation: int = 0
    truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "viewport": {"width": self.viewport.width, "height": self.viewport.height},
            "elements": [el.to_dict() for el in self.elements],
            "truncated": self.truncated,
        }
