"""Selector queries.

Raw selector strings are parsed exactly once, at the system boundary, into
one of the ``SelectorQuery`` variants below.  Everything downstream matches
on the variant type and never re-inspects the string prefix.

Grammar::

    aria/<label>     fuzzy accessible-name match
    text/<substring> visible text containment
    xpath/<expr>     XPath, first ordered node
    id/<n> | <n>     snapshot marker id
    anything else    CSS (optionally ``<base>:contains("<text>")``)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

_CONTAINS_RE = re.compile(r'^(?P<base>.+?):contains\((?P<quote>["\'])(?P<text>.+?)(?P=quote)\)$', re.DOTALL)


@dataclass(frozen=True)
class Css:
    selector: str
    contains: str = ""

    def to_string(self) -> str:
        if self.contains:
            return f'{self.selector}:contains("{self.contains}")'
        return self.selector

    def descriptor(self) -> dict[str, Any]:
        """Collect op name plus the op's arguments for the in-page runtime."""
        return {"op": "css", "selector": self.selector, "contains": self.contains}


@dataclass(frozen=True)
class AriaFuzzy:
    label: str

    def to_string(self) -> str:
        return f"aria/{self.label}"

    def descriptor(self) -> dict[str, Any]:
        return {"op": "aria", "label": self.label}


@dataclass(frozen=True)
class Text:
    text: str

    def to_string(self) -> str:
        return f"text/{self.text}"

    def descriptor(self) -> dict[str, Any]:
        return {"op": "text", "text": self.text}


@dataclass(frozen=True)
class XPath:
    expression: str

    def to_string(self) -> str:
        return f"xpath/{self.expression}"

    def descriptor(self) -> dict[str, Any]:
        return {"op": "xpath", "expression": self.expression}


@dataclass(frozen=True)
class MarkerId:
    marker: int

    def to_string(self) -> str:
        return f"id/{self.marker}"

    def descriptor(self) -> dict[str, Any]:
        return {"op": "marker", "marker": self.marker}


SelectorQuery = Union[Css, AriaFuzzy, Text, XPath, MarkerId]


def parse_selector(raw: str) -> SelectorQuery:
    """Parse a raw selector string into a ``SelectorQuery`` variant.

    Raises:
        ValueError: If *raw* is empty or a marker id is not a non-negative integer.
    """
    if raw is None or not raw.strip():
        raise ValueError("Selector must be a non-empty string")
    value = raw.strip()

    if value.startswith("aria/"):
        return AriaFuzzy(value[len("aria/"):].strip())
    if value.startswith("text/"):
        return Text(value[len("text/"):].strip())
    if value.startswith("xpath/"):
        return XPath(value[len("xpath/"):].strip())
    if value.startswith("id/"):
        marker = value[len("id/"):].strip()
        if not marker.isdigit():
            raise ValueError(f"Marker id must be a non-negative integer: {raw!r}")
        return MarkerId(int(marker))
    if value.isdigit():
        return MarkerId(int(value))

    match = _CONTAINS_RE.match(value)
    if match:
        return Css(match.group("base").strip(), contains=match.group("text"))
    return Css(value)


def ensure_query(selector: str | SelectorQuery) -> SelectorQuery:
    """Accept either an already-parsed query or a raw string."""
    if isinstance(selector, str):
        return parse_selector(selector)
    return selector
