"""Data models for the scraper pipeline."""

from __future__ import annotations

import enum
from dataclasses import astuple, dataclass, field
from typing import Any, List, Optional

from lxml import html as lxml_html


@dataclass(frozen=True)
class Link:
    """An absolute URL discovered on a page, with an optional display name."""

    url: str
    name: str = ""


@dataclass
class Document:
    """A fetched page, already parsed into an lxml element tree."""

    url: str
    tree: lxml_html.HtmlElement
    status_code: int = 200


class NodeState(enum.Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    EXPANDED = "expanded"
    LEAF = "leaf"
    FAILED = "failed"


@dataclass(eq=False)
class TreeNode:
    """One category of the ATC classification.

    ``children`` stays ``None`` until the node has been fetched, then is set
    exactly once: an empty list marks a leaf.
    """

    name: str
    link: str
    children: Optional[List["TreeNode"]] = None
    state: NodeState = field(default=NodeState.PENDING, compare=False)

    def set_children(self, children: List["TreeNode"]) -> None:
        if self.children is not None:
            raise ValueError(f"Children of {self.link!r} are already set")
        self.children = list(children)

    def to_dict(self) -> dict[str, Any]:
        """Nested ``{"name", "children"}`` structure; links are not serialised."""
        return {
            "name": self.name,
            "children": [c.to_dict() for c in self.children or []],
        }

    def count(self) -> int:
        """Number of nodes in this subtree, including this one."""
        return 1 + sum(c.count() for c in self.children or [])


CSV_HEADERS = [
    "Name", "Link", "Dosage", "Manufacture",
    "INN", "PharmGroup", "Registration", "ATCCode",
]


@dataclass(frozen=True)
class Drug:
    """All information scraped from one drug detail page."""

    name: str
    link: str
    dosage: str = ""
    manufacture: str = ""
    inn: str = ""
    pharm_group: str = ""
    registration: str = ""
    atc_code: str = ""
    instruction: str = ""

    def db_row(self) -> tuple[str, ...]:
        return astuple(self)

    def csv_row(self) -> list[str]:
        # Instruction is left out of the CSV: it runs to several pages.
        return list(astuple(self)[:-1])
