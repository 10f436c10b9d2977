"""
Structural classification of rendered diploma elements.

The renderer lays out each visual row as a ``div``. Two shapes matter:

    <div>Uittreksel uit het diplomaregister</div>       single text child
    <div>Achternaam<span>:</span>Jansen</div>           label, separator, value

lxml stores text as ``.text``/``.tail`` strings rather than nodes, so
node_children() rebuilds the DOM child list with explicit TextNode entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Union

from lxml import html

DIPLOMA_MARKER = "Uittreksel uit het diplomaregister"


@dataclass(frozen=True)
class TextNode:
    text: str


Child = Union[TextNode, html.HtmlElement]


class ElementKind(str, Enum):
    MARKER = "marker"
    ROW = "row"
    SINGLE_TEXT = "single_text"
    OTHER = "other"


def node_children(element: html.HtmlElement) -> List[Child]:
    """Direct children in document order, text nodes included."""
    children: List[Child] = []
    if element.text:
        children.append(TextNode(element.text))
    for child in element:
        children.append(child)
        if child.tail:
            children.append(TextNode(child.tail))
    return children


def classify(children: List[Child]) -> ElementKind:
    if len(children) == 1 and isinstance(children[0], TextNode):
        if children[0].text == DIPLOMA_MARKER:
            return ElementKind.MARKER
        return ElementKind.SINGLE_TEXT

    if (
        len(children) == 3
        and isinstance(children[0], TextNode)
        and isinstance(children[2], TextNode)
    ):
        return ElementKind.ROW

    return ElementKind.OTHER
