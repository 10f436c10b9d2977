"""
Attribute Extractor.

Walks each rendered diploma page, recovers label/value rows and maps them
onto the canonical attribute vocabulary.

The walk is a two-state machine over the page's ``div`` elements in
document order:

    IDLE                    MARKER       -> page is a diploma page
                            ROW          -> store label/value; AWAITING_CONTINUATION
                                            if the label is the institution
                            other        -> nothing

    AWAITING_CONTINUATION   MARKER or SINGLE_TEXT
                                         -> append text to the institution value
                            anything else -> back to IDLE, then handled as IDLE

Institution names wrap onto a second visual line; the continuation state
joins them back together.

Completeness policy:
    A page without the marker is skipped. A page with the marker that lacks
    a required attribute (or holds it empty) aborts the whole batch: a
    recognised but incompletely parsed diploma must never become a
    credential with a gap.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import AbstractSet, Iterable, Optional

from lxml import html

from diploma.app.errors import MissingAttributeError
from diploma.app.extraction.dom import ElementKind, classify, node_children
from diploma.app.extraction.translation import INSTITUTION_LABEL, translate_attributes
from diploma.app.schemas.attributes import (
    CANONICAL_ATTRIBUTES,
    DEFAULT_REQUIRED_ATTRIBUTES,
    AttributeMap,
    ExtractedAttributeSet,
    RawAttributeMap,
)

logger = logging.getLogger(__name__)


class WalkState(str, Enum):
    IDLE = "idle"
    AWAITING_CONTINUATION = "awaiting_continuation"


class PageWalk:
    """Accumulates the raw rows of a single page."""

    def __init__(self) -> None:
        self.state = WalkState.IDLE
        self.valid_page = False
        self.raw: RawAttributeMap = {}

    def visit(self, element: html.HtmlElement) -> None:
        children = node_children(element)
        kind = classify(children)

        if self.state is WalkState.AWAITING_CONTINUATION:
            if kind in (ElementKind.MARKER, ElementKind.SINGLE_TEXT):
                text = children[0].text.strip()
                self.raw[INSTITUTION_LABEL] += " " + text
                return
            self.state = WalkState.IDLE

        if kind is ElementKind.MARKER:
            self.valid_page = True
        elif kind is ElementKind.ROW:
            label = children[0].text.strip()
            self.raw[label] = children[2].text.strip()
            if label == INSTITUTION_LABEL:
                self.state = WalkState.AWAITING_CONTINUATION


def walk_page(page: html.HtmlElement) -> PageWalk:
    walk = PageWalk()
    for element in page.iterdescendants("div"):
        walk.visit(element)
    return walk


def check_required(
    attributes: AttributeMap, required: AbstractSet[str]
) -> None:
    for key in CANONICAL_ATTRIBUTES:
        if key in required and not attributes.get(key):
            raise MissingAttributeError(key)


def extract_page(
    page: html.HtmlElement,
    required: AbstractSet[str] = DEFAULT_REQUIRED_ATTRIBUTES,
) -> Optional[AttributeMap]:
    """
    Extract the attributes of one page.

    Returns None for pages that are not diploma pages (e.g. the last page
    of a list of marks).

    Raises:
        MissingAttributeError: the page is a diploma page but incomplete.
    """
    walk = walk_page(page)
    if not walk.valid_page:
        return None

    attributes = translate_attributes(walk.raw)
    check_required(attributes, required)
    return attributes


def extract_attributes(
    pages: Iterable[html.HtmlElement],
    required: AbstractSet[str] = DEFAULT_REQUIRED_ATTRIBUTES,
) -> ExtractedAttributeSet:
    """
    Extract one attribute map per diploma page, in page order.

    Raises:
        MissingAttributeError: any diploma page is incomplete. No partial
            result is returned.
    """
    attribute_set: ExtractedAttributeSet = []
    for index, page in enumerate(pages):
        attributes = extract_page(page, required)
        if attributes is None:
            logger.debug("Page %d carries no diploma attributes; skipped", index)
            continue
        attribute_set.append(attributes)

    logger.info("Extracted %d diploma attribute set(s)", len(attribute_set))
    return attribute_set
