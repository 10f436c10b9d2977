"""
Canonical diploma attribute vocabulary.

Attribute values are plain strings; an attribute set is handed to the
issuance layer as a list of plain dicts, one per diploma page.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Tuple

AttributeMap = Dict[str, str]
RawAttributeMap = Dict[str, str]
ExtractedAttributeSet = List[AttributeMap]


CANONICAL_ATTRIBUTES: Tuple[str, ...] = (
    "familyname",
    "prefix",
    "firstname",
    "gender",
    "dateofbirth",
    "education",
    "degree",
    "profile",
    "achieved",
    "institute",
    "city",
)

# degree and profile depend on the kind of diploma (university vs. high
# school) and are optional by default.
DEFAULT_REQUIRED_ATTRIBUTES: FrozenSet[str] = frozenset(
    {
        "familyname",
        "firstname",
        "gender",
        "dateofbirth",
        "education",
        "achieved",
        "institute",
        "city",
    }
)
