"""
Translation of raw diploma labels into canonical attributes.

Each label on the extract maps to a tagged transformation. Adding a field
is a change to LABEL_TABLE, not to the translation loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from diploma.app.extraction.dutch_dates import (
    parse_dutch_date,
    parse_dutch_date_or_month,
)
from diploma.app.schemas.attributes import AttributeMap, RawAttributeMap

logger = logging.getLogger(__name__)

INSTITUTION_LABEL = "Instelling"

_INSTITUTION_SEPARATOR = " in "

_GENDERS = {
    "Man": "male",
    "Vrouw": "female",
}


class Transform(str, Enum):
    COPY = "copy"
    GENDER = "gender"
    DATE = "date"
    DATE_OR_MONTH = "date_or_month"
    SPLIT_INSTITUTION = "split_institution"
    IGNORE = "ignore"


@dataclass(frozen=True)
class LabelRule:
    transform: Transform
    key: Optional[str] = None


LABEL_TABLE: Dict[str, LabelRule] = {
    "Achternaam": LabelRule(Transform.COPY, "familyname"),
    "Tussenvoegsel": LabelRule(Transform.COPY, "prefix"),
    "Voorna(a)m(en)": LabelRule(Transform.COPY, "firstname"),
    "Geslacht": LabelRule(Transform.GENDER, "gender"),
    "Geboortedatum": LabelRule(Transform.DATE, "dateofbirth"),
    "Soort waardedocument": LabelRule(Transform.IGNORE),
    "Opleiding": LabelRule(Transform.COPY, "education"),
    # University and the like, e.g. "WO Master".
    "Aard van het examen": LabelRule(Transform.COPY, "degree"),
    # High school, e.g. "Nieuw Profiel Natuur en Techniek".
    "Profiel": LabelRule(Transform.COPY, "profile"),
    "Behaald in": LabelRule(Transform.DATE_OR_MONTH, "achieved"),
    "Behaald op": LabelRule(Transform.DATE_OR_MONTH, "achieved"),
    INSTITUTION_LABEL: LabelRule(Transform.SPLIT_INSTITUTION),
}


def split_institution(value: str) -> Optional[Dict[str, str]]:
    """
    Split "<name> in <CITY>" on the last " in ".

    Returns None when there is no separator; the field is then dropped.
    """
    name, separator, city = value.rpartition(_INSTITUTION_SEPARATOR)
    if not separator:
        return None
    return {"institute": name.strip(), "city": city.strip()}


def _apply(rule: LabelRule, label: str, value: str) -> Dict[str, str]:
    if rule.transform is Transform.COPY:
        return {rule.key: value}

    if rule.transform is Transform.GENDER:
        return {rule.key: _GENDERS.get(value, "unknown")}

    if rule.transform is Transform.DATE:
        date = parse_dutch_date(value)
        if not date:
            logger.debug("Cannot parse date for %s: %r", label, value)
        return {rule.key: date}

    if rule.transform is Transform.DATE_OR_MONTH:
        date = parse_dutch_date_or_month(value)
        if not date:
            logger.debug("Cannot parse date for %s: %r", label, value)
        return {rule.key: date}

    if rule.transform is Transform.SPLIT_INSTITUTION:
        parts = split_institution(value)
        if parts is None:
            logger.debug("Cannot split institution %r", value)
            return {}
        return parts

    return {}


def translate_attributes(raw: RawAttributeMap) -> AttributeMap:
    """Map raw label/value pairs onto the canonical attribute vocabulary."""
    attributes: AttributeMap = {}
    for label, value in raw.items():
        rule = LABEL_TABLE.get(label)
        if rule is None:
            if label:
                logger.debug("Unknown property: %s = %s", label, value)
            continue
        attributes.update(_apply(rule, label, value))
    return attributes
