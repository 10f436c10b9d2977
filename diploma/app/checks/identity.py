"""
Match extracted diplomas against the identity disclosed by the user.

A diploma may only be turned into attributes for the person it was issued
to. Every extracted attribute set must match the disclosed family name
(including the prefix, e.g. "van der") and date of birth.
"""

from __future__ import annotations

from diploma.app.errors import IdentityMismatchError
from diploma.app.schemas.attributes import AttributeMap, ExtractedAttributeSet


def full_family_name(attributes: AttributeMap) -> str:
    familyname = attributes.get("familyname", "")
    prefix = attributes.get("prefix", "")
    if prefix:
        return f"{prefix} {familyname}"
    return familyname


def match_disclosed_identity(
    attribute_set: ExtractedAttributeSet,
    familyname: str,
    dateofbirth: str,
) -> None:
    """
    Raises:
        IdentityMismatchError: with field "familyname" or "dateofbirth".
    """
    for attributes in attribute_set:
        if full_family_name(attributes) != familyname:
            raise IdentityMismatchError("familyname")
        if attributes.get("dateofbirth", "") != dateofbirth:
            raise IdentityMismatchError("dateofbirth")
