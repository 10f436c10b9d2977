"""
Signature metadata and the trusted document rebuilt from it.

These are internal transport objects. They are created, used and
discarded within a single verify-and-extract call.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from diploma.app.errors import UnsupportedSubFilterError


class SubFilterKind(str, Enum):
    """
    Supported signature sub-formats.

    The enum is closed. Names outside it are rejected by ``from_pdf_name``;
    there is no fallthrough member.
    """

    LEGACY_SHA1 = "adbe.pkcs7.sha1"
    DETACHED = "adbe.pkcs7.detached"

    @classmethod
    def from_pdf_name(cls, name: str) -> "SubFilterKind":
        """Resolve a PDF name such as ``/adbe.pkcs7.detached``."""
        bare = name[1:] if name.startswith("/") else name
        for member in cls:
            if member.value == bare:
                return member
        raise UnsupportedSubFilterError(bare)


class SignatureDescriptor(BaseModel):
    """
    The located DocMDP signature.

    byte_range is ``(o0, l0, o1, l1)``: the two spans that were hashed,
    excluding the signature container itself.
    """

    byte_range: Tuple[int, int, int, int]
    sub_filter: SubFilterKind
    signature_bytes: bytes = Field(repr=False)

    model_config = ConfigDict(frozen=True)

    @property
    def before_span(self) -> Tuple[int, int]:
        o0, l0, _, _ = self.byte_range
        return o0, o0 + l0

    @property
    def after_span(self) -> Tuple[int, int]:
        _, _, o1, l1 = self.byte_range
        return o1, o1 + l1

    @property
    def covered_length(self) -> int:
        _, _, o1, l1 = self.byte_range
        return o1 + l1


class TrustedDocument(BaseModel):
    """
    A document rebuilt exclusively from verified bytes.

    Bytes between the two signed spans (the signature container) are
    zero-filled. Nothing outside the spans is ever copied.
    """

    data: bytes = Field(repr=False)
    descriptor: SignatureDescriptor

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _length_matches_coverage(self) -> "TrustedDocument":
        if len(self.data) != self.descriptor.covered_length:
            raise ValueError(
                "TrustedDocument length does not match the signed coverage"
            )
        return self
