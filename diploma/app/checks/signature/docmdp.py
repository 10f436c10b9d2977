"""
Locate the document-level certification (DocMDP) signature.

Only the minimal object graph is read:

    trailer /Root /Perms /DocMDP  ->  /Contents, /SubFilter, /ByteRange

The /ByteRange sanity check here is the primary defense against a
document whose signed span does not cover the claimed full file:

    o0 == 0  and  o1 + l1 == len(pdf_bytes)

It is checked before any hashing or envelope parsing takes place.

Error handling policy:
    Only pikepdf.PdfError is caught (structural parse failure). Missing or
    mistyped objects are reported through the typed errors below; anything
    else is a logic error and propagates.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Tuple

import pikepdf

from diploma.app.errors import (
    DocumentParseError,
    InvalidByteRangeError,
    MalformedSignatureError,
    SignatureNotFoundError,
)
from diploma.app.schemas.signature import SignatureDescriptor, SubFilterKind

logger = logging.getLogger(__name__)


def _read_byte_range(value: object) -> Tuple[int, int, int, int]:
    if not isinstance(value, pikepdf.Array) or len(value) != 4:
        raise InvalidByteRangeError("could not find ByteRange")

    items = []
    for item in value:
        # pikepdf returns PDF integers as plain Python ints.
        if not isinstance(item, int) or isinstance(item, bool):
            raise InvalidByteRangeError("invalid ByteRange type")
        items.append(int(item))
    return items[0], items[1], items[2], items[3]


def check_byte_range_coverage(
    byte_range: Tuple[int, int, int, int], document_length: int
) -> None:
    """
    Require the two signed spans to cover the whole file.

    The only bytes allowed outside the spans are those of the signature
    container between them.
    """
    o0, l0, o1, l1 = byte_range

    if o0 != 0 or o1 + l1 != document_length:
        raise InvalidByteRangeError("byte ranges don't cover the entire PDF")

    if l0 < 0 or l1 < 0 or o1 < l0:
        raise InvalidByteRangeError("byte ranges overlap or run backwards")


def locate_signature(pdf_bytes: bytes) -> SignatureDescriptor:
    """
    Find the DocMDP signature and validate its byte range.

    Raises:
        DocumentParseError: the input is not a parsable PDF.
        SignatureNotFoundError: no /Perms /DocMDP signature dictionary.
        MalformedSignatureError: /Contents or /SubFilter missing or mistyped.
        InvalidByteRangeError: /ByteRange missing, mistyped or not covering
            the file.
        UnsupportedSubFilterError: /SubFilter is not a supported format.
    """
    try:
        with pikepdf.open(BytesIO(pdf_bytes)) as pdf:
            root = pdf.trailer.get("/Root")
            perms = root.get("/Perms") if isinstance(root, pikepdf.Dictionary) else None
            sig = perms.get("/DocMDP") if isinstance(perms, pikepdf.Dictionary) else None

            if not isinstance(sig, pikepdf.Dictionary):
                raise SignatureNotFoundError("could not find signature")

            contents = sig.get("/Contents")
            sub_filter = sig.get("/SubFilter")
            if not isinstance(contents, pikepdf.String) or not isinstance(
                sub_filter, pikepdf.Name
            ):
                raise MalformedSignatureError("could not extract signature")

            byte_range = _read_byte_range(sig.get("/ByteRange"))
            signature_bytes = bytes(contents)
            sub_filter_name = str(sub_filter)

    except pikepdf.PdfError as exc:
        logger.warning("Diploma PDF could not be parsed: %s", exc)
        raise DocumentParseError("parse PDF", exc) from exc

    check_byte_range_coverage(byte_range, len(pdf_bytes))

    return SignatureDescriptor(
        byte_range=byte_range,
        sub_filter=SubFilterKind.from_pdf_name(sub_filter_name),
        signature_bytes=signature_bytes,
    )
