"""
Signed diploma PDF builders.

The DocMDP signature dictionary is written with a zero-filled /Contents
placeholder and a dummy /ByteRange. After saving, the real byte range is
patched in place (same length) and the CMS envelope is hex-encoded into
the placeholder, the same way a PDF signer fills a prepared document.
"""

from __future__ import annotations

import hashlib
import io
import re
from typing import List, Optional, Tuple

import pikepdf
from asn1crypto import algos, cms, core
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from pikepdf import Array, Dictionary, Name, String

from diploma.tests.fixtures.certificates import IssuerPKI, to_asn1


LEGACY_SHA1 = "/adbe.pkcs7.sha1"
DETACHED = "/adbe.pkcs7.detached"

CONTENTS_SIZE = 8192
REASON = "Diploma extract"

_BYTE_RANGE_PLACEHOLDER = re.compile(
    rb"\[\s*0\s+1000000000\s+2000000000\s+3000000000\s*\]"
)
_CONTENTS_PLACEHOLDER = re.compile(rb"/Contents\s*(<0+>)")


# ------------------------------------------------------------------
# Unsigned documents
# ------------------------------------------------------------------

def minimal_valid_pdf() -> bytes:
    """Structurally valid PDF without any signature."""
    buffer = io.BytesIO()
    with pikepdf.new() as pdf:
        pdf.add_blank_page(page_size=(595, 842))
        pdf.save(buffer)
    return buffer.getvalue()


def pdf_with_signature_dictionary(**entries) -> bytes:
    """PDF whose /Perms /DocMDP holds exactly ``entries``, unpatched."""
    buffer = io.BytesIO()
    with pikepdf.new() as pdf:
        pdf.add_blank_page(page_size=(595, 842))
        sig = pdf.make_indirect(Dictionary(**entries))
        pdf.Root.Perms = Dictionary(DocMDP=sig)
        pdf.save(buffer, object_stream_mode=pikepdf.ObjectStreamMode.disable)
    return buffer.getvalue()


# ------------------------------------------------------------------
# Prepared (placeholder) documents
# ------------------------------------------------------------------

def prepared_pdf(sub_filter: str = DETACHED) -> Tuple[bytes, Tuple[int, int]]:
    """
    Save a PDF with a DocMDP signature placeholder and patch its ByteRange.

    Returns the document and the ``(start, end)`` offsets of the hex
    /Contents string, angle brackets included.
    """
    base = pdf_with_signature_dictionary(
        Type=Name("/Sig"),
        Filter=Name("/Adobe.PPKLite"),
        SubFilter=Name(sub_filter),
        ByteRange=Array([0, 1000000000, 2000000000, 3000000000]),
        Contents=String(b"\x00" * CONTENTS_SIZE),
        Reason=String(REASON),
    )

    contents = _CONTENTS_PLACEHOLDER.search(base)
    if not contents:
        raise RuntimeError("Could not find /Contents placeholder")
    start, end = contents.span(1)

    placeholder = _BYTE_RANGE_PLACEHOLDER.search(base)
    if not placeholder:
        raise RuntimeError("Could not find dummy ByteRange placeholder")

    p_start, p_end = placeholder.span()
    replacement = f"[0 {start} {end} {len(base) - end}]".encode("ascii")
    replacement = replacement.ljust(p_end - p_start, b" ")
    result = base[:p_start] + replacement + base[p_end:]

    assert len(result) == len(base)
    return result, (start, end)


def embed_envelope(prepared: bytes, span: Tuple[int, int], envelope: bytes) -> bytes:
    start, end = span
    hex_length = end - start - 2
    encoded = envelope.hex().encode("ascii")
    if len(encoded) > hex_length:
        raise RuntimeError("CMS envelope does not fit the /Contents placeholder")
    return prepared[: start + 1] + encoded.ljust(hex_length, b"0") + prepared[end - 1 :]


# ------------------------------------------------------------------
# CMS envelopes
# ------------------------------------------------------------------

def build_envelope(
    pki: IssuerPKI,
    content: bytes,
    *,
    encapsulate: bool,
    digest_algorithm: str = "sha256",
    message_digest_values: Optional[List[bytes]] = None,
    encapsulated_type: str = "data",
) -> bytes:
    """
    CMS signed-data over ``content`` with content-type and message-digest
    signed attributes, RSA PKCS#1 v1.5.

    With ``encapsulate`` the content is embedded in the envelope, otherwise
    the envelope is detached. ``message_digest_values`` replaces the values
    of the message-digest attribute; ``encapsulated_type`` relabels the
    eContentType after encoding, leaving the content bytes untouched.
    """
    signer = pki.signer_asn1
    digest = hashlib.new(digest_algorithm, content).digest()
    if message_digest_values is None:
        message_digest_values = [digest]

    signed_attrs = cms.CMSAttributes(
        [
            cms.CMSAttribute({"type": "content_type", "values": ["data"]}),
            cms.CMSAttribute(
                {"type": "message_digest", "values": message_digest_values}
            ),
        ]
    )
    signature = pki.signer_key.sign(
        signed_attrs.dump(),
        padding.PKCS1v15(),
        getattr(hashes, digest_algorithm.upper())(),
    )

    signer_info = cms.SignerInfo(
        {
            "version": "v1",
            "sid": cms.SignerIdentifier(
                name="issuer_and_serial_number",
                value=cms.IssuerAndSerialNumber(
                    {
                        "issuer": signer.issuer,
                        "serial_number": signer.serial_number,
                    }
                ),
            ),
            "digest_algorithm": algos.DigestAlgorithm({"algorithm": digest_algorithm}),
            "signed_attrs": signed_attrs,
            "signature_algorithm": algos.SignedDigestAlgorithm(
                {"algorithm": "rsassa_pkcs1v15"}
            ),
            "signature": signature,
        }
    )

    encap_content_info = {"content_type": "data"}
    if encapsulate:
        encap_content_info["content"] = content

    signed_data = cms.SignedData(
        {
            "version": "v1",
            "digest_algorithms": [algos.DigestAlgorithm({"algorithm": digest_algorithm})],
            "encap_content_info": encap_content_info,
            "certificates": [
                cms.CertificateChoices(name="certificate", value=signer),
                cms.CertificateChoices(name="certificate", value=to_asn1(pki.root_cert)),
            ],
            "signer_infos": [signer_info],
        }
    )

    envelope = cms.ContentInfo(
        {"content_type": "signed_data", "content": signed_data}
    ).dump()
    if encapsulated_type != "data":
        # The first "data" OID in the encoding is the eContentType.
        envelope = envelope.replace(
            cms.ContentType("data").dump(),
            cms.ContentType(encapsulated_type).dump(),
            1,
        )
    return envelope


# ------------------------------------------------------------------
# Signed documents
# ------------------------------------------------------------------

def signed_diploma_pdf(pki: IssuerPKI, sub_filter: str = DETACHED) -> bytes:
    """
    A correctly signed diploma PDF.

    adbe.pkcs7.detached signs the two byte ranges directly;
    adbe.pkcs7.sha1 encapsulates their SHA-1 digest.
    """
    prepared, span = prepared_pdf(sub_filter)
    start, end = span
    message = prepared[:start] + prepared[end:]

    if sub_filter == LEGACY_SHA1:
        envelope = build_envelope(
            pki, hashlib.sha1(message).digest(), encapsulate=True
        )
    else:
        envelope = build_envelope(pki, message, encapsulate=False)

    return embed_envelope(prepared, span, envelope)


def tamper(pdf_bytes: bytes) -> bytes:
    """Flip one signed byte (inside /Reason) without changing the length."""
    original = REASON.encode("ascii")
    position = pdf_bytes.rindex(original)
    flipped = b"X" + original[1:]
    return pdf_bytes[:position] + flipped + pdf_bytes[position + len(original) :]


def signature_gap(pdf_bytes: bytes) -> Tuple[int, int]:
    """Offsets of the /Contents hex string in a signed document."""
    match = re.search(rb"/Contents\s*(<[0-9A-Fa-f]+>)", pdf_bytes)
    if not match:
        raise RuntimeError("Could not find /Contents")
    return match.span(1)


def unsupported_sub_filter_pdf() -> bytes:
    prepared, _ = prepared_pdf("/ETSI.CAdES.detached")
    return prepared
