"""
Signature Verifier.

Proves that the DocMDP signature of an untrusted diploma PDF was made by a
pinned issuer, and returns a document rebuilt from the signed bytes only.

Trusted document:
    Verification covers ``before || after`` only. The two verified spans
    are copied into a fresh buffer, and that buffer is the only data
    consumed downstream.

Follows the signed PDF layout described in:
https://www.adobe.com/devnet-docs/acrobatetk/tools/DigSig/Acrobat_DigitalSignatures_in_PDF.pdf

This is a coroutine only because pyhanko-certvalidator's path validation is
async-native. It holds no state between calls and is safe to run
concurrently.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict

from diploma.app.checks.signature.cms_verification import (
    verify_detached_envelope,
    verify_sha1_envelope,
)
from diploma.app.checks.signature.docmdp import locate_signature
from diploma.app.errors import SignatureVerificationError
from diploma.app.schemas.signature import (
    SignatureDescriptor,
    SubFilterKind,
    TrustedDocument,
)
from diploma.app.trust.trust_store import CertificateTrustStore
from diploma.app.utils.hashing import sha1_over_ranges

logger = logging.getLogger(__name__)


EnvelopeCheck = Callable[
    [SignatureDescriptor, bytes, bytes, CertificateTrustStore],
    Awaitable[None],
]


async def _verify_legacy_sha1(
    descriptor: SignatureDescriptor,
    before: bytes,
    after: bytes,
    trust_store: CertificateTrustStore,
) -> None:
    # Old diplomas are signed over a SHA-1 we have to compute ourselves.
    digest = sha1_over_ranges((before, after))
    await verify_sha1_envelope(descriptor.signature_bytes, trust_store, digest)


async def _verify_detached(
    descriptor: SignatureDescriptor,
    before: bytes,
    after: bytes,
    trust_store: CertificateTrustStore,
) -> None:
    await verify_detached_envelope(
        descriptor.signature_bytes, trust_store, before + after
    )


_ENVELOPE_CHECKS: Dict[SubFilterKind, EnvelopeCheck] = {
    SubFilterKind.LEGACY_SHA1: _verify_legacy_sha1,
    SubFilterKind.DETACHED: _verify_detached,
}


def rebuild_trusted_document(
    descriptor: SignatureDescriptor, before: bytes, after: bytes
) -> TrustedDocument:
    """
    Copy the verified spans into a fresh, zero-filled buffer.

    Only the two spans are copied; every other byte stays zero.
    """
    start0, end0 = descriptor.before_span
    start1, end1 = descriptor.after_span

    buffer = bytearray(descriptor.covered_length)
    buffer[start0:end0] = before
    buffer[start1:end1] = after

    return TrustedDocument(data=bytes(buffer), descriptor=descriptor)


async def verify_pdf(
    pdf_bytes: bytes, trust_store: CertificateTrustStore
) -> TrustedDocument:
    """
    Verify the DocMDP signature and return the trusted document.

    Raises:
        SignatureVerificationError: one of its typed subclasses. No partial
            TrustedDocument is ever returned.
    """
    try:
        descriptor = locate_signature(pdf_bytes)

        start0, end0 = descriptor.before_span
        start1, end1 = descriptor.after_span
        before = pdf_bytes[start0:end0]
        after = pdf_bytes[start1:end1]

        await _ENVELOPE_CHECKS[descriptor.sub_filter](
            descriptor, before, after, trust_store
        )
    except SignatureVerificationError as exc:
        logger.warning("Diploma signature rejected (%s): %s", exc.kind, exc)
        raise

    logger.info(
        "Diploma signature verified (sub-filter %s, %d signed bytes)",
        descriptor.sub_filter.value,
        len(before) + len(after),
    )
    return rebuild_trusted_document(descriptor, before, after)
