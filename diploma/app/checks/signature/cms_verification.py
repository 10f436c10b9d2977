"""
PKCS#7 / CMS signed-data verification for the two supported sub-filters.

Signature integrity and chain trust are delegated to pyHanko's generic CMS
validation, run against a ValidationContext holding only the pinned roots.

adbe.pkcs7.sha1 (legacy):
    The envelope encapsulates the SHA-1 digest of the signed byte ranges.
    The signer's signature covers that encapsulated digest; we then require
    it to equal the digest we computed ourselves, bit for bit.

adbe.pkcs7.detached:
    The envelope carries no content. The signer's signature covers the
    signed byte ranges directly, hashed with the algorithm named in the
    signer info.

Policy: no key usage or extended key usage is required ("any EKU"), no
revocation information is fetched, SHA-1 is accepted as a digest algorithm.

Error handling policy:
    asn1crypto decodes lazily, so structural defects in the untrusted DER
    surface as ValueError/TypeError/KeyError/IndexError on first access,
    from asn1crypto or from pyHanko. Those and pyHanko's
    SignatureValidationError are wrapped into SignatureInvalidError.
    Everything else propagates.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from asn1crypto import cms, core
from pyhanko.sign.validation.errors import SignatureValidationError
from pyhanko.sign.validation.generic_cms import (
    async_validate_cms_signature,
    async_validate_detached_cms,
)
from pyhanko.sign.validation.settings import KeyUsageConstraints
from pyhanko.sign.validation.status import SignatureStatus
from pyhanko_certvalidator import ValidationContext

from diploma.app.errors import SignatureInvalidError
from diploma.app.trust.trust_store import CertificateTrustStore

logger = logging.getLogger(__name__)


_MALFORMED_ENVELOPE = (ValueError, TypeError, KeyError, IndexError)

# Empty key usage, no extended key usage: any EKU is acceptable.
_ANY_KEY_USAGE = KeyUsageConstraints(key_usage=set(), extd_key_usage=None)

_WEAK_HASH_ALGORITHMS = frozenset({"md2", "md5"})


# ---------------------------------------------------------------------------
# Envelope parsing
# ---------------------------------------------------------------------------

def _load_signed_data(signature_bytes: bytes) -> cms.SignedData:
    try:
        # /Contents is zero-padded; load() ignores trailing data.
        info = cms.ContentInfo.load(signature_bytes)
        if info["content_type"].native != "signed_data":
            raise SignatureInvalidError("envelope is not CMS signed-data")

        signed_data = info["content"]
        signer_infos = signed_data["signer_infos"]
        if len(signer_infos) != 1:
            raise SignatureInvalidError(
                f"expected exactly one signer, found {len(signer_infos)}"
            )

        content_type = signed_data["encap_content_info"]["content_type"].native
        if content_type != "data":
            raise SignatureInvalidError(
                f"unsupported encapsulated content type: {content_type}"
            )
    except _MALFORMED_ENVELOPE as exc:
        raise SignatureInvalidError("parse CMS envelope", exc) from exc
    return signed_data


def _encapsulated_content(signed_data: cms.SignedData) -> Optional[bytes]:
    content = signed_data["encap_content_info"]["content"]
    if isinstance(content, core.Void):
        return None
    return bytes(content)


def _validation_context(trust_store: CertificateTrustStore) -> ValidationContext:
    return ValidationContext(
        trust_roots=list(trust_store.certificates),
        allow_fetching=False,
        revocation_mode="soft-fail",
        weak_hash_algos=set(_WEAK_HASH_ALGORITHMS),
    )


def _require_trusted(status: SignatureStatus) -> None:
    if not (status.intact and status.valid):
        raise SignatureInvalidError("could not verify signature")
    if not status.trusted:
        raise SignatureInvalidError(
            "verify certificate chain: signer does not lead to a pinned root"
        )
    logger.debug("CMS signer accepted: %s", status.signing_cert.subject.human_friendly)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

async def verify_sha1_envelope(
    signature_bytes: bytes,
    trust_store: CertificateTrustStore,
    expected_digest: bytes,
) -> None:
    """
    Verify an ``adbe.pkcs7.sha1`` envelope against a precomputed SHA-1.

    Raises:
        SignatureInvalidError: on any parse, signature, chain or hash failure.
    """
    signed_data = _load_signed_data(signature_bytes)
    try:
        content = _encapsulated_content(signed_data)
        if content is None:
            raise SignatureInvalidError("legacy envelope carries no signed hash")

        # Without raw_digest pyHanko hashes the encapsulated content itself.
        status = await async_validate_cms_signature(
            signed_data,
            validation_context=_validation_context(trust_store),
            key_usage_settings=_ANY_KEY_USAGE,
        )
    except SignatureValidationError as exc:
        raise SignatureInvalidError("could not verify signature", exc) from exc
    except _MALFORMED_ENVELOPE as exc:
        raise SignatureInvalidError("parse CMS envelope", exc) from exc

    _require_trusted(status)

    if not hmac.compare_digest(content, expected_digest):
        raise SignatureInvalidError(
            "could not verify signature: hash doesn't match"
        )


async def verify_detached_envelope(
    signature_bytes: bytes,
    trust_store: CertificateTrustStore,
    message: bytes,
) -> None:
    """
    Verify an ``adbe.pkcs7.detached`` envelope directly over ``message``.

    Raises:
        SignatureInvalidError: on any parse, signature or chain failure.
    """
    signed_data = _load_signed_data(signature_bytes)
    try:
        if _encapsulated_content(signed_data) is not None:
            raise SignatureInvalidError("signature is not detached")

        status = await async_validate_detached_cms(
            message,
            signed_data,
            signer_validation_context=_validation_context(trust_store),
            key_usage_settings=_ANY_KEY_USAGE,
        )
    except SignatureValidationError as exc:
        raise SignatureInvalidError("could not verify signature", exc) from exc
    except _MALFORMED_ENVELOPE as exc:
        raise SignatureInvalidError("parse CMS envelope", exc) from exc

    _require_trusted(status)
