"""
Typed failures for the verify-and-extract pipeline.

Every error carries the name of the operation that failed and, optionally,
the underlying cause. The surrounding service maps ``kind`` to user-facing
messages; it MUST NOT expose ``cause`` to untrusted callers.

Error handling policy:
    Library-specific exceptions (pikepdf, asn1crypto, pyHanko,
    pyhanko-certvalidator, subprocess) are wrapped at the point where they
    are raised. Logic errors (TypeError, AttributeError, ...) are never
    wrapped and must propagate; the one exception is CMS envelope decoding,
    where asn1crypto reports malformed DER through those types.
"""

from __future__ import annotations

from typing import Optional


class DiplomaError(Exception):
    """Base class for all pipeline failures."""

    kind = "Error"

    def __init__(self, op: str, cause: Optional[BaseException] = None) -> None:
        self.op = op
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.cause is None:
            return self.op
        return f"{self.op}: {self.cause}"


# ---------------------------------------------------------------------------
# Signature verification
# ---------------------------------------------------------------------------

class SignatureVerificationError(DiplomaError):
    """Raised when the document cannot be proven to be signed by a trusted issuer."""

    kind = "SignatureVerificationFailed"


class DocumentParseError(SignatureVerificationError):
    kind = "DocumentParseError"


class SignatureNotFoundError(SignatureVerificationError):
    kind = "SignatureNotFound"


class MalformedSignatureError(SignatureVerificationError):
    kind = "MalformedSignature"


class InvalidByteRangeError(SignatureVerificationError):
    kind = "InvalidByteRange"


class UnsupportedSubFilterError(SignatureVerificationError):
    kind = "UnsupportedSubFilter"

    def __init__(self, sub_filter: str) -> None:
        self.sub_filter = sub_filter
        super().__init__(f"unsupported sub-filter: {sub_filter}")


class SignatureInvalidError(SignatureVerificationError):
    """Chain verification failed or the signed hash does not match."""

    kind = "SignatureInvalid"


# ---------------------------------------------------------------------------
# Trust store
# ---------------------------------------------------------------------------

class TrustStoreError(DiplomaError):
    kind = "TrustStoreError"


class CertificateLoadError(TrustStoreError):
    kind = "CertificateLoadError"


class TrustStoreConfigurationError(TrustStoreError):
    """No trust roots could be found. Never treated as 'trust nothing'."""

    kind = "TrustStoreConfigurationError"


# ---------------------------------------------------------------------------
# Rendering and attribute extraction
# ---------------------------------------------------------------------------

class ExtractionError(DiplomaError):
    kind = "ExtractionError"


class RenderError(ExtractionError):
    kind = "RenderError"


class PageContainerNotFoundError(ExtractionError):
    kind = "PageContainerNotFound"


class MissingAttributeError(ExtractionError):
    """A diploma page was recognised but a required attribute is absent."""

    kind = "MissingAttribute"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"cannot find attribute: {key}")


# ---------------------------------------------------------------------------
# Input and identity gates
# ---------------------------------------------------------------------------

class DocumentTooLargeError(DiplomaError):
    kind = "file-too-big"


class IdentityMismatchError(DiplomaError):
    """The diploma does not belong to the disclosed identity."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"disclosed {field} does not match the diploma")

    @property
    def kind(self) -> str:  # type: ignore[override]
        if self.field == "familyname":
            return "name-match"
        return f"{self.field}-match"
