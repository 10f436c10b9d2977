"""
Pinned issuer certificates.

The trust store is the set of certificates accepted as roots when the
signer's chain is verified. It is loaded from a directory of PEM- or
DER-encoded files; loading zero certificates is a configuration error and
is never treated as "trust nothing".

By default the store is rebuilt on every verification call. TrustStoreCache
loads it once per process behind a lock and reloads only on invalidate().
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from asn1crypto import x509
from pydantic import BaseModel, ConfigDict, field_validator
from pyhanko.keys import load_cert_from_pemder

from diploma.app.errors import CertificateLoadError, TrustStoreConfigurationError

logger = logging.getLogger(__name__)


class CertificateTrustStore(BaseModel):
    """Immutable, non-empty set of pinned trust roots."""

    certificates: Tuple[x509.Certificate, ...]

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @field_validator("certificates")
    @classmethod
    def must_not_be_empty(
        cls, v: Tuple[x509.Certificate, ...]
    ) -> Tuple[x509.Certificate, ...]:
        if not v:
            raise ValueError("a trust store must hold at least one certificate")
        return v

    def __len__(self) -> int:
        return len(self.certificates)


def _matching_paths(cert_dir: Path, patterns: Iterable[str]) -> List[Path]:
    paths = set()
    for pattern in patterns:
        paths.update(p for p in cert_dir.glob(pattern) if p.is_file())
    return sorted(paths)


def load_trust_store(
    cert_dir: Path,
    patterns: Iterable[str] = ("*.pem", "*.crt", "*.cer", "*.der"),
) -> CertificateTrustStore:
    """
    Load every matching certificate file in ``cert_dir`` as a trust root.

    Raises:
        TrustStoreConfigurationError: the directory holds no matching files.
        CertificateLoadError: a matching file is not a readable certificate.
    """
    patterns = tuple(patterns)
    paths = _matching_paths(Path(cert_dir), patterns)
    if not paths:
        raise TrustStoreConfigurationError(
            f"no certificates found at {cert_dir} matching {list(patterns)}"
        )

    certificates: List[x509.Certificate] = []
    for path in paths:
        try:
            certificates.append(load_cert_from_pemder(str(path)))
        except (ValueError, OSError) as exc:
            logger.error("Failed to load trust root certificate %s: %s", path, exc)
            raise CertificateLoadError(
                f"load trust root certificate at {path}", exc
            ) from exc

    logger.debug("Loaded %d trust root certificate(s) from %s", len(certificates), cert_dir)
    return CertificateTrustStore(certificates=tuple(certificates))


class TrustStoreCache:
    """
    Process-wide trust store, loaded on first use.

    Reads after the first load do not take the lock. Loads and reloads are
    serialized; concurrent callers observe either the old or the new store,
    never a partially built one.
    """

    def __init__(
        self,
        cert_dir: Path,
        patterns: Iterable[str] = ("*.pem", "*.crt", "*.cer", "*.der"),
    ) -> None:
        self._cert_dir = Path(cert_dir)
        self._patterns = tuple(patterns)
        self._lock = threading.Lock()
        self._store: Optional[CertificateTrustStore] = None

    def get(self) -> CertificateTrustStore:
        store = self._store
        if store is not None:
            return store

        with self._lock:
            if self._store is None:
                self._store = load_trust_store(self._cert_dir, self._patterns)
            return self._store

    def invalidate(self) -> None:
        """Drop the cached store; the next get() reloads from disk."""
        with self._lock:
            self._store = None
