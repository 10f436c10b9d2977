"""
Digest helpers for signed byte ranges.

Algorithm names follow asn1crypto's native digest names
(``sha1``, ``sha256``, ...).
"""

import hashlib
from typing import Iterable, Union


def compute_digest(algorithm: str, *chunks: Union[bytes, bytearray]) -> bytes:
    """
    Hash the concatenation of ``chunks`` without building it in memory.

    Raises:
        ValueError: if the algorithm is not available in hashlib.
    """
    hasher = hashlib.new(algorithm)
    for chunk in chunks:
        hasher.update(chunk)
    return hasher.digest()


def sha1_over_ranges(ranges: Iterable[Union[bytes, bytearray]]) -> bytes:
    """SHA-1 over the signed ranges, as used by ``adbe.pkcs7.sha1``."""
    return compute_digest("sha1", *ranges)
