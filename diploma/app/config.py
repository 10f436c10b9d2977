"""
Runtime configuration for the diploma verifier.

This module centralizes environment-driven configuration: where the pinned
issuer certificates live, how the external renderer is invoked, and which
attributes a diploma page must carry.

Configuration is read-only at runtime and must not influence verification
outcomes in non-deterministic ways.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import FrozenSet, Tuple

from pydantic import BaseModel, Field, field_validator

from diploma.app.schemas.attributes import (
    CANONICAL_ATTRIBUTES,
    DEFAULT_REQUIRED_ATTRIBUTES,
)


DEFAULT_CERT_PATTERNS: Tuple[str, ...] = ("*.pem", "*.crt", "*.cer", "*.der")


class DiplomaConfig(BaseModel):
    """
    Runtime configuration for the verify-and-extract pipeline.

    Configuration is environment-driven, read-only at runtime, and must
    not introduce non-deterministic behavior into verification outcomes.
    """

    # ------------------------------------------------------------------
    # Cryptographic trust configuration
    # ------------------------------------------------------------------

    CERT_DIR: Path = Field(
        Path("certs"),
        description=(
            "Directory holding the PEM- or DER-encoded issuer certificates. "
            "Every matching file is pinned as a trust root. The system trust "
            "store is never consulted."
        ),
    )

    CERT_PATTERNS: Tuple[str, ...] = Field(
        DEFAULT_CERT_PATTERNS,
        description="Glob patterns selecting certificate files in CERT_DIR",
    )

    CACHE_TRUST_STORE: bool = Field(
        False,
        description=(
            "Load the trust store once per process instead of once per "
            "verification call"
        ),
    )

    # ------------------------------------------------------------------
    # External renderer
    # ------------------------------------------------------------------

    PDF2HTMLEX_BINARY: str = Field(
        "pdf2htmlEX",
        description="Executable used to render verified PDFs to HTML",
    )

    RENDER_TIMEOUT_SECONDS: int = Field(
        60,
        description="Upper bound on a single renderer invocation",
    )

    TMP_DIR: Path | None = Field(
        None,
        description=(
            "Directory for the renderer's temporary input and output files. "
            "Defaults to the system temporary directory."
        ),
    )

    KEEP_RENDER_OUTPUT: bool = Field(
        False,
        description="Do not remove temporary renderer files (debugging only)",
    )

    ENABLE_DEBUG: bool = Field(
        False,
        description="Forward renderer output and parsing diagnostics to the log",
    )

    # ------------------------------------------------------------------
    # Extraction policy
    # ------------------------------------------------------------------

    REQUIRED_ATTRIBUTES: FrozenSet[str] = Field(
        DEFAULT_REQUIRED_ATTRIBUTES,
        description=(
            "Attributes every recognised diploma page must carry. This is "
            "institutional policy; degree and profile are optional by default."
        ),
    )

    # ------------------------------------------------------------------
    # Safety and resource limits
    # ------------------------------------------------------------------

    MAX_PDF_SIZE_BYTES: int = Field(
        1024 * 1024,
        description="Maximum accepted size of an uploaded diploma PDF",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("REQUIRED_ATTRIBUTES")
    @classmethod
    def required_attributes_are_canonical(
        cls, v: FrozenSet[str]
    ) -> FrozenSet[str]:
        unknown = set(v) - set(CANONICAL_ATTRIBUTES)
        if unknown:
            raise ValueError(
                f"Unknown REQUIRED_ATTRIBUTES {sorted(unknown)}. "
                f"Allowed values: {list(CANONICAL_ATTRIBUTES)}"
            )
        return v

    @field_validator("CERT_PATTERNS")
    @classmethod
    def cert_patterns_not_empty(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("CERT_PATTERNS must contain at least one pattern.")
        return v

    @field_validator("RENDER_TIMEOUT_SECONDS", "MAX_PDF_SIZE_BYTES")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "DiplomaConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        def env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
            raw = os.getenv(name)
            if raw is None:
                return default
            return tuple(item.strip() for item in raw.split(",") if item.strip())

        tmp_dir_env = os.getenv("DIPLOMA_TMP_DIR")

        return cls(
            CERT_DIR=Path(os.getenv("DIPLOMA_CERT_DIR", "certs")),
            CERT_PATTERNS=env_list(
                "DIPLOMA_CERT_PATTERNS", DEFAULT_CERT_PATTERNS
            ),
            CACHE_TRUST_STORE=env_bool(
                "DIPLOMA_CACHE_TRUST_STORE", False
            ),
            PDF2HTMLEX_BINARY=os.getenv(
                "DIPLOMA_PDF2HTMLEX_BINARY", "pdf2htmlEX"
            ),
            RENDER_TIMEOUT_SECONDS=int(
                os.getenv("DIPLOMA_RENDER_TIMEOUT_SECONDS", "60")
            ),
            TMP_DIR=(
                Path(tmp_dir_env)
                if tmp_dir_env
                else None
            ),
            KEEP_RENDER_OUTPUT=env_bool(
                "DIPLOMA_KEEP_RENDER_OUTPUT", False
            ),
            ENABLE_DEBUG=env_bool(
                "DIPLOMA_ENABLE_DEBUG", False
            ),
            REQUIRED_ATTRIBUTES=frozenset(
                env_list(
                    "DIPLOMA_REQUIRED_ATTRIBUTES",
                    tuple(sorted(DEFAULT_REQUIRED_ATTRIBUTES)),
                )
            ),
            MAX_PDF_SIZE_BYTES=int(
                os.getenv("DIPLOMA_MAX_PDF_SIZE_BYTES", str(1024 * 1024))
            ),
        )

    model_config = {
        "frozen": True,
    }
