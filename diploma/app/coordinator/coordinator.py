"""
Verify-and-extract coordinator.

The coordinator only orders the steps and enforces the hard stops. It does
not look inside the document itself:

    1. size limit
    2. trust store
    3. signature verification (hard gate)
    4. rendering of the trusted document
    5. attribute extraction

Nothing derived from the untrusted upload reaches steps 4 and 5; they only
ever see the rebuilt TrustedDocument.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Optional

from anyio import to_thread

from diploma.app.config import DiplomaConfig
from diploma.app.coordinator.attribute_extraction import extract_attributes
from diploma.app.coordinator.signature_verification import verify_pdf
from diploma.app.errors import DiplomaError, DocumentTooLargeError
from diploma.app.events import (
    NullEventEmitter,
    PipelineEvent,
    PipelineEventEmitter,
    PipelineEventType,
)
from diploma.app.rendering.pdf2html import Pdf2HtmlRenderer, find_pages
from diploma.app.schemas.attributes import ExtractedAttributeSet
from diploma.app.trust.trust_store import (
    CertificateTrustStore,
    TrustStoreCache,
    load_trust_store,
)

logger = logging.getLogger(__name__)


TrustStoreProvider = Callable[[], CertificateTrustStore]


class DiplomaCoordinator:
    """Runs the pipeline for one uploaded diploma PDF at a time."""

    def __init__(
        self,
        config: DiplomaConfig,
        renderer: Optional[Pdf2HtmlRenderer] = None,
        trust_store_provider: Optional[TrustStoreProvider] = None,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring: anything not injected is
        built from ``config``.
        """
        self._config = config
        self._renderer = (
            renderer
            if renderer is not None
            else Pdf2HtmlRenderer.from_config(config)
        )
        self._trust_store_provider = (
            trust_store_provider
            if trust_store_provider is not None
            else self._default_trust_store_provider(config)
        )

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, config: DiplomaConfig) -> "DiplomaCoordinator":
        return cls(
            config=config,
            renderer=Pdf2HtmlRenderer.from_config(config),
            trust_store_provider=cls._default_trust_store_provider(config),
        )

    @staticmethod
    def _default_trust_store_provider(config: DiplomaConfig) -> TrustStoreProvider:
        if config.CACHE_TRUST_STORE:
            return TrustStoreCache(config.CERT_DIR, config.CERT_PATTERNS).get
        return partial(load_trust_store, config.CERT_DIR, config.CERT_PATTERNS)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        *,
        pdf_bytes: bytes,
        request_id: str,
        emitter: Optional[PipelineEventEmitter] = None,
    ) -> ExtractedAttributeSet:
        """
        Verify an uploaded diploma PDF and extract its attribute sets.

        Raises:
            DiplomaError: one of its typed subclasses, unchanged.
        """
        emitter = emitter or NullEventEmitter()

        await self._emit(emitter, request_id, PipelineEventType.PIPELINE_STARTED)

        try:
            if len(pdf_bytes) > self._config.MAX_PDF_SIZE_BYTES:
                raise DocumentTooLargeError(
                    f"document of {len(pdf_bytes)} bytes exceeds the "
                    f"{self._config.MAX_PDF_SIZE_BYTES} byte limit"
                )

            # ----------------------------------------------------------
            # 1. Signature verification (HARD GATE)
            # ----------------------------------------------------------
            trust_store = self._trust_store_provider()
            trusted = await verify_pdf(pdf_bytes, trust_store)

            await self._emit(
                emitter,
                request_id,
                PipelineEventType.SIGNATURE_VERIFIED,
                {
                    "sub_filter": trusted.descriptor.sub_filter.value,
                    "signed_bytes": trusted.descriptor.covered_length,
                },
            )

            # ----------------------------------------------------------
            # 2. Rendering (blocking subprocess, worker thread)
            # ----------------------------------------------------------
            document = await to_thread.run_sync(
                self._renderer.render, trusted.data
            )
            pages = find_pages(document)

            await self._emit(
                emitter,
                request_id,
                PipelineEventType.DOCUMENT_RENDERED,
                {"pages": len(pages)},
            )

            # ----------------------------------------------------------
            # 3. Attribute extraction
            # ----------------------------------------------------------
            attribute_set = extract_attributes(
                pages, self._config.REQUIRED_ATTRIBUTES
            )

            await self._emit(
                emitter,
                request_id,
                PipelineEventType.ATTRIBUTES_EXTRACTED,
                {"diplomas": len(attribute_set)},
            )

        except DiplomaError as exc:
            logger.info("Request %s failed (%s): %s", request_id, exc.kind, exc)
            await self._emit(
                emitter,
                request_id,
                PipelineEventType.PIPELINE_FAILED,
                {
                    "kind": exc.kind,
                    "exception_type": type(exc).__name__,
                },
            )
            raise

        await self._emit(emitter, request_id, PipelineEventType.PIPELINE_COMPLETED)
        return attribute_set

    @staticmethod
    async def _emit(
        emitter: PipelineEventEmitter,
        request_id: str,
        event_type: PipelineEventType,
        details: Optional[dict] = None,
    ) -> None:
        event = PipelineEvent(
            request_id=request_id,
            event_type=event_type,
            details=details,
        )
        try:
            await emitter.emit(event)
        except Exception:
            # Fail-safe: never let observability break the pipeline
            logger.warning(
                "Dropping %s event for request %s",
                event_type.value,
                request_id,
                exc_info=True,
            )
