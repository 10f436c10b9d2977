"""
Coordinator tests.

The signature check runs for real against a throwaway PKI. The renderer is
replaced by a double returning pdf2htmlEX-shaped HTML, so the tests do not
need the pdf2htmlEX binary.

Covered:
    - happy path and event sequence
    - signature failures stop the pipeline before rendering
    - extraction failures are reported and re-raised unchanged
    - the size limit is enforced before anything else
    - a failing emitter never changes the outcome
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from diploma.app.config import DiplomaConfig
from diploma.app.coordinator.coordinator import DiplomaCoordinator
from diploma.app.errors import (
    DocumentTooLargeError,
    MissingAttributeError,
    SignatureInvalidError,
    TrustStoreConfigurationError,
)
from diploma.app.events import MemoryQueueEventEmitter, PipelineEventType
from diploma.app.trust.trust_store import CertificateTrustStore
from diploma.tests.fixtures.certificates import issuer_pki, write_pem
from diploma.tests.fixtures.html_factory import (
    DEFAULT_ROWS,
    diploma_page,
    marks_page,
    rendered_document,
)
from diploma.tests.fixtures.pdf_factory import (
    DETACHED,
    LEGACY_SHA1,
    signed_diploma_pdf,
    tamper,
)

pytestmark = pytest.mark.anyio


@pytest.fixture(scope="module")
def pki():
    return issuer_pki()


@pytest.fixture
def trust_store(pki):
    return CertificateTrustStore(certificates=(pki.root_asn1,))


def _renderer(document: str) -> MagicMock:
    renderer = MagicMock()
    renderer.render.return_value = document
    return renderer


def _coordinator(trust_store, document: str, **config) -> DiplomaCoordinator:
    return DiplomaCoordinator(
        config=DiplomaConfig(**config),
        renderer=_renderer(document),
        trust_store_provider=lambda: trust_store,
    )


async def _collect(emitter: MemoryQueueEventEmitter):
    return [event async for event in emitter.stream()]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("sub_filter", [DETACHED, LEGACY_SHA1])
async def test_signed_diploma_yields_attributes(pki, trust_store, sub_filter):
    document = rendered_document(diploma_page(number=1), marks_page(number=2))
    coordinator = _coordinator(trust_store, document)
    pdf_bytes = signed_diploma_pdf(pki, sub_filter)

    attribute_set = await coordinator.run(pdf_bytes=pdf_bytes, request_id="req-1")

    assert len(attribute_set) == 1
    assert attribute_set[0]["familyname"] == "Berg"
    assert attribute_set[0]["city"] == "NIJMEGEN"


async def test_renderer_receives_the_trusted_document(pki, trust_store):
    renderer = _renderer(rendered_document(diploma_page()))
    coordinator = DiplomaCoordinator(
        config=DiplomaConfig(),
        renderer=renderer,
        trust_store_provider=lambda: trust_store,
    )
    pdf_bytes = signed_diploma_pdf(pki, DETACHED)

    await coordinator.run(pdf_bytes=pdf_bytes, request_id="req-2")

    (rendered_bytes,), _ = renderer.render.call_args
    assert len(rendered_bytes) == len(pdf_bytes)
    assert rendered_bytes != pdf_bytes  # signature container zeroed


async def test_event_sequence_on_success(pki, trust_store):
    coordinator = _coordinator(trust_store, rendered_document(diploma_page()))
    emitter = MemoryQueueEventEmitter()

    await coordinator.run(
        pdf_bytes=signed_diploma_pdf(pki, DETACHED),
        request_id="req-3",
        emitter=emitter,
    )
    events = await _collect(emitter)

    assert [e.event_type for e in events] == [
        PipelineEventType.PIPELINE_STARTED,
        PipelineEventType.SIGNATURE_VERIFIED,
        PipelineEventType.DOCUMENT_RENDERED,
        PipelineEventType.ATTRIBUTES_EXTRACTED,
        PipelineEventType.PIPELINE_COMPLETED,
    ]
    assert all(e.request_id == "req-3" for e in events)
    assert events[1].details["sub_filter"] == "adbe.pkcs7.detached"
    assert events[3].details == {"diplomas": 1}


async def test_failing_emitter_does_not_break_the_pipeline(pki, trust_store):
    coordinator = _coordinator(trust_store, rendered_document(diploma_page()))
    emitter = MagicMock()
    emitter.emit = AsyncMock(side_effect=RuntimeError("event sink down"))

    attribute_set = await coordinator.run(
        pdf_bytes=signed_diploma_pdf(pki, DETACHED),
        request_id="req-3b",
        emitter=emitter,
    )

    assert attribute_set[0]["familyname"] == "Berg"
    assert emitter.emit.await_count == 5


async def test_failing_emitter_keeps_the_original_failure(pki, trust_store):
    coordinator = _coordinator(trust_store, rendered_document(diploma_page()))
    emitter = MagicMock()
    emitter.emit = AsyncMock(side_effect=RuntimeError("event sink down"))

    with pytest.raises(SignatureInvalidError):
        await coordinator.run(
            pdf_bytes=tamper(signed_diploma_pdf(pki, DETACHED)),
            request_id="req-3c",
            emitter=emitter,
        )


async def test_trust_store_loaded_from_cert_dir(pki, tmp_path):
    write_pem(pki.root_cert, tmp_path / "issuer.pem")
    config = DiplomaConfig(CERT_DIR=tmp_path)
    coordinator = DiplomaCoordinator(
        config=config, renderer=_renderer(rendered_document(diploma_page()))
    )

    attribute_set = await coordinator.run(
        pdf_bytes=signed_diploma_pdf(pki, LEGACY_SHA1), request_id="req-4"
    )

    assert len(attribute_set) == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

async def test_invalid_signature_stops_before_rendering(pki, trust_store):
    coordinator = _coordinator(trust_store, rendered_document(diploma_page()))
    emitter = MemoryQueueEventEmitter()

    with pytest.raises(SignatureInvalidError):
        await coordinator.run(
            pdf_bytes=tamper(signed_diploma_pdf(pki, DETACHED)),
            request_id="req-5",
            emitter=emitter,
        )
    events = await _collect(emitter)

    coordinator._renderer.render.assert_not_called()
    assert [e.event_type for e in events] == [
        PipelineEventType.PIPELINE_STARTED,
        PipelineEventType.PIPELINE_FAILED,
    ]
    assert events[-1].details["kind"] == "SignatureInvalid"


async def test_missing_attribute_is_reraised_unchanged(pki, trust_store):
    rows = [(label, value) for label, value in DEFAULT_ROWS if label != "Geboortedatum"]
    coordinator = _coordinator(trust_store, rendered_document(diploma_page(rows)))
    emitter = MemoryQueueEventEmitter()

    with pytest.raises(MissingAttributeError) as excinfo:
        await coordinator.run(
            pdf_bytes=signed_diploma_pdf(pki, DETACHED),
            request_id="req-6",
            emitter=emitter,
        )
    events = await _collect(emitter)

    assert excinfo.value.key == "dateofbirth"
    assert events[-1].event_type is PipelineEventType.PIPELINE_FAILED
    assert events[-1].details["exception_type"] == "MissingAttributeError"


async def test_oversized_upload_is_rejected_first(trust_store):
    provider = MagicMock(return_value=trust_store)
    coordinator = DiplomaCoordinator(
        config=DiplomaConfig(MAX_PDF_SIZE_BYTES=16),
        renderer=_renderer(""),
        trust_store_provider=provider,
    )

    with pytest.raises(DocumentTooLargeError) as excinfo:
        await coordinator.run(pdf_bytes=b"x" * 17, request_id="req-7")

    assert excinfo.value.kind == "file-too-big"
    provider.assert_not_called()


async def test_empty_cert_dir_is_a_configuration_error(pki, tmp_path):
    coordinator = DiplomaCoordinator(
        config=DiplomaConfig(CERT_DIR=tmp_path),
        renderer=_renderer(""),
    )

    with pytest.raises(TrustStoreConfigurationError):
        await coordinator.run(
            pdf_bytes=signed_diploma_pdf(pki, DETACHED), request_id="req-8"
        )


async def test_logic_errors_are_not_reported_as_pipeline_failures(pki, trust_store):
    renderer = MagicMock()
    renderer.render.side_effect = AttributeError("simulated logic error")
    coordinator = DiplomaCoordinator(
        config=DiplomaConfig(),
        renderer=renderer,
        trust_store_provider=lambda: trust_store,
    )
    emitter = MemoryQueueEventEmitter()

    with pytest.raises(AttributeError, match="simulated logic error"):
        await coordinator.run(
            pdf_bytes=signed_diploma_pdf(pki, DETACHED),
            request_id="req-9",
            emitter=emitter,
        )
    await emitter.close()
    events = await _collect(emitter)

    assert PipelineEventType.PIPELINE_FAILED not in [e.event_type for e in events]


# ---------------------------------------------------------------------------
# Composition root
# ---------------------------------------------------------------------------

async def test_from_config_caches_trust_store_when_enabled(pki, tmp_path):
    write_pem(pki.root_cert, tmp_path / "issuer.pem")
    coordinator = DiplomaCoordinator.from_config(
        DiplomaConfig(CERT_DIR=tmp_path, CACHE_TRUST_STORE=True)
    )

    first = coordinator._trust_store_provider()
    second = coordinator._trust_store_provider()

    assert first is second
