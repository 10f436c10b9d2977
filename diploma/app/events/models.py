from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types
# ----------------------------------------------------------------------
class PipelineEventType(str, Enum):
    """
    Progression events emitted while a diploma is processed.

    Exactly one of PIPELINE_COMPLETED / PIPELINE_FAILED ends a run.
    """

    PIPELINE_STARTED = "pipeline_started"
    SIGNATURE_VERIFIED = "signature_verified"
    DOCUMENT_RENDERED = "document_rendered"
    ATTRIBUTES_EXTRACTED = "attributes_extracted"
    PIPELINE_COMPLETED = "pipeline_completed"
    PIPELINE_FAILED = "pipeline_failed"


TERMINAL_EVENT_TYPES = frozenset(
    {PipelineEventType.PIPELINE_COMPLETED, PipelineEventType.PIPELINE_FAILED}
)


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class PipelineEvent(BaseModel):
    """
    An immutable observation of a phase transition.

    Events never carry attribute values, only counts and error kinds.
    """

    event_id: UUID = Field(default_factory=uuid4)
    request_id: str = Field(..., description="Caller supplied request identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: PipelineEventType

    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
