from __future__ import annotations

from typing import Protocol

from diploma.app.events.models import PipelineEvent


class PipelineEventEmitter(Protocol):
    """
    Receives pipeline observations.

    Emission must not block the pipeline for long and must not decide
    anything: the coordinator ignores what an emitter does with an event.
    """

    async def emit(self, event: PipelineEvent) -> None:
        ...


class NullEventEmitter:
    """No-op emitter used when the caller does not listen."""

    async def emit(self, event: PipelineEvent) -> None:
        return
