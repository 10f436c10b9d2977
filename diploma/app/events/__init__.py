from .models import PipelineEvent, PipelineEventType
from .emitter import PipelineEventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "PipelineEvent",
    "PipelineEventType",
    "PipelineEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
