"""Domain level value types."""

from .enums import (
    AccessLevel,
    DiffViewType,
    MergeRequestState,
    MergeResult,
    MergeStatus,
    PipelineStatus,
    StateEvent,
    Visibility,
)

__all__ = [
    "AccessLevel",
    "DiffViewType",
    "MergeRequestState",
    "MergeResult",
    "MergeStatus",
    "PipelineStatus",
    "StateEvent",
    "Visibility",
]
