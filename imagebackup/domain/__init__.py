"""Domain models for backup operations."""

from __future__ import annotations

from .models import (
    BackupJob,
    BackupMode,
    Destination,
    DestinationKind,
    JobState,
    Source,
    SourceKind,
)


__all__ = [
    "BackupJob",
    "BackupMode",
    "Destination",
    "DestinationKind",
    "JobState",
    "Source",
    "SourceKind",
]
