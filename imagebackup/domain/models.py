"""Domain model for a single backup invocation.

A BackupJob is resolved once from the command line options and passed,
unchanged, through preflight, mount guard and clone stages.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from imagebackup.config.settings import build_image_path


# ==============================================================================
# Mode
# ==============================================================================


class BackupMode(Enum):
    """Supported source/destination pairings."""

    DISK_TO_DISK = "disk-to-disk"  # -s + -d
    DISK_TO_FOLDER = "disk-to-folder"  # -s + -f
    IMAGE_TO_DISK = "image-to-disk"  # -i + -d


class SourceKind(Enum):
    DISK = "disk"
    IMAGE = "image"


class DestinationKind(Enum):
    DISK = "disk"
    FOLDER = "folder"


# ==============================================================================
# Endpoints
# ==============================================================================


@dataclass(frozen=True)
class Source:
    """What is read: a block device or an image file."""

    path: str
    kind: SourceKind

    @property
    def is_disk(self) -> bool:
        return self.kind == SourceKind.DISK


@dataclass(frozen=True)
class Destination:
    """Where data goes: a block device or a folder that receives an image."""

    path: str
    kind: DestinationKind

    @property
    def is_disk(self) -> bool:
        return self.kind == DestinationKind.DISK


# ==============================================================================
# Backup Job
# ==============================================================================


@dataclass(frozen=True)
class BackupJob:
    """A resolved backup request.

    output_path is what dd writes to: the destination device, or the dated
    image file inside the destination folder.
    """

    mode: BackupMode
    source: Source
    destination: Destination
    output_path: str

    @classmethod
    def from_options(
        cls,
        mode: BackupMode,
        *,
        source_disk: Optional[str] = None,
        destination_disk: Optional[str] = None,
        folder: Optional[str] = None,
        image: Optional[str] = None,
        today: Optional[date] = None,
    ) -> BackupJob:
        """Build a job for an already resolved mode.

        Raises:
            ValueError: If an option required by the mode is missing
        """
        if mode == BackupMode.DISK_TO_DISK:
            if not source_disk or not destination_disk:
                raise ValueError("disk-to-disk needs a source and a destination disk")
            return cls(
                mode=mode,
                source=Source(source_disk, SourceKind.DISK),
                destination=Destination(destination_disk, DestinationKind.DISK),
                output_path=destination_disk,
            )
        if mode == BackupMode.DISK_TO_FOLDER:
            if not source_disk or not folder:
                raise ValueError("disk-to-folder needs a source disk and a folder")
            return cls(
                mode=mode,
                source=Source(source_disk, SourceKind.DISK),
                destination=Destination(folder, DestinationKind.FOLDER),
                output_path=build_image_path(folder, today or date.today()),
            )
        if mode == BackupMode.IMAGE_TO_DISK:
            if not image or not destination_disk:
                raise ValueError("image-to-disk needs an image and a destination disk")
            return cls(
                mode=mode,
                source=Source(image, SourceKind.IMAGE),
                destination=Destination(destination_disk, DestinationKind.DISK),
                output_path=destination_disk,
            )
        raise ValueError(f"Unsupported mode: {mode}")

    def devices_to_unmount(self) -> list[str]:
        """Block devices whose mounted partitions must be released first."""
        devices = []
        if self.source.is_disk:
            devices.append(self.source.path)
        if self.destination.is_disk:
            devices.append(self.destination.path)
        return devices


# ==============================================================================
# Job State
# ==============================================================================


class JobState(Enum):
    """Progress of one invocation. FAILED is reachable from every state."""

    START = "start"
    MODE_RESOLVED = "mode_resolved"
    VALIDATED = "validated"
    UNMOUNTED = "unmounted"
    CONFIRMED = "confirmed"
    COPYING = "copying"
    SYNCED = "synced"
    DONE = "done"
    FAILED = "failed"

    def can_transition_to(self, target: JobState) -> bool:
        if self in (JobState.DONE, JobState.FAILED):
            return False
        if target == JobState.FAILED:
            return True
        return _NEXT_STATE.get(self) == target


_NEXT_STATE = {
    JobState.START: JobState.MODE_RESOLVED,
    JobState.MODE_RESOLVED: JobState.VALIDATED,
    JobState.VALIDATED: JobState.UNMOUNTED,
    JobState.UNMOUNTED: JobState.CONFIRMED,
    JobState.CONFIRMED: JobState.COPYING,
    JobState.COPYING: JobState.SYNCED,
    JobState.SYNCED: JobState.DONE,
}
