"""Custom exceptions for backup operations.

Every preflight check and every external operation reports failure by raising
one of these. The command line turns any ImageBackupError into an error
message and exit status 1.

Exception Hierarchy:
    ImageBackupError (base)
        ├── PrivilegeError
        ├── DeviceError
        │   ├── DeviceNotFoundError
        │   └── DeviceQueryError
        ├── PathError
        │   ├── DirectoryNotFoundError
        │   ├── ImageNotFoundError
        │   └── InvalidImageError
        ├── MountError
        │   └── UnmountFailedError
        ├── CloneError
        │   ├── SourceDestinationSameError
        │   ├── InsufficientSpaceError
        │   └── CloneOperationError
        └── UserAbortError

Usage:
    from imagebackup.storage.exceptions import SourceDestinationSameError

    if source_disk == destination_disk:
        raise SourceDestinationSameError(source_disk, destination_disk)
"""

from __future__ import annotations

from .sizes import human_size


class ImageBackupError(Exception):
    """Base exception for all backup operations."""


class PrivilegeError(ImageBackupError):
    """The process lacks superuser privileges."""

    def __init__(self, message: str = "Please run as root"):
        super().__init__(message)


class DeviceError(ImageBackupError):
    """Base exception for block device errors."""


class DeviceNotFoundError(DeviceError):
    """Path does not exist or is not a block special device."""

    def __init__(self, device_path: str):
        self.device_path = device_path
        super().__init__(f"{device_path} block device is not exist in the system")


class DeviceQueryError(DeviceError):
    """A size or type query against a device or file failed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to query {path}: {reason}")


class PathError(ImageBackupError):
    """Base exception for folder and image file errors."""


class DirectoryNotFoundError(PathError):
    """Destination folder is missing or is not a directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} directory is not exist or not a directory")


class ImageNotFoundError(PathError):
    """Image file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} is not exist in the system")


class InvalidImageError(PathError):
    """Image file content is not a recognized disk image."""

    def __init__(self, path: str, detected: str = ""):
        self.path = path
        self.detected = detected
        super().__init__(f"{path} is not a valid image file")


class MountError(ImageBackupError):
    """Base exception for mount-related errors."""


class UnmountFailedError(MountError):
    """Failed to unmount a partition."""

    def __init__(self, partition: str, reason: str = ""):
        self.partition = partition
        self.reason = reason
        msg = f"Failed to umount {partition}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class CloneError(ImageBackupError):
    """Base exception for clone operations."""


class SourceDestinationSameError(CloneError):
    """Source and destination are the same device."""

    def __init__(self, source: str, destination: str):
        self.source = source
        self.destination = destination
        super().__init__("Source disk and destination disk is same")


class InsufficientSpaceError(CloneError):
    """Destination cannot hold the source data."""

    def __init__(
        self,
        message: str,
        source: str,
        source_size: int,
        destination: str,
        destination_size: int,
    ):
        self.source = source
        self.source_size = source_size
        self.destination = destination
        self.destination_size = destination_size
        super().__init__(
            f"{message} ({source}: {source_size} bytes/{human_size(source_size)}, "
            f"{destination}: {destination_size} bytes/{human_size(destination_size)})"
        )


class CloneOperationError(CloneError):
    """The copy primitive or the final sync failed."""

    def __init__(self, message: str, source: str | None = None, destination: str | None = None):
        self.source = source
        self.destination = destination
        super().__init__(message)


class UserAbortError(ImageBackupError):
    """The user declined a confirmation prompt."""

    def __init__(self, message: str = "Aborting"):
        super().__init__(message)
