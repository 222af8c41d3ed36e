"""Preflight checks run before anything destructive happens.

This module provides validation functions to prevent dangerous operations:
- Requires root for raw device access and unmounting
- Validates that every referenced device, folder and image exists
- Rejects an image whose content is not a disk image
- Validates source != destination for disk to disk clones
- Checks the destination can hold the source
- Asks before overwriting an existing image file

All validation functions raise specific exceptions from the exceptions module
rather than returning boolean values, making error handling more explicit.
Size comparisons are plain byte counts with no rounding; a source larger than
its destination is always fatal.

Example:
    from imagebackup.storage.validation import run_preflight

    try:
        run_preflight(job, host)
        # Safe to unmount and clone
    except ImageBackupError as error:
        ...
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Callable

from imagebackup.config.settings import VALID_IMAGE_SIGNATURE
from imagebackup.domain import BackupJob, BackupMode
from imagebackup.logging import LoggerFactory

from .exceptions import (
    DeviceNotFoundError,
    DirectoryNotFoundError,
    ImageNotFoundError,
    InsufficientSpaceError,
    InvalidImageError,
    PrivilegeError,
    SourceDestinationSameError,
    UserAbortError,
)
from .sizes import human_size

if TYPE_CHECKING:
    from imagebackup.services.host import HostServices

log = LoggerFactory.for_validation()


def validate_root(is_root: Callable[[], bool]) -> None:
    """Raises PrivilegeError unless running as root."""
    if not is_root():
        raise PrivilegeError()


def validate_block_device(path: str, is_block_device: Callable[[str], bool]) -> None:
    """Raises DeviceNotFoundError unless path is a block special device."""
    if not path or not is_block_device(path):
        raise DeviceNotFoundError(path)
    log.debug(f"{path} is a block device")


def validate_directory(path: str) -> None:
    if not path or not os.path.isdir(path):
        raise DirectoryNotFoundError(path)


def confirm_overwrite(path: str, confirm: Callable[[str], bool]) -> None:
    """Ask before replacing an existing image file.

    Raises:
        UserAbortError: If the file exists and the answer is not "y"
    """
    if not os.path.isfile(path):
        return
    log.warning(f"{path} is exist in the system")
    if not confirm("Do you want to overwrite?"):
        raise UserAbortError("Aborting")


def validate_image(path: str, file_type: Callable[[str], str]) -> None:
    """Check the image exists and looks like a partitioned disk image.

    The check is content based; the file extension is ignored.

    Raises:
        ImageNotFoundError: If path is not a regular file
        InvalidImageError: If the content is not a DOS/MBR boot sector image
    """
    if not path or not os.path.isfile(path):
        raise ImageNotFoundError(path)
    description = file_type(path)
    if VALID_IMAGE_SIGNATURE not in description:
        log.debug(f"{path} detected as: {description}")
        raise InvalidImageError(path, description)


def validate_devices_different(source: str, destination: str) -> None:
    """Reject cloning a device onto itself."""
    if source == destination:
        raise SourceDestinationSameError(source, destination)


def validate_capacity(
    message: str,
    source: str,
    source_size: int,
    destination: str,
    destination_size: int,
) -> None:
    """Raise InsufficientSpaceError if source_size exceeds destination_size."""
    log.debug(
        f"Capacity check: {source} {source_size} bytes ({human_size(source_size)}) -> "
        f"{destination} {destination_size} bytes ({human_size(destination_size)})"
    )
    if source_size > destination_size:
        raise InsufficientSpaceError(
            message, source, source_size, destination, destination_size
        )


def check_disk_to_disk_space(source: str, destination: str, host: HostServices) -> None:
    validate_capacity(
        "Destination disk space is less than source disk space",
        source,
        host.device_size(source),
        destination,
        host.device_size(destination),
    )


def check_host_disk_space(source: str, folder: str, host: HostServices) -> None:
    validate_capacity(
        "Host disk space is not enough to backup image",
        source,
        host.device_size(source),
        folder,
        host.free_space(folder),
    )


def check_image_disk_space(image: str, destination: str, host: HostServices) -> None:
    validate_capacity(
        "Destination disk space is not enough to backup image",
        image,
        host.file_size(image),
        destination,
        host.device_size(destination),
    )


def run_preflight(job: BackupJob, host: HostServices) -> int:
    """Perform every check the job's mode requires, in order.

    Returns:
        Number of bytes that will be copied, for progress reporting

    Raises:
        Various exceptions from the exceptions module if validation fails
    """
    validate_root(host.is_root)
    source = job.source.path
    destination = job.destination.path

    if job.mode == BackupMode.DISK_TO_DISK:
        validate_block_device(source, host.is_block_device)
        validate_block_device(destination, host.is_block_device)
        validate_devices_different(source, destination)
        check_disk_to_disk_space(source, destination, host)
        return host.device_size(source)

    if job.mode == BackupMode.DISK_TO_FOLDER:
        validate_block_device(source, host.is_block_device)
        validate_directory(destination)
        confirm_overwrite(job.output_path, host.confirm)
        check_host_disk_space(source, destination, host)
        return host.device_size(source)

    if job.mode == BackupMode.IMAGE_TO_DISK:
        validate_block_device(destination, host.is_block_device)
        validate_image(source, host.file_type)
        check_image_disk_space(source, destination, host)
        return host.file_size(source)

    raise ValueError(f"Unsupported mode: {job.mode}")
