"""Mount guard: release every mounted partition of a block device.

Writing under an active mount corrupts the filesystem, and reading a mounted
source gives an inconsistent image, so every partition of a device taking
part in a clone is unmounted first.

Functions:
    - list_mounts(): parse /proc/mounts into MountEntry records
    - device_matches(): does a mount source belong to a device
    - find_device_mounts(): filter mounts for one device
    - unmount_partition(): umount a single partition
    - unmount_device_partitions(): unmount all partitions of a device

Every unmount failure raises UnmountFailedError. There is no retry and no
lazy unmount fallback.
"""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from imagebackup.config.settings import PROC_MOUNTS_PATH
from imagebackup.logging import LoggerFactory

from .exceptions import UnmountFailedError

# Module logger
log = LoggerFactory.for_mount()

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


@dataclass(frozen=True)
class MountEntry:
    device: str
    mountpoint: str
    fstype: str = ""


def _decode_mount_field(value: str) -> str:
    # /proc/mounts escapes space, tab, newline and backslash as \ooo
    return _OCTAL_ESCAPE.sub(lambda match: chr(int(match.group(1), 8)), value)


def parse_mounts(text: str) -> list[MountEntry]:
    entries = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        entries.append(
            MountEntry(
                device=_decode_mount_field(parts[0]),
                mountpoint=_decode_mount_field(parts[1]),
                fstype=parts[2] if len(parts) > 2 else "",
            )
        )
    return entries


def list_mounts(path: str = PROC_MOUNTS_PATH) -> list[MountEntry]:
    """Return the live mount table."""
    with open(path, "r", encoding="utf-8") as mounts_file:
        return parse_mounts(mounts_file.read())


def _partition_suffix_pattern(device: str) -> str:
    # sda -> sda1, nvme0n1 -> nvme0n1p1, mmcblk0 -> mmcblk0p1
    if device and device[-1].isdigit():
        return r"p\d+"
    return r"\d+"


def device_matches(device: str, mount_source: str) -> bool:
    """Return True if mount_source is device itself or one of its partitions.

    Matching is prefix based with a partition boundary, so /dev/sda matches
    /dev/sda1 but not /dev/sdab1.
    """
    candidates = {device, os.path.realpath(device)}
    for candidate in candidates:
        if mount_source == candidate:
            return True
        if mount_source.startswith(candidate):
            suffix = mount_source[len(candidate):]
            if re.fullmatch(_partition_suffix_pattern(candidate), suffix):
                return True
    return False


def find_device_mounts(device: str, mounts: Iterable[MountEntry]) -> list[MountEntry]:
    return [entry for entry in mounts if device_matches(device, entry.device)]


def unmount_partition(partition: str) -> None:
    """Unmount a block device node (e.g., /dev/sda1).

    Raises:
        UnmountFailedError: If the path is not a device node or umount fails
    """
    if not isinstance(partition, str) or not partition.startswith("/dev/"):
        raise UnmountFailedError(str(partition), "invalid partition path")
    try:
        subprocess.run(["umount", partition], check=True, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise UnmountFailedError(partition, "umount not found") from e
    except subprocess.CalledProcessError as e:
        raise UnmountFailedError(partition, (e.stderr or "").strip()) from e


def unmount_device_partitions(
    device: str,
    *,
    mounts_provider: Optional[Callable[[], list[MountEntry]]] = None,
    unmount: Optional[Callable[[str], None]] = None,
) -> list[str]:
    """Unmount every mounted partition of device, in mount table order.

    Args:
        device: Device path (e.g., '/dev/sda')
        mounts_provider: Returns the live mount table (defaults to list_mounts)
        unmount: Unmounts one partition (defaults to unmount_partition)

    Returns:
        The partitions that were unmounted

    Raises:
        UnmountFailedError: On the first partition that fails to unmount
    """
    mounts_provider = mounts_provider or list_mounts
    unmount = unmount or unmount_partition

    mounted = find_device_mounts(device, mounts_provider())
    if not mounted:
        log.debug(f"No mounted partitions on {device}")
        return []

    unmounted = []
    for entry in mounted:
        partition = entry.device
        log.info(f"== {partition} is mounted, umounting {partition} ==")
        try:
            unmount(partition)
        except OSError as error:
            raise UnmountFailedError(partition, str(error)) from error
        log.debug(f"Unmounted {partition} from {entry.mountpoint}")
        unmounted.append(partition)
    return unmounted
