"""Host collaborators used by a backup run.

HostServices bundles every external query and side effect behind a plain
callable, so a run can be driven against fakes in tests. The defaults talk to
the real system.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from imagebackup.storage import devices, mount
from imagebackup.storage.clone import clone_dd, sync_filesystems
from imagebackup.storage.mount import MountEntry
from imagebackup.ui.console import ProgressLine, prompt_confirmation


def console_copier(src: str, dst: str, total_bytes: Optional[int] = None) -> list[str]:
    """clone_dd with progress drawn on a stderr status line."""
    progress = ProgressLine()
    try:
        return clone_dd(src, dst, total_bytes=total_bytes, progress_callback=progress.update)
    finally:
        progress.finish()


@dataclass(frozen=True)
class HostServices:
    is_root: Callable[[], bool] = devices.is_root
    is_block_device: Callable[[str], bool] = devices.is_block_device
    device_size: Callable[[str], int] = devices.get_block_device_size
    free_space: Callable[[str], int] = devices.get_free_space
    file_size: Callable[[str], int] = devices.get_file_size
    file_type: Callable[[str], str] = devices.detect_file_type
    list_mounts: Callable[[], list[MountEntry]] = mount.list_mounts
    unmount: Callable[[str], None] = mount.unmount_partition
    copier: Callable[[str, str, Optional[int]], object] = console_copier
    sync: Callable[[], None] = sync_filesystems
    confirm: Callable[[str], bool] = prompt_confirmation
    today: Callable[[], date] = date.today
