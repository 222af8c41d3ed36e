"""
Pytest configuration and shared fixtures for imagebackup tests.

FakeSystem stands in for the host: block devices, free space, image files,
the mount table and the prompts. Its methods are wired into HostServices and
every call is recorded in order, so tests can assert what happened and what
never happened.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import pytest
from loguru import logger

from imagebackup.services.host import HostServices
from imagebackup.storage.exceptions import UnmountFailedError
from imagebackup.storage.mount import MountEntry

GIB = 1024**3
TODAY = date(2026, 10, 19)


@dataclass
class FakeSystem:
    root: bool = True
    devices: Dict[str, int] = field(
        default_factory=lambda: {"/dev/sda": 8 * GIB, "/dev/sdb": 16 * GIB}
    )
    free: Dict[str, int] = field(default_factory=dict)
    file_sizes: Dict[str, int] = field(default_factory=dict)
    file_types: Dict[str, str] = field(default_factory=dict)
    mounts: List[MountEntry] = field(default_factory=list)
    failing_unmounts: set = field(default_factory=set)
    answers: List[bool] = field(default_factory=list)
    copy_error: Optional[Exception] = None
    calls: List[tuple] = field(default_factory=list)

    def is_root(self) -> bool:
        return self.root

    def is_block_device(self, path: str) -> bool:
        return path in self.devices

    def device_size(self, path: str) -> int:
        self.calls.append(("device_size", path))
        return self.devices[path]

    def free_space(self, path: str) -> int:
        self.calls.append(("free_space", path))
        return self.free.get(path, 0)

    def file_size(self, path: str) -> int:
        return self.file_sizes[path]

    def file_type(self, path: str) -> str:
        return self.file_types.get(path, "data")

    def list_mounts(self) -> List[MountEntry]:
        return list(self.mounts)

    def unmount(self, partition: str) -> None:
        self.calls.append(("unmount", partition))
        if partition in self.failing_unmounts:
            raise UnmountFailedError(partition, "target is busy")

    def copier(self, src: str, dst: str, total_bytes: Optional[int] = None) -> list:
        self.calls.append(("copy", src, dst, total_bytes))
        if self.copy_error is not None:
            raise self.copy_error
        return []

    def sync(self) -> None:
        self.calls.append(("sync",))

    def confirm(self, prompt: str) -> bool:
        self.calls.append(("confirm", prompt))
        if self.answers:
            return self.answers.pop(0)
        return True

    def today(self) -> date:
        return TODAY

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def host(self) -> HostServices:
        return HostServices(
            is_root=self.is_root,
            is_block_device=self.is_block_device,
            device_size=self.device_size,
            free_space=self.free_space,
            file_size=self.file_size,
            file_type=self.file_type,
            list_mounts=self.list_mounts,
            unmount=self.unmount,
            copier=self.copier,
            sync=self.sync,
            confirm=self.confirm,
            today=self.today,
        )


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    """Keep operations.log inside the test's temporary directory."""
    directory = tmp_path / "logs"
    monkeypatch.setattr("imagebackup.logging.LOG_DIR", directory)
    return directory


@pytest.fixture
def fake_system() -> FakeSystem:
    """Fixture providing a root-privileged host with /dev/sda (8GiB) and /dev/sdb (16GiB)."""
    return FakeSystem()


@pytest.fixture
def backup_folder(tmp_path):
    """Fixture providing an existing destination folder."""
    folder = tmp_path / "backup"
    folder.mkdir()
    return folder


@pytest.fixture
def disk_image(tmp_path):
    """Fixture providing an existing image file path (content is not inspected)."""
    image = tmp_path / "disk.img"
    image.write_bytes(b"\x00" * 512)
    return image


@pytest.fixture
def log_records():
    """Collect loguru records emitted during a test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
