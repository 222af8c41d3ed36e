"""Fixed settings for clone operations.

imagebackup reads no configuration file and no environment variables. Every
tunable lives here as a module constant so callers and tests share one source.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path


# dd options
BLOCK_SIZE = "1M"
CONV_OPTIONS = "sync,noerror"
STATUS_OPTION = "progress"

AFFIRMATIVE_ANSWER = "y"

IMAGE_NAME_TEMPLATE = "image-{date}.img"
IMAGE_DATE_FORMAT = "%d%m%y"

# Substring reported by `file -b` for a raw disk image with a partition table
VALID_IMAGE_SIGNATURE = "DOS/MBR boot sector"

PROC_MOUNTS_PATH = "/proc/mounts"

PROGRESS_REFRESH_INTERVAL = 1.0
PROGRESS_LOG_INTERVAL = 5.0

# operations.log lives here; the tool runs as root, so this is under /root
LOG_DIR = Path.home() / ".local" / "state" / "imagebackup" / "logs"


@dataclass(frozen=True)
class CloneSettings:
    block_size: str = BLOCK_SIZE
    conv: str = CONV_OPTIONS
    status: str = STATUS_OPTION

    def dd_options(self) -> list[str]:
        return [f"bs={self.block_size}", f"conv={self.conv}", f"status={self.status}"]


DEFAULT_CLONE_SETTINGS = CloneSettings()


def build_image_path(folder: str | Path, today: date) -> str:
    """Return the output image path for a disk to folder backup."""
    name = IMAGE_NAME_TEMPLATE.format(date=today.strftime(IMAGE_DATE_FORMAT))
    return str(Path(folder) / name)
