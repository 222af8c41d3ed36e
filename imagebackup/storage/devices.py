"""Host queries for block devices, folders and image files.

Each function answers one question about the host and is used as the default
implementation of a HostServices field:

    - is_root(): effective UID is 0
    - is_block_device(): path is a block special file
    - get_block_device_size(): device size in bytes (blockdev --getsize64)
    - get_free_space(): bytes available to unprivileged users on a filesystem,
      the same figure `df --output=avail` reports
    - get_file_size(): regular file size in bytes
    - detect_file_type(): content based type description (file -b)

Query failures raise DeviceQueryError rather than returning sentinel values,
so a capacity check can never pass on a missing size.
"""
import os
import shutil
import stat
import subprocess

from imagebackup.logging import LoggerFactory

from .exceptions import DeviceQueryError

log = LoggerFactory.for_system()


def run_command(command, check=True, log_output=True):
    log.debug(f"Running command: {' '.join(command)}")
    try:
        result = subprocess.run(command, check=check, text=True, capture_output=True)
    except subprocess.CalledProcessError as error:
        log.debug(f"Command failed: {' '.join(command)}")
        if error.stderr:
            log.debug(f"stderr: {error.stderr.strip()}")
        raise
    if result.stdout and (log_output or result.returncode != 0):
        log.debug(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        log.debug(f"stderr: {result.stderr.strip()}")
    return result


def _require_tool(name: str, path: str) -> str:
    tool_path = shutil.which(name)
    if not tool_path:
        raise DeviceQueryError(path, f"{name} not found")
    return tool_path


def is_root() -> bool:
    return os.geteuid() == 0


def is_block_device(path: str) -> bool:
    try:
        mode = os.stat(path).st_mode
    except (FileNotFoundError, NotADirectoryError):
        return False
    return stat.S_ISBLK(mode)


def get_block_device_size(device: str) -> int:
    """Return the size of a block device in bytes.

    Raises:
        DeviceQueryError: If blockdev is missing, fails or prints garbage
    """
    blockdev_path = _require_tool("blockdev", device)
    try:
        result = run_command([blockdev_path, "--getsize64", device])
    except subprocess.CalledProcessError as error:
        reason = (error.stderr or "").strip() or f"blockdev exited with {error.returncode}"
        raise DeviceQueryError(device, reason) from error
    output = result.stdout.strip()
    try:
        return int(output)
    except ValueError as error:
        raise DeviceQueryError(device, f"unexpected blockdev output: {output!r}") from error


def get_free_space(path: str) -> int:
    """Return bytes available on the filesystem holding path."""
    try:
        return shutil.disk_usage(path).free
    except OSError as error:
        raise DeviceQueryError(path, str(error)) from error


def get_file_size(path: str) -> int:
    try:
        return os.stat(path).st_size
    except OSError as error:
        raise DeviceQueryError(path, str(error)) from error


def detect_file_type(path: str) -> str:
    """Describe a file by its content, e.g. "DOS/MBR boot sector; partition 1 ...".

    Raises:
        DeviceQueryError: If the file utility is missing or fails
    """
    file_path = _require_tool("file", path)
    try:
        result = run_command([file_path, "-b", path], log_output=False)
    except subprocess.CalledProcessError as error:
        reason = (error.stderr or "").strip() or f"file exited with {error.returncode}"
        raise DeviceQueryError(path, reason) from error
    description = result.stdout.strip()
    log.debug(f"{path}: {description}")
    return description
