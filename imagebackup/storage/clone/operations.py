"""Core cloning operations."""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING, Callable, Optional

from imagebackup.config.settings import DEFAULT_CLONE_SETTINGS, CloneSettings
from imagebackup.domain import BackupJob
from imagebackup.logging import LoggerFactory, operation_context
from imagebackup.storage.exceptions import CloneOperationError, UserAbortError

from .command_runners import (
    CommandFailedError,
    run_checked_command,
    run_checked_with_streaming_progress,
)
from .progress import is_read_error_line

if TYPE_CHECKING:
    from imagebackup.services.host import HostServices

log = LoggerFactory.for_clone("-")


def build_dd_command(
    dd_path: str, src: str, dst: str, settings: CloneSettings = DEFAULT_CLONE_SETTINGS
) -> list[str]:
    return [dd_path, f"if={src}", f"of={dst}", *settings.dd_options()]


def _completed_with_read_errors(error: CommandFailedError, io_errors: list[str]) -> bool:
    # With conv=noerror dd keeps going past unreadable blocks, then exits 1
    # after printing its record summary. That is a finished copy. Any write
    # error stops dd early, so a single one makes the copy a failure.
    return (
        bool(io_errors)
        and all(is_read_error_line(message) for message in io_errors)
        and "records out" in error.output
    )


def clone_dd(
    src: str,
    dst: str,
    total_bytes: Optional[int] = None,
    title: str = "CLONING",
    progress_callback: Optional[Callable] = None,
    settings: CloneSettings = DEFAULT_CLONE_SETTINGS,
    job_id: Optional[str] = None,
) -> list[str]:
    """Copy src to dst with dd, padding unreadable blocks with zeros.

    Returns:
        The dd messages for blocks that could not be read

    Raises:
        CloneOperationError: If dd is missing, a write fails or the copy fails outright
    """
    dd_path = shutil.which("dd")
    if not dd_path:
        raise CloneOperationError("dd not found", source=src, destination=dst)
    io_errors: list[str] = []

    def record_io_error(message: str) -> None:
        io_errors.append(message)
        if is_read_error_line(message):
            log.warning(f"Read error, padding with zeros: {message}")
        else:
            log.error(f"Write error: {message}")

    try:
        run_checked_with_streaming_progress(
            build_dd_command(dd_path, src, dst, settings),
            total_bytes=total_bytes,
            title=title,
            progress_callback=progress_callback,
            io_error_callback=record_io_error,
            job_id=job_id,
        )
    except CommandFailedError as error:
        if _completed_with_read_errors(error, io_errors):
            log.warning(
                f"dd finished with {len(io_errors)} unreadable block(s); "
                "affected ranges were zero-filled"
            )
            return io_errors
        log.debug(f"dd failed: {error}")
        raise CloneOperationError(
            f"Failed to clone {src} to {dst}", source=src, destination=dst
        ) from error
    except OSError as error:
        raise CloneOperationError(
            f"Failed to clone {src} to {dst}: {error}", source=src, destination=dst
        ) from error
    return io_errors


def sync_filesystems() -> None:
    """Flush all buffered writes to stable storage."""
    sync_path = shutil.which("sync")
    if not sync_path:
        raise CloneOperationError("sync not found")
    try:
        run_checked_command([sync_path])
    except (CommandFailedError, OSError) as error:
        raise CloneOperationError(f"Failed to sync filesystems: {error}") from error


def confirm_clone(src: str, dst: str, confirm: Callable[[str], bool]) -> None:
    """Last chance to abort before dd starts.

    Raises:
        UserAbortError: If the user does not answer "y"
    """
    log.warning(f"== The script will clone {src} to {dst} ==")
    if not confirm("Are you sure?"):
        raise UserAbortError("== Aborting ==")


def clone_image(job: BackupJob, host: HostServices, total_bytes: Optional[int] = None) -> None:
    """Run the copy and the final sync for a validated, unmounted job.

    The final confirmation is expected to have been given already; see
    confirm_clone().
    """
    src = job.source.path
    dst = job.output_path
    with operation_context("clone", source=src, target=dst) as op_log:
        op_log.info(f"== Cloning {src} to {dst} ==")
        host.copier(src, dst, total_bytes)
        op_log.debug("Copy finished, syncing")
        host.sync()
        op_log.success("== Cloning is successful ==")
