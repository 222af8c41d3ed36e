"""Raw block-level cloning with dd.

Main Functions:
    - clone_dd(): copy with bs=1M, conv=sync,noerror and streamed progress
    - sync_filesystems(): flush buffered writes after the copy
    - confirm_clone(): final "are you sure" gate
    - clone_image(): copy and sync for a prepared BackupJob

Command Execution:
    - run_checked_command(): Run command and check result
    - run_checked_with_streaming_progress(): Run with progress tracking
"""

from .command_runners import (
    CommandFailedError,
    run_checked_command,
    run_checked_with_streaming_progress,
)
from .operations import (
    build_dd_command,
    clone_dd,
    clone_image,
    confirm_clone,
    sync_filesystems,
)
from .progress import (
    format_eta,
    format_progress_display,
    parse_progress_line,
)

__all__ = [
    # Main operations
    "clone_dd",
    "clone_image",
    "confirm_clone",
    "sync_filesystems",
    "build_dd_command",
    # Progress formatting
    "format_eta",
    "format_progress_display",
    "parse_progress_line",
    # Command runners
    "CommandFailedError",
    "run_checked_command",
    "run_checked_with_streaming_progress",
]
