"""Run one backup job from validation to the final sync.

Stages run strictly in order and none is retried:

    MODE_RESOLVED -> VALIDATED -> UNMOUNTED -> CONFIRMED -> COPYING -> SYNCED -> DONE

Any ImageBackupError moves the run to FAILED and propagates to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from imagebackup.domain import BackupJob, JobState
from imagebackup.logging import LoggerFactory
from imagebackup.storage.clone import clone_image, confirm_clone
from imagebackup.storage.exceptions import ImageBackupError
from imagebackup.storage.mount import unmount_device_partitions
from imagebackup.storage.validation import run_preflight

from .host import HostServices

log = LoggerFactory.for_system()


@dataclass
class BackupRun:
    """Mutable record of one run: the job plus the states it went through."""

    job: BackupJob
    state: JobState = JobState.MODE_RESOLVED
    history: list[JobState] = field(
        default_factory=lambda: [JobState.START, JobState.MODE_RESOLVED]
    )
    total_bytes: Optional[int] = None
    unmounted: list[str] = field(default_factory=list)
    error: Optional[ImageBackupError] = None

    def advance(self, target: JobState) -> None:
        if not self.state.can_transition_to(target):
            raise RuntimeError(f"Invalid job state transition: {self.state.value} -> {target.value}")
        log.debug(f"Job state {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)


def run_backup(
    job: BackupJob,
    host: Optional[HostServices] = None,
    run: Optional[BackupRun] = None,
) -> BackupRun:
    """Validate, unmount, confirm, copy and sync.

    Pass run to observe the state history even when the job fails.

    Raises:
        ImageBackupError: The first failed check, decline or operation
    """
    host = host or HostServices()
    run = run or BackupRun(job=job)
    try:
        run.total_bytes = run_preflight(job, host)
        run.advance(JobState.VALIDATED)

        for device in job.devices_to_unmount():
            run.unmounted.extend(
                unmount_device_partitions(
                    device, mounts_provider=host.list_mounts, unmount=host.unmount
                )
            )
        run.advance(JobState.UNMOUNTED)

        confirm_clone(job.source.path, job.output_path, host.confirm)
        run.advance(JobState.CONFIRMED)

        run.advance(JobState.COPYING)
        clone_image(job, host, total_bytes=run.total_bytes)
        run.advance(JobState.SYNCED)

        run.advance(JobState.DONE)
    except ImageBackupError as error:
        run.error = error
        run.advance(JobState.FAILED)
        raise
    return run
