"""Command execution utilities with progress tracking."""

import select
import subprocess
import time

from imagebackup.config.settings import PROGRESS_LOG_INTERVAL, PROGRESS_REFRESH_INTERVAL
from imagebackup.logging import LoggerFactory, ThrottledLogger

from .progress import (
    compute_eta,
    format_progress_display,
    is_io_error_line,
    parse_progress_line,
)

log = LoggerFactory.for_system()


class CommandFailedError(RuntimeError):
    """A command exited with a non-zero status."""

    def __init__(self, command, returncode, output=""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = output.strip().splitlines()[-1] if output.strip() else "Command failed"
        super().__init__(f"Command failed ({' '.join(self.command)}): {message}")


def run_checked_command(command, input_text=None):
    """Run a command and raise CommandFailedError if it fails."""
    log.debug(f"Running command: {' '.join(command)}")
    result = subprocess.run(
        command,
        input=input_text,
        text=True,
        capture_output=True,
    )
    if result.returncode != 0:
        raise CommandFailedError(
            command, result.returncode, result.stderr or result.stdout or ""
        )
    return result.stdout


def run_checked_with_streaming_progress(
    command,
    total_bytes=None,
    title="CLONING",
    progress_callback=None,
    io_error_callback=None,
    job_id=None,
):
    """Run a command, streaming its stderr progress to progress_callback.

    progress_callback receives (lines, ratio). Lines reporting skipped
    unreadable blocks go to io_error_callback instead.

    Returns:
        subprocess.CompletedProcess with the collected stderr

    Raises:
        CommandFailedError: If the command exits with a non-zero status
    """
    progress_log = ThrottledLogger(LoggerFactory.for_progress(job_id), PROGRESS_LOG_INTERVAL)

    def emit_progress(lines, ratio=None):
        progress_log.info("progress", " ".join(lines))
        if progress_callback:
            progress_callback(lines, ratio)

    def clamp_ratio(value):
        if value is None:
            return None
        return max(0.0, min(1.0, float(value)))

    def compute_ratio(bytes_copied, percent_value):
        if bytes_copied is not None and total_bytes:
            return clamp_ratio(bytes_copied / total_bytes)
        if percent_value is not None:
            return clamp_ratio(percent_value / 100.0)
        return None

    emit_progress(
        format_progress_display(
            title, 0 if total_bytes else None, total_bytes, None, None, None
        ),
        ratio=compute_ratio(0 if total_bytes else None, None),
    )
    log.debug(f"Running command: {' '.join(command)}")
    process = subprocess.Popen(
        command,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    stderr_lines = []
    last_update = time.time()
    last_bytes = None
    last_rate = None
    last_eta = None
    last_percent = None
    spinner_frames = ["|", "/", "-", "\\"]
    spinner_index = 0
    refresh_interval = PROGRESS_REFRESH_INTERVAL
    while True:
        ready, _, _ = select.select([process.stderr], [], [], refresh_interval)
        now = time.time()
        line = None
        if ready:
            line = process.stderr.readline()
        if line:
            stderr_lines.append(line)
            if is_io_error_line(line):
                log.debug(f"stderr: {line.strip()}")
                if io_error_callback:
                    io_error_callback(line.strip())
            sample = parse_progress_line(line)
            if sample is not None:
                if sample.bytes_copied is not None:
                    last_bytes = sample.bytes_copied
                if sample.rate:
                    last_rate = sample.rate
                if sample.percent is not None:
                    last_percent = sample.percent
                last_eta = compute_eta(last_bytes, total_bytes, last_rate) or last_eta
                emit_progress(
                    format_progress_display(
                        title,
                        last_bytes,
                        total_bytes,
                        last_percent,
                        last_rate,
                        last_eta,
                        spinner_frames[spinner_index],
                    ),
                    ratio=compute_ratio(last_bytes, last_percent),
                )
                last_update = now
        if now - last_update >= refresh_interval:
            spinner_index = (spinner_index + 1) % len(spinner_frames)
            emit_progress(
                format_progress_display(
                    title,
                    last_bytes,
                    total_bytes,
                    last_percent,
                    last_rate,
                    last_eta,
                    spinner_frames[spinner_index],
                ),
                ratio=compute_ratio(last_bytes, last_percent),
            )
            last_update = now
        if process.poll() is not None and not line:
            break
    remaining_stderr = process.stderr.read() if process.stderr else ""
    if remaining_stderr:
        stderr_lines.append(remaining_stderr)
    process.wait()
    stderr_output = "".join(stderr_lines)
    if process.returncode != 0:
        raise CommandFailedError(command, process.returncode, stderr_output)
    return subprocess.CompletedProcess(
        command, process.returncode, stdout="", stderr=stderr_output
    )


__all__ = [
    "CommandFailedError",
    "run_checked_command",
    "run_checked_with_streaming_progress",
]
