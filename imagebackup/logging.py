from __future__ import annotations

import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

from imagebackup.config.settings import LOG_DIR

# Console prefixes per level. WARNING is shortened to match the other tags.
LEVEL_PREFIXES = {
    "TRACE": "TRACE",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARN",
    "ERROR": "ERROR",
    "CRITICAL": "ERROR",
}


def _console_format(record) -> str:
    prefix = LEVEL_PREFIXES.get(record["level"].name, record["level"].name)
    record["extra"]["prefix"] = prefix
    return "<level><bold>{extra[prefix]}:</bold></level> {message}\n{exception}"


def _is_progress(record) -> bool:
    return "progress" in record["extra"].get("tags", [])


def setup_logging(
    *,
    debug: bool = False,
    log_dir: Path | None = None,
    colorize: bool | None = None,
) -> Logger:
    """
    Setup console logging and the operations log file.

    Sinks:
    - stderr: INFO+ (DEBUG+ with debug=True), prefixed ERROR:/WARN:/INFO:
    - operations.log: INFO+ events, including throttled copy progress

    Args:
        debug: Enable DEBUG level output on both sinks
        log_dir: Directory for operations.log (defaults to LOG_DIR)
        colorize: Force or disable colors (defaults to tty detection)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    console_level = "DEBUG" if debug else "INFO"

    # SINK 1: Console (stderr). Progress records are rendered by the progress
    # line writer, not here.
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        colorize=colorize,
        filter=lambda record: not _is_progress(record),
        format=_console_format,
    )

    # SINK 2: Operations Log. Progress records land here, throttled.
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_dir / "operations.log",
        level="DEBUG" if debug else "INFO",
        rotation="5 MB",
        retention="7 days",
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <10} | "
            "{extra[job_id]: <15} | "
            "{message}"
        ),
    )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["clone", "mount"])
        source: Source component (e.g., "clone", "cli")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


def new_job_id(operation: str) -> str:
    return f"{operation}-{uuid.uuid4().hex[:8]}"


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for long-running operations with automatic timing.

    Logs completion or failure with the elapsed duration.

    Example:
        with operation_context("clone", source="/dev/sda", target="/dev/sdb") as log:
            log.debug("Starting dd")
    """
    job_id = details.pop("job_id", None) or new_job_id(operation)

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = get_logger(source=operation, job_id=job_id, tags=[operation])
        log.debug(f"{operation.capitalize()} started")

        try:
            yield log
            duration = time.time() - start_time
            log.debug(
                f"{operation.capitalize()} completed in {duration:.2f}s"
            )
        except Exception as e:
            duration = time.time() - start_time
            log.debug(
                f"{operation.capitalize()} failed after {duration:.2f}s: "
                f"{type(e).__name__}: {e}"
            )
            raise


class LoggerFactory:
    """
    Factory for component loggers with preset source and tags.
    """

    @staticmethod
    def for_cli() -> Logger:
        """Logger for argument handling and top-level reporting."""
        return get_logger(source="cli", tags=["cli"])

    @staticmethod
    def for_validation() -> Logger:
        """Logger for preflight checks."""
        return get_logger(source="preflight", tags=["preflight"])

    @staticmethod
    def for_mount() -> Logger:
        """Logger for mount detection and unmounting."""
        return get_logger(source="mount", tags=["mount", "storage"])

    @staticmethod
    def for_clone(job_id: str | None = None) -> Logger:
        """Logger for clone operations."""
        if job_id is None:
            job_id = new_job_id("clone")
        return get_logger(job_id=job_id, source="clone", tags=["clone", "storage"])

    @staticmethod
    def for_progress(job_id: str | None = None) -> Logger:
        """Logger for copy progress. Kept off the console sink."""
        return get_logger(
            job_id=job_id or "-", source="clone", tags=["clone", "progress"]
        )

    @staticmethod
    def for_system() -> Logger:
        """Logger for external commands and host queries."""
        return get_logger(source="system", tags=["system"])


class ThrottledLogger:
    """
    Logger wrapper that throttles high-frequency log events.

    Used for dd progress, which updates about once per second.
    """

    def __init__(self, log: Logger, interval_seconds: float = 5.0):
        self.log = log
        self.interval = interval_seconds
        self.last_log_time: dict[str, float] = {}

    def debug(self, key: str, message: str) -> None:
        self._throttled_log("DEBUG", key, message)

    def info(self, key: str, message: str) -> None:
        self._throttled_log("INFO", key, message)

    def _throttled_log(self, level: str, key: str, message: str) -> None:
        now = time.time()
        last_time = self.last_log_time.get(key)

        if last_time is None or now - last_time >= self.interval:
            log_method = getattr(self.log, level.lower())
            log_method(message)
            self.last_log_time[key] = now
