"""Progress parsing and formatting for dd transfers."""

import re
from dataclasses import dataclass
from typing import Optional

from imagebackup.storage.sizes import human_size

_BYTES_PATTERN = re.compile(r"^(\d+)\s+bytes")
_PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)%")
_RATE_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*([kKMGT]?i?B)/s")
_IO_ERROR_PATTERN = re.compile(r"error (?:reading|writing)", re.IGNORECASE)
_READ_ERROR_PATTERN = re.compile(r"error reading", re.IGNORECASE)

_RATE_UNITS = {
    "B": 1,
    "kB": 1000,
    "KB": 1000,
    "KiB": 1024,
    "MB": 1000**2,
    "MiB": 1024**2,
    "GB": 1000**3,
    "GiB": 1024**3,
    "TB": 1000**4,
    "TiB": 1024**4,
}


@dataclass(frozen=True)
class ProgressSample:
    bytes_copied: Optional[int] = None
    percent: Optional[float] = None
    rate: Optional[float] = None  # bytes per second


def format_eta(seconds):
    """Format ETA in HH:MM:SS or MM:SS format."""
    if seconds is None:
        return None
    seconds = int(seconds)
    if seconds < 0:
        return None
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def parse_progress_line(line: str) -> Optional[ProgressSample]:
    """Parse one dd status line.

    dd prints e.g. "1073741824 bytes (1.1 GB, 1.0 GiB) copied, 2 s, 537 MB/s".
    Returns None for lines that carry no progress information.
    """
    text = line.strip()
    bytes_match = _BYTES_PATTERN.search(text)
    percent_match = _PERCENT_PATTERN.search(text)
    if not bytes_match and not percent_match:
        return None
    rate = None
    rate_match = _RATE_PATTERN.search(text)
    if rate_match:
        value = float(rate_match.group(1).replace(",", "."))
        rate = value * _RATE_UNITS.get(rate_match.group(2), 1)
    return ProgressSample(
        bytes_copied=int(bytes_match.group(1)) if bytes_match else None,
        percent=float(percent_match.group(1)) if percent_match else None,
        rate=rate,
    )


def is_io_error_line(line: str) -> bool:
    """dd reports failed block reads and writes with "error reading/writing ..." lines."""
    return bool(_IO_ERROR_PATTERN.search(line))


def is_read_error_line(line: str) -> bool:
    """Only read errors are skipped by conv=noerror; a write error ends the copy."""
    return bool(_READ_ERROR_PATTERN.search(line))


def compute_eta(bytes_copied, total_bytes, rate):
    if not rate or not total_bytes or bytes_copied is None:
        return None
    if bytes_copied > total_bytes:
        return None
    return format_eta((total_bytes - bytes_copied) / rate)


def format_progress_display(
    title,
    bytes_copied,
    total_bytes,
    percent,
    rate,
    eta,
    spinner=None,
):
    """Format progress information into display segments."""
    lines = []
    if title:
        title_line = title
        if spinner:
            title_line = f"{title} {spinner}"
        lines.append(title_line)
    if bytes_copied is not None:
        percent_display = ""
        if total_bytes:
            percent_display = f"{(bytes_copied / total_bytes) * 100:.1f}%"
        elif percent is not None:
            percent_display = f"{percent:.1f}%"
        written_line = f"Wrote {human_size(bytes_copied)}"
        if percent_display:
            written_line = f"{written_line} {percent_display}"
        lines.append(written_line)
    else:
        lines.append("Working...")
    if rate:
        rate_line = f"{human_size(rate)}/s"
        if eta:
            rate_line = f"{rate_line} ETA {eta}"
        lines.append(rate_line)
    return lines
