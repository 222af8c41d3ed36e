"""Terminal prompts and progress rendering.

Everything here writes to stderr, so stdout stays free for usage text.
"""

from __future__ import annotations

import sys
from typing import Callable, Optional, Sequence, TextIO

from imagebackup.config.settings import AFFIRMATIVE_ANSWER
from imagebackup.logging import LoggerFactory

log = LoggerFactory.for_cli()


def prompt_confirmation(
    prompt: str,
    *,
    input_func: Callable[[], str] = input,
) -> bool:
    """Warn with prompt, read one answer and return True only for "y".

    End of input counts as a decline.
    """
    log.warning(f"{prompt} [y/N]")
    try:
        answer = input_func()
    except EOFError:
        return False
    return answer.strip() == AFFIRMATIVE_ANSWER


class ProgressLine:
    """Single self-overwriting status line on a terminal stream."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stderr
        self._width = 0
        self._active = False

    def update(self, lines: Sequence[str], ratio: Optional[float] = None) -> None:
        text = " | ".join(line for line in lines if line)
        padding = " " * max(0, self._width - len(text))
        self.stream.write(f"\r{text}{padding}")
        self.stream.flush()
        self._width = len(text)
        self._active = True

    def finish(self) -> None:
        if self._active:
            self.stream.write("\n")
            self.stream.flush()
        self._width = 0
        self._active = False
