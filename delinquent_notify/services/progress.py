from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display for notification dispatch with tqdm (TTY only).

In non-TTY environments (CI, piped output) no bar is created so logs are not
interleaved with control sequences.
"""

__all__ = [
    "DispatchProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True when stdout is a TTY and a progress bar should be shown."""
    return sys.stdout.isatty()


class DispatchProgress:
    """Progress bar over notification targets. Updated from the dispatching thread only."""

    def __init__(self, total_targets: int, *, description: str = "Sending notifications") -> None:
        self.total_targets = total_targets
        self.description = description
        self.completed = 0
        self.failed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_targets,
                desc=description,
                unit="msg",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update(self, success: bool = True) -> None:
        """Record one settled attempt."""
        self.completed += 1
        if not success:
            self.failed += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(failed=self.failed)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> DispatchProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
