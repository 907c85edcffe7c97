"""Progress reporting utilities."""

import sys
from typing import Optional
from tqdm import tqdm


def human_size(num_bytes: int) -> str:
    """Format a byte count, e.g. ``24.0MB``."""
    return tqdm.format_sizeof(num_bytes, suffix='B', divisor=1024)


class ProgressReporter:
    """Byte progress for a single layer upload."""

    def __init__(self, total: int, description: str = "Uploading", enabled: bool = True):
        self.total = total
        self.description = description
        self.enabled = enabled
        self.progress_bar: Optional[tqdm] = None
        self.parts = 0

    def start(self):
        """Start progress reporting."""
        if not self.enabled:
            return
        self.progress_bar = tqdm(
            total=self.total,
            desc=self.description,
            unit='B',
            unit_scale=True,
            unit_divisor=1024,
            file=sys.stdout,
            leave=False
        )

    def update(self, num_bytes: int):
        """Record one accepted part."""
        self.parts += 1
        if self.progress_bar:
            self.progress_bar.set_postfix({'parts': self.parts})
            self.progress_bar.update(num_bytes)

    def finish(self):
        """Finish progress reporting."""
        if self.progress_bar:
            self.progress_bar.close()
            self.progress_bar = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
