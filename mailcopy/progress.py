"""Per-mailbox progress accounting."""

import time
from dataclasses import dataclass
from typing import Optional

from tqdm import tqdm


@dataclass
class TransferProgress:
    mailbox: str
    total: int
    transferred: int = 0


class ProgressTracker:
    """
    Counts messages transferred for the mailbox currently being copied.

    One tracker lives for one run and is handed to the transfer loop.
    ``begin`` resets the counters for the next mailbox.
    """

    def __init__(self):
        self.current: Optional[TransferProgress] = None
        self._started: Optional[float] = None

    def begin(self, mailbox: str, total: int) -> None:
        self.current = TransferProgress(mailbox, total)
        self._started = time.monotonic()

    def increment(self) -> None:
        if self.current is None:
            # Caller error; keep counting rather than fail the transfer.
            self.begin("", 0)
        self.current.transferred += 1

    def finish(self) -> None:
        pass

    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return time.monotonic() - self._started


class TqdmProgress(ProgressTracker):
    """Renders one progress bar per mailbox on the terminal."""

    def __init__(self, label_width: int = 22, **tqdm_kwargs):
        super().__init__()
        self.label_width = label_width
        self.tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def _label(self) -> str:
        p = self.current
        text = f"{p.mailbox}: {p.transferred}/{p.total}"
        return text[: self.label_width].ljust(self.label_width)

    def begin(self, mailbox: str, total: int) -> None:
        self.finish()
        super().begin(mailbox, total)
        self._bar = tqdm(
            total=total,
            desc=self._label(),
            bar_format="{desc} {elapsed} {bar} {percentage:3.0f}%",
            **self.tqdm_kwargs,
        )

    def increment(self) -> None:
        super().increment()
        if self._bar is not None:
            self._bar.set_description_str(self._label(), refresh=False)
            self._bar.update(1)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
