"""Tests for progress accounting."""

import io

from mailcopy.progress import ProgressTracker, TqdmProgress


def test_begin_resets_counters():
    progress = ProgressTracker()
    progress.begin("INBOX", 3)
    progress.increment()
    progress.increment()
    assert progress.current.mailbox == "INBOX"
    assert progress.current.transferred == 2

    progress.begin("Sent", 5)
    assert progress.current.transferred == 0
    assert progress.current.total == 5


def test_elapsed():
    progress = ProgressTracker()
    assert progress.elapsed() == 0.0
    progress.begin("INBOX", 1)
    assert progress.elapsed() >= 0.0


def test_increment_before_begin_does_not_crash():
    progress = ProgressTracker()
    progress.increment()
    assert progress.current.transferred == 1


def test_tqdm_bar_tracks_mailbox():
    out = io.StringIO()
    progress = TqdmProgress(file=out)
    progress.begin("INBOX", 2)
    progress.increment()
    progress.increment()
    assert progress._bar.n == 2
    progress.finish()

    assert progress._bar is None
    assert "INBOX: 2/2" in out.getvalue()
    assert progress.current.transferred == 2
