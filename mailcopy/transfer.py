"""
Batch transfer of one mailbox.

Each round selects the source mailbox, fetches its first ``batch_size``
messages, appends them to the destination, flags them deleted on the
source and expunges. The mailbox is re-selected after every round, so the
loop always works on whatever is currently at the top of the mailbox and
stops once the source is empty.

Fetching runs on a producer thread feeding a bounded queue while the
calling thread appends, so network reads and writes overlap.
"""

import logging
import queue
import threading
from typing import Iterator, List, Optional

from mailcopy.errors import (
    ExpungeError,
    FetchError,
    MailboxExistsError,
    MigrationError,
    TransferError,
)
from mailcopy.progress import ProgressTracker
from mailcopy.session import MailSession, Message

log = logging.getLogger(__name__)

BATCH_SIZE = 10
QUEUE_SIZE = 10

_DONE = object()


class FetchProducer(threading.Thread):
    """Fetches one sequence range from the source and queues the messages."""

    def __init__(self, session: MailSession, first: int, last: int, queue_size: int = QUEUE_SIZE):
        super().__init__(name=f"fetch-{first}:{last}", daemon=True)
        self.session = session
        self.first = first
        self.last = last
        self.queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self.error: Optional[Exception] = None
        self._stopping = threading.Event()

    def run(self) -> None:
        try:
            for msg in self.session.fetch(self.first, self.last):
                if not self._put(msg):
                    return
        except Exception as e:
            # Handed to the consumer, which re-raises it.
            self.error = e
        finally:
            self._put(_DONE)

    def _put(self, item) -> bool:
        while not self._stopping.is_set():
            try:
                self.queue.put(item, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def stop(self) -> None:
        self._stopping.set()

    def __iter__(self) -> Iterator[Message]:
        while True:
            item = self.queue.get()
            if item is _DONE:
                break
            yield item
        if self.error is not None:
            if isinstance(self.error, MigrationError):
                raise self.error
            raise FetchError(f"fetch {self.first}:{self.last} failed: {self.error}") from self.error


def ensure_mailbox(session: MailSession, name: str) -> None:
    try:
        session.create_mailbox(name)
        log.info(f"Created mailbox {name}")
    except MailboxExistsError:
        log.debug(f"Mailbox {name} already exists")


def copy_batch(
    source: MailSession,
    destination: MailSession,
    dest_name: str,
    count: int,
    progress: ProgressTracker,
) -> List[int]:
    """
    Append messages 1..count of the selected source mailbox to ``dest_name``.

    Returns the UIDs that were appended. An append failure stops the
    producer and propagates; messages appended before it stay on the
    destination.
    """
    producer = FetchProducer(source, 1, count)
    producer.start()
    uids: List[int] = []
    try:
        for msg in producer:
            destination.append(dest_name, msg.flags, msg.internal_date, msg.body)
            uids.append(msg.uid)
            progress.increment()
    finally:
        producer.stop()
        producer.join()
    return uids


def transfer_mailbox(
    source: MailSession,
    destination: MailSession,
    source_name: str,
    dest_name: str,
    progress: ProgressTracker,
    batch_size: int = BATCH_SIZE,
) -> int:
    """Move every message of ``source_name`` into ``dest_name``; return how many."""
    try:
        return _transfer(source, destination, source_name, dest_name, progress, batch_size)
    except TransferError:
        raise
    except MigrationError as e:
        raise TransferError(source_name, str(e), e) from e


def _transfer(source, destination, source_name, dest_name, progress, batch_size) -> int:
    count = source.select_mailbox(source_name)
    if count == 0:
        log.info(f"{source_name} is empty, skipping")
        return 0

    total = count
    log.info(f"Copying {source_name} -> {dest_name} ({total} messages)")
    progress.begin(source_name, total)
    transferred = 0
    try:
        ensure_mailbox(destination, dest_name)
        while count > 0:
            batch = min(batch_size, count)
            uids = copy_batch(source, destination, dest_name, batch, progress)
            if not uids:
                raise TransferError(source_name, f"fetch of 1:{batch} returned no messages")
            transferred += len(uids)

            source.mark_deleted(uids)
            try:
                source.expunge()
            except ExpungeError as e:
                log.warning(f"Failed to expunge messages from {source_name}: {e}")

            log.debug(f"{source_name}: {transferred}/{total} copied")
            count = source.select_mailbox(source_name)
    finally:
        progress.finish()

    log.info(f"Finished {source_name}: {transferred} messages in {progress.elapsed():.1f}s")
    return transferred
