"""Shared fixtures: in-memory stand-ins for an IMAP account."""

from datetime import datetime, timezone
from typing import Dict, List

import pytest

from mailcopy.config import MigrationConfig, ServerConfig
from mailcopy.errors import (
    AppendError,
    CreateMailboxError,
    ExpungeError,
    FetchError,
    MailboxExistsError,
    NoSuchMailboxError,
    StoreError,
)
from mailcopy.session import Message


def make_messages(count: int, start_uid: int = 1) -> List[Message]:
    return [
        Message(
            uid=start_uid + i,
            flags=(b"\\Seen",) if i % 2 else (),
            internal_date=datetime(2020, 1, 1 + i % 28, 12, 0, tzinfo=timezone.utc),
            body=f"Subject: Message {start_uid + i}\r\n\r\nBody {start_uid + i}".encode(),
            size=40,
        )
        for i in range(count)
    ]


class FakeSession:
    """Keeps mailboxes as lists of messages and records every call."""

    def __init__(self, mailboxes: Dict[str, List[Message]] = None, name: str = "fake"):
        self.name = name
        self.mailboxes = {k: list(v) for k, v in (mailboxes or {}).items()}
        self.selected = None
        self.deleted = set()
        self.calls = []
        self.closed = False
        self._next_uid = 1000

        self.fail_append_after = None
        self.expunge_failures = 0
        self.fail_fetch = False
        self.fail_store = False
        self.fail_create = False
        self.hide_messages = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    def list_mailboxes(self, selectable_only: bool = False):
        self.calls.append(("list", selectable_only))
        for name in self.mailboxes:
            yield name

    def select_mailbox(self, name: str, readonly: bool = False) -> int:
        self.calls.append(("select", name))
        if name not in self.mailboxes:
            raise NoSuchMailboxError(name)
        self.selected = name
        self.deleted = set()
        return len(self.mailboxes[name])

    def create_mailbox(self, name: str) -> None:
        self.calls.append(("create", name))
        if self.fail_create:
            raise CreateMailboxError(f"cannot create {name}")
        if name in self.mailboxes:
            raise MailboxExistsError(name)
        self.mailboxes[name] = []

    def fetch(self, first: int, last: int):
        self.calls.append(("fetch", first, last))
        if self.fail_fetch:
            raise FetchError("connection reset")
        if self.hide_messages:
            return
        for msg in list(self.mailboxes[self.selected][first - 1:last]):
            yield msg

    def append(self, mailbox, flags, internal_date, body) -> None:
        self.calls.append(("append", mailbox))
        if self.fail_append_after is not None and self.count("append") > self.fail_append_after:
            raise AppendError("quota exceeded")
        if mailbox not in self.mailboxes:
            raise AppendError(f"[TRYCREATE] no mailbox {mailbox}")
        self._next_uid += 1
        self.mailboxes[mailbox].append(
            Message(uid=self._next_uid, flags=tuple(flags), internal_date=internal_date, body=body)
        )

    def mark_deleted(self, uids) -> None:
        self.calls.append(("mark", tuple(uids)))
        if self.fail_store:
            raise StoreError("store failed")
        self.deleted.update(uids)

    def expunge(self) -> None:
        self.calls.append(("expunge",))
        if self.expunge_failures > 0:
            self.expunge_failures -= 1
            raise ExpungeError("expunge failed")
        box = self.mailboxes[self.selected]
        self.mailboxes[self.selected] = [m for m in box if m.uid not in self.deleted]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def server_config():
    return ServerConfig(server="imap.example.com:993", username="user@example.com", password="password")


@pytest.fixture
def migration_config(server_config):
    def build(**kwargs):
        kwargs.setdefault("source", server_config)
        kwargs.setdefault("destination", server_config)
        return MigrationConfig(**kwargs)
    return build
