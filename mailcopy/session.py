"""
IMAP session handle.

Wraps an ``IMAPClient`` connection to one account and exposes the handful
of operations the migration needs, translating ``imapclient`` and socket
failures into the exceptions from ``mailcopy.errors``.
"""

import logging
import ssl
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from imapclient import DELETED, RECENT, IMAPClient
from imapclient.exceptions import IMAPClientError, LoginError

from mailcopy.config import ServerConfig
from mailcopy.errors import (
    AppendError,
    AuthError,
    ConnectError,
    CreateMailboxError,
    ExpungeError,
    FetchError,
    ListMailboxesError,
    MailboxExistsError,
    NoSuchMailboxError,
    StoreError,
)

log = logging.getLogger(__name__)

FETCH_ITEMS = [
    b"BODY.PEEK[]",
    b"FLAGS",
    b"INTERNALDATE",
    b"RFC822.SIZE",
    b"ENVELOPE",
    b"UID",
]

UNSELECTABLE = (b"\\Noselect", b"\\NonExistent")


@dataclass
class Message:
    uid: int
    flags: Tuple[bytes, ...]
    internal_date: Optional[datetime]
    body: bytes = field(repr=False)
    size: int = 0
    envelope: Any = None


def normalize_internaldate(dt) -> datetime:
    if isinstance(dt, datetime):
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    return datetime.now(timezone.utc)


def appendable_flags(flags: Iterable[bytes]) -> Tuple[bytes, ...]:
    """Drop \\Recent, which only the server may set."""
    return tuple(f for f in flags if f.lower() != RECENT.lower())


def _has_flag(flags: Iterable[bytes], wanted: Iterable[bytes]) -> bool:
    lowered = {w.lower() for w in wanted}
    return any(f.lower() in lowered for f in flags)


def _connect_imap(server: ServerConfig) -> IMAPClient:
    ssl_context = None
    if server.ssl or server.starttls:
        ssl_context = ssl.create_default_context()
        if not server.ssl_verify:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

    if server.ssl:
        client = IMAPClient(server.host, port=server.port, ssl=True, ssl_context=ssl_context)
    else:
        client = IMAPClient(server.host, port=server.port, ssl=False)

    if server.starttls and not server.ssl:
        client.starttls(ssl_context=ssl_context)
    return client


class MailSession:
    """An authenticated connection to one mail account."""

    def __init__(self, client: IMAPClient, name: str = ""):
        self.client = client
        self.name = name or "imap"

    @classmethod
    def connect(cls, server: ServerConfig, name: str = "") -> "MailSession":
        log.info(f"Connecting to {server.host}:{server.port} as {server.username}")
        try:
            client = _connect_imap(server)
        except (OSError, IMAPClientError) as e:
            raise ConnectError(f"cannot connect to {server.server}: {e}") from e

        try:
            client.login(server.username, server.password)
        except LoginError as e:
            _quietly_shutdown(client)
            raise AuthError(f"login to {server.server} as {server.username} failed: {e}") from e
        except (OSError, IMAPClientError) as e:
            _quietly_shutdown(client)
            raise ConnectError(f"cannot log in to {server.server}: {e}") from e
        return cls(client, name or server.host)

    def __enter__(self) -> "MailSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def list_mailboxes(self, selectable_only: bool = False) -> Iterator[str]:
        try:
            folders = self.client.list_folders()
        except (OSError, IMAPClientError) as e:
            raise ListMailboxesError(f"cannot list mailboxes on {self.name}: {e}") from e
        for flags, _delimiter, name in folders:
            if selectable_only and _has_flag(flags, UNSELECTABLE):
                log.debug(f"[{self.name}] skipping unselectable mailbox {name}")
                continue
            yield name

    def select_mailbox(self, name: str, readonly: bool = False) -> int:
        """Select ``name`` and return its message count."""
        try:
            info = self.client.select_folder(name, readonly=readonly)
        except IMAPClientError as e:
            raise NoSuchMailboxError(f"cannot select {name}: {e}") from e
        except OSError as e:
            raise ConnectError(f"connection to {self.name} lost selecting {name}: {e}") from e
        return int(info.get(b"EXISTS", 0))

    def create_mailbox(self, name: str) -> None:
        try:
            self.client.create_folder(name)
        except IMAPClientError as e:
            if self._already_exists(name, e):
                raise MailboxExistsError(name) from e
            raise CreateMailboxError(f"cannot create {name}: {e}") from e

    def _already_exists(self, name: str, error: Exception) -> bool:
        if "[ALREADYEXISTS]" in str(error).upper():
            return True
        # Servers without RFC 5530 response codes: ask whether it is there now.
        try:
            return bool(self.client.folder_exists(name))
        except IMAPClientError:
            return False

    @contextmanager
    def _sequence_numbers(self):
        self.client.use_uid = False
        try:
            yield
        finally:
            self.client.use_uid = True

    def fetch(self, first: int, last: int) -> Iterator[Message]:
        """Fetch sequence numbers ``first`` to ``last`` inclusive."""
        try:
            with self._sequence_numbers():
                resp = self.client.fetch(f"{first}:{last}", FETCH_ITEMS)
        except (OSError, IMAPClientError) as e:
            raise FetchError(f"fetch {first}:{last} failed: {e}") from e

        for seq, data in resp.items():
            uid = data.get(b"UID")
            if uid is None:
                raise FetchError(f"server returned no UID for message {seq}")
            yield Message(
                uid=int(uid),
                flags=tuple(data.get(b"FLAGS", ())),
                internal_date=data.get(b"INTERNALDATE"),
                body=data.get(b"BODY[]", b""),
                size=int(data.get(b"RFC822.SIZE", 0)),
                envelope=data.get(b"ENVELOPE"),
            )

    def append(self, mailbox: str, flags: Iterable[bytes], internal_date, body: bytes) -> None:
        try:
            self.client.append(
                mailbox,
                body,
                flags=appendable_flags(flags),
                msg_time=normalize_internaldate(internal_date),
            )
        except (OSError, IMAPClientError) as e:
            raise AppendError(f"append to {mailbox} failed: {e}") from e

    def mark_deleted(self, uids: List[int]) -> None:
        try:
            self.client.add_flags(uids, [DELETED], silent=True)
        except (OSError, IMAPClientError) as e:
            raise StoreError(f"cannot mark {len(uids)} messages deleted: {e}") from e

    def expunge(self) -> None:
        try:
            self.client.expunge()
        except (OSError, IMAPClientError) as e:
            raise ExpungeError(str(e)) from e

    def close(self) -> None:
        if self.client is None:
            return
        client, self.client = self.client, None
        try:
            client.logout()
        except (OSError, IMAPClientError) as e:
            log.warning(f"[{self.name}] logout failed: {e}")
            _quietly_shutdown(client)


def _quietly_shutdown(client: IMAPClient) -> None:
    try:
        client.shutdown()
    except (OSError, IMAPClientError) as e:
        log.debug(f"shutdown after failure: {e}")
