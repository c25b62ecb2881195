"""Exceptions raised while migrating mailboxes."""

from typing import Optional


class MigrationError(Exception):
    """Base class for every failure the migration knows how to report."""


class ConfigError(MigrationError):
    pass


class ConnectError(MigrationError):
    pass


class AuthError(ConnectError):
    pass


class ListMailboxesError(MigrationError):
    pass


class NoSuchMailboxError(MigrationError):
    pass


class MailboxExistsError(MigrationError):
    pass


class CreateMailboxError(MigrationError):
    pass


class FetchError(MigrationError):
    pass


class AppendError(MigrationError):
    pass


class StoreError(MigrationError):
    pass


class ExpungeError(MigrationError):
    pass


class TransferError(MigrationError):
    """A mailbox could not be transferred completely."""

    def __init__(self, mailbox: str, message: str, cause: Optional[Exception] = None):
        super().__init__(f"{mailbox}: {message}")
        self.mailbox = mailbox
        self.cause = cause
