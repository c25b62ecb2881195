"""
Mailbox Copy Module

Copies every mailbox of one IMAP account into another, in small batches,
deleting each batch from the source once it has been appended to the
destination.
"""

__version__ = "1.0.0"
