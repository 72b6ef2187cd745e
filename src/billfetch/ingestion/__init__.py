"""Mailbox ingestion module."""

from .base import MailboxSource
from .gmail import GmailSource

__all__ = ["MailboxSource", "GmailSource"]
