"""Abstract base class for mailbox search and retrieval."""

from abc import ABC, abstractmethod
from datetime import datetime

from ..models import MessageRef, RawMessage


class MailboxSource(ABC):
    """Abstract interface for finding and fetching invoice emails."""

    @abstractmethod
    def search(
        self,
        from_address: str,
        after: datetime,
        before: datetime,
    ) -> list[MessageRef]:
        """Search messages from a sender received within a date window.

        Args:
            from_address: Sender email address
            after: Window start (inclusive)
            before: Window end (exclusive)

        Returns:
            list[MessageRef]: Matching messages in mailbox order

        Raises:
            MailboxError: If the search fails
        """
        pass

    @abstractmethod
    def fetch(self, ref: MessageRef) -> RawMessage:
        """Fetch a message's headers and parts.

        Raises:
            MailboxError: If the message cannot be fetched or decoded
        """
        pass

    @abstractmethod
    def fetch_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Fetch the decoded contents of an attachment.

        Raises:
            MailboxError: If the attachment cannot be fetched or decoded
        """
        pass

    @abstractmethod
    def close(self):
        """Close the connection."""
        pass
