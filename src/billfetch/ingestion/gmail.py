"""Gmail IMAP ingestion with OAuth2."""

import imaplib
import logging
import ssl
import threading
import time
from datetime import datetime, timezone
from typing import Optional

from ..auth import CredentialProvider
from ..errors import MailboxError
from ..models import MessageRef, RawMessage
from ..processing.email_parser import EmailParser
from .base import MailboxSource

logger = logging.getLogger(__name__)

GMAIL_IMAP_HOST = "imap.gmail.com"
ALL_MAIL = "[Gmail]/All Mail"


def build_search_query(from_address: str, after: datetime, before: datetime) -> str:
    """Build a Gmail search query for a sender and a date window."""
    return (
        f"after:{after.year}/{after.month}/{after.day} "
        f"before:{before.year}/{before.month}/{before.day} "
        f"from:{from_address}"
    )


class GmailSource(MailboxSource):
    """Gmail mailbox using IMAP with OAuth2 and Gmail search syntax."""

    def __init__(
        self,
        email_address: str,
        credentials: CredentialProvider,
        mailbox: str = ALL_MAIL,
        host: str = GMAIL_IMAP_HOST,
    ):
        """Initialize Gmail source.

        Args:
            email_address: Gmail email address
            credentials: Provider of OAuth2 access tokens
            mailbox: IMAP folder to search in
            host: IMAP server host name
        """
        self.email_address = email_address
        self.credentials = credentials
        self.mailbox = mailbox
        self.host = host
        self._imap: Optional[imaplib.IMAP4_SSL] = None
        # Attachments of the message each worker thread fetched last
        self._recent = threading.local()
        # One IMAP connection is shared by all rules
        self._lock = threading.RLock()

    def _connect(self):
        """Connect to Gmail IMAP and select the mailbox if not already connected."""
        if self._imap is not None:
            return

        access_token = self.credentials.get_access_token()
        auth_string = f"user={self.email_address}\x01auth=Bearer {access_token}\x01\x01"

        try:
            imap = imaplib.IMAP4_SSL(self.host, ssl_context=ssl.create_default_context())
            imap.authenticate("XOAUTH2", lambda x: auth_string)
            status, _ = imap.select(f'"{self.mailbox}"', readonly=True)
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailboxError(f"Unable to connect to {self.host}: {e}") from e

        if status != "OK":
            raise MailboxError(f"Failed to select mailbox {self.mailbox}: {status}")

        self._imap = imap
        logger.info(f"Connected to {self.host} as {self.email_address}")

    def search(
        self,
        from_address: str,
        after: datetime,
        before: datetime,
    ) -> list[MessageRef]:
        """Search messages with Gmail's X-GM-RAW extension.

        Args:
            from_address: Sender email address
            after: Window start
            before: Window end

        Returns:
            list[MessageRef]: Message UIDs in mailbox order
        """
        query = build_search_query(from_address, after, before)
        logger.debug(f"Searching messages: {query}")

        with self._lock:
            self._connect()
            try:
                status, data = self._imap.uid("SEARCH", None, "X-GM-RAW", f'"{query}"')
            except (imaplib.IMAP4.error, OSError) as e:
                self._imap = None
                raise MailboxError(f"Unable to retrieve messages: {e}") from e

        if status != "OK":
            raise MailboxError(f"Failed to search: {status}")

        if not data or not data[0]:
            return []

        return [MessageRef(id=uid.decode()) for uid in data[0].split()]

    def fetch(self, ref: MessageRef) -> RawMessage:
        """Fetch a message and its receive time.

        Args:
            ref: Message reference from search()

        Returns:
            RawMessage: Message headers and parts
        """
        with self._lock:
            self._connect()
            try:
                status, data = self._imap.uid("FETCH", ref.id, "(INTERNALDATE RFC822)")
            except (imaplib.IMAP4.error, OSError) as e:
                self._imap = None
                raise MailboxError(f"Unable to retrieve message {ref.id}: {e}") from e

        if status != "OK" or not data or not isinstance(data[0], tuple):
            raise MailboxError(f"Unable to retrieve message {ref.id}: {status}")

        envelope, rfc822_data = data[0]
        internal_date = imaplib.Internaldate2tuple(envelope)
        if internal_date is None:
            raise MailboxError(f"Message {ref.id} has no INTERNALDATE")

        internal_timestamp = datetime.fromtimestamp(time.mktime(internal_date), tz=timezone.utc)

        message, attachments = EmailParser.parse(rfc822_data, ref.id, internal_timestamp)
        self._recent.message_id = ref.id
        self._recent.attachments = attachments
        return message

    def fetch_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Return attachment contents, fetching the message if needed.

        Contents are kept only for the last message fetched on the calling
        thread and are released once an attachment has been read.
        """
        if getattr(self._recent, "message_id", None) != message_id:
            self.fetch(MessageRef(id=message_id))

        attachments = self._recent.attachments
        self._recent.message_id = None
        self._recent.attachments = {}

        try:
            return attachments[attachment_id]
        except KeyError as e:
            raise MailboxError(
                f"Attachment {attachment_id} not found in message {message_id}"
            ) from e

    def close(self):
        """Close IMAP connection."""
        with self._lock:
            if self._imap is not None:
                try:
                    self._imap.close()
                    self._imap.logout()
                except (imaplib.IMAP4.error, OSError) as e:
                    logger.warning(f"Error while closing IMAP connection: {e}")
                self._imap = None
            self._recent = threading.local()
