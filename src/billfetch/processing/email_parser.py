"""Email parsing utilities for RFC822 format emails."""

import email
import logging
from datetime import datetime
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import Message
from typing import Optional

from ..models import MessagePart, RawMessage

logger = logging.getLogger(__name__)


def decode_email_header(value: Optional[str]) -> str:
    """Decode an RFC 2047 encoded header value, keeping the raw value on failure."""
    if not value:
        return ""
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeDecodeError) as e:
        logger.debug(f"Keeping undecodable header as is: {e}")
        return str(value)


class EmailParser:
    """Parse RFC822 email messages into RawMessage objects."""

    @staticmethod
    def parse(
        email_bytes: bytes,
        message_id: str,
        internal_timestamp: datetime,
    ) -> tuple[RawMessage, dict[str, bytes]]:
        """Parse email bytes into headers, ordered parts and attachment contents.

        Args:
            email_bytes: Email in RFC822 format (bytes)
            message_id: Mailbox identifier of the message
            internal_timestamp: Time the mailbox received the message

        Returns:
            tuple: (RawMessage, attachment contents keyed by attachment_id)
        """
        msg = email.message_from_bytes(email_bytes)

        headers = [(name, decode_email_header(value)) for name, value in msg.items()]
        parts, attachments = EmailParser._extract_parts(msg)

        raw_message = RawMessage(
            id=message_id,
            internal_timestamp=internal_timestamp,
            headers=headers,
            parts=parts,
        )
        return raw_message, attachments

    @staticmethod
    def _extract_parts(msg: Message) -> tuple[list[MessagePart], dict[str, bytes]]:
        """Flatten the leaf MIME parts of a message in document order.

        Parts with a filename get an attachment_id and their decoded payload is
        returned separately. Other parts carry their decoded payload inline.

        Args:
            msg: Email message object

        Returns:
            tuple: (ordered parts, attachment contents keyed by attachment_id)
        """
        parts = []
        attachments = {}

        leaves = [part for part in msg.walk() if not part.is_multipart()]
        for index, part in enumerate(leaves):
            filename = decode_email_header(part.get_filename())
            payload = part.get_payload(decode=True)

            if filename:
                attachment_id = None
                if payload is not None:
                    attachment_id = str(index)
                    attachments[attachment_id] = payload
                parts.append(MessagePart(
                    mime_type=part.get_content_type(),
                    filename=filename,
                    attachment_id=attachment_id,
                    charset=part.get_content_charset(),
                ))
            else:
                parts.append(MessagePart(
                    mime_type=part.get_content_type(),
                    data=payload,
                    charset=part.get_content_charset(),
                ))

        return parts, attachments
