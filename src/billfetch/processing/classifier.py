"""Decide whether a mailbox message is the invoice a matcher rule describes."""

import logging
from typing import Optional

from ..models import Classification, MatcherRule, MessagePart, RawMessage

logger = logging.getLogger(__name__)


def find_subject(message: RawMessage, subject_contains: str) -> Optional[str]:
    """Return the first Subject header value containing the given text."""
    for name, value in message.headers:
        if name != "Subject":
            continue
        if subject_contains not in value:
            continue
        return value
    return None


def select_parts(
    parts: list[MessagePart],
) -> tuple[Optional[MessagePart], Optional[MessagePart]]:
    """Pick the body and attachment parts in a single ordered scan.

    The first text/html part is the body. Until a body is found, text/html
    parts are never taken as the attachment. The first part with a filename
    and a content reference is the attachment.

    Returns:
        tuple: (body_part, attachment_part), either may be None
    """
    body_part = None
    attachment_part = None
    for part in parts:
        if body_part is None and part.is_html_body:
            body_part = part
        elif attachment_part is None and part.is_attachment:
            attachment_part = part
    return body_part, attachment_part


def classify(message: RawMessage, rule: MatcherRule) -> Classification:
    """Match a message against a rule.

    A message qualifies when a header named exactly "Subject" contains
    ``rule.subject_contains`` and the message carries an attachment. The
    attachment is required even when the amount is read from the body.

    Args:
        message: Fetched mailbox message
        rule: Matcher rule to check against

    Returns:
        Classification: Qualification result with the selected parts
    """
    subject = find_subject(message, rule.subject_contains)
    if subject is None:
        return Classification(qualifies=False)

    logger.info(f"{subject} | {message.internal_timestamp.isoformat()}")

    body_part, attachment_part = select_parts(message.parts)

    if attachment_part is None:
        logger.info(f"No attachment found in message {message.id}")
        return Classification(qualifies=False, subject=subject, body_part=body_part)

    logger.info(f"Attachment found: {attachment_part.filename}")
    return Classification(
        qualifies=True,
        subject=subject,
        body_part=body_part,
        attachment_part=attachment_part,
    )
