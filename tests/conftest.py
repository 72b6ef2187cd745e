"""Shared fixtures: in-memory mailbox and message builders."""

import subprocess
from datetime import datetime, timezone
from typing import Optional

import pytest

from billfetch.errors import MailboxError
from billfetch.ingestion.base import MailboxSource
from billfetch.models import MatcherRule, MessagePart, MessageRef, RawMessage

OCTOBER = datetime(2026, 10, 1, tzinfo=timezone.utc)
MID_OCTOBER = datetime(2026, 10, 15, 9, 30, tzinfo=timezone.utc)


class FakeMailbox(MailboxSource):
    """Mailbox serving prepared messages per sender address."""

    def __init__(self):
        self.messages: dict[str, list[RawMessage]] = {}
        self.attachments: dict[tuple[str, str], bytes] = {}
        self.search_calls: list[tuple[str, datetime, datetime]] = []
        self.fetched: list[str] = []
        self.closed = False

    def add(self, from_address: str, message: RawMessage, attachments: Optional[dict] = None):
        self.messages.setdefault(from_address, []).append(message)
        for attachment_id, data in (attachments or {}).items():
            self.attachments[(message.id, attachment_id)] = data

    def search(self, from_address, after, before):
        self.search_calls.append((from_address, after, before))
        return [MessageRef(id=m.id) for m in self.messages.get(from_address, [])]

    def fetch(self, ref):
        self.fetched.append(ref.id)
        for messages in self.messages.values():
            for message in messages:
                if message.id == ref.id:
                    return message
        raise MailboxError(f"Unknown message {ref.id}")

    def fetch_attachment(self, message_id, attachment_id):
        try:
            return self.attachments[(message_id, attachment_id)]
        except KeyError as e:
            raise MailboxError(f"Unknown attachment {attachment_id}") from e

    def close(self):
        self.closed = True


def html_part(html: str, charset: str = "utf-8") -> MessagePart:
    return MessagePart(mime_type="text/html", data=html.encode(charset), charset=charset)


def pdf_part(filename: str = "invoice.pdf", attachment_id: str = "att-1") -> MessagePart:
    return MessagePart(
        mime_type="application/pdf",
        filename=filename,
        attachment_id=attachment_id,
    )


def make_message(
    message_id: str,
    subject: str,
    parts: list[MessagePart],
    timestamp: datetime = MID_OCTOBER,
    extra_headers: Optional[list[tuple[str, str]]] = None,
) -> RawMessage:
    headers = [("From", "billing@power.example"), ("Subject", subject)]
    headers.extend(extra_headers or [])
    return RawMessage(id=message_id, internal_timestamp=timestamp, headers=headers, parts=parts)


def make_rule(**overrides) -> MatcherRule:
    fields = {
        "bill_name": "Electric",
        "from_address": "billing@power.example",
        "subject_contains": "Your invoice",
        "amount_source": "attachment",
        "text_before_amount": "Total ",
        "text_after_amount": " EUR",
    }
    fields.update(overrides)
    return MatcherRule(**fields)


def completed(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    return subprocess.CompletedProcess(
        args=["pdftotext"], returncode=returncode, stdout=stdout, stderr=stderr
    )


@pytest.fixture
def mailbox():
    return FakeMailbox()
