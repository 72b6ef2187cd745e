"""Tests for RFC822 parsing and the Gmail IMAP mailbox."""

import imaplib
from datetime import datetime, timezone
from email.message import EmailMessage
from unittest.mock import MagicMock, patch

import pytest

from billfetch.auth import StaticTokenProvider
from billfetch.errors import MailboxError
from billfetch.ingestion.gmail import GmailSource, build_search_query
from billfetch.models import MessageRef
from billfetch.processing.email_parser import EmailParser, decode_email_header

RECEIVED = datetime(2026, 10, 15, 9, 30, tzinfo=timezone.utc)
ENVELOPE = b'42 (UID 42 INTERNALDATE "15-Oct-2026 09:30:00 +0000" RFC822 {512}'


def invoice_email(subject: str = "Your invoice") -> bytes:
    msg = EmailMessage()
    msg["From"] = "billing@power.example"
    msg["To"] = "me@example.com"
    msg["Subject"] = subject
    msg["X-Tag"] = "first"
    msg["X-Tag"] = "second"
    msg.set_content("Total 1,00 EUR")
    msg.add_alternative("<p>Total 1,00 EUR</p>", subtype="html")
    msg.add_attachment(b"%PDF-1.4 invoice", maintype="application", subtype="pdf", filename="invoice.pdf")
    return msg.as_bytes()


class TestEmailParser:
    def test_headers_keep_order_and_duplicates(self):
        message, _ = EmailParser.parse(invoice_email(), "42", RECEIVED)

        names = [name for name, _ in message.headers]
        assert names.index("From") < names.index("Subject") < names.index("X-Tag")
        assert [v for n, v in message.headers if n == "X-Tag"] == ["first", "second"]
        assert message.id == "42"
        assert message.internal_timestamp == RECEIVED

    def test_encoded_subject_is_decoded(self):
        message, _ = EmailParser.parse(invoice_email("Factura nº 12"), "42", RECEIVED)
        assert ("Subject", "Factura nº 12") in message.headers

    def test_leaf_parts_in_order(self):
        message, attachments = EmailParser.parse(invoice_email(), "42", RECEIVED)

        assert [p.mime_type for p in message.parts] == ["text/plain", "text/html", "application/pdf"]

        html = message.parts[1]
        assert html.filename == ""
        assert html.attachment_id is None
        assert html.data.strip() == b"<p>Total 1,00 EUR</p>"
        assert html.charset == "utf-8"

        pdf = message.parts[2]
        assert pdf.is_attachment
        assert pdf.filename == "invoice.pdf"
        assert pdf.data is None
        assert attachments == {pdf.attachment_id: b"%PDF-1.4 invoice"}

    def test_single_part_message(self):
        raw = b"Subject: Hello\r\nContent-Type: text/html; charset=utf-8\r\n\r\n<p>Hi</p>\r\n"
        message, attachments = EmailParser.parse(raw, "7", RECEIVED)

        assert len(message.parts) == 1
        assert message.parts[0].is_html_body
        assert attachments == {}

    def test_decode_email_header_empty(self):
        assert decode_email_header(None) == ""
        assert decode_email_header("") == ""


def test_build_search_query():
    query = build_search_query(
        "billing@power.example",
        datetime(2026, 10, 1, tzinfo=timezone.utc),
        datetime(2026, 11, 1, tzinfo=timezone.utc),
    )
    assert query == "after:2026/10/1 before:2026/11/1 from:billing@power.example"


@pytest.fixture
def imap():
    with patch("billfetch.ingestion.gmail.imaplib.IMAP4_SSL") as factory:
        conn = MagicMock()
        conn.select.return_value = ("OK", [b"10"])
        factory.return_value = conn
        yield conn


@pytest.fixture
def gmail(imap):
    return GmailSource("me@example.com", StaticTokenProvider("token-123"))


class TestGmailSource:
    def test_authenticates_with_xoauth2(self, gmail, imap):
        imap.uid.return_value = ("OK", [b""])

        gmail.search("billing@power.example", RECEIVED, RECEIVED)

        mechanism, callback = imap.authenticate.call_args.args
        assert mechanism == "XOAUTH2"
        assert callback(b"") == "user=me@example.com\x01auth=Bearer token-123\x01\x01"
        imap.select.assert_called_once_with('"[Gmail]/All Mail"', readonly=True)

    def test_search(self, gmail, imap):
        imap.uid.return_value = ("OK", [b"3 7"])

        refs = gmail.search(
            "billing@power.example",
            datetime(2026, 10, 1, tzinfo=timezone.utc),
            datetime(2026, 11, 1, tzinfo=timezone.utc),
        )

        assert refs == [MessageRef(id="3"), MessageRef(id="7")]
        imap.uid.assert_called_once_with(
            "SEARCH",
            None,
            "X-GM-RAW",
            '"after:2026/10/1 before:2026/11/1 from:billing@power.example"',
        )

    def test_search_without_results(self, gmail, imap):
        imap.uid.return_value = ("OK", [b""])
        assert gmail.search("x@example.com", RECEIVED, RECEIVED) == []

    def test_search_failure(self, gmail, imap):
        imap.uid.side_effect = imaplib.IMAP4.error("SEARCH failed")
        with pytest.raises(MailboxError, match="SEARCH failed"):
            gmail.search("x@example.com", RECEIVED, RECEIVED)

    def test_connect_failure(self, gmail, imap):
        imap.authenticate.side_effect = imaplib.IMAP4.error("AUTHENTICATE failed")
        with pytest.raises(MailboxError, match="AUTHENTICATE failed"):
            gmail.search("x@example.com", RECEIVED, RECEIVED)

    def test_fetch_and_attachment(self, gmail, imap):
        imap.uid.return_value = ("OK", [(ENVELOPE, invoice_email()), b")"])

        message = gmail.fetch(MessageRef(id="42"))

        imap.uid.assert_called_once_with("FETCH", "42", "(INTERNALDATE RFC822)")
        assert message.internal_timestamp == RECEIVED
        pdf = message.parts[2]
        assert gmail.fetch_attachment("42", pdf.attachment_id) == b"%PDF-1.4 invoice"
        assert imap.uid.call_count == 1

    def test_fetch_attachment_fetches_unknown_message(self, gmail, imap):
        imap.uid.return_value = ("OK", [(ENVELOPE, invoice_email()), b")"])

        assert gmail.fetch_attachment("42", "2") == b"%PDF-1.4 invoice"
        with pytest.raises(MailboxError):
            gmail.fetch_attachment("42", "99")

    def test_fetch_missing_message(self, gmail, imap):
        imap.uid.return_value = ("OK", [None])
        with pytest.raises(MailboxError):
            gmail.fetch(MessageRef(id="404"))

    def test_close(self, gmail, imap):
        imap.uid.return_value = ("OK", [b""])
        gmail.search("x@example.com", RECEIVED, RECEIVED)

        gmail.close()

        imap.close.assert_called_once()
        imap.logout.assert_called_once()

    def test_attachments_kept_only_for_last_fetched_message(self, gmail, imap):
        imap.uid.return_value = ("OK", [(ENVELOPE, invoice_email()), b")"])

        gmail.fetch(MessageRef(id="42"))
        gmail.fetch(MessageRef(id="43"))

        assert gmail.fetch_attachment("42", "2") == b"%PDF-1.4 invoice"
        assert imap.uid.call_count == 3

    def test_attachments_released_after_read(self, gmail, imap):
        imap.uid.return_value = ("OK", [(ENVELOPE, invoice_email()), b")"])

        gmail.fetch(MessageRef(id="42"))
        gmail.fetch_attachment("42", "2")
        gmail.fetch_attachment("42", "2")

        assert imap.uid.call_count == 2

    def test_reconnects_after_connection_error(self, gmail, imap):
        imap.uid.side_effect = [OSError("connection reset"), ("OK", [b"5"])]

        with pytest.raises(MailboxError, match="connection reset"):
            gmail.search("x@example.com", RECEIVED, RECEIVED)
        assert gmail.search("x@example.com", RECEIVED, RECEIVED) == [MessageRef(id="5")]

        assert imaplib.IMAP4_SSL.call_count == 2
        assert imap.authenticate.call_count == 2
