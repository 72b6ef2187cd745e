"""Core invoice extraction pipeline - matcher rules in, located invoices out."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional

from .errors import BillfetchError, ConfigError, ExtractionError, MailboxError
from .ingestion.base import MailboxSource
from .models import (
    AmountSource,
    Classification,
    ExtractedInvoice,
    InvoiceGroup,
    MatcherGroup,
    MatcherRule,
    RawMessage,
    RuleOutcome,
    RuleStatus,
)
from .processing.amount_parser import extract_amount_between
from .processing.classifier import classify
from .processing.text_extractor import SourceKind, TextExtractor

logger = logging.getLogger(__name__)


def month_window(month: datetime) -> tuple[datetime, datetime]:
    """Return [first day of month, first day of next month) in UTC."""
    if month.tzinfo is None:
        month = month.replace(tzinfo=timezone.utc)
    start = month.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class InvoiceExtractionPipeline:
    """Locates one invoice per matcher rule in a mailbox.

    For each rule: search candidates in the time window, take the first
    qualifying message, extract text from its body or attachment and parse
    the amount between the rule's anchor strings.
    """

    def __init__(
        self,
        mailbox: MailboxSource,
        text_extractor: Optional[TextExtractor] = None,
        max_workers: int = 1,
    ):
        """Initialize the pipeline.

        Args:
            mailbox: Mailbox search and retrieval backend
            text_extractor: HTML/PDF text extractor (default settings if omitted)
            max_workers: Number of rules processed concurrently
        """
        self.mailbox = mailbox
        self.text_extractor = text_extractor or TextExtractor()
        self.max_workers = max(1, max_workers)

    def run(self, groups: list[MatcherGroup], month: datetime) -> list[InvoiceGroup]:
        """Process every rule of every group for the given month.

        Each rule fills its own preallocated slot. A rule raising a
        BillfetchError is recorded as failed and does not stop the others.

        Args:
            groups: Matcher groups from the configuration
            month: Any moment inside the month to scan

        Returns:
            list[InvoiceGroup]: One group per matcher group, same order
        """
        window_start, window_end = month_window(month)
        logger.info(f"Scanning invoices from {window_start.date()} to {window_end.date()}")

        invoice_groups = [
            InvoiceGroup(
                name=group.name,
                storage_destination=group.storage_destination,
                invoices=[ExtractedInvoice() for _ in group.rules],
                outcomes=[
                    RuleOutcome(bill_name=rule.bill_name, status=RuleStatus.SKIPPED)
                    for rule in group.rules
                ],
            )
            for group in groups
        ]

        tasks = [
            (group_idx, rule_idx, rule)
            for group_idx, group in enumerate(groups)
            for rule_idx, rule in enumerate(group.rules)
        ]

        def fill_slot(group_idx: int, rule_idx: int, outcome: RuleOutcome):
            invoice_groups[group_idx].outcomes[rule_idx] = outcome
            if outcome.invoice is not None:
                invoice_groups[group_idx].invoices[rule_idx] = outcome.invoice

        if self.max_workers == 1:
            for group_idx, rule_idx, rule in tasks:
                fill_slot(group_idx, rule_idx, self.process_rule(rule, window_start, window_end))
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    (group_idx, rule_idx, executor.submit(self.process_rule, rule, window_start, window_end))
                    for group_idx, rule_idx, rule in tasks
                ]
                for group_idx, rule_idx, future in futures:
                    # result() re-raises anything process_rule did not handle
                    fill_slot(group_idx, rule_idx, future.result())

        return invoice_groups

    def process_rule(
        self,
        rule: MatcherRule,
        window_start: datetime,
        window_end: datetime,
    ) -> RuleOutcome:
        """Run a single rule, turning billfetch errors into a failed outcome.

        Configuration and credential errors affect every rule and are re-raised.
        """
        try:
            invoice = self.find_invoice(rule, window_start, window_end)
        except ConfigError:
            raise
        except BillfetchError as e:
            logger.error(f"Rule {rule.bill_name} failed: {e}")
            return RuleOutcome(bill_name=rule.bill_name, status=RuleStatus.FAILED, error=str(e))

        if invoice is None:
            logger.info(f"No invoice found for {rule.bill_name}")
            return RuleOutcome(bill_name=rule.bill_name, status=RuleStatus.SKIPPED)

        logger.info(f"Extracted price (cents) for {rule.bill_name}: {invoice.value_cents}")
        return RuleOutcome(bill_name=rule.bill_name, status=RuleStatus.DONE, invoice=invoice)

    def find_invoice(
        self,
        rule: MatcherRule,
        window_start: datetime,
        window_end: datetime,
    ) -> Optional[ExtractedInvoice]:
        """Locate the invoice for one rule.

        Args:
            rule: Matcher rule
            window_start: Window start (inclusive)
            window_end: Window end (exclusive)

        Returns:
            ExtractedInvoice: From the first qualifying message
            None: If no candidate qualifies

        Raises:
            MailboxError: If the mailbox fails or returns an out-of-window message
            ExtractionError: If text extraction fails
            AmountParseError: If the amount cannot be parsed
        """
        # Searching
        refs = self.mailbox.search(rule.from_address, window_start, window_end)
        if not refs:
            logger.info(f"No messages found from {rule.from_address}")
            return None

        # Inspecting
        for ref in refs:
            message = self.mailbox.fetch(ref)

            if not window_start <= message.internal_timestamp < window_end:
                raise MailboxError(
                    f"Email {message.id} is outside of time range "
                    f"({message.internal_timestamp.isoformat()})"
                )

            classification = classify(message, rule)
            if not classification.qualifies:
                continue

            # Extracting
            attachment_bytes = self.mailbox.fetch_attachment(
                message.id, classification.attachment_part.attachment_id
            )
            invoice_text = self._extract_text(rule, message, classification, attachment_bytes)

            # Parsing
            value_cents = extract_amount_between(
                invoice_text,
                rule.text_before_amount,
                rule.text_after_amount,
            )

            return ExtractedInvoice(
                file_name=f"{rule.bill_name}.pdf",
                file_contents=attachment_bytes,
                value_cents=value_cents,
            )

        return None

    def _extract_text(
        self,
        rule: MatcherRule,
        message: RawMessage,
        classification: Classification,
        attachment_bytes: bytes,
    ) -> str:
        """Extract plain text from the source named by the rule."""
        if rule.amount_source == AmountSource.BODY:
            body_part = classification.body_part
            if body_part is None or body_part.data is None:
                raise ExtractionError(f"Unable to find body part in message {message.id}")

            charset = body_part.charset or "utf-8"
            try:
                body = body_part.data.decode(charset, errors="ignore")
            except LookupError:
                body = body_part.data.decode("utf-8", errors="ignore")
            return self.text_extractor.extract_plain_text(SourceKind.HTML, body)

        return self.text_extractor.extract_plain_text(
            SourceKind.PDF_PAGE, attachment_bytes, page_number=rule.pdf_page
        )
