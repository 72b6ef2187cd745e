"""Pydantic models for matcher configuration, mailbox messages and invoices."""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, AwareDatetime, BaseModel, ConfigDict, Field


# ============================================================================
# Matcher Configuration Models (loaded from the matcher JSON file)
# ============================================================================


class AmountSource(str, Enum):
    """Where the amount of an invoice can be found."""

    BODY = "body"
    ATTACHMENT = "attachment"


class MatcherRule(BaseModel):
    """One recurring invoice sender and how to locate its amount."""

    bill_name: str = Field(
        description="Friendly name for the invoice, e.g. electricity or water",
        validation_alias=AliasChoices("bill_name", "BillName"),
    )
    from_address: str = Field(
        description="Invoice sender email address",
        validation_alias=AliasChoices("from_address", "From"),
    )
    subject_contains: str = Field(
        description="Invoice emails have a subject containing this string",
        validation_alias=AliasChoices("subject_contains", "SubjectContains"),
    )
    amount_source: AmountSource = Field(
        description="Whether the amount is in the HTML body or the PDF attachment",
        validation_alias=AliasChoices("amount_source", "Location"),
    )
    text_before_amount: str = Field(
        description="Text that comes immediately before the amount",
        validation_alias=AliasChoices("text_before_amount", "StringBeforePrice"),
    )
    text_after_amount: str = Field(
        description="Text that comes immediately after the amount",
        validation_alias=AliasChoices("text_after_amount", "StringAfterPrice"),
    )
    pdf_page: int = Field(
        1,
        ge=1,
        description="1-indexed attachment page holding the amount",
        validation_alias=AliasChoices("pdf_page", "PdfPage"),
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class MatcherGroup(BaseModel):
    """Rules sharing one storage destination (e.g. one biller account)."""

    name: str = Field(validation_alias=AliasChoices("name", "Name"))
    storage_destination: str = Field(
        description="Parent folder the monthly invoice folder is created in",
        validation_alias=AliasChoices(
            "storage_destination", "StorageDestination", "DriveDestination"
        ),
    )
    rules: list[MatcherRule] = Field(
        default_factory=list,
        validation_alias=AliasChoices("rules", "Rules", "Sources"),
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ============================================================================
# Mailbox Models
# ============================================================================


class MessageRef(BaseModel):
    """Reference to a message returned by a mailbox search."""

    id: str


class MessagePart(BaseModel):
    """A single MIME part of a mailbox message."""

    mime_type: str
    filename: str = ""  # Empty for inline parts
    attachment_id: Optional[str] = None  # Content reference for attachments
    data: Optional[bytes] = None  # Decoded inline content
    charset: Optional[str] = None

    @property
    def is_attachment(self) -> bool:
        return bool(self.filename) and bool(self.attachment_id)

    @property
    def is_html_body(self) -> bool:
        return self.mime_type == "text/html"


class RawMessage(BaseModel):
    """A fetched mailbox message.

    Headers are kept as an ordered list of (name, value) pairs because header
    names are not unique. Parts keep their original order since role selection
    is first-match.
    """

    id: str
    internal_timestamp: AwareDatetime
    headers: list[tuple[str, str]] = Field(default_factory=list)
    parts: list[MessagePart] = Field(default_factory=list)


class Classification(BaseModel):
    """Result of matching a message against a matcher rule."""

    qualifies: bool
    subject: Optional[str] = None
    body_part: Optional[MessagePart] = None
    attachment_part: Optional[MessagePart] = None


# ============================================================================
# Invoice Models
# ============================================================================


class ExtractedInvoice(BaseModel):
    """A located invoice. The default instance is the empty-slot placeholder."""

    file_name: str = ""
    file_contents: bytes = b""
    value_cents: int = Field(0, ge=0, description="Amount in cents")

    def __str__(self) -> str:
        return f"{self.file_name}: {self.value_cents}"


class RuleStatus(str, Enum):
    """Terminal state of one matcher rule."""

    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


class RuleOutcome(BaseModel):
    """What happened to a single matcher rule during a run."""

    bill_name: str
    status: RuleStatus
    invoice: Optional[ExtractedInvoice] = None
    error: Optional[str] = None


class InvoiceGroup(BaseModel):
    """Invoices found for one matcher group.

    ``invoices`` has exactly one slot per rule. Slots of rules that did not
    finish hold a zero-valued placeholder; ``outcomes`` tells them apart from
    real zero-amount invoices.
    """

    name: str
    storage_destination: str
    invoices: list[ExtractedInvoice] = Field(default_factory=list)
    outcomes: list[RuleOutcome] = Field(default_factory=list)

    @property
    def total_cents(self) -> int:
        return sum(
            outcome.invoice.value_cents
            for outcome in self.outcomes
            if outcome.status == RuleStatus.DONE and outcome.invoice is not None
        )

    @property
    def failed(self) -> list[RuleOutcome]:
        return [o for o in self.outcomes if o.status == RuleStatus.FAILED]
