"""Monthly invoice collection - mailbox in, stored invoices and a summary out."""

# Models
from .models import (
    AmountSource,
    MatcherRule,
    MatcherGroup,
    MessageRef,
    MessagePart,
    RawMessage,
    Classification,
    ExtractedInvoice,
    RuleStatus,
    RuleOutcome,
    InvoiceGroup,
)

# Errors
from .errors import (
    BillfetchError,
    ConfigError,
    MailboxError,
    ExtractionError,
    AmountParseError,
    AnchorNotFound,
    InvalidAmountFormat,
    StorageError,
    NotificationError,
)

# Processing
from .processing import (
    EmailParser,
    SourceKind,
    TextExtractor,
    classify,
    extract_amount_between,
    format_cents,
)
from .pipeline import InvoiceExtractionPipeline, month_window

# Collaborators
from .auth import CredentialProvider, OAuth2RefreshTokenProvider, StaticTokenProvider
from .ingestion import MailboxSource, GmailSource
from .storage import RemoteStorage, InMemoryStorage, S3Storage, archive_invoices
from .notifications import Notifier, CallMeBotNotifier, format_summary

# Configuration
from .config import Config, load_matcher_groups

__version__ = "0.1.0"

__all__ = [
    # Models
    "AmountSource",
    "MatcherRule",
    "MatcherGroup",
    "MessageRef",
    "MessagePart",
    "RawMessage",
    "Classification",
    "ExtractedInvoice",
    "RuleStatus",
    "RuleOutcome",
    "InvoiceGroup",
    # Errors
    "BillfetchError",
    "ConfigError",
    "MailboxError",
    "ExtractionError",
    "AmountParseError",
    "AnchorNotFound",
    "InvalidAmountFormat",
    "StorageError",
    "NotificationError",
    # Components
    "EmailParser",
    "SourceKind",
    "TextExtractor",
    "classify",
    "extract_amount_between",
    "format_cents",
    "InvoiceExtractionPipeline",
    "month_window",
    "CredentialProvider",
    "OAuth2RefreshTokenProvider",
    "StaticTokenProvider",
    "MailboxSource",
    "GmailSource",
    "RemoteStorage",
    "InMemoryStorage",
    "S3Storage",
    "archive_invoices",
    "Notifier",
    "CallMeBotNotifier",
    "format_summary",
    "Config",
    "load_matcher_groups",
]
