"""Exception hierarchy for the bill fetching job."""


class BillfetchError(Exception):
    """Base class for every error raised by billfetch."""


class ConfigError(BillfetchError):
    """Configuration or credentials are missing, unreadable or malformed."""


class MailboxError(BillfetchError):
    """Searching, fetching or decoding messages from the mailbox failed."""


class ExtractionError(BillfetchError):
    """Plain text could not be extracted from an HTML body or a PDF page."""


class AmountParseError(BillfetchError):
    """An amount could not be parsed out of extracted text."""


class AnchorNotFound(AmountParseError):
    """One of the anchor strings around the amount is missing."""


class InvalidAmountFormat(AmountParseError):
    """The text between the anchors is not a valid cents value."""


class StorageError(BillfetchError):
    """Remote storage rejected a folder lookup, creation or upload."""


class NotificationError(BillfetchError):
    """The summary notification could not be delivered."""
