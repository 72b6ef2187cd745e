"""Text extraction, amount parsing and message classification."""

from .amount_parser import extract_amount_between, format_cents
from .classifier import classify
from .email_parser import EmailParser
from .text_extractor import SourceKind, TextExtractor

__all__ = [
    "extract_amount_between",
    "format_cents",
    "classify",
    "EmailParser",
    "SourceKind",
    "TextExtractor",
]
