"""Storage layer for located invoice files."""

from .archive import archive_invoices
from .base import InMemoryStorage, RemoteStorage
from .s3 import S3Storage

__all__ = ["archive_invoices", "InMemoryStorage", "RemoteStorage", "S3Storage"]
