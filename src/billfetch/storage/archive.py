"""Save located invoices into monthly folders."""

import logging
from datetime import datetime

from ..errors import StorageError
from ..models import InvoiceGroup, RuleStatus
from .base import RemoteStorage

logger = logging.getLogger(__name__)


def month_folder_name(month: datetime) -> str:
    """Folder name for a month, e.g. "2024_3"."""
    return f"{month.year}_{month.month}"


def archive_invoices(
    storage: RemoteStorage,
    month: datetime,
    invoice_groups: list[InvoiceGroup],
) -> list[str]:
    """Upload every located invoice to <destination>/<year>_<month>/.

    Files that already exist are left untouched. A storage failure only
    affects the group or invoice it happened on.

    Args:
        storage: Remote storage backend
        month: Month the invoices belong to
        invoice_groups: Pipeline results

    Returns:
        list[str]: Human readable description of each failure
    """
    failures = []
    folder_name = month_folder_name(month)

    for group in invoice_groups:
        done = [
            outcome.invoice
            for outcome in group.outcomes
            if outcome.status == RuleStatus.DONE and outcome.invoice is not None
        ]
        if not done:
            continue

        try:
            folder_id = storage.ensure_folder(group.storage_destination, folder_name)
        except StorageError as e:
            logger.error(f"Unable to prepare folder for {group.name}: {e}")
            failures.append(f"{group.name}: {e}")
            continue

        for invoice in done:
            try:
                if storage.exists(folder_id, invoice.file_name):
                    logger.info(f"File already exists: {invoice.file_name}")
                    continue

                logger.info(f"Uploading file: {invoice.file_name}")
                storage.upload(
                    folder_id,
                    invoice.file_name,
                    invoice.file_contents,
                    content_type="application/pdf",
                )
            except StorageError as e:
                logger.error(f"Unable to upload {invoice.file_name}: {e}")
                failures.append(f"{group.name}/{invoice.file_name}: {e}")

    return failures
