"""Invoice summary formatting and delivery."""

import logging
from abc import ABC, abstractmethod
from typing import Iterable

import requests

from .errors import NotificationError
from .models import InvoiceGroup, RuleStatus
from .processing.amount_parser import format_cents

logger = logging.getLogger(__name__)

CALLMEBOT_SIGNAL_URL = "https://api.callmebot.com/signal/send.php"


def format_summary(
    invoice_groups: list[InvoiceGroup],
    storage_failures: Iterable[str] = (),
) -> str:
    """Render the run summary, one numbered block per group.

    Rules without an invoice are listed as "not found" or "failed" so they
    cannot be mistaken for a zero amount.
    """
    lines = []
    for idx, group in enumerate(invoice_groups):
        if idx > 0:
            lines.append("")

        lines.append(f"{idx + 1}. {group.name}")
        for outcome in group.outcomes:
            if outcome.status == RuleStatus.DONE and outcome.invoice is not None:
                invoice = outcome.invoice
                lines.append(f"+ {invoice.file_name} - {format_cents(invoice.value_cents)}")
            elif outcome.status == RuleStatus.FAILED:
                lines.append(f"+ {outcome.bill_name} - failed: {outcome.error}")
            else:
                lines.append(f"+ {outcome.bill_name} - not found")
        lines.append(f"Total: {format_cents(group.total_cents)}")

    storage_failures = list(storage_failures)
    if storage_failures:
        lines.append("")
        lines.append("Storage failures:")
        lines.extend(f"- {failure}" for failure in storage_failures)

    return "\n".join(lines) + "\n"


class Notifier(ABC):
    """Abstract interface for sending the summary."""

    @abstractmethod
    def send(self, text: str) -> None:
        """Deliver a text message.

        Raises:
            NotificationError: If delivery fails
        """
        pass


class CallMeBotNotifier(Notifier):
    """Sends Signal messages through the CallMeBot HTTP API."""

    def __init__(
        self,
        phone_number: str,
        api_key: str,
        dry_run: bool = False,
        url: str = CALLMEBOT_SIGNAL_URL,
        timeout: float = 30.0,
    ):
        """Initialize the notifier.

        Args:
            phone_number: Recipient phone number registered with CallMeBot
            api_key: CallMeBot API key
            dry_run: Log the message instead of sending it
            url: CallMeBot Signal endpoint
            timeout: HTTP timeout in seconds
        """
        self.phone_number = phone_number
        self.api_key = api_key
        self.dry_run = dry_run
        self.url = url
        self.timeout = timeout

    def send(self, text: str) -> None:
        logger.info(f"Sending notification:\n{text}")

        if self.dry_run:
            logger.info("Dry run, notification not sent")
            return

        params = {"phone": self.phone_number, "apikey": self.api_key, "text": text}
        try:
            response = requests.get(self.url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(f"Unable to send notification: {e}") from e

        if response.status_code != 200:
            raise NotificationError(
                f"Unable to send notification: {response.status_code} {response.reason}"
            )
