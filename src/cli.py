"""Command-line interface for the monthly invoice collection job."""

import argparse
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

from billfetch import (
    CallMeBotNotifier,
    Config,
    ConfigError,
    GmailSource,
    InMemoryStorage,
    InvoiceExtractionPipeline,
    InvoiceGroup,
    NotificationError,
    OAuth2RefreshTokenProvider,
    RuleStatus,
    S3Storage,
    TextExtractor,
    archive_invoices,
    format_summary,
    load_matcher_groups,
)

logger = logging.getLogger(__name__)

_MONTH_PATTERN = re.compile(r"(\d{4})-(\d{2})")


def parse_month(token: str, now: Optional[datetime] = None) -> datetime:
    """Parse the month argument.

    Args:
        token: "now" or a month in YYYY-MM format
        now: Current time, defaults to the system clock

    Returns:
        datetime: First day of the month at midnight UTC

    Raises:
        ValueError: If the token is neither "now" nor a valid YYYY-MM month
    """
    if token == "now":
        now = now or datetime.now(timezone.utc)
        return datetime(now.year, now.month, 1, tzinfo=timezone.utc)

    match = _MONTH_PATTERN.fullmatch(token)
    if not match:
        raise ValueError(f"Invalid month {token!r}, expected YYYY-MM or 'now'")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {token!r}, month must be 01-12")

    return datetime(year, month, 1, tzinfo=timezone.utc)


def _month_argument(token: str) -> datetime:
    try:
        return parse_month(token)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="billfetch",
        description="Collect the monthly invoices from Gmail, store them and send a summary.",
    )
    parser.add_argument(
        "month",
        type=_month_argument,
        help="Month to collect, in YYYY-MM format or 'now' for the current month",
    )
    parser.add_argument(
        "--config",
        help="Matcher configuration file (default: $MATCHERS_CONFIG_PATH or configuration.json)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not upload invoices or send the notification",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def print_invoice_groups(invoice_groups: list[InvoiceGroup]) -> None:
    """Print the located invoices of every group."""
    print("\n" + "=" * 80)
    print("INVOICES")
    print("=" * 80)

    for group in invoice_groups:
        print(f"\n{group.name} -> {group.storage_destination}")
        for outcome in group.outcomes:
            if outcome.status == RuleStatus.DONE:
                print(f"  {outcome.invoice}")
            elif outcome.status == RuleStatus.FAILED:
                print(f"  {outcome.bill_name}: FAILED ({outcome.error})")
            else:
                print(f"  {outcome.bill_name}: not found")


def run(config: Config, month: datetime, config_path: str, dry_run: bool = False) -> int:
    """Run the whole job and return the process exit code."""
    groups = load_matcher_groups(config_path)

    credentials = OAuth2RefreshTokenProvider(
        client_id=config.google_oauth2_client_id,
        client_secret=config.google_oauth2_client_secret,
        refresh_token=config.gmail_oauth2_refresh_token,
    )
    mailbox = GmailSource(
        email_address=config.gmail_email,
        credentials=credentials,
        mailbox=config.gmail_mailbox,
    )
    pipeline = InvoiceExtractionPipeline(
        mailbox=mailbox,
        text_extractor=TextExtractor(
            pdftotext_binary=config.pdftotext_binary,
            timeout=config.pdftotext_timeout,
        ),
        max_workers=config.max_workers,
    )

    try:
        invoice_groups = pipeline.run(groups, month)
    finally:
        mailbox.close()

    print_invoice_groups(invoice_groups)

    if dry_run:
        storage = InMemoryStorage()
    else:
        storage = S3Storage(
            endpoint_url=config.s3_endpoint,
            bucket_name=config.s3_bucket,
            access_key_id=config.aws_access_key_id,
            secret_access_key=config.aws_secret_access_key,
        )
    storage_failures = archive_invoices(storage, month, invoice_groups)

    notifier = CallMeBotNotifier(
        phone_number=config.callmebot_phone_number or "",
        api_key=config.callmebot_api_key or "",
        dry_run=dry_run,
    )
    notifier.send(format_summary(invoice_groups, storage_failures))

    rule_failures = sum(len(group.failed) for group in invoice_groups)
    if rule_failures or storage_failures:
        logger.warning(
            f"Finished with {rule_failures} failed rules and "
            f"{len(storage_failures)} storage failures"
        )
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    try:
        config = Config.from_env(dry_run=args.dry_run)
        return run(
            config,
            args.month,
            args.config or config.matchers_config_path,
            dry_run=args.dry_run,
        )
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except NotificationError as e:
        logger.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
