"""Configuration management for the bill fetching job."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from .errors import ConfigError
from .models import MatcherGroup

logger = logging.getLogger(__name__)

MAILBOX_VARS = [
    "GMAIL_EMAIL",
    "GOOGLE_OAUTH2_CLIENT_ID",
    "GOOGLE_OAUTH2_CLIENT_SECRET",
    "GMAIL_OAUTH2_REFRESH_TOKEN",
]

# Not needed for dry runs, which neither upload nor notify
DELIVERY_VARS = [
    "S3_ENDPOINT",
    "S3_BUCKET",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "CALLMEBOT_PHONE_NUMBER",
    "CALLMEBOT_API_KEY",
]

_matcher_groups_adapter = TypeAdapter(list[MatcherGroup])


def _int_env(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _float_env(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # Gmail
    gmail_email: str
    google_oauth2_client_id: str
    google_oauth2_client_secret: str
    gmail_oauth2_refresh_token: str

    # S3/R2
    s3_endpoint: Optional[str] = None
    s3_bucket: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None

    # CallMeBot
    callmebot_phone_number: Optional[str] = None
    callmebot_api_key: Optional[str] = None

    # Job settings
    matchers_config_path: str = "configuration.json"
    gmail_mailbox: str = "[Gmail]/All Mail"
    pdftotext_binary: str = "pdftotext"
    pdftotext_timeout: float = 30.0
    max_workers: int = 1

    @classmethod
    def from_env(cls, dry_run: bool = False) -> "Config":
        """Load configuration from environment variables.

        Args:
            dry_run: Skip the storage and notification variables

        Returns:
            Config: Configuration object

        Raises:
            ConfigError: If required environment variables are missing or invalid
        """
        required_vars = list(MAILBOX_VARS)
        if not dry_run:
            required_vars += DELIVERY_VARS

        missing = [var for var in required_vars if not os.getenv(var)]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        max_workers = _int_env("MAX_WORKERS", "1")
        if max_workers < 1:
            raise ConfigError("MAX_WORKERS must be at least 1")

        return cls(
            gmail_email=os.getenv("GMAIL_EMAIL"),
            google_oauth2_client_id=os.getenv("GOOGLE_OAUTH2_CLIENT_ID"),
            google_oauth2_client_secret=os.getenv("GOOGLE_OAUTH2_CLIENT_SECRET"),
            gmail_oauth2_refresh_token=os.getenv("GMAIL_OAUTH2_REFRESH_TOKEN"),
            s3_endpoint=os.getenv("S3_ENDPOINT"),
            s3_bucket=os.getenv("S3_BUCKET"),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            callmebot_phone_number=os.getenv("CALLMEBOT_PHONE_NUMBER"),
            callmebot_api_key=os.getenv("CALLMEBOT_API_KEY"),
            matchers_config_path=os.getenv("MATCHERS_CONFIG_PATH", "configuration.json"),
            gmail_mailbox=os.getenv("GMAIL_MAILBOX", "[Gmail]/All Mail"),
            pdftotext_binary=os.getenv("PDFTOTEXT_BINARY", "pdftotext"),
            pdftotext_timeout=_float_env("PDFTOTEXT_TIMEOUT", "30"),
            max_workers=max_workers,
        )


def load_matcher_groups(path) -> list[MatcherGroup]:
    """Read matcher groups from a JSON file.

    The file is a list of groups. Both snake_case keys and the legacy keys
    (Name, DriveDestination, Sources, BillName, From, ...) are accepted.

    Args:
        path: Path to the JSON file

    Returns:
        list[MatcherGroup]: Groups in file order

    Raises:
        ConfigError: If the file cannot be read or does not match the schema
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e

    try:
        groups = _matcher_groups_adapter.validate_json(raw)
    except ValidationError as e:
        raise ConfigError(f"Unable to parse config file {path}: {e}") from e

    logger.info(
        f"Loaded {len(groups)} matcher groups with "
        f"{sum(len(g.rules) for g in groups)} rules from {path}"
    )
    return groups
