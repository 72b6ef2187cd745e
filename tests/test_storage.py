"""Tests for invoice archiving and the S3 storage backend."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from billfetch.errors import StorageError
from billfetch.models import ExtractedInvoice, InvoiceGroup, RuleOutcome, RuleStatus
from billfetch.storage import InMemoryStorage, S3Storage, archive_invoices
from billfetch.storage.archive import month_folder_name

MARCH = datetime(2026, 3, 1, tzinfo=timezone.utc)


def client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def make_group(name="Home", destination="bills/home", outcomes=()):
    outcomes = list(outcomes)
    return InvoiceGroup(
        name=name,
        storage_destination=destination,
        invoices=[o.invoice or ExtractedInvoice() for o in outcomes],
        outcomes=outcomes,
    )


def done(bill_name: str, contents: bytes = b"%PDF") -> RuleOutcome:
    invoice = ExtractedInvoice(file_name=f"{bill_name}.pdf", file_contents=contents, value_cents=100)
    return RuleOutcome(bill_name=bill_name, status=RuleStatus.DONE, invoice=invoice)


class TestArchiveInvoices:
    def test_month_folder_name_is_not_padded(self):
        assert month_folder_name(MARCH) == "2026_3"

    def test_uploads_done_invoices(self):
        storage = InMemoryStorage()
        groups = [make_group(outcomes=[
            done("Electric", b"%PDF electric"),
            RuleOutcome(bill_name="Water", status=RuleStatus.SKIPPED),
            RuleOutcome(bill_name="Gas", status=RuleStatus.FAILED, error="boom"),
        ])]

        failures = archive_invoices(storage, MARCH, groups)

        assert failures == []
        assert storage.folders == {"bills/home/2026_3"}
        assert storage.files == {"bills/home/2026_3/Electric.pdf": b"%PDF electric"}

    def test_group_without_invoices_creates_no_folder(self):
        storage = InMemoryStorage()
        groups = [make_group(outcomes=[RuleOutcome(bill_name="Water", status=RuleStatus.SKIPPED)])]

        archive_invoices(storage, MARCH, groups)

        assert storage.folders == set()

    def test_existing_file_is_not_overwritten(self):
        storage = InMemoryStorage()
        storage.files["bills/home/2026_3/Electric.pdf"] = b"original"

        archive_invoices(storage, MARCH, [make_group(outcomes=[done("Electric", b"new")])])

        assert storage.files["bills/home/2026_3/Electric.pdf"] == b"original"

    def test_upload_failure_is_isolated(self):
        storage = InMemoryStorage()
        real_upload = storage.upload

        def flaky_upload(folder_id, name, data, content_type="application/octet-stream"):
            if name == "Electric.pdf":
                raise StorageError("denied")
            return real_upload(folder_id, name, data, content_type)

        storage.upload = flaky_upload
        groups = [make_group(outcomes=[done("Electric"), done("Water")])]

        failures = archive_invoices(storage, MARCH, groups)

        assert failures == ["Home/Electric.pdf: denied"]
        assert list(storage.files) == ["bills/home/2026_3/Water.pdf"]

    def test_folder_failure_skips_group(self):
        storage = InMemoryStorage()
        storage.ensure_folder = MagicMock(side_effect=[StorageError("no access"), "other/2026_3"])
        groups = [
            make_group(name="Home", outcomes=[done("Electric")]),
            make_group(name="Office", destination="other", outcomes=[done("Internet")]),
        ]

        failures = archive_invoices(storage, MARCH, groups)

        assert failures == ["Home: no access"]
        assert list(storage.files) == ["other/2026_3/Internet.pdf"]


@pytest.fixture
def s3_client():
    with patch("billfetch.storage.s3.boto3.client") as factory:
        client = MagicMock()
        factory.return_value = client
        yield client


@pytest.fixture
def s3(s3_client):
    return S3Storage(
        endpoint_url="https://r2.example",
        bucket_name="invoices",
        access_key_id="id",
        secret_access_key="secret",
    )


class TestS3Storage:
    def test_ensure_folder_creates_marker(self, s3, s3_client):
        s3_client.head_object.side_effect = client_error("404")

        folder_id = s3.ensure_folder("bills/home/", "2026_3")

        assert folder_id == "bills/home/2026_3"
        s3_client.put_object.assert_called_once()
        assert s3_client.put_object.call_args.kwargs["Key"] == "bills/home/2026_3/"
        assert s3_client.put_object.call_args.kwargs["Bucket"] == "invoices"

    def test_ensure_folder_reuses_existing(self, s3, s3_client):
        s3_client.head_object.return_value = {}

        assert s3.ensure_folder("bills/home", "2026_3") == "bills/home/2026_3"
        s3_client.put_object.assert_not_called()

    def test_exists(self, s3, s3_client):
        s3_client.head_object.side_effect = [{}, client_error("NoSuchKey")]

        assert s3.exists("bills/home/2026_3", "Electric.pdf")
        assert not s3.exists("bills/home/2026_3", "Water.pdf")
        assert s3_client.head_object.call_args_list[0].kwargs["Key"] == "bills/home/2026_3/Electric.pdf"

    def test_exists_raises_on_other_errors(self, s3, s3_client):
        s3_client.head_object.side_effect = client_error("403")

        with pytest.raises(StorageError):
            s3.exists("bills/home/2026_3", "Electric.pdf")

    def test_upload(self, s3, s3_client):
        key = s3.upload("bills/home/2026_3", "Electric.pdf", b"%PDF", content_type="application/pdf")

        assert key == "bills/home/2026_3/Electric.pdf"
        s3_client.put_object.assert_called_once_with(
            Bucket="invoices",
            Key="bills/home/2026_3/Electric.pdf",
            Body=b"%PDF",
            ContentType="application/pdf",
        )

    def test_upload_failure(self, s3, s3_client):
        s3_client.put_object.side_effect = client_error("AccessDenied", "PutObject")

        with pytest.raises(StorageError, match="AccessDenied"):
            s3.upload("bills/home/2026_3", "Electric.pdf", b"%PDF")
