from __future__ import annotations

import pytest

from invoice_desk.core.storage import LocalObjectStorage, StorageError


def test_local_storage_round_trip(tmp_path):
    storage = LocalObjectStorage(tmp_path / "blobs")
    stored = storage.put(key="uploads/abc.pdf", body=b"%PDF-1.4", content_type="application/pdf")

    assert stored.key == "uploads/abc.pdf"
    assert stored.byte_size == 8
    assert stored.url is None
    assert storage.get(key="uploads/abc.pdf") == b"%PDF-1.4"

    storage.delete(key="uploads/abc.pdf")
    with pytest.raises(StorageError):
        storage.get(key="uploads/abc.pdf")


def test_s3_public_url_prefers_configured_base(monkeypatch):
    from invoice_desk.core.config import settings
    from invoice_desk.core.storage import S3ObjectStorage

    monkeypatch.setattr(settings, "s3_region", "eu-west-1")
    monkeypatch.setattr(settings, "s3_bucket", "invoices")
    monkeypatch.setattr(settings, "s3_endpoint_url", None)
    monkeypatch.setattr(settings, "s3_access_key_id", "key")
    monkeypatch.setattr(settings, "s3_secret_access_key", "secret")

    monkeypatch.setattr(settings, "s3_public_base_url", None)
    storage = S3ObjectStorage()
    assert storage.public_url("uploads/a b.pdf") == (
        "https://invoices.s3.eu-west-1.amazonaws.com/uploads/a%20b.pdf"
    )

    monkeypatch.setattr(settings, "s3_public_base_url", "https://cdn.example.com/")
    assert storage.public_url("uploads/x.pdf") == "https://cdn.example.com/uploads/x.pdf"
