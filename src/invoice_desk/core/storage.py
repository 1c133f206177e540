from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import boto3
from botocore.config import Config

from invoice_desk.core.config import settings
from invoice_desk.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int
    url: str | None = None


class ObjectStorage:
    backend: str = ""

    def put(
        self, *, key: str, body: bytes, content_type: str | None = None
    ) -> StoredObject:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def delete(self, *, key: str) -> None:  # pragma: no cover
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    backend = "local"

    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    def put(self, *, key: str, body: bytes, content_type: str | None = None) -> StoredObject:
        start = time.monotonic()
        path = self._root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except Exception:
            log_exception(
                logger,
                "storage.put.failure",
                backend=self.backend,
                storage_key=key,
                byte_size=len(body),
            )
            raise
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        path = self._root / key
        if not path.exists():
            log_event(logger, "storage.get.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Object not found: {key}")
        return path.read_bytes()

    def delete(self, *, key: str) -> None:
        path = self._root / key
        if path.exists():
            try:
                path.unlink()
            except OSError as e:
                log_exception(logger, "storage.delete.failure", backend=self.backend, storage_key=key)
                raise StorageError(f"Could not delete object: {key}") from e


class S3ObjectStorage(ObjectStorage):
    """S3-compatible blob store; every stored object gets a public URL."""

    backend = "s3"

    def __init__(self) -> None:
        region = settings.s3_region
        if not region or region.lower() == "auto":
            region = "us-east-1"

        session = boto3.session.Session(
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=region,
        )
        self._endpoint_url = settings.s3_endpoint_url or None
        config = Config(
            s3={"addressing_style": "virtual"},
            connect_timeout=30,
            read_timeout=60,
        )
        self._client = session.client("s3", endpoint_url=self._endpoint_url, config=config)
        self._bucket = settings.s3_bucket
        self._region = region

    def public_url(self, key: str) -> str:
        quoted = quote(key)
        if settings.s3_public_base_url:
            return f"{settings.s3_public_base_url.rstrip('/')}/{quoted}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{quoted}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{quoted}"

    def put(self, *, key: str, body: bytes, content_type: str | None = None) -> StoredObject:
        start = time.monotonic()
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=body, **extra)
        except Exception:
            log_exception(
                logger,
                "storage.put.failure",
                backend=self.backend,
                storage_key=key,
                byte_size=len(body),
            )
            raise
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body), url=self.public_url(key))

    def get(self, *, key: str) -> bytes:
        start = time.monotonic()
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            return resp["Body"].read()
        except Exception as e:  # noqa: BLE001
            log_exception(
                logger,
                "storage.get.failure",
                backend=self.backend,
                storage_key=key,
                duration_ms=monotonic_ms(start),
            )
            raise StorageError(f"Object not found: {key}") from e

    def delete(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except Exception as e:  # noqa: BLE001
            log_exception(logger, "storage.delete.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Could not delete object: {key}") from e


_storage: ObjectStorage | None = None


def get_storage() -> ObjectStorage:
    global _storage  # noqa: PLW0603
    if _storage is not None:
        return _storage

    if settings.storage_backend == "s3":
        _storage = S3ObjectStorage()
    else:
        root = settings.local_storage_path
        if not root.is_absolute():
            root = Path(os.getcwd()) / root
        _storage = LocalObjectStorage(root)
    return _storage
