from __future__ import annotations

import hashlib
import uuid
from pathlib import PurePath

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from invoice_desk.core.logging import get_logger, log_event
from invoice_desk.core.storage import StorageError, get_storage
from invoice_desk.modules.uploads.models import UploadedFile

logger = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _storage_key(file_id: str, filename: str) -> str:
    ext = PurePath(filename).suffix.lower() or ".pdf"
    return f"uploads/{file_id}{ext}"


def save_upload(
    session: Session,
    *,
    filename: str,
    content_type: str | None,
    body: bytes,
) -> UploadedFile:
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No PDF file uploaded")

    file_id = uuid.uuid4().hex
    storage = get_storage()
    stored = storage.put(
        key=_storage_key(file_id, filename), body=body, content_type=content_type
    )
    upload = UploadedFile(
        file_id=file_id,
        file_name=filename,
        content_type=content_type,
        byte_size=stored.byte_size,
        sha256=_sha256_hex(body),
        storage_backend=storage.backend,
        storage_key=stored.key,
        url=stored.url,
    )
    session.add(upload)
    session.commit()
    session.refresh(upload)
    log_event(
        logger,
        "upload.stored",
        file_id=file_id,
        storage_backend=storage.backend,
        storage_key=stored.key,
        byte_size=stored.byte_size,
    )
    return upload


def get_uploaded_file(session: Session, *, file_id: str) -> UploadedFile | None:
    return session.scalar(select(UploadedFile).where(UploadedFile.file_id == file_id))


def load_upload_bytes(session: Session, *, file_id: str) -> bytes | None:
    """Bytes of a previous upload, or None when the identifier is unknown."""
    upload = get_uploaded_file(session, file_id=file_id)
    if upload is None:
        return None
    try:
        return get_storage().get(key=upload.storage_key)
    except StorageError:
        log_event(logger, "upload.missing_bytes", file_id=file_id, storage_key=upload.storage_key)
        return None


def delete_upload(session: Session, *, file_id: str) -> bool:
    """Drop the index row and the stored bytes of an upload.

    A blob that cannot be removed is logged and left behind; the index row is
    already gone so it is never served again.
    """
    upload = get_uploaded_file(session, file_id=file_id)
    if upload is None:
        return False
    storage_key = upload.storage_key
    session.delete(upload)
    session.commit()
    try:
        get_storage().delete(key=storage_key)
    except StorageError:
        log_event(logger, "upload.orphaned", file_id=file_id, storage_key=storage_key)
    else:
        log_event(logger, "upload.deleted", file_id=file_id, storage_key=storage_key)
    return True
