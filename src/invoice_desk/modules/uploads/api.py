from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from invoice_desk.core.config import settings
from invoice_desk.core.db import db_session
from invoice_desk.core.logging import get_logger, log_event
from invoice_desk.modules.uploads.schemas import UploadOut
from invoice_desk.modules.uploads.service import PDF_CONTENT_TYPE, save_upload

router = APIRouter(tags=["uploads"])
logger = get_logger(__name__)

_CHUNK_SIZE = 1024 * 1024


async def _read_limited(upload: UploadFile, *, max_bytes: int) -> bytes:
    chunks: list[bytes] = []
    size = 0
    while True:
        chunk = await upload.read(_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            log_event(
                logger,
                "upload.rejected",
                reason="too_large",
                filename=upload.filename,
                max_bytes=max_bytes,
            )
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the {max_bytes // (1024 * 1024)} MB upload limit",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/upload", response_model=UploadOut, response_model_exclude_none=True)
async def upload_pdf(
    pdf: UploadFile = File(...),
    session: Session = Depends(db_session),
) -> UploadOut:
    content_type = (pdf.content_type or "").split(";")[0].strip().lower()
    if content_type != PDF_CONTENT_TYPE:
        log_event(
            logger,
            "upload.rejected",
            reason="content_type",
            filename=pdf.filename,
            content_type=pdf.content_type,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are allowed"
        )

    body = await _read_limited(pdf, max_bytes=settings.max_upload_bytes)
    filename = pdf.filename or "upload.pdf"
    log_event(
        logger,
        "upload.received",
        filename=filename,
        content_type=content_type,
        byte_size=len(body),
    )
    upload = save_upload(session, filename=filename, content_type=content_type, body=body)
    return UploadOut(file_id=upload.file_id, file_name=upload.file_name, file_url=upload.url)
