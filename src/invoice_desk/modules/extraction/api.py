from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from invoice_desk.core.config import settings
from invoice_desk.core.db import db_session
from invoice_desk.core.logging import get_logger, log_event
from invoice_desk.modules.extraction.errors import (
    ConfigurationError,
    ErrorKind,
    ExtractionError,
)
from invoice_desk.modules.extraction.pdf_text import PdfTextError, extract_pdf_text
from invoice_desk.modules.extraction.schemas import ExtractRequest
from invoice_desk.modules.extraction.service import ExtractionService, get_extraction_service
from invoice_desk.modules.quota.schemas import QuotaPlanInfo, QuotaStatusOut
from invoice_desk.modules.quota.service import get_quota_info, get_quota_usage
from invoice_desk.modules.uploads.service import load_upload_bytes

router = APIRouter(tags=["extraction"])
logger = get_logger(__name__)


async def _fetch_remote_pdf(url: str) -> bytes:
    try:
        async with httpx.AsyncClient(
            timeout=settings.gemini_timeout_seconds, follow_redirects=True
        ) as client:
            resp = await client.get(url)
    except httpx.HTTPError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to fetch PDF from URL: {e}",
        ) from e
    if resp.status_code >= 400:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to fetch PDF from URL: {resp.status_code} {resp.reason_phrase}",
        )
    return resp.content


async def _load_pdf(session: Session, payload: ExtractRequest) -> bytes:
    body = load_upload_bytes(session, file_id=payload.file_id)
    if body is not None:
        return body
    if payload.file_url:
        log_event(logger, "extraction.fetch_remote", file_id=payload.file_id)
        return await _fetch_remote_pdf(payload.file_url)
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="No file URL provided and local file not found. Please upload the file first.",
    )


@router.post("/extract")
async def extract_invoice(
    payload: ExtractRequest,
    session: Session = Depends(db_session),
    service: ExtractionService = Depends(get_extraction_service),
):
    body = await _load_pdf(session, payload)
    try:
        text = await run_in_threadpool(extract_pdf_text, body)
    except PdfTextError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        outcome = await service.extract(text, backend=payload.model)
    except ConfigurationError as e:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={
                "error": "Invalid API credentials",
                "message": e.message,
                "quotaInfo": get_quota_info(e).model_dump(by_alias=True, exclude_none=True),
            },
        )
    except ExtractionError as e:
        if e.kind == ErrorKind.VALIDATION_FAILED:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": "Extracted data failed validation",
                    "message": e.message,
                    "details": getattr(e, "violations", []),
                },
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Extraction failed", "message": e.message},
        )

    data = outcome.record.model_dump(mode="json", by_alias=True)
    if outcome.fallback:
        error = outcome.error or ExtractionError("Quota exceeded", kind=ErrorKind.QUOTA_EXCEEDED)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": "API quota exceeded",
                "message": (
                    "The AI extraction quota has been exceeded. "
                    "Fill in the invoice details manually or try again later."
                ),
                "quotaInfo": get_quota_info(error).model_dump(by_alias=True, exclude_none=True),
                "data": data,
            },
        )
    log_event(
        logger,
        "extraction.completed",
        file_id=payload.file_id,
        from_cache=outcome.from_cache,
        deduplicated=outcome.deduplicated,
    )
    return data


@router.get("/extract/quota", response_model=QuotaStatusOut)
def quota_status(session: Session = Depends(db_session)) -> QuotaStatusOut:
    return QuotaStatusOut(
        quota=get_quota_usage(session),
        info=QuotaPlanInfo(
            free_tier_limit=settings.quota_daily_limit,
            reset_period="daily (UTC midnight)",
            upgrade_url=settings.quota_upgrade_url,
        ),
    )
