from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter

from invoice_desk.core.config import settings
from invoice_desk.modules.extraction.api import router as extraction_router
from invoice_desk.modules.invoices.api import router as invoices_router
from invoice_desk.modules.uploads.api import router as uploads_router

router = APIRouter()

router.include_router(uploads_router, prefix="/api")
router.include_router(extraction_router, prefix="/api")
router.include_router(invoices_router, prefix="/api")

ENDPOINTS = [
    "POST /api/upload - Upload PDF files",
    "POST /api/extract - Extract data from PDF",
    "GET /api/extract/quota - Daily model quota usage",
    "GET /api/invoices - List all invoices",
    "POST /api/invoices - Create new invoice",
    "POST /api/invoices/totals - Recompute invoice totals",
    "GET /api/invoices/:id - Get invoice",
    "PUT /api/invoices/:id - Update invoice",
    "DELETE /api/invoices/:id - Delete invoice",
    "GET /api/health - Health check",
]


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@router.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "OK", "timestamp": _timestamp()}


@router.get("/")
def root() -> dict:
    return {
        "message": "Invoice Desk API is running",
        "baseUrl": settings.public_api_url.rstrip("/"),
        "endpoints": ENDPOINTS,
        "timestamp": _timestamp(),
    }
