"""Invoice Desk: PDF invoice upload, AI extraction and editing backend."""

__version__ = "0.1.0"
