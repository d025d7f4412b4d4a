"""Helpers shared by the test modules."""

from io import BytesIO
from pathlib import Path

from pypdf import PdfReader


def page_widths(pdf_bytes: bytes) -> list[int]:
    """Page widths of a PDF; the tests use widths to tell documents apart."""
    reader = PdfReader(BytesIO(pdf_bytes))
    return [int(float(page.mediabox.width)) for page in reader.pages]


def leftover_workspaces(root: Path) -> list[Path]:
    if not root.exists():
        return []
    return sorted(root.iterdir())
