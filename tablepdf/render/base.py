from __future__ import annotations

from abc import ABC, abstractmethod
from io import BytesIO

from pypdf import PdfReader

from tablepdf.errors import RenderError
from tablepdf.types import RenderJob

PDF_MAGIC = b'%PDF'


class RenderBackend(ABC):
    name: str = 'backend'

    @abstractmethod
    def render(self, job: RenderJob) -> bytes:
        """Return complete PDF bytes or raise ``RenderError``."""

    def is_available(self) -> bool:
        return True


def validate_pdf_bytes(data: bytes, *, backend: str | None = None) -> int:
    """Return the page count of ``data``; raise ``RenderError`` when it is not a usable PDF."""
    if not isinstance(data, (bytes, bytearray)) or not data.startswith(PDF_MAGIC):
        raise RenderError('output is not a PDF document', backend=backend)
    try:
        page_count = len(PdfReader(BytesIO(bytes(data))).pages)
    except Exception as exc:
        raise RenderError(f'output PDF is unreadable: {exc}', backend=backend) from exc
    if page_count < 1:
        raise RenderError('output PDF has no pages', backend=backend)
    return page_count
