from __future__ import annotations

from io import BytesIO
from typing import Callable

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from tablepdf.config import Settings
from tablepdf.fonts.provider import FontProvider
from tablepdf.render.base import RenderBackend
from tablepdf.service import TableExportService
from tablepdf.types import RenderJob

PERSIAN_TABLE = (
    '<table><tr><th>دسته‌بندی</th><th>A</th></tr>'
    '<tr><td>قد</td><td>187</td></tr></table>'
)
LATIN_TABLE = (
    '<table><tr><th>Name</th><th>Goals</th><th>Club</th></tr>'
    '<tr><td>Alice</td><td>12</td><td>North</td></tr>'
    '<tr><td>Bob</td><td>7</td><td>South</td></tr></table>'
)


class StubBackend(RenderBackend):
    def __init__(self, name: str, *, result: bytes | None = None, error: Exception | None = None) -> None:
        self.name = name
        self.result = result
        self.error = error
        self.calls: list[RenderJob] = []

    def render(self, job: RenderJob) -> bytes:
        self.calls.append(job)
        if self.error is not None:
            raise self.error
        return self.result or b''


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.drawString(72, 720, 'stub backend output')
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        font_dir=tmp_path / 'fonts',
        font_cache_dir=tmp_path / 'font-cache',
        temp_dir=None,
    )


@pytest.fixture
def builtin_fonts(tmp_path) -> FontProvider:
    """A provider that finds no font files, so it always lands on Helvetica."""
    return FontProvider(
        family='Vazirmatn',
        font_dir=tmp_path / 'no-fonts',
        cache_dir=tmp_path / 'font-cache',
        extra_dirs=(),
        system_candidates=(),
    )


@pytest.fixture
def make_job(settings, builtin_fonts) -> Callable[..., RenderJob]:
    service = TableExportService(settings, fonts=builtin_fonts, backends={})

    def factory(html: str = LATIN_TABLE, filename: str = 'table-export', options=None) -> RenderJob:
        return service.prepare(html, filename, options)

    return factory
