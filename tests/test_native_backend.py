from __future__ import annotations

from io import BytesIO

import pytest
from pypdf import PdfReader

from tablepdf.errors import RenderError
from tablepdf.render.base import validate_pdf_bytes
from tablepdf.render.native import NativeBackend
from tablepdf.sample import SAMPLE_TABLE_HTML

from conftest import PERSIAN_TABLE


def _long_table(rows: int) -> str:
    body = ''.join(f'<tr><td>Row {index}</td><td>{index * 3}</td><td>Club {index % 7}</td></tr>' for index in range(rows))
    return f'<table><tr><th>Player</th><th>Goals</th><th>Club</th></tr>{body}</table>'


def test_native_backend_renders_persian_sample(make_job, builtin_fonts):
    job = make_job(SAMPLE_TABLE_HTML, 'sample')
    data = NativeBackend(builtin_fonts).render(job)
    assert data.startswith(b'%PDF')
    assert validate_pdf_bytes(data) == 1


def test_native_backend_sets_document_title(make_job, builtin_fonts):
    data = NativeBackend(builtin_fonts).render(make_job(PERSIAN_TABLE, 'my-table'))
    reader = PdfReader(BytesIO(data))
    assert reader.metadata.title == 'my-table'


def test_long_table_paginates_and_numbers_every_page(make_job, builtin_fonts):
    job = make_job(_long_table(120), 'long')
    reader = PdfReader(BytesIO(NativeBackend(builtin_fonts).render(job)))
    total = len(reader.pages)
    assert total > 1
    first_text = reader.pages[0].extract_text()
    last_text = reader.pages[-1].extract_text()
    assert f'1 / {total}' in first_text
    assert f'{total} / {total}' in last_text
    # Header row repeats on continuation pages.
    assert 'Player' in last_text


def test_header_only_table_still_produces_one_page(make_job, builtin_fonts):
    job = make_job('<table><tr><th>A</th><th>B</th></tr></table>')
    assert validate_pdf_bytes(NativeBackend(builtin_fonts).render(job)) == 1


def test_portrait_page_size_is_honoured(make_job, builtin_fonts):
    job = make_job(options={'orientation': 'portrait', 'format': 'A5'})
    page = PdfReader(BytesIO(NativeBackend(builtin_fonts).render(job))).pages[0]
    assert float(page.mediabox.width) < float(page.mediabox.height)


def test_drawing_failures_become_render_errors(make_job, builtin_fonts, monkeypatch):
    def broken(*args, **kwargs):
        raise OSError('disk full')

    monkeypatch.setattr('tablepdf.render.native.FooterCanvas.save', broken)
    with pytest.raises(RenderError) as excinfo:
        NativeBackend(builtin_fonts).render(make_job())
    assert excinfo.value.backend == 'native'
