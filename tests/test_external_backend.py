from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from tablepdf.errors import RenderError
from tablepdf.render.external import ExternalProcessBackend

from conftest import PERSIAN_TABLE


@pytest.fixture
def backend(builtin_fonts, monkeypatch):
    monkeypatch.setattr('tablepdf.render.external.shutil.which', lambda command: f'/usr/bin/{command}')
    return ExternalProcessBackend(builtin_fonts, command='wkhtmltopdf', timeout_seconds=5)


def _fake_run(payload: bytes | None, returncode: int = 0, seen: list | None = None):
    def run(command, **kwargs):
        html_path, pdf_path = Path(command[-2]), Path(command[-1])
        if seen is not None:
            seen.append((command, kwargs, html_path.read_text(encoding='utf-8')))
        if payload is not None:
            pdf_path.write_bytes(payload)
        return subprocess.CompletedProcess(command, returncode, stdout=b'', stderr=b'conversion warning')

    return run


def test_runs_converter_and_cleans_up(backend, make_job, monkeypatch, sample_pdf_bytes):
    seen: list = []
    monkeypatch.setattr('tablepdf.render.external.subprocess.run', _fake_run(sample_pdf_bytes, seen=seen))

    data = backend.render(make_job(PERSIAN_TABLE, 'report'))

    assert data == sample_pdf_bytes
    command, kwargs, html = seen[0]
    assert command[0] == '/usr/bin/wkhtmltopdf'
    assert command[command.index('--encoding') + 1] == 'utf-8'
    assert command[command.index('--orientation') + 1] == 'Landscape'
    assert command[command.index('--page-size') + 1] == 'A4'
    assert kwargs['timeout'] == 5
    assert 'dir="rtl"' in html
    # The scoped working directory is gone once render returns.
    assert not Path(command[-1]).parent.exists()


def test_nonzero_exit_with_output_is_accepted(backend, make_job, monkeypatch, sample_pdf_bytes):
    monkeypatch.setattr('tablepdf.render.external.subprocess.run', _fake_run(sample_pdf_bytes, returncode=1))
    assert backend.render(make_job()) == sample_pdf_bytes


def test_nonzero_exit_without_output_fails(backend, make_job, monkeypatch):
    monkeypatch.setattr('tablepdf.render.external.subprocess.run', _fake_run(None, returncode=2))
    with pytest.raises(RenderError) as excinfo:
        backend.render(make_job())
    assert excinfo.value.backend == 'external'
    assert 'exited with 2' in str(excinfo.value)


def test_timeout_becomes_render_error(backend, make_job, monkeypatch):
    def run(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs['timeout'])

    monkeypatch.setattr('tablepdf.render.external.subprocess.run', run)
    with pytest.raises(RenderError, match='timed out'):
        backend.render(make_job())


def test_missing_binary_fails_without_running(builtin_fonts, make_job, monkeypatch):
    monkeypatch.setattr('tablepdf.render.external.shutil.which', lambda command: None)
    backend = ExternalProcessBackend(builtin_fonts, command='wkhtmltopdf')
    assert backend.is_available() is False
    with pytest.raises(RenderError, match='not installed'):
        backend.render(make_job())
