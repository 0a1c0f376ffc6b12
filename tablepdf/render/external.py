from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from tablepdf.config import Settings
from tablepdf.errors import RenderError, ResourceError
from tablepdf.fonts.provider import FontProvider
from tablepdf.render.base import RenderBackend
from tablepdf.render.html_document import build_html_document
from tablepdf.types import RenderJob, RenderOptions

logger = logging.getLogger(__name__)

MM_PER_POINT = 25.4 / 72.0


class ExternalProcessBackend(RenderBackend):
    """Converts the HTML document with a wkhtmltopdf-compatible command line tool."""

    name = 'external'

    def __init__(
        self,
        fonts: FontProvider,
        *,
        command: str = 'wkhtmltopdf',
        timeout_seconds: float = 60.0,
        temp_dir: Path | None = None,
    ) -> None:
        self.fonts = fonts
        self.command = command
        self.timeout_seconds = timeout_seconds
        self.temp_dir = temp_dir

    @classmethod
    def from_settings(cls, settings: Settings, fonts: FontProvider) -> ExternalProcessBackend:
        return cls(
            fonts,
            command=settings.external_command,
            timeout_seconds=settings.external_timeout_seconds,
            temp_dir=settings.temp_dir,
        )

    def resolve_binary(self) -> str | None:
        return shutil.which(self.command)

    def is_available(self) -> bool:
        return self.resolve_binary() is not None

    def build_command(self, binary: str, html_path: Path, pdf_path: Path, options: RenderOptions) -> list[str]:
        margins = options.margins
        return [
            binary,
            '--quiet',
            '--encoding',
            'utf-8',
            '--enable-local-file-access',
            '--print-media-type',
            '--dpi',
            '300',
            '--page-size',
            options.page_format.value,
            '--orientation',
            options.orientation.value.capitalize(),
            '--margin-top',
            f'{margins.top * MM_PER_POINT:.2f}mm',
            '--margin-right',
            f'{margins.right * MM_PER_POINT:.2f}mm',
            '--margin-bottom',
            f'{margins.bottom * MM_PER_POINT:.2f}mm',
            '--margin-left',
            f'{margins.left * MM_PER_POINT:.2f}mm',
            '--title',
            pdf_path.stem,
            str(html_path),
            str(pdf_path),
        ]

    def render(self, job: RenderJob) -> bytes:
        binary = self.resolve_binary()
        if binary is None:
            raise RenderError(f'{self.command} is not installed', backend=self.name)

        html = build_html_document(
            job,
            font_css=self.fonts.font_face_css(),
            font_stack=self.fonts.css_family_stack(job.options.font_family),
        )
        try:
            with tempfile.TemporaryDirectory(prefix='tablepdf-external-', dir=self.temp_dir) as workdir:
                html_path = Path(workdir) / 'table.html'
                pdf_path = Path(workdir) / f'{job.filename}.pdf'
                html_path.write_text(html, encoding='utf-8')
                command = self.build_command(binary, html_path, pdf_path, job.options)
                logger.debug('Running %s', ' '.join(command))
                completed = subprocess.run(
                    command,
                    capture_output=True,
                    timeout=self.timeout_seconds,
                    check=False,
                )
                stderr = (completed.stderr or b'').decode('utf-8', errors='replace').strip()
                produced = pdf_path.is_file() and pdf_path.stat().st_size > 0
                if completed.returncode != 0 and not produced:
                    raise RenderError(
                        f'{self.command} exited with {completed.returncode}: {stderr[-500:]}',
                        backend=self.name,
                    )
                if completed.returncode != 0:
                    # wkhtmltopdf exits 1 on resource warnings while still writing the document
                    logger.warning('%s exited with %s but wrote output: %s', self.command, completed.returncode, stderr[-200:])
                if not produced:
                    raise ResourceError(f'{self.command} produced no output file', backend=self.name)
                return pdf_path.read_bytes()
        except subprocess.TimeoutExpired as exc:
            raise RenderError(f'{self.command} timed out after {self.timeout_seconds:g}s', backend=self.name) from exc
        except RenderError:
            raise
        except OSError as exc:
            raise ResourceError(f'{type(exc).__name__}: {exc}', backend=self.name) from exc
