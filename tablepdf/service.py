from __future__ import annotations

import atexit
import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any
from urllib.parse import quote

from tablepdf.config import Settings, get_settings
from tablepdf.errors import CacheKeyError
from tablepdf.fonts.provider import FontProvider
from tablepdf.layout.column_widths import estimate_column_widths
from tablepdf.orchestrator import BackendAttempt, FallbackOrchestrator, FallbackState
from tablepdf.parsing.style_extractor import extract_style_hints
from tablepdf.parsing.table_parser import parse_table_markup
from tablepdf.render.base import RenderBackend
from tablepdf.render.browser import BrowserBackend
from tablepdf.render.external import ExternalProcessBackend
from tablepdf.render.native import NativeBackend
from tablepdf.text.direction import correct_grid
from tablepdf.types import RenderJob, RenderOptions, StyleHints

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = 'table-export'
_UNSAFE_FILENAME_RE = re.compile(r'[^\w\-.]', re.ASCII)


def _strip_pdf_suffix(filename: str) -> str:
    return filename[:-4] if filename.lower().endswith('.pdf') else filename


def sanitize_filename(filename: Any, default: str = DEFAULT_FILENAME) -> str:
    token = _strip_pdf_suffix(str(filename or '').strip())
    token = _UNSAFE_FILENAME_RE.sub('_', token).strip('.')
    return token or default


def content_disposition(filename: Any, default: str = DEFAULT_FILENAME) -> str:
    original = _strip_pdf_suffix(str(filename or '').strip()) or default
    encoded = quote(original, safe='')
    return f"attachment; filename=\"{sanitize_filename(original, default)}.pdf\"; filename*=UTF-8''{encoded}.pdf"


def compute_cache_key(table_html: str, options: RenderOptions, styles: StyleHints | None = None) -> str:
    """Hash the table markup and options together with the resolved colors."""
    try:
        payload = json.dumps(
            {
                'table': table_html,
                'options': options.cache_payload(),
                'styles': styles.model_dump() if styles is not None else None,
            },
            sort_keys=True,
            ensure_ascii=False,
            separators=(',', ':'),
        )
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()
    except (TypeError, ValueError, UnicodeError) as exc:
        raise CacheKeyError(f'failed to compute cache key: {exc}') from exc


@dataclass
class ExportResult:
    pdf_bytes: bytes
    filename: str
    backend: str
    page_count: int
    attempts: list[BackendAttempt] = field(default_factory=list)

    @property
    def content_disposition(self) -> str:
        return content_disposition(self.filename)


def build_backends(settings: Settings, fonts: FontProvider) -> dict[FallbackState, RenderBackend | None]:
    return {
        FallbackState.try_native: NativeBackend(fonts) if settings.native_backend_enabled else None,
        FallbackState.try_browser: (
            BrowserBackend.from_settings(settings, fonts) if settings.browser_backend_enabled else None
        ),
        FallbackState.try_external: (
            ExternalProcessBackend.from_settings(settings, fonts) if settings.external_backend_enabled else None
        ),
    }


class TableExportService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        fonts: FontProvider | None = None,
        backends: dict[FallbackState, RenderBackend | None] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.fonts = fonts or FontProvider.from_settings(self.settings)
        self.backends = backends if backends is not None else build_backends(self.settings, self.fonts)
        self.orchestrator = FallbackOrchestrator(self.backends)

    def option_defaults(self) -> dict[str, Any]:
        return {
            'font_family': self.settings.font_family,
            'min_column_width': self.settings.min_column_width,
        }

    def prepare(self, table_html: str, filename: Any = None, options: Any = None) -> RenderJob:
        parsed = parse_table_markup(table_html)
        render_options = RenderOptions.from_partial(options, defaults=self.option_defaults())
        styles = extract_style_hints(table_html).with_overrides(render_options)
        grid = correct_grid(parsed.grid)
        widths = estimate_column_widths(
            grid,
            render_options.available_width(),
            min_width=render_options.min_column_width,
        )
        return RenderJob(
            grid=grid,
            styles=styles,
            options=render_options,
            filename=sanitize_filename(filename, self.settings.default_filename),
            column_widths=tuple(widths),
            table_html=parsed.table_html,
            cache_key=compute_cache_key(parsed.table_html, render_options, styles),
        )

    def export(self, table_html: str, filename: Any = None, options: Any = None) -> ExportResult:
        job = self.prepare(table_html, filename, options)
        logger.info(
            'Exporting %s: %s columns, %s rows',
            job.filename,
            job.grid.column_count,
            len(job.grid.rows),
        )
        outcome = self.orchestrator.run(job)
        return ExportResult(
            pdf_bytes=outcome.pdf_bytes,
            filename=job.filename,
            backend=outcome.backend,
            page_count=outcome.page_count,
            attempts=outcome.attempts,
        )

    def backend_status(self) -> dict[str, dict[str, Any]]:
        status: dict[str, dict[str, Any]] = {}
        for state, backend in self.backends.items():
            name = state.value.removeprefix('try_')
            status[name] = {
                'enabled': backend is not None,
                'available': bool(backend is not None and backend.is_available()),
            }
        return status

    def close(self) -> None:
        for backend in self.backends.values():
            closer = getattr(backend, 'close', None)
            if callable(closer):
                closer()


@lru_cache(maxsize=1)
def get_export_service() -> TableExportService:
    service = TableExportService(get_settings())
    atexit.register(service.close)
    return service


def export_table(table_html: str, filename: str = DEFAULT_FILENAME, options: Any = None) -> bytes:
    """Render ``table_html`` to PDF bytes, falling back across backends."""
    return get_export_service().export(table_html, filename, options).pdf_bytes
