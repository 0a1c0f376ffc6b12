from __future__ import annotations

import importlib.util
import logging
import tempfile
from pathlib import Path
from typing import Any, Callable

from tablepdf.config import Settings, is_arm_host
from tablepdf.errors import RenderError, ResourceError
from tablepdf.fonts.provider import FontProvider
from tablepdf.render.base import RenderBackend
from tablepdf.render.browser_manager import BrowserResourceManager
from tablepdf.render.html_document import build_html_document
from tablepdf.types import Orientation, RenderJob, RenderOptions

logger = logging.getLogger(__name__)

BASE_LAUNCH_ARGS = (
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
)
ARM_LAUNCH_ARGS = (
    '--disable-gpu-sandbox',
    '--use-gl=egl',
    '--single-process',
    '--disable-breakpad',
    '--no-zygote',
    '--disable-accelerated-2d-canvas',
)
LANDSCAPE_VIEWPORT = {'width': 1200, 'height': 850}
PORTRAIT_VIEWPORT = {'width': 850, 'height': 1200}
DEVICE_SCALE_FACTOR = 2
FOOTER_TEMPLATE = (
    '<div style="width:100%;font-size:8px;color:#6b7280;text-align:center;">'
    '<span class="pageNumber"></span> / <span class="totalPages"></span></div>'
)
MM_PER_POINT = 25.4 / 72.0


def launch_args(*, arm: bool | None = None) -> list[str]:
    args = list(BASE_LAUNCH_ARGS)
    if is_arm_host() if arm is None else arm:
        args.extend(ARM_LAUNCH_ARGS)
    return args


class PlaywrightSession:
    """A launched Chromium plus the Playwright driver that owns it."""

    def __init__(self, playwright: Any, browser: Any) -> None:
        self.playwright = playwright
        self.browser = browser

    def on(self, event: str, callback: Callable[..., None]) -> None:
        self.browser.on(event, callback)

    def is_connected(self) -> bool:
        return bool(self.browser.is_connected())

    def new_page(self, **kwargs: Any) -> Any:
        return self.browser.new_page(**kwargs)

    def close(self) -> None:
        try:
            if self.browser.is_connected():
                self.browser.close()
        finally:
            self.playwright.stop()


def launch_chromium(*, executable_path: str | None = None, arm: bool | None = None) -> PlaywrightSession:
    try:
        from playwright.sync_api import sync_playwright
    except ImportError as exc:
        raise ResourceError('playwright is not installed', backend=BrowserBackend.name) from exc

    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.launch(
            headless=True,
            args=launch_args(arm=arm),
            executable_path=executable_path or None,
        )
    except Exception:
        playwright.stop()
        raise
    return PlaywrightSession(playwright, browser)


def _margin(options: RenderOptions) -> dict[str, str]:
    margins = options.margins
    return {
        'top': f'{margins.top * MM_PER_POINT:.2f}mm',
        'right': f'{margins.right * MM_PER_POINT:.2f}mm',
        'bottom': f'{margins.bottom * MM_PER_POINT:.2f}mm',
        'left': f'{margins.left * MM_PER_POINT:.2f}mm',
    }


class BrowserBackend(RenderBackend):
    name = 'browser'

    def __init__(
        self,
        manager: BrowserResourceManager,
        fonts: FontProvider,
        *,
        load_timeout_seconds: float = 20.0,
        temp_dir: Path | None = None,
    ) -> None:
        self.manager = manager
        self.fonts = fonts
        self.load_timeout_ms = int(load_timeout_seconds * 1000)
        self.temp_dir = temp_dir

    @classmethod
    def from_settings(cls, settings: Settings, fonts: FontProvider) -> BrowserBackend:
        executable_path = settings.browser_executable_path

        def launcher() -> PlaywrightSession:
            return launch_chromium(executable_path=executable_path)

        manager = BrowserResourceManager(
            launcher,
            cache_capacity=settings.resolved_browser_cache_size(),
            recycle_probability=settings.browser_recycle_probability,
            render_timeout_seconds=settings.browser_render_timeout_seconds,
        )
        return cls(
            manager,
            fonts,
            load_timeout_seconds=settings.browser_load_timeout_seconds,
            temp_dir=settings.temp_dir,
        )

    def is_available(self) -> bool:
        return importlib.util.find_spec('playwright') is not None

    def _print_pdf(self, handle: Any, html: str, options: RenderOptions, output_path: Path) -> None:
        landscape = options.orientation == Orientation.landscape
        page = handle.new_page(
            viewport=LANDSCAPE_VIEWPORT if landscape else PORTRAIT_VIEWPORT,
            device_scale_factor=DEVICE_SCALE_FACTOR,
        )
        page.set_default_timeout(self.load_timeout_ms)
        try:
            page.set_content(html, wait_until='domcontentloaded', timeout=self.load_timeout_ms)
            page.wait_for_function("() => document.readyState === 'complete'", timeout=self.load_timeout_ms)
            # Bounded equivalent of awaiting document.fonts.ready.
            page.wait_for_function("() => document.fonts.status === 'loaded'", timeout=self.load_timeout_ms)
            page.pdf(
                path=str(output_path),
                format=options.page_format.value,
                landscape=landscape,
                print_background=True,
                margin=_margin(options),
                display_header_footer=True,
                header_template='<span></span>',
                footer_template=FOOTER_TEMPLATE,
            )
        finally:
            page.close()

    def render(self, job: RenderJob) -> bytes:
        html = build_html_document(
            job,
            font_css=self.fonts.font_face_css(),
            font_stack=self.fonts.css_family_stack(job.options.font_family),
        )

        def render_fn(handle: Any, output_path: Path) -> None:
            self._print_pdf(handle, html, job.options, output_path)

        try:
            with tempfile.TemporaryDirectory(prefix='tablepdf-browser-', dir=self.temp_dir) as workdir:
                return self.manager.render(job.cache_key, Path(workdir) / 'table.pdf', render_fn)
        except RenderError:
            raise
        except OSError as exc:
            raise ResourceError(f'{type(exc).__name__}: {exc}', backend=self.name) from exc
        except Exception as exc:
            raise RenderError(f'{type(exc).__name__}: {exc}', backend=self.name) from exc

    def close(self) -> None:
        self.manager.close()
