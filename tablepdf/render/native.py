from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase._fontdata import standardFonts
from reportlab.pdfgen import canvas

from tablepdf.errors import RenderError
from tablepdf.fonts.provider import BUILTIN_REGULAR, FontProvider, PdfFonts
from tablepdf.render.base import RenderBackend
from tablepdf.text.direction import grid_is_rtl, strip_direction_marks, to_visual
from tablepdf.types import RenderJob

logger = logging.getLogger(__name__)

LINE_SPACING = 1.35
HEADER_MAX_LINES = 3
FOOTER_FONT_SIZE = 8
FOOTER_OFFSET = 20
HEADER_ACCENT = '#a855f7'
FOOTER_COLOR = '#6b7280'


class FooterCanvas(canvas.Canvas):
    """Canvas that holds pages back until ``save`` so each footer knows the page total."""

    def __init__(self, *args, footer_font: str = BUILTIN_REGULAR, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict] = []
        self._footer_font = footer_font

    def showPage(self) -> None:
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        total = len(self._saved_page_states)
        for index, state in enumerate(self._saved_page_states, start=1):
            self.__dict__.update(state)
            self._draw_footer(index, total)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def _draw_footer(self, page: int, total: int) -> None:
        width, _ = self._pagesize
        self.saveState()
        self.setFillColor(colors.HexColor(FOOTER_COLOR))
        self.setFont(self._footer_font, FOOTER_FONT_SIZE)
        self.drawCentredString(width / 2, FOOTER_OFFSET, f'{page} / {total}')
        self.restoreState()


def _known_font(font_name: str | None) -> bool:
    if not font_name:
        return False
    return font_name in standardFonts or font_name in pdfmetrics.getRegisteredFontNames()


@dataclass
class _Row:
    cells: list[list[str]]
    height: float


class _TablePainter:
    def __init__(self, job: RenderJob, fonts: PdfFonts) -> None:
        self.job = job
        self.styles = job.styles
        self.options = job.options
        self.fonts = fonts
        self.padding = job.options.cell_padding
        self.widths = job.column_widths
        self.table_width = sum(self.widths)
        self.page_width, self.page_height = job.options.page_size()
        self.top = self.page_height - job.options.margins.top
        self.bottom = job.options.margins.bottom

        # RTL tables run right to left: the first column is the rightmost.
        self.column_x: list[float] = []
        if grid_is_rtl(job.grid):
            self.table_left = self.page_width - job.options.margins.right - self.table_width
            cursor = self.table_left + self.table_width
            for width in self.widths:
                cursor -= width
                self.column_x.append(cursor)
        else:
            self.table_left = job.options.margins.left
            cursor = self.table_left
            for width in self.widths:
                self.column_x.append(cursor)
                cursor += width

    def wrap(self, text: str, font: str, size: float, width: float, max_lines: int) -> list[str]:
        logical = strip_direction_marks(text)
        inner = max(width - 2 * self.padding, size)
        lines = simpleSplit(logical, font, size, inner) or ['']
        if len(lines) > max_lines:
            lines = lines[:max_lines]
            lines[-1] = lines[-1].rstrip() + '...'
        return [to_visual(line) for line in lines]

    def layout(self, texts: tuple[str, ...], font: str, size: float, max_lines: int) -> _Row:
        cells = [self.wrap(text, font, size, width, max_lines) for text, width in zip(texts, self.widths)]
        line_count = max((len(lines) for lines in cells), default=1)
        return _Row(cells=cells, height=line_count * size * LINE_SPACING + 2 * self.padding)

    def paint(self, pdf: FooterCanvas) -> int:
        options = self.options
        header = self.layout(self.job.grid.headers, self.fonts.bold, options.header_font_size, HEADER_MAX_LINES)
        usable = self.top - self.bottom - header.height
        max_body_lines = max(1, int((usable - 2 * self.padding) // (options.font_size * LINE_SPACING)))

        pages = 1
        y = self.draw_header(pdf, header)
        rows_on_page = 0
        for index, texts in enumerate(self.job.grid.rows):
            row = self.layout(texts, self.fonts.regular, options.font_size, max_body_lines)
            if rows_on_page and y - row.height < self.bottom:
                pdf.showPage()
                pages += 1
                y = self.draw_header(pdf, header)
                rows_on_page = 0
            background = self.styles.odd_row_background if index % 2 == 0 else self.styles.even_row_background
            self.draw_band(pdf, row, y, background)
            pdf.setFillColor(colors.HexColor(self.styles.text_color))
            self.draw_text(pdf, row, y, self.fonts.regular, options.font_size)
            y -= row.height
            rows_on_page += 1
        pdf.showPage()
        return pages

    def draw_header(self, pdf: FooterCanvas, header: _Row) -> float:
        self.draw_band(pdf, header, self.top, self.styles.header_background)
        pdf.setFillColor(colors.HexColor(self.styles.header_text))
        self.draw_text(pdf, header, self.top, self.fonts.bold, self.options.header_font_size)
        bottom = self.top - header.height
        pdf.saveState()
        pdf.setStrokeColor(colors.HexColor(HEADER_ACCENT))
        pdf.setLineWidth(2)
        pdf.line(self.table_left, bottom, self.table_left + self.table_width, bottom)
        pdf.restoreState()
        return bottom

    def draw_band(self, pdf: FooterCanvas, row: _Row, top: float, background: str) -> None:
        bottom = top - row.height
        right = self.table_left + self.table_width
        pdf.saveState()
        pdf.setFillColor(colors.HexColor(background))
        pdf.rect(self.table_left, bottom, self.table_width, row.height, stroke=0, fill=1)
        pdf.setStrokeColor(colors.HexColor(self.styles.border_color))
        pdf.setLineWidth(0.5)
        pdf.line(self.table_left, bottom, right, bottom)
        pdf.line(self.table_left, top, right, top)
        for x, width in zip(self.column_x, self.widths):
            pdf.line(x, bottom, x, top)
            pdf.line(x + width, bottom, x + width, top)
        pdf.restoreState()

    def draw_text(self, pdf: FooterCanvas, row: _Row, top: float, font: str, size: float) -> None:
        leading = size * LINE_SPACING
        pdf.setFont(font, size)
        for lines, x, width in zip(row.cells, self.column_x, self.widths):
            block_top = top - (row.height - len(lines) * leading) / 2
            for line_index, line in enumerate(lines):
                baseline = block_top - line_index * leading - size
                pdf.drawCentredString(x + width / 2, baseline, line)


class NativeBackend(RenderBackend):
    """Draws the table directly on a ReportLab canvas at explicit coordinates."""

    name = 'native'

    def __init__(self, fonts: FontProvider, *, author: str = 'Table PDF Export') -> None:
        self.fonts = fonts
        self.author = author

    def _pick_fonts(self, job: RenderJob) -> PdfFonts:
        fonts = self.fonts.register_pdf_fonts()
        preferred = job.options.font_family
        # An explicit family wins when ReportLab already knows it (e.g. Times-Roman).
        if preferred != self.fonts.family and _known_font(preferred):
            return PdfFonts(regular=preferred, bold=preferred, source=fonts.source)
        return fonts

    def render(self, job: RenderJob) -> bytes:
        try:
            fonts = self._pick_fonts(job)
            buffer = BytesIO()
            pdf = FooterCanvas(buffer, pagesize=job.options.page_size(), footer_font=fonts.regular)
            pdf.setTitle(job.filename)
            pdf.setAuthor(self.author)
            pdf.setCreator(self.author)
            pdf.setSubject('Table export')
            pages = _TablePainter(job, fonts).paint(pdf)
            pdf.save()
        except Exception as exc:
            raise RenderError(f'{type(exc).__name__}: {exc}', backend=self.name) from exc
        logger.debug('Native backend drew %s rows on %s pages for %s', len(job.grid.rows), pages, job.filename)
        return buffer.getvalue()
