from __future__ import annotations

from html import escape

from tablepdf.text.direction import contains_rtl, grid_is_rtl
from tablepdf.types import RenderJob


def _direction(text: str, fallback: str) -> str:
    if contains_rtl(text):
        return 'rtl'
    return fallback


def _cell(tag: str, text: str, fallback: str) -> str:
    return f'<{tag} dir="{_direction(text, fallback)}">{escape(text)}</{tag}>'


def _stylesheet(job: RenderJob, *, font_css: str, font_stack: str, direction: str) -> str:
    styles = job.styles
    options = job.options
    align = 'right' if direction == 'rtl' else 'left'
    return f"""{font_css}
html, body {{
  margin: 0;
  padding: 0;
  background: #ffffff;
  font-family: {font_stack};
  -webkit-print-color-adjust: exact;
  print-color-adjust: exact;
}}
table {{
  width: 100%;
  border-collapse: collapse;
  table-layout: fixed;
  direction: {direction};
  font-size: {options.font_size:g}pt;
  color: {styles.text_color};
}}
thead {{ display: table-header-group; }}
tr {{ page-break-inside: avoid; }}
th, td {{
  padding: {options.cell_padding:g}pt;
  border: 0.5pt solid {styles.border_color};
  text-align: {align};
  vertical-align: middle;
  word-wrap: break-word;
  unicode-bidi: plaintext;
}}
th {{
  background-color: {styles.header_background};
  color: {styles.header_text};
  font-size: {options.header_font_size:g}pt;
  font-weight: 700;
  border-bottom: 2pt solid #a855f7;
}}
tbody tr:nth-child(odd) td {{ background-color: {styles.odd_row_background}; }}
tbody tr:nth-child(even) td {{ background-color: {styles.even_row_background}; }}
"""


def build_html_document(job: RenderJob, *, font_css: str = '', font_stack: str | None = None) -> str:
    """Render ``job.grid`` as one self-contained HTML page for browser-style engines."""
    direction = 'rtl' if grid_is_rtl(job.grid) else 'ltr'
    lang = 'fa' if direction == 'rtl' else 'en'
    stack = font_stack or f"'{job.options.font_family}', Tahoma, Arial, sans-serif"
    total = sum(job.column_widths) or 1.0

    columns = ''.join(f'<col style="width: {width / total * 100:.3f}%">' for width in job.column_widths)
    header = ''.join(_cell('th', text, direction) for text in job.grid.headers)
    body = '\n'.join(
        '<tr>' + ''.join(_cell('td', text, direction) for text in row) + '</tr>' for row in job.grid.rows
    )
    return f"""<!DOCTYPE html>
<html dir="{direction}" lang="{lang}">
<head>
<meta charset="utf-8">
<title>{escape(job.filename)}</title>
<style>
{_stylesheet(job, font_css=font_css, font_stack=stack, direction=direction)}
</style>
</head>
<body>
<table dir="{direction}" lang="{lang}">
<colgroup>{columns}</colgroup>
<thead><tr>{header}</tr></thead>
<tbody>
{body}
</tbody>
</table>
</body>
</html>
"""
