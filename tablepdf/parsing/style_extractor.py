from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, Tag

from tablepdf.parsing.table_parser import HTML_PARSER, find_table
from tablepdf.types import StyleHints, normalize_color

logger = logging.getLogger(__name__)

_RULE_RE = re.compile(r'([^{}]+)\{([^{}]*)\}')
_COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)


def parse_declarations(text: str) -> dict[str, str]:
    declarations: dict[str, str] = {}
    for item in str(text or '').split(';'):
        if ':' not in item:
            continue
        name, _, value = item.partition(':')
        name = name.strip().lower()
        value = value.replace('!important', '').strip()
        if name and value:
            declarations[name] = value
    return declarations


def _first_color(value: str | None) -> str | None:
    if not value:
        return None
    # Shorthands such as "1px solid #4a4a57" or "#222 url(x.png)"
    for token in re.split(r'\s+(?![^(]*\))', value.strip()):
        try:
            return normalize_color(token)
        except ValueError:
            continue
    return None


def _background(declarations: dict[str, str]) -> str | None:
    return _first_color(declarations.get('background-color')) or _first_color(declarations.get('background'))


def _border(declarations: dict[str, str]) -> str | None:
    return _first_color(declarations.get('border-color')) or _first_color(declarations.get('border'))


def _selector_role(selector: str) -> str | None:
    token = ' '.join(selector.strip().lower().split())
    if not token:
        return None
    last = token.split(' ')[-1]
    if 'nth-child(odd)' in last or 'nth-child(2n+1)' in last:
        return 'odd'
    if 'nth-child(even)' in last or 'nth-child(2n)' in last:
        return 'even'
    if last == 'th' or last.startswith('th.') or last.startswith('th:') or token.startswith('thead'):
        return 'header'
    if last == 'td' or last.startswith('td.') or last == 'tr':
        return 'cell'
    if last == 'table' or last.startswith('table.') or last.startswith('table#'):
        return 'table'
    return None


def _stylesheet_hints(soup: BeautifulSoup) -> dict[str, str]:
    hints: dict[str, str] = {}
    for style in soup.find_all('style'):
        css = _COMMENT_RE.sub('', style.get_text() or '')
        for selectors, body in _RULE_RE.findall(css):
            declarations = parse_declarations(body)
            for selector in selectors.split(','):
                _apply_role(hints, _selector_role(selector), declarations)
    return hints


def _apply_role(hints: dict[str, str], role: str | None, declarations: dict[str, str]) -> None:
    if role is None:
        return
    background = _background(declarations)
    color = _first_color(declarations.get('color'))
    border = _border(declarations)
    if role == 'header':
        _set(hints, 'header_background', background)
        _set(hints, 'header_text', color)
    elif role == 'odd':
        _set(hints, 'odd_row_background', background)
        _set(hints, 'text_color', color)
    elif role == 'even':
        _set(hints, 'even_row_background', background)
        _set(hints, 'text_color', color)
    elif role == 'cell':
        _set(hints, 'text_color', color)
    _set(hints, 'border_color', border)


def _set(hints: dict[str, str], key: str, value: str | None) -> None:
    if value:
        hints[key] = value


def _inline_hints(table: Tag) -> dict[str, str]:
    hints: dict[str, str] = {}
    table_declarations = parse_declarations(table.get('style', ''))
    _set(hints, 'border_color', _border(table_declarations) or _first_color(table.get('bordercolor')))

    header = table.find(['th'])
    if isinstance(header, Tag):
        declarations = parse_declarations(header.get('style', ''))
        _set(hints, 'header_background', _background(declarations) or _first_color(header.get('bgcolor')))
        _set(hints, 'header_text', _first_color(declarations.get('color')))
    return hints


def extract_style_hints(html: str) -> StyleHints:
    """Read colors from ``<style>`` rules and inline attributes; never raises."""
    try:
        soup = BeautifulSoup(str(html or ''), HTML_PARSER)
        hints = _stylesheet_hints(soup)
        table = find_table(soup)
        if table is not None:
            hints.update(_inline_hints(table))
        return StyleHints(**hints)
    except Exception as exc:
        logger.warning('Style extraction failed, using default colors: %s', exc)
        return StyleHints()
