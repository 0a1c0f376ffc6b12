from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from tablepdf.errors import ParseError
from tablepdf.types import TableGrid

logger = logging.getLogger(__name__)

HTML_PARSER = 'html.parser'


@dataclass(frozen=True)
class ParsedTable:
    grid: TableGrid
    # Serialized <table> element; stable input for the cache key.
    table_html: str


def _cell_text(cell: Tag) -> str:
    return ' '.join(cell.get_text(' ').split())


def _own_rows(table: Tag) -> list[Tag]:
    # Rows of nested tables belong to the nested table.
    return [row for row in table.find_all('tr') if row.find_parent('table') is table]


def _own_cells(row: Tag, names: tuple[str, ...]) -> list[Tag]:
    return [cell for cell in row.find_all(list(names)) if cell.find_parent('tr') is row]


def find_table(soup: BeautifulSoup) -> Tag | None:
    table = soup.find('table')
    return table if isinstance(table, Tag) else None


def parse_table_markup(html: str) -> ParsedTable:
    if not str(html or '').strip():
        raise ParseError('Table HTML is empty')

    soup = BeautifulSoup(html, HTML_PARSER)
    table = find_table(soup)
    if table is None:
        raise ParseError('No table element found')

    rows = _own_rows(table)
    if not rows:
        raise ParseError('No rows found in table')

    header_row = rows[0]
    header_cells = _own_cells(header_row, ('th',)) or _own_cells(header_row, ('td',))
    if not header_cells:
        raise ParseError('No header row found in table')
    headers = [_cell_text(cell) for cell in header_cells]

    data_rows: list[list[str]] = []
    for row in rows[1:]:
        if not _own_cells(row, ('td',)):
            continue
        data_rows.append([_cell_text(cell) for cell in _own_cells(row, ('th', 'td'))])

    logger.debug('Parsed table with %s columns and %s rows', len(headers), len(data_rows))
    return ParsedTable(grid=TableGrid(headers=headers, rows=data_rows), table_html=str(table))


def parse_table(html: str) -> TableGrid:
    return parse_table_markup(html).grid
