"""Pragmatic bidi fixes for mixed Persian/Latin table cells.

The corrector is a short ordered list of rewrite rules followed by an
embedding wrapper. It is not a Unicode Bidirectional Algorithm: it only
repairs the digit/unit and parenthetical orderings that show up in exported
comparison tables. ``to_visual`` is the separate shaping step used by the
native backend, which draws glyphs at explicit coordinates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from arabic_reshaper import reshape
from bidi.algorithm import get_display

from tablepdf.types import TableGrid

logger = logging.getLogger(__name__)

RLE = '\u202b'
PDF_MARK = '\u202c'
DIRECTION_MARKS = ('\u202a', '\u202b', '\u202c', '\u202d', '\u202e', '\u200e', '\u200f')

_RTL_RE = re.compile('[\u0600-\u06ff]')
# Letters that may continue a Persian word, including ZWNJ.
_WORD_CONTINUATION = '\u0600-\u06ff\u200c'

# Sample vocabulary from exported sports comparison tables.
DEFAULT_UNIT_WORDS: tuple[str, ...] = (
    'قهرمانی',
    'گل',
    'پاس',
    'سانتی‌متر',
    'کیلوگرم',
    'سال',
    'بازی',
)


@dataclass(frozen=True)
class DirectionRule:
    name: str
    apply: Callable[[str], str]


def contains_rtl(text: Any) -> bool:
    return bool(_RTL_RE.search(str(text or '')))


def grid_is_rtl(grid: TableGrid) -> bool:
    samples = list(grid.headers)
    samples.extend(row[0] for row in grid.rows if row)
    return any(contains_rtl(item) for item in samples)


def strip_direction_marks(text: str) -> str:
    for mark in DIRECTION_MARKS:
        text = text.replace(mark, '')
    return text


def _regex_rule(name: str, pattern: str, replacement: str) -> DirectionRule:
    compiled = re.compile(pattern)
    return DirectionRule(name=name, apply=lambda text: compiled.sub(replacement, text))


def unit_order_rule(unit_words: Iterable[str]) -> DirectionRule:
    words = sorted({str(word).strip() for word in unit_words if str(word).strip()}, key=len, reverse=True)
    if not words:
        return DirectionRule(name='unit_order', apply=lambda text: text)
    alternatives = '|'.join(re.escape(word) for word in words)
    return _regex_rule(
        'unit_order',
        rf'(\d+)\s+({alternatives})(?![{_WORD_CONTINUATION}])',
        r'\2 \1',
    )


def more_than_rule() -> DirectionRule:
    return _regex_rule('more_than', r'(\d+)\s+از\s+بیش', r'بیش از \1')


def _move_parenthetical(text: str) -> str:
    match = re.match(r'^\s*\(([^()]+)\)\s*([^()<]+?)\s*$', text)
    if not match or not contains_rtl(match.group(2)):
        return text
    return f'{match.group(2)} ({match.group(1)})'


def parenthetical_rule() -> DirectionRule:
    return DirectionRule(name='parenthetical', apply=_move_parenthetical)


def _wrap_embedding(text: str) -> str:
    if not contains_rtl(text):
        return text
    return f'{RLE}{text}{PDF_MARK}'


def embedding_rule() -> DirectionRule:
    return DirectionRule(name='rtl_embedding', apply=_wrap_embedding)


def build_rules(unit_words: Iterable[str] = DEFAULT_UNIT_WORDS) -> tuple[DirectionRule, ...]:
    return (
        unit_order_rule(unit_words),
        more_than_rule(),
        parenthetical_rule(),
        embedding_rule(),
    )


DEFAULT_RULES = build_rules()


def correct_text(text: Any, rules: Sequence[DirectionRule] = DEFAULT_RULES) -> str:
    """Apply every rule in order. Never raises; a failing rule is skipped."""
    value = '' if text is None else str(text)
    for rule in rules:
        try:
            value = rule.apply(value)
        except Exception as exc:
            logger.warning('Direction rule %s failed, keeping text unchanged: %s', rule.name, exc)
    return value


def correct_grid(grid: TableGrid, rules: Sequence[DirectionRule] = DEFAULT_RULES) -> TableGrid:
    return grid.map_text(lambda text: correct_text(text, rules))


def to_visual(text: str) -> str:
    """Shape and reorder one line for engines without bidi support."""
    logical = strip_direction_marks(text)
    if not contains_rtl(logical):
        return logical
    try:
        return get_display(reshape(logical))
    except Exception as exc:
        logger.warning('Failed to shape RTL text, drawing logical order: %s', exc)
        return logical
