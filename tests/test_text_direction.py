from __future__ import annotations

import logging

import pytest

from tablepdf.text.direction import (
    PDF_MARK,
    RLE,
    DirectionRule,
    build_rules,
    contains_rtl,
    correct_grid,
    correct_text,
    embedding_rule,
    grid_is_rtl,
    more_than_rule,
    parenthetical_rule,
    strip_direction_marks,
    to_visual,
    unit_order_rule,
)
from tablepdf.types import TableGrid

NO_WRAP = build_rules()[:-1]


def test_unit_word_moves_before_number():
    rule = unit_order_rule(['گل', 'سانتی‌متر'])
    assert rule.apply('187 سانتی‌متر') == 'سانتی‌متر 187'
    assert rule.apply('730 گل') == 'گل 730'


def test_unit_rule_ignores_longer_words_sharing_a_prefix():
    rule = unit_order_rule(['گل'])
    assert rule.apply('730 گل‌های باشگاهی') == '730 گل‌های باشگاهی'


def test_unit_rule_with_empty_vocabulary_is_identity():
    assert unit_order_rule([]).apply('5 گل') == '5 گل'


def test_more_than_rule():
    assert more_than_rule().apply('730 از بیش') == 'بیش از 730'


def test_parenthetical_moves_after_rtl_clause():
    rule = parenthetical_rule()
    assert rule.apply('(CR7) کریستیانو رونالدو') == 'کریستیانو رونالدو (CR7)'


def test_parenthetical_left_alone_for_latin_clause_or_trailing_group():
    rule = parenthetical_rule()
    assert rule.apply('(a) plain text') == '(a) plain text'
    assert rule.apply('5 فوریه 1985 (پرتغال)') == '5 فوریه 1985 (پرتغال)'


def test_embedding_wraps_only_rtl_strings():
    rule = embedding_rule()
    assert rule.apply('قد') == f'{RLE}قد{PDF_MARK}'
    assert rule.apply('Height') == 'Height'


def test_correct_text_runs_rules_in_order():
    assert correct_text('187 سانتی‌متر') == f'{RLE}سانتی‌متر 187{PDF_MARK}'
    assert correct_text('730 از بیش', NO_WRAP) == 'بیش از 730'


def test_correct_text_keeps_latin_and_numbers_unchanged():
    assert correct_text('Lionel Messi') == 'Lionel Messi'
    assert correct_text('187') == '187'
    assert correct_text('') == ''


@pytest.mark.parametrize('value', [None, 42, 3.5, object()])
def test_correct_text_is_total_for_non_string_input(value):
    assert isinstance(correct_text(value), str)


def test_failing_rule_is_skipped_and_logged(caplog):
    def explode(text: str) -> str:
        raise RuntimeError('boom')

    rules = (
        DirectionRule(name='upper', apply=str.upper),
        DirectionRule(name='explode', apply=explode),
        DirectionRule(name='suffix', apply=lambda text: text + '!'),
    )
    with caplog.at_level(logging.WARNING, logger='tablepdf.text.direction'):
        assert correct_text('abc', rules) == 'ABC!'
    assert any('explode' in record.getMessage() for record in caplog.records)


def test_correct_grid_applies_to_every_cell():
    grid = TableGrid(headers=['قد', 'Name'], rows=[['170 سانتی‌متر', 'Leo']])
    corrected = correct_grid(grid)
    assert corrected.headers == (f'{RLE}قد{PDF_MARK}', 'Name')
    assert corrected.rows == ((f'{RLE}سانتی‌متر 170{PDF_MARK}', 'Leo'),)


def test_rtl_helpers():
    assert contains_rtl('سلام')
    assert not contains_rtl('hello')
    assert grid_is_rtl(TableGrid(headers=['A', 'ب'], rows=[]))
    assert not grid_is_rtl(TableGrid(headers=['A'], rows=[['1']]))
    assert strip_direction_marks(f'{RLE}x{PDF_MARK}') == 'x'


def test_to_visual_leaves_latin_text_alone_and_reorders_rtl():
    assert to_visual(f'{RLE}abc{PDF_MARK}') == 'abc'
    visual = to_visual('سلام دنیا')
    assert visual != 'سلام دنیا'
    assert RLE not in visual
