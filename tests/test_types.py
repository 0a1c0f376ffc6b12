from __future__ import annotations

import pytest
from reportlab.lib.pagesizes import A4

from tablepdf.errors import OptionsError, ParseError
from tablepdf.types import (
    Orientation,
    PageFormat,
    RenderOptions,
    StyleHints,
    TableGrid,
    normalize_color,
    parse_length,
)


def test_grid_coerces_irregular_rows():
    grid = TableGrid(headers=['a', 'b'], rows=[['1'], ['1', '2', '3'], [None, 5]])
    assert grid.rows == (('1', ''), ('1', '2'), ('', '5'))
    assert grid.column_count == 2


def test_grid_is_immutable():
    grid = TableGrid(headers=['a'])
    with pytest.raises(Exception):
        grid.headers = ('b',)


def test_defaults_match_landscape_a4():
    options = RenderOptions.from_partial(None)
    assert options.page_format == PageFormat.a4
    assert options.orientation == Orientation.landscape
    assert options.page_size() == (A4[1], A4[0])
    assert (options.margins.top, options.margins.right, options.margins.bottom, options.margins.left) == (
        50.0,
        40.0,
        50.0,
        40.0,
    )
    assert options.available_width() == pytest.approx(A4[1] - 80)


def test_camel_case_keys_and_partial_margins_merge_over_defaults():
    options = RenderOptions.from_partial(
        {
            'format': 'letter',
            'landscape': False,
            'fontSize': 9,
            'margins': {'top': '1cm'},
            'headerColor': '#abc',
            'unknownKey': True,
        }
    )
    assert options.page_format == PageFormat.letter
    assert options.orientation == Orientation.portrait
    assert options.font_size == 9
    assert options.margins.top == pytest.approx(72 / 2.54)
    assert options.margins.left == 40.0
    assert options.header_color == '#aabbcc'


def test_options_accept_json_string():
    options = RenderOptions.from_partial('{"orientation": "PORTRAIT", "cellPadding": 4}')
    assert options.orientation == Orientation.portrait
    assert options.cell_padding == 4


@pytest.mark.parametrize(
    'raw',
    [
        '{not json',
        '[1, 2]',
        {'format': 'B9'},
        {'fontSize': -1},
        {'margins': {'top': 'wide'}},
        {'headerColor': 'nope'},
    ],
)
def test_invalid_options_raise_options_error(raw):
    with pytest.raises(OptionsError):
        RenderOptions.from_partial(raw)
    assert issubclass(OptionsError, ParseError)


def test_defaults_only_fill_fields_the_caller_left_out():
    options = RenderOptions.from_partial({'fontName': 'Times-Roman'}, defaults={'font_family': 'Vazirmatn', 'min_column_width': 30})
    assert options.font_family == 'Times-Roman'
    assert options.min_column_width == 30


def test_style_overrides_from_options():
    options = RenderOptions.from_partial({'textColor': 'black', 'evenRowColor': '#000'})
    hints = StyleHints().with_overrides(options)
    assert hints.text_color == '#000000'
    assert hints.even_row_background == '#000000'
    assert hints.header_background == StyleHints().header_background


@pytest.mark.parametrize(
    'value, expected',
    [('#ABCDEF', '#abcdef'), ('#fff', '#ffffff'), ('white', '#ffffff'), (' Red ', '#ff0000')],
)
def test_normalize_color(value, expected):
    assert normalize_color(value) == expected


@pytest.mark.parametrize('value', ['', '100', '#12', 'solid', '1px'])
def test_normalize_color_rejects_non_colors(value):
    with pytest.raises(ValueError):
        normalize_color(value)


@pytest.mark.parametrize(
    'value, expected',
    [(12, 12.0), ('12pt', 12.0), ('16px', 12.0), ('1in', 72.0), ('25.4mm', 72.0)],
)
def test_parse_length(value, expected):
    assert parse_length(value) == pytest.approx(expected)
