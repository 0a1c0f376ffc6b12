from __future__ import annotations

from tablepdf.parsing.style_extractor import extract_style_hints, parse_declarations
from tablepdf.types import StyleHints


def test_defaults_when_no_styles_present():
    assert extract_style_hints('<table><tr><th>A</th></tr></table>') == StyleHints()


def test_stylesheet_rules_override_defaults():
    html = """
    <style>
      /* dark theme */
      th { background-color: #112233; color: #FFEEDD; }
      tr:nth-child(odd) { background-color: #010203 !important; }
      tbody tr:nth-child(even) { background: #040506 url(bg.png); }
      td { color: red; }
    </style>
    <table><tr><th>A</th></tr><tr><td>1</td></tr></table>
    """
    hints = extract_style_hints(html)
    assert hints.header_background == '#112233'
    assert hints.header_text == '#ffeedd'
    assert hints.odd_row_background == '#010203'
    assert hints.even_row_background == '#040506'
    assert hints.text_color == '#ff0000'


def test_inline_table_border_and_header_style_win():
    html = (
        '<style>th { background-color: #000000; }</style>'
        '<table style="border: 1px solid #4A4A57; border-color: #abc">'
        '<tr><th style="background-color: #123456">A</th></tr></table>'
    )
    hints = extract_style_hints(html)
    assert hints.border_color == '#aabbcc'
    assert hints.header_background == '#123456'


def test_unparsable_colors_fall_back_to_defaults():
    html = '<style>th { background-color: not-a-color; color: 12px; }</style><table><tr><th>A</th></tr></table>'
    hints = extract_style_hints(html)
    assert hints.header_background == StyleHints().header_background
    assert hints.header_text == StyleHints().header_text


def test_extractor_never_raises_on_garbage():
    assert extract_style_hints('<style>{{{ ::: }}}</style><<<table') == StyleHints()
    assert extract_style_hints(None) == StyleHints()


def test_parse_declarations():
    assert parse_declarations('color: red; ; background : #fff !important;bad') == {
        'color': 'red',
        'background': '#fff',
    }
