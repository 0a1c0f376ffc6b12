from __future__ import annotations

import base64

from tablepdf.fonts.provider import (
    BUILTIN_BOLD,
    BUILTIN_REGULAR,
    SOURCE_BUILTIN,
    SOURCE_EMBEDDED,
    SOURCE_FILESYSTEM,
    SOURCE_SYSTEM,
    FontProvider,
    decode_font_payload,
)

FAKE_TTF = b'\x00\x01\x00\x00' + b'not really a font' * 4


def _provider(tmp_path, **kwargs) -> FontProvider:
    kwargs.setdefault('font_dir', tmp_path / 'fonts')
    kwargs.setdefault('extra_dirs', ())
    kwargs.setdefault('system_candidates', ())
    return FontProvider(family='Vazirmatn', cache_dir=tmp_path / 'cache', **kwargs)


def test_builtin_fallback_when_nothing_is_installed(tmp_path):
    provider = _provider(tmp_path)
    choice = provider.resolve()
    assert choice.source == SOURCE_BUILTIN
    assert provider.register_pdf_fonts().regular == BUILTIN_REGULAR
    assert provider.register_pdf_fonts().bold == BUILTIN_BOLD
    assert provider.font_face_css() == ''
    status = provider.describe()
    assert status['valid'] is False
    assert status['missing'] == ['Vazirmatn-Regular', 'Vazirmatn-Bold']


def test_embedded_payload_is_preferred_and_written_to_cache(tmp_path):
    font_dir = tmp_path / 'fonts'
    font_dir.mkdir()
    (font_dir / 'Vazirmatn-Regular.ttf').write_bytes(FAKE_TTF)
    payload = 'data:font/ttf;base64,' + base64.b64encode(FAKE_TTF).decode('ascii')

    provider = _provider(tmp_path, embedded_regular=payload)
    choice = provider.resolve()

    assert choice.source == SOURCE_EMBEDDED
    assert choice.regular_path.parent == tmp_path / 'cache'
    assert choice.regular_path.read_bytes() == FAKE_TTF


def test_filesystem_font_reports_missing_bold(tmp_path):
    font_dir = tmp_path / 'fonts'
    font_dir.mkdir()
    (font_dir / 'Vazirmatn-Regular.ttf').write_bytes(FAKE_TTF)

    status = _provider(tmp_path).describe()

    assert status['source'] == SOURCE_FILESYSTEM
    assert status['valid'] is True
    assert status['regular'].endswith('Vazirmatn-Regular.ttf')
    assert status['missing'] == ['Vazirmatn-Bold']


def test_legacy_vazir_names_are_found(tmp_path):
    legacy = tmp_path / 'legacy'
    legacy.mkdir()
    (legacy / 'Vazir-Regular.ttf').write_bytes(FAKE_TTF)
    (legacy / 'Vazir-Bold.ttf').write_bytes(FAKE_TTF)

    choice = _provider(tmp_path, extra_dirs=(legacy,)).resolve()

    assert choice.source == SOURCE_FILESYSTEM
    assert choice.bold_path == legacy / 'Vazir-Bold.ttf'


def test_system_candidate_used_after_filesystem(tmp_path):
    system_font = tmp_path / 'System.ttf'
    system_font.write_bytes(FAKE_TTF)

    choice = _provider(tmp_path, system_candidates=((system_font, None),)).resolve()

    assert choice.source == SOURCE_SYSTEM
    assert choice.regular_path == system_font
    assert choice.bold_path is None


def test_unregistrable_font_falls_through_to_builtin(tmp_path, caplog):
    font_dir = tmp_path / 'fonts'
    font_dir.mkdir()
    (font_dir / 'Vazirmatn-Regular.ttf').write_bytes(FAKE_TTF)

    fonts = _provider(tmp_path).register_pdf_fonts()

    assert fonts.regular == BUILTIN_REGULAR
    assert fonts.source == SOURCE_BUILTIN


def test_font_face_css_embeds_data_uri(tmp_path):
    font_dir = tmp_path / 'fonts'
    font_dir.mkdir()
    (font_dir / 'Vazirmatn-Regular.ttf').write_bytes(FAKE_TTF)

    css = _provider(tmp_path).font_face_css()

    assert css.count('@font-face') == 2
    assert "font-family: 'Vazirmatn'" in css
    assert base64.b64encode(FAKE_TTF).decode('ascii') in css
    assert "format('truetype')" in css


def test_css_family_stack_puts_preferred_family_first(tmp_path):
    stack = _provider(tmp_path).css_family_stack('Noto Naskh')
    assert stack.startswith("'Noto Naskh', 'Vazirmatn'")
    assert stack.endswith('sans-serif')


def test_decode_font_payload():
    assert decode_font_payload(None) is None
    assert decode_font_payload('   ') is None
    assert decode_font_payload(base64.b64encode(b'abc').decode()) == b'abc'
    assert decode_font_payload(b'raw') == b'raw'
