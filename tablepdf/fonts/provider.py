from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from fontTools.ttLib import TTFont as FontToolsTTFont
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from tablepdf.config import Settings

logger = logging.getLogger(__name__)

SOURCE_EMBEDDED = 'embedded'
SOURCE_FILESYSTEM = 'filesystem'
SOURCE_SYSTEM = 'system'
SOURCE_BUILTIN = 'builtin'

BUILTIN_REGULAR = 'Helvetica'
BUILTIN_BOLD = 'Helvetica-Bold'

FONT_SUFFIXES = ('.ttf', '.otf', '.woff2', '.woff')
LEGACY_FONT_DIRS = (Path('/root/vazir'), Path('/usr/share/fonts/truetype/vazirmatn'))
LEGACY_REGULAR_STEMS = ('Vazirmatn-Regular', 'Vazir-Regular', 'Vazir')
LEGACY_BOLD_STEMS = ('Vazirmatn-Bold', 'Vazir-Bold')

SYSTEM_FONT_CANDIDATES: tuple[tuple[Path, Path | None], ...] = (
    (
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'),
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf'),
    ),
    (
        Path('/usr/share/fonts/dejavu/DejaVuSans.ttf'),
        Path('/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf'),
    ),
    (
        Path('/usr/share/fonts/truetype/noto/NotoSansArabic-Regular.ttf'),
        Path('/usr/share/fonts/truetype/noto/NotoSansArabic-Bold.ttf'),
    ),
    (
        Path('/usr/share/fonts/truetype/freefont/FreeSans.ttf'),
        Path('/usr/share/fonts/truetype/freefont/FreeSansBold.ttf'),
    ),
    (Path('C:/Windows/Fonts/tahoma.ttf'), Path('C:/Windows/Fonts/tahomabd.ttf')),
)

_CSS_FORMATS = {
    '.ttf': ('font/ttf', 'truetype'),
    '.otf': ('font/otf', 'opentype'),
    '.woff': ('font/woff', 'woff'),
    '.woff2': ('font/woff2', 'woff2'),
}
_DATA_URI_PREFIX_RE = re.compile(r'^data:[^,]*;base64,', re.IGNORECASE)


@dataclass(frozen=True)
class FontChoice:
    family: str
    source: str
    regular_path: Path | None
    bold_path: Path | None = None
    missing: tuple[str, ...] = ()


@dataclass(frozen=True)
class PdfFonts:
    regular: str
    bold: str
    source: str = SOURCE_BUILTIN


@dataclass
class _EmbeddedFont:
    weight: str
    data: bytes = field(repr=False)


def _safe_file(path: Path | None) -> Path | None:
    if path is None:
        return None
    try:
        return path if path.is_file() else None
    except OSError:
        return None


def _suffix_for_bytes(data: bytes) -> str:
    magic = data[:4]
    if magic == b'wOFF':
        return '.woff'
    if magic == b'wOF2':
        return '.woff2'
    if magic == b'OTTO':
        return '.otf'
    return '.ttf'


def decode_font_payload(payload: str | bytes | None) -> bytes | None:
    if payload is None:
        return None
    if isinstance(payload, bytes):
        return payload or None
    text = _DATA_URI_PREFIX_RE.sub('', payload.strip())
    if not text:
        return None
    try:
        return base64.b64decode(text, validate=False)
    except (binascii.Error, ValueError) as exc:
        logger.warning('Ignoring embedded font payload that is not valid base64: %s', exc)
        return None


def _pdf_font_name(family: str, weight: str) -> str:
    token = re.sub(r'[^A-Za-z0-9_-]+', '', family) or 'Font'
    return f'TP-{token}-{weight}'


def register_ttf_font(font_name: str, font_path: Path, *, quiet: bool = False) -> bool:
    if font_name in pdfmetrics.getRegisteredFontNames():
        return True

    try:
        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
        return True
    except Exception as exc:
        if quiet:
            logger.info('Skipped PDF font %s from %s: %s', font_name, font_path, exc)
        else:
            logger.warning('Failed to register PDF font %s from %s: %s', font_name, font_path, exc)
        return False


def _is_truetype_outline_font(path: Path) -> bool:
    try:
        return 'glyf' in FontToolsTTFont(str(path))
    except Exception:
        return False


def convert_woff_font_to_ttf(source_path: Path, cache_dir: Path) -> Path | None:
    """Return a TrueType-outline copy of a WOFF/WOFF2 font, cached by mtime."""
    if _safe_file(source_path) is None:
        return None

    cache_dir.mkdir(parents=True, exist_ok=True)
    target_path = cache_dir / f'{source_path.name}.converted.ttf'

    if target_path.exists() and target_path.stat().st_mtime >= source_path.stat().st_mtime:
        if _is_truetype_outline_font(target_path):
            return target_path
        target_path.unlink(missing_ok=True)

    try:
        font = FontToolsTTFont(str(source_path))
        if 'glyf' not in font:
            logger.info('Skipping font %s: unsupported outlines (CFF/PostScript).', source_path)
            return None
        font.flavor = None
        font.save(str(target_path))
    except Exception as exc:
        logger.warning('Failed to convert WOFF font %s: %s', source_path, exc)
        return None
    return target_path


class FontProvider:
    """Resolves one font family for all backends.

    Preference order: embedded payloads, files in the font directories,
    system fonts with Arabic coverage, and finally the PDF base-14 Helvetica.
    """

    def __init__(
        self,
        *,
        family: str = 'Vazirmatn',
        font_dir: Path | None = None,
        cache_dir: Path = Path('./.cache/fonts'),
        embedded_regular: str | bytes | None = None,
        embedded_bold: str | bytes | None = None,
        extra_dirs: tuple[Path, ...] = LEGACY_FONT_DIRS,
        system_candidates: tuple[tuple[Path, Path | None], ...] = SYSTEM_FONT_CANDIDATES,
    ) -> None:
        self.family = str(family or '').strip() or 'Vazirmatn'
        self.font_dirs = tuple(item for item in (font_dir, *extra_dirs) if item is not None)
        self.cache_dir = Path(cache_dir)
        self.system_candidates = system_candidates
        self._embedded = [
            _EmbeddedFont(weight=weight, data=data)
            for weight, data in (
                ('Regular', decode_font_payload(embedded_regular)),
                ('Bold', decode_font_payload(embedded_bold)),
            )
            if data
        ]
        self._lock = threading.Lock()
        self._pdf_fonts: PdfFonts | None = None
        self._css: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> FontProvider:
        return cls(
            family=settings.font_family,
            font_dir=settings.font_dir,
            cache_dir=settings.font_cache_dir,
            embedded_regular=settings.font_embedded_regular,
            embedded_bold=settings.font_embedded_bold,
        )

    def _materialize_embedded(self, item: _EmbeddedFont) -> Path | None:
        digest = hashlib.sha1(item.data).hexdigest()[:12]
        target = self.cache_dir / f'{self.family}-{item.weight}-{digest}{_suffix_for_bytes(item.data)}'
        try:
            if not target.exists():
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                target.write_bytes(item.data)
        except OSError as exc:
            logger.warning('Failed to write embedded font %s: %s', target, exc)
            return None
        return target

    def _find_in_dirs(self, stems: tuple[str, ...]) -> Path | None:
        for directory in self.font_dirs:
            for stem in stems:
                for suffix in FONT_SUFFIXES:
                    candidate = _safe_file(directory / f'{stem}{suffix}')
                    if candidate is not None:
                        return candidate
        return None

    def _candidates(self) -> Iterator[FontChoice]:
        if self._embedded:
            paths = {item.weight: self._materialize_embedded(item) for item in self._embedded}
            if paths.get('Regular') is not None:
                yield FontChoice(
                    family=self.family,
                    source=SOURCE_EMBEDDED,
                    regular_path=paths['Regular'],
                    bold_path=paths.get('Bold'),
                )

        regular_stems = (f'{self.family}-Regular', self.family, *LEGACY_REGULAR_STEMS)
        bold_stems = (f'{self.family}-Bold', *LEGACY_BOLD_STEMS)
        regular = self._find_in_dirs(regular_stems)
        if regular is not None:
            bold = self._find_in_dirs(bold_stems)
            yield FontChoice(
                family=self.family,
                source=SOURCE_FILESYSTEM,
                regular_path=regular,
                bold_path=bold,
                missing=() if bold else (f'{self.family}-Bold',),
            )

        for regular_path, bold_path in self.system_candidates:
            if _safe_file(regular_path) is None:
                continue
            yield FontChoice(
                family=regular_path.stem,
                source=SOURCE_SYSTEM,
                regular_path=regular_path,
                bold_path=_safe_file(bold_path),
            )

    def resolve(self) -> FontChoice:
        for choice in self._candidates():
            return choice
        return FontChoice(
            family=BUILTIN_REGULAR,
            source=SOURCE_BUILTIN,
            regular_path=None,
            missing=(f'{self.family}-Regular', f'{self.family}-Bold'),
        )

    def _truetype_path(self, path: Path | None) -> Path | None:
        if path is None:
            return None
        if path.suffix.lower() in ('.woff', '.woff2'):
            return convert_woff_font_to_ttf(path, self.cache_dir)
        return path

    def register_pdf_fonts(self) -> PdfFonts:
        """Register the best usable candidate with ReportLab and return its names."""
        with self._lock:
            if self._pdf_fonts is not None:
                return self._pdf_fonts

            for choice in self._candidates():
                regular_ttf = self._truetype_path(choice.regular_path)
                if regular_ttf is None:
                    continue
                regular_name = _pdf_font_name(choice.family, 'Regular')
                if not register_ttf_font(regular_name, regular_ttf, quiet=choice.source == SOURCE_SYSTEM):
                    continue
                bold_name = regular_name
                bold_ttf = self._truetype_path(choice.bold_path)
                if bold_ttf is not None and register_ttf_font(_pdf_font_name(choice.family, 'Bold'), bold_ttf):
                    bold_name = _pdf_font_name(choice.family, 'Bold')
                self._pdf_fonts = PdfFonts(regular=regular_name, bold=bold_name, source=choice.source)
                logger.info('Using %s PDF font %s from %s', choice.source, regular_name, regular_ttf)
                return self._pdf_fonts

            logger.warning('No TrueType font with Arabic coverage found; falling back to %s', BUILTIN_REGULAR)
            self._pdf_fonts = PdfFonts(regular=BUILTIN_REGULAR, bold=BUILTIN_BOLD, source=SOURCE_BUILTIN)
            return self._pdf_fonts

    def _font_face(self, path: Path, weight: int) -> str:
        source = self._truetype_path(path) or path
        mime, css_format = _CSS_FORMATS.get(source.suffix.lower(), ('font/ttf', 'truetype'))
        encoded = base64.b64encode(source.read_bytes()).decode('ascii')
        return (
            '@font-face {\n'
            f"  font-family: '{self.family}';\n"
            f"  src: url(data:{mime};base64,{encoded}) format('{css_format}');\n"
            f'  font-weight: {weight};\n'
            '  font-style: normal;\n'
            '}\n'
        )

    def font_face_css(self) -> str:
        """``@font-face`` rules with data URIs so rendered documents are self-contained."""
        with self._lock:
            if self._css is not None:
                return self._css
            choice = self.resolve()
            rules: list[str] = []
            try:
                if choice.regular_path is not None:
                    rules.append(self._font_face(choice.regular_path, 400))
                    rules.append(self._font_face(choice.bold_path or choice.regular_path, 700))
            except OSError as exc:
                logger.warning('Failed to read font %s for CSS: %s', choice.regular_path, exc)
                rules = []
            self._css = ''.join(rules)
            return self._css

    def css_family_stack(self, preferred: str | None = None) -> str:
        names: list[str] = []
        for item in (preferred, self.family):
            token = str(item or '').strip().replace("'", '')
            if token and token not in names:
                names.append(token)
        quoted = ', '.join(f"'{name}'" for name in names)
        return f'{quoted}, Tahoma, Arial, sans-serif'

    def describe(self) -> dict[str, Any]:
        choice = self.resolve()
        return {
            'family': self.family,
            'resolved_family': choice.family,
            'source': choice.source,
            'valid': choice.source in (SOURCE_EMBEDDED, SOURCE_FILESYSTEM),
            'regular': str(choice.regular_path) if choice.regular_path else None,
            'bold': str(choice.bold_path) if choice.bold_path else None,
            'missing': list(choice.missing),
        }
