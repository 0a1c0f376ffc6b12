from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator
from reportlab.lib import colors
from reportlab.lib.pagesizes import A3, A4, A5, LEGAL, LETTER, landscape, portrait

from tablepdf.errors import OptionsError

_SHORT_HEX_RE = re.compile(r'^#([0-9a-fA-F])([0-9a-fA-F])([0-9a-fA-F])$')
_FUNCTIONAL_COLOR_RE = re.compile(r'^(rgb|rgba|hsl|hsla)\(')
_LENGTH_RE = re.compile(r'^\s*(\d+(?:\.\d+)?|\.\d+)\s*(pt|px|mm|cm|in)?\s*$', re.IGNORECASE)
_POINTS_PER_UNIT = {
    'pt': 1.0,
    'px': 0.75,
    'mm': 72.0 / 25.4,
    'cm': 72.0 / 2.54,
    'in': 72.0,
}


def normalize_color(value: Any) -> str:
    """Return ``value`` as ``#rrggbb``; raise ``ValueError`` when it is not a color."""
    token = str(value or '').strip().lower()
    if not token:
        raise ValueError('empty color')
    short = _SHORT_HEX_RE.match(token)
    if short:
        token = '#' + ''.join(part * 2 for part in short.groups())
    try:
        if token.startswith('#'):
            if len(token) != 7:
                raise ValueError('expected #rgb or #rrggbb')
            parsed = colors.HexColor(token)
        elif token.isalpha():
            parsed = colors.getAllNamedColors()[token]
        elif _FUNCTIONAL_COLOR_RE.match(token):
            parsed = colors.toColor(token)
        else:
            raise ValueError('unrecognised color syntax')
    except Exception as exc:
        raise ValueError(f'invalid color {value!r}') from exc
    return '#%02x%02x%02x' % tuple(int(round(channel * 255)) for channel in parsed.rgb())


def parse_length(value: Any) -> float:
    """Convert a number (points) or a CSS length such as ``1cm`` to points."""
    if isinstance(value, bool):
        raise ValueError('length must be a number or CSS length')
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError('length must not be negative')
        return float(value)
    match = _LENGTH_RE.match(str(value or ''))
    if not match:
        raise ValueError(f'invalid length {value!r}')
    unit = (match.group(2) or 'pt').lower()
    return float(match.group(1)) * _POINTS_PER_UNIT[unit]


class TableGrid(BaseModel):
    """Header labels plus data rows, every row exactly ``len(headers)`` long."""

    model_config = ConfigDict(frozen=True)

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = ()

    @model_validator(mode='before')
    @classmethod
    def _coerce_rows(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        headers = tuple('' if item is None else str(item) for item in (data.get('headers') or ()))
        width = len(headers)
        rows: list[tuple[str, ...]] = []
        for row in data.get('rows') or ():
            cells = ['' if item is None else str(item) for item in row][:width]
            cells.extend([''] * (width - len(cells)))
            rows.append(tuple(cells))
        return {**data, 'headers': headers, 'rows': tuple(rows)}

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def map_text(self, fn: Callable[[str], str]) -> TableGrid:
        return TableGrid(
            headers=[fn(item) for item in self.headers],
            rows=[[fn(cell) for cell in row] for row in self.rows],
        )


class StyleHints(BaseModel):
    model_config = ConfigDict(frozen=True)

    header_background: str = '#333340'
    header_text: str = '#ffffff'
    odd_row_background: str = '#28282f'
    even_row_background: str = '#222228'
    text_color: str = '#ffffff'
    border_color: str = '#4a4a57'

    @field_validator('*', mode='before')
    @classmethod
    def _color_or_default(cls, value: Any, info: ValidationInfo) -> str:
        default = cls.model_fields[info.field_name].default
        if value is None:
            return default
        try:
            return normalize_color(value)
        except ValueError:
            return default

    def with_overrides(self, options: RenderOptions) -> StyleHints:
        overrides = {
            'header_background': options.header_color,
            'header_text': options.header_text_color,
            'odd_row_background': options.odd_row_color,
            'even_row_background': options.even_row_color,
            'text_color': options.text_color,
            'border_color': options.border_color,
        }
        applied = {key: value for key, value in overrides.items() if value}
        if not applied:
            return self
        return self.model_copy(update=applied)


class PageFormat(str, Enum):
    a3 = 'A3'
    a4 = 'A4'
    a5 = 'A5'
    letter = 'Letter'
    legal = 'Legal'


class Orientation(str, Enum):
    portrait = 'portrait'
    landscape = 'landscape'


PAGE_SIZES: dict[PageFormat, tuple[float, float]] = {
    PageFormat.a3: A3,
    PageFormat.a4: A4,
    PageFormat.a5: A5,
    PageFormat.letter: LETTER,
    PageFormat.legal: LEGAL,
}


class Margins(BaseModel):
    model_config = ConfigDict(frozen=True)

    top: float = 50.0
    right: float = 40.0
    bottom: float = 50.0
    left: float = 40.0

    @model_validator(mode='before')
    @classmethod
    def _uniform(cls, data: Any) -> Any:
        if isinstance(data, (int, float, str)) and not isinstance(data, bool):
            return {'top': data, 'right': data, 'bottom': data, 'left': data}
        return data

    @field_validator('top', 'right', 'bottom', 'left', mode='before')
    @classmethod
    def _to_points(cls, value: Any) -> float:
        return parse_length(value)


def _color_field(*aliases: str) -> Any:
    return Field(default=None, validation_alias=AliasChoices(*aliases))


class RenderOptions(BaseModel):
    """Page geometry and typography for one export; unknown keys are ignored."""

    model_config = ConfigDict(frozen=True, extra='ignore')

    page_format: PageFormat = Field(
        default=PageFormat.a4,
        validation_alias=AliasChoices('page_format', 'pageFormat', 'format'),
    )
    orientation: Orientation = Orientation.landscape
    margins: Margins = Field(default_factory=Margins)
    font_family: str = Field(
        default='Vazirmatn',
        validation_alias=AliasChoices('font_family', 'fontFamily', 'fontName', 'font_name'),
    )
    font_size: float = Field(default=10.0, gt=0, validation_alias=AliasChoices('font_size', 'fontSize'))
    header_font_size: float = Field(
        default=12.0,
        gt=0,
        validation_alias=AliasChoices('header_font_size', 'headerFontSize'),
    )
    cell_padding: float = Field(default=10.0, ge=0, validation_alias=AliasChoices('cell_padding', 'cellPadding'))
    min_column_width: float = Field(
        default=50.0,
        ge=0,
        validation_alias=AliasChoices('min_column_width', 'minColWidth', 'minColumnWidth'),
    )

    header_color: str | None = _color_field('header_color', 'headerColor')
    header_text_color: str | None = _color_field('header_text_color', 'headerTextColor')
    odd_row_color: str | None = _color_field('odd_row_color', 'oddRowColor')
    even_row_color: str | None = _color_field('even_row_color', 'evenRowColor')
    text_color: str | None = _color_field('text_color', 'textColor')
    border_color: str | None = _color_field('border_color', 'borderColor')

    @model_validator(mode='before')
    @classmethod
    def _landscape_flag(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'landscape' in data and 'orientation' not in data:
            data = dict(data)
            data['orientation'] = 'landscape' if data.pop('landscape') else 'portrait'
        return data

    @field_validator('page_format', mode='before')
    @classmethod
    def _page_format(cls, value: Any) -> Any:
        if isinstance(value, PageFormat):
            return value
        token = str(value or '').strip().upper()
        for item in PageFormat:
            if item.value.upper() == token:
                return item
        raise ValueError(f'unsupported page format {value!r}')

    @field_validator('orientation', mode='before')
    @classmethod
    def _orientation(cls, value: Any) -> Any:
        if isinstance(value, Orientation):
            return value
        return str(value or '').strip().lower()

    @field_validator('font_family', mode='before')
    @classmethod
    def _font_family(cls, value: Any) -> str:
        token = str(value or '').strip()
        return token or 'Vazirmatn'

    @field_validator(
        'header_color',
        'header_text_color',
        'odd_row_color',
        'even_row_color',
        'text_color',
        'border_color',
        mode='before',
    )
    @classmethod
    def _override_color(cls, value: Any) -> str | None:
        if value is None or str(value).strip() == '':
            return None
        return normalize_color(value)

    @classmethod
    def from_partial(cls, partial: Any = None, *, defaults: dict[str, Any] | None = None) -> RenderOptions:
        """Merge caller options (dict, JSON string or ``RenderOptions``) over the defaults."""
        if isinstance(partial, RenderOptions):
            return partial
        if isinstance(partial, str):
            text = partial.strip()
            if not text:
                partial = None
            else:
                try:
                    partial = json.loads(text)
                except json.JSONDecodeError as exc:
                    raise OptionsError(f'options is not valid JSON: {exc}') from exc
        if partial is None:
            partial = {}
        if not isinstance(partial, dict):
            raise OptionsError(f'options must be an object, got {type(partial).__name__}')
        try:
            options = cls.model_validate(partial)
        except ValidationError as exc:
            raise OptionsError(f'invalid options: {exc}') from exc
        # Deployment defaults only fill fields the caller left out.
        missing = {key: value for key, value in (defaults or {}).items() if key not in options.model_fields_set}
        if missing:
            options = options.model_copy(update=missing)
        return options

    def page_size(self) -> tuple[float, float]:
        size = PAGE_SIZES[self.page_format]
        if self.orientation == Orientation.landscape:
            return landscape(size)
        return portrait(size)

    def available_width(self) -> float:
        width, _ = self.page_size()
        return max(width - self.margins.left - self.margins.right, 1.0)

    def cache_payload(self) -> dict[str, Any]:
        return self.model_dump(mode='json')


@dataclass(frozen=True)
class RenderJob:
    grid: TableGrid
    styles: StyleHints
    options: RenderOptions
    filename: str
    column_widths: tuple[float, ...]
    table_html: str
    cache_key: str
