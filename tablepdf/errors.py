from __future__ import annotations

from typing import Any


class TableExportError(Exception):
    """Base class for every failure raised by the export pipeline."""


class ParseError(TableExportError):
    """The input markup has no usable table. Raised before any backend runs."""


class OptionsError(ParseError):
    """Caller-supplied render options could not be validated."""


class CacheKeyError(TableExportError):
    pass


class RenderError(TableExportError):
    def __init__(self, message: str, *, backend: str | None = None) -> None:
        super().__init__(message)
        self.backend = backend

    def __str__(self) -> str:
        message = super().__str__()
        if self.backend:
            return f'[{self.backend}] {message}'
        return message


class ResourceError(RenderError):
    """Temporary file, process or browser handle I/O failed inside a backend."""


class AllBackendsFailedError(TableExportError):
    def __init__(self, attempts: list[Any], last_detail: str | None = None) -> None:
        self.attempts = list(attempts)
        self.last_detail = last_detail
        tried = ', '.join(getattr(item, 'backend', '?') for item in self.attempts) or 'none'
        super().__init__(f'All render backends failed (tried: {tried}): {last_detail or "no backend available"}')
