from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from tablepdf.errors import AllBackendsFailedError, RenderError
from tablepdf.render.base import RenderBackend, validate_pdf_bytes
from tablepdf.types import RenderJob

logger = logging.getLogger(__name__)


class FallbackState(str, Enum):
    try_native = 'try_native'
    try_browser = 'try_browser'
    try_external = 'try_external'
    succeeded = 'succeeded'
    failed = 'failed'


# state -> (next on success, next on failure)
TRANSITIONS: dict[FallbackState, tuple[FallbackState, FallbackState]] = {
    FallbackState.try_native: (FallbackState.succeeded, FallbackState.try_browser),
    FallbackState.try_browser: (FallbackState.succeeded, FallbackState.try_external),
    FallbackState.try_external: (FallbackState.succeeded, FallbackState.failed),
}


def next_state(state: FallbackState, succeeded: bool) -> FallbackState:
    if state not in TRANSITIONS:
        raise ValueError(f'{state.value} is terminal')
    on_success, on_failure = TRANSITIONS[state]
    return on_success if succeeded else on_failure


@dataclass
class BackendAttempt:
    backend: str
    state: FallbackState
    status: str
    error: str | None = None
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            'backend': self.backend,
            'state': self.state.value,
            'status': self.status,
            'error': self.error,
            'elapsed_seconds': round(self.elapsed_seconds, 3),
        }


@dataclass
class FallbackOutcome:
    pdf_bytes: bytes
    backend: str
    page_count: int
    attempts: list[BackendAttempt] = field(default_factory=list)


class FallbackOrchestrator:
    """Tries native, then browser, then external rendering, once each.

    ``backends`` maps each TRY state to its backend; a state with no backend
    (disabled by configuration) is skipped without counting as a failure.
    """

    def __init__(
        self,
        backends: dict[FallbackState, RenderBackend | None],
        *,
        validate_output: bool = True,
    ) -> None:
        unknown = [state for state in backends if state not in TRANSITIONS]
        if unknown:
            raise ValueError(f'not a backend state: {unknown}')
        self.backends = dict(backends)
        self.validate_output = validate_output

    def _attempt(self, backend: RenderBackend, job: RenderJob) -> tuple[bytes, int]:
        data = backend.render(job)
        if not self.validate_output:
            return data, 0
        return data, validate_pdf_bytes(data, backend=backend.name)

    def run(self, job: RenderJob) -> FallbackOutcome:
        attempts: list[BackendAttempt] = []
        last_detail: str | None = None
        state = FallbackState.try_native

        while state in TRANSITIONS:
            backend = self.backends.get(state)
            if backend is None:
                logger.info('Skipping %s: backend disabled', state.value)
                attempts.append(BackendAttempt(backend=state.value.removeprefix('try_'), state=state, status='skipped'))
                state = next_state(state, succeeded=False)
                continue

            started = time.perf_counter()
            try:
                data, page_count = self._attempt(backend, job)
            except Exception as exc:
                elapsed = time.perf_counter() - started
                detail = str(exc) if isinstance(exc, RenderError) else f'{type(exc).__name__}: {exc}'
                attempts.append(
                    BackendAttempt(
                        backend=backend.name,
                        state=state,
                        status='failed',
                        error=detail,
                        elapsed_seconds=elapsed,
                    )
                )
                last_detail = detail
                logger.warning('Render backend %s failed for %s: %s', backend.name, job.filename, detail)
                state = next_state(state, succeeded=False)
                continue

            elapsed = time.perf_counter() - started
            attempts.append(
                BackendAttempt(backend=backend.name, state=state, status='succeeded', elapsed_seconds=elapsed)
            )
            logger.info(
                'Rendered %s with %s backend in %.2fs (%s bytes)',
                job.filename,
                backend.name,
                elapsed,
                len(data),
            )
            return FallbackOutcome(pdf_bytes=data, backend=backend.name, page_count=page_count, attempts=attempts)

        logger.error('All render backends failed for %s', job.filename)
        raise AllBackendsFailedError(attempts, last_detail)
