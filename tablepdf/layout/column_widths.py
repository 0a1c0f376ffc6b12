from __future__ import annotations

from tablepdf.text.direction import strip_direction_marks
from tablepdf.types import TableGrid

MIN_PROPORTION = 0.1
FIRST_COLUMN_BOOST = 1.2


def _column_lengths(grid: TableGrid) -> list[int]:
    lengths = [len(strip_direction_marks(header)) for header in grid.headers]
    for row in grid.rows:
        for index, cell in enumerate(row):
            lengths[index] = max(lengths[index], len(strip_direction_marks(cell)))
    return lengths


def _clamp_to_minimum(widths: list[float], available_width: float, min_width: float) -> list[float]:
    # Pin narrow columns to the minimum and share the rest among the others.
    pinned: set[int] = set()
    result = list(widths)
    while True:
        newly_pinned = {index for index, width in enumerate(result) if index not in pinned and width < min_width}
        if not newly_pinned:
            return result
        pinned |= newly_pinned
        free = [index for index in range(len(result)) if index not in pinned]
        remaining = available_width - min_width * len(pinned)
        free_total = sum(widths[index] for index in free)
        for index in pinned:
            result[index] = min_width
        for index in free:
            result[index] = remaining * widths[index] / free_total if free_total > 0 else remaining / len(free)


def estimate_column_widths(
    grid: TableGrid,
    available_width: float,
    *,
    min_width: float = 50.0,
) -> list[float]:
    """Share ``available_width`` between columns in proportion to their longest text.

    Every proportion is floored at 10% and the first (label) column is boosted
    by 20% before normalisation; a table with no text gets equal columns.
    Narrow columns are clamped to ``min_width``; if the columns cannot all get
    ``min_width`` the minimum becomes an equal share. The result never sums to
    more than ``available_width``.
    """
    count = grid.column_count
    if count == 0:
        return []
    available_width = max(float(available_width), 0.0)
    if count == 1:
        return [available_width]

    lengths = _column_lengths(grid)
    total = sum(lengths)
    if total == 0:
        proportions = [1.0 / count] * count
    else:
        proportions = [max(length / total, MIN_PROPORTION) for length in lengths]
        proportions[0] *= FIRST_COLUMN_BOOST
    proportion_total = sum(proportions)
    widths = [available_width * proportion / proportion_total for proportion in proportions]

    effective_min = min(max(float(min_width), 0.0), available_width / count)
    widths = _clamp_to_minimum(widths, available_width, effective_min)

    overflow = sum(widths) - available_width
    if overflow > 0:
        widest = max(range(count), key=lambda index: widths[index])
        widths[widest] -= overflow
    return widths
