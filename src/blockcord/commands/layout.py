from __future__ import annotations

from typing import Iterable, Sequence

from .models import ComponentSpec, SelectSpec

MAX_COMPONENTS_PER_ROW = 5
MAX_ROWS_PER_MESSAGE = 5


def layout_components(
    specs: Iterable[ComponentSpec],
) -> list[list[ComponentSpec]]:
    """Partition component specs into rows.

    Buttons fill rows of up to five. A select menu always takes a row of its
    own; any open row is closed before it and the next element starts fresh.
    Order is preserved and the partition is deterministic.
    """
    rows: list[list[ComponentSpec]] = []
    current: list[ComponentSpec] = []
    for spec in specs:
        if isinstance(spec, SelectSpec):
            if current:
                rows.append(current)
                current = []
            rows.append([spec])
            continue
        if len(current) >= MAX_COMPONENTS_PER_ROW:
            rows.append(current)
            current = []
        current.append(spec)
    if current:
        rows.append(current)
    return rows


def row_sizes(rows: Sequence[Sequence[ComponentSpec]]) -> list[int]:
    return [len(row) for row in rows]
