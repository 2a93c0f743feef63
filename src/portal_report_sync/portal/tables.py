from __future__ import annotations

import logging
from typing import Iterator, Optional, Protocol, Sequence

from ..errors import ExtractionError
from ..models import ExtractedRecord, GridRows, GridSnapshot, NoMatches, TableLayout


logger = logging.getLogger(__name__)


class GridReader(Protocol):
    def grid_present(self) -> bool: ...

    def first_cell_text(self) -> Optional[str]: ...

    def iter_rows(self) -> Iterator[list[str]]: ...


def read_grid(grid: GridReader, layout: TableLayout, *, filter_label: str = "") -> GridSnapshot:
    """
    Classify the rendered results grid.

    A missing grid is an error; the sentinel phrase in the first data cell is the portal's way of saying
    "no matching records" and yields `NoMatches`.
    """
    if not grid.grid_present():
        raise ExtractionError(filter_label, "results grid not rendered")

    first = (grid.first_cell_text() or "").strip()
    if layout.sentinel and layout.sentinel in first:
        return NoMatches(text=first)
    return GridRows(rows=grid.iter_rows())


def project_row(cells: Sequence[str], layout: TableLayout) -> Optional[dict[str, str]]:
    if len(cells) < layout.required_columns:
        return None
    return {name: (cells[idx] or "").strip() for name, idx in layout.columns.items()}


def extract_table(
    grid: GridReader,
    *,
    account: str,
    filter_label: str,
    layout: TableLayout,
) -> Iterator[ExtractedRecord]:
    snapshot = read_grid(grid, layout, filter_label=filter_label)
    if isinstance(snapshot, NoMatches):
        logger.info("No records for filter %r (%s)", filter_label, account)
        return

    skipped = 0
    for cells in snapshot.rows:
        fields = project_row(cells, layout)
        if fields is None:
            # Partially rendered rows; dropping them keeps the rest of the filter usable.
            skipped += 1
            logger.debug("Skipping row with %d cells (need %d)", len(cells), layout.required_columns)
            continue
        yield ExtractedRecord(account=account, filter=filter_label, fields=fields)

    if skipped:
        logger.warning("Skipped %d malformed rows for filter %r (%s)", skipped, filter_label, account)
