"""
Editable grid behind ``table``-typed attributes.

A table value is an ordered list of rows, each row an ordered list of cell
values aligned positionally with the attribute's ``columns``. The grid keeps
the row count inside ``[min_rows, max_rows]``: adding at the ceiling and
deleting at the floor are silent no-ops.

Cells are coerced per column type (number, date, select options). Column
``required`` flags are not enforced per cell; only the row count is reported
through ``error``.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .coercion import to_iso_date, to_number
from .models import TableColumn, TableRules

logger = logging.getLogger(__name__)

Row = List[Any]

DEFAULT_MIN_ROWS = 1
DEFAULT_MAX_ROWS = 100


class TableGrid:
    """Row/column state machine for a table attribute value."""

    def __init__(
        self,
        columns: Iterable[Any],
        rows: Optional[List[Row]] = None,
        min_rows: int = DEFAULT_MIN_ROWS,
        max_rows: int = DEFAULT_MAX_ROWS,
        allow_add_rows: bool = True,
        allow_delete_rows: bool = True,
        allow_edit_rows: bool = True,
        disabled: bool = False,
        on_change: Optional[Callable[[List[Row]], None]] = None,
    ):
        self.columns: List[TableColumn] = [
            column if isinstance(column, TableColumn) else TableColumn.model_validate(column)
            for column in columns
        ]
        self.rows: List[Row] = rows if rows is not None else []
        self.min_rows = min_rows
        self.max_rows = max_rows
        self.allow_add_rows = allow_add_rows
        self.allow_delete_rows = allow_delete_rows
        self.allow_edit_rows = allow_edit_rows
        self.disabled = disabled
        self.on_change = on_change
        self._initialized = False

    @classmethod
    def from_rules(
        cls,
        rules: TableRules,
        rows: Optional[List[Row]] = None,
        disabled: bool = False,
        on_change: Optional[Callable[[List[Row]], None]] = None,
    ) -> "TableGrid":
        """Build a grid from authored table rules, filling unset limits with defaults."""
        return cls(
            columns=rules.columns,
            rows=rows,
            min_rows=DEFAULT_MIN_ROWS if rules.min_rows is None else rules.min_rows,
            max_rows=DEFAULT_MAX_ROWS if rules.max_rows is None else rules.max_rows,
            allow_add_rows=rules.allow_add_rows is not False,
            allow_delete_rows=rules.allow_delete_rows is not False,
            allow_edit_rows=rules.allow_edit_rows is not False,
            disabled=disabled,
            on_change=on_change,
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def initialize(self) -> bool:
        """Seed one empty row on first use when the value is empty.

        Runs once per grid; later calls never re-seed, even if the rows were
        deleted down to zero.
        """
        if self._initialized:
            return False
        self._initialized = True

        if self.rows or self.min_rows <= 0 or not self.columns:
            return False

        self._commit([self._empty_row()])
        return True

    def edit_cell(self, row_index: int, col_index: int, value: Any) -> bool:
        if not self.allow_edit_rows or self.disabled:
            return False
        if not 0 <= row_index < len(self.rows):
            return False
        if not 0 <= col_index < len(self.columns):
            return False

        accepted, cell = self.coerce_cell(self.columns[col_index], value)
        if not accepted:
            logger.debug(
                f"Rejected value {value!r} for column '{self.columns[col_index].name}'"
            )
            return False

        row = self.rows[row_index]
        current = row[col_index] if col_index < len(row) else ""
        if current == cell:
            return False

        new_row = list(row) + [""] * (len(self.columns) - len(row))
        new_row[col_index] = cell
        new_rows = list(self.rows)
        new_rows[row_index] = new_row
        self._commit(new_rows)
        return True

    def add_row(self) -> bool:
        if not self.allow_add_rows or self.disabled:
            return False
        if len(self.rows) >= self.max_rows:
            return False
        self._commit(self.rows + [self._empty_row()])
        return True

    def delete_row(self, row_index: int) -> bool:
        if not self.allow_delete_rows or self.disabled:
            return False
        if len(self.rows) <= self.min_rows:
            return False
        if not 0 <= row_index < len(self.rows):
            return False
        self._commit(
            [row for index, row in enumerate(self.rows) if index != row_index]
        )
        return True

    # =========================================================================
    # Cells
    # =========================================================================

    @staticmethod
    def coerce_cell(column: TableColumn, value: Any) -> Tuple[bool, Any]:
        """Return ``(accepted, cell)`` for a raw cell value in ``column``."""
        if value is None or (isinstance(value, str) and value.strip() == ""):
            return True, ""

        if column.type == "number":
            number = to_number(value)
            return (number is not None), number
        if column.type == "date":
            iso = to_iso_date(value)
            return (iso is not None), iso
        if column.type == "select":
            text = str(value)
            return (text in (column.options or [])), text
        return True, value if isinstance(value, str) else str(value)

    def can_add_row(self) -> bool:
        return (
            self.allow_add_rows and not self.disabled and len(self.rows) < self.max_rows
        )

    def can_delete_row(self) -> bool:
        return (
            self.allow_delete_rows
            and not self.disabled
            and len(self.rows) > self.min_rows
        )

    @property
    def error(self) -> Optional[str]:
        if len(self.rows) < self.min_rows:
            return "row count below minimum"
        if len(self.rows) > self.max_rows:
            return "row count above maximum"
        return None

    def _empty_row(self) -> Row:
        return ["" for _ in self.columns]

    def _commit(self, rows: List[Row]) -> None:
        self.rows = rows
        logger.debug(f"Table grid now has {len(rows)} row(s)")
        if self.on_change is not None:
            self.on_change(rows)
