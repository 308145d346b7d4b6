"""Row classification and running column type inference."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from chart_engine.dates import ParsedDate, try_parse_chart_date


class DataType(str, Enum):
    """Inferred column type; widens monotonically towards MIXED."""

    NONE = "none"
    DATE = "date"
    NUMBER = "number"
    STRING = "string"
    MIXED = "mixed"


@dataclass
class AvailableColumn:
    """A column seen in the stream and its inferred type."""

    field: str
    data_type: DataType = DataType.NONE

    def merge(self, observed: DataType) -> None:
        """Fold one observation into the inferred type."""
        if observed == DataType.NONE or self.data_type == DataType.MIXED:
            return
        if self.data_type == DataType.NONE:
            self.data_type = observed
        elif self.data_type != observed:
            self.data_type = DataType.MIXED

    def to_payload(self) -> dict[str, str]:
        return {"field": self.field, "dataType": self.data_type.value}


@dataclass(frozen=True)
class Cell:
    """One classified value: a date, a number, a short string, or nothing usable."""

    kind: DataType
    value: Any = None


_EMPTY_CELL = Cell(DataType.NONE)


@dataclass
class ClassifiedRow:
    """A raw row plus the per-kind views consumed by detection and aggregation."""

    row: Mapping[str, Any]
    cells: Dict[str, Cell] = field(default_factory=dict)

    @property
    def dates(self) -> Dict[str, ParsedDate]:
        return {key: cell.value for key, cell in self.cells.items() if cell.kind == DataType.DATE}

    @property
    def numbers(self) -> Dict[str, float]:
        return {
            key: cell.value for key, cell in self.cells.items() if cell.kind == DataType.NUMBER
        }

    @property
    def strings(self) -> Dict[str, str]:
        return {
            key: cell.value for key, cell in self.cells.items() if cell.kind == DataType.STRING
        }

    @property
    def measure_candidates(self) -> Dict[str, float]:
        return {key: value for key, value in self.numbers.items() if not is_identifier_field(key)}

    def date(self, key: Optional[str]) -> Optional[ParsedDate]:
        cell = self.cells.get(key) if key is not None else None
        return cell.value if cell is not None and cell.kind == DataType.DATE else None

    def number(self, key: str) -> Optional[float]:
        cell = self.cells.get(key)
        return cell.value if cell is not None and cell.kind == DataType.NUMBER else None


def is_identifier_field(name: str) -> bool:
    """Heuristic for key columns that should never become measures."""
    lowered = name.lower()
    return lowered.endswith("_id") or lowered == "id" or name.endswith("Id")


def parse_number(value: Any) -> Optional[float]:
    """Coerce numbers and numeric strings; return None when not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value or "_" in value:
            return None
    elif not isinstance(value, (int, float, Decimal)):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        # unparseable text, ints beyond float range, signaling NaN
        return None
    return number if math.isfinite(number) else None


def classify_value(value: Any, max_string_length: int) -> Cell:
    """Classify one value: date first, then number, then short string."""
    if value is None:
        return _EMPTY_CELL

    parsed = try_parse_chart_date(value)
    if parsed is not None:
        return Cell(DataType.DATE, parsed)

    number = parse_number(value)
    if number is not None:
        return Cell(DataType.NUMBER, number)

    if isinstance(value, str) and len(value) < max_string_length:
        return Cell(DataType.STRING, value)
    return _EMPTY_CELL


def classify_row(
    row: Mapping[str, Any],
    columns: Dict[str, AvailableColumn],
    max_string_length: int,
) -> ClassifiedRow:
    """Classify every column of ``row`` and widen the running column inference."""
    classified = ClassifiedRow(row=row)
    for key, value in row.items():
        column = columns.get(key)
        if column is None:
            column = AvailableColumn(field=key)
            columns[key] = column

        cell = classify_value(value, max_string_length)
        column.merge(cell.kind)
        if cell.kind != DataType.NONE:
            classified.cells[key] = cell
    return classified
