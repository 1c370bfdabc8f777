"""Virtual columns: named strided views into the trace.

Every logical quantity of the CPU AIR (a register, a memory address, a builtin
input) lives in one trace column at rows ``row_offset + step * i``. Constraint
families address the trace only through these names, so the same family code
serves every layout that provides the names.
"""

from dataclasses import dataclass
from typing import Dict, Iterator


@dataclass(frozen=True)
class VirtualColumn:
    column: int
    step: int
    row_offset: int

    def to_row(self, index: int) -> int:
        """Row (relative to the evaluation row) of the index-th element."""
        return self.row_offset + self.step * index

    def size(self, trace_length: int) -> int:
        return trace_length // self.step


class TraceGenerationContext:
    """Name -> VirtualColumn aliases consumed by trace generation."""

    def __init__(self) -> None:
        self._virtual_columns: Dict[str, VirtualColumn] = {}

    def add_virtual_column(self, name: str, column: VirtualColumn) -> None:
        assert name not in self._virtual_columns, f"Virtual column '{name}' already exists"
        self._virtual_columns[name] = column

    def get_virtual_column(self, name: str) -> VirtualColumn:
        """Raises KeyError if the layout has no such virtual column."""
        try:
            return self._virtual_columns[name]
        except KeyError:
            raise KeyError(f"No virtual column '{name}'") from None

    def __contains__(self, name: str) -> bool:
        return name in self._virtual_columns

    def __iter__(self) -> Iterator[str]:
        return iter(self._virtual_columns)

    def __len__(self) -> int:
        return len(self._virtual_columns)

    def as_dict(self) -> Dict[str, VirtualColumn]:
        return dict(self._virtual_columns)
