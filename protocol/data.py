"""Data structures for constraint and witness module evaluation.

Architecture Overview:
    1. Trace (this module)
       - One FF array per algebraic column, rows = n_steps * component height
       - First-round columns are filled by trace generation; the interaction
         columns are appended by a witness module once the interaction
         elements are known
       - Read and written through VirtualColumn views

    2. InteractionElements (this module)
       - The verifier randomness drawn after the first commitment round
       - Exposed to constraints as named values

Usage:
    trace = Trace.zeros(n_columns=7, length=air.trace_length)
    trace.write(context.get_virtual_column("cpu/registers/ap"), ap_values)
    witness.compute_interaction_columns(trace, air)
"""

import random
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Sequence

from primitives.field import FF, FFPoly, STARK_PRIME, to_field
from protocol.trace_context import VirtualColumn


@dataclass
class Trace:
    """Column-major trace of field elements.

    Attributes:
        columns: One FF array per column; all have the same length
    """
    columns: List[FFPoly] = field(default_factory=list)

    def __post_init__(self) -> None:
        lengths = {len(c) for c in self.columns}
        assert len(lengths) <= 1, f"Columns of different lengths: {sorted(lengths)}"

    @classmethod
    def zeros(cls, n_columns: int, length: int) -> "Trace":
        return cls(columns=[FF.Zeros(length) for _ in range(n_columns)])

    @property
    def length(self) -> int:
        return len(self.columns[0]) if self.columns else 0

    @property
    def n_columns(self) -> int:
        return len(self.columns)

    def read(self, vcol: VirtualColumn) -> FFPoly:
        """Copy of all values of a virtual column, in index order."""
        return self.columns[vcol.column][vcol.row_offset::vcol.step].copy()

    def read_cell(self, vcol: VirtualColumn, index: int) -> FF:
        return self.columns[vcol.column][vcol.to_row(index) % self.length]

    def write(self, vcol: VirtualColumn, values) -> None:
        """Overwrite all values of a virtual column (ints are reduced mod p)."""
        if not isinstance(values, FF):
            values = to_field(values)
        assert len(values) == vcol.size(self.length), \
            f"Expected {vcol.size(self.length)} values, got {len(values)}"
        self.columns[vcol.column][vcol.row_offset::vcol.step] = values

    def write_cell(self, vcol: VirtualColumn, index: int, value) -> None:
        if not isinstance(value, FF):
            value = to_field(value)
        self.columns[vcol.column][vcol.to_row(index) % self.length] = value

    def copy(self) -> "Trace":
        return Trace(columns=[c.copy() for c in self.columns])

    def with_columns(self, extra: Sequence[FFPoly]) -> "Trace":
        """New trace with extra columns appended (e.g., the interaction round)."""
        return Trace(columns=[c.copy() for c in self.columns] + [FF(c) for c in extra])


# Constraint value names of the interaction elements, in commitment order.
INTERACTION_ELEMENT_NAMES = (
    "memory/multi_column_perm/perm/interaction_elm",
    "memory/multi_column_perm/hash_interaction_elm0",
    "range_check16/perm/interaction_elm",
    "diluted_check/permutation/interaction_elm",
    "diluted_check/interaction_z",
    "diluted_check/interaction_alpha",
)


@dataclass(frozen=True)
class InteractionElements:
    """Random elements of the interaction round, in commitment order.

    Attributes:
        memory_perm: Permutation challenge z of the memory argument
        memory_hash: Linear combination factor alpha of (address, value)
        range_check16_perm: Permutation challenge of the 16-bit range check
        diluted_perm: Permutation challenge of the diluted pool
        diluted_z: Challenge of the diluted cumulative value
        diluted_alpha: Linear combination factor of the diluted cumulative value
    """
    memory_perm: FF
    memory_hash: FF
    range_check16_perm: FF
    diluted_perm: FF
    diluted_z: FF
    diluted_alpha: FF

    @classmethod
    def from_sequence(cls, values: Sequence) -> "InteractionElements":
        assert len(values) == 6, f"Expected 6 interaction elements, got {len(values)}"
        return cls(*[v if isinstance(v, FF) else to_field(v) for v in values])

    @classmethod
    def random(cls, seed: Optional[int] = None) -> "InteractionElements":
        rng = random.Random(seed)
        return cls.from_sequence([rng.randrange(1, STARK_PRIME) for _ in range(6)])

    def as_values(self) -> Dict[str, FF]:
        """Constraint value names of the elements."""
        return dict(zip(INTERACTION_ELEMENT_NAMES, (getattr(self, f.name) for f in fields(self))))
