"""Base classes for constraint evaluation.

ConstraintContext provides a uniform interface for constraint evaluation that works
over whole traces (returns arrays) and at a single point (returns scalars). The same
constraint code can be used in every context thanks to galois broadcasting.

Example:
    def ap_update(ctx: ConstraintContext):
        ap = ctx.cell('cpu/registers/ap')
        return ctx.cell('cpu/registers/ap', 1) - (ap + ctx.value('ap_increment'))

    # Works over a trace (arrays, one value per row)
    residuals = ap_update(TraceConstraintContext(columns, ...))

    # Works at a point (scalars, from mask neighbor values)
    residual = ap_update(PointConstraintContext(neighbors, ...))
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from primitives.field import FF, FFPoly
from protocol.air_config import InteractionPhaseError
from protocol.trace_context import VirtualColumn


class ConstraintValues(dict):
    """Named scalars read by constraints (bounds, addresses, interaction elements).

    Interaction values are absent until the interaction phase; reading one
    before then raises InteractionPhaseError instead of KeyError.
    """

    def __init__(self, values: Mapping[str, FF], interaction_names: Iterable[str] = ()):
        super().__init__(values)
        self.interaction_names = frozenset(interaction_names)

    def __missing__(self, key: str):
        if key in self.interaction_names:
            raise InteractionPhaseError(
                f"Value '{key}' is only available after the interaction elements are set"
            )
        raise KeyError(f"No constraint value '{key}'")


class ConstraintContext(ABC):
    """Uniform interface for constraint evaluation - works over traces and at points."""

    def __init__(
        self,
        virtual_columns: Mapping[str, VirtualColumn],
        values: Mapping[str, FF],
        n_first_round_columns: int,
    ) -> None:
        self._virtual_columns = virtual_columns
        self._values = values
        self._n_first_round_columns = n_first_round_columns

    @abstractmethod
    def _neighbor(self, column: int, row: int):
        pass

    @abstractmethod
    def periodic(self, name: str):
        """Get periodic column value.

        Returns:
            Trace contexts: array of values at all rows
            Point context: scalar evaluation at the point
        """
        pass

    @abstractmethod
    def _has_column(self, column: int) -> bool:
        pass

    def neighbor(self, column: int, row: int):
        """Get trace column at a row offset from the current row.

        Raises:
            InteractionPhaseError: If column belongs to the interaction round and
                the context has no interaction data
        """
        if column >= self._n_first_round_columns and not self._has_column(column):
            raise InteractionPhaseError(
                f"Column {column} is an interaction column and is not available yet"
            )
        return self._neighbor(column, row)

    def cell(self, name: str, index: int = 0):
        """Get the index-th element of a virtual column, relative to the current row."""
        vcol = self._virtual_columns[name]
        return self.neighbor(vcol.column, vcol.to_row(index))

    def value(self, name: str) -> FF:
        """Get a named scalar (always scalar)."""
        return self._values[name]


class TraceConstraintContext(ConstraintContext):
    """Evaluation over every point of a domain at once - returns arrays.

    Columns hold values over a domain of size n * extend, in which one trace row
    corresponds to ``extend`` consecutive points: the trace itself (extend=1) or a
    low-degree extension coset (extend=blowup).
    """

    def __init__(
        self,
        columns: Sequence[FFPoly],
        periodic_columns: Mapping[str, FFPoly],
        virtual_columns: Mapping[str, VirtualColumn],
        values: Mapping[str, FF],
        n_first_round_columns: int,
        extend: int = 1,
    ) -> None:
        super().__init__(virtual_columns, values, n_first_round_columns)
        self._columns = columns
        self._periodic = periodic_columns
        self._extend = extend
        self._cache: Dict[Tuple[int, int], FFPoly] = {}

    def _has_column(self, column: int) -> bool:
        return column < len(self._columns)

    def _neighbor(self, column: int, row: int) -> FFPoly:
        key = (column, row)
        if key not in self._cache:
            # On extended domain, row offset is multiplied by extend factor
            self._cache[key] = np.roll(self._columns[column], -row * self._extend)
        return self._cache[key]

    def periodic(self, name: str) -> FFPoly:
        return self._periodic[name]


class RowConstraintContext(ConstraintContext):
    """Evaluation at a single trace row - returns scalars read from the trace."""

    def __init__(
        self,
        columns: Sequence[FFPoly],
        row: int,
        periodic_columns: Mapping[str, FFPoly],
        virtual_columns: Mapping[str, VirtualColumn],
        values: Mapping[str, FF],
        n_first_round_columns: int,
    ) -> None:
        super().__init__(virtual_columns, values, n_first_round_columns)
        self._columns = columns
        self._row = row
        self._periodic = periodic_columns

    def _has_column(self, column: int) -> bool:
        return column < len(self._columns)

    def _neighbor(self, column: int, row: int) -> FF:
        values = self._columns[column]
        return values[(self._row + row) % len(values)]

    def periodic(self, name: str) -> FF:
        values = self._periodic[name]
        return values[self._row % len(values)]


class PointConstraintContext(ConstraintContext):
    """Evaluation at one point from mask neighbor values - returns scalars.

    The neighbor at (column, row) is the evaluation of the column at
    point * g^row, supplied in mask order.
    """

    def __init__(
        self,
        neighbors: Sequence[FF],
        mask_index: Mapping[Tuple[int, int], int],
        periodic_values: Mapping[str, FF],
        virtual_columns: Mapping[str, VirtualColumn],
        values: Mapping[str, FF],
        n_first_round_columns: int,
    ) -> None:
        super().__init__(virtual_columns, values, n_first_round_columns)
        self._neighbors = neighbors
        self._mask_index = mask_index
        self._periodic = periodic_values

    def _has_column(self, column: int) -> bool:
        return True

    def _neighbor(self, column: int, row: int) -> FF:
        return self._neighbors[self._mask_index[(column, row)]]

    def periodic(self, name: str) -> FF:
        return self._periodic[name]


# --- Domains ---

@dataclass(frozen=True)
class DomainFactor:
    """Vanishing polynomial of a set of trace rows.

    With a period P, the rows r with r % P == offset; the polynomial is
    x^(n/P) - g^(offset * n/P). With period None, the single row offset
    (negative offsets count back from the trace length); the polynomial
    is x - g^offset.
    """
    period: Optional[int]
    offset: int = 0

    def point_exponent(self, trace_length: int) -> int:
        if self.period is None:
            return 1
        assert trace_length % self.period == 0, \
            f"Period {self.period} does not divide trace length {trace_length}"
        return trace_length // self.period

    def gen_exponent(self, trace_length: int) -> int:
        if self.period is None:
            return self.offset % trace_length
        return (self.offset * (trace_length // self.period)) % trace_length

    def rows(self, trace_length: int) -> np.ndarray:
        if self.period is None:
            return np.array([self.offset % trace_length])
        return np.arange(self.offset % self.period, trace_length, self.period)


@dataclass(frozen=True)
class ConstraintDomain:
    """Rows where a constraint must hold: product of vanish over product of exclude."""
    vanish: Tuple[DomainFactor, ...]
    exclude: Tuple[DomainFactor, ...] = ()

    def rows(self, trace_length: int) -> np.ndarray:
        included = np.unique(np.concatenate([f.rows(trace_length) for f in self.vanish]))
        if not self.exclude:
            return included
        excluded = np.concatenate([f.rows(trace_length) for f in self.exclude])
        return np.setdiff1d(included, excluded)

    def row_mask(self, trace_length: int) -> np.ndarray:
        mask = np.zeros(trace_length, dtype=bool)
        mask[self.rows(trace_length)] = True
        return mask


def every(period: int = 1, offset: int = 0) -> DomainFactor:
    """Rows r with r % period == offset."""
    return DomainFactor(period, offset)


def row(index: int) -> DomainFactor:
    """A single row; negative indices count back from the trace length."""
    return DomainFactor(None, index)


def domain(*vanish: DomainFactor, excluding: Sequence[DomainFactor] = ()) -> ConstraintDomain:
    return ConstraintDomain(tuple(vanish), tuple(excluding))


# --- Constraints ---

@dataclass(frozen=True)
class Constraint:
    """A polynomial identity that must vanish on every row of its domain.

    Attributes:
        name: Stable hierarchical name, e.g. 'cpu/decode/opcode_range_check/bit'
        domain: Rows on which the expression must be zero
        expression: Callable evaluating the residual in a ConstraintContext
    """
    name: str
    domain: ConstraintDomain
    expression: Callable[[ConstraintContext], Any]

    def __call__(self, ctx: ConstraintContext):
        return self.expression(ctx)
