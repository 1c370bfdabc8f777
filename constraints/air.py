"""CPU AIR definition: the constraint system of one layout for one trace size.

A CpuAirDefinition is built once per proof from the public parameters (number
of steps, range-check bounds, memory segments, hash constants, public memory).
It exposes the mask (the trace cells read at every evaluation point), the
constraint table, and the aggregated evaluation

    sum_i coef_i * numerator_i(x) * exclude_i(x) / vanish_i(x)

returned as a FractionFieldElement so that the caller decides when to invert.

Lifecycle:
    air = RecursiveCpuAirDefinition(n_steps, {}, rc_min, rc_max, segments, ...)
    # first commitment round...
    air = air.with_interaction_elements(elements)
    composition = air.create_composition_polynomial(air.trace_generator, coefficients)

Subclasses supply the layout, the neighbor table, the virtual columns and the
periodic columns; the constraint families are shared between layouts.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from constraints import bitwise, diluted, memory, pedersen, range_check_builtin
from constraints.base import (
    Constraint,
    ConstraintDomain,
    ConstraintValues,
    DomainFactor,
    PointConstraintContext,
    RowConstraintContext,
    TraceConstraintContext,
)
from constraints.bitwise import bitwise_constraints
from constraints.cpu import cpu_constraints
from constraints.diluted import compute_diluted_cumulative_value, diluted_constraints
from constraints.layout import Layout, Neighbor
from constraints.memory import compute_public_memory_prod, memory_constraints
from constraints.pedersen import pedersen_constraints
from constraints.range_check16 import range_check16_constraints
from constraints.range_check_builtin import range_check_builtin_constraints
from primitives.field import FF, ONE, ZERO, FractionFieldElement, get_omega, powers, to_field
from primitives.pedersen import STARK_PEDERSEN_CONTEXT, PedersenHashContext
from primitives.polynomial import PeriodicColumn
from protocol.air_config import (
    ConfigurationError,
    InteractionParams,
    InteractionPhaseError,
    InvalidDynamicParamsError,
    MemorySegment,
    get_segment,
)
from protocol.data import INTERACTION_ELEMENT_NAMES, InteractionElements, Trace
from protocol.trace_context import TraceGenerationContext, VirtualColumn

logger = logging.getLogger(__name__)

# Builtins whose segment begin address is resolved when the layout enables them.
ADDRESSED_BUILTINS = (
    "pedersen",
    "range_check",
    "range_check96",
    "ecdsa",
    "bitwise",
    "ec_op",
    "keccak",
    "poseidon",
)

# (layout attribute enabling the family, builder), in constraint slot order.
CONSTRAINT_FAMILIES: Tuple[Tuple[Optional[str], Callable], ...] = (
    (None, cpu_constraints),
    (None, memory_constraints),
    (None, range_check16_constraints),
    ("diluted_pool", diluted_constraints),
    ("pedersen", pedersen_constraints),
    ("range_check", range_check_builtin_constraints),
    ("bitwise", bitwise_constraints),
)

# Values only known once the interaction elements are drawn.
INTERACTION_VALUE_NAMES = INTERACTION_ELEMENT_NAMES + (
    memory.PUBLIC_MEMORY_PROD,
    diluted.FINAL_CUM_VALUE,
)


class AirPhase(Enum):
    FIRST_ROUND = "first_round"
    INTERACTION = "interaction"


@dataclass(frozen=True)
class ConstraintViolation:
    """A constraint that does not vanish on a row of its domain."""
    index: int
    name: str
    row: int


class CpuAirDefinition(ABC):
    """Constraint system of a CPU AIR layout.

    Attributes:
        layout: Static layout descriptor
        neighbors: Mask cells, in mask order
        virtual_columns: Name -> VirtualColumn of every logical trace quantity
        periodic_column_names: Names of the periodic columns, in order
        dynamic_param_names: Dynamic parameters the layout requires (none for
            static layouts)
    """

    layout: Layout
    neighbors: Tuple[Neighbor, ...] = ()
    virtual_columns: Mapping[str, VirtualColumn] = {}
    periodic_column_names: Tuple[str, ...] = ()
    dynamic_param_names: Tuple[str, ...] = ()

    def __init__(
        self,
        n_steps: int,
        dynamic_params: Mapping[str, int],
        rc_min: int,
        rc_max: int,
        mem_segment_addresses: Mapping[str, MemorySegment],
        hash_context: PedersenHashContext = STARK_PEDERSEN_CONTEXT,
        public_memory: Iterable[Tuple[int, int]] = (),
    ) -> None:
        """Build the constraint system.

        Args:
            n_steps: Number of CPU steps (power of 2)
            dynamic_params: Values of the layout's dynamic parameters
            rc_min: Smallest value in the 16-bit range-check pool
            rc_max: Largest value in the 16-bit range-check pool
            mem_segment_addresses: Segment name -> MemorySegment; needs program,
                execution and one segment per addressed builtin of the layout
            hash_context: Pedersen hash constants
            public_memory: (address, value) pairs of the public memory

        Raises:
            ConfigurationError: If the parameters do not describe a valid instance
            SegmentNotFoundError: If a required segment is missing
            InvalidDynamicParamsError: If dynamic_params does not match the layout
        """
        if n_steps <= 0 or n_steps & (n_steps - 1):
            raise ConfigurationError(f"n_steps must be a power of 2, got {n_steps}")
        self.n_steps = n_steps
        self.trace_length = self.layout.trace_length(n_steps)
        if self.trace_length < self.layout.max_row_ratio:
            raise ConfigurationError(
                f"Trace length {self.trace_length} is shorter than one instance of every "
                f"builtin ({self.layout.max_row_ratio} rows)"
            )
        self.dynamic_params = self.parse_dynamic_params(dynamic_params)

        rc_min, rc_max = int(rc_min), int(rc_max)
        if not 0 <= rc_min <= rc_max < 2 ** self.layout.offset_bits:
            raise ConfigurationError(f"Invalid range-check bounds [{rc_min}, {rc_max}]")
        self.rc_min = rc_min
        self.rc_max = rc_max

        execution = get_segment(mem_segment_addresses, "execution")
        program = get_segment(mem_segment_addresses, "program")
        self.initial_ap = execution.begin_addr
        self.final_ap = execution.stop_ptr
        self.initial_pc = program.begin_addr
        self.final_pc = program.stop_ptr
        self.builtin_begin_addrs: Dict[str, Optional[int]] = {
            name: (get_segment(mem_segment_addresses, name).begin_addr
                   if self.layout.is_enabled(name) else None)
            for name in ADDRESSED_BUILTINS
        }

        self.hash_context = hash_context
        self.public_memory: List[Tuple[int, int]] = [(int(a), int(v)) for a, v in public_memory]
        self.phase = AirPhase.FIRST_ROUND
        self.interaction_elements: Optional[InteractionElements] = None

        self._trace_context = TraceGenerationContext()
        for name, vcol in self.virtual_columns.items():
            self._trace_context.add_virtual_column(name, vcol)
        self.constraints = self._build_constraints()
        self._values = ConstraintValues(self._first_round_values(), INTERACTION_VALUE_NAMES)
        self._mask_index = {(n.column, n.row): i for i, n in enumerate(self.neighbors)}
        self._periodic_factors, self._point_exponents, self._gen_exponents = \
            self._collect_domain_factors()
        self._periodic_cache: Dict[int, List[PeriodicColumn]] = {}

        logger.debug(
            "Built %s AIR: n_steps=%d, trace_length=%d, %d constraints, %d neighbors",
            self.layout.name, n_steps, self.trace_length, len(self.constraints),
            len(self.neighbors),
        )

    # --- Layout queries ---

    @property
    def layout_name(self) -> str:
        return self.layout.name

    @property
    def layout_code(self) -> int:
        return self.layout.code

    def get_mask(self) -> List[Tuple[int, int]]:
        """(row offset, column) of every neighbor, in mask order."""
        return [(n.row, n.column) for n in self.neighbors]

    def num_columns(self) -> int:
        return self.layout.n_columns

    def num_random_coefficients(self) -> int:
        return len(self.constraints)

    def composition_degree_bound(self) -> int:
        return self.layout.constraint_degree * self.trace_length

    def get_interaction_params(self) -> InteractionParams:
        return InteractionParams(
            n_columns_first=self.layout.n_columns_first,
            n_columns_second=self.layout.n_columns_second,
            n_interaction_elements=self.layout.n_interaction_elements,
        )

    def get_trace_generation_context(self) -> TraceGenerationContext:
        return self._trace_context

    def parse_dynamic_params(self, params: Mapping[str, int]) -> List[int]:
        """Flatten dynamic params into the layout's parameter order.

        Raises:
            InvalidDynamicParamsError: On an unknown or missing parameter name
        """
        unknown = sorted(set(params) - set(self.dynamic_param_names))
        if unknown:
            raise InvalidDynamicParamsError(
                f"Unknown dynamic params for layout '{self.layout.name}': {unknown}"
            )
        missing = [name for name in self.dynamic_param_names if name not in params]
        if missing:
            raise InvalidDynamicParamsError(f"Missing dynamic params: {missing}")
        return [int(params[name]) for name in self.dynamic_param_names]

    def builtin_begin_addr(self, name: str) -> Optional[int]:
        """Begin address of a builtin segment, or None when the layout disables it."""
        return self.builtin_begin_addrs[name]

    @property
    def trace_generator(self) -> FF:
        return get_omega(self.trace_length.bit_length() - 1)

    # --- Construction helpers ---

    def _build_constraints(self) -> List[Constraint]:
        constraints: List[Constraint] = []
        for attribute, build in CONSTRAINT_FAMILIES:
            if attribute is None or getattr(self.layout, attribute) is not None:
                constraints.extend(build(self.layout, self._trace_context))
        names = [c.name for c in constraints]
        assert len(set(names)) == len(names), "Duplicate constraint names"
        return constraints

    def _first_round_values(self) -> Dict[str, FF]:
        values = {
            "half_offset_size": FF(2 ** (self.layout.offset_bits - 1)),
            "initial_ap": to_field(self.initial_ap),
            "final_ap": to_field(self.final_ap),
            "initial_pc": to_field(self.initial_pc),
            "final_pc": to_field(self.final_pc),
            "rc_min": to_field(self.rc_min),
            "rc_max": to_field(self.rc_max),
            "range_check16/perm/public_memory_prod": ONE,
        }
        if self.layout.diluted_pool is not None:
            values[diluted.FIRST_ELEMENT] = ZERO
            values[diluted.PUBLIC_MEMORY_PROD] = ONE
        if self.layout.pedersen is not None:
            values[pedersen.INITIAL_ADDR] = to_field(self.builtin_begin_addrs["pedersen"])
            values[pedersen.SHIFT_POINT_X] = self.hash_context.shift_point.x
            values[pedersen.SHIFT_POINT_Y] = self.hash_context.shift_point.y
        if self.layout.range_check is not None:
            values[range_check_builtin.INITIAL_ADDR] = \
                to_field(self.builtin_begin_addrs["range_check"])
        if self.layout.bitwise is not None:
            values[bitwise.INITIAL_VAR_POOL_ADDR] = to_field(self.builtin_begin_addrs["bitwise"])
        return values

    def _collect_domain_factors(self):
        n = self.trace_length
        periodic_factors: List[DomainFactor] = []
        point_exponents: List[int] = []
        gen_exponents: List[int] = []
        for constraint in self.constraints:
            for factor in constraint.domain.vanish + constraint.domain.exclude:
                if factor.period is not None:
                    if factor not in periodic_factors:
                        periodic_factors.append(factor)
                    if factor.point_exponent(n) not in point_exponents:
                        point_exponents.append(factor.point_exponent(n))
                if factor.gen_exponent(n) not in gen_exponents:
                    gen_exponents.append(factor.gen_exponent(n))
        return periodic_factors, point_exponents, gen_exponents

    # --- Interaction ---

    def with_interaction_elements(self, elements: InteractionElements) -> "CpuAirDefinition":
        """Copy of this AIR in the interaction phase.

        Raises:
            InteractionPhaseError: If the interaction elements are already set
        """
        if self.phase is AirPhase.INTERACTION:
            raise InteractionPhaseError("Interaction elements are already set")
        air = copy.copy(self)
        values = dict(self._values)
        values.update(elements.as_values())
        values[memory.PUBLIC_MEMORY_PROD] = compute_public_memory_prod(
            self.public_memory, elements.memory_perm, elements.memory_hash
        )
        if self.layout.diluted_pool is not None:
            values[diluted.FINAL_CUM_VALUE] = compute_diluted_cumulative_value(
                elements.diluted_z,
                elements.diluted_alpha,
                self.layout.diluted_pool.spacing,
                self.layout.diluted_pool.n_bits,
            )
        air._values = ConstraintValues(values, INTERACTION_VALUE_NAMES)
        air.interaction_elements = elements
        air.phase = AirPhase.INTERACTION
        logger.debug("%s AIR entered the interaction phase", self.layout.name)
        return air

    @property
    def values(self) -> ConstraintValues:
        return self._values

    # --- Periodic columns ---

    @abstractmethod
    def build_periodic_columns(self, trace_generator) -> List[PeriodicColumn]:
        """Periodic columns of the layout, in periodic_column_names order."""
        pass

    def periodic_columns(self, trace_generator=None) -> List[PeriodicColumn]:
        """Cached build_periodic_columns for the trace domain generator."""
        if trace_generator is None:
            trace_generator = self.trace_generator
        assert trace_generator == self.trace_generator, \
            "Periodic columns are defined over the canonical trace domain"
        key = int(trace_generator)
        if key not in self._periodic_cache:
            columns = self.build_periodic_columns(trace_generator)
            assert len(columns) == len(self.periodic_column_names), \
                f"Expected {len(self.periodic_column_names)} periodic columns, got {len(columns)}"
            self._periodic_cache[key] = columns
            logger.debug("Built %d periodic columns for %s", len(columns), self.layout.name)
        return self._periodic_cache[key]

    # --- Domains ---

    def point_exponents(self) -> List[int]:
        """Distinct exponents k of the periodic domain factors x^k - shift."""
        return list(self._point_exponents)

    def gen_exponents(self) -> List[int]:
        """Distinct exponents e of the domain shifts g^e."""
        return list(self._gen_exponents)

    def point_powers(self, point) -> List[FF]:
        return [point ** k for k in self._point_exponents]

    def shifts(self, trace_generator=None) -> List[FF]:
        if trace_generator is None:
            trace_generator = self.trace_generator
        return [trace_generator ** e for e in self._gen_exponents]

    def domain_evals_at_point(self, point_powers: Sequence, shifts: Sequence) -> List:
        """Value of every periodic domain factor at one point (or array of points)."""
        assert len(point_powers) == len(self._point_exponents), \
            f"Expected {len(self._point_exponents)} point powers, got {len(point_powers)}"
        assert len(shifts) == len(self._gen_exponents), \
            f"Expected {len(self._gen_exponents)} shifts, got {len(shifts)}"
        n = self.trace_length
        return [
            point_powers[self._point_exponents.index(f.point_exponent(n))]
            - shifts[self._gen_exponents.index(f.gen_exponent(n))]
            for f in self._periodic_factors
        ]

    def precompute_domain_evals_on_coset(
        self,
        point,
        generator,
        point_exponents: Sequence[int],
        shifts: Sequence,
        coset_size: Optional[int] = None,
    ) -> List[FF]:
        """Periodic domain factors over the coset point * <generator>.

        The factor x^k - shift takes coset_size / k distinct values over a coset
        of coset_size points, so only one period is returned per factor: entry
        i of the result for factor f is f(point * generator^i).

        Args:
            point: Coset offset
            generator: Generator of the coset's subgroup, of order coset_size
            point_exponents: point_exponents() of this AIR
            shifts: shifts() of this AIR
            coset_size: Order of generator (defaults to the trace length)

        Returns:
            One FF array per periodic domain factor
        """
        assert list(point_exponents) == self._point_exponents, "Unexpected point exponents"
        assert len(shifts) == len(self._gen_exponents), \
            f"Expected {len(self._gen_exponents)} shifts, got {len(shifts)}"
        if coset_size is None:
            coset_size = self.trace_length
        n = self.trace_length
        result = []
        for factor in self._periodic_factors:
            k = factor.point_exponent(n)
            assert coset_size % k == 0, f"Coset size {coset_size} is not a multiple of {k}"
            period = coset_size // k
            values = powers(generator ** k, period) * FF(point) ** k
            result.append(values - shifts[self._gen_exponents.index(factor.gen_exponent(n))])
        return result

    # --- Evaluation ---

    def constraints_eval(
        self,
        neighbors: Sequence,
        periodic_columns: Sequence,
        random_coefficients: Sequence,
        point,
        shifts: Sequence,
        precomp_domains: Sequence,
    ) -> FractionFieldElement:
        """Random linear combination of all constraint quotients at a point.

        Args:
            neighbors: Mask values at point * g^row, in mask order
            periodic_columns: Periodic column values at the point
            random_coefficients: One coefficient per constraint
            point: Evaluation point
            shifts: shifts() of this AIR
            precomp_domains: Periodic domain factors at the point, as returned by
                domain_evals_at_point

        Returns:
            The combination as numerator / denominator

        Raises:
            InteractionPhaseError: If the interaction elements are not set
        """
        assert len(neighbors) == len(self.neighbors), \
            f"Expected {len(self.neighbors)} neighbors, got {len(neighbors)}"
        assert len(periodic_columns) == len(self.periodic_column_names), \
            f"Expected {len(self.periodic_column_names)} periodic values, got {len(periodic_columns)}"
        assert len(random_coefficients) == self.num_random_coefficients(), \
            f"Expected {self.num_random_coefficients()} coefficients, got {len(random_coefficients)}"
        assert len(shifts) == len(self._gen_exponents), \
            f"Expected {len(self._gen_exponents)} shifts, got {len(shifts)}"
        assert len(precomp_domains) == len(self._periodic_factors), \
            f"Expected {len(self._periodic_factors)} domain values, got {len(precomp_domains)}"
        if self.phase is not AirPhase.INTERACTION:
            raise InteractionPhaseError("constraints_eval requires the interaction elements")

        ctx = PointConstraintContext(
            neighbors,
            self._mask_index,
            dict(zip(self.periodic_column_names, periodic_columns)),
            self.virtual_columns,
            self._values,
            self.layout.n_columns_first,
        )
        return self.aggregate(ctx, random_coefficients, point, shifts, precomp_domains)

    def aggregate(self, ctx, random_coefficients, point, shifts, precomp_domains):
        """Sum constraint quotients, dividing once per distinct domain.

        point and the precomputed domain values may be scalars or arrays of the
        same shape; single-row factors are evaluated as point - shift.
        """
        n = self.trace_length

        def factor_value(factor: DomainFactor):
            if factor.period is not None:
                return precomp_domains[self._periodic_factors.index(factor)]
            return point - shifts[self._gen_exponents.index(factor.gen_exponent(n))]

        numerators: Dict[ConstraintDomain, object] = {}
        for constraint, coefficient in zip(self.constraints, random_coefficients):
            term = coefficient * constraint(ctx)
            if constraint.domain in numerators:
                numerators[constraint.domain] = numerators[constraint.domain] + term
            else:
                numerators[constraint.domain] = term

        result = None
        for constraint_domain, numerator in numerators.items():
            denominator = _product([factor_value(f) for f in constraint_domain.vanish])
            for factor in constraint_domain.exclude:
                numerator = numerator * factor_value(factor)
            fraction = FractionFieldElement(numerator, denominator)
            result = fraction if result is None else result + fraction
        return result

    def create_composition_polynomial(self, trace_generator, random_coefficients: Sequence):
        from protocol.composition import CompositionPolynomial

        return CompositionPolynomial(self, trace_generator, random_coefficients)

    # --- Row checks ---

    def _select(self, constraint_names: Optional[Iterable[str]]) -> List[int]:
        """Indices of constraints matching the names (or name prefixes ending a path segment)."""
        if constraint_names is None:
            return list(range(len(self.constraints)))
        wanted = list(constraint_names)
        selected = [
            i for i, c in enumerate(self.constraints)
            if any(c.name == w or c.name.startswith(w.rstrip("/") + "/") for w in wanted)
        ]
        assert selected, f"No constraint matches {wanted}"
        return selected

    def _trace_eval_context(self, trace: Trace) -> TraceConstraintContext:
        assert trace.length == self.trace_length, \
            f"Trace has {trace.length} rows, expected {self.trace_length}"
        periodic = {
            name: column.trace_values()
            for name, column in zip(self.periodic_column_names, self.periodic_columns())
        }
        return TraceConstraintContext(
            trace.columns, periodic, self.virtual_columns, self._values,
            self.layout.n_columns_first,
        )

    def _row_eval_context(self, trace: Trace, row: int) -> RowConstraintContext:
        assert trace.length == self.trace_length, \
            f"Trace has {trace.length} rows, expected {self.trace_length}"
        periodic = {
            name: column.trace_values()
            for name, column in zip(self.periodic_column_names, self.periodic_columns())
        }
        return RowConstraintContext(
            trace.columns, row, periodic, self.virtual_columns, self._values,
            self.layout.n_columns_first,
        )

    def constraint_residual(self, index: int, trace: Trace, row: int) -> FF:
        """Numerator of constraint index evaluated at one trace row."""
        return self.constraints[index](self._row_eval_context(trace, row))

    def find_violations(
        self,
        trace: Trace,
        constraint_names: Optional[Iterable[str]] = None,
        rows: Optional[Iterable[int]] = None,
    ) -> List[ConstraintViolation]:
        """Every (constraint, row) pair with a nonzero residual on the constraint's domain.

        Raises:
            InteractionPhaseError: If a selected constraint reads interaction data
                that is not available yet
        """
        ctx = self._trace_eval_context(trace)
        row_filter = None
        if rows is not None:
            row_filter = np.zeros(self.trace_length, dtype=bool)
            row_filter[[r % self.trace_length for r in rows]] = True
        violations = []
        for index in self._select(constraint_names):
            constraint = self.constraints[index]
            residuals = constraint(ctx)
            bad = (residuals != ZERO) & constraint.domain.row_mask(self.trace_length)
            if row_filter is not None:
                bad &= row_filter
            violations.extend(
                ConstraintViolation(index, constraint.name, int(r)) for r in np.flatnonzero(bad)
            )
        return violations

    def combined_residuals(
        self,
        trace: Trace,
        random_coefficients: Sequence,
        constraint_names: Optional[Iterable[str]] = None,
    ) -> FF:
        """Per row, sum of coef_i * residual_i over constraints whose domain holds the row."""
        assert len(random_coefficients) == self.num_random_coefficients(), \
            f"Expected {self.num_random_coefficients()} coefficients, got {len(random_coefficients)}"
        ctx = self._trace_eval_context(trace)
        total = FF.Zeros(self.trace_length)
        for index in self._select(constraint_names):
            constraint = self.constraints[index]
            residuals = constraint(ctx) * random_coefficients[index]
            mask = constraint.domain.row_mask(self.trace_length)
            total[mask] = total[mask] + residuals[mask]
        return total

    def combined_residual_at_row(
        self,
        trace: Trace,
        row: int,
        random_coefficients: Sequence,
        constraint_names: Optional[Iterable[str]] = None,
    ) -> FF:
        """combined_residuals at one row; zero iff the selected constraints hold there
        (for random coefficients, up to negligible probability)."""
        assert len(random_coefficients) == self.num_random_coefficients(), \
            f"Expected {self.num_random_coefficients()} coefficients, got {len(random_coefficients)}"
        row = row % self.trace_length
        ctx = self._row_eval_context(trace, row)
        total = ZERO
        for index in self._select(constraint_names):
            constraint = self.constraints[index]
            if constraint.domain.row_mask(self.trace_length)[row]:
                total = total + random_coefficients[index] * constraint(ctx)
        return total


def _product(values: Sequence):
    result = values[0]
    for value in values[1:]:
        result = result * value
    return result
