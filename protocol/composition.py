"""Composition polynomial of a CPU AIR.

The composition polynomial is the random linear combination of all constraint
quotients. It is evaluated in two ways:

1. At a single out-of-domain point, from the mask neighbor values the prover
   sends (verifier side).
2. Over a whole coset of the low-degree extension, from the extended trace
   columns (prover side). A neighbor at row offset r is the column shifted by
   r * blowup positions on the extended domain.

Both go through CpuAirDefinition.aggregate, so they agree wherever they overlap.
"""

import logging
from typing import Sequence

import numpy as np

from constraints.air import AirPhase
from constraints.base import TraceConstraintContext
from primitives.field import FF, get_omega, powers
from protocol.air_config import InteractionPhaseError

logger = logging.getLogger(__name__)


class CompositionPolynomial:
    """Constraint quotients of one AIR combined with fixed random coefficients."""

    def __init__(self, air, trace_generator, random_coefficients: Sequence) -> None:
        assert len(random_coefficients) == air.num_random_coefficients(), \
            f"Expected {air.num_random_coefficients()} coefficients, got {len(random_coefficients)}"
        self.air = air
        self.trace_generator = trace_generator
        self.random_coefficients = random_coefficients
        self.periodic_columns = air.periodic_columns(trace_generator)
        self.shifts = air.shifts(trace_generator)

    @property
    def degree_bound(self) -> int:
        return self.air.composition_degree_bound()

    def eval_at_point(self, point, neighbors: Sequence) -> FF:
        """Composition value at point, given the mask values at point * g^row."""
        periodic_values = [column.eval_at_point(point) for column in self.periodic_columns]
        domains = self.air.domain_evals_at_point(self.air.point_powers(point), self.shifts)
        fraction = self.air.constraints_eval(
            neighbors, periodic_values, self.random_coefficients, point, self.shifts, domains
        )
        return fraction.to_field_element()

    def eval_on_coset(self, coset_offset, columns: Sequence, blowup: int) -> FF:
        """Composition values over coset_offset * <omega>, omega of order trace_length * blowup.

        Args:
            coset_offset: Coset offset; must lie outside the trace domain
            columns: Every trace column (first round and interaction), extended
                to the coset
            blowup: Ratio between the coset size and the trace length

        Returns:
            One value per coset point, in the order of the extended columns
        """
        air = self.air
        if air.phase is not AirPhase.INTERACTION:
            raise InteractionPhaseError("eval_on_coset requires the interaction elements")
        size = air.trace_length * blowup
        assert len(columns) == air.num_columns(), \
            f"Expected {air.num_columns()} columns, got {len(columns)}"
        assert all(len(c) == size for c in columns), f"Columns must have {size} values"

        omega = get_omega(size.bit_length() - 1)
        points = powers(omega, size) * FF(coset_offset)
        precomputed = air.precompute_domain_evals_on_coset(
            FF(coset_offset), omega, air.point_exponents(), self.shifts, coset_size=size
        )
        domains = [values[np.arange(size) % len(values)] for values in precomputed]
        periodic = {
            name: column.coset_values(coset_offset, size)
            for name, column in zip(air.periodic_column_names, self.periodic_columns)
        }
        ctx = TraceConstraintContext(
            columns, periodic, air.virtual_columns, air.values,
            air.layout.n_columns_first, extend=blowup,
        )
        logger.debug("Evaluating composition polynomial on a coset of size %d", size)
        fraction = air.aggregate(ctx, self.random_coefficients, points, self.shifts, domains)
        return fraction.to_field_element()
