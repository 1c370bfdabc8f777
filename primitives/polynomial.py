"""Abstract polynomial operations.

This module provides protocol-level polynomial operations without exposing
implementation details like NTT/INTT. Constraint code should use these
abstractions rather than directly invoking NTT primitives.
"""

import numpy as np

from primitives.field import FF, ZERO
from primitives.ntt import NTT


def to_coefficients(evaluations: np.ndarray, domain_size: int) -> np.ndarray:
    """Convert polynomial from evaluation form to coefficient form.

    Args:
        evaluations: Polynomial values at the domain points omega^i
        domain_size: Size of evaluation domain (must be power of 2)

    Returns:
        Polynomial coefficients, lowest degree first
    """
    return NTT(domain_size).intt(evaluations)


def to_evaluations(coefficients: np.ndarray, domain_size: int) -> np.ndarray:
    """Convert polynomial from coefficient form to evaluation form.

    Args:
        coefficients: Polynomial coefficients, lowest degree first
        domain_size: Size of evaluation domain (must be power of 2)

    Returns:
        Polynomial evaluations at omega^i
    """
    return NTT(domain_size).ntt(coefficients)


def extend_to_coset(evaluations: np.ndarray, blowup: int, offset) -> np.ndarray:
    """Low-degree extension of trace values onto offset * <omega_ext>.

    Args:
        evaluations: Values on the trace domain (size n)
        blowup: Ratio between the extended and the trace domain size
        offset: Coset offset (must lie outside the trace domain)

    Returns:
        n * blowup values; index i holds the evaluation at offset * omega_ext^i
    """
    return NTT(len(evaluations)).extend_pol(evaluations, blowup, offset)


def evaluate(coefficients: np.ndarray, x):
    """Horner evaluation of coefficients (lowest degree first) at x.

    x may be a scalar or an array of points.
    """
    acc = ZERO if np.ndim(x) == 0 else FF.Zeros(np.shape(x))
    for c in coefficients[::-1]:
        acc = acc * x + c
    return acc


class PeriodicColumn:
    """Column of a trace whose values repeat with a fixed period.

    Row ``k * column_step`` of every period holds ``values[k]``. The column is the
    polynomial ``q(x^n_copies)`` where ``q`` interpolates ``values`` over the
    subgroup of size ``len(values)`` and ``n_copies = trace_length / period``.
    Rows between the steps take whatever value ``q`` has there.
    """

    def __init__(self, values, trace_length: int, column_step: int = 1) -> None:
        self.values = FF(values)
        n_values = len(self.values)
        assert n_values > 0 and (n_values & (n_values - 1)) == 0, \
            "Periodic column size must be a power of 2"
        self.column_step = column_step
        self.period = n_values * column_step
        assert trace_length % self.period == 0, \
            f"Period {self.period} does not divide trace length {trace_length}"
        self.trace_length = trace_length
        self.n_copies = trace_length // self.period
        self.coefficients = to_coefficients(self.values, n_values)

    def eval_at_point(self, x):
        """Evaluate the column polynomial at x (scalar or array)."""
        return evaluate(self.coefficients, x ** self.n_copies)

    def trace_values(self) -> np.ndarray:
        """Values on every row of the trace domain <g>, g of order trace_length."""
        padded = FF.Zeros(self.period)
        padded[: len(self.coefficients)] = self.coefficients
        one_period = NTT(self.period).ntt(padded)
        return one_period[np.arange(self.trace_length) % self.period]

    def coset_values(self, offset, size: int) -> np.ndarray:
        """Values on offset * <omega>, omega of order size (a multiple of trace_length)."""
        assert size % self.trace_length == 0, "Coset size must be a multiple of trace length"
        distinct = size // self.n_copies
        padded = FF.Zeros(distinct)
        padded[: len(self.coefficients)] = self.coefficients
        values = NTT(distinct).coset_ntt(padded, FF(offset) ** self.n_copies)
        return values[np.arange(size) % distinct]

    def __len__(self) -> int:
        return len(self.values)
