"""STARK prime field GF(p) with p = 2^251 + 17 * 2^192 + 1.

Uses galois library for all field arithmetic. FF is the field type; scalars are
0-d FieldArrays and every helper here also accepts 1-d arrays.

The multiplicative group has order p - 1 = 2^192 * (2^59 + 17), so the field has
power-of-two subgroups up to size 2^192. The generator 3 is used to derive all
roots of unity, so get_omega(k) ** 2 == get_omega(k - 1) for every k.
"""

from typing import Iterable, Union

import galois
import numpy as np

# --- Field Construction ---

STARK_PRIME = 2**251 + 17 * 2**192 + 1
GENERATOR = 3
MAX_LOG_DOMAIN_SIZE = 192

FF = galois.GF(STARK_PRIME, primitive_element=GENERATOR, verify=False)
"""Base field GF(p) - STARK prime field."""

# Type aliases
FFPoly = FF  # Array of field elements

ZERO = FF(0)
ONE = FF(1)
TWO = FF(2)


def to_field(value: Union[int, Iterable[int]]) -> FF:
    """Construct field element(s) from (possibly negative or oversized) integers."""
    if isinstance(value, (int, np.integer)):
        return FF(int(value) % STARK_PRIME)
    return FF([int(v) % STARK_PRIME for v in value])


# --- Roots of Unity ---

def get_omega(n_bits: int) -> FF:
    """Return primitive 2^n_bits-th root of unity."""
    assert 0 <= n_bits <= MAX_LOG_DOMAIN_SIZE, f"No 2^{n_bits}-th root of unity in the field"
    # Exponent exceeds int64, so the power is taken on Python ints.
    return FF(pow(GENERATOR, (STARK_PRIME - 1) >> n_bits, STARK_PRIME))


def get_omega_inv(n_bits: int) -> FF:
    """Return inverse of primitive 2^n_bits-th root of unity."""
    return get_omega(n_bits) ** -1


def powers(base: FF, count: int) -> FF:
    """Return [1, base, base^2, ..., base^(count-1)] using log(count) vector products."""
    result = FF.Ones(count)
    size = 1
    step = base
    while size < count:
        end = min(2 * size, count)
        result[size:end] = result[: end - size] * step
        step = step * step
        size = end
    return result


# --- Montgomery Batch Inversion ---

def batch_inverse(values: FF) -> FF:
    """Invert every element of a 1-d array with a single field inversion.

    inverse[i] = (prefix product before i) * (suffix product after i) / (product of all).

    Raises:
        ZeroDivisionError: If any element is zero
    """
    if len(values) <= 1:
        return values ** -1
    prefix = np.multiply.accumulate(values)
    suffix = np.multiply.accumulate(values[::-1])[::-1]
    before = np.concatenate([FF.Ones(1), prefix[:-1]])
    after = np.concatenate([suffix[1:], FF.Ones(1)])
    return before * after * prefix[-1] ** -1


# --- Fractions ---

class FractionFieldElement:
    """Field element kept as numerator / denominator to defer the inversion.

    Numerator and denominator may be scalars or equally shaped arrays; all
    operations broadcast like the underlying FieldArrays.
    """

    def __init__(self, numerator, denominator=None):
        self.numerator = numerator
        self.denominator = ONE if denominator is None else denominator

    @classmethod
    def zero(cls) -> "FractionFieldElement":
        return cls(ZERO, ONE)

    def __add__(self, other: "FractionFieldElement") -> "FractionFieldElement":
        if np.array_equal(self.denominator, other.denominator):
            return FractionFieldElement(self.numerator + other.numerator, self.denominator)
        return FractionFieldElement(
            self.numerator * other.denominator + other.numerator * self.denominator,
            self.denominator * other.denominator,
        )

    def __neg__(self) -> "FractionFieldElement":
        return FractionFieldElement(-self.numerator, self.denominator)

    def __sub__(self, other: "FractionFieldElement") -> "FractionFieldElement":
        return self + (-other)

    def __mul__(self, other: "FractionFieldElement") -> "FractionFieldElement":
        return FractionFieldElement(
            self.numerator * other.numerator, self.denominator * other.denominator
        )

    def __truediv__(self, other: "FractionFieldElement") -> "FractionFieldElement":
        return FractionFieldElement(
            self.numerator * other.denominator, self.denominator * other.numerator
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FractionFieldElement):
            return NotImplemented
        return bool(np.all(
            self.numerator * other.denominator == other.numerator * self.denominator
        ))

    def to_field_element(self):
        """Perform the deferred division."""
        return self.numerator / self.denominator

    def __repr__(self) -> str:
        return f"FractionFieldElement({self.numerator!r}, {self.denominator!r})"
