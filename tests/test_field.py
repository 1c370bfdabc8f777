"""Tests for the STARK field helpers, batch inversion and fractions."""

import pytest

from primitives.field import (
    FF,
    ONE,
    STARK_PRIME,
    ZERO,
    FractionFieldElement,
    batch_inverse,
    get_omega,
    get_omega_inv,
    powers,
    to_field,
)


class TestField:
    def test_prime(self) -> None:
        assert STARK_PRIME == 2**251 + 17 * 2**192 + 1
        assert FF.order == STARK_PRIME

    def test_to_field_reduces(self) -> None:
        assert to_field(-1) == FF(STARK_PRIME - 1)
        assert to_field(STARK_PRIME + 5) == FF(5)
        assert list(to_field([1, -2])) == [FF(1), FF(STARK_PRIME - 2)]

    @pytest.mark.parametrize("n_bits", [1, 4, 11, 20])
    def test_omega_order(self, n_bits: int) -> None:
        """get_omega(k) has order exactly 2^k."""
        omega = get_omega(n_bits)
        assert omega ** (2 ** n_bits) == ONE
        assert omega ** (2 ** (n_bits - 1)) == FF(STARK_PRIME - 1)

    def test_omega_chain(self) -> None:
        assert get_omega(12) ** 2 == get_omega(11)
        assert get_omega(11) * get_omega_inv(11) == ONE

    def test_omega_out_of_range(self) -> None:
        with pytest.raises(AssertionError):
            get_omega(193)

    def test_powers(self) -> None:
        assert list(powers(FF(3), 5)) == [FF(1), FF(3), FF(9), FF(27), FF(81)]
        assert len(powers(FF(3), 1)) == 1


class TestBatchInverse:
    """Tests for base field batch inversion."""

    def test_single_element(self) -> None:
        val = FF([12345])
        assert batch_inverse(val)[0] * val[0] == ONE

    def test_many_elements(self) -> None:
        """Batch inversion matches scalar inversion."""
        vals = FF([i * 7 + 13 for i in range(50)])
        results = batch_inverse(vals)
        assert len(results) == 50
        for v, r in zip(vals, results):
            assert r == v ** -1

    def test_two_elements(self) -> None:
        assert list(batch_inverse(FF([2, 4])) * FF([2, 4])) == [ONE, ONE]

    def test_zero_element(self) -> None:
        with pytest.raises(ZeroDivisionError):
            batch_inverse(FF([3, 0, 5]))


class TestFractionFieldElement:
    def test_arithmetic(self) -> None:
        a = FractionFieldElement(FF(1), FF(2))
        b = FractionFieldElement(FF(1), FF(3))
        assert (a + b).to_field_element() == FF(5) / FF(6)
        assert (a - b).to_field_element() == FF(1) / FF(6)
        assert (a * b).to_field_element() == FF(1) / FF(6)
        assert (a / b).to_field_element() == FF(3) / FF(2)

    def test_equality_is_cross_multiplied(self) -> None:
        assert FractionFieldElement(FF(2), FF(4)) == FractionFieldElement(FF(1), FF(2))
        assert not FractionFieldElement(FF(2), FF(4)) == FractionFieldElement(FF(1), FF(3))

    def test_zero(self) -> None:
        assert FractionFieldElement.zero().to_field_element() == ZERO
        assert FractionFieldElement(FF(4)).to_field_element() == FF(4)

    def test_same_denominator_is_kept(self) -> None:
        a = FractionFieldElement(FF(1), FF(7))
        total = a + FractionFieldElement(FF(2), FF(7))
        assert total.denominator == FF(7)
        assert total.numerator == FF(3)
