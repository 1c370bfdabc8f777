"""Tests for STARK curve arithmetic and the Pedersen hash."""

import pytest

from primitives.elliptic_curve import EcPoint
from primitives.field import FF, ZERO
from primitives.pedersen import (
    STARK_CURVE,
    STARK_PEDERSEN_CONTEXT,
    ec_subset_sum_table,
    pedersen_hash,
)

ALPHA = STARK_CURVE.alpha
P0, P1, P2, P3 = STARK_PEDERSEN_CONTEXT.points
SHIFT = STARK_PEDERSEN_CONTEXT.shift_point


class TestCurve:
    @pytest.mark.parametrize("point", [SHIFT, P0, P1, P2, P3])
    def test_constant_points_on_curve(self, point):
        assert STARK_CURVE.contains(point)

    def test_addition_stays_on_curve(self):
        assert STARK_CURVE.contains(P0 + P1)
        assert STARK_CURVE.contains(P0.double(ALPHA))

    def test_subtraction(self):
        assert (P0 + P1) - P1 == P0

    def test_adding_negation_is_rejected(self):
        with pytest.raises(AssertionError):
            P0 + (-P0)

    def test_point_not_on_curve(self):
        assert not STARK_CURVE.contains(EcPoint(FF(1), FF(2)))


class TestSubsetSumTable:
    @pytest.fixture(scope="class")
    def table(self):
        return ec_subset_sum_table(STARK_PEDERSEN_CONTEXT)

    def test_size(self, table):
        assert len(table) == 512

    def test_low_and_high_points(self, table):
        assert table[0] == P0
        assert table[1] == P0.double(ALPHA)
        assert table[248] == P1
        assert table[256] == P2
        assert table[256 + 248] == P3

    def test_padding(self, table):
        for i in (252, 253, 254, 255, 508, 511):
            assert table[i].x == ZERO and table[i].y == ZERO

    def test_table_too_small(self):
        with pytest.raises(AssertionError):
            ec_subset_sum_table(STARK_PEDERSEN_CONTEXT, table_size=128)


class TestPedersenHash:
    def test_known_vector(self):
        a = 0x3D937C035C878245CAF64531A5756109C53068DA139362728FEB561405371CB
        b = 0x208A0A10250E382E1E4BBE2880906C2791BF6275695E02FBBC6AEFF9CD8B31A
        expected = 0x30E480BED5FE53FA909CC0F8C4D99B8F9F2C016BE4C41E13A4848797979C662
        assert int(pedersen_hash(a, b)) == expected

    def test_single_bits(self):
        assert pedersen_hash(1, 0) == (SHIFT + P0).x
        assert pedersen_hash(0, 1) == (SHIFT + P2).x
        assert pedersen_hash(2**248, 0) == (SHIFT + P1).x
        assert pedersen_hash(0, 2**248) == (SHIFT + P3).x

    def test_zero(self):
        assert pedersen_hash(0, 0) == SHIFT.x

    def test_input_out_of_range(self):
        with pytest.raises(AssertionError):
            pedersen_hash(-1, 0)
