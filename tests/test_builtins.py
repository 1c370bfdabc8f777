"""Tests for the Pedersen, range check and bitwise builtin constraints."""

import pytest

from constraints import bitwise, pedersen, range_check_builtin
from constraints.range_check_builtin import split_value
from primitives.field import STARK_PRIME, ZERO
from primitives.pedersen import STARK_PEDERSEN_CONTEXT, pedersen_hash
from tests.trace_builder import (
    BITWISE_INPUTS,
    PEDERSEN_INPUTS,
    RC_VALUES,
    RecursiveTraceBuilder,
    bitwise_piece,
    make_recursive_air,
)


@pytest.fixture(scope="module")
def air():
    return make_recursive_air(128)


def _names(violations):
    return {v.name for v in violations}


class TestPedersen:
    """Ec subset sum over the hash inputs."""

    def test_honest_instance(self, first_round):
        air, trace = first_round
        assert air.find_violations(trace, ["pedersen"]) == []

    def test_output_is_pedersen_hash(self, first_round):
        """The builtin's output cell holds H(a, b), here for a = p - 1."""
        air, trace = first_round
        vcol = air.get_trace_generation_context().get_virtual_column(pedersen.OUTPUT_VALUE)
        a, b = PEDERSEN_INPUTS[0]
        assert a == STARK_PRIME - 1
        assert trace.read_cell(vcol, 0) == pedersen_hash(a, b)

    @pytest.mark.parametrize("a,b", [(0, 0), (1, 2), (2**251 + 5, 2**248 - 1)])
    def test_sub_trace(self, air, a, b):
        builder = RecursiveTraceBuilder(air)
        outputs = builder.fill_pedersen([(a, b)])
        assert outputs[0] == pedersen_hash(a, b)
        assert air.find_violations(builder.trace, ["pedersen"]) == []

    def test_zero_inputs_hash_to_shift_point(self, air):
        builder = RecursiveTraceBuilder(air)
        assert builder.fill_pedersen([(0, 0)])[0] == STARK_PEDERSEN_CONTEXT.shift_point.x

    def test_wrong_output_value(self, first_round):
        air, trace = first_round
        trace = trace.copy()
        vcol = air.get_trace_generation_context().get_virtual_column(pedersen.OUTPUT_VALUE)
        trace.write_cell(vcol, 0, 12345)
        assert _names(air.find_violations(trace, ["pedersen"])) == {"pedersen/output_value0"}

    def test_non_boolean_selector_bit(self, air):
        """Doubling one selector suffix makes the decoded bit non-boolean."""
        builder = RecursiveTraceBuilder(air)
        builder.fill_pedersen([(6, 0)])
        vcol = builder.vcol(pedersen.SELECTOR)
        builder.trace.write_cell(vcol, 2, 3)
        names = _names(air.find_violations(builder.trace, ["pedersen"]))
        assert "pedersen/hash0/ec_subset_sum/booleanity_test" in names

    def test_unpacking_rejects_overflowing_input(self, air):
        """An input with bits 251, 196 and 192 set and low bits beyond p fails unpacking."""
        builder = RecursiveTraceBuilder(air)
        value = STARK_PRIME - 1 + 2**100
        vcol = builder.vcol(pedersen.SELECTOR)
        for k in range(pedersen.STEPS_PER_INPUT):
            builder.trace.write_cell(vcol, k, value >> k)
        builder.write(pedersen.PROD_ONES196, 0, 1)
        builder.write(pedersen.PROD_ONES192, 0, 1)
        prefix = "pedersen/hash0/ec_subset_sum/bit_unpacking"
        names = _names(air.find_violations(builder.trace, [prefix], rows=[0]))
        assert f"{prefix}/zeroes_between_ones0" in names


class TestRangeCheckBuiltin:
    def test_honest_instances(self, first_round):
        air, trace = first_round
        assert air.find_violations(trace, ["range_check_builtin"]) == []

    def test_memory_value(self, first_round):
        air, trace = first_round
        vcol = air.get_trace_generation_context().get_virtual_column(range_check_builtin.MEM_VALUE)
        assert int(trace.read_cell(vcol, 0)) == RC_VALUES[0]

    @pytest.mark.parametrize("value", [0, 1, 2**127 + 12345, 2**128 - 1])
    def test_sub_trace(self, air, value):
        builder = RecursiveTraceBuilder(air)
        builder.fill_range_check([value])
        assert air.find_violations(builder.trace, ["range_check_builtin"]) == []

    def test_parts_most_significant_first(self):
        assert split_value(0x0001_0002_0003_0004_0005_0006_0007_0008, 8) == [1, 2, 3, 4, 5, 6, 7, 8]

    def test_value_too_large(self):
        with pytest.raises(AssertionError):
            split_value(2**128, 8)

    def test_part_size_follows_offset_bits(self):
        """A layout with 8-bit offsets packs the parts base 2^8."""
        from dataclasses import replace

        from constraints.base import TraceConstraintContext
        from constraints.range_check_builtin import range_check_builtin_constraints
        from constraints.recursive import RECURSIVE_LAYOUT
        from primitives.field import FF, to_field
        from protocol.trace_context import TraceGenerationContext, VirtualColumn

        layout = replace(RECURSIVE_LAYOUT, offset_bits=8)
        context = TraceGenerationContext()
        context.add_virtual_column(range_check_builtin.INNER_RANGE_CHECK, VirtualColumn(0, 1, 0))
        context.add_virtual_column(range_check_builtin.MEM_ADDR, VirtualColumn(1, 8, 0))
        context.add_virtual_column(range_check_builtin.MEM_VALUE, VirtualColumn(2, 8, 0))
        value = 0x0102_0304_0506_0708
        columns = [to_field(split_value(value, 8, part_bits=8)), FF.Zeros(8), FF([value] + [0] * 7)]
        ctx = TraceConstraintContext(columns, {}, context.as_dict(), {}, 3)
        constraint = range_check_builtin_constraints(layout, context)[0]
        assert constraint.name == "range_check_builtin/value"
        assert constraint(ctx)[0] == ZERO

    def test_split_value_part_bits(self):
        assert split_value(0xABCD, 2, part_bits=8) == [0xAB, 0xCD]

    def test_wrong_part(self, first_round):
        air, trace = first_round
        trace = trace.copy()
        vcol = air.get_trace_generation_context().get_virtual_column(
            range_check_builtin.INNER_RANGE_CHECK)
        trace.write_cell(vcol, 3, 0)
        violations = air.find_violations(trace, ["range_check_builtin"])
        assert [(v.name, v.row) for v in violations] == [("range_check_builtin/value", 0)]


class TestBitwise:
    def test_honest_instances(self, first_round):
        air, trace = first_round
        assert air.find_violations(trace, ["bitwise"]) == []

    @pytest.mark.parametrize("x,y", [(0, 0), (2**251 - 1, 2**250 + 7), (0xFFFF, 0xFFFF0000)])
    def test_sub_trace(self, air, x, y):
        builder = RecursiveTraceBuilder(air)
        builder.fill_bitwise([(x, y)])
        assert air.find_violations(builder.trace, ["bitwise"]) == []

    def test_var_pool_memory(self, first_round):
        """Each instance writes x, y, x & y, x ^ y and x | y to five consecutive cells."""
        air, trace = first_round
        context = air.get_trace_generation_context()
        x, y = BITWISE_INPUTS[1]
        values = [int(v) for v in trace.read(context.get_virtual_column(bitwise.VAR_POOL_VALUE))]
        assert values[4:8] == [x, y, x & y, x ^ y]
        x_or_y = trace.read_cell(context.get_virtual_column(bitwise.X_OR_Y_VALUE), 1)
        assert int(x_or_y) == x | y

    def test_pieces_reassemble_value(self):
        x = BITWISE_INPUTS[0][0]
        total = sum(bitwise_piece(x, j) * int(w) for j, w in enumerate(bitwise.PIECE_WEIGHTS))
        assert total % STARK_PRIME == x

    def test_wrong_or(self, first_round):
        air, trace = first_round
        trace = trace.copy()
        vcol = air.get_trace_generation_context().get_virtual_column(bitwise.X_OR_Y_VALUE)
        trace.write_cell(vcol, 0, 0)
        names = _names(air.find_violations(trace, ["bitwise"]))
        assert names == {"bitwise/or_is_and_plus_xor"}

    def test_wrong_trim(self, first_round):
        air, trace = first_round
        trace = trace.copy()
        vcol = air.get_trace_generation_context().get_virtual_column("bitwise/trim_unpacking195")
        trace.write_cell(vcol, 1, 1)
        violations = air.find_violations(trace, ["bitwise"])
        assert [(v.name, v.row) for v in violations] == [("bitwise/unique_unpacking195", 128)]

    def test_and_xor_pieces_are_consistent(self, first_round):
        """Residuals of the piece-wise addition identity are zero on every row of the domain."""
        air, trace = first_round
        index = [c.name for c in air.constraints].index("bitwise/addition_is_xor_with_and")
        for row in (0, 2, 30, 128 + 14):
            assert air.constraint_residual(index, trace, row) == ZERO
