"""Pedersen builtin constraints.

Each instance hashes two inputs with an ec subset sum of 256 steps per input,
one step every 4 rows. The selector column holds the suffixes ``input >> k``
of the input being hashed, so bit k is ``selector[k] - 2 * selector[k + 1]``.
The partial sum starts at the shift point, adds the table point of every set
bit, and continues from the first input to the second; its final x coordinate
is the hash output.

Bit unpacking pins every input below p = 2^251 + 17 * 2^192 + 1: when bit 251
is set, bits 197..250 must be zero (via prod_ones196 = bit251 * bit196 and the
zero runs below it), and when bits 251, 196 and 192 are all set the low 192
bits must be zero as well.
"""

from typing import List

from constraints.base import Constraint, domain, every, row
from constraints.layout import Layout
from primitives.field import FF, ONE, TWO
from protocol.trace_context import TraceGenerationContext

SELECTOR = "pedersen/hash0/ec_subset_sum/selector"
PARTIAL_SUM_X = "pedersen/hash0/ec_subset_sum/partial_sum/x"
PARTIAL_SUM_Y = "pedersen/hash0/ec_subset_sum/partial_sum/y"
SLOPE = "pedersen/hash0/ec_subset_sum/slope"
PROD_ONES192 = "pedersen/hash0/ec_subset_sum/bit_unpacking/prod_ones192"
PROD_ONES196 = "pedersen/hash0/ec_subset_sum/bit_unpacking/prod_ones196"
INPUT0_ADDR = "pedersen/input0/addr"
INPUT0_VALUE = "pedersen/input0/value"
INPUT1_ADDR = "pedersen/input1/addr"
INPUT1_VALUE = "pedersen/input1/value"
OUTPUT_ADDR = "pedersen/output/addr"
OUTPUT_VALUE = "pedersen/output/value"

POINTS_X = "pedersen/points/x"
POINTS_Y = "pedersen/points/y"
SHIFT_POINT_X = "pedersen/shift_point.x"
SHIFT_POINT_Y = "pedersen/shift_point.y"
INITIAL_ADDR = "pedersen/initial_addr"

# Ec subset sum steps per hash input.
STEPS_PER_INPUT = 256

TWO_POW_191 = FF(2**191)
TWO_POW_54 = FF(2**54)
EIGHT = FF(8)


def _bit(ctx, k: int = 0):
    return ctx.cell(SELECTOR, k) - TWO * ctx.cell(SELECTOR, k + 1)


def _bit251(ctx):
    return _bit(ctx, 251)


# --- bit_unpacking ---

def last_one_is_zero(ctx):
    return ctx.cell(PROD_ONES192) * _bit(ctx)


def zeroes_between_ones0(ctx):
    return ctx.cell(PROD_ONES192) * (ctx.cell(SELECTOR, 1) - TWO_POW_191 * ctx.cell(SELECTOR, 192))


def cumulative_bit192(ctx):
    return ctx.cell(PROD_ONES192) - ctx.cell(PROD_ONES196) * _bit(ctx, 192)


def zeroes_between_ones192(ctx):
    return ctx.cell(PROD_ONES196) * (ctx.cell(SELECTOR, 193) - EIGHT * ctx.cell(SELECTOR, 196))


def cumulative_bit196(ctx):
    return ctx.cell(PROD_ONES196) - _bit251(ctx) * _bit(ctx, 196)


def zeroes_between_ones196(ctx):
    return _bit251(ctx) * (ctx.cell(SELECTOR, 197) - TWO_POW_54 * ctx.cell(SELECTOR, 251))


# --- ec subset sum ---

def booleanity_test(ctx):
    bit = _bit(ctx)
    return bit * (bit - ONE)


def bit_extraction_end(ctx):
    return ctx.cell(SELECTOR)


def zeros_tail(ctx):
    return ctx.cell(SELECTOR)


def add_points_slope(ctx):
    bit = _bit(ctx)
    dy = ctx.cell(PARTIAL_SUM_Y) - ctx.periodic(POINTS_Y)
    dx = ctx.cell(PARTIAL_SUM_X) - ctx.periodic(POINTS_X)
    return bit * dy - ctx.cell(SLOPE) * dx


def add_points_x(ctx):
    slope = ctx.cell(SLOPE)
    x_sum = ctx.cell(PARTIAL_SUM_X) + ctx.periodic(POINTS_X) + ctx.cell(PARTIAL_SUM_X, 1)
    return slope * slope - _bit(ctx) * x_sum


def add_points_y(ctx):
    y_sum = ctx.cell(PARTIAL_SUM_Y) + ctx.cell(PARTIAL_SUM_Y, 1)
    dx = ctx.cell(PARTIAL_SUM_X) - ctx.cell(PARTIAL_SUM_X, 1)
    return _bit(ctx) * y_sum - ctx.cell(SLOPE) * dx


def copy_point_x(ctx):
    return (ONE - _bit(ctx)) * (ctx.cell(PARTIAL_SUM_X, 1) - ctx.cell(PARTIAL_SUM_X))


def copy_point_y(ctx):
    return (ONE - _bit(ctx)) * (ctx.cell(PARTIAL_SUM_Y, 1) - ctx.cell(PARTIAL_SUM_Y))


# --- hash chaining ---

def hash0_copy_point_x(ctx):
    return ctx.cell(PARTIAL_SUM_X, STEPS_PER_INPUT) - ctx.cell(PARTIAL_SUM_X, STEPS_PER_INPUT - 1)


def hash0_copy_point_y(ctx):
    return ctx.cell(PARTIAL_SUM_Y, STEPS_PER_INPUT) - ctx.cell(PARTIAL_SUM_Y, STEPS_PER_INPUT - 1)


def hash0_init_x(ctx):
    return ctx.cell(PARTIAL_SUM_X) - ctx.value(SHIFT_POINT_X)


def hash0_init_y(ctx):
    return ctx.cell(PARTIAL_SUM_Y) - ctx.value(SHIFT_POINT_Y)


# --- memory ---

def input0_value0(ctx):
    return ctx.cell(INPUT0_VALUE) - ctx.cell(SELECTOR)


def input0_addr(ctx):
    return ctx.cell(INPUT0_ADDR, 1) - (ctx.cell(OUTPUT_ADDR) + ONE)


def init_addr(ctx):
    return ctx.cell(INPUT0_ADDR) - ctx.value(INITIAL_ADDR)


def input1_value0(ctx):
    return ctx.cell(INPUT1_VALUE) - ctx.cell(SELECTOR, STEPS_PER_INPUT)


def input1_addr(ctx):
    return ctx.cell(INPUT1_ADDR) - (ctx.cell(INPUT0_ADDR) + ONE)


def output_value0(ctx):
    return ctx.cell(OUTPUT_VALUE) - ctx.cell(PARTIAL_SUM_X, 2 * STEPS_PER_INPUT - 1)


def output_addr(ctx):
    return ctx.cell(OUTPUT_ADDR) - (ctx.cell(INPUT1_ADDR) + ONE)


def pedersen_constraints(layout: Layout, context: TraceGenerationContext) -> List[Constraint]:
    """Pedersen builtin constraints in slot order."""
    selector_step = context.get_virtual_column(SELECTOR).step
    input_rows = selector_step * STEPS_PER_INPUT
    instance_rows = layout.pedersen.row_ratio
    prefix = "pedersen/hash0/ec_subset_sum"

    per_input = domain(every(input_rows))
    ec_steps = domain(every(selector_step),
                      excluding=[every(input_rows, input_rows - selector_step)])
    per_instance = domain(every(instance_rows))
    instances_but_last = domain(every(instance_rows), excluding=[row(-instance_rows)])

    return [
        Constraint(f"{prefix}/bit_unpacking/last_one_is_zero", per_input, last_one_is_zero),
        Constraint(f"{prefix}/bit_unpacking/zeroes_between_ones0", per_input,
                   zeroes_between_ones0),
        Constraint(f"{prefix}/bit_unpacking/cumulative_bit192", per_input, cumulative_bit192),
        Constraint(f"{prefix}/bit_unpacking/zeroes_between_ones192", per_input,
                   zeroes_between_ones192),
        Constraint(f"{prefix}/bit_unpacking/cumulative_bit196", per_input, cumulative_bit196),
        Constraint(f"{prefix}/bit_unpacking/zeroes_between_ones196", per_input,
                   zeroes_between_ones196),
        Constraint(f"{prefix}/booleanity_test", ec_steps, booleanity_test),
        Constraint(f"{prefix}/bit_extraction_end",
                   domain(every(input_rows, 252 * selector_step)), bit_extraction_end),
        Constraint(f"{prefix}/zeros_tail",
                   domain(every(input_rows, input_rows - selector_step)), zeros_tail),
        Constraint(f"{prefix}/add_points/slope", ec_steps, add_points_slope),
        Constraint(f"{prefix}/add_points/x", ec_steps, add_points_x),
        Constraint(f"{prefix}/add_points/y", ec_steps, add_points_y),
        Constraint(f"{prefix}/copy_point/x", ec_steps, copy_point_x),
        Constraint(f"{prefix}/copy_point/y", ec_steps, copy_point_y),
        Constraint("pedersen/hash0/copy_point/x", per_instance, hash0_copy_point_x),
        Constraint("pedersen/hash0/copy_point/y", per_instance, hash0_copy_point_y),
        Constraint("pedersen/hash0/init/x", per_instance, hash0_init_x),
        Constraint("pedersen/hash0/init/y", per_instance, hash0_init_y),
        Constraint("pedersen/input0_value0", per_instance, input0_value0),
        Constraint("pedersen/input0_addr", instances_but_last, input0_addr),
        Constraint("pedersen/init_addr", domain(row(0)), init_addr),
        Constraint("pedersen/input1_value0", per_instance, input1_value0),
        Constraint("pedersen/input1_addr", per_instance, input1_addr),
        Constraint("pedersen/output_value0", per_instance, output_value0),
        Constraint("pedersen/output_addr", per_instance, output_addr),
    ]
