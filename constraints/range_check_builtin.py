"""Range check builtin constraints.

Every instance reads one memory cell whose value must be below
2^(offset_bits * n_parts). The value is split into n_parts parts of offset_bits
bits, most significant first, each of which enters the range-check pool.
"""

from functools import partial
from typing import List

from constraints.base import Constraint, domain, every, row
from constraints.layout import Layout
from primitives.field import FF, ONE
from protocol.trace_context import TraceGenerationContext

INNER_RANGE_CHECK = "range_check_builtin/inner_range_check"
MEM_ADDR = "range_check_builtin/mem/addr"
MEM_VALUE = "range_check_builtin/mem/value"
INITIAL_ADDR = "range_check_builtin/initial_addr"


def value(ctx, n_parts: int, part_size: FF):
    acc = ctx.cell(INNER_RANGE_CHECK)
    for k in range(1, n_parts):
        acc = acc * part_size + ctx.cell(INNER_RANGE_CHECK, k)
    return acc - ctx.cell(MEM_VALUE)


def addr_step(ctx):
    return ctx.cell(MEM_ADDR, 1) - (ctx.cell(MEM_ADDR) + ONE)


def init_addr(ctx):
    return ctx.cell(MEM_ADDR) - ctx.value(INITIAL_ADDR)


def range_check_builtin_constraints(
    layout: Layout, context: TraceGenerationContext
) -> List[Constraint]:
    """Range check builtin constraints in slot order."""
    instance_rows = context.get_virtual_column(MEM_ADDR).step
    n_parts = layout.range_check.n_parts
    assert context.get_virtual_column(INNER_RANGE_CHECK).step * n_parts == instance_rows, \
        "Range check parts do not fill an instance"
    return [
        Constraint("range_check_builtin/value", domain(every(instance_rows)),
                   partial(value, n_parts=n_parts, part_size=FF(2 ** layout.offset_bits))),
        Constraint("range_check_builtin/addr_step",
                   domain(every(instance_rows), excluding=[row(-instance_rows)]), addr_step),
        Constraint("range_check_builtin/init_addr", domain(row(0)), init_addr),
    ]


def split_value(value: int, n_parts: int, part_bits: int = 16) -> List[int]:
    """part_bits-bit parts of value, most significant first."""
    assert 0 <= value < 2 ** (part_bits * n_parts), f"Value {value} out of range"
    mask = (1 << part_bits) - 1
    return [(value >> (part_bits * (n_parts - 1 - k))) & mask for k in range(n_parts)]
