"""Diluted pool constraints.

A diluted value spreads the bits of an n_bits number ``spacing`` positions
apart. All diluted values used by the bitwise builtin are collected in the
diluted pool; a sorted copy is proven to be a permutation of the pool, to start
at zero and to step only between consecutive diluted values. The last property
is enforced through a cumulative value over the consecutive differences,
whose final value the verifier computes in closed form.
"""

from typing import List

from constraints.base import Constraint, domain, every, row
from constraints.layout import Layout
from primitives.field import FF, ONE, to_field
from protocol.trace_context import TraceGenerationContext

POOL = "diluted_pool"
PERMUTED = "diluted_check/permuted_values"
CUM_PROD = "diluted_check/permutation/cum_prod0"
CUM_VALUE = "diluted_check/cumulative_value"

PERM_Z = "diluted_check/permutation/interaction_elm"
INTERACTION_Z = "diluted_check/interaction_z"
INTERACTION_ALPHA = "diluted_check/interaction_alpha"
PUBLIC_MEMORY_PROD = "diluted_check/permutation/public_memory_prod"
FIRST_ELEMENT = "diluted_check/first_elm"
FINAL_CUM_VALUE = "diluted_check/final_cum_val"


def perm_init0(ctx):
    z = ctx.value(PERM_Z)
    return (z - ctx.cell(PERMUTED)) * ctx.cell(CUM_PROD) + ctx.cell(POOL) - z


def perm_step0(ctx):
    z = ctx.value(PERM_Z)
    sorted_term = (z - ctx.cell(PERMUTED, 1)) * ctx.cell(CUM_PROD, 1)
    return sorted_term - (z - ctx.cell(POOL, 1)) * ctx.cell(CUM_PROD)


def perm_last(ctx):
    return ctx.cell(CUM_PROD) - ctx.value(PUBLIC_MEMORY_PROD)


def init(ctx):
    return ctx.cell(CUM_VALUE) - ONE


def first_element(ctx):
    return ctx.cell(PERMUTED) - ctx.value(FIRST_ELEMENT)


def step(ctx):
    diff = ctx.cell(PERMUTED, 1) - ctx.cell(PERMUTED)
    expected = (
        ctx.cell(CUM_VALUE) * (ONE + ctx.value(INTERACTION_Z) * diff)
        + ctx.value(INTERACTION_ALPHA) * diff * diff
    )
    return ctx.cell(CUM_VALUE, 1) - expected


def last(ctx):
    return ctx.cell(CUM_VALUE) - ctx.value(FINAL_CUM_VALUE)


def diluted_constraints(layout: Layout, context: TraceGenerationContext) -> List[Constraint]:
    """Diluted-check constraints in slot order."""
    step_rows = context.get_virtual_column(POOL).step
    first = domain(row(0))
    last_row = domain(row(-step_rows))
    entries = domain(every(step_rows), excluding=[row(-step_rows)])
    return [
        Constraint("diluted_check/permutation/init0", first, perm_init0),
        Constraint("diluted_check/permutation/step0", entries, perm_step0),
        Constraint("diluted_check/permutation/last", last_row, perm_last),
        Constraint("diluted_check/init", first, init),
        Constraint("diluted_check/first_element", first, first_element),
        Constraint("diluted_check/step", entries, step),
        Constraint("diluted_check/last", last_row, last),
    ]


def dilute(value: int, spacing: int, n_bits: int) -> int:
    """Place bit i of value at bit i * spacing."""
    return sum(((value >> i) & 1) << (i * spacing) for i in range(n_bits))


def compute_diluted_cumulative_value(z: FF, alpha: FF, spacing: int, n_bits: int) -> FF:
    """Final cumulative value of the sorted sequence of all diluted values.

    The sorted sequence dilute(0), ..., dilute(2^n_bits - 1) consists of two
    copies of the sequence for n_bits - 1 bits joined by one extra difference,
    so the cumulative value doubles its span at every iteration. With
    cum = p + alpha * q over a block, appending a copy of the block after a
    difference x gives

        p' = p^2 * (1 + z * x)
        q' = p * (1 + z * x) * q + p * x^2 + q

    Args:
        z: Interaction element multiplying the differences
        alpha: Interaction element multiplying the squared differences
        spacing: Distance between consecutive bits of a diluted value
        n_bits: Number of bits of the undiluted values

    Returns:
        The value of the cumulative column at the last row of an honest trace
    """
    assert n_bits > 0, "n_bits must be positive"
    p = ONE + z
    q = ONE
    for k in range(1, n_bits):
        # Difference between dilute(2^k) and dilute(2^k - 1).
        x = to_field((1 << (k * spacing)) - sum(1 << (i * spacing) for i in range(k)))
        factor = ONE + z * x
        p, q = p * p * factor, p * factor * q + p * x * x + q
    return p + alpha * q
