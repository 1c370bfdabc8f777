"""Memory constraints.

Every memory access (address, value) is written to the memory pool. A sorted
copy of the pool must be continuous (addresses grow by 0 or 1) and functional
(equal addresses carry equal values); a running product over
``z - (address + alpha * value)`` proves that the sorted copy is a permutation
of the pool.

Public memory cells appear in the pool as (0, 0) placeholders and in the sorted
copy with their real values, so the running product ends at

    public_memory_prod = z^|public| / prod(z - (address + alpha * value))

which the verifier computes from the public memory alone.
"""

from typing import List, Sequence, Tuple

import numpy as np

from constraints.base import Constraint, domain, every, row
from constraints.layout import Layout
from primitives.field import FF, ONE, to_field
from protocol.trace_context import TraceGenerationContext

POOL_ADDR = "mem_pool/addr"
POOL_VALUE = "mem_pool/value"
SORTED_ADDR = "memory/sorted/addr"
SORTED_VALUE = "memory/sorted/value"
CUM_PROD = "memory/multi_column_perm/perm/cum_prod0"
PUBLIC_ADDR = "orig/public_memory/addr"
PUBLIC_VALUE = "orig/public_memory/value"

Z = "memory/multi_column_perm/perm/interaction_elm"
ALPHA = "memory/multi_column_perm/hash_interaction_elm0"
PUBLIC_MEMORY_PROD = "memory/multi_column_perm/perm/public_memory_prod"


def _sorted_diff(ctx):
    return ctx.cell(SORTED_ADDR, 1) - ctx.cell(SORTED_ADDR)


def perm_init0(ctx):
    z, alpha = ctx.value(Z), ctx.value(ALPHA)
    sorted_term = z - (ctx.cell(SORTED_ADDR) + alpha * ctx.cell(SORTED_VALUE))
    return sorted_term * ctx.cell(CUM_PROD) + ctx.cell(POOL_ADDR) + alpha * ctx.cell(POOL_VALUE) - z


def perm_step0(ctx):
    z, alpha = ctx.value(Z), ctx.value(ALPHA)
    sorted_term = z - (ctx.cell(SORTED_ADDR, 1) + alpha * ctx.cell(SORTED_VALUE, 1))
    pool_term = z - (ctx.cell(POOL_ADDR, 1) + alpha * ctx.cell(POOL_VALUE, 1))
    return sorted_term * ctx.cell(CUM_PROD, 1) - pool_term * ctx.cell(CUM_PROD)


def perm_last(ctx):
    return ctx.cell(CUM_PROD) - ctx.value(PUBLIC_MEMORY_PROD)


def diff_is_bit(ctx):
    diff = _sorted_diff(ctx)
    return diff * diff - diff


def is_func(ctx):
    return (_sorted_diff(ctx) - ONE) * (ctx.cell(SORTED_VALUE) - ctx.cell(SORTED_VALUE, 1))


def initial_addr(ctx):
    return ctx.cell(SORTED_ADDR) - ONE


def public_memory_addr_zero(ctx):
    return ctx.cell(PUBLIC_ADDR)


def public_memory_value_zero(ctx):
    return ctx.cell(PUBLIC_VALUE)


def memory_constraints(layout: Layout, context: TraceGenerationContext) -> List[Constraint]:
    """Memory constraints in slot order."""
    step = context.get_virtual_column(POOL_ADDR).step
    pairs = domain(every(step), excluding=[row(-step)])
    return [
        Constraint("memory/multi_column_perm/perm/init0", domain(row(0)), perm_init0),
        Constraint("memory/multi_column_perm/perm/step0", pairs, perm_step0),
        Constraint("memory/multi_column_perm/perm/last", domain(row(-step)), perm_last),
        Constraint("memory/diff_is_bit", pairs, diff_is_bit),
        Constraint("memory/is_func", pairs, is_func),
        Constraint("memory/initial_addr", domain(row(0)), initial_addr),
        Constraint("public_memory_addr_zero", domain(every(layout.public_memory_step)),
                   public_memory_addr_zero),
        Constraint("public_memory_value_zero", domain(every(layout.public_memory_step)),
                   public_memory_value_zero),
    ]


def compute_public_memory_prod(
    public_memory: Sequence[Tuple[int, int]], z: FF, alpha: FF
) -> FF:
    """z^|public_memory| / prod(z - (address + alpha * value))."""
    if not public_memory:
        return ONE
    addresses = to_field([a for a, _ in public_memory])
    values = to_field([v for _, v in public_memory])
    terms = z - (addresses + alpha * values)
    return z ** len(public_memory) / np.multiply.reduce(terms)
