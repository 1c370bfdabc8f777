"""16-bit range check constraints.

The range-check pool (instruction offsets and builtin parts) is sorted into a
continuous sequence running from rc_min to rc_max. The permutation argument
has no public part, so its running product ends at 1.
"""

from typing import List

from constraints.base import Constraint, domain, every, row
from constraints.layout import Layout
from protocol.trace_context import TraceGenerationContext

POOL = "range_check16/pool"
SORTED = "range_check16/sorted"
CUM_PROD = "range_check16/perm/cum_prod0"
Z = "range_check16/perm/interaction_elm"
PUBLIC_MEMORY_PROD = "range_check16/perm/public_memory_prod"


def perm_init0(ctx):
    z = ctx.value(Z)
    return (z - ctx.cell(SORTED)) * ctx.cell(CUM_PROD) + ctx.cell(POOL) - z


def perm_step0(ctx):
    z = ctx.value(Z)
    sorted_term = (z - ctx.cell(SORTED, 1)) * ctx.cell(CUM_PROD, 1)
    return sorted_term - (z - ctx.cell(POOL, 1)) * ctx.cell(CUM_PROD)


def perm_last(ctx):
    return ctx.cell(CUM_PROD) - ctx.value(PUBLIC_MEMORY_PROD)


def diff_is_bit(ctx):
    diff = ctx.cell(SORTED, 1) - ctx.cell(SORTED)
    return diff * diff - diff


def minimum(ctx):
    return ctx.cell(SORTED) - ctx.value("rc_min")


def maximum(ctx):
    return ctx.cell(SORTED) - ctx.value("rc_max")


def range_check16_constraints(
    layout: Layout, context: TraceGenerationContext
) -> List[Constraint]:
    """Range-check-16 constraints in slot order."""
    step = context.get_virtual_column(POOL).step
    entries = domain(every(step), excluding=[row(-step)])
    return [
        Constraint("range_check16/perm/init0", domain(row(0)), perm_init0),
        Constraint("range_check16/perm/step0", entries, perm_step0),
        Constraint("range_check16/perm/last", domain(row(-step)), perm_last),
        Constraint("range_check16/diff_is_bit", entries, diff_is_bit),
        Constraint("range_check16/minimum", domain(row(0)), minimum),
        Constraint("range_check16/maximum", domain(row(-step)), maximum),
    ]

