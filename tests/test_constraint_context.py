"""Tests for ConstraintContext implementations and constraint domains."""

import numpy as np
import pytest

from primitives.field import FF
from protocol.air_config import InteractionPhaseError
from protocol.trace_context import VirtualColumn

VIRTUAL_COLUMNS = {
    "a": VirtualColumn(column=0, step=1, row_offset=0),
    "b": VirtualColumn(column=1, step=2, row_offset=1),
    "interaction": VirtualColumn(column=2, step=1, row_offset=0),
}


def _columns():
    return [FF([1, 2, 3, 4, 5, 6, 7, 8]), FF([10, 20, 30, 40, 50, 60, 70, 80])]


def test_trace_context_cell_returns_array() -> None:
    """TraceConstraintContext.cell returns the column shifted by the cell's row."""
    from constraints.base import TraceConstraintContext

    ctx = TraceConstraintContext(_columns(), {}, VIRTUAL_COLUMNS, {}, 2)
    assert np.array_equal(ctx.cell("a"), FF([1, 2, 3, 4, 5, 6, 7, 8]))
    # b[1] lives at row 1 + 2 * 1 = 3 relative to the current row.
    assert np.array_equal(ctx.cell("b", 1), FF([40, 50, 60, 70, 80, 10, 20, 30]))


def test_trace_context_extended_domain() -> None:
    """On a domain extended by 2, one row is two points."""
    from constraints.base import TraceConstraintContext

    column = FF([1, 2, 3, 4, 5, 6, 7, 8])
    ctx = TraceConstraintContext([column], {}, VIRTUAL_COLUMNS, {}, 1, extend=2)
    assert np.array_equal(ctx.neighbor(0, 1), FF([3, 4, 5, 6, 7, 8, 1, 2]))


def test_trace_context_arithmetic_broadcasts() -> None:
    from constraints.base import TraceConstraintContext

    ctx = TraceConstraintContext(_columns(), {"p": FF([2] * 8)}, VIRTUAL_COLUMNS,
                                 {"k": FF(3)}, 2)
    result = ctx.cell("a", 1) * ctx.periodic("p") - ctx.value("k")
    assert [int(v) for v in result[:3]] == [1, 3, 5]


def test_row_context_returns_scalars() -> None:
    from constraints.base import RowConstraintContext

    ctx = RowConstraintContext(_columns(), 7, {"p": FF([5, 6])}, VIRTUAL_COLUMNS, {}, 2)
    assert ctx.cell("a") == FF(8)
    # Wraps around the end of the trace.
    assert ctx.cell("b") == FF(10)
    assert ctx.periodic("p") == FF(6)


def test_point_context_reads_mask() -> None:
    from constraints.base import PointConstraintContext

    mask_index = {(0, 0): 0, (1, 1): 1, (1, 3): 2}
    neighbors = [FF(11), FF(12), FF(13)]
    ctx = PointConstraintContext(neighbors, mask_index, {"p": FF(9)}, VIRTUAL_COLUMNS, {}, 2)
    assert ctx.cell("a") == FF(11)
    assert ctx.cell("b", 1) == FF(13)
    assert ctx.periodic("p") == FF(9)
    with pytest.raises(KeyError):
        ctx.neighbor(0, 5)


def test_interaction_column_before_interaction() -> None:
    """Contexts built from a first-round trace cannot read interaction columns."""
    from constraints.base import RowConstraintContext, TraceConstraintContext

    ctx = TraceConstraintContext(_columns(), {}, VIRTUAL_COLUMNS, {}, 2)
    with pytest.raises(InteractionPhaseError):
        ctx.cell("interaction")
    ctx = RowConstraintContext(_columns(), 0, {}, VIRTUAL_COLUMNS, {}, 2)
    with pytest.raises(InteractionPhaseError):
        ctx.cell("interaction")


def test_constraint_values_missing_keys() -> None:
    from constraints.base import ConstraintValues

    values = ConstraintValues({"a": FF(1)}, interaction_names=["z"])
    assert values["a"] == FF(1)
    with pytest.raises(InteractionPhaseError):
        values["z"]
    with pytest.raises(KeyError, match="No constraint value"):
        values["missing"]


class TestDomains:
    """Rows covered by domain factors."""

    def test_periodic_rows(self) -> None:
        from constraints.base import every

        factor = every(16, 3)
        assert list(factor.rows(64)) == [3, 19, 35, 51]
        assert factor.point_exponent(64) == 4
        assert factor.gen_exponent(64) == 12

    def test_single_row(self) -> None:
        from constraints.base import row

        assert list(row(0).rows(64)) == [0]
        assert list(row(-1).rows(64)) == [63]
        assert row(-1).gen_exponent(64) == 63
        assert row(-1).point_exponent(64) == 1

    def test_excluded_rows(self) -> None:
        from constraints.base import domain, every, row

        rows = domain(every(1), excluding=[row(-1)]).rows(8)
        assert list(rows) == [0, 1, 2, 3, 4, 5, 6]

    def test_row_mask(self) -> None:
        from constraints.base import domain, every

        mask = domain(every(4, 1)).row_mask(8)
        assert list(np.nonzero(mask)[0]) == [1, 5]

    def test_period_must_divide_length(self) -> None:
        from constraints.base import every

        with pytest.raises(AssertionError):
            every(3).point_exponent(8)

    def test_constraint_is_callable(self) -> None:
        from constraints.base import Constraint, TraceConstraintContext, domain, every

        constraint = Constraint("a_is_bit", domain(every(1)),
                                lambda ctx: ctx.cell("a") * (ctx.cell("a") - FF(1)))
        ctx = TraceConstraintContext([FF([0, 1, 2, 1])], {}, VIRTUAL_COLUMNS, {}, 1)
        assert [int(v) for v in constraint(ctx)] == [0, 0, 2, 0]
