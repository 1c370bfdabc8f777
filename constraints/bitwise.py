"""Bitwise builtin constraints.

Every instance reads five consecutive memory cells x, y, x & y, x ^ y and x | y.
The first four (the var pool) are each unpacked into 16 diluted 16-bit pieces:
value = sum_j piece_j * 2^(64 * (j // 4) + j % 4), so piece j holds every
fourth bit of one 64-bit chunk. With spacing 4 no carry crosses a bit, hence
dilute(x) + dilute(y) = dilute(x ^ y) + 2 * dilute(x & y) piece by piece.

The unique unpacking constraints keep the top pieces of (x & y) + (x ^ y)
short enough that the unpacking is unique for values below 2^251.
"""

from typing import List

from constraints.base import Constraint, domain, every, row
from constraints.layout import Layout
from primitives.field import FF, ONE, TWO
from protocol.trace_context import TraceGenerationContext

VAR_POOL_ADDR = "bitwise/var_pool/addr"
VAR_POOL_VALUE = "bitwise/var_pool/value"
X_OR_Y_ADDR = "bitwise/x_or_y/addr"
X_OR_Y_VALUE = "bitwise/x_or_y/value"
DILUTED_VAR_POOL = "bitwise/diluted_var_pool"
INITIAL_VAR_POOL_ADDR = "bitwise/initial_var_pool_addr"

# Var pool entries per instance, in memory order.
X, Y, X_AND_Y, X_XOR_Y = 0, 1, 2, 3
N_VARS = 4
PIECES_PER_VAR = 16
PIECES_PER_CHUNK = 4
CHUNK_BITS = 64

# Piece index inside a var, trimming shift, and the virtual column holding the trimmed value.
UNIQUE_UNPACKING = (
    (192, 12, FF(16), "bitwise/trim_unpacking192"),
    (193, 13, FF(16), "bitwise/trim_unpacking193"),
    (194, 14, FF(16), "bitwise/trim_unpacking194"),
    (195, 15, FF(256), "bitwise/trim_unpacking195"),
)

PIECE_WEIGHTS = [
    FF(2 ** (CHUNK_BITS * (j // PIECES_PER_CHUNK) + j % PIECES_PER_CHUNK))
    for j in range(PIECES_PER_VAR)
]


def _piece(ctx, var: int, j: int):
    return ctx.cell(DILUTED_VAR_POOL, var * PIECES_PER_VAR + j)


def init_var_pool_addr(ctx):
    return ctx.cell(VAR_POOL_ADDR) - ctx.value(INITIAL_VAR_POOL_ADDR)


def step_var_pool_addr(ctx):
    return ctx.cell(VAR_POOL_ADDR, 1) - (ctx.cell(VAR_POOL_ADDR) + ONE)


def x_or_y_addr(ctx):
    return ctx.cell(X_OR_Y_ADDR) - (ctx.cell(VAR_POOL_ADDR, X_XOR_Y) + ONE)


def next_var_pool_addr(ctx):
    return ctx.cell(VAR_POOL_ADDR, N_VARS) - (ctx.cell(X_OR_Y_ADDR) + ONE)


def partition(ctx):
    total = _piece(ctx, 0, 0) * PIECE_WEIGHTS[0]
    for j in range(1, PIECES_PER_VAR):
        total = total + _piece(ctx, 0, j) * PIECE_WEIGHTS[j]
    return total - ctx.cell(VAR_POOL_VALUE)


def or_is_and_plus_xor(ctx):
    expected = ctx.cell(VAR_POOL_VALUE, X_AND_Y) + ctx.cell(VAR_POOL_VALUE, X_XOR_Y)
    return ctx.cell(X_OR_Y_VALUE) - expected


def addition_is_xor_with_and(ctx):
    lhs = _piece(ctx, X, 0) + _piece(ctx, Y, 0)
    return lhs - (_piece(ctx, X_XOR_Y, 0) + TWO * _piece(ctx, X_AND_Y, 0))


def _unique_unpacking(piece: int, shift: FF, trimmed: str):
    def expression(ctx):
        combined = _piece(ctx, X_AND_Y, piece) + _piece(ctx, X_XOR_Y, piece)
        return combined * shift - ctx.cell(trimmed)
    return expression


def bitwise_constraints(layout: Layout, context: TraceGenerationContext) -> List[Constraint]:
    """Bitwise builtin constraints in slot order."""
    var_rows = context.get_virtual_column(VAR_POOL_ADDR).step
    instance_rows = layout.bitwise.row_ratio
    piece_rows = context.get_virtual_column(DILUTED_VAR_POOL).step
    assert var_rows * N_VARS == instance_rows, "Var pool does not fill an instance"

    per_instance = domain(every(instance_rows))
    # One row per piece of x; the other vars follow at multiples of var_rows.
    pieces = domain(*[every(instance_rows, piece_rows * j) for j in range(PIECES_PER_VAR)])

    constraints = [
        Constraint("bitwise/init_var_pool_addr", domain(row(0)), init_var_pool_addr),
        Constraint("bitwise/step_var_pool_addr",
                   domain(every(var_rows),
                          excluding=[every(instance_rows, instance_rows - var_rows)]),
                   step_var_pool_addr),
        Constraint("bitwise/x_or_y_addr", per_instance, x_or_y_addr),
        Constraint("bitwise/next_var_pool_addr",
                   domain(every(instance_rows), excluding=[row(-instance_rows)]),
                   next_var_pool_addr),
        Constraint("bitwise/partition", domain(every(var_rows)), partition),
        Constraint("bitwise/or_is_and_plus_xor", per_instance, or_is_and_plus_xor),
        Constraint("bitwise/addition_is_xor_with_and", pieces, addition_is_xor_with_and),
    ]
    for bit, piece, shift, trimmed in UNIQUE_UNPACKING:
        constraints.append(Constraint(f"bitwise/unique_unpacking{bit}", per_instance,
                                      _unique_unpacking(piece, shift, trimmed)))
    return constraints
