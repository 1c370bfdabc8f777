"""Pedersen hash over the STARK curve.

H(a, b) = [shift + a_low * P0 + a_high * P1 + b_low * P2 + b_high * P3].x

where each input is split into its low 248 bits and its high 4 bits. The hash
is computed as an ec subset sum over a table of doublings of P0..P3, exactly
the table the Pedersen builtin reads from its periodic columns.
"""

from dataclasses import dataclass
from typing import List, Tuple

from primitives.elliptic_curve import EcPoint, EllipticCurve
from primitives.field import FF, STARK_PRIME, ZERO

STARK_CURVE = EllipticCurve(
    alpha=FF(1),
    beta=FF(0x6F21413EFBE40DE150E596D72F7A8C5609AD26C15C915C1F4CDFCB99CEE9E89),
)


@dataclass(frozen=True)
class PedersenHashContext:
    """Curve constants of the Pedersen hash.

    Attributes:
        shift_point: Initial value of the ec subset sum
        points: (P0, P1, P2, P3); P0/P1 multiply the low/high part of the first
            input and P2/P3 those of the second
        n_element_bits: Number of bits of a hash input
        low_part_bits: Bits of an input multiplied by the "low" point
    """
    shift_point: EcPoint
    points: Tuple[EcPoint, ...]
    curve: EllipticCurve = STARK_CURVE
    n_element_bits: int = 252
    low_part_bits: int = 248

    @property
    def high_part_bits(self) -> int:
        return self.n_element_bits - self.low_part_bits


STARK_PEDERSEN_CONTEXT = PedersenHashContext(
    shift_point=EcPoint.from_ints(
        0x49EE3EBA8C1600700EE1B87EB599F16716B0B1022947733551FDE4050CA6804,
        0x3CA0CFE4B3BC6DDF346D49D06EA0ED34E621062C0E056C1D0405D266E10268A,
    ),
    points=(
        EcPoint.from_ints(
            0x234287DCBAFFE7F969C748655FCA9E58FA8120B6D56EB0C1080D17957EBE47B,
            0x3B056F100F96FB21E889527D41F4E39940135DD7A6C94CC6ED0268EE89E5615,
        ),
        EcPoint.from_ints(
            0x4FA56F376C83DB33F9DAB2656558F3399099EC1DE5E3018B7A6932DBA8AA378,
            0x3FA0984C931C9E38113E0C0E47E4401562761F92A7A23B45168F4E80FF5B54D,
        ),
        EcPoint.from_ints(
            0x4BA4CC166BE8DEC764910F75B45F74B40C690C74709E90F3AA372F0BD2D6997,
            0x40301CF5C1751F4B971E46C4EDE85FCAC5C59A5CE5AE7C48151F27B24B219C,
        ),
        EcPoint.from_ints(
            0x54302DCB0E6CC1C6E44CCA8F61A63BB2CA65048D53FB325D36FF12C49A58202,
            0x1B77B3E37D13504B348046268D8AE25CE98AD783C25561A879DCC77E99C2426,
        ),
    ),
)
"""Process-wide constants of the StarkWare Pedersen hash."""

_ZERO_POINT = EcPoint(ZERO, ZERO)


def ec_subset_sum_table(context: PedersenHashContext, table_size: int = 256) -> List[EcPoint]:
    """Doublings of the hash points, one block of table_size entries per input.

    Block k holds P_{2k} * 2^i for i < low_part_bits, then P_{2k+1} * 2^i for
    i < high_part_bits, then (0, 0) padding up to table_size entries.
    """
    assert context.n_element_bits <= table_size, "Table too small for an input"
    table: List[EcPoint] = []
    for low_point, high_point in zip(context.points[::2], context.points[1::2]):
        for point, n_bits in ((low_point, context.low_part_bits),
                              (high_point, context.high_part_bits)):
            for _ in range(n_bits):
                table.append(point)
                point = point.double(context.curve.alpha)
        table.extend([_ZERO_POINT] * (table_size - context.n_element_bits))
    return table


def pedersen_hash(a: int, b: int, context: PedersenHashContext = STARK_PEDERSEN_CONTEXT) -> FF:
    """Hash two field elements (given as integers in [0, p))."""
    assert 0 <= a < STARK_PRIME and 0 <= b < STARK_PRIME, "Inputs must be field elements"
    table = ec_subset_sum_table(context)
    block = len(table) // 2
    partial_sum = context.shift_point
    for input_index, value in enumerate((a, b)):
        for bit in range(context.n_element_bits):
            if (value >> bit) & 1:
                partial_sum = partial_sum + table[input_index * block + bit]
    return partial_sum.x
