"""The "recursive" layout: CPU with output, Pedersen, range check and bitwise builtins.

Trace shape: 7 first-round columns and 3 interaction columns, 16 rows per CPU
step. The mask below lists every (column, row) cell the constraints read,
column-major; constraint code never indexes it directly but goes through the
virtual columns.
"""

from typing import Dict, List, Tuple

from constraints.air import CpuAirDefinition
from constraints.layout import (
    BitwiseParams,
    BuiltinParams,
    DilutedPoolParams,
    Layout,
    Neighbor,
    PedersenParams,
    RangeCheckParams,
)
from primitives.pedersen import ec_subset_sum_table
from primitives.polynomial import PeriodicColumn
from protocol.trace_context import VirtualColumn

RECURSIVE_LAYOUT = Layout(
    name="recursive",
    n_columns_first=7,
    n_columns_second=3,
    n_interaction_elements=6,
    output=BuiltinParams(ratio=0, row_ratio=0),
    pedersen=PedersenParams(ratio=128, row_ratio=2048, repetitions=1),
    range_check=RangeCheckParams(ratio=8, row_ratio=128, n_parts=8),
    bitwise=BitwiseParams(ratio=8, row_ratio=128, total_n_bits=251),
    diluted_pool=DilutedPoolParams(spacing=4, n_bits=16),
)


def _neighbors(column: int, rows) -> List[Neighbor]:
    return [Neighbor(column, r) for r in rows]


RECURSIVE_NEIGHBORS: Tuple[Neighbor, ...] = tuple(
    _neighbors(0, range(16))
    + _neighbors(1, [0, 1] + list(range(2, 31, 2)) + [32, 33, 64, 65, 88, 90, 92, 94, 96, 97,
                                                      120, 122, 124, 126])
    + _neighbors(2, [0, 1])
    + _neighbors(3, [0, 1, 2, 3, 4, 5, 8, 9, 10, 11, 12, 13, 16, 26, 27, 42, 43, 58, 74, 75,
                     91, 122, 123, 154, 202, 522, 523, 1034, 1035, 2058])
    + _neighbors(4, range(4))
    + _neighbors(5, list(range(9)) + list(range(12, 125, 16)) + [1021, 1023, 1025, 1027, 2045])
    + _neighbors(6, [0, 1, 2, 3, 4, 5, 7, 9, 11, 13, 17, 25, 768, 772, 784, 788, 1004, 1008,
                     1022, 1024])
    + _neighbors(7, [0, 1])
    + _neighbors(8, [0, 1])
    + _neighbors(9, [0, 1, 2, 5])
)

RECURSIVE_VIRTUAL_COLUMNS: Dict[str, VirtualColumn] = {
    # column 0: instruction flags
    "cpu/decode/opcode_range_check/column": VirtualColumn(0, 1, 0),
    # column 1: diluted pool
    "diluted_pool": VirtualColumn(1, 1, 0),
    "bitwise/diluted_var_pool": VirtualColumn(1, 2, 0),
    "bitwise/trim_unpacking192": VirtualColumn(1, 128, 1),
    "bitwise/trim_unpacking193": VirtualColumn(1, 128, 65),
    "bitwise/trim_unpacking194": VirtualColumn(1, 128, 33),
    "bitwise/trim_unpacking195": VirtualColumn(1, 128, 97),
    # column 2: sorted diluted pool
    "diluted_check/permuted_values": VirtualColumn(2, 1, 0),
    # column 3: memory pool
    "mem_pool/addr": VirtualColumn(3, 2, 0),
    "mem_pool/value": VirtualColumn(3, 2, 1),
    "cpu/decode/pc": VirtualColumn(3, 16, 0),
    "cpu/decode/instruction": VirtualColumn(3, 16, 1),
    "orig/public_memory/addr": VirtualColumn(3, 16, 2),
    "orig/public_memory/value": VirtualColumn(3, 16, 3),
    "cpu/operands/mem_op0/addr": VirtualColumn(3, 16, 4),
    "cpu/operands/mem_op0/value": VirtualColumn(3, 16, 5),
    "cpu/operands/mem_dst/addr": VirtualColumn(3, 16, 8),
    "cpu/operands/mem_dst/value": VirtualColumn(3, 16, 9),
    "cpu/operands/mem_op1/addr": VirtualColumn(3, 16, 12),
    "cpu/operands/mem_op1/value": VirtualColumn(3, 16, 13),
    "pedersen/input0/addr": VirtualColumn(3, 2048, 10),
    "pedersen/input0/value": VirtualColumn(3, 2048, 11),
    "pedersen/input1/addr": VirtualColumn(3, 2048, 1034),
    "pedersen/input1/value": VirtualColumn(3, 2048, 1035),
    "pedersen/output/addr": VirtualColumn(3, 2048, 522),
    "pedersen/output/value": VirtualColumn(3, 2048, 523),
    "range_check_builtin/mem/addr": VirtualColumn(3, 128, 74),
    "range_check_builtin/mem/value": VirtualColumn(3, 128, 75),
    "bitwise/var_pool/addr": VirtualColumn(3, 32, 26),
    "bitwise/var_pool/value": VirtualColumn(3, 32, 27),
    "bitwise/x_or_y/addr": VirtualColumn(3, 128, 42),
    "bitwise/x_or_y/value": VirtualColumn(3, 128, 43),
    # column 4: sorted memory
    "memory/sorted/addr": VirtualColumn(4, 2, 0),
    "memory/sorted/value": VirtualColumn(4, 2, 1),
    # column 5: 16-bit range checks and pedersen partial sums
    "range_check16/pool": VirtualColumn(5, 4, 0),
    "range_check16/sorted": VirtualColumn(5, 4, 2),
    "cpu/decode/off0": VirtualColumn(5, 16, 0),
    "cpu/decode/off2": VirtualColumn(5, 16, 4),
    "cpu/decode/off1": VirtualColumn(5, 16, 8),
    "range_check_builtin/inner_range_check": VirtualColumn(5, 16, 12),
    "pedersen/hash0/ec_subset_sum/partial_sum/x": VirtualColumn(5, 4, 1),
    "pedersen/hash0/ec_subset_sum/partial_sum/y": VirtualColumn(5, 4, 3),
    # column 6: registers, temporaries and pedersen selectors
    "pedersen/hash0/ec_subset_sum/selector": VirtualColumn(6, 4, 0),
    "pedersen/hash0/ec_subset_sum/slope": VirtualColumn(6, 4, 2),
    "pedersen/hash0/ec_subset_sum/bit_unpacking/prod_ones192": VirtualColumn(6, 1024, 7),
    "pedersen/hash0/ec_subset_sum/bit_unpacking/prod_ones196": VirtualColumn(6, 1024, 1022),
    "cpu/registers/ap": VirtualColumn(6, 16, 1),
    "cpu/registers/fp": VirtualColumn(6, 16, 9),
    "cpu/update_registers/update_pc/tmp0": VirtualColumn(6, 16, 3),
    "cpu/update_registers/update_pc/tmp1": VirtualColumn(6, 16, 11),
    "cpu/operands/ops_mul": VirtualColumn(6, 16, 5),
    "cpu/operands/res": VirtualColumn(6, 16, 13),
    # interaction columns
    "diluted_check/permutation/cum_prod0": VirtualColumn(7, 1, 0),
    "diluted_check/cumulative_value": VirtualColumn(8, 1, 0),
    "memory/multi_column_perm/perm/cum_prod0": VirtualColumn(9, 2, 0),
    "range_check16/perm/cum_prod0": VirtualColumn(9, 4, 1),
}


class RecursiveCpuAirDefinition(CpuAirDefinition):
    layout = RECURSIVE_LAYOUT
    neighbors = RECURSIVE_NEIGHBORS
    virtual_columns = RECURSIVE_VIRTUAL_COLUMNS
    periodic_column_names = ("pedersen/points/x", "pedersen/points/y")

    # Selector rows between consecutive table points.
    PEDERSEN_POINTS_STEP = 4

    def build_periodic_columns(self, trace_generator) -> List[PeriodicColumn]:
        table = ec_subset_sum_table(self.hash_context)
        return [
            PeriodicColumn([int(p.x) for p in table], self.trace_length,
                           column_step=self.PEDERSEN_POINTS_STEP),
            PeriodicColumn([int(p.y) for p in table], self.trace_length,
                           column_step=self.PEDERSEN_POINTS_STEP),
        ]
