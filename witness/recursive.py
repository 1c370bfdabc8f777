"""Witness generation for the recursive layout.

First round: the sorted memory, sorted 16-bit range-check pool and sorted
diluted pool. Interaction round: the three running products (memory, range
check, diluted pool) and the diluted cumulative value.
"""

import logging
from typing import List, Set, Tuple

from constraints import diluted, memory, range_check16
from constraints.air import AirPhase
from primitives.field import FF, FFPoly, ONE, batch_inverse
from protocol.air_config import InteractionPhaseError
from protocol.data import Trace

from .base import WitnessModule

logger = logging.getLogger(__name__)


class RecursiveWitness(WitnessModule):
    """Sorted copies and interaction columns of the recursive layout."""

    def compute_sorted_columns(self, trace: Trace, air) -> None:
        context = air.get_trace_generation_context()
        vcol = context.get_virtual_column

        accesses = self._memory_accesses(trace, air)
        trace.write(vcol(memory.SORTED_ADDR), [a for a, _ in accesses])
        trace.write(vcol(memory.SORTED_VALUE), [v for _, v in accesses])

        rc_pool = sorted(int(v) for v in trace.read(vcol(range_check16.POOL)))
        assert rc_pool[0] >= air.rc_min and rc_pool[-1] <= air.rc_max, \
            f"Range-check pool spans [{rc_pool[0]}, {rc_pool[-1]}], " \
            f"outside [{air.rc_min}, {air.rc_max}]"
        trace.write(vcol(range_check16.SORTED), rc_pool)

        if air.layout.diluted_pool is not None:
            diluted_pool = sorted(int(v) for v in trace.read(vcol(diluted.POOL)))
            trace.write(vcol(diluted.PERMUTED), diluted_pool)
        logger.debug("Sorted %d memory accesses and %d range checks",
                     len(accesses), len(rc_pool))

    def compute_interaction_columns(self, trace: Trace, air) -> Trace:
        if air.phase is not AirPhase.INTERACTION:
            raise InteractionPhaseError("Interaction columns need the interaction elements")
        assert trace.n_columns == air.layout.n_columns_first, \
            f"Expected a first-round trace with {air.layout.n_columns_first} columns"
        elements = air.interaction_elements
        vcol = air.get_trace_generation_context().get_virtual_column
        result = trace.with_columns(
            [FF.Zeros(trace.length) for _ in range(air.layout.n_columns_second)]
        )

        # Memory: z - (address + alpha * value)
        z, alpha = elements.memory_perm, elements.memory_hash
        pool = z - (trace.read(vcol(memory.POOL_ADDR)) + alpha * trace.read(vcol(memory.POOL_VALUE)))
        sorted_ = z - (trace.read(vcol(memory.SORTED_ADDR))
                       + alpha * trace.read(vcol(memory.SORTED_VALUE)))
        result.write(vcol(memory.CUM_PROD), self._permutation_product(pool, sorted_))

        z = elements.range_check16_perm
        result.write(
            vcol(range_check16.CUM_PROD),
            self._permutation_product(z - trace.read(vcol(range_check16.POOL)),
                                      z - trace.read(vcol(range_check16.SORTED))),
        )

        if air.layout.diluted_pool is not None:
            z = elements.diluted_perm
            permuted = trace.read(vcol(diluted.PERMUTED))
            result.write(
                vcol(diluted.CUM_PROD),
                self._permutation_product(z - trace.read(vcol(diluted.POOL)), z - permuted),
            )
            result.write(
                vcol(diluted.CUM_VALUE),
                self._diluted_cumulative_values(permuted, elements.diluted_z,
                                                elements.diluted_alpha),
            )
        logger.debug("Computed %d interaction columns", air.layout.n_columns_second)
        return result

    def _memory_accesses(self, trace: Trace, air) -> List[Tuple[int, int]]:
        """Non-public pool accesses together with the public memory, sorted by address."""
        vcol = air.get_trace_generation_context().get_virtual_column
        addresses = trace.read(vcol(memory.POOL_ADDR))
        values = trace.read(vcol(memory.POOL_VALUE))
        public_slots = self._public_slots(air, len(addresses))
        assert len(air.public_memory) == len(public_slots), \
            f"Public memory has {len(air.public_memory)} entries, " \
            f"the trace has {len(public_slots)} public slots"
        accesses = [
            (int(a), int(v)) for i, (a, v) in enumerate(zip(addresses, values))
            if i not in public_slots
        ]
        accesses.extend(air.public_memory)
        accesses.sort(key=lambda access: access[0])
        return accesses

    def _public_slots(self, air, pool_size: int) -> Set[int]:
        """Memory pool indices that hold the (0, 0) public memory placeholders."""
        vcol = air.get_trace_generation_context().get_virtual_column
        pool, public = vcol(memory.POOL_ADDR), vcol(memory.PUBLIC_ADDR)
        assert public.column == pool.column and public.step % pool.step == 0 \
            and (public.row_offset - pool.row_offset) % pool.step == 0, \
            "Public memory cells must be memory pool cells"
        first = (public.row_offset - pool.row_offset) // pool.step
        return set(range(first, pool_size, public.step // pool.step))

    def _permutation_product(self, numerators: FFPoly, denominators: FFPoly) -> FFPoly:
        """Running product of numerators[i] / denominators[i]."""
        return self._compute_cumulative_product(numerators * batch_inverse(denominators))

    def _diluted_cumulative_values(self, permuted: FFPoly, z: FF, alpha: FF) -> FFPoly:
        """r[0] = 1, r[i+1] = r[i] * (1 + z * d) + alpha * d^2 with d = permuted[i+1] - permuted[i]."""
        diffs = permuted[1:] - permuted[:-1]
        factors = ONE + z * diffs
        addends = alpha * diffs * diffs
        result = FF.Ones(len(permuted))
        for i in range(len(diffs)):
            result[i + 1] = result[i] * factors[i] + addends[i]
        return result
