"""Tests for the memory, range-check-16 and diluted permutation arguments."""

import random

import numpy as np
import pytest

from constraints import memory, range_check16
from constraints.memory import compute_public_memory_prod
from primitives.field import FF, ONE, to_field
from witness import RecursiveWitness

PERMUTATION_FAMILIES = ["memory", "public_memory_addr_zero", "public_memory_value_zero",
                        "range_check16"]


def _pool_vcols(air):
    context = air.get_trace_generation_context()
    return context.get_virtual_column(memory.POOL_ADDR), context.get_virtual_column(memory.POOL_VALUE)


def _public_slots(air, pool_size):
    pool, _ = _pool_vcols(air)
    public = air.get_trace_generation_context().get_virtual_column(memory.PUBLIC_ADDR)
    first = (public.row_offset - pool.row_offset) // pool.step
    return set(range(first, pool_size, public.step // pool.step))


def test_honest_trace_satisfies_permutation_arguments(full_trace):
    air, trace = full_trace
    assert air.find_violations(trace, PERMUTATION_FAMILIES) == []


def test_sorted_memory_is_continuous(first_round):
    """Sorted addresses start at 1 and grow by at most 1."""
    air, trace = first_round
    vcol = air.get_trace_generation_context().get_virtual_column(memory.SORTED_ADDR)
    addresses = [int(a) for a in trace.read(vcol)]
    assert addresses[0] == 1
    assert all(b - a in (0, 1) for a, b in zip(addresses, addresses[1:]))


def test_sorted_range_checks_span_bounds(first_round):
    air, trace = first_round
    vcol = air.get_trace_generation_context().get_virtual_column(range_check16.SORTED)
    values = [int(v) for v in trace.read(vcol)]
    assert values[0] == air.rc_min
    assert values[-1] == air.rc_max


class TestShuffledMemoryLog:
    """The order of memory accesses does not matter, their content does."""

    @pytest.fixture
    def shuffled(self, first_round, full_trace):
        first_air, trace = first_round
        air, _ = full_trace
        trace = trace.copy()
        pool_addr, pool_value = _pool_vcols(first_air)
        addresses = trace.read(pool_addr)
        values = trace.read(pool_value)
        private = sorted(set(range(len(addresses))) - _public_slots(first_air, len(addresses)))
        order = list(private)
        random.Random(11).shuffle(order)
        trace.write(pool_addr, _permuted(addresses, private, order))
        trace.write(pool_value, _permuted(values, private, order))
        return first_air, air, trace

    def test_shuffled_log_keeps_memory_constraints(self, shuffled):
        first_air, air, trace = shuffled
        witness = RecursiveWitness()
        witness.compute_sorted_columns(trace, first_air)
        full = witness.compute_interaction_columns(trace, air)
        assert air.find_violations(full, ["memory"]) == []

    def test_mutated_address_breaks_permutation(self, shuffled):
        """An access changed after sorting is missing from the sorted copy."""
        first_air, air, trace = shuffled
        witness = RecursiveWitness()
        witness.compute_sorted_columns(trace, first_air)
        pool_addr, _ = _pool_vcols(first_air)
        slot = min(set(range(pool_addr.size(trace.length)))
                   - _public_slots(first_air, pool_addr.size(trace.length)))
        trace.write_cell(pool_addr, slot, int(trace.read_cell(pool_addr, slot)) + 1)
        full = witness.compute_interaction_columns(trace, air)
        names = {v.name for v in air.find_violations(full, ["memory"])}
        assert names == {"memory/multi_column_perm/perm/last"}


def _permuted(values, slots, order):
    result = values.copy()
    result[np.array(slots)] = values[np.array(order)]
    return result


class TestPublicMemoryProduct:
    def test_empty_public_memory(self):
        assert compute_public_memory_prod([], FF(5), FF(7)) == ONE

    def test_matches_explicit_product(self):
        z, alpha = FF(1000), FF(3)
        entries = [(1, 10), (2, 20), (5, 0)]
        expected = z ** 3
        for address, value in entries:
            expected = expected / (z - (to_field(address) + alpha * to_field(value)))
        assert compute_public_memory_prod(entries, z, alpha) == expected

    def test_interaction_phase_stores_product(self, full_trace):
        air, _ = full_trace
        elements = air.interaction_elements
        expected = compute_public_memory_prod(air.public_memory, elements.memory_perm,
                                              elements.memory_hash)
        assert air.values[memory.PUBLIC_MEMORY_PROD] == expected


class TestPublicMemorySlots:
    def test_nonzero_public_slot_is_violation(self, full_trace):
        air, trace = full_trace
        trace = trace.copy()
        vcol = air.get_trace_generation_context().get_virtual_column(memory.PUBLIC_VALUE)
        trace.write_cell(vcol, 3, 1)
        violations = air.find_violations(trace, ["public_memory_value_zero"])
        assert [v.row for v in violations] == [16 * 3]


class TestRangeCheck16:
    def test_value_outside_bounds_breaks_maximum(self, full_trace):
        """Raising the top sorted value past rc_max breaks the maximum check."""
        air, trace = full_trace
        trace = trace.copy()
        vcol = air.get_trace_generation_context().get_virtual_column(range_check16.SORTED)
        last = vcol.size(trace.length) - 1
        trace.write_cell(vcol, last, air.rc_max + 1)
        names = {v.name for v in air.find_violations(trace, ["range_check16"])}
        assert "range_check16/maximum" in names
        assert "range_check16/minimum" not in names
