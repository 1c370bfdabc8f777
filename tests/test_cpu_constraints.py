"""CPU constraint tests over a loop of `jmp rel 0` steps."""

import pytest

from constraints import cpu
from primitives.field import FF, TWO, ZERO
from protocol.air_config import InteractionPhaseError
from tests.trace_builder import NOP_FLAGS, NOP_INSTRUCTION, random_coefficients

CPU_FAMILIES = ["cpu", "initial_ap", "initial_fp", "initial_pc", "final_ap", "final_fp", "final_pc"]


def test_nop_loop_satisfies_cpu_constraints(first_round):
    """Every decode, operand, register, opcode and boundary constraint holds."""
    air, trace = first_round
    assert air.find_violations(trace, CPU_FAMILIES) == []


def test_nop_loop_combined_residual_is_zero(first_round):
    air, trace = first_round
    residuals = air.combined_residuals(trace, random_coefficients(air), CPU_FAMILIES)
    assert all(residuals == ZERO)


def test_instruction_cell_holds_packed_instruction(first_round):
    """The builder writes the instruction word the decoding constraints expect."""
    air, trace = first_round
    vcol = air.get_trace_generation_context().get_virtual_column
    assert int(trace.read_cell(vcol(cpu.INSTRUCTION), 5)) == NOP_INSTRUCTION
    assert int(trace.read_cell(vcol(cpu.OPCODE_COLUMN), 16 * 5)) == NOP_FLAGS
    assert int(trace.read_cell(vcol(cpu.OPCODE_COLUMN), 16 * 5 + 15)) == 0


class TestCorruptedFlags:
    """A flag suffix that decodes to the bit value 2."""

    STEP = 9

    @pytest.fixture
    def corrupted(self, first_round):
        air, trace = first_round
        trace = trace.copy()
        vcol = air.get_trace_generation_context().get_virtual_column(cpu.OPCODE_COLUMN)
        # Suffix 16 at bit 3 decodes to 1; 34 decodes to 34 - 2 * 16 = 2.
        trace.write_cell(vcol, 16 * self.STEP + 3, 34)
        return air, trace

    def test_bit_constraint_violated(self, corrupted):
        air, trace = corrupted
        violations = air.find_violations(trace, CPU_FAMILIES)
        assert ("cpu/decode/opcode_range_check/bit", 16 * self.STEP + 3) in [
            (v.name, v.row) for v in violations
        ]
        assert all(v.row // 16 == self.STEP for v in violations)

    def test_bit_residual_value(self, corrupted):
        """bit * (bit - 1) = 2 for bit = 2."""
        air, trace = corrupted
        assert air.constraint_residual(0, trace, 16 * self.STEP + 3) == TWO

    def test_combined_residual_at_row(self, corrupted):
        """Only the bit constraint covers the row, so the combination is coef[0] * 2."""
        air, trace = corrupted
        coefficients = random_coefficients(air, seed=3)
        value = air.combined_residual_at_row(trace, 16 * self.STEP + 3, coefficients, ["cpu"])
        assert value == coefficients[0] * TWO
        assert value != ZERO

    def test_other_rows_unaffected(self, corrupted):
        air, trace = corrupted
        coefficients = random_coefficients(air)
        assert air.combined_residual_at_row(trace, 16 * (self.STEP + 1) + 3, coefficients,
                                            ["cpu"]) == ZERO


def test_corrupted_register_breaks_ap_update(first_round):
    """Changing ap on one step breaks the update from the previous step."""
    air, trace = first_round
    trace = trace.copy()
    vcol = air.get_trace_generation_context().get_virtual_column(cpu.AP)
    trace.write_cell(vcol, 20, 5)
    names = {v.name for v in air.find_violations(trace, CPU_FAMILIES, rows=[16 * 19])}
    assert "cpu/update_registers/update_ap/ap_update" in names


def test_boundary_constraints_use_segments(first_round):
    """Moving the program start breaks initial_pc only on row 0."""
    air, trace = first_round
    trace = trace.copy()
    vcol = air.get_trace_generation_context().get_virtual_column(cpu.PC)
    trace.write_cell(vcol, 0, FF(2))
    violations = air.find_violations(trace, ["initial_pc"])
    assert [(v.name, v.row) for v in violations] == [("initial_pc", 0)]


def test_memory_constraints_need_interaction_phase(first_round):
    """Memory constraints read interaction values that do not exist yet."""
    air, trace = first_round
    with pytest.raises(InteractionPhaseError):
        air.find_violations(trace, ["memory"])
