"""CPU component constraints.

One CPU step occupies ``cpu_component_height`` (16) rows. The instruction's 15
flag bits are stored as suffixes of the flag word in the opcode range-check
column: row k holds ``flags >> k``, so flag k is ``col[k] - 2 * col[k + 1]`` and
row 15 must be zero. The three 16-bit offsets live in the 16-bit range-check
pool, biased by 2^15.

Constraints cover:
- decode: flag booleanity and the instruction word packing
- operands: operand addresses from ap/fp/pc and the result
- update_registers: next pc, ap and fp
- opcodes: call / ret / assert_eq semantics
- boundary: initial and final registers
"""

from typing import List

from constraints.base import Constraint, ConstraintContext, domain, every, row
from constraints.layout import Layout
from primitives.field import FF, ONE, TWO
from protocol.trace_context import TraceGenerationContext

OPCODE_COLUMN = "cpu/decode/opcode_range_check/column"
PC = "cpu/decode/pc"
INSTRUCTION = "cpu/decode/instruction"
OFF0 = "cpu/decode/off0"
OFF1 = "cpu/decode/off1"
OFF2 = "cpu/decode/off2"
AP = "cpu/registers/ap"
FP = "cpu/registers/fp"
DST_ADDR = "cpu/operands/mem_dst/addr"
DST = "cpu/operands/mem_dst/value"
OP0_ADDR = "cpu/operands/mem_op0/addr"
OP0 = "cpu/operands/mem_op0/value"
OP1_ADDR = "cpu/operands/mem_op1/addr"
OP1 = "cpu/operands/mem_op1/value"
OPS_MUL = "cpu/operands/ops_mul"
RES = "cpu/operands/res"
TMP0 = "cpu/update_registers/update_pc/tmp0"
TMP1 = "cpu/update_registers/update_pc/tmp1"

# Flag bit positions in the instruction's flag word.
DST_REG, OP0_REG, OP1_IMM, OP1_FP, OP1_AP = 0, 1, 2, 3, 4
RES_ADD, RES_MUL = 5, 6
PC_JUMP_ABS, PC_JUMP_REL, PC_JNZ = 7, 8, 9
AP_ADD, AP_ADD1 = 10, 11
OPCODE_CALL, OPCODE_RET, OPCODE_ASSERT_EQ = 12, 13, 14
N_FLAGS = 15

OFFSET_SIZE = FF(2**16)
FOUR = FF(4)


def flag(ctx: ConstraintContext, bit: int):
    """Decoded instruction flag."""
    return ctx.cell(OPCODE_COLUMN, bit) - TWO * ctx.cell(OPCODE_COLUMN, bit + 1)


def _op1_base_op0(ctx):
    return ONE - (flag(ctx, OP1_IMM) + flag(ctx, OP1_AP) + flag(ctx, OP1_FP))


def _res_op1(ctx):
    return ONE - (flag(ctx, RES_ADD) + flag(ctx, RES_MUL) + flag(ctx, PC_JNZ))


def _pc_update_regular(ctx):
    return ONE - (flag(ctx, PC_JUMP_ABS) + flag(ctx, PC_JUMP_REL) + flag(ctx, PC_JNZ))


def _fp_update_regular(ctx):
    return ONE - (flag(ctx, OPCODE_CALL) + flag(ctx, OPCODE_RET))


def _instruction_size(ctx):
    return flag(ctx, OP1_IMM) + ONE


def _boolean(value):
    return value * value - value


# --- decode ---

def opcode_bit(ctx):
    return _boolean(flag(ctx, 0))


def opcode_zero(ctx):
    return ctx.cell(OPCODE_COLUMN)


def opcode_input(ctx):
    """The instruction word is flags || off2 || off1 || off0, 16 bits per offset."""
    packed = ((ctx.cell(OPCODE_COLUMN) * OFFSET_SIZE + ctx.cell(OFF2)) * OFFSET_SIZE
              + ctx.cell(OFF1)) * OFFSET_SIZE + ctx.cell(OFF0)
    return ctx.cell(INSTRUCTION) - packed


def flag_op1_base_op0_bit(ctx):
    return _boolean(_op1_base_op0(ctx))


def flag_res_op1_bit(ctx):
    return _boolean(_res_op1(ctx))


def flag_pc_update_regular_bit(ctx):
    return _boolean(_pc_update_regular(ctx))


def fp_update_regular_bit(ctx):
    return _boolean(_fp_update_regular(ctx))


# --- operands ---

def mem_dst_addr(ctx):
    base = flag(ctx, DST_REG) * ctx.cell(FP) + (ONE - flag(ctx, DST_REG)) * ctx.cell(AP)
    return ctx.cell(DST_ADDR) + ctx.value("half_offset_size") - (base + ctx.cell(OFF0))


def mem0_addr(ctx):
    base = flag(ctx, OP0_REG) * ctx.cell(FP) + (ONE - flag(ctx, OP0_REG)) * ctx.cell(AP)
    return ctx.cell(OP0_ADDR) + ctx.value("half_offset_size") - (base + ctx.cell(OFF1))


def mem1_addr(ctx):
    base = (
        flag(ctx, OP1_IMM) * ctx.cell(PC)
        + flag(ctx, OP1_AP) * ctx.cell(AP)
        + flag(ctx, OP1_FP) * ctx.cell(FP)
        + _op1_base_op0(ctx) * ctx.cell(OP0)
    )
    return ctx.cell(OP1_ADDR) + ctx.value("half_offset_size") - (base + ctx.cell(OFF2))


def ops_mul(ctx):
    return ctx.cell(OPS_MUL) - ctx.cell(OP0) * ctx.cell(OP1)


def res(ctx):
    # res is unconstrained on jnz; its value is then reused as the jump offset.
    expected = (
        flag(ctx, RES_ADD) * (ctx.cell(OP0) + ctx.cell(OP1))
        + flag(ctx, RES_MUL) * ctx.cell(OPS_MUL)
        + _res_op1(ctx) * ctx.cell(OP1)
    )
    return (ONE - flag(ctx, PC_JNZ)) * ctx.cell(RES) - expected


# --- update_registers ---

def update_pc_tmp0(ctx):
    return ctx.cell(TMP0) - flag(ctx, PC_JNZ) * ctx.cell(DST)


def update_pc_tmp1(ctx):
    return ctx.cell(TMP1) - ctx.cell(TMP0) * ctx.cell(RES)


def pc_cond_negative(ctx):
    """Non-jnz updates, and jnz with dst != 0 (pc += op1)."""
    pc, next_pc = ctx.cell(PC), ctx.cell(PC, 1)
    lhs = (ONE - flag(ctx, PC_JNZ)) * next_pc + ctx.cell(TMP0) * (next_pc - (pc + ctx.cell(OP1)))
    rhs = (
        _pc_update_regular(ctx) * (pc + _instruction_size(ctx))
        + flag(ctx, PC_JUMP_ABS) * ctx.cell(RES)
        + flag(ctx, PC_JUMP_REL) * (pc + ctx.cell(RES))
    )
    return lhs - rhs


def pc_cond_positive(ctx):
    """jnz with dst == 0 falls through to the next instruction."""
    pc = ctx.cell(PC)
    return (ctx.cell(TMP1) - flag(ctx, PC_JNZ)) * (ctx.cell(PC, 1) - (pc + _instruction_size(ctx)))


def ap_update(ctx):
    expected = (
        ctx.cell(AP)
        + flag(ctx, AP_ADD) * ctx.cell(RES)
        + flag(ctx, AP_ADD1)
        + flag(ctx, OPCODE_CALL) * TWO
    )
    return ctx.cell(AP, 1) - expected


def fp_update(ctx):
    expected = (
        _fp_update_regular(ctx) * ctx.cell(FP)
        + flag(ctx, OPCODE_RET) * ctx.cell(DST)
        + flag(ctx, OPCODE_CALL) * (ctx.cell(AP) + TWO)
    )
    return ctx.cell(FP, 1) - expected


# --- opcodes ---

def call_push_fp(ctx):
    return flag(ctx, OPCODE_CALL) * (ctx.cell(DST) - ctx.cell(FP))


def call_push_pc(ctx):
    return flag(ctx, OPCODE_CALL) * (ctx.cell(OP0) - (ctx.cell(PC) + _instruction_size(ctx)))


def call_off0(ctx):
    return flag(ctx, OPCODE_CALL) * (ctx.cell(OFF0) - ctx.value("half_offset_size"))


def call_off1(ctx):
    return flag(ctx, OPCODE_CALL) * (ctx.cell(OFF1) - (ctx.value("half_offset_size") + ONE))


def call_flags(ctx):
    call = flag(ctx, OPCODE_CALL)
    return call * (TWO * call + TWO - (flag(ctx, DST_REG) + flag(ctx, OP0_REG) + FOUR))


def ret_off0(ctx):
    return flag(ctx, OPCODE_RET) * (ctx.cell(OFF0) + TWO - ctx.value("half_offset_size"))


def ret_off2(ctx):
    return flag(ctx, OPCODE_RET) * (ctx.cell(OFF2) + ONE - ctx.value("half_offset_size"))


def ret_flags(ctx):
    total = flag(ctx, PC_JUMP_ABS) + flag(ctx, DST_REG) + flag(ctx, OP1_FP) + _res_op1(ctx)
    return flag(ctx, OPCODE_RET) * (total - FOUR)


def assert_eq(ctx):
    return flag(ctx, OPCODE_ASSERT_EQ) * (ctx.cell(DST) - ctx.cell(RES))


# --- boundary ---

def initial_ap(ctx):
    return ctx.cell(AP) - ctx.value("initial_ap")


def initial_fp(ctx):
    return ctx.cell(FP) - ctx.value("initial_ap")


def initial_pc(ctx):
    return ctx.cell(PC) - ctx.value("initial_pc")


def final_ap(ctx):
    return ctx.cell(AP) - ctx.value("final_ap")


def final_fp(ctx):
    return ctx.cell(FP) - ctx.value("initial_ap")


def final_pc(ctx):
    return ctx.cell(PC) - ctx.value("final_pc")


def cpu_constraints(layout: Layout, context: TraceGenerationContext) -> List[Constraint]:
    """CPU constraints in slot order."""
    height = layout.cpu_component_height
    all_but_last_flag_row = domain(every(), excluding=[every(height, height - 1)])
    steps = domain(every(height))
    steps_but_last = domain(every(height), excluding=[row(-height)])
    first_step = domain(row(0))
    last_step = domain(row(-height))

    return [
        Constraint("cpu/decode/opcode_range_check/bit", all_but_last_flag_row, opcode_bit),
        Constraint("cpu/decode/opcode_range_check/zero",
                   domain(every(height, height - 1)), opcode_zero),
        Constraint("cpu/decode/opcode_range_check_input", steps, opcode_input),
        Constraint("cpu/decode/flag_op1_base_op0_bit", steps, flag_op1_base_op0_bit),
        Constraint("cpu/decode/flag_res_op1_bit", steps, flag_res_op1_bit),
        Constraint("cpu/decode/flag_pc_update_regular_bit", steps, flag_pc_update_regular_bit),
        Constraint("cpu/decode/fp_update_regular_bit", steps, fp_update_regular_bit),
        Constraint("cpu/operands/mem_dst_addr", steps, mem_dst_addr),
        Constraint("cpu/operands/mem0_addr", steps, mem0_addr),
        Constraint("cpu/operands/mem1_addr", steps, mem1_addr),
        Constraint("cpu/operands/ops_mul", steps, ops_mul),
        Constraint("cpu/operands/res", steps, res),
        Constraint("cpu/update_registers/update_pc/tmp0", steps_but_last, update_pc_tmp0),
        Constraint("cpu/update_registers/update_pc/tmp1", steps_but_last, update_pc_tmp1),
        Constraint("cpu/update_registers/update_pc/pc_cond_negative", steps_but_last,
                   pc_cond_negative),
        Constraint("cpu/update_registers/update_pc/pc_cond_positive", steps_but_last,
                   pc_cond_positive),
        Constraint("cpu/update_registers/update_ap/ap_update", steps_but_last, ap_update),
        Constraint("cpu/update_registers/update_fp/fp_update", steps_but_last, fp_update),
        Constraint("cpu/opcodes/call/push_fp", steps, call_push_fp),
        Constraint("cpu/opcodes/call/push_pc", steps, call_push_pc),
        Constraint("cpu/opcodes/call/off0", steps, call_off0),
        Constraint("cpu/opcodes/call/off1", steps, call_off1),
        Constraint("cpu/opcodes/call/flags", steps, call_flags),
        Constraint("cpu/opcodes/ret/off0", steps, ret_off0),
        Constraint("cpu/opcodes/ret/off2", steps, ret_off2),
        Constraint("cpu/opcodes/ret/flags", steps, ret_flags),
        Constraint("cpu/opcodes/assert_eq/assert_eq", steps, assert_eq),
        Constraint("initial_ap", first_step, initial_ap),
        Constraint("initial_fp", first_step, initial_fp),
        Constraint("initial_pc", first_step, initial_pc),
        Constraint("final_ap", last_step, final_ap),
        Constraint("final_fp", last_step, final_fp),
        Constraint("final_pc", last_step, final_pc),
    ]
