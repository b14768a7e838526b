# tests/test_cpu.py
import pytest

from marie_sim.core.cpu import CPU, State, StopReason, TraceRow
from marie_sim.core.errors import CycleLimitExceeded, InputFault, UnsupportedOpcodeFault
from marie_sim.core.memory import load_image
from marie_sim.tools.assembler import assemble_text, render_hex

ADD_IMAGE = "1004 3005 2006 7000 0005 0003 0000"


def test_load_add_store_halt(make_cpu):
    cpu = make_cpu(ADD_IMAGE)
    result = cpu.run()
    assert result.ok
    assert result.reason is StopReason.HALT
    assert result.cycles == 4
    assert cpu.status is State.HALTED
    assert cpu.memory.read_word(6) == 8
    assert cpu.instruction_counts == {"LOAD": 1, "ADD": 1, "STORE": 1, "HALT": 1}
    assert cpu.metrics["instr_count"] == 4


def test_trace_rows(make_cpu):
    cpu = make_cpu(ADD_IMAGE)
    cpu.run()
    assert len(cpu.trace) == 4
    assert cpu.trace[0] == TraceRow(cycle=1, pc=1, ir=0x1004, ac=5, mar=4, mbr=5)
    assert cpu.trace[2] == TraceRow(cycle=3, pc=3, ir=0x2006, ac=8, mar=6, mbr=8)
    assert cpu.trace[3].ir == 0x7000


def test_keep_trace_off_still_counts(make_cpu):
    cpu = make_cpu(ADD_IMAGE, keep_trace=False)
    cpu.run()
    assert cpu.trace == []
    assert cpu.metrics["instr_count"] == 4


def test_undefined_opcode_faults_after_one_cycle(make_cpu):
    cpu = make_cpu("F000")
    result = cpu.run()
    assert not result.ok
    assert result.reason is StopReason.ILLEGAL
    assert result.cycles == 1
    assert cpu.status is State.FAULTED
    assert isinstance(result.fault, UnsupportedOpcodeFault)
    assert result.fault.opcode == 0xF
    assert result.fault.address == 0
    assert cpu.trace == []
    assert cpu.instruction_counts == {}


def test_step_raises_fault_and_machine_stays_faulted(make_cpu):
    cpu = make_cpu("0000")
    with pytest.raises(UnsupportedOpcodeFault):
        cpu.step()
    assert cpu.step() is False
    assert cpu.run().reason is StopReason.ILLEGAL


def test_infinite_loop_hits_cycle_cap(make_cpu):
    cpu = make_cpu("9000", max_cycles=100)
    result = cpu.run()
    assert result.reason is StopReason.CYCLE_LIMIT
    assert result.cycles == 100
    assert isinstance(result.fault, CycleLimitExceeded)
    assert not result.ok
    assert cpu.status is State.RUNNING


def test_skipcond_ze_skips_exactly_one(make_cpu):
    cpu = make_cpu("8400 F000 7000")
    cpu.step()
    assert cpu.pc == 2
    assert cpu.run().ok


def test_skipcond_not_taken(make_cpu):
    cpu = make_cpu("8000 7000")
    cpu.step()
    assert cpu.pc == 1
    assert cpu.run().ok


def test_skipcond_gt_and_lt(make_cpu):
    gt = make_cpu("1004 8800 F000 7000 0003")
    assert gt.run().ok
    lt = make_cpu("1004 8000 F000 7000 FFFF")
    assert lt.run().ok
    assert lt.ac == -1


def test_clear_only_touches_ac(make_cpu):
    cpu = make_cpu("1003 B000 7000 0009")
    cpu.step()
    assert cpu.ac == 9
    before = cpu.memory.snapshot()
    cpu.step()
    assert cpu.ac == 0
    assert cpu.pc == 2
    assert cpu.memory.snapshot() == before


def test_subtract_wraps(make_cpu):
    cpu = make_cpu("1004 4005 7000 0000 8000 0001")
    assert cpu.run().ok
    assert cpu.ac == 32767


def test_add_wraps(make_cpu):
    cpu = make_cpu("1003 3004 7000 7FFF 0001")
    assert cpu.run().ok
    assert cpu.ac == -32768


def test_store_negative_value(make_cpu):
    cpu = make_cpu("1003 2004 7000 FFFF 0000")
    cpu.run()
    assert cpu.memory.read_bits(4) == 0xFFFF
    assert cpu.trace[1].mbr == 0xFFFF


def test_input_and_output(make_cpu):
    seen = []
    cpu = make_cpu("5000 6000 7000", input_source=lambda: -5, output_sink=seen.append)
    assert cpu.run().ok
    assert cpu.ac == -5
    assert seen == [-5]
    assert cpu.outputs == [-5]


def test_jump(make_cpu):
    cpu = make_cpu("9002 F000 7000")
    assert cpu.run().ok
    assert cpu.instruction_counts == {"JUMP": 1, "HALT": 1}


def test_addi_dereferences_pointer(make_cpu):
    # M[5] points at M[6] = 7; AC = 10 + 7
    cpu = make_cpu("1004 C005 2007 7000 000A 0006 0007")
    assert cpu.run().ok
    assert cpu.memory.read_word(7) == 17


def test_jumpi_dereferences_pointer(make_cpu):
    cpu = make_cpu("D003 F000 7000 0002")
    result = cpu.run()
    assert result.ok
    assert result.cycles == 2


def test_pc_wraps_around_memory(make_cpu):
    cpu = make_cpu("7000\n@FFF\nB000\n")
    cpu.machine.pc = 0xFFF
    assert cpu.run().ok
    assert cpu.pc == 1


def test_independent_simulations():
    a = CPU(load_image("1002 7000 0001"))
    b = CPU(load_image("1002 7000 0002"))
    a.run()
    b.run()
    assert (a.ac, b.ac) == (1, 2)
    assert a.memory is not b.memory


def test_reset_keeps_memory(make_cpu):
    cpu = make_cpu(ADD_IMAGE)
    cpu.run()
    cpu.reset()
    assert cpu.status is State.RUNNING
    assert cpu.instruction_counts == {}
    assert cpu.trace == []
    assert cpu.memory.read_word(6) == 8


def test_assembled_countdown_loop():
    src = """\
        LOAD N
loop:   SKIPCOND GT
        JUMP done
        OUTPUT
        SUBT ONE
        JUMP loop
done:   HALT
N:      DEC 3
ONE:    DEC 1
"""
    asm = assemble_text(src)
    assert asm.ok
    cpu = CPU(load_image(render_hex(asm.items)))
    result = cpu.run()
    assert result.ok
    assert cpu.outputs == [3, 2, 1]
    assert cpu.instruction_counts["SKIPCOND"] == 4


def test_bad_input_value_faults_the_run(make_cpu):
    def bad_input():
        raise ValueError("invalid integer literal: 'abc'")

    cpu = make_cpu("1003 5000 7000 0004", input_source=bad_input)
    result = cpu.run()
    assert not result.ok
    assert result.reason is StopReason.INPUT
    assert result.cycles == 2
    assert cpu.status is State.FAULTED
    assert isinstance(result.fault, InputFault)
    assert isinstance(result.fault.cause, ValueError)
    assert result.fault.address == 1
    assert cpu.ac == 4
    assert cpu.instruction_counts == {"LOAD": 1}
    assert cpu.run().reason is StopReason.INPUT


def test_exhausted_input_faults_the_run(make_cpu):
    cpu = make_cpu("5000 5000 7000", input_source=iter([3]).__next__)
    result = cpu.run()
    assert result.reason is StopReason.INPUT
    assert isinstance(result.fault.cause, StopIteration)
    assert cpu.ac == 3
