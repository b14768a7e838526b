# cpu.py: accumulator CPU, fetch/decode/execute over a 4096-word Memory
import logging
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional

from .encoding import OPR_MASK, to_twos_complement, from_twos_complement, wrap_word, parse_int
from .errors import CycleLimitExceeded, InputFault, SimulationFault, UnsupportedOpcodeFault
from .memory import Memory
from .observe import TraceSink
from .opcodes import decode_op, OP_REV, COND_MASK, COND_LT, COND_ZE, COND_GT

logger = logging.getLogger(__name__)

DEFAULT_MAX_CYCLES = 1_000_000


class State(Enum):
    RUNNING = "running"
    HALTED = "halted"
    FAULTED = "faulted"


class StopReason(Enum):
    HALT = "HALT"
    ILLEGAL = "ILLEGAL"
    INPUT = "INPUT"
    CYCLE_LIMIT = "CYCLE_LIMIT"


class TraceRow(NamedTuple):
    cycle: int
    pc: int
    ir: int
    ac: int
    mar: int
    mbr: int


class RunResult:
    def __init__(self, reason: StopReason, cycles: int, fault: Optional[SimulationFault] = None):
        self.reason = reason
        self.cycles = cycles
        self.fault = fault

    @property
    def ok(self) -> bool:
        return self.reason is StopReason.HALT

    def __repr__(self):
        return f"RunResult(reason={self.reason.value}, cycles={self.cycles}, fault={self.fault!r})"


class MachineState:
    """
    Everything one simulation owns: memory, registers, run status and counters.
    AC is kept signed; IR, MBR and memory words are raw 16-bit values; PC and MAR are 12-bit.
    """

    def __init__(self, memory: Optional[Memory] = None):
        self.memory = memory if memory is not None else Memory()
        self.reset()

    def reset(self):
        self.ac: int = 0
        self.pc: int = 0
        self.ir: int = 0
        self.mar: int = 0
        self.mbr: int = 0
        self.status = State.RUNNING
        self.cycle = 0
        self.metrics = {
            "instr_count": 0,
            "by_opcode": {},            # op_name -> count
        }

    def registers(self) -> Dict[str, int]:
        return {"AC": self.ac, "PC": self.pc, "IR": self.ir, "MAR": self.mar, "MBR": self.mbr}


def _stdin_input() -> int:
    return parse_int(input("Input: "))


class CPU:
    """
    16-bit accumulator machine.
      - fetch: MAR <- PC, MBR <- M[MAR], IR <- MBR, PC <- PC + 1
      - decode: opcode = IR[15:12], operand = IR[11:0]
      - execute: handler looked up from the shared opcode table by mnemonic
    run() stops on HALT, on an unsupported opcode, or at the cycle cap.
    """

    def __init__(
        self,
        memory: Optional[Memory] = None,
        input_source: Optional[Callable[[], int]] = None,
        output_sink: Optional[Callable[[int], None]] = None,
        max_cycles: int = DEFAULT_MAX_CYCLES,
        keep_trace: bool = True,
    ):
        self.machine = MachineState(memory)
        self.input_source = input_source or _stdin_input
        self.output_sink = output_sink
        self.max_cycles = max_cycles
        self.keep_trace = keep_trace

        self.trace: List[TraceRow] = []
        self.outputs: List[int] = []
        self.last_fault: Optional[SimulationFault] = None

        # Observability
        self.trace_sink = None          # type: Optional[TraceSink]

        self._handlers = {code: getattr(self, "_op_" + info.name.lower()) for code, info in OP_REV.items()}

    # Convenience views on the owned state
    @property
    def memory(self) -> Memory:
        return self.machine.memory

    @property
    def ac(self) -> int:
        return self.machine.ac

    @property
    def pc(self) -> int:
        return self.machine.pc

    @property
    def status(self) -> State:
        return self.machine.status

    @property
    def metrics(self) -> dict:
        return self.machine.metrics

    @property
    def instruction_counts(self) -> Dict[str, int]:
        return self.machine.metrics["by_opcode"]

    def set_trace_sink(self, sink):
        self.trace_sink = sink

    def reset(self):
        """Reset registers, counters and trace; memory is left as loaded."""
        self.machine.reset()
        self.trace.clear()
        self.outputs.clear()
        self.last_fault = None

    # -----------------------------------------------------------------------
    # One cycle
    # -----------------------------------------------------------------------
    def step(self) -> bool:
        """Execute one cycle. Returns True while the machine is still running."""
        m = self.machine
        if m.status is not State.RUNNING:
            return False

        m.cycle += 1
        fetch_addr = m.pc
        m.mar = m.pc
        m.mbr = m.memory.read_bits(m.mar)
        m.ir = m.mbr
        m.pc = (m.pc + 1) & OPR_MASK

        op, operand = decode_op(m.ir)
        handler = self._handlers.get(op)
        if handler is None:
            m.status = State.FAULTED
            self.last_fault = UnsupportedOpcodeFault(op, fetch_addr, m.ir)
            raise self.last_fault

        try:
            handler(m, operand)
        except InputFault as e:
            m.status = State.FAULTED
            self.last_fault = e
            raise
        self._record(OP_REV[op].name)
        return m.status is State.RUNNING

    def run(self, max_cycles: Optional[int] = None) -> RunResult:
        m = self.machine
        limit = self.max_cycles if max_cycles is None else max_cycles
        if m.status is State.FAULTED:
            return RunResult(self._fault_reason(self.last_fault), m.cycle, self.last_fault)

        try:
            while m.status is State.RUNNING:
                if m.cycle >= limit:
                    raise CycleLimitExceeded(limit)
                self.step()
        except (UnsupportedOpcodeFault, InputFault) as e:
            logger.error("Fault after %d cycles: %s", m.cycle, e)
            return RunResult(self._fault_reason(e), m.cycle, e)
        except CycleLimitExceeded as e:
            self.last_fault = e
            logger.warning("%s (PC=%03X)", e, m.pc)
            return RunResult(StopReason.CYCLE_LIMIT, m.cycle, e)

        logger.debug("Halted after %d cycles", m.cycle)
        return RunResult(StopReason.HALT, m.cycle)

    @staticmethod
    def _fault_reason(fault: Optional[SimulationFault]) -> StopReason:
        return StopReason.INPUT if isinstance(fault, InputFault) else StopReason.ILLEGAL

    def _record(self, op_name: str):
        m = self.machine
        m.metrics["instr_count"] += 1
        m.metrics["by_opcode"][op_name] = 1 + m.metrics["by_opcode"].get(op_name, 0)

        row = TraceRow(m.cycle, m.pc, m.ir, m.ac, m.mar, m.mbr)
        if self.keep_trace:
            self.trace.append(row)
        if self.trace_sink:
            event = row._asdict()
            event["op_name"] = op_name
            self.trace_sink.emit(event)

    # -----------------------------------------------------------------------
    # Instruction handlers: (state, 12-bit operand)
    # -----------------------------------------------------------------------
    def _op_load(self, m: MachineState, operand: int):
        m.mar = operand
        m.mbr = m.memory.read_bits(m.mar)
        m.ac = from_twos_complement(m.mbr)

    def _op_store(self, m: MachineState, operand: int):
        m.mar = operand
        m.mbr = to_twos_complement(m.ac)
        m.memory.write_bits(m.mar, m.mbr)

    def _op_add(self, m: MachineState, operand: int):
        m.mar = operand
        m.mbr = m.memory.read_bits(m.mar)
        m.ac = wrap_word(m.ac + from_twos_complement(m.mbr))

    def _op_subt(self, m: MachineState, operand: int):
        m.mar = operand
        m.mbr = m.memory.read_bits(m.mar)
        m.ac = wrap_word(m.ac - from_twos_complement(m.mbr))

    def _op_input(self, m: MachineState, operand: int):
        try:
            value = int(self.input_source())
        except (ValueError, TypeError, EOFError, StopIteration) as e:
            raise InputFault((m.pc - 1) & OPR_MASK, e) from e
        m.ac = wrap_word(value)

    def _op_output(self, m: MachineState, operand: int):
        self.outputs.append(m.ac)
        if self.output_sink is not None:
            self.output_sink(m.ac)

    def _op_halt(self, m: MachineState, operand: int):
        m.status = State.HALTED

    def _op_skipcond(self, m: MachineState, operand: int):
        cond = operand & COND_MASK
        if cond == COND_LT:
            take = m.ac < 0
        elif cond == COND_ZE:
            take = m.ac == 0
        elif cond == COND_GT:
            take = m.ac > 0
        else:
            logger.debug("SKIPCOND with undefined condition %03X at cycle %d", cond, m.cycle)
            take = False
        if take:
            m.pc = (m.pc + 1) & OPR_MASK

    def _op_jump(self, m: MachineState, operand: int):
        m.pc = operand

    def _op_clear(self, m: MachineState, operand: int):
        m.ac = 0

    def _deref(self, m: MachineState, operand: int) -> int:
        # operand names a cell holding the effective address
        m.mar = operand
        m.mbr = m.memory.read_bits(m.mar)
        return m.mbr & OPR_MASK

    def _op_addi(self, m: MachineState, operand: int):
        self._op_add(m, self._deref(m, operand))

    def _op_jumpi(self, m: MachineState, operand: int):
        m.pc = self._deref(m, operand)
