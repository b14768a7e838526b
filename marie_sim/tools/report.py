# report.py: presentation of trace rows, instruction counts and memory dumps
from typing import Dict, Iterable, List

from ..core.encoding import hex4
from ..core.memory import Memory

TRACE_HEADER = "Cycle | PC   IR   AC   MAR  MBR"
RULE = "-" * 33


def format_trace_row(row) -> str:
    return (f"{row.cycle:5d} | {hex4(row.pc)} {hex4(row.ir)} {hex4(row.ac)} "
            f"{hex4(row.mar)} {hex4(row.mbr)}")


def format_trace(rows: Iterable) -> List[str]:
    return [TRACE_HEADER, RULE] + [format_trace_row(r) for r in rows]


def format_instruction_summary(counts: Dict[str, int]) -> List[str]:
    lines = ["Instruction Execution Counts:", RULE]
    for name in sorted(counts, key=lambda n: (-counts[n], n)):
        lines.append(f"{name:<10} : {counts[name]}")
    return lines


def format_memory_dump(memory: Memory, start: int = 0, count: int = 32) -> List[str]:
    lines = [f"Memory Dump ({count} words from {start:03X}):", RULE]
    for addr, word in memory.dump(start, count):
        lines.append(f"{addr:03X}: {hex4(word)}")
    return lines


def format_registers(regs: Dict[str, int]) -> str:
    return " ".join(f"{k}={hex4(v)}" for k, v in regs.items())
