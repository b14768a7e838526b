# tests/test_tracing_core.py
import json

from marie_sim.core.cpu import CPU
from marie_sim.core.memory import load_image
from marie_sim.core.observe import TraceSink
from marie_sim.tools.report import (
    format_trace,
    format_trace_row,
    format_instruction_summary,
    format_memory_dump,
    format_registers,
)

IMAGE = "1004 3005 2006 7000 0005 0003 0000"


def test_trace_events_and_metrics():
    cpu = CPU(load_image(IMAGE))
    buf = []
    cpu.set_trace_sink(TraceSink(collector=buf))
    cpu.run()

    assert len(buf) == 4
    assert [ev["op_name"] for ev in buf] == ["LOAD", "ADD", "STORE", "HALT"]
    first = buf[0]
    assert first["cycle"] == 1 and first["ir"] == 0x1004 and first["ac"] == 5
    assert cpu.metrics["by_opcode"]["ADD"] == 1


def test_trace_sink_writes_json_lines(tmp_path):
    path = tmp_path / "trace.jsonl"
    cpu = CPU(load_image(IMAGE))
    with TraceSink(path=str(path)) as sink:
        cpu.set_trace_sink(sink)
        cpu.run()
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 4
    assert json.loads(lines[-1])["op_name"] == "HALT"


def test_report_formatting():
    cpu = CPU(load_image(IMAGE))
    cpu.run()
    assert format_trace_row(cpu.trace[0]) == "    1 | 0001 1004 0005 0004 0005"
    table = format_trace(cpu.trace)
    assert table[0].startswith("Cycle")
    assert len(table) == 2 + 4

    summary = format_instruction_summary({"HALT": 1, "ADD": 3, "LOAD": 1})
    assert summary[2:] == ["ADD        : 3", "HALT       : 1", "LOAD       : 1"]

    dump = format_memory_dump(cpu.memory, 4, 3)
    assert dump[2:] == ["004: 0005", "005: 0003", "006: 0008"]


def test_negative_ac_renders_as_16_bit_hex():
    assert format_registers({"AC": -1, "PC": 3}) == "AC=FFFF PC=0003"
