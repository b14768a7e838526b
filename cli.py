# cli.py: command-line front end for the MARIE-style assembler and simulator
# Provides commands to assemble programs, run hex images, or do both in one step.

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

# Local module imports
from marie_sim.tools.assembler import MarieAssembler, render_hex
from marie_sim.tools.report import (
    format_trace,
    format_instruction_summary,
    format_memory_dump,
    format_registers,
)
from marie_sim.core.cpu import CPU, DEFAULT_MAX_CYCLES
from marie_sim.core.memory import Memory, ImageLoader
from marie_sim.core.encoding import parse_int
from marie_sim.core.errors import AssemblyError, ImageFormatError
from marie_sim.core.observe import TraceSink

logger = logging.getLogger("marie_sim.cli")


# -----------------------------------------------------------------------------
# Utilities
# -----------------------------------------------------------------------------

def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _parse_range(spec: str) -> Tuple[int, int]:
    """argparse type for 'START:COUNT' with START/COUNT as decimal or 0x-prefixed ints."""
    start, _, count = spec.partition(":")
    try:
        return parse_int(start), parse_int(count) if count else 32
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START:COUNT, got {spec!r}") from None


def _parse_values(spec: str) -> List[int]:
    """argparse type for a comma-separated list of integers."""
    try:
        return [parse_int(v) for v in spec.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {spec!r}") from None


def _make_input(values: Optional[List[int]]) -> Callable[[], int]:
    queued = list(values or [])

    def read_value() -> int:
        if queued:
            return queued.pop(0)
        return parse_int(input("Input: "))

    return read_value


def _assemble(src: Path, strict: bool) -> Optional[MarieAssembler]:
    try:
        asm = MarieAssembler(read_text(src), strict=strict)
        asm.assemble()
    except AssemblyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return None
    for err in asm.errors:
        print(f"Error: {err}", file=sys.stderr)
    return asm


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def cmd_assemble(args: argparse.Namespace) -> int:
    src = Path(args.source)
    out = Path(args.out) if args.out else src.with_suffix(".hex")

    asm = _assemble(src, args.strict)
    if asm is None:
        return 1

    out.write_text(render_hex(asm.items), encoding="utf-8")
    if args.listing:
        Path(args.listing).write_text("\n".join(asm.listing()) + "\n", encoding="utf-8")

    print(f"Assembled '{src.name}' → '{out}' with {len(asm.items)} words, {len(asm.errors)} error(s).")
    return 0 if asm.ok else 1


def _run_memory(memory: Memory, args: argparse.Namespace) -> int:
    cpu = CPU(
        memory,
        input_source=_make_input(args.input),
        output_sink=lambda v: print(f"Output: {v}"),
        max_cycles=args.max_cycles,
        keep_trace=args.trace,
    )

    sink = None
    if args.trace_file:
        sink = TraceSink(path=args.trace_file)
        cpu.set_trace_sink(sink)
        print(f"Tracing to '{args.trace_file}'")

    try:
        result = cpu.run()
    finally:
        if sink is not None:
            sink.close()

    if args.trace:
        print("\n".join(format_trace(cpu.trace)))

    if result.ok:
        print(f"Program halted after {result.cycles} cycles.")
    else:
        print(f"Run failed ({result.reason.value}) after {result.cycles} cycles: {result.fault}")
    print(f"REGS {format_registers(cpu.machine.registers())}")

    print()
    print("\n".join(format_instruction_summary(cpu.instruction_counts)))

    if args.dump:
        start, count = args.dump
        print()
        print("\n".join(format_memory_dump(cpu.memory, start, count)))

    if args.trace_metrics:
        Path(args.trace_metrics).write_text(
            json.dumps({**cpu.metrics, "cycles": result.cycles, "reason": result.reason.value}, indent=2),
            encoding="utf-8",
        )

    return 0 if result.ok else 1


def cmd_run(args: argparse.Namespace) -> int:
    memory = Memory()
    try:
        n = ImageLoader(memory).load_text(read_text(Path(args.image)))
    except ImageFormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    logger.info("Loaded %d words from %s", n, args.image)
    return _run_memory(memory, args)


def cmd_asmrun(args: argparse.Namespace) -> int:
    asm = _assemble(Path(args.source), args.strict)
    if asm is None:
        return 1
    memory = Memory()
    ImageLoader(memory).load_text(render_hex(asm.items))
    return _run_memory(memory, args)


# -----------------------------------------------------------------------------
# Argument parsing
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="16-bit accumulator machine assembler / simulator")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_strict_opt(prs: argparse.ArgumentParser):
        prs.add_argument("--strict", action="store_true", help="Stop at the first assembly error")

    def add_run_opts(prs: argparse.ArgumentParser):
        prs.add_argument("--max-cycles", type=int, default=DEFAULT_MAX_CYCLES, help="Safety cap on executed cycles")
        prs.add_argument("--trace", action="store_true", help="Print the per-cycle trace table")
        prs.add_argument("--trace-file", help="Write JSONL trace to file")
        prs.add_argument("--trace-metrics", help="Write metrics JSON to file")
        prs.add_argument("--dump", type=_parse_range, help="Memory dump range START:COUNT after the run")
        prs.add_argument("--input", type=_parse_values, help="Comma-separated values for INPUT (stdin when exhausted)")

    # assemble
    pa = sub.add_parser("assemble", help="Assemble program source → hex image")
    pa.add_argument("source", help="Assembly source file")
    pa.add_argument("-o", "--out", help="Output hex path (default: SOURCE.hex)")
    pa.add_argument("--listing", help="Emit listing to file")
    add_strict_opt(pa)

    # run
    pr = sub.add_parser("run", help="Run a hex image on the simulator")
    pr.add_argument("image", help="Hex image (optionally with @addr directives)")
    add_run_opts(pr)

    # asmrun
    pb = sub.add_parser("asmrun", help="Assemble source and run it")
    pb.add_argument("source", help="Assembly source file")
    add_strict_opt(pb)
    add_run_opts(pb)

    return p


# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.cmd == "assemble":
        return cmd_assemble(args)
    elif args.cmd == "run":
        return cmd_run(args)
    elif args.cmd == "asmrun":
        return cmd_asmrun(args)
    else:
        parser.error("Unknown command")
        return 2


if __name__ == "__main__":
    sys.exit(main())
