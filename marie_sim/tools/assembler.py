# assembler.py: MarieAssembler (two-pass) with best-effort or strict error policy
import logging
from typing import Dict, List, Sequence, Union

from ..core.encoding import MEM_SIZE, WORD_MASK, addr12, hex4, parse_int
from ..core.errors import (
    AssemblyError,
    DuplicateLabelError,
    InvalidLiteralError,
    ProgramTooLargeError,
    UnknownOpcodeError,
    UnresolvedOperandError,
)
from ..core.opcodes import ADDRESS, CONDITION, LITERAL, encode_instr, lookup, parse_condition
from .parser import ParsedLine, parse_source

logger = logging.getLogger(__name__)


class AsmItem:
    def __init__(self, addr: int, word: int, kind: str, lineno: int, text: str = ""):
        self.addr = addr
        self.word = word & WORD_MASK
        self.kind = kind  # 'instr', 'data' or 'blank'
        self.lineno = lineno
        self.text = text

    def __repr__(self):
        return f"AsmItem(addr={self.addr}, kind={self.kind}, word=0x{self.word:04X})"


class MarieAssembler:
    """
    Pass 1 binds labels to addresses (one word per parsed line, starting at 0).
    Pass 2 encodes every line into one word using the finished symbol table.

    With strict=False, per-line errors (unknown opcode, unresolved operand, bad DEC literal)
    are logged, collected in self.errors and replaced by zero so the rest of the program
    still assembles. With strict=True the first such error is raised.
    A duplicate label, or a program longer than memory, always aborts pass 1.
    """

    def __init__(self, source: Union[str, Sequence[ParsedLine]], strict: bool = False):
        self.strict = strict
        self.labels: Dict[str, int] = {}
        self.items: List[AsmItem] = []
        self.errors: List[AssemblyError] = []
        self._parse_errors: List[AssemblyError] = []
        if isinstance(source, str):
            self.lines: List[ParsedLine] = parse_source(source, on_error=self._report_parse)
        else:
            self.lines = list(source)
        self._label_lines: Dict[str, int] = {}

    @property
    def ok(self) -> bool:
        return not self.errors

    # ---------- pass 1 ----------
    def pass1(self) -> Dict[str, int]:
        self.labels.clear()
        self._label_lines.clear()
        if len(self.lines) > MEM_SIZE:
            raise ProgramTooLargeError(len(self.lines), MEM_SIZE, self.lines[MEM_SIZE].lineno)
        for loc, pl in enumerate(self.lines):
            if pl.label is None:
                continue
            if pl.label in self.labels:
                raise DuplicateLabelError(pl.label, pl.lineno, self._label_lines[pl.label])
            self.labels[pl.label] = loc
            self._label_lines[pl.label] = pl.lineno
        return self.labels

    # ---------- pass 2 ----------
    def _report(self, err: AssemblyError):
        if self.strict:
            raise err
        logger.warning("%s", err)
        self.errors.append(err)

    def _report_parse(self, err: AssemblyError):
        self._report(err)
        self._parse_errors.append(err)

    def _resolve(self, pl: ParsedLine) -> int:
        tok = pl.operand
        if not tok:
            self._report(UnresolvedOperandError(tok, pl.lineno, reason=f"{pl.mnemonic.upper()} requires an address"))
            return 0
        if tok in self.labels:
            return self.labels[tok]
        try:
            return addr12(parse_int(tok))
        except ValueError:
            self._report(UnresolvedOperandError(tok, pl.lineno))
            return 0

    def _encode(self, pl: ParsedLine) -> AsmItem:
        addr = len(self.items)
        if pl.mnemonic is None:
            return AsmItem(addr, 0x0000, "blank", pl.lineno, pl.text)

        info = lookup(pl.mnemonic)
        if info is None:
            self._report(UnknownOpcodeError(pl.mnemonic, pl.lineno))
            return AsmItem(addr, 0x0000, "instr", pl.lineno, pl.text)

        if info.kind == LITERAL:
            try:
                value = parse_int(pl.operand)
            except ValueError:
                self._report(InvalidLiteralError(pl.operand, pl.lineno))
                value = 0
            return AsmItem(addr, value & WORD_MASK, "data", pl.lineno, pl.text)

        operand = 0
        if info.kind == ADDRESS:
            operand = self._resolve(pl)
        elif info.kind == CONDITION:
            cond = parse_condition(pl.operand)
            if cond is None:
                self._report(UnresolvedOperandError(pl.operand, pl.lineno, reason="Unknown SKIPCOND condition"))
                cond = 0
            operand = cond
        elif pl.operand:
            logger.debug("[line %d] %s takes no operand; ignoring '%s'", pl.lineno, info.name, pl.operand)

        return AsmItem(addr, encode_instr(info.name, operand), "instr", pl.lineno, pl.text)

    def pass2(self) -> List[AsmItem]:
        self.items = []
        self.errors = list(self._parse_errors)
        for pl in self.lines:
            self.items.append(self._encode(pl))
        return self.items

    def assemble(self) -> List[AsmItem]:
        self.pass1()
        self.pass2()
        if self.errors:
            logger.warning("Assembly finished with %d error(s)", len(self.errors))
        return self.items

    # ---------- output ----------
    def hex_lines(self) -> List[str]:
        return [hex4(it.word) for it in self.items]

    def listing(self) -> List[str]:
        out = []
        for it in self.items:
            out.append(f"{it.addr:03X}  {hex4(it.word)}  {it.lineno:>4}  {it.text}")
        return out


def render_hex(items: Sequence[AsmItem]) -> str:
    """Machine image text: one 4-digit uppercase hex word per line, in program order."""
    return "".join(hex4(it.word) + "\n" for it in items)


def assemble_text(text: str, strict: bool = False) -> MarieAssembler:
    asm = MarieAssembler(text, strict=strict)
    asm.assemble()
    return asm
