# opcodes.py: Opcode table shared by the assembler and the CPU, encode/decode
from typing import Dict, NamedTuple, Optional, Tuple

from .encoding import OPR_BITS, OPR_MASK, WORD_MASK, hex4

# Operand kinds
NONE = "none"            # low 12 bits forced to 0
ADDRESS = "address"      # 12-bit address, label or literal
CONDITION = "condition"  # SKIPCOND condition code in bits [11:9]
LITERAL = "literal"      # DEC: whole word is the value, no opcode


class OpInfo(NamedTuple):
    name: str
    code: Optional[int]
    kind: str

    @property
    def arity(self) -> int:
        return 0 if self.kind == NONE else 1


_TABLE = (
    OpInfo("LOAD",     0x1, ADDRESS),
    OpInfo("STORE",    0x2, ADDRESS),
    OpInfo("ADD",      0x3, ADDRESS),
    OpInfo("SUBT",     0x4, ADDRESS),
    OpInfo("INPUT",    0x5, NONE),
    OpInfo("OUTPUT",   0x6, NONE),
    OpInfo("HALT",     0x7, NONE),
    OpInfo("SKIPCOND", 0x8, CONDITION),
    OpInfo("JUMP",     0x9, ADDRESS),
    OpInfo("CLEAR",    0xB, NONE),
    OpInfo("ADDI",     0xC, ADDRESS),
    OpInfo("JUMPI",    0xD, ADDRESS),
    # pseudo-op
    OpInfo("DEC",      None, LITERAL),
)

OP: Dict[str, OpInfo] = {info.name: info for info in _TABLE}
OP_REV: Dict[int, OpInfo] = {info.code: info for info in _TABLE if info.code is not None}

# ---- SKIPCOND condition codes (bits [11:9]) ----
COND_MASK = 0x0E00
COND_LT = 0x000
COND_ZE = 0x400
COND_GT = 0x800

COND_BY_NAME = {"LT": COND_LT, "ZE": COND_ZE, "GT": COND_GT}
COND_NAME = {v: k for k, v in COND_BY_NAME.items()}


def lookup(mnemonic: str) -> Optional[OpInfo]:
    return OP.get(mnemonic.upper())


def encode_instr(op_name: str, operand: int = 0) -> int:
    info = OP[op_name.upper()]
    if info.code is None:
        raise ValueError(f"{info.name} is a pseudo-op and has no opcode")
    if info.kind == NONE:
        operand = 0
    elif info.kind == CONDITION:
        operand &= COND_MASK
    return ((info.code << OPR_BITS) | (operand & OPR_MASK)) & WORD_MASK


def decode_op(word: int) -> Tuple[int, int]:
    return ((word >> OPR_BITS) & 0xF), (word & OPR_MASK)


def parse_condition(tok: str) -> Optional[int]:
    """Map LT/ZE/GT or their numeric codes (0, 400, 800, hex with or without 0x) to bits."""
    t = tok.strip().upper()
    if t in COND_BY_NAME:
        return COND_BY_NAME[t]
    if t.startswith("0X"):
        t = t[2:]
    try:
        val = int(t, 16)
    except ValueError:
        return None
    return val if val in COND_NAME else None


def disassemble(word: int) -> str:
    op, opr = decode_op(word)
    info = OP_REV.get(op)
    if info is None:
        return f"??? {hex4(word)}"
    if info.kind == NONE:
        return info.name
    if info.kind == CONDITION:
        cond = opr & COND_MASK
        return f"{info.name} {COND_NAME.get(cond, f'{cond:03X}')}"
    return f"{info.name} {opr:03X}"
