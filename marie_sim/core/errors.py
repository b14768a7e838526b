# errors.py: assembler errors and simulator faults
from typing import Optional


class AssemblyError(Exception):
    """Base for all assembler diagnostics; carries the source line number."""

    def __init__(self, message: str, lineno: Optional[int] = None):
        self.message = message
        self.lineno = lineno
        super().__init__(f"[line {lineno}] {message}" if lineno is not None else message)


class AssemblySyntaxError(AssemblyError):
    pass


class DuplicateLabelError(AssemblyError):
    def __init__(self, label: str, lineno: Optional[int] = None, first_lineno: Optional[int] = None):
        self.label = label
        self.first_lineno = first_lineno
        msg = f"Duplicate label: {label}"
        if first_lineno is not None:
            msg += f" (first defined at line {first_lineno})"
        super().__init__(msg, lineno)


class UnknownOpcodeError(AssemblyError):
    def __init__(self, mnemonic: str, lineno: Optional[int] = None):
        self.mnemonic = mnemonic
        super().__init__(f"Unknown opcode '{mnemonic}'", lineno)


class UnresolvedOperandError(AssemblyError):
    def __init__(self, operand: str, lineno: Optional[int] = None, reason: str = "Cannot resolve address"):
        self.operand = operand
        super().__init__(f"{reason}: '{operand}'", lineno)


class ProgramTooLargeError(AssemblyError):
    def __init__(self, words: int, limit: int, lineno: Optional[int] = None):
        self.words = words
        self.limit = limit
        super().__init__(f"Program needs {words} words but memory holds {limit}", lineno)


class InvalidLiteralError(AssemblyError):
    def __init__(self, literal: str, lineno: Optional[int] = None):
        self.literal = literal
        super().__init__(f"Invalid DEC value: '{literal}'", lineno)


class ImageFormatError(ValueError):
    def __init__(self, token: str, index: int):
        self.token = token
        self.index = index
        super().__init__(f"Bad image token #{index}: {token!r}")


class SimulationFault(Exception):
    pass


class UnsupportedOpcodeFault(SimulationFault):
    def __init__(self, opcode: int, address: int, word: int):
        self.opcode = opcode
        self.address = address
        self.word = word
        super().__init__(f"Unsupported opcode 0x{opcode:X} at {address:03X} (IR={word:04X})")


class CycleLimitExceeded(SimulationFault):
    def __init__(self, cycles: int):
        self.cycles = cycles
        super().__init__(f"Cycle limit of {cycles} reached without HALT")


class InputFault(SimulationFault):
    def __init__(self, address: int, cause: Exception):
        self.address = address
        self.cause = cause
        super().__init__(f"INPUT at {address:03X} failed: {cause!r}")
