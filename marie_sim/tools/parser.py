# parser.py: source text -> ParsedLine list ([label:] mnemonic [operand])
from typing import Callable, List, NamedTuple, Optional

from ..core.encoding import strip_comments
from ..core.errors import AssemblyError, AssemblySyntaxError

ErrorHandler = Callable[[AssemblyError], None]


class ParsedLine(NamedTuple):
    label: Optional[str]
    mnemonic: Optional[str]
    operand: str
    lineno: int
    text: str = ""


def parse_line(raw: str, lineno: int, on_error: Optional[ErrorHandler] = None) -> Optional[ParsedLine]:
    """
    Split one source line. A bad label raises AssemblySyntaxError, or, when on_error
    is given, is passed to it and the line is kept without a label.
    """
    text = strip_comments(raw).strip()
    if not text:
        return None

    line = text
    label = None
    if ":" in line:
        head, line = line.split(":", 1)
        label = head.strip()
        err = None
        if not label:
            err = AssemblySyntaxError("Empty label name", lineno)
        elif len(label.split()) != 1:
            err = AssemblySyntaxError(f"Invalid label: '{label}'", lineno)
        if err is not None:
            if on_error is None:
                raise err
            on_error(err)
            label = None
        line = line.strip()

    toks = line.split(None, 1)
    mnemonic = toks[0] if toks else None
    operand = toks[1].strip() if len(toks) > 1 else ""
    return ParsedLine(label, mnemonic, operand, lineno, text)


def parse_source(text: str, on_error: Optional[ErrorHandler] = None) -> List[ParsedLine]:
    lines: List[ParsedLine] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        pl = parse_line(raw, lineno, on_error)
        if pl is not None:
            lines.append(pl)
    return lines
