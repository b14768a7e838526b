# memory.py: Memory (4096 x 16-bit words) and ImageLoader for hex images
import logging
from typing import Iterable, List, Tuple

from .encoding import (
    MEM_SIZE,
    OPR_MASK,
    WORD_MASK,
    to_twos_complement,
    from_twos_complement,
    parse_hex,
    strip_comments,
)
from .errors import ImageFormatError

logger = logging.getLogger(__name__)


class Memory:
    """Flat, zero-initialized word memory. Addresses wrap modulo the memory size."""

    def __init__(self, size: int = MEM_SIZE):
        self.size = size
        self._words: List[int] = [0] * size

    def __len__(self) -> int:
        return self.size

    # --- Raw bits (instruction fetch / image load) ---
    def read_bits(self, addr: int) -> int:
        return self._words[addr % self.size]

    def write_bits(self, addr: int, bits: int):
        self._words[addr % self.size] = bits & WORD_MASK

    # --- Signed word (data) ---
    def read_word(self, addr: int) -> int:
        return from_twos_complement(self.read_bits(addr))

    def write_word(self, addr: int, value: int):
        self.write_bits(addr, to_twos_complement(value))

    def dump(self, start: int = 0, count: int = 32) -> List[Tuple[int, int]]:
        return [((start + i) % self.size, self.read_bits(start + i)) for i in range(max(0, count))]

    def snapshot(self) -> List[int]:
        return list(self._words)


class ImageLoader:
    """
    Loads a text image into Memory.
      @HHHH  sets the next write address (masked to 12 bits)
      HHHH   writes one word (masked to 16 bits) and advances the address
    Plain assembler output is a valid image: it is loaded from address 0.
    """

    def __init__(self, memory: Memory):
        self.memory = memory
        self.addr = 0
        self.words_loaded = 0

    def load_tokens(self, tokens: Iterable[str]) -> int:
        written = 0
        for idx, tok in enumerate(tokens):
            tok = tok.strip()
            if not tok:
                continue
            try:
                if tok.startswith("@"):
                    self.addr = parse_hex(tok[1:]) & OPR_MASK
                    logger.debug("load address -> %03X", self.addr)
                    continue
                word = parse_hex(tok) & WORD_MASK
            except ValueError:
                raise ImageFormatError(tok, idx) from None
            self.memory.write_bits(self.addr, word)
            self.addr = (self.addr + 1) & OPR_MASK
            written += 1
        self.words_loaded += written
        logger.debug("loaded %d words", written)
        return written

    def load_text(self, text: str) -> int:
        tokens: List[str] = []
        for raw in text.splitlines():
            tokens.extend(strip_comments(raw).split())
        return self.load_tokens(tokens)


def load_image(text: str, memory: Memory = None) -> Memory:
    mem = memory if memory is not None else Memory()
    ImageLoader(mem).load_text(text)
    return mem
