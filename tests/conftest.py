# tests/conftest.py
import sys, os
# Add project root to sys.path so both `marie_sim` and `cli` are importable
ROOT = os.path.dirname(os.path.dirname(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest

from marie_sim.core.cpu import CPU
from marie_sim.core.memory import Memory, ImageLoader


@pytest.fixture
def make_cpu():
    """Build a CPU from image text (hex words, optional @addr directives)."""
    def _make(image: str, **kwargs) -> CPU:
        mem = Memory()
        ImageLoader(mem).load_text(image)
        return CPU(mem, **kwargs)
    return _make
