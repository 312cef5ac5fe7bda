import random
from typing import List, Tuple

import pytest

from typespeed import CharStyle, Session, WordSource


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSurface:
    """Keeps every drawing call so tests can look at what was painted."""

    def __init__(self) -> None:
        self.calls: List[Tuple] = []
        self.rows: List[List[Tuple[str, CharStyle]]] = [[]]
        self.cursor = (0, 0)
        self.flushes = 0

    def clear(self) -> None:
        self.calls.append(("clear",))
        self.rows = [[]]

    def move_cursor_to(self, col: int, row: int) -> None:
        self.calls.append(("move", col, row))
        self.cursor = (col, row)

    def next_line(self) -> None:
        self.calls.append(("next_line",))
        self.rows.append([])

    def draw_char(self, ch: str, style: CharStyle) -> None:
        self.calls.append(("draw", ch, style))
        self.rows[-1].append((ch, style))

    def flush(self) -> None:
        self.calls.append(("flush",))
        self.flushes += 1

    def row_text(self, row: int) -> str:
        return "".join(ch for ch, _ in self.rows[row])

    def row_styles(self, row: int) -> List[CharStyle]:
        return [style for _, style in self.rows[row]]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


@pytest.fixture
def ab_source() -> WordSource:
    # every line reads "ab ab ab ab ab ab ab ab ab ab"
    return WordSource(["ab"], rng=random.Random(7))


@pytest.fixture
def make_session(ab_source, clock):
    def _make(target: int = 30) -> Session:
        return Session(target=target, source=ab_source, clock=clock)

    return _make
