from dataclasses import dataclass
from typing import List, Tuple

PLAYER_SYMBOL = "◊"
PLAYER_CLASS = "player"
DEER_SYMBOL = "♦"
DEER_CLASS = "deer-entity"
COMPANION_SYMBOL = "♥"
COMPANION_CLASS = "companion-dog"


@dataclass(frozen=True)
class Viewport:
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def centered_on(cls, cx: int, cy: int, width: int, height: int) -> "Viewport":
        return cls(cx - width // 2, cy - height // 2, width, height)

    def cells(self):
        for row in range(self.height):
            for col in range(self.width):
                yield col, row, self.x + col, self.y + row


class TextBuffer:
    """Collects (symbol, class tag) pairs into rows of text."""

    def __init__(self):
        self.rows: List[List[str]] = []
        self.tags: List[List[str]] = []

    def begin(self, viewport: Viewport) -> None:
        self.rows = [[" "] * viewport.width for _ in range(viewport.height)]
        self.tags = [[""] * viewport.width for _ in range(viewport.height)]

    def put(self, col: int, row: int, symbol: str, class_tag: str) -> None:
        self.rows[row][col] = symbol
        self.tags[row][col] = class_tag

    def end(self) -> None:
        pass

    def lines(self) -> List[str]:
        return ["".join(r) for r in self.rows]

    def text(self) -> str:
        return "\n".join(self.lines())

    def tag_at(self, col: int, row: int) -> str:
        return self.tags[row][col]

    def find(self, symbol: str) -> List[Tuple[int, int]]:
        return [(c, r) for r, line in enumerate(self.rows) for c, s in enumerate(line) if s == symbol]
