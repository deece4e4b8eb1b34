from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple

from matplotlib.colors import hsv_to_rgb

from spigot.digits.spigots import digit_char

RGB = Tuple[float, float, float]

SATURATION = 0.82
VALUE = 0.92


def digit_color(d: int, base: int) -> RGB:
    """Digits spread evenly round the hue wheel, so neighbours stay distinct in any base."""
    hue = (int(d) / max(1, int(base))) % 1.0
    r, g, b = hsv_to_rgb((hue, SATURATION, VALUE))
    return float(r), float(g), float(b)


def blend(a: RGB, b: RGB, t: float) -> RGB:
    return tuple(x + (y - x) * t for x, y in zip(a, b))


@dataclass(frozen=True)
class Patch:
    digit: int
    position: int
    color: RGB


class RibbonState:
    """
    The last `capacity` digits of one stream, oldest on the left.
    Positions are the digits' stream indices.
    """

    def __init__(self, base: int, capacity: int = 48, label: str = ""):
        self.base = int(base)
        self.capacity = int(capacity)
        self.label = label
        self.patches: Deque[Patch] = deque(maxlen=self.capacity)

    def push(self, digit: int, position: int) -> Patch:
        p = Patch(int(digit), int(position), digit_color(digit, self.base))
        self.patches.append(p)
        return p

    @property
    def head(self) -> Optional[int]:
        return self.patches[-1].position if self.patches else None

    def index_of(self, position: int) -> Optional[int]:
        for i, p in enumerate(self.patches):
            if p.position == position:
                return i
        return None

    def colors(self, highlight: Optional[int] = None) -> List[RGB]:
        return [blend(p.color, (1.0, 1.0, 1.0), 0.35) if p.position == highlight else p.color
                for p in self.patches]

    def __len__(self) -> int:
        return len(self.patches)


TRAY_SIZE = 8


@dataclass(frozen=True)
class Snippet:
    name: str
    start: int
    pairs: Tuple[Tuple[int, int], ...]

    @property
    def stop(self) -> int:
        return self.start + len(self.pairs)

    def text(self, width: int = 12) -> str:
        left = "".join(digit_char(a) for a, _ in self.pairs[:width])
        right = "".join(digit_char(b) for _, b in self.pairs[:width])
        more = "…" if len(self.pairs) > width else ""
        return f"{self.name} [{self.start}, {self.stop})  {left}{more} / {right}{more}"


class SnippetTray:
    """The last TRAY_SIZE snips, oldest first; drawn beside the ribbons."""

    def __init__(self, size: int = TRAY_SIZE):
        self.entries: Deque[Snippet] = deque(maxlen=int(size))

    def deposit(self, name: str, start: int, pairs) -> Snippet:
        s = Snippet(name, int(start), tuple((int(a), int(b)) for a, b in pairs))
        self.entries.append(s)
        return s

    def __len__(self) -> int:
        return len(self.entries)
