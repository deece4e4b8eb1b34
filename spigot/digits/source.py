from typing import Dict, Iterator, List, Tuple

from spigot.digits.spigots import Constant, check_base
from spigot.errors import ConfigurationError


class DigitSource:
    """
    Lazy, restartable digit stream of one constant in one base.

    Digits are computed on demand; only the generator state and the
    current position are kept. Single consumer.
    """

    def __init__(self, constant: Constant, base: int = 10):
        self.constant = Constant.parse(constant)
        self.base = check_base(base)
        self._it: Iterator[int] = self.constant.digits(self.base)
        self._pos = 0

    @property
    def position(self) -> int:
        """Index of the digit the next call to next() returns."""
        return self._pos

    def next(self) -> int:
        d = next(self._it)
        self._pos += 1
        return d

    def reset(self) -> None:
        self._it = self.constant.digits(self.base)
        self._pos = 0

    def take(self, n: int) -> List[int]:
        return [self.next() for _ in range(max(0, int(n)))]

    def drop(self, n: int) -> None:
        for _ in range(max(0, int(n))):
            self.next()

    def __iter__(self):
        return self

    def __next__(self) -> int:
        return self.next()

    def __repr__(self) -> str:
        return f"DigitSource({self.constant.key}, base={self.base}, pos={self._pos})"


class DualDigitSource:
    """
    Two digit streams read in lockstep: left drives durations, right drives pitches.
    """

    def __init__(self, left: DigitSource, right: DigitSource):
        self.left = left
        self.right = right
        self._snippets: Dict[str, List[Tuple[int, int]]] = {}

    @classmethod
    def of(cls, left: Constant, right: Constant, base: int = 10, right_base: int | None = None):
        return cls(DigitSource(left, base), DigitSource(right, base if right_base is None else right_base))

    def next(self) -> Tuple[int, int]:
        return self.left.next(), self.right.next()

    def take(self, n: int) -> List[Tuple[int, int]]:
        return [self.next() for _ in range(max(0, int(n)))]

    def reset(self) -> None:
        self.left.reset()
        self.right.reset()

    def twist(self) -> None:
        """Swap the two streams (constant, base and cursor travel together)."""
        self.left, self.right = self.right, self.left

    def drop_left(self, n: int) -> None:
        self.left.drop(n)

    def drop_right(self, n: int) -> None:
        self.right.drop(n)

    def fork(self) -> "DualDigitSource":
        """Fresh pair of streams over the same constants and bases, cursors at 0."""
        return DualDigitSource(DigitSource(self.left.constant, self.left.base),
                               DigitSource(self.right.constant, self.right.base))

    # ---------------- snippets ----------------

    def snip(self, key: str, start: int, stop: int) -> List[Tuple[int, int]]:
        """
        Store the pairs at absolute positions [start, stop) under `key`.
        Live cursors are not moved.
        """
        if start < 0 or stop < start:
            raise ConfigurationError(f"invalid snippet range [{start}, {stop})")
        fresh = self.fork()
        fresh.drop_left(start)
        fresh.drop_right(start)
        return self.keep(key, fresh.take(stop - start))

    def keep(self, key: str, pairs: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
        """Store already computed pairs under `key`."""
        self._snippets[key] = list(pairs)
        return self._snippets[key]

    def snippet(self, key: str) -> List[Tuple[int, int]] | None:
        return self._snippets.get(key)

    def snippet_keys(self) -> List[str]:
        return sorted(self._snippets)

    def __iter__(self):
        return self

    def __next__(self) -> Tuple[int, int]:
        return self.next()
