from enum import Enum
from itertools import count
from math import gcd
from typing import Iterator, Tuple

from spigot.errors import ConfigurationError

MIN_BASE = 2
MAX_BASE = 36
DIGIT_CHARS = "0123456789abcdefghijklmnopqrstuvwxyz"

# (q, r, s, t) stands for x -> (q*x + r) / (s*x + t)
Lft = Tuple[int, int, int, int]

_REDUCE_EVERY = 64


def digit_char(d: int) -> str:
    return DIGIT_CHARS[d] if 0 <= d < len(DIGIT_CHARS) else "?"


def check_base(base) -> int:
    if isinstance(base, str) and base.strip().isdigit():
        base = int(base.strip())
    if isinstance(base, bool) or not isinstance(base, int):
        raise ConfigurationError(f"base must be an integer, got {base!r}")
    if not MIN_BASE <= base <= MAX_BASE:
        raise ConfigurationError(f"base must be {MIN_BASE}–{MAX_BASE}, got {base}")
    return base


def integer_digits(n: int, base: int) -> list:
    """Digits of a non-negative integer in `base`, most significant first."""
    if n == 0:
        return [0]
    out = []
    while n:
        n, d = divmod(n, base)
        out.append(d)
    out.reverse()
    return out


# ---------------------------------------------------------------------------
# LFT streaming spigot ------------------------------------------------------
# ---------------------------------------------------------------------------

def lft_digits(base: int, terms: Iterator[Lft], lo: Tuple[int, int], hi: Tuple[int, int]) -> Iterator[int]:
    """
    Unbounded spigot over a product of linear fractional transforms.

    `terms` yields the LFTs whose infinite composition is the constant; the
    remaining tail always lies in [lo, hi] (each bound given as num/den).
    A digit is emitted as soon as both ends of the interval agree on it.
    The integer part comes out first, written in `base`.
    """
    lo_n, lo_d = lo
    hi_n, hi_d = hi
    q, r, s, t = 1, 0, 0, 1
    integer_done = False

    for k, (a, b, c, d) in enumerate(terms, 1):
        q, r, s, t = q * a + r * c, q * b + r * d, s * a + t * c, s * b + t * d
        if k % _REDUCE_EVERY == 0:
            g = gcd(gcd(q, r), gcd(s, t))
            if g > 1:
                q, r, s, t = q // g, r // g, s // g, t // g

        while True:
            y = (q * lo_n + r * lo_d) // (s * lo_n + t * lo_d)
            if y != (q * hi_n + r * hi_d) // (s * hi_n + t * hi_d):
                break
            if integer_done:
                yield y
            else:
                yield from integer_digits(y, base)
                integer_done = True
            q, r = base * (q - y * s), base * (r - y * t)


def _pi_terms() -> Iterator[Lft]:
    # Gibbons: pi = 2 + 1/3 (2 + 2/5 (2 + 3/7 (...)))
    for k in count(1):
        yield (k, 4 * k + 2, 0, 2 * k + 1)


def _e_terms() -> Iterator[Lft]:
    # e = 1 + 1/1 (1 + 1/2 (1 + 1/3 (...)))
    for k in count(1):
        yield (1, k, 0, k)


def _ln2_terms() -> Iterator[Lft]:
    # ln 2 = sum 1/(k 2^k); scaled tail u_k = 1/(2k) + u_{k+1}/2
    for k in count(1):
        yield (k, 1, 0, 2 * k)


def pi_digits(base: int = 10) -> Iterator[int]:
    return lft_digits(base, _pi_terms(), (3, 1), (4, 1))


def e_digits(base: int = 10) -> Iterator[int]:
    return lft_digits(base, _e_terms(), (1, 1), (2, 1))


def ln2_digits(base: int = 10) -> Iterator[int]:
    return lft_digits(base, _ln2_terms(), (0, 1), (1, 1))


# ---------------------------------------------------------------------------
# Combinatorial constants ---------------------------------------------------
# ---------------------------------------------------------------------------

def liouville_digits(base: int = 10) -> Iterator[int]:
    """0.110001000… : a 1 at every factorial position, in any base."""
    yield 0
    k, next_fact = 1, 1
    for n in count(1):
        if n == next_fact:
            yield 1
            k += 1
            next_fact *= k
        else:
            yield 0


def champernowne_digits(base: int = 10) -> Iterator[int]:
    """0.123456789101112… with the integers written in `base`."""
    yield 0
    for m in count(1):
        yield from integer_digits(m, base)


def thue_morse_digits(base: int = 10) -> Iterator[int]:
    """Prouhet–Thue–Morse bits t(n) = popcount(n) mod 2; the base is ignored."""
    for n in count(0):
        yield bin(n).count("1") & 1


class Constant(Enum):
    PI = ("pi", "π", 3, "3.14159265…")
    E = ("e", "e", 2, "2.71828182…")
    LN2 = ("ln2", "ln 2", 0, "0.69314718…")
    LIOUVILLE = ("liouville", "Liouville", 0, "0.11000100…")
    CHAMPERNOWNE = ("champernowne", "Champernowne", 0, "0.12345678…")
    THUE_MORSE = ("thue-morse", "Thue–Morse", 0, "0.01101001…")

    def __init__(self, key, display, integer_part, approx):
        self.key = key
        self.display = display
        self.integer_part = integer_part
        self.approx = approx

    def digits(self, base: int = 10) -> Iterator[int]:
        """Fresh generator over this constant's digits in `base`, from index 0."""
        return _GENERATORS[self](check_base(base))

    @classmethod
    def parse(cls, text) -> "Constant":
        if isinstance(text, cls):
            return text
        s = str(text).strip().lower()
        members = list(cls)
        if s.isdigit() and 1 <= int(s) <= len(members):
            return members[int(s) - 1]
        for c in members:
            if s in (c.key, c.display.lower(), c.name.lower()):
                return c
        raise ConfigurationError(f"unknown constant {text!r}; choose one of "
                                 + ", ".join(c.key for c in members))


_GENERATORS = {
    Constant.PI: pi_digits,
    Constant.E: e_digits,
    Constant.LN2: ln2_digits,
    Constant.LIOUVILLE: liouville_digits,
    Constant.CHAMPERNOWNE: champernowne_digits,
    Constant.THUE_MORSE: thue_morse_digits,
}


def format_in_base(constant: Constant, base: int, n: int) -> str:
    """First `n` digits with the radix point placed after the integer part, e.g. '3.243f6a'."""
    base = check_base(base)
    it = constant.digits(base)
    head = len(integer_digits(constant.integer_part, base))
    if constant is Constant.THUE_MORSE:
        head = 0
    digits = [digit_char(next(it)) for _ in range(max(0, n))]
    if head == 0:
        return "0." + "".join(digits)
    if len(digits) <= head:
        return "".join(digits)
    return "".join(digits[:head]) + "." + "".join(digits[head:])
