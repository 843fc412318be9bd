"""Fixed-width integer helpers with explicit carry and borrow.

Python integers are unbounded, so each helper masks its result back to the
declared width and reports the carry or borrow a 64-bit ALU would set. These
are intermediates only: field elements never store anything wider than 64 bits.
"""

from typing import Tuple

MASK32 = (1 << 32) - 1
MASK64 = (1 << 64) - 1
MASK128 = (1 << 128) - 1

I128_MIN = -(1 << 127)
I128_MAX = (1 << 127) - 1


# --- 64-bit ---

def overflowing_add(a: int, b: int) -> Tuple[int, bool]:
    """Return ``(a + b) mod 2^64`` and whether the addition carried out."""
    s = a + b
    return s & MASK64, s > MASK64


def overflowing_sub(a: int, b: int) -> Tuple[int, bool]:
    """Return ``(a - b) mod 2^64`` and whether the subtraction borrowed."""
    d = a - b
    return d & MASK64, d < 0


def widening_mul(a: int, b: int) -> Tuple[int, int]:
    """Full 64x64 -> 128-bit product as ``(hi, lo)``.

    Schoolbook multiply on 32-bit limbs: four partial products, with the
    carries out of the middle column propagated by hand.
    """
    a_lo, a_hi = a & MASK32, a >> 32
    b_lo, b_hi = b & MASK32, b >> 32

    ll = a_lo * b_lo
    lh = a_lo * b_hi
    hl = a_hi * b_lo
    hh = a_hi * b_hi

    # The middle column is worth 2^32; its own carry is worth 2^96.
    mid, mid_carry = overflowing_add(lh, hl)
    lo, lo_carry = overflowing_add(ll, (mid << 32) & MASK64)
    hi = hh + (mid >> 32) + (int(mid_carry) << 32) + int(lo_carry)
    assert hi <= MASK64
    return hi, lo


def trailing_zeros(n: int) -> int:
    """Number of trailing zero bits of a non-zero integer."""
    assert n != 0, "trailing_zeros of zero"
    return (n & -n).bit_length() - 1


# --- 128-bit ---

def split_u128(n: int) -> Tuple[int, int]:
    """Split a 128-bit value into ``(hi, lo)`` 64-bit halves."""
    return (n >> 64) & MASK64, n & MASK64


def join_u128(hi: int, lo: int) -> int:
    return (hi << 64) | lo


def add_u128(acc: int, x: int) -> int:
    """128-bit accumulate. Overflow is an invariant violation."""
    s = acc + x
    assert s <= MASK128, "128-bit accumulator overflow"
    return s


def add_u160_u128(acc: Tuple[int, int], x: int) -> Tuple[int, int]:
    """Add a 128-bit value to a 160-bit accumulator ``(lo128, hi32)``."""
    lo, hi = acc
    s = lo + x
    lo, carry = s & MASK128, s >> 128
    hi += carry
    assert hi <= MASK32, "160-bit accumulator overflow"
    return lo, hi


def wrap_i128(n: int) -> int:
    """Check that ``n`` fits a signed 128-bit integer and return it."""
    assert I128_MIN <= n <= I128_MAX, f"i128 overflow: {n}"
    return n
