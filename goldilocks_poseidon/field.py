"""Goldilocks prime field GF(p), p = 2^64 - 2^32 + 1.

GoldilocksField stores a single 64-bit word that is only required to be
congruent to the value it represents: anything in [0, 2^64) is a valid
representation, so values in [p, 2^64) are non-canonical aliases of
[0, 2^32 - 1). Every operation accepts non-canonical operands. Only
to_canonical_u64() (and therefore ==, hash and int()) canonicalizes.

Reduction relies on 2^64 = EPSILON (mod p) and 2^96 = -1 (mod p).

The galois field FF is the arbitrary-precision reference used for parameter
derivation and in tests; the hot path never touches it.
"""

from typing import Iterable, List, Optional, Union

import galois

from .wide import (
    MASK32,
    MASK64,
    overflowing_add,
    overflowing_sub,
    split_u128,
    widening_mul,
)

# --- Field Constants ---

ORDER = 0xFFFFFFFF00000001
GOLDILOCKS_PRIME = ORDER

EPSILON = (1 << 32) - 1
"""2^64 - p. Adding it undoes one wrap past 2^64."""

TWO_ADICITY = 32
MULTIPLICATIVE_GENERATOR = 7

FF = galois.GF(ORDER)
"""Reference field (galois). Not used on the hot path."""


# --- Reduction ---

def reduce128(hi: int, lo: int) -> "GoldilocksField":
    """Reduce ``hi * 2^64 + lo`` to a (possibly non-canonical) field element.

    With hi = hi_hi * 2^32 + hi_lo:
        hi * 2^64 = hi_hi * 2^96 + hi_lo * 2^64 = -hi_hi + hi_lo * EPSILON
    """
    hi_hi = hi >> 32
    hi_lo = hi & EPSILON

    t0, borrow = overflowing_sub(lo, hi_hi)
    if borrow:
        # Rare. t0 wrapped by 2^64 = EPSILON, take it back out. Cannot underflow.
        t0 -= EPSILON
    t1 = hi_lo * EPSILON
    return GoldilocksField(_add_no_canonicalize(t0, t1))


def _add_no_canonicalize(x: int, y: int) -> int:
    """x + y with a single EPSILON correction on carry.

    Valid when y <= 0xFFFFFFFE00000001 (which hi_lo * EPSILON always is), so
    the corrected sum cannot carry again.
    """
    s, carry = overflowing_add(x, y)
    return s + EPSILON * int(carry)


# --- Field Element ---

class GoldilocksField:
    """An element of the Goldilocks field, stored as a 64-bit word."""

    __slots__ = ("data",)

    ZERO: "GoldilocksField"
    ONE: "GoldilocksField"
    TWO: "GoldilocksField"
    NEG_ONE: "GoldilocksField"

    def __init__(self, data: int = 0):
        assert 0 <= data <= MASK64, f"not a 64-bit word: {data}"
        self.data = data

    # --- Construction ---

    @classmethod
    def from_canonical_u64(cls, n: int) -> "GoldilocksField":
        """Wrap ``n`` unchanged. ``n`` should be < p; any 64-bit value is still valid."""
        return cls(n)

    from_noncanonical_u64 = from_canonical_u64

    @classmethod
    def from_noncanonical_u96(cls, lo: int, hi: int) -> "GoldilocksField":
        """Reduce the 96-bit integer ``hi * 2^64 + lo`` (``hi`` is 32 bits)."""
        assert 0 <= hi <= MASK32
        return reduce128(hi, lo)

    @classmethod
    def from_noncanonical_u128(cls, n: int) -> "GoldilocksField":
        hi, lo = split_u128(n)
        return reduce128(hi, lo)

    # --- Conversion ---

    def to_canonical_u64(self) -> int:
        c = self.data
        if c >= ORDER:
            c -= ORDER
        return c

    def to_noncanonical_u64(self) -> int:
        return self.data

    def is_zero(self) -> bool:
        return self.to_canonical_u64() == 0

    # --- Arithmetic ---

    def add(self, rhs: "GoldilocksField") -> "GoldilocksField":
        s, over = overflowing_add(self.data, rhs.data)
        s, over = overflowing_add(s, int(over) * EPSILON)
        if over:
            # Both operands exceeded p. s is now below EPSILON, so this
            # correction cannot wrap.
            assert self.data > ORDER and rhs.data > ORDER, "double overflow in add"
            s += EPSILON
            assert s <= MASK64
        return GoldilocksField(s)

    def sub(self, rhs: "GoldilocksField") -> "GoldilocksField":
        d, under = overflowing_sub(self.data, rhs.data)
        d, under = overflowing_sub(d, int(under) * EPSILON)
        if under:
            # Only reachable when rhs is non-canonical; d is at least
            # 2^64 - EPSILON here, so this cannot underflow.
            assert rhs.data > ORDER, "double underflow in sub"
            d -= EPSILON
            assert d >= 0
        return GoldilocksField(d)

    def neg(self) -> "GoldilocksField":
        c = self.to_canonical_u64()
        return GoldilocksField(0 if c == 0 else ORDER - c)

    def mul(self, rhs: "GoldilocksField") -> "GoldilocksField":
        hi, lo = widening_mul(self.data, rhs.data)
        return reduce128(hi, lo)

    def square(self) -> "GoldilocksField":
        return self.mul(self)

    def exp_u64(self, power: int) -> "GoldilocksField":
        """Square-and-multiply over all 64 bits of ``power``, low bit first."""
        assert 0 <= power <= MASK64
        current = self
        product = GoldilocksField.ONE
        for j in range(64):
            if (power >> j) & 1:
                product = product.mul(current)
            current = current.square()
        return product

    def exp_power_of_2(self, power_log: int) -> "GoldilocksField":
        res = self
        for _ in range(power_log):
            res = res.square()
        return res

    def multiply_accumulate(self, x: "GoldilocksField", y: "GoldilocksField") -> "GoldilocksField":
        """``self + x * y`` with one reduction of the 128-bit sum."""
        hi, lo = widening_mul(x.data, y.data)
        lo, carry = overflowing_add(lo, self.data)
        hi += int(carry)
        # x*y <= (2^64-1)^2, so adding a 64-bit word cannot exceed 2^128.
        assert hi <= MASK64
        return reduce128(hi, lo)

    def add_canonical_u64(self, rhs: int) -> "GoldilocksField":
        return self.add(GoldilocksField.from_canonical_u64(rhs))

    def try_inverse(self) -> Optional["GoldilocksField"]:
        from .inversion import try_inverse_u64

        return try_inverse_u64(self)

    def inverse(self) -> "GoldilocksField":
        """Multiplicative inverse. Raises ZeroDivisionError for zero."""
        inv = self.try_inverse()
        if inv is None:
            raise ZeroDivisionError("inverse of zero in the Goldilocks field")
        return inv

    # --- Python protocol ---

    def __add__(self, rhs: "FieldLike") -> "GoldilocksField":
        return self.add(as_field(rhs))

    __radd__ = __add__

    def __sub__(self, rhs: "FieldLike") -> "GoldilocksField":
        return self.sub(as_field(rhs))

    def __rsub__(self, lhs: "FieldLike") -> "GoldilocksField":
        return as_field(lhs).sub(self)

    def __mul__(self, rhs: "FieldLike") -> "GoldilocksField":
        return self.mul(as_field(rhs))

    __rmul__ = __mul__

    def __neg__(self) -> "GoldilocksField":
        return self.neg()

    def __pow__(self, power: int) -> "GoldilocksField":
        if power < 0:
            return self.inverse().exp_u64(-power)
        return self.exp_u64(power)

    def __truediv__(self, rhs: "FieldLike") -> "GoldilocksField":
        return self.mul(as_field(rhs).inverse())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, GoldilocksField):
            return self.to_canonical_u64() == other.to_canonical_u64()
        if isinstance(other, int):
            return self.to_canonical_u64() == other % ORDER
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_canonical_u64())

    def __int__(self) -> int:
        return self.to_canonical_u64()

    def __repr__(self) -> str:
        return f"GoldilocksField(0x{self.data:016x})"


GoldilocksField.ZERO = GoldilocksField(0)
GoldilocksField.ONE = GoldilocksField(1)
GoldilocksField.TWO = GoldilocksField(2)
GoldilocksField.NEG_ONE = GoldilocksField(ORDER - 1)

FieldLike = Union[GoldilocksField, int]


def as_field(x: FieldLike) -> GoldilocksField:
    """Accept a field element or a raw 64-bit word."""
    if isinstance(x, GoldilocksField):
        return x
    return GoldilocksField(int(x))


# --- galois interop ---

def to_ff(values: Union[FieldLike, Iterable[FieldLike]]):
    """Convert to the galois reference field (canonicalizing)."""
    if isinstance(values, (GoldilocksField, int)):
        return FF(as_field(values).to_canonical_u64())
    return FF([as_field(v).to_canonical_u64() for v in values])


def from_ff(values) -> List[GoldilocksField]:
    """Convert a galois FF array to a list of field elements."""
    return [GoldilocksField(int(v)) for v in values]
