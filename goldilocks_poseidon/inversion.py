"""Modular inversion in the Goldilocks field.

Binary extended GCD on (f, g) = (x, p), both kept odd, with Bezout-style
coefficients (c, d) and an accumulated power of two k such that at the end
c * x = 2^k (mod p). The answer is then c * 2^-k, and 2^-k has a closed form
because p - 1 is divisible by 2^32.

Also provides Montgomery batch inversion.
"""

from typing import List, Optional, Sequence, Tuple

from .field import ORDER, TWO_ADICITY, GoldilocksField
from .wide import MASK64, trailing_zeros, wrap_i128


# --- Powers of two ---

def _inverse_2exp_direct(exp: int) -> int:
    # 2^-exp = 2^-exp * (1 - p) = p - (p - 1) / 2^exp, an integer while exp <= TWO_ADICITY.
    assert 0 <= exp <= TWO_ADICITY
    return ORDER - ((ORDER - 1) >> exp)


INVERSE_2_POW_ADICITY = GoldilocksField(_inverse_2exp_direct(TWO_ADICITY))


def inverse_2exp(exp: int) -> GoldilocksField:
    """Inverse of 2^exp, for any non-negative exp."""
    res = GoldilocksField.ONE
    while exp > TWO_ADICITY:
        res = res * INVERSE_2_POW_ADICITY
        exp -= TWO_ADICITY
    return res * GoldilocksField(_inverse_2exp_direct(exp))


# --- Binary extended GCD ---

def _safe_iteration(f: int, g: int, c: int, d: int, k: int) -> Tuple[int, int, int, int, int]:
    """One GCD step that stays within 64 bits even when f + g >= 2^64."""
    if f < g:
        f, g = g, f
        c, d = d, c
    if f & 3 == g & 3:
        # f - g = 0 (mod 4)
        f -= g
        c = wrap_i128(c - d)
        # kk >= 2 because f is now 0 (mod 4).
        kk = trailing_zeros(f)
        f >>= kk
        d = wrap_i128(d << kk)
        k += kk
    else:
        # f + g = 0 (mod 4); compute (f + g) / 4 without forming f + g.
        f = (f >> 2) + (g >> 2) + 1
        c = wrap_i128(c + d)
        kk = trailing_zeros(f)
        f >>= kk
        d = wrap_i128(d << (kk + 2))
        k += kk + 2
    return f, g, c, d, k


def _unsafe_iteration(f: int, g: int, c: int, d: int, k: int) -> Tuple[int, int, int, int, int]:
    """GCD step valid only once f + g < 2^64."""
    if f < g:
        f, g = g, f
        c, d = d, c
    if f & 3 == g & 3:
        f -= g
        c = wrap_i128(c - d)
    else:
        f += g
        assert f <= MASK64, "unsafe GCD iteration overflowed"
        c = wrap_i128(c + d)
    kk = trailing_zeros(f)
    f >>= kk
    d = wrap_i128(d << kk)
    k += kk
    return f, g, c, d, k


def binary_gcd(x: int) -> Tuple[int, int]:
    """Run the GCD loop on a non-zero canonical ``x``.

    Returns (c, k) with c * x = 2^k (mod p) and c a signed 128-bit value,
    not yet canonicalized.
    """
    assert 0 < x < ORDER
    f, g = x, ORDER
    c, d = 1, 0

    # f and g must always be odd.
    k = trailing_zeros(f)
    f >>= k
    if f == 1:
        return c, k

    # Two safe iterations first: log2(max(f, g)) drops by at least one per
    # step, after which f + g can no longer overflow.
    f, g, c, d, k = _safe_iteration(f, g, c, d, k)
    if f == 1:
        assert c in (1, -1), f"bad c = {c}"
        return c, k

    f, g, c, d, k = _safe_iteration(f, g, c, d, k)
    while f != 1:
        f, g, c, d, k = _unsafe_iteration(f, g, c, d, k)
    return c, k


def canonical_coefficient(c: int) -> Tuple[int, int, int]:
    """Bring ``c`` into [0, p).

    Returns (value, additions, subtractions). The coefficient is usually within
    a couple of multiples of p, but nothing bounds it that tightly: a few
    percent of inputs leave it above 2p, so both loops run as long as needed.
    """
    additions = 0
    while c < 0:
        c += ORDER
        additions += 1
    subtractions = 0
    while c >= ORDER:
        c -= ORDER
        subtractions += 1
    return c, additions, subtractions


def try_inverse_u64(x: GoldilocksField) -> Optional[GoldilocksField]:
    """Inverse of ``x``, or None when ``x`` is zero."""
    f = x.to_canonical_u64()
    if f == 0:
        return None

    c, k = binary_gcd(f)
    c, _, _ = canonical_coefficient(c)

    res = GoldilocksField.from_canonical_u64(c) * inverse_2exp(k)
    assert x * res == GoldilocksField.ONE, "bad inverse"
    return res


def inverse(x: GoldilocksField) -> GoldilocksField:
    return x.inverse()


# --- Montgomery Batch Inversion ---

def batch_inverse(values: Sequence[GoldilocksField]) -> List[GoldilocksField]:
    """Invert every element with a single field inversion.

    Forward pass builds prefix products, the total is inverted once, and a
    backward pass peels off individual inverses (3n - 3 multiplications).

    Raises:
        ZeroDivisionError: If any element is zero
    """
    n = len(values)
    if n == 0:
        return []

    prefix = [values[0]]
    for v in values[1:]:
        prefix.append(prefix[-1] * v)

    z = prefix[-1].inverse()
    results: List[GoldilocksField] = [GoldilocksField.ZERO] * n
    for i in range(n - 1, 0, -1):
        results[i] = z * prefix[i - 1]
        z = z * values[i]
    results[0] = z
    return results
