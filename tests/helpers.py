"""Test helpers: random words and an independent reference permutation."""

from typing import List, Sequence

import numpy as np

from goldilocks_poseidon.field import FF, ORDER
from goldilocks_poseidon.params import PoseidonParams

WIDTH = 12
HALF_FULL = 4
PARTIAL = 22


def random_u64s(rng: np.random.Generator, n: int) -> List[int]:
    """n uniformly random 64-bit words (non-canonical values included)."""
    return [int(x) for x in rng.integers(0, 2**64 - 1, size=n, dtype=np.uint64, endpoint=True)]


def random_noncanonical(rng: np.random.Generator, n: int) -> List[int]:
    """n random words in [p, 2^64)."""
    return [ORDER + int(x) for x in rng.integers(0, 2**32 - 2, size=n, dtype=np.uint64, endpoint=True)]


def reference_mds(params: PoseidonParams):
    """Dense MDS matrix over galois, written out independently of the package."""
    rows = []
    for r in range(WIDTH):
        row = []
        for c in range(WIDTH):
            v = params.mds_circ[(c - r) % WIDTH]
            if r == c:
                v += params.mds_diag[r]
            row.append(v % ORDER)
        rows.append(row)
    return FF(rows)


def reference_permutation(params: PoseidonParams, state: Sequence[int]) -> List[int]:
    """Textbook Poseidon in galois arithmetic: every round adds its constant
    row, S-boxes all lanes (full) or lane 0 (partial), and multiplies by M."""
    m = reference_mds(params)
    x = FF([v % ORDER for v in state]).reshape(WIDTH, 1)
    for r in range(2 * HALF_FULL + PARTIAL):
        rc = params.round_constants[r * WIDTH:(r + 1) * WIDTH]
        x = x + FF([c % ORDER for c in rc]).reshape(WIDTH, 1)
        if r < HALF_FULL or r >= HALF_FULL + PARTIAL:
            x = x ** 7
        else:
            x[0, 0] = x[0, 0] ** 7
        x = m @ x
    return [int(v) for v in x[:, 0]]
