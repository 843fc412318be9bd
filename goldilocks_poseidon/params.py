"""Poseidon parameter tables for the width-12 Goldilocks permutation.

The tables are configuration data: the permutation consumes them, it does not
derive them. They are loaded once (usually from JSON), checked against the
width/round structure, and never mutated afterwards.

Index conventions (shared with the consumers in poseidon.py):
    round_constants[round * SPONGE_WIDTH + i]       constant for lane i of a round
    fast_partial_round_initial_matrix[r - 1][c - 1] contribution of input lane r
                                                    to output lane c (r, c >= 1)
    fast_partial_round_w_hats[round][i - 1]         weight of lane i in the new lane 0
    fast_partial_round_vs[round][i - 1]             multiple of lane 0 added to lane i

derive_fast_partial_tables() regenerates the fast partial round tables from
the round constants and MDS matrix. It is an offline tool (galois linear
algebra), never part of a permutation call.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ParamsError
from .field import FF, ORDER
from .wide import MASK64

logger = logging.getLogger(__name__)

# --- Round Structure ---

SPONGE_WIDTH = 12
HALF_N_FULL_ROUNDS = 4
N_FULL_ROUNDS_TOTAL = 2 * HALF_N_FULL_ROUNDS
N_PARTIAL_ROUNDS = 22
N_ROUNDS = N_FULL_ROUNDS_TOTAL + N_PARTIAL_ROUNDS

PARAMS_ENV_VAR = "GOLDILOCKS_POSEIDON_PARAMS"

# MDS matrix of the reference width-12 Goldilocks Poseidon: circulant plus a
# diagonal that only touches lane 0. Entries are small so a row can be
# accumulated in 128 bits without intermediate reduction.
REFERENCE_MDS_MATRIX_CIRC: Tuple[int, ...] = (17, 15, 41, 16, 2, 28, 13, 13, 39, 18, 34, 20)
REFERENCE_MDS_MATRIX_DIAG: Tuple[int, ...] = (8, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)

_JSON_KEYS = {
    "round_constants": "round_constants",
    "mds_circ": "mds_matrix_circ",
    "mds_diag": "mds_matrix_diag",
    "fast_partial_first_round_constant": "fast_partial_first_round_constant",
    "fast_partial_round_constants": "fast_partial_round_constants",
    "fast_partial_round_initial_matrix": "fast_partial_round_initial_matrix",
    "fast_partial_round_w_hats": "fast_partial_round_w_hats",
    "fast_partial_round_vs": "fast_partial_round_vs",
}

Table = Tuple[int, ...]
Matrix = Tuple[Tuple[int, ...], ...]


# --- Parameter Set ---

@dataclass(frozen=True)
class PoseidonParams:
    """Validated, immutable Poseidon tables.

    Attributes:
        round_constants: N_ROUNDS * SPONGE_WIDTH constants, row per round
        mds_circ: First row of the circulant part of the MDS matrix
        mds_diag: Diagonal added on top of the circulant part
        fast_partial_first_round_constant: Full-width constants applied once
            before the partial rounds
        fast_partial_round_constants: Lane-0 constant per partial round
        fast_partial_round_initial_matrix: Dense 11x11 transform applied once
        fast_partial_round_w_hats: Per-round lane-0 weights (N_PARTIAL_ROUNDS x 11)
        fast_partial_round_vs: Per-round lane-0 multiples (N_PARTIAL_ROUNDS x 11)
    """
    round_constants: Table
    mds_circ: Table
    mds_diag: Table
    fast_partial_first_round_constant: Table
    fast_partial_round_constants: Table
    fast_partial_round_initial_matrix: Matrix
    fast_partial_round_w_hats: Matrix
    fast_partial_round_vs: Matrix

    def __post_init__(self):
        for name in _JSON_KEYS:
            value = getattr(self, name)
            if isinstance(value, (list, tuple)) and value and isinstance(value[0], (list, tuple)):
                frozen = tuple(tuple(int(x) for x in row) for row in value)
            else:
                frozen = tuple(int(x) for x in value)
            object.__setattr__(self, name, frozen)
        self.validate()

    def validate(self) -> None:
        """Check every table against the width and round counts.

        Raises:
            ParamsError: On any size or range mismatch
        """
        inner = SPONGE_WIDTH - 1
        _check_vector("round_constants", self.round_constants, N_ROUNDS * SPONGE_WIDTH)
        _check_vector("mds_circ", self.mds_circ, SPONGE_WIDTH)
        _check_vector("mds_diag", self.mds_diag, SPONGE_WIDTH)
        _check_vector(
            "fast_partial_first_round_constant", self.fast_partial_first_round_constant, SPONGE_WIDTH
        )
        _check_vector("fast_partial_round_constants", self.fast_partial_round_constants, N_PARTIAL_ROUNDS)
        _check_matrix(
            "fast_partial_round_initial_matrix", self.fast_partial_round_initial_matrix, inner, inner
        )
        _check_matrix("fast_partial_round_w_hats", self.fast_partial_round_w_hats, N_PARTIAL_ROUNDS, inner)
        _check_matrix("fast_partial_round_vs", self.fast_partial_round_vs, N_PARTIAL_ROUNDS, inner)

        # A generic MDS row sums SPONGE_WIDTH + 1 products of a 64-bit word and
        # an MDS entry; that must fit the 128-bit accumulator.
        row_bound = sum(self.mds_circ) + max(self.mds_diag)
        if row_bound > MASK64:
            raise ParamsError(
                f"MDS entries too large for 128-bit row accumulation: sum(circ) + max(diag) = {row_bound}"
            )

    # --- Serialization ---

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        return {_JSON_KEYS[k]: _to_json_value(v) for k, v in data.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "PoseidonParams":
        missing = [key for key in _JSON_KEYS.values() if key not in data]
        if missing:
            raise ParamsError(f"missing parameter tables: {', '.join(missing)}")
        return cls(**{field: data[key] for field, key in _JSON_KEYS.items()})

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "PoseidonParams":
        """Load tables from a JSON file.

        Example JSON structure (integers may also be "0x..." strings):
        {
          "round_constants": [...360 values...],
          "mds_matrix_circ": [17, 15, ...],
          "mds_matrix_diag": [8, 0, ...],
          "fast_partial_first_round_constant": [...12...],
          "fast_partial_round_constants": [...22...],
          "fast_partial_round_initial_matrix": [[...11...], ...11 rows...],
          "fast_partial_round_w_hats": [[...11...], ...22 rows...],
          "fast_partial_round_vs": [[...11...], ...22 rows...]
        }
        """
        with open(path, 'r') as f:
            raw = json.load(f)
        params = cls.from_dict(_parse_ints(raw))
        logger.info("Loaded Poseidon parameters from %s", path)
        return params

    def to_json(self, path: Union[str, Path]) -> None:
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Wrote Poseidon parameters to %s", path)

    # --- Generation ---

    @classmethod
    def derive(
        cls,
        round_constants: Sequence[int],
        mds_circ: Sequence[int] = REFERENCE_MDS_MATRIX_CIRC,
        mds_diag: Sequence[int] = REFERENCE_MDS_MATRIX_DIAG,
    ) -> "PoseidonParams":
        """Build a full parameter set, computing the fast partial round tables."""
        _check_vector("round_constants", round_constants, N_ROUNDS * SPONGE_WIDTH)
        _check_vector("mds_circ", mds_circ, SPONGE_WIDTH)
        _check_vector("mds_diag", mds_diag, SPONGE_WIDTH)
        tables = derive_fast_partial_tables(round_constants, mds_circ, mds_diag)
        return cls(round_constants=tuple(round_constants), mds_circ=tuple(mds_circ),
                   mds_diag=tuple(mds_diag), **tables)


def _check_vector(name: str, values: Sequence[int], expected_len: int) -> None:
    if len(values) != expected_len:
        raise ParamsError(f"{name}: expected {expected_len} entries, got {len(values)}")
    for i, v in enumerate(values):
        if not 0 <= v <= MASK64:
            raise ParamsError(f"{name}[{i}] is not a 64-bit word: {v}")


def _check_matrix(name: str, rows: Sequence[Sequence[int]], n_rows: int, n_cols: int) -> None:
    if len(rows) != n_rows:
        raise ParamsError(f"{name}: expected {n_rows} rows, got {len(rows)}")
    for r, row in enumerate(rows):
        if not isinstance(row, (list, tuple)):
            raise ParamsError(f"{name}[{r}] is not a row: {row!r}")
        _check_vector(f"{name}[{r}]", row, n_cols)


def _parse_ints(value):
    if isinstance(value, dict):
        return {k: _parse_ints(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_parse_ints(v) for v in value]
    if isinstance(value, str):
        return int(value, 0)
    return value


def _to_json_value(value):
    if isinstance(value, tuple):
        return [_to_json_value(v) for v in value]
    return value


# --- Loading ---

def load_params(path: Optional[Union[str, Path]] = None) -> PoseidonParams:
    """Load parameters from ``path`` or from $GOLDILOCKS_POSEIDON_PARAMS.

    Results are cached per resolved path; the tables are immutable, so every
    caller can share one instance.

    Raises:
        ParamsError: If no path is given and the environment variable is unset
    """
    if path is None:
        path = os.environ.get(PARAMS_ENV_VAR)
        if not path:
            raise ParamsError(f"no parameter file given and ${PARAMS_ENV_VAR} is not set")
    return _load_params_cached(str(Path(path).resolve()))


@lru_cache(maxsize=None)
def _load_params_cached(path: str) -> PoseidonParams:
    return PoseidonParams.from_json(path)


# --- Derivation ---

def mds_matrix(mds_circ: Sequence[int], mds_diag: Sequence[int]):
    """Dense MDS matrix over FF: M[r][c] = circ[(c - r) % W] + (r == c) * diag[r]."""
    w = len(mds_circ)
    rows = [
        [(mds_circ[(c - r) % w] + (mds_diag[r] if r == c else 0)) % ORDER for c in range(w)]
        for r in range(w)
    ]
    return FF(rows)


def random_round_constants(seed: int = 0) -> List[int]:
    """Deterministic canonical round constants for development and tests.

    These are NOT the reference constants; digests computed with them are
    not interoperable.
    """
    return [int(x) for x in FF.Random(N_ROUNDS * SPONGE_WIDTH, seed=seed)]


# --- Reference Constants ---

GRAIN_STATE_BITS = 80
GRAIN_WARMUP = 160


def _grain_bits(field_size: int, width: int, n_full_rounds: int, n_partial_rounds: int) -> Iterator[int]:
    """Self-shrinking Grain LFSR of the Poseidon parameter generator.

    The 80-bit state is seeded with the instance description (prime field,
    x^alpha S-box, field size, width, round counts) padded with ones.
    """
    def bits(value: int, n: int) -> List[int]:
        return [int(b) for b in format(value, f"0{n}b")]

    state = (bits(1, 2) + bits(0, 4) + bits(field_size, 12) + bits(width, 12)
             + bits(n_full_rounds, 10) + bits(n_partial_rounds, 10))
    state += [1] * (GRAIN_STATE_BITS - len(state))

    def step() -> int:
        new_bit = state[62] ^ state[51] ^ state[38] ^ state[23] ^ state[13] ^ state[0]
        state.pop(0)
        state.append(new_bit)
        return new_bit

    for _ in range(GRAIN_WARMUP):
        step()
    while True:
        # Bits come in pairs; the second is output only when the first is 1.
        selector = step()
        while selector == 0:
            step()
            selector = step()
        yield step()


def grain_round_constants(
    width: int = SPONGE_WIDTH,
    n_full_rounds: int = N_FULL_ROUNDS_TOTAL,
    n_partial_rounds: int = N_PARTIAL_ROUNDS,
) -> List[int]:
    """Round constants of the reference Goldilocks Poseidon instance.

    64-bit candidates are read from the Grain stream most significant bit
    first and rejected when >= p. Constants are ordered round by round, lane
    by lane.
    """
    field_size = ORDER.bit_length()
    stream = _grain_bits(field_size, width, n_full_rounds, n_partial_rounds)
    n_constants = (n_full_rounds + n_partial_rounds) * width
    constants: List[int] = []
    while len(constants) < n_constants:
        candidate = 0
        for _ in range(field_size):
            candidate = (candidate << 1) | next(stream)
        if candidate < ORDER:
            constants.append(candidate)
    return constants


@lru_cache(maxsize=None)
def reference_params() -> PoseidonParams:
    """The reference width-12 parameter set: Grain round constants, reference MDS."""
    params = PoseidonParams.derive(grain_round_constants())
    logger.info("Derived reference Poseidon parameters")
    return params


def derive_fast_partial_tables(
    round_constants: Sequence[int],
    mds_circ: Sequence[int],
    mds_diag: Sequence[int],
) -> Dict[str, object]:
    """Compute the fast partial round tables.

    Constants: a partial round adds a full row of constants, but only lane 0
    is non-linear. Working backwards, each row is pulled through M^-1 into the
    previous round: its lane-0 component becomes that round's scalar constant
    (added after the S-box), the rest joins the previous row. What is left
    after the first partial round is the full-width first-round constant.

    Matrices: each partial-round MDS N is factored as M'' * M' with
    M' = diag(1, N_hat) and M'' = [[n00, w_hat], [v, I]]. M' commutes with the
    lane-0 S-box, so it is pushed into the previous round (N = M' * M there)
    until the first round, where it becomes the initial matrix.
    """
    width = SPONGE_WIDTH
    mds = mds_matrix(mds_circ, mds_diag)
    mds_inv = np.linalg.inv(mds)

    # --- Constants ---
    partial_rows = FF([
        [c % ORDER for c in round_constants[(HALF_N_FULL_ROUNDS + i) * width:(HALF_N_FULL_ROUNDS + i + 1) * width]]
        for i in range(N_PARTIAL_ROUNDS)
    ])
    scalars = [0] * N_PARTIAL_ROUNDS
    acc = partial_rows[N_PARTIAL_ROUNDS - 1].reshape(width, 1)
    for i in range(N_PARTIAL_ROUNDS - 1, 0, -1):
        u = mds_inv @ acc
        scalars[i - 1] = int(u[0, 0])
        u[0, 0] = 0
        acc = partial_rows[i - 1].reshape(width, 1) + u
    first_round_constant = [int(x) for x in acc[:, 0]]

    # --- Matrices ---
    w_hats: List[List[int]] = [[] for _ in range(N_PARTIAL_ROUNDS)]
    vs: List[List[int]] = [[] for _ in range(N_PARTIAL_ROUNDS)]
    n = mds
    n_hat = None
    for i in range(N_PARTIAL_ROUNDS - 1, -1, -1):
        if n_hat is not None:
            m_prime = FF.Identity(width)
            m_prime[1:, 1:] = n_hat
            n = m_prime @ mds
        n_hat = n[1:, 1:]
        w_hat = n[0:1, 1:] @ np.linalg.inv(n_hat)
        w_hats[i] = [int(x) for x in w_hat[0]]
        vs[i] = [int(x) for x in n[1:, 0]]
    initial = n_hat.T

    logger.debug("Derived fast partial round tables for %d partial rounds", N_PARTIAL_ROUNDS)
    return {
        "fast_partial_first_round_constant": first_round_constant,
        "fast_partial_round_constants": scalars,
        "fast_partial_round_initial_matrix": [[int(x) for x in row] for row in initial],
        "fast_partial_round_w_hats": w_hats,
        "fast_partial_round_vs": vs,
    }
