"""Width-12 Poseidon permutation over the Goldilocks field.

Round structure: HALF_N_FULL_ROUNDS full rounds, N_PARTIAL_ROUNDS partial
rounds, HALF_N_FULL_ROUNDS full rounds. A full round adds a row of round
constants, applies x^7 to every lane and mixes with the MDS matrix. A partial
round applies the S-box to lane 0 only.

Partial rounds run in the "fast" form: one full-width constant layer, one
dense 11x11 transform, then per round a lane-0 S-box, a lane-0 constant and a
sparse MDS step (one 12-term dot product for lane 0, one multiply-accumulate
for each other lane). permute_naive() runs the textbook partial rounds and
must agree bit for bit.

A Poseidon instance only reads its parameters; all state lives in the list
passed to each call, so one instance can be shared by any number of lanes.
"""

from typing import List, Sequence, Tuple

from .field import GoldilocksField, as_field, FieldLike
from .params import (
    HALF_N_FULL_ROUNDS,
    N_FULL_ROUNDS_TOTAL,
    N_PARTIAL_ROUNDS,
    N_ROUNDS,
    SPONGE_WIDTH,
    PoseidonParams,
)
from .wide import MASK64, add_u128, add_u160_u128, join_u128, widening_mul

__all__ = [
    "Poseidon",
    "reduce_u160",
    "SPONGE_WIDTH",
    "HALF_N_FULL_ROUNDS",
    "N_FULL_ROUNDS_TOTAL",
    "N_PARTIAL_ROUNDS",
    "N_ROUNDS",
]

State = List[GoldilocksField]


def reduce_u160(lo: int, hi: int) -> GoldilocksField:
    """Reduce the 160-bit value ``hi * 2^128 + lo`` (``hi`` is 32 bits)."""
    lo_hi = lo >> 64
    lo_lo = lo & MASK64
    reduced_hi = GoldilocksField.from_noncanonical_u96(lo_hi, hi).to_noncanonical_u64()
    return GoldilocksField.from_noncanonical_u128(join_u128(reduced_hi, lo_lo))


def _mul_u128(a: int, b: int) -> int:
    return join_u128(*widening_mul(a, b))


class Poseidon:
    """Poseidon permutation bound to a parameter set."""

    def __init__(self, params: PoseidonParams):
        self.params = params
        self._mds0to0 = params.mds_circ[0] + params.mds_diag[0]
        self._initial_matrix = [
            [GoldilocksField.from_canonical_u64(t) for t in row]
            for row in params.fast_partial_round_initial_matrix
        ]
        self._vs = [
            [GoldilocksField.from_canonical_u64(t) for t in row]
            for row in params.fast_partial_round_vs
        ]

    # --- Layers ---

    def constant_layer(self, state: State, round_ctr: int) -> None:
        """Add the round constants of ``round_ctr`` to every lane, in place."""
        rc = self.params.round_constants
        offset = round_ctr * SPONGE_WIDTH
        for i in range(SPONGE_WIDTH):
            state[i] = state[i].add_canonical_u64(rc[offset + i])

    @staticmethod
    def sbox_monomial(x: GoldilocksField) -> GoldilocksField:
        """x^7 as x^4 * x^3."""
        x2 = x.square()
        x4 = x2.square()
        x3 = x * x2
        return x3 * x4

    def sbox_layer(self, state: State) -> None:
        for i in range(SPONGE_WIDTH):
            state[i] = self.sbox_monomial(state[i])

    def mds_row_shf(self, r: int, v: Sequence[int]) -> int:
        """Row ``r`` of the MDS product, accumulated in 128 bits without reduction."""
        circ = self.params.mds_circ
        res = 0
        for i in range(SPONGE_WIDTH):
            res = add_u128(res, _mul_u128(v[(i + r) % SPONGE_WIDTH], circ[i]))
        return add_u128(res, _mul_u128(v[r], self.params.mds_diag[r]))

    def mds_layer(self, state: Sequence[GoldilocksField]) -> State:
        words = [x.to_noncanonical_u64() for x in state]
        return [
            GoldilocksField.from_noncanonical_u128(self.mds_row_shf(r, words))
            for r in range(SPONGE_WIDTH)
        ]

    def partial_first_constant_layer(self, state: State) -> None:
        first = self.params.fast_partial_first_round_constant
        for i in range(SPONGE_WIDTH):
            state[i] = state[i].add_canonical_u64(first[i])

    def mds_partial_layer_init(self, state: Sequence[GoldilocksField]) -> State:
        """Dense transform of lanes 1..11 applied once before the partial rounds."""
        result = [GoldilocksField.ZERO] * SPONGE_WIDTH
        result[0] = state[0]
        for r in range(1, SPONGE_WIDTH):
            row = self._initial_matrix[r - 1]
            for c in range(1, SPONGE_WIDTH):
                result[c] = result[c] + state[r] * row[c - 1]
        return result

    def mds_partial_layer_fast(self, state: Sequence[GoldilocksField], r: int) -> State:
        """Sparse MDS step of partial round ``r``.

        Lane 0 becomes a dot product with W_HATS[r] plus the MDS corner times
        lane 0; the sum of twelve 128-bit products needs up to 132 bits, hence
        the 160-bit accumulator and a single reduction. Lane i becomes
        state[i] + state[0] * VS[r][i - 1].
        """
        w_hats = self.params.fast_partial_round_w_hats[r]
        d_sum = (0, 0)
        for i in range(1, SPONGE_WIDTH):
            d_sum = add_u160_u128(d_sum, _mul_u128(state[i].to_noncanonical_u64(), w_hats[i - 1]))
        s0 = state[0].to_noncanonical_u64()
        d_sum = add_u160_u128(d_sum, _mul_u128(s0, self._mds0to0))

        result = [reduce_u160(*d_sum)]
        vs = self._vs[r]
        for i in range(1, SPONGE_WIDTH):
            result.append(state[i].multiply_accumulate(state[0], vs[i - 1]))
        return result

    # --- Rounds ---

    def full_rounds(self, state: State, round_ctr: int) -> int:
        """HALF_N_FULL_ROUNDS full rounds in place. Returns the new round counter."""
        for _ in range(HALF_N_FULL_ROUNDS):
            self.constant_layer(state, round_ctr)
            self.sbox_layer(state)
            state[:] = self.mds_layer(state)
            round_ctr += 1
        return round_ctr

    def partial_rounds(self, state: State, round_ctr: int) -> int:
        constants = self.params.fast_partial_round_constants
        self.partial_first_constant_layer(state)
        state[:] = self.mds_partial_layer_init(state)
        for i in range(N_PARTIAL_ROUNDS):
            state[0] = self.sbox_monomial(state[0]).add_canonical_u64(constants[i])
            state[:] = self.mds_partial_layer_fast(state, i)
        return round_ctr + N_PARTIAL_ROUNDS

    def partial_rounds_naive(self, state: State, round_ctr: int) -> int:
        for _ in range(N_PARTIAL_ROUNDS):
            self.constant_layer(state, round_ctr)
            state[0] = self.sbox_monomial(state[0])
            state[:] = self.mds_layer(state)
            round_ctr += 1
        return round_ctr

    # --- Permutation ---

    def permute_with_counter(self, inputs: Sequence[FieldLike], naive: bool = False) -> Tuple[State, int]:
        """Permute and also return the final round counter."""
        if len(inputs) != SPONGE_WIDTH:
            raise ValueError(f"state must have {SPONGE_WIDTH} elements, got {len(inputs)}")
        state = [as_field(x) for x in inputs]
        round_ctr = 0
        round_ctr = self.full_rounds(state, round_ctr)
        if naive:
            round_ctr = self.partial_rounds_naive(state, round_ctr)
        else:
            round_ctr = self.partial_rounds(state, round_ctr)
        round_ctr = self.full_rounds(state, round_ctr)
        assert round_ctr == N_ROUNDS, f"round counter {round_ctr} != {N_ROUNDS}"
        return state, round_ctr

    def permute(self, inputs: Sequence[FieldLike]) -> State:
        """Apply the permutation to a 12-element state and return the new state."""
        return self.permute_with_counter(inputs)[0]

    def permute_naive(self, inputs: Sequence[FieldLike]) -> State:
        """Same permutation with textbook partial rounds."""
        return self.permute_with_counter(inputs, naive=True)[0]
