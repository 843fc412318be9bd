"""Tests for fixed-length sponge hashing."""

import pytest

from goldilocks_poseidon.field import ORDER, GoldilocksField
from goldilocks_poseidon.poseidon import SPONGE_WIDTH, Poseidon
from goldilocks_poseidon.sponge import (
    NUM_HASH_OUT_ELTS,
    SPONGE_CAPACITY,
    SPONGE_RATE,
    HashOut,
    hash_fixed,
    two_to_one,
)

F = GoldilocksField


class TestHashOut:
    """Digest container."""

    def test_length_checked(self) -> None:
        """A digest must have exactly four elements."""
        with pytest.raises(ValueError):
            HashOut((F(1), F(2), F(3)))

    def test_u64_roundtrip(self) -> None:
        """to_u64s() canonicalizes; equality ignores representation."""
        h = HashOut.from_u64s([1, 2, 3, ORDER + 4])
        assert h.to_u64s() == (1, 2, 3, 4)
        assert h == HashOut.from_u64s([1, 2, 3, 4])
        assert len(h) == NUM_HASH_OUT_ELTS


class TestHashFixed:
    """Single-permutation hashing of four elements."""

    def test_sponge_geometry(self) -> None:
        """Rate 8 plus capacity 4 fills the width-12 state."""
        assert SPONGE_RATE + SPONGE_CAPACITY == SPONGE_WIDTH
        assert SPONGE_CAPACITY == NUM_HASH_OUT_ELTS

    def test_deterministic(self, poseidon: Poseidon) -> None:
        """Equal inputs hash equally."""
        assert hash_fixed(poseidon, [1, 2, 3, 4]) == hash_fixed(poseidon, [1, 2, 3, 4])

    def test_sensitive_to_input(self, poseidon: Poseidon) -> None:
        """Changing one input word changes the digest."""
        assert hash_fixed(poseidon, [1, 2, 3, 4]) != hash_fixed(poseidon, [1, 2, 3, 5])

    def test_single_bit_flips(self, poseidon: Poseidon) -> None:
        """Low, middle and high bit flips in every input lane."""
        base = hash_fixed(poseidon, [1, 2, 3, 4])
        for lane in range(4):
            for bit in (0, 31, 63):
                inputs = [1, 2, 3, 4]
                inputs[lane] ^= 1 << bit
                assert hash_fixed(poseidon, inputs) != base

    def test_is_first_lanes_of_permutation(self, poseidon: Poseidon) -> None:
        """The digest is lanes 0..3 of one permutation of the padded state."""
        state = [1, 2, 3, 4] + [0] * (SPONGE_WIDTH - 4)
        expected = poseidon.permute(state)[:NUM_HASH_OUT_ELTS]
        assert hash_fixed(poseidon, [F(1), F(2), F(3), F(4)]).elements == tuple(expected)

    def test_noncanonical_inputs(self, poseidon: Poseidon) -> None:
        """Aliases of the same residues hash equally."""
        assert hash_fixed(poseidon, [ORDER, ORDER + 1, 2, 3]) == hash_fixed(poseidon, [0, 1, 2, 3])

    @pytest.mark.parametrize("n", [0, 3, 5, 8])
    def test_wrong_input_length(self, poseidon: Poseidon, n: int) -> None:
        """Only four-element inputs are accepted."""
        with pytest.raises(ValueError):
            hash_fixed(poseidon, [0] * n)


class TestTwoToOne:
    """Merkle node compression."""

    def test_is_permutation_of_concatenation(self, poseidon: Poseidon) -> None:
        """left fills lanes 0..3, right fills lanes 4..7."""
        left = HashOut.from_u64s([1, 2, 3, 4])
        right = HashOut.from_u64s([5, 6, 7, 8])
        expected = poseidon.permute([1, 2, 3, 4, 5, 6, 7, 8, 0, 0, 0, 0])[:NUM_HASH_OUT_ELTS]
        assert two_to_one(poseidon, left, right).elements == tuple(expected)

    def test_order_matters(self, poseidon: Poseidon) -> None:
        """Swapping children changes the node hash."""
        a = HashOut.from_u64s([1, 2, 3, 4])
        b = HashOut.from_u64s([5, 6, 7, 8])
        assert two_to_one(poseidon, a, b) != two_to_one(poseidon, b, a)
