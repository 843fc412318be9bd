"""Fixed-input-length sponge hashing on top of the Poseidon permutation.

The state is 12 lanes: 8 rate lanes followed by 4 capacity lanes. Inputs are
written into the leading rate lanes of a zero state, the permutation runs
once, and the first 4 lanes are the digest.

There is no padding or domain separation. That is only sound because every
input has a fixed, known length; do not use these helpers for variable-length
or multi-block input.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

from .field import FieldLike, GoldilocksField, as_field
from .poseidon import SPONGE_WIDTH, Poseidon

SPONGE_RATE = 8
SPONGE_CAPACITY = SPONGE_WIDTH - SPONGE_RATE
NUM_HASH_OUT_ELTS = 4
HASH_INPUT_ELTS = 4


@dataclass(frozen=True)
class HashOut:
    """A 4-element Poseidon digest."""
    elements: Tuple[GoldilocksField, ...]

    def __post_init__(self):
        if len(self.elements) != NUM_HASH_OUT_ELTS:
            raise ValueError(f"HashOut needs {NUM_HASH_OUT_ELTS} elements, got {len(self.elements)}")
        object.__setattr__(self, "elements", tuple(as_field(x) for x in self.elements))

    @classmethod
    def from_u64s(cls, values: Sequence[int]) -> "HashOut":
        return cls(tuple(GoldilocksField(int(v)) for v in values))

    def to_u64s(self) -> Tuple[int, ...]:
        """Canonical integer form of the digest."""
        return tuple(x.to_canonical_u64() for x in self.elements)

    def __iter__(self):
        return iter(self.elements)

    def __len__(self) -> int:
        return NUM_HASH_OUT_ELTS


def hash_fixed(permutation: Poseidon, inputs: Sequence[FieldLike]) -> HashOut:
    """Hash exactly HASH_INPUT_ELTS elements.

    Capacity lanes stay zero; the rate lanes not covered by the input stay
    zero as well.
    """
    if len(inputs) != HASH_INPUT_ELTS:
        raise ValueError(f"hash_fixed takes {HASH_INPUT_ELTS} elements, got {len(inputs)}")
    state = [GoldilocksField.ZERO] * SPONGE_WIDTH
    for i, x in enumerate(inputs):
        state[i] = as_field(x)
    state = permutation.permute(state)
    return HashOut(tuple(state[:NUM_HASH_OUT_ELTS]))


def two_to_one(permutation: Poseidon, left: HashOut, right: HashOut) -> HashOut:
    """Compress two digests into one (Merkle node hash).

    left fills rate lanes 0..3, right fills 4..7.
    """
    state = [GoldilocksField.ZERO] * SPONGE_WIDTH
    state[:NUM_HASH_OUT_ELTS] = left.elements
    state[NUM_HASH_OUT_ELTS:2 * NUM_HASH_OUT_ELTS] = right.elements
    state = permutation.permute(state)
    return HashOut(tuple(state[:NUM_HASH_OUT_ELTS]))
