"""Binary Merkle tree over 4-element leaves.

Leaves are hashed with hash_fixed and internal nodes with two_to_one. Every
layer is computed with the lane-parallel batch driver.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .batch import ArrayLike, as_u64_array, compress_batch, hash_batch
from .field import FieldLike
from .poseidon import Poseidon
from .sponge import HASH_INPUT_ELTS, NUM_HASH_OUT_ELTS, HashOut, hash_fixed, two_to_one

logger = logging.getLogger(__name__)


@dataclass
class MerkleProof:
    """Authentication path: sibling digests from the leaf layer up to the root."""
    siblings: List[HashOut] = field(default_factory=list)


class MerkleTree:
    """Binary Poseidon Merkle tree. The number of leaves must be a power of two."""

    def __init__(self, permutation: Poseidon, lane_count: Optional[int] = None):
        self.permutation = permutation
        self.lane_count = lane_count
        self.layers: List[np.ndarray] = []

    @classmethod
    def build(cls, permutation: Poseidon, leaves: ArrayLike, lane_count: Optional[int] = None) -> "MerkleTree":
        tree = cls(permutation, lane_count)
        tree.merkelize(leaves)
        return tree

    def merkelize(self, leaves: ArrayLike) -> None:
        """Build all layers from flat leaf data (n_leaves * 4 words)."""
        data = as_u64_array(leaves)
        if len(data) % HASH_INPUT_ELTS != 0:
            raise ValueError(f"leaf data of {len(data)} words is not a multiple of {HASH_INPUT_ELTS}")
        n_leaves = len(data) // HASH_INPUT_ELTS
        if n_leaves == 0 or n_leaves & (n_leaves - 1):
            raise ValueError(f"number of leaves must be a power of two, got {n_leaves}")

        layer = hash_batch(self.permutation, data, self.lane_count)
        self.layers = [layer]
        while len(layer) > NUM_HASH_OUT_ELTS:
            layer = compress_batch(self.permutation, layer, self.lane_count)
            self.layers.append(layer)
        logger.debug("Built Merkle tree: %d leaves, %d layers", n_leaves, len(self.layers))

    @property
    def n_leaves(self) -> int:
        return len(self.layers[0]) // NUM_HASH_OUT_ELTS if self.layers else 0

    def _node(self, level: int, index: int) -> HashOut:
        lo = index * NUM_HASH_OUT_ELTS
        return HashOut.from_u64s(self.layers[level][lo:lo + NUM_HASH_OUT_ELTS])

    def get_root(self) -> HashOut:
        if not self.layers:
            raise ValueError("tree has not been built")
        return self._node(len(self.layers) - 1, 0)

    def prove(self, index: int) -> MerkleProof:
        if not 0 <= index < self.n_leaves:
            raise ValueError(f"leaf index {index} out of range [0, {self.n_leaves})")
        proof = MerkleProof()
        for level in range(len(self.layers) - 1):
            proof.siblings.append(self._node(level, index ^ 1))
            index >>= 1
        return proof


def verify_merkle_proof(permutation: Poseidon, root: HashOut, leaf: Sequence[FieldLike],
                        index: int, proof: MerkleProof) -> bool:
    """Recompute the root from a leaf and its path and compare."""
    node = hash_fixed(permutation, leaf)
    for sibling in proof.siblings:
        if index & 1:
            node = two_to_one(permutation, sibling, node)
        else:
            node = two_to_one(permutation, node, sibling)
        index >>= 1
    return index == 0 and node == root
