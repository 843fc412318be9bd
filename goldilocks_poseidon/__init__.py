"""
Goldilocks field arithmetic and width-12 Poseidon hashing.

This package provides:
- Goldilocks field elements with non-canonical representation
- Binary extended GCD inversion and batch inversion
- The Poseidon permutation with fast partial rounds
- Fixed-length sponge hashing and two-to-one compression
- A lane-parallel batch driver and a Merkle tree built on it

Usage:
    from goldilocks_poseidon import Poseidon, load_params, hash_fixed, hash_batch

    permutation = Poseidon(load_params("params.json"))
    digest = hash_fixed(permutation, [1, 2, 3, 4])
    digests = hash_batch(permutation, words, lane_count=8)
"""

# Field arithmetic
from .field import (
    EPSILON,
    FF,
    GOLDILOCKS_PRIME,
    ORDER,
    TWO_ADICITY,
    GoldilocksField,
    from_ff,
    reduce128,
    to_ff,
)
from .inversion import batch_inverse, inverse_2exp, try_inverse_u64

# Parameters
from .errors import GoldilocksPoseidonError, ParamsError
from .params import (
    HALF_N_FULL_ROUNDS,
    N_PARTIAL_ROUNDS,
    N_ROUNDS,
    SPONGE_WIDTH,
    PoseidonParams,
    derive_fast_partial_tables,
    grain_round_constants,
    load_params,
    random_round_constants,
    reference_params,
)

# Permutation and hashing
from .poseidon import Poseidon
from .sponge import (
    NUM_HASH_OUT_ELTS,
    SPONGE_CAPACITY,
    SPONGE_RATE,
    HashOut,
    hash_fixed,
    two_to_one,
)

# Parallel driver
from .batch import BatchView, compress_batch, hash_batch, hash_lane, lane_job_indices
from .merkle import MerkleProof, MerkleTree, verify_merkle_proof

__version__ = "0.1.0"
__all__ = [
    # Field
    "GoldilocksField",
    "FF",
    "ORDER",
    "GOLDILOCKS_PRIME",
    "EPSILON",
    "TWO_ADICITY",
    "reduce128",
    "to_ff",
    "from_ff",
    "try_inverse_u64",
    "inverse_2exp",
    "batch_inverse",
    # Parameters
    "PoseidonParams",
    "load_params",
    "derive_fast_partial_tables",
    "random_round_constants",
    "grain_round_constants",
    "reference_params",
    "SPONGE_WIDTH",
    "HALF_N_FULL_ROUNDS",
    "N_PARTIAL_ROUNDS",
    "N_ROUNDS",
    "GoldilocksPoseidonError",
    "ParamsError",
    # Hash
    "Poseidon",
    "HashOut",
    "hash_fixed",
    "two_to_one",
    "SPONGE_RATE",
    "SPONGE_CAPACITY",
    "NUM_HASH_OUT_ELTS",
    # Batch
    "BatchView",
    "lane_job_indices",
    "hash_lane",
    "hash_batch",
    "compress_batch",
    # Merkle
    "MerkleTree",
    "MerkleProof",
    "verify_merkle_proof",
]
