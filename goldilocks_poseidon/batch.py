"""Lane-parallel batch hashing.

A batch of M independent jobs is split across lanes by stride: lane i takes
jobs i, i + lane_count, i + 2 * lane_count, ... Each job reads its own input
chunk and writes its own output chunk, so lanes never touch each other's
slots and output order matches input order regardless of which lane
finishes first. The Poseidon parameters are the only shared state and are
read-only.

Lanes run on a ThreadPoolExecutor here; a GPU grid would run hash_lane()
once per hardware thread with the same (lane_index, lane_count) contract.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import numpy as np

from .poseidon import Poseidon
from .sponge import HASH_INPUT_ELTS, NUM_HASH_OUT_ELTS, HashOut, hash_fixed, two_to_one
from .wide import MASK64

logger = logging.getLogger(__name__)

ArrayLike = Union[np.ndarray, Sequence[int]]


# --- Buffer View ---

@dataclass(frozen=True)
class BatchView:
    """A (start, length) window over a flat uint64 buffer. Does not own storage.

    ``length=None`` extends the view to the end of the buffer.
    """
    base: np.ndarray
    start: int = 0
    length: Optional[int] = None

    def __post_init__(self):
        if self.base.ndim != 1:
            raise ValueError(f"BatchView needs a flat buffer, got {self.base.ndim}D")
        length = len(self.base) - self.start if self.length is None else self.length
        if self.start < 0 or length < 0 or self.start + length > len(self.base):
            raise ValueError(
                f"view [{self.start}, {self.start + length}) outside buffer of {len(self.base)}"
            )
        object.__setattr__(self, "length", length)

    @classmethod
    def of(cls, values: ArrayLike) -> "BatchView":
        return cls(as_u64_array(values))

    def __len__(self) -> int:
        return self.length

    def __getitem__(self, i: int) -> int:
        if not 0 <= i < self.length:
            raise IndexError(f"index {i} out of range [0, {self.length})")
        return int(self.base[self.start + i])

    def view(self, offset: int, length: int) -> "BatchView":
        if offset < 0 or length < 0 or offset + length > self.length:
            raise ValueError(f"sub-view [{offset}, {offset + length}) outside view of {self.length}")
        return BatchView(self.base, self.start + offset, length)

    def chunk(self, index: int, size: int) -> np.ndarray:
        """The ``index``-th block of ``size`` words (a numpy view into base)."""
        lo = self.start + index * size
        if index < 0 or lo + size > self.start + self.length:
            raise IndexError(f"chunk {index} of size {size} outside view of {self.length}")
        return self.base[lo:lo + size]

    def n_chunks(self, size: int) -> int:
        if self.length % size != 0:
            raise ValueError(f"view of {self.length} words is not a whole number of {size}-word chunks")
        return self.length // size


def as_u64_array(values: ArrayLike) -> np.ndarray:
    """Flat uint64 array from any sequence of 64-bit words.

    Raises:
        ValueError: If a value does not fit in 64 bits
    """
    if isinstance(values, np.ndarray) and values.dtype == np.uint64:
        return values.reshape(-1)
    words = [int(v) for v in np.asarray(values, dtype=object).reshape(-1)]
    for i, v in enumerate(words):
        if not 0 <= v <= MASK64:
            raise ValueError(f"word {i} is not a 64-bit value: {v}")
    return np.array(words, dtype=np.uint64)


# --- Lane Partition ---

def lane_job_indices(lane_index: int, lane_count: int, n_jobs: int) -> range:
    """Jobs owned by one lane: ``lane_index``, ``lane_index + lane_count``, ..."""
    if lane_count < 1:
        raise ValueError(f"lane_count must be >= 1, got {lane_count}")
    if not 0 <= lane_index < lane_count:
        raise ValueError(f"lane_index {lane_index} out of range [0, {lane_count})")
    return range(lane_index, n_jobs, lane_count)


def run_lane(job: Callable[[int], None], n_jobs: int, lane_index: int, lane_count: int) -> int:
    """Run ``job`` for every job index of this lane. Returns the number of jobs run."""
    count = 0
    for j in lane_job_indices(lane_index, lane_count, n_jobs):
        job(j)
        count += 1
    return count


def run_lanes(lane: Callable[[int, int], object], n_jobs: int, lane_count: Optional[int] = None,
              max_workers: Optional[int] = None) -> None:
    """Run ``lane(lane_index, lane_count)`` for every lane on a thread pool."""
    if lane_count is None:
        lane_count = max(1, min(n_jobs, os.cpu_count() or 1))
    if lane_count < 1:
        raise ValueError(f"lane_count must be >= 1, got {lane_count}")
    logger.debug("Dispatching %d jobs over %d lanes", n_jobs, lane_count)

    if lane_count == 1:
        lane(0, 1)
        return

    with ThreadPoolExecutor(max_workers=max_workers or lane_count) as executor:
        futures = [executor.submit(lane, i, lane_count) for i in range(lane_count)]
        # result() re-raises any failure from inside a lane.
        for future in futures:
            future.result()


# --- Hashing ---

def hash_lane(permutation: Poseidon, inputs: BatchView, outputs: BatchView,
              lane_index: int, lane_count: int) -> int:
    """Per-lane entry point: hash this lane's share of ``inputs`` into ``outputs``.

    Returns the number of jobs this lane ran.
    """
    n_jobs = inputs.n_chunks(HASH_INPUT_ELTS)
    if outputs.n_chunks(NUM_HASH_OUT_ELTS) != n_jobs:
        raise ValueError(f"output view holds {len(outputs)} words, need {n_jobs * NUM_HASH_OUT_ELTS}")

    def job(j: int) -> None:
        digest = hash_fixed(permutation, [int(x) for x in inputs.chunk(j, HASH_INPUT_ELTS)])
        outputs.chunk(j, NUM_HASH_OUT_ELTS)[:] = np.array(digest.to_u64s(), dtype=np.uint64)

    return run_lane(job, n_jobs, lane_index, lane_count)


def compress_lane(permutation: Poseidon, inputs: BatchView, outputs: BatchView,
                  lane_index: int, lane_count: int) -> int:
    """Per-lane entry point for two-to-one compression of digest pairs."""
    pair_words = 2 * NUM_HASH_OUT_ELTS
    n_jobs = inputs.n_chunks(pair_words)
    if outputs.n_chunks(NUM_HASH_OUT_ELTS) != n_jobs:
        raise ValueError(f"output view holds {len(outputs)} words, need {n_jobs * NUM_HASH_OUT_ELTS}")

    def job(j: int) -> None:
        pair = inputs.chunk(j, pair_words)
        left = HashOut.from_u64s(pair[:NUM_HASH_OUT_ELTS])
        right = HashOut.from_u64s(pair[NUM_HASH_OUT_ELTS:])
        digest = two_to_one(permutation, left, right)
        outputs.chunk(j, NUM_HASH_OUT_ELTS)[:] = np.array(digest.to_u64s(), dtype=np.uint64)

    return run_lane(job, n_jobs, lane_index, lane_count)


def hash_batch(permutation: Poseidon, inputs: ArrayLike, lane_count: Optional[int] = None,
               max_workers: Optional[int] = None) -> np.ndarray:
    """Hash every 4-word chunk of ``inputs``.

    Returns a flat uint64 array with one 4-word digest per input chunk, in
    input order.
    """
    src = BatchView.of(inputs)
    n_jobs = src.n_chunks(HASH_INPUT_ELTS)
    out = np.zeros(n_jobs * NUM_HASH_OUT_ELTS, dtype=np.uint64)
    dst = BatchView(out)
    run_lanes(lambda i, count: hash_lane(permutation, src, dst, i, count), n_jobs, lane_count, max_workers)
    return out


def compress_batch(permutation: Poseidon, digests: ArrayLike, lane_count: Optional[int] = None,
                   max_workers: Optional[int] = None) -> np.ndarray:
    """Two-to-one compress consecutive pairs of 4-word digests.

    ``digests`` holds 2k digests (8k words); the result holds k.
    """
    src = BatchView.of(digests)
    n_jobs = src.n_chunks(2 * NUM_HASH_OUT_ELTS)
    out = np.zeros(n_jobs * NUM_HASH_OUT_ELTS, dtype=np.uint64)
    dst = BatchView(out)
    run_lanes(lambda i, count: compress_lane(permutation, src, dst, i, count), n_jobs, lane_count, max_workers)
    return out
