"""Tests for the lane-parallel batch driver."""

import numpy as np
import pytest

from goldilocks_poseidon.batch import (
    BatchView,
    as_u64_array,
    compress_batch,
    hash_batch,
    hash_lane,
    lane_job_indices,
)
from goldilocks_poseidon.field import ORDER
from goldilocks_poseidon.poseidon import Poseidon
from goldilocks_poseidon.sponge import HashOut, hash_fixed, two_to_one
from tests.helpers import random_u64s

N_JOBS = 5


@pytest.fixture(scope="module")
def words() -> list:
    return random_u64s(np.random.default_rng(99), 4 * N_JOBS)


@pytest.fixture(scope="module")
def sequential(poseidon: Poseidon, words: list) -> list:
    """Digests computed one job at a time, in order."""
    out = []
    for j in range(N_JOBS):
        out.extend(hash_fixed(poseidon, words[4 * j:4 * j + 4]).to_u64s())
    return out


class TestLanePartition:
    """Strided partition of jobs over lanes."""

    @pytest.mark.parametrize("lane_count", [1, 2, 3, 5, 8])
    def test_disjoint_cover(self, lane_count: int) -> None:
        """Every job belongs to exactly one lane."""
        n_jobs = 7
        seen = []
        for lane in range(lane_count):
            seen.extend(lane_job_indices(lane, lane_count, n_jobs))
        assert sorted(seen) == list(range(n_jobs))
        assert len(seen) == len(set(seen))

    def test_stride(self) -> None:
        """Lane 1 of 3 takes every third job starting at 1."""
        assert list(lane_job_indices(1, 3, 10)) == [1, 4, 7]

    def test_idle_lane(self) -> None:
        """Lanes beyond the job count get nothing."""
        assert list(lane_job_indices(6, 8, 4)) == []

    @pytest.mark.parametrize("lane_index,lane_count", [(0, 0), (-1, 2), (2, 2)])
    def test_invalid_lane(self, lane_index: int, lane_count: int) -> None:
        """Zero lanes and out-of-range lane indices are rejected."""
        with pytest.raises(ValueError):
            lane_job_indices(lane_index, lane_count, 4)


class TestBatchView:
    """Bounds semantics of BatchView."""

    def test_full_view(self) -> None:
        """A view over a whole buffer."""
        view = BatchView.of([1, 2, 3, 4, 5, 6, 7, 8])
        assert len(view) == 8
        assert view[0] == 1 and view[7] == 8

    def test_sub_view(self) -> None:
        """Sub-views are offset and bounds-checked."""
        view = BatchView.of(list(range(10))).view(2, 4)
        assert len(view) == 4
        assert [view[i] for i in range(4)] == [2, 3, 4, 5]
        with pytest.raises(IndexError):
            view[4]

    def test_chunks_share_storage(self) -> None:
        """Writing through a chunk writes the base buffer."""
        base = np.zeros(8, dtype=np.uint64)
        view = BatchView(base)
        view.chunk(1, 4)[:] = 7
        assert list(base) == [0, 0, 0, 0, 7, 7, 7, 7]
        with pytest.raises(IndexError):
            view.chunk(2, 4)

    def test_out_of_bounds(self) -> None:
        """Views past the end of the buffer are rejected."""
        base = np.zeros(4, dtype=np.uint64)
        with pytest.raises(ValueError):
            BatchView(base, 2, 3)
        with pytest.raises(ValueError):
            BatchView(base).view(3, 2)

    def test_negative_length_rejected(self) -> None:
        """Only None extends to the end; a negative length is an error."""
        base = np.zeros(4, dtype=np.uint64)
        with pytest.raises(ValueError):
            BatchView(base, 0, -5)
        with pytest.raises(ValueError):
            BatchView(base, 1, -1)

    def test_default_length_runs_to_end(self) -> None:
        """Leaving length unset covers the rest of the buffer."""
        view = BatchView(np.arange(6, dtype=np.uint64), 2)
        assert len(view) == 4
        assert view[0] == 2
        assert len(BatchView(np.zeros(3, dtype=np.uint64), 3)) == 0

    def test_ragged_chunks(self) -> None:
        """Chunk counts require an exact multiple."""
        with pytest.raises(ValueError):
            BatchView.of([1, 2, 3, 4, 5]).n_chunks(4)

    def test_u64_conversion(self) -> None:
        """Lists of Python ints convert, including non-canonical words."""
        arr = as_u64_array([ORDER, 2**64 - 1])
        assert arr.dtype == np.uint64
        assert int(arr[1]) == 2**64 - 1

    @pytest.mark.parametrize("bad", [2**64, -1])
    def test_u64_conversion_out_of_range(self, bad: int) -> None:
        """Values outside 64 bits raise ValueError instead of overflowing."""
        with pytest.raises(ValueError):
            as_u64_array([1, bad])


class TestHashBatch:
    """Batch output must equal sequential hashing for any lane count."""

    @pytest.mark.parametrize("lane_count", list(range(1, N_JOBS + 1)) + [N_JOBS + 3])
    def test_matches_sequential(self, poseidon: Poseidon, words: list, sequential: list, lane_count: int) -> None:
        """Any lane count gives the sequential result in input order."""
        out = hash_batch(poseidon, words, lane_count=lane_count)
        assert [int(x) for x in out] == sequential

    def test_default_lane_count(self, poseidon: Poseidon, words: list, sequential: list) -> None:
        """The CPU-count default gives the same result."""
        assert [int(x) for x in hash_batch(poseidon, np.array(words, dtype=np.uint64))] == sequential

    def test_lanes_in_any_order(self, poseidon: Poseidon, words: list, sequential: list) -> None:
        """Running the per-lane entry point in reverse order fills the same slots."""
        src = BatchView.of(words)
        out = np.zeros(4 * N_JOBS, dtype=np.uint64)
        dst = BatchView(out)
        lane_count = 3
        counts = [hash_lane(poseidon, src, dst, lane, lane_count) for lane in reversed(range(lane_count))]
        assert sum(counts) == N_JOBS
        assert [int(x) for x in out] == sequential

    def test_empty_batch(self, poseidon: Poseidon) -> None:
        """No jobs, no output."""
        assert len(hash_batch(poseidon, [])) == 0

    def test_ragged_input(self, poseidon: Poseidon) -> None:
        """Input that is not a whole number of jobs is rejected."""
        with pytest.raises(ValueError):
            hash_batch(poseidon, [1, 2, 3])

    def test_invalid_lane_count(self, poseidon: Poseidon, words: list) -> None:
        """lane_count must be at least 1."""
        with pytest.raises(ValueError):
            hash_batch(poseidon, words, lane_count=0)

    def test_mismatched_output_view(self, poseidon: Poseidon, words: list) -> None:
        """The output view must hold one digest per job."""
        dst = BatchView(np.zeros(4, dtype=np.uint64))
        with pytest.raises(ValueError):
            hash_lane(poseidon, BatchView.of(words), dst, 0, 1)


class TestCompressBatch:
    """Two-to-one compression of digest pairs."""

    @pytest.mark.parametrize("lane_count", [1, 2])
    def test_matches_sequential(self, poseidon: Poseidon, sequential: list, lane_count: int) -> None:
        """Any lane count gives the sequential result in input order."""
        digests = sequential[:16]
        expected = []
        for j in range(2):
            left = HashOut.from_u64s(digests[8 * j:8 * j + 4])
            right = HashOut.from_u64s(digests[8 * j + 4:8 * j + 8])
            expected.extend(two_to_one(poseidon, left, right).to_u64s())
        out = compress_batch(poseidon, digests, lane_count=lane_count)
        assert [int(x) for x in out] == expected
