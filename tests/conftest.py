"""
Pytest configuration and shared fixtures.

The parameter set is derived once per session from seeded random round
constants and the reference MDS matrix, so the fast partial round tables go
through the same derivation a real parameter file would.
"""

import numpy as np
import pytest

from goldilocks_poseidon.params import PoseidonParams, random_round_constants, reference_params
from goldilocks_poseidon.poseidon import Poseidon


@pytest.fixture(scope="session")
def params() -> PoseidonParams:
    return PoseidonParams.derive(random_round_constants(seed=0))


@pytest.fixture(scope="session")
def poseidon(params: PoseidonParams) -> Poseidon:
    return Poseidon(params)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture(scope="session")
def reference_poseidon() -> Poseidon:
    return Poseidon(reference_params())
