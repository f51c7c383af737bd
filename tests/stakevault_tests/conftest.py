import sys
from pathlib import Path

import pytest

# Ensure the src directory and the shared staking helpers are importable
# before collection runs.
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from staking_env import (
    fund_and_initialize,
    make_clock,
    make_collection,
    make_contract,
    make_pause_gate,
    make_rbac,
    make_reward_token,
)


@pytest.fixture
def clock():
    return make_clock()


@pytest.fixture
def rbac():
    return make_rbac()


@pytest.fixture
def pause_gate(rbac):
    manager = make_pause_gate(rbac)
    yield manager
    manager.close()


@pytest.fixture
def nft():
    return make_collection()


@pytest.fixture
def token():
    return make_reward_token()


@pytest.fixture
def bare_contract(clock, rbac, pause_gate, nft):
    """Contract wired to its collaborators but not yet initialized."""
    return make_contract(clock, rbac, pause_gate, nft)


@pytest.fixture
def contract(bare_contract, nft, token):
    """Initialized contract with a funded reward pool and approved stakers."""
    return fund_and_initialize(bare_contract, nft, token)
