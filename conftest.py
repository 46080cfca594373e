"""
Shared fixtures for the ledger tests.
"""
import pytest

from amm_ledger.config import Config
from amm_ledger.ledger import Ledger

TOKEN_A = bytes([0x01]) * 20
TOKEN_B = bytes([0x02]) * 20
TOKEN_C = bytes([0x03]) * 20

ALICE = bytes([0xA1]) * 20
BOB = bytes([0xB0]) * 20

STARTING_BALANCE = 10**12


@pytest.fixture
def config():
    """Fee-free pools with exact ratio matching, so results are easy to predict."""
    config = Config.default()
    config.pool.fee_bps = 0
    config.pool.ratio_tolerance_bps = 0
    return config


@pytest.fixture
def ledger(config):
    ledger = Ledger(config=config)
    yield ledger
    ledger.close()


@pytest.fixture
def funded(ledger):
    for user in (ALICE, BOB):
        for token in (TOKEN_A, TOKEN_B, TOKEN_C):
            ledger.mint_tokens(user, token, STARTING_BALANCE)
    return ledger


@pytest.fixture
def pool(funded):
    return funded.create_pool(TOKEN_A, TOKEN_B)
