"""
Tests for vault custody: authorization, balances and all-or-nothing settlement.
"""
import pytest

from amm_ledger import accounts
from amm_ledger.errors import (
    InsufficientBalance, InsufficientShares, InsufficientVaultBalance,
    Unauthorized, ZeroAmount,
)
from amm_ledger.memory_db import MemoryDB
from amm_ledger.pool_state import PoolAuthority
from amm_ledger.registry import PoolRegistry
from amm_ledger.state import StateOverlay
from amm_ledger.vault import (
    BurnShares, Credit, Debit, MintShares, VaultCustody, issue_authority,
)

TOKEN_A = bytes([0x01]) * 20
TOKEN_B = bytes([0x02]) * 20
TOKEN_C = bytes([0x03]) * 20
USER = bytes([0xA1]) * 20


@pytest.fixture
def overlay():
    overlay = StateOverlay(MemoryDB())
    account = accounts.empty_account()
    accounts.set_balance(account, TOKEN_A, 1000)
    accounts.set_balance(account, TOKEN_B, 1000)
    accounts.set_account(overlay, USER, account)
    return overlay


@pytest.fixture
def pool(overlay):
    return PoolRegistry(overlay).create_pool(TOKEN_A, TOKEN_B)


@pytest.fixture
def custody(overlay):
    return VaultCustody(overlay)


def balance(overlay, token):
    return accounts.balance_of(accounts.get_account(overlay, USER), token)


def test_credit_moves_funds_into_vault(custody, overlay, pool):
    custody.credit(pool.vault_a, USER, 300)
    assert custody.get_vault(pool.vault_a).balance == 300
    assert balance(overlay, TOKEN_A) == 700


def test_credit_more_than_balance(custody, overlay, pool):
    with pytest.raises(InsufficientBalance):
        custody.credit(pool.vault_a, USER, 1001)
    assert custody.get_vault(pool.vault_a).balance == 0
    assert balance(overlay, TOKEN_A) == 1000


def test_zero_amount(custody, pool):
    with pytest.raises(ZeroAmount):
        custody.credit(pool.vault_a, USER, 0)


def test_debit_with_issued_authority(custody, overlay, pool):
    custody.credit(pool.vault_b, USER, 500)
    custody.debit(pool.vault_b, issue_authority(pool), USER, 200)
    assert custody.get_vault(pool.vault_b).balance == 300
    assert balance(overlay, TOKEN_B) == 700


def test_forged_authority_rejected(custody, pool):
    custody.credit(pool.vault_a, USER, 500)
    forged = PoolAuthority(pool.authority, object())
    with pytest.raises(Unauthorized):
        custody.debit(pool.vault_a, forged, USER, 100)
    assert custody.get_vault(pool.vault_a).balance == 500


def test_authority_of_other_pool_rejected(custody, overlay, pool):
    other = PoolRegistry(overlay).create_pool(TOKEN_A, TOKEN_C)
    custody.credit(pool.vault_a, USER, 500)
    with pytest.raises(Unauthorized):
        custody.debit(pool.vault_a, issue_authority(other), USER, 100)


def test_debit_more_than_vault_holds(custody, pool):
    custody.credit(pool.vault_a, USER, 100)
    with pytest.raises(InsufficientVaultBalance):
        custody.debit(pool.vault_a, issue_authority(pool), USER, 101)


def test_mint_requires_authority(custody, overlay, pool):
    with pytest.raises(Unauthorized):
        custody.settle([MintShares(pool, PoolAuthority(pool.authority, None), USER, 10)])
    custody.settle([MintShares(pool, issue_authority(pool), USER, 10)])
    assert balance(overlay, pool.share_token) == 10


def test_burn_more_than_held(custody, pool):
    custody.settle([MintShares(pool, issue_authority(pool), USER, 10)])
    with pytest.raises(InsufficientShares):
        custody.settle([BurnShares(pool, USER, 11)])


def test_settle_is_all_or_nothing(custody, overlay, pool):
    custody.credit(pool.vault_b, USER, 100)
    before = overlay.pending

    with pytest.raises(InsufficientVaultBalance):
        custody.settle([
            Credit(pool.vault_a, USER, 50),
            Debit(pool.vault_b, issue_authority(pool), USER, 500),
        ])

    assert overlay.pending == before
    assert custody.get_vault(pool.vault_a).balance == 0
    assert custody.get_vault(pool.vault_b).balance == 100
    assert balance(overlay, TOKEN_A) == 1000


def test_unknown_leg(custody):
    with pytest.raises(TypeError):
        custody.settle([("not", "a", "leg")])
