"""
Tests for LP share minting and burning.
"""
import pytest

from amm_ledger import accounts
from amm_ledger.errors import (
    ArithmeticOverflow, InsufficientBalance, InsufficientShares, RatioMismatch, ZeroAmount, ZeroLiquidity,
)
from amm_ledger.liquidity import LiquidityEngine, quote_add_liquidity, quote_remove_liquidity
from amm_ledger.memory_db import MemoryDB
from amm_ledger.pool_state import PoolState
from amm_ledger.registry import PoolRegistry
from amm_ledger.safe_math import U64_MAX
from amm_ledger.state import StateOverlay
from amm_ledger.vault import VaultCustody

TOKEN_A = bytes([0x01]) * 20
TOKEN_B = bytes([0x02]) * 20
USER = bytes([0xA1]) * 20


def make_pool(reserve_a=0, reserve_b=0, lp_supply=0) -> PoolState:
    return PoolState({
        'asset_a': TOKEN_A,
        'asset_b': TOKEN_B,
        'reserve_a': reserve_a,
        'reserve_b': reserve_b,
        'lp_supply': lp_supply,
    })


class TestQuoteAdd:
    def test_first_deposit_geometric_mean(self):
        result = quote_add_liquidity(make_pool(), 100, 400)
        assert result.shares_minted == 200
        assert (result.new_reserve_a, result.new_reserve_b, result.new_lp_supply) == (100, 400, 200)

    def test_first_deposit_rounds_down(self):
        assert quote_add_liquidity(make_pool(), 2, 5).shares_minted == 3  # floor(sqrt(10))
        assert quote_add_liquidity(make_pool(), 1, 1).shares_minted == 1

    def test_first_deposit_with_locked_shares(self):
        result = quote_add_liquidity(make_pool(), 10**6, 10**6, minimum_liquidity=1000)
        assert result.shares_minted == 10**6 - 1000
        assert result.locked_shares == 1000
        assert result.new_lp_supply == 10**6

    def test_first_deposit_below_lock(self):
        with pytest.raises(ZeroLiquidity):
            quote_add_liquidity(make_pool(), 10, 10, minimum_liquidity=1000)

    def test_zero_amount(self):
        with pytest.raises(ZeroAmount):
            quote_add_liquidity(make_pool(), 0, 5)
        with pytest.raises(ZeroAmount):
            quote_add_liquidity(make_pool(100, 400, 200), 5, -1)

    def test_matching_deposit(self):
        result = quote_add_liquidity(make_pool(100, 400, 200), 50, 200)
        assert result.shares_minted == 100
        assert (result.amount_a, result.amount_b) == (50, 200)
        assert (result.new_reserve_a, result.new_reserve_b, result.new_lp_supply) == (150, 600, 300)

    def test_ratio_mismatch_rejected(self):
        with pytest.raises(RatioMismatch):
            quote_add_liquidity(make_pool(100, 400, 200), 50, 100)
        with pytest.raises(RatioMismatch):
            quote_add_liquidity(make_pool(100, 400, 200), 50, 100, ratio_tolerance_bps=50)

    def test_within_tolerance_takes_matching_amounts(self):
        pool = make_pool(1000, 1000, 1000)
        with pytest.raises(RatioMismatch):
            quote_add_liquidity(pool, 1000, 1004)

        result = quote_add_liquidity(pool, 1000, 1004, ratio_tolerance_bps=50)
        assert result.shares_minted == 1000
        assert (result.amount_a, result.amount_b) == (1000, 1000)

        with pytest.raises(RatioMismatch):
            quote_add_liquidity(pool, 1000, 1010, ratio_tolerance_bps=50)

    def test_rounding_excess_stays_with_depositor(self):
        # 201 * 200 / 400 floors to 100 shares, matching side A exactly
        result = quote_add_liquidity(make_pool(100, 400, 200), 50, 201)
        assert result.shares_minted == 100
        assert (result.amount_a, result.amount_b) == (50, 200)

    def test_deposit_too_small(self):
        with pytest.raises(ZeroLiquidity):
            quote_add_liquidity(make_pool(10**6, 10**6, 1000), 1, 1)


class TestQuoteRemove:
    def test_proportional_payout(self):
        result = quote_remove_liquidity(make_pool(100, 400, 200), 50)
        assert (result.amount_a, result.amount_b) == (25, 100)
        assert (result.new_reserve_a, result.new_reserve_b, result.new_lp_supply) == (75, 300, 150)

    def test_full_withdrawal_empties_pool(self):
        result = quote_remove_liquidity(make_pool(100, 400, 200), 200)
        assert (result.amount_a, result.amount_b) == (100, 400)
        assert (result.new_reserve_a, result.new_reserve_b, result.new_lp_supply) == (0, 0, 0)

    def test_more_than_supply(self):
        with pytest.raises(InsufficientShares):
            quote_remove_liquidity(make_pool(100, 400, 200), 201)

    def test_zero_shares(self):
        with pytest.raises(ZeroAmount):
            quote_remove_liquidity(make_pool(100, 400, 200), 0)

    def test_empty_pool(self):
        with pytest.raises(ZeroLiquidity):
            quote_remove_liquidity(make_pool(), 1)

    def test_payout_rounds_to_nothing(self):
        with pytest.raises(ZeroLiquidity):
            quote_remove_liquidity(make_pool(1, 1, 1000), 1)


class TestLiquidityEngine:
    @pytest.fixture
    def overlay(self):
        overlay = StateOverlay(MemoryDB())
        account = accounts.empty_account()
        accounts.set_balance(account, TOKEN_A, 1000)
        accounts.set_balance(account, TOKEN_B, 1000)
        accounts.set_account(overlay, USER, account)
        return overlay

    @pytest.fixture
    def pool(self, overlay):
        return PoolRegistry(overlay).create_pool(TOKEN_A, TOKEN_B)

    def balance(self, overlay, token):
        return accounts.balance_of(accounts.get_account(overlay, USER), token)

    def test_add_moves_funds_and_mints(self, overlay, pool):
        engine = LiquidityEngine(overlay)
        result = engine.add_liquidity(pool.address, USER, 100, 400)

        assert result.shares_minted == 200
        assert self.balance(overlay, TOKEN_A) == 900
        assert self.balance(overlay, TOKEN_B) == 600
        assert self.balance(overlay, pool.share_token) == 200

        custody = VaultCustody(overlay)
        assert custody.get_vault(pool.vault_a).balance == 100
        assert custody.get_vault(pool.vault_b).balance == 400

        stored = engine.registry.get_pool(pool.address)
        assert (stored.reserve_a, stored.reserve_b, stored.lp_supply) == (100, 400, 200)

    def test_add_without_funds(self, overlay, pool):
        engine = LiquidityEngine(overlay)
        with pytest.raises(InsufficientBalance):
            engine.add_liquidity(pool.address, USER, 100, 1001)

        stored = engine.registry.get_pool(pool.address)
        assert (stored.reserve_a, stored.reserve_b, stored.lp_supply) == (0, 0, 0)
        assert self.balance(overlay, TOKEN_A) == 1000

    def test_remove_pays_out(self, overlay, pool):
        engine = LiquidityEngine(overlay)
        engine.add_liquidity(pool.address, USER, 100, 400)
        result = engine.remove_liquidity(pool.address, USER, 50)

        assert (result.amount_a, result.amount_b) == (25, 100)
        assert self.balance(overlay, TOKEN_A) == 925
        assert self.balance(overlay, TOKEN_B) == 700
        assert self.balance(overlay, pool.share_token) == 150

    def test_add_then_remove_returns_deposit(self, overlay, pool):
        engine = LiquidityEngine(overlay)
        engine.add_liquidity(pool.address, USER, 100, 400)
        engine.remove_liquidity(pool.address, USER, 50)

        # Re-adding what was withdrawn mints the same shares back
        assert engine.add_liquidity(pool.address, USER, 25, 100).shares_minted == 50
        result = engine.remove_liquidity(pool.address, USER, 200)

        assert (result.amount_a, result.amount_b) == (100, 400)
        assert self.balance(overlay, TOKEN_A) == 1000
        assert self.balance(overlay, TOKEN_B) == 1000
        assert self.balance(overlay, pool.share_token) == 0
        assert engine.registry.get_pool(pool.address).is_empty

    def test_remove_more_than_held(self, overlay, pool):
        engine = LiquidityEngine(overlay)
        engine.add_liquidity(pool.address, USER, 100, 400)
        # Shares held by someone else do not count
        with pytest.raises(InsufficientShares):
            engine.remove_liquidity(pool.address, bytes([0xB0]) * 20, 10)


def test_deposit_into_full_pool_overflows():
    pool = make_pool(U64_MAX, U64_MAX, U64_MAX)
    with pytest.raises(ArithmeticOverflow):
        quote_add_liquidity(pool, 1, 1)
