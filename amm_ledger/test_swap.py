"""
Tests for constant-product swaps.

Verifies output pricing, fee retention, k growth, and slippage protection.
"""
import pytest

from amm_ledger import accounts
from amm_ledger.errors import ArithmeticOverflow, EmptyPool, SlippageExceeded, ZeroAmount
from amm_ledger.liquidity import LiquidityEngine
from amm_ledger.memory_db import MemoryDB
from amm_ledger.pool_state import Direction, PoolState
from amm_ledger.registry import PoolRegistry
from amm_ledger.safe_math import U64_MAX
from amm_ledger.state import StateOverlay
from amm_ledger.swap import SwapEngine, get_amount_out, quote_swap
from amm_ledger.vault import VaultCustody

TOKEN_A = bytes([0x01]) * 20
TOKEN_B = bytes([0x02]) * 20
USER = bytes([0xA1]) * 20


def make_pool(reserve_a, reserve_b, fee_bps=0) -> PoolState:
    return PoolState({
        'asset_a': TOKEN_A,
        'asset_b': TOKEN_B,
        'reserve_a': reserve_a,
        'reserve_b': reserve_b,
        'lp_supply': 1,
        'fee_bps': fee_bps,
    })


class TestAmountOut:
    def test_no_fee(self):
        assert get_amount_out(10, 100, 400) == 36  # floor(4000 / 110)

    def test_fee_deducted_from_input(self):
        # effective input floor(10 * 0.997) = 9, output floor(3600 / 109)
        assert get_amount_out(10, 100, 400, fee_bps=30) == 33

    def test_output_below_reserve(self):
        assert get_amount_out(10**18, 100, 400) == 399

    def test_non_decreasing_in_input(self):
        outputs = [get_amount_out(amount, 1000, 5000, fee_bps=30) for amount in range(1, 300)]
        assert outputs == sorted(outputs)

    def test_zero_input(self):
        with pytest.raises(ZeroAmount):
            get_amount_out(0, 100, 400)

    def test_empty_reserves(self):
        with pytest.raises(EmptyPool):
            get_amount_out(10, 0, 400)
        with pytest.raises(EmptyPool):
            get_amount_out(10, 100, 0)

    def test_overflow_detected(self):
        with pytest.raises(ArithmeticOverflow):
            get_amount_out(U64_MAX, U64_MAX, U64_MAX)


class TestQuoteSwap:
    def test_exact_division_preserves_k(self):
        result = quote_swap(make_pool(100, 400), 100, Direction.A_TO_B)
        assert result.amount_out == 200
        assert (result.new_reserve_in, result.new_reserve_out) == (200, 200)
        assert result.new_reserve_in * result.new_reserve_out == 100 * 400

    def test_b_to_a(self):
        result = quote_swap(make_pool(100, 400), 400, Direction.B_TO_A)
        assert result.amount_out == 50
        assert (result.new_reserve_in, result.new_reserve_out) == (800, 50)

    def test_rounding_never_decreases_k(self):
        result = quote_swap(make_pool(100, 400), 10, Direction.A_TO_B)
        assert result.amount_out == 36
        assert result.new_reserve_in * result.new_reserve_out >= 100 * 400

    def test_fee_grows_k(self):
        result = quote_swap(make_pool(1000, 1000, fee_bps=30), 100, Direction.A_TO_B)
        assert result.amount_out == 90  # floor(99 * 1000 / 1099)
        assert result.fee_amount == 1
        assert result.new_reserve_in * result.new_reserve_out > 1000 * 1000

    def test_output_rounds_to_zero(self):
        with pytest.raises(ZeroAmount):
            quote_swap(make_pool(1000, 1000, fee_bps=30), 1, Direction.A_TO_B)

    def test_direction_must_be_enum(self):
        with pytest.raises(TypeError):
            quote_swap(make_pool(100, 400), 10, "A_to_B")


class TestSwapEngine:
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
        pool = PoolRegistry(overlay).create_pool(TOKEN_A, TOKEN_B)
        LiquidityEngine(overlay).add_liquidity(pool.address, USER, 100, 400)
        return pool

    def balance(self, overlay, token):
        return accounts.balance_of(accounts.get_account(overlay, USER), token)

    def test_swap_settles_both_legs(self, overlay, pool):
        result = SwapEngine(overlay).swap(pool.address, USER, 10, 36, Direction.A_TO_B)

        assert result.amount_out == 36
        assert self.balance(overlay, TOKEN_A) == 900 - 10
        assert self.balance(overlay, TOKEN_B) == 600 + 36

        custody = VaultCustody(overlay)
        assert custody.get_vault(pool.vault_a).balance == 110
        assert custody.get_vault(pool.vault_b).balance == 364

        stored = PoolRegistry(overlay).get_pool(pool.address)
        assert (stored.reserve_a, stored.reserve_b) == (110, 364)
        assert stored.lp_supply == 200

    def test_slippage_exceeded(self, overlay, pool):
        with pytest.raises(SlippageExceeded):
            SwapEngine(overlay).swap(pool.address, USER, 10, 100, Direction.A_TO_B)

        stored = PoolRegistry(overlay).get_pool(pool.address)
        assert (stored.reserve_a, stored.reserve_b) == (100, 400)
        assert self.balance(overlay, TOKEN_A) == 900

    def test_round_trip_restores_reserves(self, overlay, pool):
        engine = SwapEngine(overlay)
        out_b = engine.swap(pool.address, USER, 100, 0, Direction.A_TO_B).amount_out
        assert out_b == 200
        out_a = engine.swap(pool.address, USER, out_b, 0, Direction.B_TO_A).amount_out
        assert out_a == 100

        stored = PoolRegistry(overlay).get_pool(pool.address)
        assert (stored.reserve_a, stored.reserve_b) == (100, 400)
        assert self.balance(overlay, TOKEN_A) == 900
        assert self.balance(overlay, TOKEN_B) == 600

    def test_swap_on_empty_pool(self, overlay):
        empty = PoolRegistry(overlay).create_pool(TOKEN_A, bytes([0x03]) * 20)
        with pytest.raises(EmptyPool):
            SwapEngine(overlay).swap(empty.address, USER, 10, 0, Direction.A_TO_B)

    def test_negative_min_amount_out(self, overlay, pool):
        with pytest.raises(ValueError):
            SwapEngine(overlay).swap(pool.address, USER, 10, -1, Direction.A_TO_B)

        stored = PoolRegistry(overlay).get_pool(pool.address)
        assert (stored.reserve_a, stored.reserve_b) == (100, 400)
