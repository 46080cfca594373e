"""
Swap engine: constant-product pricing with a protocol fee and slippage bound.

Formula: (x + Δx_eff) * (y - Δy) >= x * y
Solving for Δy: Δy = floor(Δx_eff * y / (x + Δx_eff)), where
Δx_eff = floor(Δx * (10000 - fee_bps) / 10000).

The full Δx is credited to the input reserve, so the fee stays in the pool
and k grows.
"""
import logging
from dataclasses import dataclass

from amm_ledger.errors import EmptyPool, InvariantViolation, SlippageExceeded, ZeroAmount
from amm_ledger.pool_state import Direction, PoolState
from amm_ledger.registry import PoolRegistry
from amm_ledger.safe_math import apply_fee, checked_add, checked_mul, checked_sub, mul_div, to_u64
from amm_ledger.vault import Credit, Debit, VaultCustody, issue_authority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapResult:
    direction: Direction
    amount_in: int
    amount_out: int
    fee_amount: int
    new_reserve_in: int
    new_reserve_out: int


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = 0) -> int:
    """
    Output of the constant-product curve for an exact input.

    Args:
        amount_in: Input amount (smallest unit)
        reserve_in: Reserve of the input asset
        reserve_out: Reserve of the output asset
        fee_bps: Fee in basis points, deducted from the input before pricing

    Returns:
        Output amount (smallest unit), always < reserve_out
    """
    if amount_in <= 0:
        raise ZeroAmount("Swap amount_in must be positive")
    amount_in = to_u64(amount_in, "amount_in")
    reserve_in = to_u64(reserve_in, "reserve_in")
    reserve_out = to_u64(reserve_out, "reserve_out")
    if reserve_in == 0 or reserve_out == 0:
        raise EmptyPool("Empty pool")

    effective_in = apply_fee(amount_in, fee_bps)
    return mul_div(effective_in, reserve_out, checked_add(reserve_in, effective_in))


def quote_swap(pool: PoolState, amount_in: int, direction: Direction) -> SwapResult:
    """Price a swap against the pool's current reserves without mutating anything."""
    if not isinstance(direction, Direction):
        raise TypeError(f"direction must be a Direction, got {direction!r}")

    reserve_in, reserve_out = pool.reserves_for(direction)
    amount_out = get_amount_out(amount_in, reserve_in, reserve_out, pool.fee_bps)
    if amount_out == 0:
        raise ZeroAmount(f"Swap of {amount_in} rounds to zero output")

    new_reserve_in = checked_add(reserve_in, amount_in)
    new_reserve_out = checked_sub(reserve_out, amount_out)

    k_before = checked_mul(reserve_in, reserve_out)
    k_after = checked_mul(new_reserve_in, new_reserve_out)
    if k_after < k_before or (pool.fee_bps > 0 and k_after == k_before):
        raise InvariantViolation(f"k decreased or failed to grow: {k_before} -> {k_after}")

    return SwapResult(
        direction=direction,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_amount=amount_in - apply_fee(amount_in, pool.fee_bps),
        new_reserve_in=new_reserve_in,
        new_reserve_out=new_reserve_out,
    )


class SwapEngine:
    def __init__(self, overlay):
        self.overlay = overlay
        self.registry = PoolRegistry(overlay)
        self.custody = VaultCustody(overlay)

    def swap(self, pool_address: bytes, sender: bytes, amount_in: int,
             min_amount_out: int, direction: Direction) -> SwapResult:
        """
        Sell amount_in of one asset into the pool for the other.

        Raises:
            SlippageExceeded: If the output computed from current reserves
                is below min_amount_out
        """
        pool = self.registry.get_pool(pool_address)
        if isinstance(min_amount_out, int) and min_amount_out < 0:
            raise ValueError(f"min_amount_out cannot be negative: {min_amount_out}")
        min_amount_out = to_u64(min_amount_out, "min_amount_out")

        result = quote_swap(pool, amount_in, direction)
        if result.amount_out < min_amount_out:
            raise SlippageExceeded(
                f"Slippage: got {result.amount_out}, expected {min_amount_out}"
            )

        vault_in, vault_out = pool.vaults_for(direction)
        self.custody.settle([
            Credit(vault_in, sender, result.amount_in),
            Debit(vault_out, issue_authority(pool), sender, result.amount_out),
        ])

        updated = pool.with_reserves(direction, result.new_reserve_in, result.new_reserve_out)
        self.registry.save_pool(updated)

        logger.info(
            f"Swap {direction.value}: {result.amount_in} -> {result.amount_out} "
            f"(fee {result.fee_amount}) in {pool.address.hex()[:16]}"
        )
        return result
