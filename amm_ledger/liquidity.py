"""
Liquidity engine: converts deposits and withdrawals into LP share mints and burns.

Share accounting:
- First deposit mints floor(sqrt(amount_a * amount_b)) shares, the geometric
  mean, so the first depositor's share value does not depend on the ratio
  they chose.
- Later deposits mint min(amount_a * supply / reserve_a, amount_b * supply / reserve_b)
  and must already match the pool ratio within `ratio_tolerance_bps`.
- Withdrawals pay out share_amount / supply of each reserve, rounded down.
"""
import logging
from dataclasses import dataclass

from amm_ledger.errors import (
    EmptyPool, InsufficientShares, RatioMismatch, ZeroAmount, ZeroLiquidity,
)
from amm_ledger.pool_state import PoolState
from amm_ledger.registry import PoolRegistry
from amm_ledger.safe_math import (
    BPS_DENOMINATOR, checked_add, checked_mul, checked_sub, isqrt, mul_div, mul_div_ceil, to_u64,
)
from amm_ledger.vault import BurnShares, Credit, Debit, MintShares, VaultCustody, issue_authority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddLiquidityResult:
    shares_minted: int
    amount_a: int
    amount_b: int
    locked_shares: int
    new_reserve_a: int
    new_reserve_b: int
    new_lp_supply: int


@dataclass(frozen=True)
class RemoveLiquidityResult:
    amount_a: int
    amount_b: int
    new_reserve_a: int
    new_reserve_b: int
    new_lp_supply: int


def quote_add_liquidity(pool: PoolState, amount_a: int, amount_b: int,
                        ratio_tolerance_bps: int = 0,
                        minimum_liquidity: int = 0) -> AddLiquidityResult:
    """
    Compute the shares a deposit would mint and the amounts it would consume.

    Raises:
        ZeroAmount: If either amount is not positive
        ZeroLiquidity: If the deposit would mint no shares
        RatioMismatch: If the amounts are off the pool ratio by more than the tolerance
        ArithmeticOverflow: If any value leaves the u64/u128 range
    """
    if amount_a <= 0 or amount_b <= 0:
        raise ZeroAmount("Cannot add zero liquidity")
    amount_a = to_u64(amount_a, "amount_a")
    amount_b = to_u64(amount_b, "amount_b")

    supply = pool.lp_supply
    if supply == 0:
        shares = isqrt(checked_mul(amount_a, amount_b))
        if shares == 0 or shares <= minimum_liquidity:
            raise ZeroLiquidity(
                f"Initial liquidity too small: {shares} shares, {minimum_liquidity} locked"
            )
        return AddLiquidityResult(
            shares_minted=shares - minimum_liquidity,
            amount_a=amount_a,
            amount_b=amount_b,
            locked_shares=minimum_liquidity,
            new_reserve_a=checked_add(pool.reserve_a, amount_a),
            new_reserve_b=checked_add(pool.reserve_b, amount_b),
            new_lp_supply=to_u64(shares, "lp_supply"),
        )

    if pool.reserve_a == 0 or pool.reserve_b == 0:
        raise EmptyPool("Pool has shares outstanding but an empty reserve")

    shares_from_a = mul_div(amount_a, supply, pool.reserve_a)
    shares_from_b = mul_div(amount_b, supply, pool.reserve_b)
    shares = min(shares_from_a, shares_from_b)
    if shares == 0:
        raise ZeroLiquidity("Liquidity addition too small")

    larger = max(shares_from_a, shares_from_b)
    if (larger - shares) * BPS_DENOMINATOR > ratio_tolerance_bps * larger:
        raise RatioMismatch(
            f"Deposit ratio {amount_a}:{amount_b} does not match pool "
            f"{pool.reserve_a}:{pool.reserve_b} (shares {shares_from_a} vs {shares_from_b})"
        )

    # The side that limits the mint goes in whole; the other side only up to
    # the matching proportion, rounded up in the pool's favour.
    if shares_from_a <= shares_from_b:
        used_a = amount_a
        used_b = mul_div_ceil(shares, pool.reserve_b, supply)
    else:
        used_a = mul_div_ceil(shares, pool.reserve_a, supply)
        used_b = amount_b

    return AddLiquidityResult(
        shares_minted=shares,
        amount_a=used_a,
        amount_b=used_b,
        locked_shares=0,
        new_reserve_a=checked_add(pool.reserve_a, used_a),
        new_reserve_b=checked_add(pool.reserve_b, used_b),
        new_lp_supply=checked_add(supply, shares),
    )


def quote_remove_liquidity(pool: PoolState, share_amount: int) -> RemoveLiquidityResult:
    """Compute the payout for burning share_amount shares."""
    if share_amount <= 0:
        raise ZeroAmount("Cannot remove zero liquidity")
    share_amount = to_u64(share_amount, "share_amount")

    if pool.lp_supply == 0:
        raise ZeroLiquidity("No liquidity in pool")
    if share_amount > pool.lp_supply:
        raise InsufficientShares(
            f"Cannot burn {share_amount} shares, supply is {pool.lp_supply}"
        )

    amount_a = mul_div(share_amount, pool.reserve_a, pool.lp_supply)
    amount_b = mul_div(share_amount, pool.reserve_b, pool.lp_supply)
    if amount_a == 0 and amount_b == 0:
        raise ZeroLiquidity("Liquidity removal too small")

    return RemoveLiquidityResult(
        amount_a=amount_a,
        amount_b=amount_b,
        new_reserve_a=checked_sub(pool.reserve_a, amount_a),
        new_reserve_b=checked_sub(pool.reserve_b, amount_b),
        new_lp_supply=checked_sub(pool.lp_supply, share_amount),
    )


class LiquidityEngine:
    def __init__(self, overlay, ratio_tolerance_bps: int = 0, minimum_liquidity: int = 0):
        self.overlay = overlay
        self.registry = PoolRegistry(overlay)
        self.custody = VaultCustody(overlay)
        self.ratio_tolerance_bps = ratio_tolerance_bps
        self.minimum_liquidity = minimum_liquidity

    def add_liquidity(self, pool_address: bytes, sender: bytes,
                      amount_a: int, amount_b: int) -> AddLiquidityResult:
        """Deposit both assets and mint shares to the sender."""
        pool = self.registry.get_pool(pool_address)
        result = quote_add_liquidity(
            pool, amount_a, amount_b,
            ratio_tolerance_bps=self.ratio_tolerance_bps,
            minimum_liquidity=self.minimum_liquidity if pool.is_empty else 0,
        )

        authority = issue_authority(pool)
        self.custody.settle([
            Credit(pool.vault_a, sender, result.amount_a),
            Credit(pool.vault_b, sender, result.amount_b),
            MintShares(pool, authority, sender, result.shares_minted),
        ])

        pool.reserve_a = result.new_reserve_a
        pool.reserve_b = result.new_reserve_b
        pool.lp_supply = result.new_lp_supply
        self.registry.save_pool(pool)

        logger.info(
            f"Liquidity Added! Minted {result.shares_minted} LP shares "
            f"for {result.amount_a}/{result.amount_b} into {pool.address.hex()[:16]}"
        )
        return result

    def remove_liquidity(self, pool_address: bytes, sender: bytes,
                         share_amount: int) -> RemoveLiquidityResult:
        """Burn the sender's shares and pay out the proportional reserves."""
        pool = self.registry.get_pool(pool_address)
        result = quote_remove_liquidity(pool, share_amount)

        authority = issue_authority(pool)
        legs = [BurnShares(pool, sender, share_amount)]
        if result.amount_a:
            legs.append(Debit(pool.vault_a, authority, sender, result.amount_a))
        if result.amount_b:
            legs.append(Debit(pool.vault_b, authority, sender, result.amount_b))
        self.custody.settle(legs)

        pool.reserve_a = result.new_reserve_a
        pool.reserve_b = result.new_reserve_b
        pool.lp_supply = result.new_lp_supply
        self.registry.save_pool(pool)

        logger.info(
            f"Liquidity Removed! Burned {share_amount} LP shares "
            f"for {result.amount_a}/{result.amount_b} from {pool.address.hex()[:16]}"
        )
        return result
