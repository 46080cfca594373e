"""
Bonding curve record for token launches.

Prices on the same constant-product curve as a pool, but with virtual
reserves added to the real ones so the curve has a finite price before any
real liquidity exists. Quotes use the pool swap formula without a fee.
Only the record and its quotes live here.
"""
from decimal import Decimal

from amm_ledger.errors import InsufficientLiquidity
from amm_ledger.safe_math import checked_add, checked_sub, to_u64
from amm_ledger.swap import get_amount_out

TOKEN_DECIMALS = 6
QUOTE_DECIMALS = 9

DEFAULT_TOTAL_SUPPLY = 1_000_000_000 * 10**TOKEN_DECIMALS
DEFAULT_VIRTUAL_QUOTE_RESERVE = 30 * 10**QUOTE_DECIMALS


class BondingCurveState:
    """
    Side A is the quote asset paid in, side B is the launched token.
    """

    def __init__(self, data: dict):
        self.creator = bytes(data['creator'])
        self.mint = bytes(data['mint'])
        self.virtual_reserve_a = int(data.get('virtual_reserve_a', DEFAULT_VIRTUAL_QUOTE_RESERVE))
        self.virtual_reserve_b = int(data.get('virtual_reserve_b', 0))
        self.token_total_supply = int(data.get('token_total_supply', DEFAULT_TOTAL_SUPPLY))
        self.real_reserve_a = int(data.get('real_reserve_a', 0))
        self.real_reserve_b = int(data.get('real_reserve_b', self.token_total_supply))

    @classmethod
    def new(cls, creator: bytes, mint: bytes,
            total_supply: int = DEFAULT_TOTAL_SUPPLY,
            virtual_reserve_a: int = DEFAULT_VIRTUAL_QUOTE_RESERVE,
            virtual_reserve_b: int = 0) -> 'BondingCurveState':
        """A fresh curve holding the whole supply and no quote asset."""
        return cls({
            'creator': creator,
            'mint': mint,
            'virtual_reserve_a': to_u64(virtual_reserve_a, "virtual_reserve_a"),
            'virtual_reserve_b': to_u64(virtual_reserve_b, "virtual_reserve_b"),
            'token_total_supply': to_u64(total_supply, "total_supply"),
            'real_reserve_a': 0,
            'real_reserve_b': total_supply,
        })

    def to_dict(self) -> dict:
        return {
            'creator': self.creator,
            'mint': self.mint,
            'virtual_reserve_a': self.virtual_reserve_a,
            'virtual_reserve_b': self.virtual_reserve_b,
            'real_reserve_a': self.real_reserve_a,
            'real_reserve_b': self.real_reserve_b,
            'token_total_supply': self.token_total_supply,
        }

    @property
    def effective_reserve_a(self) -> int:
        return checked_add(self.virtual_reserve_a, self.real_reserve_a)

    @property
    def effective_reserve_b(self) -> int:
        return checked_add(self.virtual_reserve_b, self.real_reserve_b)

    @property
    def current_price(self) -> Decimal:
        """Quote units per token unit."""
        if self.effective_reserve_b == 0:
            return Decimal(0)
        return Decimal(self.effective_reserve_a) / Decimal(self.effective_reserve_b)

    def _quote(self, amount_in: int, reserve_in: int, reserve_out: int, real_out: int) -> int:
        amount_out = get_amount_out(amount_in, reserve_in, reserve_out)
        if amount_out > real_out:
            raise InsufficientLiquidity(
                f"Curve holds {real_out} real units, quote needs {amount_out}"
            )
        return amount_out

    def quote_buy(self, quote_in: int) -> int:
        """Tokens received for quote_in of the quote asset."""
        return self._quote(quote_in, self.effective_reserve_a,
                           self.effective_reserve_b, self.real_reserve_b)

    def quote_sell(self, tokens_in: int) -> int:
        """Quote asset received for tokens_in tokens."""
        return self._quote(tokens_in, self.effective_reserve_b,
                           self.effective_reserve_a, self.real_reserve_a)

    def apply_buy(self, quote_in: int) -> int:
        tokens_out = self.quote_buy(quote_in)
        self.real_reserve_a = checked_add(self.real_reserve_a, quote_in)
        self.real_reserve_b = checked_sub(self.real_reserve_b, tokens_out)
        return tokens_out

    def apply_sell(self, tokens_in: int) -> int:
        quote_out = self.quote_sell(tokens_in)
        self.real_reserve_b = checked_add(self.real_reserve_b, tokens_in)
        self.real_reserve_a = checked_sub(self.real_reserve_a, quote_out)
        return quote_out

    def __repr__(self) -> str:
        return (
            f"BondingCurveState("
            f"mint={self.mint.hex()[:16]}..., "
            f"real_a={self.real_reserve_a}, real_b={self.real_reserve_b}, "
            f"price={self.current_price})"
        )
