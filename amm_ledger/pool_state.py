"""
AMM liquidity pool state.
Implements the reserve ledger for one trading pair: x * y = k
"""
from decimal import Decimal
from enum import Enum

from amm_ledger.crypto import derive_address

POOL_SEED = b"pool"
VAULT_SEED = b"vault"
LP_TOKEN_SEED = b"lp_token"

SHARE_DECIMALS = 6


class Direction(Enum):
    """Which asset of the pair is sold into the pool."""
    A_TO_B = "A_to_B"
    B_TO_A = "B_to_A"


def pool_address_for(asset_a: bytes, asset_b: bytes) -> bytes:
    return derive_address(POOL_SEED, asset_a, asset_b)


def share_token_for(pool_address: bytes) -> bytes:
    return derive_address(LP_TOKEN_SEED, pool_address)


def vault_address_for(pool_address: bytes, asset: bytes) -> bytes:
    return derive_address(VAULT_SEED, pool_address, asset)


class PoolAuthority:
    """
    Capability that authorizes moving funds out of one pool's vaults
    and minting its share token.

    Only the registry issues these; vault custody rejects any instance
    it did not issue.
    """
    __slots__ = ('address', '_issuer')

    def __init__(self, address: bytes, issuer: object):
        self.address = address
        self._issuer = issuer

    def issued_by(self, issuer: object) -> bool:
        return self._issuer is issuer

    def __repr__(self) -> str:
        return f"PoolAuthority({self.address.hex()[:16]}...)"


class PoolState:
    """
    Represents one pool record stored in the ledger.

    Identity fields (assets, share token, authority) are fixed at creation.
    Reserves and LP supply move only through the liquidity and swap engines.
    """

    def __init__(self, data: dict):
        self.asset_a = bytes(data['asset_a'])
        self.asset_b = bytes(data['asset_b'])
        self.address = bytes(data.get('address') or pool_address_for(self.asset_a, self.asset_b))
        self.share_token = bytes(data.get('share_token') or share_token_for(self.address))
        # The pool address doubles as its authority handle.
        self.authority = bytes(data.get('authority') or self.address)
        self.reserve_a = int(data.get('reserve_a', 0))
        self.reserve_b = int(data.get('reserve_b', 0))
        self.lp_supply = int(data.get('lp_supply', 0))
        self.fee_bps = int(data.get('fee_bps', 0))
        self.share_decimals = int(data.get('share_decimals', SHARE_DECIMALS))

    def to_dict(self) -> dict:
        """
        Convert to dict for storage.
        """
        return {
            'address': self.address,
            'asset_a': self.asset_a,
            'asset_b': self.asset_b,
            'share_token': self.share_token,
            'authority': self.authority,
            'reserve_a': self.reserve_a,
            'reserve_b': self.reserve_b,
            'lp_supply': self.lp_supply,
            'fee_bps': self.fee_bps,
            'share_decimals': self.share_decimals,
        }

    @property
    def vault_a(self) -> bytes:
        return vault_address_for(self.address, self.asset_a)

    @property
    def vault_b(self) -> bytes:
        return vault_address_for(self.address, self.asset_b)

    @property
    def is_empty(self) -> bool:
        return self.lp_supply == 0

    @property
    def k(self) -> int:
        return self.reserve_a * self.reserve_b

    def reserves_for(self, direction: Direction) -> tuple[int, int]:
        """(reserve_in, reserve_out) for a swap direction."""
        if direction is Direction.A_TO_B:
            return self.reserve_a, self.reserve_b
        return self.reserve_b, self.reserve_a

    def vaults_for(self, direction: Direction) -> tuple[bytes, bytes]:
        """(vault_in, vault_out) for a swap direction."""
        if direction is Direction.A_TO_B:
            return self.vault_a, self.vault_b
        return self.vault_b, self.vault_a

    def with_reserves(self, direction: Direction, reserve_in: int, reserve_out: int) -> 'PoolState':
        """Copy of this pool with reserves set from the (in, out) view of a swap."""
        updated = PoolState(self.to_dict())
        if direction is Direction.A_TO_B:
            updated.reserve_a, updated.reserve_b = reserve_in, reserve_out
        else:
            updated.reserve_b, updated.reserve_a = reserve_in, reserve_out
        return updated

    @property
    def price_a_in_b(self) -> Decimal:
        """Spot price of one unit of asset A, in units of asset B."""
        if self.reserve_a == 0:
            return Decimal(0)
        return Decimal(self.reserve_b) / Decimal(self.reserve_a)

    def __repr__(self) -> str:
        return (
            f"PoolState("
            f"address={self.address.hex()[:16]}..., "
            f"reserve_a={self.reserve_a}, "
            f"reserve_b={self.reserve_b}, "
            f"lp_supply={self.lp_supply}, "
            f"fee_bps={self.fee_bps})"
        )
