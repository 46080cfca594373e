"""
Pool registry: one pool per unordered asset pair, at a deterministic address.
"""
import logging
from typing import Optional

from amm_ledger.errors import AlreadyExists, IdenticalAssets, PoolNotFound, UnorderedAssets
from amm_ledger.pool_state import PoolState, pool_address_for
from amm_ledger.state import POOL_PREFIX
from amm_ledger.utils.encoding import require_address
from amm_ledger.vault import VaultCustody

logger = logging.getLogger(__name__)


def sort_assets(asset_x: bytes, asset_y: bytes) -> tuple[bytes, bytes]:
    """Canonical (asset_a, asset_b) ordering of a pair."""
    if asset_x == asset_y:
        raise IdenticalAssets("Asset A and asset B cannot be the same")
    return (asset_x, asset_y) if asset_x < asset_y else (asset_y, asset_x)


class PoolRegistry:
    def __init__(self, overlay, default_fee_bps: int = 0):
        self.overlay = overlay
        self.default_fee_bps = default_fee_bps

    def create_pool(self, asset_a: bytes, asset_b: bytes) -> PoolState:
        """
        Allocate a pool, its share token and both vaults.

        The caller must pass the pair in canonical order. Passing it swapped
        is rejected rather than silently reordered, so a pair resolves to a
        single address no matter who creates it.
        """
        asset_a = require_address("asset_a", asset_a)
        asset_b = require_address("asset_b", asset_b)

        if asset_a == asset_b:
            raise IdenticalAssets("Asset A and asset B cannot be the same")
        if asset_a > asset_b:
            raise UnorderedAssets(
                f"Invalid asset order: {asset_a.hex()} must sort before {asset_b.hex()}"
            )

        address = pool_address_for(asset_a, asset_b)
        if self.overlay.get(POOL_PREFIX + address) is not None:
            raise AlreadyExists(f"Pool {address.hex()} already exists")

        pool = PoolState({
            'asset_a': asset_a,
            'asset_b': asset_b,
            'fee_bps': self.default_fee_bps,
        })
        self.overlay.put_obj(POOL_PREFIX + pool.address, pool.to_dict())

        custody = VaultCustody(self.overlay)
        custody.open_vault(pool, asset_a)
        custody.open_vault(pool, asset_b)

        logger.info("Pool Initialized!")
        logger.info(f"asset_a: {asset_a.hex()}")
        logger.info(f"asset_b: {asset_b.hex()}")
        logger.info(f"share_token: {pool.share_token.hex()}")
        return pool

    def get_pool(self, address: bytes) -> PoolState:
        data = self.overlay.get_obj(POOL_PREFIX + address)
        if data is None:
            raise PoolNotFound(f"Pool {address.hex()} does not exist")
        return PoolState(data)

    def find_pool(self, asset_x: bytes, asset_y: bytes) -> Optional[PoolState]:
        """Resolve a pair given in either order. Returns None if no pool exists."""
        asset_a, asset_b = sort_assets(asset_x, asset_y)
        data = self.overlay.get_obj(POOL_PREFIX + pool_address_for(asset_a, asset_b))
        return PoolState(data) if data is not None else None

    def save_pool(self, pool: PoolState):
        self.overlay.put_obj(POOL_PREFIX + pool.address, pool.to_dict())
