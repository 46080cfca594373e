"""
The ledger: entry points for pool creation, liquidity and swaps.

Every state-changing call runs as one atomic unit:
- the exclusive locks of the pool and the sender are taken (sorted order),
- the operation reads and writes a StateOverlay,
- the overlay is committed in a single database batch on success and
  discarded on any error.

A failed call is therefore a no-op on reserves, vault balances, share
supply and holder balances.
"""
import logging
import time
from typing import Optional

from amm_ledger import accounts
from amm_ledger.config import Config
from amm_ledger.core import Transaction, CREATE_POOL, ADD_LIQUIDITY, REMOVE_LIQUIDITY, SWAP
from amm_ledger.errors import (
    InvalidNonce, InvalidSignature, PoolNotFound, ValidationError, WrongChain,
)
from amm_ledger.liquidity import LiquidityEngine
from amm_ledger.memory_db import MemoryDB
from amm_ledger.monitoring import Monitor
from amm_ledger.pool_state import Direction, PoolState, pool_address_for
from amm_ledger.registry import PoolRegistry, sort_assets
from amm_ledger.safe_math import checked_add, to_u64
from amm_ledger.state import POOL_PREFIX, VAULT_PREFIX, StateStore, LockTable
from amm_ledger.swap import SwapEngine, quote_swap
from amm_ledger.utils.encoding import address_from_hex, require_address
from amm_ledger.vault import VaultState

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Ledger:
    def __init__(self, db=None, config: Config = None, monitor: Monitor = None):
        self.config = config or Config.default()
        self.config.pool.validate()
        self.chain_id = self.config.ledger.chain_id

        self.db = db if db is not None else MemoryDB()
        self.store = StateStore(self.db)
        self.locks = LockTable()
        self.monitor = monitor or Monitor(
            host=self.config.monitoring.host,
            port=self.config.monitoring.port,
        )

    @classmethod
    def open(cls, config: Config) -> 'Ledger':
        """Open a ledger persisted in LevelDB at config.database.path."""
        from amm_ledger.db import DB

        db = DB(
            config.database.path,
            write_buffer_size=config.database.write_buffer_size,
            max_open_files=config.database.max_open_files,
            compression=config.database.compression or None,
        )
        return cls(db=db, config=config)

    def close(self):
        self.monitor.stop_server()
        self.db.close()

    # ==========================================================================
    # OPERATION PLUMBING
    # ==========================================================================

    def _run(self, name: str, lock_keys: tuple, operation, record: bool = True):
        """Run operation(overlay) under the given locks as one atomic unit."""
        start = time.time()
        try:
            with self.locks.hold(*lock_keys), self.store.transaction() as overlay:
                result = operation(overlay)
        except Exception as e:
            logger.warning(f"{name} failed: {e}")
            self.monitor.record_op(name, 'failed', time.time() - start)
            raise
        if record:
            self.monitor.record_op(name, 'success', time.time() - start)
        return result

    def _liquidity_engine(self, overlay) -> LiquidityEngine:
        return LiquidityEngine(
            overlay,
            ratio_tolerance_bps=self.config.pool.ratio_tolerance_bps,
            minimum_liquidity=self.config.pool.minimum_liquidity,
        )

    def _after_pool_change(self, pool_address: bytes):
        self.monitor.record_pool(self.get_pool(pool_address))

    # ==========================================================================
    # ENTRY POINTS
    # ==========================================================================

    def create_pool(self, asset_a: bytes, asset_b: bytes) -> PoolState:
        """Create the pool for a canonically ordered pair. Returns the pool record."""
        asset_a = require_address("asset_a", asset_a)
        asset_b = require_address("asset_b", asset_b)

        pool = self._run(
            CREATE_POOL,
            (pool_address_for(asset_a, asset_b),),
            lambda overlay: self._create_pool(overlay, asset_a, asset_b),
        )
        self._after_pool_change(pool.address)
        return pool

    def add_liquidity(self, pool_address: bytes, sender: bytes,
                      amount_a: int, amount_b: int) -> int:
        """Deposit into a pool. Returns the number of shares minted to sender."""
        pool_address = require_address("pool", pool_address)
        sender = require_address("sender", sender)

        result = self._run(
            ADD_LIQUIDITY,
            (pool_address, sender),
            lambda overlay: self._liquidity_engine(overlay).add_liquidity(
                pool_address, sender, amount_a, amount_b),
        )
        self._after_pool_change(pool_address)
        return result.shares_minted

    def remove_liquidity(self, pool_address: bytes, sender: bytes,
                         share_amount: int) -> tuple[int, int]:
        """Burn shares. Returns (amount_a, amount_b) paid to sender."""
        pool_address = require_address("pool", pool_address)
        sender = require_address("sender", sender)

        result = self._run(
            REMOVE_LIQUIDITY,
            (pool_address, sender),
            lambda overlay: self._liquidity_engine(overlay).remove_liquidity(
                pool_address, sender, share_amount),
        )
        self._after_pool_change(pool_address)
        return result.amount_a, result.amount_b

    def swap(self, pool_address: bytes, sender: bytes, amount_in: int,
             min_amount_out: int, direction: Direction) -> int:
        """Swap against a pool. Returns the amount paid out to sender."""
        pool_address = require_address("pool", pool_address)
        sender = require_address("sender", sender)

        result = self._run(
            SWAP,
            (pool_address, sender),
            lambda overlay: SwapEngine(overlay).swap(
                pool_address, sender, amount_in, min_amount_out, direction),
        )
        self._after_pool_change(pool_address)
        return result.amount_out

    def mint_tokens(self, to: bytes, asset: bytes, amount: int):
        """
        Credit an account with an external asset.

        Stands in for the token program that issues the traded assets.
        """
        to = require_address("to", to)
        asset = require_address("asset", asset)
        amount = to_u64(amount, "amount")

        def mint(overlay):
            account = accounts.get_account(overlay, to)
            accounts.set_balance(account, asset, checked_add(accounts.balance_of(account, asset), amount))
            accounts.set_account(overlay, to, account)

        self._run("MINT", (to,), mint)
        logger.info(f"Minted {amount} of {asset.hex()[:8]} to {to.hex()[:8]}")

    def _create_pool(self, overlay, asset_a: bytes, asset_b: bytes) -> PoolState:
        return PoolRegistry(overlay, default_fee_bps=self.config.pool.fee_bps).create_pool(asset_a, asset_b)

    # ==========================================================================
    # SIGNED TRANSACTIONS
    # ==========================================================================

    def process_transaction(self, tx: Transaction):
        """
        Verify and apply a signed transaction.

        The sender's nonce advances even if the operation fails; the
        operation's own writes are discarded on failure.
        """
        is_valid, error = tx.validate_basic()
        if not is_valid:
            if error == "Invalid signature":
                raise InvalidSignature(error)
            raise ValidationError(error)

        if tx.chain_id != self.chain_id:
            raise WrongChain(f"Wrong chain ID. Expected {self.chain_id}, got {tx.chain_id}")

        sender = tx.sender_address
        data = tx.data

        if tx.tx_type == CREATE_POOL:
            asset_a = address_from_hex(data['asset_a'])
            asset_b = address_from_hex(data['asset_b'])
            pool_address = pool_address_for(asset_a, asset_b)

            def handler(overlay):
                return self._create_pool(overlay, asset_a, asset_b)

        else:
            pool_address = address_from_hex(data['pool'])

            if tx.tx_type == ADD_LIQUIDITY:
                def handler(overlay):
                    return self._liquidity_engine(overlay).add_liquidity(
                        pool_address, sender, data['amount_a'], data['amount_b'])

            elif tx.tx_type == REMOVE_LIQUIDITY:
                def handler(overlay):
                    return self._liquidity_engine(overlay).remove_liquidity(
                        pool_address, sender, data['share_amount'])

            else:
                direction = Direction(data['direction'])

                def handler(overlay):
                    return SwapEngine(overlay).swap(
                        pool_address, sender, data['amount_in'], data['min_amount_out'], direction)

        failure: Optional[Exception] = None

        def apply(overlay):
            nonlocal failure
            account = accounts.get_account(overlay, sender)
            if tx.nonce != account['nonce']:
                raise InvalidNonce(f"Invalid nonce. Expected {account['nonce']}, got {tx.nonce}")

            # Nonce increment persists even on failure
            account['nonce'] += 1
            accounts.set_account(overlay, sender, account)

            try:
                with StateStore(overlay).transaction() as inner:
                    return handler(inner)
            except ValidationError as e:
                failure = e
                return None

        start = time.time()
        result = self._run(tx.tx_type, (pool_address, sender), apply, record=False)
        if failure is not None:
            logger.warning(f"Transaction {tx.id.hex()[:8]} failed: {failure}")
            self.monitor.record_op(tx.tx_type, 'failed', time.time() - start)
            raise failure

        self.monitor.record_op(tx.tx_type, 'success', time.time() - start)
        self._after_pool_change(pool_address)
        return result

    # ==========================================================================
    # PUBLIC API METHODS
    # ==========================================================================

    def get_pool(self, pool_address: bytes) -> PoolState:
        data = self.store.get_obj(POOL_PREFIX + pool_address)
        if data is None:
            raise PoolNotFound(f"Pool {pool_address.hex()} does not exist")
        return PoolState(data)

    def find_pool(self, asset_x: bytes, asset_y: bytes) -> Optional[PoolState]:
        """Resolve a pair given in either order."""
        asset_a, asset_b = sort_assets(asset_x, asset_y)
        data = self.store.get_obj(POOL_PREFIX + pool_address_for(asset_a, asset_b))
        return PoolState(data) if data is not None else None

    def list_pools(self) -> list[PoolState]:
        return [PoolState(data) for _, data in self.store.get_prefix(POOL_PREFIX)]

    def get_vault(self, vault_address: bytes) -> VaultState:
        data = self.store.get_obj(VAULT_PREFIX + vault_address)
        if data is None:
            raise PoolNotFound(f"Vault {vault_address.hex()} does not exist")
        return VaultState(data)

    def get_account(self, address: bytes) -> dict:
        return accounts.get_account(self.store, address)

    def balance_of(self, address: bytes, token: bytes) -> int:
        return accounts.balance_of(self.get_account(address), token)

    def get_nonce(self, address: bytes) -> int:
        return self.get_account(address)['nonce']

    def quote_swap(self, pool_address: bytes, amount_in: int, direction: Direction) -> int:
        """Output a swap would produce against current reserves."""
        return quote_swap(self.get_pool(pool_address), amount_in, direction).amount_out

    def get_pool_stats(self, pool_address: bytes) -> dict:
        """Get current pool statistics."""
        pool = self.get_pool(pool_address)

        return {
            'asset_a': pool.asset_a.hex(),
            'asset_b': pool.asset_b.hex(),
            'share_token': pool.share_token.hex(),
            'reserve_a': str(pool.reserve_a),
            'reserve_b': str(pool.reserve_b),
            'lp_supply': str(pool.lp_supply),
            'fee_bps': pool.fee_bps,
            'price_a_in_b': str(pool.price_a_in_b),
            'k': str(pool.k),
        }

    def audit_pool(self, pool_address: bytes) -> list[str]:
        """
        Check the conservation laws of a pool.

        Returns a list of violations; empty means the pool is consistent.
        """
        pool = self.get_pool(pool_address)
        problems = []

        for label, vault_address, reserve in (
            ('A', pool.vault_a, pool.reserve_a),
            ('B', pool.vault_b, pool.reserve_b),
        ):
            vault = self.get_vault(vault_address)
            if vault.balance != reserve:
                problems.append(f"vault {label} holds {vault.balance}, reserve is {reserve}")
            if vault.owner != pool.authority:
                problems.append(f"vault {label} is not owned by the pool authority")

        if (pool.lp_supply == 0) != (pool.reserve_a == 0 and pool.reserve_b == 0):
            problems.append(
                f"supply {pool.lp_supply} inconsistent with reserves "
                f"{pool.reserve_a}/{pool.reserve_b}"
            )

        for problem in problems:
            logger.error(f"Pool {pool.address.hex()[:16]} audit: {problem}")
        return problems

    def update_metrics(self):
        pools = self.list_pools()
        for pool in pools:
            self.monitor.record_pool(pool)
        self.monitor.update_system(len(pools))
