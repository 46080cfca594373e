"""
Vault custody.

Each pool owns two vaults, one per asset. Funds enter a vault from a
holder account (credit, authorized by the sender) and leave it only
through a debit presenting the owning pool's authority. LP shares are
minted and burned through the same settlement path.

All legs of one operation go through `settle`, which validates every leg
against working copies of the touched records before writing any of them.
"""
import logging
from typing import NamedTuple, Union

from amm_ledger import accounts
from amm_ledger.errors import (
    InsufficientBalance, InsufficientShares, InsufficientVaultBalance,
    PoolNotFound, Unauthorized, ZeroAmount,
)
from amm_ledger.pool_state import PoolAuthority, PoolState, vault_address_for
from amm_ledger.safe_math import checked_add, to_u64
from amm_ledger.state import VAULT_PREFIX

logger = logging.getLogger(__name__)

_AUTHORITY_ISSUER = object()


def issue_authority(pool: PoolState) -> PoolAuthority:
    """Issue the capability for a pool. Engine-internal."""
    return PoolAuthority(pool.authority, _AUTHORITY_ISSUER)


class VaultState:
    def __init__(self, data: dict):
        self.address = bytes(data['address'])
        self.pool = bytes(data['pool'])
        self.asset = bytes(data['asset'])
        self.owner = bytes(data['owner'])
        self.balance = int(data.get('balance', 0))

    def to_dict(self) -> dict:
        return {
            'address': self.address,
            'pool': self.pool,
            'asset': self.asset,
            'owner': self.owner,
            'balance': self.balance,
        }

    def __repr__(self) -> str:
        return f"VaultState(address={self.address.hex()[:16]}..., balance={self.balance})"


class Credit(NamedTuple):
    """Holder -> vault transfer."""
    vault: bytes
    sender: bytes
    amount: int


class Debit(NamedTuple):
    """Vault -> holder transfer, requires the pool authority."""
    vault: bytes
    authority: PoolAuthority
    recipient: bytes
    amount: int


class MintShares(NamedTuple):
    pool: PoolState
    authority: PoolAuthority
    recipient: bytes
    amount: int


class BurnShares(NamedTuple):
    pool: PoolState
    holder: bytes
    amount: int


Leg = Union[Credit, Debit, MintShares, BurnShares]


class VaultCustody:
    def __init__(self, overlay):
        self.overlay = overlay

    def open_vault(self, pool: PoolState, asset: bytes) -> VaultState:
        vault = VaultState({
            'address': vault_address_for(pool.address, asset),
            'pool': pool.address,
            'asset': asset,
            'owner': pool.authority,
            'balance': 0,
        })
        self.overlay.put_obj(VAULT_PREFIX + vault.address, vault.to_dict())
        return vault

    def get_vault(self, address: bytes) -> VaultState:
        data = self.overlay.get_obj(VAULT_PREFIX + address)
        if data is None:
            raise PoolNotFound(f"Vault {address.hex()} does not exist")
        return VaultState(data)

    def credit(self, vault: bytes, sender: bytes, amount: int):
        self.settle([Credit(vault, sender, amount)])

    def debit(self, vault: bytes, authority: PoolAuthority, recipient: bytes, amount: int):
        self.settle([Debit(vault, authority, recipient, amount)])

    @staticmethod
    def _check_authority(authority: PoolAuthority, owner: bytes):
        if not isinstance(authority, PoolAuthority) or not authority.issued_by(_AUTHORITY_ISSUER):
            raise Unauthorized("Authority was not issued by the pool registry")
        if authority.address != owner:
            raise Unauthorized(
                f"Authority {authority.address.hex()} does not own {owner.hex()} funds"
            )

    def settle(self, legs: list[Leg]):
        """
        Validate all legs, then apply them.

        Nothing is written unless every leg is valid.
        """
        vaults: dict[bytes, VaultState] = {}
        holders: dict[bytes, dict] = {}

        def vault_for(address: bytes) -> VaultState:
            if address not in vaults:
                vaults[address] = self.get_vault(address)
            return vaults[address]

        def account_for(address: bytes) -> dict:
            if address not in holders:
                holders[address] = accounts.get_account(self.overlay, address)
            return holders[address]

        for leg in legs:
            if not isinstance(leg, (Credit, Debit, MintShares, BurnShares)):
                raise TypeError(f"Unknown settlement leg: {leg!r}")
            amount = to_u64(leg.amount, "amount")
            if amount == 0:
                raise ZeroAmount(f"{type(leg).__name__} of zero")

            if isinstance(leg, Credit):
                vault = vault_for(leg.vault)
                account = account_for(leg.sender)
                have = accounts.balance_of(account, vault.asset)
                if have < amount:
                    raise InsufficientBalance(
                        f"Insufficient {vault.asset.hex()[:8]} balance: have {have}, need {amount}"
                    )
                accounts.set_balance(account, vault.asset, have - amount)
                vault.balance = checked_add(vault.balance, amount)

            elif isinstance(leg, Debit):
                vault = vault_for(leg.vault)
                self._check_authority(leg.authority, vault.owner)
                if vault.balance < amount:
                    raise InsufficientVaultBalance(
                        f"Vault {vault.address.hex()[:8]} holds {vault.balance}, debit {amount}"
                    )
                account = account_for(leg.recipient)
                vault.balance -= amount
                accounts.set_balance(
                    account, vault.asset,
                    checked_add(accounts.balance_of(account, vault.asset), amount),
                )

            elif isinstance(leg, MintShares):
                self._check_authority(leg.authority, leg.pool.authority)
                account = account_for(leg.recipient)
                accounts.set_balance(
                    account, leg.pool.share_token,
                    checked_add(accounts.balance_of(account, leg.pool.share_token), amount),
                )

            elif isinstance(leg, BurnShares):
                account = account_for(leg.holder)
                have = accounts.balance_of(account, leg.pool.share_token)
                if have < amount:
                    raise InsufficientShares(f"Holder has {have} shares, burn {amount}")
                accounts.set_balance(account, leg.pool.share_token, have - amount)

        for vault in vaults.values():
            self.overlay.put_obj(VAULT_PREFIX + vault.address, vault.to_dict())
        for address, account in holders.items():
            accounts.set_account(self.overlay, address, account)

        logger.debug(f"Settled {len(legs)} legs over {len(vaults)} vaults, {len(holders)} holders")
