"""
Holder accounts: token balances (including LP shares) and transaction nonce.
"""
from amm_ledger.state import ACCOUNT_PREFIX


def empty_account() -> dict:
    return {'balances': {}, 'nonce': 0}


def get_account(state, address: bytes) -> dict:
    """Read an account from a StateOverlay or StateStore."""
    account = state.get_obj(ACCOUNT_PREFIX + address)
    if account is None:
        return empty_account()
    return account


def set_account(overlay, address: bytes, account: dict):
    overlay.put_obj(ACCOUNT_PREFIX + address, account)


def balance_of(account: dict, token: bytes) -> int:
    return int(account['balances'].get(token.hex(), 0))


def set_balance(account: dict, token: bytes, amount: int):
    if amount:
        account['balances'][token.hex()] = amount
    else:
        account['balances'].pop(token.hex(), None)
