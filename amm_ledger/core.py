"""
Signed transaction envelope for ledger operations.
"""
import time
import msgpack
from typing import Optional
from .crypto import (
    generate_hash,
    public_key_to_address,
    sign,
    verify_signature,
)
from .pool_state import Direction

CREATE_POOL = "CREATE_POOL"
ADD_LIQUIDITY = "ADD_LIQUIDITY"
REMOVE_LIQUIDITY = "REMOVE_LIQUIDITY"
SWAP = "SWAP"

TX_TYPES = (CREATE_POOL, ADD_LIQUIDITY, REMOVE_LIQUIDITY, SWAP)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_hex_address(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        return len(bytes.fromhex(value)) == 20
    except ValueError:
        return False


class Transaction:
    def __init__(self,
                 sender_public_key: str,
                 tx_type: str,
                 data: dict,
                 nonce: int,
                 signature: Optional[bytes] = None,
                 timestamp: Optional[float] = None,
                 chain_id: Optional[int] = 1):  # Replay protection
        self.sender_public_key = sender_public_key
        self.tx_type = tx_type
        self.data = data
        self.nonce = nonce
        self.timestamp = timestamp or time.time()
        self.signature = signature
        self.chain_id = chain_id

    @classmethod
    def from_dict(cls, data: dict):
        """Creates a Transaction object from a dictionary."""
        signature = data.get("signature")
        if isinstance(signature, str):
            signature = bytes.fromhex(signature)
        return cls(
            sender_public_key=data["sender_public_key"],
            tx_type=data["tx_type"],
            data=data["data"],
            nonce=data["nonce"],
            signature=signature,
            timestamp=data.get("timestamp"),
            chain_id=data.get("chain_id"),
        )

    def to_dict(self, include_signature=True):
        data = {
            "sender_public_key": self.sender_public_key,
            "tx_type": self.tx_type,
            "data": self.data,
            "nonce": self.nonce,
            "timestamp": self.timestamp,
            "chain_id": self.chain_id,
        }
        if include_signature and self.signature:
            data["signature"] = self.signature
        return data

    def get_signing_data(self) -> bytes:
        """Returns the canonical byte representation for signing."""
        return msgpack.packb(self.to_dict(include_signature=False), use_bin_type=True)

    def sign(self, private_key):
        """Signs the transaction."""
        self.signature = sign(private_key, self.get_signing_data())

    def verify_signature(self):
        """Verifies the transaction's signature."""
        if not self.signature:
            return False
        return verify_signature(
            self.sender_public_key,
            self.signature,
            self.get_signing_data()
        )

    @property
    def sender_address(self) -> bytes:
        return public_key_to_address(self.sender_public_key)

    @property
    def id(self) -> bytes:
        """The unique hash identifier of the transaction."""
        return generate_hash(self.get_signing_data())

    def validate_basic(self) -> tuple[bool, str]:
        """
        Performs basic validation checks on the transaction.
        Returns (is_valid, error_message)
        """
        if not self.verify_signature():
            return False, "Invalid signature"

        current_time = time.time()
        if self.timestamp > current_time + 300:  # 5 minutes tolerance
            return False, "Timestamp too far in future"

        if self.tx_type not in TX_TYPES:
            return False, f"Unknown transaction type: {self.tx_type}"

        if self.tx_type == CREATE_POOL:
            if 'asset_a' not in self.data or 'asset_b' not in self.data:
                return False, "CREATE_POOL requires 'asset_a' and 'asset_b'"
            if not _is_hex_address(self.data['asset_a']) or not _is_hex_address(self.data['asset_b']):
                return False, "Assets must be 20-byte hex addresses"
            return True, ""

        if not _is_hex_address(self.data.get('pool')):
            return False, f"{self.tx_type} requires a 20-byte hex 'pool'"

        if self.tx_type == ADD_LIQUIDITY:
            if 'amount_a' not in self.data or 'amount_b' not in self.data:
                return False, "ADD_LIQUIDITY requires 'amount_a' and 'amount_b'"
            if not _is_positive_int(self.data['amount_a']) or not _is_positive_int(self.data['amount_b']):
                return False, "Liquidity amounts must be positive integers"

        elif self.tx_type == REMOVE_LIQUIDITY:
            if not _is_positive_int(self.data.get('share_amount')):
                return False, "Share amount must be a positive integer"

        elif self.tx_type == SWAP:
            if 'amount_in' not in self.data or 'min_amount_out' not in self.data or 'direction' not in self.data:
                return False, "SWAP requires 'amount_in', 'min_amount_out', and 'direction'"
            if self.data['direction'] not in [d.value for d in Direction]:
                return False, "Invalid swap direction"
            if not _is_positive_int(self.data['amount_in']):
                return False, "Swap amount_in must be a positive integer"
            min_out = self.data['min_amount_out']
            if not isinstance(min_out, int) or isinstance(min_out, bool) or min_out < 0:
                return False, "Swap min_amount_out must be a non-negative integer"

        return True, ""
