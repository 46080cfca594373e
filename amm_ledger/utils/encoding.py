"""
Encoding helpers for stored state and addresses.
"""
import msgpack

from amm_ledger.crypto import ADDRESS_LENGTH


def pack(obj) -> bytes:
    """Encode a state dict for storage."""
    return msgpack.packb(obj, use_bin_type=True)


def unpack(raw: bytes):
    """Decode a stored state dict."""
    return msgpack.unpackb(raw, raw=False)


def address_from_hex(value: str) -> bytes:
    """Parse a hex address and check its length."""
    try:
        address = bytes.fromhex(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid hex address: {value!r}") from e
    if len(address) != ADDRESS_LENGTH:
        raise ValueError(
            f"Address must be {ADDRESS_LENGTH} bytes, got {len(address)}"
        )
    return address


def require_address(name: str, value) -> bytes:
    """Accept an address as bytes and validate its length."""
    if isinstance(value, bytearray):
        value = bytes(value)
    if not isinstance(value, bytes):
        raise TypeError(f"{name} must be bytes, got {type(value).__name__}")
    if len(value) != ADDRESS_LENGTH:
        raise ValueError(f"{name} must be {ADDRESS_LENGTH} bytes, got {len(value)}")
    return value
