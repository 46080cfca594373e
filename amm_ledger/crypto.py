"""
Core cryptographic functions for the ledger.
"""
import hashlib
from Crypto.Hash import keccak
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization
from cryptography.exceptions import InvalidSignature

ADDRESS_LENGTH = 20

# Namespace mixed into every derived address so that derived addresses can
# never collide with addresses hashed from public keys.
DERIVATION_NAMESPACE = b"amm_ledger/derived"


def generate_hash(data: bytes) -> bytes:
    """Generates a Keccak-256 hash."""
    return keccak.new(digest_bits=256, data=data).digest()


def derive_address(*seeds: bytes) -> bytes:
    """
    Derives a deterministic address from a sequence of seeds.

    Each seed is length-prefixed before hashing, so (b"ab", b"c") and
    (b"a", b"bc") derive different addresses.

    Example:
        pool = derive_address(b"pool", asset_a, asset_b)
    """
    preimage = bytearray(DERIVATION_NAMESPACE)
    for seed in seeds:
        if not isinstance(seed, (bytes, bytearray)):
            raise TypeError(f"Seeds must be bytes, got {type(seed).__name__}")
        preimage += len(seed).to_bytes(2, 'big')
        preimage += seed
    return generate_hash(bytes(preimage))[:ADDRESS_LENGTH]


def generate_key_pair() -> tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """Generates an ECDSA private/public key pair (SECP256R1)."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_key = private_key.public_key()
    return private_key, public_key


def serialize_public_key(public_key: ec.EllipticCurvePublicKey) -> str:
    """Serializes a public key object into PEM format (string)."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')


def deserialize_public_key(pem_data: str) -> ec.EllipticCurvePublicKey:
    """Deserializes a public key from a PEM formatted string."""
    return serialization.load_pem_public_key(pem_data.encode('utf-8'))


def public_key_to_address(public_key_pem: str) -> bytes:
    """Derives an account address from a public key PEM string."""
    public_key = deserialize_public_key(public_key_pem)
    der_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    address_hash = hashlib.sha256(der_bytes).digest()
    return address_hash[:ADDRESS_LENGTH]


def sign(private_key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
    """Signs byte data using ECDSA with SHA256."""
    return private_key.sign(data, ec.ECDSA(hashes.SHA256()))


def verify_signature(public_key_pem: str, signature: bytes, data: bytes) -> bool:
    """Verifies an ECDSA/SHA256 signature."""
    try:
        public_key = deserialize_public_key(public_key_pem)
        public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
        return True
    except InvalidSignature:
        return False
