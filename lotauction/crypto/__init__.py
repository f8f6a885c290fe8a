"""
Cryptographic primitives for lotauction.

This module provides:
- Keccak-256 hashing (Ethereum-style)
- Key generation on secp256k1
- Address derivation and EIP-55 checksum normalization

Design Notes:
-------------
Every participant of an auction (bidders, manager, owner, treasurer and the
auction itself) is identified by a 20-byte address rendered as a 0x-prefixed
hex string. Addresses are normalized to their EIP-55 checksum form so that
"0xabc..." and "0xABC..." name the same bidder.
"""

import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ZERO_ADDRESS = "0x" + "00" * 20

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: address derivation and checksum encoding.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)

    @property
    def address(self) -> str:
        """Checksummed address of this keypair."""
        return address_from_public_key(self.public_key)


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.

    Args:
        private_key: 32-byte private key

    Returns:
        64-byte uncompressed public key
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    public_key_point = secp256k1.privtopub(private_key)
    x_bytes = public_key_point[0].to_bytes(32, byteorder="big")
    y_bytes = public_key_point[1].to_bytes(32, byteorder="big")
    return x_bytes + y_bytes


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.

    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


# =============================================================================
# Addresses
# =============================================================================


def address_from_public_key(public_key: bytes) -> str:
    """
    Derive a checksummed address from a public key.

    address = keccak256(public_key)[-20:]
    """
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return to_checksum_address("0x" + keccak256(public_key)[-20:].hex())


def generate_address() -> str:
    """Fresh random account address (test and demo helper)."""
    return generate_keypair().address


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not isinstance(address, str):
        return False
    if not address.startswith(("0x", "0X")):
        return False
    if len(address) != 42:  # 0x + 40 hex chars
        return False
    return all(ch in _HEX_DIGITS for ch in address[2:])


def to_checksum_address(address: str) -> str:
    """
    Encode an address with EIP-55 mixed-case checksum.

    Raises:
        ValueError: if the address is not 0x + 40 hex characters
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")

    lowered = address[2:].lower()
    digest = keccak256(lowered.encode("ascii")).hex()
    return "0x" + "".join(
        ch.upper() if ch.isalpha() and int(digest[i], 16) >= 8 else ch
        for i, ch in enumerate(lowered)
    )


def is_checksum_address(address: str) -> bool:
    """True if the address is already in EIP-55 form."""
    return is_valid_address(address) and to_checksum_address(address) == address


__all__ = [
    "SECP256K1_ORDER",
    "ZERO_ADDRESS",
    "keccak256",
    "KeyPair",
    "private_key_to_public_key",
    "generate_keypair",
    "address_from_public_key",
    "generate_address",
    "is_valid_address",
    "to_checksum_address",
    "is_checksum_address",
]
