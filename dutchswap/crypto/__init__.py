"""
Account primitives for dutchswap.

This module provides:
- Keccak-256 hashing
- secp256k1 key generation
- Ethereum-style address derivation

Accounts (sellers, buyers and the registry's custodian account) are
identified by 0x-prefixed 20-byte addresses: the last 20 bytes of
keccak256(public_key).
"""

import secrets
from dataclasses import dataclass
from typing import Optional

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """Compute Keccak-256 hash (Ethereum-style)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass(frozen=True)
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> str:
        """Account address derived from the public key."""
        return address_from_public_key(self.public_key)


def address_from_public_key(public_key: bytes) -> str:
    """
    Derive address from public key.

    Address = last 20 bytes of keccak256(public_key), hex-encoded with 0x prefix.
    """
    if len(public_key) != 64:
        raise ValueError(f"Public key must be 64 bytes, got {len(public_key)}")
    return bytes_to_hex(keccak256(public_key)[-20:])


def keypair_from_private_key(private_key: bytes) -> KeyPair:
    """Rebuild a keypair from its 32-byte private key."""
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    key_int = int.from_bytes(private_key, byteorder="big")
    if not 0 < key_int < SECP256K1_ORDER:
        raise ValueError("Private key out of range for secp256k1")

    # P = k * G, returned as an (x, y) tuple of integers
    x, y = secp256k1.privtopub(private_key)
    public_key = x.to_bytes(32, byteorder="big") + y.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=public_key)


def generate_keypair(seed: Optional[bytes] = None) -> KeyPair:
    """
    Generate a keypair.

    Args:
        seed: Optional seed for a deterministic key (demos, fixtures).
              The private key is keccak256(seed) reduced into range.
    """
    if seed is None:
        key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    else:
        key_int = int.from_bytes(keccak256(seed), byteorder="big") % (SECP256K1_ORDER - 1) + 1
    return keypair_from_private_key(key_int.to_bytes(32, byteorder="big"))


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


__all__ = [
    "keccak256",
    "KeyPair",
    "address_from_public_key",
    "keypair_from_private_key",
    "generate_keypair",
    "bytes_to_hex",
    "SECP256K1_ORDER",
]
