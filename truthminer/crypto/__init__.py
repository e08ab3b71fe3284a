"""
Cryptographic primitives for the Truth Miner agent.

This module provides:
- Hashing (SHA-256) and the vote commitment hash
- Salt generation and optional salt sealing (AES-GCM)
- Ed25519 keypairs and signatures (ledger signing identity)
- Base58 encoding for ledger addresses

Design Notes:
-------------
The registry verifies reveals with its own SHA-256 over the revealed value
followed by the salt, so the vote hash here has no domain separator and no
length prefix. Changing either breaks every pending reveal.

Addresses and public keys are raw 32-byte values internally and base58
strings at the edges (RPC, logs, CLI).
"""

import hashlib
import uuid
from dataclasses import dataclass
from typing import Union

import base58
from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from truthminer.crypto.curve25519 import is_on_curve


# =============================================================================
# Constants
# =============================================================================

PUBLIC_KEY_SIZE = 32
SEED_SIZE = 32
SECRET_KEY_SIZE = 64  # seed || public key
SIGNATURE_SIZE = 64
VOTE_HASH_SIZE = 32

# AES-GCM sealed salt layout: nonce (12) || tag (16) || ciphertext
SEAL_NONCE_SIZE = 12
SEAL_TAG_SIZE = 16
SEAL_KEY_LABEL = b"truthminer-salt-seal"


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash (the ledger's native hash)."""
    return hashlib.sha256(data).digest()


def compute_vote_hash(answer: str, salt: str) -> bytes:
    """
    Compute the binding commitment for a vote.

    vote_hash = SHA-256(utf8(answer) || utf8(salt))

    Args:
        answer: Canonical answer string
        salt: Secret salt string

    Returns:
        32-byte digest
    """
    return sha256(answer.encode("utf-8") + salt.encode("utf-8"))


def verify_vote_hash(answer: str, salt: str, vote_hash: bytes) -> bool:
    """Check a revealed (answer, salt) pair against a committed hash."""
    return compute_vote_hash(answer, salt) == bytes(vote_hash)


def generate_salt() -> str:
    """Generate a fresh random salt (UUID4 string, 122 random bits)."""
    return str(uuid.uuid4())


# =============================================================================
# Base58
# =============================================================================


def to_base58(data: bytes) -> str:
    """Encode raw bytes (address, signature, blockhash) as base58."""
    return base58.b58encode(bytes(data)).decode("ascii")


def from_base58(value: str) -> bytes:
    """Decode a base58 string to raw bytes."""
    return base58.b58decode(value)


def pubkey_from_base58(value: str) -> bytes:
    """Decode a base58 address, checking it is 32 bytes."""
    raw = from_base58(value)
    if len(raw) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Address must decode to {PUBLIC_KEY_SIZE} bytes, got {len(raw)}")
    return raw


AddressLike = Union[bytes, str]


def as_pubkey(value: AddressLike) -> bytes:
    """Accept either raw 32 bytes or a base58 string."""
    if isinstance(value, str):
        return pubkey_from_base58(value)
    if len(value) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Address must be {PUBLIC_KEY_SIZE} bytes, got {len(value)}")
    return bytes(value)


# =============================================================================
# Ed25519 Keys
# =============================================================================


@dataclass(frozen=True)
class KeyPair:
    """
    An Ed25519 signing keypair in the ledger's 64-byte layout.

    Attributes:
        seed: 32-byte private seed
        public_key: 32-byte public key
    """
    seed: bytes
    public_key: bytes

    @property
    def secret_key(self) -> bytes:
        """64-byte secret key: seed || public key."""
        return self.seed + self.public_key

    @property
    def address(self) -> str:
        """Base58 public key (the ledger address)."""
        return to_base58(self.public_key)

    def sign(self, message: bytes) -> bytes:
        """Sign a message, returning a 64-byte signature."""
        return Ed25519PrivateKey.from_private_bytes(self.seed).sign(message)

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address})"


def _public_from_seed(seed: bytes) -> bytes:
    private_key = Ed25519PrivateKey.from_private_bytes(seed)
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def generate_keypair() -> KeyPair:
    """Generate a new random keypair."""
    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return KeyPair(seed=seed, public_key=_public_from_seed(seed))


def keypair_from_seed(seed: bytes) -> KeyPair:
    """Rebuild a keypair from its 32-byte seed."""
    if len(seed) != SEED_SIZE:
        raise ValueError(f"Seed must be {SEED_SIZE} bytes")
    return KeyPair(seed=bytes(seed), public_key=_public_from_seed(seed))


def keypair_from_secret_key(secret_key: bytes) -> KeyPair:
    """
    Rebuild a keypair from a 64-byte secret key.

    Raises:
        ValueError: wrong length, or the public half does not match the seed
    """
    if len(secret_key) != SECRET_KEY_SIZE:
        raise ValueError(f"Secret key must be {SECRET_KEY_SIZE} bytes, got {len(secret_key)}")
    keypair = keypair_from_seed(secret_key[:SEED_SIZE])
    if keypair.public_key != bytes(secret_key[SEED_SIZE:]):
        raise ValueError("Public key does not match seed")
    return keypair


def verify(message: bytes, signature: bytes, public_key: bytes) -> bool:
    """Verify an Ed25519 signature."""
    if len(signature) != SIGNATURE_SIZE or len(public_key) != PUBLIC_KEY_SIZE:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
        return True
    except InvalidSignature:
        return False


# =============================================================================
# Salt Sealing (optional hardening)
# =============================================================================


def _seal_key(keypair: KeyPair) -> bytes:
    return sha256(SEAL_KEY_LABEL + keypair.seed)


def seal_salt(salt: str, keypair: KeyPair) -> bytes:
    """
    Encrypt a salt so only the holder of the identity can read it.

    Output: nonce (12) || tag (16) || ciphertext
    """
    nonce = get_random_bytes(SEAL_NONCE_SIZE)
    cipher = AES.new(_seal_key(keypair), AES.MODE_GCM, nonce=nonce)
    ciphertext, tag = cipher.encrypt_and_digest(salt.encode("utf-8"))
    return nonce + tag + ciphertext


def open_salt(sealed: bytes, keypair: KeyPair) -> str:
    """
    Decrypt a sealed salt.

    Raises:
        ValueError: payload is truncated or fails authentication
    """
    if len(sealed) < SEAL_NONCE_SIZE + SEAL_TAG_SIZE:
        raise ValueError("Sealed salt is truncated")
    nonce = sealed[:SEAL_NONCE_SIZE]
    tag = sealed[SEAL_NONCE_SIZE:SEAL_NONCE_SIZE + SEAL_TAG_SIZE]
    ciphertext = sealed[SEAL_NONCE_SIZE + SEAL_TAG_SIZE:]
    cipher = AES.new(_seal_key(keypair), AES.MODE_GCM, nonce=nonce)
    return cipher.decrypt_and_verify(ciphertext, tag).decode("utf-8")


__all__ = [
    "sha256",
    "compute_vote_hash",
    "verify_vote_hash",
    "generate_salt",
    "to_base58",
    "from_base58",
    "pubkey_from_base58",
    "as_pubkey",
    "KeyPair",
    "generate_keypair",
    "keypair_from_seed",
    "keypair_from_secret_key",
    "verify",
    "seal_salt",
    "open_salt",
    "is_on_curve",
    "PUBLIC_KEY_SIZE",
    "SECRET_KEY_SIZE",
    "SIGNATURE_SIZE",
    "VOTE_HASH_SIZE",
]
