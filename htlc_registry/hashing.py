"""Secret hashing and swap identity derivation."""

import hashlib
import hmac
import secrets
from typing import Callable

from bitcoin.core import b2x
from bitcoin.core.serialize import BytesSerializer, Hash

from .models import HASH_LENGTH

HashFunction = Callable[[bytes], bytes]

# Integers are serialized as fixed-width uint128
UINT_WIDTH = 16


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha3_256(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


HASH_FUNCTIONS: dict[str, HashFunction] = {
    "sha256": sha256,
    "sha3_256": sha3_256,
    "hash256": Hash,  # double SHA-256, as used for Bitcoin txids
}


def get_hash_function(name: str) -> HashFunction:
    """Look up a secret hash by its configured name."""
    try:
        return HASH_FUNCTIONS[name]
    except KeyError:
        raise ValueError(f"Unsupported hash function: {name}") from None


def generate_secret() -> bytes:
    """Generate a fresh 32-byte swap secret."""
    return secrets.token_bytes(HASH_LENGTH)


def calculate_hash(secret: bytes, hash_function: HashFunction = sha256) -> bytes:
    """Compute the commitment for a secret."""
    return hash_function(secret)


def preimage_matches(
    secret: bytes, hash_commitment: bytes, hash_function: HashFunction = sha256
) -> bool:
    """Check a secret against a commitment without leaking timing."""
    return hmac.compare_digest(hash_function(secret), hash_commitment)


def _uint(value: int) -> bytes:
    return value.to_bytes(UINT_WIDTH, byteorder="big")


def derive_identity(
    hash_commitment: bytes,
    sender: str,
    recipient: str,
    expiration_height: int,
    amount: int,
) -> str:
    """
    Derive the swap identity from its defining parameters.

    Variable-length fields are length-prefixed so no two distinct tuples
    serialize to the same bytes. The result is the hex double SHA-256 of
    that serialization: identical tuples share an identity, any change to a
    field produces a new one.
    """
    payload = b"".join(
        [
            BytesSerializer.serialize(hash_commitment),
            BytesSerializer.serialize(sender.encode("utf-8")),
            BytesSerializer.serialize(recipient.encode("utf-8")),
            _uint(expiration_height),
            _uint(amount),
        ]
    )
    return b2x(Hash(payload))

