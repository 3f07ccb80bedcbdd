"""Tests for secret hashing and identity derivation."""

import hashlib

import pytest

from htlc_registry.hashing import (
    calculate_hash,
    derive_identity,
    generate_secret,
    get_hash_function,
    preimage_matches,
)
from htlc_registry.chain import Chain
from htlc_registry.ledger import InMemoryLedger
from htlc_registry.models import SwapIntent
from htlc_registry.registry import SwapRegistry

HASH = bytes.fromhex("ab" * 32)
BASE = dict(
    hash_commitment=HASH,
    sender="wallet_1",
    recipient="wallet_2",
    expiration_height=150,
    amount=1000,
)


class TestIdentity:
    """Content-addressed swap identities."""

    def test_deterministic(self):
        """Test the same tuple always derives the same identity."""
        assert derive_identity(**BASE) == derive_identity(**BASE)

    def test_hex_of_double_sha256(self):
        """Test identities are 32-byte hex digests."""
        identity = derive_identity(**BASE)
        assert len(identity) == 64
        int(identity, 16)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("hash_commitment", bytes.fromhex("cd" * 32)),
            ("sender", "wallet_9"),
            ("recipient", "wallet_9"),
            ("expiration_height", 151),
            ("amount", 1001),
        ],
    )
    def test_any_field_change_yields_new_identity(self, field, value):
        """Test every field feeds the identity."""
        changed = {**BASE, field: value}
        assert derive_identity(**changed) != derive_identity(**BASE)

    def test_field_boundaries_are_unambiguous(self):
        """Test length prefixes keep adjacent strings apart."""
        left = {**BASE, "sender": "ab", "recipient": "c"}
        right = {**BASE, "sender": "a", "recipient": "bc"}
        assert derive_identity(**left) != derive_identity(**right)

    def test_registry_files_intent_under_derived_identity(self):
        """Test the registry derives identities from the intent fields."""
        intent = SwapIntent(
            hash_commitment=HASH,
            expiration_height=150,
            amount_or_token_id=1000,
            sender="wallet_1",
            recipient="wallet_2",
        )
        registry = SwapRegistry(InMemoryLedger(), Chain())
        assert registry.identity_of(intent) == derive_identity(**BASE)


class TestSecrets:
    """Secret generation and preimage checks."""

    def test_generate_secret(self):
        """Test secrets are 32 random bytes."""
        first, second = generate_secret(), generate_secret()
        assert len(first) == 32
        assert first != second

    def test_calculate_hash_defaults_to_sha256(self):
        """Test SHA-256 is the default commitment hash."""
        secret = b"\x01" * 32
        assert calculate_hash(secret) == hashlib.sha256(secret).digest()

    def test_preimage_matches(self):
        """Test preimage verification."""
        secret = generate_secret()
        commitment = calculate_hash(secret)
        assert preimage_matches(secret, commitment)
        assert not preimage_matches(generate_secret(), commitment)
        assert not preimage_matches(b"", commitment)

    def test_hash256_is_double_sha256(self):
        """Test hash256 is double SHA-256."""
        hash256 = get_hash_function("hash256")
        data = b"swap"
        assert hash256(data) == hashlib.sha256(hashlib.sha256(data).digest()).digest()

    def test_sha3_256(self):
        """Test SHA3-256 lookup."""
        assert get_hash_function("sha3_256")(b"swap") == hashlib.sha3_256(b"swap").digest()

    def test_unknown_hash_function(self):
        """Test unsupported hash names are refused."""
        with pytest.raises(ValueError):
            get_hash_function("md5")
