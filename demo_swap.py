#!/usr/bin/env python3
"""
Demo script walking through the swap lifecycle on an in-memory ledger.

1. Alice locks funds behind the hash of a secret
2. Mallory tries a wrong secret and tries to cancel
3. Bob claims right at the expiration height
4. A second swap expires unclaimed and Alice takes her funds back
"""

from htlc_registry import Chain, InMemoryLedger, SwapError, SwapIntent, SwapRegistry
from htlc_registry.cli import configure_logging
from htlc_registry.hashing import calculate_hash, generate_secret
from htlc_registry.models import is_escrow_account


def show_balances(ledger: InMemoryLedger):
    for account, balance in sorted(ledger.balances().items()):
        label = f"{account[:19]}..." if is_escrow_account(account) else account
        print(f"   {label:<24} {balance:>8}")


def attempt(description: str, action):
    """Run an action that is expected to be refused."""
    try:
        action()
        print(f"   ⚠️  {description}: unexpectedly succeeded")
    except SwapError as e:
        print(f"   ✗ {description}: {type(e).__name__} ({e.code})")


def main():
    configure_logging("WARNING")
    chain = Chain(height=100)
    ledger = InMemoryLedger({"alice": 10_000, "bob": 0, "mallory": 50})
    registry = SwapRegistry(ledger, chain)

    print("🔐 Alice locks 2500 for Bob, claimable until block 105")
    secret = generate_secret()
    intent = SwapIntent(
        hash_commitment=calculate_hash(secret),
        expiration_height=105,
        amount_or_token_id=2500,
        sender="alice",
        recipient="bob",
    )
    swap_id = registry.register(intent).swap_id
    print(f"   Swap ID: {swap_id}")
    show_balances(ledger)

    print("\n🕵️  Mallory goes after the swap")
    attempt(
        "wrong secret",
        lambda: registry.execute(swap_id, intent.hash_commitment, generate_secret(), "mallory"),
    )
    attempt("cancel", lambda: registry.cancel(swap_id, intent.hash_commitment, "mallory"))

    print("\n⛏️  Mining to block 105 and claiming with the real secret")
    chain.advance_to(105)
    receipt = registry.execute(swap_id, intent.hash_commitment, secret, "bob")
    print(f"   ✓ {receipt.transfers[0].amount} paid to {receipt.transfers[0].recipient}")
    attempt("claim again", lambda: registry.execute(swap_id, intent.hash_commitment, secret, "bob"))

    print("\n⏰ A second swap nobody claims")
    refund_secret = generate_secret()
    refund_intent = SwapIntent(
        hash_commitment=calculate_hash(refund_secret),
        expiration_height=110,
        amount_or_token_id=1000,
        sender="alice",
        recipient="bob",
    )
    refund_id = registry.register(refund_intent).swap_id
    chain.advance_to(111)
    attempt(
        "late claim",
        lambda: registry.execute(refund_id, refund_intent.hash_commitment, refund_secret, "bob"),
    )
    registry.cancel(refund_id, refund_intent.hash_commitment, "alice")
    print("   ✓ Alice refunded")

    print("\n📒 Final balances")
    show_balances(ledger)
    print(f"\n📜 {len(registry.events)} audit events recorded")


if __name__ == "__main__":
    main()
