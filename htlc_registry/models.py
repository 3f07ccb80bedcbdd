"""
Data structures for swap intents and their lifecycle.

The intent itself is frozen once built: nothing about a registered swap can
change, it can only be settled. Shape checks (hash width, positive amount)
live here so the registry only ever sees well-formed intents.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

HASH_LENGTH = 32
UINT128_LIMIT = 2**128

# Reserved for swap escrow; no caller-supplied account may live here
ESCROW_PREFIX = "escrow:"


def escrow_account(swap_id: str) -> str:
    """Ledger account holding the escrow of one swap."""
    return f"{ESCROW_PREFIX}{swap_id}"


def is_escrow_account(account: str) -> bool:
    return account.startswith(ESCROW_PREFIX)


class SwapState(str, Enum):
    """Lifecycle state of a swap as recorded in the audit trail."""

    ACTIVE = "active"  # Escrow funded, awaiting secret or refund
    EXECUTED = "executed"  # Secret revealed, escrow paid to recipient
    CANCELLED = "cancelled"  # Sender reclaimed the escrow


class SwapIntent(BaseModel):
    """
    The five parameters that define one swap.

    Two intents with identical fields derive the same swap identity.
    """

    model_config = ConfigDict(frozen=True)

    hash_commitment: bytes = Field(description="Hash of the secret that unlocks the swap")
    expiration_height: int = Field(
        ge=0, lt=UINT128_LIMIT, description="Last block height a claim is accepted"
    )
    amount_or_token_id: int = Field(
        gt=0, lt=UINT128_LIMIT, description="Value locked in escrow"
    )
    sender: str = Field(min_length=1, description="Account that funds and may cancel")
    recipient: str = Field(min_length=1, description="Account paid on a valid claim")

    @field_validator("hash_commitment")
    @classmethod
    def check_hash_width(cls, v: bytes) -> bytes:
        if len(v) != HASH_LENGTH:
            raise ValueError(f"hash_commitment must be {HASH_LENGTH} bytes, got {len(v)}")
        return v

    @field_validator("sender", "recipient")
    @classmethod
    def check_not_escrow(cls, v: str) -> str:
        if is_escrow_account(v):
            raise ValueError(f"accounts starting with {ESCROW_PREFIX!r} are reserved for escrow")
        return v


class SwapView(BaseModel):
    """Fields of an active swap visible through a lookup."""

    model_config = ConfigDict(frozen=True)

    amount: int
    expiration_height: int
    recipient: str


class SwapRecord(BaseModel):
    """
    Registry entry for an active swap.

    `instances` counts how many times the identical intent has been escrowed
    while still active; each instance settles independently.
    """

    swap_id: str = Field(description="Identity derived from the intent")
    intent: SwapIntent
    registered_at: int = Field(description="Block height of the first registration")
    instances: int = Field(default=1, ge=1)

    def view(self) -> SwapView:
        return SwapView(
            amount=self.intent.amount_or_token_id,
            expiration_height=self.intent.expiration_height,
            recipient=self.intent.recipient,
        )


class TransferEvent(BaseModel):
    """A single balance movement performed by the ledger."""

    model_config = ConfigDict(frozen=True)

    amount: int
    sender: str
    recipient: str


class SwapReceipt(BaseModel):
    """Result of a successful register, execute or cancel."""

    swap_id: str
    state: SwapState = Field(description="State the swap moved into")
    height: int = Field(description="Block height the operation ran at")
    transfers: list[TransferEvent] = Field(default_factory=list)


class SwapEvent(BaseModel):
    """Audit trail entry for a registration or settlement."""

    sequence: int = Field(description="Position in the registry-wide event order")
    swap_id: str
    state: SwapState
    height: int
    actor: str = Field(description="Account that invoked the operation")
    amount: int
    recorded_at: datetime
