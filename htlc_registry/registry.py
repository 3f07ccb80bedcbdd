"""
Hashed time-locked swap registry.

Holds every active swap keyed by its derived identity and applies the three
transitions: register (escrow funds), execute (pay the recipient against the
secret) and cancel (refund the sender). Each transition checks all of its
preconditions before touching anything, then performs the ledger transfer,
then updates the record. A ledger refusal therefore leaves the registry
unchanged, and a completed transfer is always followed by its record change.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, Iterable

import structlog

from .chain import Chain
from .errors import ExpiryInPast, InvalidPreimage, SwapIntentExpired, UnknownSwapIntent
from .hashing import HashFunction, derive_identity, preimage_matches, sha256
from .ledger import Ledger
from .models import (
    SwapEvent,
    SwapIntent,
    SwapReceipt,
    SwapRecord,
    SwapState,
    SwapView,
    escrow_account,
)

logger = structlog.get_logger()

IdentityFunction = Callable[[bytes, str, str, int, int], str]


class SwapRegistry:
    """Registry of active hashed time-locked swaps."""

    def __init__(
        self,
        ledger: Ledger,
        chain: Chain,
        hash_function: HashFunction = sha256,
        identity_function: IdentityFunction = derive_identity,
    ):
        """
        Wire the registry to its host.

        Args:
            ledger: Performs escrow debits and payouts
            chain: Reports the block height expiry is checked against
            hash_function: Applied to secrets presented at execution
            identity_function: Derives the swap identity from an intent's fields
        """
        self.ledger = ledger
        self.chain = chain
        self.hash_function = hash_function
        self.identity_function = identity_function
        self._swaps: dict[str, SwapRecord] = {}
        self._events: list[SwapEvent] = []
        self._lock = threading.RLock()

        # Stored revision this state was loaded from; maintained by SwapDatabase
        self.revision = 0

    def identity_of(self, intent: SwapIntent) -> str:
        """Identity the registry files this intent under."""
        return self.identity_function(
            intent.hash_commitment,
            intent.sender,
            intent.recipient,
            intent.expiration_height,
            intent.amount_or_token_id,
        )

    def register(self, intent: SwapIntent) -> SwapReceipt:
        """
        Escrow the intent's amount and record it as active.

        Registering an intent identical to one still active escrows the
        amount again; each escrowed instance settles on its own.

        Raises:
            ExpiryInPast: expiration height is not above the current height
            InsufficientFunds: the sender cannot cover the amount
        """
        with self._lock:
            height = self.chain.current_height()
            if intent.expiration_height <= height:
                logger.warning(
                    "Rejected registration with past expiry",
                    expiration_height=intent.expiration_height,
                    height=height,
                )
                raise ExpiryInPast(
                    expiration_height=intent.expiration_height, height=height
                )

            swap_id = self.identity_of(intent)
            transfer = self.ledger.transfer(
                intent.sender, escrow_account(swap_id), intent.amount_or_token_id
            )

            record = self._swaps.get(swap_id)
            if record is None:
                self._swaps[swap_id] = SwapRecord(
                    swap_id=swap_id, intent=intent, registered_at=height
                )
            else:
                record.instances += 1

            self._record_event(
                swap_id, SwapState.ACTIVE, height, intent.sender, intent.amount_or_token_id
            )
            logger.info(
                "Registered swap intent",
                swap_id=swap_id,
                amount=intent.amount_or_token_id,
                expiration_height=intent.expiration_height,
                instances=self._swaps[swap_id].instances,
            )
            return SwapReceipt(
                swap_id=swap_id,
                state=SwapState.ACTIVE,
                height=height,
                transfers=[transfer],
            )

    def get(
        self, swap_id: str, hash_commitment: bytes, caller: str | None = None
    ) -> SwapView | None:
        """
        Look up the visible fields of an active swap.

        Returns None both for swaps that never existed and for swaps that
        have already settled.
        """
        with self._lock:
            record = self._active_record(swap_id, hash_commitment)
            if record is None:
                return None
            return record.view()

    def execute(
        self, swap_id: str, hash_commitment: bytes, secret: bytes, claimant: str
    ) -> SwapReceipt:
        """
        Release the escrow to the registered recipient.

        The secret is the authorization: the recipient is paid whoever the
        claimant is. A claim at exactly the expiration height is accepted.

        Raises:
            UnknownSwapIntent: no active swap matches
            InvalidPreimage: the secret does not hash to the commitment
            SwapIntentExpired: the current height is past the expiration height
        """
        with self._lock:
            record = self._active_record(swap_id, hash_commitment)
            if record is None:
                logger.warning("Execution of unknown swap", swap_id=swap_id, claimant=claimant)
                raise UnknownSwapIntent(swap_id=swap_id)

            intent = record.intent
            if not preimage_matches(secret, intent.hash_commitment, self.hash_function):
                logger.warning("Execution with invalid preimage", swap_id=swap_id, claimant=claimant)
                raise InvalidPreimage(swap_id=swap_id)

            height = self.chain.current_height()
            if height > intent.expiration_height:
                logger.warning(
                    "Execution after expiry",
                    swap_id=swap_id,
                    height=height,
                    expiration_height=intent.expiration_height,
                )
                raise SwapIntentExpired(
                    swap_id=swap_id,
                    height=height,
                    expiration_height=intent.expiration_height,
                )

            transfer = self.ledger.transfer(
                escrow_account(swap_id), intent.recipient, intent.amount_or_token_id
            )
            self._release(record)
            self._record_event(
                swap_id, SwapState.EXECUTED, height, claimant, intent.amount_or_token_id
            )
            logger.info(
                "Executed swap",
                swap_id=swap_id,
                recipient=intent.recipient,
                claimant=claimant,
                amount=intent.amount_or_token_id,
            )
            return SwapReceipt(
                swap_id=swap_id,
                state=SwapState.EXECUTED,
                height=height,
                transfers=[transfer],
            )

    def cancel(self, swap_id: str, hash_commitment: bytes, caller: str) -> SwapReceipt:
        """
        Refund the escrow to the sender.

        Only the sender may cancel. A missing swap and a foreign caller fail
        identically so the registry never confirms a swap exists to someone
        who cannot act on it.

        Raises:
            UnknownSwapIntent: no active swap matches or caller is not the sender
        """
        with self._lock:
            record = self._active_record(swap_id, hash_commitment)
            if record is None or record.intent.sender != caller:
                logger.warning("Cancellation refused", swap_id=swap_id, caller=caller)
                raise UnknownSwapIntent(swap_id=swap_id)

            intent = record.intent
            height = self.chain.current_height()
            transfer = self.ledger.transfer(
                escrow_account(swap_id), intent.sender, intent.amount_or_token_id
            )
            self._release(record)
            self._record_event(
                swap_id, SwapState.CANCELLED, height, caller, intent.amount_or_token_id
            )
            logger.info(
                "Cancelled swap",
                swap_id=swap_id,
                sender=intent.sender,
                amount=intent.amount_or_token_id,
            )
            return SwapReceipt(
                swap_id=swap_id,
                state=SwapState.CANCELLED,
                height=height,
                transfers=[transfer],
            )

    def status(self, swap_id: str) -> SwapState | None:
        """
        Audit status of a swap identity.

        None means the identity was never registered. This is for operators;
        the public operations keep settled and unknown swaps indistinguishable.
        """
        with self._lock:
            if swap_id in self._swaps:
                return SwapState.ACTIVE
            for event in reversed(self._events):
                if event.swap_id == swap_id:
                    return event.state
            return None

    def history(self, swap_id: str) -> list[SwapEvent]:
        """All audit events for one swap identity, oldest first."""
        with self._lock:
            return [event for event in self._events if event.swap_id == swap_id]

    @property
    def events(self) -> list[SwapEvent]:
        with self._lock:
            return list(self._events)

    def active_swaps(self) -> list[SwapRecord]:
        with self._lock:
            return [record.model_copy() for record in self._swaps.values()]

    def restore(self, records: Iterable[SwapRecord], events: Iterable[SwapEvent]):
        """Load previously persisted state into an empty registry."""
        with self._lock:
            if self._swaps or self._events:
                raise RuntimeError("Cannot restore into a registry that already holds state")
            self._swaps = {record.swap_id: record for record in records}
            self._events = sorted(events, key=lambda event: event.sequence)
            logger.info(
                "Restored registry state",
                active_swaps=len(self._swaps),
                events=len(self._events),
            )

    def _active_record(self, swap_id: str, hash_commitment: bytes) -> SwapRecord | None:
        record = self._swaps.get(swap_id)
        if record is None or record.intent.hash_commitment != hash_commitment:
            return None
        return record

    def _release(self, record: SwapRecord):
        """Settle one escrowed instance, dropping the record after the last."""
        if record.instances > 1:
            record.instances -= 1
        else:
            del self._swaps[record.swap_id]

    def _record_event(
        self, swap_id: str, state: SwapState, height: int, actor: str, amount: int
    ):
        sequence = self._events[-1].sequence + 1 if self._events else 1
        self._events.append(
            SwapEvent(
                sequence=sequence,
                swap_id=swap_id,
                state=state,
                height=height,
                actor=actor,
                amount=amount,
                recorded_at=datetime.now(timezone.utc),
            )
        )
