"""
Database persistence for the swap registry.

SQLite holds the whole state of a local registry between CLI runs: chain
height, account balances, active swaps and the audit trail. A save writes
all of it inside one transaction so a crash can never leave escrow balances
out of step with the swap records they back.
"""

from datetime import timezone

import structlog
from sqlalchemy import Column, DateTime, Index, Integer, String, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .chain import Chain
from .config import config
from .errors import HashFunctionMismatch, StaleSnapshot
from .hashing import get_hash_function
from .ledger import InMemoryLedger
from .models import SwapEvent, SwapIntent, SwapRecord, SwapState
from .registry import SwapRegistry

logger = structlog.get_logger()
Base = declarative_base()

# Amounts are uint128 and overflow SQLite INTEGER, so they are stored as text


class ChainStateRecord(Base):
    """
    Single-row table holding the registry header.

    `hash_function` is fixed when the registry is created since every stored
    commitment depends on it. `revision` counts saves and is checked on
    each save so a writer working from an outdated load is refused.
    """

    __tablename__ = "chain_state"

    id = Column(Integer, primary_key=True)
    height = Column(Integer, nullable=False)
    hash_function = Column(String, nullable=False)
    revision = Column(Integer, nullable=False, default=0)


class AccountRecord(Base):
    """Ledger balance per account, escrow accounts included."""

    __tablename__ = "accounts"

    account = Column(String, primary_key=True)
    balance = Column(String, nullable=False)


class ActiveSwapRecord(Base):
    """Swaps that are funded and not yet settled."""

    __tablename__ = "active_swaps"

    swap_id = Column(String, primary_key=True)
    hash_commitment = Column(String, nullable=False, index=True)
    sender = Column(String, nullable=False)
    recipient = Column(String, nullable=False)
    expiration_height = Column(String, nullable=False)
    amount = Column(String, nullable=False)
    registered_at = Column(Integer, nullable=False)
    instances = Column(Integer, nullable=False, default=1)


class SwapEventRecord(Base):
    """Append-only audit trail of registrations and settlements."""

    __tablename__ = "swap_events"

    sequence = Column(Integer, primary_key=True)
    swap_id = Column(String, nullable=False)
    state = Column(String, nullable=False)
    height = Column(Integer, nullable=False)
    actor = Column(String, nullable=False)
    amount = Column(String, nullable=False)
    recorded_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_event_swap", "swap_id"),
        Index("idx_event_state", "state"),
    )


class SwapDatabase:
    """
    Async storage for registry snapshots.

    Loads a ready-to-use SwapRegistry (with its ledger and chain) and writes
    one back after operations have run against it.
    """

    def __init__(self, database_url: str | None = None):
        """Initialize database connection."""
        self.database_url = database_url or config.database_url
        self.engine = create_async_engine(
            self.database_url, echo=False, pool_pre_ping=True
        )
        self.async_session = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init(self):
        """Initialize database schema."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized", url=self.database_url)

    async def close(self):
        """Close database connection."""
        await self.engine.dispose()

    async def load_registry(self, hash_function: str | None = None) -> SwapRegistry:
        """
        Rebuild the registry, its ledger and its chain from storage.

        The first load of a fresh database records the hash function in use;
        later loads must ask for the same one.

        Raises:
            HashFunctionMismatch: the stored registry was created with another hash
        """
        name = hash_function or config.hash_function
        secret_hash = get_hash_function(name)

        async with self.async_session() as session:
            chain_row = await session.get(ChainStateRecord, 1)
            if chain_row is None:
                chain_row = ChainStateRecord(
                    id=1, height=config.genesis_height, hash_function=name, revision=0
                )
                session.add(chain_row)
                await session.commit()
                logger.info("Created registry", hash_function=name, height=chain_row.height)
            elif chain_row.hash_function != name:
                logger.error(
                    "Hash function mismatch",
                    stored=chain_row.hash_function,
                    configured=name,
                )
                raise HashFunctionMismatch(
                    f"Registry uses {chain_row.hash_function}, not {name}",
                    stored=chain_row.hash_function,
                    configured=name,
                )
            height = chain_row.height
            revision = chain_row.revision

            accounts = await session.execute(select(AccountRecord))
            balances = {row.account: int(row.balance) for row in accounts.scalars()}

            swaps = await session.execute(select(ActiveSwapRecord))
            records = [_to_swap_record(row) for row in swaps.scalars()]

            events = await session.execute(
                select(SwapEventRecord).order_by(SwapEventRecord.sequence)
            )
            history = [_to_swap_event(row) for row in events.scalars()]

        registry = SwapRegistry(
            ledger=InMemoryLedger(balances),
            chain=Chain(height),
            hash_function=secret_hash,
        )
        registry.restore(records, history)
        registry.revision = revision
        return registry

    async def save_registry(self, registry: SwapRegistry):
        """
        Persist the full registry state in a single transaction.

        The registry must come from load_registry on this database, and no
        other save may have landed since that load.

        Raises:
            StaleSnapshot: the stored revision moved on since the registry was loaded
        """
        ledger = registry.ledger
        if not isinstance(ledger, InMemoryLedger):
            raise TypeError("Only registries backed by an InMemoryLedger can be saved")

        async with self.async_session() as session:
            async with session.begin():
                claimed = await session.execute(
                    update(ChainStateRecord)
                    .where(
                        ChainStateRecord.id == 1,
                        ChainStateRecord.revision == registry.revision,
                    )
                    .values(
                        height=registry.chain.current_height(),
                        revision=registry.revision + 1,
                    )
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount == 0:
                    logger.error("Refused stale registry save", revision=registry.revision)
                    raise StaleSnapshot(revision=registry.revision)

                await session.execute(delete(AccountRecord))
                session.add_all(
                    AccountRecord(account=account, balance=str(balance))
                    for account, balance in ledger.balances().items()
                )

                await session.execute(delete(ActiveSwapRecord))
                session.add_all(_from_swap_record(record) for record in registry.active_swaps())

                stored = await session.execute(select(SwapEventRecord.sequence))
                known = set(stored.scalars())
                session.add_all(
                    _from_swap_event(event)
                    for event in registry.events
                    if event.sequence not in known
                )

        registry.revision += 1
        logger.info(
            "Saved registry state",
            revision=registry.revision,
            height=registry.chain.current_height(),
            active_swaps=len(registry.active_swaps()),
        )

    async def get_events(self, swap_id: str | None = None, limit: int = 50) -> list[SwapEvent]:
        """Most recent audit events, optionally for one swap."""
        async with self.async_session() as session:
            query = select(SwapEventRecord).order_by(SwapEventRecord.sequence.desc())
            if swap_id:
                query = query.where(SwapEventRecord.swap_id == swap_id)
            result = await session.execute(query.limit(limit))
            return [_to_swap_event(row) for row in result.scalars()]


def _to_swap_record(row: ActiveSwapRecord) -> SwapRecord:
    return SwapRecord(
        swap_id=row.swap_id,
        intent=SwapIntent(
            hash_commitment=bytes.fromhex(row.hash_commitment),
            expiration_height=int(row.expiration_height),
            amount_or_token_id=int(row.amount),
            sender=row.sender,
            recipient=row.recipient,
        ),
        registered_at=row.registered_at,
        instances=row.instances,
    )


def _from_swap_record(record: SwapRecord) -> ActiveSwapRecord:
    intent = record.intent
    return ActiveSwapRecord(
        swap_id=record.swap_id,
        hash_commitment=intent.hash_commitment.hex(),
        sender=intent.sender,
        recipient=intent.recipient,
        expiration_height=str(intent.expiration_height),
        amount=str(intent.amount_or_token_id),
        registered_at=record.registered_at,
        instances=record.instances,
    )


def _to_swap_event(row: SwapEventRecord) -> SwapEvent:
    # SQLite drops tzinfo on the way in
    recorded_at = row.recorded_at
    if recorded_at.tzinfo is None:
        recorded_at = recorded_at.replace(tzinfo=timezone.utc)
    return SwapEvent(
        sequence=row.sequence,
        swap_id=row.swap_id,
        state=SwapState(row.state),
        height=row.height,
        actor=row.actor,
        amount=int(row.amount),
        recorded_at=recorded_at,
    )


def _from_swap_event(event: SwapEvent) -> SwapEventRecord:
    return SwapEventRecord(
        sequence=event.sequence,
        swap_id=event.swap_id,
        state=event.state.value,
        height=event.height,
        actor=event.actor,
        amount=str(event.amount),
        recorded_at=event.recorded_at,
    )
