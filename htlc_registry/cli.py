"""Command-line interface for a local swap registry."""

import asyncio
import logging
import sys

import click
import structlog
from structlog.stdlib import LoggerFactory

from . import __version__
from .config import config
from .database import SwapDatabase
from .errors import SwapError
from .hashing import calculate_hash, generate_secret, get_hash_function
from .models import SwapIntent, is_escrow_account


def configure_logging(level: str = config.log_level):
    """Route structlog through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def _hex_bytes(ctx, param, value):
    """Click callback turning a hex option into bytes."""
    if value is None:
        return None
    try:
        return bytes.fromhex(value.removeprefix("0x"))
    except ValueError:
        raise click.BadParameter("must be a hex string") from None


def _run(database_url: str, operation, save: bool = False):
    """Load the registry, apply `operation` to it and optionally persist it."""

    async def run():
        db = SwapDatabase(database_url)
        await db.init()
        try:
            registry = await db.load_registry()
            result = operation(registry)
            if save:
                await db.save_registry(registry)
            return result
        finally:
            await db.close()

    try:
        return asyncio.run(run())
    except SwapError as e:
        logger.error("Operation failed", error=type(e).__name__, code=e.code)
        click.echo(f"✗ {type(e).__name__}: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--database-url",
    default=config.database_url,
    show_default=True,
    help="Database holding the registry state",
)
@click.option("--log-level", default=config.log_level, help="Logging level")
@click.pass_context
def cli(ctx, database_url: str, log_level: str):
    """HTLC Swap Registry - hashed time-locked swaps on a local ledger."""
    configure_logging(log_level.upper())
    ctx.obj = {"database_url": database_url}


@cli.command()
@click.option("--account", required=True, help="Account to provision")
@click.option("--amount", required=True, type=click.IntRange(min=1), help="Amount to credit")
@click.pass_obj
def fund(obj, account: str, amount: int):
    """Credit an account with new funds."""
    if is_escrow_account(account):
        raise click.BadParameter("escrow accounts cannot be funded directly", param_hint="--account")

    def operation(registry):
        registry.ledger.credit(account, amount)
        return registry.ledger.balance(account)

    balance = _run(obj["database_url"], operation, save=True)
    click.echo(f"✓ {account} balance: {balance}")


@cli.command()
@click.option("--blocks", default=1, type=click.IntRange(min=0), help="Blocks to mine")
@click.pass_obj
def mine(obj, blocks: int):
    """Advance the chain by a number of empty blocks."""
    height = _run(
        obj["database_url"],
        lambda registry: registry.chain.mine_empty_blocks(blocks),
        save=True,
    )
    click.echo(f"Block height: {height}")


@cli.command()
@click.pass_obj
def height(obj):
    """Show the current block height."""
    click.echo(_run(obj["database_url"], lambda registry: registry.chain.current_height()))


@cli.command("new-secret")
def new_secret():
    """Generate a secret and its hash commitment."""
    secret = generate_secret()
    commitment = calculate_hash(secret, get_hash_function(config.hash_function))
    click.echo(f"Secret: {secret.hex()}")
    click.echo(f"Hash:   {commitment.hex()}")


@cli.command()
@click.option("--hash", "hash_commitment", required=True, callback=_hex_bytes, help="Hash commitment (hex)")
@click.option("--expiration-height", required=True, type=click.IntRange(min=0), help="Last block a claim is accepted")
@click.option("--amount", required=True, type=click.IntRange(min=1), help="Amount to escrow")
@click.option("--sender", required=True, help="Funding account")
@click.option("--recipient", required=True, help="Account paid on a valid claim")
@click.pass_obj
def register(obj, hash_commitment: bytes, expiration_height: int, amount: int, sender: str, recipient: str):
    """Escrow funds behind a hash commitment."""
    try:
        intent = SwapIntent(
            hash_commitment=hash_commitment,
            expiration_height=expiration_height,
            amount_or_token_id=amount,
            sender=sender,
            recipient=recipient,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from None

    receipt = _run(obj["database_url"], lambda registry: registry.register(intent), save=True)
    click.echo("✓ Swap registered")
    click.echo(f"  Swap ID: {receipt.swap_id}")
    click.echo(f"  Height: {receipt.height}")


@cli.command()
@click.option("--swap-id", required=True, help="Swap identity")
@click.option("--hash", "hash_commitment", required=True, callback=_hex_bytes, help="Hash commitment (hex)")
@click.option("--caller", default=None, help="Account performing the lookup")
@click.pass_obj
def get(obj, swap_id: str, hash_commitment: bytes, caller: str | None):
    """Show an active swap."""
    view = _run(
        obj["database_url"],
        lambda registry: registry.get(swap_id, hash_commitment, caller),
    )
    if view is None:
        click.echo("No active swap")
        return

    click.echo(f"Amount: {view.amount}")
    click.echo(f"Expiration height: {view.expiration_height}")
    click.echo(f"Recipient: {view.recipient}")


@cli.command()
@click.option("--swap-id", required=True, help="Swap identity")
@click.option("--hash", "hash_commitment", required=True, callback=_hex_bytes, help="Hash commitment (hex)")
@click.option("--secret", required=True, callback=_hex_bytes, help="Secret preimage (hex)")
@click.option("--claimant", required=True, help="Account submitting the secret")
@click.pass_obj
def execute(obj, swap_id: str, hash_commitment: bytes, secret: bytes, claimant: str):
    """Claim a swap by revealing its secret."""
    receipt = _run(
        obj["database_url"],
        lambda registry: registry.execute(swap_id, hash_commitment, secret, claimant),
        save=True,
    )
    transfer = receipt.transfers[0]
    click.echo(f"✓ Swap executed: {transfer.amount} paid to {transfer.recipient}")


@cli.command()
@click.option("--swap-id", required=True, help="Swap identity")
@click.option("--hash", "hash_commitment", required=True, callback=_hex_bytes, help="Hash commitment (hex)")
@click.option("--caller", required=True, help="Account requesting the refund")
@click.pass_obj
def cancel(obj, swap_id: str, hash_commitment: bytes, caller: str):
    """Refund a swap to its sender."""
    receipt = _run(
        obj["database_url"],
        lambda registry: registry.cancel(swap_id, hash_commitment, caller),
        save=True,
    )
    transfer = receipt.transfers[0]
    click.echo(f"✓ Swap cancelled: {transfer.amount} refunded to {transfer.recipient}")


@cli.command()
@click.pass_obj
def list_swaps(obj):
    """List active swaps."""
    swaps = _run(obj["database_url"], lambda registry: registry.active_swaps())

    if not swaps:
        click.echo("No active swaps")
        return

    click.echo(f"{len(swaps)} active swaps:\n")

    for record in swaps:
        intent = record.intent
        click.echo(f"Swap ID: {record.swap_id}")
        click.echo(f"  Hash: {intent.hash_commitment.hex()}")
        click.echo(f"  Amount: {intent.amount_or_token_id}")
        click.echo(f"  Sender: {intent.sender}")
        click.echo(f"  Recipient: {intent.recipient}")
        click.echo(f"  Expires after: {intent.expiration_height}")
        if record.instances > 1:
            click.echo(f"  Instances: {record.instances}")
        click.echo()


@cli.command()
@click.pass_obj
def balances(obj):
    """Show every non-zero account balance."""
    accounts = _run(obj["database_url"], lambda registry: registry.ledger.balances())
    for account, balance in sorted(accounts.items()):
        click.echo(f"{account}: {balance}")


@cli.command()
@click.option("--swap-id", default=None, help="Limit to one swap")
@click.option("--limit", default=20, type=click.IntRange(min=1), help="Number of events to show")
@click.pass_obj
def history(obj, swap_id: str | None, limit: int):
    """Show the audit trail of registrations and settlements."""

    async def run():
        db = SwapDatabase(obj["database_url"])
        await db.init()
        try:
            return await db.get_events(swap_id, limit)
        finally:
            await db.close()

    events = asyncio.run(run())
    if not events:
        click.echo("No events")
        return

    for event in events:
        click.echo(
            f"#{event.sequence} {event.state.value:<9} {event.swap_id[:16]}... "
            f"height={event.height} amount={event.amount} by {event.actor}"
        )


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
