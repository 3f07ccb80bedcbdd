"""Tests for the command-line interface."""

import hashlib
import re

import pytest
from click.testing import CliRunner

from htlc_registry.cli import cli

SECRET = bytes(range(32))
HASH = hashlib.sha256(SECRET).digest()


@pytest.fixture
def invoke(tmp_path):
    """Run CLI commands against a throwaway database."""
    runner = CliRunner()
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"

    def run(*args):
        return runner.invoke(cli, ["--database-url", database_url, *args])

    return run


def register_swap(invoke, expiration_height: int = 110) -> str:
    invoke("fund", "--account", "alice", "--amount", "1000")
    invoke("mine", "--blocks", "100")
    result = invoke(
        "register",
        "--hash", HASH.hex(),
        "--expiration-height", str(expiration_height),
        "--amount", "250",
        "--sender", "alice",
        "--recipient", "bob",
    )
    assert result.exit_code == 0, result.output
    return re.search(r"Swap ID: ([0-9a-f]{64})", result.output).group(1)


class TestCli:
    """End-to-end flows through the CLI."""

    def test_fund_and_mine(self, invoke):
        """Test funding an account and mining blocks."""
        result = invoke("fund", "--account", "alice", "--amount", "500")
        assert result.exit_code == 0
        assert "alice balance: 500" in result.output

        result = invoke("mine", "--blocks", "3")
        assert "Block height: 3" in result.output

        result = invoke("height")
        assert result.output.strip().endswith("3")

    def test_new_secret(self, invoke):
        """Test secret generation prints a matching commitment."""
        result = invoke("new-secret")

        assert result.exit_code == 0
        secret = re.search(r"Secret: ([0-9a-f]{64})", result.output).group(1)
        commitment = re.search(r"Hash:\s+([0-9a-f]{64})", result.output).group(1)
        assert hashlib.sha256(bytes.fromhex(secret)).hexdigest() == commitment

    def test_register_get_execute(self, invoke):
        """Test the full claim flow."""
        swap_id = register_swap(invoke)

        result = invoke("get", "--swap-id", swap_id, "--hash", HASH.hex())
        assert "Amount: 250" in result.output
        assert "Expiration height: 110" in result.output
        assert "Recipient: bob" in result.output

        result = invoke(
            "execute", "--swap-id", swap_id, "--hash", HASH.hex(),
            "--secret", "00" * 32, "--claimant", "bob",
        )
        assert result.exit_code == 1
        assert "InvalidPreimage" in result.output

        result = invoke(
            "execute", "--swap-id", swap_id, "--hash", HASH.hex(),
            "--secret", SECRET.hex(), "--claimant", "bob",
        )
        assert result.exit_code == 0, result.output
        assert "250 paid to bob" in result.output

        result = invoke("get", "--swap-id", swap_id, "--hash", HASH.hex())
        assert "No active swap" in result.output

        result = invoke("balances")
        assert "alice: 750" in result.output
        assert "bob: 250" in result.output

    def test_cancel_requires_sender(self, invoke):
        """Test only the sender can cancel."""
        swap_id = register_swap(invoke)

        result = invoke("cancel", "--swap-id", swap_id, "--hash", HASH.hex(), "--caller", "mallory")
        assert result.exit_code == 1
        assert "UnknownSwapIntent" in result.output

        result = invoke("cancel", "--swap-id", swap_id, "--hash", HASH.hex(), "--caller", "alice")
        assert result.exit_code == 0, result.output
        assert "250 refunded to alice" in result.output

        result = invoke("list-swaps")
        assert "No active swaps" in result.output

    def test_expired_registration_fails(self, invoke):
        """Test registration with a past expiry exits with an error."""
        invoke("fund", "--account", "alice", "--amount", "1000")
        invoke("mine", "--blocks", "100")

        result = invoke(
            "register",
            "--hash", HASH.hex(),
            "--expiration-height", "100",
            "--amount", "250",
            "--sender", "alice",
            "--recipient", "bob",
        )

        assert result.exit_code == 1
        assert "ExpiryInPast" in result.output

    def test_bad_hash_rejected(self, invoke):
        """Test a short hash is a usage error."""
        result = invoke(
            "register",
            "--hash", "abcd",
            "--expiration-height", "10",
            "--amount", "1",
            "--sender", "alice",
            "--recipient", "bob",
        )
        assert result.exit_code == 2

    def test_list_and_history(self, invoke):
        """Test listing swaps and reading the audit trail."""
        swap_id = register_swap(invoke)

        result = invoke("list-swaps")
        assert f"Swap ID: {swap_id}" in result.output
        assert f"Hash: {HASH.hex()}" in result.output

        invoke("execute", "--swap-id", swap_id, "--hash", HASH.hex(),
               "--secret", SECRET.hex(), "--claimant", "carol")

        result = invoke("history", "--swap-id", swap_id)
        assert result.exit_code == 0
        assert "#2 executed" in result.output
        assert "by carol" in result.output
        assert "#1 active" in result.output

    def test_escrow_account_cannot_be_funded(self, invoke):
        """Test the fund command refuses escrow accounts."""
        result = invoke("fund", "--account", "escrow:" + "ab" * 32, "--amount", "500")

        assert result.exit_code == 2
        assert "escrow" in result.output

    def test_escrow_account_cannot_be_a_party(self, invoke):
        """Test register refuses an escrow account as sender."""
        swap_id = register_swap(invoke)

        result = invoke(
            "register",
            "--hash", HASH.hex(),
            "--expiration-height", "120",
            "--amount", "250",
            "--sender", f"escrow:{swap_id}",
            "--recipient", "mallory",
        )

        assert result.exit_code == 2
        assert "reserved for escrow" in result.output

    @pytest.mark.parametrize("limit", ["0", "-1"])
    def test_history_limit_must_be_positive(self, invoke, limit):
        """Test history rejects a non-positive limit."""
        result = invoke("history", "--limit", limit)
        assert result.exit_code == 2
