"""Tests for the token-ledger CLI."""

import json
import logging

import pytest
import yaml
from click.testing import CliRunner

from token_ledger.cli import main
from token_ledger.logging import ROOT_LOGGER

SCENARIO = """
accounts:
  - {name: alice, kind: wallet}
  - {name: usdc, kind: mint}
  - {name: alice_usdc, kind: token_account}
steps:
  - {op: initialize_mint, mint: usdc, mint_authority: alice, decimals: 6}
  - {op: initialize_account, account: alice_usdc, mint: usdc, owner: alice}
  - {op: mint_to, mint: usdc, destination: alice_usdc, authority: alice, amount: 1000}
  - {op: burn, account: alice_usdc, mint: usdc, authority: alice, amount: 5000,
     expect_error: InsufficientFunds}
"""


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    """Keep log lines out of command output and drop handlers bound to the runner's streams."""
    monkeypatch.setenv("TOKEN_LEDGER_LOG_LEVEL", "ERROR")
    yield
    logging.getLogger(ROOT_LOGGER).handlers.clear()


@pytest.fixture
def invoke(temp_data_dir):
    runner = CliRunner()

    def _invoke(*args: str):
        return runner.invoke(main, ["--data-dir", str(temp_data_dir), *args])

    return _invoke


class TestDecode:
    """Tests for the decode commands."""

    def test_decode_mint(self, invoke, mint_bytes):
        """Should print every mint field."""
        result = invoke("decode-mint", mint_bytes.hex())
        assert result.exit_code == 0
        assert "supply: 1000000" in result.output
        assert "decimals: 6" in result.output

    def test_decode_account_json(self, invoke, account_bytes):
        """Should emit the account as JSON."""
        result = invoke("decode-account", "0x" + account_bytes.hex(), "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["amount"] == 500
        assert data["delegated_amount"] == 200

    def test_decode_wrong_length(self, invoke):
        """Should report the error kind and exit non-zero."""
        result = invoke("decode-account", "00" * 10)
        assert result.exit_code == 1
        assert "InvalidAccountData" in result.output

    def test_decode_bad_hex(self, invoke):
        """Should reject input that is not hex."""
        result = invoke("decode-mint", "zz")
        assert result.exit_code == 2
        assert "not valid hex" in result.output

    def test_decode_instruction(self, invoke):
        """Should show the tag and operands."""
        result = invoke("decode-instruction", "03f401000000000000", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == {"tag": 3, "type": "Transfer", "amount": 500}

    def test_decode_unknown_instruction(self, invoke):
        """Should fail on an unknown tag."""
        result = invoke("decode-instruction", "04")
        assert result.exit_code == 1
        assert "InvalidInstruction" in result.output


class TestRent:
    """Tests for the rent command."""

    def test_minimum(self, invoke):
        """Should print the rent-exempt minimum."""
        result = invoke("rent", "82")
        assert result.exit_code == 0
        assert "Rent-exempt minimum for 82 bytes: 1461600 lamports" in result.output

    def test_not_exempt(self, invoke):
        """Should exit non-zero for a balance below the minimum."""
        result = invoke("rent", "165", "--lamports", "1")
        assert result.exit_code == 1
        assert "NOT rent-exempt" in result.output

    def test_configured_rent(self, invoke, temp_data_dir):
        """Should use rent parameters from config.yaml."""
        (temp_data_dir / "config.yaml").write_text(
            "rent:\n  lamports_per_byte_year: 10\n  exemption_threshold: 1.0\n"
        )
        result = invoke("rent", "2")
        assert "1300 lamports" in result.output


class TestRun:
    """Tests for the run command."""

    def test_passing_scenario(self, invoke, tmp_path):
        """Should report every step and exit zero."""
        path = tmp_path / "mint.yaml"
        path.write_text(SCENARIO)
        result = invoke("run", str(path))
        assert result.exit_code == 0
        assert "4/4 steps passed" in result.output
        assert "Supply of usdc: consistent" in result.output

    def test_failing_scenario_json(self, invoke, tmp_path):
        """Should exit non-zero and report the failing step."""
        path = tmp_path / "mint.yaml"
        path.write_text(SCENARIO.replace("expect_error: InsufficientFunds", "expect_error: AccountFrozen"))
        result = invoke("run", str(path), "--json")
        assert result.exit_code == 1
        report = json.loads(result.output)
        assert report["passed"] is False
        assert report["steps"][3]["error"] == "InsufficientFunds"

    def test_invalid_scenario(self, invoke, tmp_path):
        """Should explain validation failures."""
        path = tmp_path / "bad.yaml"
        path.write_text("steps:\n  - {op: burn}\n")
        result = invoke("run", str(path))
        assert result.exit_code == 1
        assert "Invalid scenario" in result.output


class TestConfigCommand:
    """Tests for the config command."""

    def test_show(self, invoke):
        """Should print the effective configuration as YAML."""
        result = invoke("config")
        assert result.exit_code == 0
        assert yaml.safe_load(result.output)["logging"]["level"] == "ERROR"

    def test_write(self, invoke, temp_data_dir):
        """Should save the configuration into the data directory."""
        result = invoke("config", "--write")
        assert result.exit_code == 0
        saved = yaml.safe_load((temp_data_dir / "config.yaml").read_text())
        assert set(saved) == {"program", "rent", "logging"}

    def test_invalid_config(self, invoke, monkeypatch):
        """Should refuse to start with an invalid address override."""
        monkeypatch.setenv("TOKEN_LEDGER_NATIVE_MINT", "0OIl")
        result = invoke("config")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
