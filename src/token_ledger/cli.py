"""CLI for token-ledger.

Commands:
- decode-mint: Decode an 82-byte mint record
- decode-account: Decode a 181-byte token account record
- decode-instruction: Decode instruction bytes
- rent: Rent-exempt minimum for a data length
- run: Execute a YAML scenario against an in-memory bank
- config: Show (or write) the effective configuration
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from .bank import Bank
from .config import DEFAULT_DATA_DIR, ConfigError, load_config, save_config
from .error import ProgramError
from .instruction import instruction_to_dict, instruction_type, unpack
from .logging import setup_logging
from .scenario import ScenarioError, load_scenario, run_scenario
from .state import Account, Mint


def _parse_hex(value: str) -> bytes:
    cleaned = "".join(value.split())
    if cleaned.startswith(("0x", "0X")):
        cleaned = cleaned[2:]
    try:
        return bytes.fromhex(cleaned)
    except ValueError as e:
        raise click.BadParameter(f"not valid hex: {e}") from e


def _emit(data: dict[str, Any], as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return
    for key, value in data.items():
        click.echo(f"  {key}: {value}")


def _fail(error: ProgramError) -> None:
    click.echo(f"Error: {error.kind}: {error}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(path_type=Path),
    default=DEFAULT_DATA_DIR,
    help="Data directory holding config.yaml (default: ~/.token-ledger)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every handler's record changes")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def main(ctx, data_dir: Path, verbose: bool, json_logs: bool):
    """Token ledger - binary record codecs and an in-memory token processor."""
    ctx.ensure_object(dict)
    try:
        config = load_config(data_dir=data_dir)
    except ConfigError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    level = logging.DEBUG if verbose else config.logging.level_value
    setup_logging(level=level, json_format=json_logs or config.logging.json_format)

    ctx.obj["data_dir"] = data_dir
    ctx.obj["config"] = config


@main.command("decode-mint")
@click.argument("data")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def decode_mint(data: str, as_json: bool):
    """Decode a hex-encoded mint record."""
    try:
        mint = Mint.unpack_unchecked(_parse_hex(data))
    except ProgramError as e:
        _fail(e)
        return
    if not as_json:
        click.echo(click.style("Mint", bold=True))
    _emit(mint.to_dict(), as_json)


@main.command("decode-account")
@click.argument("data")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def decode_account(data: str, as_json: bool):
    """Decode a hex-encoded token account record."""
    try:
        account = Account.unpack_unchecked(_parse_hex(data))
    except ProgramError as e:
        _fail(e)
        return
    if not as_json:
        click.echo(click.style("Token account", bold=True))
    _emit(account.to_dict(), as_json)


@main.command("decode-instruction")
@click.argument("data")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def decode_instruction(data: str, as_json: bool):
    """Decode hex-encoded instruction bytes."""
    try:
        decoded = unpack(_parse_hex(data))
    except ProgramError as e:
        _fail(e)
        return
    result = {"tag": int(instruction_type(decoded)), **instruction_to_dict(decoded)}
    _emit(result, as_json)


@main.command()
@click.argument("size", type=click.IntRange(min=0))
@click.option("--lamports", type=click.IntRange(min=0), help="Check this balance for exemption")
@click.pass_context
def rent(ctx, size: int, lamports: int | None):
    """Show the rent-exempt minimum balance for SIZE bytes of data."""
    rent_params = ctx.obj["config"].rent.to_rent()
    minimum = rent_params.minimum_balance(size)
    click.echo(f"Rent-exempt minimum for {size} bytes: {minimum} lamports")

    if lamports is not None:
        if rent_params.is_exempt(lamports, size):
            click.echo(click.style(f"{lamports} lamports is rent-exempt", fg="green"))
        else:
            click.echo(click.style(f"{lamports} lamports is NOT rent-exempt", fg="red"))
            sys.exit(1)


@main.command("run")
@click.argument("scenario_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output the report as JSON")
@click.pass_context
def run_cmd(ctx, scenario_path: Path, as_json: bool):
    """Run a YAML scenario against a fresh in-memory bank."""
    config = ctx.obj["config"]

    try:
        scenario = load_scenario(scenario_path)
    except ScenarioError as e:
        raise click.ClickException(str(e)) from e

    bank = Bank(
        program_id=config.program.program_key,
        rent=config.rent.to_rent(),
        native_mint=config.program.native_mint_key,
    )
    report = run_scenario(scenario, bank)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(f"Scenario: {click.style(report.name, bold=True)}\n")
        for step in report.steps:
            icon = click.style("✓", fg="green") if step.passed else click.style("✗", fg="red")
            expected = f" (expects {step.expected_error})" if step.expected_error else ""
            click.echo(f"  {icon} [{step.index}] {step.op}{expected}: {step.message}")

        click.echo("\nAccounts:")
        for name, described in report.accounts.items():
            click.echo(f"  {name} {described['address']}")
            record = described.get("mint") or described.get("token_account")
            if record:
                for key, value in record.items():
                    click.echo(f"    {key}: {value}")
            elif described.get("exists", True):
                click.echo(f"    lamports: {described['lamports']}")

        for name, consistent in report.supply_consistent.items():
            state = "consistent" if consistent else click.style("INCONSISTENT", fg="red")
            click.echo(f"\nSupply of {name}: {state}")

        passed = len(report.steps) - len(report.failures)
        click.echo(f"\n{passed}/{len(report.steps)} steps passed")

    if not report.passed:
        sys.exit(1)


@main.command("config")
@click.option("--write", is_flag=True, help="Write the effective configuration to config.yaml")
@click.pass_context
def config_cmd(ctx, write: bool):
    """Show the effective configuration."""
    config = ctx.obj["config"]
    click.echo(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False), nl=False)

    if write:
        config_path = ctx.obj["data_dir"] / "config.yaml"
        save_config(config, config_path)
        click.echo(f"\nWrote {config_path}")


if __name__ == "__main__":
    main()
