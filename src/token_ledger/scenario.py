"""Run YAML scenarios against an in-memory bank.

A scenario names its accounts, then lists steps. Each step is built into an
instruction, executed through ``Bank.process`` and compared with its
``expect_error`` (absent means the step must succeed). Example::

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

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from solders.pubkey import Pubkey

from . import instruction as ix
from .account_info import Instruction
from .bank import Bank
from .error import ProgramError
from .logging import get_logger
from .models import Scenario, StepSpec
from .state import Account, Mint

logger = get_logger("scenario")

MAX_SCENARIO_SIZE = 1024 * 1024  # 1MB

# Which named role signs when a step gives no explicit signers
DEFAULT_SIGNER_FIELD: dict[str, str] = {
    "transfer": "authority",
    "transfer_checked": "authority",
    "approve": "owner",
    "revoke": "owner",
    "set_authority": "authority",
    "mint_to": "authority",
    "burn": "authority",
    "close_account": "authority",
    "freeze_account": "authority",
    "thaw_account": "authority",
}


class ScenarioError(Exception):
    """Scenario file could not be loaded."""

    pass


@dataclass
class StepResult:
    index: int
    op: str
    passed: bool
    error: str | None = None
    expected_error: str | None = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "op": self.op,
            "passed": self.passed,
            "error": self.error,
            "expected_error": self.expected_error,
            "message": self.message,
        }


@dataclass
class ScenarioReport:
    name: str
    steps: list[StepResult] = field(default_factory=list)
    accounts: dict[str, dict[str, Any]] = field(default_factory=dict)
    supply_consistent: dict[str, bool] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return all(step.passed for step in self.steps) and all(self.supply_consistent.values())

    @property
    def failures(self) -> list[StepResult]:
        return [step for step in self.steps if not step.passed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "steps": [step.to_dict() for step in self.steps],
            "accounts": self.accounts,
            "supply_consistent": self.supply_consistent,
        }


def address_for(name: str) -> Pubkey:
    """Deterministic address for a scenario account name."""
    return Pubkey(hashlib.sha256(f"token-ledger:{name}".encode()).digest())


def load_scenario(path: Path) -> Scenario:
    """Read and validate a scenario file.

    Raises:
        ScenarioError: If the file is too large, not YAML, or fails validation.
    """
    size = path.stat().st_size
    if size > MAX_SCENARIO_SIZE:
        raise ScenarioError(f"Scenario file too large: {size} > {MAX_SCENARIO_SIZE}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ScenarioError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ScenarioError("Scenario file must be a YAML mapping")

    data.setdefault("name", path.stem)
    try:
        return Scenario.model_validate(data)
    except ValidationError as e:
        raise ScenarioError(f"Invalid scenario {path}:\n{e}") from e


def setup_accounts(scenario: Scenario, bank: Bank) -> dict[str, Pubkey]:
    """Allocate every named account in ``bank`` and return name -> key."""
    keys: dict[str, Pubkey] = {}
    for spec in scenario.accounts:
        if spec.kind == "native_mint":
            key = bank.native_mint
            bank.create_native_mint()
        elif spec.kind == "wallet":
            key = address_for(spec.name)
            bank.create_account(key, lamports=spec.lamports or 0, space=spec.space or 0)
        else:
            key = address_for(spec.name)
            space = Mint.LEN if spec.kind == "mint" else Account.LEN
            if spec.space is not None:
                space = spec.space
            bank.create_account(key, lamports=spec.lamports, space=space, owner=bank.program_id)
        keys[spec.name] = key
        logger.debug("Account %s (%s) at %s", spec.name, spec.kind, key)
    return keys


def build_instruction(step: StepSpec, keys: dict[str, Pubkey], program_id: Pubkey) -> Instruction:
    """Turn a validated step into an encoded instruction."""

    # Required names were checked when the step was validated
    def key(name: str | None) -> Pubkey:
        return keys[name]

    def optional_key(name: str | None) -> Pubkey | None:
        return keys[name] if name is not None else None

    op = step.op
    if op == "initialize_mint":
        return ix.initialize_mint(
            program_id,
            key(step.mint),
            key(step.mint_authority),
            optional_key(step.freeze_authority),
            step.decimals,
        )
    if op == "initialize_account":
        return ix.initialize_account(program_id, key(step.account), key(step.mint), key(step.owner))
    if op == "transfer":
        return ix.transfer(
            program_id, key(step.source), key(step.destination), key(step.authority), step.amount
        )
    if op == "transfer_checked":
        return ix.transfer_checked(
            program_id,
            key(step.source),
            key(step.mint),
            key(step.destination),
            key(step.authority),
            step.amount,
            step.decimals,
        )
    if op == "approve":
        return ix.approve(
            program_id, key(step.source), key(step.delegate), key(step.owner), step.amount
        )
    if op == "revoke":
        return ix.revoke(program_id, key(step.source), key(step.owner))
    if op == "set_authority":
        return ix.set_authority(
            program_id,
            key(step.account),
            optional_key(step.new_authority),
            ix.AuthorityType[step.authority_type.upper()],
            key(step.authority),
        )
    if op == "mint_to":
        return ix.mint_to(
            program_id, key(step.mint), key(step.destination), key(step.authority), step.amount
        )
    if op == "burn":
        return ix.burn(
            program_id, key(step.account), key(step.mint), key(step.authority), step.amount
        )
    if op == "sync_native":
        return ix.sync_native(program_id, key(step.account))
    if op == "close_account":
        return ix.close_account(
            program_id, key(step.account), key(step.destination), key(step.authority)
        )
    if op == "freeze_account":
        return ix.freeze_account(program_id, key(step.account), key(step.mint), key(step.authority))
    if op == "thaw_account":
        return ix.thaw_account(program_id, key(step.account), key(step.mint), key(step.authority))
    raise ValueError(f"{op} is not an instruction")


def _signers(step: StepSpec, keys: dict[str, Pubkey]) -> list[Pubkey]:
    if step.signers is not None:
        return [keys[name] for name in step.signers]
    role = DEFAULT_SIGNER_FIELD.get(step.op)
    if role is None:
        return []
    return [keys[getattr(step, role)]]


def _run_step(index: int, step: StepSpec, keys: dict[str, Pubkey], bank: Bank) -> StepResult:
    error: ProgramError | None = None
    if step.op == "airdrop":
        bank.airdrop(keys[step.account], step.amount)
    else:
        instruction = build_instruction(step, keys, bank.program_id)
        try:
            bank.process(instruction, _signers(step, keys))
        except ProgramError as e:
            error = e

    actual = error.kind if error else None
    passed = actual == step.expect_error
    if passed:
        message = "ok"
    elif step.expect_error is None:
        message = f"unexpected {error}"
    elif error is None:
        message = f"expected {step.expect_error}, but the step succeeded"
    else:
        message = f"expected {step.expect_error}, got {error}"

    return StepResult(
        index=index,
        op=step.op,
        passed=passed,
        error=actual,
        expected_error=step.expect_error,
        message=message,
    )


def describe_account(bank: Bank, key: Pubkey) -> dict[str, Any]:
    """Lamports plus the decoded record, if the account holds one."""
    stored = bank.get_account(key)
    if stored is None:
        return {"address": str(key), "exists": False}

    result: dict[str, Any] = {
        "address": str(key),
        "lamports": stored.lamports,
        "owner": str(stored.owner),
    }
    if stored.owner == bank.program_id:
        if len(stored.data) == Mint.LEN:
            result["mint"] = Mint.unpack_unchecked(stored.data).to_dict()
        elif len(stored.data) == Account.LEN:
            result["token_account"] = Account.unpack_unchecked(stored.data).to_dict()
    return result


def run_scenario(scenario: Scenario, bank: Bank | None = None) -> ScenarioReport:
    """Execute every step in order and collect the outcome.

    Steps keep running after a failure so the report shows all of them.
    """
    bank = bank or Bank()
    keys = setup_accounts(scenario, bank)
    report = ScenarioReport(name=scenario.name)

    for index, step in enumerate(scenario.steps):
        result = _run_step(index, step, keys, bank)
        report.steps.append(result)
        if result.passed:
            logger.debug("Step %d %s: %s", index, step.op, result.message)
        else:
            logger.warning("Step %d %s failed: %s", index, step.op, result.message)

    for spec in scenario.accounts:
        key = keys[spec.name]
        described = describe_account(bank, key)
        report.accounts[spec.name] = described
        if spec.kind == "mint" and described.get("mint", {}).get("is_initialized"):
            report.supply_consistent[spec.name] = bank.token_supply_consistent(key)

    return report
