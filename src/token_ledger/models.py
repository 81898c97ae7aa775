"""Pydantic models for scenario input validation."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .checks import U64_MAX
from .error import error_names

AccountKind = Literal["wallet", "mint", "token_account", "native_mint"]

Operation = Literal[
    "initialize_mint",
    "initialize_account",
    "transfer",
    "transfer_checked",
    "approve",
    "revoke",
    "set_authority",
    "mint_to",
    "burn",
    "sync_native",
    "close_account",
    "freeze_account",
    "thaw_account",
    "airdrop",
]

AuthorityName = Literal["mint_tokens", "freeze_account", "account_owner", "close_account"]

# Fields each operation cannot do without
REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "initialize_mint": ("mint", "mint_authority", "decimals"),
    "initialize_account": ("account", "mint", "owner"),
    "transfer": ("source", "destination", "authority", "amount"),
    "transfer_checked": ("source", "mint", "destination", "authority", "amount", "decimals"),
    "approve": ("source", "delegate", "owner", "amount"),
    "revoke": ("source", "owner"),
    "set_authority": ("account", "authority", "authority_type"),
    "mint_to": ("mint", "destination", "authority", "amount"),
    "burn": ("account", "mint", "authority", "amount"),
    "sync_native": ("account",),
    "close_account": ("account", "destination", "authority"),
    "freeze_account": ("account", "mint", "authority"),
    "thaw_account": ("account", "mint", "authority"),
    "airdrop": ("account", "amount"),
}

# Step fields that name an entry in the scenario's accounts list
REFERENCE_FIELDS = (
    "mint",
    "account",
    "source",
    "destination",
    "authority",
    "owner",
    "delegate",
    "mint_authority",
    "freeze_authority",
    "new_authority",
)

NAME_PATTERN = r"^[A-Za-z_][A-Za-z0-9_\-]*$"


class AccountSpec(BaseModel):
    """A named key, and the storage to allocate for it."""

    name: str = Field(..., min_length=1, max_length=64, pattern=NAME_PATTERN)
    kind: AccountKind = Field(default="wallet", description="What the storage will hold")
    lamports: int | None = Field(None, ge=0, le=U64_MAX, description="Defaults to rent-exempt")
    space: int | None = Field(None, ge=0, le=10 * 1024 * 1024, description="Data length override")


class StepSpec(BaseModel):
    """One instruction (or host action) and its expected outcome."""

    op: Operation
    mint: str | None = None
    account: str | None = None
    source: str | None = None
    destination: str | None = None
    authority: str | None = None
    owner: str | None = None
    delegate: str | None = None
    mint_authority: str | None = None
    freeze_authority: str | None = None
    new_authority: str | None = None
    authority_type: AuthorityName | None = None
    amount: int | None = Field(None, ge=0, le=U64_MAX)
    decimals: int | None = Field(None, ge=0, le=255)
    signers: list[str] | None = Field(None, description="Defaults to the step's authority")
    expect_error: str | None = Field(None, description="Error kind the step must fail with")

    @field_validator("expect_error")
    @classmethod
    def validate_expect_error(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if v not in error_names():
            raise ValueError(f"Unknown error kind '{v}'. Must be one of: {error_names()}")
        return v

    @model_validator(mode="after")
    def check_required_fields(self) -> "StepSpec":
        missing = [name for name in REQUIRED_FIELDS[self.op] if getattr(self, name) is None]
        if missing:
            raise ValueError(f"{self.op} requires: {', '.join(missing)}")
        return self

    def references(self) -> list[str]:
        """Every account name this step mentions."""
        names = [getattr(self, name) for name in REFERENCE_FIELDS]
        names.extend(self.signers or [])
        return [name for name in names if name is not None]


class Scenario(BaseModel):
    """A sequence of steps run against a fresh bank."""

    name: str = Field(default="scenario", min_length=1, max_length=200)
    description: str | None = None
    accounts: list[AccountSpec] = Field(default_factory=list)
    steps: list[StepSpec] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_names(self) -> "Scenario":
        seen: set[str] = set()
        for spec in self.accounts:
            if spec.name in seen:
                raise ValueError(f"Duplicate account name '{spec.name}'")
            seen.add(spec.name)

        if sum(1 for spec in self.accounts if spec.kind == "native_mint") > 1:
            raise ValueError("At most one native_mint account")

        for index, step in enumerate(self.steps):
            for ref in step.references():
                if ref not in seen:
                    raise ValueError(f"Step {index} ({step.op}) references unknown account '{ref}'")
        return self
