"""Pytest configuration and fixtures for token-ledger tests."""

from dataclasses import dataclass
from pathlib import Path

import pytest
from solders.pubkey import Pubkey

from token_ledger import instruction as ix
from token_ledger.account_info import Instruction
from token_ledger.bank import Bank
from token_ledger.pubkeys import TOKEN_PROGRAM_ID
from token_ledger.state import Account, Mint

PROGRAM_ID = TOKEN_PROGRAM_ID
DECIMALS = 6
INITIAL_BALANCE = 1000


@dataclass
class TokenSetup:
    """A bank with one mint, two funded owners and their token accounts.

    ``alice_account`` holds ``INITIAL_BALANCE`` tokens and ``bob_account``
    holds none, so the mint's supply starts at ``INITIAL_BALANCE``.
    """

    bank: Bank
    mint: Pubkey
    mint_authority: Pubkey
    freeze_authority: Pubkey
    alice: Pubkey
    bob: Pubkey
    alice_account: Pubkey
    bob_account: Pubkey

    def run(self, instruction: Instruction, *signers: Pubkey) -> None:
        self.bank.process(instruction, signers)

    def account(self, key: Pubkey) -> Account:
        return self.bank.get_token_account(key)

    def balance(self, key: Pubkey) -> int:
        return self.account(key).amount

    def supply(self) -> int:
        return self.bank.get_mint(self.mint).supply

    def new_account(self, owner: Pubkey, mint: Pubkey | None = None) -> Pubkey:
        """Create and initialize an empty token account for ``owner``."""
        key = Pubkey.new_unique()
        self.bank.create_token_account(key)
        self.run(ix.initialize_account(PROGRAM_ID, key, mint or self.mint, owner))
        return key

    def new_mint(
        self,
        authority: Pubkey,
        freeze_authority: Pubkey | None = None,
        decimals: int = DECIMALS,
    ) -> Pubkey:
        key = Pubkey.new_unique()
        self.bank.create_mint_account(key)
        self.run(ix.initialize_mint(PROGRAM_ID, key, authority, freeze_authority, decimals))
        return key


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Create an isolated data directory for testing."""
    data_dir = tmp_path / ".token-ledger"
    data_dir.mkdir(parents=True)
    return data_dir


@pytest.fixture
def bank() -> Bank:
    """A fresh bank with default rent parameters."""
    return Bank(PROGRAM_ID)


@pytest.fixture
def token(bank: Bank) -> TokenSetup:
    """An initialized mint with a funded and an empty token account."""
    mint_authority = Pubkey.new_unique()
    freeze_authority = Pubkey.new_unique()
    alice = Pubkey.new_unique()
    bob = Pubkey.new_unique()
    mint = Pubkey.new_unique()
    alice_account = Pubkey.new_unique()
    bob_account = Pubkey.new_unique()

    bank.create_mint_account(mint)
    bank.create_token_account(alice_account)
    bank.create_token_account(bob_account)

    setup = TokenSetup(
        bank=bank,
        mint=mint,
        mint_authority=mint_authority,
        freeze_authority=freeze_authority,
        alice=alice,
        bob=bob,
        alice_account=alice_account,
        bob_account=bob_account,
    )
    setup.run(ix.initialize_mint(PROGRAM_ID, mint, mint_authority, freeze_authority, DECIMALS))
    setup.run(ix.initialize_account(PROGRAM_ID, alice_account, mint, alice))
    setup.run(ix.initialize_account(PROGRAM_ID, bob_account, mint, bob))
    setup.run(
        ix.mint_to(PROGRAM_ID, mint, alice_account, mint_authority, INITIAL_BALANCE),
        mint_authority,
    )
    return setup


@pytest.fixture
def mint_bytes() -> bytes:
    """An initialized mint record with both authorities set."""
    return Mint(
        mint_authority=Pubkey(bytes([1] * 32)),
        supply=1_000_000,
        decimals=6,
        is_initialized=True,
        freeze_authority=Pubkey(bytes([2] * 32)),
    ).to_bytes()


@pytest.fixture
def account_bytes() -> bytes:
    """An initialized token account record with a delegate."""
    return Account(
        mint=Pubkey(bytes([3] * 32)),
        owner=Pubkey(bytes([4] * 32)),
        amount=500,
        is_initialized=True,
        delegate=Pubkey(bytes([5] * 32)),
        delegated_amount=200,
    ).to_bytes()
