"""In-memory host for running token instructions.

``Bank`` plays the part of the execution environment: it owns every
account's lamports, data and owner, builds ``AccountInfo`` views for an
instruction, and keeps the results only if the instruction succeeds.
Tests, scenarios and the CLI all run against it.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace

from solders.pubkey import Pubkey

from .account_info import AccountInfo, Instruction
from .entrypoint import process_instruction
from .error import IncorrectProgramId
from .logging import get_logger
from .processor import Processor
from .pubkeys import NATIVE_MINT, RENT_SYSVAR_ID, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from .rent import Rent
from .state import Account, Mint

logger = get_logger("bank")

NATIVE_DECIMALS = 9


@dataclass
class StoredAccount:
    """An account as the host persists it between invocations."""

    lamports: int
    data: bytes
    owner: Pubkey
    executable: bool = False


class Bank:
    """Account store with all-or-nothing instruction execution."""

    def __init__(
        self,
        program_id: Pubkey = TOKEN_PROGRAM_ID,
        rent: Rent | None = None,
        native_mint: Pubkey = NATIVE_MINT,
    ):
        self.program_id = program_id
        self.rent = rent or Rent()
        self.native_mint = native_mint
        self.processor = Processor(program_id, native_mint)
        self._accounts: dict[Pubkey, StoredAccount] = {}
        self.create_rent_sysvar()

    def __contains__(self, key: Pubkey) -> bool:
        return key in self._accounts

    def create_account(
        self,
        key: Pubkey,
        lamports: int | None = None,
        space: int = 0,
        owner: Pubkey | None = None,
    ) -> StoredAccount:
        """Allocate a zero-filled account.

        ``lamports`` defaults to the rent-exempt minimum for ``space`` and
        ``owner`` to the system program.

        Raises:
            ValueError: If the key is taken or the balance is negative.
        """
        if key in self._accounts:
            raise ValueError(f"Account {key} already exists")
        if lamports is None:
            lamports = self.rent.minimum_balance(space)
        if lamports < 0:
            raise ValueError("Lamports cannot be negative")

        account = StoredAccount(
            lamports=lamports,
            data=bytes(space),
            owner=owner if owner is not None else SYSTEM_PROGRAM_ID,
        )
        self._accounts[key] = account
        return account

    def create_mint_account(self, key: Pubkey, lamports: int | None = None) -> StoredAccount:
        """Allocate uninitialized mint storage owned by the program."""
        return self.create_account(key, lamports, Mint.LEN, self.program_id)

    def create_token_account(self, key: Pubkey, lamports: int | None = None) -> StoredAccount:
        """Allocate uninitialized token account storage owned by the program."""
        return self.create_account(key, lamports, Account.LEN, self.program_id)

    def create_rent_sysvar(self) -> StoredAccount:
        """Publish (or republish) this bank's rent parameters."""
        data = self.rent.to_bytes()
        account = StoredAccount(
            lamports=self.rent.minimum_balance(len(data)),
            data=data,
            owner=SYSTEM_PROGRAM_ID,
        )
        self._accounts[RENT_SYSVAR_ID] = account
        return account

    def create_native_mint(self) -> StoredAccount:
        """Install the wrapped-native mint, which has no mint authority."""
        account = self.create_mint_account(self.native_mint)
        mint = Mint(decimals=NATIVE_DECIMALS, is_initialized=True)
        account.data = mint.to_bytes()
        return account

    def get_account(self, key: Pubkey) -> StoredAccount | None:
        return self._accounts.get(key)

    def snapshot(self) -> dict[Pubkey, StoredAccount]:
        """Copy of every stored account, for before/after comparisons."""
        return {key: replace(account) for key, account in self._accounts.items()}

    def airdrop(self, key: Pubkey, lamports: int) -> StoredAccount:
        """Credit lamports, creating a system-owned wallet if needed."""
        if lamports < 0:
            raise ValueError("Cannot airdrop a negative amount")
        account = self._accounts.get(key)
        if account is None:
            return self.create_account(key, lamports=lamports)
        account.lamports += lamports
        return account

    def get_mint(self, key: Pubkey) -> Mint:
        return Mint.unpack_unchecked(self._require(key).data)

    def get_token_account(self, key: Pubkey) -> Account:
        return Account.unpack_unchecked(self._require(key).data)

    def token_accounts(self, mint_key: Pubkey) -> dict[Pubkey, Account]:
        """Initialized token accounts of ``mint_key``."""
        result: dict[Pubkey, Account] = {}
        for key, stored in self._accounts.items():
            if stored.owner != self.program_id or len(stored.data) != Account.LEN:
                continue
            account = Account.unpack_unchecked(stored.data)
            if account.is_initialized and account.mint == mint_key:
                result[key] = account
        return result

    def token_supply_consistent(self, mint_key: Pubkey) -> bool:
        """Whether the mint's supply equals the sum of its account balances.

        Wrapped-native balances mirror lamports and are never minted, so the
        check only makes sense for ordinary mints.
        """
        mint = self.get_mint(mint_key)
        total = sum(account.amount for account in self.token_accounts(mint_key).values())
        return mint.supply == total

    def process(self, instruction: Instruction, signers: Iterable[Pubkey] = ()) -> None:
        """Execute ``instruction``, committing its writes only on success.

        A meta is treated as signed only when its key is in ``signers``.
        Keys that appear more than once share one ``AccountInfo``.

        Raises:
            ProgramError: From the processor. Nothing is committed.
        """
        if instruction.program_id != self.program_id:
            raise IncorrectProgramId(f"Bank hosts {self.program_id}, not {instruction.program_id}")

        signer_set = set(signers)
        views: dict[Pubkey, AccountInfo] = {}
        writable: set[Pubkey] = set()
        ordered: list[AccountInfo] = []

        for meta in instruction.accounts:
            info = views.get(meta.pubkey)
            if info is None:
                stored = self._accounts.get(meta.pubkey)
                if stored is None:
                    stored = StoredAccount(lamports=0, data=b"", owner=SYSTEM_PROGRAM_ID)
                info = AccountInfo(
                    key=meta.pubkey,
                    lamports=stored.lamports,
                    data=bytearray(stored.data),
                    owner=stored.owner,
                    executable=stored.executable,
                )
                views[meta.pubkey] = info
            info.is_signer = info.is_signer or (meta.is_signer and meta.pubkey in signer_set)
            info.is_writable = info.is_writable or meta.is_writable
            if meta.is_writable:
                writable.add(meta.pubkey)
            ordered.append(info)

        process_instruction(self.processor, ordered, instruction.data)

        for key in writable:
            info = views[key]
            self._accounts[key] = StoredAccount(
                lamports=info.lamports,
                data=bytes(info.data),
                owner=info.owner,
                executable=info.executable,
            )
        logger.debug("Committed %d writable accounts", len(writable))

    def _require(self, key: Pubkey) -> StoredAccount:
        account = self._accounts.get(key)
        if account is None:
            raise KeyError(f"No account {key}")
        return account
