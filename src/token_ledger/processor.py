"""State-transition handlers for the token ledger.

``Processor.process`` decodes one instruction and routes it to the handler
for its type. Handlers read their accounts positionally, validate every
precondition through ``token_ledger.checks`` and only then write the
updated records back into the account buffers. Any failed check raises
before the first write, so a rejected instruction leaves every buffer as
it was.
"""

from collections.abc import Callable, Sequence

from solders.pubkey import Pubkey

from . import instruction as ix
from .account_info import AccountInfo, next_account_info
from .checks import (
    AuthorityRole,
    check_account_mint,
    check_authority,
    check_decimals,
    check_initialized,
    check_not_frozen,
    check_program_account,
    check_rent_exempt,
    check_same_mint,
    check_writable,
    checked_add,
    checked_sub,
    resolve_account_authority,
)
from .error import (
    AccountFrozen,
    AlreadyInitialized,
    InsufficientFunds,
    InvalidAccountData,
    InvalidInstruction,
    InvalidMint,
    InvalidState,
    MintCannotFreeze,
    NonNativeNotSupported,
    NotInitialized,
)
from .logging import get_logger
from .pubkeys import NATIVE_MINT, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from .rent import Rent
from .state import Account, Mint

logger = get_logger("processor")

Accounts = Sequence[AccountInfo]


class Processor:
    """Executes token instructions for one program id.

    Args:
        program_id: Address this program runs under. Records must be owned
            by it to be read or written.
        native_mint: Mint whose accounts wrap the native currency.
    """

    def __init__(self, program_id: Pubkey = TOKEN_PROGRAM_ID, native_mint: Pubkey = NATIVE_MINT):
        self.program_id = program_id
        self.native_mint = native_mint
        self._handlers: dict[type, Callable[[Accounts, ix.TokenInstruction], None]] = {
            ix.InitializeMint: self._initialize_mint,
            ix.InitializeAccount: self._initialize_account,
            ix.Transfer: self._transfer,
            ix.TransferChecked: self._transfer_checked,
            ix.Approve: self._approve,
            ix.Revoke: self._revoke,
            ix.SetAuthority: self._set_authority,
            ix.MintTo: self._mint_to,
            ix.Burn: self._burn,
            ix.SyncNative: self._sync_native,
            ix.CloseAccount: self._close_account,
            ix.FreezeAccount: self._freeze_account,
            ix.ThawAccount: self._thaw_account,
        }

    def process(self, accounts: Accounts, data: bytes | bytearray) -> None:
        """Decode ``data`` and apply it to ``accounts``.

        Raises:
            ProgramError: The first precondition that failed.
        """
        instruction = ix.unpack(data)
        name = type(instruction).__name__
        logger.debug(
            "Instruction: %s",
            name,
            extra={"extra": {"instruction": name, "accounts": len(accounts)}},
        )
        self._handlers[type(instruction)](accounts, instruction)

    # -- helpers ---------------------------------------------------------

    def _load_account(self, info: AccountInfo, writable: bool = True) -> Account:
        check_program_account(self.program_id, info)
        if writable:
            check_writable(info)
        return Account.unpack_unchecked(info.data)

    def _load_mint(self, info: AccountInfo, writable: bool = True) -> Mint:
        check_program_account(self.program_id, info)
        if writable:
            check_writable(info)
        return Mint.unpack_unchecked(info.data)

    # -- initialization --------------------------------------------------

    def _initialize_mint(self, accounts: Accounts, instruction: ix.InitializeMint) -> None:
        it = iter(accounts)
        mint_info = next_account_info(it)
        rent_info = next_account_info(it)

        mint = self._load_mint(mint_info)
        if mint.is_initialized:
            raise AlreadyInitialized()
        check_rent_exempt(Rent.from_account_info(rent_info), mint_info)

        mint = Mint(
            mint_authority=instruction.mint_authority,
            supply=0,
            decimals=instruction.decimals,
            is_initialized=True,
            freeze_authority=instruction.freeze_authority,
        )
        mint.pack_into(mint_info.data)

        logger.debug(
            "InitializeMint %s: decimals=%d mint_authority=%s freeze_authority=%s",
            mint_info.key,
            mint.decimals,
            mint.mint_authority,
            mint.freeze_authority,
        )

    def _initialize_account(self, accounts: Accounts, instruction: ix.InitializeAccount) -> None:
        it = iter(accounts)
        account_info = next_account_info(it)
        mint_info = next_account_info(it)
        owner_info = next_account_info(it)
        rent_info = next_account_info(it)

        account = self._load_account(account_info)
        mint = self._load_mint(mint_info, writable=False)
        if not mint.is_initialized:
            raise InvalidMint(f"{mint_info.key} is not initialized")
        if account.is_initialized:
            raise AlreadyInitialized()
        rent = Rent.from_account_info(rent_info)
        check_rent_exempt(rent, account_info)

        account = Account(
            mint=mint_info.key,
            owner=owner_info.key,
            is_initialized=True,
        )
        if mint_info.key == self.native_mint:
            reserve = rent.minimum_balance(account_info.data_len)
            account.is_native = reserve
            account.amount = checked_sub(account_info.lamports, reserve)
        account.pack_into(account_info.data)

        logger.debug(
            "InitializeAccount %s: mint=%s owner=%s native_reserve=%s amount=%d",
            account_info.key,
            account.mint,
            account.owner,
            account.is_native,
            account.amount,
        )

    # -- balance movement ------------------------------------------------

    def _transfer(self, accounts: Accounts, instruction: ix.Transfer) -> None:
        it = iter(accounts)
        source_info = next_account_info(it)
        destination_info = next_account_info(it)
        authority_info = next_account_info(it)
        self._do_transfer(source_info, destination_info, authority_info, instruction.amount)

    def _transfer_checked(self, accounts: Accounts, instruction: ix.TransferChecked) -> None:
        it = iter(accounts)
        source_info = next_account_info(it)
        mint_info = next_account_info(it)
        destination_info = next_account_info(it)
        authority_info = next_account_info(it)
        self._do_transfer(
            source_info,
            destination_info,
            authority_info,
            instruction.amount,
            mint_info=mint_info,
            decimals=instruction.decimals,
        )

    def _do_transfer(
        self,
        source_info: AccountInfo,
        destination_info: AccountInfo,
        authority_info: AccountInfo,
        amount: int,
        mint_info: AccountInfo | None = None,
        decimals: int | None = None,
    ) -> None:
        source = self._load_account(source_info)
        destination = self._load_account(destination_info)
        check_initialized(source)
        check_initialized(destination)
        check_not_frozen(source)
        check_not_frozen(destination)
        check_same_mint(source, destination)

        if mint_info is not None and decimals is not None:
            check_account_mint(source, mint_info.key)
            mint = self._load_mint(mint_info, writable=False)
            if not mint.is_initialized:
                raise InvalidMint(f"{mint_info.key} is not initialized")
            check_decimals(decimals, mint)

        role = resolve_account_authority(source, authority_info, amount)

        if source_info.key == destination_info.key:
            logger.debug("Transfer %s: self-transfer, no-op", source_info.key)
            return

        if source.amount < amount:
            raise InsufficientFunds(f"balance {source.amount} < {amount}")

        source_before = source.amount
        destination_before = destination.amount
        source.amount = checked_sub(source.amount, amount)
        destination.amount = checked_add(destination.amount, amount)
        if role is AuthorityRole.DELEGATE:
            source.delegated_amount = checked_sub(source.delegated_amount, amount)
            if source.delegated_amount == 0:
                source.delegate = None

        source.pack_into(source_info.data)
        destination.pack_into(destination_info.data)

        logger.debug(
            "Transfer %d by %s %s: source %s %d -> %d, destination %s %d -> %d",
            amount,
            role.value,
            authority_info.key,
            source_info.key,
            source_before,
            source.amount,
            destination_info.key,
            destination_before,
            destination.amount,
        )

    def _mint_to(self, accounts: Accounts, instruction: ix.MintTo) -> None:
        it = iter(accounts)
        mint_info = next_account_info(it)
        destination_info = next_account_info(it)
        authority_info = next_account_info(it)

        mint = self._load_mint(mint_info)
        destination = self._load_account(destination_info)
        if not mint.is_initialized:
            raise InvalidMint(f"{mint_info.key} is not initialized")
        if mint.mint_authority is None:
            raise InvalidMint("minting is disabled for this mint")
        check_authority(mint.mint_authority, authority_info)
        check_initialized(destination)
        check_account_mint(destination, mint_info.key)

        supply_before = mint.supply
        mint.supply = checked_add(mint.supply, instruction.amount)
        destination.amount = checked_add(destination.amount, instruction.amount)

        mint.pack_into(mint_info.data)
        destination.pack_into(destination_info.data)

        logger.debug(
            "MintTo %d into %s: supply %d -> %d, balance %d",
            instruction.amount,
            destination_info.key,
            supply_before,
            mint.supply,
            destination.amount,
        )

    def _burn(self, accounts: Accounts, instruction: ix.Burn) -> None:
        it = iter(accounts)
        account_info = next_account_info(it)
        mint_info = next_account_info(it)
        authority_info = next_account_info(it)

        account = self._load_account(account_info)
        mint = self._load_mint(mint_info)
        check_initialized(account)
        check_not_frozen(account)
        if not mint.is_initialized:
            raise InvalidMint(f"{mint_info.key} is not initialized")
        check_account_mint(account, mint_info.key)
        check_authority(account.owner, authority_info)
        if account.amount < instruction.amount:
            raise InsufficientFunds(f"balance {account.amount} < {instruction.amount}")

        balance_before = account.amount
        supply_before = mint.supply
        account.amount = checked_sub(account.amount, instruction.amount)
        mint.supply = checked_sub(mint.supply, instruction.amount)

        account.pack_into(account_info.data)
        mint.pack_into(mint_info.data)

        logger.debug(
            "Burn %d from %s: balance %d -> %d, supply %d -> %d",
            instruction.amount,
            account_info.key,
            balance_before,
            account.amount,
            supply_before,
            mint.supply,
        )

    def _sync_native(self, accounts: Accounts, instruction: ix.SyncNative) -> None:
        it = iter(accounts)
        native_info = next_account_info(it)

        account = self._load_account(native_info)
        check_initialized(account)
        if account.is_native is None:
            raise NonNativeNotSupported()

        new_amount = checked_sub(native_info.lamports, account.is_native)
        if new_amount < account.amount:
            raise InvalidState(f"wrapped balance would shrink from {account.amount} to {new_amount}")

        amount_before = account.amount
        account.amount = new_amount
        account.pack_into(native_info.data)

        logger.debug(
            "SyncNative %s: lamports=%d reserve=%d amount %d -> %d",
            native_info.key,
            native_info.lamports,
            account.is_native,
            amount_before,
            account.amount,
        )

    # -- delegation ------------------------------------------------------

    def _approve(self, accounts: Accounts, instruction: ix.Approve) -> None:
        it = iter(accounts)
        source_info = next_account_info(it)
        delegate_info = next_account_info(it)
        owner_info = next_account_info(it)

        source = self._load_account(source_info)
        check_initialized(source)
        check_not_frozen(source)
        check_authority(source.owner, owner_info)

        source.delegate = delegate_info.key
        source.delegated_amount = instruction.amount
        source.pack_into(source_info.data)

        logger.debug(
            "Approve %s: delegate=%s delegated_amount=%d",
            source_info.key,
            source.delegate,
            source.delegated_amount,
        )

    def _revoke(self, accounts: Accounts, instruction: ix.Revoke) -> None:
        it = iter(accounts)
        source_info = next_account_info(it)
        owner_info = next_account_info(it)

        source = self._load_account(source_info)
        check_initialized(source)
        check_not_frozen(source)
        check_authority(source.owner, owner_info)

        previous = source.delegate
        source.delegate = None
        source.delegated_amount = 0
        source.pack_into(source_info.data)

        logger.debug("Revoke %s: delegate %s cleared", source_info.key, previous)

    # -- lifecycle -------------------------------------------------------

    def _close_account(self, accounts: Accounts, instruction: ix.CloseAccount) -> None:
        it = iter(accounts)
        source_info = next_account_info(it)
        destination_info = next_account_info(it)
        authority_info = next_account_info(it)

        if source_info.key == destination_info.key:
            raise InvalidAccountData("cannot close an account into itself")
        source = self._load_account(source_info)
        check_writable(destination_info)
        check_initialized(source)
        if not source.is_native_account and source.amount != 0:
            raise InvalidState(f"non-native account still holds {source.amount}")
        check_authority(source.owner, authority_info)

        moved = source_info.lamports
        destination_info.lamports = checked_add(destination_info.lamports, moved)
        source_info.lamports = 0
        source_info.assign(SYSTEM_PROGRAM_ID)
        source_info.data[:] = bytes(len(source_info.data))

        logger.debug(
            "CloseAccount %s: moved %d lamports to %s",
            source_info.key,
            moved,
            destination_info.key,
        )

    def _freeze_account(self, accounts: Accounts, instruction: ix.FreezeAccount) -> None:
        self._toggle_freeze(accounts, freeze=True)

    def _thaw_account(self, accounts: Accounts, instruction: ix.ThawAccount) -> None:
        self._toggle_freeze(accounts, freeze=False)

    def _toggle_freeze(self, accounts: Accounts, freeze: bool) -> None:
        it = iter(accounts)
        account_info = next_account_info(it)
        mint_info = next_account_info(it)
        authority_info = next_account_info(it)

        account = self._load_account(account_info)
        check_initialized(account)
        if account.is_frozen == freeze:
            raise InvalidState("already frozen" if freeze else "not frozen")
        if account.is_native_account:
            raise NonNativeNotSupported("native accounts cannot be frozen")
        check_account_mint(account, mint_info.key)

        mint = self._load_mint(mint_info, writable=False)
        if not mint.is_initialized:
            raise InvalidMint(f"{mint_info.key} is not initialized")
        if mint.freeze_authority is None:
            raise MintCannotFreeze()
        check_authority(mint.freeze_authority, authority_info)

        account.is_frozen = freeze
        account.pack_into(account_info.data)

        logger.debug(
            "%s %s by %s",
            "FreezeAccount" if freeze else "ThawAccount",
            account_info.key,
            authority_info.key,
        )

    # -- authorities -----------------------------------------------------

    def _set_authority(self, accounts: Accounts, instruction: ix.SetAuthority) -> None:
        it = iter(accounts)
        target_info = next_account_info(it)
        authority_info = next_account_info(it)

        check_program_account(self.program_id, target_info)
        check_writable(target_info)

        if target_info.data_len == Mint.LEN:
            self._set_mint_authority(target_info, authority_info, instruction)
        elif target_info.data_len == Account.LEN:
            self._set_account_authority(target_info, authority_info, instruction)
        else:
            raise InvalidAccountData(f"{target_info.data_len} bytes is neither a mint nor an account")

    def _set_mint_authority(
        self,
        mint_info: AccountInfo,
        authority_info: AccountInfo,
        instruction: ix.SetAuthority,
    ) -> None:
        mint = Mint.unpack_unchecked(mint_info.data)
        if not mint.is_initialized:
            raise NotInitialized()

        if instruction.authority_type is ix.AuthorityType.MINT_TOKENS:
            if mint.mint_authority is None:
                raise InvalidMint("mint authority is already disabled")
            check_authority(mint.mint_authority, authority_info)
            previous = mint.mint_authority
            mint.mint_authority = instruction.new_authority
        elif instruction.authority_type is ix.AuthorityType.FREEZE_ACCOUNT:
            if mint.freeze_authority is None:
                raise MintCannotFreeze()
            check_authority(mint.freeze_authority, authority_info)
            previous = mint.freeze_authority
            mint.freeze_authority = instruction.new_authority
        else:
            raise InvalidInstruction(
                f"{instruction.authority_type.name} does not apply to a mint"
            )

        mint.pack_into(mint_info.data)
        logger.debug(
            "SetAuthority %s %s: %s -> %s",
            mint_info.key,
            instruction.authority_type.name,
            previous,
            instruction.new_authority,
        )

    def _set_account_authority(
        self,
        account_info: AccountInfo,
        authority_info: AccountInfo,
        instruction: ix.SetAuthority,
    ) -> None:
        account = Account.unpack_unchecked(account_info.data)
        check_initialized(account)

        if instruction.authority_type is not ix.AuthorityType.ACCOUNT_OWNER:
            raise InvalidInstruction(
                f"{instruction.authority_type.name} does not apply to a token account"
            )
        if account.is_frozen:
            raise AccountFrozen()
        check_authority(account.owner, authority_info)
        if instruction.new_authority is None:
            raise InvalidInstruction("an account must always have an owner")

        previous = account.owner
        account.owner = instruction.new_authority
        account.delegate = None
        account.delegated_amount = 0
        account.pack_into(account_info.data)

        logger.debug(
            "SetAuthority %s ACCOUNT_OWNER: %s -> %s, delegate cleared",
            account_info.key,
            previous,
            account.owner,
        )
