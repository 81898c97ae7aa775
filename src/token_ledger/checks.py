"""Authorization and invariant checks shared by the instruction handlers.

Each check either returns quietly or raises the specific error for the
violated precondition. Handlers call them in order and the first failure
aborts the instruction.
"""

from enum import Enum

from solders.pubkey import Pubkey

from .account_info import AccountInfo
from .error import (
    AccountFrozen,
    DecimalsMismatch,
    IncorrectProgramId,
    InvalidOwner,
    MintMismatch,
    NotInitialized,
    NotRentExempt,
    Overflow,
)
from .rent import Rent
from .state import Account, Mint

U64_MAX = 2**64 - 1


class AuthorityRole(Enum):
    """Capacity in which a signer is acting on a token account."""

    OWNER = "owner"
    DELEGATE = "delegate"


def check_program_account(program_id: Pubkey, info: AccountInfo) -> None:
    """The account's storage must belong to this program."""
    if info.owner != program_id:
        raise IncorrectProgramId(f"{info.key} is owned by {info.owner}")


def check_writable(info: AccountInfo) -> None:
    if not info.is_writable:
        raise InvalidOwner(f"{info.key} is not writable")


def check_initialized(account: Account) -> None:
    if not account.is_initialized:
        raise NotInitialized()


def check_not_frozen(account: Account) -> None:
    if account.is_frozen:
        raise AccountFrozen()


def check_authority(expected: Pubkey, authority: AccountInfo) -> None:
    """``authority`` must be ``expected`` and must have signed."""
    if authority.key != expected:
        raise InvalidOwner(f"expected {expected}, got {authority.key}")
    if not authority.is_signer:
        raise InvalidOwner(f"{authority.key} did not sign")


def resolve_account_authority(
    account: Account, authority: AccountInfo, amount: int
) -> AuthorityRole:
    """Decide whether ``authority`` may move ``amount`` out of ``account``.

    The delegate path is taken when the account has a signing delegate equal
    to the authority key and ``amount`` fits within the approved allowance.
    Otherwise the authority must be the signing owner, which also covers an
    owner that approved itself.

    Raises:
        InvalidOwner: For every other combination.
    """
    if account.delegate is not None and account.delegate == authority.key:
        if authority.is_signer and amount <= account.delegated_amount:
            return AuthorityRole.DELEGATE
        if authority.key != account.owner:
            if not authority.is_signer:
                raise InvalidOwner(f"delegate {authority.key} did not sign")
            raise InvalidOwner(
                f"delegate allowance {account.delegated_amount} is below {amount}"
            )

    check_authority(account.owner, authority)
    return AuthorityRole.OWNER


def check_account_mint(account: Account, mint_key: Pubkey) -> None:
    if account.mint != mint_key:
        raise MintMismatch(f"account mint {account.mint} != {mint_key}")


def check_same_mint(source: Account, destination: Account) -> None:
    if source.mint != destination.mint:
        raise MintMismatch(f"{source.mint} != {destination.mint}")


def check_rent_exempt(rent: Rent, info: AccountInfo) -> None:
    if not rent.is_exempt(info.lamports, info.data_len):
        raise NotRentExempt(
            f"{info.lamports} lamports, need {rent.minimum_balance(info.data_len)}"
        )


def check_decimals(expected: int, mint: Mint) -> None:
    if expected != mint.decimals:
        raise DecimalsMismatch(f"expected {expected}, mint has {mint.decimals}")


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > U64_MAX:
        raise Overflow(f"{a} + {b}")
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise Overflow(f"{a} - {b}")
    return result
