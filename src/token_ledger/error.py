"""Errors raised by the token ledger.

Every failure aborts the whole invocation, so there is a single flat
hierarchy with no retryable/fatal split:

- ``ProgramError`` is the base of everything the processor raises.
- Host-level errors (malformed account data, wrong program owner, missing
  accounts, ...) subclass it directly.
- ``TokenError`` subclasses carry this program's own error kinds.

At the process boundary each error is reduced to a single integer code.
Host-level errors use ``index << 32``; custom errors use their own number,
except custom 0 which the host reserves for success and therefore reports
as ``1 << 32``.
"""

BUILTIN_BIT_SHIFT = 32

CUSTOM_ZERO = 1 << BUILTIN_BIT_SHIFT


class ProgramError(Exception):
    """Base exception for all processor failures."""

    builtin_index: int = 0
    message = "Program error"

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)

    @property
    def kind(self) -> str:
        """Name of the error kind, e.g. ``"InsufficientFunds"``."""
        return type(self).__name__

    @property
    def code(self) -> int:
        """Integer reported at the process boundary."""
        return self.builtin_index << BUILTIN_BIT_SHIFT


class InvalidArgument(ProgramError):
    builtin_index = 2
    message = "Invalid argument"


class InvalidInstructionData(ProgramError):
    builtin_index = 3
    message = "Invalid instruction data"


class InvalidAccountData(ProgramError):
    builtin_index = 4
    message = "Invalid account data"


class IncorrectProgramId(ProgramError):
    builtin_index = 7
    message = "Account not owned by this program"


class UninitializedAccount(ProgramError):
    builtin_index = 10
    message = "Account is not initialized"


class NotEnoughAccountKeys(ProgramError):
    builtin_index = 11
    message = "Not enough account keys for instruction"


class TokenError(ProgramError):
    """Custom error kinds specific to the token program."""

    custom_code: int = -1

    @property
    def code(self) -> int:
        return self.custom_code if self.custom_code else CUSTOM_ZERO


class AlreadyInitialized(TokenError):
    custom_code = 0
    message = "Account already initialized"


class NotInitialized(TokenError):
    custom_code = 1
    message = "Account not initialized"


class InsufficientFunds(TokenError):
    custom_code = 2
    message = "Insufficient funds"


class InvalidMint(TokenError):
    custom_code = 3
    message = "Invalid mint"


class MintMismatch(TokenError):
    custom_code = 4
    message = "Account not associated with this mint"


class InvalidOwner(TokenError):
    custom_code = 5
    message = "Invalid owner"


class Overflow(TokenError):
    custom_code = 6
    message = "Operation overflowed"


class NotRentExempt(TokenError):
    custom_code = 7
    message = "Lamport balance below rent-exempt threshold"


class InvalidInstruction(TokenError):
    custom_code = 8
    message = "Invalid instruction"


class InvalidState(TokenError):
    custom_code = 9
    message = "Invalid state"


class NonNativeNotSupported(TokenError):
    custom_code = 10
    message = "Operation not supported for this kind of account"


class AccountFrozen(TokenError):
    custom_code = 11
    message = "Account is frozen"


class MintCannotFreeze(TokenError):
    custom_code = 12
    message = "This token mint cannot freeze accounts"


class DecimalsMismatch(TokenError):
    custom_code = 13
    message = "The provided decimals value differs from the mint decimals"


TOKEN_ERRORS: tuple[type[TokenError], ...] = (
    AlreadyInitialized,
    NotInitialized,
    InsufficientFunds,
    InvalidMint,
    MintMismatch,
    InvalidOwner,
    Overflow,
    NotRentExempt,
    InvalidInstruction,
    InvalidState,
    NonNativeNotSupported,
    AccountFrozen,
    MintCannotFreeze,
    DecimalsMismatch,
)

BUILTIN_ERRORS: tuple[type[ProgramError], ...] = (
    InvalidArgument,
    InvalidInstructionData,
    InvalidAccountData,
    IncorrectProgramId,
    UninitializedAccount,
    NotEnoughAccountKeys,
)

_BY_NAME: dict[str, type[ProgramError]] = {
    cls.__name__: cls for cls in (*TOKEN_ERRORS, *BUILTIN_ERRORS)
}


def error_from_code(code: int) -> type[ProgramError]:
    """Map a boundary code back to its error class.

    Raises:
        ValueError: If the code is 0 (success) or unknown.
    """
    if code == CUSTOM_ZERO:
        return TOKEN_ERRORS[0]
    if code >> BUILTIN_BIT_SHIFT:
        for cls in BUILTIN_ERRORS:
            if cls.builtin_index << BUILTIN_BIT_SHIFT == code:
                return cls
    else:
        for cls in TOKEN_ERRORS:
            if cls.custom_code == code and code != 0:
                return cls
    raise ValueError(f"Unknown error code: {code}")


def error_from_name(name: str) -> type[ProgramError]:
    """Look up an error class by its kind name (e.g. ``"AccountFrozen"``)."""
    try:
        return _BY_NAME[name]
    except KeyError:
        raise ValueError(f"Unknown error kind: {name}") from None


def error_names() -> list[str]:
    """All known error kind names."""
    return sorted(_BY_NAME)
