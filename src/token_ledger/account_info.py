"""Views of host accounts as the processor sees them.

The host hands the processor an ordered list of ``AccountInfo`` objects for
each invocation. Their ``data`` buffers are mutated in place; ``lamports``
and ``owner`` are plain attributes the host reads back afterwards.
"""

from collections.abc import Iterator
from dataclasses import dataclass

from solders.pubkey import Pubkey

from .error import NotEnoughAccountKeys


@dataclass
class AccountInfo:
    """An account supplied to an invocation.

    The processor may only change ``lamports``, ``owner`` and the contents
    of ``data`` (never its length).
    """

    key: Pubkey
    lamports: int
    data: bytearray
    owner: Pubkey
    is_signer: bool = False
    is_writable: bool = False
    executable: bool = False

    @property
    def data_len(self) -> int:
        return len(self.data)

    def assign(self, new_owner: Pubkey) -> None:
        """Hand custody of the account to another program."""
        self.owner = new_owner


@dataclass(frozen=True)
class AccountMeta:
    """How an instruction wants to access one account."""

    pubkey: Pubkey
    is_signer: bool
    is_writable: bool

    def __str__(self) -> str:
        flags = []
        if self.is_signer:
            flags.append("signer")
        if self.is_writable:
            flags.append("writable")
        flag_str = f"({', '.join(flags)})" if flags else "(readonly)"
        return f"{str(self.pubkey)[:8]}...{flag_str}"


@dataclass(frozen=True)
class Instruction:
    """An encoded instruction addressed to a program."""

    program_id: Pubkey
    accounts: list[AccountMeta]
    data: bytes

    def __str__(self) -> str:
        return (
            f"Instruction({str(self.program_id)[:8]}..., "
            f"{len(self.accounts)} accounts, {len(self.data)} bytes)"
        )


def next_account_info(accounts: Iterator[AccountInfo]) -> AccountInfo:
    """Take the next positional account or fail with ``NotEnoughAccountKeys``."""
    try:
        return next(accounts)
    except StopIteration:
        raise NotEnoughAccountKeys() from None
