"""Well-known addresses used by the token ledger.

These are defaults only. The processor receives its program id and the
native mint as constructor arguments, so a deployment under a different
address just passes different keys (see ``token_ledger.config``).
"""

from typing import Final

from solders.pubkey import Pubkey

PUBKEY_BYTES: Final[int] = 32

# Default program id, matching the classic token program address
TOKEN_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string(
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
)

# Neutral owner that closed accounts are handed back to
SYSTEM_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string("11111111111111111111111111111111")

RENT_SYSVAR_ID: Final[Pubkey] = Pubkey.from_string(
    "SysvarRent111111111111111111111111111111111"
)

# Wrapped native currency mint
NATIVE_MINT: Final[Pubkey] = Pubkey.from_string(
    "So11111111111111111111111111111111111111112"
)


def parse_pubkey(value: str) -> Pubkey:
    """Parse a base58 address.

    Raises:
        ValueError: If the string is not a valid 32-byte base58 key.
    """
    try:
        return Pubkey.from_string(value.strip())
    except ValueError as e:
        raise ValueError(f"Invalid public key '{value}': {e}") from e
