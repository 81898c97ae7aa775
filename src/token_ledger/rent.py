"""Rent-exemption oracle.

The host publishes its rent parameters in the rent sysvar account. The
processor only needs one question answered: does a given lamport balance
cover the storage cost of a given data length indefinitely?
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from construct import ConstructError, Float64l, Int8ul, Int64ul, Struct

from .error import InvalidArgument
from .pubkeys import RENT_SYSVAR_ID

if TYPE_CHECKING:
    from .account_info import AccountInfo

DEFAULT_LAMPORTS_PER_BYTE_YEAR = 3480
DEFAULT_EXEMPTION_THRESHOLD = 2.0
DEFAULT_BURN_PERCENT = 50

# Fixed per-account overhead charged on top of the data length
ACCOUNT_STORAGE_OVERHEAD = 128

RENT_LAYOUT = Struct(
    "lamports_per_byte_year" / Int64ul,
    "exemption_threshold" / Float64l,
    "burn_percent" / Int8ul,
)


@dataclass(frozen=True)
class Rent:
    """Rent parameters."""

    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold: float = DEFAULT_EXEMPTION_THRESHOLD
    burn_percent: int = DEFAULT_BURN_PERCENT

    def minimum_balance(self, data_len: int) -> int:
        """Lamports an account of ``data_len`` bytes needs to be rent-exempt."""
        bytes_charged = ACCOUNT_STORAGE_OVERHEAD + data_len
        return int(bytes_charged * self.lamports_per_byte_year * self.exemption_threshold)

    def is_exempt(self, lamports: int, data_len: int) -> bool:
        return lamports >= self.minimum_balance(data_len)

    def to_bytes(self) -> bytes:
        """Serialize in the rent sysvar's on-ledger format."""
        return RENT_LAYOUT.build(
            {
                "lamports_per_byte_year": self.lamports_per_byte_year,
                "exemption_threshold": self.exemption_threshold,
                "burn_percent": self.burn_percent,
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> "Rent":
        if len(data) != RENT_LAYOUT.sizeof():
            raise InvalidArgument(
                f"Rent sysvar data must be {RENT_LAYOUT.sizeof()} bytes, got {len(data)}"
            )
        try:
            raw = RENT_LAYOUT.parse(bytes(data))
        except ConstructError as e:
            raise InvalidArgument(f"Malformed rent sysvar: {e}") from e
        return cls(
            lamports_per_byte_year=raw.lamports_per_byte_year,
            exemption_threshold=raw.exemption_threshold,
            burn_percent=raw.burn_percent,
        )

    @classmethod
    def from_account_info(cls, info: "AccountInfo") -> "Rent":
        """Read rent parameters from the rent sysvar account.

        Raises:
            InvalidArgument: If the account is not the rent sysvar or its data
                cannot be decoded.
        """
        if info.key != RENT_SYSVAR_ID:
            raise InvalidArgument(f"Expected rent sysvar, got {info.key}")
        return cls.from_bytes(info.data)
