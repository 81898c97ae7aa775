"""Mint and Account records and their fixed-width byte layouts.

Storage for a record is allocated by the host before the record is ever
initialized and can never grow, so every layout has a single fixed size.
Optional values are stored as a 4-byte tag (0 = absent, 1 = present)
followed by a payload region that is always present, zeroed when absent.

Mint (82 bytes)::

    mint_authority   36  option key
    supply            8  u64
    decimals          1  u8
    is_initialized    1  0 | 1
    freeze_authority 36  option key

Account (181 bytes)::

    mint              32
    owner             32
    amount             8  u64
    is_initialized     1  0 | 1
    is_native         36  option u64, value in the first 8 payload bytes
    delegate          36  option key
    delegated_amount   8  u64
    is_frozen          1  0 | 1
    reserved          27  zero
"""

from dataclasses import dataclass
from typing import Any, ClassVar

from construct import Bytes, ConstructError, Int8ul, Int32ul, Int64ul, Padding, Struct
from solders.pubkey import Pubkey

from .error import InvalidAccountData, UninitializedAccount
from .pubkeys import PUBKEY_BYTES

OPTION_NONE = 0
OPTION_SOME = 1

PUBKEY_LAYOUT = Bytes(PUBKEY_BYTES)

OPTION_PUBKEY_LAYOUT = Struct(
    "tag" / Int32ul,
    "value" / PUBKEY_LAYOUT,
)

# u64 left-justified in a key-sized payload so both option kinds are 36 bytes
OPTION_U64_LAYOUT = Struct(
    "tag" / Int32ul,
    "value" / Int64ul,
    Padding(PUBKEY_BYTES - 8),
)

MINT_LAYOUT = Struct(
    "mint_authority" / OPTION_PUBKEY_LAYOUT,
    "supply" / Int64ul,
    "decimals" / Int8ul,
    "is_initialized" / Int8ul,
    "freeze_authority" / OPTION_PUBKEY_LAYOUT,
)

ACCOUNT_RESERVED_BYTES = 27

ACCOUNT_LAYOUT = Struct(
    "mint" / PUBKEY_LAYOUT,
    "owner" / PUBKEY_LAYOUT,
    "amount" / Int64ul,
    "is_initialized" / Int8ul,
    "is_native" / OPTION_U64_LAYOUT,
    "delegate" / OPTION_PUBKEY_LAYOUT,
    "delegated_amount" / Int64ul,
    "is_frozen" / Int8ul,
    Padding(ACCOUNT_RESERVED_BYTES),
)


def _parse(layout: Struct, data: bytes | bytearray, expected_len: int, what: str) -> Any:
    if len(data) != expected_len:
        raise InvalidAccountData(f"{what} data must be {expected_len} bytes, got {len(data)}")
    try:
        return layout.parse(bytes(data))
    except ConstructError as e:
        raise InvalidAccountData(f"Malformed {what} data: {e}") from e


def _build(layout: Struct, fields: dict[str, Any], what: str) -> bytes:
    try:
        return layout.build(fields)
    except ConstructError as e:
        raise InvalidAccountData(f"Cannot encode {what}: {e}") from e


def _write(encoded: bytes, dst: bytearray, what: str) -> None:
    if len(dst) != len(encoded):
        raise InvalidAccountData(f"{what} buffer must be {len(encoded)} bytes, got {len(dst)}")
    dst[:] = encoded


def _decode_bool(value: int, field_name: str) -> bool:
    if value == 0:
        return False
    if value == 1:
        return True
    raise InvalidAccountData(f"Invalid {field_name} flag: {value}")


def _decode_option_key(option: Any, field_name: str) -> Pubkey | None:
    if option.tag == OPTION_NONE:
        return None
    if option.tag == OPTION_SOME:
        return Pubkey(option.value)
    raise InvalidAccountData(f"Invalid {field_name} option tag: {option.tag}")


def _encode_option_key(value: Pubkey | None) -> dict[str, Any]:
    if value is None:
        return {"tag": OPTION_NONE, "value": bytes(PUBKEY_BYTES)}
    return {"tag": OPTION_SOME, "value": bytes(value)}


def _decode_option_u64(option: Any, field_name: str) -> int | None:
    if option.tag == OPTION_NONE:
        return None
    if option.tag == OPTION_SOME:
        return option.value
    raise InvalidAccountData(f"Invalid {field_name} option tag: {option.tag}")


def _encode_option_u64(value: int | None) -> dict[str, Any]:
    if value is None:
        return {"tag": OPTION_NONE, "value": 0}
    return {"tag": OPTION_SOME, "value": value}


@dataclass
class Mint:
    """A token type: its supply, precision and privileged authorities."""

    LEN: ClassVar[int] = MINT_LAYOUT.sizeof()

    mint_authority: Pubkey | None = None
    supply: int = 0
    decimals: int = 0
    is_initialized: bool = False
    freeze_authority: Pubkey | None = None

    @classmethod
    def unpack_unchecked(cls, data: bytes | bytearray) -> "Mint":
        """Decode without requiring ``is_initialized``."""
        raw = _parse(MINT_LAYOUT, data, cls.LEN, "mint")
        return cls(
            mint_authority=_decode_option_key(raw.mint_authority, "mint_authority"),
            supply=raw.supply,
            decimals=raw.decimals,
            is_initialized=_decode_bool(raw.is_initialized, "is_initialized"),
            freeze_authority=_decode_option_key(raw.freeze_authority, "freeze_authority"),
        )

    @classmethod
    def unpack(cls, data: bytes | bytearray) -> "Mint":
        """Decode an initialized mint."""
        mint = cls.unpack_unchecked(data)
        if not mint.is_initialized:
            raise UninitializedAccount("mint")
        return mint

    def to_bytes(self) -> bytes:
        return _build(
            MINT_LAYOUT,
            {
                "mint_authority": _encode_option_key(self.mint_authority),
                "supply": self.supply,
                "decimals": self.decimals,
                "is_initialized": int(self.is_initialized),
                "freeze_authority": _encode_option_key(self.freeze_authority),
            },
            "mint",
        )

    def pack_into(self, dst: bytearray) -> None:
        """Overwrite ``dst`` in place; it must already be exactly ``LEN`` bytes."""
        _write(self.to_bytes(), dst, "mint")

    def to_dict(self) -> dict[str, Any]:
        return {
            "mint_authority": _key_str(self.mint_authority),
            "supply": self.supply,
            "decimals": self.decimals,
            "is_initialized": self.is_initialized,
            "freeze_authority": _key_str(self.freeze_authority),
        }


@dataclass
class Account:
    """A balance of one mint held by one owner."""

    LEN: ClassVar[int] = ACCOUNT_LAYOUT.sizeof()

    mint: Pubkey = Pubkey.default()
    owner: Pubkey = Pubkey.default()
    amount: int = 0
    is_initialized: bool = False
    # Some(rent_exempt_reserve) for wrapped native accounts
    is_native: int | None = None
    delegate: Pubkey | None = None
    delegated_amount: int = 0
    is_frozen: bool = False

    @property
    def is_native_account(self) -> bool:
        return self.is_native is not None

    @classmethod
    def unpack_unchecked(cls, data: bytes | bytearray) -> "Account":
        """Decode without requiring ``is_initialized``."""
        raw = _parse(ACCOUNT_LAYOUT, data, cls.LEN, "account")
        return cls(
            mint=Pubkey(raw.mint),
            owner=Pubkey(raw.owner),
            amount=raw.amount,
            is_initialized=_decode_bool(raw.is_initialized, "is_initialized"),
            is_native=_decode_option_u64(raw.is_native, "is_native"),
            delegate=_decode_option_key(raw.delegate, "delegate"),
            delegated_amount=raw.delegated_amount,
            is_frozen=_decode_bool(raw.is_frozen, "is_frozen"),
        )

    @classmethod
    def unpack(cls, data: bytes | bytearray) -> "Account":
        """Decode an initialized account."""
        account = cls.unpack_unchecked(data)
        if not account.is_initialized:
            raise UninitializedAccount("token account")
        return account

    def to_bytes(self) -> bytes:
        return _build(
            ACCOUNT_LAYOUT,
            {
                "mint": bytes(self.mint),
                "owner": bytes(self.owner),
                "amount": self.amount,
                "is_initialized": int(self.is_initialized),
                "is_native": _encode_option_u64(self.is_native),
                "delegate": _encode_option_key(self.delegate),
                "delegated_amount": self.delegated_amount,
                "is_frozen": int(self.is_frozen),
            },
            "account",
        )

    def pack_into(self, dst: bytearray) -> None:
        """Overwrite ``dst`` in place; it must already be exactly ``LEN`` bytes."""
        _write(self.to_bytes(), dst, "account")

    def to_dict(self) -> dict[str, Any]:
        return {
            "mint": str(self.mint),
            "owner": str(self.owner),
            "amount": self.amount,
            "is_initialized": self.is_initialized,
            "is_native": self.is_native,
            "delegate": _key_str(self.delegate),
            "delegated_amount": self.delegated_amount,
            "is_frozen": self.is_frozen,
        }


def _key_str(key: Pubkey | None) -> str | None:
    return str(key) if key is not None else None
