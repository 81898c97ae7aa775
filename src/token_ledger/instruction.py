"""Instruction codec and builders.

Wire format is ``[tag:u8][payload]``. The payload shape is fixed per tag;
the only variable part is an optional key, encoded as a flag byte followed
by 32 key bytes when the flag is 1.

``_VARIANTS`` is the one table of tag, instruction class and payload layout;
``unpack`` and ``pack`` are both derived from it.
"""

from dataclasses import dataclass, fields
from enum import IntEnum
from typing import Any, Union

from construct import (
    Adapter,
    Bytes,
    ConstructError,
    If,
    Int8ul,
    Int64ul,
    Struct,
    ValidationError,
    this,
)
from solders.pubkey import Pubkey

from .account_info import AccountMeta, Instruction
from .error import InvalidInstruction
from .pubkeys import PUBKEY_BYTES, RENT_SYSVAR_ID


class AuthorityType(IntEnum):
    """Which authority a SetAuthority instruction replaces."""

    MINT_TOKENS = 0
    FREEZE_ACCOUNT = 1
    ACCOUNT_OWNER = 2
    CLOSE_ACCOUNT = 3


class InstructionType(IntEnum):
    INITIALIZE_MINT = 0
    INITIALIZE_ACCOUNT = 1
    APPROVE = 2
    TRANSFER = 3
    REVOKE = 5
    SET_AUTHORITY = 6
    MINT_TO = 7
    BURN = 8
    SYNC_NATIVE = 9
    CLOSE_ACCOUNT = 10
    FREEZE_ACCOUNT = 11
    TRANSFER_CHECKED = 12
    THAW_ACCOUNT = 13


class _PubkeyAdapter(Adapter):
    def _decode(self, obj, context, path):
        return Pubkey(obj)

    def _encode(self, obj, context, path):
        return bytes(obj)


class _OptionPubkeyAdapter(Adapter):
    def _decode(self, obj, context, path):
        if obj.flag == 0:
            return None
        if obj.flag == 1:
            return Pubkey(obj.key)
        raise ValidationError(f"invalid option flag {obj.flag}", path=path)

    def _encode(self, obj, context, path):
        if obj is None:
            return {"flag": 0, "key": None}
        return {"flag": 1, "key": bytes(obj)}


class _AuthorityTypeAdapter(Adapter):
    def _decode(self, obj, context, path):
        try:
            return AuthorityType(obj)
        except ValueError:
            raise ValidationError(f"unknown authority type {obj}", path=path) from None

    def _encode(self, obj, context, path):
        return int(obj)


PUBKEY = _PubkeyAdapter(Bytes(PUBKEY_BYTES))
OPTION_PUBKEY = _OptionPubkeyAdapter(
    Struct(
        "flag" / Int8ul,
        "key" / If(this.flag == 1, Bytes(PUBKEY_BYTES)),
    )
)
AUTHORITY_TYPE = _AuthorityTypeAdapter(Int8ul)


@dataclass(frozen=True)
class InitializeMint:
    decimals: int
    mint_authority: Pubkey
    freeze_authority: Pubkey | None = None


@dataclass(frozen=True)
class InitializeAccount:
    pass


@dataclass(frozen=True)
class Transfer:
    amount: int


@dataclass(frozen=True)
class TransferChecked:
    amount: int
    decimals: int


@dataclass(frozen=True)
class Approve:
    amount: int


@dataclass(frozen=True)
class Revoke:
    pass


@dataclass(frozen=True)
class SetAuthority:
    authority_type: AuthorityType
    new_authority: Pubkey | None = None


@dataclass(frozen=True)
class MintTo:
    amount: int


@dataclass(frozen=True)
class Burn:
    amount: int


@dataclass(frozen=True)
class SyncNative:
    pass


@dataclass(frozen=True)
class CloseAccount:
    pass


@dataclass(frozen=True)
class FreezeAccount:
    pass


@dataclass(frozen=True)
class ThawAccount:
    pass


TokenInstruction = Union[
    InitializeMint,
    InitializeAccount,
    Transfer,
    TransferChecked,
    Approve,
    Revoke,
    SetAuthority,
    MintTo,
    Burn,
    SyncNative,
    CloseAccount,
    FreezeAccount,
    ThawAccount,
]

_AMOUNT = Struct("amount" / Int64ul)
_EMPTY = Struct()


@dataclass(frozen=True)
class _Variant:
    tag: InstructionType
    cls: type
    layout: Struct


_VARIANTS: tuple[_Variant, ...] = (
    _Variant(
        InstructionType.INITIALIZE_MINT,
        InitializeMint,
        Struct(
            "decimals" / Int8ul,
            "mint_authority" / PUBKEY,
            "freeze_authority" / OPTION_PUBKEY,
        ),
    ),
    _Variant(InstructionType.INITIALIZE_ACCOUNT, InitializeAccount, _EMPTY),
    _Variant(InstructionType.APPROVE, Approve, _AMOUNT),
    _Variant(InstructionType.TRANSFER, Transfer, _AMOUNT),
    _Variant(InstructionType.REVOKE, Revoke, _EMPTY),
    _Variant(
        InstructionType.SET_AUTHORITY,
        SetAuthority,
        Struct(
            "authority_type" / AUTHORITY_TYPE,
            "new_authority" / OPTION_PUBKEY,
        ),
    ),
    _Variant(InstructionType.MINT_TO, MintTo, _AMOUNT),
    _Variant(InstructionType.BURN, Burn, _AMOUNT),
    _Variant(InstructionType.SYNC_NATIVE, SyncNative, _EMPTY),
    _Variant(InstructionType.CLOSE_ACCOUNT, CloseAccount, _EMPTY),
    _Variant(InstructionType.FREEZE_ACCOUNT, FreezeAccount, _EMPTY),
    _Variant(
        InstructionType.TRANSFER_CHECKED,
        TransferChecked,
        Struct("amount" / Int64ul, "decimals" / Int8ul),
    ),
    _Variant(InstructionType.THAW_ACCOUNT, ThawAccount, _EMPTY),
)

_BY_TAG: dict[int, _Variant] = {variant.tag: variant for variant in _VARIANTS}
_BY_CLASS: dict[type, _Variant] = {variant.cls: variant for variant in _VARIANTS}


def unpack(data: bytes | bytearray) -> TokenInstruction:
    """Decode instruction bytes. Bytes after a complete payload are ignored.

    Raises:
        InvalidInstruction: Empty input, unknown tag, short payload, a bad
            option flag or an unknown authority type.
    """
    if not data:
        raise InvalidInstruction("empty instruction data")

    tag = data[0]
    variant = _BY_TAG.get(tag)
    if variant is None:
        raise InvalidInstruction(f"unknown instruction tag {tag}")

    try:
        raw = variant.layout.parse(bytes(data[1:]))
    except ConstructError as e:
        raise InvalidInstruction(f"malformed {variant.cls.__name__} payload: {e}") from e

    return variant.cls(**{k: v for k, v in raw.items() if not k.startswith("_")})


def pack(instruction: TokenInstruction) -> bytes:
    """Encode an instruction to its wire bytes."""
    variant = _BY_CLASS.get(type(instruction))
    if variant is None:
        raise TypeError(f"Not a token instruction: {instruction!r}")

    values = {f.name: getattr(instruction, f.name) for f in fields(instruction)}
    try:
        payload = variant.layout.build(values)
    except ConstructError as e:
        raise ValueError(f"Cannot encode {variant.cls.__name__}: {e}") from e
    return bytes([variant.tag]) + payload


def instruction_type(instruction: TokenInstruction) -> InstructionType:
    return _BY_CLASS[type(instruction)].tag


def instruction_to_dict(instruction: TokenInstruction) -> dict[str, Any]:
    """Readable form for logs and the CLI."""
    result: dict[str, Any] = {"type": type(instruction).__name__}
    for f in fields(instruction):
        value = getattr(instruction, f.name)
        if isinstance(value, Pubkey):
            value = str(value)
        elif isinstance(value, AuthorityType):
            value = value.name
        result[f.name] = value
    return result


# ---------------------------------------------------------------------------
# Builders. Account metas are listed in the order the processor reads them.
# ---------------------------------------------------------------------------


def _build(program_id: Pubkey, accounts: list[AccountMeta], ix: TokenInstruction) -> Instruction:
    return Instruction(program_id=program_id, accounts=accounts, data=pack(ix))


def initialize_mint(
    program_id: Pubkey,
    mint: Pubkey,
    mint_authority: Pubkey,
    freeze_authority: Pubkey | None,
    decimals: int,
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(mint, is_signer=False, is_writable=True),
            AccountMeta(RENT_SYSVAR_ID, is_signer=False, is_writable=False),
        ],
        InitializeMint(decimals, mint_authority, freeze_authority),
    )


def initialize_account(
    program_id: Pubkey, account: Pubkey, mint: Pubkey, owner: Pubkey
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(owner, is_signer=False, is_writable=False),
            AccountMeta(RENT_SYSVAR_ID, is_signer=False, is_writable=False),
        ],
        InitializeAccount(),
    )


def transfer(
    program_id: Pubkey,
    source: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
        Transfer(amount),
    )


def transfer_checked(
    program_id: Pubkey,
    source: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
    decimals: int,
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
        TransferChecked(amount, decimals),
    )


def approve(
    program_id: Pubkey, source: Pubkey, delegate: Pubkey, owner: Pubkey, amount: int
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(delegate, is_signer=False, is_writable=False),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ],
        Approve(amount),
    )


def revoke(program_id: Pubkey, source: Pubkey, owner: Pubkey) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ],
        Revoke(),
    )


def set_authority(
    program_id: Pubkey,
    owned: Pubkey,
    new_authority: Pubkey | None,
    authority_type: AuthorityType,
    current_authority: Pubkey,
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(owned, is_signer=False, is_writable=True),
            AccountMeta(current_authority, is_signer=True, is_writable=False),
        ],
        SetAuthority(authority_type, new_authority),
    )


def mint_to(
    program_id: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    mint_authority: Pubkey,
    amount: int,
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(mint, is_signer=False, is_writable=True),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(mint_authority, is_signer=True, is_writable=False),
        ],
        MintTo(amount),
    )


def burn(
    program_id: Pubkey, account: Pubkey, mint: Pubkey, authority: Pubkey, amount: int
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
        Burn(amount),
    )


def close_account(
    program_id: Pubkey, account: Pubkey, destination: Pubkey, owner: Pubkey
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ],
        CloseAccount(),
    )


def freeze_account(
    program_id: Pubkey, account: Pubkey, mint: Pubkey, freeze_authority: Pubkey
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(freeze_authority, is_signer=True, is_writable=False),
        ],
        FreezeAccount(),
    )


def thaw_account(
    program_id: Pubkey, account: Pubkey, mint: Pubkey, freeze_authority: Pubkey
) -> Instruction:
    return _build(
        program_id,
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(freeze_authority, is_signer=True, is_writable=False),
        ],
        ThawAccount(),
    )


def sync_native(program_id: Pubkey, account: Pubkey) -> Instruction:
    return _build(
        program_id,
        [AccountMeta(account, is_signer=False, is_writable=True)],
        SyncNative(),
    )
