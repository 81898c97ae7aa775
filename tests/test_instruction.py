"""Tests for the instruction codec and builders."""

import struct

import pytest
from solders.pubkey import Pubkey

from token_ledger import instruction as ix
from token_ledger.error import InvalidInstruction
from token_ledger.pubkeys import RENT_SYSVAR_ID, TOKEN_PROGRAM_ID

KEY_A = Pubkey(bytes([7] * 32))
KEY_B = Pubkey(bytes([8] * 32))


class TestUnpack:
    """Tests for decoding instruction bytes."""

    def test_initialize_mint_with_freeze_authority(self):
        """Should decode decimals, mint authority and an optional freeze authority."""
        data = bytes([0, 6]) + bytes(KEY_A) + bytes([1]) + bytes(KEY_B)
        assert ix.unpack(data) == ix.InitializeMint(6, KEY_A, KEY_B)

    def test_initialize_mint_without_freeze_authority(self):
        """Should decode a zero flag as no freeze authority."""
        data = bytes([0, 9]) + bytes(KEY_A) + bytes([0])
        assert ix.unpack(data) == ix.InitializeMint(9, KEY_A, None)

    def test_transfer(self):
        """Should decode a little-endian u64 amount."""
        data = bytes([3]) + struct.pack("<Q", 500)
        assert ix.unpack(data) == ix.Transfer(500)

    def test_transfer_checked(self):
        """Should decode amount then decimals."""
        data = bytes([12]) + struct.pack("<QB", 42, 6)
        assert ix.unpack(data) == ix.TransferChecked(42, 6)

    def test_thaw_has_its_own_tag(self):
        """Should decode tag 13 as ThawAccount, distinct from TransferChecked."""
        assert ix.unpack(bytes([13])) == ix.ThawAccount()
        assert ix.unpack(bytes([11])) == ix.FreezeAccount()

    def test_set_authority(self):
        """Should decode the authority type and new authority."""
        data = bytes([6, 2, 1]) + bytes(KEY_A)
        decoded = ix.unpack(data)
        assert decoded == ix.SetAuthority(ix.AuthorityType.ACCOUNT_OWNER, KEY_A)
        assert decoded.authority_type is ix.AuthorityType.ACCOUNT_OWNER

    def test_set_authority_to_none(self):
        """Should decode a disabled authority."""
        assert ix.unpack(bytes([6, 0, 0])) == ix.SetAuthority(ix.AuthorityType.MINT_TOKENS, None)

    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            (1, ix.InitializeAccount()),
            (5, ix.Revoke()),
            (9, ix.SyncNative()),
            (10, ix.CloseAccount()),
        ],
    )
    def test_no_payload(self, tag, expected):
        """Should decode operations that carry no operands."""
        assert ix.unpack(bytes([tag])) == expected

    def test_empty_input(self):
        """Should reject empty input."""
        with pytest.raises(InvalidInstruction):
            ix.unpack(b"")

    @pytest.mark.parametrize("tag", [4, 14, 255])
    def test_unknown_tag(self, tag):
        """Should reject tags with no operation."""
        with pytest.raises(InvalidInstruction, match="unknown instruction tag"):
            ix.unpack(bytes([tag]))

    def test_short_amount(self):
        """Should reject a truncated u64."""
        with pytest.raises(InvalidInstruction):
            ix.unpack(bytes([3, 1, 2, 3]))

    def test_short_key(self):
        """Should reject a truncated mint authority."""
        with pytest.raises(InvalidInstruction):
            ix.unpack(bytes([0, 6]) + bytes(10))

    def test_bad_option_flag(self):
        """Should reject an option flag other than 0 or 1."""
        with pytest.raises(InvalidInstruction):
            ix.unpack(bytes([0, 6]) + bytes(KEY_A) + bytes([2]))

    def test_unknown_authority_type(self):
        """Should reject an authority type outside the enum."""
        with pytest.raises(InvalidInstruction):
            ix.unpack(bytes([6, 4, 0]))

    def test_trailing_bytes(self):
        """Should ignore extra bytes after a complete payload."""
        assert ix.unpack(bytes([3]) + struct.pack("<Q", 5) + b"\x00") == ix.Transfer(5)

    def test_trailing_bytes_after_empty_payload(self):
        """Should ignore bytes after an operation with no operands."""
        assert ix.unpack(bytes([10, 0])) == ix.CloseAccount()


class TestPack:
    """Tests for encoding instructions."""

    def test_transfer_bytes(self):
        """Should encode tag then amount."""
        assert ix.pack(ix.Transfer(500)) == bytes([3]) + struct.pack("<Q", 500)

    def test_optional_key_absent(self):
        """Should encode a missing key as a single zero byte."""
        assert ix.pack(ix.InitializeMint(2, KEY_A)) == bytes([0, 2]) + bytes(KEY_A) + b"\x00"

    @pytest.mark.parametrize(
        "instruction",
        [
            ix.InitializeMint(6, KEY_A, KEY_B),
            ix.TransferChecked(2**64 - 1, 255),
            ix.Approve(0),
            ix.SetAuthority(ix.AuthorityType.FREEZE_ACCOUNT, None),
            ix.Burn(7),
        ],
    )
    def test_decodes_back(self, instruction):
        """Should decode to the instruction that was encoded."""
        assert ix.unpack(ix.pack(instruction)) == instruction

    def test_amount_out_of_range(self):
        """Should refuse amounts above u64."""
        with pytest.raises(ValueError):
            ix.pack(ix.MintTo(2**64))

    def test_not_an_instruction(self):
        """Should refuse objects that are not token instructions."""
        with pytest.raises(TypeError):
            ix.pack("transfer")

    def test_instruction_to_dict(self):
        """Should render keys and enums readably."""
        d = ix.instruction_to_dict(ix.SetAuthority(ix.AuthorityType.MINT_TOKENS, KEY_A))
        assert d == {"type": "SetAuthority", "authority_type": "MINT_TOKENS", "new_authority": str(KEY_A)}


class TestBuilders:
    """Tests for instruction builders and their account order."""

    def test_transfer_accounts(self):
        """Should list source, destination, then the signing authority."""
        instruction = ix.transfer(TOKEN_PROGRAM_ID, KEY_A, KEY_B, RENT_SYSVAR_ID, 5)
        metas = instruction.accounts
        assert [m.pubkey for m in metas] == [KEY_A, KEY_B, RENT_SYSVAR_ID]
        assert [m.is_writable for m in metas] == [True, True, False]
        assert [m.is_signer for m in metas] == [False, False, True]
        assert instruction.program_id == TOKEN_PROGRAM_ID
        assert ix.unpack(instruction.data) == ix.Transfer(5)

    def test_initialize_mint_includes_rent_sysvar(self):
        """Should pass the rent sysvar after the mint."""
        instruction = ix.initialize_mint(TOKEN_PROGRAM_ID, KEY_A, KEY_B, None, 6)
        assert [m.pubkey for m in instruction.accounts] == [KEY_A, RENT_SYSVAR_ID]

    def test_transfer_checked_accounts(self):
        """Should put the mint between source and destination."""
        mint = Pubkey.new_unique()
        authority = Pubkey.new_unique()
        instruction = ix.transfer_checked(TOKEN_PROGRAM_ID, KEY_A, mint, KEY_B, authority, 1, 6)
        assert [m.pubkey for m in instruction.accounts] == [KEY_A, mint, KEY_B, authority]
        assert not instruction.accounts[1].is_writable

    def test_set_authority_accounts(self):
        """Should list the owned record then the current authority."""
        instruction = ix.set_authority(
            TOKEN_PROGRAM_ID, KEY_A, None, ix.AuthorityType.MINT_TOKENS, KEY_B
        )
        assert [m.pubkey for m in instruction.accounts] == [KEY_A, KEY_B]
        assert instruction.accounts[1].is_signer
