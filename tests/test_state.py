"""Tests for the Mint and Account record layouts."""

import struct

import pytest
from solders.pubkey import Pubkey

from token_ledger.error import InvalidAccountData, UninitializedAccount
from token_ledger.state import Account, Mint


class TestMintLayout:
    """Tests for the 82-byte mint record."""

    def test_length(self):
        """Should be exactly 82 bytes."""
        assert Mint.LEN == 82
        assert len(Mint().to_bytes()) == 82

    def test_field_offsets(self, mint_bytes):
        """Should place every field at its fixed offset."""
        assert struct.unpack_from("<I", mint_bytes, 0)[0] == 1
        assert mint_bytes[4:36] == bytes([1] * 32)
        assert struct.unpack_from("<Q", mint_bytes, 36)[0] == 1_000_000
        assert mint_bytes[44] == 6
        assert mint_bytes[45] == 1
        assert struct.unpack_from("<I", mint_bytes, 46)[0] == 1
        assert mint_bytes[50:82] == bytes([2] * 32)

    def test_absent_authority_is_zeroed(self):
        """Should write tag 0 and a zero payload for a missing authority."""
        data = Mint(is_initialized=True).to_bytes()
        assert data[0:36] == bytes(36)
        assert data[46:82] == bytes(36)

    def test_decode(self, mint_bytes):
        """Should decode the fields that were encoded."""
        mint = Mint.unpack(mint_bytes)
        assert mint.mint_authority == Pubkey(bytes([1] * 32))
        assert mint.supply == 1_000_000
        assert mint.decimals == 6
        assert mint.is_initialized
        assert mint.freeze_authority == Pubkey(bytes([2] * 32))

    def test_all_zero_is_uninitialized(self):
        """Should decode fresh storage as an uninitialized mint."""
        mint = Mint.unpack_unchecked(bytes(82))
        assert mint == Mint()

    def test_unpack_requires_initialized(self):
        """Should refuse uninitialized storage in the checked decoder."""
        with pytest.raises(UninitializedAccount):
            Mint.unpack(bytes(82))

    @pytest.mark.parametrize("length", [0, 81, 83, 181])
    def test_rejects_wrong_length(self, length):
        """Should accept only the exact record length."""
        with pytest.raises(InvalidAccountData, match="82 bytes"):
            Mint.unpack_unchecked(bytes(length))

    def test_rejects_bad_initialized_flag(self, mint_bytes):
        """Should reject an is_initialized byte other than 0 or 1."""
        data = bytearray(mint_bytes)
        data[45] = 2
        with pytest.raises(InvalidAccountData, match="is_initialized"):
            Mint.unpack_unchecked(data)

    def test_rejects_bad_option_tag(self, mint_bytes):
        """Should reject an option tag other than 0 or 1."""
        data = bytearray(mint_bytes)
        data[46] = 7
        with pytest.raises(InvalidAccountData, match="freeze_authority"):
            Mint.unpack_unchecked(data)

    def test_pack_into_overwrites_in_place(self, mint_bytes):
        """Should write into the caller's buffer without resizing it."""
        buffer = bytearray(82)
        original = buffer
        Mint.unpack(mint_bytes).pack_into(buffer)
        assert buffer is original
        assert bytes(buffer) == mint_bytes

    def test_pack_into_rejects_wrong_buffer(self):
        """Should refuse a buffer of the wrong size."""
        with pytest.raises(InvalidAccountData):
            Mint().pack_into(bytearray(100))

    def test_rejects_out_of_range_supply(self):
        """Should refuse to encode a supply above u64."""
        with pytest.raises(InvalidAccountData):
            Mint(supply=2**64).to_bytes()


class TestAccountLayout:
    """Tests for the 181-byte token account record."""

    def test_length(self):
        """Should be exactly 181 bytes."""
        assert Account.LEN == 181
        assert len(Account().to_bytes()) == 181

    def test_field_offsets(self, account_bytes):
        """Should place every field at its fixed offset."""
        assert account_bytes[0:32] == bytes([3] * 32)
        assert account_bytes[32:64] == bytes([4] * 32)
        assert struct.unpack_from("<Q", account_bytes, 64)[0] == 500
        assert account_bytes[72] == 1
        assert account_bytes[73:109] == bytes(36)
        assert struct.unpack_from("<I", account_bytes, 109)[0] == 1
        assert account_bytes[113:145] == bytes([5] * 32)
        assert struct.unpack_from("<Q", account_bytes, 145)[0] == 200
        assert account_bytes[153] == 0
        assert account_bytes[154:181] == bytes(27)

    def test_native_reserve_is_left_justified(self):
        """Should store the native reserve in the first 8 payload bytes."""
        data = Account(is_initialized=True, is_native=2_039_280).to_bytes()
        assert struct.unpack_from("<I", data, 73)[0] == 1
        assert struct.unpack_from("<Q", data, 77)[0] == 2_039_280
        assert data[85:109] == bytes(24)

    def test_frozen_flag_offset(self):
        """Should store is_frozen right after delegated_amount."""
        data = Account(is_initialized=True, is_frozen=True).to_bytes()
        assert data[153] == 1

    def test_decode(self, account_bytes):
        """Should decode the fields that were encoded."""
        account = Account.unpack(account_bytes)
        assert account.mint == Pubkey(bytes([3] * 32))
        assert account.owner == Pubkey(bytes([4] * 32))
        assert account.amount == 500
        assert account.is_native is None
        assert not account.is_native_account
        assert account.delegate == Pubkey(bytes([5] * 32))
        assert account.delegated_amount == 200
        assert not account.is_frozen

    def test_reserved_bytes_ignored(self, account_bytes):
        """Should ignore whatever sits in the reserved tail."""
        data = bytearray(account_bytes)
        data[160] = 0xFF
        assert Account.unpack(data) == Account.unpack(account_bytes)

    @pytest.mark.parametrize("length", [0, 73, 153, 165, 180, 182])
    def test_rejects_wrong_length(self, length):
        """Should accept only the exact record length."""
        with pytest.raises(InvalidAccountData, match="181 bytes"):
            Account.unpack_unchecked(bytes(length))

    def test_rejects_bad_frozen_flag(self, account_bytes):
        """Should reject an is_frozen byte other than 0 or 1."""
        data = bytearray(account_bytes)
        data[153] = 9
        with pytest.raises(InvalidAccountData, match="is_frozen"):
            Account.unpack_unchecked(data)

    def test_rejects_bad_native_tag(self, account_bytes):
        """Should reject an is_native tag other than 0 or 1."""
        data = bytearray(account_bytes)
        data[73] = 2
        with pytest.raises(InvalidAccountData, match="is_native"):
            Account.unpack_unchecked(data)

    def test_unpack_requires_initialized(self):
        """Should refuse uninitialized storage in the checked decoder."""
        with pytest.raises(UninitializedAccount):
            Account.unpack(bytes(181))

    def test_to_dict(self, account_bytes):
        """Should render keys as base58 strings."""
        d = Account.unpack(account_bytes).to_dict()
        assert d["owner"] == str(Pubkey(bytes([4] * 32)))
        assert d["delegate"] == str(Pubkey(bytes([5] * 32)))
        assert d["is_native"] is None
