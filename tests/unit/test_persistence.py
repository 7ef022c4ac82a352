"""
Tests for the binary wallet record
"""

import struct

import pytest

from shroud import Wallet, create_auth_token_note, encrypt_note
from shroud import persistence
from shroud.errors import InputValidationError, WalletCorruptedError
from shroud.persistence import MAGIC

CHAIN_ID = "aa" * 32


@pytest.fixture
def populated(wallet, bob, fund, make_note):
    """Wallet with unspent, spent, outgoing, unpublished notes and leaves"""
    notes = fund(
        wallet, "0.0100 SHLD@shieldtokens", "7@nfttokens", "0.0200 SHLD@shieldtokens"
    )
    wallet.mark_notes_spent(notes[0].nullifier(wallet.nullifier_key, 0))

    sent = make_note(bob.default_address(), "0.0005 SHLD@shieldtokens")
    wallet.add_leaves(sent.commitment())
    wallet.add_notes([encrypt_note(sent, wallet.outgoing_viewing_key)])

    vault = create_auth_token_note(wallet, "offline", "shieldvaults")
    wallet.add_unpublished_notes([encrypt_note(vault)])
    wallet.add_provisional_leaves(b"\x07" * 32)
    wallet.derive_next_address()
    wallet.set_auth_count(2)
    return wallet


class TestRoundTrip:
    """Test write and read"""

    def test_empty_wallet(self, wallet):
        """Test a fresh wallet"""
        data = wallet.write()
        assert len(data) == wallet.size()
        assert data.startswith(MAGIC)
        assert Wallet.read(data).to_dict() == wallet.to_dict()

    def test_populated_wallet(self, populated):
        """Test every collection and counter survives"""
        data = populated.write()
        assert len(data) == populated.size()

        restored = Wallet.read(data)
        assert restored.to_dict() == populated.to_dict()
        assert restored.seeds_match(populated)
        assert restored.provisional_leaf_count == 1
        assert restored.auth_count == 2
        assert len(restored.spent_notes()) == 1
        assert len(restored.outgoing_notes()) == 1
        assert restored.unpublished_notes()[0].position is None
        assert restored.write() == data

    def test_restored_wallet_keeps_working(self, populated, fund):
        """Test a restored wallet digests further blocks"""
        restored = Wallet.read(populated.write())
        assert restored.add_leaves(b"\x07" * 32) == 0
        fund(restored, "0.0001 SHLD@shieldtokens")
        assert restored.leaf_count == populated.leaf_count + 1
        assert restored.witness(0).compute_root(restored.leaves()[0]) == restored.root()

    def test_view_only(self, wallet, fund):
        """Test view-only wallets keep their viewing key only"""
        viewer = Wallet.create_view_only(
            wallet.incoming_viewing_key.to_text(), CHAIN_ID, tree_depth=8
        )
        fund(viewer, "0.0100 SHLD@shieldtokens")
        data = viewer.write()
        assert len(data) == viewer.size()

        restored = Wallet.read(data)
        assert restored.is_view_only
        assert restored.incoming_viewing_key == viewer.incoming_viewing_key
        assert restored.balances() == viewer.balances()

    def test_seed_survives(self, wallet):
        """Test the wallet seed is stored and can be exported again"""
        restored = Wallet.read(wallet.write())
        assert restored.seed_hex() == wallet.seed_hex()
        assert restored.spending_key == wallet.spending_key

    def test_full_viewing_wallet(self, populated, fund):
        """Test watch wallets keep the full viewing key"""
        watcher = Wallet.create_from_full_viewing_key(
            populated.full_viewing_key_text(), CHAIN_ID, tree_depth=8
        )
        fund(watcher, "0.0100 SHLD@shieldtokens")
        data = watcher.write()
        assert len(data) == watcher.size()

        restored = Wallet.read(data)
        assert restored.is_view_only
        assert restored.full_viewing_key == populated.full_viewing_key
        assert restored.nullifier_key == populated.nullifier_key
        assert restored.balances() == watcher.balances()
        assert restored.write() == data


class TestMalformed:
    """Test corrupted records are rejected"""

    def test_bad_magic(self, wallet):
        """Test foreign data"""
        with pytest.raises(InputValidationError):
            Wallet.read(b"XXXX" + wallet.write()[4:])

    def test_unknown_version(self, wallet):
        """Test unsupported versions"""
        data = wallet.write()
        with pytest.raises(InputValidationError):
            Wallet.read(data[:4] + struct.pack("<H", 99) + data[6:])

    def test_truncated(self, populated):
        """Test every truncation point fails cleanly"""
        data = populated.write()
        for cut in (0, 3, 10, 100, len(data) // 2, len(data) - 1):
            with pytest.raises(InputValidationError):
                Wallet.read(data[:cut])

    def test_trailing_bytes(self, wallet):
        """Test extra data after the record"""
        with pytest.raises(InputValidationError):
            Wallet.read(wallet.write() + b"\x00")


class TestSizeMismatch:
    """Test an encoding of unexpected length marks the wallet corrupted"""

    def test_write_corrupts_wallet(self, wallet, monkeypatch):
        """Test the wallet refuses further use after a bad encoding"""
        size = wallet.size()
        monkeypatch.setattr(persistence, "wallet_size", lambda w: size + 1)

        with pytest.raises(WalletCorruptedError):
            wallet.write()
        assert wallet.is_corrupted
        with pytest.raises(WalletCorruptedError):
            wallet.derive_next_address()
