"""
Tests for folding chain blocks into wallets
"""

import json

import pytest

from shroud import Block, Wallet, digest_block, encrypt_note
from shroud.errors import InputValidationError

CHAIN_ID = "aa" * 32
QUANTITY = "0.0100 SHLD@shieldtokens"


class TestDigestion:
    """Test block digestion order and bookkeeping"""

    def test_ciphertext_before_leaf(self, wallet, make_note):
        """Test a note seen before its leaf waits in unpublished"""
        note = make_note(wallet.default_address(), QUANTITY)
        early = Block(block_num=1, note_ciphertexts=[encrypt_note(note).to_hex()])
        digest_block(wallet, early)

        [pending] = wallet.unpublished_notes()
        assert pending.position is None
        assert wallet.balances() == {}

        digest_block(wallet, Block(block_num=2, leaves=[note.commitment()]))
        assert wallet.unpublished_notes() == []
        [ex] = wallet.unspent_notes()
        assert ex.position == 0
        assert ex.note == note

    def test_created_and_spent_in_one_block(self, wallet, make_note, make_block):
        """Test nullifiers apply after the block's notes"""
        note = make_note(wallet.default_address(), QUANTITY)
        nf = note.nullifier(wallet.nullifier_key, wallet.leaf_count)
        wallet.digest_block(make_block([note], 1, nullifiers=[nf]))

        assert wallet.unspent_notes() == []
        assert [ex.note for ex in wallet.spent_notes()] == [note]

    def test_outgoing_and_incoming(self, wallet, bob, make_note, make_block):
        """Test the sender sees outgoing notes and the recipient incoming ones"""
        note = make_note(bob.default_address(), QUANTITY, memo="hello")
        block = make_block([note], 1, ovk=wallet.outgoing_viewing_key)
        digest_block(wallet, block)
        digest_block(bob, block)

        assert [ex.note for ex in wallet.outgoing_notes()] == [note]
        assert wallet.unspent_notes() == []
        assert [ex.note for ex in bob.unspent_notes()] == [note]
        assert bob.outgoing_notes() == []
        assert wallet.root() == bob.root()

    def test_block_num_is_highest_seen(self, wallet, make_note, make_block):
        """Test older blocks do not move the block number back"""
        digest_block(wallet, make_block([], 5))
        digest_block(wallet, make_block([], 3))
        assert wallet.block_num == 5

    def test_ciphertexts_counted_once(self, wallet, make_note, make_block):
        """Test redelivered ciphertexts do not double balances"""
        block = make_block([make_note(wallet.default_address(), QUANTITY)], 1)
        digest_block(wallet, block)
        balances = wallet.balances()

        counts = wallet.add_notes(block.note_ciphertexts, 1, block.timestamp)
        assert counts.total == 0
        assert wallet.balances() == balances
        assert len(wallet.unspent_notes()) == 1

    def test_view_only_wallet(self, wallet, make_note, make_block):
        """Test view-only wallets track notes but cannot detect spends"""
        viewer = Wallet.create_view_only(
            wallet.incoming_viewing_key.to_text(), CHAIN_ID, tree_depth=8
        )
        note = make_note(wallet.default_address(), QUANTITY)
        nf = note.nullifier(wallet.nullifier_key, 0)
        digest_block(viewer, make_block([note], 1))
        digest_block(viewer, make_block([], 2, nullifiers=[nf]))

        assert len(viewer.unspent_notes()) == 1
        assert viewer.spent_notes() == []

    def test_bad_leaves_leave_wallet_unchanged(self, wallet, make_note):
        """Test a block failing part-way is not partially applied"""
        note = make_note(wallet.default_address(), QUANTITY)
        before = wallet.to_dict()
        block = Block(
            block_num=1,
            leaves=[note.commitment()],
            note_ciphertexts=[encrypt_note(note).to_hex()],
            nullifiers=[b"short"],
        )
        with pytest.raises(InputValidationError):
            digest_block(wallet, block)
        assert wallet.to_dict() == before


class TestBlockCodec:
    """Test the block record"""

    def test_json_round_trip(self, wallet, make_note, make_block):
        """Test hex-encoded JSON form"""
        note = make_note(wallet.default_address(), QUANTITY)
        block = make_block([note], 7, nullifiers=[b"\x01" * 32])
        restored = Block.from_json(json.dumps(block.to_dict()))
        assert restored == block
        assert restored.digest_id() == block.digest_id()

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            '{"timestamp": 1}',
            '{"block_num": -1}',
            '{"block_num": 1, "leaves": ["abcd"]}',
            '{"block_num": 1, "nullifiers": ["zz"]}',
        ],
    )
    def test_malformed(self, text):
        """Test invalid blocks are rejected"""
        with pytest.raises(InputValidationError):
            Block.from_json(text)

    def test_digest_id(self, wallet, make_note, make_block):
        """Test ids are stable and depend on the contents"""
        note = make_note(wallet.default_address(), QUANTITY)
        block = make_block([note], 1)
        other = make_block([note], 2)

        assert digest_block(wallet, block) == block.digest_id()
        assert block.digest_id() == Block.from_dict(block.to_dict()).digest_id()
        assert block.digest_id() != Block(block_num=1, leaves=block.leaves).digest_id()
        assert block.digest_id() != other.digest_id()
        assert 0 <= block.digest_id() < 2**64
