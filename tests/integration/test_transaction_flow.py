"""
End-to-end tests: resolve, sign, verify, apply locally, then confirm on chain
"""

import dataclasses

import pytest

from shroud import (
    AuthenticateIntent,
    Block,
    BurnVaultIntent,
    CreateVaultIntent,
    Name,
    Symbol,
    TransferIntent,
    Wallet,
    apply_local_effects,
    digest_block,
    resolve,
    sign,
    verify,
)
from shroud.errors import CapacityExceeded, CryptoError, StateConsistencyError

CHAIN_ID = "aa" * 32
SHLD = (Name.from_string("shieldtokens"), Symbol.from_string("4,SHLD"))


def shld(amount: int) -> str:
    return f"{amount // 10000}.{amount % 10000:04d} SHLD@shieldtokens"


def chain_block(proved, block_num: int) -> Block:
    """Block as the chain would record a submitted transaction"""
    burned = [a.nullifier for a in proved.authentications if a.burn]
    return Block(
        block_num=block_num,
        timestamp=block_num * 1000,
        leaves=[o.commitment for o in proved.outputs],
        note_ciphertexts=proved.ciphertexts(),
        nullifiers=[s.nullifier for s in proved.spends] + burned,
    )


def run(wallet, intent, fee_schedule, proving_params, now_ms=10**12):
    """Resolve, sign, verify and apply one intent"""
    resolved = resolve(wallet, intent, fee_schedule)
    proved, meta = sign(wallet, resolved, proving_params)
    assert verify(proved, proving_params.verifying_parameters())
    apply_local_effects(wallet, proved, meta, now_ms)
    return resolved, proved, meta


class TestTransferFlow:
    """Test a transfer from Alice to Bob"""

    def test_send_and_confirm(self, wallet, bob, fund, fee_schedule, proving_params):
        """Test eager update followed by chain confirmation in both wallets"""
        fund([wallet, bob], shld(500))
        intent = TransferIntent(bob.default_address().to_text(), shld(300), "rent")
        resolved, proved, meta = run(wallet, intent, fee_schedule, proving_params)

        assert resolved.fee_amount == 10
        assert meta.burned_auth_tokens == []
        assert wallet.balances() == {SHLD: 190}
        assert wallet.provisional_leaf_count == 2
        assert len(wallet.spent_notes()) == 1
        [sent] = wallet.outgoing_notes()
        assert sent.note.amount == 300
        assert sent.note.address == bob.default_address()

        block = chain_block(proved, wallet.block_num + 1)
        digest_block(wallet, block)
        digest_block(bob, block)

        assert wallet.provisional_leaf_count == 0
        assert wallet.balances() == {SHLD: 190}
        assert bob.balances() == {SHLD: 300}
        assert bob.unspent_notes()[0].note.memo_string() == "rent"
        assert wallet.root() == bob.root()
        assert wallet.leaf_count == bob.leaf_count == 3

    def test_change_note_is_spendable(
        self, wallet, bob, fund, fee_schedule, proving_params
    ):
        """Test change from an unconfirmed transaction can be spent again"""
        fund(wallet, shld(500))
        recipient = bob.default_address().to_text()
        run(wallet, TransferIntent(recipient, shld(300)), fee_schedule, proving_params)
        run(wallet, TransferIntent(recipient, shld(100)), fee_schedule, proving_params)

        assert wallet.balances() == {SHLD: 80}
        assert wallet.provisional_leaf_count == 4
        assert len(wallet.outgoing_notes()) == 2

    def test_history_orders_local_notes_last(
        self, wallet, bob, fund, fee_schedule, proving_params
    ):
        """Test eagerly applied notes sort after chain notes"""
        fund(wallet, shld(500), memo="salary")
        intent = TransferIntent(bob.default_address().to_text(), shld(300), "rent")
        run(wallet, intent, fee_schedule, proving_params, now_ms=0)

        history = wallet.transaction_history()
        assert [e["direction"] for e in history] == ["received", "sent"]
        assert [e["memo"] for e in history] == ["salary", "rent"]
        assert history[1]["block_ts"] > history[0]["block_ts"]


class TestSigning:
    """Test signing and verification properties"""

    def test_tampered_fee_fails_verification(
        self, wallet, bob, fund, fee_schedule, proving_params
    ):
        """Test proofs are bound to the transaction body"""
        fund(wallet, shld(500))
        intent = TransferIntent(bob.default_address().to_text(), shld(300))
        proved, _ = sign(wallet, resolve(wallet, intent, fee_schedule), proving_params)
        vk = proving_params.verifying_parameters()

        assert verify(proved, vk)
        assert not verify(dataclasses.replace(proved, fee=shld(1)), vk)

    def test_sign_does_not_mutate(self, wallet, bob, fund, fee_schedule, proving_params):
        """Test signing leaves the wallet untouched"""
        fund(wallet, shld(500))
        intent = TransferIntent(bob.default_address().to_text(), shld(300))
        resolved = resolve(wallet, intent, fee_schedule)
        before = wallet.to_dict()
        sign(wallet, resolved, proving_params)
        assert wallet.to_dict() == before

    def test_signed_json_round_trip(
        self, wallet, bob, fund, fee_schedule, proving_params
    ):
        """Test a transaction still verifies after serialization"""
        fund(wallet, shld(500))
        intent = TransferIntent(bob.default_address().to_text(), shld(300))
        proved, _ = sign(wallet, resolve(wallet, intent, fee_schedule), proving_params)
        restored = type(proved).from_json(proved.to_json())
        assert verify(restored, proving_params.verifying_parameters())

    def test_sign_after_input_spent(
        self, wallet, bob, fund, fee_schedule, proving_params
    ):
        """Test stale resolutions are refused"""
        [note] = fund(wallet, shld(500))
        intent = TransferIntent(bob.default_address().to_text(), shld(300))
        resolved = resolve(wallet, intent, fee_schedule)
        wallet.mark_notes_spent(note.nullifier(wallet.nullifier_key, 0))

        with pytest.raises(StateConsistencyError):
            sign(wallet, resolved, proving_params)

    def test_watch_wallet_cannot_sign(
        self, wallet, bob, fund, fee_schedule, proving_params
    ):
        """Test a full viewing key resolves but does not sign"""
        watcher = Wallet.create_from_full_viewing_key(
            wallet.full_viewing_key_text(), CHAIN_ID, tree_depth=8
        )
        fund([wallet, watcher], shld(500))
        intent = TransferIntent(bob.default_address().to_text(), shld(300))
        resolved = resolve(watcher, intent, fee_schedule)

        with pytest.raises(CryptoError):
            sign(watcher, resolved, proving_params)


class TestLocalEffects:
    """Test failure handling in the eager update"""

    def test_capacity_exceeded_rolls_back(self, bob, fund, fee_schedule, proving_params):
        """Test a full tree leaves the wallet as it was"""
        small = Wallet.create(b"capacity-test-seed-of-32-bytes!!!", CHAIN_ID, tree_depth=1)
        fund(small, shld(500))
        intent = TransferIntent(bob.default_address().to_text(), shld(300))
        resolved = resolve(small, intent, fee_schedule)
        proved, meta = sign(small, resolved, proving_params)
        before = small.to_dict()

        with pytest.raises(CapacityExceeded):
            apply_local_effects(small, proved, meta, 10**12)
        assert small.to_dict() == before
        assert not small.is_corrupted

    def test_foreign_leaf_before_own_outputs(
        self, wallet, bob, make_note, make_block, fee_schedule, proving_params
    ):
        """Test a block ordering another leaf first rebinds the eager notes"""
        funding = make_block([make_note(wallet.default_address(), shld(500))], 1)
        digest_block(wallet, funding)
        digest_block(bob, funding)
        intent = TransferIntent(bob.default_address().to_text(), shld(300))
        _, proved, _ = run(wallet, intent, fee_schedule, proving_params)

        foreign = make_note(bob.default_address(), shld(7))
        confirming = chain_block(proved, 2)
        block = dataclasses.replace(
            confirming,
            leaves=[foreign.commitment()] + confirming.leaves,
            note_ciphertexts=make_block([foreign], 2).note_ciphertexts
            + confirming.note_ciphertexts,
        )
        digest_block(wallet, block)
        digest_block(bob, block)

        assert wallet.provisional_leaf_count == 0
        assert wallet.leaf_count == 4
        assert wallet.balances() == {SHLD: 190}
        assert wallet.unpublished_notes() == []
        assert len(wallet.spent_notes()) == 1
        [change] = wallet.unspent_notes()
        assert change.position >= 2
        assert wallet.leaves()[change.position] == change.commitment
        witness = wallet.witness(change.position)
        assert witness.compute_root(change.commitment) == wallet.root()
        [sent] = wallet.outgoing_notes()
        assert wallet.leaves()[sent.position] == sent.commitment
        assert wallet.root() == bob.root()
        assert bob.balances() == {SHLD: 307}

        intent = TransferIntent(bob.default_address().to_text(), shld(100))
        run(wallet, intent, fee_schedule, proving_params)
        assert wallet.balances() == {SHLD: 80}


class TestVaultFlow:
    """Test the auth token lifecycle"""

    def test_create_authenticate_burn(self, wallet, fund, fee_schedule, proving_params):
        """Test creating a vault, using it and burning it"""
        fund(wallet, shld(100))

        resolved, proved, meta = run(
            wallet, CreateVaultIntent(), fee_schedule, proving_params
        )
        assert resolved.fee_amount == 14
        assert len(meta.unpublished_notes) == 1
        assert len(proved.ciphertexts()) == 1
        [token_id] = wallet.authentication_tokens()
        assert token_id.endswith("@shieldvaults")
        assert wallet.unpublished_notes() == []
        wallet.set_auth_count(wallet.auth_count + 1)

        digest_block(wallet, chain_block(proved, wallet.block_num + 1))
        assert wallet.provisional_leaf_count == 0
        assert wallet.authentication_tokens() == [token_id]

        resolved, proved, _ = run(
            wallet, AuthenticateIntent(token_id, "login"), fee_schedule, proving_params
        )
        assert resolved.fee_amount == 13
        assert proved.authentications[0].nullifier == b""
        assert wallet.authentication_tokens() == [token_id]
        digest_block(wallet, chain_block(proved, wallet.block_num + 1))

        resolved, proved, meta = run(
            wallet, BurnVaultIntent(token_id, "alice"), fee_schedule, proving_params
        )
        assert resolved.fee_amount == 13
        assert meta.burned_auth_tokens == [token_id]
        assert wallet.authentication_tokens() == []
        assert wallet.authentication_tokens(spent=True) == [token_id]

        digest_block(wallet, chain_block(proved, wallet.block_num + 1))
        assert wallet.balances() == {SHLD: 100 - 14 - 13 - 13}
        assert wallet.provisional_leaf_count == 0
