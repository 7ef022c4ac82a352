"""
Tests for the wallet state store
"""

import hashlib

import pytest

from shroud import Note, Wallet, create_auth_token_note, digest_block, encrypt_note
from shroud.constants import MEMO_CHANGE_NOTE
from shroud.eosio import Name, Symbol
from shroud.errors import (
    CapacityExceeded,
    CryptoError,
    InputValidationError,
    WalletCorruptedError,
)
from shroud.note import make_memo

CHAIN_ID = "aa" * 32
SHLD = (Name.from_string("shieldtokens"), Symbol.from_string("4,SHLD"))


def leaf(i: int) -> bytes:
    return hashlib.sha256(b"leaf" + bytes([i])).digest()


class TestConstruction:
    """Test wallet creation"""

    def test_create(self, wallet):
        """Test a fresh wallet is empty with one address"""
        assert not wallet.is_view_only
        assert wallet.leaf_count == 0
        assert wallet.block_num == 0
        assert wallet.balances() == {}
        assert wallet.addresses() == [wallet.default_address()]

    def test_deterministic_addresses(self, wallet):
        """Test the same seed derives the same address sequence"""
        first = Wallet.create(b"t" * 32, CHAIN_ID, tree_depth=8)
        twin = Wallet.create(b"t" * 32, CHAIN_ID, tree_depth=8)
        assert twin.default_address() == first.default_address()
        assert twin.derive_next_address() == first.derive_next_address()
        assert twin.seeds_match(first)
        assert not twin.seeds_match(wallet)

    def test_seeds_differ(self, wallet, bob):
        """Test distinct seeds"""
        assert not wallet.seeds_match(bob)
        assert wallet.default_address() != bob.default_address()

    def test_requires_key(self):
        """Test a wallet needs some key material"""
        with pytest.raises(InputValidationError):
            Wallet(CHAIN_ID)

    def test_bad_chain_id(self):
        """Test chain ids must be 32 bytes"""
        with pytest.raises(InputValidationError):
            Wallet.create(b"s" * 32, "abcd")

    def test_to_json_has_no_keys(self, wallet):
        """Test the inspectable view leaks no key material"""
        text = wallet.to_json(pretty=True)
        assert wallet.spending_key.sk.hex() not in text
        assert wallet.incoming_viewing_key.ivk.hex() not in text
        assert wallet.seed_hex() not in text


class TestLeaves:
    """Test commitment tree maintenance"""

    def test_add_leaves(self, wallet):
        """Test leaves append in order"""
        assert wallet.add_leaves(leaf(0) + leaf(1)) == 2
        assert wallet.leaf_count == 2
        assert wallet.witness(1).compute_root(leaf(1)) == wallet.root()

    def test_bad_length(self, wallet):
        """Test non-multiple-of-32 input changes nothing"""
        root = wallet.root()
        with pytest.raises(InputValidationError):
            wallet.add_leaves(leaf(0) + b"x")
        assert wallet.leaf_count == 0
        assert wallet.root() == root

    def test_capacity(self):
        """Test a full tree rejects the whole batch"""
        small = Wallet.create(b"s" * 32, CHAIN_ID, tree_depth=2)
        small.add_leaves(leaf(0))
        with pytest.raises(CapacityExceeded):
            small.add_leaves(b"".join(leaf(i) for i in range(1, 5)))
        assert small.leaf_count == 1

    def test_provisional_confirmed(self, wallet):
        """Test chain leaves confirm matching provisional leaves"""
        wallet.add_leaves(leaf(0))
        assert wallet.add_provisional_leaves(leaf(1) + leaf(2)) == [1, 2]
        assert wallet.provisional_leaf_count == 2

        assert wallet.add_leaves(leaf(1) + leaf(2) + leaf(3)) == 1
        assert wallet.provisional_leaf_count == 0
        assert wallet.leaves() == [leaf(0), leaf(1), leaf(2), leaf(3)]

    def test_provisional_partially_confirmed(self, wallet):
        """Test confirmation can span several blocks"""
        wallet.add_provisional_leaves(leaf(1) + leaf(2))
        assert wallet.add_leaves(leaf(1)) == 0
        assert wallet.provisional_leaf_count == 1
        assert wallet.add_leaves(leaf(2)) == 0
        assert wallet.provisional_leaf_count == 0

    def test_provisional_mismatch(self, wallet, make_note):
        """Test contradicting chain leaves replace the provisional ones"""
        wallet.add_leaves(leaf(0))
        change = make_note(wallet.default_address(), "0.0100 SHLD@shieldtokens")
        wallet.add_provisional_leaves(change.commitment())
        wallet.add_notes([encrypt_note(change)])
        assert wallet.unspent_notes()[0].position == 1

        assert wallet.add_leaves(leaf(9) + change.commitment()) == 2
        assert wallet.provisional_leaf_count == 0
        assert wallet.leaves() == [leaf(0), leaf(9), change.commitment()]
        [pending] = wallet.unpublished_notes()
        assert pending.position is None

        wallet.retry_unpublished()
        [ex] = wallet.unspent_notes()
        assert ex.position == 2
        assert wallet.witness(2).compute_root(change.commitment()) == wallet.root()

    def test_provisional_mismatch_capacity(self):
        """Test a contradicting batch that does not fit changes nothing"""
        small = Wallet.create(b"s" * 32, CHAIN_ID, tree_depth=2)
        small.add_leaves(leaf(0))
        small.add_provisional_leaves(leaf(1) + leaf(2))
        with pytest.raises(CapacityExceeded):
            small.add_leaves(b"".join(leaf(i) for i in range(5, 9)))
        assert small.leaves() == [leaf(0), leaf(1), leaf(2)]
        assert small.provisional_leaf_count == 2


class TestNotes:
    """Test note tracking"""

    def test_incoming_with_known_leaf(self, wallet, make_note):
        """Test a decryptable note with a known leaf becomes unspent"""
        note = make_note(wallet.default_address(), "0.0100 SHLD@shieldtokens")
        wallet.add_leaves(note.commitment())
        counts = wallet.add_notes([encrypt_note(note).to_hex()], 1, 1000)

        assert (counts.fts, counts.nfts, counts.ats) == (1, 0, 0)
        (ex,) = wallet.unspent_notes()
        assert ex.position == 0
        assert ex.block_ts == 1000
        assert wallet.balances() == {SHLD: 100}

    def test_incoming_without_leaf(self, wallet, make_note):
        """Test a note ahead of its leaf waits in unpublished"""
        note = make_note(wallet.default_address(), "0.0100 SHLD@shieldtokens")
        counts = wallet.add_notes([encrypt_note(note)])
        assert counts.total == 0
        assert len(wallet.unpublished_notes()) == 1
        assert wallet.balances() == {}

        wallet.add_leaves(note.commitment())
        assert wallet.retry_unpublished().fts == 1
        assert wallet.unpublished_notes() == []
        assert wallet.balances() == {SHLD: 100}

    def test_outgoing(self, wallet, bob, make_note):
        """Test notes sent to others are recovered as outgoing"""
        note = make_note(bob.default_address(), "0.0100 SHLD@shieldtokens")
        wallet.add_leaves(note.commitment())
        counts = wallet.add_notes([encrypt_note(note, wallet.outgoing_viewing_key)])
        assert counts.total == 0
        assert [ex.note for ex in wallet.outgoing_notes()] == [note]
        assert wallet.balances() == {}

    def test_foreign_notes_ignored(self, wallet, bob, make_note):
        """Test notes for others without our ovk are ignored"""
        note = make_note(bob.default_address(), "0.0100 SHLD@shieldtokens")
        wallet.add_notes([encrypt_note(note), "garbage", b"\x00" * 10])
        assert wallet.unspent_notes() == []
        assert wallet.outgoing_notes() == []
        assert wallet.unpublished_notes() == []

    def test_no_double_count(self, wallet, make_note):
        """Test feeding the same ciphertext twice tracks it once"""
        note = make_note(wallet.default_address(), "0.0100 SHLD@shieldtokens")
        wallet.add_leaves(note.commitment())
        ct = encrypt_note(note).to_hex()
        assert wallet.add_notes([ct, ct]).fts == 1
        assert wallet.add_notes([ct]).total == 0
        assert wallet.balances() == {SHLD: 100}
        assert len(wallet.unspent_notes()) == 1

    def test_conflicting_contents_corrupt(self, wallet, make_note):
        """Test the same commitment with different contents is fatal"""
        note = make_note(wallet.default_address(), "0.0100 SHLD@shieldtokens", "a")
        forged = Note(
            account=note.account,
            asset=note.asset,
            address=note.address,
            rseed=note.rseed,
            memo=make_memo("b"),
        )
        assert forged.commitment() == note.commitment()
        wallet.add_leaves(note.commitment())
        wallet.add_notes([encrypt_note(note)])

        with pytest.raises(WalletCorruptedError):
            wallet.add_notes([encrypt_note(forged)])
        assert wallet.is_corrupted
        with pytest.raises(WalletCorruptedError):
            wallet.add_leaves(leaf(0))
        with pytest.raises(WalletCorruptedError):
            wallet.mark_notes_spent(bytes(32))

    def test_balances_by_kind(self, wallet, fund):
        """Test balances sum fungible notes per contract and symbol"""
        fund(
            wallet,
            "0.0100 SHLD@shieldtokens",
            "0.0250 SHLD@shieldtokens",
            "1.0000 SHLD@othertokens",
            "7@nfttokens",
        )
        balances = wallet.balances()
        assert balances[SHLD] == 350
        assert len(balances) == 2
        assert [str(b) for b in wallet.balances_list()] == [
            "1.0000 SHLD@othertokens",
            "0.0350 SHLD@shieldtokens",
        ]
        assert len(wallet.fungible_tokens("4,SHLD", "shieldtokens")) == 2
        assert len(wallet.non_fungible_tokens()) == 1


class TestSpending:
    """Test nullifier matching"""

    def test_scenario_c(self, wallet, fund):
        """Test an unmatched nullifier changes nothing"""
        fund(wallet, "0.0100 SHLD@shieldtokens")
        before = wallet.to_dict()
        assert wallet.mark_notes_spent(b"\x11" * 32) == 0
        assert wallet.to_dict() == before

    def test_mark_spent(self, wallet, fund):
        """Test a matching nullifier moves the note to spent"""
        (note,) = fund(wallet, "0.0100 SHLD@shieldtokens")
        nf = note.nullifier(wallet.nullifier_key, 0)
        assert wallet.mark_notes_spent(b"\x11" * 32 + nf) == 1
        assert wallet.unspent_notes() == []
        assert [ex.note for ex in wallet.spent_notes()] == [note]
        assert wallet.balances() == {}
        assert wallet.mark_notes_spent(nf) == 0

    def test_bad_length(self, wallet):
        """Test nullifier batches must be multiples of 32 bytes"""
        with pytest.raises(InputValidationError):
            wallet.mark_notes_spent(b"\x00" * 33)
        assert wallet.mark_notes_spent(b"") == 0


class TestAuthTokens:
    """Test vault tokens"""

    @pytest.fixture
    def token(self, wallet, make_block):
        note = create_auth_token_note(wallet, "vault-seed", "shieldvaults")
        digest_block(wallet, make_block([note], 1))
        return note

    def test_listed(self, wallet, token):
        """Test tokens are listed but not in balances"""
        assert wallet.authentication_tokens() == [token.auth_token_id()]
        assert wallet.authentication_tokens("othervaults") == []
        assert wallet.authentication_tokens(reveal_seed=True) == [
            token.auth_token_id() + "|vault-seed"
        ]
        assert wallet.balances() == {}

    def test_burn_eagerly(self, wallet, token):
        """Test eager burns move the token to spent"""
        assert wallet.burn_auth_token_eagerly(token.auth_token_id(), 5000)
        assert wallet.authentication_tokens() == []
        assert wallet.authentication_tokens(spent=True) == [token.auth_token_id()]
        assert not wallet.burn_auth_token_eagerly(token.auth_token_id())

    def test_unpublished_vault_note(self, wallet):
        """Test out-of-band notes are recorded and cleared"""
        note = create_auth_token_note(wallet, "offline", "shieldvaults")
        assert wallet.add_unpublished_notes([encrypt_note(note).to_hex()]) == 1
        assert wallet.add_unpublished_notes([encrypt_note(note).to_hex()]) == 0
        assert wallet.clear_unpublished_notes() == 1
        assert wallet.unpublished_notes() == []


class TestViewOnly:
    """Test wallets created from an incoming viewing key"""

    @pytest.fixture
    def viewer(self, wallet):
        return Wallet.create_view_only(
            wallet.incoming_viewing_key.to_text(), CHAIN_ID, tree_depth=8
        )

    def test_sees_incoming(self, wallet, viewer, fund):
        """Test the viewer tracks the same incoming notes"""
        fund([wallet, viewer], "0.0100 SHLD@shieldtokens")
        assert viewer.is_view_only
        assert viewer.default_address() == wallet.default_address()
        assert viewer.balances() == wallet.balances()

    def test_cannot_spend(self, viewer, fund):
        """Test the viewer has no nullifier key"""
        fund(viewer, "0.0100 SHLD@shieldtokens")
        assert viewer.mark_notes_spent(b"\x11" * 32) == 0
        assert viewer.outgoing_viewing_key is None
        with pytest.raises(CryptoError):
            viewer.nullifier_key

    def test_bad_key(self):
        """Test undecodable viewing keys"""
        with pytest.raises(CryptoError):
            Wallet.create_view_only("garbage", CHAIN_ID)


class TestFullViewing:
    """Test watch wallets built from a full viewing key"""

    @pytest.fixture
    def watcher(self, wallet):
        return Wallet.create_from_full_viewing_key(
            wallet.full_viewing_key_text(), CHAIN_ID, tree_depth=8
        )

    def test_sees_outgoing_and_spends(self, wallet, watcher, bob, fund, make_note):
        """Test the watcher recovers sent notes and detects spends"""
        [note] = fund([wallet, watcher], "0.0100 SHLD@shieldtokens")
        sent = make_note(bob.default_address(), "0.0005 SHLD@shieldtokens")
        for w in (wallet, watcher):
            w.add_leaves(sent.commitment())
            w.add_notes([encrypt_note(sent, wallet.outgoing_viewing_key)])

        assert [ex.note for ex in watcher.outgoing_notes()] == [sent]
        assert watcher.mark_notes_spent(note.nullifier(watcher.nullifier_key, 0)) == 1
        assert watcher.balances() == {}
        assert watcher.nullifier_key == wallet.nullifier_key

    def test_cannot_sign(self, watcher):
        """Test the watcher holds no seed"""
        assert watcher.is_view_only
        assert watcher.spending_key is None
        with pytest.raises(CryptoError):
            watcher.seed_hex()

    def test_exports(self, wallet, watcher):
        """Test the watcher exports the same viewing keys"""
        assert watcher.full_viewing_key_text() == wallet.full_viewing_key_text()
        assert watcher.outgoing_viewing_key_text() == wallet.outgoing_viewing_key_text()
        assert watcher.incoming_viewing_key == wallet.incoming_viewing_key
        assert watcher.default_address() == wallet.default_address()

    def test_incoming_only_wallet_has_no_full_key(self, wallet):
        """Test incoming-only viewers cannot export outgoing keys"""
        viewer = Wallet.create_view_only(
            wallet.incoming_viewing_key.to_text(), CHAIN_ID, tree_depth=8
        )
        assert viewer.full_viewing_key is None
        with pytest.raises(CryptoError):
            viewer.full_viewing_key_text()
        with pytest.raises(CryptoError):
            viewer.outgoing_viewing_key_text()

    def test_bad_key(self, wallet):
        """Test an incoming viewing key is not accepted as a full one"""
        with pytest.raises(CryptoError):
            Wallet.create_from_full_viewing_key(
                wallet.incoming_viewing_key.to_text(), CHAIN_ID
            )


class TestMaintenance:
    """Test resets, counters and atomic groups"""

    def test_reset_chain_state(self, wallet, fund):
        """Test chain-derived state is forgotten, unpublished notes kept"""
        fund(wallet, "0.0100 SHLD@shieldtokens")
        note = create_auth_token_note(wallet, "offline", "shieldvaults")
        wallet.add_unpublished_notes([encrypt_note(note)])

        wallet.reset_chain_state()
        assert wallet.leaf_count == 0
        assert wallet.block_num == 0
        assert wallet.unspent_notes() == []
        assert len(wallet.unpublished_notes()) == 1
        assert wallet.unpublished_notes()[0].position is None

    def test_auth_count(self, wallet):
        """Test the caller-managed counter"""
        wallet.set_auth_count(3)
        assert wallet.auth_count == 3
        with pytest.raises(InputValidationError):
            wallet.set_auth_count(-1)

    def test_atomic_rollback(self, wallet):
        """Test an exception inside atomic() restores the state"""
        wallet.add_leaves(leaf(0))
        with pytest.raises(RuntimeError):
            with wallet.atomic():
                wallet.add_leaves(leaf(1))
                wallet.derive_next_address()
                raise RuntimeError("boom")
        assert wallet.leaf_count == 1
        assert len(wallet.addresses()) == 1
        assert wallet.witness(0).compute_root(leaf(0)) == wallet.root()

    def test_history(self, wallet, bob, fund, make_note):
        """Test received and sent notes appear, change does not"""
        fund(wallet, "0.0100 SHLD@shieldtokens", memo="salary")
        change = make_note(wallet.default_address(), "0.0001 SHLD@shieldtokens")
        change = Note(
            change.account, change.asset, change.address, change.rseed, MEMO_CHANGE_NOTE
        )
        sent = make_note(bob.default_address(), "0.0002 SHLD@shieldtokens")
        wallet.add_leaves(change.commitment() + sent.commitment())
        wallet.add_notes(
            [encrypt_note(n, wallet.outgoing_viewing_key) for n in (change, sent)],
            block_num=2,
            block_ts=2000,
        )

        history = wallet.transaction_history()
        assert [(e["direction"], e["asset"]) for e in history] == [
            ("received", "0.0100 SHLD@shieldtokens"),
            ("sent", "0.0002 SHLD@shieldtokens"),
        ]
        assert history[0]["memo"] == "salary"
