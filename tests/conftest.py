"""Shared fixtures for shroud tests"""

import pytest

from shroud import (
    Block,
    ExtendedAsset,
    FeeSchedule,
    Name,
    Note,
    ProvingParameters,
    Wallet,
    digest_block,
    encrypt_note,
)
from shroud.note import make_memo
from shroud.utils import generate_rseed

CHAIN_ID = "aa" * 32
FEE_CONTRACT = "shieldtokens"
TEST_TREE_DEPTH = 8

ALICE_SEED = b"alice-test-seed-with-at-least-32-bytes"
BOB_SEED = b"bob-test-seed-with-at-least-32-bytes!!"

FEES = {
    "begin": "0.0010 SHLD",
    "spend": "0.0010 SHLD",
    "spendoutput": "0.0000 SHLD",
    "output": "0.0005 SHLD",
    "withdraw": "0.0002 SHLD",
    "authenticate": "0.0003 SHLD",
    "publishnotes": "0.0004 SHLD",
}


def new_note(address, quantity: str, memo: str = "") -> Note:
    """Fresh note of quantity (e.g. "0.0500 SHLD@shieldtokens") to address"""
    return Note(
        account=Name(),
        asset=ExtendedAsset.from_string(quantity),
        address=address,
        rseed=generate_rseed(),
        memo=make_memo(memo),
    )


def block_with(notes, block_num: int, timestamp=None, nullifiers=(), ovk=None) -> Block:
    """Block that publishes notes as leaves plus ciphertexts"""
    return Block(
        block_num=block_num,
        timestamp=block_num * 1000 if timestamp is None else timestamp,
        leaves=[n.commitment() for n in notes],
        note_ciphertexts=[encrypt_note(n, ovk).to_hex() for n in notes],
        nullifiers=list(nullifiers),
    )


@pytest.fixture
def wallet():
    return Wallet.create(ALICE_SEED, CHAIN_ID, tree_depth=TEST_TREE_DEPTH)


@pytest.fixture
def bob():
    return Wallet.create(BOB_SEED, CHAIN_ID, tree_depth=TEST_TREE_DEPTH)


@pytest.fixture
def fee_schedule():
    return FeeSchedule.from_dict(FEES)


@pytest.fixture(scope="session")
def proving_params():
    return ProvingParameters.generate(seed=b"test-proving-parameters")


@pytest.fixture
def make_note():
    return new_note


@pytest.fixture
def make_block():
    return block_with


@pytest.fixture
def fund():
    """fund(wallets, *quantities): publish notes to the first wallet, digest in all"""

    def _fund(wallets, *quantities, memo=""):
        if isinstance(wallets, Wallet):
            wallets = [wallets]
        owner = wallets[0]
        notes = [new_note(owner.default_address(), q, memo) for q in quantities]
        block = block_with(notes, owner.block_num + 1)
        for w in wallets:
            digest_block(w, block)
        return notes

    return _fund
