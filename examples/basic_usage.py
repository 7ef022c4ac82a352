"""
Basic usage example for the Shroud wallet engine
"""

from shroud import (
    Block,
    FeeSchedule,
    Note,
    TransferIntent,
    Wallet,
    WalletClient,
    encrypt_note,
    generate_secret,
)
from shroud.eosio import ExtendedAsset, Name
from shroud.note import make_memo
from shroud.utils import generate_rseed

CHAIN_ID = "aa" * 32
FEES = {
    "begin": "0.0010 SHLD",
    "spend": "0.0010 SHLD",
    "spendoutput": "0.0000 SHLD",
    "output": "0.0005 SHLD",
    "withdraw": "0.0002 SHLD",
    "authenticate": "0.0003 SHLD",
    "publishnotes": "0.0004 SHLD",
}


def deposit(wallet: Wallet, quantity: str, block_num: int) -> Block:
    """Simulate a block that shields tokens to the wallet's default address"""
    note = Note(
        account=Name(),
        asset=ExtendedAsset.from_string(quantity),
        address=wallet.default_address(),
        rseed=generate_rseed(),
        memo=make_memo("deposit"),
    )
    return Block(
        block_num=block_num,
        timestamp=block_num * 1000,
        leaves=[note.commitment()],
        note_ciphertexts=[encrypt_note(note).to_hex()],
    )


def main():
    print("=== Shroud Wallet Demo ===\n")

    # Create wallets from fresh secrets
    alice = Wallet.create(bytes.fromhex(generate_secret()), CHAIN_ID)
    bob = Wallet.create(bytes.fromhex(generate_secret()), CHAIN_ID)
    fee_schedule = FeeSchedule.from_dict(FEES)
    client = WalletClient(alice, fee_schedule)
    print(f"Alice: {alice.default_address()}")
    print(f"Bob:   {bob.default_address()}")

    # 1. Receive a deposit
    print("\n1. Digesting a deposit block...")
    block = deposit(alice, "1.0000 SHLD@shieldtokens", 1)
    alice.digest_block(block)
    bob.digest_block(block)
    print(f"   Alice balance: {[str(a) for a in alice.balances_list()]}")

    # 2. Private transfer
    print("\n2. Sending to Bob...")
    fee = alice.estimate_send_fee("0.2500 SHLD@shieldtokens", fee_schedule)
    print(f"   Estimated fee: {fee}")
    result = client.transact(
        TransferIntent(
            recipient=bob.default_address().to_text(),
            quantity="0.2500 SHLD@shieldtokens",
            memo="lunch",
        )
    )
    print(f"   Status: {result.status.value}")
    print(f"   Outputs: {len(result.proved.outputs)}")
    print(f"   Alice balance (eager): {[str(a) for a in alice.balances_list()]}")

    # 3. Chain confirms the transaction
    print("\n3. Confirming on chain...")
    proved = result.proved
    confirmed = Block(
        block_num=2,
        timestamp=2000,
        leaves=[o.commitment for o in proved.outputs],
        note_ciphertexts=proved.ciphertexts(),
        nullifiers=[s.nullifier for s in proved.spends],
    )
    alice.digest_block(confirmed)
    bob.digest_block(confirmed)
    print(f"   Bob balance: {[str(a) for a in bob.balances_list()]}")
    print(f"   Roots match: {alice.root() == bob.root()}")

    # 4. Persist and restore
    print("\n4. Saving wallet...")
    data = alice.write()
    restored = Wallet.read(data)
    print(f"   Record size: {len(data)} bytes")
    print(f"   Restored balance: {[str(a) for a in restored.balances_list()]}")

    # 5. Watch wallet from the full viewing key
    print("\n5. Watching with the full viewing key...")
    watcher = Wallet.create_from_full_viewing_key(alice.full_viewing_key_text(), CHAIN_ID)
    for b in (block, confirmed):
        watcher.digest_block(b)
    print(f"   Watcher balance: {[str(a) for a in watcher.balances_list()]}")
    print(f"   Watcher sees {len(watcher.outgoing_notes())} outgoing notes")

    print("\n=== Demo Complete ===")


if __name__ == "__main__":
    main()
