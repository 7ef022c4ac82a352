"""Protocol constants shared across the wallet engine"""

# Depth of the note commitment tree
TREE_DEPTH = 32

COMMITMENT_SIZE = 32
NULLIFIER_SIZE = 32
RSEED_SIZE = 32
KEY_SIZE = 32
DIVERSIFIER_SIZE = 11
ADDRESS_SIZE = DIVERSIFIER_SIZE + KEY_SIZE

MEMO_SIZE = 512

# Memo marking a note the wallet sent back to itself as change
MEMO_CHANGE_NOTE = b"\xfe" + b"change" + bytes(MEMO_SIZE - 7)

# header, account, amount, symbol, contract (u64 each) + address + rseed + memo
NOTE_PLAINTEXT_SIZE = 5 * 8 + ADDRESS_SIZE + RSEED_SIZE + MEMO_SIZE

# Sentinel for "no tree position" in the binary wallet record
NO_POSITION = 2**64 - 1

# Proof circuits
CIRCUIT_SPEND = "spend"
CIRCUIT_OUTPUT = "output"
CIRCUIT_AUTHENTICATE = "authenticate"
CIRCUITS = (CIRCUIT_SPEND, CIRCUIT_OUTPUT, CIRCUIT_AUTHENTICATE)
