"""
Block digestion

A block, as far as the wallet cares, is the new commitment leaves, the note
ciphertexts published with them and the nullifiers revealed. Digestion
applies them in that order: leaves first, so notes in the same block find
their positions, and nullifiers last, so a note created and spent in one
block ends up spent.
"""

import hashlib
import json
import logging
import struct
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from .constants import COMMITMENT_SIZE, NULLIFIER_SIZE
from .errors import InputValidationError
from .utils import hex_to_bytes

if TYPE_CHECKING:
    from .wallet import Wallet

logger = logging.getLogger(__name__)


@dataclass
class Block:
    """Chain data relevant to the wallet for one block"""

    block_num: int
    timestamp: int = 0
    leaves: list[bytes] = field(default_factory=list)
    note_ciphertexts: list[str] = field(default_factory=list)
    nullifiers: list[bytes] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Block":
        """
        Create from a dictionary with hex-encoded leaves and nullifiers

        Raises:
            InputValidationError: On missing fields or bad encodings
        """
        try:
            block_num = int(data["block_num"])
            timestamp = int(data.get("timestamp", 0))
            leaves = [
                hex_to_bytes(leaf, COMMITMENT_SIZE) for leaf in data.get("leaves", [])
            ]
            nullifiers = [
                hex_to_bytes(nf, NULLIFIER_SIZE) for nf in data.get("nullifiers", [])
            ]
            ciphertexts = [str(ct) for ct in data.get("note_ciphertexts", [])]
        except InputValidationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid block: {e}") from None
        if block_num < 0 or timestamp < 0:
            raise InputValidationError("Block number and timestamp must be non-negative")
        return cls(block_num, timestamp, leaves, ciphertexts, nullifiers)

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "Block":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid block JSON: {e}") from None
        if not isinstance(data, dict):
            raise InputValidationError("Block JSON must be an object")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_num": self.block_num,
            "timestamp": self.timestamp,
            "leaves": [leaf.hex() for leaf in self.leaves],
            "note_ciphertexts": list(self.note_ciphertexts),
            "nullifiers": [nf.hex() for nf in self.nullifiers],
        }

    def digest_id(self) -> int:
        """64-bit id of the block number and contents"""
        h = hashlib.blake2b(digest_size=8, person=b"ShroudBlockId___")
        h.update(struct.pack("<QQ", self.block_num, self.timestamp))
        for leaf in self.leaves:
            h.update(leaf)
        for ciphertext in self.note_ciphertexts:
            h.update(ciphertext.encode())
        for nf in self.nullifiers:
            h.update(nf)
        return int.from_bytes(h.digest(), "little")


def digest_block(wallet: "Wallet", block: Block) -> int:
    """
    Fold one block into the wallet

    Applies leaves, then ciphertexts (retrying unpublished notes whose
    leaves just arrived), then nullifiers. Blocks should be supplied in
    non-decreasing order; re-applying a block is harmless for notes already
    tracked.

    Args:
        wallet: Wallet to update
        block: Block contents

    Returns:
        64-bit digest id of the block

    Raises:
        InputValidationError: If a leaf, ciphertext or nullifier is malformed;
            the wallet is unchanged
        CapacityExceeded: If the tree cannot hold the block's leaves; the
            wallet is unchanged
    """
    with wallet.atomic():
        wallet.add_leaves(b"".join(block.leaves))
        counts = wallet.add_notes(block.note_ciphertexts, block.block_num, block.timestamp)
        counts = counts + wallet.retry_unpublished()
        spent = wallet.mark_notes_spent(b"".join(block.nullifiers))
        wallet.block_num = max(wallet.block_num, block.block_num)

    if counts.total or spent:
        logger.info(
            "Digested block %d: %d new notes, %d spent",
            block.block_num,
            counts.total,
            spent,
        )
    return block.digest_id()
