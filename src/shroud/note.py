"""
Note model

A note is the unit of shielded value. Its commitment is a leaf of the
commitment tree; its nullifier is revealed when it is spent.
"""

import hashlib
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .constants import (
    ADDRESS_SIZE,
    MEMO_CHANGE_NOTE,
    MEMO_SIZE,
    NOTE_PLAINTEXT_SIZE,
    RSEED_SIZE,
)
from .eosio import Asset, ExtendedAsset, Name, Symbol
from .errors import InputValidationError
from .keys import Address
from .utils import commitment_to_hex

U64_MAX = 2**64 - 1
_HEADER = struct.Struct("<5Q")


class NoteKind(Enum):
    """What a note represents, fixed by its asset fields"""

    FUNGIBLE = "ft"
    NON_FUNGIBLE = "nft"
    AUTH_TOKEN = "at"

    @classmethod
    def classify(cls, amount: int, symbol: Symbol) -> "NoteKind":
        if amount == 0 and symbol.is_none():
            return cls.AUTH_TOKEN
        if symbol.is_none():
            return cls.NON_FUNGIBLE
        return cls.FUNGIBLE


def make_memo(memo: Union[str, bytes, None] = None) -> bytes:
    """
    Pad a memo to the fixed memo size

    Raises:
        InputValidationError: If the memo does not fit
    """
    if memo is None:
        memo = b""
    if isinstance(memo, str):
        memo = memo.encode()
    if len(memo) > MEMO_SIZE:
        raise InputValidationError(f"Memo longer than {MEMO_SIZE} bytes")
    return bytes(memo) + bytes(MEMO_SIZE - len(memo))


def note_commitment(
    account: Name, asset: ExtendedAsset, address: Address, rseed: bytes
) -> bytes:
    """Commit(account, amount, symbol, contract, address, rseed)"""
    h = hashlib.blake2s(digest_size=32, person=b"NoteCmmt")
    h.update(
        struct.pack(
            "<4Q",
            account.raw,
            asset.amount,
            asset.symbol.raw,
            asset.contract.raw,
        )
    )
    h.update(address.to_bytes())
    h.update(rseed)
    return h.digest()


def note_nullifier(nk: bytes, commitment: bytes, position: int) -> bytes:
    """Nullify(nk, commitment, position)"""
    h = hashlib.blake2s(digest_size=32, person=b"NoteNulf")
    h.update(nk)
    h.update(commitment)
    h.update(struct.pack("<Q", position))
    return h.digest()


@dataclass(frozen=True)
class Note:
    """
    Shielded note

    Memo and header are carried in the ciphertext but not committed, so two
    notes that agree on (account, asset, address, rseed) are the same note.
    """

    account: Name
    asset: ExtendedAsset
    address: Address
    rseed: bytes
    memo: bytes = bytes(MEMO_SIZE)
    header: int = 0
    kind: NoteKind = field(init=False, compare=False)
    _commitment: bytes = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if not 0 <= self.asset.amount <= U64_MAX:
            raise InputValidationError(f"Note amount out of range: {self.asset.amount}")
        if not 0 <= self.header <= U64_MAX:
            raise InputValidationError("Note header out of range")
        if len(self.rseed) != RSEED_SIZE:
            raise InputValidationError(f"rseed must be {RSEED_SIZE} bytes")
        if len(self.memo) != MEMO_SIZE:
            raise InputValidationError(f"Memo must be {MEMO_SIZE} bytes")
        object.__setattr__(
            self, "kind", NoteKind.classify(self.asset.amount, self.asset.symbol)
        )
        object.__setattr__(
            self,
            "_commitment",
            note_commitment(self.account, self.asset, self.address, self.rseed),
        )

    @property
    def amount(self) -> int:
        return self.asset.amount

    @property
    def symbol(self) -> Symbol:
        return self.asset.symbol

    @property
    def contract(self) -> Name:
        return self.asset.contract

    def is_fungible(self) -> bool:
        return self.kind is NoteKind.FUNGIBLE

    def is_nft(self) -> bool:
        return self.kind is NoteKind.NON_FUNGIBLE

    def is_auth_token(self) -> bool:
        return self.kind is NoteKind.AUTH_TOKEN

    def is_change(self) -> bool:
        return self.memo == MEMO_CHANGE_NOTE

    def memo_string(self) -> str:
        if self.is_change():
            return ""
        return self.memo.rstrip(b"\x00").decode("utf-8", errors="replace")

    def commitment(self) -> bytes:
        return self._commitment

    def nullifier(self, nk: bytes, position: int) -> bytes:
        return note_nullifier(nk, self._commitment, position)

    def auth_token_id(self, reveal_seed: bool = False) -> str:
        """Text id <commitment-hex>@<contract>, optionally suffixed |<memo>"""
        token = f"{commitment_to_hex(self._commitment)}@{self.contract}"
        if reveal_seed:
            token += f"|{self.memo_string()}"
        return token

    def to_bytes(self) -> bytes:
        """Fixed-size plaintext encoding"""
        return (
            _HEADER.pack(
                self.header,
                self.account.raw,
                self.asset.amount,
                self.asset.symbol.raw,
                self.asset.contract.raw,
            )
            + self.address.to_bytes()
            + self.rseed
            + self.memo
        )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Note":
        if len(raw) != NOTE_PLAINTEXT_SIZE:
            raise InputValidationError(
                f"Note plaintext must be {NOTE_PLAINTEXT_SIZE} bytes, got {len(raw)}"
            )
        header, account, amount, symbol, contract = _HEADER.unpack_from(raw)
        offset = _HEADER.size
        address = Address.from_bytes(raw[offset : offset + ADDRESS_SIZE])
        offset += ADDRESS_SIZE
        rseed = bytes(raw[offset : offset + RSEED_SIZE])
        offset += RSEED_SIZE
        memo = bytes(raw[offset:])
        return cls(
            account=Name(account),
            asset=ExtendedAsset(Asset(amount, Symbol(symbol)), Name(contract)),
            address=address,
            rseed=rseed,
            memo=memo,
            header=header,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header,
            "account": str(self.account),
            "asset": str(self.asset),
            "address": self.address.to_text(),
            "rseed": self.rseed.hex(),
            "memo": self.memo.rstrip(b"\x00").hex(),
            "kind": self.kind.value,
            "commitment": commitment_to_hex(self._commitment),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        try:
            return cls(
                account=Name.from_string(data["account"]),
                asset=ExtendedAsset.from_string(data["asset"]),
                address=Address.from_text(data["address"]),
                rseed=bytes.fromhex(data["rseed"]),
                memo=make_memo(bytes.fromhex(data.get("memo", ""))),
                header=int(data.get("header", 0)),
            )
        except InputValidationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid note: {e}") from None


@dataclass
class NoteEx:
    """A note plus the wallet's bookkeeping about it"""

    note: Note
    position: Optional[int] = None
    block_num: int = 0
    block_ts: int = 0

    @property
    def commitment(self) -> bytes:
        return self.note.commitment()

    def to_dict(self) -> dict[str, Any]:
        return {
            "note": self.note.to_dict(),
            "position": self.position,
            "block_num": self.block_num,
            "block_ts": self.block_ts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoteEx":
        try:
            position = data.get("position")
            return cls(
                note=Note.from_dict(data["note"]),
                position=None if position is None else int(position),
                block_num=int(data.get("block_num", 0)),
                block_ts=int(data.get("block_ts", 0)),
            )
        except InputValidationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid note record: {e}") from None
