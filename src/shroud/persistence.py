"""
Binary wallet record

Layout (little-endian):

    magic "SHRW" | version u16 | flags u8
    key material, by flags:
        spending: seed length u16 | seed
        full viewing: nk | ivk | ovk | dk (32 each)
        view-only: ivk | dk (32 each)
    chain_id (32) | protocol, vault, alias actor, alias permission (u64 each)
    block_num u64 | auth_count u64 | diversifier_index u32
    tree depth u8 | leaf count u64 | leaves (32 each) | provisional u64
    unspent, spent, outgoing, unpublished:
        count u32, then per note:
        position u64 (NO_POSITION if none) | block_num u64 | block_ts u64 |
        note plaintext
    address count u32 | addresses (43 each)
"""

import struct
from typing import TYPE_CHECKING, Type

from .constants import (
    ADDRESS_SIZE,
    COMMITMENT_SIZE,
    KEY_SIZE,
    NO_POSITION,
    NOTE_PLAINTEXT_SIZE,
)
from .eosio import Authorization, Name
from .errors import InputValidationError
from .keys import Address, FullViewingKey, IncomingViewingKey, SpendingKey
from .merkle import CommitmentAccumulator
from .note import Note, NoteEx

if TYPE_CHECKING:
    from .wallet import Wallet

MAGIC = b"SHRW"
VERSION = 2
FLAG_VIEW_ONLY = 0x01
FLAG_FULL_VIEWING = 0x02

_PREAMBLE = struct.Struct("<4sHB")
_CHAIN = struct.Struct("<32s4Q")
_COUNTERS = struct.Struct("<QQI")
_NOTE_HEADER = struct.Struct("<3Q")
_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")

NOTE_RECORD_SIZE = _NOTE_HEADER.size + NOTE_PLAINTEXT_SIZE


class BinaryWriter:
    """Accumulates packed fields"""

    def __init__(self):
        self._parts: list[bytes] = []

    def pack(self, fmt: struct.Struct, *values) -> None:
        self._parts.append(fmt.pack(*values))

    def raw(self, data: bytes) -> None:
        self._parts.append(bytes(data))

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class BinaryReader:
    """Reads packed fields; running out of data is a validation error"""

    def __init__(self, data: bytes):
        self._data = memoryview(bytes(data))
        self._offset = 0

    def unpack(self, fmt: struct.Struct) -> tuple:
        try:
            values = fmt.unpack_from(self._data, self._offset)
        except struct.error:
            raise InputValidationError(
                f"Wallet data truncated at offset {self._offset}"
            ) from None
        self._offset += fmt.size
        return values

    def u8(self) -> int:
        return self.unpack(_U8)[0]

    def u16(self) -> int:
        return self.unpack(_U16)[0]

    def u32(self) -> int:
        return self.unpack(_U32)[0]

    def u64(self) -> int:
        return self.unpack(_U64)[0]

    def raw(self, size: int) -> bytes:
        if self._offset + size > len(self._data):
            raise InputValidationError(f"Wallet data truncated at offset {self._offset}")
        data = bytes(self._data[self._offset : self._offset + size])
        self._offset += size
        return data

    def remaining(self) -> int:
        return len(self._data) - self._offset


def _collections(wallet: "Wallet") -> list[list[NoteEx]]:
    return [
        wallet._unspent,
        wallet._spent,
        wallet._outgoing,
        wallet._unpublished,
    ]


def _key_size(wallet: "Wallet") -> int:
    if wallet.spending_key is not None:
        return _U16.size + len(wallet.spending_key.seed)
    if wallet.full_viewing_key is not None:
        return 4 * KEY_SIZE
    return 2 * KEY_SIZE


def _key_flags(wallet: "Wallet") -> int:
    if wallet.spending_key is not None:
        return 0
    if wallet.full_viewing_key is not None:
        return FLAG_VIEW_ONLY | FLAG_FULL_VIEWING
    return FLAG_VIEW_ONLY


def wallet_size(wallet: "Wallet") -> int:
    """Length of write_wallet(wallet), computed from the field sizes"""
    key_size = _key_size(wallet)
    notes = sum(len(c) for c in _collections(wallet))
    return (
        _PREAMBLE.size
        + key_size
        + _CHAIN.size
        + _COUNTERS.size
        + _U8.size
        + _U64.size
        + wallet.leaf_count * COMMITMENT_SIZE
        + _U64.size
        + 4 * _U32.size
        + notes * NOTE_RECORD_SIZE
        + _U32.size
        + len(wallet._addresses) * ADDRESS_SIZE
    )


def write_wallet(wallet: "Wallet") -> bytes:
    """
    Serialize a wallet

    Raises:
        WalletCorruptedError: If the encoding does not have the expected size
    """
    w = BinaryWriter()
    w.pack(_PREAMBLE, MAGIC, VERSION, _key_flags(wallet))
    if wallet.spending_key is not None:
        w.pack(_U16, len(wallet.spending_key.seed))
        w.raw(wallet.spending_key.seed)
    elif wallet.full_viewing_key is not None:
        w.raw(wallet.full_viewing_key.to_bytes())
    else:
        w.raw(wallet.incoming_viewing_key.to_bytes())

    w.pack(
        _CHAIN,
        wallet.chain_id,
        wallet.protocol_contract.raw,
        wallet.vault_contract.raw,
        wallet.alias_authority.actor.raw,
        wallet.alias_authority.permission.raw,
    )
    w.pack(_COUNTERS, wallet.block_num, wallet.auth_count, wallet.diversifier_index)

    w.pack(_U8, wallet.tree_depth)
    w.pack(_U64, wallet.leaf_count)
    for leaf in wallet.leaves():
        w.raw(leaf)
    w.pack(_U64, wallet.provisional_leaf_count)

    for notes in _collections(wallet):
        w.pack(_U32, len(notes))
        for ex in notes:
            position = NO_POSITION if ex.position is None else ex.position
            w.pack(_NOTE_HEADER, position, ex.block_num, ex.block_ts)
            w.raw(ex.note.to_bytes())

    w.pack(_U32, len(wallet._addresses))
    for address in wallet._addresses:
        w.raw(address.to_bytes())

    data = w.getvalue()
    expected = wallet_size(wallet)
    if len(data) != expected:
        raise wallet._corrupt(
            f"Serialized wallet is {len(data)} bytes, expected {expected}"
        )
    return data


def _read_notes(r: BinaryReader) -> list[NoteEx]:
    notes = []
    for _ in range(r.u32()):
        position, block_num, block_ts = r.unpack(_NOTE_HEADER)
        note = Note.from_bytes(r.raw(NOTE_PLAINTEXT_SIZE))
        notes.append(
            NoteEx(
                note=note,
                position=None if position == NO_POSITION else position,
                block_num=block_num,
                block_ts=block_ts,
            )
        )
    return notes


def read_wallet(cls: Type["Wallet"], data: bytes) -> "Wallet":
    """
    Deserialize a wallet written by write_wallet

    Raises:
        InputValidationError: On bad magic, unknown version, truncation,
            trailing bytes or inconsistent contents
    """
    r = BinaryReader(data)
    magic, version, flags = r.unpack(_PREAMBLE)
    if magic != MAGIC:
        raise InputValidationError("Not a wallet record (bad magic)")
    if version != VERSION:
        raise InputValidationError(f"Unsupported wallet record version {version}")

    if flags & FLAG_FULL_VIEWING:
        parts = [r.raw(KEY_SIZE) for _ in range(4)]
        keys = {"full_viewing_key": FullViewingKey(*parts)}
    elif flags & FLAG_VIEW_ONLY:
        ivk = r.raw(KEY_SIZE)
        dk = r.raw(KEY_SIZE)
        keys = {"incoming_viewing_key": IncomingViewingKey(ivk=ivk, dk=dk)}
    else:
        keys = {"spending_key": SpendingKey(r.raw(r.u16()))}

    chain_id, protocol, vault, actor, permission = r.unpack(_CHAIN)
    block_num, auth_count, diversifier_index = r.unpack(_COUNTERS)

    depth = r.u8()
    if not 1 <= depth <= 64:
        raise InputValidationError(f"Invalid tree depth {depth}")
    leaf_count = r.u64()
    if leaf_count > 2**depth or leaf_count * COMMITMENT_SIZE > r.remaining():
        raise InputValidationError(f"Invalid leaf count {leaf_count}")
    leaves = [r.raw(COMMITMENT_SIZE) for _ in range(leaf_count)]
    provisional = r.u64()
    if provisional > leaf_count:
        raise InputValidationError("Provisional leaf count exceeds leaf count")

    collections = [_read_notes(r) for _ in range(4)]
    addresses = [Address.from_bytes(r.raw(ADDRESS_SIZE)) for _ in range(r.u32())]
    if r.remaining():
        raise InputValidationError(f"{r.remaining()} trailing bytes in wallet data")

    wallet = cls(
        chain_id,
        Name(protocol),
        Name(vault),
        Authorization(Name(actor), Name(permission)),
        tree_depth=depth,
        **keys,
    )
    wallet.block_num = block_num
    wallet.auth_count = auth_count
    wallet.diversifier_index = diversifier_index
    wallet._tree = CommitmentAccumulator.from_leaves(leaves, depth)
    wallet._provisional = provisional
    wallet._unspent, wallet._spent, wallet._outgoing, wallet._unpublished = collections
    wallet._addresses = addresses
    return wallet
