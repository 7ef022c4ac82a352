"""
Wallet state store

Tracks the wallet's notes in four disjoint collections:

- unspent: owned notes whose commitment is a known leaf
- spent: owned notes whose nullifier has been observed
- outgoing: notes this wallet sent to others (recovered with the ovk)
- unpublished: owned notes decrypted before their leaf is known

plus the commitment tree the notes' positions refer to. All mutation goes
through the methods below; recoverable errors leave the state untouched.
"""

import copy
import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Union

from . import blocks, persistence, resolver
from .config import (
    DEFAULT_ALIAS_AUTHORITY,
    DEFAULT_FEE_TOKEN_CONTRACT,
    DEFAULT_PROTOCOL_CONTRACT,
    DEFAULT_VAULT_CONTRACT,
)
from .constants import COMMITMENT_SIZE, NULLIFIER_SIZE, TREE_DEPTH
from .eosio import (
    Asset,
    Authorization,
    ExtendedAsset,
    Name,
    Symbol,
    as_name,
    as_symbol,
)
from .errors import (
    CapacityExceeded,
    CryptoError,
    InputValidationError,
    WalletCorruptedError,
)
from .fees import FeeSchedule
from .keys import Address, FullViewingKey, IncomingViewingKey, SpendingKey
from .merkle import CommitmentAccumulator, MerkleWitness
from .note import Note, NoteEx, NoteKind
from .note_encryption import NoteCiphertext, decrypt_incoming, decrypt_outgoing
from .utils import commitment_to_hex, hex_to_bytes, parse_auth_token_id, split_chunks

logger = logging.getLogger(__name__)

Ciphertext = Union[NoteCiphertext, str, bytes]

UNSPENT = "unspent"
SPENT = "spent"
OUTGOING = "outgoing"
UNPUBLISHED = "unpublished"


@dataclass(frozen=True)
class NoteCounts:
    """Newly tracked unspent notes by kind"""

    fts: int = 0
    nfts: int = 0
    ats: int = 0

    @property
    def total(self) -> int:
        return self.fts + self.nfts + self.ats

    def __add__(self, other: "NoteCounts") -> "NoteCounts":
        return NoteCounts(
            self.fts + other.fts, self.nfts + other.nfts, self.ats + other.ats
        )

    @classmethod
    def of(cls, notes: Iterable[Note]) -> "NoteCounts":
        kinds = [n.kind for n in notes]
        return cls(
            fts=kinds.count(NoteKind.FUNGIBLE),
            nfts=kinds.count(NoteKind.NON_FUNGIBLE),
            ats=kinds.count(NoteKind.AUTH_TOKEN),
        )


def _as_chain_id(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return hex_to_bytes(value, 32)
    if len(value) != 32:
        raise InputValidationError(f"Chain id must be 32 bytes, got {len(value)}")
    return bytes(value)


class Wallet:
    """
    Shielded wallet state

    Example:
        ```python
        wallet = Wallet.create(seed, chain_id=chain_id)
        digest_block(wallet, block)
        print(wallet.balances_list())
        ```
    """

    _STATE_FIELDS = (
        "block_num",
        "auth_count",
        "diversifier_index",
        "_addresses",
        "_tree",
        "_provisional",
        "_unspent",
        "_spent",
        "_outgoing",
        "_unpublished",
    )

    def __init__(
        self,
        chain_id: Union[str, bytes],
        protocol_contract: Union[str, Name] = DEFAULT_PROTOCOL_CONTRACT,
        vault_contract: Union[str, Name] = DEFAULT_VAULT_CONTRACT,
        alias_authority: Union[str, Authorization] = DEFAULT_ALIAS_AUTHORITY,
        spending_key: Optional[SpendingKey] = None,
        incoming_viewing_key: Optional[IncomingViewingKey] = None,
        tree_depth: int = TREE_DEPTH,
        full_viewing_key: Optional[FullViewingKey] = None,
    ):
        """
        Initialize an empty wallet

        Args:
            chain_id: 32-byte chain id (bytes or hex)
            protocol_contract: Shielded pool contract
            vault_contract: Contract vault auth tokens are bound to
            alias_authority: Permission the protocol acts under
            spending_key: Full spending authority
            incoming_viewing_key: View-only key, used when there is no
                spending key
            tree_depth: Commitment tree depth
            full_viewing_key: Watch key that also recovers outgoing notes
                and detects spends, used when there is no spending key
        """
        if not (spending_key or full_viewing_key or incoming_viewing_key):
            raise InputValidationError("A spending key or viewing key is required")

        self._spending_key = spending_key
        self._fvk: Optional[FullViewingKey] = (
            spending_key.full_viewing_key() if spending_key else full_viewing_key
        )
        self._ivk = self._fvk.incoming if self._fvk else incoming_viewing_key

        self.chain_id = _as_chain_id(chain_id)
        self.protocol_contract = as_name(protocol_contract)
        self.vault_contract = as_name(vault_contract)
        self.alias_authority = (
            alias_authority
            if isinstance(alias_authority, Authorization)
            else Authorization.from_string(alias_authority)
        )

        self.block_num = 0
        self.auth_count = 0
        self.diversifier_index = 0
        self._addresses: list[Address] = []
        self._tree = CommitmentAccumulator(tree_depth)
        self._provisional = 0
        self._unspent: list[NoteEx] = []
        self._spent: list[NoteEx] = []
        self._outgoing: list[NoteEx] = []
        self._unpublished: list[NoteEx] = []
        self._corrupted = False

    @classmethod
    def create(
        cls,
        seed: Union[str, bytes],
        chain_id: Union[str, bytes],
        protocol_contract: Union[str, Name] = DEFAULT_PROTOCOL_CONTRACT,
        vault_contract: Union[str, Name] = DEFAULT_VAULT_CONTRACT,
        alias_authority: Union[str, Authorization] = DEFAULT_ALIAS_AUTHORITY,
        tree_depth: int = TREE_DEPTH,
    ) -> "Wallet":
        """
        Create a spending wallet from a seed

        Raises:
            InputValidationError: If the seed is shorter than 32 bytes or an
                identifier is invalid
        """
        wallet = cls(
            chain_id,
            protocol_contract,
            vault_contract,
            alias_authority,
            spending_key=SpendingKey.from_seed(seed),
            tree_depth=tree_depth,
        )
        wallet.derive_next_address()
        return wallet

    @classmethod
    def create_view_only(
        cls,
        ivk_text: str,
        chain_id: Union[str, bytes],
        protocol_contract: Union[str, Name] = DEFAULT_PROTOCOL_CONTRACT,
        vault_contract: Union[str, Name] = DEFAULT_VAULT_CONTRACT,
        alias_authority: Union[str, Authorization] = DEFAULT_ALIAS_AUTHORITY,
        tree_depth: int = TREE_DEPTH,
    ) -> "Wallet":
        """
        Create a wallet that can see incoming notes but not spend them

        Raises:
            CryptoError: If the viewing key cannot be decoded
        """
        wallet = cls(
            chain_id,
            protocol_contract,
            vault_contract,
            alias_authority,
            incoming_viewing_key=IncomingViewingKey.from_text(ivk_text),
            tree_depth=tree_depth,
        )
        wallet.derive_next_address()
        return wallet

    @classmethod
    def create_from_full_viewing_key(
        cls,
        fvk_text: str,
        chain_id: Union[str, bytes],
        protocol_contract: Union[str, Name] = DEFAULT_PROTOCOL_CONTRACT,
        vault_contract: Union[str, Name] = DEFAULT_VAULT_CONTRACT,
        alias_authority: Union[str, Authorization] = DEFAULT_ALIAS_AUTHORITY,
        tree_depth: int = TREE_DEPTH,
    ) -> "Wallet":
        """
        Create a watch wallet that sees incoming and outgoing notes and
        tracks spends, but cannot sign

        Raises:
            CryptoError: If the full viewing key cannot be decoded
        """
        wallet = cls(
            chain_id,
            protocol_contract,
            vault_contract,
            alias_authority,
            full_viewing_key=FullViewingKey.from_text(fvk_text),
            tree_depth=tree_depth,
        )
        wallet.derive_next_address()
        return wallet

    # =========================================================================
    # Keys
    # =========================================================================

    @property
    def is_view_only(self) -> bool:
        return self._spending_key is None

    @property
    def spending_key(self) -> Optional[SpendingKey]:
        return self._spending_key

    @property
    def incoming_viewing_key(self) -> IncomingViewingKey:
        return self._ivk

    @property
    def full_viewing_key(self) -> Optional[FullViewingKey]:
        return self._fvk

    def seed_hex(self) -> str:
        """
        Hex form of the seed this wallet was created from

        Raises:
            CryptoError: For view-only wallets
        """
        if self._spending_key is None:
            raise CryptoError("View-only wallet has no seed")
        return self._spending_key.seed_hex()

    def full_viewing_key_text(self) -> str:
        """
        Raises:
            CryptoError: If the wallet only holds an incoming viewing key
        """
        if self._fvk is None:
            raise CryptoError("Wallet has no full viewing key")
        return self._fvk.to_text()

    def outgoing_viewing_key_text(self) -> str:
        """
        Raises:
            CryptoError: If the wallet only holds an incoming viewing key
        """
        if self._fvk is None:
            raise CryptoError("Wallet has no outgoing viewing key")
        return self._fvk.outgoing.to_text()

    @property
    def outgoing_viewing_key(self) -> Optional[bytes]:
        return self._fvk.ovk if self._fvk else None

    @property
    def nullifier_key(self) -> bytes:
        """
        Raises:
            CryptoError: If the wallet only holds an incoming viewing key
        """
        if self._fvk is None:
            raise CryptoError("Wallet has no nullifier key")
        return self._fvk.nk

    def seeds_match(self, other: "Wallet") -> bool:
        """True if both wallets come from the same seed"""
        if self._spending_key is None or other._spending_key is None:
            return False
        return self._spending_key == other._spending_key

    # =========================================================================
    # Internal state handling
    # =========================================================================

    @property
    def is_corrupted(self) -> bool:
        return self._corrupted

    def _ensure_usable(self) -> None:
        if self._corrupted:
            raise WalletCorruptedError(
                "Wallet state is corrupted; restore it from a backup"
            )

    def _corrupt(self, message: str) -> WalletCorruptedError:
        self._corrupted = True
        logger.error("Wallet corrupted: %s", message)
        return WalletCorruptedError(message)

    def _collections(self) -> dict[str, list[NoteEx]]:
        return {
            UNSPENT: self._unspent,
            SPENT: self._spent,
            OUTGOING: self._outgoing,
            UNPUBLISHED: self._unpublished,
        }

    def _tracked(self) -> dict[bytes, tuple[str, NoteEx]]:
        tracked = {}
        for where, notes in self._collections().items():
            for ex in notes:
                tracked[ex.commitment] = (where, ex)
        return tracked

    def _snapshot(self) -> dict[str, Any]:
        return copy.deepcopy({name: getattr(self, name) for name in self._STATE_FIELDS})

    def _restore(self, snapshot: dict[str, Any]) -> None:
        for name, value in snapshot.items():
            setattr(self, name, value)

    @contextmanager
    def atomic(self) -> Iterator["Wallet"]:
        """
        Run a group of mutations all-or-nothing

        Any exception restores the state the wallet had on entry and is
        re-raised. A corruption flag raised inside the block stays set.
        """
        self._ensure_usable()
        snapshot = self._snapshot()
        try:
            yield self
        except Exception:
            self._restore(snapshot)
            raise

    # =========================================================================
    # Commitment tree
    # =========================================================================

    @property
    def leaf_count(self) -> int:
        return self._tree.leaf_count

    @property
    def provisional_leaf_count(self) -> int:
        return self._provisional

    @property
    def tree_depth(self) -> int:
        return self._tree.depth

    def root(self) -> bytes:
        return self._tree.root()

    def witness(self, position: int) -> MerkleWitness:
        return self._tree.witness(position)

    def leaves(self) -> list[bytes]:
        return self._tree.leaves()

    def add_leaves(self, raw: bytes) -> int:
        """
        Append chain-reported commitment leaves

        Leaves this wallet inserted provisionally (eager update) are
        confirmed rather than appended again when the chain reports the same
        commitments at the same positions. When the chain disagrees, the
        provisional leaves are dropped and the chain leaves take their
        place: notes that sat at provisional positions go back to
        unpublished and retry_unpublished() binds them to their chain
        positions.

        Args:
            raw: Concatenated 32-byte leaves

        Returns:
            Number of leaves actually appended

        Raises:
            InputValidationError: If the length is not a multiple of 32
            CapacityExceeded: If the tree cannot hold the new leaves
        """
        leaves = split_chunks(raw, COMMITMENT_SIZE, "leaves")
        self._ensure_usable()

        existing = self._tree.leaves()
        first_provisional = len(existing) - self._provisional
        confirmed = min(self._provisional, len(leaves))
        mismatch = next(
            (
                i
                for i in range(confirmed)
                if leaves[i] != existing[first_provisional + i]
            ),
            None,
        )

        if mismatch is None:
            base, fresh = self._tree.leaf_count, leaves[confirmed:]
        else:
            base, fresh = first_provisional, leaves
        if base + len(fresh) > self._tree.capacity:
            raise CapacityExceeded(
                f"Cannot append {len(fresh)} leaves to a tree holding "
                f"{base} of {self._tree.capacity}"
            )

        if mismatch is None:
            self._provisional -= confirmed
        else:
            logger.warning(
                "Chain leaf at position %d differs from provisional leaf, "
                "dropping %d provisional leaves",
                first_provisional + mismatch,
                self._provisional,
            )
            self._rewind_provisional(first_provisional)
            confirmed = 0

        for leaf in fresh:
            self._tree.append(leaf)
        self._bind_outgoing()
        logger.debug(
            "Confirmed %d provisional leaves, appended %d (leaf count %d)",
            confirmed,
            len(fresh),
            self._tree.leaf_count,
        )
        return len(fresh)

    def _rewind_provisional(self, first: int) -> None:
        """Drop leaves from position `first` on and unbind notes placed there"""
        self._tree = CommitmentAccumulator.from_leaves(
            self._tree.leaves()[:first], self._tree.depth
        )
        self._provisional = 0

        # Eager spends of notes at dropped positions cannot land on chain
        kept_unspent, kept_spent = [], []
        for notes, kept in ((self._unspent, kept_unspent), (self._spent, kept_spent)):
            for ex in notes:
                if ex.position is not None and ex.position >= first:
                    ex.position = None
                    self._unpublished.append(ex)
                else:
                    kept.append(ex)
        self._unspent, self._spent = kept_unspent, kept_spent

        for ex in self._outgoing:
            if ex.position is not None and ex.position >= first:
                ex.position = None

    def _bind_outgoing(self) -> None:
        for ex in self._outgoing:
            if ex.position is None:
                ex.position = self._tree.position_of(ex.commitment)

    def add_provisional_leaves(self, raw: bytes) -> list[int]:
        """
        Append leaves ahead of chain confirmation

        Returns:
            Positions of the new leaves
        """
        leaves = split_chunks(raw, COMMITMENT_SIZE, "leaves")
        self._ensure_usable()
        if self._tree.leaf_count + len(leaves) > self._tree.capacity:
            raise CapacityExceeded("Commitment tree cannot hold provisional leaves")

        positions = [self._tree.append(leaf) for leaf in leaves]
        self._provisional += len(leaves)
        return positions

    # =========================================================================
    # Notes
    # =========================================================================

    def _check_same_note(self, existing: NoteEx, note: Note) -> None:
        if existing.note != note:
            raise self._corrupt(
                f"Commitment {commitment_to_hex(note.commitment())} is already tracked "
                "with different note contents"
            )

    def add_notes(
        self, ciphertexts: Iterable[Ciphertext], block_num: int = 0, block_ts: int = 0
    ) -> NoteCounts:
        """
        Decrypt and track note ciphertexts

        Notes opened with the incoming viewing key go to unspent when their
        leaf is known and to unpublished otherwise. Notes only the outgoing
        viewing key opens go to outgoing. Anything else is ignored.

        Args:
            ciphertexts: Note ciphertexts (NoteCiphertext, hex or bytes)
            block_num: Block the ciphertexts were seen in
            block_ts: Block timestamp in milliseconds

        Returns:
            Counts of notes newly inserted into unspent

        Raises:
            WalletCorruptedError: If a tracked commitment decrypts to a
                different note
        """
        self._ensure_usable()
        tracked = self._tracked()
        additions: list[tuple[str, NoteEx]] = []
        promotions: list[tuple[NoteEx, int]] = []

        for ciphertext in ciphertexts:
            target = UNSPENT
            note = decrypt_incoming(ciphertext, self._ivk.ivk)
            if note is None:
                if self._fvk is None:
                    continue
                note = decrypt_outgoing(ciphertext, self._fvk.ovk)
                if note is None:
                    continue
                target = OUTGOING

            cm = note.commitment()
            position = self._tree.position_of(cm)
            if cm in tracked:
                where, ex = tracked[cm]
                self._check_same_note(ex, note)
                if where == UNPUBLISHED and position is not None:
                    promotions.append((ex, position))
                    tracked[cm] = (UNSPENT, ex)
                else:
                    logger.warning(
                        "Skipping already tracked note %s", commitment_to_hex(cm)
                    )
                continue

            if target == UNSPENT and position is None:
                target = UNPUBLISHED
            ex = NoteEx(note, position, block_num, block_ts)
            additions.append((target, ex))
            tracked[cm] = (target, ex)

        collections = self._collections()
        for target, ex in additions:
            collections[target].append(ex)
        promoted = self._promote(promotions)

        counts = NoteCounts.of(ex.note for t, ex in additions if t == UNSPENT) + promoted
        if additions or promotions:
            logger.info(
                "Block %d: %d new unspent notes (%d ft, %d nft, %d at), %d tracked in total",
                block_num,
                counts.total,
                counts.fts,
                counts.nfts,
                counts.ats,
                len(additions) + len(promotions),
            )
        return counts

    def _promote(self, promotions: list[tuple[NoteEx, int]]) -> NoteCounts:
        for ex, position in promotions:
            self._unpublished.remove(ex)
            ex.position = position
            self._unspent.append(ex)
        return NoteCounts.of(ex.note for ex, _ in promotions)

    def retry_unpublished(self) -> NoteCounts:
        """
        Move unpublished notes whose commitment is now a leaf into unspent

        Returns:
            Counts of notes moved
        """
        self._ensure_usable()
        promotions = []
        for ex in self._unpublished:
            position = self._tree.position_of(ex.commitment)
            if position is not None:
                promotions.append((ex, position))
        counts = self._promote(promotions)
        if counts.total:
            logger.info("Published %d previously unpublished notes", counts.total)
        return counts

    def add_unpublished_notes(
        self, ciphertexts: Iterable[Ciphertext], block_num: int = 0, block_ts: int = 0
    ) -> int:
        """
        Track notes delivered outside the chain, e.g. a new vault's auth token

        Returns:
            Number of notes added
        """
        self._ensure_usable()
        tracked = self._tracked()
        added = []
        for ciphertext in ciphertexts:
            note = decrypt_incoming(ciphertext, self._ivk.ivk)
            if note is None:
                continue
            cm = note.commitment()
            if cm in tracked:
                self._check_same_note(tracked[cm][1], note)
                continue
            ex = NoteEx(note, None, block_num, block_ts)
            added.append(ex)
            tracked[cm] = (UNPUBLISHED, ex)
        self._unpublished.extend(added)
        return len(added)

    def clear_unpublished_notes(self) -> int:
        self._ensure_usable()
        count = len(self._unpublished)
        self._unpublished = []
        return count

    def mark_notes_spent(self, nullifiers: bytes) -> int:
        """
        Move unspent notes whose nullifier appears in the batch to spent

        Args:
            nullifiers: Concatenated 32-byte nullifiers

        Returns:
            Number of notes moved; 0 without a nullifier key

        Raises:
            InputValidationError: If the length is not a multiple of 32
        """
        batch = set(split_chunks(nullifiers, NULLIFIER_SIZE, "nullifiers"))
        self._ensure_usable()
        logger.debug(
            "Matching %d nullifiers against %d notes", len(batch), len(self._unspent)
        )
        if self._fvk is None or not batch:
            return 0

        nk = self._fvk.nk
        still_unspent = []
        newly_spent = []
        for ex in self._unspent:
            if ex.position is not None and ex.note.nullifier(nk, ex.position) in batch:
                newly_spent.append(ex)
            else:
                still_unspent.append(ex)

        self._unspent = still_unspent
        self._spent.extend(newly_spent)
        if newly_spent:
            logger.info("Marked %d notes spent", len(newly_spent))
        return len(newly_spent)

    def burn_auth_token_eagerly(self, token_id: str, block_ts: int = 0) -> bool:
        """
        Move an unspent auth token to spent ahead of chain confirmation

        Returns:
            True if the token was found
        """
        cm, _ = parse_auth_token_id(token_id)
        self._ensure_usable()
        for ex in self._unspent:
            if ex.commitment == cm and ex.note.is_auth_token():
                self._unspent.remove(ex)
                ex.block_ts = max(ex.block_ts, block_ts)
                self._spent.append(ex)
                return True
        return False

    def set_auth_count(self, count: int) -> None:
        if count < 0:
            raise InputValidationError("Auth count must be non-negative")
        self._ensure_usable()
        self.auth_count = count

    def reset_chain_state(self) -> None:
        """Forget everything learned from the chain; unpublished notes stay"""
        self._ensure_usable()
        self._tree = CommitmentAccumulator(self._tree.depth)
        self._provisional = 0
        self._unspent = []
        self._spent = []
        self._outgoing = []
        for ex in self._unpublished:
            ex.position = None
        self.block_num = 0
        logger.info("Chain state reset")

    def digest_block(self, block) -> int:
        """Fold one block into the wallet; see shroud.blocks.digest_block"""
        return blocks.digest_block(self, block)

    # =========================================================================
    # Queries
    # =========================================================================

    def unspent_notes(self) -> list[NoteEx]:
        return list(self._unspent)

    def spent_notes(self) -> list[NoteEx]:
        return list(self._spent)

    def outgoing_notes(self) -> list[NoteEx]:
        return list(self._outgoing)

    def unpublished_notes(self) -> list[NoteEx]:
        return list(self._unpublished)

    def find_unspent(self, commitment: bytes) -> Optional[NoteEx]:
        for ex in self._unspent:
            if ex.commitment == commitment:
                return ex
        return None

    def balances(self) -> dict[tuple[Name, Symbol], int]:
        """Sum of unspent fungible notes per (contract, symbol)"""
        totals: dict[tuple[Name, Symbol], int] = {}
        for ex in self._unspent:
            if ex.note.is_fungible():
                key = (ex.note.contract, ex.note.symbol)
                totals[key] = totals.get(key, 0) + ex.note.amount
        return totals

    def balances_list(self) -> list[ExtendedAsset]:
        return [
            ExtendedAsset(Asset(amount, symbol), contract)
            for (contract, symbol), amount in sorted(
                self.balances().items(), key=lambda kv: (kv[0][0].raw, kv[0][1].raw)
            )
        ]

    def fungible_tokens(
        self,
        symbol: Union[str, Symbol, None] = None,
        contract: Union[str, Name, None] = None,
    ) -> list[NoteEx]:
        symbol = as_symbol(symbol) if symbol is not None else None
        contract = as_name(contract) if contract is not None else None
        return [
            ex
            for ex in self._unspent
            if ex.note.is_fungible()
            and (symbol is None or ex.note.symbol == symbol)
            and (contract is None or ex.note.contract == contract)
        ]

    def non_fungible_tokens(self, contract: Union[str, Name, None] = None) -> list[NoteEx]:
        contract = as_name(contract) if contract is not None else None
        return [
            ex
            for ex in self._unspent
            if ex.note.is_nft() and (contract is None or ex.note.contract == contract)
        ]

    def authentication_tokens(
        self,
        contract: Union[str, Name, None] = None,
        spent: bool = False,
        reveal_seed: bool = False,
    ) -> list[str]:
        """Auth token ids in <commitment-hex>@<contract>[|<memo>] form"""
        contract = as_name(contract) if contract is not None else None
        source = self._spent if spent else self._unspent
        return [
            ex.note.auth_token_id(reveal_seed)
            for ex in source
            if ex.note.is_auth_token()
            and (contract is None or ex.note.contract == contract)
        ]

    def addresses(self) -> list[Address]:
        return list(self._addresses)

    def default_address(self) -> Address:
        return self._ivk.derive_address(0)

    def derive_next_address(self) -> Address:
        """Derive, remember and return the next diversified address"""
        self._ensure_usable()
        address = self._ivk.derive_address(self.diversifier_index)
        self.diversifier_index += 1
        self._addresses.append(address)
        return address

    def max_block_ts(self) -> int:
        return max(
            (ex.block_ts for notes in self._collections().values() for ex in notes),
            default=0,
        )

    def transaction_history(self) -> list[dict[str, Any]]:
        """Received and sent notes, oldest first; change is left out"""
        entries = []
        for direction, notes in (
            ("received", self._unspent + self._spent),
            ("sent", self._outgoing),
        ):
            for ex in notes:
                if ex.note.is_change():
                    continue
                entries.append(
                    {
                        "direction": direction,
                        "block_num": ex.block_num,
                        "block_ts": ex.block_ts,
                        "kind": ex.note.kind.value,
                        "asset": str(ex.note.asset),
                        "address": ex.note.address.to_text(),
                        "memo": ex.note.memo_string(),
                        "commitment": commitment_to_hex(ex.commitment),
                    }
                )
        entries.sort(key=lambda e: (e["block_ts"], e["block_num"], e["commitment"]))
        return entries

    # =========================================================================
    # Fees
    # =========================================================================

    def estimate_send_fee(
        self,
        quantity: Union[str, ExtendedAsset],
        fee_schedule: FeeSchedule,
        fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
        withdraw: bool = False,
    ) -> Optional[int]:
        """Fee to send (or withdraw) quantity; None if the schedule is incomplete"""
        return resolver.estimate_send_fee(
            self, quantity, fee_schedule, fee_token_contract, withdraw
        )

    def estimate_burn_fee(
        self,
        fee_schedule: FeeSchedule,
        fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
        has_assets: bool = False,
    ) -> Optional[int]:
        return resolver.estimate_burn_fee(
            self, fee_schedule, fee_token_contract, has_assets
        )

    def estimate_vault_creation_fee(
        self,
        fee_schedule: FeeSchedule,
        fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
    ) -> Optional[int]:
        return resolver.estimate_vault_creation_fee(
            self, fee_schedule, fee_token_contract
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def size(self) -> int:
        """Exact length of write()"""
        return persistence.wallet_size(self)

    def write(self) -> bytes:
        """
        Serialize the wallet

        Raises:
            WalletCorruptedError: If the encoding does not match size()
        """
        return persistence.write_wallet(self)

    @classmethod
    def read(cls, raw: bytes) -> "Wallet":
        """
        Deserialize a wallet

        Raises:
            InputValidationError: On truncated or malformed data
        """
        return persistence.read_wallet(cls, raw)

    def to_dict(self) -> dict[str, Any]:
        """Inspectable view of the wallet; contains no key material"""
        return {
            "chain_id": self.chain_id.hex(),
            "protocol_contract": str(self.protocol_contract),
            "vault_contract": str(self.vault_contract),
            "alias_authority": str(self.alias_authority),
            "view_only": self.is_view_only,
            "block_num": self.block_num,
            "auth_count": self.auth_count,
            "diversifier_index": self.diversifier_index,
            "leaf_count": self.leaf_count,
            "provisional_leaf_count": self._provisional,
            "root": self.root().hex(),
            "balances": [str(b) for b in self.balances_list()],
            "addresses": [a.to_text() for a in self._addresses],
            "unspent_notes": [ex.to_dict() for ex in self._unspent],
            "spent_notes": [ex.to_dict() for ex in self._spent],
            "outgoing_notes": [ex.to_dict() for ex in self._outgoing],
            "unpublished_notes": [ex.to_dict() for ex in self._unpublished],
        }

    def to_json(self, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), indent=2 if pretty else None)
