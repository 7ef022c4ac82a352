"""
Note commitment tree

Fixed-depth, append-only binary Merkle tree over note commitments. Leaves
arrive in chain order; the tree is fully determined by its leaf list.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .constants import COMMITMENT_SIZE, TREE_DEPTH
from .errors import CapacityExceeded, InputValidationError, NotYetInserted

UNCOMMITTED_LEAF = hashlib.blake2s(b"", digest_size=32, person=b"Uncommit").digest()


def merkle_hash(level: int, left: bytes, right: bytes) -> bytes:
    """Domain-separated parent hash of two nodes at the given level"""
    h = hashlib.blake2s(digest_size=32, person=b"MerkleCR")
    h.update(level.to_bytes(1, "little"))
    h.update(left)
    h.update(right)
    return h.digest()


def _empty_roots(depth: int) -> list[bytes]:
    roots = [UNCOMMITTED_LEAF]
    for level in range(depth):
        roots.append(merkle_hash(level, roots[-1], roots[-1]))
    return roots


@dataclass(frozen=True)
class MerkleWitness:
    """Authentication path for one leaf; siblings are ordered root-to-leaf"""

    position: int
    siblings: tuple[bytes, ...]

    @property
    def depth(self) -> int:
        return len(self.siblings)

    def compute_root(self, leaf: bytes) -> bytes:
        """Recompute the tree root from a leaf and this path"""
        node = leaf
        for level, sibling in enumerate(reversed(self.siblings)):
            if (self.position >> level) & 1:
                node = merkle_hash(level, sibling, node)
            else:
                node = merkle_hash(level, node, sibling)
        return node

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "siblings": [s.hex() for s in self.siblings],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MerkleWitness":
        try:
            position = int(data["position"])
            siblings = tuple(bytes.fromhex(s) for s in data["siblings"])
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid witness: {e}") from None
        if position < 0 or any(len(s) != COMMITMENT_SIZE for s in siblings):
            raise InputValidationError("Invalid witness: bad position or sibling size")
        return cls(position=position, siblings=siblings)


class CommitmentAccumulator:
    """
    Append-only commitment tree

    Example:
        ```python
        tree = CommitmentAccumulator(depth=4)
        pos = tree.append(cm)
        assert tree.witness(pos).compute_root(cm) == tree.root()
        ```
    """

    def __init__(self, depth: int = TREE_DEPTH):
        if not 1 <= depth <= 64:
            raise ValueError(f"Unsupported tree depth: {depth}")
        self.depth = depth
        self._empty = _empty_roots(depth)
        # _levels[0] holds leaves, _levels[depth] holds the root once non-empty
        self._levels: list[list[bytes]] = [[] for _ in range(depth + 1)]
        self._positions: dict[bytes, int] = {}

    @classmethod
    def from_leaves(
        cls, leaves: Iterable[bytes], depth: int = TREE_DEPTH
    ) -> "CommitmentAccumulator":
        """Rebuild a tree by re-appending leaves in order"""
        tree = cls(depth)
        for leaf in leaves:
            tree.append(leaf)
        return tree

    @property
    def capacity(self) -> int:
        return 2**self.depth

    @property
    def leaf_count(self) -> int:
        return len(self._levels[0])

    def __len__(self) -> int:
        return self.leaf_count

    def leaves(self) -> list[bytes]:
        return list(self._levels[0])

    def _node(self, level: int, index: int) -> bytes:
        nodes = self._levels[level]
        if index < len(nodes):
            return nodes[index]
        return self._empty[level]

    def append(self, commitment: bytes) -> int:
        """
        Append a commitment as the next leaf

        Args:
            commitment: 32-byte note commitment

        Returns:
            Position of the new leaf

        Raises:
            CapacityExceeded: If the tree already holds 2^depth leaves
        """
        if len(commitment) != COMMITMENT_SIZE:
            raise InputValidationError(
                f"Commitment must be {COMMITMENT_SIZE} bytes, got {len(commitment)}"
            )
        position = self.leaf_count
        if position >= self.capacity:
            raise CapacityExceeded(
                f"Commitment tree of depth {self.depth} is full ({self.capacity} leaves)"
            )

        commitment = bytes(commitment)
        self._levels[0].append(commitment)
        self._positions.setdefault(commitment, position)

        index = position
        for level in range(self.depth):
            parent = index >> 1
            node = merkle_hash(
                level,
                self._node(level, parent * 2),
                self._node(level, parent * 2 + 1),
            )
            upper = self._levels[level + 1]
            if parent < len(upper):
                upper[parent] = node
            else:
                upper.append(node)
            index = parent
        return position

    def root(self) -> bytes:
        if self.leaf_count == 0:
            return self._empty[self.depth]
        return self._levels[self.depth][0]

    def witness(self, position: int) -> MerkleWitness:
        """
        Authentication path for the leaf at position

        Raises:
            NotYetInserted: If no leaf exists at that position yet
        """
        if position < 0 or position >= self.leaf_count:
            raise NotYetInserted(
                f"No leaf at position {position} (leaf count {self.leaf_count})"
            )
        siblings = []
        index = position
        for level in range(self.depth):
            siblings.append(self._node(level, index ^ 1))
            index >>= 1
        siblings.reverse()
        return MerkleWitness(position=position, siblings=tuple(siblings))

    def position_of(self, commitment: bytes) -> Optional[int]:
        """Position of the first leaf equal to commitment, if any"""
        return self._positions.get(bytes(commitment))

    def __contains__(self, commitment: bytes) -> bool:
        return bytes(commitment) in self._positions
