"""
Key hierarchy

seed -> spending key -> full viewing key (nullifier key, incoming and
outgoing viewing keys, diversifier key) -> diversified addresses.

Diversified addresses follow the usual shielded-pool construction on X25519:
g_d = [H(d)]B, pk_d = [ivk]g_d. A sender agrees on a shared secret with
[esk]pk_d and publishes epk = [esk]g_d; the recipient recomputes it as
[ivk]epk.
"""

import hashlib
from dataclasses import dataclass, field

import base58
from nacl.bindings import crypto_scalarmult, crypto_scalarmult_base

from .constants import ADDRESS_SIZE, DIVERSIFIER_SIZE, KEY_SIZE
from .errors import CryptoError, InputValidationError

MIN_SEED_LENGTH = 32
MAX_SEED_LENGTH = 1024
IVK_TEXT_PREFIX = b"ivk"
OVK_TEXT_PREFIX = b"ovk"
FVK_TEXT_PREFIX = b"fvk"


def _blake2b(data: bytes, person: bytes, size: int = 32) -> bytes:
    return hashlib.blake2b(data, digest_size=size, person=person).digest()


def _encode_key_text(prefix: bytes, body: bytes) -> str:
    return base58.b58encode_check(prefix + body).decode()


def _decode_key_text(text: str, prefix: bytes, size: int, what: str) -> bytes:
    try:
        raw = base58.b58decode_check(text)
    except (ValueError, TypeError) as e:
        raise CryptoError(f"Invalid {what}: {e}") from None
    if not raw.startswith(prefix) or len(raw) != len(prefix) + size:
        raise CryptoError(f"Invalid {what}: wrong prefix or length")
    return raw[len(prefix):]


def prf_expand(sk: bytes, tag: bytes) -> bytes:
    return _blake2b(sk + tag, b"ShroudExpandSeed")


def diversify_hash(diversifier: bytes) -> bytes:
    """Base point g_d for a diversifier"""
    return crypto_scalarmult_base(_blake2b(diversifier, b"ShroudGd________"))


@dataclass(frozen=True)
class Address:
    """Diversified shielded payment address"""

    diversifier: bytes
    pk_d: bytes

    def __post_init__(self):
        if len(self.diversifier) != DIVERSIFIER_SIZE:
            raise InputValidationError(
                f"Diversifier must be {DIVERSIFIER_SIZE} bytes"
            )
        if len(self.pk_d) != KEY_SIZE:
            raise InputValidationError(f"pk_d must be {KEY_SIZE} bytes")

    @property
    def g_d(self) -> bytes:
        return diversify_hash(self.diversifier)

    def to_bytes(self) -> bytes:
        return self.diversifier + self.pk_d

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Address":
        if len(raw) != ADDRESS_SIZE:
            raise InputValidationError(
                f"Address must be {ADDRESS_SIZE} bytes, got {len(raw)}"
            )
        return cls(bytes(raw[:DIVERSIFIER_SIZE]), bytes(raw[DIVERSIFIER_SIZE:]))

    def to_text(self) -> str:
        return base58.b58encode_check(self.to_bytes()).decode()

    @classmethod
    def from_text(cls, text: str) -> "Address":
        """
        Decode a base58check address

        Raises:
            InputValidationError: On bad encoding, checksum or length
        """
        try:
            raw = base58.b58decode_check(text)
        except (ValueError, TypeError) as e:
            raise InputValidationError(f"Invalid address {text!r}: {e}") from None
        return cls.from_bytes(raw)

    def __str__(self) -> str:
        return self.to_text()


@dataclass(frozen=True)
class IncomingViewingKey:
    """Decrypts incoming notes and derives addresses"""

    ivk: bytes
    dk: bytes

    def diversifier(self, index: int) -> bytes:
        if index < 0:
            raise InputValidationError("Address index must be non-negative")
        return _blake2b(
            self.dk + index.to_bytes(8, "little"),
            b"ShroudDiversify_",
            DIVERSIFIER_SIZE,
        )

    def address_for(self, diversifier: bytes) -> Address:
        pk_d = crypto_scalarmult(self.ivk, diversify_hash(diversifier))
        return Address(diversifier=diversifier, pk_d=pk_d)

    def derive_address(self, index: int) -> Address:
        """Deterministic address number `index`"""
        return self.address_for(self.diversifier(index))

    def owns(self, address: Address) -> bool:
        return self.address_for(address.diversifier).pk_d == address.pk_d

    def to_bytes(self) -> bytes:
        return self.ivk + self.dk

    def to_text(self) -> str:
        return _encode_key_text(IVK_TEXT_PREFIX, self.to_bytes())

    @classmethod
    def from_text(cls, text: str) -> "IncomingViewingKey":
        """
        Decode a base58check viewing key

        Raises:
            CryptoError: If the key cannot be decoded
        """
        body = _decode_key_text(text, IVK_TEXT_PREFIX, 2 * KEY_SIZE, "viewing key")
        return cls(ivk=body[:KEY_SIZE], dk=body[KEY_SIZE:])


@dataclass(frozen=True)
class OutgoingViewingKey:
    """Recovers notes the holder sent to other addresses"""

    ovk: bytes

    def to_text(self) -> str:
        return _encode_key_text(OVK_TEXT_PREFIX, self.ovk)

    @classmethod
    def from_text(cls, text: str) -> "OutgoingViewingKey":
        body = _decode_key_text(text, OVK_TEXT_PREFIX, KEY_SIZE, "outgoing viewing key")
        return cls(body)


@dataclass(frozen=True)
class FullViewingKey:
    nk: bytes
    ivk: bytes
    ovk: bytes
    dk: bytes

    @property
    def incoming(self) -> IncomingViewingKey:
        return IncomingViewingKey(ivk=self.ivk, dk=self.dk)

    @property
    def outgoing(self) -> OutgoingViewingKey:
        return OutgoingViewingKey(self.ovk)

    def to_bytes(self) -> bytes:
        return self.nk + self.ivk + self.ovk + self.dk

    @classmethod
    def from_bytes(cls, data: bytes) -> "FullViewingKey":
        if len(data) != 4 * KEY_SIZE:
            raise CryptoError(f"Full viewing key must be {4 * KEY_SIZE} bytes")
        parts = [data[i:i + KEY_SIZE] for i in range(0, 4 * KEY_SIZE, KEY_SIZE)]
        return cls(*parts)

    def to_text(self) -> str:
        return _encode_key_text(FVK_TEXT_PREFIX, self.to_bytes())

    @classmethod
    def from_text(cls, text: str) -> "FullViewingKey":
        """
        Decode a base58check full viewing key

        Raises:
            CryptoError: If the key cannot be decoded
        """
        return cls.from_bytes(
            _decode_key_text(text, FVK_TEXT_PREFIX, 4 * KEY_SIZE, "full viewing key")
        )


@dataclass(frozen=True)
class SpendingKey:
    """Spending authority together with the seed it was derived from"""

    seed: bytes = field(repr=False)
    sk: bytes = field(init=False, repr=False)

    def __post_init__(self):
        if not MIN_SEED_LENGTH <= len(self.seed) <= MAX_SEED_LENGTH:
            raise InputValidationError(
                f"Seed must be between {MIN_SEED_LENGTH} and {MAX_SEED_LENGTH} bytes"
            )
        object.__setattr__(self, "sk", _blake2b(bytes(self.seed), b"ShroudSpendKey__"))

    @classmethod
    def from_seed(cls, seed: bytes) -> "SpendingKey":
        """
        Derive the spending key from a wallet seed

        Args:
            seed: At least 32 bytes of secret material

        Raises:
            InputValidationError: If the seed is too short or too long
        """
        if isinstance(seed, str):
            seed = seed.encode()
        return cls(bytes(seed))

    def seed_hex(self) -> str:
        return self.seed.hex()

    @classmethod
    def from_seed_hex(cls, text: str) -> "SpendingKey":
        try:
            seed = bytes.fromhex(text)
        except (ValueError, TypeError) as e:
            raise InputValidationError(f"Invalid seed hex: {e}") from None
        return cls(seed)

    def full_viewing_key(self) -> FullViewingKey:
        return FullViewingKey(
            nk=prf_expand(self.sk, b"\x01"),
            ivk=prf_expand(self.sk, b"\x02"),
            ovk=prf_expand(self.sk, b"\x03"),
            dk=prf_expand(self.sk, b"\x04"),
        )

    def derive_vault_seed(self, index: int) -> bytes:
        """Deterministic 32-byte seed for vault number `index`"""
        return _blake2b(
            self.sk + b"vault" + index.to_bytes(4, "little"),
            b"ShroudVaultSeed_",
        )
