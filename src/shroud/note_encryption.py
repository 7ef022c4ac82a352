"""
Note encryption

In-band note ciphertexts. The recipient's incoming viewing key opens the
note; the sender's outgoing viewing key can recover it too, through a
second small ciphertext carrying (pk_d, esk).

Decryption is a filter over a stream of ciphertexts: anything that does not
open cleanly (wrong key, bad hex, truncated data, failed MAC, commitment
mismatch) yields None instead of raising.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional, Union

from nacl import exceptions as nacl_exceptions
from nacl.bindings import crypto_scalarmult
from nacl.secret import SecretBox
from nacl.utils import random as nacl_random

from .constants import COMMITMENT_SIZE, KEY_SIZE, NOTE_PLAINTEXT_SIZE
from .errors import InputValidationError
from .note import Note
from .utils import hex_to_bytes

ENC_CIPHERTEXT_SIZE = SecretBox.NONCE_SIZE + NOTE_PLAINTEXT_SIZE + SecretBox.MACBYTES
OUT_CIPHERTEXT_SIZE = SecretBox.NONCE_SIZE + 2 * KEY_SIZE + SecretBox.MACBYTES
CIPHERTEXT_SIZE = KEY_SIZE + COMMITMENT_SIZE + ENC_CIPHERTEXT_SIZE + OUT_CIPHERTEXT_SIZE


def derive_esk(rseed: bytes) -> bytes:
    """Ephemeral secret bound to the note's randomness"""
    return hashlib.blake2b(rseed, digest_size=32, person=b"ShroudNoteEsk___").digest()


def kdf(shared_secret: bytes, epk: bytes) -> bytes:
    return hashlib.blake2b(
        shared_secret + epk, digest_size=32, person=b"ShroudNoteKdf___"
    ).digest()


def outgoing_cipher_key(ovk: bytes, commitment: bytes, epk: bytes) -> bytes:
    return hashlib.blake2b(
        ovk + commitment + epk, digest_size=32, person=b"ShroudOutCipher_"
    ).digest()


@dataclass(frozen=True)
class NoteCiphertext:
    """epk || cm || enc_ciphertext || out_ciphertext"""

    epk: bytes
    commitment: bytes
    enc_ciphertext: bytes
    out_ciphertext: bytes

    def to_bytes(self) -> bytes:
        return self.epk + self.commitment + self.enc_ciphertext + self.out_ciphertext

    @classmethod
    def from_bytes(cls, raw: bytes) -> "NoteCiphertext":
        if len(raw) != CIPHERTEXT_SIZE:
            raise InputValidationError(
                f"Note ciphertext must be {CIPHERTEXT_SIZE} bytes, got {len(raw)}"
            )
        offset = 0
        epk = raw[offset : offset + KEY_SIZE]
        offset += KEY_SIZE
        commitment = raw[offset : offset + COMMITMENT_SIZE]
        offset += COMMITMENT_SIZE
        enc = raw[offset : offset + ENC_CIPHERTEXT_SIZE]
        offset += ENC_CIPHERTEXT_SIZE
        out = raw[offset:]
        return cls(bytes(epk), bytes(commitment), bytes(enc), bytes(out))

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    @classmethod
    def from_hex(cls, hex_str: str) -> "NoteCiphertext":
        return cls.from_bytes(hex_to_bytes(hex_str))


def encrypt_note(note: Note, ovk: Optional[bytes] = None) -> NoteCiphertext:
    """
    Encrypt a note to its own address

    Args:
        note: Note to encrypt
        ovk: Sender's outgoing viewing key; None leaves the outgoing part
             unrecoverable

    Returns:
        Note ciphertext
    """
    address = note.address
    esk = derive_esk(note.rseed)
    epk = crypto_scalarmult(esk, address.g_d)
    shared = crypto_scalarmult(esk, address.pk_d)
    commitment = note.commitment()

    enc = SecretBox(kdf(shared, epk)).encrypt(
        note.to_bytes(), nacl_random(SecretBox.NONCE_SIZE)
    )
    if ovk is not None:
        out = SecretBox(outgoing_cipher_key(ovk, commitment, epk)).encrypt(
            address.pk_d + esk, nacl_random(SecretBox.NONCE_SIZE)
        )
    else:
        out = nacl_random(OUT_CIPHERTEXT_SIZE)

    return NoteCiphertext(
        epk=epk,
        commitment=commitment,
        enc_ciphertext=bytes(enc),
        out_ciphertext=bytes(out),
    )


def _coerce(ciphertext: Union[NoteCiphertext, str, bytes]) -> Optional[NoteCiphertext]:
    try:
        if isinstance(ciphertext, NoteCiphertext):
            return ciphertext
        if isinstance(ciphertext, str):
            return NoteCiphertext.from_hex(ciphertext)
        return NoteCiphertext.from_bytes(bytes(ciphertext))
    except (InputValidationError, TypeError):
        return None


def _open_note(ct: NoteCiphertext, shared: bytes) -> Optional[Note]:
    plaintext = SecretBox(kdf(shared, ct.epk)).decrypt(ct.enc_ciphertext)
    note = Note.from_bytes(plaintext)
    if note.commitment() != ct.commitment:
        return None
    # epk must be the one this note's rseed commits to
    if crypto_scalarmult(derive_esk(note.rseed), note.address.g_d) != ct.epk:
        return None
    return note


def decrypt_incoming(
    ciphertext: Union[NoteCiphertext, str, bytes], ivk: bytes
) -> Optional[Note]:
    """
    Try to open a ciphertext with an incoming viewing key

    Returns:
        The note, or None if this key cannot open it
    """
    ct = _coerce(ciphertext)
    if ct is None:
        return None
    try:
        shared = crypto_scalarmult(ivk, ct.epk)
        return _open_note(ct, shared)
    except (nacl_exceptions.CryptoError, InputValidationError):
        return None


def decrypt_outgoing(
    ciphertext: Union[NoteCiphertext, str, bytes], ovk: bytes
) -> Optional[Note]:
    """
    Try to recover a sent note with an outgoing viewing key

    Returns:
        The note, or None if this key cannot open it
    """
    ct = _coerce(ciphertext)
    if ct is None:
        return None
    try:
        recovered = SecretBox(outgoing_cipher_key(ovk, ct.commitment, ct.epk)).decrypt(
            ct.out_ciphertext
        )
        pk_d, esk = recovered[:KEY_SIZE], recovered[KEY_SIZE:]
        note = _open_note(ct, crypto_scalarmult(esk, pk_d))
    except (nacl_exceptions.CryptoError, InputValidationError):
        return None
    if note is not None and note.address.pk_d != pk_d:
        return None
    return note
