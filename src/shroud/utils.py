"""Utility functions"""

import secrets

import base58

from .constants import ADDRESS_SIZE, COMMITMENT_SIZE
from .errors import InputValidationError


def generate_secret(length: int = 32) -> str:
    """
    Generate a cryptographically secure secret

    Args:
        length: Length of secret in bytes

    Returns:
        Hex-encoded secret string
    """
    return secrets.token_hex(length)


def generate_rseed() -> bytes:
    """Fresh note randomness"""
    return secrets.token_bytes(32)


def commitment_to_hex(commitment: bytes) -> str:
    """
    Convert a note commitment to its textual form

    Args:
        commitment: 32-byte commitment

    Returns:
        Lowercase hex string, as used in auth token ids and history entries

    Raises:
        InputValidationError: If the commitment is not 32 bytes
    """
    if len(commitment) != COMMITMENT_SIZE:
        raise InputValidationError(
            f"Commitment must be {COMMITMENT_SIZE} bytes, got {len(commitment)}"
        )
    return bytes(commitment).hex()


def hex_to_bytes(hex_str: str, expected_len: int = 0) -> bytes:
    """
    Convert hex string to bytes

    Args:
        hex_str: Hex string (with or without 0x prefix)
        expected_len: Required byte length, 0 for any

    Returns:
        Bytes

    Raises:
        InputValidationError: On non-hex input or a length mismatch
    """
    if not isinstance(hex_str, str):
        raise InputValidationError(f"Expected hex string, got {type(hex_str)}")
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]
    try:
        raw = bytes.fromhex(hex_str)
    except ValueError as e:
        raise InputValidationError(f"Invalid hex: {e}") from None
    if expected_len and len(raw) != expected_len:
        raise InputValidationError(
            f"Expected {expected_len} bytes, got {len(raw)}"
        )
    return raw


def split_chunks(raw: bytes, size: int, what: str = "value") -> list[bytes]:
    """
    Split a flat byte string into fixed-size chunks

    Raises:
        InputValidationError: If the length is not a multiple of size
    """
    if len(raw) % size != 0:
        raise InputValidationError(
            f"{what} bytes length {len(raw)} is not a multiple of {size}"
        )
    return [bytes(raw[i : i + size]) for i in range(0, len(raw), size)]


def parse_auth_token_id(token_id: str) -> tuple[bytes, str]:
    """
    Split "<commitment-hex>@<contract>[|<memo>]" into commitment and contract

    Raises:
        InputValidationError: On malformed identifiers
    """
    if not isinstance(token_id, str) or "@" not in token_id:
        raise InputValidationError(f"Invalid auth token id: {token_id!r}")
    body = token_id.split("|", 1)[0]
    cm_hex, contract = body.split("@", 1)
    return hex_to_bytes(cm_hex, COMMITMENT_SIZE), contract


def validate_address(address: str) -> bool:
    """
    Validate a shielded address

    Args:
        address: Base58check-encoded diversified address

    Returns:
        True if valid
    """
    try:
        decoded = base58.b58decode_check(address)
    except (ValueError, TypeError):
        return False
    return len(decoded) == ADDRESS_SIZE
