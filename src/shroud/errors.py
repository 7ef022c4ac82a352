"""
Error types raised by the wallet engine

Recoverable errors leave the wallet exactly as it was before the call.
WalletCorruptedError is the only fatal error: once raised, the wallet
refuses further mutation.
"""

from typing import Optional


class ShroudError(Exception):
    """Base class for all wallet engine errors"""


class RecoverableError(ShroudError):
    """A failed call that did not touch wallet state"""


class InputValidationError(RecoverableError, ValueError):
    """Malformed encoding, wrong length or bad identifier"""


class InvalidIntent(InputValidationError):
    """A transaction intent that can never be resolved"""


class StateConsistencyError(RecoverableError):
    """Wallet state does not support the requested operation"""


class NotYetInserted(StateConsistencyError):
    """Witness requested for a position past the current leaf count"""


class CapacityExceeded(StateConsistencyError):
    """Commitment tree is full"""


class InsufficientFunds(RecoverableError):
    """Unspent notes cannot cover amount plus fee"""

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
    ):
        super().__init__(message)
        self.required = required
        self.available = available


class CryptoError(RecoverableError):
    """Key decoding, proof generation or verification failure"""


class ProofGenerationError(CryptoError):
    """The proving oracle could not produce a proof"""


class WalletCorruptedError(ShroudError):
    """Accumulator or persisted format corruption; the wallet is unusable"""


class MissingFeeError(InputValidationError):
    """Fee schedule lacks an entry the operation needs"""
