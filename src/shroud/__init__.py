"""
Shroud - shielded note wallet engine

Tracks shielded notes in an append-only commitment tree, selects notes under
a fee schedule and drives transactions through resolve, sign and verify.
"""

__version__ = "0.1.0"

# Export main API
from .blocks import Block, digest_block
from .client import WalletClient
from .config import (
    DEFAULT_ALIAS_AUTHORITY,
    DEFAULT_FEE_TOKEN_CONTRACT,
    DEFAULT_PROTOCOL_CONTRACT,
    DEFAULT_VAULT_CONTRACT,
    WalletConfig,
)
from .eosio import Asset, Authorization, ExtendedAsset, Name, Symbol
from .errors import (
    CapacityExceeded,
    CryptoError,
    InputValidationError,
    InsufficientFunds,
    InvalidIntent,
    MissingFeeError,
    NotYetInserted,
    ProofGenerationError,
    RecoverableError,
    ShroudError,
    StateConsistencyError,
    WalletCorruptedError,
)
from .fees import FeeKind, FeeSchedule, estimate_fee
from .keys import (
    Address,
    FullViewingKey,
    IncomingViewingKey,
    OutgoingViewingKey,
    SpendingKey,
)
from .merkle import CommitmentAccumulator, MerkleWitness
from .note import Note, NoteEx, NoteKind
from .note_encryption import (
    NoteCiphertext,
    decrypt_incoming,
    decrypt_outgoing,
    encrypt_note,
)
from .prover import MvpProver, Prover, ProvingParameters, VerifyingParameters
from .resolver import resolve
from .transaction import apply_local_effects, create_auth_token_note, sign, verify
from .types import (
    AuthenticateIntent,
    BurnVaultIntent,
    CreateVaultIntent,
    NftTransferIntent,
    ProvedTransaction,
    ResolvedTransaction,
    SigningMetadata,
    TransactionResult,
    TransactionStatus,
    TransferIntent,
    WithdrawIntent,
    intent_from_dict,
    intent_from_json,
)
from .utils import commitment_to_hex, generate_secret
from .wallet import NoteCounts, Wallet

__all__ = [
    # Main client
    "WalletClient",
    "Wallet",
    "WalletConfig",
    "NoteCounts",
    # Protocol steps
    "resolve",
    "sign",
    "verify",
    "apply_local_effects",
    "create_auth_token_note",
    "digest_block",
    "Block",
    # Intents
    "TransferIntent",
    "WithdrawIntent",
    "NftTransferIntent",
    "AuthenticateIntent",
    "BurnVaultIntent",
    "CreateVaultIntent",
    "intent_from_dict",
    "intent_from_json",
    # Transactions
    "ResolvedTransaction",
    "ProvedTransaction",
    "SigningMetadata",
    "TransactionResult",
    "TransactionStatus",
    # Notes and keys
    "Note",
    "NoteEx",
    "NoteKind",
    "NoteCiphertext",
    "encrypt_note",
    "decrypt_incoming",
    "decrypt_outgoing",
    "Address",
    "FullViewingKey",
    "IncomingViewingKey",
    "OutgoingViewingKey",
    "SpendingKey",
    "CommitmentAccumulator",
    "MerkleWitness",
    # Chain types
    "Name",
    "Symbol",
    "Asset",
    "ExtendedAsset",
    "Authorization",
    # Fees
    "FeeKind",
    "FeeSchedule",
    "estimate_fee",
    # Proofs
    "Prover",
    "MvpProver",
    "ProvingParameters",
    "VerifyingParameters",
    # Errors
    "ShroudError",
    "RecoverableError",
    "InputValidationError",
    "InvalidIntent",
    "MissingFeeError",
    "StateConsistencyError",
    "NotYetInserted",
    "CapacityExceeded",
    "InsufficientFunds",
    "CryptoError",
    "ProofGenerationError",
    "WalletCorruptedError",
    # Defaults
    "DEFAULT_PROTOCOL_CONTRACT",
    "DEFAULT_VAULT_CONTRACT",
    "DEFAULT_ALIAS_AUTHORITY",
    "DEFAULT_FEE_TOKEN_CONTRACT",
    # Utilities
    "generate_secret",
    "commitment_to_hex",
    # Module info
    "__version__",
]
