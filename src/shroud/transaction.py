"""
Signing, verification and the eager local update

Intent -> ResolvedTransaction -> (ProvedTransaction, SigningMetadata).
Signing only reads the wallet. Folding a signed transaction back into the
wallet before the chain confirms it is a separate, explicit step
(apply_local_effects).
"""

import hashlib
import logging
import time
from typing import TYPE_CHECKING, Optional, Union

from .constants import CIRCUIT_AUTHENTICATE, CIRCUIT_OUTPUT, CIRCUIT_SPEND
from .eosio import Asset, ExtendedAsset, Name, Symbol
from .errors import (
    CryptoError,
    InputValidationError,
    ProofGenerationError,
    StateConsistencyError,
)
from .keys import Address
from .note import Note, make_memo
from .note_encryption import encrypt_note
from .prover import MvpProver, Prover, ProvingParameters, VerifyingParameters
from .types import (
    AuthDescription,
    OutputDescription,
    ProvedTransaction,
    ResolvedTransaction,
    SigningMetadata,
    SpendDescription,
)
from .utils import commitment_to_hex

if TYPE_CHECKING:
    from .wallet import Wallet

logger = logging.getLogger(__name__)


def create_auth_token_note(
    wallet: "Wallet",
    seed: str,
    contract: Union[str, Name],
    address: Optional[Address] = None,
) -> Note:
    """
    Build an auth token ("vault") note

    The note carries no value: zero amount, no symbol. Its randomness is
    derived from the seed, so the same seed always yields the same token;
    the seed itself is kept in the memo.

    Args:
        wallet: Owning wallet
        seed: Vault seed
        contract: Contract the token authenticates to
        address: Recipient address, the wallet's default address if omitted

    Returns:
        Auth token note
    """
    if not seed:
        raise InputValidationError("Auth token seed must not be empty")
    if isinstance(contract, str):
        contract = Name.from_string(contract)
    if address is None:
        address = wallet.default_address()
    rseed = hashlib.blake2s(seed.encode(), digest_size=32, person=b"AuthRsd_").digest()
    return Note(
        account=Name(),
        asset=ExtendedAsset(Asset(0, Symbol()), contract),
        address=address,
        rseed=rseed,
        memo=make_memo(seed),
    )


def _check_inputs(wallet: "Wallet", resolved: ResolvedTransaction) -> None:
    tokens = [a.token for a in resolved.authentications]
    for item in list(resolved.inputs) + tokens:
        if wallet.find_unspent(item.commitment) is None:
            raise StateConsistencyError(
                f"Input note {commitment_to_hex(item.commitment)} is no longer unspent"
            )
        if item.witness.compute_root(item.commitment) != resolved.anchor:
            raise StateConsistencyError(
                f"Witness for position {item.position} does not match the anchor"
            )


def sign(
    wallet: "Wallet",
    resolved: ResolvedTransaction,
    proving_params: ProvingParameters,
    prover: Optional[Prover] = None,
) -> tuple[ProvedTransaction, SigningMetadata]:
    """
    Prove and sign a resolved transaction

    Pure with respect to the wallet: nothing is mutated.

    Args:
        wallet: Wallet that resolved the transaction
        resolved: Resolved transaction
        proving_params: Proving keys per circuit
        prover: Proof oracle, MvpProver by default

    Returns:
        (proved transaction, signing metadata)

    Raises:
        CryptoError: For view-only wallets
        StateConsistencyError: If an input is no longer unspent or a
            witness no longer matches the anchor
        ProofGenerationError: If a proof cannot be produced
    """
    if wallet.is_view_only:
        raise CryptoError("View-only wallet cannot sign transactions")
    prover = prover or MvpProver()
    nk = wallet.nullifier_key
    ovk = wallet.outgoing_viewing_key
    _check_inputs(wallet, resolved)

    spends = [
        SpendDescription(
            anchor=resolved.anchor, nullifier=i.note.nullifier(nk, i.position)
        )
        for i in resolved.inputs
    ]

    outputs = []
    unpublished = []
    for o in resolved.outputs:
        ciphertext = encrypt_note(o.note, ovk).to_hex()
        if o.publish:
            outputs.append(OutputDescription(o.note.commitment(), ciphertext))
        else:
            outputs.append(OutputDescription(o.note.commitment()))
            unpublished.append(ciphertext)

    auths = []
    burned = []
    for a in resolved.authentications:
        token = a.token.note
        auths.append(
            AuthDescription(
                anchor=resolved.anchor,
                commitment=token.commitment(),
                contract=str(token.contract),
                burn=a.burn,
                nullifier=token.nullifier(nk, a.token.position) if a.burn else b"",
                action=a.action,
                release_to=a.release_to,
                release=list(a.release),
            )
        )
        if a.burn:
            burned.append(token.auth_token_id())

    proved = ProvedTransaction(
        chain_id=wallet.chain_id,
        protocol_contract=str(wallet.protocol_contract),
        alias_authority=str(wallet.alias_authority),
        anchor=resolved.anchor,
        fee=str(resolved.fee),
        spends=spends,
        outputs=outputs,
        authentications=auths,
        withdrawals=list(resolved.withdrawals),
    )

    digest = proved.body_digest()
    try:
        for s in spends:
            s.proof = prover.prove(
                CIRCUIT_SPEND, s.public_inputs() + [digest], proving_params
            )
        for o in outputs:
            o.proof = prover.prove(
                CIRCUIT_OUTPUT, o.public_inputs() + [digest], proving_params
            )
        for a in auths:
            a.proof = prover.prove(
                CIRCUIT_AUTHENTICATE, a.public_inputs() + [digest], proving_params
            )
    except (ValueError, TypeError) as e:
        raise ProofGenerationError(f"Proof generation failed: {e}") from e

    logger.info(
        "Signed transaction: %d spends, %d outputs, %d authentications",
        len(spends),
        len(outputs),
        len(auths),
    )
    return proved, SigningMetadata(
        burned_auth_tokens=burned, unpublished_notes=unpublished
    )


def verify(
    proved: ProvedTransaction,
    verifying_params: VerifyingParameters,
    prover: Optional[Prover] = None,
) -> bool:
    """
    Check every proof against public inputs re-derived from the body

    Works offline. Returns False for any bad, missing or mismatched proof
    rather than raising.
    """
    prover = prover or MvpProver()
    if any(s.anchor != proved.anchor for s in proved.spends):
        return False
    try:
        digest = proved.body_digest()
        checks = [(CIRCUIT_SPEND, s) for s in proved.spends]
        checks += [(CIRCUIT_OUTPUT, o) for o in proved.outputs]
        checks += [(CIRCUIT_AUTHENTICATE, a) for a in proved.authentications]
        for circuit, description in checks:
            inputs = description.public_inputs() + [digest]
            if not prover.verify(circuit, inputs, description.proof, verifying_params):
                logger.debug("Proof for %s description does not verify", circuit)
                return False
    except (InputValidationError, ValueError, TypeError) as e:
        logger.debug("Transaction does not verify: %s", e)
        return False
    return True


def apply_local_effects(
    wallet: "Wallet",
    proved: ProvedTransaction,
    meta: SigningMetadata,
    now_ms: Optional[int] = None,
) -> None:
    """
    Fold a signed transaction into the wallet ahead of chain confirmation

    In order: output commitments become provisional leaves, input
    nullifiers are marked spent, burned auth tokens move to spent, output
    ciphertexts are decrypted into the wallet, and out-of-band notes are
    recorded. The timestamp used is max(now_ms, max_block_ts + 1) so local
    notes sort after everything already seen.

    All or nothing: on any failure the wallet is left as it was.

    Args:
        wallet: Wallet that signed the transaction
        proved: Signed transaction
        meta: Metadata returned by sign
        now_ms: Current time in milliseconds, wall clock if omitted
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    with wallet.atomic():
        block_ts = max(now_ms, wallet.max_block_ts() + 1)
        wallet.add_provisional_leaves(proved.commitments())
        spent = wallet.mark_notes_spent(proved.nullifiers())
        for token_id in meta.burned_auth_tokens:
            wallet.burn_auth_token_eagerly(token_id, block_ts)
        counts = wallet.add_notes(proved.ciphertexts(), wallet.block_num, block_ts)
        wallet.add_unpublished_notes(
            meta.unpublished_notes, wallet.block_num, block_ts
        )
        counts = counts + wallet.retry_unpublished()

    logger.info(
        "Eager update applied: %d notes spent, %d new unspent notes",
        spent,
        counts.total,
    )
