"""
Wallet client

High-level API tying resolution, signing, verification and the eager local
update together.
"""

import logging
from typing import Optional, Union

from .config import DEFAULT_FEE_TOKEN_CONTRACT, WalletConfig
from .eosio import Name
from .errors import ProofGenerationError
from .fees import FeeSchedule
from .prover import MvpProver, Prover, ProvingParameters, VerifyingParameters
from .resolver import resolve
from .transaction import apply_local_effects, sign, verify
from .types import (
    Intent,
    ProvedTransaction,
    ResolvedTransaction,
    SigningMetadata,
    TransactionResult,
    TransactionStatus,
)
from .wallet import Wallet

logger = logging.getLogger(__name__)


class WalletClient:
    """
    Main client for shielded transactions

    Example:
        ```python
        wallet = Wallet.create(seed, chain_id=chain_id)
        client = WalletClient(wallet, FeeSchedule.from_json(fees_json))

        result = client.transact(
            TransferIntent(
                recipient=address,
                quantity="1.0000 SHLD@shieldtokens",
                memo="thanks",
            )
        )
        submit(result.proved.to_json())
        ```
    """

    def __init__(
        self,
        wallet: Wallet,
        fee_schedule: FeeSchedule,
        fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
        proving_params: Optional[ProvingParameters] = None,
        prover: Optional[Prover] = None,
    ):
        """
        Initialize Wallet Client

        Args:
            wallet: Wallet to transact from
            fee_schedule: Current fee schedule
            fee_token_contract: Contract of the fee token
            proving_params: Proving keys (fresh MVP keys if not provided)
            prover: Proof oracle (MvpProver if not provided)
        """
        self.wallet = wallet
        self.fee_schedule = fee_schedule
        self.fee_token_contract = fee_token_contract
        self.proving_params = proving_params or ProvingParameters.generate()
        self.prover = prover or MvpProver()

    @classmethod
    def from_config(
        cls,
        seed: Union[str, bytes],
        config: WalletConfig,
        fee_schedule: FeeSchedule,
        proving_params: Optional[ProvingParameters] = None,
    ) -> "WalletClient":
        """Create a fresh wallet from a seed and wrap it in a client"""
        return cls(
            config.create_wallet(seed),
            fee_schedule,
            config.fee_token_contract,
            proving_params,
        )

    @property
    def verifying_params(self) -> VerifyingParameters:
        return self.proving_params.verifying_parameters()

    def resolve(self, intent: Intent) -> ResolvedTransaction:
        """
        Resolve an intent against the wallet

        Args:
            intent: What to do

        Returns:
            Resolved transaction
        """
        return resolve(self.wallet, intent, self.fee_schedule, self.fee_token_contract)

    def sign(
        self, resolved: ResolvedTransaction
    ) -> tuple[ProvedTransaction, SigningMetadata]:
        """Prove and sign; the wallet is not modified"""
        return sign(self.wallet, resolved, self.proving_params, self.prover)

    def verify(self, proved: ProvedTransaction) -> bool:
        """Verify all proofs offline"""
        return verify(proved, self.verifying_params, self.prover)

    def apply(
        self,
        proved: ProvedTransaction,
        metadata: SigningMetadata,
        now_ms: Optional[int] = None,
    ) -> None:
        """Eagerly fold a signed transaction into the wallet"""
        apply_local_effects(self.wallet, proved, metadata, now_ms)

    def transact(
        self,
        intent: Intent,
        apply_locally: bool = True,
        now_ms: Optional[int] = None,
    ) -> TransactionResult:
        """
        Resolve, sign, self-verify and (optionally) apply an intent

        Args:
            intent: What to do
            apply_locally: Apply the eager local update after signing
            now_ms: Timestamp for the eager update, wall clock if omitted

        Returns:
            Transaction result; submit result.proved to the chain

        Raises:
            ProofGenerationError: If the produced proofs do not verify
        """
        resolved = self.resolve(intent)
        proved, metadata = self.sign(resolved)
        if not self.verify(proved):
            raise ProofGenerationError("Signed transaction failed local verification")

        status = TransactionStatus.SIGNED
        if apply_locally:
            self.apply(proved, metadata, now_ms)
            status = TransactionStatus.APPLIED

        logger.info("Transaction %s: fee %s", status.value, resolved.fee)
        return TransactionResult(
            status=status, resolved=resolved, proved=proved, metadata=metadata
        )
