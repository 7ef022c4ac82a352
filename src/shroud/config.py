"""Wallet configuration and defaults"""

from dataclasses import dataclass
from typing import Any

from .constants import TREE_DEPTH
from .eosio import Authorization, Name
from .errors import InputValidationError
from .utils import hex_to_bytes

DEFAULT_PROTOCOL_CONTRACT = "shieldedpool"
DEFAULT_VAULT_CONTRACT = "shieldvaults"
DEFAULT_ALIAS_AUTHORITY = "shieldedpool@public"
DEFAULT_FEE_TOKEN_CONTRACT = "shieldtokens"


@dataclass
class WalletConfig:
    """Chain and contract settings a wallet is bound to"""

    chain_id: str
    protocol_contract: str = DEFAULT_PROTOCOL_CONTRACT
    vault_contract: str = DEFAULT_VAULT_CONTRACT
    alias_authority: str = DEFAULT_ALIAS_AUTHORITY
    fee_token_contract: str = DEFAULT_FEE_TOKEN_CONTRACT
    tree_depth: int = TREE_DEPTH

    def validate(self) -> None:
        """Validate configuration"""
        hex_to_bytes(self.chain_id, 32)
        Name.from_string(self.protocol_contract)
        Name.from_string(self.vault_contract)
        Name.from_string(self.fee_token_contract)
        Authorization.from_string(self.alias_authority)
        if not 1 <= self.tree_depth <= TREE_DEPTH:
            raise InputValidationError(
                f"Tree depth must be between 1 and {TREE_DEPTH}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WalletConfig":
        """Create from dictionary, filling unset fields with defaults"""
        try:
            config = cls(
                chain_id=data["chain_id"],
                protocol_contract=data.get(
                    "protocol_contract", DEFAULT_PROTOCOL_CONTRACT
                ),
                vault_contract=data.get("vault_contract", DEFAULT_VAULT_CONTRACT),
                alias_authority=data.get("alias_authority", DEFAULT_ALIAS_AUTHORITY),
                fee_token_contract=data.get(
                    "fee_token_contract", DEFAULT_FEE_TOKEN_CONTRACT
                ),
                tree_depth=int(data.get("tree_depth", TREE_DEPTH)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid wallet config: {e}") from None
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "protocol_contract": self.protocol_contract,
            "vault_contract": self.vault_contract,
            "alias_authority": self.alias_authority,
            "fee_token_contract": self.fee_token_contract,
            "tree_depth": self.tree_depth,
        }

    def create_wallet(self, seed):
        """Create a spending wallet bound to this configuration"""
        from .wallet import Wallet

        self.validate()
        return Wallet.create(
            seed,
            chain_id=hex_to_bytes(self.chain_id, 32),
            protocol_contract=self.protocol_contract,
            vault_contract=self.vault_contract,
            alias_authority=self.alias_authority,
            tree_depth=self.tree_depth,
        )
