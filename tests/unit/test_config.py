"""
Tests for wallet configuration
"""

import pytest

from shroud import Wallet, WalletConfig
from shroud.config import DEFAULT_FEE_TOKEN_CONTRACT, DEFAULT_PROTOCOL_CONTRACT
from shroud.errors import InputValidationError

CHAIN_ID = "aa" * 32


class TestWalletConfig:
    """Test configuration loading"""

    def test_defaults(self):
        """Test unset fields take the defaults"""
        config = WalletConfig.from_dict({"chain_id": CHAIN_ID})
        assert config.protocol_contract == DEFAULT_PROTOCOL_CONTRACT
        assert config.fee_token_contract == DEFAULT_FEE_TOKEN_CONTRACT
        assert WalletConfig.from_dict(config.to_dict()) == config

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"chain_id": "abcd"},
            {"chain_id": CHAIN_ID, "protocol_contract": "Bad Name"},
            {"chain_id": CHAIN_ID, "alias_authority": "nopermission"},
            {"chain_id": CHAIN_ID, "tree_depth": 0},
            {"chain_id": CHAIN_ID, "tree_depth": "deep"},
        ],
    )
    def test_invalid(self, data):
        """Test invalid settings are rejected"""
        with pytest.raises(InputValidationError):
            WalletConfig.from_dict(data)

    def test_create_wallet(self):
        """Test wallets created from a config carry its settings"""
        config = WalletConfig(
            chain_id=CHAIN_ID, vault_contract="myvaults", tree_depth=4
        )
        wallet = config.create_wallet(b"c" * 32)
        assert isinstance(wallet, Wallet)
        assert wallet.chain_id.hex() == CHAIN_ID
        assert str(wallet.vault_contract) == "myvaults"
        assert wallet.tree_depth == 4
        assert len(wallet.addresses()) == 1
