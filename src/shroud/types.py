"""Type definitions for shroud"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from .constants import COMMITMENT_SIZE, MEMO_SIZE, NULLIFIER_SIZE
from .eosio import ExtendedAsset, Name, Symbol
from .errors import InputValidationError, InvalidIntent
from .fees import FeeKind
from .keys import Address
from .merkle import MerkleWitness
from .note import Note
from .utils import hex_to_bytes, parse_auth_token_id


class TransactionStatus(Enum):
    """Transaction status"""

    RESOLVED = "resolved"
    SIGNED = "signed"
    APPLIED = "applied"


def _quantity(value: str, what: str = "quantity") -> ExtendedAsset:
    try:
        return ExtendedAsset.from_string(value)
    except InputValidationError as e:
        raise InvalidIntent(f"Invalid {what}: {e}") from None


def _check_memo(memo: str) -> None:
    if len(memo.encode()) > MEMO_SIZE:
        raise InvalidIntent(f"Memo longer than {MEMO_SIZE} bytes")


def _check_account(account: str) -> None:
    try:
        Name.from_string(account)
    except InputValidationError as e:
        raise InvalidIntent(f"Invalid account: {e}") from None
    if not account:
        raise InvalidIntent("Account must not be empty")


def _check_auth_token(token: str) -> None:
    try:
        parse_auth_token_id(token)
    except InputValidationError as e:
        raise InvalidIntent(str(e)) from None


def _loads(text: Union[str, bytes], what: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"Invalid {what} JSON: {e}") from None
    if not isinstance(data, dict):
        raise InputValidationError(f"{what} JSON must be an object")
    return data


class _JsonRecord:
    """to_json/from_json on top of to_dict/from_dict"""

    def to_json(self, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), indent=2 if pretty else None)

    @classmethod
    def from_json(cls, text: Union[str, bytes]):
        data = _loads(text, cls.__name__)
        try:
            return cls.from_dict(data)
        except (KeyError, TypeError) as e:
            raise InputValidationError(f"Invalid {cls.__name__}: {e}") from None


# =============================================================================
# Intents
# =============================================================================


@dataclass
class TransferIntent(_JsonRecord):
    """Send fungible tokens to a shielded address"""

    INTENT_TYPE: ClassVar[str] = "transfer"

    recipient: str
    quantity: str
    memo: str = ""

    def validate(self) -> None:
        """Validate transfer intent"""
        try:
            Address.from_text(self.recipient)
        except InputValidationError as e:
            raise InvalidIntent(f"Invalid recipient: {e}") from None
        asset = _quantity(self.quantity)
        if asset.amount <= 0:
            raise InvalidIntent("Amount must be positive")
        if asset.symbol.is_none():
            raise InvalidIntent("Transfer needs a fungible token symbol")
        _check_memo(self.memo)

    @property
    def asset(self) -> ExtendedAsset:
        return _quantity(self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.INTENT_TYPE,
            "recipient": self.recipient,
            "quantity": self.quantity,
            "memo": self.memo,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransferIntent":
        return cls(
            recipient=data["recipient"],
            quantity=data["quantity"],
            memo=data.get("memo", ""),
        )


@dataclass
class WithdrawIntent(_JsonRecord):
    """Move fungible tokens out of the pool to a public account"""

    INTENT_TYPE: ClassVar[str] = "withdraw"

    account: str
    quantity: str
    memo: str = ""

    def validate(self) -> None:
        """Validate withdraw intent"""
        _check_account(self.account)
        asset = _quantity(self.quantity)
        if asset.amount <= 0:
            raise InvalidIntent("Amount must be positive")
        if asset.symbol.is_none():
            raise InvalidIntent("Withdrawal needs a fungible token symbol")
        _check_memo(self.memo)

    @property
    def asset(self) -> ExtendedAsset:
        return _quantity(self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.INTENT_TYPE,
            "account": self.account,
            "quantity": self.quantity,
            "memo": self.memo,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WithdrawIntent":
        return cls(
            account=data["account"],
            quantity=data["quantity"],
            memo=data.get("memo", ""),
        )


@dataclass
class NftTransferIntent(_JsonRecord):
    """Send one non-fungible unit, identified as <id>@<contract>"""

    INTENT_TYPE: ClassVar[str] = "nft_transfer"

    recipient: str
    nft: str
    memo: str = ""

    def validate(self) -> None:
        """Validate NFT transfer intent"""
        try:
            Address.from_text(self.recipient)
        except InputValidationError as e:
            raise InvalidIntent(f"Invalid recipient: {e}") from None
        asset = _quantity(self.nft, "NFT")
        if not asset.symbol.is_none() or asset.amount == 0:
            raise InvalidIntent("NFT must be a non-zero id without symbol")
        _check_memo(self.memo)

    @property
    def asset(self) -> ExtendedAsset:
        return _quantity(self.nft, "NFT")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.INTENT_TYPE,
            "recipient": self.recipient,
            "nft": self.nft,
            "memo": self.memo,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NftTransferIntent":
        return cls(
            recipient=data["recipient"], nft=data["nft"], memo=data.get("memo", "")
        )


@dataclass
class AuthenticateIntent(_JsonRecord):
    """Prove ownership of an auth token, optionally burning it"""

    INTENT_TYPE: ClassVar[str] = "authenticate"

    auth_token: str
    action: str = ""
    burn: bool = False

    def validate(self) -> None:
        """Validate authenticate intent"""
        _check_auth_token(self.auth_token)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.INTENT_TYPE,
            "auth_token": self.auth_token,
            "action": self.action,
            "burn": self.burn,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthenticateIntent":
        return cls(
            auth_token=data["auth_token"],
            action=data.get("action", ""),
            burn=bool(data.get("burn", False)),
        )


@dataclass
class BurnVaultIntent(_JsonRecord):
    """Burn a vault's auth token and release its assets to a public account"""

    INTENT_TYPE: ClassVar[str] = "burn_vault"

    auth_token: str
    account: str
    assets: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Validate burn intent"""
        _check_auth_token(self.auth_token)
        _check_account(self.account)
        for asset in self.assets:
            if _quantity(asset, "vault asset").amount <= 0:
                raise InvalidIntent("Vault assets must be positive")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.INTENT_TYPE,
            "auth_token": self.auth_token,
            "account": self.account,
            "assets": list(self.assets),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BurnVaultIntent":
        return cls(
            auth_token=data["auth_token"],
            account=data["account"],
            assets=list(data.get("assets", [])),
        )


@dataclass
class CreateVaultIntent(_JsonRecord):
    """Mint a new auth token; without a seed the wallet derives one"""

    INTENT_TYPE: ClassVar[str] = "create_vault"

    contract: str = ""
    seed: Optional[str] = None

    def validate(self) -> None:
        """Validate vault creation intent"""
        if self.contract:
            _check_account(self.contract)
        if self.seed is not None:
            if not self.seed:
                raise InvalidIntent("Vault seed must not be empty")
            _check_memo(self.seed)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.INTENT_TYPE, "contract": self.contract, "seed": self.seed}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CreateVaultIntent":
        return cls(contract=data.get("contract", ""), seed=data.get("seed"))


Intent = Union[
    TransferIntent,
    WithdrawIntent,
    NftTransferIntent,
    AuthenticateIntent,
    BurnVaultIntent,
    CreateVaultIntent,
]

_INTENT_TYPES = {
    cls.INTENT_TYPE: cls
    for cls in (
        TransferIntent,
        WithdrawIntent,
        NftTransferIntent,
        AuthenticateIntent,
        BurnVaultIntent,
        CreateVaultIntent,
    )
}


def intent_from_dict(data: dict[str, Any]) -> Intent:
    """
    Rebuild an intent from its dictionary form

    Raises:
        InvalidIntent: On an unknown type or missing fields
    """
    intent_type = data.get("type") if isinstance(data, dict) else None
    cls = _INTENT_TYPES.get(intent_type)
    if cls is None:
        raise InvalidIntent(f"Unknown intent type: {intent_type!r}")
    try:
        return cls.from_dict(data)
    except (KeyError, TypeError) as e:
        raise InvalidIntent(f"Invalid {intent_type} intent: {e}") from None


def intent_from_json(text: Union[str, bytes]) -> Intent:
    return intent_from_dict(_loads(text, "intent"))


# =============================================================================
# Resolved transactions
# =============================================================================


@dataclass
class ResolvedInput:
    """A wallet note chosen for spending, with its membership witness"""

    note: Note
    position: int
    witness: MerkleWitness
    block_num: int = 0

    @property
    def commitment(self) -> bytes:
        return self.note.commitment()

    def to_dict(self) -> dict[str, Any]:
        return {
            "note": self.note.to_dict(),
            "position": self.position,
            "block_num": self.block_num,
            "witness": self.witness.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResolvedInput":
        return cls(
            note=Note.from_dict(data["note"]),
            position=int(data["position"]),
            witness=MerkleWitness.from_dict(data["witness"]),
            block_num=int(data.get("block_num", 0)),
        )


@dataclass
class ResolvedOutput:
    """A new note; unpublished outputs are not put on chain in-band"""

    note: Note
    publish: bool = True

    @property
    def is_change(self) -> bool:
        return self.note.is_change()

    def to_dict(self) -> dict[str, Any]:
        return {"note": self.note.to_dict(), "publish": self.publish}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResolvedOutput":
        return cls(note=Note.from_dict(data["note"]), publish=bool(data.get("publish", True)))


@dataclass
class Withdrawal:
    """Value leaving the pool to a public account"""

    account: str
    quantity: str
    memo: str = ""

    @property
    def asset(self) -> ExtendedAsset:
        return ExtendedAsset.from_string(self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {"account": self.account, "quantity": self.quantity, "memo": self.memo}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Withdrawal":
        return cls(
            account=data["account"], quantity=data["quantity"], memo=data.get("memo", "")
        )


@dataclass
class ResolvedAuthentication:
    """An auth token presented to its contract"""

    token: ResolvedInput
    burn: bool = False
    action: str = ""
    release_to: str = ""
    release: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token.to_dict(),
            "burn": self.burn,
            "action": self.action,
            "release_to": self.release_to,
            "release": list(self.release),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResolvedAuthentication":
        return cls(
            token=ResolvedInput.from_dict(data["token"]),
            burn=bool(data.get("burn", False)),
            action=data.get("action", ""),
            release_to=data.get("release_to", ""),
            release=list(data.get("release", [])),
        )


@dataclass
class ResolvedTransaction(_JsonRecord):
    """
    Concrete, value-balanced set of inputs and outputs ready for proving

    For every (contract, symbol):
    sum(inputs) == sum(outputs) + sum(withdrawals) + fee
    """

    kind: FeeKind
    anchor: bytes
    fee: ExtendedAsset
    inputs: list[ResolvedInput] = field(default_factory=list)
    outputs: list[ResolvedOutput] = field(default_factory=list)
    withdrawals: list[Withdrawal] = field(default_factory=list)
    authentications: list[ResolvedAuthentication] = field(default_factory=list)

    @property
    def fee_amount(self) -> int:
        return self.fee.amount

    def change_outputs(self) -> list[ResolvedOutput]:
        return [o for o in self.outputs if o.is_change]

    def value_balance(self) -> dict[tuple[Name, Symbol], int]:
        """Per (contract, symbol): inputs minus outputs, withdrawals and fee"""
        balance: dict[tuple[Name, Symbol], int] = {}

        def add(asset: ExtendedAsset, sign: int) -> None:
            if asset.symbol.is_none():
                return
            key = (asset.contract, asset.symbol)
            balance[key] = balance.get(key, 0) + sign * asset.amount

        for i in self.inputs:
            add(i.note.asset, 1)
        for o in self.outputs:
            add(o.note.asset, -1)
        for w in self.withdrawals:
            add(w.asset, -1)
        add(self.fee, -1)
        return balance

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "anchor": self.anchor.hex(),
            "fee": str(self.fee),
            "inputs": [i.to_dict() for i in self.inputs],
            "outputs": [o.to_dict() for o in self.outputs],
            "withdrawals": [w.to_dict() for w in self.withdrawals],
            "authentications": [a.to_dict() for a in self.authentications],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResolvedTransaction":
        try:
            return cls(
                kind=FeeKind(data["kind"]),
                anchor=hex_to_bytes(data["anchor"], COMMITMENT_SIZE),
                fee=ExtendedAsset.from_string(data["fee"]),
                inputs=[ResolvedInput.from_dict(i) for i in data.get("inputs", [])],
                outputs=[ResolvedOutput.from_dict(o) for o in data.get("outputs", [])],
                withdrawals=[Withdrawal.from_dict(w) for w in data.get("withdrawals", [])],
                authentications=[
                    ResolvedAuthentication.from_dict(a)
                    for a in data.get("authentications", [])
                ],
            )
        except InputValidationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid resolved transaction: {e}") from None


# =============================================================================
# Proved transactions
# =============================================================================


@dataclass
class SpendDescription:
    """Public part of a spent note"""

    anchor: bytes
    nullifier: bytes
    proof: bytes = b""

    def public_inputs(self) -> list[bytes]:
        return [self.anchor, self.nullifier]

    def body(self) -> dict[str, Any]:
        return {"anchor": self.anchor.hex(), "nullifier": self.nullifier.hex()}

    def to_dict(self) -> dict[str, Any]:
        return {**self.body(), "proof": self.proof.hex()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpendDescription":
        return cls(
            anchor=hex_to_bytes(data["anchor"], COMMITMENT_SIZE),
            nullifier=hex_to_bytes(data["nullifier"], NULLIFIER_SIZE),
            proof=hex_to_bytes(data.get("proof", "")),
        )


@dataclass
class OutputDescription:
    """Public part of a new note; ciphertext is empty when not published"""

    commitment: bytes
    ciphertext: str = ""
    proof: bytes = b""

    def public_inputs(self) -> list[bytes]:
        return [self.commitment]

    def body(self) -> dict[str, Any]:
        return {"commitment": self.commitment.hex(), "ciphertext": self.ciphertext}

    def to_dict(self) -> dict[str, Any]:
        return {**self.body(), "proof": self.proof.hex()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OutputDescription":
        return cls(
            commitment=hex_to_bytes(data["commitment"], COMMITMENT_SIZE),
            ciphertext=data.get("ciphertext", ""),
            proof=hex_to_bytes(data.get("proof", "")),
        )


@dataclass
class AuthDescription:
    """Public part of an auth token presentation"""

    anchor: bytes
    commitment: bytes
    contract: str
    burn: bool = False
    nullifier: bytes = b""
    action: str = ""
    release_to: str = ""
    release: list[str] = field(default_factory=list)
    proof: bytes = b""

    def public_inputs(self) -> list[bytes]:
        return [
            self.anchor,
            self.commitment,
            Name.from_string(self.contract).raw.to_bytes(8, "little"),
            b"\x01" if self.burn else b"\x00",
            self.nullifier,
        ]

    def body(self) -> dict[str, Any]:
        return {
            "anchor": self.anchor.hex(),
            "commitment": self.commitment.hex(),
            "contract": self.contract,
            "burn": self.burn,
            "nullifier": self.nullifier.hex(),
            "action": self.action,
            "release_to": self.release_to,
            "release": list(self.release),
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.body(), "proof": self.proof.hex()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthDescription":
        return cls(
            anchor=hex_to_bytes(data["anchor"], COMMITMENT_SIZE),
            commitment=hex_to_bytes(data["commitment"], COMMITMENT_SIZE),
            contract=data["contract"],
            burn=bool(data.get("burn", False)),
            nullifier=hex_to_bytes(data.get("nullifier", "")),
            action=data.get("action", ""),
            release_to=data.get("release_to", ""),
            release=list(data.get("release", [])),
            proof=hex_to_bytes(data.get("proof", "")),
        )


@dataclass
class ProvedTransaction(_JsonRecord):
    """Signed transaction body ready for chain submission"""

    chain_id: bytes
    protocol_contract: str
    alias_authority: str
    anchor: bytes
    fee: str
    spends: list[SpendDescription] = field(default_factory=list)
    outputs: list[OutputDescription] = field(default_factory=list)
    authentications: list[AuthDescription] = field(default_factory=list)
    withdrawals: list[Withdrawal] = field(default_factory=list)

    def body(self) -> dict[str, Any]:
        """Everything except the proofs"""
        return {
            "chain_id": self.chain_id.hex(),
            "protocol_contract": self.protocol_contract,
            "alias_authority": self.alias_authority,
            "anchor": self.anchor.hex(),
            "fee": self.fee,
            "spends": [s.body() for s in self.spends],
            "outputs": [o.body() for o in self.outputs],
            "authentications": [a.body() for a in self.authentications],
            "withdrawals": [w.to_dict() for w in self.withdrawals],
        }

    def body_digest(self) -> bytes:
        """SHA3-256 of the canonical JSON body; every proof is bound to it"""
        canonical = json.dumps(self.body(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha3_256(canonical.encode()).digest()

    def nullifiers(self) -> bytes:
        """Spend nullifiers as one flat byte string"""
        return b"".join(s.nullifier for s in self.spends)

    def commitments(self) -> bytes:
        """Output commitments as one flat byte string, in output order"""
        return b"".join(o.commitment for o in self.outputs)

    def ciphertexts(self) -> list[str]:
        """In-band note ciphertexts"""
        return [o.ciphertext for o in self.outputs if o.ciphertext]

    def to_dict(self) -> dict[str, Any]:
        data = self.body()
        data["spends"] = [s.to_dict() for s in self.spends]
        data["outputs"] = [o.to_dict() for o in self.outputs]
        data["authentications"] = [a.to_dict() for a in self.authentications]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvedTransaction":
        try:
            return cls(
                chain_id=hex_to_bytes(data["chain_id"], 32),
                protocol_contract=data["protocol_contract"],
                alias_authority=data["alias_authority"],
                anchor=hex_to_bytes(data["anchor"], COMMITMENT_SIZE),
                fee=data["fee"],
                spends=[SpendDescription.from_dict(s) for s in data.get("spends", [])],
                outputs=[OutputDescription.from_dict(o) for o in data.get("outputs", [])],
                authentications=[
                    AuthDescription.from_dict(a) for a in data.get("authentications", [])
                ],
                withdrawals=[Withdrawal.from_dict(w) for w in data.get("withdrawals", [])],
            )
        except InputValidationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid proved transaction: {e}") from None


@dataclass
class SigningMetadata(_JsonRecord):
    """What the eager local update needs beyond the transaction itself"""

    burned_auth_tokens: list[str] = field(default_factory=list)
    unpublished_notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "burned_auth_tokens": list(self.burned_auth_tokens),
            "unpublished_notes": list(self.unpublished_notes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SigningMetadata":
        try:
            return cls(
                burned_auth_tokens=[str(t) for t in data.get("burned_auth_tokens", [])],
                unpublished_notes=[str(n) for n in data.get("unpublished_notes", [])],
            )
        except (AttributeError, TypeError) as e:
            raise InputValidationError(f"Invalid signing metadata: {e}") from None


@dataclass
class TransactionResult:
    """Outcome of WalletClient.transact"""

    status: TransactionStatus
    resolved: ResolvedTransaction
    proved: Optional[ProvedTransaction] = None
    metadata: Optional[SigningMetadata] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary"""
        return {
            "status": self.status.value,
            "resolved": self.resolved.to_dict(),
            "proved": self.proved.to_dict() if self.proved else None,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }
