"""
Transaction resolution

Turns an intent into a ResolvedTransaction: concrete input notes with
witnesses, recipient and change outputs, withdrawals and the fee.

Selection policy: candidates are unspent fungible notes of exactly the
requested (contract, symbol) that already have a tree position, taken in
ascending position order (ties broken by block number, then commitment).
Notes are added one at a time and the fee is re-estimated for the new input
count after every addition, so fragmentation is always paid for.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Union

from .config import DEFAULT_FEE_TOKEN_CONTRACT
from .constants import MEMO_CHANGE_NOTE
from .eosio import Asset, ExtendedAsset, Name, Symbol, as_name
from .errors import (
    CryptoError,
    InputValidationError,
    InsufficientFunds,
    InvalidIntent,
    MissingFeeError,
)
from .fees import FeeKind, FeeSchedule, estimate_fee, require_fee
from .keys import Address
from .note import Note, NoteEx, make_memo
from .transaction import create_auth_token_note
from .types import (
    AuthenticateIntent,
    BurnVaultIntent,
    CreateVaultIntent,
    Intent,
    NftTransferIntent,
    ResolvedAuthentication,
    ResolvedInput,
    ResolvedOutput,
    ResolvedTransaction,
    TransferIntent,
    Withdrawal,
    WithdrawIntent,
)
from .utils import generate_rseed, parse_auth_token_id

if TYPE_CHECKING:
    from .wallet import Wallet

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    """Notes picked to pay for an operation"""

    fee: int
    asset_notes: list[NoteEx] = field(default_factory=list)
    asset_total: int = 0
    fee_notes: list[NoteEx] = field(default_factory=list)
    fee_total: int = 0

    @property
    def notes(self) -> list[NoteEx]:
        return self.asset_notes + self.fee_notes


def spendable_notes(wallet: "Wallet", contract: Name, symbol: Symbol) -> list[NoteEx]:
    """Selection candidates for (contract, symbol), in selection order"""
    notes = [
        ex
        for ex in wallet.unspent_notes()
        if ex.note.is_fungible()
        and ex.position is not None
        and ex.note.contract == contract
        and ex.note.symbol == symbol
    ]
    notes.sort(key=lambda ex: (ex.position, ex.block_num, ex.commitment))
    return notes


def select_notes(
    candidates: list[NoteEx], amount: int, fee_for: Callable[[int], int]
) -> tuple[list[NoteEx], int, int]:
    """
    Greedy note selection with per-step fee re-estimation

    Args:
        candidates: Notes in selection order
        amount: Value to cover besides the fee
        fee_for: Fee given the number of notes selected so far

    Returns:
        (selected notes, their total, fee for that many notes)

    Raises:
        InsufficientFunds: If all candidates together do not cover
            amount + fee
        MissingFeeError: If the fee schedule lacks a required entry
    """
    fee = fee_for(0)
    if amount + fee == 0:
        return [], 0, 0

    selected: list[NoteEx] = []
    total = 0
    for ex in candidates:
        selected.append(ex)
        total += ex.note.amount
        fee = fee_for(len(selected))
        logger.debug(
            "Selected %d notes, total %d, need %d + fee %d",
            len(selected),
            total,
            amount,
            fee,
        )
        if total >= amount + fee:
            return selected, total, fee

    raise InsufficientFunds(
        f"Insufficient funds: need {amount + fee}, have {total}",
        required=amount + fee,
        available=total,
    )


def plan_selection(
    wallet: "Wallet",
    kind: FeeKind,
    schedule: FeeSchedule,
    fee_token_contract: Name,
    quantity: Optional[ExtendedAsset] = None,
    num_outputs: int = 1,
    extra_inputs: int = 0,
    has_assets: bool = False,
) -> Selection:
    """
    Pick notes for quantity plus the fee

    If the asset is the fee token, one pass covers both. Otherwise asset
    notes cover quantity first and fee-token notes then cover the fee for
    the total input count.

    Args:
        extra_inputs: Inputs spent besides fungible notes (e.g. an NFT)
    """

    def fee_for(num_inputs: int) -> int:
        return require_fee(kind, num_inputs, num_outputs, schedule, has_assets)

    fee_key = (fee_token_contract, schedule.symbol)
    if quantity is not None and (quantity.contract, quantity.symbol) == fee_key:
        notes, total, fee = select_notes(
            spendable_notes(wallet, *fee_key),
            quantity.amount,
            lambda n: fee_for(extra_inputs + n),
        )
        return Selection(fee=fee, asset_notes=notes, asset_total=total)

    asset_notes: list[NoteEx] = []
    asset_total = 0
    if quantity is not None:
        asset_notes, asset_total, _ = select_notes(
            spendable_notes(wallet, quantity.contract, quantity.symbol),
            quantity.amount,
            lambda n: 0,
        )
    base = extra_inputs + len(asset_notes)
    fee_notes, fee_total, fee = select_notes(
        spendable_notes(wallet, *fee_key), 0, lambda n: fee_for(base + n)
    )
    return Selection(
        fee=fee,
        asset_notes=asset_notes,
        asset_total=asset_total,
        fee_notes=fee_notes,
        fee_total=fee_total,
    )


def _estimate(
    wallet: "Wallet",
    kind: FeeKind,
    schedule: FeeSchedule,
    fee_token_contract: Union[str, Name],
    quantity: Optional[ExtendedAsset] = None,
    has_assets: bool = False,
) -> Optional[int]:
    fee_contract = as_name(fee_token_contract)
    try:
        return plan_selection(
            wallet, kind, schedule, fee_contract, quantity, has_assets=has_assets
        ).fee
    except MissingFeeError:
        return None
    except InsufficientFunds:
        # fee for consuming everything the wallet has
        fee_key = (fee_contract, schedule.symbol)
        count = len(spendable_notes(wallet, *fee_key))
        if quantity is not None and (quantity.contract, quantity.symbol) != fee_key:
            count += len(spendable_notes(wallet, quantity.contract, quantity.symbol))
        return estimate_fee(kind, count, 1, schedule, has_assets)


def estimate_send_fee(
    wallet: "Wallet",
    quantity: Union[str, ExtendedAsset],
    schedule: FeeSchedule,
    fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
    withdraw: bool = False,
) -> Optional[int]:
    """
    Fee the wallet would pay to send (or withdraw) quantity

    Returns:
        Fee amount, or None if the schedule lacks a required entry. With
        insufficient funds, the fee for spending every available note.
    """
    if isinstance(quantity, str):
        quantity = ExtendedAsset.from_string(quantity)
    kind = FeeKind.WITHDRAW if withdraw else FeeKind.SEND
    return _estimate(wallet, kind, schedule, fee_token_contract, quantity)


def estimate_burn_fee(
    wallet: "Wallet",
    schedule: FeeSchedule,
    fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
    has_assets: bool = False,
) -> Optional[int]:
    return _estimate(
        wallet, FeeKind.BURN, schedule, fee_token_contract, has_assets=has_assets
    )


def estimate_vault_creation_fee(
    wallet: "Wallet",
    schedule: FeeSchedule,
    fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
) -> Optional[int]:
    return _estimate(wallet, FeeKind.CREATE_VAULT, schedule, fee_token_contract)


# =============================================================================
# Resolution
# =============================================================================


def _input(wallet: "Wallet", ex: NoteEx) -> ResolvedInput:
    return ResolvedInput(
        note=ex.note,
        position=ex.position,
        witness=wallet.witness(ex.position),
        block_num=ex.block_num,
    )


def _output(
    address: Address, asset: ExtendedAsset, memo: Union[str, bytes] = ""
) -> ResolvedOutput:
    note = Note(
        account=Name(),
        asset=asset,
        address=address,
        rseed=generate_rseed(),
        memo=make_memo(memo),
    )
    return ResolvedOutput(note)


def _change(
    wallet: "Wallet", contract: Name, symbol: Symbol, amount: int
) -> list[ResolvedOutput]:
    if amount <= 0:
        return []
    asset = ExtendedAsset(Asset(amount, symbol), contract)
    return [_output(wallet.default_address(), asset, MEMO_CHANGE_NOTE)]


def _build(
    wallet: "Wallet",
    kind: FeeKind,
    schedule: FeeSchedule,
    fee_contract: Name,
    selection: Selection,
    quantity: Optional[ExtendedAsset] = None,
    spent: int = 0,
    extra_inputs: Optional[list[ResolvedInput]] = None,
    outputs: Optional[list[ResolvedOutput]] = None,
    withdrawals: Optional[list[Withdrawal]] = None,
    authentications: Optional[list[ResolvedAuthentication]] = None,
) -> ResolvedTransaction:
    """Assemble inputs, outputs and change; spent is the quantity leaving"""
    outputs = list(outputs or [])
    fee = selection.fee
    fee_key = (fee_contract, schedule.symbol)
    if quantity is not None and (quantity.contract, quantity.symbol) == fee_key:
        outputs += _change(
            wallet, fee_contract, schedule.symbol, selection.asset_total - spent - fee
        )
    else:
        if quantity is not None:
            outputs += _change(
                wallet,
                quantity.contract,
                quantity.symbol,
                selection.asset_total - spent,
            )
        outputs += _change(
            wallet, fee_contract, schedule.symbol, selection.fee_total - fee
        )

    inputs = list(extra_inputs or []) + [_input(wallet, ex) for ex in selection.notes]
    resolved = ResolvedTransaction(
        kind=kind,
        anchor=wallet.root(),
        fee=schedule.asset(fee, fee_contract),
        inputs=inputs,
        outputs=outputs,
        withdrawals=list(withdrawals or []),
        authentications=list(authentications or []),
    )
    logger.info(
        "Resolved %s: %d inputs, %d outputs, fee %s",
        kind.value,
        len(resolved.inputs),
        len(resolved.outputs),
        resolved.fee,
    )
    return resolved


def _auth_token_note(wallet: "Wallet", token_id: str) -> NoteEx:
    cm, contract = parse_auth_token_id(token_id)
    ex = wallet.find_unspent(cm)
    if (
        ex is None
        or not ex.note.is_auth_token()
        or ex.position is None
        or str(ex.note.contract) != contract
    ):
        raise InvalidIntent(f"Auth token {token_id} is not an unspent token of this wallet")
    return ex


def _resolve_transfer(wallet, intent: TransferIntent, schedule, fee_contract):
    asset = intent.asset
    selection = plan_selection(wallet, FeeKind.SEND, schedule, fee_contract, asset)
    recipient = _output(Address.from_text(intent.recipient), asset, intent.memo)
    return _build(
        wallet,
        FeeKind.SEND,
        schedule,
        fee_contract,
        selection,
        quantity=asset,
        spent=asset.amount,
        outputs=[recipient],
    )


def _resolve_withdraw(wallet, intent: WithdrawIntent, schedule, fee_contract):
    asset = intent.asset
    selection = plan_selection(wallet, FeeKind.WITHDRAW, schedule, fee_contract, asset)
    return _build(
        wallet,
        FeeKind.WITHDRAW,
        schedule,
        fee_contract,
        selection,
        quantity=asset,
        spent=asset.amount,
        withdrawals=[Withdrawal(intent.account, str(asset), intent.memo)],
    )


def _resolve_nft_transfer(wallet, intent: NftTransferIntent, schedule, fee_contract):
    asset = intent.asset
    owned = sorted(
        (
            ex
            for ex in wallet.non_fungible_tokens(asset.contract)
            if ex.note.amount == asset.amount and ex.position is not None
        ),
        key=lambda ex: ex.position,
    )
    if not owned:
        raise InsufficientFunds(
            f"NFT {intent.nft} is not held by this wallet", required=1, available=0
        )
    selection = plan_selection(
        wallet, FeeKind.SEND, schedule, fee_contract, extra_inputs=1
    )
    recipient = _output(Address.from_text(intent.recipient), asset, intent.memo)
    return _build(
        wallet,
        FeeKind.SEND,
        schedule,
        fee_contract,
        selection,
        extra_inputs=[_input(wallet, owned[0])],
        outputs=[recipient],
    )


def _resolve_authenticate(wallet, intent: AuthenticateIntent, schedule, fee_contract):
    token = _auth_token_note(wallet, intent.auth_token)
    kind = FeeKind.BURN if intent.burn else FeeKind.AUTHENTICATE
    selection = plan_selection(wallet, kind, schedule, fee_contract)
    auth = ResolvedAuthentication(
        token=_input(wallet, token), burn=intent.burn, action=intent.action
    )
    return _build(
        wallet, kind, schedule, fee_contract, selection, authentications=[auth]
    )


def _resolve_burn_vault(wallet, intent: BurnVaultIntent, schedule, fee_contract):
    token = _auth_token_note(wallet, intent.auth_token)
    if token.note.contract != wallet.vault_contract:
        raise InvalidIntent(
            f"Auth token {intent.auth_token} is not bound to {wallet.vault_contract}"
        )
    has_assets = bool(intent.assets)
    selection = plan_selection(
        wallet, FeeKind.BURN, schedule, fee_contract, has_assets=has_assets
    )
    auth = ResolvedAuthentication(
        token=_input(wallet, token),
        burn=True,
        action="burn",
        release_to=intent.account,
        release=list(intent.assets),
    )
    return _build(
        wallet, FeeKind.BURN, schedule, fee_contract, selection, authentications=[auth]
    )


def _resolve_create_vault(wallet, intent: CreateVaultIntent, schedule, fee_contract):
    contract = intent.contract or str(wallet.vault_contract)
    seed = intent.seed
    if seed is None:
        if wallet.spending_key is None:
            raise CryptoError("View-only wallet cannot derive a vault seed")
        seed = wallet.spending_key.derive_vault_seed(wallet.auth_count).hex()
    note = create_auth_token_note(wallet, seed, contract)
    selection = plan_selection(wallet, FeeKind.CREATE_VAULT, schedule, fee_contract)
    return _build(
        wallet,
        FeeKind.CREATE_VAULT,
        schedule,
        fee_contract,
        selection,
        outputs=[ResolvedOutput(note, publish=False)],
    )


_RESOLVERS = {
    TransferIntent: _resolve_transfer,
    WithdrawIntent: _resolve_withdraw,
    NftTransferIntent: _resolve_nft_transfer,
    AuthenticateIntent: _resolve_authenticate,
    BurnVaultIntent: _resolve_burn_vault,
    CreateVaultIntent: _resolve_create_vault,
}


def resolve(
    wallet: "Wallet",
    intent: Intent,
    fee_schedule: FeeSchedule,
    fee_token_contract: Union[str, Name] = DEFAULT_FEE_TOKEN_CONTRACT,
) -> ResolvedTransaction:
    """
    Resolve an intent against the wallet's unspent notes

    Reads the wallet; never mutates it.

    Args:
        wallet: Wallet to spend from
        intent: What to do
        fee_schedule: Current fee schedule
        fee_token_contract: Contract of the token fees are paid in

    Returns:
        Value-balanced resolved transaction

    Raises:
        InvalidIntent: If the intent is malformed
        InsufficientFunds: If unspent notes cannot cover amount plus fee
        InputValidationError: If the fee schedule lacks a required entry
    """
    resolver = _RESOLVERS.get(type(intent))
    if resolver is None:
        raise InvalidIntent(f"Unsupported intent: {type(intent).__name__}")
    intent.validate()
    try:
        fee_contract = as_name(fee_token_contract)
    except InputValidationError as e:
        raise InvalidIntent(f"Invalid fee token contract: {e}") from None
    return resolver(wallet, intent, fee_schedule, fee_contract)
