"""
Fee model

Fees are a pure function of operation kind, input count, output count and a
fee schedule published by the protocol contract. The schedule maps action
names to amounts of a single fee token.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .eosio import Asset, ExtendedAsset, Name, Symbol
from .errors import InputValidationError, MissingFeeError

FEE_BEGIN = "begin"
FEE_SPEND = "spend"
FEE_SPENDOUTPUT = "spendoutput"
FEE_OUTPUT = "output"
FEE_WITHDRAW = "withdraw"
FEE_AUTHENTICATE = "authenticate"
FEE_PUBLISHNOTES = "publishnotes"


class FeeKind(Enum):
    """Operation being charged"""

    SEND = "send"
    WITHDRAW = "withdraw"
    AUTHENTICATE = "authenticate"
    BURN = "burn"
    CREATE_VAULT = "create_vault"


@dataclass
class FeeSchedule:
    """Action name -> fee amount, all in one symbol"""

    entries: dict[str, int] = field(default_factory=dict)
    symbol: Symbol = Symbol()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeeSchedule":
        """
        Build a schedule from {"begin": "0.0010 SHLD", ...}

        Raises:
            InputValidationError: On malformed amounts, negative amounts or
                mixed symbols
        """
        if not isinstance(data, dict):
            raise InputValidationError("Fee schedule must be a mapping")

        entries: dict[str, int] = {}
        symbol: Optional[Symbol] = None
        for name, value in data.items():
            if isinstance(value, str) and value.strip().startswith("-"):
                raise InputValidationError(f"Negative fee for {name!r}: {value}")
            asset = value if isinstance(value, Asset) else Asset.from_string(value)
            if asset.amount < 0:
                raise InputValidationError(f"Negative fee for {name!r}")
            if symbol is None:
                symbol = asset.symbol
            elif asset.symbol != symbol:
                raise InputValidationError(
                    f"Fee schedule mixes symbols: {symbol} and {asset.symbol}"
                )
            entries[name] = asset.amount
        return cls(entries=entries, symbol=symbol or Symbol())

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "FeeSchedule":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid fee schedule JSON: {e}") from None
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, str]:
        return {
            name: str(Asset(amount, self.symbol))
            for name, amount in sorted(self.entries.items())
        }

    def get(self, name: str) -> Optional[int]:
        return self.entries.get(name)

    def asset(self, amount: int, contract: Name) -> ExtendedAsset:
        """Fee amount as an extended asset of the fee token"""
        return ExtendedAsset(Asset(amount, self.symbol), contract)


def _operation_terms(
    kind: FeeKind, num_outputs: int, has_assets: bool
) -> list[tuple[str, int]]:
    if kind is FeeKind.SEND:
        return [(FEE_SPENDOUTPUT, 1), (FEE_OUTPUT, max(num_outputs - 1, 0))]
    if kind is FeeKind.WITHDRAW:
        return [(FEE_WITHDRAW, num_outputs)]
    if kind is FeeKind.AUTHENTICATE:
        return [(FEE_AUTHENTICATE, 1)]
    if kind is FeeKind.BURN:
        return [(FEE_AUTHENTICATE, 1), (FEE_WITHDRAW, 1 if has_assets else 0)]
    if kind is FeeKind.CREATE_VAULT:
        return [(FEE_PUBLISHNOTES, 1)]
    raise InputValidationError(f"Unknown fee kind: {kind}")


def estimate_fee(
    kind: FeeKind,
    num_inputs: int,
    num_outputs: int,
    schedule: FeeSchedule,
    has_assets: bool = False,
) -> Optional[int]:
    """
    Fee for one operation

    fee = begin + op(kind, num_outputs) + spend * max(num_inputs - 1, 0)

    Args:
        kind: Operation kind
        num_inputs: Number of spent notes
        num_outputs: Number of recipient outputs (change is not counted)
        schedule: Fee schedule
        has_assets: For BURN, whether the vault releases assets

    Returns:
        Fee amount, or None if the schedule lacks a required entry
    """
    if num_inputs < 0 or num_outputs < 0:
        raise InputValidationError("Input and output counts must be non-negative")

    terms = [(FEE_BEGIN, 1)]
    terms.extend(_operation_terms(kind, num_outputs, has_assets))
    terms.append((FEE_SPEND, max(num_inputs - 1, 0)))

    total = 0
    for name, multiplier in terms:
        if multiplier <= 0:
            continue
        amount = schedule.get(name)
        if amount is None:
            return None
        total += amount * multiplier
    return total


def require_fee(
    kind: FeeKind,
    num_inputs: int,
    num_outputs: int,
    schedule: FeeSchedule,
    has_assets: bool = False,
) -> int:
    """
    Like estimate_fee, but a missing entry is an error

    Raises:
        MissingFeeError: If the schedule lacks a required entry
    """
    fee = estimate_fee(kind, num_inputs, num_outputs, schedule, has_assets)
    if fee is None:
        raise MissingFeeError(
            f"Fee schedule is missing an entry for {kind.value} "
            f"({num_inputs} inputs, {num_outputs} outputs)"
        )
    return fee
