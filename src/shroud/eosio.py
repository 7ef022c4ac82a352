"""
Chain identity types

EOSIO-style account names, token symbols and assets as they appear inside
notes and fee schedules. Everything here is a frozen value type so it can be
used as a mapping key (balances are keyed by (contract, symbol)).
"""

from dataclasses import dataclass
from typing import Union

from .errors import InputValidationError

NAME_CHARMAP = ".12345abcdefghijklmnopqrstuvwxyz"
MAX_SYMBOL_PRECISION = 18


def _is_digits(s: str) -> bool:
    return s.isascii() and s.isdigit()


def _char_to_value(c: str) -> int:
    idx = NAME_CHARMAP.find(c)
    if idx < 0:
        raise InputValidationError(f"Invalid character in name: {c!r}")
    return idx


@dataclass(frozen=True)
class Name:
    """64-bit account / contract name"""

    raw: int = 0

    @classmethod
    def from_string(cls, s: str) -> "Name":
        """
        Parse a name such as "shieldedpool"

        Args:
            s: Up to 12 characters from ".12345a-z", plus an optional 13th
               character from ".12345a-j"

        Returns:
            Name

        Raises:
            InputValidationError: If the string is not a valid name
        """
        if not isinstance(s, str):
            raise InputValidationError(f"Name must be a string, got {type(s)}")
        if len(s) > 13:
            raise InputValidationError(f"Name too long: {s!r}")

        value = 0
        for i, c in enumerate(s[:12]):
            value |= (_char_to_value(c) & 0x1F) << (64 - 5 * (i + 1))
        if len(s) == 13:
            last = _char_to_value(s[12])
            if last > 0x0F:
                raise InputValidationError(f"Invalid 13th character in name: {s!r}")
            value |= last
        return cls(value)

    def to_string(self) -> str:
        chars = []
        tmp = self.raw
        for i in range(13):
            mask = 0x0F if i == 0 else 0x1F
            chars.append(NAME_CHARMAP[tmp & mask])
            tmp >>= 4 if i == 0 else 5
        return "".join(reversed(chars)).rstrip(".")

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class Symbol:
    """Token symbol: precision in the low byte, code characters above it"""

    raw: int = 0

    @classmethod
    def from_string(cls, s: str) -> "Symbol":
        """
        Parse a symbol of the form "<precision>,<CODE>", e.g. "4,SHLD"

        Raises:
            InputValidationError: If precision or code are invalid
        """
        try:
            precision_str, code = s.split(",")
        except (AttributeError, ValueError):
            raise InputValidationError(f"Invalid symbol: {s!r}") from None
        if not _is_digits(precision_str):
            raise InputValidationError(f"Invalid symbol: {s!r}")
        precision = int(precision_str)
        return cls.from_parts(precision, code)

    @classmethod
    def from_parts(cls, precision: int, code: str) -> "Symbol":
        if not 0 <= precision <= MAX_SYMBOL_PRECISION:
            raise InputValidationError(f"Invalid symbol precision: {precision}")
        if not 1 <= len(code) <= 7 or not all("A" <= c <= "Z" for c in code):
            raise InputValidationError(f"Invalid symbol code: {code!r}")

        raw = precision
        for i, c in enumerate(code):
            raw |= ord(c) << (8 * (i + 1))
        return cls(raw)

    @property
    def precision(self) -> int:
        return self.raw & 0xFF

    @property
    def code(self) -> str:
        chars = []
        tmp = self.raw >> 8
        while tmp > 0:
            chars.append(chr(tmp & 0xFF))
            tmp >>= 8
        return "".join(chars)

    def is_none(self) -> bool:
        return self.raw == 0

    def to_string(self) -> str:
        return f"{self.precision},{self.code}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class Asset:
    """An amount in smallest units together with its symbol"""

    amount: int
    symbol: Symbol = Symbol()

    @classmethod
    def from_string(cls, s: str) -> "Asset":
        """
        Parse "1.0000 SHLD" (fungible) or a bare integer (NFT id / zero)

        Raises:
            InputValidationError: On malformed input
        """
        if not isinstance(s, str) or not s.strip():
            raise InputValidationError(f"Invalid asset: {s!r}")

        parts = s.strip().split(" ")
        if len(parts) == 1:
            if not _is_digits(parts[0]):
                raise InputValidationError(f"Invalid asset: {s!r}")
            return cls(int(parts[0]), Symbol())
        if len(parts) != 2:
            raise InputValidationError(f"Invalid asset: {s!r}")

        number, code = parts
        whole, _, frac = number.partition(".")
        if not _is_digits(whole) or (frac and not _is_digits(frac)):
            raise InputValidationError(f"Invalid asset amount: {s!r}")
        symbol = Symbol.from_parts(len(frac), code)
        return cls(int(whole + frac), symbol)

    def to_string(self) -> str:
        if self.symbol.is_none():
            return str(self.amount)
        precision = self.symbol.precision
        if precision == 0:
            return f"{self.amount} {self.symbol.code}"
        divisor = 10**precision
        whole, frac = divmod(self.amount, divisor)
        return f"{whole}.{frac:0{precision}d} {self.symbol.code}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class ExtendedAsset:
    """Asset qualified by the token contract that issued it"""

    quantity: Asset
    contract: Name

    @classmethod
    def from_string(cls, s: str) -> "ExtendedAsset":
        """Parse an extended asset such as 1.0000 SHLD@shieldtokens"""
        if not isinstance(s, str) or "@" not in s:
            raise InputValidationError(f"Invalid extended asset: {s!r}")
        quantity, contract = s.rsplit("@", 1)
        return cls(Asset.from_string(quantity), Name.from_string(contract))

    @property
    def amount(self) -> int:
        return self.quantity.amount

    @property
    def symbol(self) -> Symbol:
        return self.quantity.symbol

    def to_string(self) -> str:
        return f"{self.quantity}@{self.contract}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class Authorization:
    """actor@permission pair"""

    actor: Name
    permission: Name

    @classmethod
    def from_string(cls, s: str) -> "Authorization":
        if not isinstance(s, str) or s.count("@") != 1:
            raise InputValidationError(f"Invalid authorization: {s!r}")
        actor, permission = s.split("@")
        return cls(Name.from_string(actor), Name.from_string(permission))

    def to_string(self) -> str:
        return f"{self.actor}@{self.permission}"

    def __str__(self) -> str:
        return self.to_string()


def as_name(value: Union[str, Name]) -> Name:
    """Accept a Name or its string form"""
    return value if isinstance(value, Name) else Name.from_string(value)


def as_symbol(value: Union[str, Symbol]) -> Symbol:
    """Accept a Symbol or its "<precision>,<CODE>" form"""
    return value if isinstance(value, Symbol) else Symbol.from_string(value)
