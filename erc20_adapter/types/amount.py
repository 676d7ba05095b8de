"""
Amount helpers: gwei conversion and token decimal formatting
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

WEI_PER_GWEI = 10 ** 9

GasValue = Union[int, str]


class Gwei:
    """Conversion between gwei and wei"""

    @staticmethod
    def to_wei(gwei: Union[int, str, Decimal]) -> int:
        """Convert gwei to wei, truncating below 1 wei"""
        return int(Decimal(str(gwei)) * WEI_PER_GWEI)

    @staticmethod
    def from_wei(wei: int) -> Decimal:
        return Decimal(wei) / WEI_PER_GWEI


def parse_gas_value(value: Optional[GasValue]) -> Optional[int]:
    """
    Parse a fee or gas override.

    - int: raw amount (wei for fees, units for gas limit)
    - "123": raw amount as an integer string
    - "2.5": gwei-style decimal string

    Args:
        value: Override value or None

    Returns:
        Integer amount, or None when no override was supplied

    Raises:
        ValueError: Malformed or negative value
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid gas value: {value!r}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            if "." in text:
                parsed = Gwei.to_wei(Decimal(text))
            else:
                parsed = int(text, 0) if text.lower().startswith("0x") else int(text)
        except (ValueError, InvalidOperation) as e:
            raise ValueError(f"Invalid gas value: {value!r}") from e
    else:
        raise ValueError(f"Unsupported gas value type: {type(value).__name__}")

    if parsed < 0:
        raise ValueError(f"Gas value must be non-negative: {value!r}")
    return parsed


@dataclass(frozen=True)
class TokenAmount:
    """
    Token amount in minimum units with its decimals

    Attributes:
        min_units: Raw on-chain integer amount
        decimals: Token decimals
    """
    min_units: int
    decimals: int

    @classmethod
    def from_min_units(cls, min_units: Union[int, str], decimals: int) -> "TokenAmount":
        return cls(int(min_units), decimals)

    @classmethod
    def from_decimal(cls, decimal: str, decimals: int) -> "TokenAmount":
        """
        Parse a human-readable amount ("123.4567"); extra fraction digits
        beyond ``decimals`` are truncated.
        """
        integer_part, _, fraction_part = decimal.strip().partition(".")
        fraction = fraction_part.ljust(decimals, "0")[:decimals]
        return cls(int((integer_part or "0") + fraction), decimals)

    def to_decimal_string(self) -> str:
        """Human-readable amount without trailing zeros"""
        divisor = 10 ** self.decimals
        quotient, remainder = divmod(self.min_units, divisor)
        if remainder == 0:
            return str(quotient)
        fraction = str(remainder).rjust(self.decimals, "0").rstrip("0")
        return f"{quotient}.{fraction}"

    def __str__(self) -> str:
        return self.to_decimal_string()
