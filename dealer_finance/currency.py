"""
Money Module

Handles ISO 4217 currency codes and proper Decimal precision for installment
calculations. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

from .exceptions import InvalidInputError

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal('0.01')


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    CAD = ("CAD", 2)  # Canadian Dollar, 2 decimal places
    MXN = ("MXN", 2)  # Mexican Peso, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def quantum(self) -> Decimal:
        return Decimal('0.1') ** self.precision


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    All monetary values MUST use this class or raw Decimal.
    """
    amount: Decimal
    currency: Currency = Currency.USD

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', to_decimal(self.amount))

        # Round to currency precision
        rounded = self.amount.quantize(self.currency.quantum, rounding=ROUND_HALF_UP)
        object.__setattr__(self, 'amount', rounded)

    @classmethod
    def zero(cls, currency: Currency = Currency.USD) -> 'Money':
        return cls(Decimal('0'), currency)

    @classmethod
    def total(cls, amounts: Iterable['Money'], currency: Currency = Currency.USD) -> 'Money':
        """Sum an iterable of Money values, zero when empty"""
        result = cls.zero(currency)
        for amount in amounts:
            result = result + amount
        return result

    def __add__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency.code} and {other.currency.code}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract {other.currency.code} from {self.currency.code}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier, self.currency)

    def __truediv__(self, divisor: Decimal) -> 'Money':
        if not isinstance(divisor, Decimal):
            divisor = Decimal(str(divisor))
        return Money(self.amount / divisor, self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount), self.currency)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount and self.currency == other.currency

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __lt__(self, other: 'Money') -> bool:
        self._check_comparable(other)
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check_comparable(other)
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._check_comparable(other)
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._check_comparable(other)
        return self.amount >= other.amount

    def _check_comparable(self, other: 'Money') -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display"""
        if self.currency.precision == 0:
            return f"{self.currency.code} {self.amount:,.0f}"
        else:
            return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Convert a numeric input to Decimal without binary float artifacts

    Floats are converted through their shortest repr, so 0.1 becomes
    Decimal('0.1') rather than the exact binary expansion.

    Raises:
        InvalidInputError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidInputError(f"Cannot convert boolean {value!r} to Decimal")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError:
            raise InvalidInputError(f"Cannot convert '{value}' to Decimal") from None
    else:
        raise InvalidInputError(f"Cannot convert {type(value).__name__} to Decimal")

    if not result.is_finite():
        raise InvalidInputError(f"Amount must be finite, got {value!r}")
    return result


def round_money(value: Decimal, currency: Currency = Currency.USD) -> Decimal:
    """Round a Decimal to currency precision with ROUND_HALF_UP"""
    return value.quantize(currency.quantum, rounding=ROUND_HALF_UP)
