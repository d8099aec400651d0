"""
Typed range tables for points-based scoring.

Scoring tables are declared with human-readable keys ("<160", "160-199",
">=280", "7") and parsed once into bands. Lookups walk the bands in declaration
order and return the value of the first band containing the input.
"""
import math
import re
from dataclasses import dataclass
from typing import Generic, Iterator, Optional, Sequence, Tuple, TypeVar

from cardiocare.core.exceptions import RiskValidationError

T = TypeVar("T")

_NUMBER = r"-?\d+(?:\.\d+)?"
_RANGE_PATTERN = re.compile(rf"^({_NUMBER})-({_NUMBER})$")


@dataclass(frozen=True)
class RangeBand:
    """One parsed key. ``None`` bounds are open."""
    key: str
    lower: Optional[float] = None
    lower_inclusive: bool = True
    upper: Optional[float] = None
    upper_inclusive: bool = True

    def contains(self, value: float) -> bool:
        if self.lower is not None:
            if self.lower_inclusive and value < self.lower:
                return False
            if not self.lower_inclusive and value <= self.lower:
                return False
        if self.upper is not None:
            if self.upper_inclusive and value > self.upper:
                return False
            if not self.upper_inclusive and value >= self.upper:
                return False
        return True


def parse_range_key(key: str) -> RangeBand:
    """Parse a table key into a band.

    Supported forms: ``"min-max"`` (inclusive), ``"<N"``, ``"<=N"``,
    ``">=N"``, ``">N"`` and an exact number.
    """
    text = key.strip()

    match = _RANGE_PATTERN.match(text)
    if match:
        low, high = float(match.group(1)), float(match.group(2))
        if low > high:
            raise ValueError(f"Range key '{key}' has lower bound above upper bound")
        return RangeBand(key=key, lower=low, upper=high)

    # Two-character operators first so ">=" is not read as ">"
    if text.startswith(">="):
        return RangeBand(key=key, lower=float(text[2:]))
    if text.startswith(">"):
        return RangeBand(key=key, lower=float(text[1:]), lower_inclusive=False)
    if text.startswith("<="):
        return RangeBand(key=key, upper=float(text[2:]))
    if text.startswith("<"):
        return RangeBand(key=key, upper=float(text[1:]), upper_inclusive=False)

    try:
        exact = float(text)
    except ValueError:
        raise ValueError(f"Unrecognised range key '{key}'") from None
    return RangeBand(key=key, lower=exact, upper=exact)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RangeTable(Generic[T]):
    """Immutable ordered list of (band, value) pairs."""

    def __init__(self, name: str, entries: Sequence[Tuple[str, T]]):
        if not entries:
            raise ValueError(f"Range table '{name}' is empty")
        self.name = name
        self._bands: Tuple[Tuple[RangeBand, T], ...] = tuple(
            (parse_range_key(key), value) for key, value in entries
        )

    def __iter__(self) -> Iterator[Tuple[RangeBand, T]]:
        return iter(self._bands)

    def __len__(self) -> int:
        return len(self._bands)

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(band.key for band, _ in self._bands)

    def find(self, value: float) -> Optional[T]:
        """Value of the first band containing ``value`` (rounded half-up), or None."""
        rounded = round_half_up(value)
        for band, result in self._bands:
            if band.contains(rounded):
                return result
        return None

    def lookup(self, value: float) -> T:
        """Like :meth:`find` but an unmatched value is a validation error."""
        result = self.find(value)
        if result is None:
            raise RiskValidationError(
                f"Value {value} is outside the '{self.name}' table",
                details={"table": self.name, "value": value, "keys": list(self.keys)}
            )
        return result
