import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def clamp_quantity(value: Any) -> int:
    """
    Coerce any input to a non-negative integer quantity.

    Strings are read up to the first non-digit ("3 copies" -> 3);
    anything unreadable, NaN or infinite counts as 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        return max(0, int(value))
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match is None:
            return 0
        return max(0, int(match.group(1)))
    return 0


@dataclass
class Collection:
    """
    A user's owned quantities, keyed by card id.

    Mirrors the user's collection document. A missing card id means
    quantity 0; stored quantities are never negative.
    """

    cards: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_document(cls, data: Mapping[str, Any] | None) -> "Collection":
        """Build from a raw collection document, clamping every value."""
        if not data:
            return cls()
        return cls(cards={str(card_id): clamp_quantity(qty) for card_id, qty in data.items()})

    def owns(self, card_id: str, quantity: int = 1) -> bool:
        """Check if collection contains at least `quantity` of a card."""
        return self.cards.get(card_id, 0) >= quantity

    def get_quantity(self, card_id: str) -> int:
        """Get quantity owned of a specific card."""
        return self.cards.get(card_id, 0)

    def total_cards(self) -> int:
        """Total copies in collection, duplicates included."""
        return sum(self.cards.values())

    def unique_cards(self) -> int:
        """Number of distinct cards owned at least once."""
        return sum(1 for qty in self.cards.values() if qty > 0)
