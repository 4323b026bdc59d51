"""
Catalog records parsed from TCGdex payloads.

Records are frozen: the catalog cache hands the same instances to every
caller, so nothing downstream may mutate them.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class CardSet:
    """
    A card expansion.

    Attributes:
        id: TCGdex set id (e.g., "A1", "P-A")
        name: Localized set name
        total_card_count: Official card count reported by the series endpoint
    """

    id: str
    name: str
    total_card_count: int

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "CardSet":
        """
        Build a set from one entry of `GET /series/{id}` -> `sets`.

        Raises:
            KeyError: If `id` is missing
            TypeError, ValueError: If the entry is not shaped like a set
        """
        card_count = raw.get("cardCount") or {}
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            total_card_count=int(card_count.get("official") or 0),
        )


@dataclass(frozen=True, slots=True)
class Card:
    """
    A single card of a set.

    Attributes:
        id: Globally unique card id (e.g., "A1-001")
        name: Localized card name
        local_number: Number within the set ("001")
        image_base_url: TCGdex asset base; append "/{quality}.{ext}" to render
        set_id: Id of the owning set
        set_name: Name of the owning set
    """

    id: str
    name: str
    local_number: str
    image_base_url: str | None
    set_id: str
    set_name: str

    @classmethod
    def from_payload(cls, raw: dict[str, Any], set_id: str, set_name: str) -> "Card":
        """
        Build a card from one entry of `GET /sets/{id}` -> `cards`.

        Raises:
            KeyError: If `id` is missing
        """
        image = raw.get("image")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            local_number=str(raw.get("localId") or ""),
            image_base_url=str(image) if image else None,
            set_id=set_id,
            set_name=set_name,
        )

    def image_url(self, quality: str = "high", extension: str = "png") -> str | None:
        """Full asset URL, or None when TCGdex has no artwork for the card."""
        if not self.image_base_url:
            return None
        return f"{self.image_base_url}/{quality}.{extension}"


@dataclass(frozen=True, slots=True)
class ExpansionStats:
    """
    Completion metrics for one set against one collection. Derived, never stored.

    Attributes:
        set_id: Set the metrics describe
        set_name: Display name of the set
        total_cards: Cards of the set present in the catalog
        unique_owned: Cards with quantity > 0
        total_copies_owned: Sum of quantities, duplicates included
    """

    set_id: str
    set_name: str
    total_cards: int
    unique_owned: int
    total_copies_owned: int

    @property
    def completion_ratio(self) -> float:
        """Share of the set owned, 0.0 for an empty set."""
        if self.total_cards <= 0:
            return 0.0
        return self.unique_owned / self.total_cards
