"""Response models shared by the API routers."""

from pydantic import BaseModel, Field

from pocketbinder.models.catalog import Card, CardSet, ExpansionStats


class CardSetResponse(BaseModel):
    id: str
    name: str
    total_card_count: int

    @classmethod
    def from_set(cls, card_set: CardSet) -> "CardSetResponse":
        return cls(id=card_set.id, name=card_set.name, total_card_count=card_set.total_card_count)


class CardResponse(BaseModel):
    id: str
    name: str
    local_number: str
    set_id: str
    set_name: str
    image_url: str | None = Field(
        default=None,
        description="High quality PNG artwork, absent when TCGdex has none",
    )

    @classmethod
    def from_card(cls, card: Card) -> "CardResponse":
        return cls(
            id=card.id,
            name=card.name,
            local_number=card.local_number,
            set_id=card.set_id,
            set_name=card.set_name,
            image_url=card.image_url(),
        )


class ExpansionStatsResponse(BaseModel):
    set_id: str
    set_name: str
    total_cards: int
    unique_owned: int
    total_copies_owned: int
    completion_ratio: float = Field(..., description="unique_owned / total_cards, 0 when empty")

    @classmethod
    def from_stats(cls, stats: ExpansionStats) -> "ExpansionStatsResponse":
        return cls(
            set_id=stats.set_id,
            set_name=stats.set_name,
            total_cards=stats.total_cards,
            unique_owned=stats.unique_owned,
            total_copies_owned=stats.total_copies_owned,
            completion_ratio=stats.completion_ratio,
        )
