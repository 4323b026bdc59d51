from dataclasses import dataclass, field
from typing import Any


@dataclass
class UserProfile:
    """
    A user's profile document.

    Attributes:
        user_id: Opaque user identifier (document id)
        display_name: Name shown to friends
        friends: Friend user ids, in the order they were added
    """

    user_id: str
    display_name: str
    friends: list[str] = field(default_factory=list)

    @classmethod
    def from_document(cls, user_id: str, data: dict[str, Any]) -> "UserProfile":
        friends = data.get("friends") or []
        return cls(
            user_id=user_id,
            display_name=str(data.get("display_name") or ""),
            friends=[str(friend_id) for friend_id in friends],
        )

    def to_document(self) -> dict[str, Any]:
        return {"display_name": self.display_name, "friends": list(self.friends)}


@dataclass(frozen=True, slots=True)
class FriendEntry:
    """A friend as shown in a friends list."""

    user_id: str
    display_name: str
