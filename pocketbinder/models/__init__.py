from pocketbinder.models.catalog import Card, CardSet, ExpansionStats
from pocketbinder.models.collection import Collection, clamp_quantity
from pocketbinder.models.failure import (
    ApiResponse,
    FailureDetail,
    FailureKind,
    InvalidInputError,
    KnownError,
    NotFoundError,
    OutcomeType,
    StoreUnavailableError,
    SubscriptionError,
    UpstreamError,
    WriteError,
    create_unknown_failure,
)
from pocketbinder.models.profile import FriendEntry, UserProfile

__all__ = [
    "ApiResponse",
    "Card",
    "CardSet",
    "Collection",
    "ExpansionStats",
    "FailureDetail",
    "FailureKind",
    "FriendEntry",
    "InvalidInputError",
    "KnownError",
    "NotFoundError",
    "OutcomeType",
    "StoreUnavailableError",
    "SubscriptionError",
    "UpstreamError",
    "UserProfile",
    "WriteError",
    "clamp_quantity",
    "create_unknown_failure",
]
