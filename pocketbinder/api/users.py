"""
User and friends API endpoints.

Profiles are created on first sign-in; friends can view each other's
collection statistics.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from pocketbinder.api.collection import CollectionViewResponse, build_collection_view
from pocketbinder.api.dependencies import get_catalog_cache, get_document_store
from pocketbinder.config import ALL_SETS
from pocketbinder.models.failure import NotFoundError
from pocketbinder.models.profile import UserProfile
from pocketbinder.services import profiles
from pocketbinder.services.catalog_cache import CatalogCache
from pocketbinder.store.base import DocumentStore

router = APIRouter(prefix="/users", tags=["users"])


class ProfileRequest(BaseModel):
    display_name: str | None = Field(
        default=None,
        description="Nickname; defaults to a name derived from the user id",
        max_length=64,
    )


class ProfileResponse(BaseModel):
    user_id: str
    display_name: str
    friends: list[str] = Field(default_factory=list)

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ProfileResponse":
        return cls(
            user_id=profile.user_id,
            display_name=profile.display_name,
            friends=list(profile.friends),
        )


class FriendResponse(BaseModel):
    user_id: str
    display_name: str


class FriendListResponse(BaseModel):
    user_id: str
    friends: list[FriendResponse] = Field(default_factory=list)


class AddFriendRequest(BaseModel):
    friend_id: str = Field(..., description="User id of the friend to add")


class FriendCollectionResponse(BaseModel):
    friend: FriendResponse
    collection: CollectionViewResponse


@router.post("/{user_id}", response_model=ProfileResponse)
async def ensure_user_profile(
    user_id: str,
    store: Annotated[DocumentStore, Depends(get_document_store)],
    request: ProfileRequest | None = None,
) -> ProfileResponse:
    """
    Create the user's profile and empty collection if they do not exist.

    Idempotent: an existing profile is returned unchanged.
    """
    display_name = request.display_name if request else None
    profile = await profiles.ensure_user(store, user_id, display_name)
    return ProfileResponse.from_profile(profile)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_user_profile(
    user_id: str,
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> ProfileResponse:
    profile = await profiles.get_profile(store, user_id)
    return ProfileResponse.from_profile(profile)


@router.get("/{user_id}/friends", response_model=FriendListResponse)
async def get_friends(
    user_id: str,
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> FriendListResponse:
    entries = await profiles.list_friends(store, user_id)
    return FriendListResponse(
        user_id=user_id,
        friends=[
            FriendResponse(user_id=entry.user_id, display_name=entry.display_name)
            for entry in entries
        ],
    )


@router.post("/{user_id}/friends", response_model=ProfileResponse)
async def add_user_friend(
    user_id: str,
    request: AddFriendRequest,
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> ProfileResponse:
    """
    Add a friend by id.

    400 for an empty id or your own id, 404 if the friend does not exist.
    """
    profile = await profiles.add_friend(store, user_id, request.friend_id)
    return ProfileResponse.from_profile(profile)


@router.delete("/{user_id}/friends/{friend_id}", response_model=ProfileResponse)
async def remove_user_friend(
    user_id: str,
    friend_id: str,
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> ProfileResponse:
    profile = await profiles.remove_friend(store, user_id, friend_id)
    return ProfileResponse.from_profile(profile)


@router.get(
    "/{user_id}/friends/{friend_id}/collection",
    response_model=FriendCollectionResponse,
)
async def get_friend_collection(
    user_id: str,
    friend_id: str,
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
    set_id: Annotated[str, Query(description='Set id, or "all" for every set')] = ALL_SETS,
    search: Annotated[str, Query(description="Case-insensitive name filter")] = "",
    owned_only: Annotated[bool, Query(description="Only cards owned at least once")] = False,
) -> FriendCollectionResponse:
    """
    View a friend's collection, reconciled exactly like your own.

    404 unless `friend_id` is in the user's friends list.
    """
    profile = await profiles.get_profile(store, user_id)
    if friend_id not in profile.friends:
        raise NotFoundError(
            "This user is not in your friends list.",
            detail=f"users/{user_id}: no friend {friend_id}",
        )

    try:
        display_name = (await profiles.get_profile(store, friend_id)).display_name
    except NotFoundError:
        display_name = profiles.UNKNOWN_USER_NAME

    collection = await build_collection_view(cache, store, friend_id, set_id, search, owned_only)
    return FriendCollectionResponse(
        friend=FriendResponse(user_id=friend_id, display_name=display_name),
        collection=collection,
    )
