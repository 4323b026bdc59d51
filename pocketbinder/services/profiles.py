"""
User profiles and friends lists.

A profile lives in `users/{user_id}`; its owned quantities in
`collections/{user_id}`. Friendship is one-directional: adding a friend
only changes your own list.

Friends lists are changed with the store's atomic update, so concurrent
additions and removals on one profile never overwrite each other.
"""

import logging
from typing import Any

from pocketbinder.config import COLLECTIONS_COLLECTION, USERS_COLLECTION, settings
from pocketbinder.models.failure import (
    InvalidInputError,
    NotFoundError,
    StoreUnavailableError,
    WriteError,
)
from pocketbinder.models.profile import FriendEntry, UserProfile
from pocketbinder.store.base import (
    DocumentMutator,
    DocumentSnapshot,
    DocumentStore,
    DocumentStoreError,
)

logger = logging.getLogger(__name__)

UNKNOWN_USER_NAME = "Unknown user"


def default_display_name(user_id: str) -> str:
    return f"{settings.default_display_name_prefix}{user_id[:8]}"


async def ensure_user(
    store: DocumentStore, user_id: str, display_name: str | None = None
) -> UserProfile:
    """
    Create the profile and an empty collection for a user if missing.

    Existing documents are left untouched, so calling this on every
    sign-in is safe, even concurrently.

    Raises:
        InvalidInputError: If user_id is empty
        WriteError: If a document cannot be created
    """
    if not user_id or not user_id.strip():
        raise InvalidInputError("A user id is required.")

    name = (display_name or "").strip() or default_display_name(user_id)
    created_profile = False
    created_collection = False

    def create_profile(current: dict[str, Any] | None) -> dict[str, Any] | None:
        nonlocal created_profile
        if current is not None:
            return None
        created_profile = True
        return UserProfile(user_id=user_id, display_name=name).to_document()

    def create_collection(current: dict[str, Any] | None) -> dict[str, Any] | None:
        nonlocal created_collection
        if current is not None:
            return None
        created_collection = True
        return {}

    failure_message = "Could not create the user profile."
    profile_data = await _update(
        store, USERS_COLLECTION, user_id, create_profile, failure_message
    )
    await _update(store, COLLECTIONS_COLLECTION, user_id, create_collection, failure_message)

    if created_profile:
        logger.info("Created profile for %s", user_id)
    if created_collection:
        logger.info("Created empty collection for %s", user_id)

    return UserProfile.from_document(user_id, profile_data or {})


async def get_profile(store: DocumentStore, user_id: str) -> UserProfile:
    """
    Raises:
        NotFoundError: If the user has no profile
        StoreUnavailableError: If the profile cannot be read
    """
    snapshot = await _read(store, USERS_COLLECTION, user_id)
    if not snapshot.exists:
        raise NotFoundError("This user does not exist.", detail=f"users/{user_id}")
    return UserProfile.from_document(user_id, snapshot.data() or {})


async def add_friend(store: DocumentStore, user_id: str, friend_id: str) -> UserProfile:
    """
    Add `friend_id` to the user's friends list. Adding twice is a no-op.

    Raises:
        InvalidInputError: If friend_id is empty or the user's own id
        NotFoundError: If either profile does not exist
        StoreUnavailableError: If the friend's profile cannot be read
        WriteError: If the profile cannot be saved
    """
    friend_id = (friend_id or "").strip()
    if not friend_id or friend_id == user_id:
        raise InvalidInputError("Enter a valid friend id different from your own.")

    await get_profile(store, friend_id)

    def union(current: dict[str, Any] | None) -> dict[str, Any] | None:
        if current is None:
            return None
        friends = _friend_ids(current)
        if friend_id in friends:
            return None
        return {**current, "friends": [*friends, friend_id]}

    profile = await _update_profile(store, user_id, union, "Could not update the friends list.")
    logger.info("%s added friend %s", user_id, friend_id)
    return profile


async def remove_friend(store: DocumentStore, user_id: str, friend_id: str) -> UserProfile:
    """
    Remove `friend_id` from the user's friends list if present.

    Raises:
        NotFoundError: If the user has no profile
        WriteError: If the profile cannot be saved
    """

    def remove(current: dict[str, Any] | None) -> dict[str, Any] | None:
        if current is None:
            return None
        friends = _friend_ids(current)
        if friend_id not in friends:
            return None
        return {**current, "friends": [existing for existing in friends if existing != friend_id]}

    profile = await _update_profile(store, user_id, remove, "Could not update the friends list.")
    logger.info("%s removed friend %s", user_id, friend_id)
    return profile


async def list_friends(store: DocumentStore, user_id: str) -> list[FriendEntry]:
    """
    Friends of a user with their display names.

    Friends whose profile has since disappeared are listed as "Unknown user".
    """
    profile = await get_profile(store, user_id)
    entries: list[FriendEntry] = []

    for friend_id in profile.friends:
        snapshot = await _read(store, USERS_COLLECTION, friend_id)
        if snapshot.exists:
            name = UserProfile.from_document(friend_id, snapshot.data() or {}).display_name
        else:
            name = UNKNOWN_USER_NAME
        entries.append(FriendEntry(user_id=friend_id, display_name=name or UNKNOWN_USER_NAME))

    return entries


def _friend_ids(document: dict[str, Any]) -> list[str]:
    return [str(friend_id) for friend_id in document.get("friends") or []]


async def _read(store: DocumentStore, collection: str, doc_id: str) -> DocumentSnapshot:
    try:
        return await store.get_document(collection, doc_id)
    except DocumentStoreError as e:
        raise StoreUnavailableError(detail=str(e)) from e


async def _update(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    mutate: DocumentMutator,
    failure_message: str,
) -> dict[str, Any] | None:
    try:
        return await store.update_document(collection, doc_id, mutate)
    except DocumentStoreError as e:
        raise WriteError(failure_message, detail=str(e)) from e


async def _update_profile(
    store: DocumentStore, user_id: str, mutate: DocumentMutator, failure_message: str
) -> UserProfile:
    data = await _update(store, USERS_COLLECTION, user_id, mutate, failure_message)
    if data is None:
        raise NotFoundError("This user does not exist.", detail=f"users/{user_id}")
    return UserProfile.from_document(user_id, data)
