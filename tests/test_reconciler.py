"""Tests for collection reconciliation."""

import asyncio

import pytest

from pocketbinder.models.catalog import Card
from pocketbinder.models.failure import FailureKind
from pocketbinder.services.reconciler import (
    CollectionReconciler,
    compute_stats,
    filter_cards,
    total_owned,
)
from pocketbinder.store.base import DocumentStoreError


class TestComputeStats:
    def test_stats_per_set(self, cards: list[Card]) -> None:
        owned = {"a1": 2, "a2": 0, "b1": 1}

        stats = compute_stats(cards, owned)

        assert stats["A"].total_cards == 3
        assert stats["A"].unique_owned == 1
        assert stats["A"].total_copies_owned == 2
        assert stats["B"].total_cards == 2
        assert stats["B"].unique_owned == 1
        assert stats["B"].total_copies_owned == 1

    def test_carries_set_name(self, cards: list[Card]) -> None:
        stats = compute_stats(cards, {})

        assert stats["A"].set_name == "Set A"
        assert stats["B"].set_name == "Set B"

    def test_empty_cards_yield_empty_stats(self) -> None:
        assert compute_stats([], {"a1": 3}) == {}

    def test_owned_cards_outside_selection_are_ignored(self, cards: list[Card]) -> None:
        stats = compute_stats(cards[:3], {"b1": 4, "a3": 1})

        assert list(stats) == ["A"]
        assert stats["A"].total_copies_owned == 1

    def test_completion_ratio(self, cards: list[Card]) -> None:
        stats = compute_stats(cards, {"b1": 1, "b2": 2})

        assert stats["A"].completion_ratio == 0.0
        assert stats["B"].completion_ratio == 1.0

    def test_is_pure(self, cards: list[Card]) -> None:
        owned = {"a1": 2}

        assert compute_stats(cards, owned) == compute_stats(cards, owned)
        assert owned == {"a1": 2}


class TestFilterCards:
    @pytest.fixture
    def named_cards(self) -> list[Card]:
        return [
            Card("p1", "Pikachu", "001", None, "A", "Set A"),
            Card("r1", "Raichu", "002", None, "A", "Set A"),
            Card("b1", "Bulbasaur", "003", None, "A", "Set A"),
        ]

    def test_substring_match_keeps_order(self, named_cards: list[Card]) -> None:
        result = filter_cards(named_cards, "chu", False, {})

        assert [card.name for card in result] == ["Pikachu", "Raichu"]

    def test_case_insensitive(self, named_cards: list[Card]) -> None:
        result = filter_cards(named_cards, "PIKA", False, {})

        assert [card.id for card in result] == ["p1"]

    def test_empty_term_matches_everything(self, named_cards: list[Card]) -> None:
        assert filter_cards(named_cards, "", False, {}) == named_cards

    def test_owned_only(self, named_cards: list[Card]) -> None:
        result = filter_cards(named_cards, "", True, {"p1": 1, "r1": 0})

        assert [card.id for card in result] == ["p1"]

    def test_term_and_owned_combine(self, named_cards: list[Card]) -> None:
        result = filter_cards(named_cards, "a", True, {"b1": 2, "r1": 1})

        assert [card.id for card in result] == ["r1", "b1"]


class TestTotalOwned:
    def test_counts_copies_not_unique_cards(self) -> None:
        assert total_owned({"a1": 3, "a2": 0, "b1": 1}) == 4

    def test_empty(self) -> None:
        assert total_owned({}) == 0


class TestCollectionReconciler:
    async def test_mirrors_pushed_snapshots(self, fake_store, cards: list[Card]) -> None:
        reconciler = CollectionReconciler(fake_store, "ash")

        async with reconciler.watch():
            fake_store.push("collections", "ash", {"a1": 2, "b1": "1"})

            assert reconciler.loaded
            assert reconciler.owned == {"a1": 2, "b1": 1}
            assert reconciler.total_owned == 3
            assert reconciler.expansion_stats(cards)["A"].unique_owned == 1
            assert [card.id for card in reconciler.filtered_cards(cards, owned_only=True)] == [
                "a1",
                "b1",
            ]

    async def test_missing_document_is_empty_collection(self, fake_store) -> None:
        reconciler = CollectionReconciler(fake_store, "ash")

        async with reconciler.watch():
            fake_store.push("collections", "ash", None)

        assert reconciler.loaded
        assert reconciler.owned == {}

    async def test_negative_quantities_in_snapshot_are_clamped(self, fake_store) -> None:
        reconciler = CollectionReconciler(fake_store, "ash")

        async with reconciler.watch():
            fake_store.push("collections", "ash", {"a1": -3})

        assert reconciler.owned == {"a1": 0}

    async def test_unsubscribes_on_normal_exit(self, fake_store) -> None:
        async with CollectionReconciler(fake_store, "ash").watch():
            assert ("collections", "ash") in fake_store.listeners

        assert fake_store.unsubscribed == [("collections", "ash")]

    async def test_unsubscribes_when_scope_raises(self, fake_store) -> None:
        with pytest.raises(RuntimeError):
            async with CollectionReconciler(fake_store, "ash").watch():
                raise RuntimeError("navigated away")

        assert fake_store.listeners == {}
        assert fake_store.unsubscribed == [("collections", "ash")]

    async def test_subscription_error_keeps_last_snapshot(self, fake_store) -> None:
        reconciler = CollectionReconciler(fake_store, "ash")

        async with reconciler.watch():
            fake_store.push("collections", "ash", {"a1": 2})
            fake_store.push_error("collections", "ash", PermissionError("revoked"))

            assert reconciler.owned == {"a1": 2}
            assert reconciler.error is not None
            assert reconciler.error.kind == FailureKind.SUBSCRIPTION_FAILED
            assert reconciler.error.detail == "revoked"

            fake_store.push("collections", "ash", {"a1": 3})

            assert reconciler.error is None
            assert reconciler.owned == {"a1": 3}

    async def test_set_quantity_merge_writes(self, fake_store) -> None:
        result = await CollectionReconciler(fake_store, "ash").set_quantity("a1", 3)

        assert result.success
        assert result.quantity == 3
        assert fake_store.writes == [("collections", "ash", {"a1": 3}, True)]

    @pytest.mark.parametrize(
        ("raw", "stored"),
        [(-5, 0), ("abc", 0), (float("nan"), 0), ("4", 4), (2.7, 2), (None, 0)],
    )
    async def test_set_quantity_clamps(self, fake_store, raw: object, stored: int) -> None:
        result = await CollectionReconciler(fake_store, "ash").set_quantity("a1", raw)

        assert result.quantity == stored
        assert fake_store.documents[("collections", "ash")] == {"a1": stored}

    async def test_set_quantity_does_not_update_local_view(self, fake_store) -> None:
        """Writes only become visible through the next snapshot."""
        reconciler = CollectionReconciler(fake_store, "ash")

        async with reconciler.watch():
            fake_store.push("collections", "ash", {"a1": 1})
            await reconciler.set_quantity("a1", 4)

            assert reconciler.owned == {"a1": 1}

    async def test_failed_write_is_reported(self, fake_store) -> None:
        fake_store.fail_writes = True

        result = await CollectionReconciler(fake_store, "ash").set_quantity("a1", 1)

        assert not result.success
        assert result.error is not None
        assert result.error.kind == FailureKind.WRITE_FAILED
        assert "permission denied" in (result.error.detail or "")

    async def test_empty_card_id_is_rejected(self, fake_store) -> None:
        result = await CollectionReconciler(fake_store, "ash").set_quantity("", 1)

        assert not result.success
        assert fake_store.writes == []


class TestReconcilerWithSqlStore:
    async def test_write_arrives_through_subscription(self, sql_store) -> None:
        reconciler = CollectionReconciler(sql_store, "misty")

        async with reconciler.watch():
            await reconciler.wait_until_loaded()
            assert reconciler.owned == {}

            result = await reconciler.set_quantity("A1-001", 2)

            assert result.success
            assert reconciler.owned == {"A1-001": 2}

        assert sql_store.subscriber_count("collections", "misty") == 0

    async def test_store_failure_becomes_write_error(self, sql_store, monkeypatch) -> None:
        async def broken_set_document(*args: object, **kwargs: object) -> None:
            raise DocumentStoreError("database is locked")

        monkeypatch.setattr(sql_store, "set_document", broken_set_document)

        result = await CollectionReconciler(sql_store, "misty").set_quantity("A1-001", 1)

        assert not result.success
        assert result.error is not None
        assert result.error.status_code == 503

    async def test_concurrent_quantity_changes_are_all_kept(self, sql_store) -> None:
        await sql_store.set_document("collections", "misty", {"A1-000": 1})
        reconciler = CollectionReconciler(sql_store, "misty")

        results = await asyncio.gather(
            *(reconciler.set_quantity(f"A1-{i:03d}", i) for i in range(1, 6))
        )

        assert all(result.success for result in results)
        snapshot = await sql_store.get_document("collections", "misty")
        assert snapshot.data() == {
            "A1-000": 1,
            "A1-001": 1,
            "A1-002": 2,
            "A1-003": 3,
            "A1-004": 4,
            "A1-005": 5,
        }

    async def test_concurrent_first_writes_both_succeed(self, sql_store) -> None:
        reconciler = CollectionReconciler(sql_store, "brock")

        results = await asyncio.gather(
            reconciler.set_quantity("A1-001", 1),
            reconciler.set_quantity("A1-002", 2),
        )

        assert [result.success for result in results] == [True, True]
        snapshot = await sql_store.get_document("collections", "brock")
        assert snapshot.data() == {"A1-001": 1, "A1-002": 2}
