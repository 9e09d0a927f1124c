"""Mutation dispatcher primary/fallback protocol tests."""

from __future__ import annotations

import pytest

from logic.error_classification import FailureClass
from logic.mutation_dispatcher import (
    MutationDispatcher,
    MutationError,
    MutationKind,
    MutationOutcome,
    idempotent_item_id,
)
from logic.upload_coordinator import AssetUploadCoordinator
from memory.item_collection import ItemCollection
from tools.auth_session import AuthSessionError, StaticAuthSession
from tools.remote_store import RemoteStoreError
from tools.trusted_api import TrustedApiError

from conftest import FakeStorage, FakeTable, FakeTrustedApi

NEW_ITEM = {"name": "Black Leather Jacket", "category": "outerwear", "color": "black"}


def _existing(**overrides):
    row = {
        "item_id": "item-1",
        "user_id": "user-123",
        "name": "Blue Jeans",
        "category": "bottom",
        "wear_count": 3,
        "image_path": "https://cdn.test/storage/v1/object/public/wardrobe/user-123/jeans.jpg",
    }
    row.update(overrides)
    return row


@pytest.fixture()
def dispatcher(table, trusted_api, session, collection) -> MutationDispatcher:
    return MutationDispatcher(table, trusted_api, session, collection=collection)


def test_create_on_primary_path(dispatcher, table, trusted_api, collection) -> None:
    record = dispatcher.create(dict(NEW_ITEM))

    assert record["user_id"] == "user-123"
    assert record["category"] == "outerwear"
    assert record["item_id"] in table.rows
    assert trusted_api.calls == []
    assert dispatcher.last_attempt.outcome is MutationOutcome.SUCCESS
    assert collection.items == (record,)


@pytest.mark.parametrize(
    "error, expected_class",
    [
        (RemoteStoreError("new row violates row-level security policy", "42501"), FailureClass.PERMISSION_DENIED),
        (RemoteStoreError("Could not find the 'season' column", "PGRST204"), FailureClass.SCHEMA_MISMATCH),
        (RemoteStoreError("JWT expired", "PGRST301"), FailureClass.AUTH_FAILURE),
        (RemoteStoreError("something odd happened"), FailureClass.UNKNOWN),
    ],
)
def test_every_failure_class_recovers_through_fallback(
    dispatcher, table, trusted_api, collection, error, expected_class
) -> None:
    table.errors["insert"] = error

    record = dispatcher.create(dict(NEW_ITEM))

    assert record["via"] == "server"
    assert trusted_api.calls[0][0] == "add"
    attempt = dispatcher.last_attempt
    assert attempt.outcome is MutationOutcome.RECOVERED
    assert [a.path for a in attempt.attempts] == ["primary", "fallback"]
    assert attempt.attempts[0].failure_class is expected_class
    assert len(collection) == 1


def test_zero_rows_counts_as_failure(dispatcher, table, trusted_api) -> None:
    table.empty.add("insert")

    dispatcher.create(dict(NEW_ITEM))

    assert dispatcher.last_attempt.outcome is MutationOutcome.RECOVERED
    assert dispatcher.last_attempt.attempts[0].error == "No rows were affected"
    assert len(trusted_api.calls) == 1


def test_fallback_failure_raises_endpoint_message(table, session, collection) -> None:
    table.errors["insert"] = RemoteStoreError("permission denied for table wardrobe")
    api = FakeTrustedApi(error=TrustedApiError("Unauthorized", status_code=401))
    dispatcher = MutationDispatcher(table, api, session, collection=collection)

    with pytest.raises(MutationError, match="^Unauthorized$"):
        dispatcher.create(dict(NEW_ITEM))

    assert dispatcher.last_attempt.outcome is MutationOutcome.FAILED
    assert len(collection) == 0


def test_requires_signed_in_user(table, trusted_api) -> None:
    dispatcher = MutationDispatcher(table, trusted_api, StaticAuthSession(None))

    with pytest.raises(MutationError, match="logged in"):
        dispatcher.create(dict(NEW_ITEM))
    assert table.calls == []


def test_refresh_failure_is_tolerated(table, trusted_api) -> None:
    class FlakySession(StaticAuthSession):
        def refresh_session(self) -> None:
            raise AuthSessionError("refresh token revoked")

    dispatcher = MutationDispatcher(table, trusted_api, FlakySession("user-123"))

    assert dispatcher.create(dict(NEW_ITEM))["name"] == "Black Leather Jacket"


def test_refresh_happens_before_write(dispatcher, session) -> None:
    dispatcher.create(dict(NEW_ITEM))

    assert session.refresh_calls == 1


def test_validation_error_never_writes(dispatcher, table, trusted_api) -> None:
    with pytest.raises(MutationError, match="category"):
        dispatcher.create({"name": "Mystery"})

    assert table.calls == []
    assert trusted_api.calls == []


def test_owner_comes_from_session(dispatcher) -> None:
    record = dispatcher.create({**NEW_ITEM, "user_id": "someone-else"})

    assert record["user_id"] == "user-123"


def test_update_replaces_record_in_collection(table, trusted_api, session) -> None:
    table.rows["item-1"] = _existing()
    collection = ItemCollection([_existing()])
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=collection)

    record = dispatcher.update("item-1", {"name": "Faded Jeans"})

    assert record["name"] == "Faded Jeans"
    assert collection.get("item-1")["name"] == "Faded Jeans"
    assert len(collection) == 1


def test_update_falls_back_when_row_filtered_out(table, trusted_api, session) -> None:
    table.rows["item-1"] = _existing(user_id="another-user")
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=ItemCollection([_existing()]))

    record = dispatcher.update("item-1", {"size": "M"})

    assert record["via"] == "server"
    assert trusted_api.calls == [("update", "item-1", {"size": "M"})]


def test_wear_count_cannot_decrease(table, trusted_api, session) -> None:
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=ItemCollection([_existing()]))

    with pytest.raises(MutationError, match="cannot decrease"):
        dispatcher.update("item-1", {"wear_count": 1})


def test_wear_count_checked_against_stored_row_when_not_loaded(table, trusted_api, session) -> None:
    table.rows["item-1"] = _existing(wear_count=5)
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=ItemCollection())

    with pytest.raises(MutationError, match="cannot decrease"):
        dispatcher.update("item-1", {"wear_count": 1})
    assert table.rows["item-1"]["wear_count"] == 5
    assert "update" not in table.calls
    assert trusted_api.calls == []


def test_unusable_numbers_surface_as_mutation_error(dispatcher, table) -> None:
    with pytest.raises(MutationError, match="Invalid purchase price"):
        dispatcher.create({**NEW_ITEM, "purchase_price": "NaN"})
    with pytest.raises(MutationError, match="Invalid wear count"):
        dispatcher.update("item-1", {"wear_count": None})
    assert table.rows == {}


def test_log_worn_increments(table, trusted_api, session) -> None:
    table.rows["item-1"] = _existing()
    collection = ItemCollection([_existing()])
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=collection)

    record = dispatcher.log_worn("item-1", when="2024-05-01")

    assert record["wear_count"] == 4
    assert record["last_worn"] == "2024-05-01"
    assert collection.get("item-1")["wear_count"] == 4


def test_log_worn_unknown_item(dispatcher) -> None:
    with pytest.raises(MutationError, match="not found"):
        dispatcher.log_worn("missing")


def test_delete_primary_releases_asset(table, trusted_api, session) -> None:
    table.rows["item-1"] = _existing()
    storage = FakeStorage()
    uploader = AssetUploadCoordinator(storage, trusted_api, session)
    collection = ItemCollection([_existing()])
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=collection, upload_coordinator=uploader)

    dispatcher.delete("item-1")

    assert "item-1" not in table.rows
    assert storage.removed == ["user-123/jeans.jpg"]
    assert len(collection) == 0


def test_delete_survives_asset_removal_failure(table, trusted_api, session) -> None:
    table.rows["item-1"] = _existing()
    uploader = AssetUploadCoordinator(FakeStorage(fail_remove=True), trusted_api, session)
    collection = ItemCollection([_existing()])
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=collection, upload_coordinator=uploader)

    dispatcher.delete("item-1")

    assert dispatcher.last_attempt.outcome is MutationOutcome.SUCCESS
    assert len(collection) == 0


def test_delete_fallback_filters_collection(table, trusted_api, session) -> None:
    table.errors["delete"] = RemoteStoreError("permission denied", "42501")
    collection = ItemCollection([_existing(), _existing(item_id="item-2")])
    dispatcher = MutationDispatcher(table, trusted_api, session, collection=collection)

    dispatcher.dispatch(MutationKind.DELETE, item_id="item-1")

    assert trusted_api.calls == [("delete", "item-1")]
    assert [item["item_id"] for item in collection.items] == ["item-2"]


def test_update_requires_item_id(dispatcher) -> None:
    with pytest.raises(MutationError, match="item id is required"):
        dispatcher.dispatch(MutationKind.UPDATE, {"name": "x"})


def test_idempotency_key_suppresses_duplicate_writes(dispatcher, table, collection) -> None:
    first = dispatcher.create(dict(NEW_ITEM), idempotency_key="submit-1")
    second = dispatcher.create(dict(NEW_ITEM), idempotency_key="submit-1")

    assert first == second
    assert first["item_id"] == idempotent_item_id("user-123", "submit-1")
    assert table.calls.count("insert") == 1
    assert len(collection) == 1


def test_without_key_each_dispatch_writes(dispatcher, table) -> None:
    dispatcher.create(dict(NEW_ITEM))
    dispatcher.create(dict(NEW_ITEM))

    assert table.calls.count("insert") == 2
    assert len(table.rows) == 2


def test_remembered_keys_are_bounded(table, trusted_api, session) -> None:
    dispatcher = MutationDispatcher(table, trusted_api, session, max_remembered_keys=2)

    first = dispatcher.create(dict(NEW_ITEM), idempotency_key="k1")
    dispatcher.create(dict(NEW_ITEM), idempotency_key="k2")
    dispatcher.create(dict(NEW_ITEM), idempotency_key="k3")

    assert dispatcher.create(dict(NEW_ITEM), idempotency_key="k3")["item_id"] == idempotent_item_id("user-123", "k3")
    assert table.calls.count("insert") == 3

    again = dispatcher.create(dict(NEW_ITEM), idempotency_key="k1")
    assert again["item_id"] == first["item_id"]
    assert table.calls.count("insert") == 4
