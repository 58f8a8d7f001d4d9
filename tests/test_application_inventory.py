from datetime import datetime

import pytest
from pydantic import ValidationError as PayloadError

from exceptions import ConflictError, NotFoundError
from Services.ApplicationInventory import ApplicationInventory, ApplicationPayload


def payload(**overrides):
    data = {"name": "Zoom", "vendor": "Zoom Inc", "version": "5.0"}
    data.update(overrides)
    return ApplicationPayload(**data)


@pytest.fixture
def inventory(db):
    return ApplicationInventory(db)


def test_create_then_list(inventory):
    app, created = inventory.create("U1", payload(category="Communication"))

    assert created is True
    assert app.user_id == "U1"
    assert app.deleted is False
    assert app.added_date is not None
    assert [a.id for a in inventory.list("U1")] == [app.id]
    assert inventory.list("U2") == []


def test_duplicate_active_application_conflicts(inventory):
    inventory.create("U1", payload())
    with pytest.raises(ConflictError):
        inventory.create("U1", payload(category="Different"))


def test_same_identity_for_other_user_is_independent(inventory):
    first, _ = inventory.create("U1", payload())
    second, created = inventory.create("U2", payload())
    assert created is True
    assert first.id != second.id


def test_soft_delete_then_recreate_restores_same_id(inventory):
    original, _ = inventory.create("U1", payload(category="Old"))
    inventory.soft_delete("U1", original.id)
    assert inventory.list("U1") == []

    restored, created = inventory.create("U1", payload(category="New"))

    assert created is False
    assert restored.id == original.id
    assert restored.deleted is False
    assert restored.deleted_at is None
    assert restored.category == "New"
    assert [a.id for a in inventory.list("U1")] == [original.id]


def test_soft_delete_sets_timestamp(inventory):
    app, _ = inventory.create("U1", payload())
    deleted = inventory.soft_delete("U1", app.id)
    assert deleted.deleted is True
    assert isinstance(deleted.deleted_at, datetime)


def test_soft_delete_other_users_app_is_not_found(inventory):
    app, _ = inventory.create("U1", payload())
    with pytest.raises(NotFoundError):
        inventory.soft_delete("U2", app.id)
    with pytest.raises(NotFoundError):
        inventory.soft_delete("U1", "does-not-exist")
    assert [a.id for a in inventory.list("U1")] == [app.id]


def test_missing_version_is_part_of_identity(inventory):
    unversioned, _ = inventory.create("U1", payload(version=None))
    versioned, created = inventory.create("U1", payload(version="6.0"))
    assert created is True
    assert unversioned.id != versioned.id

    with pytest.raises(ConflictError):
        inventory.create("U1", payload(version="  "))


def test_list_is_newest_first(inventory, db):
    older, _ = inventory.create("U1", payload(name="Slack", vendor="Slack"))
    newer, _ = inventory.create("U1", payload(name="GitHub", vendor="GitHub"))
    older.created_at = datetime(2024, 1, 1)
    newer.created_at = datetime(2025, 1, 1)
    db.commit()

    assert [a.id for a in inventory.list("U1")] == [newer.id, older.id]


def test_active_owners(inventory):
    app, _ = inventory.create("U1", payload())
    inventory.create("U2", payload())
    inventory.soft_delete("U1", app.id)
    assert inventory.active_owners() == ["U2"]


def test_payload_is_trimmed_and_validated():
    p = payload(name="  Zoom  ", category="")
    assert p.name == "Zoom"
    assert p.category is None

    with pytest.raises(PayloadError):
        ApplicationPayload(name="   ", vendor="Zoom Inc")
    with pytest.raises(PayloadError):
        ApplicationPayload(name="Zoom")
