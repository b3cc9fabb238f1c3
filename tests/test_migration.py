"""Tests for the template document migration engine."""

import json

from quickdesk.storage.migration import default_document, migrate_document
from quickdesk.utils.constants import DATA_VERSION, DEFAULT_CATEGORIES, MIGRATED_CATEGORY_NAME

NOW_MS = 1_700_000_000_000


def orders_by_category(document):
    orders = {}
    for msg in document["messages"]:
        orders.setdefault(msg["categoryId"], []).append(msg["order"])
    return orders


def test_empty_value_is_seeded():
    """Absent or empty storage produces the starter categories."""
    for raw in (None, {}, [], ""):
        result = migrate_document(raw, NOW_MS)

        assert result.reseeded
        assert result.needs_save
        assert result.document["version"] == DATA_VERSION
        assert [c["name"] for c in result.document["categories"]] == [
            name for name, _ in DEFAULT_CATEGORIES
        ]
        assert result.document["messages"] == []


def test_default_document_shortcuts():
    """Seeded categories come with their preset shortcuts."""
    document = default_document(NOW_MS)
    assert [c["shortcut"] for c in document["categories"]] == ["alt+0", "alt+1", "alt+3", "alt+8"]
    assert len({c["id"] for c in document["categories"]}) == len(DEFAULT_CATEGORIES)


def test_bare_message_list_gets_fallback_category():
    """The oldest format (a plain list) lands in one migrated category."""
    raw = [
        {"title": "Greeting", "message": "Hello"},
        {"id": "m2", "title": "Bye", "message": "See you"},
    ]

    result = migrate_document(raw, NOW_MS)
    document = result.document

    assert not result.reseeded
    assert result.needs_save
    assert document["version"] == 3
    assert len(document["categories"]) == 1
    assert document["categories"][0]["name"] == MIGRATED_CATEGORY_NAME

    category_id = document["categories"][0]["id"]
    assert [m["id"] for m in document["messages"]] == [f"msg-{NOW_MS}", "m2"]
    assert all(m["categoryId"] == category_id for m in document["messages"])
    assert [m["order"] for m in document["messages"]] == [0, 1]


def test_object_without_categories_is_treated_as_v1():
    raw = {"messages": [{"id": "m1", "title": "A", "message": "a"}]}

    document = migrate_document(raw, NOW_MS).document

    assert document["categories"][0]["name"] == MIGRATED_CATEGORY_NAME
    assert document["messages"][0]["categoryId"] == document["categories"][0]["id"]


def test_v2_groups_by_category_and_repoints_orphans():
    """v2 -> v3 orders each category in appearance order; orphans go to the first."""
    raw = {
        "version": 2,
        "categories": [
            {"id": "c1", "name": "One", "shortcut": ""},
            {"id": "c2", "name": "Two", "shortcut": "alt+2"},
        ],
        "messages": [
            {"id": "m1", "title": "A", "message": "a", "categoryId": "c2"},
            {"id": "m2", "title": "B", "message": "b", "categoryId": "gone"},
            {"id": "m3", "title": "C", "message": "c", "categoryId": "c1"},
            {"id": "m4", "title": "D", "message": "d", "categoryId": "c2"},
        ],
    }

    result = migrate_document(raw, NOW_MS)
    messages = {m["id"]: m for m in result.document["messages"]}

    assert result.needs_save
    assert messages["m2"]["categoryId"] == "c1"
    assert (messages["m2"]["order"], messages["m3"]["order"]) == (0, 1)
    assert (messages["m1"]["order"], messages["m4"]["order"]) == (0, 1)


def test_migration_is_idempotent():
    """Running the engine on its own output changes nothing."""
    raw = [
        {"title": "Greeting", "message": "Hello"},
        {"title": "Bye", "message": "See you"},
    ]

    first = migrate_document(raw, NOW_MS)
    second = migrate_document(first.document, NOW_MS + 5000)

    assert not second.needs_save
    assert json.dumps(second.document, sort_keys=True) == json.dumps(first.document, sort_keys=True)


def test_input_is_not_mutated():
    raw = {"version": 2, "categories": [{"id": "c1", "name": "One"}], "messages": []}
    snapshot = json.dumps(raw)

    migrate_document(raw, NOW_MS)

    assert json.dumps(raw) == snapshot


def test_corrupt_values_are_reseeded():
    """Unusable data degrades to defaults instead of raising."""
    for raw in (
        "not a document",
        42,
        {"version": 3, "categories": [], "messages": []},
        {"version": 2, "categories": "oops", "messages": []},
        {"version": 3, "categories": [{"name": "no id"}], "messages": []},
        {"version": 3, "categories": [{"id": "c1", "name": "x"}], "messages": "nope"},
    ):
        result = migrate_document(raw, NOW_MS)
        assert result.reseeded, raw
        assert result.document["version"] == DATA_VERSION


def test_current_document_with_gaps_is_repaired():
    """Order gaps and orphans left by racing writers are closed on read."""
    raw = {
        "version": 3,
        "categories": [{"id": "c1", "name": "One", "shortcut": ""}],
        "messages": [
            {"id": "m1", "title": "A", "message": "a", "categoryId": "c1", "order": 4},
            {"id": "m2", "title": "B", "message": "b", "categoryId": "c1", "order": 1},
            {"id": "m3", "title": "C", "message": "c", "categoryId": "lost", "order": 0},
        ],
    }

    result = migrate_document(raw, NOW_MS)
    messages = {m["id"]: m for m in result.document["messages"]}

    assert result.needs_save
    assert not result.reseeded
    assert messages["m3"]["categoryId"] == "c1"
    # Relative order kept, orphan appended
    assert [messages[i]["order"] for i in ("m2", "m1", "m3")] == [0, 1, 2]


def test_current_document_is_not_resaved():
    raw = {
        "version": 3,
        "categories": [{"id": "c1", "name": "One", "shortcut": ""}],
        "messages": [{"id": "m1", "title": "A", "message": "a", "categoryId": "c1", "order": 0}],
    }

    result = migrate_document(raw, NOW_MS)

    assert not result.needs_save
    assert result.document == raw


def test_future_version_is_read_as_current():
    raw = {
        "version": 7,
        "categories": [{"id": "c1", "name": "One", "shortcut": ""}],
        "messages": [],
    }

    result = migrate_document(raw, NOW_MS)

    assert result.document["version"] == DATA_VERSION
    assert result.needs_save
    assert not result.reseeded


def test_every_category_is_dense_after_migration():
    raw = {
        "version": 1,
        "categories": [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}],
        "messages": [
            {"id": f"m{i}", "title": "t", "message": "x", "categoryId": "ab"[i % 2]}
            for i in range(7)
        ],
    }

    orders = orders_by_category(migrate_document(raw, NOW_MS).document)

    assert sorted(orders["a"]) == [0, 1, 2, 3]
    assert sorted(orders["b"]) == [0, 1, 2]
