import logging

from eventrelay import EventDispatcher, Target, TargetUpdate
from eventrelay.registry import TargetRegistry


def test_add_target_defaults_headers_and_events():
    registry = TargetRegistry()

    assert registry.add({"name": "a"}) is True

    target = registry.get("a")
    assert target.url is None
    assert target.headers == {}
    assert target.events == []


def test_add_duplicate_name_is_rejected_and_original_kept(caplog):
    registry = TargetRegistry()
    registry.add(Target(name="system_a", url="http://one", events=["user.created"]))

    with caplog.at_level(logging.ERROR, logger="eventrelay.registry"):
        added = registry.add({"name": "system_a", "events": ["user.updated"]})

    assert added is False
    target = registry.get("system_a")
    assert target.url == "http://one"
    assert target.events == ["user.created"]
    assert "already exists" in caplog.text


def test_batch_add_is_not_atomic():
    registry = TargetRegistry()
    registry.add({"name": "b"})

    added = registry.add([{"name": "a"}, {"name": "b"}, {"name": "c"}])

    assert added is False
    assert [t.name for t in registry.all()] == ["b", "a", "c"]


def test_add_invalid_definition_returns_false():
    registry = TargetRegistry()

    assert registry.add({"url": "http://nameless"}) is False
    assert len(registry) == 0


def test_stored_target_is_decoupled_from_caller_object():
    registry = TargetRegistry()
    original = Target(name="a", events=["x"])
    registry.add(original)

    original.events.append("y")

    assert registry.get("a").events == ["x"]


def test_update_unknown_target_returns_false():
    registry = TargetRegistry()
    registry.add({"name": "a", "events": ["x"]})

    assert registry.update("missing", {"events": ["y"]}) is False
    assert registry.get("a").events == ["x"]
    assert "missing" not in registry


def test_update_preserves_omitted_fields_and_merges_headers():
    registry = TargetRegistry()
    registry.add(
        {
            "name": "a",
            "url": "http://old",
            "headers": {"Authorization": "t1", "X-Keep": "yes"},
            "events": ["x"],
        }
    )

    assert registry.update("a", TargetUpdate(headers={"Authorization": "t2", "X-New": "1"}))

    target = registry.get("a")
    assert target.url == "http://old"
    assert target.events == ["x"]
    assert target.headers == {"Authorization": "t2", "X-Keep": "yes", "X-New": "1"}


def test_update_replaces_events_and_url():
    registry = TargetRegistry()
    registry.add({"name": "a", "url": "http://old", "events": ["x", "y"]})

    registry.update("a", {"url": "http://new", "events": ["z"]})

    target = registry.get("a")
    assert target.url == "http://new"
    assert target.events == ["z"]


def test_update_with_explicit_none_url_clears_it():
    registry = TargetRegistry()
    registry.add({"name": "a", "url": "http://old", "events": ["x"]})

    registry.update("a", TargetUpdate())
    assert registry.get("a").url == "http://old"

    registry.update("a", TargetUpdate(url=None))
    assert registry.get("a").url is None
    assert registry.get("a").is_remote is False


def test_update_with_empty_events_clears_subscriptions():
    registry = TargetRegistry()
    registry.add({"name": "a", "events": ["x"]})

    registry.update("a", {"events": []})

    assert registry.get("a").events == []


def test_remove_target():
    registry = TargetRegistry()
    registry.add({"name": "a"})

    assert registry.remove("a") is True
    assert registry.remove("a") is False
    assert registry.get("a") is None


def test_add_event_to_target_is_idempotent():
    registry = TargetRegistry()
    registry.add({"name": "a", "events": ["x"]})

    assert registry.add_events("a", "y")
    assert registry.add_events("a", ["y", "z", "x"])

    assert registry.get("a").events == ["x", "y", "z"]


def test_add_event_to_unknown_target_returns_false():
    registry = TargetRegistry()

    assert registry.add_events("nope", "x") is False


def test_resolve_matches_names_and_wildcard_in_order():
    registry = TargetRegistry()
    registry.add(
        [
            {"name": "all", "events": ["*"]},
            {"name": "users", "events": ["user.created"]},
            {"name": "orders", "events": ["order.placed"]},
        ]
    )

    assert [t.name for t in registry.resolve("user.created")] == ["all", "users"]
    assert [t.name for t in registry.resolve("never.listed")] == ["all"]


def test_dispatcher_exposes_registry_operations():
    dispatcher = EventDispatcher()

    assert dispatcher.add_target({"name": "a", "events": ["x"]})
    assert dispatcher.add_event_to_target("a", "y")
    assert dispatcher.update_target("a", {"headers": {"X": "1"}})
    assert dispatcher.targets.get("a").events == ["x", "y"]
    assert dispatcher.remove_target("a")
    assert len(dispatcher.targets) == 0


def test_dispatchers_do_not_share_registries():
    first = EventDispatcher()
    second = EventDispatcher()

    first.add_target({"name": "a"})

    assert "a" in first.targets
    assert "a" not in second.targets


def test_null_headers_and_events_default_to_empty():
    registry = TargetRegistry()

    added = registry.add({"name": "a", "url": None, "headers": None, "events": None})

    assert added is True
    target = registry.get("a")
    assert target.headers == {}
    assert target.events == []
    assert target.is_remote is False
