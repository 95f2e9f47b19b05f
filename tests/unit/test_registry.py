import pytest
from pydantic import ValidationError

from trailguide_sync.registry import DEFAULT_RESOURCES, ResourceDescriptor, ResourceRegistry


def test_lookup_known_and_unknown_names() -> None:
    registry = ResourceRegistry()

    birds = registry.get("guide_bird")
    assert birds is not None
    assert birds.endpoint == "/items/bird/"
    assert birds.cache_key == "guide_bird"
    assert birds.is_collection is True

    home = registry.get("home")
    assert home.cache_key == "home_data"
    assert home.is_collection is False

    assert registry.get("no_such_screen") is None
    assert "no_such_screen" not in registry


def test_iteration_follows_declaration_order() -> None:
    registry = ResourceRegistry()

    assert registry.names() == [descriptor.name for descriptor in DEFAULT_RESOURCES]
    assert registry.names()[0] == "home"
    assert registry.names()[-1] == "branding"
    assert len(registry) == 20


def test_rules_declares_nested_icons() -> None:
    rules = ResourceRegistry().get("rules")

    assert rules.endpoint == "/rules/"
    assert "rules_image" in rules.media_schema.fields
    assert rules.media_schema.children["rules"].fields == ("icon",)


def test_duplicate_names_are_rejected() -> None:
    descriptor = ResourceDescriptor(name="home", endpoint="/items/home/", cache_key="home_data")

    with pytest.raises(ValueError):
        ResourceRegistry([descriptor, descriptor])


def test_descriptors_are_immutable() -> None:
    home = ResourceRegistry().get("home")

    with pytest.raises(ValidationError):
        home.endpoint = "/elsewhere/"
