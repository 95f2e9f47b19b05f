"""Static registry of the remote resources mirrored into the local cache."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

IMAGE_FIELD_KEYS: Tuple[str, ...] = (
    "image",
    "background",
    "rules_image",
    "safety_image",
    "icon",
    "map_icon",
    "header_image",
    "splash_image",
)


class MediaSchema(BaseModel):
    """Declares which fields of an item hold asset ids.

    ``children`` maps a key holding a list of nested items to the schema of
    those items, e.g. the ``rules`` list nested inside the rules singleton.
    """

    model_config = ConfigDict(frozen=True)

    fields: Tuple[str, ...] = ()
    children: Mapping[str, "MediaSchema"] = Field(default_factory=dict)


MediaSchema.model_rebuild()


class ResourceDescriptor(BaseModel):
    """One remote resource and where it lives locally."""

    model_config = ConfigDict(frozen=True)

    name: str
    endpoint: str
    cache_key: str
    is_collection: bool = False
    media_schema: Optional[MediaSchema] = None


def _singleton(name: str, endpoint: str, *fields: str, **children: MediaSchema) -> ResourceDescriptor:
    return ResourceDescriptor(
        name=name,
        endpoint=endpoint,
        cache_key=f"{name}_data",
        media_schema=MediaSchema(fields=("background",) + fields, children=children),
    )


def _collection(name: str, endpoint: str, *fields: str) -> ResourceDescriptor:
    return ResourceDescriptor(
        name=name,
        endpoint=endpoint,
        cache_key=name,
        is_collection=True,
        media_schema=MediaSchema(fields=fields) if fields else None,
    )


DEFAULT_RESOURCES: Tuple[ResourceDescriptor, ...] = (
    _singleton("home", "/items/home/"),
    _singleton("about", "/items/about/"),
    _singleton("donate", "/items/donate/"),
    _singleton("guide", "/items/guide/"),
    _singleton("emergency", "/items/emergency/"),
    _singleton("rules", "/rules/", "rules_image", rules=MediaSchema(fields=("icon",))),
    _singleton("safety", "/items/safety/", "safety_image"),
    ResourceDescriptor(name="report", endpoint="/items/reports/", cache_key="report_data"),
    _collection("guide_wildflower", "/items/wildflower/", "image"),
    _collection("guide_tree_shrub", "/items/tree_shrub/", "image"),
    _collection("guide_bird", "/items/bird/", "image"),
    _collection("guide_mammal", "/items/mammal/", "image"),
    _collection("guide_invertebrate", "/items/invertebrate/", "image"),
    _collection("guide_track", "/items/track/", "image"),
    _collection("guide_herp", "/items/herp/", "image"),
    _collection("nature_trail_marker", "/items/nature_trail_marker/", "image"),
    _collection("mile_marker", "/items/mile_marker/"),
    _collection("safety_marker", "/items/safety_marker/", "image", "map_icon"),
    _collection("poi_marker", "/items/point_of_interest_marker/", "image", "map_icon"),
    ResourceDescriptor(
        name="branding",
        endpoint="/items/branding/",
        cache_key="branding_data",
        media_schema=MediaSchema(fields=("header_image", "splash_image")),
    ),
)


class ResourceRegistry:
    """Immutable lookup from resource name to descriptor.

    Iteration follows declaration order, which is also the order a resync
    pass visits resources in.
    """

    def __init__(self, descriptors: Iterable[ResourceDescriptor] = DEFAULT_RESOURCES) -> None:
        ordered: List[ResourceDescriptor] = []
        by_name: Dict[str, ResourceDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in by_name:
                raise ValueError(f"Duplicate resource name: {descriptor.name}")
            by_name[descriptor.name] = descriptor
            ordered.append(descriptor)
        self._ordered = tuple(ordered)
        self._by_name = MappingProxyType(by_name)

    def get(self, name: str) -> Optional[ResourceDescriptor]:
        return self._by_name.get(name)

    def names(self) -> List[str]:
        return [descriptor.name for descriptor in self._ordered]

    def cache_keys(self) -> List[str]:
        return [descriptor.cache_key for descriptor in self._ordered]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)
