"""
JSON:API envelopes used by every App Store Connect endpoint.

Responses wrap resources as ``{"data": ..., "included": [...], "links": {...}}``.
Response (collection) and SingleResponse are generic over the attributes
type; the envelope shape is fixed by which decoder is used, never by the
attributes type.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from .exceptions import DecodeError, ValidationError

T = TypeVar("T")

AttributesFactory = Callable[[Dict[str, Any]], Any]


class ResourceType(str, Enum):
    """Resource type tags understood by the API."""

    APPS = "apps"
    APP_INFOS = "appInfos"
    APP_INFO_LOCALIZATIONS = "appInfoLocalizations"
    APP_STORE_VERSIONS = "appStoreVersions"
    APP_STORE_VERSION_LOCALIZATIONS = "appStoreVersionLocalizations"
    BUILDS = "builds"
    PRE_RELEASE_VERSIONS = "preReleaseVersions"
    BETA_GROUPS = "betaGroups"
    BETA_TESTERS = "betaTesters"
    BETA_FEEDBACK_SCREENSHOT_SUBMISSIONS = "betaFeedbackScreenshotSubmissions"
    BETA_FEEDBACK_CRASH_SUBMISSIONS = "betaFeedbackCrashSubmissions"
    CUSTOMER_REVIEWS = "customerReviews"
    IN_APP_PURCHASES = "inAppPurchases"
    IN_APP_PURCHASE_PRICES = "inAppPurchasePrices"
    IN_APP_PURCHASE_PRICE_POINTS = "inAppPurchasePricePoints"
    IN_APP_PURCHASE_PRICE_SCHEDULES = "inAppPurchasePriceSchedules"
    MARKETPLACE_WEBHOOKS = "marketplaceWebhooks"
    TERRITORIES = "territories"
    GAME_CENTER_DETAILS = "gameCenterDetails"

    def __str__(self) -> str:
        return self.value


class Platform(str, Enum):
    IOS = "IOS"
    MAC_OS = "MAC_OS"
    TV_OS = "TV_OS"
    VISION_OS = "VISION_OS"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ResourceReference:
    """A ``{type, id}`` pair used in relationships."""

    type: str
    id: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": str(self.type), "id": self.id}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceReference":
        return cls(type=str(data.get("type", "")), id=str(data.get("id", "")))


@dataclass
class Links:
    self_url: str = ""
    next: str = ""
    prev: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Links":
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            self_url=str(data.get("self") or ""),
            next=str(data.get("next") or ""),
            prev=str(data.get("prev") or ""),
        )


@dataclass
class Resource(Generic[T]):
    type: str
    id: str
    attributes: T
    relationships: Dict[str, Any] = field(default_factory=dict)
    links: Links = field(default_factory=Links)

    def relationship(self, name: str) -> Union[ResourceReference, List[ResourceReference], None]:
        """Return the relationship stub(s) named ``name``, if the server sent data."""
        rel = self.relationships.get(name)
        if not isinstance(rel, Mapping) or rel.get("data") is None:
            return None
        data = rel["data"]
        if isinstance(data, list):
            return [ResourceReference.from_dict(item) for item in data]
        return ResourceReference.from_dict(data)


@dataclass
class Response(Generic[T]):
    """A collection envelope: ``data`` is a list."""

    data: List[Resource[T]] = field(default_factory=list)
    included: List[Resource[Dict[str, Any]]] = field(default_factory=list)
    links: Links = field(default_factory=Links)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def next_url(self) -> str:
        return self.links.next


@dataclass
class SingleResponse(Generic[T]):
    """A single-resource envelope: ``data`` is one object."""

    data: Resource[T]
    included: List[Resource[Dict[str, Any]]] = field(default_factory=list)
    links: Links = field(default_factory=Links)


def _load(raw: Union[bytes, str]) -> Dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise DecodeError(f"failed to parse response: {e}")
    if not isinstance(payload, dict):
        raise DecodeError("failed to parse response: expected a JSON object")
    return payload


def _decode_resource(item: Any, attributes: Optional[AttributesFactory]) -> Resource:
    if not isinstance(item, dict):
        raise DecodeError("failed to parse response: resource is not a JSON object")
    attrs = item.get("attributes") or {}
    if not isinstance(attrs, dict):
        raise DecodeError("failed to parse response: attributes is not a JSON object")
    relationships = item.get("relationships") or {}
    try:
        value = attributes(attrs) if attributes else attrs
    except (TypeError, ValueError, KeyError) as e:
        raise DecodeError(f"failed to parse response: {e}")
    return Resource(
        type=str(item.get("type") or ""),
        id=str(item.get("id") or ""),
        attributes=value,
        relationships=relationships if isinstance(relationships, dict) else {},
        links=Links.from_dict(item.get("links")),
    )


def _decode_included(payload: Dict[str, Any]) -> List[Resource[Dict[str, Any]]]:
    included = payload.get("included") or []
    if not isinstance(included, list):
        raise DecodeError("failed to parse response: included is not a list")
    return [_decode_resource(item, None) for item in included]


def decode_collection(
    raw: Union[bytes, str], attributes: Optional[AttributesFactory] = None
) -> Response:
    """
    Decode a collection envelope.

    Args:
        raw: Response body
        attributes: Optional callable converting each attributes mapping

    Raises:
        DecodeError: If the body is not JSON or ``data`` is not a list
    """
    payload = _load(raw)
    data = payload.get("data")
    if data is None:
        data = []
    if not isinstance(data, list):
        raise DecodeError("failed to parse response: expected data to be a list")
    meta = payload.get("meta")
    return Response(
        data=[_decode_resource(item, attributes) for item in data],
        included=_decode_included(payload),
        links=Links.from_dict(payload.get("links")),
        meta=meta if isinstance(meta, dict) else {},
    )


def decode_single(
    raw: Union[bytes, str], attributes: Optional[AttributesFactory] = None
) -> SingleResponse:
    """
    Decode a single-resource envelope.

    Raises:
        DecodeError: If the body is not JSON or ``data`` is not an object
    """
    payload = _load(raw)
    data = payload.get("data")
    if not isinstance(data, dict):
        raise DecodeError("failed to parse response: expected data to be an object")
    return SingleResponse(
        data=_decode_resource(data, attributes),
        included=_decode_included(payload),
        links=Links.from_dict(payload.get("links")),
    )


def _encode_relationship(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"data": None}
    if isinstance(value, ResourceReference):
        return {"data": value.to_dict()}
    if isinstance(value, (list, tuple)):
        return {"data": [ref.to_dict() for ref in value]}
    raise ValidationError(f"Unsupported relationship value: {value!r}")


def build_resource(
    resource_type: Union[ResourceType, str],
    attributes: Optional[Mapping[str, Any]] = None,
    resource_id: Optional[str] = None,
    relationships: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Build one JSON:API resource object, omitting None-valued attributes."""
    resource: Dict[str, Any] = {"type": str(resource_type)}
    if resource_id:
        resource["id"] = resource_id
    if attributes:
        attrs = {k: v for k, v in attributes.items() if v is not None}
        if attrs:
            resource["attributes"] = attrs
    if relationships:
        resource["relationships"] = {
            name: _encode_relationship(value) for name, value in relationships.items()
        }
    return resource


def build_request_body(
    resource_type: Union[ResourceType, str],
    attributes: Optional[Mapping[str, Any]] = None,
    resource_id: Optional[str] = None,
    relationships: Optional[Mapping[str, Any]] = None,
    included: Optional[Sequence[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Build a create/update request envelope.

    Inline-created related resources go in ``included`` (build them with
    build_resource) and are referenced by local placeholder IDs such as
    ``${local-price-1}``.
    """
    body: Dict[str, Any] = {
        "data": build_resource(resource_type, attributes, resource_id, relationships)
    }
    if included:
        body["included"] = list(included)
    return body


def local_id(prefix: str, index: int) -> str:
    """Placeholder ID for an inline-created resource, e.g. ``${local-price-1}``."""
    return "${local-%s-%d}" % (prefix, index)
