"""
Query builders for list endpoints.

Each endpoint has a dataclass query inheriting ListQuery. Every field covers
one concern (a filter, the sort order, the page size) and fields compose
freely. A next-cursor URL wins over everything else: when set, no filter is
serialised and the cursor is requested verbatim.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlsplit

from .exceptions import ValidationError

MAX_LIMIT = 200

QueryParams = List[Tuple[str, str]]


def normalize_list(values: Optional[Iterable[str]]) -> List[str]:
    """Trim values, dropping blanks and duplicates while keeping order."""
    normalized: List[str] = []
    for value in values or []:
        value = str(value).strip()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def normalize_upper_list(values: Optional[Iterable[str]]) -> List[str]:
    """Like normalize_list, upper-casing enumerated values (IOS, MAC_OS, ...)."""
    return normalize_list(str(v).strip().upper() for v in values or [])


def add_csv(params: QueryParams, key: str, values: Optional[Iterable[str]]) -> None:
    items = normalize_list(values)
    if items:
        params.append((key, ",".join(items)))


def add_upper_csv(params: QueryParams, key: str, values: Optional[Iterable[str]]) -> None:
    items = normalize_upper_list(values)
    if items:
        params.append((key, ",".join(items)))


def add_value(params: QueryParams, key: str, value: Optional[str]) -> None:
    value = str(value or "").strip()
    if value:
        params.append((key, value))


def add_limit(params: QueryParams, limit: int) -> None:
    if limit > 0:
        params.append(("limit", str(limit)))


def encode_params(params: QueryParams) -> str:
    """
    Encode params canonically: keys sorted, brackets and commas kept literal.

    Returns an empty string (no ``?``) when there is nothing to encode.
    """
    return "&".join(
        f"{quote(key, safe='[].')}={quote(value, safe=',.:-_')}"
        for key, value in sorted(params, key=lambda kv: kv[0])
    )


def validate_next_url(next_url: str, base_url: str) -> None:
    """
    Reject pagination cursors that point away from the API.

    Relative cursors are accepted. Absolute cursors must use https and the
    same host as ``base_url`` so the bearer token never leaves the API origin.

    Raises:
        ValidationError: If the cursor URL is on another host or scheme
    """
    if not next_url:
        return
    if not next_url.startswith(("http://", "https://")):
        return
    try:
        parsed = urlsplit(next_url)
        base = urlsplit(base_url)
    except ValueError as e:
        raise ValidationError(f"invalid pagination URL: {e}")

    if parsed.netloc != base.netloc:
        raise ValidationError(
            f"rejected pagination URL from untrusted host {parsed.netloc!r} "
            f"(expected {base.netloc!r})"
        )
    if parsed.scheme != "https":
        raise ValidationError(
            f"rejected pagination URL with insecure scheme {parsed.scheme!r} "
            "(expected https)"
        )


@dataclass
class ListQuery:
    """Common state for every list endpoint: page size and next cursor."""

    limit: int = 0
    next_url: str = ""

    def __post_init__(self):
        if self.limit > MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}, got {self.limit}")

    def params(self) -> QueryParams:
        """Endpoint-specific filters; subclasses extend this."""
        return []

    def build(self) -> str:
        """Serialise filters, sort and limit (ignores next_url)."""
        params = self.params()
        add_limit(params, self.limit)
        return encode_params(params)

    def resolve_path(self, path: str, base_url: str) -> str:
        """
        Return the request target for this query.

        Raises:
            ValidationError: If next_url points outside the API origin
        """
        next_url = (self.next_url or "").strip()
        if next_url:
            validate_next_url(next_url, base_url)
            return next_url
        query_string = self.build()
        if query_string:
            return f"{path}?{query_string}"
        return path


@dataclass
class AppsQuery(ListQuery):
    bundle_ids: Sequence[str] = field(default_factory=list)
    names: Sequence[str] = field(default_factory=list)
    skus: Sequence[str] = field(default_factory=list)
    sort: Sequence[str] = field(default_factory=list)

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_csv(params, "filter[bundleId]", self.bundle_ids)
        add_csv(params, "filter[name]", self.names)
        add_csv(params, "filter[sku]", self.skus)
        add_csv(params, "sort", self.sort)
        return params


@dataclass
class BuildsQuery(ListQuery):
    app_ids: Sequence[str] = field(default_factory=list)
    versions: Sequence[str] = field(default_factory=list)
    pre_release_version_ids: Sequence[str] = field(default_factory=list)
    processing_states: Sequence[str] = field(default_factory=list)
    platforms: Sequence[str] = field(default_factory=list)
    expired: Optional[bool] = None
    sort: Sequence[str] = field(default_factory=list)

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_csv(params, "filter[app]", self.app_ids)
        add_csv(params, "filter[version]", self.versions)
        add_csv(params, "filter[preReleaseVersion]", self.pre_release_version_ids)
        add_upper_csv(params, "filter[processingState]", self.processing_states)
        add_upper_csv(params, "filter[preReleaseVersion.platform]", self.platforms)
        if self.expired is not None:
            params.append(("filter[expired]", "true" if self.expired else "false"))
        add_csv(params, "sort", self.sort)
        return params


@dataclass
class AppStoreVersionsQuery(ListQuery):
    platforms: Sequence[str] = field(default_factory=list)
    version_strings: Sequence[str] = field(default_factory=list)
    states: Sequence[str] = field(default_factory=list)
    include: Sequence[str] = field(default_factory=list)

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_upper_csv(params, "filter[platform]", self.platforms)
        add_csv(params, "filter[versionString]", self.version_strings)
        add_upper_csv(params, "filter[appStoreState]", self.states)
        add_csv(params, "include", self.include)
        return params


@dataclass
class _SubmissionQuery(ListQuery):
    device_models: Sequence[str] = field(default_factory=list)
    os_versions: Sequence[str] = field(default_factory=list)
    app_platforms: Sequence[str] = field(default_factory=list)
    device_platforms: Sequence[str] = field(default_factory=list)
    build_ids: Sequence[str] = field(default_factory=list)
    build_pre_release_version_ids: Sequence[str] = field(default_factory=list)
    tester_ids: Sequence[str] = field(default_factory=list)
    sort: Sequence[str] = field(default_factory=list)

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_csv(params, "filter[deviceModel]", self.device_models)
        add_csv(params, "filter[osVersion]", self.os_versions)
        add_upper_csv(params, "filter[appPlatform]", self.app_platforms)
        add_upper_csv(params, "filter[devicePlatform]", self.device_platforms)
        add_csv(params, "filter[build]", self.build_ids)
        add_csv(params, "filter[build.preReleaseVersion]", self.build_pre_release_version_ids)
        add_csv(params, "filter[tester]", self.tester_ids)
        add_csv(params, "sort", self.sort)
        return params


@dataclass
class FeedbackQuery(_SubmissionQuery):
    include_screenshots: bool = False

    SCREENSHOT_FIELDS = (
        "createdDate",
        "comment",
        "email",
        "deviceModel",
        "osVersion",
        "appPlatform",
        "devicePlatform",
        "screenshots",
    )

    def params(self) -> QueryParams:
        params = super().params()
        if self.include_screenshots:
            add_csv(params, "fields[betaFeedbackScreenshotSubmissions]", self.SCREENSHOT_FIELDS)
        return params


@dataclass
class CrashQuery(_SubmissionQuery):
    pass


@dataclass
class ReviewQuery(ListQuery):
    rating: int = 0
    territory: str = ""
    sort: Sequence[str] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        if self.rating and not 1 <= self.rating <= 5:
            raise ValidationError(f"rating must be between 1 and 5, got {self.rating}")

    def params(self) -> QueryParams:
        params: QueryParams = []
        if self.rating:
            params.append(("filter[rating]", str(self.rating)))
        add_value(params, "filter[territory]", self.territory.upper())
        add_csv(params, "sort", self.sort)
        return params


@dataclass
class BetaGroupsQuery(ListQuery):
    names: Sequence[str] = field(default_factory=list)
    is_internal: Optional[bool] = None

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_csv(params, "filter[name]", self.names)
        if self.is_internal is not None:
            params.append(("filter[isInternalGroup]", "true" if self.is_internal else "false"))
        return params


@dataclass
class BetaTestersQuery(ListQuery):
    app_ids: Sequence[str] = field(default_factory=list)
    emails: Sequence[str] = field(default_factory=list)
    group_ids: Sequence[str] = field(default_factory=list)
    build_ids: Sequence[str] = field(default_factory=list)

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_csv(params, "filter[email]", self.emails)
        add_csv(params, "filter[betaGroups]", self.group_ids)
        # Only one relationship filter is accepted; builds is the narrower one.
        if normalize_list(self.build_ids):
            add_csv(params, "filter[builds]", self.build_ids)
        else:
            add_csv(params, "filter[apps]", self.app_ids)
        return params


@dataclass
class MarketplaceWebhooksQuery(ListQuery):
    fields: Sequence[str] = field(default_factory=list)

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_csv(params, "fields[marketplaceWebhooks]", self.fields)
        return params


@dataclass
class InAppPurchasesQuery(ListQuery):
    names: Sequence[str] = field(default_factory=list)
    product_ids: Sequence[str] = field(default_factory=list)
    types: Sequence[str] = field(default_factory=list)
    states: Sequence[str] = field(default_factory=list)
    sort: Sequence[str] = field(default_factory=list)

    def params(self) -> QueryParams:
        params: QueryParams = []
        add_csv(params, "filter[name]", self.names)
        add_csv(params, "filter[productId]", self.product_ids)
        add_upper_csv(params, "filter[inAppPurchaseType]", self.types)
        add_upper_csv(params, "filter[state]", self.states)
        add_csv(params, "sort", self.sort)
        return params
