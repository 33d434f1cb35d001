"""
Apple App Store Connect API client.

This module provides the request dispatcher (AppStoreConnectAPI.do) and the
endpoint methods built on top of it. Every endpoint method validates its
identifiers, builds its query or request envelope, sends exactly one request
and decodes the JSON:API envelope it gets back.
"""

import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from ratelimit import RateLimitException, limits

from .auth import Credential, TokenManager
from .deadline import Deadline, call_with_deadline, effective_timeout
from .envelope import (
    Platform,
    Response,
    ResourceReference,
    ResourceType,
    SingleResponse,
    build_request_body,
    build_resource,
    decode_collection,
    decode_single,
    local_id,
)
from .exceptions import (
    CancelledError,
    TransportError,
    ValidationError,
    parse_error,
)
from .pagination import iter_pages, paginate_all
from .polling import DEFAULT_POLL_INTERVAL, poll_until
from .query import (
    AppStoreVersionsQuery,
    AppsQuery,
    BetaGroupsQuery,
    BetaTestersQuery,
    BuildsQuery,
    CrashQuery,
    FeedbackQuery,
    InAppPurchasesQuery,
    ListQuery,
    MarketplaceWebhooksQuery,
    ReviewQuery,
    validate_next_url,
)
from .resources import (
    BUILD_PROCESSING_STATE_FAILED,
    BUILD_PROCESSING_STATE_INVALID,
    BUILD_PROCESSING_STATE_VALID,
    AppResponse,
    AppsResponse,
    AppStoreVersionResponse,
    AppStoreVersionsResponse,
    BetaGroupResponse,
    BetaGroupsResponse,
    BetaTestersResponse,
    BuildResponse,
    BuildsResponse,
    CrashesResponse,
    FeedbackResponse,
    InAppPurchasesResponse,
    MarketplaceWebhookResponse,
    MarketplaceWebhooksResponse,
    PriceScheduleResponse,
    ReviewsResponse,
)

logger = logging.getLogger(__name__)

Body = Union[bytes, str, Mapping[str, Any], None]

_SENSITIVE_QUERY_MARKERS = ("signature", "token", "secret", "credential", "key", "x-amz-")


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """
    Parse a Retry-After header given as delay seconds or an HTTP date.

    Returns:
        Seconds to wait, or None when the header is absent, invalid or in the past
    """
    value = (value or "").strip()
    if not value:
        return None
    if value.isdigit():
        seconds = int(value)
        return float(seconds) if seconds > 0 else None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    delay = (when - (now or datetime.now(timezone.utc))).total_seconds()
    return delay if delay > 0 else None


def sanitize_url(url: str) -> str:
    """Redact signed or credential-like query values before logging a URL."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    pairs = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if any(marker in key.lower() for marker in _SENSITIVE_QUERY_MARKERS):
            value = "REDACTED"
        pairs.append((key, value))
    query = urlencode(pairs, safe="[],")
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def _require(value: Optional[str], name: str) -> str:
    value = str(value or "").strip()
    if not value:
        raise ValidationError(f"{name} is required")
    return value


class AppStoreConnectAPI:
    """
    Apple App Store Connect API client.

    A client is safe to share between threads: the only shared mutable state
    is the cached bearer token, which the TokenManager guards with a lock.

    Args:
        key_id: Your App Store Connect API key ID
        issuer_id: Your App Store Connect API issuer ID
        private_key_path: Path to your .p8 private key file
        private_key: PEM contents of the private key (instead of a path)
        base_url: API origin; relative request paths are joined to it
        timeout: Per-request timeout in seconds
        token_lifetime: Bearer token lifetime in seconds (at most 20 minutes)
        session: requests.Session to send requests with
    """

    BASE_URL = "https://api.appstoreconnect.apple.com"

    def __init__(
        self,
        key_id: str,
        issuer_id: str,
        private_key_path: Optional[Union[str, Path]] = None,
        private_key: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: Optional[float] = 30.0,
        token_lifetime: Optional[Union[float, timedelta]] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the App Store Connect API client."""
        if private_key:
            credential = Credential(key_id=key_id, issuer_id=issuer_id, private_key=private_key)
        elif private_key_path:
            credential = Credential.from_file(key_id, issuer_id, private_key_path)
        else:
            raise ValidationError("Missing required authentication parameters")

        if token_lifetime is not None and not isinstance(token_lifetime, timedelta):
            token_lifetime = timedelta(seconds=token_lifetime)

        self.key_id = key_id
        self.issuer_id = issuer_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.tokens = TokenManager(credential, lifetime=token_lifetime)
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None):
        """Build a client from resolved configuration (see asc_client.config)."""
        return cls(
            key_id=settings.key_id,
            issuer_id=settings.issuer_id,
            private_key_path=settings.private_key_path or None,
            private_key=settings.private_key or None,
            timeout=settings.timeout,
            token_lifetime=settings.token_lifetime,
            session=session,
        )

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ===== REQUEST DISPATCH =====

    def _generate_token(self) -> str:
        """Return a bearer token, minting a new one when the cached one is stale."""
        return self.tokens.token()

    def _get_headers(self, accept: Optional[str] = None) -> Dict[str, str]:
        """Get headers for API requests."""
        token = self._generate_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": accept or "application/json",
        }

    def _resolve_url(self, path: str) -> str:
        path = (path or "").strip()
        if not path:
            raise ValidationError("Request path is required")
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    @staticmethod
    def _encode_body(body: Body) -> Optional[bytes]:
        if body is None:
            return None
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8")
        try:
            return json.dumps(body).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Failed to encode request body: {e}")

    def _make_request_raw(
        self,
        method: str,
        url: str,
        data: Optional[bytes] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
        accept: Optional[str] = None,
        stream: bool = False,
    ) -> requests.Response:
        """Send one request; transport failures become TransportError."""
        headers = self._get_headers(accept)
        try:
            return self.session.request(
                method=method,
                url=url,
                headers=headers,
                data=data,
                timeout=timeout,
                stream=stream,
            )
        except requests.exceptions.Timeout as e:
            if deadline is not None and deadline.expired:
                logger.warning(f"_make_request: {method} {sanitize_url(url)} {deadline.reason()}")
                raise CancelledError(f"request cancelled: {deadline.reason()}")
            logger.error(f"_make_request: Request timed out after {timeout}s: {e}")
            raise TransportError(f"request failed: {e}")
        except requests.exceptions.RequestException as e:
            logger.error(f"_make_request: Request failed: {e}")
            raise TransportError(f"request failed: {e}")

    @limits(calls=3500, period=3600)  # Apple's rate limit
    def _take_rate_limit_slot(self) -> None:
        """Count one request against the hourly limit."""

    def _wait_for_rate_limit(self, deadline: Optional[Deadline] = None) -> None:
        """Block until the hourly limit allows another request or the deadline expires."""
        deadline = deadline or Deadline()
        while True:
            deadline.check()
            try:
                return self._take_rate_limit_slot()
            except RateLimitException as e:
                logger.warning(
                    f"_make_request: rate limit reached, waiting {e.period_remaining:.0f}s"
                )
                deadline.sleep(e.period_remaining)

    def _make_request(
        self,
        method: str,
        url: str,
        data: Optional[bytes] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
        accept: Optional[str] = None,
    ) -> Tuple[int, Mapping[str, str], bytes]:
        """
        Rate-limited send returning status, headers and the fully read body.

        With a deadline the request runs on a worker thread and is abandoned
        (its response closed) as soon as the deadline expires or is cancelled,
        including while the body is still arriving.
        """
        self._wait_for_rate_limit(deadline)
        if deadline is None:
            response = self._make_request_raw(method, url, data, timeout, None, accept)
            return response.status_code, response.headers, response.content or b""

        in_flight: Dict[str, requests.Response] = {}

        def send() -> Tuple[int, Mapping[str, str], bytes]:
            response = self._make_request_raw(
                method, url, data, effective_timeout(timeout, deadline), deadline, accept,
                stream=True,
            )
            in_flight["response"] = response
            if deadline.expired:
                response.close()
                raise CancelledError(f"request cancelled: {deadline.reason()}")
            try:
                content = response.content or b""
            except requests.exceptions.RequestException as e:
                if deadline.expired:
                    raise CancelledError(f"request cancelled: {deadline.reason()}")
                raise TransportError(f"request failed: {e}")
            return response.status_code, response.headers, content

        def abandon() -> None:
            logger.warning(f"_make_request: {method} {sanitize_url(url)} {deadline.reason()}")
            response = in_flight.get("response")
            if response is not None:
                response.close()

        return call_with_deadline(send, deadline, on_abandon=abandon)

    def do(
        self,
        method: str,
        path: str,
        body: Body = None,
        deadline: Optional[Deadline] = None,
        accept: Optional[str] = None,
    ) -> bytes:
        """
        Send one request and return the raw response body.

        Args:
            method: HTTP method
            path: API path such as ``/v1/apps`` or an absolute URL (used verbatim)
            body: Request body as bytes, str or a JSON-serialisable mapping
            deadline: Cancellation/deadline signal bounding the call
            accept: Accept header override

        Returns:
            The response body; empty for bodiless responses such as 204

        Raises:
            ValidationError: If the path or body is unusable
            CancelledError: If the deadline expired or was cancelled
            TransportError: On network failures
            APIError: On non-2xx responses, classified by parse_error()
        """
        method = method.upper()
        url = self._resolve_url(path)
        payload = self._encode_body(body)

        if deadline is not None:
            deadline.check()
        timeout = effective_timeout(self.timeout, deadline)
        if timeout is not None and timeout <= 0:
            raise CancelledError("request cancelled: deadline exceeded")

        started = time.monotonic()
        status_code, headers, content = self._make_request(
            method, url, data=payload, timeout=timeout, deadline=deadline, accept=accept
        )
        elapsed = time.monotonic() - started
        logger.debug(
            f"do: {method} {sanitize_url(url)} status={status_code} elapsed={elapsed:.3f}s"
        )

        if deadline is not None and deadline.expired:
            raise CancelledError(f"request cancelled: {deadline.reason()}")

        if 200 <= status_code < 300:
            return content

        retry_after = None
        if status_code in (429, 503):
            retry_after = parse_retry_after(headers.get("Retry-After"))
        error = parse_error(content, status_code, retry_after)
        logger.debug(f"do: API error {status_code}: {error}")
        raise error

    # ===== TYPED HELPERS =====

    def _get_collection(
        self,
        path: str,
        query: Optional[ListQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> Response:
        target = query.resolve_path(path, self.base_url) if query else path
        return decode_collection(self.do("GET", target, deadline=deadline))

    def _get_single(self, path: str, deadline: Optional[Deadline] = None) -> SingleResponse:
        return decode_single(self.do("GET", path, deadline=deadline))

    def _post(self, path: str, body: Body, deadline: Optional[Deadline] = None) -> SingleResponse:
        return decode_single(self.do("POST", path, body, deadline=deadline))

    def _patch(self, path: str, body: Body, deadline: Optional[Deadline] = None) -> SingleResponse:
        return decode_single(self.do("PATCH", path, body, deadline=deadline))

    def _delete(self, path: str, deadline: Optional[Deadline] = None) -> None:
        self.do("DELETE", path, deadline=deadline)

    def get_page(self, next_url: str, deadline: Optional[Deadline] = None) -> Response:
        """Get the collection page at a ``links.next`` URL."""
        next_url = _require(next_url, "next URL")
        validate_next_url(next_url, self.base_url)
        return decode_collection(self.do("GET", next_url, deadline=deadline))

    def _fetch_next(self, deadline: Optional[Deadline] = None):
        return lambda next_url: self.get_page(next_url, deadline)

    def paginate(self, first_page: Response, deadline: Optional[Deadline] = None) -> Response:
        """Follow ``links.next`` from ``first_page`` and return every page merged."""
        return paginate_all(first_page, self._fetch_next(deadline), deadline)

    def iter_pages(
        self, first_page: Response, deadline: Optional[Deadline] = None
    ) -> Iterator[Response]:
        """Yield ``first_page`` and each following page lazily."""
        return iter_pages(first_page, self._fetch_next(deadline), deadline)

    # ===== APPS =====

    def get_apps(
        self, query: Optional[AppsQuery] = None, deadline: Optional[Deadline] = None
    ) -> AppsResponse:
        """Get apps for the account."""
        return self._get_collection("/v1/apps", query, deadline)

    def get_app(self, app_id: str, deadline: Optional[Deadline] = None) -> AppResponse:
        """Get a single app by ID."""
        app_id = _require(app_id, "app ID")
        return self._get_single(f"/v1/apps/{app_id}", deadline)

    # ===== BUILDS =====

    def get_builds(
        self,
        app_id: str,
        query: Optional[BuildsQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> BuildsResponse:
        """
        Get builds for an app.

        The app-scoped endpoint accepts no filters, sort or limit, so any
        query that serialises to something is sent to ``/v1/builds`` with
        ``filter[app]`` set instead.
        """
        app_id = _require(app_id, "app ID")
        query = query or BuildsQuery()
        if query.next_url or not query.build():
            return self._get_collection(f"/v1/apps/{app_id}/builds", query, deadline)
        if not query.app_ids:
            query = replace(query, app_ids=[app_id])
        return self._get_collection("/v1/builds", query, deadline)

    def get_build(self, build_id: str, deadline: Optional[Deadline] = None) -> BuildResponse:
        """Get a single build by ID."""
        build_id = _require(build_id, "build ID")
        return self._get_single(f"/v1/builds/{build_id}", deadline)

    def expire_build(self, build_id: str, deadline: Optional[Deadline] = None) -> BuildResponse:
        """Expire a build so it is no longer available for TestFlight testing."""
        build_id = _require(build_id, "build ID")
        body = build_request_body(
            ResourceType.BUILDS, {"expired": True}, resource_id=build_id
        )
        return self._patch(f"/v1/builds/{build_id}", body, deadline)

    def wait_for_build_processing(
        self,
        build_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        deadline: Optional[Deadline] = None,
    ) -> BuildResponse:
        """
        Poll a build until processing finishes.

        Returns:
            The build once its processing state is VALID

        Raises:
            PollingError: If the build ends up INVALID or FAILED
            CancelledError: If the deadline elapses first
        """
        build_id = _require(build_id, "build ID")
        return poll_until(
            fetch=lambda: self.get_build(build_id, deadline),
            state_of=lambda build: build.data.attributes.get("processingState", ""),
            success_states=[BUILD_PROCESSING_STATE_VALID],
            failure_states=[BUILD_PROCESSING_STATE_INVALID, BUILD_PROCESSING_STATE_FAILED],
            interval=poll_interval,
            deadline=deadline,
            description=f"build {build_id}",
        )

    # ===== APP STORE VERSIONS =====

    def get_app_store_versions(
        self,
        app_id: str,
        query: Optional[AppStoreVersionsQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> AppStoreVersionsResponse:
        """Get all App Store versions for an app."""
        app_id = _require(app_id, "app ID")
        return self._get_collection(f"/v1/apps/{app_id}/appStoreVersions", query, deadline)

    def create_app_store_version(
        self,
        app_id: str,
        version_string: str,
        platform: Union[Platform, str] = Platform.IOS,
        copyright: Optional[str] = None,
        release_type: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> AppStoreVersionResponse:
        """Create a new App Store version."""
        app_id = _require(app_id, "app ID")
        version_string = _require(version_string, "version string")
        body = build_request_body(
            ResourceType.APP_STORE_VERSIONS,
            {
                "platform": str(platform).strip().upper(),
                "versionString": version_string,
                "copyright": copyright,
                "releaseType": release_type,
            },
            relationships={"app": ResourceReference(ResourceType.APPS, app_id)},
        )
        return self._post("/v1/appStoreVersions", body, deadline)

    def find_or_create_app_store_version(
        self,
        app_id: str,
        version_string: str,
        platform: Union[Platform, str] = Platform.IOS,
        deadline: Optional[Deadline] = None,
    ) -> AppStoreVersionResponse:
        """Return the version matching ``version_string`` on ``platform``, creating it if absent."""
        app_id = _require(app_id, "app ID")
        version_string = _require(version_string, "version string")
        query = AppStoreVersionsQuery(
            platforms=[str(platform)], version_strings=[version_string], limit=1
        )
        existing = self.get_app_store_versions(app_id, query, deadline)
        if existing.data:
            logger.info(
                f"find_or_create_app_store_version: found {version_string} "
                f"(id={existing.data[0].id})"
            )
            return SingleResponse(data=existing.data[0], included=existing.included)
        logger.info(f"find_or_create_app_store_version: creating {version_string}")
        return self.create_app_store_version(app_id, version_string, platform, deadline=deadline)

    # ===== TESTFLIGHT FEEDBACK =====

    def get_feedback(
        self,
        app_id: str,
        query: Optional[FeedbackQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> FeedbackResponse:
        """Get TestFlight screenshot feedback for an app."""
        app_id = _require(app_id, "app ID")
        return self._get_collection(
            f"/v1/apps/{app_id}/betaFeedbackScreenshotSubmissions", query, deadline
        )

    def get_crashes(
        self,
        app_id: str,
        query: Optional[CrashQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> CrashesResponse:
        """Get TestFlight crash submissions for an app."""
        app_id = _require(app_id, "app ID")
        return self._get_collection(
            f"/v1/apps/{app_id}/betaFeedbackCrashSubmissions", query, deadline
        )

    # ===== CUSTOMER REVIEWS =====

    def get_reviews(
        self,
        app_id: str,
        query: Optional[ReviewQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> ReviewsResponse:
        """Get customer reviews for an app."""
        app_id = _require(app_id, "app ID")
        return self._get_collection(f"/v1/apps/{app_id}/customerReviews", query, deadline)

    # ===== BETA GROUPS & TESTERS =====

    def get_beta_groups(
        self,
        app_id: str,
        query: Optional[BetaGroupsQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> BetaGroupsResponse:
        """Get TestFlight beta groups for an app."""
        app_id = _require(app_id, "app ID")
        return self._get_collection(f"/v1/apps/{app_id}/betaGroups", query, deadline)

    def create_beta_group(
        self, app_id: str, name: str, deadline: Optional[Deadline] = None
    ) -> BetaGroupResponse:
        """Create a beta group for an app."""
        app_id = _require(app_id, "app ID")
        name = _require(name, "group name")
        body = build_request_body(
            ResourceType.BETA_GROUPS,
            {"name": name},
            relationships={"app": ResourceReference(ResourceType.APPS, app_id)},
        )
        return self._post("/v1/betaGroups", body, deadline)

    def delete_beta_group(self, group_id: str, deadline: Optional[Deadline] = None) -> None:
        """Delete a beta group."""
        group_id = _require(group_id, "group ID")
        self._delete(f"/v1/betaGroups/{group_id}", deadline)

    def get_beta_testers(
        self,
        app_id: str,
        query: Optional[BetaTestersQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> BetaTestersResponse:
        """Get beta testers of an app (filtered through ``filter[apps]``)."""
        app_id = _require(app_id, "app ID")
        query = query or BetaTestersQuery()
        if not query.app_ids:
            query = replace(query, app_ids=[app_id])
        return self._get_collection("/v1/betaTesters", query, deadline)

    def delete_beta_tester(self, tester_id: str, deadline: Optional[Deadline] = None) -> None:
        """Remove a beta tester from all apps and groups."""
        tester_id = _require(tester_id, "tester ID")
        self._delete(f"/v1/betaTesters/{tester_id}", deadline)

    # ===== MARKETPLACE WEBHOOKS =====

    def get_marketplace_webhooks(
        self,
        query: Optional[MarketplaceWebhooksQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> MarketplaceWebhooksResponse:
        """Get the marketplace webhooks configured for the account."""
        return self._get_collection("/v1/marketplaceWebhooks", query, deadline)

    def create_marketplace_webhook(
        self, endpoint_url: str, secret: str, deadline: Optional[Deadline] = None
    ) -> MarketplaceWebhookResponse:
        """Register a marketplace webhook that receives App Store events."""
        endpoint_url = _require(endpoint_url, "endpoint URL")
        secret = _require(secret, "secret")
        body = build_request_body(
            ResourceType.MARKETPLACE_WEBHOOKS,
            {"endpointUrl": endpoint_url, "secret": secret},
        )
        return self._post("/v1/marketplaceWebhooks", body, deadline)

    def delete_marketplace_webhook(
        self, webhook_id: str, deadline: Optional[Deadline] = None
    ) -> None:
        """Delete a marketplace webhook."""
        webhook_id = _require(webhook_id, "webhook ID")
        self._delete(f"/v1/marketplaceWebhooks/{webhook_id}", deadline)

    # ===== IN-APP PURCHASES =====

    def get_in_app_purchases(
        self,
        app_id: str,
        query: Optional[InAppPurchasesQuery] = None,
        deadline: Optional[Deadline] = None,
    ) -> InAppPurchasesResponse:
        """Get in-app purchases for an app."""
        app_id = _require(app_id, "app ID")
        return self._get_collection(f"/v1/apps/{app_id}/inAppPurchases", query, deadline)

    def create_in_app_purchase_price_schedule(
        self,
        iap_id: str,
        base_territory_id: str,
        prices: List[Dict[str, str]],
        deadline: Optional[Deadline] = None,
    ) -> PriceScheduleResponse:
        """
        Create a manual price schedule for an in-app purchase.

        Args:
            iap_id: In-app purchase ID
            base_territory_id: Territory the prices are set in (e.g. USA)
            prices: One dict per price with ``price_point_id`` and optional
                ``start_date`` / ``end_date`` (YYYY-MM-DD)

        The prices are created inline: each one is sent in ``included`` under a
        ``${local-manual-price-N}`` placeholder ID referenced by the schedule.
        """
        iap_id = _require(iap_id, "in-app purchase ID")
        base_territory_id = _require(base_territory_id, "base territory ID").upper()
        if not prices:
            raise ValidationError("at least one price is required")

        iap = ResourceReference(ResourceType.IN_APP_PURCHASES, iap_id)
        included = []
        manual_prices = []
        for index, price in enumerate(prices, start=1):
            price_point_id = _require(price.get("price_point_id"), "price point ID")
            placeholder = local_id("manual-price", index)
            manual_prices.append(ResourceReference(ResourceType.IN_APP_PURCHASE_PRICES, placeholder))
            included.append(
                build_resource(
                    ResourceType.IN_APP_PURCHASE_PRICES,
                    {
                        "startDate": (price.get("start_date") or "").strip() or None,
                        "endDate": (price.get("end_date") or "").strip() or None,
                    },
                    resource_id=placeholder,
                    relationships={
                        "inAppPurchaseV2": iap,
                        "inAppPurchasePricePoint": ResourceReference(
                            ResourceType.IN_APP_PURCHASE_PRICE_POINTS, price_point_id
                        ),
                    },
                )
            )

        body = build_request_body(
            ResourceType.IN_APP_PURCHASE_PRICE_SCHEDULES,
            relationships={
                "inAppPurchase": iap,
                "baseTerritory": ResourceReference(ResourceType.TERRITORIES, base_territory_id),
                "manualPrices": manual_prices,
            },
            included=included,
        )
        return self._post("/v1/inAppPurchasePriceSchedules", body, deadline)
