"""
Tests for query building and next-cursor handling.
"""

import pytest

from asc_client.exceptions import ValidationError
from asc_client.query import (
    AppStoreVersionsQuery,
    AppsQuery,
    BetaGroupsQuery,
    BetaTestersQuery,
    BuildsQuery,
    CrashQuery,
    FeedbackQuery,
    InAppPurchasesQuery,
    ListQuery,
    ReviewQuery,
    encode_params,
    normalize_list,
    normalize_upper_list,
    validate_next_url,
)

BASE = "https://api.appstoreconnect.apple.com"


class TestLimit:
    """Test the limit parameter."""

    @pytest.mark.parametrize("limit", [1, 50, 200])
    def test_positive_limit(self, limit):
        assert ListQuery(limit=limit).build() == f"limit={limit}"

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_omitted(self, limit):
        assert ListQuery(limit=limit).build() == ""

    def test_limit_above_maximum(self):
        with pytest.raises(ValidationError, match="limit must be between 1 and 200"):
            AppsQuery(limit=201)


class TestNormalization:
    """Test trimming, deduplication and casing of multi-value filters."""

    def test_normalize_list(self):
        assert normalize_list([" a ", "", "b", "a", "  ", "c"]) == ["a", "b", "c"]

    def test_normalize_list_none(self):
        assert normalize_list(None) == []

    def test_normalize_upper_list(self):
        assert normalize_upper_list(["ios", " IOS", "mac_os"]) == ["IOS", "MAC_OS"]

    def test_filters_are_joined_in_order(self):
        query = AppsQuery(bundle_ids=[" com.b ", "com.a", "", "com.b"])
        assert query.build() == "filter[bundleId]=com.b,com.a"

    def test_enumerated_values_upper_cased(self):
        query = AppStoreVersionsQuery(platforms=["ios", "tv_os"], states=["ready_for_sale"])
        assert query.build() == (
            "filter[appStoreState]=READY_FOR_SALE&filter[platform]=IOS,TV_OS"
        )


class TestEncoding:
    """Test canonical query string encoding."""

    def test_empty_query(self):
        """Zero options produce an empty string, so no '?' is appended."""
        assert AppsQuery().build() == ""
        assert AppsQuery().resolve_path("/v1/apps", BASE) == "/v1/apps"

    def test_keys_sorted(self):
        assert encode_params([("sort", "name"), ("filter[sku]", "X"), ("limit", "5")]) == (
            "filter[sku]=X&limit=5&sort=name"
        )

    def test_special_characters_escaped(self):
        assert encode_params([("filter[email]", "a+b@example.com")]) == (
            "filter[email]=a%2Bb%40example.com"
        )

    def test_build_is_idempotent(self):
        query = BuildsQuery(
            versions=["42", "43"], processing_states=["valid"], sort=["-uploadedDate"], limit=10
        )
        assert query.build() == query.build()

    def test_builds_query(self):
        query = BuildsQuery(
            app_ids=["123"],
            processing_states=["processing", "valid"],
            platforms=["ios"],
            expired=False,
            sort=["-uploadedDate"],
            limit=5,
        )
        assert query.build() == (
            "filter[app]=123&filter[expired]=false"
            "&filter[preReleaseVersion.platform]=IOS"
            "&filter[processingState]=PROCESSING,VALID"
            "&limit=5&sort=-uploadedDate"
        )

    def test_sort_is_ordered_list(self):
        query = AppsQuery(sort=["name", "-bundleId"])
        assert query.build() == "sort=name,-bundleId"


class TestNextURL:
    """Test next-cursor precedence and validation."""

    def test_next_url_wins_over_filters(self):
        next_url = f"{BASE}/v1/apps?cursor=abc"
        query = AppsQuery(bundle_ids=["com.a"], sort=["name"], limit=20, next_url=next_url)
        assert query.resolve_path("/v1/apps", BASE) == next_url

    def test_next_url_trimmed(self):
        next_url = f"{BASE}/v1/apps?cursor=abc"
        assert AppsQuery(next_url=f"  {next_url} ").resolve_path("/v1/apps", BASE) == next_url

    def test_relative_next_url_accepted(self):
        assert AppsQuery(next_url="/v1/apps?cursor=abc").resolve_path("/v1/apps", BASE) == (
            "/v1/apps?cursor=abc"
        )

    def test_foreign_host_rejected(self):
        query = AppsQuery(next_url="https://attacker.example.com/v1/apps?cursor=abc")
        with pytest.raises(ValidationError, match="untrusted host"):
            query.resolve_path("/v1/apps", BASE)

    def test_insecure_scheme_rejected(self):
        with pytest.raises(ValidationError, match="insecure scheme"):
            validate_next_url("http://api.appstoreconnect.apple.com/v1/apps", BASE)

    def test_empty_next_url_accepted(self):
        validate_next_url("", BASE)


class TestEndpointQueries:
    """Test endpoint-specific query fields."""

    def test_feedback_with_screenshots(self):
        query = FeedbackQuery(device_models=["iPhone15,3"], include_screenshots=True)
        built = query.build()
        assert "filter[deviceModel]=iPhone15,3" in built
        assert "fields[betaFeedbackScreenshotSubmissions]=createdDate,comment," in built
        assert ",devicePlatform,screenshots" in built

    def test_crash_query(self):
        query = CrashQuery(app_platforms=["ios"], device_platforms=["ios"], build_ids=["b1"])
        assert query.build() == (
            "filter[appPlatform]=IOS&filter[build]=b1&filter[devicePlatform]=IOS"
        )

    def test_review_query(self):
        query = ReviewQuery(rating=5, territory="usa", sort=["-createdDate"])
        assert query.build() == "filter[rating]=5&filter[territory]=USA&sort=-createdDate"

    @pytest.mark.parametrize("rating", [-1, 6])
    def test_review_rating_range(self, rating):
        with pytest.raises(ValidationError, match="rating"):
            ReviewQuery(rating=rating)

    def test_beta_groups_internal_filter(self):
        assert BetaGroupsQuery(is_internal=True).build() == "filter[isInternalGroup]=true"

    def test_beta_testers_prefers_build_filter(self):
        query = BetaTestersQuery(app_ids=["123"], build_ids=["b1"])
        assert query.build() == "filter[builds]=b1"

    def test_in_app_purchases_query(self):
        query = InAppPurchasesQuery(types=["consumable"], states=["approved"])
        assert query.build() == (
            "filter[inAppPurchaseType]=CONSUMABLE&filter[state]=APPROVED"
        )
