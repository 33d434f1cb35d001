"""
Attribute shapes for the resources exposed by AppStoreConnectAPI.

These are TypedDicts: at runtime the decoded attributes stay plain dicts,
while ``Response[BuildAttributes]`` and friends keep call sites typed.
"""

from typing import Any, Dict, List, Optional, TypedDict

from .envelope import Response, SingleResponse


BUILD_PROCESSING_STATE_PROCESSING = "PROCESSING"
BUILD_PROCESSING_STATE_FAILED = "FAILED"
BUILD_PROCESSING_STATE_INVALID = "INVALID"
BUILD_PROCESSING_STATE_VALID = "VALID"

EDITABLE_VERSION_STATES = [
    "PREPARE_FOR_SUBMISSION",
    "WAITING_FOR_REVIEW",
    "IN_REVIEW",
    "DEVELOPER_REJECTED",
    "REJECTED",
]


class AppAttributes(TypedDict, total=False):
    name: str
    bundleId: str
    sku: str
    primaryLocale: str


class BuildAttributes(TypedDict, total=False):
    version: str
    uploadedDate: str
    expirationDate: str
    processingState: str
    minOsVersion: str
    usesNonExemptEncryption: bool
    expired: bool


class AppStoreVersionAttributes(TypedDict, total=False):
    platform: str
    versionString: str
    appStoreState: str
    appVersionState: str
    copyright: str
    releaseType: str
    earliestReleaseDate: Optional[str]
    createdDate: str


class FeedbackScreenshotImage(TypedDict, total=False):
    url: str
    width: int
    height: int
    expirationDate: str


class FeedbackAttributes(TypedDict, total=False):
    createdDate: str
    comment: str
    email: str
    deviceModel: str
    osVersion: str
    appPlatform: str
    devicePlatform: str
    screenshots: List[FeedbackScreenshotImage]


class CrashAttributes(TypedDict, total=False):
    createdDate: str
    comment: str
    email: str
    deviceModel: str
    osVersion: str
    appPlatform: str
    devicePlatform: str
    crashLog: str


class ReviewAttributes(TypedDict, total=False):
    rating: int
    title: str
    body: str
    reviewerNickname: str
    createdDate: str
    territory: str


class BetaGroupAttributes(TypedDict, total=False):
    name: str
    createdDate: str
    isInternalGroup: bool
    hasAccessToAllBuilds: bool
    publicLinkEnabled: bool
    publicLink: str
    feedbackEnabled: bool


class BetaTesterAttributes(TypedDict, total=False):
    firstName: str
    lastName: str
    email: str
    inviteType: str
    state: str


class MarketplaceWebhookAttributes(TypedDict, total=False):
    endpointUrl: str
    secret: str


class InAppPurchaseAttributes(TypedDict, total=False):
    name: str
    productId: str
    inAppPurchaseType: str
    state: str
    reviewNote: str
    familySharable: bool
    contentHosting: bool


AppsResponse = Response[AppAttributes]
AppResponse = SingleResponse[AppAttributes]
BuildsResponse = Response[BuildAttributes]
BuildResponse = SingleResponse[BuildAttributes]
AppStoreVersionsResponse = Response[AppStoreVersionAttributes]
AppStoreVersionResponse = SingleResponse[AppStoreVersionAttributes]
FeedbackResponse = Response[FeedbackAttributes]
CrashesResponse = Response[CrashAttributes]
ReviewsResponse = Response[ReviewAttributes]
BetaGroupsResponse = Response[BetaGroupAttributes]
BetaGroupResponse = SingleResponse[BetaGroupAttributes]
BetaTestersResponse = Response[BetaTesterAttributes]
MarketplaceWebhooksResponse = Response[MarketplaceWebhookAttributes]
MarketplaceWebhookResponse = SingleResponse[MarketplaceWebhookAttributes]
InAppPurchasesResponse = Response[InAppPurchaseAttributes]
PriceScheduleResponse = SingleResponse[Dict[str, Any]]
