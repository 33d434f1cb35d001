"""
Command line interface: ``asc``.

A thin layer over AppStoreConnectAPI. Each command resolves settings, builds a
client, calls one endpoint method and renders the envelope. Errors are printed
to stderr and mapped to the exit codes in asc_client.exit_codes.
"""

import json
import logging
from typing import Callable, List, Optional, TypeVar

import typer

from . import __version__
from .client import AppStoreConnectAPI
from .config import Settings, load_settings
from .deadline import Deadline
from .envelope import Response
from .exceptions import AppStoreConnectError, AuthenticationError
from .exit_codes import EXIT_INVALID_USAGE, exit_code_for
from .output import render
from .pagination import paginate_all
from .query import (
    AppStoreVersionsQuery,
    AppsQuery,
    BuildsQuery,
    CrashQuery,
    FeedbackQuery,
    MarketplaceWebhooksQuery,
    ReviewQuery,
)
from .retry import RetryOptions, with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = typer.Typer(name="asc", help="App Store Connect API client.", no_args_is_help=True)
apps_app = typer.Typer(help="Apps.", no_args_is_help=True)
builds_app = typer.Typer(help="Builds.", no_args_is_help=True)
versions_app = typer.Typer(help="App Store versions.", no_args_is_help=True)
feedback_app = typer.Typer(help="TestFlight screenshot feedback.", no_args_is_help=True)
crashes_app = typer.Typer(help="TestFlight crash submissions.", no_args_is_help=True)
reviews_app = typer.Typer(help="Customer reviews.", no_args_is_help=True)
webhooks_app = typer.Typer(help="Marketplace webhooks.", no_args_is_help=True)
auth_app = typer.Typer(help="Authentication helpers.", no_args_is_help=True)

app.add_typer(apps_app, name="apps")
app.add_typer(builds_app, name="builds")
app.add_typer(versions_app, name="versions")
app.add_typer(feedback_app, name="feedback")
app.add_typer(crashes_app, name="crashes")
app.add_typer(reviews_app, name="reviews")
app.add_typer(webhooks_app, name="webhooks")
app.add_typer(auth_app, name="auth")

LIMIT_OPTION = typer.Option(0, "--limit", help="Page size (1-200).")
NEXT_OPTION = typer.Option("", "--next", help="Fetch the page at this next-cursor URL.")
PAGINATE_OPTION = typer.Option(False, "--paginate", help="Follow next links and merge all pages.")
OUTPUT_OPTION = typer.Option("json", "--output", "-o", help="json, table, csv or markdown.")


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_client(settings: Settings) -> AppStoreConnectAPI:
    """Construct the client used by every command from resolved settings."""
    if not settings.has_credentials():
        raise AuthenticationError(
            "missing credentials: set ASC_KEY_ID, ASC_ISSUER_ID and "
            "ASC_PRIVATE_KEY_PATH (or ASC_PRIVATE_KEY), or add them to .asc/config.json"
        )
    return AppStoreConnectAPI.from_settings(settings)


def _settings(ctx: typer.Context) -> Settings:
    return (ctx.obj or {}).get("settings") or load_settings()


def _retrying(ctx: typer.Context, call: Callable[[], T]) -> T:
    """Run a read-only call with the configured retry policy."""
    settings = _settings(ctx)
    options = RetryOptions(
        max_retries=settings.max_retries,
        base_delay=settings.base_delay,
        max_delay=settings.max_delay,
    )
    return with_retry(call, options)


def _split(values: Optional[List[str]]) -> List[str]:
    """Accept both repeated options and comma-separated values."""
    items: List[str] = []
    for value in values or []:
        items.extend(value.split(","))
    return items


def _run(ctx: typer.Context, action: Callable[[AppStoreConnectAPI], str]) -> None:
    try:
        api = build_client(_settings(ctx))
        text = action(api)
    except AppStoreConnectError as e:
        logger.debug(f"command failed: {e!r}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=exit_code_for(e))
    if text:
        typer.echo(text)


def _list(
    ctx: typer.Context,
    fetch: Callable[[AppStoreConnectAPI], Response],
    paginate: bool,
    output: str,
) -> None:
    def action(api: AppStoreConnectAPI) -> str:
        page = _retrying(ctx, lambda: fetch(api))
        if paginate:
            page = paginate_all(page, lambda url: _retrying(ctx, lambda: api.get_page(url)))
        return render(page, output)

    _run(ctx, action)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"asc {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Request timeout in seconds."),
    debug: bool = typer.Option(False, "--debug", help="Log requests to stderr."),
) -> None:
    """App Store Connect from the command line."""
    try:
        settings = load_settings({"timeout": timeout, "debug": True if debug else None})
    except AppStoreConnectError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=exit_code_for(e))
    configure_logging(settings.debug)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# ===== apps =====


@apps_app.command("list")
def apps_list(
    ctx: typer.Context,
    bundle_id: Optional[List[str]] = typer.Option(None, "--bundle-id", help="Filter by bundle ID."),
    name: Optional[List[str]] = typer.Option(None, "--name", help="Filter by app name."),
    sort: Optional[List[str]] = typer.Option(None, "--sort", help="Sort fields, e.g. -name."),
    limit: int = LIMIT_OPTION,
    next_url: str = NEXT_OPTION,
    paginate: bool = PAGINATE_OPTION,
    output: str = OUTPUT_OPTION,
) -> None:
    """List apps."""

    def fetch(api: AppStoreConnectAPI) -> Response:
        query = AppsQuery(
            bundle_ids=_split(bundle_id),
            names=_split(name),
            sort=_split(sort),
            limit=limit,
            next_url=next_url,
        )
        return api.get_apps(query)

    _list(ctx, fetch, paginate, output)


# ===== builds =====


@builds_app.command("list")
def builds_list(
    ctx: typer.Context,
    app_id: str = typer.Argument(..., help="App ID."),
    version: Optional[List[str]] = typer.Option(None, "--version", help="Filter by build number."),
    processing_state: Optional[List[str]] = typer.Option(
        None, "--processing-state", help="PROCESSING, FAILED, INVALID or VALID."
    ),
    platform: Optional[List[str]] = typer.Option(None, "--platform", help="IOS, MAC_OS, ..."),
    sort: Optional[List[str]] = typer.Option(None, "--sort", help="Sort fields, e.g. -uploadedDate."),
    limit: int = LIMIT_OPTION,
    next_url: str = NEXT_OPTION,
    paginate: bool = PAGINATE_OPTION,
    output: str = OUTPUT_OPTION,
) -> None:
    """List builds of an app."""

    def fetch(api: AppStoreConnectAPI) -> Response:
        query = BuildsQuery(
            versions=_split(version),
            processing_states=_split(processing_state),
            platforms=_split(platform),
            sort=_split(sort),
            limit=limit,
            next_url=next_url,
        )
        return api.get_builds(app_id, query)

    _list(ctx, fetch, paginate, output)


@builds_app.command("get")
def builds_get(
    ctx: typer.Context,
    build_id: str = typer.Argument(..., help="Build ID."),
    output: str = OUTPUT_OPTION,
) -> None:
    """Show one build."""
    _run(ctx, lambda api: render(_retrying(ctx, lambda: api.get_build(build_id)), output))


@builds_app.command("wait")
def builds_wait(
    ctx: typer.Context,
    build_id: str = typer.Argument(..., help="Build ID."),
    interval: float = typer.Option(30.0, "--interval", help="Seconds between polls."),
    wait_timeout: Optional[float] = typer.Option(
        None, "--wait-timeout", help="Give up after this many seconds."
    ),
    output: str = OUTPUT_OPTION,
) -> None:
    """Wait until a build finishes processing."""

    def action(api: AppStoreConnectAPI) -> str:
        deadline = Deadline(timeout=wait_timeout)
        build = api.wait_for_build_processing(build_id, poll_interval=interval, deadline=deadline)
        return render(build, output)

    _run(ctx, action)


# ===== versions =====


@versions_app.command("list")
def versions_list(
    ctx: typer.Context,
    app_id: str = typer.Argument(..., help="App ID."),
    platform: Optional[List[str]] = typer.Option(None, "--platform", help="IOS, MAC_OS, ..."),
    version_string: Optional[List[str]] = typer.Option(None, "--version-string"),
    state: Optional[List[str]] = typer.Option(None, "--state", help="App Store state."),
    limit: int = LIMIT_OPTION,
    next_url: str = NEXT_OPTION,
    paginate: bool = PAGINATE_OPTION,
    output: str = OUTPUT_OPTION,
) -> None:
    """List App Store versions of an app."""

    def fetch(api: AppStoreConnectAPI) -> Response:
        query = AppStoreVersionsQuery(
            platforms=_split(platform),
            version_strings=_split(version_string),
            states=_split(state),
            limit=limit,
            next_url=next_url,
        )
        return api.get_app_store_versions(app_id, query)

    _list(ctx, fetch, paginate, output)


# ===== feedback / crashes =====


@feedback_app.command("list")
def feedback_list(
    ctx: typer.Context,
    app_id: str = typer.Argument(..., help="App ID."),
    device_model: Optional[List[str]] = typer.Option(None, "--device-model"),
    os_version: Optional[List[str]] = typer.Option(None, "--os-version"),
    platform: Optional[List[str]] = typer.Option(None, "--platform", help="App platform."),
    build_id: Optional[List[str]] = typer.Option(None, "--build", help="Filter by build ID."),
    screenshots: bool = typer.Option(False, "--screenshots", help="Include screenshot URLs."),
    sort: Optional[List[str]] = typer.Option(None, "--sort"),
    limit: int = LIMIT_OPTION,
    next_url: str = NEXT_OPTION,
    paginate: bool = PAGINATE_OPTION,
    output: str = OUTPUT_OPTION,
) -> None:
    """List TestFlight screenshot feedback."""

    def fetch(api: AppStoreConnectAPI) -> Response:
        query = FeedbackQuery(
            device_models=_split(device_model),
            os_versions=_split(os_version),
            app_platforms=_split(platform),
            build_ids=_split(build_id),
            include_screenshots=screenshots,
            sort=_split(sort),
            limit=limit,
            next_url=next_url,
        )
        return api.get_feedback(app_id, query)

    _list(ctx, fetch, paginate, output)


@crashes_app.command("list")
def crashes_list(
    ctx: typer.Context,
    app_id: str = typer.Argument(..., help="App ID."),
    device_model: Optional[List[str]] = typer.Option(None, "--device-model"),
    os_version: Optional[List[str]] = typer.Option(None, "--os-version"),
    platform: Optional[List[str]] = typer.Option(None, "--platform", help="App platform."),
    build_id: Optional[List[str]] = typer.Option(None, "--build", help="Filter by build ID."),
    sort: Optional[List[str]] = typer.Option(None, "--sort"),
    limit: int = LIMIT_OPTION,
    next_url: str = NEXT_OPTION,
    paginate: bool = PAGINATE_OPTION,
    output: str = OUTPUT_OPTION,
) -> None:
    """List TestFlight crash submissions."""

    def fetch(api: AppStoreConnectAPI) -> Response:
        query = CrashQuery(
            device_models=_split(device_model),
            os_versions=_split(os_version),
            app_platforms=_split(platform),
            build_ids=_split(build_id),
            sort=_split(sort),
            limit=limit,
            next_url=next_url,
        )
        return api.get_crashes(app_id, query)

    _list(ctx, fetch, paginate, output)


# ===== reviews =====


@reviews_app.command("list")
def reviews_list(
    ctx: typer.Context,
    app_id: str = typer.Argument(..., help="App ID."),
    rating: int = typer.Option(0, "--rating", help="Only reviews with this star rating."),
    territory: str = typer.Option("", "--territory", help="Territory code, e.g. USA."),
    sort: Optional[List[str]] = typer.Option(None, "--sort", help="e.g. -createdDate."),
    limit: int = LIMIT_OPTION,
    next_url: str = NEXT_OPTION,
    paginate: bool = PAGINATE_OPTION,
    output: str = OUTPUT_OPTION,
) -> None:
    """List customer reviews."""

    def fetch(api: AppStoreConnectAPI) -> Response:
        query = ReviewQuery(
            rating=rating,
            territory=territory,
            sort=_split(sort),
            limit=limit,
            next_url=next_url,
        )
        return api.get_reviews(app_id, query)

    _list(ctx, fetch, paginate, output)


# ===== webhooks =====


@webhooks_app.command("list")
def webhooks_list(
    ctx: typer.Context,
    fields: Optional[List[str]] = typer.Option(None, "--fields", help="Attributes to return."),
    limit: int = LIMIT_OPTION,
    next_url: str = NEXT_OPTION,
    paginate: bool = PAGINATE_OPTION,
    output: str = OUTPUT_OPTION,
) -> None:
    """List marketplace webhooks."""

    def fetch(api: AppStoreConnectAPI) -> Response:
        query = MarketplaceWebhooksQuery(fields=_split(fields), limit=limit, next_url=next_url)
        return api.get_marketplace_webhooks(query)

    _list(ctx, fetch, paginate, output)


@webhooks_app.command("delete")
def webhooks_delete(
    ctx: typer.Context,
    webhook_id: str = typer.Argument(..., help="Webhook ID."),
    confirm: bool = typer.Option(False, "--confirm", help="Required to delete."),
) -> None:
    """Delete a marketplace webhook."""
    if not confirm:
        typer.echo("Error: --confirm is required to delete a webhook", err=True)
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    def action(api: AppStoreConnectAPI) -> str:
        api.delete_marketplace_webhook(webhook_id)
        return f"Deleted marketplace webhook {webhook_id}"

    _run(ctx, action)


# ===== raw requests / auth =====


@app.command("request")
def request(
    ctx: typer.Context,
    method: str = typer.Argument(..., help="HTTP method."),
    path: str = typer.Argument(..., help="API path (e.g. /v1/apps) or absolute URL."),
    body: str = typer.Option("", "--body", help="JSON request body."),
) -> None:
    """Send a raw request and print the response body."""

    def action(api: AppStoreConnectAPI) -> str:
        if method.upper() == "GET":
            raw = _retrying(ctx, lambda: api.do(method, path))
        else:
            raw = api.do(method, path, body or None)
        if not raw:
            return ""
        try:
            return json.dumps(json.loads(raw), indent=2)
        except ValueError:
            return raw.decode("utf-8", errors="replace")

    _run(ctx, action)


@auth_app.command("token")
def auth_token(ctx: typer.Context) -> None:
    """Print a freshly minted bearer token."""
    _run(ctx, lambda api: api.tokens.token())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
