"""
Cursor pagination over collection envelopes.

The server returns ``links.next`` as an absolute URL; the fetcher passed in
here is expected to request it verbatim (typically by building a query with
``next_url`` set), so validation of the cursor host happens in the query layer.
"""

import logging
from typing import Callable, Iterator, Optional

from .deadline import Deadline
from .envelope import Links, Response
from .exceptions import AppStoreConnectError, RepeatedPaginationURLError

logger = logging.getLogger(__name__)

FetchNext = Callable[[str], Response]


def iter_pages(
    first_page: Response,
    fetch_next: FetchNext,
    deadline: Optional[Deadline] = None,
) -> Iterator[Response]:
    """
    Yield ``first_page`` and every following page.

    Raises:
        RepeatedPaginationURLError: If the server repeats a next link
        AppStoreConnectError: If fetching a page fails; the error gets a
            ``page`` attribute naming the failed page
    """
    page = first_page
    page_number = 1
    seen = set()
    while True:
        yield page

        next_url = page.links.next
        if not next_url:
            return
        if next_url in seen:
            raise RepeatedPaginationURLError(
                f"page {page_number + 1}: detected repeated pagination URL"
            )
        seen.add(next_url)
        page_number += 1

        if deadline is not None:
            deadline.check()

        logger.debug(f"iter_pages: fetching page {page_number}")
        try:
            page = fetch_next(next_url)
        except AppStoreConnectError as e:
            logger.error(f"iter_pages: page {page_number} failed: {e}")
            e.page = page_number
            raise


def paginate_all(
    first_page: Response,
    fetch_next: FetchNext,
    deadline: Optional[Deadline] = None,
) -> Response:
    """
    Follow ``links.next`` until exhausted and merge every page.

    Args:
        first_page: The already-fetched first page
        fetch_next: Callable fetching the page at a next-cursor URL
        deadline: Optional deadline checked between pages

    Returns:
        A Response holding every page's ``data`` and ``included`` with empty links
    """
    result = Response(data=[], included=[], links=Links(), meta=dict(first_page.meta))
    for page in iter_pages(first_page, fetch_next, deadline):
        result.data.extend(page.data)
        result.included.extend(page.included)
    return result
