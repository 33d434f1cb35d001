"""
Tests for following next links across pages.
"""

import pytest
from unittest.mock import Mock

from asc_client.deadline import Deadline
from asc_client.envelope import Links, Resource, Response
from asc_client.exceptions import (
    CancelledError,
    NotFoundError,
    RepeatedPaginationURLError,
)
from asc_client.pagination import iter_pages, paginate_all


def page(ids, next_url="", included=()):
    return Response(
        data=[Resource(type="apps", id=i, attributes={}) for i in ids],
        included=[Resource(type="builds", id=i, attributes={}) for i in included],
        links=Links(next=next_url),
        meta={"paging": {"total": 5}},
    )


class TestPaginateAll:
    """Test paginate_all aggregation."""

    def test_single_page(self):
        fetch_next = Mock()
        result = paginate_all(page(["1", "2"]), fetch_next)

        assert [r.id for r in result.data] == ["1", "2"]
        fetch_next.assert_not_called()

    def test_follows_next_links(self):
        pages = {
            "https://x/v1/apps?cursor=2": page(["3", "4"], "https://x/v1/apps?cursor=3", ["b2"]),
            "https://x/v1/apps?cursor=3": page(["5"]),
        }
        fetch_next = Mock(side_effect=lambda url: pages[url])

        result = paginate_all(page(["1", "2"], "https://x/v1/apps?cursor=2", ["b1"]), fetch_next)

        assert [r.id for r in result.data] == ["1", "2", "3", "4", "5"]
        assert [r.id for r in result.included] == ["b1", "b2"]
        assert result.links.next == ""
        assert result.meta == {"paging": {"total": 5}}
        assert fetch_next.call_count == 2

    def test_repeated_next_url(self):
        """A server that keeps returning the same cursor is detected."""
        loop = "https://x/v1/apps?cursor=2"
        fetch_next = Mock(return_value=page(["2"], loop))

        with pytest.raises(RepeatedPaginationURLError, match="page 3: detected repeated pagination URL"):
            paginate_all(page(["1"], loop), fetch_next)
        assert fetch_next.call_count == 1

    def test_page_error_reraised_with_page_number(self):
        fetch_next = Mock(side_effect=NotFoundError(title="Not Found", status_code=404))

        with pytest.raises(NotFoundError) as exc_info:
            paginate_all(page(["1"], "https://x/v1/apps?cursor=2"), fetch_next)

        assert exc_info.value.page == 2
        assert exc_info.value.status_code == 404

    def test_deadline_checked_between_pages(self):
        deadline = Deadline()
        deadline.cancel()
        fetch_next = Mock()

        with pytest.raises(CancelledError):
            paginate_all(page(["1"], "https://x/v1/apps?cursor=2"), fetch_next, deadline)
        fetch_next.assert_not_called()


class TestIterPages:
    def test_lazy(self):
        fetch_next = Mock(return_value=page(["2"]))
        pages = iter_pages(page(["1"], "https://x/v1/apps?cursor=2"), fetch_next)

        first = next(pages)
        assert [r.id for r in first.data] == ["1"]
        fetch_next.assert_not_called()

        assert [[r.id for r in p.data] for p in pages] == [["2"]]
        fetch_next.assert_called_once_with("https://x/v1/apps?cursor=2")
