"""
Tests for rendering envelopes.
"""

import json

import pytest

from asc_client.envelope import Links, Resource, Response, SingleResponse
from asc_client.exceptions import ValidationError
from asc_client.output import envelope_to_dict, render, to_dataframe


@pytest.fixture
def apps_page():
    return Response(
        data=[
            Resource(type="apps", id="1", attributes={"name": "Alpha", "bundleId": "com.a"}),
            Resource(type="apps", id="2", attributes={"name": "Beta | Pro", "bundleId": "com.b"}),
        ],
        links=Links(self_url="https://api.appstoreconnect.apple.com/v1/apps"),
        meta={"paging": {"total": 2, "limit": 50}},
    )


class TestRender:
    """Test each output format."""

    def test_json(self, apps_page):
        document = json.loads(render(apps_page, "json"))
        assert document["data"][0] == {
            "type": "apps",
            "id": "1",
            "attributes": {"name": "Alpha", "bundleId": "com.a"},
        }
        assert document["meta"]["paging"]["total"] == 2
        assert document["links"] == {"self": "https://api.appstoreconnect.apple.com/v1/apps"}

    def test_csv(self, apps_page):
        lines = render(apps_page, "csv").splitlines()
        assert lines[0] == "id,type,name,bundleId"
        assert lines[1] == "1,apps,Alpha,com.a"

    def test_table(self, apps_page):
        text = render(apps_page, "table")
        assert "Alpha" in text
        assert text.splitlines()[0].split()[:2] == ["id", "type"]

    def test_markdown_escapes_pipes(self, apps_page):
        lines = render(apps_page, "markdown").splitlines()
        assert lines[0] == "| id | type | name | bundleId |"
        assert lines[1] == "| --- | --- | --- | --- |"
        assert lines[3] == "| 2 | apps | Beta \\| Pro | com.b |"

    def test_format_is_case_insensitive(self, apps_page):
        assert render(apps_page, " CSV ").startswith("id,type")

    def test_unknown_format(self, apps_page):
        with pytest.raises(ValidationError, match="unsupported output format"):
            render(apps_page, "yaml")

    def test_empty_table(self):
        assert render(Response(), "table") == "No results."
        assert render(Response(), "csv") == "id,type"

    def test_single_resource(self):
        single = SingleResponse(
            data=Resource(type="builds", id="b1", attributes={"version": "42"})
        )
        assert json.loads(render(single))["data"]["id"] == "b1"
        assert render(single, "csv").splitlines()[1] == "b1,builds,42"


class TestDataFrame:
    def test_nested_attributes_flattened(self):
        page = Response(
            data=[
                Resource(
                    type="customerReviews",
                    id="r1",
                    attributes={"rating": 5, "reviewer": {"nickname": "sam"}},
                )
            ]
        )
        df = to_dataframe(page)
        assert list(df.columns) == ["id", "type", "rating", "reviewer.nickname"]
        assert df.iloc[0]["reviewer.nickname"] == "sam"

    def test_included_kept_in_json(self):
        page = Response(
            data=[Resource(type="apps", id="1", attributes={})],
            included=[Resource(type="builds", id="b1", attributes={"version": "1"})],
        )
        document = envelope_to_dict(page)
        assert document["included"][0]["id"] == "b1"
        assert "attributes" not in document["data"][0]
        assert "links" not in document
