"""Tests for ResourceService index/show."""

from __future__ import annotations

from urllib.parse import parse_qsl

import pytest

from resource_query.exceptions import MissingIdentifierError
from resource_query.service import ResourceService


@pytest.fixture
def service(registry) -> ResourceService:
    return ResourceService(registry)


@pytest.mark.asyncio
async def test_index_envelope(seeded, service) -> None:
    query = parse_qsl("fields[post]=title&sorting=title&per_page=2&page=1")
    result = await service.index(seeded, "blog.Post", query)

    assert result["data"] == [{"title": "Draft"}, {"title": "Hello"}]
    assert result["total"] == 4
    assert result["per_page"] == 2
    assert result["current_page"] == 1
    assert result["last_page"] == 2
    assert result["prev_page"] is None
    assert parse_qsl(result["next_page"]) == [
        ("fields[post]", "title"),
        ("sorting", "title"),
        ("per_page", "2"),
        ("page", "2"),
    ]
    assert result["request"]["errors"] == []


@pytest.mark.asyncio
async def test_index_last_page_links_back(seeded, service) -> None:
    result = await service.index(
        seeded, "blog.Post", {"sorting": "title", "per_page": "3", "page": "2"}
    )
    assert result["data"] == [
        {
            "id": 3,
            "title": "Third",
            "body": None,
            "slug": "third",
            "price": 25,
            "author_id": 2,
            "created_at": None,
        }
    ]
    assert result["next_page"] is None
    assert dict(parse_qsl(result["prev_page"]))["page"] == "1"


@pytest.mark.asyncio
async def test_index_surfaces_errors_next_to_data(seeded, service) -> None:
    result = await service.index(
        seeded,
        "blog.Post",
        [
            ("fields[post]", "title,secret"),
            ("filters[comments][]", "body like great%"),
            ("limit[tags]", "3"),
        ],
    )
    assert result["data"] == [{"title": "Hello"}]
    assert result["request"]["errors"] == [
        "Field 'secret' is not selectable on 'post'.",
        "Limit given for 'tags', which is not a selected related resource.",
    ]


@pytest.mark.asyncio
async def test_show(seeded, service) -> None:
    result = await service.show(
        seeded,
        "blog.Post",
        "2",
        {"fields[post]": "title", "fields[author]": "name"},
    )
    assert result["object"] == {
        "title": "Second",
        "author_id": 1,
        "author": {"name": "Ada", "id": 1},
    }
    assert result["request"]["fields"] == {
        "post": ["title", "author_id"],
        "author": ["name", "id"],
    }


@pytest.mark.asyncio
async def test_show_missing_entity(seeded, service) -> None:
    result = await service.show(seeded, "blog.Post", "nope")
    assert result["object"] is None
    assert result["request"]["resource"] == "post"


@pytest.mark.asyncio
async def test_show_requires_id(seeded, service) -> None:
    with pytest.raises(MissingIdentifierError):
        await service.show(seeded, "blog.Post", "")
