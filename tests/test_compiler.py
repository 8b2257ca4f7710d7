"""
Tests for QueryCompiler and the operator table.

SQL is asserted on the compiled string of the statements; execution is
covered in test_executor.py.
"""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from typing import Any

import pytest
from blog_models import Post, Tag
from sqlalchemy import Boolean, Column, Numeric

from resource_query.exceptions import ResourceNotRegisteredError
from resource_query.fieldset import FieldSet
from resource_query.metadata import RelationKind, ResourceMetadata
from resource_query.model import (
    FilterExpression,
    FilterOperator,
    RequestModel,
    SortDirection,
    SortSpec,
)
from resource_query.sqla import (
    DEFAULT_OPERATORS,
    OperatorTable,
    QueryCompiler,
    coerce_value,
)


def _sql(stmt: Any) -> str:
    return str(stmt.compile(compile_kwargs={"literal_binds": True}))


def _request(
    filters: dict[str, list[FilterExpression]] | None = None, **fields: list[str]
) -> RequestModel:
    return RequestModel(
        resource="post",
        fields={name: FieldSet(values) for name, values in fields.items()},
        filters=filters or {},
    )


# ---------------------------------------------------------------------------
# Operators and coercion
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("operator", "value", "expected"),
    [
        (FilterOperator.EQ, 5, "posts.price = 5"),
        (FilterOperator.NE, 5, "posts.price != 5"),
        (FilterOperator.GT, 5, "posts.price > 5"),
        (FilterOperator.GE, 5, "posts.price >= 5"),
        (FilterOperator.LT, 5, "posts.price < 5"),
        (FilterOperator.LE, 5, "posts.price <= 5"),
        (FilterOperator.IS_NULL, None, "posts.price IS NULL"),
        (FilterOperator.IS_NOT_NULL, None, "posts.price IS NOT NULL"),
    ],
)
def test_comparison_operators(
    operator: FilterOperator, value: Any, expected: str
) -> None:
    assert _sql(DEFAULT_OPERATORS.apply(operator, Post.price, value)) == expected


def test_pattern_operators() -> None:
    like = DEFAULT_OPERATORS.apply(FilterOperator.LIKE, Post.title, "He%")
    not_like = DEFAULT_OPERATORS.apply(FilterOperator.NOT_LIKE, Post.title, "He%")
    assert _sql(like) == "posts.title LIKE 'He%'"
    assert _sql(not_like) == "posts.title NOT LIKE 'He%'"


def test_incomplete_table_is_rejected() -> None:
    with pytest.raises(ValueError, match="missing builders for: !=, >, >=") as exc:
        OperatorTable({FilterOperator.EQ: lambda column, value: column == value})
    assert "not null" in str(exc.value)


def test_replace_swaps_one_builder() -> None:
    operators = DEFAULT_OPERATORS.replace(
        {FilterOperator.LIKE: lambda column, value: column.ilike(value)}
    )
    like = operators.apply(FilterOperator.LIKE, Post.title, "he%")
    assert _sql(like) == "lower(posts.title) LIKE lower('he%')"
    assert _sql(operators.apply(FilterOperator.GT, Post.price, 5)) == "posts.price > 5"
    assert _sql(DEFAULT_OPERATORS.apply(FilterOperator.LIKE, Post.title, "he%")) == (
        "posts.title LIKE 'he%'"
    )


def test_compiler_uses_given_table(post_meta) -> None:
    operators = DEFAULT_OPERATORS.replace(
        {FilterOperator.EQ: lambda column, value: column.is_distinct_from(value)}
    )
    request = _request(
        {"post": [FilterExpression("price", FilterOperator.EQ, "5")]},
        post=["price"],
    )
    sql = _sql(QueryCompiler(operators).compile(post_meta, request).statement)
    assert "posts.price IS DISTINCT FROM 5" in sql



def test_coerce_value() -> None:
    assert coerce_value(Post.__table__.c.price, "42") == 42
    assert coerce_value(Post.__table__.c.title, "42") == "42"
    assert coerce_value(Post.__table__.c.created_at, "2024-05-01T10:00:00") == (
        datetime.datetime(2024, 5, 1, 10, 0)
    )
    assert coerce_value(Column("flag", Boolean), "yes") is True
    assert coerce_value(Column("amount", Numeric), "1.50") == Decimal("1.50")
    for column, raw in [
        (Post.__table__.c.price, "abc"),
        (Column("flag", Boolean), "maybe"),
        (Column("amount", Numeric), "x"),
    ]:
        with pytest.raises(ValueError):
            coerce_value(column, raw)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def test_projection_is_labelled(post_meta) -> None:
    plan = QueryCompiler().compile(post_meta, _request(post=["title", "price"]))
    sql = _sql(plan.statement)
    assert sql.startswith("SELECT posts.title AS title, posts.price AS price")
    assert "FROM posts" in sql
    assert plan.hidden == frozenset()
    assert plan.single is False


def test_unmapped_field_is_skipped_with_warning(post_meta, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="resource_query.sqla.compiler"):
        plan = QueryCompiler().compile(post_meta, _request(post=["title", "ghost"]))
    assert "ghost" not in _sql(plan.statement)
    assert "Skipping 'ghost'" in caplog.text


def test_model_is_required() -> None:
    meta = ResourceMetadata(type_name="Virtual", name="virtual")
    with pytest.raises(ResourceNotRegisteredError, match="no mapped model"):
        QueryCompiler().compile(meta, RequestModel(resource="virtual"))


# ---------------------------------------------------------------------------
# Sorting and filters
# ---------------------------------------------------------------------------


def test_sort_in_order(post_meta) -> None:
    request = _request(post=["title"])
    request.sort = [SortSpec("price", SortDirection.DESC), SortSpec("title")]
    sql = _sql(QueryCompiler().compile(post_meta, request).statement)
    assert "ORDER BY posts.price DESC, posts.title ASC" in sql


def test_main_filters_are_coerced(post_meta) -> None:
    request = _request(
        {
            "post": [
                FilterExpression("price", FilterOperator.GE, "10"),
                FilterExpression("title", FilterOperator.LIKE, "He%"),
                FilterExpression("author_id", FilterOperator.IS_NOT_NULL),
            ]
        },
        post=["title", "price", "author_id"],
    )
    sql = _sql(QueryCompiler().compile(post_meta, request).statement)
    assert "posts.price >= 10" in sql
    assert "posts.title LIKE 'He%'" in sql
    assert "posts.author_id IS NOT NULL" in sql


@pytest.mark.parametrize(
    "operator", [FilterOperator.EQ, FilterOperator.GE, FilterOperator.NE]
)
def test_value_not_fitting_the_column_is_not_bound(
    post_meta, operator: FilterOperator
) -> None:
    request = _request(
        {"post": [FilterExpression("price", operator, "cheap")]},
        post=["price"],
    )
    compiled = QueryCompiler().compile(post_meta, request).statement.compile()
    assert "cheap" not in compiled.params.values()


def test_to_many_filter_is_an_exists_predicate(post_meta) -> None:
    request = _request(
        {"comments": [FilterExpression("body", FilterOperator.LIKE, "great%")]},
        post=["title"],
    )
    plan = QueryCompiler().compile(post_meta, request)
    sql = _sql(plan.statement)
    assert "EXISTS (SELECT" in sql
    assert "comments.post_id" in sql
    assert "comments.body LIKE 'great%'" in sql
    assert plan.eager_loads == ()


def test_to_one_filter_uses_has(post_meta) -> None:
    request = _request(
        {"author": [FilterExpression("name", FilterOperator.EQ, "Ada")]},
        post=["title"],
    )
    sql = _sql(QueryCompiler().compile(post_meta, request).statement)
    assert "EXISTS (SELECT" in sql
    assert "FROM authors" in sql
    assert "authors.name = 'Ada'" in sql


def test_filters_on_one_relation_share_one_exists(post_meta) -> None:
    request = _request(
        {
            "comments": [
                FilterExpression("body", FilterOperator.LIKE, "great%"),
                FilterExpression("id", FilterOperator.GT, "1"),
            ]
        },
        post=["title"],
    )
    sql = _sql(QueryCompiler().compile(post_meta, request).statement)
    assert sql.count("EXISTS") == 1
    assert "comments.id > 1" in sql


def test_filters_on_unknown_relation_are_ignored(post_meta) -> None:
    request = _request(
        {"editors": [FilterExpression("name", FilterOperator.EQ, "x")]},
        post=["title"],
    )
    sql = _sql(QueryCompiler().compile(post_meta, request).statement)
    assert "WHERE" not in sql


# ---------------------------------------------------------------------------
# Show
# ---------------------------------------------------------------------------


def test_show_matches_id_or_alternate_id(post_meta) -> None:
    request = _request(post=["title"])
    request.sort = [SortSpec("title")]
    plan = QueryCompiler().compile(post_meta, request, identifier="42")
    sql = _sql(plan.statement)
    assert "WHERE posts.id = 42 OR posts.slug = '42'" in sql
    assert "LIMIT 1" in sql
    assert "ORDER BY" not in sql
    assert plan.single is True


def test_show_drops_branch_that_does_not_fit(post_meta) -> None:
    plan = QueryCompiler().compile(
        post_meta, _request(post=["title"]), identifier="hello"
    )
    sql = _sql(plan.statement)
    assert "WHERE posts.slug = 'hello'" in sql
    assert "posts.id =" not in sql


def test_show_without_alternate_id(registry) -> None:
    tag = registry.require("blog.Tag")
    request = RequestModel(resource="tag", fields={"tag": FieldSet(["name"])})
    sql = _sql(QueryCompiler().compile(tag, request, identifier="3").statement)
    assert "WHERE tags.id = 3" in sql
    assert " OR " not in sql


# ---------------------------------------------------------------------------
# Eager loads
# ---------------------------------------------------------------------------


def test_to_one_eager_load(post_meta) -> None:
    request = _request(post=["title", "author_id"], author=["name", "id"])
    plan = QueryCompiler().compile(post_meta, request)
    (load,) = plan.eager_loads
    assert load.relation == "author"
    assert load.kind is RelationKind.TO_ONE
    assert load.parent_key == "author_id"
    assert plan.hidden == frozenset()
    sql = _sql(load.statement([1, 2]))
    assert "authors.name AS name, authors.id AS id, authors.id AS _link" in sql
    assert "WHERE authors.id IN (1, 2)" in sql


def test_to_many_parent_key_is_hidden(post_meta) -> None:
    request = _request(post=["title"], comments=["body", "post_id"])
    plan = QueryCompiler().compile(post_meta, request)
    (load,) = plan.eager_loads
    assert load.parent_key == "_key_comments"
    assert plan.hidden == frozenset({"_key_comments"})
    assert "posts.id AS _key_comments" in _sql(plan.statement)
    sql = _sql(load.statement([1]))
    assert "comments.post_id AS _link" in sql
    assert "ORDER BY comments.post_id, comments.id" in sql


def test_projected_key_is_reused(post_meta) -> None:
    request = _request(post=["id", "title"], comments=["body"], tags=["name"])
    plan = QueryCompiler().compile(post_meta, request)
    assert [load.parent_key for load in plan.eager_loads] == ["id", "id"]
    assert plan.hidden == frozenset()


def test_many_to_many_joins_association_table(post_meta) -> None:
    request = _request(post=["title", "id"], tags=["name", "tags.id"])
    plan = QueryCompiler().compile(post_meta, request)
    (load,) = plan.eager_loads
    assert load.kind is RelationKind.MANY_TO_MANY
    sql = _sql(load.statement([1]))
    assert "tags.name AS name, tags.id AS id, post_tags.post_id AS _link" in sql
    assert "FROM tags JOIN post_tags ON tags.id = post_tags.tag_id" in sql


def test_limit_caps_rows_per_parent(post_meta) -> None:
    request = _request(post=["id"], comments=["body", "post_id"])
    request.limits = {"comments": 2}
    (load,) = QueryCompiler().compile(post_meta, request).eager_loads
    assert load.limit == 2
    sql = _sql(load.statement([1, 2]))
    assert (
        "row_number() OVER (PARTITION BY comments.post_id ORDER BY comments.id)"
        " AS _rank" in sql
    )
    assert "_rank <= 2" in sql
    assert "_rank," not in sql.split("FROM")[0]


def test_relation_missing_from_mapper_is_skipped(caplog) -> None:
    meta = ResourceMetadata(
        type_name="Tag",
        name="tag",
        model=Tag,
        relations={},
    )
    request = RequestModel(
        resource="tag",
        fields={"tag": FieldSet(["name"]), "posts": FieldSet(["title"])},
    )
    with caplog.at_level(logging.WARNING, logger="resource_query.sqla.compiler"):
        plan = QueryCompiler().compile(meta, request)
    assert plan.eager_loads == ()
    assert "not mapped" in caplog.text
