"""Shared fixtures: the blog registry and a seeded in-memory database."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from blog_models import Author, Base, Comment, Post, Tag, build_registry
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from resource_query.metadata import ResourceRegistry

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> ResourceRegistry:
    return build_registry()


@pytest.fixture
def post_meta(registry: ResourceRegistry):
    return registry.require("blog.Post")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as sess:
        yield sess


@pytest.fixture
async def seeded(session: AsyncSession) -> AsyncSession:
    """
    Seed the blog:

    - posts 1-3 by Ada/Ada/Linus, post 4 without author;
    - post 1 has three comments, post 2 one, posts 3-4 none;
    - post 1 is tagged python/sql/web, post 2 sql, post 3 python.
    """
    ada = Author(id=1, name="Ada", email="ada@example.com")
    linus = Author(id=2, name="Linus", email="linus@example.com")
    python = Tag(id=1, name="python")
    sql = Tag(id=2, name="sql")
    web = Tag(id=3, name="web")
    session.add_all(
        [
            ada,
            linus,
            Post(
                id=1,
                title="Hello",
                slug="hello",
                price=5,
                author=ada,
                tags=[python, sql, web],
                comments=[
                    Comment(id=1, body="great post"),
                    Comment(id=2, body="meh"),
                    Comment(id=3, body="great again"),
                ],
            ),
            Post(
                id=2,
                title="Second",
                slug="second",
                price=15,
                author=ada,
                tags=[sql],
                comments=[Comment(id=4, body="nice")],
            ),
            Post(
                id=3, title="Third", slug="third", price=25, author=linus, tags=[python]
            ),
            Post(id=4, title="Draft", slug="draft", price=40),
        ]
    )
    await session.commit()
    return session
