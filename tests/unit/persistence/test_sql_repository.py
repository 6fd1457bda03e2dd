"""Tests for the SQLAlchemy repository against in-memory SQLite."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy import ForeignKey, String, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.pool import StaticPool

from repocache.core.model import BaseEntity, FindAllOptions, UpdateOptions
from repocache.persistence.repositories import EntityRepository, SqlRepository
from repocache.persistence.tables import EntityMixin


class Model(DeclarativeBase):
    pass


class AuthorTable(EntityMixin, Model):
    __tablename__ = "authors"

    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    books: Mapped[list["BookTable"]] = relationship(back_populates="author")


class BookTable(EntityMixin, Model):
    __tablename__ = "books"

    title: Mapped[str] = mapped_column(String(200))
    author_id: Mapped[str] = mapped_column(ForeignKey("authors.id"))
    author: Mapped[AuthorTable] = relationship(back_populates="books")


class Book(BaseEntity):
    title: str
    author_id: str


class Author(BaseEntity):
    name: str
    email: str | None = None
    books: list[Book] | None = None


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Model.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def authors(session_factory: async_sessionmaker[AsyncSession]) -> SqlRepository[Author]:
    return SqlRepository(AuthorTable, Author, session_factory)


@pytest.fixture
def books(session_factory: async_sessionmaker[AsyncSession]) -> SqlRepository[Book]:
    return SqlRepository(BookTable, Book, session_factory)


async def seed(authors: SqlRepository[Author]) -> list[Author]:
    return await authors.insert_many(
        [
            {"id": "a1", "name": "Ada", "email": "ada@x.com"},
            {"id": "a2", "name": "Grace", "email": "grace@x.com"},
            {"id": "a3", "name": "Linus", "email": "linus@x.com"},
        ]
    )


class TestCreate:
    """Tests for inserts."""

    @pytest.mark.asyncio
    async def test_create_fills_generated_columns(self, authors: SqlRepository[Author]) -> None:
        author = await authors.create({"name": "Ada"})

        assert author.id
        assert author.name == "Ada"
        assert author.destroyed is False
        assert author.created_at is not None
        assert author.books is None

    @pytest.mark.asyncio
    async def test_create_from_model(self, authors: SqlRepository[Author]) -> None:
        author = await authors.create(Author(id="a9", name="Barbara"))
        assert author.id == "a9"

    @pytest.mark.asyncio
    async def test_insert_many_single_document(self, authors: SqlRepository[Author]) -> None:
        inserted = await authors.insert_many({"id": "a1", "name": "Ada"})
        assert [author.id for author in inserted] == ["a1"]

    def test_satisfies_protocol(self, authors: SqlRepository[Author]) -> None:
        repo: EntityRepository[Author] = authors
        assert repo is authors


class TestRead:
    """Tests for single and list reads."""

    @pytest.mark.asyncio
    async def test_find_one(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        author = await authors.find_one({"email": "grace@x.com"})

        assert author is not None and author.id == "a2"
        assert await authors.find_one({"email": "nobody@x.com"}) is None

    @pytest.mark.asyncio
    async def test_find_sort_and_limit(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        result = await authors.find(sort={"name": -1}, limit=2)

        assert [author.name for author in result] == ["Linus", "Grace"]

    @pytest.mark.asyncio
    async def test_find_all_paginates(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        page = await authors.find_all({}, FindAllOptions(limit=2, page=2, sort={"name": 1}))

        assert page.total == 3
        assert page.total_pages == 2
        assert [author.name for author in page.data] == ["Linus"]

    @pytest.mark.asyncio
    async def test_find_all_field_selection(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        page = await authors.find_all({"id": "a1"}, FindAllOptions(fields="name"))

        assert page.data == [{"id": "a1", "name": "Ada"}]

    @pytest.mark.asyncio
    async def test_aggregate(
        self, authors: SqlRepository[Author], books: SqlRepository[Book]
    ) -> None:
        await seed(authors)
        await books.insert_many(
            [
                {"title": "Notes", "author_id": "a1"},
                {"title": "Sketch", "author_id": "a1"},
                {"title": "COBOL", "author_id": "a2"},
            ]
        )
        stmt = (
            select(BookTable.author_id, func.count(BookTable.id).label("count"))
            .group_by(BookTable.author_id)
            .order_by(BookTable.author_id)
        )

        rows = await authors.aggregate(stmt)

        assert rows == [{"author_id": "a1", "count": 2}, {"author_id": "a2", "count": 1}]


class TestPopulate:
    """Tests for eager relationship loading."""

    @pytest.mark.asyncio
    async def test_populate(
        self, authors: SqlRepository[Author], books: SqlRepository[Book]
    ) -> None:
        seeded = await seed(authors)
        await books.create({"title": "Notes", "author_id": "a1"})

        populated = await authors.populate(seeded[:2], ["books"])

        assert [author.id for author in populated] == ["a1", "a2"]
        assert [book.title for book in populated[0].books or []] == ["Notes"]
        assert populated[1].books == []

    @pytest.mark.asyncio
    async def test_find_and_populate(
        self, authors: SqlRepository[Author], books: SqlRepository[Book]
    ) -> None:
        await seed(authors)
        await books.create({"title": "COBOL", "author_id": "a2"})

        result = await authors.find_and_populate({"name": "Grace"}, ["books"])

        assert len(result) == 1
        assert [book.title for book in result[0].books or []] == ["COBOL"]

    @pytest.mark.asyncio
    async def test_unknown_path(self, authors: SqlRepository[Author]) -> None:
        with pytest.raises(ValueError, match="publisher"):
            await authors.find_and_populate({}, ["publisher"])


class TestUpdate:
    """Tests for update operations."""

    @pytest.mark.asyncio
    async def test_update_by_id(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        assert await authors.update_by_id("a1", {"name": "Ada L."}) is True
        assert await authors.update_by_id("missing", {"name": "x"}) is False

        author = await authors.find_one({"id": "a1"})
        assert author is not None and author.name == "Ada L."

    @pytest.mark.asyncio
    async def test_update_one_touches_single_row(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)
        await authors.update_many({}, {"email": "shared@x.com"})

        assert await authors.update_one({"email": "shared@x.com"}, {"name": "Only"}) is True

        renamed = await authors.find({"name": "Only"})
        assert len(renamed) == 1

    @pytest.mark.asyncio
    async def test_update_many(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        assert await authors.update_many({}, {"modified_by": "admin"}) == 3
        assert await authors.update_many({"name": "nobody"}, {"modified_by": "admin"}) == 0

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, authors: SqlRepository[Author]) -> None:
        with pytest.raises(ValueError, match="nickname"):
            await authors.update_by_id("a1", {"nickname": "x"})

    @pytest.mark.asyncio
    async def test_find_one_and_update_returns_new(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        author = await authors.find_one_and_update({"id": "a1"}, {"name": "Countess"})

        assert author is not None and author.name == "Countess"

    @pytest.mark.asyncio
    async def test_find_one_and_update_returns_old(self, authors: SqlRepository[Author]) -> None:
        await seed(authors)

        before = await authors.find_one_and_update(
            {"id": "a1"}, {"name": "Countess"}, UpdateOptions(new=False)
        )

        assert before is not None and before.name == "Ada"
        after = await authors.find_one({"id": "a1"})
        assert after is not None and after.name == "Countess"

    @pytest.mark.asyncio
    async def test_find_one_and_update_no_match(self, authors: SqlRepository[Author]) -> None:
        assert await authors.find_one_and_update({"id": "a1"}, {"name": "x"}) is None

    @pytest.mark.asyncio
    async def test_find_one_and_update_upsert(self, authors: SqlRepository[Author]) -> None:
        author = await authors.find_one_and_update(
            {"id": "a7"}, {"name": "New"}, UpdateOptions(upsert=True)
        )

        assert author is not None
        assert (author.id, author.name) == ("a7", "New")


class TestDelete:
    """Tests for soft and hard deletes."""

    @pytest.mark.asyncio
    async def test_soft_delete_hides_row(
        self,
        authors: SqlRepository[Author],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await seed(authors)

        assert await authors.delete_by_id("a1") is True
        assert await authors.find_one({"id": "a1"}) is None
        assert await authors.delete_by_id("a1") is False

        raw = SqlRepository(AuthorTable, Author, session_factory, soft_delete=False)
        flagged = await raw.find_one({"id": "a1"})
        assert flagged is not None and flagged.destroyed is True

    @pytest.mark.asyncio
    async def test_hard_delete(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        authors = SqlRepository(AuthorTable, Author, session_factory, soft_delete=False)
        await seed(authors)

        assert await authors.delete_many({"name": "Ada"}) == 1
        assert await authors.delete_by_id("a2") is True
        assert [author.id for author in await authors.find()] == ["a3"]
