"""Tests for objectstore.backends.memory — InMemoryRepository."""

from __future__ import annotations

import pytest
import pytest_asyncio

from objectstore.backends.memory import InMemoryRepository
from objectstore.core.conditions import ConditionGroup, Logic, Pagination, SortDirection, all_of, where
from objectstore.core.errors import DuplicateError, NotFoundError
from objectstore.core.protocols import Repository
from objectstore.core.resource import ResourceKey


@pytest_asyncio.fixture
async def seeded(make_resource) -> InMemoryRepository:
    repo = InMemoryRepository()
    # Inserted out of order so sorting is observable
    for index in (3, 1, 5, 2, 4):
        await repo.create(make_resource(f"d{index}", rank=index, title=f"Doc {index}"))
    await repo.create(make_resource("n1", type="note", rank=0))
    return repo


class TestContract:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryRepository(), Repository)


class TestCrud:
    @pytest.mark.asyncio
    async def test_create_and_find(self, make_resource):
        repo = InMemoryRepository()
        await repo.create(make_resource(title="A"))
        found = await repo.find_by_key(ResourceKey("t1", "doc", "d1"))
        assert found is not None
        assert found.fields == {"title": "A"}
        assert len(repo) == 1

    @pytest.mark.asyncio
    async def test_create_duplicate(self, make_resource):
        repo = InMemoryRepository()
        await repo.create(make_resource())
        with pytest.raises(DuplicateError) as exc_info:
            await repo.create(make_resource(version=2))
        assert exc_info.value.context.backend == "memory"

    @pytest.mark.asyncio
    async def test_keys_are_identity_triples(self, make_resource):
        repo = InMemoryRepository()
        await repo.create(make_resource("c", tenant="t", type="a#b"))
        await repo.create(make_resource("b#c", tenant="t", type="a"))
        assert len(repo) == 2
        assert (await repo.find_by_key(ResourceKey("t", "a", "b#c"))).type == "a"

    @pytest.mark.asyncio
    async def test_update_replaces_wholesale(self, make_resource):
        repo = InMemoryRepository()
        await repo.create(make_resource(title="A", pages=3))
        await repo.update(make_resource(version=2, title="B"))
        found = await repo.find_by_key(ResourceKey("t1", "doc", "d1"))
        assert found.version == 2
        assert found.fields == {"title": "B"}

    @pytest.mark.asyncio
    async def test_update_missing(self, make_resource):
        with pytest.raises(NotFoundError):
            await InMemoryRepository().update(make_resource())

    @pytest.mark.asyncio
    async def test_delete(self, make_resource):
        repo = InMemoryRepository()
        await repo.create(make_resource())
        assert await repo.delete(ResourceKey("t1", "doc", "d1")) is True
        assert await repo.delete(ResourceKey("t1", "doc", "d1")) is False
        assert await repo.find_by_key(ResourceKey("t1", "doc", "d1")) is None

    @pytest.mark.asyncio
    async def test_returned_resources_are_copies(self, make_resource):
        repo = InMemoryRepository()
        await repo.create(make_resource(tags=["a"]))
        found = await repo.find_by_key(ResourceKey("t1", "doc", "d1"))
        found.fields["tags"].append("b")
        again = await repo.find_by_key(ResourceKey("t1", "doc", "d1"))
        assert again.fields["tags"] == ["a"]

    @pytest.mark.asyncio
    async def test_tenants_are_separate_identities(self, make_resource):
        repo = InMemoryRepository()
        await repo.create(make_resource(tenant="t1"))
        await repo.create(make_resource(tenant="t2"))
        assert len(repo) == 2


class TestSearch:
    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, seeded):
        condition = all_of(where("type", "=", "doc"))
        first = await seeded.search(condition, Pagination(page=1, limit=2, sort_by="id"))
        second = await seeded.search(condition, Pagination(page=2, limit=2, sort_by="id"))
        third = await seeded.search(condition, Pagination(page=3, limit=2, sort_by="id"))

        assert [r.id for r in first.results] == ["d1", "d2"]
        assert [r.id for r in second.results] == ["d3", "d4"]
        assert [r.id for r in third.results] == ["d5"]
        assert first.total == second.total == third.total == 5
        assert first.truncated is False

    @pytest.mark.asyncio
    async def test_sort_descending(self, seeded):
        result = await seeded.search(
            where("type", "=", "doc"),
            Pagination(page=1, limit=10, sort_by="rank", sort_direction=SortDirection.DESC),
        )
        assert [r.fields["rank"] for r in result.results] == [5, 4, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_unsorted_keeps_insertion_order(self, seeded):
        result = await seeded.search(where("type", "=", "doc"), Pagination(page=1, limit=10))
        assert [r.id for r in result.results] == ["d3", "d1", "d5", "d2", "d4"]

    @pytest.mark.asyncio
    async def test_empty_or_matches_nothing(self, seeded):
        result = await seeded.search(ConditionGroup(Logic.OR), Pagination(page=1, limit=10))
        assert result.results == []
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_zero_page_yields_empty_page(self, seeded):
        result = await seeded.search(ConditionGroup(), Pagination(page=0, limit=2))
        assert result.results == []
        assert result.total == 6


class TestExistsAndCount:
    @pytest.mark.asyncio
    async def test_count(self, seeded):
        assert await seeded.count(where("rank", ">=", 3)) == 3
        assert await seeded.count(ConditionGroup()) == 6

    @pytest.mark.asyncio
    async def test_exists(self, seeded):
        assert await seeded.exists(where("type", "=", "note"))
        assert not await seeded.exists(where("type", "=", "image"))

    @pytest.mark.asyncio
    async def test_clear(self, seeded):
        seeded.clear()
        assert await seeded.count(ConditionGroup()) == 0
