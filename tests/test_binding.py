"""Tests for the host binding mixin and save path."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import inspect

from hosts import Article, Page
from versioned.binding import HostBinding, load_stored_attributes
from versioned.errors import InvalidVersionDataError


async def _stored_article(session, **values):
    article = Article(title=values.pop("title", "First"), **values)
    session.add(article)
    await session.commit()
    return article


class TestVersionedMixin:
    @pytest.mark.asyncio
    async def test_identity_absent_until_stored(self, session):
        article = Article(title="New")
        assert article.version_identity() is None

        session.add(article)
        await session.commit()
        assert article.version_identity() == article.id

    def test_type_tag_and_fields(self):
        assert Article.version_type_tag() == "Article"
        assert Article.version_title_field() == "title"
        assert Article.version_timestamp_field() == "updated_at"
        assert Page.version_type_tag() == "page"
        assert Page.version_title_field() == "heading"
        assert Page.version_on_delete() is True
        assert Article.version_on_delete() is False

    @pytest.mark.asyncio
    async def test_pre_mutation_attributes_ignore_pending_changes(self, session):
        article = await _stored_article(session, title="Before", body="old body")
        article.title = "After"
        article.body = None

        original = article.pre_mutation_attributes()
        assert original["title"] == "Before"
        assert original["body"] == "old body"
        assert original["id"] == article.id
        assert article.version_attributes()["title"] == "After"

    @pytest.mark.asyncio
    async def test_pre_mutation_attributes_when_value_was_null(self, session):
        article = await _stored_article(session, body=None)
        article.body = "filled"
        assert article.pre_mutation_attributes()["body"] is None

    @pytest.mark.asyncio
    async def test_stored_values_fill_expired_attributes(self, session):
        article = await _stored_article(session, title="Saved", body="stored body")
        session.expire(article)
        article.title = "Pending"

        unknown = article.unknown_original_keys()
        assert {"title", "body"} <= unknown
        stored = await load_stored_attributes(session, article, unknown)

        original = article.pre_mutation_attributes(stored)
        assert original["title"] == "Saved"
        assert original["body"] == "stored body"
        assert article.title == "Pending"

    @pytest.mark.asyncio
    async def test_apply_skips_identity_and_timestamp(self, session):
        article = await _stored_article(session)
        original_id = article.id
        original_updated = article.updated_at

        article.apply_version_data({
            "id": 999,
            "title": "Restored",
            "published_on": "2026-05-01",
            "updated_at": "2020-01-01T00:00:00",
        })

        assert article.id == original_id
        assert article.updated_at == original_updated
        assert article.title == "Restored"
        assert article.published_on == date(2026, 5, 1)

    @pytest.mark.asyncio
    async def test_apply_is_all_or_nothing(self, session):
        article = await _stored_article(session, title="Keep")

        with pytest.raises(InvalidVersionDataError):
            article.apply_version_data({"title": "Lost", "no_such_column": 1})
        with pytest.raises(InvalidVersionDataError):
            article.apply_version_data({"title": "Lost", "published_on": "not a date"})

        assert article.title == "Keep"
        assert article.published_on is None

    def test_from_version_data_builds_detached_instance(self):
        article = Article.from_version_data(
            {"id": 3, "title": "Old", "published_on": "2026-02-03", "status": "draft"}
        )
        assert isinstance(article, Article)
        assert article.title == "Old"
        assert article.published_on == date(2026, 2, 3)
        assert inspect(article).transient

    def test_suspend_versioning_restores_flag_on_error(self):
        article = Article(title="x")
        with pytest.raises(RuntimeError):
            with article.suspend_versioning():
                assert article.is_versioned() is False
                raise RuntimeError("save failed")
        assert article.is_versioned() is True

    def test_suspend_versioning_keeps_disabled_flag(self):
        article = Article(title="x")
        article.versioning_enabled = False
        with article.suspend_versioning():
            pass
        assert article.is_versioned() is False


class TestHostBinding:
    @pytest.mark.asyncio
    async def test_new_entity_skips_update_hooks(self, session):
        binding = HostBinding(session)
        hook = AsyncMock()
        binding.on_before_update(hook)

        article = await binding.persist(Article(title="New"))

        hook.assert_not_called()
        assert article.id is not None

    @pytest.mark.asyncio
    async def test_update_hook_sees_original_state(self, session):
        binding = HostBinding(session)
        seen = []

        async def hook(entity):
            seen.append(entity.pre_mutation_attributes()["title"])

        binding.on_before_update(hook)
        article = await binding.persist(Article(title="A"))
        article.title = "B"
        await binding.persist(article)

        assert seen == ["A"]

    @pytest.mark.asyncio
    async def test_unchanged_entity_skips_update_hooks(self, session):
        binding = HostBinding(session)
        hook = AsyncMock()
        binding.on_before_update(hook)
        article = await binding.persist(Article(title="Same"))

        article.title = "Same"
        await binding.persist(article)

        hook.assert_not_called()

    @pytest.mark.asyncio
    async def test_hooks_register_once(self, session):
        binding = HostBinding(session)
        hook = AsyncMock()
        binding.on_before_update(hook)
        binding.on_before_update(hook)
        article = await binding.persist(Article(title="A"))

        article.title = "B"
        await binding.persist(article)

        assert hook.await_count == 1

    @pytest.mark.asyncio
    async def test_delete_runs_delete_hooks(self, session):
        binding = HostBinding(session)
        hook = AsyncMock()
        binding.on_before_delete(hook)
        article = await binding.persist(Article(title="Doomed"))

        await binding.delete(article)

        hook.assert_awaited_once_with(article)
        assert await session.get(Article, article.id) is None
