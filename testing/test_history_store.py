"""Tests for chat history persistence."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from coach.errors import PersistenceFailure
from coach.models import Feature
from coach.services.history_store import HistoryStore

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_list_missing_returns_empty(tmp_path):
    store = HistoryStore(tmp_path)

    assert await store.list_ordered("u1", Feature.GRAMMAR) == []


@pytest.mark.asyncio
async def test_append_preserves_insertion_order(tmp_path):
    store = HistoryStore(tmp_path)
    # Same timestamp on purpose: order comes from insertion, not the clock.
    await store.append("u1", Feature.FREE_TALK, "user", "first", START)
    await store.append("u1", Feature.FREE_TALK, "tutor", "second", START)
    await store.append("u1", Feature.FREE_TALK, "user", "third", START - timedelta(seconds=5))

    records = await store.list_ordered("u1", Feature.FREE_TALK)

    assert [r.text for r in records] == ["first", "second", "third"]
    assert [r.sender for r in records] == ["user", "tutor", "user"]


@pytest.mark.asyncio
async def test_histories_are_keyed_by_user_and_feature(tmp_path):
    store = HistoryStore(tmp_path)
    await store.append("u1", Feature.FREE_TALK, "user", "free talk")
    await store.append("u1", Feature.GRAMMAR, "user", "grammar")
    await store.append("u2", Feature.FREE_TALK, "user", "other user")

    assert [r.text for r in await store.list_ordered("u1", Feature.FREE_TALK)] == ["free talk"]
    assert [r.text for r in await store.list_ordered("u1", Feature.GRAMMAR)] == ["grammar"]
    assert [r.text for r in await store.list_ordered("u2", Feature.FREE_TALK)] == ["other user"]


@pytest.mark.asyncio
async def test_file_layout_and_unicode(tmp_path):
    store = HistoryStore(tmp_path)
    await store.append("a/b", Feature.MISTAKE_REVIEW, "tutor", "Объяснение", START)

    path = tmp_path / "history" / "history_a_b_mistakeReview.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data[0]["text"] == "Объяснение"
    assert data[0]["feature"] == "mistakeReview"


@pytest.mark.asyncio
async def test_corrupted_file_raises_persistence_failure(tmp_path):
    store = HistoryStore(tmp_path)
    (tmp_path / "history" / "history_u1_grammar.json").write_text("{not json")

    with pytest.raises(PersistenceFailure):
        await store.list_ordered("u1", Feature.GRAMMAR)


@pytest.mark.asyncio
async def test_clear_removes_history(tmp_path):
    store = HistoryStore(tmp_path)
    await store.append("u1", Feature.FREE_TALK, "user", "hello")

    store.clear()

    assert await store.list_ordered("u1", Feature.FREE_TALK) == []
