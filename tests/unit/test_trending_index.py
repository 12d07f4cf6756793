"""TrendingIndex unit tests against a mocked Redis client."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, call

import pytest

from vibe.engagement.trending_index import TrendingIndex, build_member, parse_member

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestMemberEncoding:
    def test_round_trip_id(self):
        assert parse_member(build_member(42, T0)) == 42

    def test_bytes_member(self):
        assert parse_member(build_member(7, T0).encode()) == 7

    def test_newer_sorts_higher(self):
        assert build_member(1, T0 + timedelta(seconds=1)) > build_member(2, T0)

    def test_same_time_higher_id_sorts_higher(self):
        assert build_member(10, T0) > build_member(9, T0)

    def test_naive_treated_as_utc(self):
        assert build_member(1, T0.replace(tzinfo=None)) == build_member(1, T0)


class TestStagedWrites:
    def test_nothing_sent_until_flush(self):
        redis = AsyncMock()
        index = TrendingIndex(redis, key="t")
        index.stage_add(5, T0)
        index.stage_delta(5, T0, 1)

        redis.zadd.assert_not_awaited()
        redis.zincrby.assert_not_awaited()
        assert index.pending == 2

    @pytest.mark.asyncio
    async def test_flush_applies_in_order(self):
        redis = AsyncMock()
        index = TrendingIndex(redis, key="t")
        member = build_member(5, T0)
        index.stage_add(5, T0)
        index.stage_delta(5, T0, -1)
        index.stage_remove(5, T0)

        assert await index.flush() == 3

        assert redis.method_calls == [
            call.zadd("t", {member: 0}, nx=True),
            call.zincrby("t", -1, member),
            call.zrem("t", member),
        ]
        assert index.pending == 0

    def test_zero_delta_not_staged(self):
        index = TrendingIndex(AsyncMock())
        index.stage_delta(5, T0, 0)
        assert index.pending == 0

    @pytest.mark.asyncio
    async def test_discard_drops_staged_writes(self):
        redis = AsyncMock()
        index = TrendingIndex(redis)
        index.stage_add(5, T0)
        index.discard()

        assert await index.flush() == 0
        redis.zadd.assert_not_awaited()


class TestTrendingIndex:
    @pytest.mark.asyncio
    async def test_top_parses_members(self):
        redis = AsyncMock()
        redis.zrevrange.return_value = [
            (build_member(3, T0), 4.0),
            (build_member(1, T0).encode(), 2.0),
        ]
        ranked = await TrendingIndex(redis, key="t").top(2)
        assert [(r.content_id, r.like_count) for r in ranked] == [(3, 4), (1, 2)]
        assert ranked[1].member == build_member(1, T0)
        redis.zrevrange.assert_awaited_once_with("t", 0, 1, withscores=True)

    @pytest.mark.asyncio
    async def test_top_with_offset(self):
        redis = AsyncMock()
        redis.zrevrange.return_value = []
        await TrendingIndex(redis, key="t").top(5, offset=10)
        redis.zrevrange.assert_awaited_once_with("t", 10, 14, withscores=True)

    @pytest.mark.asyncio
    async def test_remove_members(self):
        redis = AsyncMock()
        await TrendingIndex(redis, key="t").remove_members(["a", "b"])
        redis.zrem.assert_awaited_once_with("t", "a", "b")

    @pytest.mark.asyncio
    async def test_remove_nothing_skips_redis(self):
        redis = AsyncMock()
        await TrendingIndex(redis).remove_members([])
        redis.zrem.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rebuild_replaces_set(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[])
        redis = MagicMock()
        redis.pipeline.return_value = pipe

        row = MagicMock(id=8, created_at=T0, like_count=3)
        db = AsyncMock()
        db.execute.return_value = [row]

        count = await TrendingIndex(redis, key="t").rebuild(db)

        assert count == 1
        pipe.delete.assert_called_once_with("t")
        pipe.zadd.assert_called_once_with("t", {build_member(8, T0): 3})
        pipe.execute.assert_awaited_once()
