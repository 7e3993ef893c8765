"""Tests for snapshot assembly, never-regress fallback and window cascade."""

import json
from datetime import timedelta

import pytest

from common_lib.cache import AsyncCache
from snapshot_cache.app.keys import METADATA_KEY, asset_window_key, snapshot_key
from snapshot_cache.app.repository import SnapshotRepository
from snapshot_cache.app.service import SnapshotCache
from src.core.errors import CacheUnavailableError
from src.core.windows import LookbackWindow
from tests.conftest import BrokenRedis
from tests.factories import make_record


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock(now):
    return Clock(now)


@pytest.fixture
def snapshots(repository, clock):
    return SnapshotCache(repository, clock=clock)


class TestAssemble:
    @pytest.mark.asyncio
    async def test_assembly_is_idempotent_apart_from_fetched_at(self, snapshots, clock, assets, now):
        for index, asset in enumerate(assets[:3]):
            records = [make_record(f"CVE-2024-{index}00{n}", published=now - timedelta(hours=n + index)) for n in range(2)]
            await snapshots.store_asset_window(asset.id, LookbackWindow.D7, records)

        first = await snapshots.assemble_snapshot(LookbackWindow.D7, assets)
        clock.now = now + timedelta(minutes=10)
        second = await snapshots.assemble_snapshot(LookbackWindow.D7, assets)

        assert first.model_dump(exclude={"fetched_at"}) == second.model_dump(exclude={"fetched_at"})
        assert second.fetched_at > first.fetched_at
        assert len(second.all) == 6
        assert set(second.by_asset) == {asset.id for asset in assets}

    @pytest.mark.asyncio
    async def test_all_is_sorted_most_recent_first(self, snapshots, assets, now):
        await snapshots.store_asset_window(assets[0].id, LookbackWindow.D7, [make_record("CVE-A", published=now - timedelta(days=3))])
        await snapshots.store_asset_window(assets[1].id, LookbackWindow.D7, [make_record("CVE-B", published=now - timedelta(days=1))])

        snapshot = await snapshots.assemble_snapshot(LookbackWindow.D7, assets[:2])

        assert [r.id for r in snapshot.all] == ["CVE-B", "CVE-A"]

    @pytest.mark.asyncio
    async def test_missing_key_keeps_previous_slice(self, snapshots, fake_redis, assets):
        asset = assets[0]
        records = [make_record(f"CVE-2024-000{n}") for n in range(3)]
        await snapshots.store_asset_window(asset.id, LookbackWindow.D30, records)
        await snapshots.assemble_snapshot(LookbackWindow.D30, assets)

        del fake_redis.store[asset_window_key(asset.id, LookbackWindow.D30)]
        snapshot = await snapshots.assemble_snapshot(LookbackWindow.D30, assets)

        assert len(snapshot.by_asset[asset.id]) >= 3

    @pytest.mark.asyncio
    async def test_malformed_key_falls_back(self, snapshots, fake_redis, assets):
        asset = assets[0]
        await snapshots.store_asset_window(asset.id, LookbackWindow.D7, [make_record("CVE-2024-0001")])
        await snapshots.assemble_snapshot(LookbackWindow.D7, assets)

        fake_redis.store[asset_window_key(asset.id, LookbackWindow.D7)] = json.dumps([{"bogus": True}])
        snapshot = await snapshots.assemble_snapshot(LookbackWindow.D7, assets)

        assert [r.id for r in snapshot.by_asset[asset.id]] == ["CVE-2024-0001"]

    @pytest.mark.asyncio
    async def test_explicit_empty_list_is_authoritative(self, snapshots, assets):
        asset = assets[0]
        await snapshots.store_asset_window(asset.id, LookbackWindow.D7, [make_record("CVE-2024-0001")])
        await snapshots.assemble_snapshot(LookbackWindow.D7, assets)

        await snapshots.store_asset_window(asset.id, LookbackWindow.D7, [])
        snapshot = await snapshots.assemble_snapshot(LookbackWindow.D7, assets)

        assert snapshot.by_asset[asset.id] == []

    @pytest.mark.asyncio
    async def test_metadata_and_ttls(self, snapshots, fake_redis, assets, now):
        await snapshots.assemble_snapshot(LookbackWindow.H24, assets)

        metadata = await snapshots.get_metadata()
        assert metadata.last_updated["24h"] == now.isoformat()
        assert fake_redis.ttls[snapshot_key(LookbackWindow.H24)] == 14400
        assert fake_redis.ttls[METADATA_KEY] == 14400

    @pytest.mark.asyncio
    async def test_store_failure_is_fatal(self, assets):
        broken = SnapshotCache(SnapshotRepository(AsyncCache(client=BrokenRedis(), ttl_seconds=60, io_timeout=1.0)))
        with pytest.raises(CacheUnavailableError):
            await broken.assemble_snapshot(LookbackWindow.D7, assets)


class TestCascade:
    @pytest.mark.asyncio
    async def test_record_lands_exactly_once_in_shorter_window(self, snapshots, assets, now):
        asset = assets[0]
        five_days_old = make_record("CVE-2024-5555", published=now - timedelta(days=5))
        for window in (LookbackWindow.D30, LookbackWindow.D90, LookbackWindow.D119):
            await snapshots.store_asset_window(asset.id, window, [five_days_old])
        for window in (LookbackWindow.H24, LookbackWindow.D7):
            await snapshots.store_asset_window(asset.id, window, [])
        await snapshots.assemble_all(assets)

        added = await snapshots.cascade_windows(assets)

        seven = await snapshots.get_snapshot(LookbackWindow.D7)
        day = await snapshots.get_snapshot(LookbackWindow.H24)
        assert added == 1
        assert [r.id for r in seven.by_asset[asset.id]] == ["CVE-2024-5555"]
        assert [r.id for r in seven.all] == ["CVE-2024-5555"]
        assert day.by_asset[asset.id] == []

        assert await snapshots.cascade_windows(assets) == 0
        seven_again = await snapshots.get_snapshot(LookbackWindow.D7)
        assert [r.id for r in seven_again.all] == ["CVE-2024-5555"]

    @pytest.mark.asyncio
    async def test_missing_shorter_snapshot_is_skipped(self, snapshots, assets, now):
        asset = assets[0]
        await snapshots.store_asset_window(asset.id, LookbackWindow.D30, [make_record("CVE-2024-0001", published=now - timedelta(hours=2))])
        await snapshots.assemble_snapshot(LookbackWindow.D30, assets)

        added = await snapshots.cascade_windows(assets)

        assert added == 0
        assert await snapshots.get_snapshot(LookbackWindow.D7) is None

    @pytest.mark.asyncio
    async def test_existing_ids_are_not_duplicated(self, snapshots, assets, now):
        asset = assets[0]
        record = make_record("CVE-2024-0001", published=now - timedelta(hours=2))
        for window in LookbackWindow:
            await snapshots.store_asset_window(asset.id, window, [record])
        await snapshots.assemble_all(assets)

        assert await snapshots.cascade_windows(assets) == 0
        day = await snapshots.get_snapshot(LookbackWindow.H24)
        assert len(day.all) == 1


@pytest.mark.asyncio
async def test_cache_status(snapshots, assets, now):
    await snapshots.store_asset_window(assets[0].id, LookbackWindow.D7, [make_record("CVE-2024-0001")])
    await snapshots.assemble_snapshot(LookbackWindow.D7, assets)

    status = await snapshots.cache_status()

    assert status["7d"]["hasData"] is True
    assert status["7d"]["total"] == 1
    assert status["7d"]["assetsWithVulns"] == 1
    assert status["7d"]["lastUpdated"] == now.isoformat()
    assert status["24h"] == {
        "hasData": False,
        "total": 0,
        "assetsWithVulns": 0,
        "fetchedAt": None,
        "lastUpdated": None,
    }
