"""Tests for one refresh invocation end to end over an in-memory store."""

import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from refresh_scheduler.app.scheduler import BatchScheduler
from refresh_scheduler.app.service import EMPTY_BATCH_MESSAGE, RefreshService
from snapshot_cache.app.keys import BATCH_INDEX_KEY, RATE_LIMIT_KEY, asset_window_key
from source_client.app.rate_limiter import RateLimiter
from src.core.errors import DataValidationError, PartialSourceError, SourceUnavailableError
from src.core.windows import LookbackWindow
from tests.factories import make_record


def window_for(start: datetime, end: datetime) -> LookbackWindow:
    return next(window for window in LookbackWindow if window.duration == end - start)


class FakeReconciler:
    """Returns one record per asset and window; selected slices fail."""

    def __init__(self, failing=(), exploited=None):
        self.failing = set(failing)
        self.exploited = exploited or {}
        self.reconcile = AsyncMock(side_effect=self._reconcile)

    async def _reconcile(self, asset, start, end):
        window = window_for(start, end)
        if (asset.id, window) in self.exploited:
            raise PartialSourceError(SourceUnavailableError("NVD", 503), self.exploited[(asset.id, window)])
        if (asset.id, window) in self.failing:
            raise SourceUnavailableError("NVD", 503)
        return [make_record(f"CVE-{asset.id}-{window.value}", published=end, asset_id=asset.id)]


def passthrough_enrichment():
    enrichment = MagicMock()
    enrichment.run = AsyncMock(side_effect=lambda records: records)
    return enrichment


@pytest.fixture
def limiter():
    return RateLimiter(base_delay=0.0)


def build_service(repository, snapshots, assets, limiter, reconciler=None, enrichment=None):
    return RefreshService(
        reconciler=reconciler or FakeReconciler(),
        enrichment=enrichment or passthrough_enrichment(),
        snapshots=snapshots,
        scheduler=BatchScheduler(repository, assets, batch_size=4),
        rate_limiter=limiter,
        assets=assets,
    )


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_refreshes_current_batch_in_every_window(self, repository, snapshots, assets, limiter):
        reconciler = FakeReconciler()
        service = build_service(repository, snapshots, assets, limiter, reconciler=reconciler)

        result = await service.run_once()

        assert result.success is True
        assert (result.batch_index, result.next_batch_index) == (0, 1)
        assert result.assets_processed == ["Asset 0", "Asset 1", "Asset 2", "Asset 3"]
        assert result.total_assets == 10
        assert result.failed_slices == []
        assert result.invocation_id
        assert reconciler.reconcile.await_count == 4 * len(LookbackWindow)

        for window in LookbackWindow:
            snapshot = await snapshots.get_snapshot(window)
            assert snapshot is not None
            assert len(snapshot.by_asset) == 10
            assert f"CVE-{assets[0].id}-{window.value}" in snapshot.ids_for(assets[0].id)

    @pytest.mark.asyncio
    async def test_failed_slice_keeps_previous_data(self, repository, snapshots, fake_redis, assets, limiter):
        target = assets[0]
        previous = make_record("CVE-2024-OLD", asset_id=target.id)
        await snapshots.store_asset_window(target.id, LookbackWindow.D7, [previous])
        await snapshots.assemble_snapshot(LookbackWindow.D7, assets)
        fake_redis.set_calls.clear()

        reconciler = FakeReconciler(failing={(target.id, LookbackWindow.D7)})
        service = build_service(repository, snapshots, assets, limiter, reconciler=reconciler)

        result = await service.run_once()

        assert [(f.asset_id, f.time_range) for f in result.failed_slices] == [(target.id, "7d")]
        assert asset_window_key(target.id, LookbackWindow.D7) not in fake_redis.set_calls
        seven = await snapshots.get_snapshot(LookbackWindow.D7)
        assert "CVE-2024-OLD" in seven.ids_for(target.id)
        assert f"CVE-{target.id}-7d" not in seven.ids_for(target.id)
        # other windows of the same asset still refreshed
        thirty = await snapshots.get_snapshot(LookbackWindow.D30)
        assert f"CVE-{target.id}-30d" in thirty.ids_for(target.id)
        payload = result.to_json()
        assert payload["failedSlices"][0]["timeRange"] == "7d"

    @pytest.mark.asyncio
    async def test_kev_matches_survive_primary_failure(self, repository, snapshots, fake_redis, assets, limiter):
        target = assets[0]
        previous = make_record("CVE-2024-OLD", asset_id=target.id)
        await snapshots.store_asset_window(target.id, LookbackWindow.D7, [previous])
        exploited = make_record("CVE-2024-9999", asset_id=target.id, actively_exploited=True)

        reconciler = FakeReconciler(exploited={(target.id, LookbackWindow.D7): [exploited]})
        service = build_service(repository, snapshots, assets, limiter, reconciler=reconciler)

        result = await service.run_once()

        assert [(f.asset_id, f.time_range) for f in result.failed_slices] == [(target.id, "7d")]
        stored = await repository.read_asset_window(target.id, LookbackWindow.D7)
        assert {r.id for r in stored} == {"CVE-2024-OLD", "CVE-2024-9999"}
        seven = await snapshots.get_snapshot(LookbackWindow.D7)
        assert "CVE-2024-9999" in seven.ids_for(target.id)
        assert "CVE-2024-OLD" in seven.ids_for(target.id)

    @pytest.mark.asyncio
    async def test_kev_matches_stored_for_new_asset(self, repository, snapshots, assets, limiter):
        target = assets[1]
        exploited = make_record("CVE-2024-9999", asset_id=target.id, actively_exploited=True)
        reconciler = FakeReconciler(exploited={(target.id, LookbackWindow.D30): [exploited]})
        service = build_service(repository, snapshots, assets, limiter, reconciler=reconciler)

        await service.run_once()

        thirty = await snapshots.get_snapshot(LookbackWindow.D30)
        assert "CVE-2024-9999" in thirty.ids_for(target.id)
        assert f"CVE-{target.id}-30d" not in thirty.ids_for(target.id)

    @pytest.mark.asyncio
    async def test_empty_batch_is_a_no_op(self, repository, snapshots, fake_redis, assets, limiter):
        fake_redis.store[BATCH_INDEX_KEY] = json.dumps(5)
        reconciler = FakeReconciler()
        service = build_service(repository, snapshots, assets, limiter, reconciler=reconciler)

        result = await service.run_once()

        assert result.no_op is True
        assert result.message == EMPTY_BATCH_MESSAGE
        assert result.next_batch_index == 0
        assert result.assets_processed == []
        reconciler.reconcile.assert_not_awaited()
        assert await snapshots.get_snapshot(LookbackWindow.D7) is None

    @pytest.mark.asyncio
    async def test_wrapping_records_full_refresh(self, repository, snapshots, fake_redis, assets, limiter):
        fake_redis.store[BATCH_INDEX_KEY] = json.dumps(2)
        service = build_service(repository, snapshots, assets, limiter)

        result = await service.run_once()

        assert result.assets_processed == ["Asset 8", "Asset 9"]
        assert result.next_batch_index == 0
        metadata = await snapshots.get_metadata()
        assert metadata.last_full_refresh is not None

    @pytest.mark.asyncio
    async def test_limiter_state_restored_and_persisted(self, repository, snapshots, fake_redis, assets, limiter):
        fake_redis.store[RATE_LIMIT_KEY] = json.dumps({"lastRequestAt": 42.0, "consecutiveErrors": 3})
        service = build_service(repository, snapshots, assets, limiter)

        await service.run_once()

        assert limiter.consecutive_errors == 3
        stored = json.loads(fake_redis.store[RATE_LIMIT_KEY])
        assert stored == {"lastRequestAt": 42.0, "consecutiveErrors": 3}

    @pytest.mark.asyncio
    async def test_successive_runs_cover_catalog(self, repository, snapshots, assets, limiter):
        service = build_service(repository, snapshots, assets, limiter)

        indexes = [(await service.run_once()).batch_index for _ in range(4)]

        assert indexes == [0, 1, 2, 0]
        snapshot = await snapshots.get_snapshot(LookbackWindow.D119)
        assert all(snapshot.by_asset[asset.id] for asset in assets)


class TestRefreshAssets:
    @pytest.mark.asyncio
    async def test_unknown_asset_rejected(self, repository, snapshots, assets, limiter):
        service = build_service(repository, snapshots, assets, limiter)
        with pytest.raises(DataValidationError):
            await service.refresh_assets(["not-an-asset"])

    @pytest.mark.asyncio
    async def test_cursor_does_not_move(self, repository, snapshots, fake_redis, assets, limiter):
        fake_redis.store[BATCH_INDEX_KEY] = json.dumps(1)
        reconciler = FakeReconciler()
        service = build_service(repository, snapshots, assets, limiter, reconciler=reconciler)

        result = await service.refresh_assets(["cisco"])

        assert result.batch_index == result.next_batch_index == 1
        assert result.assets_processed == ["Cisco"]
        assert reconciler.reconcile.await_count == len(LookbackWindow)
        assert json.loads(fake_redis.store[BATCH_INDEX_KEY]) == 1
