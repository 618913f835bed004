"""
Tests for Destination: fit checks, space claiming and catalog scanning.
"""

import os
from datetime import datetime

import pytest

from conftest import make_plot, write_eviction_candidates
from plot_archiver.core.events.archival_events import PlotEvictedEvent
from plot_archiver.models import GIB
from plot_archiver.services.destination import (
    CATALOG_MAX_DEPTH,
    Destination,
    build_eviction_catalog,
)


@pytest.fixture
def location(tmp_path):
    path = tmp_path / "dest"
    path.mkdir()
    return str(path)


class TestFitChecks:
    def test_can_fit_directly_is_strict(self, capacity_probe, location):
        destination = Destination(location, capacity_probe, free_space_bytes=10 * GIB)

        assert destination.can_fit_directly(make_plot("/s/a.plot", 8))
        assert not destination.can_fit_directly(make_plot("/s/b.plot", 10))

    def test_can_fit_with_eviction_counts_catalog(self, capacity_probe, location):
        catalog = [make_plot(f"/d/old-{i}.plot", 5, is_eviction_candidate=True) for i in range(2)]
        destination = Destination(
            location, capacity_probe, eviction_catalog=catalog, free_space_bytes=2 * GIB
        )

        assert destination.claimable_space_bytes == 10 * GIB
        assert destination.can_fit_with_eviction(make_plot("/s/a.plot", 11))
        assert not destination.can_fit_with_eviction(make_plot("/s/b.plot", 12))

    @pytest.mark.parametrize("free_gib", [0, 1, 5, 9, 20])
    @pytest.mark.parametrize("plot_gib", [0.5, 4, 8, 15])
    def test_direct_fit_implies_eviction_fit(self, capacity_probe, location, free_gib, plot_gib):
        catalog = [make_plot("/d/old.plot", 3, is_eviction_candidate=True)]
        destination = Destination(
            location, capacity_probe, eviction_catalog=catalog, free_space_bytes=int(free_gib * GIB)
        )
        plot = make_plot("/s/a.plot", plot_gib)

        if destination.can_fit_directly(plot):
            assert destination.can_fit_with_eviction(plot)

    def test_catalog_is_sorted_oldest_first(self, capacity_probe, location):
        newer = make_plot("/d/b.plot", created_at=datetime(2022, 1, 1), is_eviction_candidate=True)
        older = make_plot("/d/a.plot", created_at=datetime(2020, 1, 1), is_eviction_candidate=True)

        destination = Destination(location, capacity_probe, eviction_catalog=[newer, older])

        assert destination.eviction_catalog == [older, newer]


class TestRefreshFreeSpace:
    @pytest.mark.asyncio
    async def test_refresh_reads_probe(self, capacity_probe, location):
        capacity_probe.free_space[location] = 7 * GIB
        destination = Destination(location, capacity_probe)

        await destination.refresh_free_space()

        assert destination.free_space_bytes == 7 * GIB

    @pytest.mark.asyncio
    async def test_probe_failure_keeps_previous_value(self, capacity_probe, location):
        destination = Destination(location, capacity_probe, free_space_bytes=3 * GIB)
        capacity_probe.failing_locations.add(location)

        await destination.refresh_free_space()

        assert destination.free_space_bytes == 3 * GIB


class TestClaimSpace:
    @pytest.mark.asyncio
    async def test_evicts_oldest_until_plot_fits(self, tmp_path, capacity_probe, location, event_bus):
        capacity_probe.free_space[location] = 2 * GIB
        candidates = write_eviction_candidates(tmp_path / "dest", 3, 5, capacity_probe, location)
        destination = Destination(
            location,
            capacity_probe,
            event_bus=event_bus,
            eviction_catalog=candidates,
            free_space_bytes=2 * GIB,
        )
        evicted_events = []

        async def on_evicted(event):
            evicted_events.append(event)

        event_bus.subscribe(PlotEvictedEvent, on_evicted)

        evicted = await destination.claim_space_for(make_plot("/s/new.plot", 9))

        assert evicted == candidates[:2]
        assert not os.path.exists(candidates[0].path)
        assert not os.path.exists(candidates[1].path)
        assert os.path.exists(candidates[2].path)
        assert destination.eviction_catalog == [candidates[2]]
        assert destination.free_space_bytes == 12 * GIB
        assert destination.can_fit_directly(make_plot("/s/new.plot", 9))
        assert [e.evicted_path for e in evicted_events] == [c.path for c in candidates[:2]]

    @pytest.mark.asyncio
    async def test_no_eviction_when_plot_already_fits(self, tmp_path, capacity_probe, location):
        capacity_probe.free_space[location] = 10 * GIB
        candidates = write_eviction_candidates(tmp_path / "dest", 2, 5, capacity_probe, location)
        destination = Destination(
            location, capacity_probe, eviction_catalog=candidates, free_space_bytes=10 * GIB
        )

        evicted = await destination.claim_space_for(make_plot("/s/new.plot", 8))

        assert evicted == []
        assert all(os.path.exists(c.path) for c in candidates)

    @pytest.mark.asyncio
    async def test_stops_when_catalog_exhausted(self, tmp_path, capacity_probe, location):
        capacity_probe.free_space[location] = 1 * GIB
        candidates = write_eviction_candidates(tmp_path / "dest", 2, 1, capacity_probe, location)
        destination = Destination(
            location, capacity_probe, eviction_catalog=candidates, free_space_bytes=1 * GIB
        )
        plot = make_plot("/s/new.plot", 9)

        evicted = await destination.claim_space_for(plot)

        assert len(evicted) == 2
        assert destination.eviction_catalog == []
        assert not destination.can_fit_directly(plot)

    @pytest.mark.asyncio
    async def test_missing_candidate_is_skipped(self, tmp_path, capacity_probe, location):
        capacity_probe.free_space[location] = 2 * GIB
        candidates = write_eviction_candidates(tmp_path / "dest", 2, 5, capacity_probe, location)
        os.remove(candidates[0].path)
        destination = Destination(
            location, capacity_probe, eviction_catalog=candidates, free_space_bytes=2 * GIB
        )

        evicted = await destination.claim_space_for(make_plot("/s/new.plot", 6))

        # The vanished file already freed its space
        assert evicted == []
        assert destination.eviction_catalog == [candidates[1]]
        assert os.path.exists(candidates[1].path)

    @pytest.mark.asyncio
    async def test_delete_failure_propagates(self, tmp_path, capacity_probe, location):
        capacity_probe.free_space[location] = 1 * GIB
        directory_candidate = tmp_path / "dest" / "plot-k32-old-dir.plot"
        directory_candidate.mkdir()
        candidate = make_plot(str(directory_candidate), 5, is_eviction_candidate=True)
        destination = Destination(
            location, capacity_probe, eviction_catalog=[candidate], free_space_bytes=1 * GIB
        )

        with pytest.raises(OSError):
            await destination.claim_space_for(make_plot("/s/new.plot", 3))

        assert destination.eviction_catalog == []


class TestEvictionCatalog:
    @pytest.mark.asyncio
    async def test_collects_only_matching_files_oldest_first(self, tmp_path):
        root = tmp_path / "dest"
        (root / "a").mkdir(parents=True)
        older = root / "a" / "plot-k32-old-1.plot"
        newer = root / "plot-k32-old-2.plot"
        keep = root / "plot-k32-new.plot"
        for path in (older, newer, keep):
            path.write_bytes(b"data")
        os.utime(older, (1_600_000_000, 1_600_000_000))
        os.utime(newer, (1_700_000_000, 1_700_000_000))

        catalog = await build_eviction_catalog(str(root), [r"old-\d\.plot$"])

        assert [plot.name for plot in catalog] == ["plot-k32-old-1.plot", "plot-k32-old-2.plot"]
        assert all(plot.is_eviction_candidate for plot in catalog)

    @pytest.mark.asyncio
    async def test_respects_max_depth(self, tmp_path):
        root = tmp_path / "dest"
        deep = root
        for level in range(CATALOG_MAX_DEPTH + 1):
            deep = deep / f"level{level + 1}"
        deep.mkdir(parents=True)
        (deep / "plot-k32-old-deep.plot").write_bytes(b"x")
        (deep.parent / "plot-k32-old-ok.plot").write_bytes(b"x")

        catalog = await build_eviction_catalog(str(root), [r"old-"])

        assert [plot.name for plot in catalog] == ["plot-k32-old-ok.plot"]

    @pytest.mark.asyncio
    async def test_skips_system_directories(self, tmp_path):
        root = tmp_path / "dest"
        (root / "$RECYCLE.BIN").mkdir(parents=True)
        (root / "$RECYCLE.BIN" / "plot-k32-old-1.plot").write_bytes(b"x")

        catalog = await build_eviction_catalog(str(root), [r"old-"])

        assert catalog == []

    @pytest.mark.asyncio
    async def test_no_patterns_means_empty_catalog(self, tmp_path):
        (tmp_path / "plot-k32-old-1.plot").write_bytes(b"x")

        assert await build_eviction_catalog(str(tmp_path), []) == []

    @pytest.mark.asyncio
    async def test_create_initializes_free_space_and_catalog(self, tmp_path, capacity_probe):
        root = tmp_path / "dest"
        root.mkdir()
        (root / "plot-k32-old-1.plot").write_bytes(b"x")
        capacity_probe.free_space[str(root)] = 4 * GIB

        destination = await Destination.create(str(root), capacity_probe, eviction_patterns=[r"old-"])

        assert destination.free_space_bytes == 4 * GIB
        assert len(destination.eviction_catalog) == 1
        assert destination.is_idle
