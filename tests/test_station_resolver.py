"""Tests for station resolution."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from commute_watch.errors import UpstreamUnavailable
from commute_watch.models.transit import StationCategory, StopArea
from commute_watch.services.station_resolver import StationResolver, rank_stations


def _station(id: str, name: str, category: StationCategory) -> StopArea:
    return StopArea(id=id, name=name, category=category)


STATIONS = [
    _station("1", "Centralen buss", StationCategory.BUS_TERMINAL),
    _station("2", "Ängby", StationCategory.OTHER),
    _station("3", "T-Centralen", StationCategory.METRO),
    _station("4", "Stockholm Central", StationCategory.RAIL),
    _station("5", "Arlanda Central", StationCategory.RAIL),
    _station("6", "Alvik spårväg", StationCategory.TRAM),
]


def _provider(result=None, error: Exception | None = None) -> MagicMock:
    provider = MagicMock()
    provider.search_stations = AsyncMock(return_value=result, side_effect=error)
    return provider


def test_ranking_by_category_then_name():
    ranked = rank_stations(STATIONS)
    assert [s.id for s in ranked] == ["5", "4", "3", "1", "6", "2"]


def test_ranking_ignores_accents_and_case():
    ranked = rank_stations(
        [
            _station("a", "östra", StationCategory.OTHER),
            _station("b", "Odenplan", StationCategory.OTHER),
            _station("c", "ALVIK", StationCategory.OTHER),
        ]
    )
    # "östra" sorts as "ostra", after "odenplan"
    assert [s.id for s in ranked] == ["c", "b", "a"]


@pytest.mark.asyncio
async def test_resolve_ranks_upstream_results():
    resolver = StationResolver(_provider(STATIONS))

    resolution = await resolver.resolve("central")

    assert resolution.is_fallback is False
    assert resolution.stations[0].category == StationCategory.RAIL
    assert resolution.stations[-1].id == "2"


@pytest.mark.asyncio
async def test_resolve_caches_by_normalized_query():
    provider = _provider(STATIONS)
    resolver = StationResolver(provider)

    await resolver.resolve("Södra")
    await resolver.resolve("  sodra ")

    provider.search_stations.assert_awaited_once()


@pytest.mark.asyncio
async def test_concurrent_resolves_fetch_once():
    provider = _provider(STATIONS)
    resolver = StationResolver(provider)

    await asyncio.gather(*(resolver.resolve("Odenplan") for _ in range(5)))

    provider.search_stations.assert_awaited_once()


@pytest.mark.asyncio
async def test_slow_lookup_does_not_block_other_queries():
    release = asyncio.Event()

    async def search_stations(query: str) -> list[StopArea]:
        if query == "slow":
            await release.wait()
        return STATIONS

    provider = MagicMock()
    provider.search_stations = search_stations
    resolver = StationResolver(provider)

    slow = asyncio.create_task(resolver.resolve("slow"))
    await asyncio.sleep(0)

    fast = await asyncio.wait_for(resolver.resolve("fast"), timeout=1)
    assert fast.is_fallback is False
    assert not slow.done()

    release.set()
    assert (await slow).is_fallback is False


@pytest.mark.asyncio
async def test_empty_query_skips_upstream():
    provider = _provider(STATIONS)
    resolver = StationResolver(provider)

    resolution = await resolver.resolve("   ")

    assert resolution.stations == []
    assert resolution.is_fallback is False
    provider.search_stations.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [UpstreamUnavailable("down"), httpx.ConnectError("refused"), TimeoutError()]
)
async def test_upstream_failure_uses_flagged_fallback(error):
    resolver = StationResolver(_provider(error=error))

    resolution = await resolver.resolve("Odenplan")

    assert resolution.is_fallback is True
    assert resolution.stations[0].name == "Odenplan T-bana"


@pytest.mark.asyncio
async def test_fallback_understands_abbreviations():
    resolver = StationResolver(_provider(error=UpstreamUnavailable("down")))

    resolution = await resolver.resolve("Stockholm C")

    assert resolution.is_fallback is True
    assert resolution.stations[0].id == "740000001"


@pytest.mark.asyncio
async def test_fallback_results_are_not_cached():
    provider = _provider(error=UpstreamUnavailable("down"))
    resolver = StationResolver(provider)

    await resolver.resolve("Odenplan")
    provider.search_stations.side_effect = None
    provider.search_stations.return_value = [_station("9", "Odenplan", StationCategory.METRO)]
    resolution = await resolver.resolve("Odenplan")

    assert resolution.is_fallback is False
    assert resolution.stations[0].id == "9"
    assert provider.search_stations.await_count == 2


@pytest.mark.asyncio
async def test_slow_upstream_times_out_to_fallback():
    async def slow(query):
        await asyncio.sleep(1)
        return STATIONS

    provider = MagicMock()
    provider.search_stations = slow
    resolver = StationResolver(provider, timeout=0.01)

    resolution = await resolver.resolve("Flemingsberg")

    assert resolution.is_fallback is True
    assert resolution.stations[0].name == "Flemingsberg station"


@pytest.mark.asyncio
async def test_resolve_by_id():
    resolver = StationResolver(_provider(STATIONS))

    # curated stations are known up front
    assert resolver.resolve_by_id("740000001").name == "Stockholm Centralstation"
    assert resolver.resolve_by_id("3") is None

    await resolver.resolve("central")

    assert resolver.resolve_by_id("3").name == "T-Centralen"
