"""
Tests for the retrieval orchestrator.

These tests verify that:
1. All three categories always come back non-empty
2. A failure, timeout or empty result in one category only affects that category
3. A slow category costs at most its own timeout
4. The shared session is closed on every exit path
5. A failure to set up the run is absorbed by run_retrieval
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import List

import pytest

from engine.fallback import get_fallback
from engine.records import (
    CATEGORIES,
    FLIGHTS,
    HOTELS,
    RESTAURANTS,
    FlightInfo,
    HotelInfo,
    Provenance,
    RestaurantInfo,
)
from engine.retrieval import CategoryFetcher, RetrievalOrchestrator
from engine.state import SlotStore
from engine.turn import run_retrieval


def ready_slots() -> SlotStore:
    return SlotStore(
        destination="Paris",
        origin="New York (JFK)",
        start_date="June 5, 2024",
        end_date="June 13, 2024",
        budget="$2000",
        travelers=2,
    )


LIVE_RECORDS = {
    FLIGHTS: [FlightInfo(airline="Test Air", route="JFK-CDG", price="$700")],
    HOTELS: [HotelInfo(name="Live Hotel", address="Paris", price="$100/night", rating="4.0")],
    RESTAURANTS: [RestaurantInfo(name="Live Bistro", address="Paris", cuisine="French", price_range="$$", rating="4.2")],
}


class StaticFetcher(CategoryFetcher):
    def __init__(self, category: str, records: List = None):
        self.category = category
        self.records = LIVE_RECORDS[category] if records is None else records
        self.sessions = []

    async def fetch(self, query, session):
        self.sessions.append(session)
        return self.records


class FailingFetcher(CategoryFetcher):
    def __init__(self, category: str):
        self.category = category

    async def fetch(self, query, session):
        raise ConnectionError("network down")


class SlowFetcher(CategoryFetcher):
    def __init__(self, category: str, delay: float = 5.0):
        self.category = category
        self.delay = delay

    async def fetch(self, query, session):
        await asyncio.sleep(self.delay)
        return LIVE_RECORDS[self.category]


class TrackingSession:
    """Session factory that records opens and closes."""

    def __init__(self, fail_on_enter: bool = False, events: List = None):
        self.opened = 0
        self.closed = 0
        self.fail_on_enter = fail_on_enter
        self.events = events if events is not None else []

    def __call__(self):
        return self._session()

    @asynccontextmanager
    async def _session(self):
        if self.fail_on_enter:
            raise RuntimeError("browser failed to start")
        self.opened += 1
        try:
            yield self
        finally:
            self.closed += 1
            self.events.append("closed")


def live_fetchers():
    return [StaticFetcher(c) for c in CATEGORIES]


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_all_live(self):
        orchestrator = RetrievalOrchestrator(fetchers=live_fetchers())
        result = await orchestrator.retrieve(ready_slots())

        assert result.flights == LIVE_RECORDS[FLIGHTS]
        assert result.hotels == LIVE_RECORDS[HOTELS]
        assert result.restaurants == LIVE_RECORDS[RESTAURANTS]
        assert result.provenance_summary() == {c: "live" for c in CATEGORIES}

    @pytest.mark.asyncio
    async def test_fetchers_share_one_session(self):
        session = TrackingSession()
        fetchers = live_fetchers()
        orchestrator = RetrievalOrchestrator(fetchers=fetchers, session_factory=session)

        await orchestrator.retrieve(ready_slots())

        assert session.opened == 1
        assert session.closed == 1
        assert all(f.sessions == [session] for f in fetchers)

    @pytest.mark.asyncio
    async def test_no_fetchers_uses_fallback(self):
        """Without live fetchers every category comes from the catalog."""
        result = await RetrievalOrchestrator().retrieve(ready_slots())

        for category in CATEGORIES:
            assert result.get(category)
            assert result.provenance[category] == Provenance.FALLBACK

    def test_unknown_fetcher_category_rejected(self):
        with pytest.raises(ValueError):
            RetrievalOrchestrator(fetchers=[FailingFetcher("cars")])


class TestPartialFailure:

    @pytest.mark.asyncio
    async def test_one_category_raises(self):
        fetchers = [StaticFetcher(FLIGHTS), FailingFetcher(HOTELS), StaticFetcher(RESTAURANTS)]
        result = await RetrievalOrchestrator(fetchers=fetchers).retrieve(ready_slots())

        assert result.flights == LIVE_RECORDS[FLIGHTS]
        assert result.restaurants == LIVE_RECORDS[RESTAURANTS]
        assert result.is_fallback(HOTELS)
        assert [h.name for h in result.hotels][0] == "Hôtel des Grands Boulevards"
        assert not result.is_fallback(FLIGHTS)

    @pytest.mark.asyncio
    async def test_empty_result_falls_back(self):
        fetchers = [StaticFetcher(FLIGHTS, []), StaticFetcher(HOTELS), StaticFetcher(RESTAURANTS)]
        result = await RetrievalOrchestrator(fetchers=fetchers).retrieve(ready_slots())

        assert result.is_fallback(FLIGHTS)
        assert len(result.flights) == 3
        assert result.flights[0].route == "JFK-ATL-CDG"

    @pytest.mark.asyncio
    async def test_all_fail_still_three_lists(self):
        """Every category failing yields three non-empty fallback lists."""
        fetchers = [FailingFetcher(c) for c in CATEGORIES]
        result = await RetrievalOrchestrator(fetchers=fetchers).retrieve(ready_slots())

        for category in CATEGORIES:
            assert len(result.get(category)) > 0
            assert result.is_fallback(category)

    @pytest.mark.asyncio
    async def test_fallback_shape_matches_live(self):
        """Fallback records are the same types as live ones."""
        live = await RetrievalOrchestrator(fetchers=live_fetchers()).retrieve(ready_slots())
        fallback = await RetrievalOrchestrator(
            fetchers=[FailingFetcher(c) for c in CATEGORIES]
        ).retrieve(ready_slots())

        for category in CATEGORIES:
            assert type(live.get(category)[0]) is type(fallback.get(category)[0])
        assert set(live.to_dict()) == set(fallback.to_dict())


class TestTimeouts:

    @pytest.mark.asyncio
    async def test_slow_category_bounded_by_its_timeout(self):
        fetchers = [SlowFetcher(FLIGHTS, delay=5.0), StaticFetcher(HOTELS), StaticFetcher(RESTAURANTS)]
        orchestrator = RetrievalOrchestrator(fetchers=fetchers, timeouts={FLIGHTS: 0.2})

        started = time.monotonic()
        result = await orchestrator.retrieve(ready_slots())
        elapsed = time.monotonic() - started

        assert elapsed < 1.5
        assert result.is_fallback(FLIGHTS)
        assert not result.is_fallback(HOTELS)
        assert not result.is_fallback(RESTAURANTS)

    @pytest.mark.asyncio
    async def test_categories_run_concurrently(self):
        """Three slow fetchers take about one delay, not three."""
        fetchers = [SlowFetcher(c, delay=0.3) for c in CATEGORIES]
        orchestrator = RetrievalOrchestrator(fetchers=fetchers, default_timeout=2.0)

        started = time.monotonic()
        result = await orchestrator.retrieve(ready_slots())
        elapsed = time.monotonic() - started

        assert elapsed < 0.8
        assert result.provenance_summary() == {c: "live" for c in CATEGORIES}

    def test_timeout_lookup(self):
        orchestrator = RetrievalOrchestrator(timeouts={RESTAURANTS: 30.0}, default_timeout=20.0)
        assert orchestrator.timeout_for(RESTAURANTS) == 30.0
        assert orchestrator.timeout_for(FLIGHTS) == 20.0


class TestSessionRelease:

    @pytest.mark.asyncio
    async def test_closed_after_failures(self):
        session = TrackingSession()
        fetchers = [FailingFetcher(FLIGHTS), SlowFetcher(HOTELS), StaticFetcher(RESTAURANTS)]
        orchestrator = RetrievalOrchestrator(
            fetchers=fetchers, timeouts={HOTELS: 0.1}, session_factory=session
        )

        await orchestrator.retrieve(ready_slots())

        assert session.opened == 1
        assert session.closed == 1

    @pytest.mark.asyncio
    async def test_closed_when_fallback_raises(self):
        """An unexpected error inside the run still closes the session."""
        def broken_fallback(category, query):
            raise RuntimeError("catalog broken")

        session = TrackingSession()
        orchestrator = RetrievalOrchestrator(
            fetchers=[FailingFetcher(FLIGHTS)],
            session_factory=session,
            fallback=broken_fallback,
        )

        with pytest.raises(RuntimeError):
            await orchestrator.retrieve(ready_slots())

        assert session.closed == session.opened == 1

    @pytest.mark.asyncio
    async def test_pending_fetches_cancelled_before_close(self):
        """A fetch still running when another category raises is cancelled before the session closes."""
        events = []

        class HangingFetcher(CategoryFetcher):
            category = HOTELS

            async def fetch(self, query, session):
                try:
                    await asyncio.sleep(5.0)
                except asyncio.CancelledError:
                    events.append("hotels-cancelled")
                    raise
                return LIVE_RECORDS[HOTELS]

        def flights_fallback_broken(category, query):
            if category == FLIGHTS:
                raise RuntimeError("catalog broken")
            return get_fallback(category, query)

        session = TrackingSession(events=events)
        orchestrator = RetrievalOrchestrator(
            fetchers=[FailingFetcher(FLIGHTS), HangingFetcher()],
            session_factory=session,
            fallback=flights_fallback_broken,
        )

        with pytest.raises(RuntimeError, match="catalog broken"):
            await orchestrator.retrieve(ready_slots())

        assert events == ["hotels-cancelled", "closed"]
        assert session.closed == session.opened == 1


class TestRunRetrieval:
    """The turn-level wrapper treats setup failure as 'no retrieval data'."""

    @pytest.mark.asyncio
    async def test_setup_failure_returns_none(self):
        orchestrator = RetrievalOrchestrator(session_factory=TrackingSession(fail_on_enter=True))
        assert await run_retrieval(orchestrator, ready_slots()) is None

    @pytest.mark.asyncio
    async def test_no_orchestrator_returns_none(self):
        assert await run_retrieval(None, ready_slots()) is None

    @pytest.mark.asyncio
    async def test_success_passes_through(self):
        result = await run_retrieval(RetrievalOrchestrator(fetchers=live_fetchers()), ready_slots())
        assert result is not None
        assert result.provenance_summary() == {c: "live" for c in CATEGORIES}
