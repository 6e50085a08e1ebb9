"""
Retrieval orchestrator.

Runs the flights, hotels and restaurants fetchers concurrently for one turn.

RESILIENCE DESIGN:
- Every category has its own timeout
- A failure, timeout or empty result in one category is replaced by that
  category's fallback records and never affects the others
- All categories are joined before returning (no fail-fast)
- The shared fetch session is opened once per run and closed on every exit path,
  after every fetch task has finished or been cancelled
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, Callable, Dict, Iterable, List, Optional, Tuple

from .fallback import get_fallback
from .records import CATEGORIES, Provenance, RetrievalQuery, RetrievalResult
from .state import SlotStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0

SessionFactory = Callable[[], AsyncContextManager[Any]]


class CategoryFetcher(ABC):
    """Live lookup for one retrieval category."""

    category: str = ""

    @abstractmethod
    async def fetch(self, query: RetrievalQuery, session: Any) -> List[Any]:
        """
        Fetch records for the query.

        May raise or return an empty list; the orchestrator substitutes
        fallback data in both cases.
        """
        ...


@asynccontextmanager
async def _no_session():
    yield None


class RetrievalOrchestrator:
    """Fan-out/fan-in over the category fetchers with per-category fallback."""

    def __init__(
        self,
        fetchers: Optional[Iterable[CategoryFetcher]] = None,
        timeouts: Optional[Dict[str, float]] = None,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session_factory: Optional[SessionFactory] = None,
        fallback: Callable[[str, RetrievalQuery], List[Any]] = get_fallback,
    ):
        self.fetchers: Dict[str, CategoryFetcher] = {}
        for fetcher in fetchers or []:
            if fetcher.category not in CATEGORIES:
                raise ValueError(
                    f"Unknown fetcher category: {fetcher.category}. Valid categories: {CATEGORIES}"
                )
            self.fetchers[fetcher.category] = fetcher
        self.timeouts = dict(timeouts or {})
        self.default_timeout = default_timeout
        self.session_factory = session_factory or _no_session
        self.fallback = fallback

    def timeout_for(self, category: str) -> float:
        return self.timeouts.get(category, self.default_timeout)

    async def retrieve(self, slots: SlotStore) -> RetrievalResult:
        """
        Fetch all categories for the given slots.

        Per-category problems never raise. An exception here means the run
        itself could not be set up (for example the session failed to open).
        """
        query = RetrievalQuery.from_slots(slots)
        started = time.monotonic()

        async with self.session_factory() as session:
            tasks = [
                asyncio.ensure_future(self._fetch_category(category, query, session))
                for category in CATEGORIES
            ]
            try:
                outcomes = await asyncio.gather(*tasks)
            except BaseException:
                # No fetch may outlive the session
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        result = RetrievalResult()
        for category, (records, provenance) in zip(CATEGORIES, outcomes):
            result.set(category, records, provenance)

        logger.info(
            f"Retrieval complete in {time.monotonic() - started:.2f}s: "
            f"{result.provenance_summary()}"
        )
        return result

    async def _fetch_category(
        self,
        category: str,
        query: RetrievalQuery,
        session: Any,
    ) -> Tuple[List[Any], Provenance]:
        """Run one fetcher under its timeout; fall back on any failure."""
        fetcher = self.fetchers.get(category)
        if fetcher is None:
            logger.info(f"Retrieval {category}: no live fetcher, using fallback")
            return self._fallback(category, query)

        timeout = self.timeout_for(category)
        started = time.monotonic()
        try:
            records = await asyncio.wait_for(fetcher.fetch(query, session), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Retrieval {category}: timed out after {timeout:.1f}s, using fallback")
            return self._fallback(category, query)
        except Exception as e:
            logger.warning(
                f"Retrieval {category}: fetch failed error={type(e).__name__}: {e}, using fallback"
            )
            return self._fallback(category, query)

        elapsed = time.monotonic() - started
        if not records:
            logger.info(f"Retrieval {category}: empty result after {elapsed:.2f}s, using fallback")
            return self._fallback(category, query)

        logger.info(f"Retrieval {category}: live, {len(records)} records in {elapsed:.2f}s")
        return list(records), Provenance.LIVE

    def _fallback(self, category: str, query: RetrievalQuery) -> Tuple[List[Any], Provenance]:
        return self.fallback(category, query), Provenance.FALLBACK
