import asyncio
import enum
import logging
from typing import Callable, Optional

from spotify_api.errors import SpotifyError
from spotify_api.models import CatalogItem, SearchResult
from utils.debounce import debounce

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500
DEFAULT_SEARCH_LIMIT = 3


class SearchState(enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RESULTS = "results"
    SELECTED = "selected"


class SearchSession:
    """Search box state: debounced queries, latest results and the selection.

    Each search carries a generation number. Only the response for the newest
    generation is applied, so a slow response to an older query can never
    replace the results of a newer one. Selecting an item also bumps the
    generation, which drops any search still in flight.
    """

    def __init__(
        self,
        client,
        *,
        debounce_ms: float = DEFAULT_DEBOUNCE_MS,
        limit: int = DEFAULT_SEARCH_LIMIT,
        scheduler=None,
        on_change: Optional[Callable[["SearchSession"], None]] = None,
    ):
        self.client = client
        self.limit = int(limit)
        self.on_change = on_change

        self.state = SearchState.IDLE
        self.query = ""
        self.results = SearchResult.empty()
        self.selection: Optional[CatalogItem] = None
        self.error: Optional[SpotifyError] = None
        self.generation = 0

        self._debounced = debounce(self.search, debounce_ms, scheduler=scheduler)

    # -----------------
    # Input
    # -----------------

    def on_input(self, text: str) -> None:
        """Keystroke entry point. Blank input resets instead of searching."""

        if not (text or "").strip():
            self._debounced.cancel()
            self.reset()
            return
        self._debounced(text)

    async def search(self, text: str) -> bool:
        """Run one search for ``text`` now; returns whether its response was applied."""

        generation = self.begin(text)
        try:
            result = await self.client.search(self.query, limit=self.limit)
        except SpotifyError as e:
            return self.fail(generation, e)
        return self.complete(generation, result)

    async def settle(self) -> None:
        """Wait until the pending debounced search has fired and finished."""

        while self._debounced.pending:
            await asyncio.sleep(self._debounced.delay_ms / 1000.0)
        task = self._debounced.last_task
        if task is not None and not task.done():
            await task

    @property
    def in_flight(self):
        """Task of the most recent debounced search, once one has fired."""
        return self._debounced.last_task

    # -----------------
    # Transitions
    # -----------------

    def begin(self, text: str) -> int:
        self.generation += 1
        self.state = SearchState.SEARCHING
        self.query = (text or "").strip()
        self.selection = None
        self.error = None
        self._notify()
        return self.generation

    def complete(self, generation: int, result: SearchResult) -> bool:
        if generation != self.generation:
            logger.debug("Discarding stale search response (generation %s, current %s)", generation, self.generation)
            return False

        self.results = result
        self.state = SearchState.RESULTS
        self._notify()
        return True

    def fail(self, generation: int, error: SpotifyError) -> bool:
        if generation != self.generation:
            logger.debug("Discarding stale search failure (generation %s): %s", generation, error)
            return False

        logger.debug("Search for %r failed: %s", self.query, error)
        self.error = error
        self.results = SearchResult.empty()
        self.state = SearchState.RESULTS
        self._notify()
        return True

    def select(self, item_id: str) -> CatalogItem:
        item = self.results.find(item_id)
        if item is None:
            raise KeyError(f"{item_id!r} is not in the current search results")

        self.generation += 1
        self.selection = item
        self.results = SearchResult.empty()
        self.state = SearchState.SELECTED
        self._notify()
        return item

    def reset(self) -> None:
        self.generation += 1
        self.state = SearchState.IDLE
        self.query = ""
        self.results = SearchResult.empty()
        self.selection = None
        self.error = None
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
