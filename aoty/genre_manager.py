"""Genre directory cache for autocomplete."""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from .dataclasses import GenreEntry

GenreFetcher = Callable[[], Awaitable[List[GenreEntry]]]


class GenreDirectoryManager:
    """Holds the source site's genre list with a 24h time-to-live.

    Refreshes are single-flight: concurrent callers wait on one fetch. A fetch
    that fails or comes back empty keeps the previous list, however old it is.
    """

    def __init__(self, fetcher: GenreFetcher, cache_dir: str, ttl_hours: float = 24.0,
                 clock: Callable[[], float] = time.time) -> None:
        self.fetcher = fetcher
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_hours * 60 * 60
        self._clock = clock
        self.logger = logging.getLogger(__name__)

        self._genres: List[GenreEntry] = []
        self._fetched_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state_file_path(self) -> Path:
        """Get the path to the persisted genre directory JSON file."""
        return self.cache_dir / "genre_directory.json"

    @property
    def genres(self) -> List[GenreEntry]:
        return list(self._genres)

    def is_cache_valid(self) -> bool:
        """Check if the in-memory list exists and is within the TTL window."""
        if not self._genres or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.ttl_seconds

    async def get_genres(self) -> List[GenreEntry]:
        if self.is_cache_valid():
            return self.genres

        async with self._lock:
            # Another caller may have refreshed while we waited
            if self.is_cache_valid():
                return self.genres

            try:
                genres = await self.fetcher()
            except Exception as e:
                self.logger.warning(f"Genre directory refresh failed, keeping {len(self._genres)} cached genres: {e}")
                return self.genres

            if genres:
                self._genres = list(genres)
                self._fetched_at = self._clock()
                self.logger.info(f"Refreshed genre directory with {len(genres)} genres")
            else:
                self.logger.warning("Genre directory refresh returned no genres, keeping previous list")

            return self.genres

    def load_state(self) -> bool:
        """Load a previously saved directory. Returns True if one was loaded."""
        if not self.state_file_path.exists():
            self.logger.debug(f"Genre directory file not found: {self.state_file_path}")
            return False

        try:
            with open(self.state_file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            genres = [GenreEntry(name=item['name'], slug=item['slug'], genre_id=item.get('genre_id'))
                      for item in data['genres']]
            fetched_at = float(data['fetched_at'])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Invalid genre directory file {self.state_file_path}: {e}")
            return False
        except OSError as e:
            self.logger.error(f"Error loading genre directory: {e}")
            return False

        if not genres:
            return False

        self._genres = genres
        self._fetched_at = fetched_at
        self.logger.info(f"Loaded {len(genres)} genres from {self.state_file_path}")
        return True

    def save_state(self) -> None:
        """Persist the current directory; nothing is written when it is empty."""
        if not self._genres or self._fetched_at is None:
            return
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(self.state_file_path, 'w', encoding='utf-8') as f:
                json.dump({
                    'fetched_at': self._fetched_at,
                    'genres': [genre.to_dict() for genre in self._genres],
                }, f, ensure_ascii=False, indent=2)
            self.logger.debug(f"Saved genre directory to {self.state_file_path}")
        except OSError as e:
            self.logger.error(f"Failed to save genre directory: {e}")
