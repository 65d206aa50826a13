"""Request-level orchestration for genre charts and primer playlists.

GenrePrimer wires the scraper, chart cache, genre directory and Spotify
catalog together. It is usable from the CLI or embedded behind an HTTP layer:
every public method returns plain value objects that serialize to the JSON
payloads such a layer hands back.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from .cache_manager import ChartCacheManager
from .catalog import CatalogAuthError, CatalogError, SpotifyCatalog
from .chart_store import ChartStore, JsonChartStore
from .dataclasses import (
    AlbumEntry, AlbumResolution, AOTYConfig, ChartResponse, GenreEntry, PlaylistBuildResult
)
from .genre_manager import GenreDirectoryManager
from .scraper import AOTYScraper
from .selector import TrackSelector
from .session_manager import TokenSessionManager
from .text_utils import genre_slug

PLAYLIST_NAME_TEMPLATE = "[{genre}] Genre Primer (AOTY)"
PLAYLIST_DESCRIPTION_TEMPLATE = "Genre primer: top {genre} albums from AlbumOfTheYear.org"


class PrimerError(Exception):
    """Base class for playlist-building failures."""


class NoTracksResolvedError(PrimerError):
    """Not a single album could be resolved to destination-catalog tracks."""
    def __init__(self, genre: str, albums: Sequence[AlbumResolution]):
        self.genre = genre
        self.albums = list(albums)
        super().__init__(f"Could not resolve any of {len(self.albums)} albums to Spotify tracks for '{genre}'")


class GenrePrimer:
    """Standalone genre primer for use in any application."""

    def __init__(self, config: Optional[AOTYConfig] = None, store: Optional[ChartStore] = None,
                 scraper: Optional[AOTYScraper] = None,
                 catalog_factory: Optional[Callable[[Optional[str]], Any]] = None) -> None:
        self.config = config or AOTYConfig()  # Use defaults if no config provided
        self.logger = logging.getLogger(__name__)

        self._init_cache_manager(store)
        self._init_scraper(scraper)
        self._init_genre_manager()
        self._init_token_manager()
        self.catalog_factory = catalog_factory or self._default_catalog

    def _cache_dir(self) -> Path:
        cache_dir = Path(self.config.cache_dir)
        return cache_dir if cache_dir.is_absolute() else cache_dir.resolve()

    def _init_cache_manager(self, store: Optional[ChartStore]) -> None:
        """Initialize the chart store and its TTL policy."""
        self.store = store or JsonChartStore(str(self._cache_dir()))
        self.cache_manager = ChartCacheManager(self.store, ttl_hours=self.config.chart_cache_ttl_hours)

    def _init_scraper(self, scraper: Optional[AOTYScraper]) -> None:
        self.scraper = scraper or AOTYScraper(self.config)

    def _init_genre_manager(self) -> None:
        self.genre_manager = GenreDirectoryManager(
            self.scraper.fetch_genre_directory,
            str(self._cache_dir()),
            self.config.genre_cache_ttl_hours,
        )

    def _init_token_manager(self) -> None:
        self.token_manager = TokenSessionManager(self.config.token_state_file_path)

    def _default_catalog(self, access_token: Optional[str]) -> SpotifyCatalog:
        return SpotifyCatalog(access_token=access_token, requests_timeout=self.config.catalog_timeout)

    async def __aenter__(self):
        """Load persisted genre directory state."""
        self.genre_manager.load_state()
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb):
        """Persist genre directory state."""
        self.genre_manager.save_state()

    async def get_chart(self, genre: str) -> ChartResponse:
        """Top albums for a genre, served from cache when fresh.

        Raises:
            ValueError: genre is empty or has no usable characters
        """
        if not genre or not genre.strip():
            raise ValueError("Genre is required")
        genre_key = genre_slug(genre)
        if not genre_key:
            raise ValueError(f"Genre '{genre}' has no letters or digits")

        async def fetch() -> Sequence[AlbumEntry]:
            resolution = await self.scraper.resolve_chart(genre_key)
            return resolution.albums

        return await self.cache_manager.get_or_fetch(genre_key, fetch, genre=genre.strip())

    async def list_genres(self) -> List[GenreEntry]:
        return await self.genre_manager.get_genres()

    async def _resolve_album(self, entry: AlbumEntry, catalog: Any,
                             selector: TrackSelector) -> AlbumResolution:
        """Search, list, rank and select tracks for one chart album.

        Non-auth catalog failures only skip this album; auth failures propagate.
        """
        label = f"{entry.artist} - {entry.album}"
        try:
            album_id = await asyncio.to_thread(catalog.search_album, entry.artist.strip(), entry.album.strip())
            if not album_id:
                self.logger.info(f"No Spotify match for {label}")
                return AlbumResolution(entry=entry, error='album not found in catalog')

            tracks = await asyncio.to_thread(catalog.list_tracks, album_id)
            if not tracks:
                return AlbumResolution(entry=entry, catalog_album_id=album_id, error='album has no tracks')

            ranking: List[str] = []
            if entry.album_url:
                ranking = await self.scraper.get_album_track_order(entry.album_url)
            if not ranking:
                self.logger.info(f"No rated track order for {label}, using Spotify popularity")

            selection = await asyncio.to_thread(selector.select, tracks, ranking)
        except CatalogAuthError:
            raise
        except CatalogError as e:
            self.logger.warning(f"Spotify lookup skipped for {label}: {e}")
            return AlbumResolution(entry=entry, error=str(e))

        wanted = selector.tracks_per_album
        if len(selection.tracks) < wanted and len(tracks) >= wanted:
            self.logger.warning(f"Only {len(selection.tracks)}/{wanted} tracks for {label} "
                                f"(album has {len(tracks)} tracks)")
        return AlbumResolution(entry=entry, catalog_album_id=album_id, selection=selection)

    async def _resolve_albums(self, albums: Sequence[AlbumEntry], catalog: Any,
                              selector: TrackSelector) -> List[AlbumResolution]:
        semaphore = asyncio.Semaphore(max(1, self.config.album_concurrency))

        async def bounded(entry: AlbumEntry) -> AlbumResolution:
            async with semaphore:
                return await self._resolve_album(entry, catalog, selector)

        results = await asyncio.gather(*(bounded(entry) for entry in albums), return_exceptions=True)

        resolutions: List[AlbumResolution] = []
        auth_error: Optional[CatalogAuthError] = None
        for entry, result in zip(albums, results):
            if isinstance(result, CatalogAuthError):
                auth_error = auth_error or result
            elif isinstance(result, Exception):
                self.logger.error(f"Error resolving {entry.artist} - {entry.album}: {result}")
                resolutions.append(AlbumResolution(entry=entry, error=str(result)))
            elif isinstance(result, BaseException):
                raise result
            else:
                resolutions.append(result)

        if auth_error is not None:
            raise auth_error
        return resolutions

    async def _add_in_chunks(self, catalog: Any, playlist_id: str, uris: List[str]):
        """Add uris chunk by chunk; stop at the first failure. Returns (added, error message)."""
        chunk_size = self.config.add_tracks_chunk_size
        added = 0
        for start in range(0, len(uris), chunk_size):
            chunk = uris[start:start + chunk_size]
            try:
                await asyncio.to_thread(catalog.add_tracks, playlist_id, chunk)
            except CatalogError as e:
                self.logger.error(f"Adding tracks to playlist {playlist_id} failed after {added} tracks: {e}")
                return added, str(e)
            added += len(chunk)
        return added, None

    async def build_playlist(self, genre: str, albums: Sequence[AlbumEntry],
                             access_token: Optional[str] = None, catalog: Any = None) -> PlaylistBuildResult:
        """Create a public primer playlist from chart albums.

        Args:
            genre: Genre label used in the playlist name
            albums: Chart albums in rank order
            access_token: Spotify token; falls back to the stored token state
            catalog: Pre-built catalog adapter (skips token handling)

        Returns:
            PlaylistBuildResult; `warning` is set when the playlist was created
            but not every track could be added

        Raises:
            CatalogAuthError: the token was rejected
            NoTracksResolvedError: no album produced any track
        """
        if not genre or not genre.strip():
            raise ValueError("Genre is required")
        if not albums:
            raise ValueError("At least one album is required")
        genre = genre.strip()

        if catalog is None:
            catalog = self.catalog_factory(access_token or self.token_manager.access_token)

        selector = TrackSelector(
            tracks_per_album=self.config.tracks_per_album,
            popularity_lookup=catalog.get_track_details,
            popularity_lookup_limit=self.config.popularity_lookup_limit,
        )
        resolutions = await self._resolve_albums(albums, catalog, selector)

        uris = [uri for resolution in resolutions if resolution.selection
                for uri in resolution.selection.uris]
        if not uris:
            raise NoTracksResolvedError(genre, resolutions)

        name = PLAYLIST_NAME_TEMPLATE.format(genre=genre)
        description = PLAYLIST_DESCRIPTION_TEMPLATE.format(genre=genre)
        playlist_id, playlist_url = await asyncio.to_thread(catalog.create_playlist, name, description, True)

        added, warning = await self._add_in_chunks(catalog, playlist_id, uris)
        matched = sum(1 for resolution in resolutions if resolution.matched)
        self.logger.info(f"Playlist '{name}': {added}/{len(uris)} tracks from {matched}/{len(albums)} albums")

        return PlaylistBuildResult(
            playlist_id=playlist_id,
            playlist_url=playlist_url,
            name=name,
            track_count=added,
            requested_track_count=len(uris),
            warning=warning,
            albums=resolutions,
        )

    def clear_cache(self) -> int:
        """Clear cached charts and return number of entries cleared."""
        return self.store.clear()

    def get_cache_info(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return self.store.get_info(ttl_hours=self.config.chart_cache_ttl_hours)
