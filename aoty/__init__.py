"""AlbumOfTheYear.org genre primer modules."""

__version__ = "0.2.0"

# Core standalone functionality
from .dataclasses import AOTYConfig, AlbumEntry, ChartResponse, PlaylistBuildResult
from .core import (
    GenrePrimer,
    PrimerError,
    NoTracksResolvedError,
)

# Internal components (for advanced usage)
from .browser import BrowserManager, PageNotFoundError
from .proxy_fetch import ProxyFetchExtractor
from .scraper import AOTYScraper
from .chart_store import ChartStore, JsonChartStore, MemoryChartStore, ChartStoreError, CacheKeyNotFound
from .cache_manager import ChartCacheManager
from .genre_manager import GenreDirectoryManager
from .session_manager import TokenSessionManager
from .catalog import SpotifyCatalog, CatalogError, CatalogAuthError
from .selector import TrackSelector
from .text_utils import genre_slug, normalize_track_name

__all__ = [
    # Version
    '__version__',

    # Core API
    'GenrePrimer',
    'AOTYConfig',
    'AlbumEntry',
    'ChartResponse',
    'PlaylistBuildResult',
    'PrimerError',
    'NoTracksResolvedError',

    # Text helpers
    'genre_slug',
    'normalize_track_name',

    # Internal components (for advanced usage)
    'BrowserManager',
    'PageNotFoundError',
    'ProxyFetchExtractor',
    'AOTYScraper',
    'ChartStore',
    'JsonChartStore',
    'MemoryChartStore',
    'ChartStoreError',
    'CacheKeyNotFound',
    'ChartCacheManager',
    'GenreDirectoryManager',
    'TokenSessionManager',
    'SpotifyCatalog',
    'CatalogError',
    'CatalogAuthError',
    'TrackSelector',
]
