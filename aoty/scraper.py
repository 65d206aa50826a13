"""Chart, album and genre-index scraping for AlbumOfTheYear.org."""

import logging
from functools import partial
from typing import Any, List, Optional
from urllib.parse import urlparse

from .browser import BrowserManager, PageNotFoundError
from .dataclasses import AOTYConfig, ChartResolution, GenreEntry, TierResult
from .extractors import ALBUM_LINK_SELECTOR, parse_chart_entries, parse_genre_directory, parse_track_ratings
from .proxy_fetch import ProxyFetchExtractor

BASE_URL = "https://www.albumoftheyear.org"


def _bare_host(netloc: str) -> str:
    host = netloc.lower()
    return host[4:] if host.startswith('www.') else host


class AOTYScraper:
    """Scraping operations against the source site.

    Chart acquisition is tiered: the headless browser runs first and the
    render proxy only runs when the browser yields no albums. Each tier reports
    a tagged TierResult so the resolver's path is visible to callers and tests.
    Album track ordering and the genre index use the browser tier only.
    """

    def __init__(self, config: AOTYConfig, browser_manager: Optional[BrowserManager] = None,
                 proxy_extractor: Optional[ProxyFetchExtractor] = None) -> None:
        self.config = config
        self.browser_manager = browser_manager or BrowserManager(config)
        self.proxy_extractor = proxy_extractor or ProxyFetchExtractor(config.render_proxy)
        self.logger = logging.getLogger(__name__)

    @property
    def base_url(self) -> str:
        return (self.config.base_url or BASE_URL).rstrip('/')

    def build_chart_url(self, slug: str) -> str:
        """Build the user-highest-rated chart URL for a genre slug."""
        return self.base_url + self.config.chart_path_template.format(slug=slug)

    def build_genre_index_url(self) -> str:
        return self.base_url + self.config.genre_index_path

    async def scrape_chart_with_browser(self, slug: str) -> TierResult:
        """Tier 1: render the chart page in a headless browser."""
        url = self.build_chart_url(slug)
        try:
            albums = await self.browser_manager.extract(
                url,
                partial(parse_chart_entries, limit=self.config.top_n),
                wait_selector=ALBUM_LINK_SELECTOR,
                nav_timeout=self.config.page_timeout,
                selector_timeout=self.config.selector_timeout,
                settle_delay=self.config.settle_delay,
            )
        except PageNotFoundError:
            self.logger.info(f"Chart page not found: {url}")
            return TierResult(tier='tier1', status='not_found')
        except Exception as e:
            self.logger.warning(f"Browser scrape failed for {url}: {e}")
            return TierResult(tier='tier1', status='error', message=str(e) or type(e).__name__)

        if not albums:
            return TierResult(tier='tier1', status='empty')
        return TierResult(tier='tier1', status='success', albums=tuple(albums))

    async def scrape_chart_with_proxy(self, slug: str) -> TierResult:
        """Tier 2: fetch the chart page through the render proxy."""
        return await self.proxy_extractor.fetch_chart(self.build_chart_url(slug), limit=self.config.top_n)

    async def resolve_chart(self, slug: str) -> ChartResolution:
        """Run tier1 -> tier2 -> empty, stopping at the first tier with albums.

        Never raises for acquisition problems: a genre neither tier can read
        resolves to stage 'empty' with no albums.
        """
        stages = (
            ('tier1', self.scrape_chart_with_browser),
            ('tier2', self.scrape_chart_with_proxy),
        )
        attempts = []
        for stage, run_tier in stages:
            result = await run_tier(slug)
            attempts.append(result)
            self.logger.info(f"Chart '{slug}' {stage}: {result.status} ({len(result.albums)} albums)")
            if result.albums:
                return ChartResolution(stage=stage, albums=result.albums, attempts=tuple(attempts))

        self.logger.info(f"No chart data for '{slug}' from any tier")
        return ChartResolution(stage='empty', albums=(), attempts=tuple(attempts))

    def _album_page_url(self, album_url: Any) -> Optional[str]:
        """Absolute URL for an album path, or None when it can't be a source-site page."""
        if not isinstance(album_url, str) or not album_url:
            return None
        if any(ch.isspace() for ch in album_url):
            return None

        parsed = urlparse(album_url)
        if parsed.scheme or parsed.netloc:
            if parsed.scheme not in ('http', 'https'):
                return None
            if _bare_host(parsed.netloc) != _bare_host(urlparse(self.base_url).netloc):
                return None
            return album_url if parsed.path not in ('', '/') else None

        path = album_url if album_url.startswith('/') else '/' + album_url
        if path == '/':
            return None
        return self.base_url + path

    async def get_album_track_order(self, album_url: Any) -> List[str]:
        """Track names from an album page, highest community rating first.

        Returns [] for a malformed path (without touching the network), for a
        page with no rated track table, and on any fetch failure.
        """
        url = self._album_page_url(album_url)
        if url is None:
            self.logger.debug(f"Skipping track order lookup for malformed album path {album_url!r}")
            return []

        try:
            ranking = await self.browser_manager.extract(
                url,
                parse_track_ratings,
                nav_timeout=self.config.album_page_timeout,
                settle_delay=self.config.album_settle_delay,
            )
        except Exception as e:
            self.logger.warning(f"Could not read track ratings from {url}: {e}")
            return []

        if not ranking:
            self.logger.info(f"No rated track table on {url}")
        return ranking

    async def fetch_genre_directory(self) -> List[GenreEntry]:
        """Scrape the genre index page. Errors propagate to the directory cache."""
        url = self.build_genre_index_url()
        genres = await self.browser_manager.extract(
            url,
            parse_genre_directory,
            nav_timeout=self.config.album_page_timeout,
            settle_delay=self.config.album_settle_delay,
        )
        self.logger.info(f"Found {len(genres)} genres on {url}")
        return genres
