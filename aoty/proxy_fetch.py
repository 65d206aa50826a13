"""Fallback acquisition tier: fetch a JS-rendered page through a rendering proxy API."""

import asyncio
import logging

import aiohttp

from .config import RenderProxyConfig
from .dataclasses import TierResult
from .extractors import parse_chart_entries, parse_html

TIER_NAME = 'tier2'


class ProxyFetchExtractor:
    """Single-shot chart extraction through a ZenRows-style rendering proxy.

    The proxy renders JavaScript and routes through residential IPs. No retry
    is attempted: one GET per call, bounded by the configured timeout.
    """

    def __init__(self, config: RenderProxyConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(__name__)

    async def _fetch_html(self, url: str) -> str:
        """One proxied GET of url. Raises on non-2xx, connection failure and timeout."""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self.config.endpoint,
                                   params=self.config.build_params(url)) as response:
                response.raise_for_status()
                # Undecodable bytes become U+FFFD
                return await response.text(errors='replace')

    async def fetch_chart(self, url: str, limit: int = 20) -> TierResult:
        """Fetch and parse a chart page. Never raises; the outcome is in the TierResult status."""
        if not self.config.is_configured:
            self.logger.info("Render proxy API key not set, skipping proxy tier")
            return TierResult(tier=TIER_NAME, status='skipped', message='no API key configured')

        self.logger.info(f"Fetching {url} through render proxy")
        try:
            html = await self._fetch_html(url)
        except aiohttp.ClientResponseError as e:
            self.logger.warning(f"Render proxy returned HTTP {e.status} for {url}")
            return TierResult(tier=TIER_NAME, status='error', message=f"HTTP {e.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Render proxy request failed for {url}: {e!r}")
            return TierResult(tier=TIER_NAME, status='error', message=str(e) or type(e).__name__)

        albums = parse_chart_entries(parse_html(html), limit=limit)
        if not albums:
            self.logger.info(f"Render proxy page for {url} contained no chart entries")
            return TierResult(tier=TIER_NAME, status='empty')

        self.logger.info(f"Render proxy extracted {len(albums)} albums from {url}")
        return TierResult(tier=TIER_NAME, status='success', albums=tuple(albums))

