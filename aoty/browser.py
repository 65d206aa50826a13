"""Headless browser tier: scoped Camoufox sessions, Cloudflare handling and resource blocking."""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from bs4 import BeautifulSoup
from camoufox import AsyncCamoufox
from camoufox_captcha import solve_captcha
from playwright.async_api import Page, Response, TimeoutError as PlaywrightTimeoutError

from .dataclasses import AOTYConfig
from .extractors import parse_html

T = TypeVar('T')


class PageNotFoundError(Exception):
    """The source site answered 404 for the requested page."""
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Page not found: {url}")


class BrowserManager:
    """Runs one-shot page extractions inside a scoped Camoufox browser.

    Each call to extract() launches a browser, opens a fresh context and page,
    and releases all of it before returning, whether extraction succeeded,
    timed out or raised.
    """

    BLOCKED_RESOURCE_TYPES = {'image', 'media', 'font', 'stylesheet'}
    BLOCKED_DOMAINS = {
        'googlesyndication',
        'doubleclick',
        'amazon-adsystem',
        'adnxs',
    }

    def __init__(self, config: AOTYConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.bandwidth_stats = {
            'total_requests': 0,
            'blocked_requests': 0,
            'blocked_types': {}
        }

        # Only one page works through a challenge at a time
        self._challenge_lock = asyncio.Lock()

    def get_browser_options(self) -> Dict[str, Any]:
        """Get Camoufox browser options with proxy configuration."""
        browser_options = {
            'headless': self.config.headless,
            'humanize': False,  # camoufox-captcha needs deterministic clicks
            'geoip': True,
            'disable_coop': True,  # Shadow DOM traversal for the Turnstile widget
            'i_know_what_im_doing': True,
            'config': {'forceScopeAccess': True},
            'window': (1280, 720),
        }

        if not self.config.headless:
            self.logger.info("Running in non-headless mode for debugging")

        proxy = self.config.browser_proxy.to_browser_option()
        if proxy:
            browser_options['proxy'] = proxy
            self.logger.debug(f"Using proxy: {proxy['server']}")

        return browser_options

    def _should_block(self, request_url: str, resource_type: str) -> bool:
        if resource_type in self.BLOCKED_RESOURCE_TYPES:
            return True
        return any(domain in request_url for domain in self.BLOCKED_DOMAINS)

    async def setup_resource_blocking(self, page: Page) -> None:
        """Abort image, font, media, stylesheet and ad-network requests for this page."""
        if not self.config.resource_blocking_enabled:
            return

        async def handle_route(route):
            request_url = route.request.url
            resource_type = route.request.resource_type
            self.bandwidth_stats['total_requests'] += 1

            if self._should_block(request_url, resource_type):
                await route.abort()
                self.bandwidth_stats['blocked_requests'] += 1
                self.bandwidth_stats['blocked_types'][resource_type] = \
                    self.bandwidth_stats['blocked_types'].get(resource_type, 0) + 1
            elif resource_type in ('iframe', 'subdocument'):
                # Firefox iframe caching bug: Turnstile frames need fetch/fulfill
                try:
                    response = await route.fetch()
                    await route.fulfill(body=await response.body())
                except Exception as e:
                    self.logger.debug(f"Route fetch/fulfill failed for iframe {request_url}, using continue: {e}")
                    await route.continue_()
            else:
                await route.continue_()

        await page.route("**/*", handle_route)
        self.logger.debug(f"Set up resource blocking: {', '.join(sorted(self.BLOCKED_RESOURCE_TYPES))}")

    def log_bandwidth_stats(self) -> None:
        """Log cumulative request-blocking counts for this manager."""
        stats = self.bandwidth_stats
        if not stats['total_requests']:
            return
        self.logger.debug(f"Blocked {stats['blocked_requests']}/{stats['total_requests']} requests "
                          f"so far, by type: {stats['blocked_types']}")

    def _is_challenge(self, response: Optional[Response], content: str) -> bool:
        """Challenge detection using the cf-mitigated header and the interstitial title."""
        if response is not None and hasattr(response, 'headers') \
                and response.headers.get('cf-mitigated') == 'challenge':
            return True
        return '<title>Just a moment...</title>' in (content or '')

    async def solve_cloudflare_challenge(self, page: Page, url: str) -> bool:
        """Solve a Cloudflare interstitial on the current page with camoufox-captcha."""
        async with self._challenge_lock:
            try:
                self.logger.info(f"Attempting to solve Cloudflare challenge for {url}...")
                await page.wait_for_load_state('networkidle', timeout=30000)
                success = await solve_captcha(
                    page,
                    captcha_type='cloudflare',
                    challenge_type='interstitial',
                    method='click',
                    solve_attempts=5,
                    solve_click_delay=10.0,  # Cloudflare verifies after the click
                    wait_checkbox_attempts=10,
                    wait_checkbox_delay=3.0,
                    checkbox_click_attempts=3,
                    attempt_delay=5
                )
            except Exception as e:
                self.logger.error(f"Error solving Cloudflare challenge: {e}")
                return False

        if success:
            self.logger.info("Successfully solved Cloudflare challenge")
            return True
        self.logger.warning("Failed to solve Cloudflare challenge")
        return False

    async def _load_page(self, page: Page, url: str, wait_selector: Optional[str],
                         nav_timeout: int, selector_timeout: int, settle_delay: float) -> str:
        """Navigate, clear any challenge, wait for content, and return the rendered HTML."""
        self.logger.debug(f"Navigating to {url}")
        response = await page.goto(url, wait_until='domcontentloaded', timeout=nav_timeout)

        if response is not None and response.status == 404:
            raise PageNotFoundError(url)

        content = await page.content()
        if self._is_challenge(response, content):
            self.logger.info(f"Challenge detected for {url}")
            if self.config.solve_challenges:
                # An unsolved challenge leaves the interstitial markup, which extracts to nothing
                await self.solve_cloudflare_challenge(page, url)

        if wait_selector:
            try:
                await page.wait_for_selector(wait_selector, state='attached', timeout=selector_timeout)
            except PlaywrightTimeoutError:
                # Extraction still runs against whatever rendered
                self.logger.debug(f"Selector {wait_selector} not attached within {selector_timeout}ms for {url}")

        if settle_delay > 0:
            await asyncio.sleep(settle_delay)

        html = await page.content()
        self.logger.debug(f"Received HTML content: {len(html)} bytes")
        return html

    async def extract(self, url: str, extractor: Callable[[BeautifulSoup], T], *,
                      wait_selector: Optional[str] = None,
                      nav_timeout: Optional[int] = None,
                      selector_timeout: Optional[int] = None,
                      settle_delay: float = 0.0) -> T:
        """Load url in a fresh browser session and run extractor over the rendered page.

        Raises:
            PageNotFoundError: the site returned 404
            Any Playwright error from navigation (e.g. navigation timeout)
        """
        nav_timeout = nav_timeout if nav_timeout is not None else self.config.page_timeout
        selector_timeout = selector_timeout if selector_timeout is not None else self.config.selector_timeout

        async with AsyncCamoufox(**self.get_browser_options()) as browser:
            context = await browser.new_context()
            try:
                page = await context.new_page()
                await self.setup_resource_blocking(page)
                html = await self._load_page(page, url, wait_selector, nav_timeout,
                                             selector_timeout, settle_delay)
            finally:
                await context.close()

        self.log_bandwidth_stats()
        return extractor(parse_html(html))
