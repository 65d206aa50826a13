"""Configuration classes for the browser and render-proxy fetch tiers."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BrowserProxyConfig:
    """Egress proxy for the headless browser tier."""

    enabled: bool
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False  # True = https/ssl, False = http

    @property
    def server_url(self) -> Optional[str]:
        """Build complete proxy server URL with protocol."""
        if not (self.host and self.port):
            return None
        protocol = "https" if self.use_tls else "http"
        return f"{protocol}://{self.host}:{self.port}"

    @property
    def has_credentials(self) -> bool:
        """Check if username and password are provided."""
        return self.username is not None and self.password is not None

    @property
    def is_valid(self) -> bool:
        """Check if configuration is complete for proxy use."""
        return self.enabled and self.server_url is not None and self.has_credentials

    def to_browser_option(self) -> Optional[Dict[str, Any]]:
        """Proxy dict in the shape Playwright/Camoufox expect, or None."""
        if not self.is_valid:
            return None
        return {
            "server": self.server_url,
            "username": self.username,
            "password": self.password,
        }


@dataclass(frozen=True)
class RenderProxyConfig:
    """Third-party rendering / anti-bot proxy used by the fallback tier."""

    api_key: Optional[str] = None
    endpoint: str = "https://api.zenrows.com/v1/"
    timeout: float = 90.0
    js_render: bool = True
    premium_proxy: bool = True

    @property
    def is_configured(self) -> bool:
        """An API key is required before any call is attempted."""
        return bool(self.api_key)

    def build_params(self, target_url: str) -> Dict[str, str]:
        """Query parameters for a single rendered fetch of target_url."""
        return {
            'apikey': self.api_key or '',
            'url': target_url,
            'js_render': 'true' if self.js_render else 'false',
            'premium_proxy': 'true' if self.premium_proxy else 'false',
        }
