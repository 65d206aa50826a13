"""Spotify adapter: album search, track listings, popularity lookups and playlist writes."""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import requests
import spotipy
from spotipy.exceptions import SpotifyException
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .dataclasses import DestinationTrack


class CatalogError(Exception):
    """A destination-catalog call failed."""
    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class CatalogAuthError(CatalogError):
    """The catalog rejected the access token (401/403)."""


class TransientCatalogError(CatalogError):
    """Rate limiting, a 5xx, or a dropped connection; worth another attempt."""


AUTH_STATUSES = (401, 403)


def _track_from_item(item: dict) -> DestinationTrack:
    return DestinationTrack(
        id=item['id'],
        name=item.get('name') or '',
        uri=item.get('uri') or f"spotify:track:{item['id']}",
        popularity=item.get('popularity'),
    )


class SpotifyCatalog:
    """Thin synchronous wrapper around a spotipy client.

    Every call maps spotipy/requests failures onto CatalogError, with
    CatalogAuthError for rejected tokens. Transient failures are retried with
    exponential backoff before surfacing. Callers on an event loop run these
    methods in a worker thread.
    """

    PAGE_SIZE = 50
    DETAILS_BATCH_SIZE = 50

    def __init__(self, access_token: Optional[str] = None, client: Optional[spotipy.Spotify] = None,
                 requests_timeout: int = 20) -> None:
        self.logger = logging.getLogger(__name__)
        if client is None:
            if not access_token:
                raise CatalogAuthError("No Spotify access token available", status=401)
            # Retries are handled here, not inside spotipy's session
            client = spotipy.Spotify(auth=access_token, requests_timeout=requests_timeout,
                                     retries=0, status_retries=0)
        self.client = client

    @retry(retry=retry_if_exception_type(TransientCatalogError),
           stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=1, max=8), reraise=True)
    def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self.client, method)(*args, **kwargs)
        except SpotifyException as e:
            status = e.http_status
            if status in AUTH_STATUSES:
                raise CatalogAuthError(f"Spotify rejected the access token ({status})", status=status) from e
            if status == 429 or (status is not None and status >= 500):
                self.logger.warning(f"Spotify {method} returned {status}, retrying")
                raise TransientCatalogError(f"Spotify {method} failed ({status}): {e.msg}", status=status) from e
            raise CatalogError(f"Spotify {method} failed ({status}): {e.msg}", status=status) from e
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            self.logger.warning(f"Spotify {method} transport error, retrying: {e}")
            raise TransientCatalogError(f"Spotify {method} transport error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise CatalogError(f"Spotify {method} request failed: {e}") from e

    def search_album(self, artist: str, album: str) -> Optional[str]:
        """Best album id for an artist/title pair, or None."""
        query = f"artist:{artist} album:{album}"
        result = self._call('search', q=query, type='album', limit=1)
        items = (result or {}).get('albums', {}).get('items') or []
        if not items:
            self.logger.debug(f"No Spotify album for {query!r}")
            return None
        return items[0]['id']

    def list_tracks(self, album_id: str) -> List[DestinationTrack]:
        """Complete track listing for an album in catalog order, following pagination."""
        tracks: List[DestinationTrack] = []
        page = self._call('album_tracks', album_id, limit=self.PAGE_SIZE)
        while page:
            tracks.extend(_track_from_item(item) for item in page.get('items', []) if item and item.get('id'))
            if not page.get('next'):
                break
            page = self._call('next', page)
        return tracks

    def get_track_details(self, track_ids: Sequence[str]) -> List[DestinationTrack]:
        """Full track objects (with popularity) for the given ids, batched."""
        details: List[DestinationTrack] = []
        ids = list(track_ids)
        for start in range(0, len(ids), self.DETAILS_BATCH_SIZE):
            batch = ids[start:start + self.DETAILS_BATCH_SIZE]
            result = self._call('tracks', batch)
            details.extend(_track_from_item(item) for item in (result or {}).get('tracks', []) if item)
        return details

    def create_playlist(self, name: str, description: str, public: bool = True) -> Tuple[str, str]:
        """Create a playlist for the token's user. Returns (playlist_id, playlist_url)."""
        user = self._call('current_user')
        playlist = self._call('user_playlist_create', user['id'], name, public=public, description=description)
        url = playlist.get('external_urls', {}).get('spotify') or f"https://open.spotify.com/playlist/{playlist['id']}"
        self.logger.info(f"Created playlist '{name}' ({playlist['id']})")
        return playlist['id'], url

    def add_tracks(self, playlist_id: str, uris: Iterable[str]) -> None:
        """Append one chunk of track URIs (at most 100) to a playlist."""
        self._call('playlist_add_items', playlist_id, list(uris))
