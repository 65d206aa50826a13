import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from .config import BrowserProxyConfig, RenderProxyConfig

TierStatus = Literal['success', 'empty', 'not_found', 'skipped', 'error']
ResolutionStage = Literal['tier1', 'tier2', 'empty']
SelectionStage = Literal['rating_match', 'popularity', 'pad', 'done']


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in ('0', 'false', 'no', 'off', '')


@dataclass(repr=True)
class AOTYConfig:
    """Configuration for the AOTY genre primer."""
    # Source site
    base_url: str = "https://www.albumoftheyear.org"
    chart_path_template: str = "/ratings/user-highest-rated/all/{slug}/"
    genre_index_path: str = "/genre.php"
    top_n: int = 20

    # Browser tier
    headless: bool = True
    page_timeout: int = 60000  # ms, chart page navigation
    selector_timeout: int = 20000  # ms, independent of navigation timeout
    settle_delay: float = 2.0  # seconds after content appears
    album_page_timeout: int = 15000
    album_settle_delay: float = 1.5
    resource_blocking_enabled: bool = True
    solve_challenges: bool = True

    # Browser egress proxy
    proxy_enabled: bool = False
    proxy_host: Optional[str] = None
    proxy_port: Optional[int] = None
    proxy_username: Optional[str] = None
    proxy_password: Optional[str] = None
    proxy_use_tls: bool = False

    # Render proxy (fallback tier)
    render_proxy_api_key: Optional[str] = None
    render_proxy_endpoint: str = "https://api.zenrows.com/v1/"
    render_proxy_timeout: float = 90.0

    # Cache settings
    cache_dir: str = '.aoty_cache'
    chart_cache_ttl_hours: float = 24.0
    genre_cache_ttl_hours: float = 24.0

    # Playlist building
    tracks_per_album: int = 3
    popularity_lookup_limit: int = 50
    add_tracks_chunk_size: int = 100
    album_concurrency: int = 1
    catalog_timeout: int = 20  # seconds, per Spotify request

    # Token state file path
    token_state_file_path: Optional[str] = None  # Defaults to .spotify-tokens.json in current directory

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> 'AOTYConfig':
        """Create AOTYConfig from environment variables, then apply overrides."""
        env = os.environ if environ is None else environ
        port = env.get('PROXY_PORT')
        values: Dict[str, Any] = dict(
            render_proxy_api_key=env.get('ZENROWS_API_KEY') or None,
            cache_dir=env.get('AOTY_CACHE_DIR', '.aoty_cache'),
            headless=_env_bool(env.get('AOTY_HEADLESS'), True),
            proxy_host=env.get('PROXY_HOST'),
            proxy_port=int(port) if port else None,
            proxy_username=env.get('PROXY_USERNAME'),
            proxy_password=env.get('PROXY_PASSWORD'),
            token_state_file_path=env.get('SPOTIFY_TOKENS_FILE'),
        )
        values['proxy_enabled'] = all([
            values['proxy_host'], values['proxy_port'],
            values['proxy_username'], values['proxy_password'],
        ])
        values.update(overrides)
        return cls(**values)

    @property
    def browser_proxy(self) -> BrowserProxyConfig:
        return BrowserProxyConfig(
            enabled=self.proxy_enabled,
            host=self.proxy_host,
            port=self.proxy_port,
            username=self.proxy_username,
            password=self.proxy_password,
            use_tls=self.proxy_use_tls,
        )

    @property
    def render_proxy(self) -> RenderProxyConfig:
        return RenderProxyConfig(
            api_key=self.render_proxy_api_key,
            endpoint=self.render_proxy_endpoint,
            timeout=self.render_proxy_timeout,
        )


@dataclass(frozen=True)
class AlbumEntry:
    """One ranked album from a genre chart."""
    rank: int
    artist: str
    album: str
    album_url: Optional[str] = None  # relative path to the album detail page

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AlbumEntry':
        """Build from a wire/cache dict (accepts albumUrl or album_url)."""
        album_url = data.get('albumUrl', data.get('album_url'))
        return cls(
            rank=int(data['rank']),
            artist=str(data.get('artist') or ''),
            album=str(data.get('album') or ''),
            album_url=album_url or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'artist': self.artist,
            'album': self.album,
            'albumUrl': self.album_url,
        }


@dataclass(frozen=True)
class ChartResult:
    """Chart for one genre key, as acquired from the source site."""
    genre_key: str
    albums: Tuple[AlbumEntry, ...]
    fetched_at: datetime


@dataclass(frozen=True)
class CacheRecord:
    """Stored chart plus bookkeeping timestamps."""
    chart: ChartResult
    updated_at: datetime
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class GenreEntry:
    """Genre directory entry used for autocomplete."""
    name: str
    slug: str
    genre_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DestinationTrack:
    """Track as supplied by the destination catalog."""
    id: str
    name: str
    uri: str
    popularity: Optional[int] = None  # 0..100, only on full track details


@dataclass(frozen=True)
class TierResult:
    """Tagged outcome of a single acquisition tier."""
    tier: str
    status: TierStatus
    albums: Tuple[AlbumEntry, ...] = ()
    message: Optional[str] = None


@dataclass(frozen=True)
class ChartResolution:
    """Outcome of the tiered resolver: which stage produced the albums."""
    stage: ResolutionStage
    albums: Tuple[AlbumEntry, ...] = ()
    attempts: Tuple[TierResult, ...] = ()


@dataclass(frozen=True)
class ChartResponse:
    """Chart lookup result in the shape an HTTP layer hands back."""
    genre: str
    albums: Tuple[AlbumEntry, ...] = ()
    cached: bool = False
    timestamp: Optional[datetime] = None  # cachedAt when cached, fetchedAt otherwise
    found: bool = True

    NOT_FOUND_MESSAGE = ('Genre not found. Try a different spelling or check '
                         'AlbumOfTheYear.org for valid genre names (e.g. rock, hip-hop, shoegaze).')

    def to_payload(self) -> Dict[str, Any]:
        if not self.found:
            return {'error': self.NOT_FOUND_MESSAGE, 'genre': self.genre}
        payload: Dict[str, Any] = {
            'genre': self.genre,
            'data': [entry.to_dict() for entry in self.albums],
            'cached': self.cached,
        }
        stamp = self.timestamp.isoformat() if self.timestamp else None
        payload['cachedAt' if self.cached else 'fetchedAt'] = stamp
        return payload


@dataclass(frozen=True)
class StageOutcome:
    """Track ids a selection stage contributed."""
    stage: SelectionStage
    added: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SelectedTrackSet:
    """Up to N deduplicated tracks chosen for one album."""
    tracks: Tuple[DestinationTrack, ...] = ()
    stages: Tuple[StageOutcome, ...] = ()

    @property
    def ids(self) -> List[str]:
        return [track.id for track in self.tracks]

    @property
    def uris(self) -> List[str]:
        return [track.uri for track in self.tracks]

    def added_by(self, stage: SelectionStage) -> List[str]:
        return [track_id for outcome in self.stages if outcome.stage == stage
                for track_id in outcome.added]


@dataclass(frozen=True)
class AlbumResolution:
    """What happened to one chart album during playlist building."""
    entry: AlbumEntry
    catalog_album_id: Optional[str] = None
    selection: Optional[SelectedTrackSet] = None
    error: Optional[str] = None

    @property
    def matched(self) -> bool:
        return bool(self.selection and self.selection.tracks)


@dataclass(repr=True)
class PlaylistBuildResult:
    """Created playlist plus per-album resolution details."""
    playlist_id: str
    playlist_url: str
    name: str
    track_count: int
    requested_track_count: int
    warning: Optional[str] = None
    albums: List[AlbumResolution] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            'playlist_id': self.playlist_id,
            'playlistUrl': self.playlist_url,
            'trackCount': self.track_count,
            'requestedTrackCount': self.requested_track_count,
        }
        if self.warning:
            payload['error'] = self.warning
            payload['message'] = ('Playlist created but adding tracks failed. '
                                  'You can open it and add songs manually.')
        return payload


@dataclass(repr=True)
class TokenState:
    """Destination-catalog OAuth tokens persisted between runs."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TokenState':
        """Create TokenState from dictionary (for loading from JSON)."""
        valid_fields = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
