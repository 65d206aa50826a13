"""Pytest configuration and fixtures for AOTY genre primer tests."""

import pytest
from unittest.mock import Mock
from aoty.chart_store import MemoryChartStore
from aoty.dataclasses import AOTYConfig, AlbumEntry, DestinationTrack


@pytest.fixture
def temp_cache_dir(tmp_path):
    """Create temporary cache directory for tests."""
    return tmp_path / "test_cache"


@pytest.fixture
def mock_aoty_config(temp_cache_dir, tmp_path):
    """Create AOTY configuration for testing (no settle delays, temp state files)."""
    return AOTYConfig(
        cache_dir=str(temp_cache_dir),
        token_state_file_path=str(tmp_path / "tokens.json"),
        settle_delay=0.0,
        album_settle_delay=0.0,
        resource_blocking_enabled=False,
        proxy_enabled=False,
    )


@pytest.fixture
def memory_store():
    return MemoryChartStore()


def make_chart_html(count):
    """AOTY-style user-highest-rated chart page with `count` album blocks."""
    blocks = []
    for i in range(1, count + 1):
        blocks.append(f'''
        <div class="albumBlock">
            <div class="image"><a href="/album/{1000 + i}-artist-{i}-album-{i}.php"><img src="/c.jpg"/></a></div>
            <a href="/artist/{i}-artist-{i}/"><div class="artistTitle">Artist {i}</div></a>
            <a href="/album/{1000 + i}-artist-{i}-album-{i}.php"><div class="albumTitle">Album {i}</div></a>
            <div class="rating">9{i % 10}</div>
        </div>''')
    return f'<html><body><div id="centerContent">{"".join(blocks)}</div></body></html>'


@pytest.fixture
def sample_chart_html():
    """Chart page with three entries."""
    return make_chart_html(3)


@pytest.fixture
def sample_album_html():
    """AOTY album page with a user-rated track list."""
    return '''
    <html>
    <body>
        <table class="trackListTable">
            <tr><td class="trackNumber">1</td><td class="trackTitle">Intro 1:02</td><td class="trackRating">80</td></tr>
            <tr><td class="trackNumber">2</td><td class="trackTitle">Void 3:45</td><td class="trackRating">95</td></tr>
            <tr><td class="trackNumber">3</td><td class="trackTitle">—</td><td class="trackRating">notanumber</td></tr>
        </table>
    </body>
    </html>
    '''


@pytest.fixture
def sample_genre_html():
    """AOTY genre.php index with a duplicate link and a placeholder link."""
    return '''
    <html>
    <body>
        <div class="genreList">
            <a href="/genre/7-rock/">Rock</a>
            <a href="/genre/7-rock/">Rock</a>
            <a href="/genre/22-shoegaze/">Shoegaze</a>
            <a href="/genre/99-post-punk-revival/"></a>
            <h2>Dream Pop</h2>
            <a href="/genre/53-dream-pop/">View More</a>
            <a href="/genres.php">All genres</a>
        </div>
    </body>
    </html>
    '''


@pytest.fixture
def twenty_albums():
    return [AlbumEntry(rank=i, artist=f"Artist {i}", album=f"Album {i}",
                       album_url=f"/album/{1000 + i}-artist-{i}-album-{i}.php")
            for i in range(1, 21)]


def make_tracks(names, popularity=None):
    """Destination tracks t1..tN with the given names (and optional popularity list)."""
    return [
        DestinationTrack(
            id=f"t{i}",
            name=name,
            uri=f"spotify:track:t{i}",
            popularity=popularity[i - 1] if popularity else None,
        )
        for i, name in enumerate(names, 1)
    ]


@pytest.fixture
def fake_catalog():
    """Catalog double with one five-track album for every search."""
    tracks = make_tracks(["Alison", "Machine Gun", "40 Days", "Sing", "Here She Comes"],
                         popularity=[70, 60, 50, 90, 80])
    catalog = Mock()
    catalog.search_album.return_value = "album-1"
    catalog.list_tracks.return_value = tracks
    catalog.get_track_details.side_effect = lambda ids: [t for t in tracks if t.id in ids]
    catalog.create_playlist.return_value = ("pl-1", "https://open.spotify.com/playlist/pl-1")
    catalog.add_tracks.return_value = None
    return catalog


@pytest.fixture
def track_factory():
    return make_tracks


@pytest.fixture
def chart_html_factory():
    return make_chart_html
