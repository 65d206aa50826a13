"""Tests for GenrePrimer chart lookups and playlist building."""

import dataclasses
import pytest
from unittest.mock import AsyncMock, Mock
from aoty.catalog import CatalogAuthError, CatalogError
from aoty.core import GenrePrimer, NoTracksResolvedError
from aoty.dataclasses import AlbumEntry, ChartResolution, GenreEntry


@pytest.fixture
def stub_scraper(twenty_albums):
    scraper = Mock()
    scraper.resolve_chart = AsyncMock(return_value=ChartResolution(stage='tier1', albums=tuple(twenty_albums)))
    scraper.get_album_track_order = AsyncMock(return_value=["Sing", "Alison", "Dagger"])
    scraper.fetch_genre_directory = AsyncMock(return_value=[GenreEntry(name="Shoegaze", slug="shoegaze")])
    return scraper


@pytest.fixture
def primer(mock_aoty_config, memory_store, stub_scraper):
    return GenrePrimer(mock_aoty_config, store=memory_store, scraper=stub_scraper)


def two_albums():
    return [
        AlbumEntry(rank=1, artist="Slowdive", album="Souvlaki", album_url="/album/1-slowdive-souvlaki.php"),
        AlbumEntry(rank=2, artist="Ride", album="Nowhere", album_url="/album/2-ride-nowhere.php"),
    ]


class TestGetChart:
    """Test suite for chart lookups."""

    @pytest.mark.asyncio
    async def test_shoegaze_first_lookup(self, primer, stub_scraper, memory_store):
        """First lookup scrapes, stores under the slug and reports cached=False."""
        response = await primer.get_chart("Shoegaze")

        stub_scraper.resolve_chart.assert_awaited_once_with("shoegaze")
        assert response.found
        assert response.cached is False
        assert response.genre == "Shoegaze"
        assert [entry.rank for entry in response.albums] == list(range(1, 21))
        assert memory_store.get("shoegaze").chart.genre_key == "shoegaze"

        payload = response.to_payload()
        assert payload['data'][0] == {'rank': 1, 'artist': 'Artist 1', 'album': 'Album 1',
                                      'albumUrl': '/album/1001-artist-1-album-1.php'}
        assert 'fetchedAt' in payload

    @pytest.mark.asyncio
    async def test_second_lookup_is_cached(self, primer, stub_scraper):
        await primer.get_chart("shoegaze")
        response = await primer.get_chart("  Shoegaze ")

        assert response.cached is True
        assert len(response.albums) == 20
        assert stub_scraper.resolve_chart.await_count == 1

    @pytest.mark.asyncio
    async def test_multi_word_genre_slug(self, primer, stub_scraper):
        await primer.get_chart("Dream Pop")
        stub_scraper.resolve_chart.assert_awaited_once_with("dream-pop")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("genre", ["", "   ", "!!!"])
    async def test_invalid_genre(self, primer, stub_scraper, genre):
        with pytest.raises(ValueError):
            await primer.get_chart(genre)
        stub_scraper.resolve_chart.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_genre_not_found(self, primer, stub_scraper, memory_store):
        stub_scraper.resolve_chart.return_value = ChartResolution(stage='empty')

        response = await primer.get_chart("not-a-genre")

        assert response.found is False
        assert response.to_payload()['genre'] == "not-a-genre"
        assert memory_store.get_info()['total_files'] == 0

    @pytest.mark.asyncio
    async def test_list_genres(self, primer):
        genres = await primer.list_genres()
        assert [g.slug for g in genres] == ["shoegaze"]

    @pytest.mark.asyncio
    async def test_context_manager_persists_genres(self, mock_aoty_config, memory_store, stub_scraper):
        async with GenrePrimer(mock_aoty_config, store=memory_store, scraper=stub_scraper) as primer:
            await primer.list_genres()

        assert primer.genre_manager.state_file_path.exists()


class TestBuildPlaylist:
    """Test suite for playlist building."""

    @pytest.mark.asyncio
    async def test_happy_path(self, primer, fake_catalog):
        result = await primer.build_playlist("Shoegaze", two_albums(), catalog=fake_catalog)

        assert result.name == "[Shoegaze] Genre Primer (AOTY)"
        fake_catalog.create_playlist.assert_called_once_with(
            "[Shoegaze] Genre Primer (AOTY)",
            "Genre primer: top Shoegaze albums from AlbumOfTheYear.org",
            True,
        )
        expected = ["spotify:track:t4", "spotify:track:t1", "spotify:track:t5"] * 2
        fake_catalog.add_tracks.assert_called_once_with("pl-1", expected)
        assert result.track_count == 6
        assert result.requested_track_count == 6
        assert result.warning is None
        assert all(resolution.matched for resolution in result.albums)
        assert result.to_payload() == {
            'playlist_id': 'pl-1',
            'playlistUrl': 'https://open.spotify.com/playlist/pl-1',
            'trackCount': 6,
            'requestedTrackCount': 6,
        }

    @pytest.mark.asyncio
    async def test_search_uses_chart_names(self, primer, fake_catalog, stub_scraper):
        await primer.build_playlist("Shoegaze", two_albums()[:1], catalog=fake_catalog)

        fake_catalog.search_album.assert_called_once_with("Slowdive", "Souvlaki")
        stub_scraper.get_album_track_order.assert_awaited_once_with("/album/1-slowdive-souvlaki.php")

    @pytest.mark.asyncio
    async def test_popularity_fallback_without_ratings(self, primer, fake_catalog, stub_scraper):
        stub_scraper.get_album_track_order.return_value = []

        result = await primer.build_playlist("Shoegaze", two_albums()[:1], catalog=fake_catalog)

        assert result.albums[0].selection.ids == ["t4", "t5", "t1"]
        assert result.albums[0].selection.added_by('popularity') == ["t4", "t5", "t1"]

    @pytest.mark.asyncio
    async def test_album_without_url_skips_rating_lookup(self, primer, fake_catalog, stub_scraper):
        albums = [AlbumEntry(rank=1, artist="Slowdive", album="Souvlaki")]

        await primer.build_playlist("Shoegaze", albums, catalog=fake_catalog)

        stub_scraper.get_album_track_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_chunked_adds(self, mock_aoty_config, memory_store, stub_scraper, fake_catalog):
        config = dataclasses.replace(mock_aoty_config, add_tracks_chunk_size=4)
        primer = GenrePrimer(config, store=memory_store, scraper=stub_scraper)

        result = await primer.build_playlist("Shoegaze", two_albums(), catalog=fake_catalog)

        assert [len(call.args[1]) for call in fake_catalog.add_tracks.call_args_list] == [4, 2]
        assert result.track_count == 6

    @pytest.mark.asyncio
    async def test_failed_add_keeps_playlist(self, mock_aoty_config, memory_store, stub_scraper, fake_catalog):
        """A failed chunk stops adding; the created playlist is still reported."""
        config = dataclasses.replace(mock_aoty_config, add_tracks_chunk_size=4)
        primer = GenrePrimer(config, store=memory_store, scraper=stub_scraper)
        fake_catalog.add_tracks.side_effect = [None, CatalogError("Spotify playlist_add_items failed (500)", 500)]

        result = await primer.build_playlist("Shoegaze", two_albums(), catalog=fake_catalog)

        assert result.playlist_id == "pl-1"
        assert result.track_count == 4
        assert result.requested_track_count == 6
        assert "500" in result.warning
        assert 'error' in result.to_payload()

    @pytest.mark.asyncio
    async def test_no_tracks_resolved(self, primer, fake_catalog):
        fake_catalog.search_album.return_value = None

        with pytest.raises(NoTracksResolvedError) as excinfo:
            await primer.build_playlist("Shoegaze", two_albums(), catalog=fake_catalog)

        assert len(excinfo.value.albums) == 2
        fake_catalog.create_playlist.assert_not_called()

    @pytest.mark.asyncio
    async def test_auth_error_propagates(self, primer, fake_catalog):
        fake_catalog.search_album.side_effect = CatalogAuthError("expired", status=401)

        with pytest.raises(CatalogAuthError):
            await primer.build_playlist("Shoegaze", two_albums(), catalog=fake_catalog)

        fake_catalog.create_playlist.assert_not_called()

    @pytest.mark.asyncio
    async def test_catalog_error_skips_album(self, primer, fake_catalog):
        fake_catalog.search_album.side_effect = [CatalogError("Spotify search failed (500)", 500), "album-2"]

        result = await primer.build_playlist("Shoegaze", two_albums(), catalog=fake_catalog)

        assert not result.albums[0].matched
        assert "500" in result.albums[0].error
        assert result.albums[1].matched
        assert result.track_count == 3

    @pytest.mark.asyncio
    async def test_stored_token_used(self, mock_aoty_config, memory_store, stub_scraper, fake_catalog):
        factory = Mock(return_value=fake_catalog)
        primer = GenrePrimer(mock_aoty_config, store=memory_store, scraper=stub_scraper, catalog_factory=factory)
        primer.token_manager.set_tokens("stored-token")

        await primer.build_playlist("Shoegaze", two_albums(), access_token=None)
        factory.assert_called_once_with("stored-token")

        await primer.build_playlist("Shoegaze", two_albums(), access_token="fresh-token")
        factory.assert_called_with("fresh-token")

    @pytest.mark.asyncio
    async def test_missing_token(self, primer):
        with pytest.raises(CatalogAuthError):
            await primer.build_playlist("Shoegaze", two_albums())

    @pytest.mark.asyncio
    async def test_invalid_input(self, primer, fake_catalog):
        with pytest.raises(ValueError):
            await primer.build_playlist("", two_albums(), catalog=fake_catalog)
        with pytest.raises(ValueError):
            await primer.build_playlist("Shoegaze", [], catalog=fake_catalog)


class TestCacheAdmin:
    """Test suite for cache administration."""

    @pytest.mark.asyncio
    async def test_clear_and_info(self, primer):
        await primer.get_chart("shoegaze")
        assert primer.get_cache_info()['total_files'] == 1

        assert primer.clear_cache() == 1
        assert primer.get_cache_info()['total_files'] == 0
