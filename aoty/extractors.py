"""Markup extraction for AOTY chart, album and genre-index pages.

Every function here is pure: it takes a parsed BeautifulSoup tree and returns
plain values. The browser tier parses a snapshot of the live DOM and the
render-proxy tier parses the proxy's response body, so both run the exact
same pairing and fallback heuristics.
"""

import logging
import re
from typing import Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from .dataclasses import AlbumEntry, GenreEntry
from .text_utils import slug_to_display_name, strip_duration_suffix

logger = logging.getLogger(__name__)

ALBUM_MARKER = 'albumTitle'
ARTIST_MARKER = 'artistTitle'
ALBUM_LINK_SELECTOR = 'a[href*="/album/"]'
ARTIST_ALBUM_DELIMITER = ' - '

_NUMERIC = re.compile(r'^[0-9]+$')
_LEADING_INT = re.compile(r'^\s*(-?[0-9]+)')
_GENRE_HREF = re.compile(r'/genre/([0-9]+)-([^/?#]+)/?$')
_PLACEHOLDER_LINK_TEXT = {'view more', 'view all', 'more'}
_ROOT_TAGS = {'body', 'html', '[document]'}


def parse_html(html: str) -> BeautifulSoup:
    """Parse raw markup with the lxml backend."""
    return BeautifulSoup(html or '', 'lxml')


def _text(element: Optional[Tag]) -> str:
    """Visible text of an element with whitespace collapsed."""
    if element is None:
        return ''
    return ' '.join(element.get_text().split())


def _entry_container(marker: Tag, own_class: str) -> Optional[Tag]:
    """Largest ancestor of marker that still holds only this one entry.

    Walking up stops as soon as an ancestor contains a second element with
    the marker's own class, since from there on it spans several entries.
    """
    container = None
    for parent in marker.parents:
        if parent.name in _ROOT_TAGS:
            break
        if len(parent.select(f'.{own_class}')) > 1:
            break
        container = parent
    return container


def _album_link(marker: Tag, container: Optional[Tag]) -> Optional[str]:
    link = None
    if container is not None:
        link = container.select_one(ALBUM_LINK_SELECTOR)
    if link is None:
        link = marker if marker.name == 'a' and '/album/' in (marker.get('href') or '') else None
    if link is None:
        link = marker.find_parent('a', href=re.compile('/album/')) or marker.select_one(ALBUM_LINK_SELECTOR)
    return (link.get('href') or None) if link is not None else None


def _owned_by_other_entry(candidate: Tag, candidate_class: str, primary_class: str) -> bool:
    container = _entry_container(candidate, candidate_class)
    return container is not None and container.select_one(f'.{primary_class}') is not None


def _pair_markers(primary: List[Tag], secondary: List[Tag],
                  primary_class: str, secondary_class: str) -> Iterable[Tuple[int, str, str, Optional[str]]]:
    """Yield (rank, primary_text, secondary_text, album_url) in primary order.

    The partner comes from the entry's own container when it has one, else
    from the same index in the other list, unless that element already sits
    in another entry's container.
    """
    for index, marker in enumerate(primary):
        container = _entry_container(marker, primary_class)
        partner = container.select_one(f'.{secondary_class}') if container is not None else None
        if partner is None and index < len(secondary):
            candidate = secondary[index]
            if not _owned_by_other_entry(candidate, secondary_class, primary_class):
                partner = candidate
        yield index + 1, _text(marker), _text(partner), _album_link(marker, container)


def parse_chart_entries(soup: BeautifulSoup, limit: int = 20) -> List[AlbumEntry]:
    """Extract up to `limit` ranked albums from a chart page.

    Uses the `.albumTitle` / `.artistTitle` markers when present, iterating
    whichever list is longer and recovering the other half of each pair from
    the entry's own container. Without either marker, falls back to album
    links whose text reads "Artist - Album".
    """
    album_els = soup.select(f'.{ALBUM_MARKER}')[:limit]
    artist_els = soup.select(f'.{ARTIST_MARKER}')[:limit]

    entries: List[AlbumEntry] = []
    if album_els or artist_els:
        if len(album_els) >= len(artist_els):
            for rank, album, artist, url in _pair_markers(album_els, artist_els, ALBUM_MARKER, ARTIST_MARKER):
                entries.append(AlbumEntry(rank=rank, artist=artist, album=album, album_url=url))
        else:
            for rank, artist, album, url in _pair_markers(artist_els, album_els, ARTIST_MARKER, ALBUM_MARKER):
                entries.append(AlbumEntry(rank=rank, artist=artist, album=album, album_url=url))
    else:
        links = [a for a in soup.select(ALBUM_LINK_SELECTOR) if ARTIST_ALBUM_DELIMITER in _text(a)]
        logger.debug(f"No chart markers found, falling back to {len(links)} delimited album links")
        for index, link in enumerate(links[:limit]):
            text = _text(link)
            artist, _, album = text.partition(ARTIST_ALBUM_DELIMITER)
            entries.append(AlbumEntry(
                rank=index + 1,
                artist=artist.strip(),
                album=album.strip(),
                album_url=link.get('href') or None,
            ))

    return [entry for entry in entries if entry.artist or entry.album]


def _parse_rating(cell: str) -> Optional[int]:
    match = _LEADING_INT.match(cell or '')
    if not match:
        return None
    rating = int(match.group(1))
    return rating if 0 <= rating <= 100 else None


def parse_track_ratings(soup: BeautifulSoup) -> List[str]:
    """Extract track names ordered by user rating, highest first.

    A table qualifies when it has at least two rows of three or more cells
    and its first row starts with a track number. Column 2 holds the name
    with a trailing duration, column 3 the rating (0-100). Ties keep table
    order. Returns [] when no table yields two rated tracks.
    """
    for table in soup.find_all('table'):
        rows = []
        for tr in table.find_all('tr'):
            cells = [_text(td) for td in tr.find_all('td', recursive=False)]
            if len(cells) >= 3:
                rows.append(cells)

        if len(rows) < 2 or not _NUMERIC.match(rows[0][0]):
            continue

        rated = []
        for cells in rows:
            rating = _parse_rating(cells[2])
            if rating is None:
                continue
            name = strip_duration_suffix(cells[1])
            if not name:
                continue
            rated.append((rating, name))

        if len(rated) >= 2:
            rated.sort(key=lambda item: item[0], reverse=True)
            return [name for _, name in rated]

    return []


def _heading_before(link: Tag) -> str:
    heading = link.find_previous_sibling(['h1', 'h2'])
    return _text(heading)


def parse_genre_directory(soup: BeautifulSoup) -> List[GenreEntry]:
    """Extract the genre index as (name, slug) entries, de-duplicated by id+slug."""
    seen = set()
    genres: List[GenreEntry] = []

    for link in soup.select('a[href*="/genre/"]'):
        match = _GENRE_HREF.search(link.get('href') or '')
        if not match:
            continue
        genre_id, slug = match.groups()
        key = f"{genre_id}-{slug}"
        if key in seen:
            continue
        seen.add(key)

        name = _text(link)
        if not name or name.lower() in _PLACEHOLDER_LINK_TEXT:
            name = _heading_before(link) or slug_to_display_name(slug)

        genres.append(GenreEntry(name=name or slug, slug=slug, genre_id=genre_id))

    return genres
