"""Pick the tracks that represent an album on the destination catalog."""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from .catalog import CatalogAuthError, CatalogError
from .dataclasses import DestinationTrack, SelectedTrackSet, StageOutcome
from .text_utils import normalize_track_name

PopularityLookup = Callable[[Sequence[str]], List[DestinationTrack]]

MIN_PREFIX_LENGTH = 4


def build_name_index(tracks: Sequence[DestinationTrack]) -> Dict[str, DestinationTrack]:
    """Normalized name -> track, first occurrence wins, unnamed tracks skipped."""
    index: Dict[str, DestinationTrack] = {}
    for track in tracks:
        key = normalize_track_name(track.name)
        if key and key not in index:
            index[key] = track
    return index


def find_match(name: str, index: Dict[str, DestinationTrack]) -> Optional[DestinationTrack]:
    """Match a rated track name against the index: exact, then containment, then prefix."""
    query = normalize_track_name(name)
    if not query:
        return None

    exact = index.get(query)
    if exact is not None:
        return exact

    for candidate, track in index.items():
        if query in candidate or candidate in query:
            return track

    if len(query) >= MIN_PREFIX_LENGTH:
        for candidate, track in index.items():
            if candidate.startswith(query):
                return track

    return None


class TrackSelector:
    """Staged selection: rating_match -> popularity -> pad -> done.

    Each stage only tops up what the previous ones left short of N, and the
    result records which ids each stage contributed.
    """

    def __init__(self, tracks_per_album: int = 3,
                 popularity_lookup: Optional[PopularityLookup] = None,
                 popularity_lookup_limit: int = 50) -> None:
        self.tracks_per_album = tracks_per_album
        self.popularity_lookup = popularity_lookup
        self.popularity_lookup_limit = popularity_lookup_limit
        self.logger = logging.getLogger(__name__)

    def _match_ratings(self, tracks: Sequence[DestinationTrack], ranking: Sequence[str],
                       n: int, selected: Dict[str, DestinationTrack]) -> List[str]:
        index = build_name_index(tracks)
        added = []
        for name in ranking[:n]:
            track = find_match(name, index)
            if track is not None and track.id not in selected:
                selected[track.id] = track
                added.append(track.id)
        return added

    def _by_popularity(self, tracks: Sequence[DestinationTrack], n: int,
                       selected: Dict[str, DestinationTrack]) -> List[str]:
        if self.popularity_lookup is None:
            return []

        ids = [track.id for track in tracks[:self.popularity_lookup_limit] if track.id]
        if not ids:
            return []

        try:
            details = self.popularity_lookup(ids)
        except CatalogAuthError:
            raise
        except CatalogError as e:
            self.logger.warning(f"Popularity lookup failed, skipping to catalog order: {e}")
            return []

        ranked = sorted(details, key=lambda t: t.popularity or 0, reverse=True)
        added = []
        for track in ranked:
            if len(selected) >= n:
                break
            if track.id not in selected:
                selected[track.id] = track
                added.append(track.id)
        return added

    def _pad(self, tracks: Sequence[DestinationTrack], n: int,
             selected: Dict[str, DestinationTrack]) -> List[str]:
        added = []
        for track in tracks:
            if len(selected) >= n:
                break
            if track.id not in selected:
                selected[track.id] = track
                added.append(track.id)
        return added

    def select(self, tracks: Sequence[DestinationTrack], ranking: Sequence[str],
               n: Optional[int] = None) -> SelectedTrackSet:
        """Choose up to n tracks (default tracks_per_album) for one album.

        Fewer than n come back only when the catalog listing itself is shorter.
        Raises CatalogAuthError if the popularity lookup is rejected.
        """
        n = self.tracks_per_album if n is None else n
        selected: Dict[str, DestinationTrack] = {}
        stages: List[StageOutcome] = []

        if ranking:
            added = self._match_ratings(tracks, ranking, n, selected)
            stages.append(StageOutcome(stage='rating_match', added=tuple(added)))
            if not added:
                self.logger.info(f"No rated names matched the catalog listing ({len(tracks)} tracks)")

        if len(selected) < n:
            stages.append(StageOutcome(stage='popularity',
                                       added=tuple(self._by_popularity(tracks, n, selected))))

        if len(selected) < n:
            stages.append(StageOutcome(stage='pad', added=tuple(self._pad(tracks, n, selected))))

        stages.append(StageOutcome(stage='done'))
        return SelectedTrackSet(tracks=tuple(list(selected.values())[:n]), stages=tuple(stages))
