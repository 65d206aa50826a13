"""Text normalization utilities for genre slugs and track-name matching."""

import re

# Trailing subtitle delimiter: an en dash, em dash or hyphen (spacing optional)
# plus everything after it.
_TRAILING_DELIMITER = re.compile(r'\s*[–—-]\s*.*$')
_PARENTHETICAL = re.compile(r'\s*\([^)]*\)')
_DURATION_SUFFIX = re.compile(r'\d{1,2}:\d{2}$')


def normalize_text(text: str, *,
                   remove_parentheticals: bool = False,
                   remove_trailing_subtitle: bool = False) -> str:
    """Normalize text with configurable features.

    Args:
        text: Input text to normalize
        remove_parentheticals: Remove content in parentheses like "(feat. X)"
        remove_trailing_subtitle: Remove the first dash-delimited suffix like " - Remix"

    Returns:
        Lowercased text with whitespace collapsed
    """
    if not text:
        return ""

    result = text.strip().lower()

    if remove_parentheticals:
        result = _PARENTHETICAL.sub('', result)

    if remove_trailing_subtitle:
        result = _TRAILING_DELIMITER.sub('', result)

    return re.sub(r'\s+', ' ', result).strip()


def genre_slug(genre: str) -> str:
    """Format free-text genre input as an AOTY URL path segment.

    "Synth Pop" -> "synth-pop", "R&B!!" -> "rb". Running it on its own
    output returns the same slug.
    """
    if not genre:
        return ""
    slug = normalize_text(genre).replace(' ', '-')
    return re.sub(r'[^a-z0-9-]', '', slug)


def slug_to_display_name(slug: str) -> str:
    """Turn a genre slug into a display name ("dream-pop" -> "Dream Pop")."""
    words = [w for w in (slug or '').split('-') if w]
    return ' '.join(w[:1].upper() + w[1:].lower() for w in words)


def normalize_track_name(name: str) -> str:
    """Normalize a track title for cross-catalog comparison.

    Lowercases, drops parenthesized annotations, drops everything from the
    first dash or hyphen on, and collapses whitespace, so that
    "Fade (feat. X) - Remix" and "FADE" compare equal. "Self-Control"
    becomes "self", which still matches "Self Control" by containment.
    """
    return normalize_text(name, remove_parentheticals=True, remove_trailing_subtitle=True)


def strip_duration_suffix(text: str) -> str:
    """Remove a trailing "m:ss" / "mm:ss" duration from a track cell."""
    return _DURATION_SUFFIX.sub('', (text or '').strip()).strip()
