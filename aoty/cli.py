#!/usr/bin/env python3
"""Command-line interface for AOTY genre primers.

Looks up a genre's top-rated albums on AlbumOfTheYear.org and optionally
turns them into a Spotify playlist.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from . import __version__
from .catalog import CatalogAuthError, CatalogError
from .core import GenrePrimer, NoTracksResolvedError
from .dataclasses import AOTYConfig
from .session_manager import TokenSessionManager

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOT_FOUND = 2
EXIT_INTERRUPTED = 130


def setup_logging(debug: bool = False):
    """Configure logging for CLI."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog='aoty-primer',
        description='Build genre primer playlists from AlbumOfTheYear.org charts',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s chart shoegaze
  %(prog)s chart "dream pop" --json
  %(prog)s genres
  %(prog)s playlist shoegaze --token <spotify-access-token>
  %(prog)s --cache-info
  %(prog)s --clear-cache
  %(prog)s --logout

Environment Variables:
  ZENROWS_API_KEY       Render proxy key for the fallback scraping tier
  SPOTIFY_ACCESS_TOKEN  Spotify access token for playlist creation
  SPOTIFY_TOKENS_FILE   Token state file (default: .spotify-tokens.json)
  AOTY_CACHE_DIR        Cache directory (default: .aoty_cache)
  AOTY_HEADLESS         Set to 0 to show the browser window
  PROXY_HOST, PROXY_PORT, PROXY_USERNAME, PROXY_PASSWORD
                        Egress proxy for the headless browser
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    parser.add_argument(
        '--clear-cache',
        action='store_true',
        help='Clear cached charts and exit'
    )

    parser.add_argument(
        '--cache-info',
        action='store_true',
        help='Show cache statistics and exit'
    )

    parser.add_argument(
        '--logout',
        action='store_true',
        help='Forget the stored Spotify token and exit'
    )

    parser.add_argument(
        '--no-headless',
        dest='headless',
        action='store_false',
        default=None,
        help='Show the browser window (debugging)'
    )

    subparsers = parser.add_subparsers(dest='command')

    chart_parser = subparsers.add_parser('chart', help='Show the top albums for a genre')
    chart_parser.add_argument('genre', help='Genre name, e.g. "shoegaze" or "hip hop"')
    chart_parser.add_argument('--json', action='store_true', help='Print the raw chart payload as JSON')

    subparsers.add_parser('genres', help='List genres known to AlbumOfTheYear.org')

    playlist_parser = subparsers.add_parser('playlist', help='Create a Spotify primer playlist for a genre')
    playlist_parser.add_argument('genre', help='Genre name')
    playlist_parser.add_argument(
        '--token',
        help='Spotify access token (default: SPOTIFY_ACCESS_TOKEN or the stored token file)'
    )
    playlist_parser.add_argument(
        '--save-token',
        action='store_true',
        help='Store --token in the token file for later runs'
    )

    return parser.parse_args(argv)


def create_config_from_args(args) -> AOTYConfig:
    """Create AOTYConfig from command-line arguments and environment variables."""
    overrides = {}
    if args.headless is not None:
        overrides['headless'] = args.headless
    return AOTYConfig.from_env(**overrides)


def print_chart(response, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps(response.to_payload(), indent=2, ensure_ascii=False))
        return

    source = 'cache' if response.cached else 'AlbumOfTheYear.org'
    stamp = response.timestamp.strftime('%Y-%m-%d %H:%M UTC') if response.timestamp else 'unknown'
    print(f"Top {len(response.albums)} {response.genre} albums (from {source}, {stamp})")
    for entry in response.albums:
        print(f"  {entry.rank:>2}. {entry.artist} - {entry.album}")


async def run_chart(primer: GenrePrimer, genre: str, as_json: bool) -> int:
    response = await primer.get_chart(genre)
    if not response.found:
        if as_json:
            print(json.dumps(response.to_payload(), indent=2))
        else:
            print(f"Error: {response.NOT_FOUND_MESSAGE}", file=sys.stderr)
        return EXIT_NOT_FOUND
    print_chart(response, as_json)
    return EXIT_OK


async def run_genres(primer: GenrePrimer) -> int:
    genres = await primer.list_genres()
    if not genres:
        print("No genres available", file=sys.stderr)
        return EXIT_NOT_FOUND
    for genre in genres:
        print(f"{genre.name} ({genre.slug})")
    print(f"\n{len(genres)} genre(s)")
    return EXIT_OK


async def run_playlist(primer: GenrePrimer, genre: str, token: Optional[str]) -> int:
    response = await primer.get_chart(genre)
    if not response.found:
        print(f"Error: {response.NOT_FOUND_MESSAGE}", file=sys.stderr)
        return EXIT_NOT_FOUND

    print(f"Resolving {len(response.albums)} albums on Spotify...")
    try:
        result = await primer.build_playlist(response.genre, response.albums, access_token=token)
    except CatalogAuthError as e:
        print(f"Error: {e}. Log in to Spotify again and pass a fresh --token.", file=sys.stderr)
        return EXIT_FAILURE
    except NoTracksResolvedError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_NOT_FOUND

    print(f"\n{'='*60}")
    print(f"Playlist: {result.name}")
    print(f"  URL: {result.playlist_url}")
    print(f"  Tracks added: {result.track_count}/{result.requested_track_count}")
    unmatched = [r for r in result.albums if not r.matched]
    if unmatched:
        print(f"  Albums without tracks: {len(unmatched)}")
        for resolution in unmatched:
            print(f"    - {resolution.entry.artist} - {resolution.entry.album} ({resolution.error})")
    if result.warning:
        print(f"  Warning: {result.warning}")
    print(f"{'='*60}")
    return EXIT_OK


async def run_command(args, config: AOTYConfig) -> int:
    async with GenrePrimer(config) as primer:
        if args.command == 'chart':
            return await run_chart(primer, args.genre, args.json)
        if args.command == 'genres':
            return await run_genres(primer)

        token = args.token or os.environ.get('SPOTIFY_ACCESS_TOKEN')
        if args.token and args.save_token:
            primer.token_manager.set_tokens(args.token)
        return await run_playlist(primer, args.genre, token)


def main(argv=None):
    """Main CLI entry point."""
    args = parse_args(argv)
    setup_logging(args.debug)
    logger = logging.getLogger(__name__)

    # Create config
    config = create_config_from_args(args)

    if args.logout:
        TokenSessionManager(config.token_state_file_path).clear()
        print("Forgot stored Spotify token")
        return EXIT_OK

    # Handle cache management commands
    if args.cache_info or args.clear_cache:
        primer = GenrePrimer(config)

        if args.cache_info:
            cache_info = primer.get_cache_info()
            print(f"Cache directory: {cache_info.get('cache_dir', 'N/A')}")
            print(f"Total cached charts: {cache_info.get('total_files', 0)}")
            print(f"Total cache size: {cache_info.get('total_size_mb', 0):.2f} MB")
            print(f"Chart TTL: {config.chart_cache_ttl_hours:g} hours")
            if cache_info.get('stale_files', 0) > 0:
                print(f"Stale charts: {cache_info.get('stale_files', 0)}")
            return EXIT_OK

        cleared_count = primer.clear_cache()
        print(f"Cleared {cleared_count} cached chart(s)")
        return EXIT_OK

    if not args.command:
        print("Error: a command is required (chart, genres or playlist)", file=sys.stderr)
        print("Use --help for usage information", file=sys.stderr)
        return EXIT_FAILURE

    if not config.render_proxy.is_configured:
        logger.debug("ZENROWS_API_KEY not set; only the browser tier will be used")

    try:
        return asyncio.run(run_command(args, config))

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return EXIT_INTERRUPTED

    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    except CatalogError as e:
        logger.error(f"Spotify error: {e}")
        return EXIT_FAILURE

    except Exception as e:
        logger.error(f"Fatal error: {e}")
        if args.debug:
            raise
        return EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
