"""
CLI tool for database maintenance.

Usage:
    python -m tubehub.cli purge-stale-uploads
    python -m tubehub.cli purge-stale-uploads --older-than-seconds 7200 --dry-run
    python -m tubehub.cli create-tables
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from tubehub.core.config import get_settings
from tubehub.core.logging import setup_logging
from tubehub.database.session import Database
from tubehub.providers import build_provider_registry
from tubehub.services.maintenance import purge_stale_uploads


async def run_purge(older_than_seconds: int, dry_run: bool, cancel_sessions: bool) -> List[str]:
    """Purge stale PENDING uploads and print what was removed."""
    settings = get_settings()
    db = Database.from_settings(settings)
    try:
        providers = build_provider_registry(settings) if cancel_sessions else None
        video_ids = await purge_stale_uploads(db, older_than_seconds, dry_run=dry_run, providers=providers)
    finally:
        await db.close()

    verb = "Would purge" if dry_run else "Purged"
    print(f"\n{verb} {len(video_ids)} stale upload(s)")
    for video_id in video_ids:
        print(f"  {video_id}")
    return video_ids


async def run_create_tables() -> None:
    """Create all tables directly from the models (local development)."""
    db = Database.from_settings(get_settings())
    try:
        await db.create_all()
    finally:
        await db.close()
    print("Tables created")


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    settings = get_settings()
    default_age = settings.upload_url_ttl_seconds + settings.stale_upload_grace_seconds

    parser = argparse.ArgumentParser(
        prog="python -m tubehub.cli",
        description="TubeHub maintenance commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Remove uploads the client never started (default age: upload window + grace)
  python -m tubehub.cli purge-stale-uploads

  # Preview only
  python -m tubehub.cli purge-stale-uploads --older-than-seconds 7200 --dry-run
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    purge_parser = subparsers.add_parser('purge-stale-uploads', help='Delete PENDING videos never uploaded')
    purge_parser.add_argument('--older-than-seconds', type=int, default=default_age,
                              help=f'Minimum record age in seconds (default: {default_age})')
    purge_parser.add_argument('--dry-run', action='store_true', help='List candidates without deleting')
    purge_parser.add_argument('--no-cancel', action='store_true',
                              help='Do not cancel provider upload sessions')

    subparsers.add_parser('create-tables', help='Create tables from models (development only)')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(log_level=settings.log_level, log_dir=settings.log_dir, console=False)

    try:
        if args.command == 'purge-stale-uploads':
            if args.older_than_seconds < 0:
                parser.error("--older-than-seconds must be non-negative")
            asyncio.run(run_purge(args.older_than_seconds, args.dry_run, not args.no_cancel))
        elif args.command == 'create-tables':
            asyncio.run(run_create_tables())
        else:
            parser.print_help()
    except Exception as e:
        print(f"\nError: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    return 0


if __name__ == '__main__':
    main()
