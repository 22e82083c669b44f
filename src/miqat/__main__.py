from __future__ import annotations

import argparse
from datetime import datetime
import logging
from pathlib import Path
import sys

from .config import ConfigManager
from .errors import ConfigurationError
from .services.prayer import PrayerTimesService
from .services.source import StaticSourceFetcher


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="miqat", description="Show today's prayer times with the current and next prayer.")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--html", type=Path, default=None, help="Read a saved schedule page instead of fetching it")
    parser.add_argument("--now", default=None, help="Reference time as ISO 8601 with an offset")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    manager = ConfigManager(args.config)
    try:
        config = manager.load()
        service = PrayerTimesService(
            config,
            fetcher=StaticSourceFetcher(path=args.html) if args.html else None,
        )
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    for issue in manager.errors():
        logging.getLogger("miqat").warning("Config: %s", issue)

    now = None
    if args.now:
        try:
            now = datetime.fromisoformat(args.now)
        except ValueError:
            print(f"Invalid --now value: {args.now!r}", file=sys.stderr)
            return 2
        if now.tzinfo is None:
            now = now.replace(tzinfo=service.zone)

    result = service.get_prayer_times(now)
    print(result.to_json(indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
