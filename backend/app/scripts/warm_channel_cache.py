from __future__ import annotations

import argparse
from datetime import UTC, datetime

from backend.app.dependencies import get_channel_cache, get_list_repository, get_settings
from backend.app.logging_config import configure_application_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch channel videos into the Tubelist channel cache.",
    )
    parser.add_argument(
        "channel_ids",
        nargs="*",
        help="YouTube channel IDs (UC...) to warm.",
    )
    parser.add_argument(
        "--list-id",
        help="Also warm every channel of this saved list.",
    )
    return parser.parse_args(argv)


def _format_fetched_at(fetched_at: int | None) -> str:
    if fetched_at is None:
        return "-"
    return datetime.fromtimestamp(fetched_at / 1000, tz=UTC).isoformat()


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    configure_application_logging(get_settings())

    channel_ids: list[str] = list(args.channel_ids)
    if args.list_id:
        resolution = get_list_repository().resolve_channel_ids(list_id=args.list_id)
        if resolution.channel_list is None:
            print(f"No list found for: {args.list_id}")
        channel_ids.extend(
            channel_id for channel_id in resolution.channel_ids if channel_id not in channel_ids
        )

    if not channel_ids:
        print("No channels to warm.")
        return

    cache = get_channel_cache()
    print("channel_id\tstate\trefreshed\tvideos\tfetched_at")
    for channel_id in channel_ids:
        result = cache.get_videos_with_metadata(channel_id)
        print(
            "\t".join(
                [
                    result.channel_id,
                    result.state,
                    "yes" if result.refreshed else "no",
                    str(len(result.videos)),
                    _format_fetched_at(result.fetched_at),
                ]
            )
        )


if __name__ == "__main__":
    main()
