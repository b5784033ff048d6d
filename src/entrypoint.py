import argparse
import asyncio
import logging
import math
import sys

import pubg_config
from match_grouping import MAX_GAP_HOURS, format_date_range, group_sessions, matches_in_group
from match_stats import average_placement, best_match, build_rollup, summarize
from pubg_api import PubgApiClient, PubgApiError


async def load_history(nickname: str, platform: str, limit: int, pages: int):
    async with PubgApiClient() as client:
        player = await client.lookup_player(platform, nickname)
        print(f"✅ Found {player.name} ({player.id})")
        matches, pagination = await client.fetch_pages(
            player.id, platform, limit=limit, max_pages=pages
        )
    print(f"📄 Loaded {len(matches)} of {pagination.total} matches")
    return player, matches


def print_summary(matches) -> None:
    stats = summarize(matches)
    print(f"\n{'=' * 62}")
    print(f"  SUMMARY  ({stats.total_matches} matches)")
    print(f"{'=' * 62}")
    print(f"  Kills    {stats.total_kills:>7}   avg {stats.average_kills:>7.2f}")
    print(f"  Damage   {stats.total_damage:>7}   avg {stats.average_damage:>7.2f}")
    print(f"  Deaths   {stats.total_deaths:>7}   avg {stats.average_deaths:>7.2f}")
    print(f"  Assists  {stats.total_assists:>7}   avg {stats.average_assists:>7.2f}")
    best = best_match(matches)
    if best:
        print(f"  Best game: {best.stats.kills} kills on {best.map_name} ({best.game_mode})")
    print(f"  Average placement: #{average_placement(matches)}")


def print_sessions(matches, gap_hours: float) -> None:
    groups = group_sessions(matches, gap_hours * 3600 * 1000)
    print(f"\n  SESSIONS  (gap > {gap_hours:g}h starts a new one)")
    for group in reversed(groups):
        kills = sum(m.stats.kills for m in matches_in_group(matches, group))
        print(f"  {group.display_label:<18} {format_date_range(group.start_date, group.end_date)}"
              f"  {kills} kills")


def print_teammates(player, matches) -> None:
    rows = build_rollup(matches, {m.id for m in matches}, player)
    print("\n  TEAMMATES")
    print(f"  {'Player':<20} {'Games':>5} {'Avg K':>6} {'Avg A':>6} {'Avg Dmg':>8}")
    print(f"  {'-'*20} {'-'*5} {'-'*6} {'-'*6} {'-'*8}")
    for row in rows:
        name = f"{row.name} (나)" if row.is_self else row.name
        print(f"  {name:<20} {row.match_count:>5} {row.average_kills:>6.1f} "
              f"{row.average_assists:>6.1f} {row.average_damage:>8}")
    print()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Look up a PUBG player's recent matches.")
    parser.add_argument("nickname")
    parser.add_argument("--platform", default=pubg_config.DEFAULT_PLATFORM)
    parser.add_argument("--limit", type=int, default=None, help="matches per page")
    parser.add_argument("--pages", type=int, default=1, help="pages to load")
    parser.add_argument("--gap-hours", type=float, default=None,
                        help="idle hours that end a play session")
    args = parser.parse_args(argv)
    if args.limit is not None and args.limit <= 0:
        parser.error("--limit must be positive")
    if args.pages <= 0:
        parser.error("--pages must be positive")
    if args.gap_hours is not None and not (
        math.isfinite(args.gap_hours) and 0 <= args.gap_hours <= MAX_GAP_HOURS
    ):
        parser.error(f"--gap-hours must be between 0 and {MAX_GAP_HOURS}")
    return args


def main(argv=None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    limit = args.limit if args.limit is not None else pubg_config.get_page_limit()
    gap_hours = args.gap_hours if args.gap_hours is not None else pubg_config.get_session_gap_hours()

    try:
        player, matches = asyncio.run(load_history(args.nickname, args.platform, limit, args.pages))
    except PubgApiError as e:
        print(f"❌ {e}")
        return 1

    if not matches:
        print("⚠️ No matches found.")
        return 0

    print_summary(matches)
    print_sessions(matches, gap_hours)
    print_teammates(player, matches)
    return 0


if __name__ == "__main__":
    sys.exit(main())
