from datetime import datetime
from typing import Iterable, List, Optional, Set

import pandas as pd
from pytz import timezone

import pubg_config
from pubg_models import (
    Match,
    PlayerIdentity,
    PlayerStats,
    RollupEntry,
    format_timestamp,
    parse_timestamp,
    round_half_up,
)

ROLLUP_COLUMNS = ['player_id', 'name', 'kills', 'assists', 'damage']


def summarize(matches: List[Match]) -> PlayerStats:
    """Totals and per-match averages (2 decimals) over any subset of matches."""
    if not matches:
        return PlayerStats()

    games = len(matches)
    total_kills = sum(m.stats.kills for m in matches)
    total_damage = sum(m.stats.damage for m in matches)
    total_deaths = sum(m.stats.deaths for m in matches)
    total_assists = sum(m.stats.assists for m in matches)

    return PlayerStats(
        total_kills=total_kills,
        total_damage=total_damage,
        total_deaths=total_deaths,
        total_assists=total_assists,
        average_kills=round_half_up(total_kills / games, 2),
        average_damage=round_half_up(total_damage / games, 2),
        average_deaths=round_half_up(total_deaths / games, 2),
        average_assists=round_half_up(total_assists / games, 2),
        total_matches=games,
    )


def best_match(matches: List[Match]) -> Optional[Match]:
    """Match with the most kills; the earliest in list order wins a tie."""
    best = None
    for match in matches:
        if best is None or match.stats.kills > best.stats.kills:
            best = match
    return best


def average_placement(matches: List[Match]) -> int:
    if not matches:
        return 0
    return int(round_half_up(sum(m.stats.placement for m in matches) / len(matches)))


def short_date_label(value: datetime) -> str:
    local = value.astimezone(timezone(pubg_config.TIMEZONE))
    return f'{local.month}월 {local.day}일'


def damage_trend(matches: List[Match]) -> list:
    """Chart points for damage per match, oldest first."""
    ordered = sorted(matches, key=lambda m: m.created_at)
    return [
        {
            'date': short_date_label(match.created_at),
            'match': f'매치 {index}',
            'damage': match.stats.damage,
            'fullDate': format_timestamp(match.created_at),
        }
        for index, match in enumerate(ordered, 1)
    ]


def filter_match_ids(
    matches: List[Match],
    start_date=None,
    end_date=None,
    game_mode: Optional[str] = None,
    map_name: Optional[str] = None,
) -> List[str]:
    """IDs of matches passing every given criterion; the date range is inclusive."""
    start = parse_timestamp(start_date) if start_date else None
    end = parse_timestamp(end_date) if end_date else None

    selected = []
    for match in matches:
        if start is not None and match.created_at < start:
            continue
        if end is not None and match.created_at > end:
            continue
        if game_mode and match.game_mode != game_mode:
            continue
        if map_name and match.map_name != map_name:
            continue
        selected.append(match.id)
    return selected


def toggle_match(selected: Iterable[str], match_id: str) -> Set[str]:
    updated = set(selected)
    if match_id in updated:
        updated.discard(match_id)
    else:
        updated.add(match_id)
    return updated


def _apply_averages(entry: RollupEntry) -> None:
    if not entry.match_count:
        return
    entry.average_kills = round_half_up(entry.total_kills / entry.match_count, 1)
    entry.average_assists = round_half_up(entry.total_assists / entry.match_count, 1)
    # Damage averages are shown as whole numbers.
    entry.average_damage = int(round_half_up(entry.total_damage / entry.match_count))


def _teammate_frame(selected_matches: List[Match]) -> pd.DataFrame:
    rows = []
    for match in selected_matches:
        for teammate in match.teammates or ():
            rows.append({
                'player_id': teammate.player_id,
                'name': teammate.name,
                'kills': teammate.kills,
                'assists': teammate.assists,
                'damage': teammate.damage,
            })
    return pd.DataFrame(rows, columns=ROLLUP_COLUMNS)


def build_rollup(
    matches: List[Match],
    selected_ids: Iterable[str],
    self_identity: Optional[PlayerIdentity] = None,
) -> List[RollupEntry]:
    """Per-player table over the selected matches, searched player first.

    Teammates are deduplicated by player id and ranked by average damage,
    then average kills, then average assists.
    """
    selected_ids = set(selected_ids)
    selected = [m for m in matches if m.id in selected_ids]
    table = {}

    if self_identity is not None and selected:
        me = RollupEntry(
            player_id=self_identity.id,
            name=self_identity.name,
            match_count=len(selected),
            total_kills=sum(m.stats.kills for m in selected),
            total_assists=sum(m.stats.assists for m in selected),
            total_damage=sum(m.stats.damage for m in selected),
            is_self=True,
        )
        _apply_averages(me)
        table[me.player_id] = me

    df = _teammate_frame(selected)
    if not df.empty:
        grouped = df.groupby('player_id', sort=False).agg(
            name=('name', 'first'),
            match_count=('kills', 'size'),
            total_kills=('kills', 'sum'),
            total_assists=('assists', 'sum'),
            total_damage=('damage', 'sum'),
        )
        for player_id, row in grouped.iterrows():
            existing = table.get(player_id)
            if existing is not None:
                # Self listed as a teammate: totals accumulate, averages stay as seeded.
                existing.match_count += int(row['match_count'])
                existing.total_kills += int(row['total_kills'])
                existing.total_assists += int(row['total_assists'])
                existing.total_damage += int(row['total_damage'])
                continue
            entry = RollupEntry(
                player_id=player_id,
                name=row['name'],
                match_count=int(row['match_count']),
                total_kills=int(row['total_kills']),
                total_assists=int(row['total_assists']),
                total_damage=int(row['total_damage']),
            )
            _apply_averages(entry)
            table[player_id] = entry

    entries = list(table.values())
    entries.sort(key=lambda e: (
        not e.is_self,
        -e.average_damage,
        -e.average_kills,
        -e.average_assists,
    ))
    return entries


def matches_frame(matches: List[Match]) -> pd.DataFrame:
    """Flat one-row-per-match table used for exports."""
    rows = []
    for match in matches:
        rows.append({
            'match_id': match.id,
            'created_at': format_timestamp(match.created_at),
            'game_mode': match.game_mode,
            'map_name': match.map_name,
            'duration_seconds': match.duration_seconds,
            'kills': match.stats.kills,
            'damage': match.stats.damage,
            'deaths': match.stats.deaths,
            'assists': match.stats.assists,
            'placement': match.stats.placement,
            'down_count': match.stats.down_count,
            'teammates': ', '.join(t.name for t in match.teammates or ()),
        })
    return pd.DataFrame(rows, columns=[
        'match_id', 'created_at', 'game_mode', 'map_name', 'duration_seconds',
        'kills', 'damage', 'deaths', 'assists', 'placement', 'down_count', 'teammates',
    ])
