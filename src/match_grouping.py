from datetime import datetime, timedelta
from typing import Iterable, List, Set

from pytz import timezone

import pubg_config
from pubg_models import Match, MatchGroup

TIME_GAP_THRESHOLD_MS = 3 * 60 * 60 * 1000
# Upper bound for user-supplied gaps; larger values overflow timedelta.
MAX_GAP_HOURS = 24 * 365


def _local(value: datetime) -> datetime:
    return value.astimezone(timezone(pubg_config.TIMEZONE))


def format_group_label(start: datetime, match_count: int) -> str:
    # Sessions that run past midnight are still labelled by their start day.
    local = _local(start)
    return f'{local.month}월 {local.day}일 ({match_count}판)'


def _close_group(group: List[Match]) -> MatchGroup:
    return MatchGroup(
        start_date=group[0].created_at,
        end_date=group[-1].created_at,
        display_label=format_group_label(group[0].created_at, len(group)),
        match_ids=tuple(m.id for m in group),
    )


def group_sessions(matches: List[Match], gap_threshold_ms: float = TIME_GAP_THRESHOLD_MS) -> List[MatchGroup]:
    """Split matches into play sessions.

    Matches are walked oldest first; a match joins the current session when it
    started no more than ``gap_threshold_ms`` after the previous one.
    """
    if not matches:
        return []

    threshold = timedelta(milliseconds=gap_threshold_ms)
    ordered = sorted(matches, key=lambda m: m.created_at)

    groups = []
    current = [ordered[0]]
    for match in ordered[1:]:
        if match.created_at - current[-1].created_at <= threshold:
            current.append(match)
        else:
            groups.append(_close_group(current))
            current = [match]
    groups.append(_close_group(current))
    return groups


def is_in_group(match_id: str, group: MatchGroup) -> bool:
    return match_id in group.match_ids


def matches_in_group(matches: List[Match], group: MatchGroup) -> List[Match]:
    return [m for m in matches if m.id in group.match_ids]


def toggle_group(selected: Iterable[str], group: MatchGroup) -> Set[str]:
    """Select the whole session, or clear it if it is already fully selected."""
    updated = set(selected)
    if all(match_id in updated for match_id in group.match_ids):
        updated.difference_update(group.match_ids)
    else:
        updated.update(group.match_ids)
    return updated


def format_date_range(start: datetime, end: datetime) -> str:
    def fmt(value: datetime) -> str:
        local = _local(value)
        return f'{local.month}월 {local.day}일 {local:%H:%M}'

    return f'{fmt(start)} ~ {fmt(end)}'
