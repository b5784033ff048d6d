"""Data model shared by the PUBG client, aggregations and web API.

Everything here is immutable once built. ``to_dict`` produces the camelCase
JSON shape the browser UI consumes; ``from_dict`` reads it back so the web API
can accept a match list posted by the UI.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like JavaScript's Math.round: halves always go up."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class PlayerIdentity:
    id: str
    name: str
    platform: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "platform": self.platform}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerIdentity":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data.get("displayName") or ""),
            platform=str(data.get("platform") or ""),
        )


@dataclass(frozen=True)
class WeaponStats:
    name: str
    kills: int
    damage: int
    shots: int
    hits: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kills": self.kills,
            "damage": self.damage,
            "shots": self.shots,
            "hits": self.hits,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeaponStats":
        return cls(
            name=str(data.get("name", "")),
            kills=_to_int(data.get("kills")),
            damage=_to_int(data.get("damage")),
            shots=_to_int(data.get("shots")),
            hits=_to_int(data.get("hits")),
        )


@dataclass(frozen=True)
class ThrowableStats:
    name: str
    count: int
    damage: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"name": self.name, "count": self.count}
        if self.damage is not None:
            out["damage"] = self.damage
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThrowableStats":
        damage = data.get("damage")
        return cls(
            name=str(data.get("name", "")),
            count=_to_int(data.get("count")),
            damage=None if damage is None else _to_int(damage),
        )


def _optional_list(items, parser) -> Optional[tuple]:
    if items is None:
        return None
    return tuple(parser(item) for item in items)


def _add_optional(out: Dict[str, Any], key: str, items) -> None:
    if items is not None:
        out[key] = [item.to_dict() for item in items]


@dataclass(frozen=True)
class TeammateEntry:
    player_id: str
    name: str
    kills: int
    damage: int
    assists: int
    deaths: int
    placement: int
    down_count: Optional[int] = None
    weapons: Optional[tuple] = None
    throwables: Optional[tuple] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "playerId": self.player_id,
            "name": self.name,
            "kills": self.kills,
            "damage": self.damage,
            "assists": self.assists,
            "deaths": self.deaths,
            "placement": self.placement,
        }
        if self.down_count is not None:
            out["downCount"] = self.down_count
        _add_optional(out, "weapons", self.weapons)
        _add_optional(out, "throwables", self.throwables)
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeammateEntry":
        down_count = data.get("downCount")
        return cls(
            player_id=str(data["playerId"]),
            name=str(data.get("name", "")),
            kills=_to_int(data.get("kills")),
            damage=_to_int(data.get("damage")),
            assists=_to_int(data.get("assists")),
            deaths=_to_int(data.get("deaths")),
            placement=_to_int(data.get("placement"), 1),
            down_count=None if down_count is None else _to_int(down_count),
            weapons=_optional_list(data.get("weapons"), WeaponStats.from_dict),
            throwables=_optional_list(data.get("throwables"), ThrowableStats.from_dict),
        )


@dataclass(frozen=True)
class MatchStats:
    kills: int
    damage: int
    deaths: int
    assists: int
    placement: int
    down_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "kills": self.kills,
            "damage": self.damage,
            "deaths": self.deaths,
            "assists": self.assists,
            "placement": self.placement,
        }
        if self.down_count is not None:
            out["downCount"] = self.down_count
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchStats":
        down_count = data.get("downCount")
        return cls(
            kills=_to_int(data.get("kills")),
            damage=_to_int(data.get("damage")),
            deaths=_to_int(data.get("deaths")),
            assists=_to_int(data.get("assists")),
            placement=_to_int(data.get("placement"), 1),
            down_count=None if down_count is None else _to_int(down_count),
        )


@dataclass(frozen=True)
class Match:
    id: str
    game_mode: str
    map_name: str
    duration_seconds: int
    created_at: datetime
    stats: MatchStats
    teammates: Optional[tuple] = None
    weapons: Optional[tuple] = None
    throwables: Optional[tuple] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "gameMode": self.game_mode,
            "mapName": self.map_name,
            "durationSeconds": self.duration_seconds,
            "createdAt": format_timestamp(self.created_at),
            "stats": self.stats.to_dict(),
        }
        _add_optional(out, "teammates", self.teammates)
        _add_optional(out, "weapons", self.weapons)
        _add_optional(out, "throwables", self.throwables)
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Match":
        duration = data.get("durationSeconds", data.get("duration"))
        return cls(
            id=str(data["id"]),
            game_mode=str(data.get("gameMode", "")),
            map_name=str(data.get("mapName", "")),
            duration_seconds=_to_int(duration),
            created_at=parse_timestamp(data["createdAt"]),
            stats=MatchStats.from_dict(data.get("stats") or {}),
            teammates=_optional_list(data.get("teammates"), TeammateEntry.from_dict),
            weapons=_optional_list(data.get("weapons"), WeaponStats.from_dict),
            throwables=_optional_list(data.get("throwables"), ThrowableStats.from_dict),
        )


@dataclass(frozen=True)
class Pagination:
    offset: int
    limit: int
    total: int
    has_more: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offset": self.offset,
            "limit": self.limit,
            "total": self.total,
            "hasMore": self.has_more,
        }


@dataclass(frozen=True)
class MatchPage:
    matches: List[Match]
    pagination: Pagination

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [m.to_dict() for m in self.matches],
            "pagination": self.pagination.to_dict(),
        }


@dataclass(frozen=True)
class PlayerStats:
    total_kills: int = 0
    total_damage: int = 0
    total_deaths: int = 0
    total_assists: int = 0
    average_kills: float = 0
    average_damage: float = 0
    average_deaths: float = 0
    average_assists: float = 0
    total_matches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalKills": self.total_kills,
            "totalDamage": self.total_damage,
            "totalDeaths": self.total_deaths,
            "totalAssists": self.total_assists,
            "averageKills": self.average_kills,
            "averageDamage": self.average_damage,
            "averageDeaths": self.average_deaths,
            "averageAssists": self.average_assists,
            "totalMatches": self.total_matches,
        }


@dataclass
class RollupEntry:
    """Per-player totals over a selection. Mutable only while it is being built."""

    player_id: str
    name: str
    match_count: int = 0
    total_kills: int = 0
    total_assists: int = 0
    total_damage: int = 0
    average_kills: float = 0
    average_assists: float = 0
    average_damage: float = 0
    is_self: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playerId": self.player_id,
            "name": self.name,
            "isSelf": self.is_self,
            "matchCount": self.match_count,
            "totals": {
                "kills": self.total_kills,
                "assists": self.total_assists,
                "damage": self.total_damage,
            },
            "averages": {
                "kills": self.average_kills,
                "assists": self.average_assists,
                "damage": self.average_damage,
            },
        }


@dataclass(frozen=True)
class MatchGroup:
    start_date: datetime
    end_date: datetime
    display_label: str
    match_ids: tuple = field(default_factory=tuple)

    @property
    def match_count(self) -> int:
        return len(self.match_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startDate": format_timestamp(self.start_date),
            "endDate": format_timestamp(self.end_date),
            "displayLabel": self.display_label,
            "matchCount": self.match_count,
            "matchIds": list(self.match_ids),
        }
