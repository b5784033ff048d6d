import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from aiohttp import ClientError, ClientSession, ClientTimeout

import pubg_config
from pubg_models import (
    Match,
    MatchPage,
    MatchStats,
    Pagination,
    PlayerIdentity,
    TeammateEntry,
    parse_timestamp,
    round_half_up,
)

LOGGER = logging.getLogger(__name__)


class PubgApiError(Exception):
    """Base class for failures surfaced to the caller."""


class ConfigError(PubgApiError):
    pass


class NotFound(PubgApiError):
    pass


class UpstreamError(PubgApiError):
    def __init__(self, status: int, body: str = ""):
        super().__init__(f"PUBG API returned HTTP {status}")
        self.status = status
        self.body = body


class NetworkError(PubgApiError):
    pass


def _stat_int(stats: Dict[str, Any], key: str, default: int = 0) -> int:
    value = stats.get(key, default)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _death_flag(stats: Dict[str, Any]) -> int:
    # deathType is "alive" for survivors; anything else counts as one death.
    return 1 if stats.get("deathType") != "alive" else 0


def _down_count(stats: Dict[str, Any]) -> Optional[int]:
    if stats.get("DBNOs") is None:
        return None
    return _stat_int(stats, "DBNOs")


def _teammate_from_participant(participant: Dict[str, Any]) -> TeammateEntry:
    stats = participant["attributes"]["stats"]
    return TeammateEntry(
        player_id=stats["playerId"],
        name=stats.get("name", ""),
        kills=_stat_int(stats, "kills"),
        damage=int(round_half_up(float(stats.get("damageDealt") or 0))),
        assists=_stat_int(stats, "assists"),
        deaths=_death_flag(stats),
        placement=_stat_int(stats, "winPlace", 1),
        down_count=_down_count(stats),
    )


def parse_match(payload: Dict[str, Any], player_id: str) -> Optional[Match]:
    """Normalize one match-detail payload from the point of view of ``player_id``.

    Returns None when the player is not among the participants.
    """
    data = payload["data"]
    included = payload.get("included") or []
    participants = [item for item in included if item.get("type") == "participant"]

    player = next(
        (
            p for p in participants
            if ((p.get("attributes") or {}).get("stats") or {}).get("playerId") == player_id
        ),
        None,
    )
    if player is None:
        return None

    stats = player["attributes"]["stats"]

    rosters = [item for item in included if item.get("type") == "roster"]
    roster = next(
        (
            r for r in rosters
            if any(
                ref.get("id") == player["id"]
                for ref in r.get("relationships", {}).get("participants", {}).get("data", [])
            )
        ),
        None,
    )

    teammates: List[TeammateEntry] = []
    if roster is not None:
        teammate_ids = {
            ref.get("id")
            for ref in roster["relationships"]["participants"]["data"]
            if ref.get("id") != player["id"]
        }
        teammates = [
            _teammate_from_participant(p) for p in participants if p.get("id") in teammate_ids
        ]

    attrs = data["attributes"]
    return Match(
        id=data["id"],
        game_mode=attrs.get("gameMode", ""),
        map_name=attrs.get("mapName", ""),
        duration_seconds=_stat_int(attrs, "duration"),
        created_at=parse_timestamp(attrs["createdAt"]),
        stats=MatchStats(
            kills=_stat_int(stats, "kills"),
            damage=int(round_half_up(float(stats.get("damageDealt") or 0))),
            deaths=_death_flag(stats),
            assists=_stat_int(stats, "assists"),
            placement=_stat_int(stats, "winPlace", 1),
            down_count=_down_count(stats),
        ),
        teammates=tuple(teammates),
    )


class PubgApiClient:
    """Async client for the PUBG stats API.

    Use as ``async with PubgApiClient() as client``. A session passed in by
    the caller is used as-is and left open.
    """

    HEADERS = {"Accept": "application/vnd.api+json"}

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[ClientSession] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else pubg_config.get_api_key()
        self.base_url = (base_url or pubg_config.API_BASE).rstrip("/")
        self.timeout_seconds = timeout_seconds or pubg_config.get_request_timeout()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "PubgApiClient":
        if self._session is None:
            self._session = ClientSession(timeout=ClientTimeout(total=self.timeout_seconds))
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigError("PUBG_API_KEY is not set")
        return {**self.HEADERS, "Authorization": f"Bearer {self.api_key}"}

    async def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        headers = self._headers()
        if self._session is None:
            raise RuntimeError("PubgApiClient must be used as an async context manager")
        try:
            async with self._session.get(url, headers=headers, params=params) as resp:
                if resp.status < 200 or resp.status >= 300:
                    body = await resp.text()
                    raise UpstreamError(resp.status, body)
                return await resp.json(content_type=None)
        except (ClientError, asyncio.TimeoutError) as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

    async def lookup_player(self, platform: str, nickname: str) -> PlayerIdentity:
        url = f"{self.base_url}/{platform}/players"
        try:
            payload = await self._get_json(url, params={"filter[playerNames]": nickname})
        except UpstreamError as exc:
            if exc.status == 404:
                raise NotFound(f"Player '{nickname}' not found") from exc
            raise

        players = payload.get("data") or []
        if not players:
            raise NotFound(f"Player '{nickname}' not found")

        player = players[0]
        LOGGER.info("Resolved %s on %s to %s", nickname, platform, player["id"])
        return PlayerIdentity(
            id=player["id"],
            name=player.get("attributes", {}).get("name", nickname),
            platform=platform,
        )

    async def get_match_ids(self, player_id: str, platform: str) -> List[str]:
        payload = await self._get_json(f"{self.base_url}/{platform}/players/{player_id}")
        refs = (
            ((payload.get("data") or {}).get("relationships") or {})
            .get("matches", {})
            .get("data", [])
        )
        return [ref["id"] for ref in refs]

    async def _fetch_match(self, match_id: str, player_id: str, platform: str) -> Optional[Match]:
        try:
            payload = await self._get_json(f"{self.base_url}/{platform}/matches/{match_id}")
            match = parse_match(payload, player_id)
        except Exception as e:
            LOGGER.warning("Dropping match %s: %s", match_id, e)
            return None
        if match is None:
            LOGGER.warning("Dropping match %s: player %s not among participants", match_id, player_id)
        return match

    async def list_matches(
        self, player_id: str, platform: str, offset: int = 0, limit: int = 20
    ) -> MatchPage:
        all_ids = await self.get_match_ids(player_id, platform)
        total = len(all_ids)
        start = max(offset, 0)
        end = max(start, min(start + limit, total))
        page_ids = all_ids[start:end]

        results = await asyncio.gather(
            *(self._fetch_match(match_id, player_id, platform) for match_id in page_ids)
        )
        matches = [m for m in results if m is not None]
        matches.sort(key=lambda m: m.created_at, reverse=True)

        LOGGER.info(
            "Loaded %d/%d matches for %s (offset=%d, total=%d)",
            len(matches), len(page_ids), player_id, start, total,
        )
        return MatchPage(
            matches=matches,
            pagination=Pagination(offset=offset, limit=limit, total=total, has_more=end < total),
        )

    async def fetch_pages(
        self,
        player_id: str,
        platform: str,
        limit: int = 20,
        max_pages: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[Match], Pagination]:
        """Keep loading pages the way the dashboard's "load more" button does.

        The offset advances by ``limit`` regardless of how many matches a page
        actually returned.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        matches: List[Match] = []
        pages_fetched = 0
        while True:
            page = await self.list_matches(player_id, platform, offset=offset, limit=limit)
            matches.extend(page.matches)
            pages_fetched += 1
            offset += limit
            if not page.pagination.has_more:
                break
            if max_pages is not None and pages_fetched >= max_pages:
                break
        return matches, page.pagination
