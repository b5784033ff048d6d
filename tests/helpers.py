# tests/helpers.py

import asyncio
from datetime import datetime, timezone

from pubg_models import Match, MatchStats, TeammateEntry

BASE_URL = "https://api.test/shards"


def ts(text: str) -> datetime:
    """'2024-07-14 10:00' as an aware UTC datetime."""
    return datetime.strptime(text, "%Y-%m-%d %H:%M").replace(tzinfo=timezone.utc)


def make_teammate(player_id, name=None, kills=0, damage=0, assists=0, deaths=1, placement=1):
    return TeammateEntry(
        player_id=player_id,
        name=name or player_id,
        kills=kills,
        damage=damage,
        assists=assists,
        deaths=deaths,
        placement=placement,
    )


def make_match(match_id, created_at="2024-07-14 10:00", kills=0, damage=0, deaths=1,
               assists=0, placement=10, teammates=(), game_mode="squad", map_name="Baltic_Main"):
    return Match(
        id=match_id,
        game_mode=game_mode,
        map_name=map_name,
        duration_seconds=1800,
        created_at=ts(created_at),
        stats=MatchStats(kills=kills, damage=damage, deaths=deaths, assists=assists, placement=placement),
        teammates=tuple(teammates),
    )


def participant(participant_id, player_id, name=None, kills=0, damage=0.0, assists=0,
                death_type="byplayer", win_place=5, dbnos=None):
    stats = {
        "playerId": player_id,
        "name": name or player_id,
        "kills": kills,
        "damageDealt": damage,
        "assists": assists,
        "deathType": death_type,
        "winPlace": win_place,
    }
    if dbnos is not None:
        stats["DBNOs"] = dbnos
    return {"type": "participant", "id": participant_id, "attributes": {"stats": stats}}


def roster(*participant_ids):
    return {
        "type": "roster",
        "relationships": {
            "participants": {"data": [{"type": "participant", "id": pid} for pid in participant_ids]}
        },
    }


def match_payload(match_id, created_at="2024-07-14T10:00:00Z", included=(),
                  game_mode="squad", map_name="Baltic_Main", duration=1800):
    return {
        "data": {
            "type": "match",
            "id": match_id,
            "attributes": {
                "gameMode": game_mode,
                "mapName": map_name,
                "duration": duration,
                "createdAt": created_at,
            },
        },
        "included": list(included),
    }


def player_payload(player_id, match_ids):
    return {
        "data": {
            "type": "player",
            "id": player_id,
            "attributes": {"name": "Searched"},
            "relationships": {"matches": {"data": [{"type": "match", "id": m} for m in match_ids]}},
        }
    }


class FakeResponse:
    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def text(self):
        return self._text

    async def json(self, content_type=None):
        return self._payload


class FakeSession:
    """Stands in for aiohttp.ClientSession; routes map URL -> response or exception."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, headers=None, params=None):
        self.calls.append({"url": url, "headers": headers, "params": params})
        result = self.routes.get(url)
        if result is None:
            return FakeResponse(404, text="not found")
        if isinstance(result, Exception):
            raise result
        if isinstance(result, FakeResponse):
            return result
        return FakeResponse(200, payload=result)


class InFlight:
    """Counts requests whose response bodies are open at the same time."""

    def __init__(self):
        self.current = 0
        self.peak = 0


class SlowResponse(FakeResponse):
    """Yields to the event loop before answering, like a real network read."""

    def __init__(self, in_flight, status=200, payload=None, text="", delay=0.01):
        super().__init__(status, payload, text)
        self.in_flight = in_flight
        self.delay = delay

    async def __aenter__(self):
        self.in_flight.current += 1
        self.in_flight.peak = max(self.in_flight.peak, self.in_flight.current)
        await asyncio.sleep(self.delay)
        return self

    async def __aexit__(self, *exc_info):
        self.in_flight.current -= 1
        return False
