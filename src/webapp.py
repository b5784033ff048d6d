import asyncio
import logging
import math
import os

from flask import Flask, Response, jsonify, request

import pubg_config
from match_grouping import MAX_GAP_HOURS, group_sessions
from match_stats import (
    average_placement,
    best_match,
    build_rollup,
    damage_trend,
    filter_match_ids,
    matches_frame,
    summarize,
)
from pubg_api import ConfigError, NetworkError, NotFound, PubgApiClient, PubgApiError, UpstreamError
from pubg_models import Match, PlayerIdentity

LOGGER = logging.getLogger(__name__)

app = Flask(__name__)
app.json.ensure_ascii = False
app.json.sort_keys = False


class BadRequest(Exception):
    pass


@app.after_request
def add_cors_headers(response: Response) -> Response:
    response.headers['Access-Control-Allow-Origin'] = '*'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
    return response


@app.errorhandler(BadRequest)
def handle_bad_request(exc: BadRequest):
    return jsonify({'error': str(exc)}), 400


@app.errorhandler(PubgApiError)
def handle_api_error(exc: PubgApiError):
    if isinstance(exc, ConfigError):
        return jsonify({'error': 'API key not configured'}), 500
    if isinstance(exc, NotFound):
        return jsonify({'error': 'Player not found'}), 404
    if isinstance(exc, UpstreamError):
        return jsonify({'error': str(exc), 'status': exc.status}), exc.status
    if isinstance(exc, NetworkError):
        LOGGER.error('Network failure talking to PUBG API: %s', exc)
        return jsonify({'error': 'Failed to reach PUBG API'}), 502
    LOGGER.error('Unhandled PUBG API error: %s', exc)
    return jsonify({'error': 'Failed to fetch data'}), 500


def run_async(coro):
    return asyncio.run(coro)


async def _lookup_player(platform: str, nickname: str) -> PlayerIdentity:
    async with PubgApiClient() as client:
        return await client.lookup_player(platform, nickname)


async def _list_matches(player_id: str, platform: str, offset: int, limit: int):
    async with PubgApiClient() as client:
        return await client.list_matches(player_id, platform, offset=offset, limit=limit)


def int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(f'{name} must be an integer') from None
    if value < 0:
        raise BadRequest(f'{name} must not be negative')
    return value


def json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise BadRequest('Expected a JSON object body')
    return body


def body_matches(body: dict) -> list[Match]:
    raw = body.get('matches')
    if not isinstance(raw, list):
        raise BadRequest('matches must be a list')
    try:
        return [Match.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise BadRequest(f'Invalid match record: {e}') from None


def body_selection(body: dict, matches: list[Match]) -> set[str]:
    selected = body.get('selected')
    if selected is None:
        return {m.id for m in matches}
    if not isinstance(selected, list):
        raise BadRequest('selected must be a list of match ids')
    return {str(match_id) for match_id in selected}


@app.route('/api/pubg-player')
def pubg_player():
    nickname = (request.args.get('nickname') or '').strip()
    platform = request.args.get('platform') or pubg_config.DEFAULT_PLATFORM
    if not nickname:
        raise BadRequest('Nickname is required')
    player = run_async(_lookup_player(platform, nickname))
    return jsonify(player.to_dict())


@app.route('/api/pubg-matches')
def pubg_matches():
    player_id = (request.args.get('playerId') or '').strip()
    platform = request.args.get('platform') or pubg_config.DEFAULT_PLATFORM
    if not player_id:
        raise BadRequest('Player ID is required')
    offset = int_arg('offset', 0)
    limit = int_arg('limit', pubg_config.get_page_limit())
    page = run_async(_list_matches(player_id, platform, offset, limit))
    return jsonify(page.to_dict())


@app.route('/api/summary', methods=['POST'])
def summary():
    body = json_body()
    matches = body_matches(body)
    selected_ids = body_selection(body, matches)
    selected = [m for m in matches if m.id in selected_ids]
    best = best_match(selected)
    return jsonify({
        'summary': summarize(selected).to_dict(),
        'bestMatch': best.to_dict() if best else None,
        'averagePlacement': average_placement(selected),
        'damageTrend': damage_trend(selected),
    })


@app.route('/api/teammates', methods=['POST'])
def teammates():
    body = json_body()
    matches = body_matches(body)
    selected_ids = body_selection(body, matches)
    player = body.get('player')
    identity = None
    if player is not None:
        try:
            identity = PlayerIdentity.from_dict(player)
        except (KeyError, TypeError, AttributeError):
            raise BadRequest('player must include an id') from None
    rows = build_rollup(matches, selected_ids, identity)
    return jsonify({'teammates': [row.to_dict() for row in rows]})


@app.route('/api/sessions', methods=['POST'])
def sessions():
    body = json_body()
    matches = body_matches(body)
    gap_hours = body.get('gapHours', pubg_config.get_session_gap_hours())
    try:
        gap_hours = float(gap_hours)
    except (TypeError, ValueError):
        raise BadRequest('gapHours must be a number') from None
    if not math.isfinite(gap_hours) or not 0 <= gap_hours <= MAX_GAP_HOURS:
        raise BadRequest(f'gapHours must be between 0 and {MAX_GAP_HOURS}')
    gap_ms = gap_hours * 3600 * 1000
    groups = group_sessions(matches, gap_ms)
    return jsonify({'groups': [group.to_dict() for group in groups]})


@app.route('/api/filter', methods=['POST'])
def filter_matches():
    body = json_body()
    matches = body_matches(body)
    try:
        selected = filter_match_ids(
            matches,
            start_date=body.get('startDate'),
            end_date=body.get('endDate'),
            game_mode=body.get('gameMode'),
            map_name=body.get('mapName'),
        )
    except ValueError as e:
        raise BadRequest(f'Invalid date: {e}') from None
    return jsonify({'selected': selected})


@app.route('/api/export', methods=['POST'])
def export_data():
    """Export the posted matches as CSV or JSON."""
    body = json_body()
    matches = body_matches(body)
    selected_ids = body_selection(body, matches)
    frame = matches_frame([m for m in matches if m.id in selected_ids])
    format_type = request.args.get('format', 'json')

    if format_type == 'csv':
        return Response(frame.to_csv(index=False),
                        mimetype='text/csv',
                        headers={'Content-Disposition': 'attachment;filename=pubg_matches.csv'})
    return Response(frame.to_json(orient='records', force_ascii=False),
                    mimetype='application/json')


@app.route('/api/settings', methods=['GET', 'POST'])
def settings():
    if request.method == 'POST':
        try:
            return jsonify(pubg_config.save_settings(json_body()))
        except ValueError as e:
            raise BadRequest(str(e)) from None
    return jsonify(pubg_config.load_settings())


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    port = pubg_config.WEB_PORT
    debug_mode = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'

    if debug_mode:
        print(f'🔥 Starting in DEBUG mode with hot reload on port {port}')
        app.run(host='0.0.0.0', port=port, debug=True, use_reloader=True)
    else:
        from waitress import serve
        print(f'🌐 Serving on port {port}')
        serve(app, host='0.0.0.0', port=port)


if __name__ == '__main__':
    main()
