from flask_socketio import join_room, leave_room, emit
from trivia import socketio
from flask import current_app, request
from trivia.models import Game
from trivia.api.games import state_snapshot
from trivia.services.games.channel import room_for
from trivia.services.games.host import HOST
from typing import Dict, Any
import time


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # Losing the last verified host socket pauses a running game
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    game_code = ctx.get('game_code')
    if ctx.get('is_host') and game_code:
        _release_host(game_code)


def handle_join_game(data):
    game_code = ((data or {}).get('game_code') or '').strip().upper()
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    game = Game.query.filter_by(game_code=game_code).first()
    if not game:
        emit('error', {'message': 'Game not found'})
        return
    host_token = (data or {}).get('host_token')
    is_host = bool(host_token) and game.check_host_token(host_token)
    if host_token and not is_host:
        emit('error', {'message': 'Invalid host token'})

    room = room_for(game_code)
    join_room(room)
    previous = _sid_to_ctx.get(_get_sid())
    if previous and previous.get('is_host') and previous.get('game_code') != game_code:
        _release_host(previous['game_code'])
    already_host = bool(previous and previous.get('is_host') and previous.get('game_code') == game_code)
    _sid_to_ctx[_get_sid()] = {'game_code': game_code, 'is_host': is_host or already_host}
    if is_host and not already_host:
        _host_count[game_code] = _host_count.get(game_code, 0) + 1
        _cancel_scheduled_pause(game_code)
    emit('joined', {'room': room, 'game_code': game_code, 'is_host': is_host or already_host})
    _emit_snapshot(game)


def handle_leave_game(data):
    game_code = ((data or {}).get('game_code') or '').strip().upper()
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = room_for(game_code)
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('game_code') == game_code:
        _sid_to_ctx.pop(_get_sid(), None)
        if ctx.get('is_host'):
            _release_host(game_code)


def handle_request_state(data):
    game_code = ((data or {}).get('game_code') or '').strip().upper()
    if not game_code:
        ctx = _sid_to_ctx.get(_get_sid()) or {}
        game_code = ctx.get('game_code') or ''
    game = Game.query.filter_by(game_code=game_code).first() if game_code else None
    if not game:
        emit('error', {'message': 'Game not found'})
        return
    _emit_snapshot(game)


def handle_ping(data):
    emit('pong', data or {})

# ---- Host presence helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_host_count: Dict[str, int] = {}
_pause_deadline: Dict[str, float] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _emit_snapshot(game: Game) -> None:
    emit('state_snapshot', state_snapshot(game))


def _release_host(game_code: str) -> None:
    _host_count[game_code] = max(0, _host_count.get(game_code, 0) - 1)
    if _host_count.get(game_code, 0) > 0:
        return
    if current_app.config.get('TESTING'):
        # deterministic in tests: pause immediately
        HOST.pause_if_running(game_code)
        return
    _schedule_pause_if_no_host(game_code, float(current_app.config.get('HOST_DISCONNECT_GRACE_SEC', 2)))


def _schedule_pause_if_no_host(game_code: str, delay_sec: float) -> None:
    deadline = time.time() + delay_sec
    _pause_deadline[game_code] = deadline
    app = current_app._get_current_object()

    def _runner(code: str, until: float):
        sleep_for = max(0.0, until - time.time())
        if sleep_for:
            socketio.sleep(sleep_for)
        if _host_count.get(code, 0) == 0 and _pause_deadline.get(code) == until:
            _pause_deadline.pop(code, None)
            with app.app_context():
                try:
                    HOST.pause_if_running(code)
                except Exception:
                    app.logger.exception(f"[host-lost] game_code={code} pause failed")

    socketio.start_background_task(_runner, game_code, deadline)


def _cancel_scheduled_pause(game_code: str) -> None:
    _pause_deadline.pop(game_code, None)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = (
        ('connect', handle_connect),
        ('disconnect', handle_disconnect),
        ('join_game', handle_join_game),
        ('leave_game', handle_leave_game),
        ('request_state', handle_request_state),
        ('ping', handle_ping),
    )
    namespaces = ('/ws', '/') if testing else ('/ws',)
    for namespace in namespaces:
        for event, handler in handlers:
            socketio.on_event(event, handler, namespace=namespace)
