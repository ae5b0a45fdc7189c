import math
import threading
import time
from typing import Callable, Dict, Optional

from trivia import db, socketio

_locks: Dict[int, threading.RLock] = {}
_locks_guard = threading.Lock()
_generations: Dict[int, int] = {}


def game_lock(game_id: int) -> threading.RLock:
    """Per-game lock; every transition of one game runs under it."""
    with _locks_guard:
        lock = _locks.get(game_id)
        if lock is None:
            lock = _locks[game_id] = threading.RLock()
        return lock


def current_token(game_id: int) -> int:
    with _locks_guard:
        return _generations.get(game_id, 0)


def cancel(game_id: int) -> int:
    """Invalidate every timer scheduled so far for the game."""
    with _locks_guard:
        _generations[game_id] = _generations.get(game_id, 0) + 1
        return _generations[game_id]


def is_current(game_id: int, token: int) -> bool:
    return current_token(game_id) == token


def forget(game_id: int) -> None:
    with _locks_guard:
        _generations.pop(game_id, None)
        _locks.pop(game_id, None)


def _scheduler_enabled(app) -> bool:
    return not (app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'))


def schedule(app, game_id: int, kind: str, delay: float, callback: Callable, *args,
             on_tick: Optional[Callable[[int], None]] = None) -> Optional[int]:
    """Run ``callback(*args, token)`` after ``delay`` seconds unless cancelled.

    - No-ops in TESTING mode (tests call the callbacks directly)
    - The timer belongs to the game's current generation; any later
      ``cancel(game_id)`` turns it into a no-op
    - ``on_tick(seconds_left)`` is called every TIMER_TICK_SEC while waiting
    """
    if not _scheduler_enabled(app):
        return None

    token = current_token(game_id)
    delay = max(0.0, float(delay))
    app.logger.info(f"[timer-set] game={game_id} kind={kind} delay={delay:.1f}s token={token}")

    def _worker():
        tick = float(app.config.get('TIMER_TICK_SEC', 1) or 0) or delay or 1.0
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        deadline = time.time() + delay
        last_beat = time.time()
        while True:
            if not is_current(game_id, token):
                app.logger.info(f"[timer-abort] game={game_id} kind={kind} token={token} superseded")
                return
            remaining = deadline - time.time()
            if remaining <= 0:
                break
            socketio.sleep(min(tick, remaining))
            if hb and time.time() - last_beat >= hb:
                last_beat = time.time()
                app.logger.info(f"[timer-heartbeat] game={game_id} kind={kind} remaining={max(0.0, deadline - time.time()):.1f}s")
            if on_tick is not None and is_current(game_id, token):
                with app.app_context():
                    on_tick(max(0, int(math.ceil(deadline - time.time()))))

        with app.app_context():
            app.logger.info(f"[timer-fire] game={game_id} kind={kind} token={token}")
            try:
                callback(*args, token)
            except Exception:
                app.logger.exception(f"[timer-error] game={game_id} kind={kind}")
                db.session.rollback()
            finally:
                db.session.remove()

    socketio.start_background_task(_worker)
    return token


def run_background(app, name: str, func: Callable, *args) -> bool:
    """Run ``func(*args)`` in a background task with an app context."""
    if not _scheduler_enabled(app):
        return False

    def _runner():
        with app.app_context():
            try:
                func(*args)
            except Exception:
                app.logger.exception(f"[background-error] task={name}")
                db.session.rollback()
            finally:
                db.session.remove()

    socketio.start_background_task(_runner)
    return True
