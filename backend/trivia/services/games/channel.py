"""Change distribution: fan-out of state deltas to everyone watching a game.

Three entity categories are published, each under its own event name:

- ``game``   -> ``game_update``   full serialized game row (carries ``version``)
- ``team``   -> ``team_update``   ``{'action': 'insert'|'update', 'team': {...}}``
- ``answer`` -> ``answer_update`` ``{'action': 'insert'|'update', 'answer': {...}}``

plus transient notifications (``countdown``, ``reveal_results``) that carry
no entity. There is no replay: a client that (re)connects fetches the full
state first and only then applies deltas.
"""
import logging
import threading
from typing import Any, Callable, Dict, List

from flask import current_app

logger = logging.getLogger(__name__)

EVENT_NAMES = {
    'game': 'game_update',
    'team': 'team_update',
    'answer': 'answer_update',
}


def room_for(game_code: str) -> str:
    return f"game:{game_code.upper()}"


class ChangeChannel:
    """Publishing side shared by the host controller, ledger and roster."""

    def emit(self, game_code: str, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def publish(self, game_code: str, category: str, payload: Dict[str, Any]) -> None:
        try:
            event = EVENT_NAMES[category]
        except KeyError:
            raise ValueError(f"Unknown change category: {category}") from None
        self.emit(game_code, event, payload)

    def game_changed(self, game) -> None:
        self.publish(game.game_code, 'game', game.to_dict())

    def team_changed(self, game_code: str, team, action: str = 'update') -> None:
        self.publish(game_code, 'team', {'action': action, 'team': team.to_dict()})

    def answer_changed(self, game_code: str, answer, action: str = 'insert', include_result: bool = True) -> None:
        self.publish(game_code, 'answer', {'action': action, 'answer': answer.to_dict(include_result)})

    def notify(self, game_code: str, event: str, payload: Dict[str, Any]) -> None:
        self.emit(game_code, event, payload)


class SocketIOChannel(ChangeChannel):
    """Broadcasts to the Socket.IO room of the game."""

    def __init__(self, socketio, namespace: str = '/ws') -> None:
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, game_code, event, payload):
        self.socketio.emit(event, payload, to=room_for(game_code), namespace=self.namespace)


class LocalChannel(ChangeChannel):
    """In-process subscribers keyed by game code, delivered in publish order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Callable[[str, Dict[str, Any]], None]]] = {}

    def subscribe(self, game_code: str, callback: Callable[[str, Dict[str, Any]], None]) -> Callable[[], None]:
        key = game_code.upper()
        with self._lock:
            self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                bucket = self._subscribers.get(key, [])
                if callback in bucket:
                    bucket.remove(callback)
                if not bucket:
                    self._subscribers.pop(key, None)

        return unsubscribe

    def emit(self, game_code, event, payload):
        with self._lock:
            targets = list(self._subscribers.get(game_code.upper(), []))
        for callback in targets:
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Subscriber failed on %s for game %s", event, game_code)


class FanOutChannel(ChangeChannel):
    """Publishes to several channels, e.g. sockets plus an in-process display."""

    def __init__(self, *channels: ChangeChannel) -> None:
        self.channels = list(channels)

    def emit(self, game_code, event, payload):
        for channel in self.channels:
            channel.emit(game_code, event, payload)


def get_channel() -> ChangeChannel:
    return current_app.extensions['trivia_channel']
