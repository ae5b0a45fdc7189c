"""Player-side state handling for a team device.

The transport is injected: ``fetch_state()`` returns the body of
``GET /api/games/<code>/state`` and ``submit_answer(team_id, answer_index,
question_index)`` posts an answer. Socket events are fed in through
``PlayerClient.handle``.
"""
import math
import time
from typing import Any, Callable, Dict, Optional


class GameCache:
    """Local copy of one game: the game row, teams and answers keyed by id."""

    def __init__(self) -> None:
        self.game: Optional[Dict[str, Any]] = None
        self.teams: Dict[int, Dict[str, Any]] = {}
        self.answers: Dict[int, Dict[str, Any]] = {}
        self.stale = False
        self.clock_offset = 0.0
        self.last_countdown: Optional[int] = None
        self.last_reveal: Optional[Dict[str, Any]] = None

    @property
    def version(self) -> int:
        return int((self.game or {}).get('version') or 0)

    def load(self, snapshot: Dict[str, Any], received_at: Optional[float] = None) -> None:
        received_at = time.time() if received_at is None else received_at
        self.game = dict(snapshot['game'])
        self.teams = {t['id']: dict(t) for t in snapshot.get('teams', [])}
        self.answers = {a['id']: dict(a) for a in snapshot.get('answers', [])}
        server_time = snapshot.get('server_time')
        self.clock_offset = (server_time - received_at) if server_time is not None else 0.0
        self.last_countdown = snapshot.get('time_left')
        self.stale = False

    def apply(self, event: str, payload: Dict[str, Any]) -> bool:
        """Merge one pushed change. Returns False when the change was ignored."""
        if event == 'state_snapshot':
            self.load(payload)
            return True
        if event == 'game_update':
            if self.game is None:
                self.stale = True
                return False
            incoming = int(payload.get('version') or 0)
            if incoming <= self.version:
                return False
            if incoming > self.version + 1:
                # missed at least one update; apply but ask for a full fetch
                self.stale = True
            self.game = dict(payload)
            return True
        if event == 'team_update':
            team = payload.get('team') or {}
            if 'id' not in team:
                return False
            self.teams.setdefault(team['id'], {}).update(team)
            return True
        if event == 'answer_update':
            answer = payload.get('answer') or {}
            if 'id' not in answer:
                return False
            self.answers.setdefault(answer['id'], {}).update(answer)
            return True
        if event == 'countdown':
            self.last_countdown = payload.get('time_left')
            return True
        if event == 'reveal_results':
            self.last_reveal = dict(payload)
            return True
        return False

    def answer_for(self, team_id: int, question_index: int) -> Optional[Dict[str, Any]]:
        for answer in self.answers.values():
            if answer.get('team_id') == team_id and answer.get('question_index') == question_index:
                return answer
        return None


class PlayerClient:
    """One team's view of a game."""

    def __init__(self, fetch_state: Callable[[], Dict[str, Any]],
                 submit_answer: Callable[[int, int, int], Any],
                 team_id: Optional[int] = None,
                 clock: Callable[[], float] = time.time) -> None:
        self.fetch_state = fetch_state
        self.submit_answer = submit_answer
        self.team_id = team_id
        self.clock = clock
        self.cache = GameCache()
        self._submitted_for: Optional[int] = None

    def resync(self) -> None:
        self.cache.load(self.fetch_state(), received_at=self.clock())

    def handle(self, event: str, payload: Dict[str, Any]) -> None:
        self.cache.apply(event, payload)
        if self.cache.stale:
            self.resync()

    @property
    def game(self) -> Optional[Dict[str, Any]]:
        return self.cache.game

    def my_answer(self) -> Optional[Dict[str, Any]]:
        if self.team_id is None or self.game is None:
            return None
        return self.cache.answer_for(self.team_id, self.game['current_question'])

    def has_answered(self) -> bool:
        if self.game is None:
            return False
        return self._submitted_for == self.game['current_question'] or self.my_answer() is not None

    def answer(self, index: int) -> bool:
        """Submit once per question; later taps are dropped locally."""
        if self.screen() != 'playing':
            return False
        question_index = self.game['current_question']
        self._submitted_for = question_index
        self.submit_answer(self.team_id, index, question_index)
        return True

    def screen(self) -> str:
        game = self.game
        if game is None or self.team_id is None or self.team_id not in self.cache.teams:
            return 'join'
        status = game.get('status')
        if status == 'waiting':
            return 'waiting'
        if status == 'finished':
            return 'finished'
        if status == 'paused':
            return 'paused'
        if game.get('loading'):
            return 'loading'
        if status == 'playing':
            if not game.get('answering_enabled'):
                return 'grace'
            return 'locked' if self.has_answered() else 'playing'
        if status == 'revealing':
            mine = self.my_answer()
            if mine is None:
                return 'revealing'
            correct = mine.get('is_correct')
            if correct is None:
                expected = (game.get('question') or {}).get('correct')
                if expected is None:
                    return 'revealing'
                correct = mine.get('answer_index') == expected
            return 'revealing-correct' if correct else 'revealing-wrong'
        return 'join'

    def time_left(self, now: Optional[float] = None) -> int:
        game = self.game
        if game is None:
            return 0
        duration = int(game.get('question_time_seconds') or 0)
        status = game.get('status')
        if status == 'paused':
            if game.get('paused_from') == 'revealing':
                return 0
            left = game.get('paused_time_left')
            return duration if left is None else max(0, min(int(left), duration))
        if status != 'playing':
            return 0
        start = game.get('question_start_time')
        if not game.get('answering_enabled') or start is None:
            return duration
        now = self.clock() if now is None else now
        remaining = duration - ((now + self.cache.clock_offset) - start)
        return max(0, min(duration, int(math.ceil(remaining))))
