"""Host controller: the single writer of game phase.

Every transition runs under the per-game lock, persists in one commit,
bumps ``Game.version`` once and publishes the new row. Timer callbacks
carry the question index and scheduler token they were armed for, and
do nothing when either is stale.
"""
import time
from typing import Iterable, Optional

from flask import current_app

from trivia import db
from trivia.models import Game, Team
from . import scheduler, state_machine
from .channel import get_channel
from .errors import TransitionError
from .ledger import all_answered, answers_for_question
from .questions import PREFETCH, QuestionProvider, get_provider
from .roster import reset_answered, teams_for
from .scoring import score_current_question

REVEAL_STAGES = ('answer', 'winners')


def _fresh(game_id: int) -> Optional[Game]:
    return Game.query.filter_by(id=game_id).populate_existing().first()


def _forget_if_finished(game: Optional[Game]) -> None:
    if game is not None and game.status == 'finished':
        scheduler.forget(game.id)


class HostController:

    # ---- persistence ----

    def _commit(self, game: Game, teams: Iterable[Team] = ()) -> None:
        game.touch()
        db.session.add(game)
        db.session.commit()
        channel = get_channel()
        channel.game_changed(game)
        for team in teams:
            channel.team_changed(game.game_code, team)

    def _load(self, game_id: int) -> Game:
        game = _fresh(game_id)
        if game is None:
            raise TransitionError('Game not found', 404)
        return game

    # ---- timers ----

    def _config_seconds(self, key: str, default: float) -> float:
        try:
            return float(current_app.config.get(key, default))
        except (TypeError, ValueError):
            return default

    def _arm_question_timer(self, game: Game, now: float) -> None:
        app = current_app._get_current_object()
        if game.answering_enabled:
            code, idx = game.game_code, game.current_question

            def _tick(seconds_left: int) -> None:
                get_channel().notify(code, 'countdown', {
                    'game_code': code,
                    'question_index': idx,
                    'time_left': seconds_left,
                })

            scheduler.schedule(
                app, game.id, 'countdown', state_machine.time_left(game, now),
                self.on_countdown_expired, game.id, idx, on_tick=_tick,
            )
        else:
            scheduler.schedule(
                app, game.id, 'grace', float(game.read_aloud_seconds),
                self.on_grace_elapsed, game.id, game.current_question,
            )

    def _arm_reveal_stage(self, game: Game) -> None:
        key = 'REVEAL_ANSWER_SEC' if game.reveal_stage == 'answer' else 'REVEAL_WINNERS_SEC'
        scheduler.schedule(
            current_app._get_current_object(), game.id, f'reveal-{game.reveal_stage}',
            self._config_seconds(key, 5), self.on_reveal_stage_elapsed,
            game.id, game.current_question, game.reveal_stage,
        )

    def _prefetch_next(self, game: Game) -> None:
        bank_size = QuestionProvider.bank_size(game.question_source)
        if not state_machine.has_next_question(game, bank_size):
            return
        index = game.current_question + 1
        if PREFETCH.has(game.id, index):
            return
        scheduler.run_background(
            current_app._get_current_object(), 'prefetch',
            self.prefetch, game.id, game.question_source, index,
        )

    def prefetch(self, game_id: int, source: str, index: int) -> None:
        question = get_provider().get(source, index)
        if question is not None:
            PREFETCH.store(game_id, index, question)
            current_app.logger.info(f"[prefetch] game={game_id} question={index} source={question.source}")

    # ---- host actions ----

    def start(self, game_id: int, now: Optional[float] = None) -> Game:
        with scheduler.game_lock(game_id):
            game = self._load(game_id)
            if game.status != 'waiting':
                raise TransitionError('Game has already started or is finished')
            teams = teams_for(game.id)
            if not teams:
                raise TransitionError('At least one team must join before starting', 400)
            question = get_provider().get(game.question_source, 0)
            now = time.time() if now is None else now
            state_machine.start(game, question, len(teams), now)
            teams = reset_answered(game.id)
            scheduler.cancel(game.id)
            PREFETCH.discard(game.id)
            self._commit(game, teams)
            current_app.logger.info(f"[start] game={game.id} teams={len(teams)} source={game.question_source}")
            self._arm_question_timer(game, now)
            self._prefetch_next(game)
            return game

    def pause(self, game_id: int, now: Optional[float] = None) -> Game:
        with scheduler.game_lock(game_id):
            game = self._load(game_id)
            now = time.time() if now is None else now
            state_machine.pause(game, now)
            scheduler.cancel(game.id)
            self._commit(game)
            current_app.logger.info(
                f"[pause] game={game.id} from={game.paused_from} time_left={game.paused_time_left}"
            )
            return game

    def resume(self, game_id: int, now: Optional[float] = None) -> Game:
        with scheduler.game_lock(game_id):
            game = self._load(game_id)
            now = time.time() if now is None else now
            target = state_machine.resume(game, now)
            scheduler.cancel(game.id)
            self._commit(game)
            current_app.logger.info(f"[resume] game={game.id} to={target}")
            if target == 'playing':
                self._arm_question_timer(game, now)
            else:
                self._arm_reveal_stage(game)
            return game

    def end(self, game_id: int, now: Optional[float] = None) -> Game:
        with scheduler.game_lock(game_id):
            game = self._load(game_id)
            now = time.time() if now is None else now
            if state_machine.finish(game, now):
                scheduler.cancel(game.id)
                PREFETCH.discard(game.id)
                self._commit(game)
                current_app.logger.info(f"[finish] game={game.id} ended by host at question={game.current_question}")
        _forget_if_finished(game)
        return game

    def pause_if_running(self, game_code: str) -> Optional[Game]:
        """Pause on host loss; a game that is not running is left alone."""
        game = Game.query.filter_by(game_code=game_code.upper()).first()
        if game is None:
            return None
        with scheduler.game_lock(game.id):
            game = self._load(game.id)
            if game.status not in ('playing', 'revealing'):
                return game
            current_app.logger.info(f"[host-lost] game={game.id} pausing")
            return self.pause(game.id)

    def force_reveal(self, game_id: int, now: Optional[float] = None) -> Game:
        with scheduler.game_lock(game_id):
            game = self._load(game_id)
            if game.status == 'revealing':
                return game
            if game.status != 'playing':
                raise TransitionError(f'Cannot reveal while the game is {game.status}')
            self._reveal(game, 'host')
            return game

    def update_settings(self, game_id: int, settings: dict, now: Optional[float] = None) -> Game:
        with scheduler.game_lock(game_id):
            game = self._load(game_id)
            now = time.time() if now is None else now
            state_machine.apply_settings(game, now, **settings)
            countdown_running = game.status == 'playing' and game.answering_enabled
            if countdown_running and 'question_time_seconds' in settings:
                scheduler.cancel(game.id)
            self._commit(game)
            current_app.logger.info(f"[settings] game={game.id} changed={sorted(settings)}")
            if countdown_running and 'question_time_seconds' in settings:
                self._arm_question_timer(game, now)
            return game

    def advance(self, game_id: int, now: Optional[float] = None) -> Game:
        with scheduler.game_lock(game_id):
            game = self._load(game_id)
            if game.status != 'revealing':
                raise TransitionError('Can only advance after the reveal')
            self._advance(game, now)
        _forget_if_finished(game)
        return game

    # ---- timer callbacks ----

    def on_grace_elapsed(self, game_id: int, question_index: int, token: int) -> None:
        with scheduler.game_lock(game_id):
            if not scheduler.is_current(game_id, token):
                return
            game = _fresh(game_id)
            if game is None or game.current_question != question_index:
                return
            if not state_machine.in_grace_period(game):
                return
            now = time.time()
            state_machine.open_window(game, now)
            self._commit(game)
            current_app.logger.info(f"[open] game={game.id} question={game.current_question}")
            self._arm_question_timer(game, now)

    def on_countdown_expired(self, game_id: int, question_index: int, token: int) -> None:
        with scheduler.game_lock(game_id):
            if not scheduler.is_current(game_id, token):
                return
            game = _fresh(game_id)
            if game is None or game.current_question != question_index:
                return
            self._reveal(game, 'countdown')

    def on_reveal_stage_elapsed(self, game_id: int, question_index: int, stage: str, token: int) -> None:
        with scheduler.game_lock(game_id):
            if not scheduler.is_current(game_id, token):
                return
            game = _fresh(game_id)
            if game is None or game.status != 'revealing':
                return
            if game.current_question != question_index or game.reveal_stage != stage:
                return
            if stage == 'answer':
                state_machine.show_winners(game)
                self._commit(game)
                self._arm_reveal_stage(game)
            else:
                self._advance(game)
        _forget_if_finished(game)

    def check_early_reveal(self, game_id: int) -> bool:
        """Reveal as soon as every team has answered the current question."""
        with scheduler.game_lock(game_id):
            game = _fresh(game_id)
            if game is None or game.status != 'playing':
                return False
            if not all_answered(game.id, game.current_question):
                return False
            return self._reveal(game, 'all_answered')

    # ---- transitions ----

    def _reveal(self, game: Game, trigger: str) -> bool:
        if not state_machine.begin_reveal(game):
            return False
        scheduler.cancel(game.id)
        winners = score_current_question(game)
        teams = teams_for(game.id)
        self._commit(game, teams)
        current_app.logger.info(
            f"[reveal] game={game.id} question={game.current_question} trigger={trigger} winners={len(winners)}"
        )
        channel = get_channel()
        for answer in answers_for_question(game.id, game.current_question):
            channel.answer_changed(game.game_code, answer, action='update')
        channel.notify(game.game_code, 'reveal_results', {
            'game_code': game.game_code,
            'question_index': game.current_question,
            'correct': (game.question or {}).get('correct'),
            'winners': winners,
        })
        self._arm_reveal_stage(game)
        return True

    def _advance(self, game: Game, now: Optional[float] = None) -> None:
        scheduler.cancel(game.id)
        bank_size = QuestionProvider.bank_size(game.question_source)
        if not state_machine.has_next_question(game, bank_size):
            state_machine.finish(game, time.time() if now is None else now)
            PREFETCH.discard(game.id)
            self._commit(game)
            current_app.logger.info(f"[finish] game={game.id} after question={game.current_question}")
            return

        index = game.current_question + 1
        question = PREFETCH.take(game.id, index)
        if question is None:
            game.loading = True
            self._commit(game)
            question = get_provider().get(game.question_source, index)

        now = time.time() if now is None else now
        state_machine.advance(game, question, now, bank_size)
        teams = reset_answered(game.id) if game.status == 'playing' else []
        self._commit(game, teams)
        if game.status == 'finished':
            PREFETCH.discard(game.id)
            current_app.logger.info(f"[finish] game={game.id} no question available for index={index}")
            return
        current_app.logger.info(f"[advance] game={game.id} question={game.current_question}")
        self._arm_question_timer(game, now)
        self._prefetch_next(game)


HOST = HostController()
