"""Session state machine.

Pure transitions over a ``Game`` row: nothing here commits, publishes or
schedules. The host controller calls these under the per-game lock and
then persists and broadcasts the result.

    waiting -> playing -> revealing -> playing -> ... -> finished
    playing/revealing <-> paused  (host excursion)

All functions take ``now`` (epoch seconds) explicitly.
"""
import math
from typing import Iterable, List, Optional

from trivia.models import Game, Team
from .errors import SettingsError, TransitionError
from .questions import Question
from .scoring import POLICIES

QUESTION_TIME_RANGE = (10, 60)
TOTAL_QUESTIONS_RANGE = (5, 50)
READ_ALOUD_RANGE = (3, 15)
QUESTION_SOURCES = ('bank', 'generator')


def time_left(game: Game, now: float) -> int:
    """Whole seconds left on the answer countdown, never negative."""
    duration = int(game.question_time_seconds)
    if game.status == 'paused':
        if game.paused_from == 'revealing':
            return 0
        if game.paused_time_left is None:
            return duration
        return max(0, min(int(game.paused_time_left), duration))
    if game.status != 'playing':
        return 0
    if not game.answering_enabled or game.question_start_time is None:
        return duration
    remaining = duration - (now - game.question_start_time)
    return max(0, min(duration, int(math.ceil(remaining))))


def window_open(game: Game, now: float) -> bool:
    if game.status != 'playing' or not game.answering_enabled or game.question_start_time is None:
        return False
    if game.revealed_question == game.current_question:
        return False
    return (now - game.question_start_time) < game.question_time_seconds


def in_grace_period(game: Game) -> bool:
    return game.status == 'playing' and not game.answering_enabled and game.revealed_question != game.current_question


def open_window(game: Game, now: float) -> None:
    game.answering_enabled = True
    game.question_start_time = now


def open_question(game: Game, now: float) -> None:
    """Show the current question; gate answering while it is read aloud."""
    if game.read_aloud_enabled:
        game.answering_enabled = False
        game.question_start_time = None
    else:
        open_window(game, now)


def _set_question(game: Game, question: Question) -> None:
    game.question = question.to_dict()


def start(game: Game, question: Optional[Question], team_count: int, now: float) -> None:
    if game.status != 'waiting':
        raise TransitionError('Game has already started or is finished')
    if team_count < 1:
        raise TransitionError('At least one team must join before starting', 400)
    if question is None:
        raise TransitionError('No question available to start the game')
    game.current_question = 0
    _set_question(game, question)
    game.revealed_question = None
    game.reveal_stage = None
    game.paused_from = None
    game.paused_time_left = None
    game.loading = False
    game.status = 'playing'
    open_question(game, now)


def begin_reveal(game: Game) -> bool:
    """Close the answer window for the current question.

    Returns False (and changes nothing) if the game is not playing or the
    current question has already been revealed, so every reveal trigger can
    call this and only the first one wins.
    """
    if game.status != 'playing' or game.revealed_question == game.current_question:
        return False
    game.status = 'revealing'
    game.reveal_stage = 'answer'
    game.answering_enabled = False
    game.revealed_question = game.current_question
    return True


def show_winners(game: Game) -> bool:
    if game.status != 'revealing' or game.reveal_stage != 'answer':
        return False
    game.reveal_stage = 'winners'
    return True


def question_limit(game: Game, bank_size: Optional[int] = None) -> int:
    limit = int(game.total_questions)
    if bank_size is not None:
        limit = min(limit, bank_size)
    return limit


def has_next_question(game: Game, bank_size: Optional[int] = None) -> bool:
    return game.current_question + 1 < question_limit(game, bank_size)


def finish(game: Game, now: float) -> bool:
    if game.status == 'finished':
        return False
    game.status = 'finished'
    game.answering_enabled = False
    game.reveal_stage = None
    game.paused_from = None
    game.paused_time_left = None
    game.loading = False
    game.finished_at = now
    return True


def advance(game: Game, question: Optional[Question], now: float, bank_size: Optional[int] = None) -> str:
    """Move past a revealed question: next question, or finished at the end."""
    if game.status != 'revealing':
        raise TransitionError('Can only advance after the reveal')
    if not has_next_question(game, bank_size) or question is None:
        finish(game, now)
        return game.status
    game.current_question += 1
    _set_question(game, question)
    game.reveal_stage = None
    game.loading = False
    game.status = 'playing'
    open_question(game, now)
    return game.status


def pause(game: Game, now: float) -> None:
    if game.status not in ('playing', 'revealing'):
        raise TransitionError(f'Cannot pause a game that is {game.status}')
    if game.status == 'playing' and game.answering_enabled and game.question_start_time is not None:
        game.paused_time_left = time_left(game, now)
    else:
        # grace period or reveal: nothing to freeze
        game.paused_time_left = None
    game.paused_from = game.status
    game.answering_enabled = False
    game.status = 'paused'


def resume(game: Game, now: float) -> str:
    if game.status != 'paused':
        raise TransitionError('Game is not paused')
    target = game.paused_from or 'playing'
    left = game.paused_time_left
    game.status = target
    game.paused_from = None
    game.paused_time_left = None
    if target == 'playing':
        if left is None:
            open_question(game, now)
        else:
            duration = int(game.question_time_seconds)
            left = min(int(left), duration)
            game.answering_enabled = True
            game.question_start_time = now - (duration - left)
    return target


def _check_range(value, bounds, label):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise SettingsError(f'{label} must be a whole number') from None
    low, high = bounds
    if not low <= number <= high:
        raise SettingsError(f'{label} must be between {low} and {high}')
    return number


def apply_settings(
    game: Game,
    now: float,
    question_time_seconds=None,
    total_questions=None,
    read_aloud_enabled=None,
    read_aloud_seconds=None,
    score_policy=None,
    question_source=None,
) -> None:
    """Validate and apply host settings.

    A shorter question time caps any running or paused countdown, so the
    remaining time never exceeds the newly configured duration.
    """
    if game.status == 'finished':
        raise SettingsError('Game is finished')
    values = {}
    if question_time_seconds is not None:
        values['question_time_seconds'] = _check_range(question_time_seconds, QUESTION_TIME_RANGE, 'Question time')
    if total_questions is not None:
        values['total_questions'] = _check_range(total_questions, TOTAL_QUESTIONS_RANGE, 'Number of questions')
    if read_aloud_seconds is not None:
        values['read_aloud_seconds'] = _check_range(read_aloud_seconds, READ_ALOUD_RANGE, 'Read-aloud time')
    if read_aloud_enabled is not None:
        if not isinstance(read_aloud_enabled, bool):
            raise SettingsError('read_aloud_enabled must be true or false')
        values['read_aloud_enabled'] = read_aloud_enabled
    if score_policy is not None:
        if score_policy not in POLICIES:
            raise SettingsError(f'Unknown score policy: {score_policy}')
        values['score_policy'] = score_policy
    if question_source is not None:
        if question_source not in QUESTION_SOURCES:
            raise SettingsError(f'Unknown question source: {question_source}')
        if question_source != game.question_source and game.status != 'waiting':
            raise SettingsError('Question source can only change before the game starts')
        values['question_source'] = question_source

    if 'question_time_seconds' in values:
        new_duration = values['question_time_seconds']
        if game.status == 'paused' and game.paused_time_left is not None:
            game.paused_time_left = min(int(game.paused_time_left), new_duration)
        elif game.status == 'playing' and game.answering_enabled and game.question_start_time is not None:
            left = min(time_left(game, now), new_duration)
            game.question_start_time = now - (new_duration - left)

    for key, value in values.items():
        setattr(game, key, value)


def rank_teams(teams: Iterable[Team]) -> List[Team]:
    """Score descending; equal scores keep join order."""
    return sorted(teams, key=lambda t: (-(t.score or 0), t.id))
