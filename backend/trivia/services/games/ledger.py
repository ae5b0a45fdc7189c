import time
from dataclasses import dataclass
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from trivia import db
from trivia.models import Game, Team, Answer
from . import state_machine
from .channel import get_channel
from .scheduler import game_lock

# reason -> (message, HTTP status)
REJECTIONS = {
    'unknown_team': ('Team is not part of this game', 404),
    'invalid_option': ('Answer must be one of options 0-3', 400),
    'wrong_question': ('That question is no longer active', 409),
    'not_playing': ('Not accepting answers at this time', 409),
    'grace_period': ('Answering opens once the question has been read', 409),
    'window_closed': ('Time is up for this question', 409),
    'already_answered': ('Already answered this question', 200),
}


@dataclass
class SubmitResult:
    accepted: bool
    answer: Optional[Answer] = None
    reason: Optional[str] = None

    @property
    def message(self) -> str:
        return REJECTIONS[self.reason][0] if self.reason else 'Answer submitted'

    @property
    def status_code(self) -> int:
        return REJECTIONS[self.reason][1] if self.reason else 201

    def to_dict(self):
        data = {'accepted': self.accepted, 'message': self.message}
        if self.reason:
            data['reason'] = self.reason
        if self.answer is not None:
            # correctness stays hidden until the reveal
            data['answer'] = self.answer.to_dict(include_result=False)
        return data


def _valid_option(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 3


def _existing(game_id: int, team_id: int, question_index: int) -> Optional[Answer]:
    return Answer.query.filter_by(game_id=game_id, team_id=team_id, question_index=question_index).first()


def submit_answer(game: Game, team_id, answer_index, question_index=None, now: Optional[float] = None) -> SubmitResult:
    """Record a team's answer to the current question.

    Correctness is decided here against the game's own question snapshot.
    A second submission for the same team and question never creates a row;
    it returns the first answer with reason ``already_answered``.
    """
    with game_lock(game.id):
        db.session.refresh(game)
        now = time.time() if now is None else now
        team = Team.query.filter_by(id=team_id, game_id=game.id).first()
        if team is None:
            return SubmitResult(False, reason='unknown_team')
        if not _valid_option(answer_index):
            return SubmitResult(False, reason='invalid_option')
        if question_index is not None and question_index != game.current_question:
            return SubmitResult(False, reason='wrong_question')

        existing = _existing(game.id, team.id, game.current_question)
        if existing is not None:
            return SubmitResult(False, existing, 'already_answered')
        if game.status != 'playing':
            return SubmitResult(False, reason='not_playing')
        if state_machine.in_grace_period(game):
            return SubmitResult(False, reason='grace_period')
        if not state_machine.window_open(game, now):
            return SubmitResult(False, reason='window_closed')

        question = game.question or {}
        answer = Answer(
            game_id=game.id,
            team_id=team.id,
            question_index=game.current_question,
            answer_index=answer_index,
            is_correct=(answer_index == question.get('correct')),
            answered_at=now,
            time_taken_ms=max(0, int(round((now - game.question_start_time) * 1000))),
            points_earned=0,
        )
        team.has_answered = True
        db.session.add(answer)
        db.session.add(team)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return SubmitResult(False, _existing(game.id, team.id, game.current_question), 'already_answered')

    current_app.logger.info(
        f"[answer] game={game.id} team={team.id} question={answer.question_index} correct={answer.is_correct} ms={answer.time_taken_ms}"
    )
    channel = get_channel()
    channel.answer_changed(game.game_code, answer, action='insert', include_result=False)
    channel.team_changed(game.game_code, team)
    return SubmitResult(True, answer)


def answers_for_question(game_id: int, question_index: int) -> List[Answer]:
    """All answers for one question, fully read from the store in submission order."""
    return (
        Answer.query
        .filter_by(game_id=game_id, question_index=question_index)
        .order_by(Answer.answered_at, Answer.id)
        .all()
    )


def all_answered(game_id: int, question_index: int) -> bool:
    """True when every team currently in the game has answered this question."""
    team_ids = {t.id for t in Team.query.filter_by(game_id=game_id).all()}
    if not team_ids:
        return False
    answered = {a.team_id for a in answers_for_question(game_id, question_index)}
    return team_ids.issubset(answered)
