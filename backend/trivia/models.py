from trivia import db, bcrypt
from flask_login import UserMixin
import json
import string
import random
import time

STATUSES = ('waiting', 'playing', 'paused', 'revealing', 'finished')
TEAM_COLORS = ('red', 'green', 'blue', 'gold', 'purple', 'pink', 'cyan', 'orange')


class HostSession(UserMixin):
    """Request-scoped identity of a host holding a valid game token."""

    def __init__(self, game_id):
        self.game_id = game_id

    def get_id(self):
        return f"host:{self.game_id}"


def generate_game_code(length=4):
    """Generate a unique, short game code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Game.query.filter_by(game_code=code).first():
            return code


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    game_code = db.Column(db.String(6), unique=True, index=True, nullable=False)
    status = db.Column(db.String(16), default='waiting', nullable=False)
    current_question = db.Column(db.Integer, default=0, nullable=False)
    question_data = db.Column(db.Text, nullable=True)  # JSON snapshot of the active question
    question_time_seconds = db.Column(db.Integer, default=20, nullable=False)
    total_questions = db.Column(db.Integer, default=10, nullable=False)
    read_aloud_enabled = db.Column(db.Boolean, default=False, nullable=False)
    read_aloud_seconds = db.Column(db.Integer, default=7, nullable=False)
    answering_enabled = db.Column(db.Boolean, default=False, nullable=False)
    question_start_time = db.Column(db.Float, nullable=True)  # epoch seconds, null while gated
    revealed_question = db.Column(db.Integer, nullable=True)
    reveal_stage = db.Column(db.String(16), nullable=True)  # answer, winners
    paused_from = db.Column(db.String(16), nullable=True)
    paused_time_left = db.Column(db.Integer, nullable=True)
    loading = db.Column(db.Boolean, default=False, nullable=False)
    question_source = db.Column(db.String(16), default='bank', nullable=False)  # bank, generator
    score_policy = db.Column(db.String(16), default='speed_table', nullable=False)
    version = db.Column(db.Integer, default=0, nullable=False)
    host_token_hash = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.Float, default=time.time, nullable=False)
    finished_at = db.Column(db.Float, nullable=True)

    teams = db.relationship('Team', back_populates='game', order_by='Team.id')

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.game_code:
            self.game_code = generate_game_code()

    def set_host_token(self, token):
        self.host_token_hash = bcrypt.generate_password_hash(token).decode('utf-8')

    def check_host_token(self, token):
        if not self.host_token_hash:
            return False
        return bcrypt.check_password_hash(self.host_token_hash, token)

    @property
    def question(self):
        if not self.question_data:
            return None
        return json.loads(self.question_data)

    @question.setter
    def question(self, payload):
        self.question_data = json.dumps(payload) if payload is not None else None

    @property
    def correct_hidden(self):
        if self.status in ('waiting', 'playing'):
            return True
        return self.status == 'paused' and self.paused_from == 'playing'

    def touch(self):
        self.version = (self.version or 0) + 1

    def to_dict(self, include_correct=None):
        question = self.question
        if question is not None:
            show = (not self.correct_hidden) if include_correct is None else include_correct
            if not show:
                question = {k: v for k, v in question.items() if k != 'correct'}
        return {
            'id': self.id,
            'game_code': self.game_code,
            'status': self.status,
            'current_question': self.current_question,
            'question': question,
            'question_time_seconds': self.question_time_seconds,
            'total_questions': self.total_questions,
            'read_aloud_enabled': self.read_aloud_enabled,
            'read_aloud_seconds': self.read_aloud_seconds,
            'answering_enabled': self.answering_enabled,
            'question_start_time': self.question_start_time,
            'revealed_question': self.revealed_question,
            'reveal_stage': self.reveal_stage,
            'paused_from': self.paused_from,
            'paused_time_left': self.paused_time_left,
            'loading': self.loading,
            'question_source': self.question_source,
            'score_policy': self.score_policy,
            'version': self.version,
            'created_at': self.created_at,
            'finished_at': self.finished_at,
        }


class Team(db.Model):
    __tablename__ = 'team'
    __table_args__ = (db.UniqueConstraint('game_id', 'name_key', name='uq_team_game_name'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    name = db.Column(db.String(24), nullable=False)
    name_key = db.Column(db.String(96), nullable=False)  # casefolded name; casefold can grow a name
    color = db.Column(db.String(16), nullable=True)
    score = db.Column(db.Integer, default=0, nullable=False)
    has_answered = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.Float, default=time.time, nullable=False)

    game = db.relationship('Game', back_populates='teams')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'name': self.name,
            'color': self.color,
            'score': self.score,
            'has_answered': self.has_answered,
            'created_at': self.created_at,
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'team_id', 'question_index', name='uq_answer_team_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    question_index = db.Column(db.Integer, nullable=False)
    answer_index = db.Column(db.Integer, nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    answered_at = db.Column(db.Float, nullable=False)
    time_taken_ms = db.Column(db.Integer, nullable=True)
    points_earned = db.Column(db.Integer, default=0, nullable=False)

    team = db.relationship('Team')

    def to_dict(self, include_result=True):
        data = {
            'id': self.id,
            'game_id': self.game_id,
            'team_id': self.team_id,
            'question_index': self.question_index,
            'answer_index': self.answer_index,
            'answered_at': self.answered_at,
            'time_taken_ms': self.time_taken_ms,
        }
        if include_result:
            data['is_correct'] = self.is_correct
            data['points_earned'] = self.points_earned
        return data


class RecentQuestion(db.Model):
    """Questions served by the generator, newest first, used to avoid repeats."""
    __tablename__ = 'recent_question'
    id = db.Column(db.Integer, primary_key=True)
    question_text = db.Column(db.Text, nullable=False)
    answers = db.Column(db.Text, nullable=False)  # JSON-encoded list of 4 strings
    correct_index = db.Column(db.Integer, nullable=False)
    difficulty = db.Column(db.String(16), nullable=True)
    asked_at = db.Column(db.Float, default=time.time, nullable=False, index=True)

    @property
    def correct_answer(self):
        try:
            return json.loads(self.answers)[self.correct_index]
        except (ValueError, IndexError, TypeError):
            return ''
