from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from trivia import db
from trivia.models import Game, Team, Answer
import secrets
import time
from trivia.services.games import state_machine
from trivia.services.games.errors import GameRuleError, SettingsError
from trivia.services.games.host import HOST
from trivia.services.games.ledger import submit_answer
from trivia.services.games.roster import join_team, teams_for


games = Blueprint('games', __name__)

SETTINGS_KEYS = (
    'question_time_seconds',
    'total_questions',
    'read_aloud_enabled',
    'read_aloud_seconds',
    'score_policy',
    'question_source',
)

_last_controller_action: dict[str, float] = {}


@games.errorhandler(GameRuleError)
def handle_game_rule_error(err):
    return jsonify(err.to_dict()), err.status_code


def _debounced(action: str, game_code: str) -> bool:
    try:
        debounce_ms = int(current_app.config.get('CONTROLLER_DEBOUNCE_MS', 0))
    except (TypeError, ValueError):
        debounce_ms = 0
    if debounce_ms <= 0:
        return False
    key = f"{action}:{game_code.upper()}"
    now = time.time() * 1000.0
    for stale in [k for k, at in _last_controller_action.items() if now - at >= debounce_ms]:
        del _last_controller_action[stale]
    last = _last_controller_action.get(key, 0)
    if now - last < debounce_ms:
        return True
    _last_controller_action[key] = now
    return False


def _game_or_404(game_code) -> Game:
    return Game.query.filter_by(game_code=game_code.upper()).first_or_404()


def _host_game(game_code) -> Game:
    game = _game_or_404(game_code)
    if current_user.game_id != game.id:
        raise GameRuleError('Host token does not match this game', 403)
    return game


def _as_int(value, label):
    if isinstance(value, bool) or not isinstance(value, int):
        raise GameRuleError(f"{label} must be a whole number")
    return value


def state_snapshot(game: Game, now=None) -> dict:
    """Full state for a (re)connecting client; deltas apply on top of it."""
    now = time.time() if now is None else now
    revealed = game.revealed_question == game.current_question
    answers = []
    for answer in Answer.query.filter_by(game_id=game.id).order_by(Answer.answered_at, Answer.id).all():
        hidden = answer.question_index == game.current_question and not revealed
        answers.append(answer.to_dict(include_result=not hidden))
    return {
        'game': game.to_dict(),
        'teams': [t.to_dict() for t in teams_for(game.id)],
        'answers': answers,
        'time_left': state_machine.time_left(game, now),
        'server_time': now,
    }


@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    cfg = current_app.config
    new_game = Game(
        question_time_seconds=int(cfg.get('QUESTION_TIME_SEC', 20)),
        total_questions=int(cfg.get('TOTAL_QUESTIONS', 10)),
        read_aloud_enabled=bool(cfg.get('READ_ALOUD_ENABLED', False)),
        read_aloud_seconds=int(cfg.get('READ_ALOUD_SEC', 7)),
        score_policy=cfg.get('DEFAULT_SCORE_POLICY', 'speed_table'),
        question_source=cfg.get('DEFAULT_QUESTION_SOURCE', 'bank'),
        status='waiting',
        current_question=0,
        version=0,
    )
    settings = {k: data[k] for k in SETTINGS_KEYS if data.get(k) is not None}
    state_machine.apply_settings(new_game, time.time(), **settings)
    host_token = secrets.token_urlsafe(24)
    new_game.set_host_token(host_token)
    db.session.add(new_game)
    db.session.commit()
    current_app.logger.info(f"[create] game={new_game.id} code={new_game.game_code} source={new_game.question_source}")
    return jsonify({
        'message': 'New game created!',
        'game_id': new_game.id,
        'game_code': new_game.game_code,
        'host_token': host_token,
        'game': new_game.to_dict(),
    }), 201


@games.route('/code/<string:game_code>', methods=['GET'])
def lookup_code(game_code):
    game = Game.query.filter_by(game_code=game_code.strip().upper()).first()
    if not game:
        return jsonify({'error': 'Game not found'}), 404
    if game.status == 'finished':
        return jsonify({'error': 'This game has already ended'}), 410
    return jsonify({'game_id': game.id, 'game_code': game.game_code, 'status': game.status})


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    game = _game_or_404(game_code)
    return jsonify(state_snapshot(game))


@games.route('/<string:game_code>/teams', methods=['POST'])
def create_team(game_code):
    data = request.get_json(silent=True) or {}
    game = _game_or_404(game_code)
    team = join_team(game, data.get('name'), data.get('color'))
    return jsonify(team.to_dict()), 201


@games.route('/<string:game_code>/teams/<int:team_id>', methods=['GET'])
def get_team(game_code, team_id):
    game = _game_or_404(game_code)
    team = Team.query.filter_by(id=team_id, game_id=game.id).first()
    if not team:
        return jsonify({'error': 'Team not found'}), 404
    return jsonify(team.to_dict())


@games.route('/<string:game_code>/answer', methods=['POST'])
def post_answer(game_code):
    data = request.get_json(silent=True) or {}
    game = _game_or_404(game_code)
    team_id = _as_int(data.get('team_id'), 'team_id')
    answer_index = data.get('answer_index')
    question_index = data.get('question_index')
    if question_index is not None:
        question_index = _as_int(question_index, 'question_index')
    result = submit_answer(game, team_id, answer_index, question_index)
    if result.accepted:
        HOST.check_early_reveal(game.id)
    return jsonify(result.to_dict()), result.status_code


@games.route('/<string:game_code>/results', methods=['GET'])
def get_results(game_code):
    game = _game_or_404(game_code)
    ranked = state_machine.rank_teams(teams_for(game.id))
    leaderboard = []
    for position, team in enumerate(ranked, start=1):
        entry = team.to_dict()
        entry['position'] = position
        leaderboard.append(entry)
    return jsonify({
        'game_code': game.game_code,
        'status': game.status,
        'questions_played': game.current_question + (1 if game.revealed_question == game.current_question else 0),
        'leaderboard': leaderboard,
    })


# ---- host actions ----

def _host_action(game_code, action, func):
    if _debounced(action, game_code):
        return jsonify({'message': 'debounced'}), 202
    game = _host_game(game_code)
    game = func(game.id)
    return jsonify(game.to_dict())


@games.route('/<string:game_code>/start', methods=['POST'])
@login_required
def start_game(game_code):
    return _host_action(game_code, 'start', HOST.start)


@games.route('/<string:game_code>/pause', methods=['POST'])
@login_required
def pause_game(game_code):
    return _host_action(game_code, 'pause', HOST.pause)


@games.route('/<string:game_code>/resume', methods=['POST'])
@login_required
def resume_game(game_code):
    return _host_action(game_code, 'resume', HOST.resume)


@games.route('/<string:game_code>/end', methods=['POST'])
@login_required
def end_game(game_code):
    return _host_action(game_code, 'end', HOST.end)


@games.route('/<string:game_code>/reveal', methods=['POST'])
@login_required
def reveal_answer(game_code):
    return _host_action(game_code, 'reveal', HOST.force_reveal)


@games.route('/<string:game_code>/advance', methods=['POST'])
@login_required
def advance_question(game_code):
    return _host_action(game_code, 'advance', HOST.advance)


@games.route('/<string:game_code>/settings', methods=['POST'])
@login_required
def update_settings(game_code):
    data = request.get_json(silent=True) or {}
    game = _host_game(game_code)
    settings = {k: data[k] for k in SETTINGS_KEYS if data.get(k) is not None}
    if not settings:
        raise SettingsError('No settings to update')
    game = HOST.update_settings(game.id, settings)
    return jsonify(game.to_dict())
