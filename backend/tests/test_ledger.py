import threading
import time

from trivia import db
from trivia.models import Answer, Game
from trivia.services.games import ledger
from trivia.services.games.host import HOST
from trivia.services.games.ledger import all_answered, submit_answer
from trivia.services.games.question_bank import BANK


def _started(make_game, add_teams, *names, **settings):
    game = make_game(**settings)
    teams = add_teams(game, *names)
    t0 = 5_000_000.0
    HOST.start(game.id, now=t0)
    return game, teams, t0


def test_correctness_and_timing_are_computed_server_side(make_game, add_teams):
    game, (team,), t0 = _started(make_game, add_teams, 'Elves')
    result = submit_answer(game, team.id, BANK[0]['correct'], now=t0 + 1.25)
    assert result.accepted
    assert result.status_code == 201
    assert result.answer.is_correct is True
    assert result.answer.time_taken_ms == 1250
    assert result.answer.points_earned == 0
    # the response never tells the team whether it was right
    assert 'is_correct' not in result.to_dict()['answer']


def test_duplicate_submission_keeps_first_answer(make_game, add_teams):
    game, (team,), t0 = _started(make_game, add_teams, 'Elves')
    first = submit_answer(game, team.id, 1, now=t0 + 1)
    second = submit_answer(game, team.id, 2, now=t0 + 2)
    assert first.accepted
    assert not second.accepted
    assert second.reason == 'already_answered'
    assert second.answer.id == first.answer.id
    rows = Answer.query.filter_by(game_id=game.id, team_id=team.id).all()
    assert len(rows) == 1
    assert rows[0].answer_index == 1


def test_rejections(make_game, add_teams):
    game, (team,), t0 = _started(make_game, add_teams, 'Elves')
    assert submit_answer(game, 999, 0, now=t0 + 1).reason == 'unknown_team'
    assert submit_answer(game, team.id, 4, now=t0 + 1).reason == 'invalid_option'
    assert submit_answer(game, team.id, True, now=t0 + 1).reason == 'invalid_option'
    assert submit_answer(game, team.id, 0, question_index=3, now=t0 + 1).reason == 'wrong_question'
    assert submit_answer(game, team.id, 0, now=t0 + 21).reason == 'window_closed'
    assert Answer.query.count() == 0


def test_answers_refused_outside_playing(make_game, add_teams):
    game = make_game()
    (team,) = add_teams(game, 'Elves')
    result = submit_answer(game, team.id, 0)
    assert result.reason == 'not_playing'
    assert result.status_code == 409

    HOST.start(game.id)
    HOST.pause(game.id)
    assert submit_answer(game, team.id, 0).reason == 'not_playing'


def test_answers_refused_after_reveal(make_game, add_teams):
    game, (a, b), t0 = _started(make_game, add_teams, 'A', 'B')
    HOST.force_reveal(game.id)
    assert submit_answer(game, a.id, 0, now=t0 + 1).reason == 'not_playing'


def test_publishes_insert_and_team_flag(make_game, add_teams, channel):
    game, (team,), t0 = _started(make_game, add_teams, 'Elves')
    channel.clear()
    submit_answer(game, team.id, 0, now=t0 + 1)
    assert channel.names(game.game_code) == ['answer_update', 'team_update']
    answer_event, team_event = channel.of('answer_update')[0], channel.of('team_update')[0]
    assert answer_event['action'] == 'insert'
    assert 'is_correct' not in answer_event['answer']
    assert team_event['team']['has_answered'] is True


def test_all_answered_counts_late_joiners(make_game, add_teams):
    game, (a,), t0 = _started(make_game, add_teams, 'A')
    (late,) = add_teams(game, 'Latecomers')
    submit_answer(game, a.id, 0, now=t0 + 1)
    assert all_answered(game.id, 0) is False
    assert submit_answer(game, late.id, 0, now=t0 + 2).accepted
    assert all_answered(game.id, 0) is True


def test_concurrent_duplicates_store_one_row(flask_app, make_game, add_teams):
    game, (team,), t0 = _started(make_game, add_teams, 'Elves')
    game_id, team_id = game.id, team.id
    barrier = threading.Barrier(8)
    reasons = []

    def _submit(option):
        with flask_app.app_context():
            barrier.wait()
            with ledger.game_lock(game_id):
                current = db.session.get(Game, game_id)
                reasons.append(submit_answer(current, team_id, option % 4, now=t0 + 1).reason)
            db.session.remove()

    threads = [threading.Thread(target=_submit, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert reasons.count(None) == 1
    assert reasons.count('already_answered') == 7
    assert Answer.query.filter_by(game_id=game_id, team_id=team_id).count() == 1


def test_unique_constraint_race_returns_stored_answer(make_game, add_teams, monkeypatch):
    game, (team,), t0 = _started(make_game, add_teams, 'Elves')
    # a row written by another worker after the pre-insert lookup
    stored = Answer(game_id=game.id, team_id=team.id, question_index=0, answer_index=3,
                    is_correct=False, answered_at=t0 + 0.5, time_taken_ms=500, points_earned=0)
    db.session.add(stored)
    db.session.commit()
    stored_id = stored.id

    real_existing = ledger._existing
    calls = []

    def _missed_first(*args):
        calls.append(args)
        return None if len(calls) == 1 else real_existing(*args)

    monkeypatch.setattr(ledger, '_existing', _missed_first)
    result = submit_answer(game, team.id, 1, now=t0 + 1)

    assert not result.accepted
    assert result.reason == 'already_answered'
    assert result.answer.id == stored_id
    assert result.answer.answer_index == 3
    assert Answer.query.filter_by(game_id=game.id, team_id=team.id).count() == 1
