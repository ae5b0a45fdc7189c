import time

from trivia.models import Answer, Game, Team
from trivia.services.games.housekeeping import purge_finished_games
from trivia.services.games.ledger import submit_answer
from trivia.services.games.host import HOST


def test_purge_removes_only_old_finished_games(make_game, add_teams):
    now = time.time()
    old = make_game()
    (team,) = add_teams(old, 'Elves')
    HOST.start(old.id)
    submit_answer(old, team.id, 0)
    HOST.end(old.id, now=now - 10 * 86400)
    recent = make_game(status='finished', finished_at=now - 3600)
    running = make_game()
    recent_code, running_code = recent.game_code, running.game_code

    assert purge_finished_games(7, now=now) == 1
    assert Game.query.count() == 2
    assert {g.game_code for g in Game.query.all()} == {recent_code, running_code}
    assert Team.query.count() == 0
    assert Answer.query.count() == 0


def test_cli_command(flask_app, make_game):
    make_game(status='finished', finished_at=time.time() - 30 * 86400)
    result = flask_app.test_cli_runner().invoke(args=['purge-finished', '--days', '7'])
    assert 'Purged 1 finished game(s).' in result.output
