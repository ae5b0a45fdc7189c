import pytest

from trivia.models import Team
from trivia.services.games.errors import RosterError
from trivia.services.games.host import HOST
from trivia.services.games.roster import MAX_NAME_LENGTH, join_team


def test_join_trims_and_assigns_colors(make_game, channel):
    game = make_game()
    first = join_team(game, '  Jolly   Elves ')
    second = join_team(game, 'Reindeer', 'gold')
    assert first.name == 'Jolly Elves'
    assert first.color == 'red'
    assert second.color == 'gold'
    assert first.score == 0 and first.has_answered is False
    assert channel.of('team_update')[0]['action'] == 'insert'


@pytest.mark.parametrize('name', ['', '   ', None, 'x' * (MAX_NAME_LENGTH + 1)])
def test_invalid_names(make_game, name):
    with pytest.raises(RosterError) as exc:
        join_team(make_game(), name)
    assert exc.value.status_code == 400


def test_names_unique_ignoring_case(make_game):
    game = make_game()
    join_team(game, 'Elves')
    with pytest.raises(RosterError) as exc:
        join_team(game, ' ELVES')
    assert exc.value.status_code == 409
    assert Team.query.filter_by(game_id=game.id).count() == 1


def test_same_name_allowed_in_other_game(make_game):
    join_team(make_game(), 'Elves')
    assert join_team(make_game(), 'Elves').name == 'Elves'


def test_unknown_color(make_game):
    with pytest.raises(RosterError):
        join_team(make_game(), 'Elves', 'plaid')


def test_late_join_policy(flask_app, make_game):
    game = make_game()
    join_team(game, 'Elves')
    HOST.start(game.id)
    assert join_team(game, 'Latecomers').score == 0

    flask_app.config['ALLOW_LATE_JOIN'] = False
    with pytest.raises(RosterError) as exc:
        join_team(game, 'Stragglers')
    assert exc.value.status_code == 403


def test_finished_game_refuses_teams(make_game):
    game = make_game(status='finished')
    with pytest.raises(RosterError) as exc:
        join_team(game, 'Elves')
    assert exc.value.status_code == 410


def test_casefolded_key_fits_expanded_names(make_game):
    game = make_game()
    team = join_team(game, 'ß' * MAX_NAME_LENGTH)
    assert team.name_key == 'ss' * MAX_NAME_LENGTH
    assert Team.__table__.c.name_key.type.length >= 3 * MAX_NAME_LENGTH
    assert Team.query.filter_by(game_id=game.id).one().name_key == 'ss' * MAX_NAME_LENGTH
