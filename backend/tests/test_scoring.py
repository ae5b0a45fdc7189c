from types import SimpleNamespace

import pytest

from trivia.services.games.scoring import DecayingPolicy, SpeedTablePolicy, get_policy


def _answer(answer_id, answered_at):
    return SimpleNamespace(id=answer_id, answered_at=answered_at)


def test_speed_table_points():
    policy = SpeedTablePolicy()
    points = [policy.points_for(rank, 8) for rank in range(8)]
    assert points == [300, 250, 200, 175, 150, 125, 100, 100]


def test_decaying_points_depend_on_number_of_correct_answers():
    policy = DecayingPolicy()
    assert [policy.points_for(rank, 3) for rank in range(3)] == [175, 150, 125]
    assert policy.points_for(0, 1) == 125
    assert policy.points_for(5, 3) == 100


def test_award_ranks_by_time_then_insertion_order():
    policy = SpeedTablePolicy()
    late, tie_second, tie_first = _answer(3, 12.0), _answer(2, 10.0), _answer(1, 10.0)
    awarded = policy.award([late, tie_second, tie_first])
    assert [(a.id, pts) for a, pts in awarded] == [(1, 300), (2, 250), (3, 200)]


def test_unknown_policy():
    with pytest.raises(ValueError):
        get_policy('double_or_nothing')
    assert get_policy('decaying').name == 'decaying'
