from typing import Dict, List, Sequence, Tuple

from trivia import db
from trivia.models import Game, Team, Answer

SPEED_TABLE = (300, 250, 200, 175, 150, 125)
SPEED_TABLE_FLOOR = 100


class ScorePolicy:
    """Maps a 0-based rank among correct answers to points."""

    name = ''

    def points_for(self, rank: int, total_correct: int) -> int:
        raise NotImplementedError

    def award(self, correct_answers: Sequence[Answer]) -> List[Tuple[Answer, int]]:
        """Rank correct answers by submission time and assign points.

        Ties on ``answered_at`` fall back to insertion order (answer id).
        """
        ranked = sorted(correct_answers, key=lambda a: (a.answered_at, a.id))
        total = len(ranked)
        return [(a, self.points_for(rank, total)) for rank, a in enumerate(ranked)]


class SpeedTablePolicy(ScorePolicy):
    name = 'speed_table'

    def points_for(self, rank, total_correct):
        if rank < len(SPEED_TABLE):
            return SPEED_TABLE[rank]
        return SPEED_TABLE_FLOOR


class DecayingPolicy(ScorePolicy):
    name = 'decaying'
    base = 100
    step = 25

    def points_for(self, rank, total_correct):
        return self.base + max(0, (total_correct - rank) * self.step)


POLICIES: Dict[str, ScorePolicy] = {
    SpeedTablePolicy.name: SpeedTablePolicy(),
    DecayingPolicy.name: DecayingPolicy(),
}


def get_policy(name: str) -> ScorePolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(f"Unknown score policy: {name}") from None


def score_current_question(game: Game) -> List[dict]:
    """Apply scoring for the game's current question.

    Answers are re-read from the store so ranking never depends on the
    order in which real-time events reached anyone. Each correct answer's
    ``points_earned`` is written once and added to its team's score; wrong
    answers keep 0. Returns the winners in rank order.
    """
    answers = (
        Answer.query
        .filter_by(game_id=game.id, question_index=game.current_question)
        .order_by(Answer.answered_at, Answer.id)
        .all()
    )
    policy = get_policy(game.score_policy)
    awarded = policy.award([a for a in answers if a.is_correct])
    teams = {t.id: t for t in Team.query.filter_by(game_id=game.id).all()}
    winners = []
    for position, (answer, points) in enumerate(awarded, start=1):
        answer.points_earned = points
        db.session.add(answer)
        team = teams.get(answer.team_id)
        if team is None:
            continue
        team.score = (team.score or 0) + points
        db.session.add(team)
        winners.append({
            'position': position,
            'team_id': team.id,
            'team_name': team.name,
            'points': points,
            'time_taken_ms': answer.time_taken_ms,
        })
    return winners
