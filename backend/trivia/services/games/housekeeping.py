import time
from typing import Optional

from flask import current_app

from trivia import db
from trivia.models import Game, Team, Answer
from . import scheduler
from .questions import PREFETCH


def purge_finished_games(days: float, now: Optional[float] = None) -> int:
    """Delete finished games older than ``days`` together with their teams and answers."""
    now = time.time() if now is None else now
    cutoff = now - float(days) * 86400
    ids = [
        game_id for (game_id,) in db.session.query(Game.id).filter(
            Game.status == 'finished',
            Game.finished_at.isnot(None),
            Game.finished_at < cutoff,
        )
    ]
    if not ids:
        return 0
    Answer.query.filter(Answer.game_id.in_(ids)).delete(synchronize_session=False)
    Team.query.filter(Team.game_id.in_(ids)).delete(synchronize_session=False)
    Game.query.filter(Game.id.in_(ids)).delete(synchronize_session=False)
    db.session.commit()
    for game_id in ids:
        PREFETCH.discard(game_id)
        scheduler.forget(game_id)
    current_app.logger.info(f"[purge] removed={len(ids)} older_than_days={days}")
    return len(ids)
