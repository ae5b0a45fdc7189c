from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from trivia import db
from trivia.models import Game, Team, TEAM_COLORS
from .channel import get_channel
from .errors import RosterError

MAX_NAME_LENGTH = 24


def normalize_name(name: Optional[str]) -> str:
    return ' '.join((name or '').split())


def teams_for(game_id: int) -> List[Team]:
    return Team.query.filter_by(game_id=game_id).order_by(Team.id).all()


def join_team(game: Game, name: Optional[str], color: Optional[str] = None) -> Team:
    """Add a team to a game.

    Names are trimmed and compared case-insensitively within a game. A team
    may join while the game is waiting, or later when late joins are
    allowed; it then starts at 0 and counts toward the all-answered check
    from now on.
    """
    clean = normalize_name(name)
    if not clean:
        raise RosterError('Team name is required')
    if len(clean) > MAX_NAME_LENGTH:
        raise RosterError(f'Team name must be at most {MAX_NAME_LENGTH} characters')
    if game.status == 'finished':
        raise RosterError('This game has already ended', 410)
    if game.status != 'waiting' and not current_app.config.get('ALLOW_LATE_JOIN', True):
        raise RosterError('This game has already started', 403)

    existing = teams_for(game.id)
    if color is None or color == '':
        color = TEAM_COLORS[len(existing) % len(TEAM_COLORS)]
    elif color not in TEAM_COLORS:
        raise RosterError(f'Unknown team color: {color}')

    key = clean.casefold()
    if any(t.name_key == key for t in existing):
        raise RosterError('That team name is already taken', 409)

    team = Team(game_id=game.id, name=clean, name_key=key, color=color, score=0, has_answered=False)
    db.session.add(team)
    try:
        db.session.commit()
    except IntegrityError:
        # lost a race with another join using the same name
        db.session.rollback()
        raise RosterError('That team name is already taken', 409) from None

    current_app.logger.info(f"[join] game={game.id} team={team.id} name={team.name!r} status={game.status}")
    get_channel().team_changed(game.game_code, team, action='insert')
    return team


def reset_answered(game_id: int) -> List[Team]:
    """Clear every team's answered flag for a new question (no commit)."""
    teams = teams_for(game_id)
    for team in teams:
        if team.has_answered:
            team.has_answered = False
            db.session.add(team)
    return teams
