"""Game domain services: scoring, session state, answers, roster and timers.

This package contains the game mechanics imported by HTTP routes and
socket handlers, keeping transport concerns separated from core game
rules. Only ``host`` and ``scheduler`` touch timers; ``state_machine`` and
``scoring`` are pure.
"""
