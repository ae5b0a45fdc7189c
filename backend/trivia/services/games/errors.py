class GameRuleError(Exception):
    """A request broke a game rule; reported back to the caller as-is."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class RosterError(GameRuleError):
    pass


class SettingsError(GameRuleError):
    pass


class TransitionError(GameRuleError):
    status_code = 409


class QuestionSourceError(RuntimeError):
    """The external question source failed or returned something unusable."""
