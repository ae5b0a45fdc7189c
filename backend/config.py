import os


def _flag(name, default='0'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///trivia.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = int(os.environ.get('BCRYPT_LOG_ROUNDS', '10'))
    CORS_ORIGINS = [o for o in os.environ.get('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',') if o]
    # Default game settings (hosts may override per game)
    QUESTION_TIME_SEC = int(os.environ.get('QUESTION_TIME_SEC', '20'))
    TOTAL_QUESTIONS = int(os.environ.get('TOTAL_QUESTIONS', '10'))
    READ_ALOUD_ENABLED = _flag('READ_ALOUD_ENABLED')
    READ_ALOUD_SEC = int(os.environ.get('READ_ALOUD_SEC', '7'))
    DEFAULT_SCORE_POLICY = os.environ.get('DEFAULT_SCORE_POLICY', 'speed_table')
    DEFAULT_QUESTION_SOURCE = os.environ.get('DEFAULT_QUESTION_SOURCE', 'bank')
    # Reveal timers (seconds): correct answer first, then ranked winners
    REVEAL_ANSWER_SEC = int(os.environ.get('REVEAL_ANSWER_SEC', '5'))
    REVEAL_WINNERS_SEC = int(os.environ.get('REVEAL_WINNERS_SEC', '5'))
    # Countdown tick for timer workers (sec)
    TIMER_TICK_SEC = float(os.environ.get('TIMER_TICK_SEC', '1'))
    # External question generator (OpenAI-compatible chat completions)
    QUESTION_API_URL = os.environ.get('QUESTION_API_URL', 'https://api.openai.com/v1/chat/completions')
    QUESTION_API_KEY = os.environ.get('QUESTION_API_KEY', '')
    QUESTION_MODEL = os.environ.get('QUESTION_MODEL', 'gpt-4o-mini')
    QUESTION_TOPIC = os.environ.get('QUESTION_TOPIC', 'Christmas')
    QUESTION_API_TIMEOUT_SEC = float(os.environ.get('QUESTION_API_TIMEOUT_SEC', '20'))
    QUESTION_AVOID_COUNT = int(os.environ.get('QUESTION_AVOID_COUNT', '30'))
    RECENT_QUESTIONS_KEEP = int(os.environ.get('RECENT_QUESTIONS_KEEP', '100'))
    QUESTION_FALLBACK_ENABLED = _flag('QUESTION_FALLBACK_ENABLED', '1')
    # Roster
    ALLOW_LATE_JOIN = _flag('ALLOW_LATE_JOIN', '1')
    # Pause the game when the last host socket goes away (sec)
    HOST_DISCONNECT_GRACE_SEC = float(os.environ.get('HOST_DISCONNECT_GRACE_SEC', '2'))
    # Optional: debounce host actions (ms). 0 disables.
    CONTROLLER_DEBOUNCE_MS = int(os.environ.get('CONTROLLER_DEBOUNCE_MS', '0'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    ENABLE_SCHEDULER_IN_TESTS = _flag('ENABLE_SCHEDULER_IN_TESTS')
