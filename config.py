import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///oldheck.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Turn and round pacing timers (seconds)
    BID_ADVANCE_DELAY_SEC = float(os.environ.get('BID_ADVANCE_DELAY_SEC', '2.0'))
    RESULTS_AUTO_COMPLETE_SEC = float(os.environ.get('RESULTS_AUTO_COMPLETE_SEC', '1.5'))
    NEXT_ROUND_DELAY_SEC = float(os.environ.get('NEXT_ROUND_DELAY_SEC', '0.5'))
    # Table limits
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_DECKS = int(os.environ.get('MAX_DECKS', '4'))
    DEFAULT_DECKS = int(os.environ.get('DEFAULT_DECKS', '1'))
    # Where claimed share links are remembered on this machine
    SHARE_SESSION_DIR = os.environ.get('SHARE_SESSION_DIR') or os.path.join(os.path.expanduser('~'), '.oldheck', 'share_sessions')
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
