from oldheck.services.heck.session import GameSession
from oldheck.services.heck.timers import BackgroundScheduler, ManualScheduler


def make_scheduler(app):
    """Background tasks in production, a hand-cranked clock under TESTING."""
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return ManualScheduler(logger=app.logger)
    try:
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
    except Exception:
        hb = 0
    return BackgroundScheduler(heartbeat_sec=hb, logger=app.logger)


def open_session(app, game_id, scheduler=None, on_change=None, on_phase_change=None) -> GameSession:
    cfg = app.config
    session = GameSession(
        app.extensions['game_store'],
        game_id,
        scheduler or make_scheduler(app),
        bid_advance_delay=float(cfg.get('BID_ADVANCE_DELAY_SEC', 2.0)),
        auto_complete_delay=float(cfg.get('RESULTS_AUTO_COMPLETE_SEC', 1.5)),
        next_round_delay=float(cfg.get('NEXT_ROUND_DELAY_SEC', 0.5)),
        logger=app.logger,
        on_change=on_change,
        on_phase_change=on_phase_change,
    )
    return session.open()
