from apscheduler.triggers.interval import IntervalTrigger

from .extensions import scheduler
from .guard import get_guard


def purge_expired_bans(app) -> list[str]:
    """Drop ban entries that have already expired, along with their failure counts."""
    with app.app_context():
        return get_guard().purge_expired()


def update_purge_schedule(app) -> None:
    """(Re)register the ban purge job according to app config."""
    minutes = int(app.config.get('BAN_PURGE_INTERVAL_MINUTES', 60))
    if minutes <= 0:
        if scheduler.get_job('ban_purge_job'):
            scheduler.remove_job('ban_purge_job')
        return
    scheduler.add_job(
        lambda: purge_expired_bans(app),
        IntervalTrigger(minutes=minutes),
        id='ban_purge_job',
        replace_existing=True,
    )


def schedule_tasks(app) -> None:
    """Register scheduled jobs at startup."""
    update_purge_schedule(app)
