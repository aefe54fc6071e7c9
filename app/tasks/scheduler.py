"""
Scheduled tasks configuration for Celery Beat
"""

from celery.schedules import crontab
from app.celery_app import celery

# Configure periodic tasks
celery.conf.beat_schedule = {
    'distribute-prizes-hourly': {
        'task': 'app.tasks.contest_tasks.distribute_prizes_task',
        'schedule': crontab(minute=0),  # Run every hour
    },
    'ensure-daily-contests-hourly': {
        'task': 'app.tasks.contest_tasks.ensure_daily_contests_task',
        'schedule': crontab(minute=5),
    },
    'close-out-after-market': {
        'task': 'app.tasks.contest_tasks.distribute_prizes_task',
        'schedule': crontab(hour=15, minute=31, day_of_week='mon-fri'),
    },
}

# Market hours are expressed in exchange time
celery.conf.timezone = 'Asia/Kolkata'
