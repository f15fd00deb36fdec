"""
Fund Ledger - Celery Configuration

Celery configuration for background task processing.
Uses Redis as the message broker and result backend.
"""

from celery import Celery
from celery.schedules import crontab

from fundledger.config import settings


# Create Celery app
celery_app = Celery(
    'fund_ledger',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['fundledger.tasks.celery_tasks'],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone
    timezone=settings.celery_timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,  # 10 minutes
    task_soft_time_limit=540,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=86400,  # 24 hours

    # Beat schedule for periodic tasks
    beat_schedule={
        # Materialise due recurring expenses once a day
        'process-recurring-payments': {
            'task': 'fundledger.tasks.celery_tasks.process_recurring_payments_task',
            'schedule': crontab(hour=settings.recurring_run_hour, minute=settings.recurring_run_minute),
        },

        # Compare stored balances with the ledger every night
        'check-fund-consistency': {
            'task': 'fundledger.tasks.celery_tasks.check_fund_consistency_task',
            'schedule': crontab(hour=2, minute=0),
        },
    },
)


celery_app.conf.task_routes = {
    'fundledger.tasks.celery_tasks.*': {'queue': 'default'},
}
