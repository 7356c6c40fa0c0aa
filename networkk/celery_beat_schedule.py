"""
Celery Beat Schedule Configuration for Networkk

Schedule Format:
- crontab(minute, hour, day_of_week, day_of_month, month_of_year)
- timedelta for interval-based schedules
"""

from datetime import timedelta

from celery.schedules import crontab


CELERY_BEAT_SCHEDULE = {
    # ==========================================================================
    # SIDE EFFECTS
    # ==========================================================================

    'reconcile-side-effects': {
        'task': 'integrations.tasks.reconcile_side_effects',
        'schedule': timedelta(minutes=5),
        'options': {'queue': 'default'},
        'description': 'Retry undelivered payment, email and chat side effects',
    },

    # ==========================================================================
    # SETTLEMENT & NEGOTIATION (Hourly)
    # ==========================================================================

    'auto-settle-milestones-hourly': {
        'task': 'milestones.tasks.auto_settle_milestones',
        'schedule': crontab(minute=15),
        'options': {'queue': 'payments'},
        'description': 'Release or refund held escrow payments that are due',
    },

    'expire-stale-proposals-hourly': {
        'task': 'proposals.tasks.expire_stale_proposals',
        'schedule': crontab(minute=0),
        'options': {'queue': 'default'},
        'description': 'Cancel open offers past their valid_until',
    },
}
