"""
Celery configuration for Networkk.

This module configures Celery for the engine's background work:
- Delivery of side effects (payments, emails, chat messages) after commit
- Periodic reconciliation, auto-settlement and offer expiry (Beat)
- Milestone batch repair for contracts created without milestones
"""

import os

from celery import Celery
from kombu import Exchange, Queue

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'networkk.settings')

app = Celery('networkk')

# namespace='CELERY' means all celery-related configuration keys
# should have a `CELERY_` prefix.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks()


# ==================== QUEUE CONFIGURATION ====================

default_exchange = Exchange('default', type='direct')
payments_exchange = Exchange('payments', type='direct')

app.conf.task_queues = (
    Queue('default', default_exchange, routing_key='default'),
    Queue('payments', payments_exchange, routing_key='payments'),
)

app.conf.task_default_queue = 'default'
app.conf.task_default_exchange = 'default'
app.conf.task_default_routing_key = 'default'


# ==================== TASK ROUTING ====================

app.conf.task_routes = {
    'milestones.tasks.*': {'queue': 'payments', 'routing_key': 'payments'},
    'integrations.tasks.*': {'queue': 'default', 'routing_key': 'default'},
    'contracts.tasks.*': {'queue': 'default', 'routing_key': 'default'},
    'proposals.tasks.*': {'queue': 'default', 'routing_key': 'default'},
}


# ==================== SERIALIZATION ====================

app.conf.task_serializer = 'json'
app.conf.result_serializer = 'json'
app.conf.accept_content = ['json']
app.conf.timezone = 'UTC'
app.conf.enable_utc = True


# ==================== TASK EXECUTION ====================

# Acknowledge after completion so a crashed worker's task is redelivered.
app.conf.task_acks_late = True
app.conf.task_reject_on_worker_lost = True
app.conf.worker_max_tasks_per_child = 1000


# ==================== BEAT SCHEDULE ====================

from networkk.celery_beat_schedule import CELERY_BEAT_SCHEDULE  # noqa: E402

app.conf.beat_schedule = CELERY_BEAT_SCHEDULE
