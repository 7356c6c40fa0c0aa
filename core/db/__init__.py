"""
Core Database Components

This package provides reusable database components for Networkk:
- models: Timestamped and versioned (optimistic locking) base models
- fields: Money field with cent precision
- concurrency: Transparent retry of optimistic-concurrency losses
- exceptions: Compare-and-swap failure
"""

from core.db.exceptions import ConcurrentModificationError
from core.db.fields import MAX_MONEY, MoneyField, to_money, net_of_fee
from core.db.models import TimestampedModel, VersionedModel
from core.db.concurrency import retry_on_conflict

__all__ = [
    'ConcurrentModificationError',
    'MAX_MONEY',
    'MoneyField',
    'to_money',
    'net_of_fee',
    'TimestampedModel',
    'VersionedModel',
    'retry_on_conflict',
]
