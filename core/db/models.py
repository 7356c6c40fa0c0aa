"""
Base Models for Networkk

This module provides abstract base model classes:
- TimestampedModel: created_at / updated_at bookkeeping
- VersionedModel: Optimistic locking through a version counter

Every mutating engine operation reads a versioned record, validates its
preconditions against that snapshot and then writes through
compare_and_swap(), which only succeeds if nobody else wrote in between.
"""

from django.db import models
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.db.exceptions import ConcurrentModificationError


class TimestampedModel(models.Model):
    """
    Abstract base class that adds timestamp fields.

    Provides:
    - created_at: Automatically set on creation
    - updated_at: Automatically updated on save
    """

    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text=_('Timestamp when record was created')
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text=_('Timestamp when record was last updated')
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']
        get_latest_by = 'created_at'


class VersionedModel(TimestampedModel):
    """
    Abstract model with an optimistic locking counter.

    Example:
        chain = NegotiationChain.objects.get(pk=chain_id)
        # ... validate against the snapshot ...
        chain.compare_and_swap(head=new_head)  # raises on a lost race
    """

    version = models.PositiveIntegerField(
        default=1,
        verbose_name=_('Version'),
        help_text=_('Record version for optimistic locking.')
    )

    class Meta:
        abstract = True

    def compare_and_swap(self, **changes):
        """
        Write ``changes`` only if the stored version still matches ours.

        Uses a single conditional UPDATE with an F() increment, so the
        check and the write cannot interleave with another writer.

        Raises:
            ConcurrentModificationError: If the record was modified by another
                process since it was read.
        """
        model_class = self.__class__
        expected_version = self.version
        changes.setdefault('updated_at', timezone.now())

        updated = model_class.objects.filter(
            pk=self.pk, version=expected_version
        ).update(version=F('version') + 1, **changes)

        if not updated:
            current_version = model_class.objects.filter(pk=self.pk).values_list(
                'version', flat=True
            ).first()
            raise ConcurrentModificationError(
                model_name=model_class.__name__,
                object_id=self.pk,
                expected_version=expected_version,
                actual_version=current_version
            )

        for field, value in changes.items():
            setattr(self, field, value)
        self.version = expected_version + 1
