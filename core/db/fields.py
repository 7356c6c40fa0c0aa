"""
Custom Model Fields for Networkk

- MoneyField: Fixed two-decimal DecimalField for monetary values
- to_money / net_of_fee: Cent-precision arithmetic helpers
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

CENT = Decimal('0.01')

# Largest amount a default MoneyField (12 digits, 2 decimal places) can store.
MAX_MONEY = Decimal('9999999999.99')


def to_money(value: Union[Decimal, float, int, str, None]) -> Decimal:
    """
    Coerce ``value`` to a Decimal rounded half-up to cents.

    Strings may carry thousands separators ("5,000.50").

    Raises:
        InvalidOperation: If the value is not numeric.
    """
    if value is None:
        raise InvalidOperation('Monetary value is required')
    if isinstance(value, float):
        value = repr(value)
    if isinstance(value, str):
        value = value.replace(',', '').strip()
    amount = Decimal(value)
    if not amount.is_finite():
        raise InvalidOperation(f'{value} is not a finite amount')
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def net_of_fee(gross: Decimal, fee_percent: Decimal) -> Decimal:
    """Return ``gross`` minus the platform fee, rounded to cents."""
    fee_percent = min(max(Decimal(fee_percent), Decimal('0')), Decimal('100'))
    return to_money(Decimal(gross) * (Decimal('1') - fee_percent / Decimal('100')))


class MoneyField(models.DecimalField):
    """
    DecimalField optimized for monetary values.

    Provides:
    - Fixed precision (2 decimal places by default)
    - Validation for non-negative amounts

    Example:
        class Contract(models.Model):
            fees_total = MoneyField()
            currency = models.CharField(max_length=3, default='EGP')
    """

    description = _('Monetary value field')

    def __init__(
        self,
        max_digits: int = 12,
        decimal_places: int = 2,
        allow_negative: bool = False,
        *args,
        **kwargs
    ):
        self.allow_negative = allow_negative
        kwargs['max_digits'] = max_digits
        kwargs['decimal_places'] = decimal_places
        super().__init__(*args, **kwargs)

    def deconstruct(self):
        """Return field deconstruction for migrations."""
        name, path, args, kwargs = super().deconstruct()
        if self.allow_negative:
            kwargs['allow_negative'] = True
        return name, path, args, kwargs

    def validate(self, value: Any, model_instance: Any):
        """Validate the monetary value."""
        super().validate(value, model_instance)

        if value is not None and not self.allow_negative and value < 0:
            raise ValidationError(
                _('%(value)s is not a valid monetary amount. Negative values are not allowed.'),
                params={'value': value},
                code='negative_money'
            )

    def to_python(self, value: Any) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        try:
            return to_money(value)
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(
                _('%(value)s is not a valid monetary amount.'),
                params={'value': value},
                code='invalid_money'
            )
