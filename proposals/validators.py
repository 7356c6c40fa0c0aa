"""
Proposal term validation.

normalize_milestones() and validate_terms() turn loosely typed caller input
(dicts from the API, service calls from other apps) into cleaned terms or
raise a ValidationError carrying a per-field ``errors`` dict.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.conf import settings

from core.db import MAX_MONEY, to_money
from core.exceptions import ValidationError

CURRENCY_RE = re.compile(r'^[A-Z]{3}$')


@dataclass(frozen=True)
class MilestoneTerms:
    position: int
    title: str
    amount_gross: Decimal
    duration_days: int


@dataclass(frozen=True)
class ProposalTerms:
    milestones: List[MilestoneTerms]
    total_gross: Decimal
    currency: str
    platform_fee_percent: Decimal


def _field(item, name, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def normalize_milestones(raw_milestones) -> List[MilestoneTerms]:
    """
    Clean a list of milestone mappings.

    Each item needs a non-empty ``title`` and an ``amount`` (or
    ``amount_gross``) above zero; ``duration_days`` defaults to 0 and
    ``position`` to the item's 1-based index.
    """
    if not raw_milestones:
        raise ValidationError(
            'At least one milestone is required.',
            errors={'milestones': ['At least one milestone is required.']},
        )

    errors: Dict[str, Any] = {}
    cleaned = []
    seen_positions = set()

    for index, item in enumerate(raw_milestones, start=1):
        item_errors = []

        title = (_field(item, 'title') or '').strip()
        if not title:
            item_errors.append('Title is required.')

        raw_amount = _field(item, 'amount_gross', _field(item, 'amount'))
        amount = None
        try:
            amount = to_money(raw_amount)
        except (InvalidOperation, TypeError, ValueError):
            item_errors.append('Amount must be a number.')
        else:
            if amount <= 0:
                item_errors.append('Amount must be greater than zero.')
            elif amount > MAX_MONEY:
                item_errors.append(f'Amount cannot exceed {MAX_MONEY}.')

        raw_duration = _field(item, 'duration_days', 0)
        duration = 0
        try:
            duration = int(raw_duration or 0)
        except (TypeError, ValueError):
            item_errors.append('Duration must be a whole number of days.')
        else:
            if duration < 0:
                item_errors.append('Duration cannot be negative.')

        raw_position = _field(item, 'position')
        position = index
        if raw_position not in (None, ''):
            try:
                position = int(raw_position)
            except (TypeError, ValueError):
                item_errors.append('Position must be a whole number.')
        if position < 1:
            item_errors.append('Position must be 1 or greater.')
        elif position in seen_positions:
            item_errors.append(f'Position {position} is used more than once.')
        seen_positions.add(position)

        if item_errors:
            errors[f'milestones[{index - 1}]'] = item_errors
            continue

        cleaned.append(MilestoneTerms(
            position=position,
            title=title[:255],
            amount_gross=amount,
            duration_days=duration,
        ))

    if errors:
        raise ValidationError('Invalid milestones.', errors=errors)

    return sorted(cleaned, key=lambda m: m.position)


def validate_terms(
    milestones,
    total=None,
    currency: Optional[str] = None,
    fee_percent=None,
) -> ProposalTerms:
    """
    Validate a full set of proposal terms.

    ``total`` may be omitted, in which case it is the milestone sum. When
    given it must match that sum within NETWORKK_AMOUNT_TOLERANCE.
    """
    cleaned = normalize_milestones(milestones)
    milestone_sum = sum((m.amount_gross for m in cleaned), Decimal('0.00'))

    if total in (None, ''):
        total_gross = milestone_sum
    else:
        try:
            total_gross = to_money(total)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(
                'Total must be a number.',
                errors={'total': ['Total must be a number.']},
            )
        tolerance = Decimal(str(getattr(settings, 'NETWORKK_AMOUNT_TOLERANCE', '0.01')))
        if abs(milestone_sum - total_gross) > tolerance:
            message = f'Milestones add up to {milestone_sum}, not the total of {total_gross}.'
            raise ValidationError(
                message,
                code='AMOUNT_MISMATCH',
                errors={'total': [message]},
                extra={'milestone_sum': str(milestone_sum), 'total': str(total_gross)},
            )

    if total_gross <= 0:
        raise ValidationError(
            'Total must be greater than zero.',
            errors={'total': ['Total must be greater than zero.']},
        )
    if total_gross > MAX_MONEY:
        raise ValidationError(
            f'Total cannot exceed {MAX_MONEY}.',
            errors={'total': [f'Total cannot exceed {MAX_MONEY}.']},
        )

    currency = (currency or settings.NETWORKK_DEFAULT_CURRENCY).strip().upper()
    if not CURRENCY_RE.match(currency):
        raise ValidationError(
            'Currency must be a 3-letter code.',
            errors={'currency': ['Currency must be a 3-letter code.']},
        )

    if fee_percent in (None, ''):
        fee_percent = settings.NETWORKK_DEFAULT_PLATFORM_FEE_PERCENT
    try:
        fee = Decimal(str(fee_percent)).quantize(Decimal('0.01'))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(
            'Platform fee must be a number.',
            errors={'fee_percent': ['Platform fee must be a number.']},
        )
    if fee < 0 or fee > 100:
        raise ValidationError(
            'Platform fee must be between 0 and 100 percent.',
            errors={'fee_percent': ['Platform fee must be between 0 and 100 percent.']},
        )

    return ProposalTerms(
        milestones=cleaned,
        total_gross=total_gross,
        currency=currency,
        platform_fee_percent=fee,
    )
