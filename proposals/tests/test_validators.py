"""
Tests for proposal term validation.
"""

from decimal import Decimal

import pytest
from django.test import override_settings

from core.exceptions import ValidationError
from proposals.validators import normalize_milestones, validate_terms


class TestNormalizeMilestones:

    def test_defaults_and_ordering(self):
        cleaned = normalize_milestones([
            {'title': ' Build ', 'amount': '3,000', 'position': 2},
            {'title': 'Design', 'amount_gross': 2000, 'position': 1, 'duration_days': '5'},
        ])

        assert [m.title for m in cleaned] == ['Design', 'Build']
        assert cleaned[0].amount_gross == Decimal('2000.00')
        assert cleaned[0].duration_days == 5
        assert cleaned[1].amount_gross == Decimal('3000.00')
        assert cleaned[1].duration_days == 0

    def test_position_defaults_to_index(self):
        cleaned = normalize_milestones([
            {'title': 'A', 'amount': 1},
            {'title': 'B', 'amount': 1},
        ])
        assert [m.position for m in cleaned] == [1, 2]

    def test_empty_list(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_milestones([])
        assert 'milestones' in exc_info.value.errors

    def test_errors_are_reported_per_item(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_milestones([
                {'title': 'Fine', 'amount': 10},
                {'title': '', 'amount': 0},
                {'title': 'Late', 'amount': 'abc', 'duration_days': -1},
            ])

        errors = exc_info.value.errors
        assert 'milestones[0]' not in errors
        assert errors['milestones[1]'] == ['Title is required.', 'Amount must be greater than zero.']
        assert 'Amount must be a number.' in errors['milestones[2]']
        assert 'Duration cannot be negative.' in errors['milestones[2]']

    def test_duplicate_positions(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_milestones([
                {'title': 'A', 'amount': 1, 'position': 1},
                {'title': 'B', 'amount': 1, 'position': 1},
            ])
        assert exc_info.value.errors['milestones[1]'] == ['Position 1 is used more than once.']


class TestValidateTerms:

    MILESTONES = [
        {'title': 'Design', 'amount': '2000'},
        {'title': 'Build', 'amount': '3000'},
    ]

    def test_total_matches_sum(self):
        terms = validate_terms(self.MILESTONES, total='5000', currency='usd', fee_percent='12.5')

        assert terms.total_gross == Decimal('5000.00')
        assert terms.currency == 'USD'
        assert terms.platform_fee_percent == Decimal('12.50')

    def test_total_defaults_to_sum(self):
        assert validate_terms(self.MILESTONES).total_gross == Decimal('5000.00')

    def test_within_tolerance(self):
        assert validate_terms(self.MILESTONES, total='5000.01').total_gross == Decimal('5000.01')

    def test_mismatch(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(self.MILESTONES, total='4999.98')

        assert exc_info.value.code == 'AMOUNT_MISMATCH'
        assert exc_info.value.extra == {'milestone_sum': '5000.00', 'total': '4999.98'}

    @override_settings(NETWORKK_AMOUNT_TOLERANCE='1.00')
    def test_tolerance_is_configurable(self):
        assert validate_terms(self.MILESTONES, total='4999.50').total_gross == Decimal('4999.50')

    @override_settings(NETWORKK_DEFAULT_CURRENCY='EGP', NETWORKK_DEFAULT_PLATFORM_FEE_PERCENT='10')
    def test_defaults(self):
        terms = validate_terms(self.MILESTONES)
        assert terms.currency == 'EGP'
        assert terms.platform_fee_percent == Decimal('10.00')

    @pytest.mark.parametrize('currency', ['EURO', 'E1', '$$$'])
    def test_bad_currency(self, currency):
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(self.MILESTONES, currency=currency)
        assert 'currency' in exc_info.value.errors

    @pytest.mark.parametrize('fee', ['-1', '100.01', 'ten'])
    def test_bad_fee(self, fee):
        """Out-of-range fees are rejected, not clamped."""
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(self.MILESTONES, fee_percent=fee)
        assert 'fee_percent' in exc_info.value.errors

    def test_bad_total(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(self.MILESTONES, total='lots')
        assert 'total' in exc_info.value.errors

    def test_amount_above_storage_limit(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_milestones([{'title': 'Huge', 'amount': '99999999999999.99'}])
        assert exc_info.value.errors['milestones[0]'] == ['Amount cannot exceed 9999999999.99.']

    def test_largest_storable_amount(self):
        terms = validate_terms([{'title': 'Max', 'amount': '9999999999.99'}])
        assert terms.total_gross == Decimal('9999999999.99')

    def test_total_above_storage_limit(self):
        """Milestones that each fit can still add up past the limit."""
        milestones = [
            {'title': 'A', 'amount': '9999999999.99'},
            {'title': 'B', 'amount': '1.00'},
        ]
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(milestones)
        assert 'total' in exc_info.value.errors
