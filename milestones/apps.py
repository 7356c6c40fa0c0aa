"""
Milestones app configuration.

This app governs the delivery and payout of a contract's milestones:
- Versioned submissions by the freelancer
- Approval (release) or rejection by the client
- Escrow holds, payouts and wallets
- Periodic auto-settlement of overdue milestones
"""

from django.apps import AppConfig


class MilestonesConfig(AppConfig):
    """Configuration for the milestones app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'milestones'
    verbose_name = 'Milestone Settlement'
