"""
Contracts app configuration.

This app turns a mutually confirmed proposal into a binding contract,
exactly once, and keeps at most one live contract per job.
"""

from django.apps import AppConfig


class ContractsConfig(AppConfig):
    """Configuration for the contracts app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'contracts'
    verbose_name = 'Contracts'
