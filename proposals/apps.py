"""
Proposals app configuration.

This app owns the proposal ledger and the negotiation state machine:
- Negotiation chains (one thread per job/client/freelancer tuple)
- Proposal revisions linked by root and supersedes pointers
- Accept / confirm / counter / reject / cancel / withdraw actions
"""

from django.apps import AppConfig


class ProposalsConfig(AppConfig):
    """Configuration for the proposals app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'proposals'
    verbose_name = 'Proposals & Negotiation'
