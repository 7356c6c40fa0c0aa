"""
API URLs - REST API routing with Django REST Framework Router
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from contracts.api.viewsets import ContractViewSet
from milestones.api.viewsets import MilestoneViewSet
from proposals.api.viewsets import ProposalViewSet

# Create router and register viewsets
router = DefaultRouter()

router.register(r'proposals', ProposalViewSet, basename='proposal')
router.register(r'contracts', ContractViewSet, basename='contract')
router.register(r'milestones', MilestoneViewSet, basename='milestone')

app_name = 'api'

urlpatterns = [
    path('', include(router.urls)),
]

"""
API Endpoints Available (mounted under /api/v1/):

Proposals:
- GET/POST /proposals/ - List own proposals / make an offer
- GET /proposals/{id}/ - Proposal detail
- GET /proposals/latest/ - Current offer of a conversation or job/party tuple
- POST /proposals/{id}/respond/ - accept | confirm | reject | cancel | withdraw
- POST /proposals/{id}/counter/ - Counter-offer

Contracts:
- GET /contracts/, /contracts/{id}/ - Contract reads
- GET /contracts/by-job/?job_id= - Contract locking a job
- POST /contracts/{id}/sync-milestones/ - Rebuild missing milestones

Milestones:
- GET /milestones/{id}/ - Milestone with submissions
- POST /milestones/{id}/submit/ - Submit work
- POST /milestones/{id}/decide/ - Approve or reject the latest submission
- POST /milestones/auto-settle/ - Staff-only auto-settlement run
"""
