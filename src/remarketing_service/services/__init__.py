"""Business logic services."""

from remarketing_service.services.eligibility import FollowUpEligibilityEngine
from remarketing_service.services.ingestion import CartIngestionService
from remarketing_service.services.orchestrator import OutreachOrchestrator

__all__ = [
    "CartIngestionService",
    "FollowUpEligibilityEngine",
    "OutreachOrchestrator",
]
