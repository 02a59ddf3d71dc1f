"""
Business logic services package.

This package contains the service layer components for PromoHub.

Services are imported on-demand to avoid circular import issues.
Individual services should be imported directly from their modules:
  from promohub.services.redemption_service import RedemptionService
  from promohub.services.alerting_service import alert_refusal
  etc.
"""

__all__ = [
    "AlertDispatcher",
    "AuditService",
    "RedemptionService",
    "RedemptionStore",
    "ReservationService",
]
