"""Application services for the remittance lifecycle."""

from .alert_scheduler import AlertScheduler, classify_elapsed
from .audit import AuditTrail, replay
from .order_service import OrderLifecycleService
from .settlement import compute_settlement, quote, validate_amount
from .stats import compute_stats, order_stats
from .type_service import RemittanceTypeInput, RemittanceTypeService

__all__ = [
    # Lifecycle
    "OrderLifecycleService",
    "AuditTrail",
    "replay",
    # Pricing
    "compute_settlement",
    "quote",
    "validate_amount",
    # SLA monitoring
    "AlertScheduler",
    "classify_elapsed",
    # Configuration
    "RemittanceTypeService",
    "RemittanceTypeInput",
    # Reporting
    "compute_stats",
    "order_stats",
]
