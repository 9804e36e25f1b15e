"""RemitFlow - remittance order lifecycle engine.

Tracks money-transfer orders from creation through payment proof, administrator
validation, processing, delivery and completion, with settlement pricing,
service-level alerting and an append-only audit trail.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
