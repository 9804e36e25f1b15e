"""Default event listeners."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import structlog

from .base import BaseEvent, GlobalEventBus, get_global_event_bus

logger = structlog.get_logger("event_listeners")


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID | Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def event_to_dict(event: BaseEvent) -> dict[str, Any]:
    """Serialize an event into JSON-compatible primitives."""
    return {key: _jsonable(value) for key, value in asdict(event).items()}


def audit_log_listener(event: BaseEvent) -> None:
    """Write every event to the structured log stream."""
    logger.info(
        "domain_event",
        event_type=event.__class__.__name__,
        **event_to_dict(event),
    )


def register_default_listeners(event_bus: GlobalEventBus | None = None) -> None:
    """Register the audit log listener on the bus (idempotent)."""
    event_bus = event_bus or get_global_event_bus()

    if not event_bus.is_subscribed(BaseEvent, audit_log_listener):
        event_bus.subscribe(BaseEvent, audit_log_listener, priority=-100)
        logger.info("default_listeners_registered", listeners=["audit_log_listener"])
