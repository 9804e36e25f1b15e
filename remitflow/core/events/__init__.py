"""In-process domain event system.

Order transitions and SLA alerts are published as immutable events; the
realtime notifier, the notification dispatcher and the audit log stream are
subscribers.
"""

from __future__ import annotations

__all__ = [
    "BaseEvent",
    "EventBus",
    "GlobalEventBus",
    "get_global_event_bus",
    "audit_log_listener",
    "event_to_dict",
    "register_default_listeners",
]

from .base import BaseEvent, EventBus, GlobalEventBus, get_global_event_bus
from .listeners import audit_log_listener, event_to_dict, register_default_listeners
