"""SLA alert scheduler.

Periodically scans orders in timed states and classifies how long they have
been waiting against their remittance type's thresholds:

    elapsed <  warning           -> ok (nothing emitted)
    warning <= elapsed < breach  -> warning
    elapsed >= breach            -> breach

Orders in ``processing`` are measured from ``processing_started_at`` against
the type's ``warning_days`` / ``max_delivery_days``. When an awaiting-proof SLA
is configured, orders in ``created`` / ``proof_uploaded`` are measured from
``created_at`` against the configured hours.

The scheduler only reads orders. Alerts are derived on every tick and
published as ``AlertRaised`` events; re-emission of the same severity for the
same order is suppressed within a dedup window.
"""

import asyncio
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ....core.events.base import GlobalEventBus, get_global_event_bus
from ....utils.config import Settings, get_settings
from ....utils.datetime import ensure_utc, utc_now
from ....utils.logging import LogPerformance, get_logger
from ...domain.enums import AlertSeverity, OrderStatus
from ...domain.events import AlertRaised
from ...domain.models import Order
from ...domain.value_objects import Alert
from ...infrastructure.repository import OrderRepository

logger = get_logger(__name__)

AWAITING_PROOF_STATUSES = (OrderStatus.CREATED, OrderStatus.PROOF_UPLOADED)


def classify_elapsed(
    elapsed: timedelta, warning: timedelta, breach: timedelta
) -> tuple[AlertSeverity, timedelta | None]:
    """Classify an elapsed time against warning and breach thresholds.

    Returns:
        (severity, crossed threshold); the threshold is None for ``ok``
    """
    if elapsed >= breach:
        return AlertSeverity.BREACH, breach
    if elapsed >= warning:
        return AlertSeverity.WARNING, warning
    return AlertSeverity.OK, None


class AlertScheduler:
    """Periodic SLA scan over the order store.

    Ticks never overlap: a tick that starts while another is still running
    returns immediately without scanning.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        event_bus: GlobalEventBus | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the scheduler.

        Args:
            session_factory: Returns a new session for each tick
            event_bus: Bus receiving AlertRaised (default: global bus)
            settings: Interval, dedup windows and awaiting-proof thresholds
            clock: Returns the current aware UTC time (default: utc_now)
        """
        self.session_factory = session_factory
        self.event_bus = event_bus or get_global_event_bus()
        self.settings = settings or get_settings()
        self.clock = clock or utc_now
        self.interval = self.settings.alert_interval_seconds

        self._tick_lock = threading.Lock()
        self._last_emitted: dict[tuple[int, AlertSeverity], datetime] = {}
        self._monitoring_task: asyncio.Task | None = None
        self._last_tick: datetime | None = None

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick

    @property
    def is_running(self) -> bool:
        return self._monitoring_task is not None and not self._monitoring_task.done()

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def run_tick(self, now: datetime | None = None) -> list[Alert]:
        """Scan once and publish the alerts that pass the dedup window.

        Returns:
            Alerts emitted by this tick (empty if skipped because another tick is running)
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("alert_tick_skipped", reason="previous tick still running")
            return []

        try:
            now = ensure_utc(now or self.clock())
            with LogPerformance("alert_tick", logger):
                alerts = self._scan(now)
            self._last_tick = now
            return alerts
        finally:
            self._tick_lock.release()

    def _scan(self, now: datetime) -> list[Alert]:
        session = self.session_factory()
        try:
            repository = OrderRepository(session)
            watched = [OrderStatus.PROCESSING]
            if self.settings.awaiting_proof_sla_enabled:
                watched.extend(AWAITING_PROOF_STATUSES)
            orders = repository.find_in_statuses(watched)

            candidates = [alert for order in orders if (alert := self.evaluate(order, now))]
            watched_ids = {order.id for order in orders}
        finally:
            session.close()

        self._prune(watched_ids)

        emitted = []
        for alert in candidates:
            if self._should_emit(alert, now):
                self._last_emitted[(alert.order_id, alert.severity)] = now
                self._publish(alert)
                emitted.append(alert)

        logger.info(
            "alert_tick_completed",
            orders_scanned=len(orders),
            alerts_found=len(candidates),
            alerts_emitted=len(emitted),
        )
        return emitted

    def evaluate(self, order: Order, now: datetime) -> Alert | None:
        """Classify one order; None when it is within its SLA."""
        thresholds = self._thresholds(order)
        if thresholds is None:
            return None

        anchor, warning, breach = thresholds
        elapsed = now - anchor
        severity, threshold = classify_elapsed(elapsed, warning, breach)
        if severity == AlertSeverity.OK:
            return None

        return Alert(
            order_id=order.id,
            order_number=order.order_number,
            owner_id=order.owner_id,
            status=order.status,
            severity=severity,
            elapsed=elapsed,
            threshold=threshold,
            generated_at=now,
        )

    def _thresholds(self, order: Order) -> tuple[datetime, timedelta, timedelta] | None:
        if order.status == OrderStatus.PROCESSING:
            if order.processing_started_at is None:
                logger.warning("processing_order_without_start_stamp", order_id=order.id)
                return None
            remittance_type = order.remittance_type
            return (
                order.processing_started_at,
                timedelta(days=remittance_type.warning_days),
                timedelta(days=remittance_type.max_delivery_days),
            )

        if order.status in AWAITING_PROOF_STATUSES and self.settings.awaiting_proof_sla_enabled:
            return (
                order.created_at,
                timedelta(hours=self.settings.awaiting_proof_warning_hours),
                timedelta(hours=self.settings.awaiting_proof_breach_hours),
            )

        return None

    def _should_emit(self, alert: Alert, now: datetime) -> bool:
        last = self._last_emitted.get((alert.order_id, alert.severity))
        if last is None:
            return True
        window = (
            self.settings.breach_dedup_window
            if alert.severity == AlertSeverity.BREACH
            else self.settings.warning_dedup_window
        )
        return now - last >= window

    def _prune(self, watched_order_ids: set[int]) -> None:
        """Forget dedup keys of orders that left the watched states."""
        for key in [k for k in self._last_emitted if k[0] not in watched_order_ids]:
            del self._last_emitted[key]

    def _publish(self, alert: Alert) -> None:
        log = logger.warning if alert.severity == AlertSeverity.BREACH else logger.info
        log(
            "alert_raised",
            order_id=alert.order_id,
            order_number=alert.order_number,
            status=alert.status.value,
            severity=alert.severity.value,
            elapsed_hours=alert.elapsed_hours,
        )
        self.event_bus.publish(
            AlertRaised(
                order_id=alert.order_id,
                order_number=alert.order_number,
                owner_id=alert.owner_id,
                status=alert.status,
                severity=alert.severity,
                elapsed=alert.elapsed,
                threshold=alert.threshold,
            )
        )

    # ------------------------------------------------------------------
    # Monitoring loop
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start periodic scanning in the running event loop."""
        if self.is_running:
            return  # Already running

        self._monitoring_task = asyncio.create_task(self._monitor_loop())
        logger.info("alert_scheduler_started", interval_seconds=self.interval)

    async def stop(self) -> None:
        """Stop periodic scanning, waiting for the loop to exit."""
        if self._monitoring_task:
            self._monitoring_task.cancel()
            try:
                await self._monitoring_task
            except asyncio.CancelledError:
                pass
            self._monitoring_task = None
            logger.info("alert_scheduler_stopped")

    async def _monitor_loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.run_tick)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(
                    "alert_tick_failed", error=str(e), error_type=type(e).__name__, exc_info=True
                )
            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
