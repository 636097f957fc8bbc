"""Per-device alert state machine.

Tracks a debounced soap condition and an instantaneous tissue condition,
folds them into an incident lifecycle (new, bounded reminders, recovery),
and decides when a routine history write is due.

The transition function is pure: it takes the previous state, this tick's
conditions and the current time, and returns the next state together with
the events to emit. TelemetryEngine owns the state registry and the lock.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from restroom.lib.config import (
    SOAP_DEBOUNCE_MS,
    Condition,
    EngineConfig,
    EventKind,
    IncidentState,
    SoapState,
)
from restroom.lib.sensors import any_soap_empty, any_tissue_empty
from restroom.lib.snapshots import DeviceSnapshot
from restroom.logging import device_logger, get_logger

logger = get_logger("lib.alerts")


@dataclass(frozen=True, slots=True)
class Conditions:
    """Raw (undebounced) conditions observed on one tick."""

    soap_empty: bool = False
    tissue_empty: bool = False


@dataclass(frozen=True, slots=True)
class AlertEvent:
    """An incident or routine event for one device."""

    kind: EventKind
    device_id: str
    conditions: tuple[Condition, ...]
    occurred_at: int  # epoch ms


@dataclass(frozen=True, slots=True)
class DeviceAlertState:
    """Alert bookkeeping for one device.

    Invariants: recovery_sent is False while alerting; soap_pending_since is
    0 unless soap is PENDING; last_persisted_at is None until the first
    successful history write.
    """

    device_id: str
    soap: SoapState = SoapState.SAFE
    soap_pending_since: int = 0
    incident: IncidentState = IncidentState.IDLE
    alert_started_at: int = 0
    last_alert_sent_at: int = 0
    reminders_sent: int = 0
    recovery_sent: bool = True
    last_persisted_at: int | None = None
    persist_in_flight: bool = False

    @property
    def is_alerting(self) -> bool:
        return self.incident == IncidentState.ALERTING


def evaluate_conditions(
    snapshot: DeviceSnapshot, config: EngineConfig
) -> Conditions:
    """Compute this tick's conditions from a snapshot's payloads."""
    return Conditions(
        soap_empty=any_soap_empty(snapshot.soap, snapshot.device_id, config),
        tissue_empty=any_tissue_empty(
            snapshot.tissue, snapshot.device_id, config
        ),
    )


def _next_soap(
    state: DeviceAlertState, soap_empty: bool, now: int
) -> tuple[SoapState, int]:
    if not soap_empty:
        return SoapState.SAFE, 0
    if state.soap == SoapState.SAFE:
        return SoapState.PENDING, now
    if state.soap == SoapState.PENDING:
        if now - state.soap_pending_since >= SOAP_DEBOUNCE_MS:
            return SoapState.CRITICAL, 0
        return SoapState.PENDING, state.soap_pending_since
    return SoapState.CRITICAL, 0


def active_conditions(
    soap: SoapState, tissue_empty: bool
) -> tuple[Condition, ...]:
    """Confirmed conditions, in display order."""
    active: list[Condition] = []
    if soap == SoapState.CRITICAL:
        active.append(Condition.SOAP_EMPTY)
    if tissue_empty:
        active.append(Condition.TISSUE_EMPTY)
    return tuple(active)


def reminder_due(
    state: DeviceAlertState, now: int, config: EngineConfig
) -> bool:
    """Check whether an open incident should get another reminder.

    Reminders are spaced by the reminder interval, capped at max_reminders
    per incident, and only sent inside the escalation window that starts
    with the incident.
    """
    if config.max_reminders <= 0:
        return False
    if state.reminders_sent >= config.max_reminders:
        return False
    if now - state.last_alert_sent_at < config.reminder_interval_ms:
        return False
    return now - state.alert_started_at <= config.max_alert_duration_ms


def transition(
    prev: DeviceAlertState,
    conditions: Conditions,
    now: int,
    config: EngineConfig,
) -> tuple[DeviceAlertState, list[AlertEvent]]:
    """Advance a device's alert state by one tick.

    Returns:
        Tuple of (next state, events to emit in order).
    """
    log = device_logger(logger, prev.device_id)
    soap, soap_pending_since = _next_soap(prev, conditions.soap_empty, now)
    if soap != prev.soap:
        log.debug("soap %s -> %s", prev.soap, soap)
    active = active_conditions(soap, conditions.tissue_empty)
    state = replace(prev, soap=soap, soap_pending_since=soap_pending_since)
    events: list[AlertEvent] = []

    if active and not prev.is_alerting:
        state = replace(
            state,
            incident=IncidentState.ALERTING,
            alert_started_at=now,
            last_alert_sent_at=now,
            reminders_sent=0,
            recovery_sent=False,
        )
        events.append(AlertEvent(EventKind.NEW, prev.device_id, active, now))
        log.info("incident opened: %s", ", ".join(active))
    elif active:
        if reminder_due(prev, now, config):
            state = replace(
                state,
                last_alert_sent_at=now,
                reminders_sent=prev.reminders_sent + 1,
            )
            events.append(
                AlertEvent(EventKind.REMINDER, prev.device_id, active, now)
            )
            log.info(
                "reminder %d/%d: %s",
                state.reminders_sent,
                config.max_reminders,
                ", ".join(active),
            )
    elif prev.is_alerting:
        state = replace(
            state,
            incident=IncidentState.IDLE,
            alert_started_at=0,
            last_alert_sent_at=0,
            reminders_sent=0,
            recovery_sent=True,
        )
        if not prev.recovery_sent:
            events.append(
                AlertEvent(EventKind.RECOVERY, prev.device_id, (), now)
            )
            log.info("incident resolved")

    return state, events


def routine_due(
    state: DeviceAlertState, now: int, config: EngineConfig
) -> bool:
    """Check whether a routine history write should be issued."""
    if state.persist_in_flight:
        return False
    if state.last_persisted_at is None:
        return True
    return now - state.last_persisted_at >= config.historical_interval_ms
