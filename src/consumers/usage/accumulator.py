"""
Folding of raw telemetry into cumulative usage statistics.

Pure computation: no I/O, no clock. ``compute_batch_delta`` turns one
equipment's unprocessed events into increments, ``merge`` adds those
increments to the stored totals and recomputes every derived metric.
"""

from dataclasses import replace

from src.telemetry.models import (
    DiagnosticCode,
    EngineState,
    EngineStatus,
    EngineTemp,
    FuelLevel,
    HydraulicPressure,
    Location,
    PayloadCycle,
    Severity,
    TelemetryRecord,
    UsageStatistics,
)

from .models import BatchDelta, UsageConfig


def compute_batch_delta(events: list[TelemetryRecord], config: UsageConfig) -> BatchDelta:
    """Compute the increments contributed by one equipment's events

    Args:
        events: Unprocessed events of a single equipment unit
        config: Sampling weight, fuel rate and counter thresholds

    Returns:
        BatchDelta with every field >= 0
    """
    engine_hours = 0.0
    idle_hours = 0.0
    payload_moved = 0.0
    cycle_time = 0.0
    cycle_count = 0
    temp_alerts = 0
    fuel_drops = 0
    diagnostic_errors = 0
    malformed = 0

    last_fuel_level: float | None = None

    for event in sorted(events, key=lambda e: e.timestamp):
        payload = event.payload

        if payload is None:
            malformed += 1
        elif isinstance(payload, EngineStatus):
            # IDLE time is engine time as well; it is also tracked separately
            if payload.status in (EngineState.RUNNING, EngineState.IDLE):
                engine_hours += config.hours_per_record
            if payload.status is EngineState.IDLE:
                idle_hours += config.hours_per_record
        elif isinstance(payload, PayloadCycle):
            if payload.payload_tonnes < 0 or payload.cycle_time_seconds < 0:
                malformed += 1
                continue
            payload_moved += payload.payload_tonnes
            cycle_time += payload.cycle_time_seconds
            cycle_count += 1
        elif isinstance(payload, FuelLevel):
            if (
                last_fuel_level is not None
                and last_fuel_level - payload.level > config.fuel_drop_alert_threshold
            ):
                fuel_drops += 1
            last_fuel_level = payload.level
        elif isinstance(payload, EngineTemp):
            if payload.temp > config.engine_temp_alert_threshold:
                temp_alerts += 1
        elif isinstance(payload, DiagnosticCode):
            if payload.severity is Severity.HIGH:
                diagnostic_errors += 1
        elif isinstance(payload, (Location, HydraulicPressure)):
            pass
        else:
            raise TypeError(f"Unhandled payload type: {type(payload).__name__}")

    return BatchDelta(
        engine_hours=engine_hours,
        idle_hours=idle_hours,
        # Estimated from engine time, not from FUEL_LEVEL readings
        fuel_consumed=engine_hours * config.fuel_rate_per_hour,
        payload_moved_tonnes=payload_moved,
        cycle_time_seconds=cycle_time,
        cycle_count=cycle_count,
        high_engine_temp_alerts=temp_alerts,
        sudden_fuel_drops=fuel_drops,
        diagnostic_errors=diagnostic_errors,
        malformed_records=malformed,
    )


def derive_metrics(stats: UsageStatistics) -> UsageStatistics:
    """Return a copy of ``stats`` with the derived fields recomputed from the totals"""
    working_hours = stats.total_engine_hours - stats.total_idle_hours

    if stats.total_engine_hours > 0:
        ratio = working_hours / stats.total_engine_hours * 100
    else:
        ratio = 0.0

    burn_rate = stats.fuel_consumed / working_hours if working_hours > 0 else 0.0

    if stats.cycle_count > 0:
        avg_cycle = stats.total_cycle_time_seconds / stats.cycle_count
    else:
        avg_cycle = 0.0

    return replace(
        stats,
        working_hours=working_hours,
        working_to_idle_ratio=ratio,
        fuel_burn_rate=burn_rate,
        avg_cycle_time_seconds=avg_cycle,
    )


def merge(existing: UsageStatistics | None, delta: BatchDelta, line_item_id: str) -> UsageStatistics:
    """Add a batch delta to the current statistics of a contract line

    Args:
        existing: Stored statistics, or None before the first aggregation
        delta: Increments from compute_batch_delta
        line_item_id: Contract line the statistics belong to

    Returns:
        New UsageStatistics; ``existing`` is left untouched
    """
    base = existing if existing is not None else UsageStatistics(line_item_id=line_item_id)

    totals = replace(
        base,
        total_engine_hours=base.total_engine_hours + delta.engine_hours,
        total_idle_hours=base.total_idle_hours + delta.idle_hours,
        fuel_consumed=base.fuel_consumed + delta.fuel_consumed,
        payload_moved_tonnes=base.payload_moved_tonnes + delta.payload_moved_tonnes,
        total_cycle_time_seconds=base.total_cycle_time_seconds + delta.cycle_time_seconds,
        cycle_count=base.cycle_count + delta.cycle_count,
        high_engine_temp_alerts=base.high_engine_temp_alerts + delta.high_engine_temp_alerts,
        sudden_fuel_drops=base.sudden_fuel_drops + delta.sudden_fuel_drops,
        diagnostic_errors=base.diagnostic_errors + delta.diagnostic_errors,
        version=base.version + 1,
    )
    return derive_metrics(totals)
