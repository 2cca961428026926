"""
CLI for the batch anomaly detection job.

Usage:
    python -m src.consumers.anomaly.detect [options]
"""

import argparse
import logging
import os
import sys
import time

import structlog

from src.core.logger import setup_logging
from src.core.schema import ensure_schema

from .detector import AnomalyDetector
from .models import AnomalyConfig, AnomalyType, DetectionReport

logger = structlog.get_logger(__name__)


def parse_arguments(argv: list[str] | None = None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Detect operational anomalies from usage statistics and recent telemetry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Run once
        python -m src.consumers.anomaly.detect

        # Run every hour with a 2 hour look-back
        python -m src.consumers.anomaly.detect --schedule 60 --lookback-minutes 120

        # Only geofence and fuel checks
        python -m src.consumers.anomaly.detect --rules GEOFENCE_BREACH SUDDEN_FUEL_DROP
        """,
    )

    # Rule configuration
    parser.add_argument(
        "--rules",
        nargs="+",
        choices=[t.value for t in AnomalyType],
        help="Rules to evaluate (default: all)",
    )
    parser.add_argument(
        "--lookback-minutes",
        type=int,
        default=int(os.getenv("LOOKBACK_MINUTES", "60")),
        help="Recent event window used by event-based rules (default: 60)",
    )
    parser.add_argument(
        "--site-timezone",
        default=os.getenv("SITE_TIMEZONE", "Asia/Kolkata"),
        help="Timezone for after-hours checks (default: Asia/Kolkata)",
    )
    parser.add_argument(
        "--max-engine-temp",
        type=float,
        default=102.0,
        help="Engine temperature threshold (default: 102)",
    )
    parser.add_argument(
        "--max-fuel-drop",
        type=float,
        default=15.0,
        help="Fuel drop between consecutive readings that counts as sudden (default: 15)",
    )
    parser.add_argument(
        "--maintenance-interval",
        type=float,
        default=250.0,
        help="Engine hours between services (default: 250)",
    )

    # PostgreSQL settings
    parser.add_argument(
        "--postgres-host",
        default=os.getenv("POSTGRES_HOST", "localhost"),
        help="PostgreSQL host",
    )
    parser.add_argument(
        "--postgres-port",
        type=int,
        default=int(os.getenv("POSTGRES_PORT", "5432")),
        help="PostgreSQL port",
    )
    parser.add_argument(
        "--postgres-db",
        default=os.getenv("POSTGRES_DB", "fleet_db"),
        help="PostgreSQL database",
    )
    parser.add_argument(
        "--postgres-user",
        default=os.getenv("POSTGRES_USER", "fleet"),
        help="PostgreSQL user",
    )
    parser.add_argument(
        "--postgres-password",
        default=os.getenv("POSTGRES_PASSWORD", "fleet_password"),
        help="PostgreSQL password",
    )
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create the telemetry tables if they don't exist",
    )

    # Scheduling
    parser.add_argument(
        "--schedule",
        type=int,
        help="Run detection periodically every N minutes (default: run once)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit one JSON object per log line",
    )

    return parser.parse_args(argv)


def build_config(args) -> AnomalyConfig:
    """Build configuration from arguments"""
    config = AnomalyConfig(
        lookback_minutes=args.lookback_minutes,
        site_timezone=args.site_timezone,
        max_engine_temp=args.max_engine_temp,
        max_fuel_drop=args.max_fuel_drop,
        maintenance_interval_hours=args.maintenance_interval,
        postgres_host=args.postgres_host,
        postgres_port=args.postgres_port,
        postgres_database=args.postgres_db,
        postgres_user=args.postgres_user,
        postgres_password=args.postgres_password,
    )
    if args.rules:
        config.enabled_rules = [AnomalyType(r) for r in args.rules]
    return config


def run_anomaly_detection(config: AnomalyConfig) -> DetectionReport:
    """Run detection once on a fresh connection"""
    detector = AnomalyDetector(config)
    try:
        return detector.run()
    finally:
        detector.db.close()


def detect_scheduled(config: AnomalyConfig, interval_minutes: int):
    """Run detection on a schedule"""
    logger.info("Starting scheduled detection", interval_minutes=interval_minutes)

    iteration = 0
    while True:
        iteration += 1
        logger.info("Starting detection iteration", iteration=iteration)

        try:
            report = run_anomaly_detection(config)
            logger.info(
                "Detection iteration completed", iteration=iteration, report=report.to_dict()
            )
        except Exception as e:
            logger.error("Detection iteration failed", iteration=iteration, error=str(e))

        sleep_seconds = interval_minutes * 60
        logger.info("Sleeping until next iteration", sleep_seconds=sleep_seconds)
        time.sleep(sleep_seconds)


def main(argv: list[str] | None = None):
    """Main entry point"""
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level)
    setup_logging(level=log_level, json_output=args.json_logs)

    logger.info("Starting anomaly detection")

    try:
        config = build_config(args)

        if args.init_schema:
            detector = AnomalyDetector(config)
            try:
                ensure_schema(detector.db)
            finally:
                detector.db.close()

        if args.schedule:
            detect_scheduled(config, args.schedule)
        else:
            report = run_anomaly_detection(config)
            logger.info("Detection completed successfully", report=report.to_dict())

        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Detection failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
