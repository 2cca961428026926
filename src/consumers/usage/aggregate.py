"""
CLI for the usage aggregation job.

Usage:
    python -m src.consumers.usage.aggregate [options]
"""

import argparse
import logging
import os
import sys
import time

import structlog

from src.core.logger import setup_logging
from src.core.schema import ensure_schema

from .aggregator import UsageAggregator
from .models import ProcessingReport, UsageConfig

logger = structlog.get_logger(__name__)


def parse_arguments(argv: list[str] | None = None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Fold unprocessed equipment telemetry into usage statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Run once
        python -m src.consumers.usage.aggregate

        # Create the tables first, then run every 3 hours
        python -m src.consumers.usage.aggregate --init-schema --schedule 180

        # Different sampling interval and fuel estimate
        python -m src.consumers.usage.aggregate --hours-per-record 0.05 --fuel-rate 7.2
        """,
    )

    # Accumulation constants
    parser.add_argument(
        "--hours-per-record",
        type=float,
        default=float(os.getenv("HOURS_PER_RECORD", "0.1")),
        help="Engine time represented by one ENGINE_STATUS event (default: 0.1)",
    )
    parser.add_argument(
        "--fuel-rate",
        type=float,
        default=float(os.getenv("FUEL_RATE_PER_HOUR", "5.5")),
        help="Estimated fuel burn per engine hour (default: 5.5)",
    )

    # PostgreSQL settings
    parser.add_argument(
        "--postgres-host",
        default=os.getenv("POSTGRES_HOST", "localhost"),
        help="PostgreSQL host (default: localhost or POSTGRES_HOST env var)",
    )
    parser.add_argument(
        "--postgres-port",
        type=int,
        default=int(os.getenv("POSTGRES_PORT", "5432")),
        help="PostgreSQL port (default: 5432)",
    )
    parser.add_argument(
        "--postgres-db",
        default=os.getenv("POSTGRES_DB", "fleet_db"),
        help="PostgreSQL database (default: fleet_db)",
    )
    parser.add_argument(
        "--postgres-user",
        default=os.getenv("POSTGRES_USER", "fleet"),
        help="PostgreSQL user (default: fleet)",
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
        help="Run the aggregation periodically every N minutes (default: run once)",
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


def build_config(args) -> UsageConfig:
    """Build configuration from arguments"""
    return UsageConfig(
        hours_per_record=args.hours_per_record,
        fuel_rate_per_hour=args.fuel_rate,
        postgres_host=args.postgres_host,
        postgres_port=args.postgres_port,
        postgres_database=args.postgres_db,
        postgres_user=args.postgres_user,
        postgres_password=args.postgres_password,
    )


def run_usage_aggregation(config: UsageConfig) -> ProcessingReport:
    """Run the aggregation once on a fresh connection"""
    aggregator = UsageAggregator(config)
    try:
        return aggregator.run()
    finally:
        aggregator.db.close()


def aggregate_scheduled(config: UsageConfig, interval_minutes: int):
    """Run the aggregation on a schedule"""
    logger.info("Starting scheduled aggregation", interval_minutes=interval_minutes)

    iteration = 0
    while True:
        iteration += 1
        logger.info("Starting aggregation iteration", iteration=iteration)

        try:
            report = run_usage_aggregation(config)
            logger.info(
                "Aggregation iteration completed", iteration=iteration, report=report.to_dict()
            )
        except Exception as e:
            logger.error("Aggregation iteration failed", iteration=iteration, error=str(e))

        sleep_seconds = interval_minutes * 60
        logger.info("Sleeping until next iteration", sleep_seconds=sleep_seconds)
        time.sleep(sleep_seconds)


def main(argv: list[str] | None = None):
    """Main entry point"""
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level)
    setup_logging(level=log_level, json_output=args.json_logs)

    logger.info("Starting usage aggregation")

    try:
        config = build_config(args)

        if args.init_schema:
            aggregator = UsageAggregator(config)
            try:
                ensure_schema(aggregator.db)
            finally:
                aggregator.db.close()

        if args.schedule:
            aggregate_scheduled(config, args.schedule)
        else:
            report = run_usage_aggregation(config)
            logger.info("Aggregation completed successfully", report=report.to_dict())

        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Aggregation failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
