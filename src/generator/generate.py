"""
Equipment Telemetry Simulator - CLI Entry Point
Writes raw equipment events into raw_event_log for the batch jobs to consume
"""

import argparse
import logging
import os
import sys
from dataclasses import replace

import structlog

from src.core.logger import setup_logging
from src.generator import (
    CHAOS_CONFIG,
    DEV_CONFIG,
    NORMAL_CONFIG,
    SECURITY_FOCUS_CONFIG,
    FaultType,
    GeneratorConfig,
    TelemetryGenerator,
)

logger = structlog.get_logger(__name__)


# Predefined configurations
CONFIGS = {
    "normal": NORMAL_CONFIG,
    "chaos": CHAOS_CONFIG,
    "security": SECURITY_FOCUS_CONFIG,
    "dev": DEV_CONFIG,
}


def parse_arguments(argv: list[str] | None = None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Equipment telemetry simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Use predefined normal config
            python -m src.generator.generate --config normal

            # Use chaos config for 300 seconds
            python -m src.generator.generate --config chaos --duration 300

            # Only fuel theft, 10% of ticks
            python -m src.generator.generate --faults fuel_theft --fault-prob 0.1

            # Fill the last 6 hours with history
            python -m src.generator.generate --backfill --backfill-hours 6
        """,
    )

    parser.add_argument(
        "--config", choices=list(CONFIGS.keys()), help="Use a predefined configuration"
    )

    # Generation settings
    parser.add_argument("--interval", type=float, help="Interval between ticks in seconds")
    parser.add_argument("--events-per-tick", type=int, help="Events per equipment per tick")

    # Fault settings
    parser.add_argument(
        "--fault-prob", type=float, help="Probability of fault injection per tick (0.0 to 1.0)"
    )
    parser.add_argument(
        "--faults",
        nargs="+",
        choices=[f.value for f in FaultType],
        help="Specific fault types to enable",
    )

    # Runtime settings
    parser.add_argument(
        "--duration", type=int, help="Duration to run in seconds (default: infinite)"
    )
    parser.add_argument(
        "--backfill",
        action="store_true",
        help="Generate historical data quickly instead of running in real time",
    )
    parser.add_argument(
        "--backfill-hours",
        type=int,
        default=24,
        help="Hours of history to generate in backfill mode (default: 24)",
    )
    parser.add_argument(
        "--backfill-interval",
        type=int,
        default=360,
        help="Seconds between backfill ticks (default: 360 = 6min)",
    )

    # PostgreSQL settings
    parser.add_argument("--postgres-host", default=os.getenv("POSTGRES_HOST", "localhost"))
    parser.add_argument(
        "--postgres-port", type=int, default=int(os.getenv("POSTGRES_PORT", "5432"))
    )
    parser.add_argument("--postgres-db", default=os.getenv("POSTGRES_DB", "fleet_db"))
    parser.add_argument("--postgres-user", default=os.getenv("POSTGRES_USER", "fleet"))
    parser.add_argument(
        "--postgres-password", default=os.getenv("POSTGRES_PASSWORD", "fleet_password")
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config_from_args(args) -> GeneratorConfig:
    """Build a GeneratorConfig from command-line arguments"""
    if args.config:
        config = replace(CONFIGS[args.config])
        logger.info("Using predefined configuration", config_name=args.config)
    else:
        config = GeneratorConfig()
        logger.info("Using default configuration")

    config.postgres_host = args.postgres_host
    config.postgres_port = args.postgres_port
    config.postgres_database = args.postgres_db
    config.postgres_user = args.postgres_user
    config.postgres_password = args.postgres_password

    if args.interval:
        config.event_interval_seconds = args.interval
    if args.events_per_tick:
        config.events_per_tick = args.events_per_tick
    if args.fault_prob is not None:
        config.fault_probability = args.fault_prob
    if args.faults:
        config.enabled_faults = [FaultType(f) for f in args.faults]

    return config


def main(argv: list[str] | None = None):
    """Main entry point"""
    args = parse_arguments(argv)

    setup_logging(level=getattr(logging, args.log_level))

    logger.info("Starting equipment telemetry simulator")

    try:
        config = build_config_from_args(args)
        generator = TelemetryGenerator(config)

        if args.backfill:
            logger.info("Running in BACKFILL mode")
            try:
                generator.run_backfill(args.backfill_hours, args.backfill_interval)
            finally:
                generator.db.close()
        else:
            logger.info("Running in REAL-TIME mode")
            generator.run(duration_seconds=args.duration)

        logger.info("Generator completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Generator failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
