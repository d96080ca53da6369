"""
Command line entry point for laundry-ops.

Usage:
    laundry-ops serve                       # Run the HTTP API
    laundry-ops init-db                     # Create or migrate the database
    laundry-ops seed                        # Add the starter laundromats
    laundry-ops capacity 48201 2026-03-02   # Show routing candidates
    laundry-ops orders --status scheduled   # List orders
    laundry-ops retry-notifications         # Re-send failed notifications
    laundry-ops issue-session --role admin --user-id ops
"""

import argparse
import sys
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path

from .domain.enums import ActorRole, OrderStatus
from .domain.errors import LifecycleError
from .domain.value_objects import Actor
from .orchestration import ApplicationConfig, create_orchestrator
from .presentation.api.session import Session, SignedSessionSerializer
from .presentation.formatters import capacity_formatter, console_formatter, order_formatter
from .utils.logger import setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="laundry-ops",
        description="Laundry pickup and delivery operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", type=Path, help="Override database path")
    parser.add_argument("--log-level", help="Override log level (DEBUG, INFO, ...)")

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Bind port")

    commands.add_parser("init-db", help="Create or migrate the database")
    commands.add_parser("seed", help="Add the starter laundromat network")

    capacity = commands.add_parser("capacity", help="Show capacity for a postal code and day")
    capacity.add_argument("postal_code")
    capacity.add_argument("day", type=date.fromisoformat, help="YYYY-MM-DD")

    orders = commands.add_parser("orders", help="List orders")
    orders.add_argument("--status", type=OrderStatus, choices=list(OrderStatus), metavar="STATUS")
    orders.add_argument("--laundromat", help="Filter by laundromat id")
    orders.add_argument("--date", type=date.fromisoformat, help="Filter by pickup date")

    retry = commands.add_parser("retry-notifications", help="Re-send failed notifications")
    retry.add_argument("--max-attempts", type=int, help="Skip rows that failed this many times")

    session = commands.add_parser("issue-session", help="Print a signed session token")
    session.add_argument("--role", type=ActorRole, choices=list(ActorRole), metavar="ROLE", required=True)
    session.add_argument("--user-id", required=True)
    session.add_argument("--customer-id")
    session.add_argument("--laundromat-id", help="Location a laundromat_staff session is tied to")
    session.add_argument("--hours", type=int, help="Token lifetime in hours")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = ApplicationConfig.from_env()
    except ValueError as e:
        print(console_formatter.error(str(e)))
        return 1
    if args.db:
        config = replace(config, database_path=args.db)
    if args.log_level:
        config = replace(config, log_level=args.log_level.upper())

    if args.command == "issue-session":
        hours = args.hours or config.session_ttl_hours
        serializer = SignedSessionSerializer(config.session_secret, ttl=timedelta(hours=hours))
        session = Session(
            user_id=args.user_id,
            role=args.role,
            customer_id=args.customer_id,
            laundromat_id=args.laundromat_id,
        )
        print(serializer.dumps(session))
        return 0

    setup_logger(config.log_dir, config.log_level)

    try:
        orchestrator = create_orchestrator(config)

        if args.command == "serve":
            import uvicorn

            from .presentation.api.app import create_app

            uvicorn.run(
                create_app(orchestrator),
                host=args.host or config.host,
                port=args.port or config.port,
            )
            return 0

        try:
            if args.command == "init-db":
                print(console_formatter.success(f"Database ready at {orchestrator.database.location}"))

            elif args.command == "seed":
                added = orchestrator.seed()
                print(console_formatter.success(f"Added {added} laundromat(s)"))
                print(capacity_formatter.format_laundromats(orchestrator.laundromats.list_all()))

            elif args.command == "capacity":
                candidates = orchestrator.laundromats.capacity(args.postal_code, args.day)
                print(capacity_formatter.format_availability(args.postal_code, args.day, candidates))

            elif args.command == "orders":
                found = orchestrator.orders.list_orders(
                    Actor.system(), status=args.status, laundromat_id=args.laundromat, day=args.date
                )
                print(order_formatter.format_order_list(found))

            elif args.command == "retry-notifications":
                report = orchestrator.retry_notifications(args.max_attempts)
                print(capacity_formatter.format_retry_report(report))
        finally:
            orchestrator.shutdown()

        return 0

    except LifecycleError as e:
        print(console_formatter.error(f"{e.message} [{e.code}]"))
        return 1

    except KeyboardInterrupt:
        print("\n\n[CANCELLED] Interrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
