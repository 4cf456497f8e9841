"""Command-line interface for bluebox-reports."""

import argparse
import logging
import sys

from .config import load_config
from .errors import BlueboxReportsError

log = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def cmd_list(args):
    """List every report in the catalog."""
    from .reports import build_catalog

    catalog = build_catalog()
    for definition in catalog:
        flag = " [view]" if definition.standing else ""
        print(f"{definition.name}{flag}")
        if definition.description:
            print(f"    {definition.description}")
        print(f"    inputs: {', '.join(definition.dependencies)}")
        print(f"    columns: {', '.join(definition.output_columns)}")


def cmd_plan(args):
    """Print the execution order for a report."""
    from .reports import build_catalog

    catalog = build_catalog()
    for step, name in enumerate(catalog.plan([args.report]), start=1):
        inputs = catalog.report_inputs(name)
        suffix = f"  <- {', '.join(inputs)}" if inputs else ""
        print(f"{step:3d}. {name}{suffix}")


def cmd_run(args):
    """Run reports against the database and print their results."""
    config = load_config(args.env_file)
    config.validate()

    from .db import init_pool, close_pool, get_pool
    from .engine import ExecutionEngine
    from .formatter import render_text, to_json
    from .reports import build_catalog
    from .sources import PostgresSource
    from .tracing import init_tracing, shutdown_tracing

    catalog = build_catalog()

    init_tracing(config)
    init_pool(config)

    try:
        source = PostgresSource(get_pool(), retries=config.fetch_retries)
        engine = ExecutionEngine.from_config(catalog, source, config)
        results = engine.run_many(args.reports) if args.reports else engine.run_all()

        if args.format == "json":
            print(to_json(results))
        else:
            for name, result in results.items():
                print(f"== {name}")
                print(render_text(result))
                print()
    finally:
        close_pool()
        shutdown_tracing()


def cmd_views(args):
    """Refresh standing views and print them."""
    config = load_config(args.env_file)
    config.validate()

    from .db import init_pool, close_pool, get_pool
    from .engine import ExecutionEngine
    from .formatter import render_text
    from .reports import build_catalog
    from .sources import PostgresSource
    from .tracing import init_tracing, shutdown_tracing
    from .views import ViewManager

    catalog = build_catalog()

    init_tracing(config)
    init_pool(config)
    try:
        source = PostgresSource(get_pool(), retries=config.fetch_retries)
        views = ViewManager(ExecutionEngine.from_config(catalog, source, config))
        for view in views.refresh_all():
            print(f"== {view.name} (refreshed {view.refreshed_at:%Y-%m-%d %H:%M:%S} UTC)")
            print(render_text(view.result))
            print()
    finally:
        close_pool()
        shutdown_tracing()


def cmd_check(args):
    """Verify configuration, connectivity and the declared table columns."""
    config = load_config(args.env_file)
    config.validate()

    from .db import close_pool, init_pool, missing_columns, server_version, table_counts
    from .schema import RENTAL_SCHEMA

    log.info("Configuration loaded successfully")
    log.info("  Database: %s@%s:%d/%s", config.db_user, config.db_host, config.db_port, config.db_name)
    log.info("  Schema: %s", config.db_schema)
    log.info("  Pool size: %d-%d", config.pool_min_size, config.pool_max_size)
    log.info("  Workers: %d", config.worker_threads)
    log.info("  Run timeout: %s", f"{config.timeout:.0f}s" if config.timeout else "none")
    log.info("  OTel: %s", "enabled" if config.otel_enabled else "disabled")

    init_pool(config)
    try:
        log.info("  PostgreSQL: %s", server_version())

        declared = [
            (t, c) for t in RENTAL_SCHEMA.table_names for c in RENTAL_SCHEMA.table(t).columns
        ]
        missing = missing_columns(config.db_schema, declared)
        if missing:
            for table, column in missing:
                log.error("  missing column %s.%s", table, column)
            raise ValueError(f"{len(missing)} declared column(s) not found in schema {config.db_schema}")

        for table, count in table_counts(RENTAL_SCHEMA.table_names).items():
            log.info("  %-15s %d rows", table, count)

        log.info("All checks passed")
    finally:
        close_pool()


def main():
    parser = argparse.ArgumentParser(
        prog="bluebox-reports",
        description="Analytical reports over the Bluebox film rental database",
    )
    parser.add_argument("--env-file", help="Path to .env file (default: auto-detect)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # list
    p_list = subparsers.add_parser("list", help="List catalog reports")
    p_list.set_defaults(func=cmd_list)

    # plan
    p_plan = subparsers.add_parser("plan", help="Show the execution order for a report")
    p_plan.add_argument("report", help="Report name")
    p_plan.set_defaults(func=cmd_plan)

    # run
    p_run = subparsers.add_parser("run", help="Run reports (default: all)")
    p_run.add_argument("reports", nargs="*", help="Report names")
    p_run.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    p_run.set_defaults(func=cmd_run)

    # views
    p_views = subparsers.add_parser("views", help="Refresh and print standing views")
    p_views.set_defaults(func=cmd_views)

    # check
    p_check = subparsers.add_parser("check", help="Verify config and database connectivity")
    p_check.set_defaults(func=cmd_check)

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(1)
    except (ValueError, BlueboxReportsError) as e:
        log.error(str(e))
        sys.exit(1)
    except Exception as e:
        log.error("Fatal error: %s", e, exc_info=True)
        sys.exit(1)
