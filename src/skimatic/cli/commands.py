from __future__ import annotations
import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Sequence
import asyncpg
from dotenv import load_dotenv

from skimatic.config import GeneratorConfig, load_generator_config, redact_dsn
from skimatic.config.generator import DSN_ENV_VAR
from skimatic.queries.analyzer import extract_parameters
from skimatic.queries.parser import QueryParser, validate_query

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skimatic",
        description="skimatic - PostgreSQL schema and query analysis for Go code generation"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    # Full analysis run
    analyze = sub.add_parser("analyze", help="Introspect tables and analyze queries")
    analyze.add_argument("--config", default=None,
                         help="Path to configuration YAML (default: $SKIMATIC_CONFIG or skimatic.yaml)")
    analyze.add_argument("--dsn", default=None, help="Override database.dsn")
    analyze.add_argument("--schema", default=None, help="Override database.schema")
    analyze.add_argument("--output", default=None,
                         help="Write IR JSON here instead of output.ir_file (use - for stdout)")

    # Offline query parsing
    parse = sub.add_parser("parse", help="Parse annotated query files without a database")
    parse.add_argument("--queries", required=True, help="Directory of *.sql files")
    parse.add_argument("--lenient", action="store_true",
                       help="Treat annotations with unknown kinds as plain comments")

    # Connectivity check
    ping = sub.add_parser("ping", help="Test database connection")
    ping.add_argument("--dsn", default=None, help=f"Connection URL (default: ${DSN_ENV_VAR})")

    return parser


def run(argv: Sequence[str] | None = None) -> None:
    """Main CLI entry point."""
    # Load environment variables first
    load_dotenv()

    args = build_parser().parse_args(argv)

    try:
        if args.cmd == "analyze":
            overrides = {"database": {"dsn": args.dsn, "schema": args.schema}}
            config = load_generator_config(args.config, overrides=overrides)
            configure_logging(config, args.verbose)
            asyncio.run(analyze(config, args.output))
        elif args.cmd == "parse":
            configure_logging(None, args.verbose)
            parse_queries_cmd(args.queries, strict=not args.lenient)
        elif args.cmd == "ping":
            configure_logging(None, args.verbose)
            dsn = args.dsn or os.getenv(DSN_ENV_VAR)
            if not dsn:
                raise ValueError(f"no DSN given: pass --dsn or set {DSN_ENV_VAR}")
            asyncio.run(db_ping(dsn))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def configure_logging(config: GeneratorConfig | None, verbose: bool) -> None:
    """Send library logs to stderr; stdout is reserved for command output."""
    level = "INFO"
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if config is not None:
        level = config.logging.level
        fmt = config.logging.format
        verbose = verbose or config.verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level),
        format=fmt,
        stream=sys.stderr,
    )


async def analyze(config: GeneratorConfig, output: str | None) -> None:
    """Run the analysis and write the resolved IR as JSON.

    Args:
        config: Validated configuration
        output: Destination path, ``-`` for stdout; defaults to output.ir_file
    """
    from skimatic.pipeline import run_analysis

    logger.debug("Configuration: %s", config.log_redacted())
    result = await run_analysis(config)
    payload = json.dumps(result.to_dict(), indent=2)

    destination = output or config.output.ir_file or "-"
    if destination == "-":
        print(payload)
    else:
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload + "\n", encoding="utf-8")
        print(f"✓ Wrote IR for {len(result.tables)} tables and {len(result.queries)} queries to {path}")

    if result.skipped_tables:
        print(f"  Skipped tables: {', '.join(s.name for s in result.skipped_tables)}", file=sys.stderr)
    if result.failed_queries:
        print(f"  Failed queries: {', '.join(f.query.name for f in result.failed_queries)}", file=sys.stderr)


def parse_queries_cmd(directory: str, strict: bool = True) -> None:
    """Print every annotated query with its positional parameters.

    Raises:
        ParseError: On annotation, body or shape errors
    """
    queries = QueryParser(strict_annotations=strict).parse_directory(directory)
    for query in queries:
        validate_query(query)
        params = extract_parameters(query.sql)
        placeholders = ", ".join(f"${p.index}" for p in params) or "-"
        print(f"{query.name:<32} :{query.type.value:<10} params: {placeholders:<16} {query.source_file}")
    print(f"\n✓ {len(queries)} queries parsed")


async def db_ping(database_url: str) -> None:
    """Test database connection.

    Raises:
        RuntimeError: If the database cannot be reached
    """
    try:
        conn = await asyncpg.connect(dsn=database_url)
    except asyncpg.InvalidCatalogNameError:
        raise RuntimeError(
            f"Database does not exist: {redact_dsn(database_url)}"
        )
    except (asyncpg.PostgresError, OSError) as e:
        raise RuntimeError(
            f"Failed to connect to database: {e}\n"
            f"Check your {DSN_ENV_VAR} in .env: {redact_dsn(database_url)}"
        ) from e

    try:
        version = await conn.fetchval("SELECT version()")
        print(f"✓ Connected: {version}")
    finally:
        await conn.close()
