"""One analysis run: schema introspection plus query analysis.

Produces the resolved IR handed to the code emitter.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .config import GeneratorConfig
from .db import create_pool
from .ir.models import Query, Table
from .pgtypes.mapper import TypeMapper
from .queries.analyzer import QueryAnalyzer, QueryFailure
from .queries.parser import QueryParser, validate_query
from .schema.reader import SchemaReader, SkippedTable

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Resolved IR of one run."""
    schema: str
    package: str
    tables: list[Table] = field(default_factory=list)
    skipped_tables: list[SkippedTable] = field(default_factory=list)
    queries: list[Query] = field(default_factory=list)
    failed_queries: list[QueryFailure] = field(default_factory=list)
    table_functions: dict[str, list[str]] = field(default_factory=dict)
    imports: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        tables = []
        for table in self.tables:
            data = table.to_dict()
            data["functions"] = self.table_functions.get(table.name, [])
            data["imports"] = self.imports.get(table.name, [])
            tables.append(data)

        return {
            "schema": self.schema,
            "package": self.package,
            "tables": tables,
            "skipped_tables": [{"name": s.name, "reason": s.reason} for s in self.skipped_tables],
            "queries": [q.to_dict() for q in self.queries],
            "failed_queries": [
                {"name": f.query.name, "source_file": f.query.source_file, "error": str(f.error)}
                for f in self.failed_queries
            ],
        }


def load_queries(config: GeneratorConfig) -> list[Query]:
    """Parse and shape-check every query under ``queries.directory``.

    Raises:
        ParseError: On annotation, body or shape errors
    """
    if not config.queries.directory:
        return []
    parser = QueryParser(strict_annotations=config.queries.strict_annotations)
    queries = parser.parse_directory(config.queries.directory)
    for query in queries:
        validate_query(query)
    logger.info("Parsed %d queries from %s", len(queries), config.queries.directory)
    return queries


async def run_analysis(config: GeneratorConfig) -> AnalysisResult:
    """Introspect tables and analyze queries against the configured database.

    Args:
        config: Validated generator configuration

    Returns:
        AnalysisResult with resolved tables and queries

    Raises:
        SkimaticError: Schema, parse or analysis failure (query failures only
            when ``analysis.on_query_error`` is ``abort``)
    """
    # Parse before connecting so syntax errors surface without a database.
    queries = load_queries(config)

    analysis = config.analysis
    type_mapper = TypeMapper(config.types.mappings)
    result = AnalysisResult(schema=config.database.schema_name, package=config.output.package)

    pool = await create_pool(
        config.database.dsn,
        max_size=analysis.max_concurrency,
        timeout=analysis.timeout_seconds,
    )
    try:
        if config.tables:
            reader = SchemaReader(
                pool,
                type_mapper=type_mapper,
                timeout=analysis.timeout_seconds,
                concurrency=analysis.max_concurrency,
            )
            snapshot = await reader.list_tables(result.schema, include=config.should_include_table)
            result.tables = snapshot.tables
            result.skipped_tables = snapshot.skipped
            for skipped in snapshot.skipped:
                logger.warning("Skipping table %s: %s", skipped.name, skipped.reason)
            for table in snapshot.tables:
                result.table_functions[table.name] = config.table_functions(table.name)
                result.imports[table.name] = sorted(type_mapper.required_imports(table.columns))

        if queries:
            analyzer = QueryAnalyzer(
                pool,
                type_mapper=type_mapper,
                timeout=analysis.timeout_seconds,
                infer_select_parameters=config.queries.infer_select_parameters,
            )
            failures = await analyzer.analyze_all(
                queries,
                concurrency=analysis.max_concurrency,
                on_error=analysis.on_query_error,
            )
            failed = {id(f.query) for f in failures}
            result.queries = [q for q in queries if id(q) not in failed]
            result.failed_queries = failures
            for failure in failures:
                logger.warning("Skipping query %s: %s", failure.query.name, failure.error)
    finally:
        await pool.close()

    logger.info(
        "Analysis complete: %d tables (%d skipped), %d queries (%d failed)",
        len(result.tables), len(result.skipped_tables),
        len(result.queries), len(result.failed_queries),
    )
    return result
