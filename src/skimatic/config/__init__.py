"""Configuration management for skimatic."""
from .generator import (
    AnalysisConfig,
    DatabaseConfig,
    GeneratorConfig,
    LoggingConfig,
    OutputConfig,
    QueriesConfig,
    TableConfig,
    TypesConfig,
    load_generator_config,
    redact_dsn,
)

__all__ = [
    "AnalysisConfig",
    "DatabaseConfig",
    "GeneratorConfig",
    "LoggingConfig",
    "OutputConfig",
    "QueriesConfig",
    "TableConfig",
    "TypesConfig",
    "load_generator_config",
    "redact_dsn",
]
