"""Generator configuration loading and validation.

Loads the YAML configuration for one skimatic run with full validation.
"""
from __future__ import annotations
import fnmatch
import os
import yaml
from pathlib import Path
from typing import Any, Literal, Union
from pydantic import BaseModel, Field, field_validator

DSN_ENV_VAR = "DATABASE_URL"
CONFIG_ENV_VAR = "SKIMATIC_CONFIG"
DEFAULT_CONFIG_PATH = Path("skimatic.yaml")

TableFunction = Literal["create", "get", "update", "delete", "list", "paginate"]
ALL_FUNCTIONS: list[str] = ["create", "get", "update", "delete", "list", "paginate"]


def redact_dsn(dsn: str) -> str:
    """Replace the password in a connection string with ``***``."""
    if "@" not in dsn:
        return dsn
    credentials, _, host = dsn.rpartition("@")
    scheme, sep, user_pass = credentials.partition("://")
    if not sep or ":" not in user_pass:
        return dsn
    user = user_pass.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


class DatabaseConfig(BaseModel):
    """Database configuration."""
    dsn: str = Field(
        default_factory=lambda: os.getenv(DSN_ENV_VAR, ""),
        validate_default=True,
        description="PostgreSQL connection URL (falls back to DATABASE_URL)",
    )
    schema_name: str = Field("public", alias="schema", description="Schema to introspect")

    model_config = {"populate_by_name": True}

    @field_validator("dsn")
    @classmethod
    def validate_dsn(cls, v: str) -> str:
        """Validate database URL format."""
        if not v:
            raise ValueError(f"dsn is required (set database.dsn or {DSN_ENV_VAR})")
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("dsn must start with 'postgresql://' or 'postgres://'")
        return v


class OutputConfig(BaseModel):
    """Output configuration consumed by the emitter."""
    directory: str = Field("./repositories", description="Directory for generated sources")
    package: str = Field("repositories", description="Go package name of generated sources")
    ir_file: str | None = Field(None, description="Write the resolved IR as JSON to this path")


class TableConfig(BaseModel):
    """Per-table generation settings."""
    functions: list[TableFunction] = Field(default_factory=list, description="Functions to generate")


class QueriesConfig(BaseModel):
    """Annotated query files."""
    directory: str | None = Field(None, description="Directory scanned recursively for *.sql")
    strict_annotations: bool = Field(True, description="Reject annotations with unknown kinds")
    infer_select_parameters: bool = Field(
        True, description="Prepare row-returning queries to type their parameters"
    )


class TypesConfig(BaseModel):
    """Type override table."""
    mappings: dict[str, str] = Field(default_factory=dict, description="Native type -> Go type")


class AnalysisConfig(BaseModel):
    """Database round-trip limits."""
    timeout_seconds: float = Field(30, gt=0, le=600, description="Per catalog query/probe/prepare")
    max_concurrency: int = Field(4, ge=1, le=32, description="Tables or queries analyzed in parallel")
    on_query_error: Literal["abort", "skip"] = Field("abort", description="Batch failure policy")


class LoggingConfig(BaseModel):
    """Logging configuration (applied by the CLI only)."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", description="Log level")
    format: str = Field("%(asctime)s %(levelname)s %(name)s: %(message)s", description="Log format")


class GeneratorConfig(BaseModel):
    """Complete generator configuration."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    tables: dict[str, TableConfig | None] = Field(default_factory=dict)
    default_functions: Union[Literal["all"], list[TableFunction], None] = None
    queries: QueriesConfig = Field(default_factory=QueriesConfig)
    types: TypesConfig = Field(default_factory=TypesConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    verbose: bool = False

    def model_post_init(self, __context) -> None:
        """Validate that there is something to generate."""
        if not self.tables and not self.queries.directory:
            raise ValueError("must configure tables or queries.directory (or both)")
        if self.queries.directory and not Path(self.queries.directory).is_dir():
            raise ValueError(f"queries directory does not exist: {self.queries.directory}")

    def should_include_table(self, name: str) -> bool:
        """True if ``name`` matches one of the configured table names or globs."""
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.tables)

    def table_functions(self, name: str) -> list[str]:
        """Functions to generate for a table.

        A per-table list wins, then ``default_functions``, then every function.
        """
        table = self.tables.get(name)
        if table is not None and table.functions:
            return list(table.functions)
        if self.default_functions == "all":
            return list(ALL_FUNCTIONS)
        if self.default_functions:
            return list(self.default_functions)
        return list(ALL_FUNCTIONS)

    @classmethod
    def from_yaml(cls, path: str | Path, overrides: dict[str, Any] | None = None) -> GeneratorConfig:
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file
            overrides: Nested values applied on top of the file (CLI flags)

        Returns:
            Validated GeneratorConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not data:
            raise ValueError(f"Empty configuration file: {config_path}")
        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping: {config_path}")

        if overrides:
            data = merge_overrides(data, overrides)

        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    @classmethod
    def from_env(
        cls,
        env_var: str = CONFIG_ENV_VAR,
        overrides: dict[str, Any] | None = None,
    ) -> GeneratorConfig:
        """Load configuration from path in environment variable.

        Args:
            env_var: Environment variable name (default: SKIMATIC_CONFIG)

        Raises:
            ValueError: If env var not set and no default config exists
        """
        config_path = os.getenv(env_var)

        if not config_path:
            if DEFAULT_CONFIG_PATH.exists():
                return cls.from_yaml(DEFAULT_CONFIG_PATH, overrides=overrides)
            raise ValueError(
                f"Environment variable {env_var} not set and default config not found at {DEFAULT_CONFIG_PATH}"
            )

        return cls.from_yaml(config_path, overrides=overrides)

    def log_redacted(self) -> dict:
        """Configuration dict with the DSN password masked."""
        config_dict = self.model_dump()
        config_dict["database"]["dsn"] = redact_dsn(config_dict["database"]["dsn"])
        return config_dict


def merge_overrides(data: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay non-None ``overrides`` onto ``data`` (returns a new dict)."""
    merged = dict(data)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict):
            base = merged.get(key)
            merged[key] = merge_overrides(base if isinstance(base, dict) else {}, value)
        else:
            merged[key] = value
    return merged


def load_generator_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> GeneratorConfig:
    """Load generator configuration from file or environment.

    Raises:
        ValueError: If configuration is invalid or not found
    """
    if config_path:
        return GeneratorConfig.from_yaml(config_path, overrides=overrides)

    return GeneratorConfig.from_env(overrides=overrides)
