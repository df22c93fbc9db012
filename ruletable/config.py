"""
ruletable configuration loader.

Configuration is read from a YAML file (config.yaml by default):
- store: which backend holds the policy table and how to reach it
- database: connection URL for the SQL backend
- batch: batch size and retry budget for bulk writes
- logging: log level
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


# DynamoDB accepts at most 25 write requests per BatchWriteItem call.
MAX_BATCH_SIZE = 25

BACKENDS = ("dynamodb", "sql")


@dataclass
class StoreConfig:
    backend: str = "dynamodb"
    table_name: str = "casbin_rule"
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    profile: Optional[str] = None


@dataclass
class DatabaseConfig:
    url: str = "sqlite+aiosqlite:///./data/ruletable.db"


@dataclass
class BatchConfig:
    max_batch_size: int = MAX_BATCH_SIZE
    max_attempts: int = 5
    base_delay: float = 0.05
    max_delay: float = 2.0
    scan_page_size: Optional[int] = None

    def __post_init__(self):
        if not 1 <= self.max_batch_size <= MAX_BATCH_SIZE:
            raise ValueError(
                f"batch.max_batch_size must be between 1 and {MAX_BATCH_SIZE}, "
                f"got {self.max_batch_size}"
            )
        if self.max_attempts < 1:
            raise ValueError("batch.max_attempts must be at least 1")


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    """Static configuration loaded from config.yaml."""
    store: StoreConfig = field(default_factory=StoreConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: str | Path) -> Config:
    """Load configuration from a YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = Config()

    # Store
    if "store" in data:
        store_data = data["store"] or {}
        backend = store_data.get("backend", "dynamodb")
        if backend not in BACKENDS:
            raise ValueError(f"Unknown store backend: {backend} (expected one of {', '.join(BACKENDS)})")
        config.store = StoreConfig(
            backend=backend,
            table_name=store_data.get("table_name", "casbin_rule"),
            region=store_data.get("region"),
            endpoint_url=store_data.get("endpoint_url"),
            profile=store_data.get("profile"),
        )

    # Database
    if "database" in data:
        db_data = data["database"] or {}
        config.database = DatabaseConfig(
            url=db_data.get("url", "sqlite+aiosqlite:///./data/ruletable.db"),
        )

    # Batch
    if "batch" in data:
        batch_data = data["batch"] or {}
        config.batch = BatchConfig(
            max_batch_size=batch_data.get("max_batch_size", MAX_BATCH_SIZE),
            max_attempts=batch_data.get("max_attempts", 5),
            base_delay=batch_data.get("base_delay", 0.05),
            max_delay=batch_data.get("max_delay", 2.0),
            scan_page_size=batch_data.get("scan_page_size"),
        )

    # Logging
    if "logging" in data:
        logging_data = data["logging"] or {}
        config.logging = LoggingConfig(
            level=logging_data.get("level", "INFO"),
        )

    return config
