"""Shared helpers for composing CLI command contexts.

Resolves the configured database and log paths once and builds the services
the commands call, so tests can hand in a context wired to a temporary
database and a mocked upstream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from cellarsync.infrastructure.db import get_path_config
from cellarsync.infrastructure.http import ErpSettings, load_erp_settings
from cellarsync.services import (
    InventoryService,
    ReportingService,
    SalesOrderService,
    SyncService,
)
from cellarsync.services.sync_service import ClientFactory


@dataclass(frozen=True)
class CLIContext:
    """Container for CLI dependencies and configuration paths."""

    db_path: Path
    logs_dir: Path
    settings: ErpSettings | None = None
    client_factory: ClientFactory | None = field(default=None, compare=False)
    record_delay_seconds: float = 0.5

    def sync_service(self) -> SyncService:
        return SyncService(
            db_path=str(self.db_path),
            settings=self.settings or load_erp_settings(),
            client_factory=self.client_factory,
            logs_dir=self.logs_dir,
            record_delay_seconds=self.record_delay_seconds,
        )

    def inventory_service(self) -> InventoryService:
        return InventoryService.from_sqlite_path(str(self.db_path))

    def sales_order_service(self) -> SalesOrderService:
        return SalesOrderService.from_sqlite_path(str(self.db_path))

    def reporting_service(self) -> ReportingService:
        return ReportingService.from_sqlite_path(str(self.db_path))


def build_cli_context(db_path: str | Path | None = None) -> CLIContext:
    """Create a CLI context using the project path configuration."""

    paths = get_path_config()
    return CLIContext(
        db_path=Path(db_path) if db_path is not None else paths["db_path"],
        logs_dir=paths["logs_dir"],
    )
