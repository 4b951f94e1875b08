"""Startup wiring: config, logging, database, migrations and both engines.

Callers (dose-event handlers, stock-edit handlers, dashboards) hold one
:class:`HoraMedService` and use its ``stock`` and ``progression`` engines::

    async with HoraMedService.from_config_dir(Path("config")) as service:
        await service.stock.decrement_on_dose_taken(item_id)
"""

from __future__ import annotations

import logging
from pathlib import Path

from horamed.config import HoraMedConfig, load_config
from horamed.core.logging import configure_logging
from horamed.db import Database
from horamed.migrations import run_migrations
from horamed.progression import AdherenceProgressionEngine
from horamed.stock import ScheduleCache, StockProjectionEngine

logger = logging.getLogger(__name__)


class HoraMedService:
    def __init__(self, config: HoraMedConfig, db: Database | None = None) -> None:
        self.config = config
        self.db = db or Database.from_env(config.db_name, schema=config.db_schema)
        self.schedule_cache = ScheduleCache()
        self.stock: StockProjectionEngine | None = None
        self.progression: AdherenceProgressionEngine | None = None

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> HoraMedService:
        return cls(load_config(config_dir))

    async def start(self, migrate: bool = True) -> None:
        """Configure logging, provision the database, migrate, and build the engines."""
        log_cfg = self.config.logging
        configure_logging(
            level=log_cfg.level,
            fmt=log_cfg.format,
            log_root=Path(log_cfg.log_root) if log_cfg.log_root else None,
            service_name=self.config.name,
        )

        await self.db.provision()
        if migrate:
            await run_migrations(self.db.url, schema=self.config.db_schema)
        pool = await self.db.connect()

        self.stock = StockProjectionEngine(pool, schedule_cache=self.schedule_cache)
        self.progression = AdherenceProgressionEngine(pool, settings=self.config.progression)
        logger.info("HoraMed service %s started (db=%s)", self.config.name, self.db.db_name)

    async def stop(self) -> None:
        await self.db.close()
        self.schedule_cache.clear()
        self.stock = None
        self.progression = None
        logger.info("HoraMed service %s stopped", self.config.name)

    async def __aenter__(self) -> HoraMedService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
