"""Root conftest: shared fixtures for unit and Postgres-backed tests.

``MemoryPool`` stands in for an asyncpg pool in unit tests. It interprets
the handful of statements the store modules issue against in-memory tables,
and can be told to fail a statement to exercise error paths.

``postgres_container`` / ``migrated_db`` run the real schema in a
testcontainers Postgres and are only usable when Docker is available.
"""

from __future__ import annotations

import shutil
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

    from horamed.db import Database

docker_available = shutil.which("docker") is not None

_DOCKER_SKIPIF = pytest.mark.skipif(not docker_available, reason="Docker not available")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip every test marked ``integration`` when Docker is unavailable."""
    for item in items:
        if item.get_closest_marker("integration") is not None:
            item.add_marker(_DOCKER_SKIPIF)


class MemoryPool:
    """In-memory stand-in for the asyncpg pool used by the store functions."""

    def __init__(self) -> None:
        self.items: dict[uuid.UUID, dict[str, Any]] = {}
        self.schedules: list[dict[str, Any]] = []
        self.doses: list[dict[str, Any]] = []
        self.stock: dict[uuid.UUID, dict[str, Any]] = {}
        self.executed_queries: list[tuple[str, str, tuple]] = []
        self._failures: dict[str, BaseException] = {}

    # -- fixtures ----------------------------------------------------------

    def add_item(
        self,
        user_id: str = "user-1",
        name: str = "Metformin",
        is_active: bool = True,
        treatment_end_date: date | None = None,
    ) -> uuid.UUID:
        item_id = uuid.uuid4()
        self.items[item_id] = {
            "id": item_id,
            "user_id": user_id,
            "name": name,
            "is_active": is_active,
            "treatment_end_date": treatment_end_date,
        }
        return item_id

    def add_schedule(
        self, item_id: uuid.UUID, times: list[str], is_active: bool = True
    ) -> None:
        self.schedules.append({"item_id": item_id, "times": list(times), "is_active": is_active})

    def add_dose(
        self,
        item_id: uuid.UUID,
        due_at: datetime,
        status: str = "taken",
        taken_at: datetime | None = None,
        delay_minutes: int | None = None,
    ) -> dict[str, Any]:
        if status == "taken" and taken_at is None:
            taken_at = due_at + timedelta(minutes=delay_minutes or 0)
        dose = {
            "id": uuid.uuid4(),
            "item_id": item_id,
            "due_at": due_at,
            "status": status,
            "taken_at": taken_at,
            "delay_minutes": delay_minutes,
        }
        self.doses.append(dose)
        return dose

    def set_stock(
        self,
        item_id: uuid.UUID,
        units_left: int,
        units_total: int | None = None,
        projected_end_at: datetime | None = None,
        last_refill_at: datetime | None = None,
    ) -> None:
        self.stock[item_id] = {
            "id": uuid.uuid4(),
            "item_id": item_id,
            "units_left": units_left,
            "units_total": units_total,
            "projected_end_at": projected_end_at,
            "last_refill_at": last_refill_at,
            "updated_at": None,
        }

    def fail_on(self, marker: str, exc: BaseException) -> None:
        """Raise *exc* for any statement containing *marker*."""
        self._failures[marker] = exc

    def _record(self, method: str, query: str, args: tuple) -> None:
        self.executed_queries.append((method, query, args))
        for marker, exc in self._failures.items():
            if marker in query:
                raise exc

    # -- pool API ----------------------------------------------------------

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any] | None:
        self._record("fetchrow", query, args)

        if "UPDATE stock" in query and "units_left - 1" in query:
            item_id, now, rate = args
            row = self.stock.get(item_id)
            if row is None or row["units_left"] <= 0:
                return None
            row["units_left"] -= 1
            if row["units_left"] <= 0:
                row["projected_end_at"] = now
            else:
                row["projected_end_at"] = now + timedelta(
                    seconds=row["units_left"] / rate * 86400
                )
            row["updated_at"] = now
            return {"units_left": row["units_left"], "projected_end_at": row["projected_end_at"]}

        if "FROM stock" in query:
            row = self.stock.get(args[0])
            return dict(row) if row is not None else None

        raise AssertionError(f"Unexpected fetchrow: {query}")

    async def fetchval(self, query: str, *args: Any) -> Any:
        self._record("fetchval", query, args)

        if "count(*)" in query and "FROM dose_instances" in query:
            item_id, since = args
            return sum(
                1
                for d in self.doses
                if d["item_id"] == item_id
                and d["status"] == "taken"
                and d["taken_at"] is not None
                and d["taken_at"] >= since
            )

        raise AssertionError(f"Unexpected fetchval: {query}")

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        self._record("fetch", query, args)

        if "FROM stock s" in query:
            (user_id,) = args
            rows = []
            for item_id, row in self.stock.items():
                item = self.items[item_id]
                if item["user_id"] == user_id and item["is_active"]:
                    rows.append(
                        {
                            **row,
                            "item_name": item["name"],
                            "treatment_end_date": item["treatment_end_date"],
                        }
                    )
            return rows

        if "ANY($1::uuid[])" in query:
            item_ids, since = args
            return [
                {k: d[k] for k in ("item_id", "status", "taken_at", "due_at")}
                for d in self.doses
                if d["item_id"] in item_ids and d["due_at"] >= since
            ]

        if "FROM dose_instances d" in query:
            user_id = args[0]
            user_doses = [d for d in self.doses if self.items[d["item_id"]]["user_id"] == user_id]
            if "d.status = 'taken'" in query:
                return [dict(d) for d in user_doses if d["status"] == "taken"]
            since = args[1]
            return sorted(
                (dict(d) for d in user_doses if d["due_at"] >= since),
                key=lambda d: d["due_at"],
            )

        if "FROM schedules" in query:
            (item_id,) = args
            return [
                dict(s) for s in self.schedules if s["item_id"] == item_id and s["is_active"]
            ]

        raise AssertionError(f"Unexpected fetch: {query}")

    async def execute(self, query: str, *args: Any) -> str:
        self._record("execute", query, args)

        if "UPDATE stock SET projected_end_at" in query:
            item_id, projected_end_at = args
            row = self.stock.get(item_id)
            if row is None:
                return "UPDATE 0"
            row["projected_end_at"] = projected_end_at
            return "UPDATE 1"

        raise AssertionError(f"Unexpected execute: {query}")


@pytest.fixture
def memory_pool() -> MemoryPool:
    return MemoryPool()


# ---------------------------------------------------------------------------
# Postgres (Docker)
# ---------------------------------------------------------------------------


def _unique_test_db_name() -> str:
    return f"test_{uuid.uuid4().hex[:12]}"


@pytest.fixture(scope="session")
def postgres_container() -> PostgresContainer:
    """Shared Postgres testcontainer for all DB-backed tests in this session.

    Each ``migrated_db`` usage provisions a new, randomly named database, so
    rows never leak between tests.
    """
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16") as pg:
        yield pg


@pytest.fixture
def database_factory(postgres_container: PostgresContainer) -> Callable[..., Database]:
    """Build Database instances wired to the test container."""
    from horamed.db import ConnectionSettings, Database

    settings = ConnectionSettings(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        user=postgres_container.username,
        password=postgres_container.password,
    )

    def _make(db_name: str | None = None, schema: str | None = None) -> Database:
        return Database(
            db_name=db_name or _unique_test_db_name(),
            schema=schema,
            settings=settings,
            min_pool_size=1,
            max_pool_size=3,
        )

    return _make


@pytest.fixture
def migrated_db(
    database_factory: Callable[..., Database],
) -> Callable[..., AbstractAsyncContextManager[Any]]:
    """Provision a fresh database, run the migration chain and yield a pool.

    Tests should use this as::

        async with migrated_db() as pool:
            ...
    """
    from horamed.migrations import run_migrations

    @asynccontextmanager
    async def _provision(schema: str | None = None) -> AsyncIterator[Any]:
        db = database_factory(schema=schema)
        await db.provision()
        await run_migrations(db.url, schema=schema)
        pool = await db.connect()
        try:
            yield pool
        finally:
            await db.close()

    return _provision
