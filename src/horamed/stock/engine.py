"""StockProjectionEngine: keeps ``units_left`` and its depletion projection current."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import asyncpg
from opentelemetry import trace

from horamed._helpers import _as_uuid
from horamed.errors import StoreError, StoreWriteError
from horamed.models import StockOverviewResult, StockProjection, StockUpdateResult
from horamed.stock import store
from horamed.stock.cache import ScheduleCache
from horamed.stock.projection import (
    calculate_projected_end_at,
    consumption_trend,
    days_remaining,
    summarize_week,
)
from horamed.stock.rate import CONSUMPTION_WINDOW_DAYS, estimate_daily_consumption

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StockProjectionEngine:
    """Stock decrement and projection operations over an asyncpg pool.

    Every operation returns a :class:`StockUpdateResult`; store failures are
    logged and reported, never raised, so a projection problem cannot block
    the dose confirmation that triggered it.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        schedule_cache: ScheduleCache | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.pool = pool
        self.schedule_cache = schedule_cache
        self._clock = clock

    async def decrement_on_dose_taken(self, item_id: uuid.UUID | str) -> StockUpdateResult:
        """Take one unit of stock after a dose was confirmed as taken.

        No stock record is a successful no-op; stock already at zero stays
        at zero. The decrement and the new projection are written in one
        conditional statement, so concurrent confirmations never lose a
        decrement or drive the count negative.
        """
        item_id = _as_uuid(item_id)
        now = self._clock()
        tracer = trace.get_tracer("horamed")
        with tracer.start_as_current_span("horamed.stock.decrement") as span:
            span.set_attribute("horamed.item_id", str(item_id))
            try:
                record = await store.fetch_stock(self.pool, item_id)
                if record is None:
                    logger.info("No stock tracked for item %s", item_id)
                    return StockUpdateResult(success=True, item_id=item_id, tracked=False)

                if record.units_left <= 0:
                    logger.info("Stock already at 0 for item %s", item_id)
                    return StockUpdateResult(success=True, item_id=item_id, units_left=0)

                rate = await estimate_daily_consumption(
                    self.pool, item_id, now, cache=self.schedule_cache
                )
            except StoreError as exc:
                logger.error(
                    "Stock decrement for item %s failed at %s: %s", item_id, exc.step, exc
                )
                return StockUpdateResult(success=False, item_id=item_id, error=str(exc))

            try:
                row = await store.decrement_stock(self.pool, item_id, now, rate)
            except StoreWriteError as exc:
                expected_left = record.units_left - 1
                logger.error(
                    "Stock decrement for item %s failed at %s: %s", item_id, exc.step, exc
                )
                return StockUpdateResult(
                    success=False,
                    item_id=item_id,
                    units_left=expected_left,
                    projected_end_at=calculate_projected_end_at(expected_left, rate, now),
                    error=str(exc),
                )

            if row is None:
                # A concurrent decrement emptied the stock between read and write
                logger.info("Stock for item %s reached 0 before decrement", item_id)
                return StockUpdateResult(success=True, item_id=item_id, units_left=0)

            span.set_attribute("horamed.units_left", row["units_left"])
            logger.info(
                "Stock for item %s decremented to %d, projected end %s",
                item_id,
                row["units_left"],
                row["projected_end_at"],
            )
            return StockUpdateResult(
                success=True,
                item_id=item_id,
                units_left=row["units_left"],
                projected_end_at=row["projected_end_at"],
            )

    async def recalculate_projection(self, item_id: uuid.UUID | str) -> StockUpdateResult:
        """Re-derive ``projected_end_at`` after a manual stock edit.

        Only the projection is written; ``units_left`` is left as edited.
        """
        item_id = _as_uuid(item_id)
        now = self._clock()
        tracer = trace.get_tracer("horamed")
        with tracer.start_as_current_span("horamed.stock.recalculate") as span:
            span.set_attribute("horamed.item_id", str(item_id))
            record = None
            projected_end_at = None
            try:
                record = await store.fetch_stock(self.pool, item_id)
                if record is None:
                    return StockUpdateResult(success=True, item_id=item_id, tracked=False)

                rate = await estimate_daily_consumption(
                    self.pool, item_id, now, cache=self.schedule_cache
                )
                projected_end_at = calculate_projected_end_at(record.units_left, rate, now)
                await store.update_projection(self.pool, item_id, projected_end_at)
            except StoreError as exc:
                logger.error(
                    "Projection recalculation for item %s failed at %s: %s", item_id, exc.step, exc
                )
                return StockUpdateResult(
                    success=False,
                    item_id=item_id,
                    units_left=record.units_left if record is not None else None,
                    projected_end_at=projected_end_at,
                    error=str(exc),
                )

            logger.info("Projection for item %s recalculated: %s", item_id, projected_end_at)
            return StockUpdateResult(
                success=True,
                item_id=item_id,
                units_left=record.units_left,
                projected_end_at=projected_end_at,
            )

    async def stock_overview(
        self,
        user_id: str,
        now: datetime | None = None,
    ) -> StockOverviewResult:
        """Summarise every tracked item of *user_id*, most urgent first."""
        now = now or self._clock()
        tracer = trace.get_tracer("horamed")
        with tracer.start_as_current_span("horamed.stock.overview") as span:
            span.set_attribute("horamed.user_id", user_id)
            try:
                stock_rows = await store.fetch_user_stock(self.pool, user_id)
                since = now - timedelta(days=CONSUMPTION_WINDOW_DAYS)
                doses = await store.fetch_item_doses_due_since(
                    self.pool, [r["item_id"] for r in stock_rows], since
                )
            except StoreError as exc:
                logger.error("Stock overview for user %s failed at %s: %s", user_id, exc.step, exc)
                return StockOverviewResult(success=False, error=str(exc))

        doses_by_item: dict[uuid.UUID, list[dict]] = {}
        for dose in doses:
            doses_by_item.setdefault(dose["item_id"], []).append(dose)

        projections = []
        for row in stock_rows:
            week = summarize_week(doses_by_item.get(row["item_id"], []), CONSUMPTION_WINDOW_DAYS)
            taken_at = [d["taken_at"] for d in week["taken"] if d.get("taken_at") is not None]
            projections.append(
                StockProjection(
                    item_id=row["item_id"],
                    item_name=row["item_name"],
                    units_left=row["units_left"],
                    units_total=row.get("units_total"),
                    projected_end_at=row.get("projected_end_at"),
                    last_refill_at=row.get("last_refill_at"),
                    daily_consumption_avg=week["daily_avg"],
                    days_remaining=days_remaining(
                        row["units_left"], row.get("projected_end_at"), week["daily_avg"], now
                    ),
                    consumption_trend=consumption_trend(taken_at, now),
                    taken_count_7d=week["taken_count"],
                    scheduled_count_7d=week["scheduled_count"],
                    adherence_7d=week["adherence"],
                    treatment_end_date=row.get("treatment_end_date"),
                )
            )

        # Unknown depletion sorts last
        projections.sort(key=lambda p: (p.days_remaining is None, p.days_remaining or 0))
        return StockOverviewResult(success=True, projections=projections)
