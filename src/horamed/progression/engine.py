"""AdherenceProgressionEngine: XP, level and streaks recomputed from dose history."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

import asyncpg
from opentelemetry import trace

from horamed.config import ProgressionConfig
from horamed.errors import StoreError
from horamed.models import ProgressionResult, StreakResult, XPState
from horamed.progression import store
from horamed.progression.streaks import compute_streaks, streak_cutoff
from horamed.progression.xp import compute_xp_state, perfect_day_cutoff

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AdherenceProgressionEngine:
    """Derives gamification state for a user on demand.

    Nothing is accumulated between calls: each :meth:`compute` rescans the
    dose history, so repeating a call never double-counts. The last good
    snapshot is kept in :attr:`state` and survives failed refreshes.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        settings: ProgressionConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.pool = pool
        self.settings = settings or ProgressionConfig()
        self._clock = clock
        self.state: XPState = XPState.initial()

    async def compute(self, user_id: str, now: datetime | None = None) -> ProgressionResult:
        now = now or self._clock()
        tracer = trace.get_tracer("horamed")
        with tracer.start_as_current_span("horamed.progression.compute") as span:
            span.set_attribute("horamed.user_id", user_id)
            try:
                taken = await store.fetch_taken_doses(self.pool, user_id)
                recent = await store.fetch_doses_due_since(
                    self.pool, user_id, perfect_day_cutoff(now)
                )
            except StoreError as exc:
                logger.error("XP computation for user %s failed at %s: %s", user_id, exc.step, exc)
                return ProgressionResult(success=False, state=self.state, error=str(exc))

            state = compute_xp_state(taken, recent, now, self.settings)
            span.set_attribute("horamed.level", state.level)

        logger.debug(
            "User %s: %d XP, level %d (%d/%d)",
            user_id,
            state.total_xp,
            state.level,
            state.current_xp,
            state.xp_to_next_level,
        )
        self.state = state
        return ProgressionResult(success=True, state=state)

    async def streaks(self, user_id: str, now: datetime | None = None) -> StreakResult:
        now = now or self._clock()
        tz = self.settings.tzinfo
        tracer = trace.get_tracer("horamed")
        with tracer.start_as_current_span("horamed.progression.streaks") as span:
            span.set_attribute("horamed.user_id", user_id)
            try:
                doses = await store.fetch_doses_due_since(
                    self.pool, user_id, streak_cutoff(now, tz)
                )
            except StoreError as exc:
                logger.error(
                    "Streak computation for user %s failed at %s: %s", user_id, exc.step, exc
                )
                return StreakResult(success=False, error=str(exc))

        return StreakResult(success=True, streaks=compute_streaks(doses, now, tz))
