"""Records read from the store and values the engines derive from them."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class DoseStatus(enum.StrEnum):
    """Outcome of a scheduled dose."""

    SCHEDULED = "scheduled"
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"


class ConsumptionTrend(enum.StrEnum):
    """Direction of the recent consumption rate, earlier vs later half of the week."""

    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


@dataclass
class StockRecord:
    """Remaining-units tracker for one item."""

    item_id: uuid.UUID
    units_left: int
    projected_end_at: datetime | None = None
    updated_at: datetime | None = None
    id: uuid.UUID | None = None
    units_total: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> StockRecord:
        return cls(
            item_id=row["item_id"],
            units_left=row["units_left"],
            projected_end_at=row.get("projected_end_at"),
            updated_at=row.get("updated_at"),
            id=row.get("id"),
            units_total=row.get("units_total"),
        )


@dataclass
class DoseInstance:
    """One scheduled occurrence of taking an item."""

    id: uuid.UUID
    item_id: uuid.UUID
    due_at: datetime
    status: DoseStatus
    taken_at: datetime | None = None
    delay_minutes: int | None = None

    @property
    def is_taken(self) -> bool:
        return self.status == DoseStatus.TAKEN

    @property
    def occurred_at(self) -> datetime:
        """When the dose counts as having happened: ``taken_at``, else ``due_at``."""
        return self.taken_at or self.due_at

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> DoseInstance:
        return cls(
            id=row["id"],
            item_id=row["item_id"],
            due_at=row["due_at"],
            status=DoseStatus(row["status"]),
            taken_at=row.get("taken_at"),
            delay_minutes=row.get("delay_minutes"),
        )


@dataclass
class ScheduleDefinition:
    item_id: uuid.UUID
    times: list[str] = field(default_factory=list)
    is_active: bool = True


@dataclass(frozen=True)
class XPState:
    """Gamification snapshot derived from a user's dose history."""

    current_xp: int
    level: int
    xp_to_next_level: int
    total_xp: int
    weekly_xp: int
    monthly_xp: int

    @classmethod
    def initial(cls) -> XPState:
        return cls(
            current_xp=0,
            level=1,
            xp_to_next_level=100,
            total_xp=0,
            weekly_xp=0,
            monthly_xp=0,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "currentXP": self.current_xp,
            "level": self.level,
            "xpToNextLevel": self.xp_to_next_level,
            "totalXP": self.total_xp,
            "weeklyXP": self.weekly_xp,
            "monthlyXP": self.monthly_xp,
        }


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    is_improving: bool = False
    last_week_average: int = 0
    this_week_average: int = 0


@dataclass
class StockProjection:
    """Per-item row of the stock overview, ordered by urgency."""

    item_id: uuid.UUID
    item_name: str
    units_left: int
    units_total: int | None
    projected_end_at: datetime | None
    last_refill_at: datetime | None
    daily_consumption_avg: float
    days_remaining: int | None
    consumption_trend: ConsumptionTrend
    taken_count_7d: int
    scheduled_count_7d: int
    adherence_7d: int
    treatment_end_date: Any = None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


@dataclass
class StockUpdateResult:
    """Outcome of a stock mutation.

    ``tracked`` is False when the item has no stock record. On a failed
    write, ``units_left``/``projected_end_at`` carry the values that were
    computed but not persisted.
    """

    success: bool
    item_id: uuid.UUID
    tracked: bool = True
    units_left: int | None = None
    projected_end_at: datetime | None = None
    error: str | None = None


@dataclass
class StockOverviewResult:
    """Outcome of a stock overview read; ``projections`` is most urgent first."""

    success: bool
    projections: list[StockProjection] = field(default_factory=list)
    error: str | None = None


@dataclass
class ProgressionResult:
    success: bool
    state: XPState | None = None
    error: str | None = None


@dataclass
class StreakResult:
    success: bool
    streaks: StreakState | None = None
    error: str | None = None
