from __future__ import annotations

import calendar
import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Mapping, Optional, Protocol

import numpy as np

from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.fields import parse_date


logger = logging.getLogger(__name__)


class GoalRepository(Protocol):
    """Read-only source of monthly goals and working-day overrides, keyed by ``YYYY-MM``."""

    def get_goal(self, period_key: str) -> Optional[float]:
        ...

    def get_working_days(self, period_key: str) -> Optional[int]:
        ...


@dataclass
class InMemoryGoalRepository:
    goals: Dict[str, float] = field(default_factory=dict)
    working_days: Dict[str, int] = field(default_factory=dict)

    def get_goal(self, period_key: str) -> Optional[float]:
        return self.goals.get(period_key)

    def get_working_days(self, period_key: str) -> Optional[int]:
        return self.working_days.get(period_key)


@dataclass(frozen=True)
class ProjectionConfig:
    # Stored for the weighted two-fortnight model; project_month does not apply them.
    first_half_weight: float = 0.5
    second_half_weight: float = 0.5

    def __post_init__(self) -> None:
        if self.first_half_weight < 0 or self.second_half_weight < 0:
            raise InvalidConfigurationError("fortnight weights must be non-negative")


@dataclass(frozen=True)
class Projection:
    period: str
    realized: float
    month_working_days: int
    elapsed_working_days: int
    remaining_working_days: int
    run_rate: float
    projected_total: float
    elapsed_pct: float
    goal: Optional[float] = None
    attainment_pct: Optional[float] = None
    projected_attainment_pct: Optional[float] = None
    status: str = "no_goal"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def period_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def count_working_days(start: date, end: date) -> int:
    """Monday-to-Friday days in ``[start, end]``, both inclusive."""
    if end < start:
        return 0
    return int(np.busday_count(start, end + timedelta(days=1)))


def attainment(realized: Optional[float], goal: Optional[float]) -> Optional[float]:
    if goal is None or goal == 0 or realized is None or not np.isfinite(realized):
        return None
    return realized / goal * 100


def attainment_status(pct: Optional[float]) -> str:
    if pct is None:
        return "no_goal"
    if pct >= 100:
        return "achieved"
    if pct >= 80:
        return "close"
    return "behind"


def project_month(
    realized: float,
    reference_date: date,
    goals: Optional[GoalRepository] = None,
    config: ProjectionConfig = ProjectionConfig(),
) -> Projection:
    """Linear run-rate projection of the month containing ``reference_date``.

    run rate = realized / elapsed working days; projected = run rate x working
    days in the month. The month length comes from ``goals`` when it holds a
    positive override.
    """
    ref = parse_date(reference_date)
    if ref is None:
        raise InvalidConfigurationError(f"reference_date is not a valid date: {reference_date!r}")
    key = period_key(ref)
    month_start = ref.replace(day=1)
    month_end = ref.replace(day=calendar.monthrange(ref.year, ref.month)[1])

    override = goals.get_working_days(key) if goals is not None else None
    month_days = int(override) if override is not None and override > 0 else count_working_days(month_start, month_end)
    elapsed = count_working_days(month_start, ref)
    remaining = max(0, month_days - elapsed)

    realized = float(realized or 0.0)
    run_rate = realized / elapsed if elapsed > 0 else 0.0
    projected = run_rate * month_days
    # TODO: apply config.first_half_weight/second_half_weight once the weighted fortnight formula is agreed.

    goal = goals.get_goal(key) if goals is not None else None
    achieved = attainment(realized, goal)
    projection = Projection(
        period=key,
        realized=realized,
        month_working_days=month_days,
        elapsed_working_days=elapsed,
        remaining_working_days=remaining,
        run_rate=run_rate,
        projected_total=projected,
        elapsed_pct=elapsed / month_days * 100 if month_days > 0 else 0.0,
        goal=goal,
        attainment_pct=achieved,
        projected_attainment_pct=attainment(projected, goal),
        status=attainment_status(achieved),
    )
    logger.debug("projection %s realized=%.2f projected=%.2f", key, realized, projected)
    return projection


def repository_from_payload(goals: Optional[Mapping[str, Any]], working_days: Optional[Mapping[str, Any]]) -> InMemoryGoalRepository:
    """Build an in-memory repository from loosely-typed ``{"YYYY-MM": value}`` dicts."""
    parsed_goals: Dict[str, float] = {}
    for key, value in (goals or {}).items():
        try:
            parsed_goals[str(key)] = float(value)
        except (TypeError, ValueError):
            logger.warning("ignoring goal %r=%r", key, value)
    parsed_days: Dict[str, int] = {}
    for key, value in (working_days or {}).items():
        try:
            parsed_days[str(key)] = int(value)
        except (TypeError, ValueError):
            logger.warning("ignoring working-day override %r=%r", key, value)
    return InMemoryGoalRepository(goals=parsed_goals, working_days=parsed_days)
