"""Unit tests for month-end projection and goal attainment"""

from datetime import date

import pytest

from commercial_core.projection import (
    InMemoryGoalRepository,
    ProjectionConfig,
    attainment,
    attainment_status,
    count_working_days,
    period_key,
    project_month,
    repository_from_payload,
)


def test_count_working_days_is_inclusive():
    # 2025-02-03 is a Monday
    assert count_working_days(date(2025, 2, 3), date(2025, 2, 7)) == 5
    assert count_working_days(date(2025, 2, 1), date(2025, 2, 2)) == 0
    assert count_working_days(date(2025, 2, 1), date(2025, 2, 28)) == 20
    assert count_working_days(date(2025, 2, 10), date(2025, 2, 1)) == 0


def test_linear_run_rate():
    """13 of 20 working days elapsed on 19 Feb 2025"""
    p = project_month(130.0, date(2025, 2, 19))
    assert p.period == "2025-02"
    assert p.elapsed_working_days == 13
    assert p.month_working_days == 20
    assert p.remaining_working_days == 7
    assert p.run_rate == pytest.approx(10)
    assert p.projected_total == pytest.approx(200)
    assert p.elapsed_pct == pytest.approx(65)
    assert p.goal is None and p.attainment_pct is None
    assert p.status == "no_goal"


def test_goal_and_working_day_override():
    goals = InMemoryGoalRepository(goals={"2025-02": 250.0}, working_days={"2025-02": 19})
    p = project_month(130.0, date(2025, 2, 19), goals)
    assert p.month_working_days == 19
    assert p.projected_total == pytest.approx(190)
    assert p.attainment_pct == pytest.approx(52)
    assert p.projected_attainment_pct == pytest.approx(76)
    assert p.status == "behind"


def test_non_positive_override_ignored():
    goals = InMemoryGoalRepository(working_days={"2025-02": 0})
    assert project_month(10.0, date(2025, 2, 19), goals).month_working_days == 20


def test_no_elapsed_working_days():
    p = project_month(50.0, date(2025, 2, 1))
    assert p.elapsed_working_days == 0
    assert p.run_rate == 0
    assert p.projected_total == 0


def test_fortnight_weights_do_not_change_projection():
    weighted = project_month(130.0, date(2025, 2, 19), config=ProjectionConfig(0.3, 0.7))
    assert weighted.projected_total == pytest.approx(project_month(130.0, date(2025, 2, 19)).projected_total)


def test_attainment_rules():
    assert attainment(80, 100) == pytest.approx(80)
    assert attainment(80, None) is None
    assert attainment(80, 0) is None
    assert attainment_status(None) == "no_goal"
    assert attainment_status(100) == "achieved"
    assert attainment_status(85) == "close"
    assert attainment_status(10) == "behind"


def test_period_key_and_payload_repository():
    assert period_key(date(2025, 2, 19)) == "2025-02"
    repo = repository_from_payload({"2025-02": "1000", "bad": "x"}, {"2025-02": 18})
    assert repo.get_goal("2025-02") == 1000.0
    assert repo.get_goal("bad") is None
    assert repo.get_working_days("2025-02") == 18
