from datetime import date
from decimal import Decimal

import pytest

from chit_calc.schedule import (
    build_group_schedule,
    compute_current_month_index,
    compute_per_member_installment,
    member_count,
    month_index_for_date,
)


@pytest.mark.parametrize(
    "start, today, expected",
    [
        (date(2024, 1, 1), date(2024, 4, 15), 4),
        (date(2024, 1, 1), date(2024, 1, 1), 1),
        (date(2024, 1, 20), date(2024, 2, 19), 1),
        (date(2024, 1, 20), date(2024, 2, 20), 2),
        (date(2023, 11, 5), date(2024, 2, 10), 4),
        (date(2024, 6, 1), date(2024, 4, 15), 1),
        (None, date(2024, 4, 15), 1),
    ],
)
def test_current_month_index(start, today, expected):
    assert compute_current_month_index(start, today) == expected


def test_explicit_monthly_installment_wins():
    group = {"monthlyInstallment": "5000", "chitValue": 999999, "totalMonths": 20}
    assert compute_per_member_installment(group) == Decimal("5000")


def test_installment_from_chit_value():
    group = {"chitValue": 100000, "totalMonths": 20, "totalMembers": 5}
    assert compute_per_member_installment(group) == Decimal("1000")


def test_member_count_falls_back_to_members_list():
    group = {"chitValue": 60000, "totalMonths": 10, "members": ["a", "b", "c"]}
    assert member_count(group) == 3
    assert compute_per_member_installment(group) == Decimal("2000")


def test_installment_aliases():
    assert compute_per_member_installment({"monthly": 750}) == Decimal("750")
    group = {"totalAmount": 24000, "numberOfInstallments": 12, "totalMembers": 2}
    assert compute_per_member_installment(group) == Decimal("1000")


@pytest.mark.parametrize(
    "group",
    [
        {},
        {"monthlyInstallment": "abc"},
        {"monthlyInstallment": -10},
        {"chitValue": None, "totalMonths": "x"},
    ],
)
def test_unusable_group_resolves_to_zero(group):
    assert compute_per_member_installment(group) == Decimal("0")


def test_build_group_schedule_unwraps_data_and_tolerates_garbage():
    schedule = build_group_schedule(
        {"data": {"monthlyInstallment": 1200, "totalMonths": "0", "startDate": "not a date", "penalty_rate": "1.5"}}
    )
    assert schedule.per_member_installment == Decimal("1200")
    assert schedule.total_months == 1
    assert schedule.start_date is None
    assert schedule.penalty_percent_per_month == Decimal("1.5")


def test_build_group_schedule_from_scenario(schedule):
    assert schedule.per_member_installment == Decimal("5000")
    assert schedule.total_months == 20
    assert schedule.start_date == date(2024, 1, 1)
    assert schedule.penalty_percent_per_month == Decimal("2")


def test_month_index_for_date():
    start = date(2024, 1, 31)
    assert month_index_for_date(start, date(2024, 1, 31)) == 1
    assert month_index_for_date(start, date(2024, 3, 1)) == 3
    assert month_index_for_date(start, None) is None
    assert month_index_for_date(None, date(2024, 3, 1)) is None
