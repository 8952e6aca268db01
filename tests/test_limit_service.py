from datetime import datetime, timezone

import pytest

from finance_tracker.schemas import CategoryLimit, Transaction
from finance_tracker.services.limit_service import LimitExceeded, LimitWarning, evaluate

_ids = iter(range(1, 10_000))


def _tx(amount, category="Qida", tx_type="expense", day=datetime(2024, 5, 10, tzinfo=timezone.utc)):
    return Transaction(
        id=next(_ids),
        user_id="u1",
        type=tx_type,
        category=category,
        amount=amount,
        date=day,
    )


def _limit(category="Qida", monthly_limit=100.0):
    return CategoryLimit(id=1, user_id="u1", category=category, monthly_limit=monthly_limit)


def test_warning_at_exactly_eighty_percent():
    new = _tx(80)
    event = evaluate(new, [_limit()], [new])
    assert isinstance(event, LimitWarning)
    assert event.percentage == 80
    assert event.month_total == 80
    assert event.monthly_limit == 100


def test_still_warning_just_below_the_limit():
    new = _tx(99.99)
    assert isinstance(evaluate(new, [_limit()], [new]), LimitWarning)


@pytest.mark.parametrize("amount", [100, 100.01, 250])
def test_exceeded_at_or_above_the_limit(amount):
    new = _tx(amount)
    event = evaluate(new, [_limit()], [new])
    assert isinstance(event, LimitExceeded)
    assert event.to_payload()["kind"] == "limit_exceeded"


def test_nothing_below_eighty_percent():
    new = _tx(79.99)
    assert evaluate(new, [_limit()], [new]) is None


def test_sums_same_month_same_category_case_insensitively():
    prior = [_tx(30, category="qida"), _tx(20, category="QIDA ")]
    new = _tx(35)
    event = evaluate(new, [_limit()], prior + [new])
    assert isinstance(event, LimitWarning)
    assert event.month_total == 85
    assert event.percentage == 85


def test_ignores_income_other_categories_and_other_months():
    others = [
        _tx(500, tx_type="income"),
        _tx(500, category="Nəqliyyat"),
        _tx(500, day=datetime(2024, 4, 30, 23, 59, tzinfo=timezone.utc)),
        _tx(500, day=datetime(2024, 6, 1, tzinfo=timezone.utc)),
    ]
    new = _tx(10)
    assert evaluate(new, [_limit()], others + [new]) is None


def test_counts_new_expense_when_month_set_does_not_contain_it():
    new = _tx(90)
    event = evaluate(new, [_limit()], [])
    assert isinstance(event, LimitWarning)
    assert event.percentage == 90


def test_new_expense_is_not_double_counted():
    prior = _tx(40)
    new = _tx(50)
    event = evaluate(new, [_limit()], [prior, new])
    assert event.month_total == 90


def test_income_is_never_evaluated():
    new = _tx(1000, tx_type="income")
    assert evaluate(new, [_limit()], [new]) is None


def test_no_limit_for_category():
    new = _tx(1000, category="Əyləncə")
    assert evaluate(new, [_limit()], [new]) is None


def test_zero_total_is_a_no_op():
    new = _tx(0)
    assert evaluate(new, [_limit()], [new]) is None



def test_non_positive_limit_is_a_no_op():
    new = _tx(500)
    assert evaluate(new, [_limit(monthly_limit=0)], [new]) is None
