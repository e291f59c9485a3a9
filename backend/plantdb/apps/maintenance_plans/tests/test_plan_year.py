from __future__ import annotations

from datetime import date

import pytest

from plantdb.apps.maintenance_plans.plan_year import (
    ALL_MONTHS,
    derive_allowed_months,
    is_month_allowed,
)

JAN, FEB, MAR, APR, MAY, JUN, JUL, AUG, SEP, OCT, NOV, DEC = range(12)


@pytest.mark.parametrize("text", ["Monthly", "MONTHLY", "monthly pm", "Jan-Mar (monthly)"])
def test_monthly_means_every_month(text):
    assert derive_allowed_months(text) == ALL_MONTHS


def test_hyphen_list_of_four_is_not_a_range():
    assert derive_allowed_months("Feb-May-Aug-Nov") == {FEB, MAY, AUG, NOV}


def test_two_month_range_wraps_over_year_end():
    assert derive_allowed_months("Jul-Jan") == {JUL, AUG, SEP, OCT, NOV, DEC, JAN}


def test_forward_range_is_inclusive():
    assert derive_allowed_months("march - june") == {MAR, APR, MAY, JUN}


def test_same_start_and_end_is_one_month():
    assert derive_allowed_months("Apr-April") == {APR}


def test_full_names_and_sept_are_recognised():
    assert derive_allowed_months("September, December") == {SEP, DEC}
    assert derive_allowed_months("Sept") == {SEP}


def test_two_tokens_without_hyphen_are_discrete():
    assert derive_allowed_months("Jan and Jul") == {JAN, JUL}


def test_two_tokens_with_extra_hyphen_are_discrete():
    assert derive_allowed_months("Jan-Jul-") == {JAN, JUL}


@pytest.mark.parametrize("text", [None, "", "   "])
def test_blank_text_is_empty_set(text):
    assert derive_allowed_months(text) == frozenset()


def test_unrecognised_text_fails_open():
    assert derive_allowed_months("garbage text") == ALL_MONTHS


def test_result_is_stable_across_calls():
    first = derive_allowed_months("Feb-May-Aug-Nov")
    second = derive_allowed_months("Feb-May-Aug-Nov")
    assert first == second
    assert isinstance(first, frozenset)


def test_is_month_allowed_treats_empty_as_unrestricted():
    assert is_month_allowed(None, date(2025, 3, 1))
    assert is_month_allowed("", date(2025, 3, 1))


def test_is_month_allowed_checks_plan_months():
    assert is_month_allowed("Feb-May-Aug-Nov", date(2025, 5, 20))
    assert not is_month_allowed("Feb-May-Aug-Nov", date(2025, 6, 2))
