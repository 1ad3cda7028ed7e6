from datetime import date

import pytest

from payadmin_api.services.cutoff import Cutoff, from_anchor, parse_cutoff, resolve
from payadmin_api.services.ledger_errors import ValidationError


def test_first_cutoff_is_days_1_to_15():
    p = resolve(2025, 6, "1st")
    assert p.start == date(2025, 6, 1)
    assert p.end == date(2025, 6, 15)
    assert p.anchor_date == date(2025, 6, 15)


@pytest.mark.parametrize("year,month,last", [
    (2025, 2, 28),
    (2024, 2, 29),   # leap year
    (2025, 4, 30),
    (2025, 12, 31),
])
def test_second_cutoff_runs_to_month_end(year, month, last):
    p = resolve(year, month, "2nd")
    assert p.start == date(year, month, 16)
    assert p.end == date(year, month, last)
    assert p.anchor_date == p.end


def test_cutoff_labels_accept_aliases():
    assert parse_cutoff("First") is Cutoff.FIRST
    assert parse_cutoff("2") is Cutoff.SECOND
    assert parse_cutoff(Cutoff.SECOND) is Cutoff.SECOND


@pytest.mark.parametrize("year,month,cutoff", [
    (2025, 13, "1st"),
    (2025, 0, "2nd"),
    ("abc", 6, "1st"),
    (2025, 6, "3rd"),
    (2025, 6, None),
])
def test_bad_periods_rejected(year, month, cutoff):
    with pytest.raises(ValidationError):
        resolve(year, month, cutoff)


def test_string_inputs_from_query_args():
    p = resolve("2025", "06", "1st")
    assert (p.year, p.month, p.cutoff) == (2025, 6, Cutoff.FIRST)


def test_from_anchor_derives_cutoff_from_day():
    assert from_anchor(date(2025, 6, 15)).cutoff is Cutoff.FIRST
    assert from_anchor(date(2025, 6, 30)).cutoff is Cutoff.SECOND
    assert from_anchor(date(2025, 6, 30), "2nd") == resolve(2025, 6, "2nd")


def test_contains_and_as_dict():
    p = resolve(2025, 6, "2nd")
    assert p.contains(date(2025, 6, 16))
    assert not p.contains(date(2025, 6, 15))
    d = p.as_dict()
    assert d["cutoff"] == "2nd"
    assert d["start"] == "2025-06-16"
    assert d["end"] == "2025-06-30"
