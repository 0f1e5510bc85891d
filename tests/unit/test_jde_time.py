from datetime import date, datetime, time

import pytest

from pdfpost.domain.jde_time import (
    adjust_by_minutes,
    from_jde,
    from_jde_date,
    from_jde_time,
    to_jde_date,
    to_jde_time,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (date(2015, 9, 2), 115245),
        (date(2000, 1, 1), 100001),
        (date(1999, 12, 31), 99365),
        (date(2016, 12, 31), 116366),
    ],
)
def test_to_jde_date(value: date, expected: int) -> None:
    assert to_jde_date(value) == expected
    assert from_jde_date(expected) == value


@pytest.mark.unit
def test_jde_time_round_trip_for_scenario_time() -> None:
    assert to_jde_time(time(10, 30, 0)) == 103000
    assert to_jde_time(datetime(2015, 9, 2, 0, 0, 7)) == 7
    assert from_jde_time(103000) == time(10, 30, 0)
    assert from_jde(115245, 103000) == datetime(2015, 9, 2, 10, 30, 0)


@pytest.mark.unit
@pytest.mark.parametrize("value", [0, -1, 115000, 115400])
def test_from_jde_date_rejects_invalid_values(value: int) -> None:
    with pytest.raises(ValueError, match="invalid JDE date"):
        from_jde_date(value)


@pytest.mark.unit
def test_adjust_by_minutes_crosses_midnight() -> None:
    assert adjust_by_minutes(datetime(2015, 9, 2, 0, 3, 0), -5) == (115244, 235800)
    assert adjust_by_minutes(datetime(2015, 9, 2, 12, 0, 0), -1440) == (115244, 120000)
    assert adjust_by_minutes(datetime(2015, 12, 31, 23, 58, 0), 5) == (116001, 300)
