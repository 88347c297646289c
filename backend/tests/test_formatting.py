import datetime
from zoneinfo import ZoneInfo

from tickerfeed.formatting import (
    badge,
    format_market_cap,
    format_price,
    format_ratio,
    format_stand_time,
    format_volume,
)


def test_format_price_groups_thousands() -> None:
    assert format_price(67000) == "67'000.00"
    assert format_price(1234567.891) == "1'234'567.89"
    assert format_price(150.23) == "150.23"
    assert format_price(None) == "0.00"
    assert format_price(float("nan")) == "0.00"


def test_magnitudes() -> None:
    assert format_market_cap(1.32e12) == "$1.32T"
    assert format_market_cap(4.5e9) == "$4.50B"
    assert format_market_cap(7.25e6) == "$7.25M"
    assert format_market_cap(None) == "$0"
    assert format_volume(2.87e10) == "$28.7B"
    assert format_volume(3.4e6) == "$3.4M"
    assert format_ratio(28.456) == "28.5"


def test_badge_sign_and_class() -> None:
    assert badge(1.5068) == ("badge positive", "+1.51%")
    assert badge(-2.3) == ("badge negative", "-2.30%")
    assert badge(0.0) == ("badge positive", "+0.00%")


def test_stand_time_in_zurich() -> None:
    moment = datetime.datetime(2024, 3, 15, 17, 45, tzinfo=ZoneInfo("Europe/Zurich"))
    ts_ms = moment.timestamp() * 1000

    assert format_stand_time(ts_ms) == "Stand: 15.03.2024 17:45"
    assert format_stand_time(None) == "Stand: —"
