import datetime

import pytest

from atomcodec import DEFAULT_DATETIME, format_datetime, parse_datetime


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2017-06-03T15:15:44-05:00", "2017-06-03T15:15:44-05:00"),
        ("2017-06-03T15:15:44Z", "2017-06-03T15:15:44+00:00"),
        ("2017-06-03T15:15:44+0200", "2017-06-03T15:15:44+02:00"),
        ("2017-06-03T15:15:44.123456789Z", "2017-06-03T15:15:44.123456+00:00"),
        ("2017-06-03 15:15:44", "2017-06-03T15:15:44+00:00"),
        ("2017-06-03", "2017-06-03T00:00:00+00:00"),
        ("Sat, 03 Jun 2017 15:15:44 -0500", "2017-06-03T15:15:44-05:00"),
        ("Sat, 03 Jun 2017 15:15:44 GMT", "2017-06-03T15:15:44+00:00"),
        ("Sat, 03 Jun 2017 15:15:44 EST", "2017-06-03T15:15:44-05:00"),
        ("June 3, 2017 3:15pm PDT", "2017-06-03T15:15:00-07:00"),
        ("  2017-06-03T15:15:44Z\n", "2017-06-03T15:15:44+00:00"),
    ],
)
def test_parse_datetime(value, expected):
    assert format_datetime(parse_datetime(value)) == expected


@pytest.mark.parametrize("value", ["", "   ", "garbage"])
def test_parse_datetime_rejects(value):
    assert parse_datetime(value) is None


def test_parse_datetime_keeps_offset():
    parsed = parse_datetime("2017-06-03T15:15:44-05:00")
    assert parsed.utcoffset() == datetime.timedelta(hours=-5)
    assert parsed == datetime.datetime(2017, 6, 3, 20, 15, 44, tzinfo=datetime.timezone.utc)


def test_format_naive_datetime_as_utc():
    assert format_datetime(datetime.datetime(2020, 1, 2, 3, 4, 5)) == (
        "2020-01-02T03:04:05+00:00"
    )


def test_default_datetime():
    assert format_datetime(DEFAULT_DATETIME) == "1970-01-01T00:00:00+00:00"
