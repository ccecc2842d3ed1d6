from datetime import date

from solarman_sync.services.weather_window import read_target_window
from solarman_sync.util.timeparse import parse_day, parse_timestamp


def test_window_is_min_and_max_day(tmp_path):
    path = tmp_path / "weather.csv"
    path.write_text(
        "time,temperature_2m\n"
        "2024-01-03T00:00,1.0\n"
        "2024-01-01T00:00,2.0\n"
        "2024-01-05T23:00,3.0\n"
        "2024-01-02T12:00,4.0\n",
        encoding="utf-8",
    )

    window = read_target_window(path)

    assert window.start == date(2024, 1, 1)
    assert window.end == date(2024, 1, 5)
    assert len(window) == 5
    assert list(window.days())[2] == date(2024, 1, 3)


def test_unparseable_rows_are_skipped(tmp_path):
    path = tmp_path / "weather.csv"
    path.write_text("time,t\nnot-a-date,1\n\n2024-03-01 10:00:00,2\n2024-03-02,3\n", encoding="utf-8")

    window = read_target_window(path)

    assert (window.start, window.end) == (date(2024, 3, 1), date(2024, 3, 2))


def test_missing_or_empty_file_has_no_window(tmp_path):
    path = tmp_path / "weather.csv"
    assert read_target_window(path) is None

    path.write_text("", encoding="utf-8")
    assert read_target_window(path) is None

    path.write_text("time,t\n", encoding="utf-8")
    assert read_target_window(path) is None

    path.write_text("time,t\ngarbage,1\n", encoding="utf-8")
    assert read_target_window(path) is None


def test_collect_time_encodings():
    assert parse_day("2024-01-02T03:04:05") == date(2024, 1, 2)
    assert parse_day("2024-01-02 03:04:05") == date(2024, 1, 2)
    assert parse_day(" 2024-01-02 ") == date(2024, 1, 2)
    assert parse_day("") is None
    assert parse_day(None) is None
    # Minute precision is only accepted for weather timestamps.
    assert parse_timestamp("2024-01-02T03:04") is None
