"""
Tests for the CSV output module.
"""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from access_analyzer.angles import AngleSample, SunAngleSample
from access_analyzer.errors import OutputError
from access_analyzer.output import (
    ACCESS_HEADER,
    AccessWindowWriter,
    EarthAngleWriter,
    OutputLayout,
    SunAngleWriter,
    format_azimuth,
    format_utc,
    format_value,
)
from access_analyzer.visibility import AccessWindow

T0 = datetime(2021, 1, 1)


def read_lines(path: Path):
    return path.read_text(encoding="utf-8").splitlines()


class TestFormatting:
    """Tests for time and value formatting."""

    def test_epoch(self) -> None:
        assert format_utc(T0) == "1 Jan 2021 00:00:00.000"

    def test_milliseconds(self) -> None:
        assert format_utc(datetime(2021, 3, 5, 7, 8, 9, 123456)) == "5 Mar 2021 07:08:09.123"

    def test_rounds_half_millisecond_up(self) -> None:
        assert format_utc(datetime(2021, 3, 5, 7, 8, 9, 123500)) == "5 Mar 2021 07:08:09.124"

    def test_rounding_carries_into_next_day(self) -> None:
        assert format_utc(datetime(2021, 12, 31, 23, 59, 59, 999600)) == "1 Jan 2022 00:00:00.000"

    def test_two_digit_day(self) -> None:
        assert format_utc(datetime(2021, 10, 24, 13, 5, 1)) == "24 Oct 2021 13:05:01.000"

    @pytest.mark.parametrize(
        "value, text",
        [(5.5, "005.500"), (123.4567, "123.457"), (-5.5, "-05.500"), (359.9994, "359.999"), (0.0, "000.000")],
    )
    def test_format_value(self, value, text) -> None:
        assert format_value(value) == text

    @pytest.mark.parametrize(
        "value, text",
        [(359.9996, "000.000"), (359.9994, "359.999"), (0.0, "000.000"), (180.25, "180.250")],
    )
    def test_format_azimuth_wraps(self, value, text) -> None:
        assert format_azimuth(value) == text


class TestOutputLayout:
    """Tests for OutputLayout paths."""

    def test_paths(self, tmp_path) -> None:
        layout = OutputLayout(tmp_path)

        assert layout.access_path("ERNST", "Freiburg") == tmp_path / "AccessTimes" / "Freiburg" / "ERNST.csv"
        assert layout.sun_angles_path("ERNST") == tmp_path / "SunAngles" / "ERNST.csv"
        assert layout.earth_angles_path("ERNST") == tmp_path / "EarthAngles" / "ERNST.csv"


class TestWriters:
    """Tests for the CSV writers."""

    def test_access_windows(self, tmp_path) -> None:
        path = OutputLayout(tmp_path).access_path("ERNST", "Freiburg")
        window = AccessWindow(
            "ERNST", "Freiburg", 1, T0 + timedelta(minutes=10), T0 + timedelta(minutes=15, seconds=30.25)
        )

        with AccessWindowWriter(path) as writer:
            writer.write(window)

        assert read_lines(path) == [
            ",".join(ACCESS_HEADER),
            "1,1 Jan 2021 00:10:00.000,1 Jan 2021 00:15:30.250,330.250",
        ]

    def test_header_only_when_no_rows(self, tmp_path) -> None:
        path = tmp_path / "empty.csv"
        with AccessWindowWriter(path):
            pass
        assert read_lines(path) == ["Access,StartTimeUTC,StopTimeUTC,DurationSeconds"]

    def test_sun_azimuth_never_reaches_360(self, tmp_path) -> None:
        path = tmp_path / "wrap.csv"

        with SunAngleWriter(path) as writer:
            writer.write(SunAngleSample(T0, 359.9998, 1.0, 2.0))

        assert read_lines(path)[1] == "1 Jan 2021 00:00:00.000,000.000,001.000,002.000"

    def test_sun_angles(self, tmp_path) -> None:
        path = tmp_path / "SunAngles" / "ERNST.csv"

        with SunAngleWriter(path) as writer:
            writer.write(SunAngleSample(T0, 12.3456, -45.0, 101.5))

        assert read_lines(path) == [
            "TimeUTC,Azimuth(deg),Elevation(deg),Subsolar(deg)",
            "1 Jan 2021 00:00:00.000,012.346,-45.000,101.500",
        ]

    def test_earth_angles(self, tmp_path) -> None:
        path = tmp_path / "EarthAngles" / "ERNST.csv"

        with EarthAngleWriter(path) as writer:
            writer.write(AngleSample(T0 + timedelta(seconds=60), 0.0, 90.0))
            writer.write(AngleSample(T0 + timedelta(seconds=120), 0.0, 90.0))

        assert read_lines(path) == [
            "TimeUTC,Azimuth(deg),Elevation(deg)",
            "1 Jan 2021 00:01:00.000,000.000,090.000",
            "1 Jan 2021 00:02:00.000,000.000,090.000",
        ]
        assert writer.rows_written == 2

    def test_rows_flushed_while_open(self, tmp_path) -> None:
        path = tmp_path / "flush.csv"

        with EarthAngleWriter(path) as writer:
            writer.write(AngleSample(T0, 10.0, 20.0))
            assert len(read_lines(path)) == 2

    def test_closed_after_context(self, tmp_path) -> None:
        with EarthAngleWriter(tmp_path / "closed.csv") as writer:
            pass

        assert writer.closed
        with pytest.raises(OutputError):
            writer.write(AngleSample(T0, 0.0, 0.0))

    def test_unwritable_location(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(OutputError):
            SunAngleWriter(blocker / "SunAngles" / "ERNST.csv").open()

    def test_output_error_is_os_error(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with pytest.raises(OSError):
            EarthAngleWriter(blocker / "x.csv").open()
