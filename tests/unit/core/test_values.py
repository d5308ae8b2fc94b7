from datetime import date, datetime

import pytest

from src.core.utils.values import field_value, is_blank, mean_and_std, parse_date, parse_datetime, to_number, z_score


class TestToNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(3, 3.0), ("4.5", 4.5), (" -2 ", -2.0), ("1e3", 1000.0), (".5", 0.5)],
    )
    def test_numeric_values(self, value, expected) -> None:
        assert to_number(value) == expected

    @pytest.mark.parametrize("value", [True, None, "", "abc", "$5", float("nan"), "1,000"])
    def test_non_numeric_values(self, value) -> None:
        assert to_number(value) is None


class TestDates:
    def test_parse_date_formats(self) -> None:
        assert parse_date("01/15/2024") == date(2024, 1, 15)
        assert parse_date("15/01/2024") == date(2024, 1, 15)
        assert parse_date("2024/01/15") == date(2024, 1, 15)
        assert parse_date("2024-01-15T10:00:00") == date(2024, 1, 15)
        assert parse_date("yesterday") is None
        assert parse_date(20240115) is None

    def test_custom_formats(self) -> None:
        assert parse_date("15.01.2024", ["%d.%m.%Y"]) == date(2024, 1, 15)

    def test_parse_datetime(self) -> None:
        assert parse_datetime("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30)
        assert parse_datetime("01/15/2024") == datetime(2024, 1, 15)
        assert parse_datetime("") is None


class TestHelpers:
    def test_is_blank(self) -> None:
        assert is_blank(None)
        assert is_blank("   ")
        assert not is_blank(0)
        assert not is_blank("x")

    def test_mean_and_std(self) -> None:
        assert mean_and_std([]) == (0.0, 0.0)
        assert mean_and_std([2, 4, 4, 4, 5, 5, 7, 9]) == (5.0, 2.0)

    def test_z_score(self) -> None:
        assert z_score(9, 5, 2) == 2.0
        assert z_score(1, 5, 2) == 2.0
        assert z_score(5, 5, 0) == 0.0

    def test_field_value_accepts_capitalised_names(self) -> None:
        assert field_value({"Amount": 5}, "amount") == 5
        assert field_value({"amount": 1, "Amount": 5}, "amount") == 1
        assert field_value({}, "amount") is None
