"""Tests for cron parsing and next-run calculation."""

from datetime import datetime, timedelta, timezone

import pytest

from ojs_lifecycle.core.cron import (
    CRON_ALIASES,
    CRON_PRESETS,
    describe_cron,
    get_next_runs,
    parse_cron,
)

UTC = timezone.utc


class TestParseCron:
    """Tests for parse_cron."""

    def test_step_expands_minutes(self):
        result = parse_cron("*/15 * * * *")
        assert result.valid is True
        assert result.fields[0] == (0, 15, 30, 45)

    def test_wildcards_expand_to_full_ranges(self):
        result = parse_cron("* * * * *")
        assert result.fields[0] == tuple(range(60))
        assert result.fields[1] == tuple(range(24))
        assert result.fields[2] == tuple(range(1, 32))
        assert result.fields[3] == tuple(range(1, 13))
        assert result.fields[4] == tuple(range(7))

    def test_range_with_step(self):
        assert parse_cron("0 9-17/2 * * *").fields[1] == (9, 11, 13, 15, 17)

    def test_start_with_step(self):
        """A bare start value with a step runs to the field maximum."""
        assert parse_cron("5/15 * * * *").fields[0] == (5, 20, 35, 50)

    def test_lists_are_sorted_and_deduplicated(self):
        assert parse_cron("30,10,10,20 * * * *").fields[0] == (10, 20, 30)

    def test_month_and_weekday_names(self):
        result = parse_cron("0 0 * JAN,mar MON-FRI")
        assert result.fields[3] == (1, 3)
        assert result.fields[4] == (1, 2, 3, 4, 5)

    def test_sunday_is_zero(self):
        assert parse_cron("0 0 * * SUN").fields[4] == (0,)

    @pytest.mark.parametrize("alias", sorted(CRON_ALIASES))
    def test_aliases_resolve(self, alias):
        result = parse_cron(alias)
        assert result.valid is True
        assert result.expression == CRON_ALIASES[alias]

    def test_wrong_field_count(self):
        result = parse_cron("0 0 *")
        assert result.valid is False
        assert result.error == "Expected 5 fields, got 3"

    def test_value_out_of_bounds(self):
        result = parse_cron("60 * * * *")
        assert result.valid is False
        assert "out of bounds" in result.error

    @pytest.mark.parametrize(
        ("expression", "fragment"),
        [
            ("*/0 * * * *", "Invalid step value"),
            ("*/x * * * *", "Invalid step value"),
            ("5-2 * * * *", "Range out of bounds"),
            ("0 20-25 * * *", "Range out of bounds"),
            ("a-b * * * *", "Invalid range"),
            ("1,,2 * * * *", "Empty list item"),
            ("0 0 0 * *", "out of bounds"),
            ("0 0 * 13 *", "out of bounds"),
            ("0 0 * * 7", "out of bounds"),
        ],
    )
    def test_malformed_fields(self, expression, fragment):
        """Malformed fields are reported, never raised."""
        result = parse_cron(expression)
        assert result.valid is False
        assert fragment in result.error

    @pytest.mark.parametrize("expression", ["\u0661 * * * *", "*/\u0665 * * * *", "0 0 1-\u0663 * *"])
    def test_non_ascii_digits_rejected(self, expression):
        """Only ASCII digits count as numbers."""
        assert parse_cron(expression).valid is False

    def test_error_names_the_field(self):
        assert parse_cron("0 24 * * *").error.startswith("Hour: ")

    def test_unknown_alias(self):
        result = parse_cron("@fortnightly")
        assert result.valid is False
        assert result.error == "Unknown alias: @fortnightly"

    def test_to_dict_omits_unset_keys(self):
        assert parse_cron("0 0 *").to_dict() == {"valid": False, "error": "Expected 5 fields, got 3"}
        payload = parse_cron("0 * * * *").to_dict()
        assert payload["valid"] is True
        assert payload["fields"][0] == [0]
        assert "error" not in payload

    def test_presets_are_valid(self):
        for preset in CRON_PRESETS:
            assert parse_cron(preset.expression).valid, preset.label


class TestDescribeCron:
    """Tests for human-readable descriptions."""

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("@daily", "Once a day at midnight"),
            ("@hourly", "Once an hour at minute 0"),
            ("@weekly", "Once a week (Sunday at midnight)"),
            ("@monthly", "Once a month (1st at midnight)"),
            ("@yearly", "Once a year (January 1st at midnight)"),
            ("* * * * *", "Every minute"),
        ],
    )
    def test_common_patterns(self, expression, expected):
        assert parse_cron(expression).description == expected

    def test_generic_fallback(self):
        assert describe_cron(["30", "9", "*", "*", "1"]) == "at minute 30, at hour 9, on Monday"

    def test_generic_fallback_for_ranges(self):
        assert parse_cron("*/5 * * * 1-5").description == "at minute */5, on day-of-week 1-5"


class TestGetNextRuns:
    """Tests for get_next_runs."""

    def test_hourly_runs(self):
        start = datetime(2025, 1, 1, 10, 30, tzinfo=UTC)
        runs = get_next_runs("0 * * * *", 3, start)
        assert runs == [
            datetime(2025, 1, 1, 11, 0, tzinfo=UTC),
            datetime(2025, 1, 1, 12, 0, tzinfo=UTC),
            datetime(2025, 1, 1, 13, 0, tzinfo=UTC),
        ]

    def test_strictly_after_start(self):
        """A start exactly on a match is not itself returned."""
        start = datetime(2025, 1, 1, 10, 0, tzinfo=UTC)
        assert get_next_runs("0 * * * *", 1, start) == [datetime(2025, 1, 1, 11, 0, tzinfo=UTC)]

    def test_seconds_are_dropped(self):
        start = datetime(2025, 1, 1, 10, 59, 30, tzinfo=UTC)
        assert get_next_runs("0 * * * *", 1, start) == [datetime(2025, 1, 1, 11, 0, tzinfo=UTC)]

    def test_weekday_schedule(self):
        """2025-01-01 is a Wednesday; the next Mondays are the 6th and 13th."""
        start = datetime(2025, 1, 1, 10, 30, tzinfo=UTC)
        runs = get_next_runs("0 9 * * MON", 2, start)
        assert runs == [
            datetime(2025, 1, 6, 9, 0, tzinfo=UTC),
            datetime(2025, 1, 13, 9, 0, tzinfo=UTC),
        ]

    def test_every_fifteen_minutes(self):
        start = datetime(2025, 3, 1, 8, 7, tzinfo=UTC)
        runs = get_next_runs("*/15 * * * *", 4, start)
        assert [r.minute for r in runs] == [15, 30, 45, 0]
        assert runs[-1].hour == 9

    def test_runs_are_ordered_and_match(self):
        start = datetime(2025, 6, 15, 0, 0, tzinfo=UTC)
        runs = get_next_runs("30 2 1,15 * *", 6, start)
        assert len(runs) == 6
        assert runs == sorted(runs)
        assert all(r.minute == 30 and r.hour == 2 and r.day in (1, 15) for r in runs)
        assert all(r > start for r in runs)

    def test_never_firing_expression_yields_empty_list(self):
        """February 31st never comes; the one-year bound stops the scan."""
        assert get_next_runs("0 0 31 2 *", 3, datetime(2025, 1, 1, tzinfo=UTC)) == []

    def test_invalid_expression_returns_none(self):
        assert get_next_runs("61 * * * *", 3) is None

    def test_count_limits_results(self):
        start = datetime(2025, 1, 1, tzinfo=UTC)
        assert len(get_next_runs("* * * * *", 7, start)) == 7
        assert get_next_runs("* * * * *", 0, start) == []

    def test_defaults_to_now(self):
        before = datetime.now(UTC)
        runs = get_next_runs("* * * * *", 1)
        assert len(runs) == 1
        assert before < runs[0] <= before + timedelta(minutes=2)
