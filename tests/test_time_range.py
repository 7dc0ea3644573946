from __future__ import annotations

import logging

from shiftcover.models import ShiftTemplate
from shiftcover.settings import AvailabilitySettings, GridSettings, build_default_grid_settings, GRID_DEFAULTS
from shiftcover.time_range import compute_range, whole_day_range


def _template(start: str, end: str, **extra) -> ShiftTemplate:
    return ShiftTemplate(id=extra.pop("id", f"{start}-{end}"), start_time=start, end_time=end, **extra)


def test_range_wraps_templates_with_buffers() -> None:
    result = compute_range([_template("09:00", "17:00"), _template("11:00", "15:00")])
    assert result.source == "templates"
    assert (result.start, result.end) == (480, 1080)
    assert result.meta["template_count"] == 2
    assert result.meta["earliest_start"] == "09:00"
    assert result.meta["latest_end"] == "17:00"
    assert result.meta["clamped"] is False
    assert result.meta["skipped"] == 0


def test_range_contains_every_active_template() -> None:
    templates = [_template("07:30", "12:00"), _template("10:00", "19:45"), _template("14:00", "16:00")]
    result = compute_range(templates)
    for template in templates:
        assert result.start <= template.start_minute
        assert result.end >= template.end_minute


def test_range_without_buffers_matches_templates() -> None:
    settings = GridSettings(pre_buffer=0, post_buffer=0)
    result = compute_range([_template("09:00", "17:00")], settings)
    assert (result.start, result.end) == (540, 1020)


def test_buffers_stop_at_day_edges() -> None:
    result = compute_range([_template("00:30", "08:00")], GridSettings(max_range_hours=24))
    assert result.start == 0
    result = compute_range([_template("16:00", "23:30")], GridSettings(max_range_hours=24))
    assert result.end == 1440


def test_wide_range_is_recentred() -> None:
    result = compute_range([_template("00:30", "23:30")])
    assert result.meta["clamped"] is True
    assert (result.start, result.end) == (180, 1260)
    assert result.span_minutes == 18 * 60


def test_empty_template_list_uses_fallback() -> None:
    result = compute_range([])
    assert result.source == "fallback"
    assert (result.start, result.end) == (360, 1320)
    assert result.meta["reason"] == "no_active_templates"
    assert result.meta["template_count"] == 0


def test_non_list_input_uses_fallback() -> None:
    result = compute_range(None)
    assert result.source == "fallback"
    assert result.meta["reason"] == "invalid_input"
    assert compute_range("09:00-17:00").source == "fallback"


def test_inactive_templates_do_not_count() -> None:
    result = compute_range([_template("09:00", "17:00", is_active=False)])
    assert result.source == "fallback"
    assert result.meta["skipped"] == 0


def test_malformed_and_overnight_templates_are_skipped(caplog) -> None:
    templates = [
        {"id": "night", "startTime": "22:00", "endTime": "06:00"},
        {"id": "broken", "startTime": "bad", "endTime": "10:00"},
        {"id": "day", "startTime": "10:00", "endTime": "14:00"},
    ]
    with caplog.at_level(logging.DEBUG, logger="shiftcover.time_range"):
        result = compute_range(templates)
    assert result.source == "templates"
    assert (result.start, result.end) == (540, 900)
    assert result.meta["skipped"] == 2
    assert "night" in caplog.text


def test_custom_fallback_and_whole_day_range() -> None:
    settings = GridSettings(fallback_start="08:00", fallback_end="15:00")
    result = compute_range([], settings)
    assert (result.start, result.end) == (480, 900)
    whole = whole_day_range(settings.whole_day())
    assert (whole.start, whole.end) == (0, 1440)
    assert whole.meta["reason"] == "whole_day"


def test_settings_normalise_bad_values() -> None:
    settings = GridSettings.from_mapping(
        {"intervalMinutes": "30", "preBuffer": -5, "post_buffer": "x", "fallbackStart": "nope", "maxRangeHours": 30}
    )
    assert settings.interval_minutes == 30
    assert settings.pre_buffer == GRID_DEFAULTS["pre_buffer"]
    assert settings.post_buffer == GRID_DEFAULTS["post_buffer"]
    assert settings.fallback_start == "06:00"
    assert settings.max_range_hours == 18
    assert GridSettings.from_mapping(None) == GridSettings()
    assert GridSettings.from_mapping({"intervalMinutes": 0}).interval_minutes == 60


def test_default_settings_are_copies() -> None:
    values = build_default_grid_settings()
    values["interval_minutes"] = 5
    assert GRID_DEFAULTS["interval_minutes"] == 60
    assert GridSettings().as_dict()["interval_minutes"] == 60


def test_availability_settings_from_env() -> None:
    settings = AvailabilitySettings.from_env(
        {
            "SHIFTCOVER_AVAILABILITY_URL": " http://availability.local/query ",
            "SHIFTCOVER_QUERY_TIMEOUT": "abc",
            "SHIFTCOVER_MAX_CONCURRENCY": "0",
        }
    )
    assert settings.endpoint == "http://availability.local/query"
    assert settings.timeout_seconds == 5.0
    assert settings.max_concurrency == 10
    assert AvailabilitySettings.from_env({"SHIFTCOVER_QUERY_TIMEOUT": "2.5"}).timeout_seconds == 2.5


def test_reversed_fallback_window_reverts_to_defaults() -> None:
    settings = GridSettings.from_mapping({"fallbackStart": "20:00", "fallbackEnd": "08:00"})
    assert (settings.fallback_start, settings.fallback_end) == ("06:00", "22:00")
    settings = GridSettings.from_mapping({"fallbackStart": "10:00", "fallbackEnd": "10:00"})
    assert (settings.fallback_start, settings.fallback_end) == ("06:00", "22:00")
    settings = GridSettings.from_mapping({"fallbackStart": "08:00", "fallbackEnd": "15:00"})
    assert (settings.fallback_start, settings.fallback_end) == ("08:00", "15:00")


def test_is_active_must_be_explicitly_true() -> None:
    for flag in ("false", "False", "0", "", 0, None):
        result = compute_range([{"startTime": "09:00", "endTime": "10:00", "isActive": flag}])
        if flag is None:
            # A null flag is treated as missing, so the default applies.
            assert result.source == "templates"
        else:
            assert result.source == "fallback", flag
    for flag in (True, "true", "TRUE"):
        result = compute_range([{"startTime": "09:00", "endTime": "10:00", "isActive": flag}])
        assert result.source == "templates"
