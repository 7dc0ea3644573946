from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

from .models import ShiftTemplate, TimeRange
from .settings import GRID_DEFAULTS, GridSettings
from .timecodec import MINUTES_PER_DAY, parse_minutes, to_time_string

logger = logging.getLogger(__name__)


def as_template(item: Any) -> Optional[ShiftTemplate]:
    if isinstance(item, ShiftTemplate):
        return item
    if isinstance(item, dict):
        try:
            return ShiftTemplate.from_payload(item)
        except (TypeError, ValueError):
            return None
    return None


def active_windows(templates: Sequence[Any]) -> Tuple[List[Tuple[ShiftTemplate, int, int]], int]:
    """Return ``(template, start, end)`` for usable active templates and a skip count.

    Inactive templates are ignored silently. Active templates with malformed
    or overnight times are counted as skipped.
    """
    windows: List[Tuple[ShiftTemplate, int, int]] = []
    skipped = 0
    for item in templates:
        template = as_template(item)
        if template is None:
            skipped += 1
            logger.debug("Skipping unreadable template entry %r", item)
            continue
        if not template.is_active:
            continue
        window = template.window()
        if window is None:
            skipped += 1
            logger.debug(
                "Skipping template %s with unusable times %s-%s",
                template.id,
                template.start_time,
                template.end_time,
            )
            continue
        windows.append((template, window[0], window[1]))
    return windows, skipped


def fallback_range(settings: GridSettings, reason: str) -> TimeRange:
    start = parse_minutes(settings.fallback_start)
    if start is None:
        start = parse_minutes(GRID_DEFAULTS["fallback_start"])
    end = parse_minutes(settings.fallback_end)
    if end is None:
        end = parse_minutes(GRID_DEFAULTS["fallback_end"])
    return TimeRange(
        start=start,
        end=end,
        source="fallback",
        meta={
            "template_count": 0,
            "earliest_start": None,
            "latest_end": None,
            "clamped": False,
            "reason": reason,
        },
    )


def whole_day_range(settings: GridSettings) -> TimeRange:
    """Fallback window stretched by the post buffer, for views without a selected template."""
    result = fallback_range(settings, "whole_day")
    result.end = min(MINUTES_PER_DAY, result.end + settings.post_buffer)
    return result


def compute_range(templates: Any, settings: Optional[GridSettings] = None) -> TimeRange:
    """Derive the operating window for a template set.

    The window spans the earliest active start to the latest active end,
    widened by the configured buffers and held to ``max_range_hours``. With
    nothing usable to read, the configured fallback hours are returned.
    """
    settings = settings or GridSettings()
    if not isinstance(templates, (list, tuple)):
        return fallback_range(settings, "invalid_input")
    windows, skipped = active_windows(templates)
    if not windows:
        result = fallback_range(settings, "no_active_templates")
        result.meta["skipped"] = skipped
        return result

    earliest = min(start for _, start, _ in windows)
    latest = max(end for _, _, end in windows)
    start = max(0, earliest - settings.pre_buffer)
    end = min(MINUTES_PER_DAY, latest + settings.post_buffer)

    max_span = settings.max_range_hours * 60
    clamped = False
    if end - start > max_span:
        center = (earliest + latest) // 2
        half = max_span // 2
        start = max(0, center - half)
        end = min(MINUTES_PER_DAY, center + half)
        clamped = True

    return TimeRange(
        start=start,
        end=end,
        source="templates",
        meta={
            "template_count": len(windows),
            "earliest_start": to_time_string(earliest),
            "latest_end": to_time_string(latest),
            "clamped": clamped,
            "skipped": skipped,
        },
    )
