from __future__ import annotations

from typing import Any, Iterator, Optional

from .models import SlotGrid, TimeSlot
from .settings import GRID_DEFAULTS, GridSettings
from .time_range import as_template, compute_range, whole_day_range
from .timecodec import MINUTES_PER_DAY


def iter_slots(start: int, end: int, interval: int) -> Iterator[TimeSlot]:
    """Yield one slot every ``interval`` minutes across ``[start, end)``."""
    if interval <= 0:
        interval = GRID_DEFAULTS["interval_minutes"]
    cursor = max(0, start)
    stop = min(end, MINUTES_PER_DAY)
    while cursor < stop:
        yield TimeSlot.at(cursor)
        cursor += interval


def _select(templates: Any, template_id: str) -> Any:
    if not isinstance(templates, (list, tuple)):
        return templates
    chosen = []
    for item in templates:
        template = as_template(item)
        if template is not None and template.id == template_id:
            chosen.append(template)
    return chosen


def generate_slots(
    templates: Any,
    settings: Optional[GridSettings] = None,
    *,
    selected_template_id: Optional[str] = None,
    whole_day: bool = False,
) -> SlotGrid:
    """Build the slot grid for a template set.

    With ``selected_template_id`` the window is computed from that template
    alone and ``whole_day`` is ignored; an id that matches nothing falls back
    like an empty template set. Without a selection, ``whole_day`` switches to
    the full-day axis.
    """
    settings = settings or GridSettings()
    if selected_template_id is not None:
        whole_day = False
        window = compute_range(_select(templates, str(selected_template_id)), settings)
    elif whole_day:
        settings = settings.whole_day()
        window = whole_day_range(settings)
    else:
        window = compute_range(templates, settings)
    slots = list(iter_slots(window.start, window.end, settings.interval_minutes))
    meta = dict(window.meta)
    meta.update(
        {
            "start": window.start,
            "end": window.end,
            "source": window.source,
            "interval": settings.interval_minutes,
            "slot_count": len(slots),
            "whole_day": whole_day,
            "selected_template_id": selected_template_id,
        }
    )
    return SlotGrid(slots=slots, meta=meta)
