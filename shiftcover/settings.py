from __future__ import annotations

import copy
import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .timecodec import parse_minutes


DATA_DIR = Path(__file__).resolve().parent / "data"
DATABASE_URL = os.getenv("SHIFTCOVER_DATABASE_URL") or f"sqlite:///{(DATA_DIR / 'schedule.db').as_posix()}"

GRID_DEFAULTS: Dict[str, Any] = {
    "interval_minutes": 60,
    "pre_buffer": 60,
    "post_buffer": 60,
    "fallback_start": "06:00",
    "fallback_end": "22:00",
    "max_range_hours": 18,
}

AVAILABILITY_DEFAULTS: Dict[str, Any] = {
    "endpoint": "",
    "timeout_seconds": 5.0,
    "max_concurrency": 10,
}

_CAMEL_KEYS = {
    "intervalMinutes": "interval_minutes",
    "preBuffer": "pre_buffer",
    "postBuffer": "post_buffer",
    "fallbackStart": "fallback_start",
    "fallbackEnd": "fallback_end",
    "maxRangeHours": "max_range_hours",
}


def build_default_grid_settings() -> Dict[str, Any]:
    return copy.deepcopy(GRID_DEFAULTS)


def _int_or_default(value: Any, key: str, *, minimum: int, maximum: Optional[int] = None) -> int:
    default = GRID_DEFAULTS[key]
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    if parsed < minimum or (maximum is not None and parsed > maximum):
        return default
    return parsed


def _label_or_default(value: Any, key: str) -> str:
    if isinstance(value, str) and parse_minutes(value) is not None:
        return value.strip()
    return GRID_DEFAULTS[key]


@dataclass(frozen=True)
class GridSettings:
    """Knobs for the time axis derived from shift templates.

    - ``interval_minutes``: distance between generated slots (default 60)
    - ``pre_buffer`` / ``post_buffer``: minutes added before the earliest start
      and after the latest end (default 60 each)
    - ``fallback_start`` / ``fallback_end``: window used when no active
      template can be read (default 06:00-22:00)
    - ``max_range_hours``: widest window allowed before recentering (default 18)
    """

    interval_minutes: int = GRID_DEFAULTS["interval_minutes"]
    pre_buffer: int = GRID_DEFAULTS["pre_buffer"]
    post_buffer: int = GRID_DEFAULTS["post_buffer"]
    fallback_start: str = GRID_DEFAULTS["fallback_start"]
    fallback_end: str = GRID_DEFAULTS["fallback_end"]
    max_range_hours: int = GRID_DEFAULTS["max_range_hours"]

    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, Any]]) -> "GridSettings":
        """Normalize user supplied settings; invalid values revert to defaults."""
        if not isinstance(payload, Mapping):
            return cls()
        values = build_default_grid_settings()
        for raw_key, value in payload.items():
            key = _CAMEL_KEYS.get(raw_key, raw_key)
            if key in values:
                values[key] = value
        fallback_start = _label_or_default(values["fallback_start"], "fallback_start")
        fallback_end = _label_or_default(values["fallback_end"], "fallback_end")
        if parse_minutes(fallback_end) <= parse_minutes(fallback_start):
            fallback_start = GRID_DEFAULTS["fallback_start"]
            fallback_end = GRID_DEFAULTS["fallback_end"]
        return cls(
            interval_minutes=_int_or_default(values["interval_minutes"], "interval_minutes", minimum=1, maximum=1440),
            pre_buffer=_int_or_default(values["pre_buffer"], "pre_buffer", minimum=0, maximum=1440),
            post_buffer=_int_or_default(values["post_buffer"], "post_buffer", minimum=0, maximum=1440),
            fallback_start=fallback_start,
            fallback_end=fallback_end,
            max_range_hours=_int_or_default(values["max_range_hours"], "max_range_hours", minimum=1, maximum=24),
        )

    def replace(self, **overrides: Any) -> "GridSettings":
        return dataclasses.replace(self, **overrides)

    def whole_day(self) -> "GridSettings":
        # 23:59 is exclusive; the post buffer keeps the 23:00 slot reachable.
        return self.replace(fallback_start="00:00", fallback_end="23:59", pre_buffer=0, post_buffer=60)

    def as_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class AvailabilitySettings:
    endpoint: str = AVAILABILITY_DEFAULTS["endpoint"]
    timeout_seconds: float = AVAILABILITY_DEFAULTS["timeout_seconds"]
    max_concurrency: int = AVAILABILITY_DEFAULTS["max_concurrency"]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AvailabilitySettings":
        env = os.environ if environ is None else environ
        endpoint = (env.get("SHIFTCOVER_AVAILABILITY_URL") or AVAILABILITY_DEFAULTS["endpoint"]).strip()
        try:
            timeout = float(env.get("SHIFTCOVER_QUERY_TIMEOUT", AVAILABILITY_DEFAULTS["timeout_seconds"]))
        except (TypeError, ValueError):
            timeout = AVAILABILITY_DEFAULTS["timeout_seconds"]
        if timeout <= 0:
            timeout = AVAILABILITY_DEFAULTS["timeout_seconds"]
        try:
            concurrency = int(env.get("SHIFTCOVER_MAX_CONCURRENCY", AVAILABILITY_DEFAULTS["max_concurrency"]))
        except (TypeError, ValueError):
            concurrency = AVAILABILITY_DEFAULTS["max_concurrency"]
        if concurrency < 1:
            concurrency = AVAILABILITY_DEFAULTS["max_concurrency"]
        return cls(endpoint=endpoint, timeout_seconds=timeout, max_concurrency=concurrency)
