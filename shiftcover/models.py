"""
Data structures shared by the coverage and conflict engine.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from .timecodec import format_span, to_display_label, to_minutes, to_time_string


class ConflictReason(str, Enum):
    TIME_OFF = "time_off"
    DOUBLE_BOOKING = "double_booking"
    MAX_HOURS = "max_hours"
    UNAVAILABLE = "unavailable"


AVAILABILITY_PRIORITIES = ("required", "preferred", "available")
_TRUE_LABELS = {"true", "1", "yes"}


def is_truthy_flag(value: Any) -> bool:
    """Only an explicit true value counts; "false", 0 and None do not."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_LABELS
    return False


def normalize_priority(value: Any) -> str:
    label = str(value or "").strip().lower()
    return label if label in AVAILABILITY_PRIORITIES else "preferred"


@dataclass
class ShiftTemplate:
    id: Optional[str]
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    day_of_week: int = 0  # 0 = Sunday
    role_id: Optional[str] = None
    station_id: Optional[str] = None
    workers_needed: int = 1
    is_active: bool = True
    name: str = ""

    @property
    def start_minute(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minute(self) -> int:
        return to_minutes(self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def window(self) -> Optional[Tuple[int, int]]:
        """Return ``(start, end)`` minutes, or None for malformed/overnight times."""
        try:
            start, end = self.start_minute, self.end_minute
        except ValueError:
            return None
        if end <= start:
            return None
        return start, end

    def as_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "dayOfWeek": self.day_of_week,
            "roleId": self.role_id,
            "stationId": self.station_id,
            "workersNeeded": self.workers_needed,
            "isActive": self.is_active,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ShiftTemplate":
        """Build a template from a camelCase or snake_case mapping."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in payload and payload[key] is not None:
                    return payload[key]
            return default

        start = pick("startTime", "start_time")
        end = pick("endTime", "end_time")
        if start is None or end is None:
            raise ValueError("startTime and endTime are required")
        raw_id = pick("id", "templateId", "template_id")
        role = pick("roleId", "role_id")
        station = pick("stationId", "station_id")
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            start_time=str(start),
            end_time=str(end),
            day_of_week=int(pick("dayOfWeek", "day_of_week", default=0)),
            role_id=str(role) if role is not None else None,
            station_id=str(station) if station is not None else None,
            workers_needed=int(pick("workersNeeded", "workers_needed", default=1)),
            is_active=is_truthy_flag(pick("isActive", "is_active", default=True)),
            name=str(pick("name", "templateName", default="")),
        )


@dataclass(frozen=True)
class TimeSlot:
    hour: int
    minute: int
    timestamp: str
    label: str

    @property
    def minute_of_day(self) -> int:
        return self.hour * 60 + self.minute

    @classmethod
    def at(cls, minute_of_day: int) -> "TimeSlot":
        timestamp = to_time_string(minute_of_day)
        hour, minute = divmod(minute_of_day, 60)
        return cls(hour=hour, minute=minute, timestamp=timestamp, label=to_display_label(timestamp))

    def as_dict(self) -> Dict[str, Any]:
        return {"hour": self.hour, "minute": self.minute, "timestamp": self.timestamp, "label": self.label}


@dataclass
class TimeRange:
    start: int
    end: int
    source: str  # fallback | templates
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def span_minutes(self) -> int:
        return self.end - self.start

    def as_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "source": self.source, "meta": dict(self.meta)}


@dataclass
class SlotGrid:
    slots: List[TimeSlot]
    meta: Dict[str, Any] = field(default_factory=dict)

    def timestamps(self) -> List[str]:
        return [slot.timestamp for slot in self.slots]

    def as_dict(self) -> Dict[str, Any]:
        return {"slots": [slot.as_dict() for slot in self.slots], "meta": dict(self.meta)}


@dataclass(frozen=True)
class CoverageBlock:
    start: int
    end: int
    template_id: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "label": format_span(self.start, self.end),
            "template_id": self.template_id,
        }


@dataclass(frozen=True)
class CoverageGap:
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    def as_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "label": format_span(self.start, self.end),
        }


@dataclass
class CoverageReport:
    has_gaps: bool
    gaps: List[CoverageGap]
    coverage: List[CoverageBlock]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hasGaps": self.has_gaps,
            "gaps": [gap.as_dict() for gap in self.gaps],
            "coverage": [block.as_dict() for block in self.coverage],
        }


@dataclass(frozen=True)
class AvailabilityConflict:
    worker_id: str
    worker_name: str
    reason: ConflictReason

    def as_dict(self) -> Dict[str, str]:
        return {"workerId": self.worker_id, "workerName": self.worker_name, "reason": self.reason.value}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AvailabilityConflict":
        return cls(
            worker_id=str(payload.get("workerId", payload.get("worker_id", ""))),
            worker_name=str(payload.get("workerName", payload.get("worker_name", ""))),
            reason=ConflictReason(payload.get("reason")),
        )


@dataclass
class AvailabilityQueryResult:
    available_workers: int
    conflicts: List[AvailabilityConflict] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "availableWorkers": self.available_workers,
            "conflicts": [conflict.as_dict() for conflict in self.conflicts],
        }


@dataclass
class AvailabilityCheck:
    shift_id: str
    available: int
    required: int
    conflicts: List[AvailabilityConflict] = field(default_factory=list)
    template_id: Optional[str] = None

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)

    @property
    def is_covered(self) -> bool:
        return self.available >= self.required

    def as_dict(self) -> Dict[str, Any]:
        return {
            "shiftId": self.shift_id,
            "templateId": self.template_id,
            "available": self.available,
            "required": self.required,
            "conflicts": [conflict.as_dict() for conflict in self.conflicts],
        }


# Worker availability windows, one variant per scheduling mode.


@dataclass(frozen=True)
class RecurringAvailability:
    kind: ClassVar[str] = "recurring"

    worker_id: str
    day_of_week: int  # 0 = Sunday
    start_time: str
    end_time: str
    effective_from: Optional[datetime.date] = None
    effective_to: Optional[datetime.date] = None
    priority: str = "preferred"

    def is_effective(self, on_date: datetime.date) -> bool:
        if self.effective_from and on_date < self.effective_from:
            return False
        if self.effective_to and on_date > self.effective_to:
            return False
        return True


@dataclass(frozen=True)
class OneTimeAvailability:
    kind: ClassVar[str] = "one_time"

    worker_id: str
    specific_date: datetime.date
    start_time: str
    end_time: str
    priority: str = "preferred"


@dataclass(frozen=True)
class Unavailability:
    kind: ClassVar[str] = "unavailable"

    worker_id: str
    specific_date: datetime.date
    start_time: str
    end_time: str
    reason: str = ""


@dataclass
class Worker:
    id: str
    name: str
    roles: List[str] = field(default_factory=list)
    max_weekly_hours: Optional[float] = None

    def holds_role(self, role_id: Optional[str]) -> bool:
        return role_id is None or role_id in self.roles


@dataclass(frozen=True)
class TimeOff:
    worker_id: str
    start_date: datetime.date
    end_date: datetime.date

    def covers(self, on_date: datetime.date) -> bool:
        return self.start_date <= on_date <= self.end_date


@dataclass(frozen=True)
class Assignment:
    worker_id: str
    shift_date: datetime.date
    start_time: str
    end_time: str
    station_id: Optional[str] = None
    shift_id: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        return max(0, to_minutes(self.end_time) - to_minutes(self.start_time))


@dataclass
class Roster:
    workers: List[Worker] = field(default_factory=list)
    availability: List[Any] = field(default_factory=list)  # availability variants
    time_off: List[TimeOff] = field(default_factory=list)
    assignments: List[Assignment] = field(default_factory=list)
