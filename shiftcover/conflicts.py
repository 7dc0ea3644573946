from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import Assignment, ShiftTemplate
from .time_range import as_template
from .timecodec import format_span, parse_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShiftConflict:
    first_index: int
    second_index: int
    first_id: str
    second_id: str
    day_of_week: int
    station_id: Optional[str]
    overlap_type: str
    overlap_minutes: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "shiftIds": [self.first_id, self.second_id],
            "indices": [self.first_index, self.second_index],
            "dayOfWeek": self.day_of_week,
            "stationId": self.station_id,
            "overlapType": self.overlap_type,
            "overlapMinutes": self.overlap_minutes,
        }


@dataclass(frozen=True)
class DoubleBooking:
    worker_id: str
    shift_date: Any
    first: Assignment
    second: Assignment

    @property
    def message(self) -> str:
        first_span = format_span(parse_minutes(self.first.start_time) or 0, parse_minutes(self.first.end_time) or 0)
        second_span = format_span(parse_minutes(self.second.start_time) or 0, parse_minutes(self.second.end_time) or 0)
        return f"Worker {self.worker_id} is double-booked on {self.shift_date}: {first_span} overlaps {second_span}."


def shifts_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # Half-open intervals: touching endpoints do not overlap.
    return a_start < b_end and a_end > b_start


def overlap_type(a_start: int, a_end: int, b_start: int, b_end: int) -> str:
    if a_start <= b_start and a_end >= b_end:
        return "complete_overlap"
    if b_start <= a_start and b_end >= a_end:
        return "contained_by"
    if shifts_overlap(a_start, a_end, b_start, b_end):
        return "partial_end" if a_start < b_start else "partial_start"
    return "adjacent"


def shift_keys(shifts: Sequence[Any]) -> List[str]:
    """One distinct key per position.

    A shift keeps its own id only when that id is present and unique; missing
    or repeated ids use the positional ``shift-{index}`` key instead.
    """
    ids: List[Optional[str]] = []
    for item in shifts:
        shift = as_template(item)
        ids.append(shift.id if shift is not None and shift.id else None)
    counts = Counter(shift_id for shift_id in ids if shift_id is not None)
    keys = [
        shift_id if shift_id is not None and counts[shift_id] == 1 else f"shift-{index}"
        for index, shift_id in enumerate(ids)
    ]
    if len(set(keys)) != len(keys):
        # An explicit id shadows a positional key.
        keys = [f"shift-{index}" for index in range(len(keys))]
    return keys


def _comparable(shifts: Sequence[Any]) -> List[Optional[Tuple[ShiftTemplate, int, int]]]:
    prepared: List[Optional[Tuple[ShiftTemplate, int, int]]] = []
    for index, item in enumerate(shifts):
        shift = as_template(item)
        window = shift.window() if shift is not None else None
        if shift is None or window is None:
            logger.debug("Shift %s excluded from conflict checks (unreadable or overnight)", index)
            prepared.append(None)
            continue
        prepared.append((shift, window[0], window[1]))
    return prepared


def conflict_indices(shifts: Any) -> List[List[int]]:
    """For each shift, the positions of other shifts it overlaps on the same day and station."""
    if not isinstance(shifts, (list, tuple)):
        return []
    prepared = _comparable(shifts)
    result: List[List[int]] = [[] for _ in prepared]
    for i, left in enumerate(prepared):
        if left is None:
            continue
        shift_i, start_i, end_i = left
        for j, right in enumerate(prepared):
            if i == j or right is None:
                continue
            shift_j, start_j, end_j = right
            if shift_i.day_of_week != shift_j.day_of_week or shift_i.station_id != shift_j.station_id:
                continue
            if shifts_overlap(start_i, end_i, start_j, end_j):
                result[i].append(j)
    return result


def detect_conflicts(shifts: Any) -> Dict[str, List[str]]:
    """Map each conflicting shift key to the keys it overlaps with.

    Keys come from ``shift_keys``, so every position gets its own entry. The
    relation is reported in both directions; shifts without conflicts are
    left out of the mapping.
    """
    if not isinstance(shifts, (list, tuple)):
        return {}
    indices = conflict_indices(shifts)
    keys = shift_keys(shifts)
    conflicts: Dict[str, List[str]] = {}
    for index, others in enumerate(indices):
        if others:
            conflicts[keys[index]] = [keys[other] for other in others]
    return conflicts


def conflict_pairs(shifts: Any) -> List[ShiftConflict]:
    if not isinstance(shifts, (list, tuple)):
        return []
    prepared = _comparable(shifts)
    keys = shift_keys(shifts)
    pairs: List[ShiftConflict] = []
    for i, others in enumerate(conflict_indices(shifts)):
        for j in others:
            if j <= i:
                continue
            shift_i, start_i, end_i = prepared[i]
            shift_j, start_j, end_j = prepared[j]
            pairs.append(
                ShiftConflict(
                    first_index=i,
                    second_index=j,
                    first_id=keys[i],
                    second_id=keys[j],
                    day_of_week=shift_i.day_of_week,
                    station_id=shift_i.station_id,
                    overlap_type=overlap_type(start_i, end_i, start_j, end_j),
                    overlap_minutes=min(end_i, end_j) - max(start_i, start_j),
                )
            )
    return pairs


def find_double_bookings(assignments: Sequence[Assignment]) -> List[DoubleBooking]:
    """Assignments of one worker on one date whose times overlap."""
    by_worker_day: Dict[Tuple[str, Any], List[Tuple[Assignment, int, int]]] = defaultdict(list)
    for assignment in assignments:
        start = parse_minutes(assignment.start_time)
        end = parse_minutes(assignment.end_time)
        if start is None or end is None or end <= start:
            continue
        by_worker_day[(assignment.worker_id, assignment.shift_date)].append((assignment, start, end))
    bookings: List[DoubleBooking] = []
    for (worker_id, shift_date), entries in by_worker_day.items():
        entries.sort(key=lambda entry: entry[1])
        for idx, (first, first_start, first_end) in enumerate(entries):
            for second, second_start, second_end in entries[idx + 1 :]:
                if second_start >= first_end:
                    break
                bookings.append(DoubleBooking(worker_id=worker_id, shift_date=shift_date, first=first, second=second))
    return bookings
