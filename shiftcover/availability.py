"""Per-shift worker availability.

``check_availability`` fans one query out per proposed shift and gathers the
answers back in input order. A query that raises or times out only zeroes
its own shift; siblings are unaffected.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx

from .conflicts import shifts_overlap
from .models import (
    AvailabilityCheck,
    AvailabilityConflict,
    AvailabilityQueryResult,
    ConflictReason,
    OneTimeAvailability,
    RecurringAvailability,
    Roster,
    ShiftTemplate,
    Unavailability,
    Worker,
)
from .settings import AVAILABILITY_DEFAULTS
from .time_range import as_template
from .timecodec import parse_minutes

logger = logging.getLogger(__name__)

AvailabilityQuery = Callable[[datetime.date, datetime.date, ShiftTemplate], Awaitable[AvailabilityQueryResult]]


def day_of_week(value: datetime.date) -> int:
    """Weekday index with 0 = Sunday."""
    return (value.weekday() + 1) % 7


def week_start(value: datetime.date) -> datetime.date:
    return value - datetime.timedelta(days=day_of_week(value))


def occurrence_dates(start_date: datetime.date, end_date: datetime.date, weekday: int) -> List[datetime.date]:
    if end_date < start_date:
        return []
    offset = (weekday - day_of_week(start_date)) % 7
    cursor = start_date + datetime.timedelta(days=offset)
    dates: List[datetime.date] = []
    while cursor <= end_date:
        dates.append(cursor)
        cursor += datetime.timedelta(days=7)
    return dates


def _window(start_time: str, end_time: str) -> Optional[Tuple[int, int]]:
    start = parse_minutes(start_time)
    end = parse_minutes(end_time)
    if start is None or end is None or end <= start:
        return None
    return start, end


def is_worker_available(windows: Iterable[Any], on_date: datetime.date, start: int, end: int) -> Tuple[bool, str]:
    """Decide whether declared windows cover ``[start, end)`` on ``on_date``.

    Order matters: a specific unavailability wins, then a one-time window on
    the date, then a recurring window for the weekday.
    """
    windows = list(windows)
    for entry in windows:
        if isinstance(entry, Unavailability) and entry.specific_date == on_date:
            blocked = _window(entry.start_time, entry.end_time)
            if blocked and shifts_overlap(start, end, blocked[0], blocked[1]):
                return False, "Worker marked as unavailable for this time"
    for entry in windows:
        if isinstance(entry, OneTimeAvailability) and entry.specific_date == on_date:
            open_window = _window(entry.start_time, entry.end_time)
            if open_window and open_window[0] <= start and open_window[1] >= end:
                return True, OneTimeAvailability.kind
    weekday = day_of_week(on_date)
    for entry in windows:
        if isinstance(entry, RecurringAvailability) and entry.day_of_week == weekday and entry.is_effective(on_date):
            open_window = _window(entry.start_time, entry.end_time)
            if open_window and open_window[0] <= start and open_window[1] >= end:
                return True, RecurringAvailability.kind
    return False, "No availability defined for this time"


def _first_conflict(
    worker: Worker,
    roster: Roster,
    windows: List[Any],
    dates: List[datetime.date],
    start: int,
    end: int,
) -> Optional[ConflictReason]:
    time_off = [entry for entry in roster.time_off if entry.worker_id == worker.id]
    booked = [entry for entry in roster.assignments if entry.worker_id == worker.id]
    weekly_minutes: Dict[datetime.date, int] = defaultdict(int)
    for entry in booked:
        weekly_minutes[week_start(entry.shift_date)] += entry.duration_minutes
    for on_date in dates:
        if any(entry.covers(on_date) for entry in time_off):
            return ConflictReason.TIME_OFF
        for entry in booked:
            if entry.shift_date != on_date:
                continue
            taken = _window(entry.start_time, entry.end_time)
            if taken and shifts_overlap(start, end, taken[0], taken[1]):
                return ConflictReason.DOUBLE_BOOKING
        if worker.max_weekly_hours is not None:
            projected = weekly_minutes[week_start(on_date)] + (end - start)
            if projected > worker.max_weekly_hours * 60:
                return ConflictReason.MAX_HOURS
        available, _ = is_worker_available(windows, on_date, start, end)
        if not available:
            return ConflictReason.UNAVAILABLE
    return None


def evaluate_shift(
    roster: Roster,
    start_date: datetime.date,
    end_date: datetime.date,
    shift: ShiftTemplate,
) -> AvailabilityQueryResult:
    """Count workers who can take every occurrence of ``shift`` in the range."""
    window = shift.window()
    if window is None:
        raise ValueError(f"shift {shift.id} has unusable times {shift.start_time}-{shift.end_time}")
    start, end = window
    dates = occurrence_dates(start_date, end_date, shift.day_of_week)
    if not dates:
        return AvailabilityQueryResult(available_workers=0, conflicts=[])
    windows_by_worker: Dict[str, List[Any]] = defaultdict(list)
    for entry in roster.availability:
        windows_by_worker[entry.worker_id].append(entry)

    available = 0
    conflicts: List[AvailabilityConflict] = []
    for worker in roster.workers:
        if not worker.holds_role(shift.role_id):
            continue
        reason = _first_conflict(worker, roster, windows_by_worker.get(worker.id, []), dates, start, end)
        if reason is None:
            available += 1
        else:
            conflicts.append(AvailabilityConflict(worker_id=worker.id, worker_name=worker.name, reason=reason))
    return AvailabilityQueryResult(available_workers=available, conflicts=conflicts)


class LocalAvailabilityQuery:
    """Availability query answered from an in-memory roster snapshot."""

    def __init__(self, roster: Roster) -> None:
        self.roster = roster

    async def __call__(
        self, start_date: datetime.date, end_date: datetime.date, shift: ShiftTemplate
    ) -> AvailabilityQueryResult:
        return evaluate_shift(self.roster, start_date, end_date, shift)


class RemoteAvailabilityQuery:
    """POST ``{startDate, endDate, shift}`` to an availability endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = AVAILABILITY_DEFAULTS["timeout_seconds"],
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        if not endpoint:
            raise ValueError("An availability endpoint is required.")
        self.endpoint = endpoint
        self.client = client
        self.timeout = timeout
        self.headers = dict(headers or {})

    async def __call__(
        self, start_date: datetime.date, end_date: datetime.date, shift: ShiftTemplate
    ) -> AvailabilityQueryResult:
        payload = {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "shift": shift.as_payload(),
        }
        if self.client is not None:
            response = await self.client.post(self.endpoint, json=payload, headers=self.headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.endpoint, json=payload, headers=self.headers)
        response.raise_for_status()
        return self._parse(response.json())

    @staticmethod
    def _parse(data: Any) -> AvailabilityQueryResult:
        if not isinstance(data, dict):
            raise ValueError("availability response must be a JSON object")
        body = data.get("data") if isinstance(data.get("data"), dict) else data
        available = int(body.get("availableWorkers", 0) or 0)
        conflicts = [AvailabilityConflict.from_payload(item) for item in body.get("conflicts") or []]
        return AvailabilityQueryResult(available_workers=available, conflicts=conflicts)


async def check_availability(
    start_date: datetime.date,
    end_date: datetime.date,
    shifts: Sequence[Any],
    query: AvailabilityQuery,
    *,
    timeout: Optional[float] = AVAILABILITY_DEFAULTS["timeout_seconds"],
    max_concurrency: Optional[int] = None,
) -> List[AvailabilityCheck]:
    """Query availability for every shift concurrently.

    Results keep the input order and carry ``shift-{index}`` ids. A failed or
    timed out query yields ``available=0`` with no conflicts for that shift.
    """
    if not isinstance(shifts, (list, tuple)):
        return []
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def run_one(index: int, item: Any) -> AvailabilityCheck:
        shift = as_template(item)
        shift_id = f"shift-{index}"
        if shift is None:
            logger.warning("Shift %s is unreadable; reporting zero availability", index)
            return AvailabilityCheck(shift_id=shift_id, available=0, required=0, conflicts=[])
        check = AvailabilityCheck(
            shift_id=shift_id,
            available=0,
            required=shift.workers_needed,
            conflicts=[],
            template_id=shift.id,
        )
        try:
            if semaphore is not None:
                async with semaphore:
                    result = await asyncio.wait_for(query(start_date, end_date, shift), timeout)
            else:
                result = await asyncio.wait_for(query(start_date, end_date, shift), timeout)
        except asyncio.TimeoutError:
            logger.warning("Availability query for shift %s timed out after %ss", index, timeout)
            return check
        except Exception as exc:  # noqa: BLE001
            logger.warning("Availability query for shift %s failed: %s", index, exc)
            return check
        check.available = result.available_workers
        check.conflicts = list(result.conflicts)
        return check

    results = await asyncio.gather(*(run_one(index, item) for index, item in enumerate(shifts)))
    return list(results)
