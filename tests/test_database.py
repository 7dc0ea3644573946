from __future__ import annotations

import datetime
import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shiftcover.database import (
    Base,
    ShiftAssignmentRecord,
    ShiftTemplateRecord,
    TimeOffRecord,
    WorkerAvailabilityRecord,
    WorkerRecord,
    list_templates,
    load_roster,
)
from shiftcover.availability import evaluate_shift
from shiftcover.models import ConflictReason, OneTimeAvailability, RecurringAvailability, Unavailability

MONDAY = datetime.date(2024, 4, 1)


def _time(label: str) -> datetime.time:
    return datetime.time.fromisoformat(label)


class StorageAdapterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.session = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)()
        self.session.add_all(
            [
                ShiftTemplateRecord(id="t-open", name="Open", start_time=_time("06:00"), end_time=_time("10:00"), day_of_week=1, station_id="grill"),
                ShiftTemplateRecord(id="t-mid", name="Mid", start_time=_time("11:00"), end_time=_time("15:00"), day_of_week=1, station_id="grill"),
                ShiftTemplateRecord(id="t-bar", name="Bar", start_time=_time("16:00"), end_time=_time("23:00"), day_of_week=5, station_id="bar"),
                ShiftTemplateRecord(id="t-old", name="Old", start_time=_time("05:00"), end_time=_time("09:00"), day_of_week=1, station_id="grill", is_active=False),
            ]
        )
        ana = WorkerRecord(id="ana", full_name="Ana Ruiz", max_weekly_hours=40)
        ana.role_list = ["cook", " cook", "prep"]
        ben = WorkerRecord(id="ben", full_name="Ben Ode", roles="cook")
        gone = WorkerRecord(id="zed", full_name="Zed Former", roles="cook", status="inactive")
        self.session.add_all([ana, ben, gone])
        self.session.flush()
        self.session.add_all(
            [
                WorkerAvailabilityRecord(worker_id="ana", availability_type="recurring", day_of_week=1, start_time=_time("06:00"), end_time=_time("16:00")),
                WorkerAvailabilityRecord(worker_id="ben", availability_type="one_time", specific_date=MONDAY, start_time=_time("06:00"), end_time=_time("12:00")),
                WorkerAvailabilityRecord(worker_id="ben", availability_type="unavailable", specific_date=MONDAY, start_time=_time("08:00"), end_time=_time("09:00"), reason="school run"),
                WorkerAvailabilityRecord(worker_id="ben", availability_type="one_time", specific_date=datetime.date(2024, 5, 1), start_time=_time("06:00"), end_time=_time("12:00")),
                WorkerAvailabilityRecord(worker_id="ana", availability_type="mystery", day_of_week=1, start_time=_time("06:00"), end_time=_time("12:00")),
                TimeOffRecord(worker_id="ben", start_date=datetime.date(2024, 4, 3), end_date=datetime.date(2024, 4, 5)),
                TimeOffRecord(worker_id="ana", start_date=MONDAY, end_date=MONDAY, status="pending"),
                ShiftAssignmentRecord(worker_id="ana", shift_date=datetime.date(2024, 4, 6), start_time=_time("09:00"), end_time=_time("17:00")),
                ShiftAssignmentRecord(worker_id="ana", shift_date=MONDAY, start_time=_time("12:00"), end_time=_time("14:00"), status="cancelled"),
                ShiftAssignmentRecord(worker_id="ana", shift_date=datetime.date(2024, 4, 20), start_time=_time("09:00"), end_time=_time("17:00")),
            ]
        )
        self.session.commit()

    def tearDown(self) -> None:
        self.session.close()
        self.engine.dispose()

    def test_list_templates_filters(self) -> None:
        all_templates = list_templates(self.session)
        self.assertEqual([item.id for item in all_templates], ["t-old", "t-open", "t-mid", "t-bar"])
        self.assertEqual(all_templates[1].start_time, "06:00")
        self.assertEqual(all_templates[1].end_time, "10:00")
        grill = list_templates(self.session, station_id="grill", day_of_week=1, active_only=True)
        self.assertEqual([item.id for item in grill], ["t-open", "t-mid"])
        self.assertTrue(all(item.is_active for item in grill))
        self.assertEqual(list_templates(self.session, day_of_week=5)[0].station_id, "bar")

    def test_load_roster_snapshot(self) -> None:
        roster = load_roster(self.session, start_date=MONDAY, end_date=datetime.date(2024, 4, 7))
        self.assertEqual([worker.id for worker in roster.workers], ["ana", "ben"])
        self.assertEqual(roster.workers[0].roles, ["cook", "prep"])
        self.assertEqual(roster.workers[0].max_weekly_hours, 40)

        kinds = sorted(type(window).__name__ for window in roster.availability)
        self.assertEqual(kinds, ["OneTimeAvailability", "RecurringAvailability", "Unavailability"])
        recurring = next(w for w in roster.availability if isinstance(w, RecurringAvailability))
        self.assertEqual((recurring.start_time, recurring.end_time), ("06:00", "16:00"))
        blocked = next(w for w in roster.availability if isinstance(w, Unavailability))
        self.assertEqual(blocked.reason, "school run")
        self.assertTrue(any(isinstance(w, OneTimeAvailability) for w in roster.availability))

        self.assertEqual([(entry.worker_id, entry.start_date) for entry in roster.time_off], [("ben", datetime.date(2024, 4, 3))])
        self.assertEqual([(entry.shift_date, entry.start_time) for entry in roster.assignments], [(datetime.date(2024, 4, 6), "09:00")])

    def test_roster_drives_shift_evaluation(self) -> None:
        roster = load_roster(self.session, start_date=MONDAY, end_date=MONDAY)
        templates = {item.id: item for item in list_templates(self.session, active_only=True)}
        result = evaluate_shift(roster, MONDAY, MONDAY, templates["t-open"])
        self.assertEqual(result.available_workers, 1)
        self.assertEqual([(c.worker_id, c.reason) for c in result.conflicts], [("ben", ConflictReason.UNAVAILABLE)])

    def test_priorities_are_normalised(self) -> None:
        self.session.add_all(
            [
                WorkerAvailabilityRecord(worker_id="ben", availability_type="recurring", day_of_week=2, start_time=_time("06:00"), end_time=_time("12:00"), priority=" Required "),
                WorkerAvailabilityRecord(worker_id="ben", availability_type="recurring", day_of_week=3, start_time=_time("06:00"), end_time=_time("12:00"), priority="urgent"),
            ]
        )
        self.session.commit()
        roster = load_roster(self.session, start_date=MONDAY, end_date=MONDAY)
        priorities = {
            window.day_of_week: window.priority
            for window in roster.availability
            if isinstance(window, RecurringAvailability) and window.worker_id == "ben"
        }
        self.assertEqual(priorities, {2: "required", 3: "preferred"})

    def test_empty_roster(self) -> None:
        self.session.query(WorkerRecord).update({WorkerRecord.status: "inactive"})
        self.session.commit()
        roster = load_roster(self.session, start_date=MONDAY, end_date=MONDAY)
        self.assertEqual(roster.workers, [])
        self.assertEqual(roster.assignments, [])


if __name__ == "__main__":
    unittest.main()
