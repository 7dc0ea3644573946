"""Read-only storage adapter for templates and worker rosters.

The engine never writes; rows are created by the surrounding scheduling
application (or directly by tests).
"""

from __future__ import annotations

import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import Boolean, Date, Float, ForeignKey, Integer, String, create_engine, or_, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, sessionmaker
from sqlalchemy.types import Time

from .availability import week_start
from .models import (
    Assignment,
    OneTimeAvailability,
    RecurringAvailability,
    Roster,
    ShiftTemplate,
    TimeOff,
    Unavailability,
    Worker,
    normalize_priority,
)
from .settings import DATA_DIR, DATABASE_URL

if DATABASE_URL.startswith("sqlite:///") and DATA_DIR.as_posix() in DATABASE_URL:
    DATA_DIR.mkdir(parents=True, exist_ok=True)

CANCELLED_STATUSES = {"cancelled", "canceled"}


class Base(DeclarativeBase):
    """Metadata for scheduling tables."""

    pass


class ShiftTemplateRecord(Base):
    __tablename__ = "shift_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    start_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 = Sunday
    role_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    station_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    workers_needed: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class WorkerRecord(Base):
    __tablename__ = "workers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False)
    roles: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    max_weekly_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(12), default="active", nullable=False)

    availability: Mapped[List["WorkerAvailabilityRecord"]] = relationship(
        back_populates="worker", cascade="all, delete-orphan"
    )

    @property
    def role_list(self) -> List[str]:
        return [role.strip() for role in self.roles.split(",") if role.strip()]

    @role_list.setter
    def role_list(self, roles: Iterable[str]) -> None:
        self.roles = ",".join(sorted({role.strip() for role in roles if role.strip()}))


class WorkerAvailabilityRecord(Base):
    __tablename__ = "worker_availability"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    worker_id: Mapped[str] = mapped_column(ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    availability_type: Mapped[str] = mapped_column(String(16), nullable=False)  # recurring | one_time | unavailable
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    specific_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    start_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    effective_from: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="preferred")
    reason: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    worker: Mapped[WorkerRecord] = relationship(back_populates="availability")


class TimeOffRecord(Base):
    __tablename__ = "time_off"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    worker_id: Mapped[str] = mapped_column(ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="approved")


class ShiftAssignmentRecord(Base):
    __tablename__ = "shift_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    worker_id: Mapped[str] = mapped_column(ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    shift_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[datetime.time] = mapped_column(Time, nullable=False)
    station_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="scheduled")


schedule_engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)

SessionLocal = sessionmaker(bind=schedule_engine, expire_on_commit=False, future=True)


def init_database() -> None:
    Base.metadata.create_all(schedule_engine)


def _time_label(value: datetime.time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def to_shift_template(record: ShiftTemplateRecord) -> ShiftTemplate:
    return ShiftTemplate(
        id=record.id,
        name=record.name or "",
        start_time=_time_label(record.start_time),
        end_time=_time_label(record.end_time),
        day_of_week=record.day_of_week,
        role_id=record.role_id,
        station_id=record.station_id,
        workers_needed=record.workers_needed,
        is_active=bool(record.is_active),
    )


def to_availability_window(record: WorkerAvailabilityRecord) -> Optional[Any]:
    start = _time_label(record.start_time)
    end = _time_label(record.end_time)
    kind = (record.availability_type or "").strip().lower()
    if kind == RecurringAvailability.kind and record.day_of_week is not None:
        return RecurringAvailability(
            worker_id=record.worker_id,
            day_of_week=record.day_of_week,
            start_time=start,
            end_time=end,
            effective_from=record.effective_from,
            effective_to=record.effective_to,
            priority=normalize_priority(record.priority),
        )
    if kind == OneTimeAvailability.kind and record.specific_date is not None:
        return OneTimeAvailability(
            worker_id=record.worker_id,
            specific_date=record.specific_date,
            start_time=start,
            end_time=end,
            priority=normalize_priority(record.priority),
        )
    if kind == Unavailability.kind and record.specific_date is not None:
        return Unavailability(
            worker_id=record.worker_id,
            specific_date=record.specific_date,
            start_time=start,
            end_time=end,
            reason=record.reason or "",
        )
    return None


def list_templates(
    session: Session,
    *,
    station_id: Optional[str] = None,
    day_of_week: Optional[int] = None,
    active_only: bool = False,
) -> List[ShiftTemplate]:
    stmt = select(ShiftTemplateRecord).order_by(ShiftTemplateRecord.start_time, ShiftTemplateRecord.id)
    if station_id is not None:
        stmt = stmt.where(ShiftTemplateRecord.station_id == station_id)
    if day_of_week is not None:
        stmt = stmt.where(ShiftTemplateRecord.day_of_week == day_of_week)
    if active_only:
        stmt = stmt.where(ShiftTemplateRecord.is_active.is_(True))
    return [to_shift_template(record) for record in session.scalars(stmt)]


def load_roster(session: Session, *, start_date: datetime.date, end_date: datetime.date) -> Roster:
    """Snapshot active workers and everything that constrains them in the range."""
    workers = list(
        session.scalars(select(WorkerRecord).where(WorkerRecord.status == "active").order_by(WorkerRecord.full_name))
    )
    worker_ids = [worker.id for worker in workers]
    if not worker_ids:
        return Roster()

    availability_rows = session.scalars(
        select(WorkerAvailabilityRecord).where(
            WorkerAvailabilityRecord.worker_id.in_(worker_ids),
            or_(
                WorkerAvailabilityRecord.availability_type == RecurringAvailability.kind,
                WorkerAvailabilityRecord.specific_date.between(start_date, end_date),
            ),
        )
    )
    windows = [window for window in (to_availability_window(row) for row in availability_rows) if window is not None]

    time_off_rows = session.scalars(
        select(TimeOffRecord).where(
            TimeOffRecord.worker_id.in_(worker_ids),
            TimeOffRecord.status == "approved",
            TimeOffRecord.start_date <= end_date,
            TimeOffRecord.end_date >= start_date,
        )
    )
    time_off = [TimeOff(worker_id=row.worker_id, start_date=row.start_date, end_date=row.end_date) for row in time_off_rows]

    # Whole weeks around the range so weekly hour totals are complete.
    first_day = week_start(start_date)
    last_day = week_start(end_date) + datetime.timedelta(days=6)
    assignment_rows = session.scalars(
        select(ShiftAssignmentRecord).where(
            ShiftAssignmentRecord.worker_id.in_(worker_ids),
            ShiftAssignmentRecord.shift_date.between(first_day, last_day),
        )
    )
    assignments = [
        Assignment(
            worker_id=row.worker_id,
            shift_date=row.shift_date,
            start_time=_time_label(row.start_time),
            end_time=_time_label(row.end_time),
            station_id=row.station_id,
            shift_id=str(row.id),
        )
        for row in assignment_rows
        if (row.status or "").lower() not in CANCELLED_STATUSES
    ]

    return Roster(
        workers=[
            Worker(
                id=worker.id,
                name=worker.full_name,
                roles=worker.role_list,
                max_weekly_hours=worker.max_weekly_hours,
            )
            for worker in workers
        ],
        availability=windows,
        time_off=time_off,
        assignments=assignments,
    )
