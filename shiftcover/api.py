"""FastAPI wrapper over the coverage and conflict engine.

Template sets come from the request body (``templates``) or, when omitted,
from the ``shift_templates`` table filtered by ``stationId``/``dayOfWeek``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import datetime
import logging
from typing import Any, Dict, List, Tuple

import httpx
from fastapi import Depends, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .availability import LocalAvailabilityQuery, RemoteAvailabilityQuery, check_availability, evaluate_shift
from .conflicts import conflict_pairs, detect_conflicts
from .coverage import analyze_coverage
from .database import SessionLocal, init_database, list_templates, load_roster
from .models import AvailabilityCheck
from .settings import AvailabilitySettings, GridSettings
from .slots import generate_slots
from .time_range import as_template, compute_range

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_database()
    yield


app = FastAPI(title="Shift Coverage API", version="0.1", lifespan=lifespan)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _parse_date(value: Any, field: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be YYYY-MM-DD")


def _date_range(payload: Dict[str, Any]) -> Tuple[datetime.date, datetime.date]:
    start_date = _parse_date(payload.get("startDate"), "startDate")
    end_date = _parse_date(payload.get("endDate"), "endDate")
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")
    return start_date, end_date


def _templates(payload: Dict[str, Any], db: Session) -> List[Any]:
    if "templates" in payload:
        templates = payload["templates"]
        if not isinstance(templates, list):
            raise HTTPException(status_code=400, detail="templates must be a list")
        return templates
    day = payload.get("dayOfWeek")
    if day is not None:
        try:
            day = int(day)
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="dayOfWeek must be an integer")
    return list_templates(
        db,
        station_id=payload.get("stationId"),
        day_of_week=day,
        active_only=bool(payload.get("activeOnly", False)),
    )


def _grid_settings(payload: Dict[str, Any]) -> GridSettings:
    raw = payload.get("settings")
    if raw is not None and not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="settings must be an object")
    return GridSettings.from_mapping(raw)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/v1/grid/range")
def grid_range(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    window = compute_range(_templates(payload, db), _grid_settings(payload))
    return JSONResponse(content=jsonable_encoder(window.as_dict()))


@app.post("/api/v1/grid/slots")
def grid_slots(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    grid = generate_slots(
        _templates(payload, db),
        _grid_settings(payload),
        selected_template_id=payload.get("selectedTemplateId"),
        whole_day=bool(payload.get("wholeDay", False)),
    )
    return JSONResponse(content=jsonable_encoder(grid.as_dict()))


@app.post("/api/v1/coverage")
def coverage(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    report = analyze_coverage(_templates(payload, db))
    return JSONResponse(content=jsonable_encoder(report.as_dict()))


@app.post("/api/v1/conflicts")
def conflicts(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    shifts = _templates(payload, db)
    return JSONResponse(
        content=jsonable_encoder(
            {
                "conflicts": detect_conflicts(shifts),
                "pairs": [pair.as_dict() for pair in conflict_pairs(shifts)],
            }
        )
    )


@app.post("/api/v1/availability/query")
def availability_query(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    start_date, end_date = _date_range(payload)
    shift = as_template(payload.get("shift"))
    if shift is None:
        raise HTTPException(status_code=400, detail="shift must include startTime and endTime")
    roster = load_roster(db, start_date=start_date, end_date=end_date)
    try:
        result = evaluate_shift(roster, start_date, end_date, shift)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return JSONResponse(content=jsonable_encoder(result.as_dict()))


def _availability_client(settings: AvailabilitySettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.timeout_seconds)


async def _run_checks(
    start_date: datetime.date,
    end_date: datetime.date,
    shifts: List[Any],
    settings: AvailabilitySettings,
    db: Session,
) -> List[AvailabilityCheck]:
    if settings.endpoint:
        async with _availability_client(settings) as client:
            query = RemoteAvailabilityQuery(settings.endpoint, client=client, timeout=settings.timeout_seconds)
            return await check_availability(
                start_date,
                end_date,
                shifts,
                query,
                timeout=settings.timeout_seconds,
                max_concurrency=settings.max_concurrency,
            )
    roster = await run_in_threadpool(load_roster, db, start_date=start_date, end_date=end_date)
    return await check_availability(
        start_date,
        end_date,
        shifts,
        LocalAvailabilityQuery(roster),
        timeout=settings.timeout_seconds,
        max_concurrency=settings.max_concurrency,
    )


@app.post("/api/v1/availability/check")
async def availability_check(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    start_date, end_date = _date_range(payload)
    shifts = payload.get("shifts")
    if not isinstance(shifts, list):
        raise HTTPException(status_code=400, detail="shifts must be a list")
    results = await _run_checks(start_date, end_date, shifts, AvailabilitySettings.from_env(), db)
    short = sum(1 for item in results if not item.is_covered)
    if short:
        logger.info("%s of %s shifts are short of workers", short, len(results))
    return JSONResponse(
        content=jsonable_encoder(
            {
                "startDate": start_date.isoformat(),
                "endDate": end_date.isoformat(),
                "results": [item.as_dict() for item in results],
            }
        )
    )
