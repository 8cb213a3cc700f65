import logging
from dataclasses import asdict
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from gateways import NotFoundError, PersistenceGateway, build_gateway
from models import Direction
from propagation import PartialPropagationFailure
from scheduler import SchedulerManager
from schemas import (
    MatchCandidate,
    PropagationIn,
    RealizedEntryIn,
    RealizedEntryRequest,
    Scope,
    SeriesIn,
    SeriesRequest,
)
from services import (
    DirectoryService,
    EntryService,
    OccurrenceService,
    ProjectionService,
    SeriesService,
    get_current_owner_id,
)

app = FastAPI(title="Budget Projections")


@lru_cache(maxsize=1)
def get_gateway() -> PersistenceGateway:
    return build_gateway()


def get_owner_id() -> str:
    return get_current_owner_id()


scheduler_manager = SchedulerManager(get_gateway)


@app.on_event("startup")
async def startup_event():
    await get_gateway().prepare()
    await scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(NotFoundError)
async def not_found_handler(_request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PartialPropagationFailure)
async def partial_failure_handler(_request, exc: PartialPropagationFailure):
    logging.warning(f"propagation_reported: {exc}")
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "propagation": exc.to_dict()},
    )


@app.get("/api/accounts")
async def api_accounts(
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    accounts = await DirectoryService(gateway, owner_id).accounts()
    return [a.model_dump(mode="json") for a in accounts]


@app.get("/api/categories")
async def api_categories(
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    categories = await DirectoryService(gateway, owner_id).categories()
    return [c.model_dump(mode="json") for c in categories]


@app.post("/api/series", status_code=201)
async def api_create_series(
    payload: SeriesRequest,
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    data = SeriesIn(owner_id=owner_id, **payload.model_dump())
    try:
        ids = await SeriesService(gateway, owner_id).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ids": ids, "count": len(ids)}


@app.get("/api/entries/match")
async def api_match_entry(
    description: str,
    direction: Direction,
    month: str,
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    try:
        candidate = MatchCandidate(
            description=description, direction=direction, competence_month=month
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    suggestion = await EntryService(gateway, owner_id).suggest(candidate)
    return {"match": suggestion.model_dump() if suggestion else None}


@app.post("/api/entries", status_code=201)
async def api_commit_entry(
    payload: RealizedEntryRequest,
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    entry = RealizedEntryIn(owner_id=owner_id, **payload.model_dump())
    try:
        result = await EntryService(gateway, owner_id).commit(entry)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return result.model_dump()


@app.get("/api/occurrences")
async def api_occurrences(
    month: Optional[str] = None,
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    try:
        items = await OccurrenceService(gateway, owner_id).list(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"items": [occ.model_dump(mode="json") for occ in items]}


@app.patch("/api/occurrences/{occurrence_id}")
async def api_edit_occurrence(
    occurrence_id: str,
    payload: PropagationIn,
    scope: Scope = Query(Scope.single),
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    try:
        affected = await OccurrenceService(gateway, owner_id).edit(
            occurrence_id,
            payload.edits,
            scope,
            month_from=payload.month_from,
            month_to=payload.month_to,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logging.info(
        f"occurrence_edited: occurrence_id={occurrence_id} scope={scope.value} "
        f"affected={len(affected)}"
    )
    return {"affected_ids": affected}


@app.delete("/api/occurrences/{occurrence_id}")
async def api_delete_occurrence(
    occurrence_id: str,
    scope: Scope = Query(Scope.single),
    month_from: Optional[str] = None,
    month_to: Optional[str] = None,
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    try:
        affected = await OccurrenceService(gateway, owner_id).remove(
            occurrence_id, scope, month_from=month_from, month_to=month_to
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"affected_ids": affected}


@app.get("/api/projection/{year}")
async def api_projection(
    year: int,
    gateway: PersistenceGateway = Depends(get_gateway),
    owner_id: str = Depends(get_owner_id),
):
    try:
        reports = await ProjectionService(gateway, owner_id).project(year)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"year": year, "months": [asdict(report) for report in reports]}

