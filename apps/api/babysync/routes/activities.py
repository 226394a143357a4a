import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import ValidationError

from ..clock import now_ms
from ..db import (
    create_activity,
    delete_activity,
    get_activity,
    get_family,
    list_activities,
    list_today_activities,
    update_activity,
)
from ..envelopes import ActivityAction
from ..realtime import Broadcaster
from ..schemas import Activity, CreateActivityPayload, UpdateActivityPayload, validate_activity_data

router = APIRouter(prefix="/api", tags=["activities"])
logger = logging.getLogger(__name__)


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def _require_family(family_id: str) -> None:
    if get_family(family_id) is None:
        raise HTTPException(status_code=404, detail="Family not found")


def _validated_data(activity_type, data: dict) -> dict:
    try:
        return validate_activity_data(activity_type, data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'data'}: {err['msg']}" for err in exc.errors()
        )
        raise HTTPException(status_code=400, detail=f"Invalid {activity_type.value} data: {problems}") from exc


@router.get("/families/{family_id}/activities", response_model=List[Activity])
async def list_activities_endpoint(
    family_id: str,
    today: bool = Query(False, description="Only activities started during the current local day"),
    limit: int = Query(50, ge=1, le=500),
) -> List[Activity]:
    _require_family(family_id)
    if today:
        return list_today_activities(family_id)
    return list_activities(family_id, limit)


@router.post("/families/{family_id}/activities", response_model=Activity, status_code=201)
async def create_activity_endpoint(
    family_id: str,
    payload: CreateActivityPayload,
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> Activity:
    _require_family(family_id)
    data = _validated_data(payload.type, payload.data)
    started_at = payload.started_at if payload.started_at is not None else now_ms()
    if payload.ended_at is not None and payload.ended_at < started_at:
        raise HTTPException(status_code=400, detail="endedAt must not be earlier than startedAt")

    activity = create_activity(
        family_id,
        payload.type,
        data,
        started_at,
        payload.ended_at,
        payload.created_by,
    )
    logger.info(
        "activity created",
        extra={"family_id": family_id, "activity_id": activity.id, "type": activity.type.value},
    )
    await broadcaster.publish(family_id, ActivityAction.CREATE, activity, sender_id=payload.created_by)
    return activity


@router.put("/activities/{activity_id}", response_model=Activity)
async def update_activity_endpoint(
    activity_id: str,
    payload: UpdateActivityPayload,
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> Activity:
    try:
        existing = get_activity(activity_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    updates: dict = {}
    if "data" in payload.model_fields_set:
        updates["data"] = _validated_data(existing.type, payload.data or {})
    if "ended_at" in payload.model_fields_set:
        if payload.ended_at is not None and payload.ended_at < existing.started_at:
            raise HTTPException(status_code=400, detail="endedAt must not be earlier than startedAt")
        updates["ended_at"] = payload.ended_at
    if not updates:
        return existing

    try:
        activity = update_activity(activity_id, **updates)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    await broadcaster.publish(activity.family_id, ActivityAction.UPDATE, activity, sender_id=payload.device_id)
    return activity


@router.delete("/activities/{activity_id}")
async def delete_activity_endpoint(
    activity_id: str,
    device_id: Optional[str] = Query(None, alias="deviceId"),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict:
    try:
        activity = delete_activity(activity_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    await broadcaster.publish(activity.family_id, ActivityAction.DELETE, activity, sender_id=device_id)
    return {"success": True}
