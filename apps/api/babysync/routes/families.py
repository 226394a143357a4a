import logging

from fastapi import APIRouter, HTTPException

from ..db import create_family, get_family_by_code
from ..schemas import CreateFamilyPayload, Family, JoinFamilyPayload

router = APIRouter(prefix="/api/family", tags=["family"])
logger = logging.getLogger(__name__)


@router.post("", response_model=Family, status_code=201)
async def create_family_endpoint(payload: CreateFamilyPayload) -> Family:
    baby_name = payload.baby_name.strip() or "Baby"
    family = create_family(baby_name)
    logger.info("family created", extra={"family_id": family.id})
    return family


@router.post("/join", response_model=Family)
async def join_family_endpoint(payload: JoinFamilyPayload) -> Family:
    """Resolve a share code (case-insensitive) to its family."""

    family = get_family_by_code(payload.code)
    if not family:
        raise HTTPException(status_code=404, detail="Family not found")
    logger.info("family joined by code", extra={"family_id": family.id})
    return family
