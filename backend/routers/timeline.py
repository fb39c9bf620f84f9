from typing import Optional

from fastapi import APIRouter, Depends, Query

from repository import Repository
from routers.common import failing_with, get_repository
from services.protocol_queries import pivot_timeline

router = APIRouter()


@router.get("/risk-timeline")
def get_risk_timeline(
    protocol_id: Optional[str] = Query(None, alias="protocolId"),
    repo: Repository = Depends(get_repository),
):
    """Risk scores pivoted into one chart row per sample time"""
    with failing_with("Failed to fetch risk timeline"):
        entries = repo.get_risk_timeline(protocol_id)
        if not entries:
            return []
        return pivot_timeline(entries, repo.get_protocols())
