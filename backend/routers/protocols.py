from typing import Optional

from fastapi import APIRouter, Depends, Query

from repository import Repository
from routers.common import failing_with, get_repository, get_scan_scheduler
from services.protocol_queries import filter_protocols

router = APIRouter(prefix="/protocols")


@router.get("")
def get_protocols(
    search: Optional[str] = None,
    risk_level: Optional[str] = Query(None, alias="riskLevel"),
    min_tvl: Optional[float] = Query(None, alias="minTvl"),
    max_tvl: Optional[float] = Query(None, alias="maxTvl"),
    min_apy: Optional[float] = Query(None, alias="minApy"),
    max_apy: Optional[float] = Query(None, alias="maxApy"),
    sort_by: str = Query("tvl", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    repo: Repository = Depends(get_repository),
):
    """
    Monitored protocols with search, filters and sorting.

    - search: substring of name, symbol or contract address (case-insensitive)
    - riskLevel: low, medium or high
    - minTvl/maxTvl, minApy/maxApy: inclusive bounds
    - sortBy: tvl, riskScore, trustIndex, apy or name
    - sortOrder: asc or desc
    """
    with failing_with("Failed to fetch protocols"):
        protocols = filter_protocols(
            repo.get_protocols(),
            search=search,
            risk_level=risk_level,
            min_tvl=min_tvl,
            max_tvl=max_tvl,
            min_apy=min_apy,
            max_apy=max_apy,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return [p.to_dict() for p in protocols]


@router.post("/scan")
def scan_protocols(scan_scheduler=Depends(get_scan_scheduler)):
    """Queue an immediate Somnia scan"""
    if scan_scheduler is None or not scan_scheduler.trigger_now():
        return {"status": "unavailable"}
    return {"status": "queued"}
