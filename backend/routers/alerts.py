from typing import List, Optional

from fastapi import APIRouter, Depends

from repository import Repository
from routers.common import CamelModel, failing_with, get_repository
from services.protocol_queries import high_risk_alerts

router = APIRouter()


class AlertResponse(CamelModel):
    id: str
    type: str
    severity: str
    title: str
    message: str
    timestamp: str
    protocol_id: str


@router.get("/alerts", response_model=List[AlertResponse])
def get_alerts(wallet: Optional[str] = None, repo: Repository = Depends(get_repository)):
    """
    Alerts derived from protocols scoring above 70.

    ``wallet`` is accepted for the dashboard's convenience but does not
    narrow the result.
    """
    with failing_with("Failed to fetch alerts"):
        return [AlertResponse(**a) for a in high_risk_alerts(repo.get_protocols())]
