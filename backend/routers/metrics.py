from fastapi import APIRouter, Depends

from repository import Repository
from routers.common import CamelModel, failing_with, get_repository
from services.protocol_queries import risk_metrics

router = APIRouter()


class RiskMetricsResponse(CamelModel):
    total_value: str
    avg_risk_score: int
    protocols_monitored: int
    active_alerts: int


@router.get("/risk-metrics", response_model=RiskMetricsResponse)
def get_risk_metrics(repo: Repository = Depends(get_repository)):
    """Portfolio-wide totals across every monitored protocol"""
    with failing_with("Failed to fetch risk metrics"):
        return RiskMetricsResponse(**risk_metrics(repo.get_protocols()))
