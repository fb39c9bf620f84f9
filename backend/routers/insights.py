#!/usr/bin/env python3
"""
AI insight endpoints

- GET /api/ai-insights?wallet= - stored insights, newest first
- POST /api/analyze-position - analyze a wallet's positions and store the insight
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from realtime import RealtimeHub
from repository import Repository
from routers.common import CamelModel, failing_with, get_hub, get_repository, get_scorer, require
from services.risk_scorer import RiskScorer

router = APIRouter()


class AnalyzePositionRequest(CamelModel):
    wallet_address: Optional[str] = None


@router.get("/ai-insights")
def get_ai_insights(wallet: Optional[str] = None, repo: Repository = Depends(get_repository)):
    wallet = require(wallet, "Wallet address required")
    with failing_with("Failed to fetch AI insights"):
        return [i.to_dict() for i in repo.get_ai_insights(wallet)]


@router.post("/analyze-position")
def analyze_position(
    request: AnalyzePositionRequest,
    repo: Repository = Depends(get_repository),
    scorer: RiskScorer = Depends(get_scorer),
    hub: RealtimeHub = Depends(get_hub),
):
    wallet = require(request.wallet_address, "Wallet address required")

    with failing_with("Failed to analyze position"):
        positions = repo.get_user_positions(wallet)
        if not positions:
            raise HTTPException(status_code=404, detail="No positions found for this wallet")

        insight = scorer.analyze_user_positions(
            wallet,
            [
                {
                    'pool_name': p.pool_name,
                    'amount': p.amount,
                    'apy': p.apy,
                    'risk_level': p.risk_level,
                }
                for p in positions
            ]
        )

        created = repo.create_ai_insight(
            wallet_address=wallet,
            insight_type="analysis",
            title=insight.title,
            description=insight.description,
            severity=insight.severity,
            recommendations=insight.recommendations,
        )

        hub.notify_new_insight(created.id, created.wallet_address, created.severity)
        return created.to_dict()
