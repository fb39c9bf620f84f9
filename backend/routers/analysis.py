#!/usr/bin/env python3
"""
Protocol analysis endpoints

- POST /api/analyze-protocol - re-score a protocol and persist the verdict
- POST /api/explain-risk - explainable breakdown of the stored score
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from realtime import RealtimeHub
from repository import Repository
from routers.common import CamelModel, failing_with, get_hub, get_repository, get_scorer, require
from services.risk_scorer import RiskScorer

router = APIRouter()


class ProtocolRequest(CamelModel):
    protocol_id: Optional[str] = None


def _load_protocol(repo: Repository, request: ProtocolRequest):
    protocol_id = require(request.protocol_id, "Protocol ID required")
    protocol = repo.get_protocol(protocol_id)
    if not protocol:
        raise HTTPException(status_code=404, detail="Protocol not found")
    return protocol


@router.post("/analyze-protocol")
def analyze_protocol(
    request: ProtocolRequest,
    repo: Repository = Depends(get_repository),
    scorer: RiskScorer = Depends(get_scorer),
    hub: RealtimeHub = Depends(get_hub),
):
    with failing_with("Failed to analyze protocol"):
        protocol = _load_protocol(repo, request)

        verdict = scorer.analyze_protocol_risk(
            protocol_name=protocol.name,
            tvl=protocol.tvl,
            apy=protocol.apy or None,
            contract_address=protocol.contract_address,
        )

        repo.update_protocol(
            protocol.id,
            risk_score=verdict.risk_score,
            risk_level=verdict.risk_level,
            confidence=verdict.confidence,
            trust_index=verdict.trust_index,
        )

        hub.notify_protocol_update(protocol.id, {
            'name': protocol.symbol,
            'riskScore': verdict.risk_score,
            'riskLevel': verdict.risk_level,
        })
        return verdict.to_dict()


@router.post("/explain-risk")
def explain_risk(
    request: ProtocolRequest,
    repo: Repository = Depends(get_repository),
    scorer: RiskScorer = Depends(get_scorer),
):
    with failing_with("Failed to explain risk decision"):
        protocol = _load_protocol(repo, request)

        explanation = scorer.explain_risk_decision(
            protocol_name=protocol.name,
            symbol=protocol.symbol,
            risk_score=protocol.risk_score,
            risk_level=protocol.risk_level,
            tvl=protocol.tvl,
            apy=protocol.apy,
            trust_index=protocol.trust_index,
            confidence=protocol.confidence,
        )
        return explanation.to_dict()
