from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from repository import Repository
from routers.common import CamelModel, failing_with, get_repository, require
from services.protocol_queries import rebalance_advice

router = APIRouter()


class RebalanceRequest(CamelModel):
    position_id: Optional[str] = None


class RebalanceResponse(CamelModel):
    success: bool
    message: str
    position_id: str
    action: str


@router.get("/positions")
def get_positions(wallet: Optional[str] = None, repo: Repository = Depends(get_repository)):
    wallet = require(wallet, "Wallet address required")
    with failing_with("Failed to fetch positions"):
        return [p.to_dict() for p in repo.get_user_positions(wallet)]


@router.post("/rebalance-position", response_model=RebalanceResponse)
def rebalance_position(request: RebalanceRequest, repo: Repository = Depends(get_repository)):
    """
    Advisory rebalance for one position.

    Suggests an action from the protocol's current risk level. No
    transaction is sent and the stored position is not changed.
    """
    position_id = require(request.position_id, "Position ID required")

    with failing_with("Failed to rebalance position"):
        position = repo.get_user_position(position_id)
        if not position:
            raise HTTPException(status_code=404, detail="Position not found")

        protocol = repo.get_protocol(position.protocol_id)
        if not protocol:
            raise HTTPException(status_code=404, detail="Associated protocol not found")

        return RebalanceResponse(**rebalance_advice(position, protocol))
