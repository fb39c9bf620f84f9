#!/usr/bin/env python3
"""
History API Router

- GET /api/portfolio-history?wallet=&days=30 - portfolio value over time
- GET /api/transaction-history?wallet=&limit=50 - most recent transactions
- POST /api/record-transaction - store a reported transaction
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from db_models.transaction_history import TransactionStatus, TransactionType
from realtime import RealtimeHub
from repository import Repository
from routers.common import CamelModel, failing_with, get_hub, get_repository, require

router = APIRouter()


class TransactionCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    wallet_address: str = Field(min_length=1)
    transaction_hash: str = Field(min_length=1)
    transaction_type: TransactionType
    protocol_id: str = Field(min_length=1)
    pool_name: str
    amount: str
    token_symbol: str
    status: TransactionStatus
    block_number: Optional[int] = None
    timestamp: Optional[datetime] = None

    @field_validator('amount', mode='before')
    @classmethod
    def amount_is_decimal(cls, value):
        try:
            Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValueError('amount must be a decimal number')
        return str(value)

    @field_validator('timestamp')
    @classmethod
    def naive_utc(cls, value):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


@router.get("/portfolio-history")
def get_portfolio_history(
    wallet: Optional[str] = None,
    days: int = Query(30, ge=0),
    repo: Repository = Depends(get_repository),
):
    wallet = require(wallet, "Wallet address required")
    with failing_with("Failed to fetch portfolio history"):
        return [s.to_dict() for s in repo.get_portfolio_history(wallet, days)]


@router.get("/transaction-history")
def get_transaction_history(
    wallet: Optional[str] = None,
    limit: int = Query(50, ge=1),
    repo: Repository = Depends(get_repository),
):
    wallet = require(wallet, "Wallet address required")
    with failing_with("Failed to fetch transaction history"):
        return [t.to_dict() for t in repo.get_transaction_history(wallet, limit)]


@router.post("/record-transaction")
def record_transaction(
    payload: Dict[str, Any] = Body(...),
    repo: Repository = Depends(get_repository),
    hub: RealtimeHub = Depends(get_hub),
):
    """
    Record a transaction reported by the dashboard.

    Invalid bodies get 400 with the validation errors; a hash that was
    already recorded gets 409.
    """
    try:
        transaction = TransactionCreate.model_validate(payload)
    except ValidationError as e:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid transaction data", "details": e.errors(include_url=False, include_context=False)}
        )

    with failing_with("Failed to record transaction"):
        record = repo.record_transaction(**transaction.model_dump())

        hub.notify_position_change(record.wallet_address, {
            'transactionHash': record.transaction_hash,
            'transactionType': record.transaction_type,
            'protocolId': record.protocol_id,
            'status': record.status,
        })
        return record.to_dict()
