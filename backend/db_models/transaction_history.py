#!/usr/bin/env python3
"""
Transaction History Model

Log of DeFi transactions a wallet reports through the API. Hashes are unique;
the status moves pending -> confirmed/failed through a dedicated update keyed
by hash.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime

from database import Base, new_id, utcnow, isoformat


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    SWAP = "swap"
    REBALANCE = "rebalance"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class TransactionRecord(Base):
    __tablename__ = "transaction_history"

    id = Column(String(36), primary_key=True, default=new_id)
    wallet_address = Column(String(42), nullable=False, index=True)
    transaction_hash = Column(String(66), nullable=False, unique=True)
    transaction_type = Column(String(20), nullable=False)
    protocol_id = Column(String(36), nullable=False)
    pool_name = Column(String, nullable=False)
    amount = Column(String, nullable=False)
    token_symbol = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    block_number = Column(Integer, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<TransactionRecord(hash='{self.transaction_hash}', type='{self.transaction_type}', status='{self.status}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'walletAddress': self.wallet_address,
            'transactionHash': self.transaction_hash,
            'transactionType': self.transaction_type,
            'protocolId': self.protocol_id,
            'poolName': self.pool_name,
            'amount': self.amount,
            'tokenSymbol': self.token_symbol,
            'status': self.status,
            'blockNumber': self.block_number,
            'timestamp': isoformat(self.timestamp),
        }
