#!/usr/bin/env python3
"""
Portfolio History Model

Point-in-time value and risk of a wallet's whole portfolio, used for the
historical portfolio-value chart. Nothing in the scan loop writes these; the
repository exposes the write path for whoever records snapshots.
"""

from datetime import datetime, timedelta

from sqlalchemy import Column, Integer, String, DateTime, Index

from database import Base, new_id, utcnow, isoformat


class PortfolioSnapshot(Base):
    """Wallet-level value/risk sample (append-only)"""
    __tablename__ = "portfolio_history"

    id = Column(String(36), primary_key=True, default=new_id)
    wallet_address = Column(String(42), nullable=False, index=True)
    total_value = Column(String, nullable=False, comment="Decimal string, 2 dp")
    risk_score = Column(Integer, nullable=False, comment="Portfolio-wide risk score")
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_portfolio_history_wallet_time', 'wallet_address', 'timestamp'),
    )

    def __repr__(self):
        return f"<PortfolioSnapshot(wallet='{self.wallet_address}', total_value={self.total_value}, timestamp='{self.timestamp}')>"

    @staticmethod
    def cutoff(days: int) -> datetime:
        """Oldest timestamp included in a ``days`` lookback"""
        return utcnow() - timedelta(days=days)

    def to_dict(self):
        return {
            'id': self.id,
            'walletAddress': self.wallet_address,
            'totalValue': self.total_value,
            'riskScore': self.risk_score,
            'timestamp': isoformat(self.timestamp),
        }
