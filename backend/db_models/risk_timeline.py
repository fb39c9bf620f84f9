#!/usr/bin/env python3
"""
Risk Timeline Model

Append-only series of risk scores per protocol. One sample is written when a
protocol is first discovered and one on every scan pass after that. Feeds the
risk chart and the forecaster on the dashboard.
"""

from sqlalchemy import Column, Integer, String, DateTime, Index

from database import Base, new_id, utcnow, isoformat


class RiskTimelineEntry(Base):
    """
    Historical risk score sample.

    The score recorded on a routine refresh is the one stored on the
    protocol before that refresh ran.
    """
    __tablename__ = "risk_timeline"

    id = Column(String(36), primary_key=True, default=new_id)
    protocol_id = Column(String(36), nullable=False, index=True)
    risk_score = Column(Integer, nullable=False, comment="Risk score 0-100")
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index('ix_risk_timeline_protocol_time', 'protocol_id', 'timestamp'),
    )

    def __repr__(self):
        return f"<RiskTimelineEntry(protocol_id='{self.protocol_id}', risk_score={self.risk_score}, timestamp='{self.timestamp}')>"

    def to_dict(self):
        """Convert to dictionary for API response"""
        return {
            'id': self.id,
            'protocolId': self.protocol_id,
            'riskScore': self.risk_score,
            'timestamp': isoformat(self.timestamp),
        }
