#!/usr/bin/env python3
"""AI insight records produced by on-demand portfolio analysis"""

from sqlalchemy import Column, String, Text, DateTime

from database import Base, new_id, utcnow, isoformat

INSIGHT_TYPES = ('risk_alert', 'recommendation', 'analysis')
SEVERITIES = ('info', 'warning', 'critical')


class AiInsight(Base):
    """Immutable once written; read back newest first per wallet"""
    __tablename__ = "ai_insights"

    id = Column(String(36), primary_key=True, default=new_id)
    wallet_address = Column(String(42), nullable=False, index=True)
    protocol_id = Column(String(36), nullable=True)
    insight_type = Column(String(20), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(String(10), nullable=False)
    recommendations = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'walletAddress': self.wallet_address,
            'protocolId': self.protocol_id,
            'insightType': self.insight_type,
            'title': self.title,
            'description': self.description,
            'severity': self.severity,
            'recommendations': self.recommendations,
            'createdAt': isoformat(self.created_at),
        }
