"""Database models package for Risk Sentinel history tables"""

from db_models.ai_insight import AiInsight
from db_models.risk_timeline import RiskTimelineEntry
from db_models.portfolio_history import PortfolioSnapshot
from db_models.transaction_history import TransactionRecord

__all__ = ['AiInsight', 'RiskTimelineEntry', 'PortfolioSnapshot', 'TransactionRecord']
