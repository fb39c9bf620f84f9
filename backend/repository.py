#!/usr/bin/env python3
"""
Repository: the persistence boundary for Risk Sentinel.

Every read and write of protocols, positions, AI insights, risk timeline
samples, portfolio snapshots and transaction records goes through here.
Sessions are short-lived, one per call. Wallet addresses are lowercased on
the way in and on every wallet-keyed read.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from database import SessionLocal, DefiProtocol, UserPosition, create_db_engine, init_db, utcnow
from db_models import AiInsight, RiskTimelineEntry, PortfolioSnapshot, TransactionRecord
from errors import DuplicateProtocolError, DuplicateTransactionError

logger = logging.getLogger(__name__)

# Columns a protocol update may touch
PROTOCOL_FIELDS = (
    'name', 'symbol', 'tvl', 'apy', 'risk_score', 'risk_level',
    'confidence', 'trust_index', 'contract_address',
)


class Repository:
    def __init__(self, session_factory: sessionmaker = None):
        self.session_factory = session_factory or SessionLocal

    @classmethod
    def from_url(cls, database_url: str) -> "Repository":
        """Build a repository on its own engine and create the tables"""
        engine = create_db_engine(database_url)
        init_db(bind=engine)
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
        return cls(factory)

    # ------------------------------------------------------------------
    # DeFi protocols
    # ------------------------------------------------------------------
    def get_protocols(self) -> List[DefiProtocol]:
        db = self.session_factory()
        try:
            return db.query(DefiProtocol).all()
        finally:
            db.close()

    def get_protocol(self, protocol_id: str) -> Optional[DefiProtocol]:
        db = self.session_factory()
        try:
            return db.get(DefiProtocol, protocol_id)
        finally:
            db.close()

    def get_protocol_by_address(self, contract_address: str) -> Optional[DefiProtocol]:
        """Indexed lookup used by the scanner to decide new vs. existing"""
        db = self.session_factory()
        try:
            return (
                db.query(DefiProtocol)
                .filter(DefiProtocol.contract_address == contract_address)
                .first()
            )
        finally:
            db.close()

    def create_protocol(self, **fields) -> DefiProtocol:
        """
        Insert a protocol.

        Raises:
            DuplicateProtocolError: contract address is already stored
        """
        db = self.session_factory()
        try:
            protocol = DefiProtocol(**fields)
            db.add(protocol)
            db.commit()
            db.refresh(protocol)
            return protocol
        except IntegrityError:
            db.rollback()
            raise DuplicateProtocolError(fields.get('contract_address'))
        finally:
            db.close()

    def update_protocol(self, protocol_id: str, **updates) -> Optional[DefiProtocol]:
        """Apply a partial update; returns None for an unknown id"""
        unknown = set(updates) - set(PROTOCOL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown protocol fields: {', '.join(sorted(unknown))}")

        db = self.session_factory()
        try:
            protocol = db.get(DefiProtocol, protocol_id)
            if protocol is None:
                return None
            for key, value in updates.items():
                setattr(protocol, key, value)
            protocol.updated_at = utcnow()
            db.commit()
            db.refresh(protocol)
            return protocol
        finally:
            db.close()

    # ------------------------------------------------------------------
    # User positions
    # ------------------------------------------------------------------
    def get_user_positions(self, wallet_address: str) -> List[UserPosition]:
        db = self.session_factory()
        try:
            return (
                db.query(UserPosition)
                .filter(UserPosition.wallet_address == wallet_address.lower())
                .all()
            )
        finally:
            db.close()

    def get_user_position(self, position_id: str) -> Optional[UserPosition]:
        db = self.session_factory()
        try:
            return db.get(UserPosition, position_id)
        finally:
            db.close()

    def create_position(
        self,
        wallet_address: str,
        protocol_id: str,
        pool_name: str,
        amount: str,
        risk_level: str,
        apy: Optional[str] = None,
    ) -> UserPosition:
        db = self.session_factory()
        try:
            position = UserPosition(
                wallet_address=wallet_address.lower(),
                protocol_id=protocol_id,
                pool_name=pool_name,
                amount=amount,
                apy=apy,
                risk_level=risk_level,
            )
            db.add(position)
            db.commit()
            db.refresh(position)
            return position
        finally:
            db.close()

    def delete_position(self, position_id: str) -> bool:
        db = self.session_factory()
        try:
            deleted = (
                db.query(UserPosition)
                .filter(UserPosition.id == position_id)
                .delete()
            )
            db.commit()
            return deleted > 0
        finally:
            db.close()

    # ------------------------------------------------------------------
    # AI insights
    # ------------------------------------------------------------------
    def get_ai_insights(self, wallet_address: str) -> List[AiInsight]:
        db = self.session_factory()
        try:
            return (
                db.query(AiInsight)
                .filter(AiInsight.wallet_address == wallet_address.lower())
                .order_by(desc(AiInsight.created_at))
                .all()
            )
        finally:
            db.close()

    def create_ai_insight(
        self,
        wallet_address: str,
        insight_type: str,
        title: str,
        description: str,
        severity: str,
        recommendations: Optional[str] = None,
        protocol_id: Optional[str] = None,
    ) -> AiInsight:
        db = self.session_factory()
        try:
            insight = AiInsight(
                wallet_address=wallet_address.lower(),
                protocol_id=protocol_id,
                insight_type=insight_type,
                title=title,
                description=description,
                severity=severity,
                recommendations=recommendations,
            )
            db.add(insight)
            db.commit()
            db.refresh(insight)
            return insight
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Risk timeline
    # ------------------------------------------------------------------
    def get_risk_timeline(self, protocol_id: Optional[str] = None) -> List[RiskTimelineEntry]:
        db = self.session_factory()
        try:
            query = db.query(RiskTimelineEntry)
            if protocol_id:
                query = query.filter(RiskTimelineEntry.protocol_id == protocol_id)
            return query.order_by(RiskTimelineEntry.timestamp.asc()).all()
        finally:
            db.close()

    def add_risk_timeline_entry(
        self,
        protocol_id: str,
        risk_score: int,
        timestamp: Optional[datetime] = None,
    ) -> RiskTimelineEntry:
        db = self.session_factory()
        try:
            entry = RiskTimelineEntry(
                protocol_id=protocol_id,
                risk_score=risk_score,
                timestamp=timestamp or utcnow(),
            )
            db.add(entry)
            db.commit()
            db.refresh(entry)
            return entry
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Portfolio history
    # ------------------------------------------------------------------
    def get_portfolio_history(self, wallet_address: str, days: int = 30) -> List[PortfolioSnapshot]:
        db = self.session_factory()
        try:
            return (
                db.query(PortfolioSnapshot)
                .filter(
                    PortfolioSnapshot.wallet_address == wallet_address.lower(),
                    PortfolioSnapshot.timestamp >= PortfolioSnapshot.cutoff(days),
                )
                .order_by(PortfolioSnapshot.timestamp.asc())
                .all()
            )
        finally:
            db.close()

    def record_portfolio_snapshot(
        self,
        wallet_address: str,
        total_value: str,
        risk_score: int,
        timestamp: Optional[datetime] = None,
    ) -> PortfolioSnapshot:
        db = self.session_factory()
        try:
            snapshot = PortfolioSnapshot(
                wallet_address=wallet_address.lower(),
                total_value=total_value,
                risk_score=risk_score,
                timestamp=timestamp or utcnow(),
            )
            db.add(snapshot)
            db.commit()
            db.refresh(snapshot)
            return snapshot
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Transaction history
    # ------------------------------------------------------------------
    def get_transaction_history(self, wallet_address: str, limit: int = 50) -> List[TransactionRecord]:
        db = self.session_factory()
        try:
            return (
                db.query(TransactionRecord)
                .filter(TransactionRecord.wallet_address == wallet_address.lower())
                .order_by(desc(TransactionRecord.timestamp))
                .limit(limit)
                .all()
            )
        finally:
            db.close()

    def record_transaction(self, **fields) -> TransactionRecord:
        """
        Store a transaction.

        Raises:
            DuplicateTransactionError: the hash has already been recorded
        """
        fields = dict(fields)
        fields['wallet_address'] = fields['wallet_address'].lower()
        if fields.get('timestamp') is None:
            fields['timestamp'] = utcnow()

        db = self.session_factory()
        try:
            record = TransactionRecord(**fields)
            db.add(record)
            db.commit()
            db.refresh(record)
            return record
        except IntegrityError:
            db.rollback()
            raise DuplicateTransactionError(fields.get('transaction_hash'))
        finally:
            db.close()

    def update_transaction_status(
        self,
        transaction_hash: str,
        status: str,
        block_number: Optional[int] = None,
    ) -> bool:
        """Set status (and block number) for a hash; False if the hash is unknown"""
        db = self.session_factory()
        try:
            record = (
                db.query(TransactionRecord)
                .filter(TransactionRecord.transaction_hash == transaction_hash)
                .first()
            )
            if record is None:
                return False
            record.status = status
            if block_number is not None:
                record.block_number = block_number
            db.commit()
            return True
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------
    def latest_timeline_sample(self) -> Optional[RiskTimelineEntry]:
        db = self.session_factory()
        try:
            return (
                db.query(RiskTimelineEntry)
                .order_by(desc(RiskTimelineEntry.timestamp))
                .first()
            )
        finally:
            db.close()

    def counts(self) -> Dict[str, int]:
        db = self.session_factory()
        try:
            return {
                'protocols': db.query(DefiProtocol).count(),
                'timeline_entries': db.query(RiskTimelineEntry).count(),
                'insights': db.query(AiInsight).count(),
                'transactions': db.query(TransactionRecord).count(),
            }
        finally:
            db.close()
