import uuid
from datetime import datetime, timezone
from sqlalchemy import create_engine, Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from config import config

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def isoformat(dt: datetime):
    if dt is None:
        return None
    return dt.isoformat(timespec='milliseconds') + 'Z'


def create_db_engine(database_url: str):
    """Build an engine; in-memory SQLite shares one connection across threads"""
    if database_url.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False}}
        if ':memory:' in database_url or database_url == 'sqlite://':
            kwargs['poolclass'] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


engine = create_db_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


class DefiProtocol(Base):
    """Liquidity pool discovered on-chain, with its latest risk verdict"""
    __tablename__ = "defi_protocols"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    symbol = Column(String, nullable=False)

    # Decimal strings, e.g. "1000000.00"
    tvl = Column(String, nullable=False)
    apy = Column(String, nullable=True)

    risk_score = Column(Integer, nullable=False, comment="Risk score 0-100")
    risk_level = Column(String(10), nullable=False, comment="low, medium, high")
    confidence = Column(Integer, nullable=False)
    trust_index = Column(Integer, nullable=False)

    # One row per pair; a second scan cycle racing on the same pair hits this
    contract_address = Column(String(42), nullable=False, unique=True, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<DefiProtocol(symbol='{self.symbol}', risk_score={self.risk_score}, contract='{self.contract_address}')>"

    def to_dict(self):
        """Convert to dictionary for API response"""
        return {
            'id': self.id,
            'name': self.name,
            'symbol': self.symbol,
            'tvl': self.tvl,
            'riskScore': self.risk_score,
            'riskLevel': self.risk_level,
            'confidence': self.confidence,
            'trustIndex': self.trust_index,
            'apy': self.apy,
            'contractAddress': self.contract_address,
            'updatedAt': isoformat(self.updated_at),
        }


class UserPosition(Base):
    """A wallet's stake in a protocol's pool"""
    __tablename__ = "user_positions"

    id = Column(String(36), primary_key=True, default=new_id)
    wallet_address = Column(String(42), nullable=False, index=True)
    protocol_id = Column(String(36), nullable=False)
    pool_name = Column(String, nullable=False)
    amount = Column(String, nullable=False)
    apy = Column(String, nullable=True)

    # Copied from the protocol when the position is created, not kept in sync
    risk_level = Column(String(10), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'walletAddress': self.wallet_address,
            'protocolId': self.protocol_id,
            'poolName': self.pool_name,
            'amount': self.amount,
            'apy': self.apy,
            'riskLevel': self.risk_level,
            'createdAt': isoformat(self.created_at),
        }


def init_db(bind=None):
    """Initialize database tables"""
    import db_models  # noqa: F401  registers the history tables on Base

    Base.metadata.create_all(bind=bind or engine)
