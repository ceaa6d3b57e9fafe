"""Price models: raw oracle observations and periodic per-token snapshots."""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from sei_prices.database import Base


class PriceRaw(Base):
    """
    Raw price observation as reported by an upstream source.

    Append-only. The real price is price * 10^expo; price and conf are
    integer mantissas in the same units.
    """
    __tablename__ = "prices_raw"

    id = Column(Integer, primary_key=True, index=True)
    price_id = Column(String, nullable=False, index=True)  # Feed key, e.g. "BTC/USD"
    price = Column(BigInteger)
    conf = Column(BigInteger)
    expo = Column(Integer)
    publish_time = Column(DateTime, index=True)
    source = Column(String, nullable=True)  # Adapter that produced the row
    created_at = Column(DateTime, default=datetime.utcnow)


class PriceSnapshot(Base):
    """
    Resolved USD price per token, appended once per rollup cycle.

    source is "pyth" (or another adapter name) for real data and "mock"
    for placeholder values.
    """
    __tablename__ = "prices_5m"

    id = Column(Integer, primary_key=True, index=True)
    token_id = Column(Integer, ForeignKey("tokens.id"), index=True)
    price = Column(Float)
    source = Column(String, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    token = relationship("Token")
