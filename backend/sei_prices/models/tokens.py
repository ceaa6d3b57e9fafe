"""Token models: tracked assets and the discovery queue."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
)

from sei_prices.database import Base


class Token(Base):
    __tablename__ = "tokens"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    symbol = Column(String, nullable=False)
    decimals = Column(Integer, nullable=False)
    logo = Column(String, nullable=True)
    contract_address = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class NewTokenRaw(Base):
    """
    Contract addresses seen on-chain that may need a tokens row.
    Consumed by the token discovery job.
    """
    __tablename__ = "new_tokens_raw"

    id = Column(Integer, primary_key=True, index=True)
    chain_type = Column(String, nullable=False, default="evm")
    contract_address = Column(String, nullable=False, index=True)
    discovered_at = Column(DateTime, default=datetime.utcnow)
    processed = Column(Boolean, default=False, index=True)
