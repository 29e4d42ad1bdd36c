from sqlalchemy import Column, String, Integer, Date, DateTime, Text, Index
from datetime import datetime
from models.base import Base, BigIntegerPK


class Agent(Base):
    """Listing and buyer agents, keyed by the provider's MemberMlsId"""
    __tablename__ = "agents"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    agent_mls_id = Column(String(50), nullable=False, unique=True, index=True)
    agent_key = Column(String(128), nullable=True)
    full_name = Column(String(200), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    office_mls_id = Column(String(50), nullable=True, index=True)
    state_license = Column(String(50), nullable=True)
    designation = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Office(Base):
    """Brokerage offices, keyed by the provider's OfficeMlsId"""
    __tablename__ = "offices"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    office_mls_id = Column(String(50), nullable=False, unique=True, index=True)
    office_key = Column(String(128), nullable=True)
    office_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state_or_province = Column(String(50), nullable=True)
    postal_code = Column(String(20), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Media(Base):
    """Photos per listing; the whole set is replaced on every sync"""
    __tablename__ = "media"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    listing_key = Column(String(128), nullable=False, index=True)
    media_key = Column(String(128), nullable=True)
    media_url = Column(String(2048), nullable=True)
    media_category = Column(String(50), nullable=True)
    order_index = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_media_listing_order", "listing_key", "order_index"),
    )


class OpenHouse(Base):
    """Open houses per listing; the whole set is replaced on every sync"""
    __tablename__ = "open_houses"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    listing_key = Column(String(128), nullable=False, index=True)
    open_house_key = Column(String(128), nullable=True)
    open_house_date = Column(Date, nullable=True, index=True)
    open_house_start_time = Column(DateTime, nullable=True)
    open_house_end_time = Column(DateTime, nullable=True)
    open_house_type = Column(String(50), nullable=True)
    open_house_remarks = Column(Text, nullable=True)
    showing_agent_mls_id = Column(String(50), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
