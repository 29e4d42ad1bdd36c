from sqlalchemy import Column, String, Enum, DateTime, Text, Index
from datetime import datetime
from models.base import Base, BigIntegerPK, ChangeType


class PropertyHistory(Base):
    """
    Append-only change log for listings.

    One row per changed field per upsert of an existing listing. Rows are
    never updated or deleted by the sync engine.
    """
    __tablename__ = "property_history"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    listing_key = Column(String(128), nullable=False)
    change_type = Column(Enum(ChangeType), nullable=False)
    field_name = Column(String(100), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_history_listing_type", "listing_key", "change_type"),
    )
