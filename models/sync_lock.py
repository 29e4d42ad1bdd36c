from sqlalchemy import Column, String, DateTime
from datetime import datetime
from models.base import Base


class SyncLock(Base):
    """
    Named lease held for the duration of one sync run.

    The primary key on name makes acquisition a plain insert; expires_at
    lets a crashed holder's lease lapse instead of blocking forever.
    """
    __tablename__ = "sync_locks"

    name = Column(String(100), primary_key=True)
    owner = Column(String(100), nullable=False)
    acquired_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
