from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntegerPK = BigInteger().with_variant(Integer, "sqlite")


# ============================================================================
# ENUMS
# ============================================================================

class ExtractionKind(str, enum.Enum):
    """What an extraction run pulls"""
    FULL = "full"
    INCREMENTAL = "incremental"


class RunStatus(str, enum.Enum):
    """Extraction run lifecycle"""
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class TriggerSource(str, enum.Enum):
    """Who invoked a run"""
    CRON = "cron"
    MANUAL = "manual"
    CONTINUATION = "continuation"


class ChangeType(str, enum.Enum):
    """Classification of a property history row"""
    PRICE_CHANGE = "price_change"
    STATUS_CHANGE = "status_change"
    FIELD_CHANGE = "field_change"
