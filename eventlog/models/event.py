# SQLAlchemy models

from sqlalchemy import BigInteger, Column, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class EventRecord(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False)
    # Canonical UTC text, so lexical order is chronological order
    timestamp = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    # Raw JSON, stored verbatim
    payload = Column(Text, nullable=False)

    __table_args__ = (
        # Composite indexes for per-user range scans
        Index('idx_user_timestamp', 'user_id', 'timestamp'),
        Index('idx_user_type_timestamp', 'user_id', 'event_type', 'timestamp'),
    )
