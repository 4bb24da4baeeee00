from sqlalchemy import BigInteger, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func
from app.db import Base

class Run(Base):
    __tablename__ = "runs"

    # Caller-generated "<epoch ms>-<random>" id
    id = Column(String(64), primary_key=True, index=True)

    # Epoch milliseconds
    started_at_ms = Column(BigInteger, nullable=False, index=True)
    finished_at_ms = Column(BigInteger, nullable=False)

    # Active seconds, pauses excluded
    duration_sec = Column(Integer, nullable=False)
    distance_km = Column(Float, nullable=False)

    # Average pace label, e.g. "5:00" or "--:--"
    avg_pace = Column(String(16), nullable=False)

    # Editable metadata
    notes = Column(String, nullable=True)
    run_type = Column(String(20), nullable=True)  # tempo, trail, easy, interval
    location = Column(String, nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
