from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from app.db import Base


class RunTrack(Base):
    __tablename__ = "run_track"

    run_id = Column(String(64), ForeignKey("runs.id", ondelete="CASCADE"), primary_key=True)
    points = Column(JSON, nullable=False)   # [{lat, lng, timestamp_ms, accuracy_m}]
    geojson = Column(JSON, nullable=True)   # LineString
    bounds = Column(JSON, nullable=True)    # {minLat, minLng, maxLat, maxLng}
    points_count = Column(Integer, nullable=False, default=0)
