from sqlalchemy import (
    Boolean, Column, Integer, String, JSON,
    DateTime, Index, func, Text,
)
from siphon.database import Base


class Area(Base):
    __tablename__ = "areas"

    id            = Column(Integer, primary_key=True)
    name          = Column(String(200), nullable=False)
    geometry      = Column(JSON, nullable=True)      # GeoJSON polygon
    bbox          = Column(JSON, nullable=True)      # legacy [{lat, lon}, {lat, lon}]
    discover_date = Column(DateTime(timezone=True), nullable=True)
    count         = Column(Integer, nullable=True)
    inactive      = Column(Boolean, nullable=False, default=False)
    one_shot      = Column(Boolean, nullable=False, default=False)

    @property
    def polygon(self) -> dict:
        from siphon.geometry import normalize_geometry
        return normalize_geometry(self.geometry if self.geometry else self.bbox)


class Record(Base):
    __tablename__ = "records"

    identifier    = Column(String(32), primary_key=True)
    tile          = Column(JSON, nullable=True)      # {x, y, z}
    bbox          = Column(JSON, nullable=True)      # tile corners [{lat, lon}, {lat, lon}]
    discover_date = Column(DateTime(timezone=True), nullable=True)
    api           = Column(JSON(none_as_null=True), nullable=True)
    api_date      = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_records_api_date", "api_date"),
        Index("ix_records_discover_date", "discover_date"),
    )

    @property
    def coordinate(self):
        """Catalog coordinate when fetched, otherwise the discovery tile's centre."""
        from siphon.geometry import GeoPoint
        from siphon.payload import CatalogPayload

        if self.api:
            point = CatalogPayload(self.api).coordinate
            if point is not None:
                return point
        if not self.bbox:
            return None
        top_left, bottom_right = self.bbox
        return GeoPoint(
            (top_left["lat"] + bottom_right["lat"]) / 2,
            (top_left["lon"] + bottom_right["lon"]) / 2,
        )


class RunAudit(Base):
    __tablename__ = "run_audits"

    id                = Column(Integer, primary_key=True)
    kind              = Column(String(20), nullable=False)   # discover | fetch
    status            = Column(String(20), nullable=False)   # ok | error | disabled
    records_processed = Column(Integer, default=0)
    duration_ms       = Column(Integer, nullable=True)
    error_detail      = Column(Text, nullable=True)
    triggered_by      = Column(String(50), default="manual")  # manual | scheduler
    created_at        = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_audit_kind", "kind"),
        Index("ix_audit_created", "created_at"),
    )
