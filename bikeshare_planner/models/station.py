"""Bike-share station database model."""

from datetime import datetime
from typing import Optional

from geoalchemy2 import Geography
from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bikeshare_planner.models.base import Base
from bikeshare_planner.schemas.station import StationStatus


class Station(Base):
    """Rental station with its last known bike availability.

    Rows are maintained by the inventory sync job; the planner only reads them.
    """

    __tablename__ = "stations"

    station_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    station_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    station_name: Mapped[str] = mapped_column(String(255), nullable=False)

    location: Mapped[str] = mapped_column(
        Geography(geometry_type="POINT", srid=4326),
        nullable=False,
    )

    total_racks: Mapped[int] = mapped_column(Integer, default=0)
    current_bikes: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[StationStatus] = mapped_column(
        Enum(StationStatus, values_callable=lambda e: [m.value for m in e]),
        default=StationStatus.AVAILABLE,
    )
    last_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
