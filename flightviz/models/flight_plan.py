"""
FlightPlan model - submitted flight plans.

One row per flight plan submitted for visualization, with the fields the
flight list needs already extracted from the FPL text so listing never
re-parses.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from flightviz.ingestion.fpl_parser import FlightPlanRecord
from flightviz.models.base import Base


class FlightPlan(Base):
    """A stored ICAO flight plan plus route summary."""

    __tablename__ = 'flight_plans'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    fpl: Mapped[str] = mapped_column(Text, nullable=False, comment='Raw ICAO FPL text')

    adep: Mapped[str] = mapped_column(String(4), nullable=False, index=True, comment='Departure aerodrome')
    ades: Mapped[str] = mapped_column(String(4), nullable=False, index=True, comment='Destination aerodrome')
    aircraft_type: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)

    dep_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    arr_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    eet_minutes: Mapped[int] = mapped_column(Integer, default=0)

    # Route summary from the route service, when one was supplied
    risk_level: Mapped[str] = mapped_column(String(16), default='low')
    storm_detected: Mapped[bool] = mapped_column(Boolean, default=False)

    status: Mapped[str] = mapped_column(String(16), default='scheduled')

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def from_record(
        cls,
        record: FlightPlanRecord,
        summary: Optional[Dict[str, Any]] = None,
    ) -> 'FlightPlan':
        """Build a row from a parsed flight plan and optional route summary."""
        summary = summary or {}
        eet = record.estimated_elapsed
        return cls(
            fpl=record.raw,
            adep=record.departure_id,
            ades=record.destination_id,
            aircraft_type=record.aircraft_type,
            dep_time=record.departure_time,
            arr_time=record.arrival_time,
            eet_minutes=int(eet.total_seconds() // 60) if eet is not None else 0,
            risk_level=str(summary.get('risk_level') or 'low'),
            storm_detected=bool(summary.get('storm_detected', False)),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'fpl': self.fpl,
            'adep': self.adep,
            'ades': self.ades,
            'aircraft_type': self.aircraft_type,
            'dep_time': self.dep_time.isoformat() if self.dep_time else None,
            'arr_time': self.arr_time.isoformat() if self.arr_time else None,
            'eet_minutes': self.eet_minutes,
            'risk_level': self.risk_level,
            'storm_detected': self.storm_detected,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f'<FlightPlan {self.id} {self.adep}-{self.ades} {self.dep_time}>'
