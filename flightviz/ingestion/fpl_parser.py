"""
ICAO flight-plan (FPL) parser.

Extracts the fields the visualization needs from an ICAO-style FPL message:

    (FPL-N123AB-IS
    -B738/M-SDFGHIRWY/S
    -KJFK1200
    -N0450F350 DCT GREKI J80 ...
    -KLAX0415 KLAS
    -PBN/A1B1C1D1L1O1S2 DOF/230401 REG/N123AB)

Field mapping:
    -KJFK1200   departure aerodrome + estimated off-block time (HHMM, UTC)
    -B738/M     aircraft type designator + wake turbulence category
    -KLAX0415   destination aerodrome + total estimated elapsed time (HHMM)
    DOF/230401  date of flight (YYMMDD)

Parsing is a pure function of the text and a reference "now". Malformed
input yields a ParseFailure value rather than an exception, so callers can
fall back to playing the route from the current time.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

# Aerodrome + HHMM group, e.g. -KJFK1200
AERODROME_TIME_RE = re.compile(r'-([A-Z]{4})(\d{4})')

# Aircraft type (2-4 chars) in front of the wake category, e.g. -B738/M, -H47/H
AIRCRAFT_TYPE_RE = re.compile(r'-([A-Z0-9]{2,4})/[LMHJ]\b')

DOF_RE = re.compile(r'\bDOF/(\d{6})\b')


@dataclass(frozen=True)
class FlightPlanRecord:
    """Structured view of a parsed flight plan. Immutable once created."""
    departure_id: str
    destination_id: str
    departure_time: datetime
    aircraft_type: Optional[str] = None
    estimated_elapsed: Optional[timedelta] = None
    date_of_flight: Optional[date] = None
    raw: str = ''

    @property
    def arrival_time(self) -> Optional[datetime]:
        if self.estimated_elapsed is None:
            return None
        return self.departure_time + self.estimated_elapsed

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        arrival = self.arrival_time
        return {
            'departure': self.departure_id,
            'destination': self.destination_id,
            'aircraft_type': self.aircraft_type,
            'departure_time': self.departure_time.isoformat(),
            'arrival_time': arrival.isoformat() if arrival else None,
            'eet_minutes': (
                int(self.estimated_elapsed.total_seconds() // 60)
                if self.estimated_elapsed is not None else None
            ),
            'date_of_flight': self.date_of_flight.isoformat() if self.date_of_flight else None,
        }


@dataclass(frozen=True)
class ParseFailure:
    """Explicit marker for a flight plan that could not be parsed."""
    reason: str

    def __bool__(self) -> bool:
        return False


def _parse_hhmm(value: str) -> Optional[timedelta]:
    """Parse 'HHMM' into a timedelta, or None if out of range."""
    hours, minutes = int(value[:2]), int(value[2:])
    if minutes > 59:
        return None
    return timedelta(hours=hours, minutes=minutes)


def _parse_dof(value: str) -> Optional[date]:
    """Parse 'YYMMDD' into a date (20YY), or None if not a real date."""
    try:
        return date(2000 + int(value[:2]), int(value[2:4]), int(value[4:6]))
    except ValueError:
        return None


def parse_flight_plan(
    text: str,
    now: Optional[datetime] = None,
) -> Union[FlightPlanRecord, ParseFailure]:
    """
    Parse an ICAO FPL string.

    Args:
        text: Raw flight-plan message
        now: Reference time for plans without DOF (defaults to current UTC)

    Returns:
        FlightPlanRecord on success, ParseFailure describing the problem otherwise.
    """
    if not text or not isinstance(text, str):
        return ParseFailure('empty flight plan')

    fpl = text.upper()

    groups = AERODROME_TIME_RE.findall(fpl)
    if not groups:
        return ParseFailure('missing departure aerodrome/time group')
    if len(groups) < 2:
        return ParseFailure('missing destination aerodrome group')

    departure_id, departure_hhmm = groups[0]
    destination_id, eet_hhmm = groups[1]

    offset = _parse_hhmm(departure_hhmm)
    if offset is None or offset >= timedelta(hours=24):
        return ParseFailure(f'invalid departure time {departure_hhmm}')

    estimated_elapsed = _parse_hhmm(eet_hhmm)

    aircraft_match = AIRCRAFT_TYPE_RE.search(fpl)
    aircraft_type = aircraft_match.group(1) if aircraft_match else None

    dof = None
    dof_match = DOF_RE.search(fpl)
    if dof_match:
        dof = _parse_dof(dof_match.group(1))
        if dof is None:
            return ParseFailure(f'invalid date of flight {dof_match.group(1)}')
        midnight = datetime(dof.year, dof.month, dof.day, tzinfo=timezone.utc)
        departure_time = midnight + offset
    else:
        now = now or datetime.now(timezone.utc)
        now = now.astimezone(timezone.utc)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        departure_time = midnight + offset
        # Plans without DOF are assumed to be near-term, never backdated
        if departure_time < now:
            departure_time += timedelta(days=1)

    return FlightPlanRecord(
        departure_id=departure_id,
        destination_id=destination_id,
        departure_time=departure_time,
        aircraft_type=aircraft_type,
        estimated_elapsed=estimated_elapsed,
        date_of_flight=dof,
        raw=text,
    )
