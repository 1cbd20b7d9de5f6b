"""
Core domain models for place search.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
import math


class InvalidCoordinates(ValueError):
    """Latitude/longitude could not be parsed into finite floats."""

    def __init__(self, latitude: Any, longitude: Any):
        super().__init__(f"Invalid coordinates: lat={latitude!r} lon={longitude!r}")
        self.latitude = latitude
        self.longitude = longitude


class NetworkError(Exception):
    """Geocoding lookup failed (transport or provider error)."""


class StorageError(Exception):
    """Load/save/remove against the history store failed."""


def parse_coordinate(value: Any) -> float:
    """Parse a coordinate that may arrive as text. Raises ValueError."""
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a coordinate: {value!r}")
    if isinstance(value, str):
        value = value.strip()
    parsed = float(value)
    if not math.isfinite(parsed):
        raise ValueError(f"not a finite coordinate: {value!r}")
    return parsed


def parse_coordinates(latitude: Any, longitude: Any) -> Tuple[float, float]:
    try:
        return parse_coordinate(latitude), parse_coordinate(longitude)
    except (TypeError, ValueError):
        raise InvalidCoordinates(latitude, longitude) from None


def short_name(display_name: Optional[str]) -> str:
    """First comma-separated component of a display name."""
    if not display_name:
        return ""
    return display_name.split(",")[0].strip()


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-08-01T12:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _first_present_id(data: Dict[str, Any]) -> Optional[str]:
    for key in ("place_id", "osm_id"):
        value = data.get(key)
        if value is not None and value != "":
            return str(value)
    return None


@dataclass
class Candidate:
    """
    A geocoding search result awaiting user selection.

    Coordinates are kept exactly as the provider sent them (often text) and
    only parsed when the candidate is selected.
    """
    display_name: str
    place_id: Optional[str]
    lat: Any
    lon: Any
    type: Optional[str] = None
    importance: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, item: Dict[str, Any]) -> "Candidate":
        return cls(
            display_name=item.get("display_name") or "",
            place_id=_first_present_id(item),
            lat=item.get("lat"),
            lon=item.get("lon"),
            type=item.get("type"),
            importance=item.get("importance"),
            raw=dict(item),
        )

    @property
    def short_name(self) -> str:
        return short_name(self.display_name)

    def coordinates(self) -> Tuple[float, float]:
        return parse_coordinates(self.lat, self.lon)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "short_name": self.short_name,
            "place_id": self.place_id,
            "lat": self.lat,
            "lon": self.lon,
            "type": self.type,
            "importance": self.importance,
        }


def _text_field(data: Dict[str, Any], key: str, default: Optional[str] = "") -> Optional[str]:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"{key} is not a string: {value!r}")
    return value


@dataclass(frozen=True)
class HistoryEntry:
    """A durable record of a previously selected place."""
    name: str
    place_id: Optional[str]
    latitude: float
    longitude: float
    timestamp: str
    address: str
    type: Optional[str] = None
    importance: Optional[float] = None
    full_details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_candidate(cls, candidate: Candidate, timestamp: str) -> "HistoryEntry":
        latitude, longitude = candidate.coordinates()
        return cls(
            name=candidate.display_name,
            place_id=candidate.place_id,
            latitude=latitude,
            longitude=longitude,
            timestamp=timestamp,
            address=candidate.display_name,
            type=candidate.type,
            importance=candidate.importance,
            full_details=dict(candidate.raw),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        """Build from the persisted JSON shape.

        Raises InvalidCoordinates for bad lat/lon and ValueError for any
        other field of the wrong type.
        """
        latitude, longitude = parse_coordinates(data.get("latitude"), data.get("longitude"))
        place_id = data.get("placeId")
        importance = data.get("importance")
        if importance is not None and (
            isinstance(importance, bool) or not isinstance(importance, (int, float))
        ):
            raise ValueError(f"importance is not a number: {importance!r}")
        full_details = data.get("fullDetails")
        if full_details is not None and not isinstance(full_details, dict):
            raise ValueError("fullDetails is not an object")
        return cls(
            name=_text_field(data, "name"),
            place_id=str(place_id) if place_id is not None else None,
            latitude=latitude,
            longitude=longitude,
            timestamp=_text_field(data, "timestamp"),
            address=_text_field(data, "address"),
            type=_text_field(data, "type", default=None),
            importance=importance,
            full_details=full_details or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "placeId": self.place_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
            "address": self.address,
            "type": self.type,
            "importance": self.importance,
            "fullDetails": self.full_details,
        }

    def refreshed(self, timestamp: str) -> "HistoryEntry":
        latitude, longitude = parse_coordinates(self.latitude, self.longitude)
        return replace(self, latitude=latitude, longitude=longitude, timestamp=timestamp)

    @property
    def short_name(self) -> str:
        return short_name(self.name)

    @property
    def coordinate_key(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class SelectedPlace:
    """The single currently-focused location."""
    name: str
    address: str
    latitude: float
    longitude: float
    type: Optional[str] = None

    @property
    def short_name(self) -> str:
        return short_name(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "type": self.type,
        }


@dataclass(frozen=True)
class MapRegion:
    """Visible map window: a center point plus latitude/longitude span."""
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float

    @classmethod
    def around(cls, latitude: float, longitude: float, delta: float = 0.5) -> "MapRegion":
        return cls(latitude=latitude, longitude=longitude, latitude_delta=delta, longitude_delta=delta)

    def to_dict(self) -> Dict[str, float]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "latitude_delta": self.latitude_delta,
            "longitude_delta": self.longitude_delta,
        }


INITIAL_REGION = MapRegion(
    latitude=37.7749,
    longitude=-122.4194,
    latitude_delta=5.0,
    longitude_delta=5.0,
)
