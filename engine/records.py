"""
Retrieval data shapes.

Live fetchers and the fallback catalog produce exactly the same record types,
so nothing downstream can tell them apart except through the provenance flag
kept on RetrievalResult.
"""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .state import SlotStore

FLIGHTS = "flights"
HOTELS = "hotels"
RESTAURANTS = "restaurants"

CATEGORIES: List[str] = [FLIGHTS, HOTELS, RESTAURANTS]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class _Record:
    """Mixin: camelCase dict output for prompt embedding."""

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(k): v for k, v in asdict(self).items()}


@dataclass
class FlightInfo(_Record):
    airline: str
    route: str
    price: str
    departure_time: str = ""
    arrival_time: str = ""
    stops: str = ""


@dataclass
class HotelInfo(_Record):
    name: str
    address: str
    price: str
    rating: str
    neighborhood: str = ""


@dataclass
class RestaurantInfo(_Record):
    name: str
    address: str
    cuisine: str
    price_range: str
    rating: str


class Provenance(str, Enum):
    """Where a category's records came from."""
    LIVE = "live"
    FALLBACK = "fallback"


@dataclass
class RetrievalQuery:
    """Search parameters derived from the slots."""
    destination: str
    origin: str = ""
    start_date: str = ""
    end_date: str = ""
    budget: str = ""
    travelers: int = 2
    interests: List[str] = field(default_factory=list)

    @classmethod
    def from_slots(cls, slots: SlotStore) -> "RetrievalQuery":
        return cls(
            destination=slots.destination or "",
            origin=slots.origin or "",
            start_date=slots.start_date or "",
            end_date=slots.end_date or "",
            budget=slots.budget or "",
            travelers=slots.travelers or 2,
            interests=list(slots.interests or []),
        )


@dataclass
class RetrievalResult:
    """Combined result of one retrieval run, one list per category."""
    flights: List[FlightInfo] = field(default_factory=list)
    hotels: List[HotelInfo] = field(default_factory=list)
    restaurants: List[RestaurantInfo] = field(default_factory=list)
    provenance: Dict[str, Provenance] = field(default_factory=dict)

    def get(self, category: str) -> List[Any]:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}. Valid categories: {CATEGORIES}")
        return getattr(self, category)

    def set(self, category: str, records: List[Any], provenance: Provenance) -> None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}. Valid categories: {CATEGORIES}")
        setattr(self, category, list(records))
        self.provenance[category] = provenance

    def is_fallback(self, category: str) -> bool:
        return self.provenance.get(category) == Provenance.FALLBACK

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Records only, without provenance."""
        return {category: [r.to_dict() for r in self.get(category)] for category in CATEGORIES}

    def provenance_summary(self) -> Dict[str, Optional[str]]:
        return {c: (self.provenance[c].value if c in self.provenance else None) for c in CATEGORIES}
