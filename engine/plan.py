"""
Structured trip plan models.

A plan either validates against these models in full or it does not exist;
there is no partially-filled plan.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FlightLeg(BaseModel):
    date: str
    route: str
    suggestions: List[str] = Field(default_factory=list)


class FlightPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    outbound: FlightLeg
    # "return" is reserved in Python
    return_: FlightLeg = Field(alias="return")


class AccommodationPlan(BaseModel):
    type: str
    recommendations: List[str] = Field(default_factory=list)
    estimatedCost: str


class ItineraryActivity(BaseModel):
    time: str
    activity: str
    location: str
    notes: Optional[str] = None


class ItineraryDay(BaseModel):
    day: int
    date: str
    activities: List[ItineraryActivity] = Field(default_factory=list)


class TransportPlan(BaseModel):
    type: str
    recommendations: List[str] = Field(default_factory=list)


class Activity(BaseModel):
    name: str
    location: str
    description: str
    estimatedCost: Optional[str] = None


class TripPlan(BaseModel):
    """Final trip plan parsed out of the generated reply."""
    destination: str
    origin: str
    startDate: str
    endDate: str
    duration: int
    budget: str
    travelers: int
    flights: Optional[FlightPlan] = None
    accommodation: Optional[AccommodationPlan] = None
    itinerary: Optional[List[ItineraryDay]] = None
    transport: Optional[TransportPlan] = None
    activities: Optional[List[Activity]] = None
    totalEstimatedCost: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self):
        """JSON-ready dict using the wire field names, unset sections omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)
