"""
Trip slot specifications and shared place tables.
"""
from .specs import (
    SlotSpec,
    TRIP_SLOTS,
    HARD_SLOTS,
    INTEREST_VOCABULARY,
    ACCOMMODATION_KEYWORDS,
    INTEREST_KEYWORDS,
    get_slot_spec,
    get_askable_slots,
)
from .places import (
    COMMON_CITIES,
    AIRPORT_DISPLAY_NAMES,
    get_airport_code,
    expand_airport_code,
    is_known_airport_code,
)

__all__ = [
    "SlotSpec",
    "TRIP_SLOTS",
    "HARD_SLOTS",
    "INTEREST_VOCABULARY",
    "ACCOMMODATION_KEYWORDS",
    "INTEREST_KEYWORDS",
    "get_slot_spec",
    "get_askable_slots",
    "COMMON_CITIES",
    "AIRPORT_DISPLAY_NAMES",
    "get_airport_code",
    "expand_airport_code",
    "is_known_airport_code",
]
