"""
SlotSpec definitions for the trip-planning conversation.

This module is the declarative description of every slot the planner can
collect. The extractor, the dialogue planner and the prompt assembler all read
from this registry, so adding or reordering a question never requires
touching their branching logic.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass
class SlotSpec:
    """
    Specification for a single slot to collect.

    Attributes:
        name: The slot key (e.g., "origin", "dates")
        fields: SlotStore attributes that must all be set for the slot to count as filled
        priority: Question rank (1 is asked first); None for slots that are never asked
        prompt: Question template; may reference {destination}
        hard: Whether the slot is required before live data retrieval
        description: Human-readable description for debugging
    """
    name: str
    fields: List[str]
    priority: Optional[int]
    prompt: str
    hard: bool = False
    description: Optional[str] = None

    def render_prompt(self, values: Dict[str, object]) -> str:
        """Render the question template with current slot values."""
        context = {"destination": values.get("destination") or "your destination"}
        return self.prompt.format(**context)


# =============================================================================
# SLOT REGISTRY
# =============================================================================

DESTINATION_SLOT = SlotSpec(
    name="destination",
    fields=["destination"],
    priority=0,
    prompt="I'd love to help you plan an amazing trip! Where are you thinking of going?",
    hard=True,
    description="City or country the user wants to visit",
)

TRIP_SLOTS: List[SlotSpec] = [
    DESTINATION_SLOT,
    SlotSpec(
        name="origin",
        fields=["origin"],
        priority=1,
        prompt=(
            "Great choice! {destination} is amazing. To find you the best flights and routes, "
            "where will you be flying from? What city or airport?"
        ),
        hard=True,
        description="Departure city or airport",
    ),
    SlotSpec(
        name="dates",
        fields=["start_date", "end_date"],
        priority=2,
        prompt=(
            "Perfect! When are you planning to travel? I need specific dates "
            "(like \"June 15-22\") so I can check flight availability and prices, "
            "plus see what's happening in {destination} during your visit."
        ),
        hard=True,
        description="Start and end of the trip",
    ),
    SlotSpec(
        name="interests",
        fields=["interests"],
        priority=3,
        prompt=(
            "I want to make this trip perfect for you! What are you most excited to do in "
            "{destination}? Sightseeing, food, nightlife, nature, museums and culture? "
            "The more details you share, the better I can research places you'll love!"
        ),
        description="Activity categories the user cares about",
    ),
    SlotSpec(
        name="budget",
        fields=["budget"],
        priority=4,
        prompt=(
            "To give you accurate recommendations, what's your budget for this trip? "
            "A specific dollar amount helps me find accommodations and activities that fit."
        ),
        hard=True,
        description="Total budget as a dollar amount",
    ),
    SlotSpec(
        name="travelers",
        fields=["travelers"],
        priority=5,
        prompt=(
            "How many people will be traveling? This helps me recommend the right "
            "accommodations and activities."
        ),
        hard=True,
        description="Number of travelers",
    ),
    SlotSpec(
        name="accommodation",
        fields=["accommodation_type"],
        priority=None,
        prompt="Do you prefer a hotel, an apartment, or a hostel?",
        description="Preferred accommodation type",
    ),
]

# Slots that must all be filled before live data retrieval is triggered
HARD_SLOTS: List[str] = [s.name for s in TRIP_SLOTS if s.hard]

# Accommodation type -> keywords. Checked in order; the first keyword hit decides the type
ACCOMMODATION_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("hotel", ["hotel", "hotels"]),
    ("airbnb", ["airbnb", "apartment", "apartments"]),
    ("hostel", ["hostel", "hostels"]),
]

# Interest category -> keywords, in canonical category order
INTEREST_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("sightseeing", ["sightseeing", "sights"]),
    ("nightlife", ["nightlife", "night life", "bars", "clubs"]),
    ("nature", ["nature", "hiking", "outdoor", "outdoors"]),
    ("culture", ["culture", "museum", "museums", "art", "arts"]),
    ("food", ["food", "restaurant", "restaurants", "cuisine"]),
]

INTEREST_VOCABULARY: List[str] = [category for category, _ in INTEREST_KEYWORDS]


def get_slot_spec(name: str) -> SlotSpec:
    """
    Get the SlotSpec for a given slot name.

    Raises:
        ValueError: If the slot is not in the registry.
    """
    for spec in TRIP_SLOTS:
        if spec.name == name:
            return spec
    raise ValueError(f"Unknown slot: {name}. Valid slots: {[s.name for s in TRIP_SLOTS]}")


def get_askable_slots() -> List[SlotSpec]:
    """Slots the planner may ask about after the destination, in priority order."""
    askable = [s for s in TRIP_SLOTS if s.priority is not None and s.priority > 0]
    return sorted(askable, key=lambda s: s.priority)
