"""
Conversation state owned by a single trip-planning session.

SlotStore is the structured preference record; ConversationTurn is one entry
of the append-only transcript. Neither is shared across conversations, so
nothing here is locked.
"""
import copy
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional

from trips.specs import TRIP_SLOTS, HARD_SLOTS, get_slot_spec


# SlotStore attribute -> external (camelCase) key
_EXTERNAL_KEYS: Dict[str, str] = {
    "destination": "destination",
    "origin": "origin",
    "start_date": "startDate",
    "end_date": "endDate",
    "budget": "budget",
    "travelers": "travelers",
    "accommodation_type": "accommodationType",
    "interests": "interests",
}


@dataclass
class SlotStore:
    """Structured trip preferences collected so far."""
    destination: Optional[str] = None
    origin: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    budget: Optional[str] = None
    travelers: Optional[int] = None
    accommodation_type: Optional[str] = None
    interests: Optional[List[str]] = None

    def is_field_filled(self, field_name: str) -> bool:
        """
        Check if a single attribute has a usable value.

        None, blank strings and empty lists count as unfilled.
        """
        value = getattr(self, field_name)
        if value is None:
            return False
        if isinstance(value, str) and value.strip() == "":
            return False
        if isinstance(value, list) and not value:
            return False
        return True

    def is_slot_filled(self, slot_name: str) -> bool:
        """Check a registry slot; "dates" needs both start and end."""
        spec = get_slot_spec(slot_name)
        return all(self.is_field_filled(f) for f in spec.fields)

    def has_dates(self) -> bool:
        return self.is_slot_filled("dates")

    def is_retrieval_ready(self) -> bool:
        """All hard slots (destination, origin, dates, budget, travelers) are present."""
        return all(self.is_slot_filled(name) for name in HARD_SLOTS)

    def filled_slot_names(self) -> List[str]:
        return [s.name for s in TRIP_SLOTS if self.is_slot_filled(s.name)]

    def copy(self) -> "SlotStore":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with external camelCase keys, omitting unset values."""
        data: Dict[str, Any] = {}
        for f in fields(self):
            if self.is_field_filled(f.name):
                data[_EXTERNAL_KEYS[f.name]] = copy.deepcopy(getattr(self, f.name))
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SlotStore":
        """Build a SlotStore from camelCase or snake_case keys; unknown keys are ignored."""
        store = cls()
        if not data:
            return store
        for attr, external in _EXTERNAL_KEYS.items():
            if external in data:
                value = data[external]
            elif attr in data:
                value = data[attr]
            else:
                continue
            if attr == "interests" and value is not None:
                value = list(value)
            setattr(store, attr, value)
        return store


class Role(str, Enum):
    """Speaker of a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ConversationTurn:
    """One transcript entry."""
    role: Role
    text: str
    position: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# HISTORY HELPERS
# =============================================================================

def append_turn(history: List[ConversationTurn], role: Role, text: str) -> List[ConversationTurn]:
    """
    Return a new history with one more turn.

    The input list is never mutated, so a failed turn leaves the caller's
    history intact.
    """
    return list(history) + [ConversationTurn(role=role, text=text, position=len(history))]


def format_history(history: List[ConversationTurn]) -> str:
    """Render the transcript as "User: ..." / "Assistant: ..." blocks."""
    lines = []
    for turn in history:
        speaker = "User" if turn.role == Role.USER else "Assistant"
        lines.append(f"{speaker}: {turn.text}")
    return "\n\n".join(lines)


def count_user_turns(history: List[ConversationTurn]) -> int:
    return sum(1 for turn in history if turn.role == Role.USER)


def count_user_turns_in_text(history_text: str) -> int:
    """Count "User:" markers in a rendered transcript."""
    if not history_text:
        return 0
    return len(history_text.split("User:")) - 1
