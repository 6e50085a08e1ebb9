"""
Preference extraction logic.

This module turns a free-form user message into structured trip slots.
Extraction is pattern based and deterministic:
- Each slot has an ordered list of named strategies
- The first strategy that matches wins; strategies are never combined
- Slots are extracted independently and never block each other
- A slot without a match keeps its previous value

No LLM is used here. The extractor never raises on user input; the worst case
is that the prior slots come back unchanged.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from trips.places import COMMON_CITIES, expand_airport_code, is_known_airport_code
from trips.specs import ACCOMMODATION_KEYWORDS, INTEREST_KEYWORDS
from .state import SlotStore

logger = logging.getLogger(__name__)

# Year used when a compact "June 5-13" range is expanded to full dates.
# Hardcoded until product decides how to infer the travel year.
SYNTHESIZED_YEAR = 2024

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june", "july",
    "august", "september", "october", "november", "december",
]
MONTH_ABBREVIATIONS = ["jan", "feb", "mar", "apr", "jun", "jul", "aug", "sep", "sept", "oct", "nov", "dec"]
WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_MONTH = r"(?:" + "|".join(MONTH_NAMES + MONTH_ABBREVIATIONS) + r")"

# A run of capitalised words ("Paris", "New York", "Raleigh-Durham")
_PLACE = r"([A-Z][a-zA-Z'\-]*(?:\s+[A-Z][a-zA-Z'\-]*)*)"

_TRAILING_CONNECTORS = re.compile(r"\s+(?:from|on|with|for|in|at|the|to|and)\b.*$", re.IGNORECASE)


@dataclass
class ExtractionResult:
    """Result of slot extraction for one message."""
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    # slot name -> strategy that produced it
    strategies: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractionStrategy:
    """
    A named extraction step for one slot.

    func receives the raw message and the prior slots and returns a mapping of
    SlotStore attributes to new values, or None when it does not match.
    """
    name: str
    func: Callable[[str, SlotStore], Optional[Dict[str, Any]]]


# =============================================================================
# HELPERS
# =============================================================================

def _is_calendar_word(text: str) -> bool:
    """True when a captured place actually starts with a month or weekday."""
    first = text.split()[0].lower().rstrip(".") if text.split() else ""
    return first in MONTH_NAMES or first in MONTH_ABBREVIATIONS or first in WEEKDAY_NAMES


def _clean_place(raw: str) -> Optional[str]:
    """Trim trailing connector words and reject implausible captures."""
    place = _TRAILING_CONNECTORS.sub("", raw.strip()).strip(" ,.")
    if len(place) <= 1 or len(place) >= 50:
        return None
    if _is_calendar_word(place):
        return None
    return place


def _first_place(patterns: List[re.Pattern], message: str) -> Optional[str]:
    """Return the first acceptable place captured by an ordered list of patterns."""
    for pattern in patterns:
        for match in pattern.finditer(message):
            place = _clean_place(match.group(1))
            if place:
                return place
    return None


# =============================================================================
# DESTINATION
# =============================================================================

DESTINATION_PATTERNS = [
    re.compile(
        r"(?i:\b(?:going to|traveling to|travelling to|visiting|destination is|trip to|"
        r"planning to go to|want to go to|heading to|travel to|fly to|flying to)\s+)" + _PLACE
    ),
    re.compile(r"(?i:\bvisit\s+)" + _PLACE),
    re.compile(r"(?i:\bgo to\s+)" + _PLACE),
]

_ORIGIN_SPAN = re.compile(r"(?i:\b(?:from)\s+)[A-Za-z][A-Za-z'\-]*(?:\s+[A-Za-z][A-Za-z'\-]*)?")


def extract_destination_phrase(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """Match destination phrases such as "trip to X" or "visit X"."""
    place = _first_place(DESTINATION_PATTERNS, message)
    if place:
        return {"destination": place}
    return None


def extract_destination_city(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """
    Scan for a well-known city name.

    Only used while no destination is known, and cities named right after
    "from" are ignored so the origin is not mistaken for the destination.
    """
    if prior.is_field_filled("destination"):
        return None

    scan_text = _ORIGIN_SPAN.sub(" ", message).lower()
    for city in COMMON_CITIES:
        if re.search(r"\b" + re.escape(city) + r"\b", scan_text):
            return {"destination": city.title()}
    return None


# =============================================================================
# ORIGIN
# =============================================================================

ORIGIN_PHRASE = re.compile(r"(?i:\b(?:leaving from|departing from|flying from|from)\s+)" + _PLACE)
CODE_BEFORE_PREPOSITION = re.compile(r"\b([A-Z]{3})\s+(?i:from|to|in|on)\b")
STANDALONE_CODE = re.compile(r"\b([A-Z]{3})\b")


def _destination_span(message: str) -> Optional[Tuple[int, int]]:
    """Span of the place a destination phrase captures, if any."""
    for pattern in DESTINATION_PATTERNS:
        for match in pattern.finditer(message):
            place = _clean_place(match.group(1))
            if place:
                return match.start(1), match.start(1) + len(place)
    return None


def _inside(position: int, span: Optional[Tuple[int, int]]) -> bool:
    return span is not None and span[0] <= position < span[1]


def _origin_value(raw: str) -> Optional[str]:
    tokens = raw.split()
    if tokens and re.fullmatch(r"[A-Z]{3}", tokens[0]):
        return expand_airport_code(tokens[0])
    return _clean_place(raw)


def extract_origin_phrase(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """Match "from X" / "flying from X", where X is a place or an airport code."""
    for match in ORIGIN_PHRASE.finditer(message):
        origin = _origin_value(match.group(1))
        if origin:
            return {"origin": origin}
    return None


def extract_origin_code(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """Match an airport code followed by a preposition ("RDU to Paris")."""
    destination = _destination_span(message)
    for match in CODE_BEFORE_PREPOSITION.finditer(message):
        if not _inside(match.start(1), destination):
            return {"origin": expand_airport_code(match.group(1))}
    return None


def extract_origin_known_code(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """Match a bare airport code, but only one from the known code table."""
    destination = _destination_span(message)
    for match in STANDALONE_CODE.finditer(message):
        code = match.group(1)
        if is_known_airport_code(code) and not _inside(match.start(1), destination):
            return {"origin": expand_airport_code(code)}
    return None


# =============================================================================
# DATES
# =============================================================================

DATE_RANGE = re.compile(
    r"\b(" + _MONTH + r")\.?\s+(\d{1,2})\s*[-\u2013\u2014]\s*(\d{1,2})\b",
    re.IGNORECASE,
)

_DATE_SHAPE = (
    r"(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"
    r"|" + _MONTH + r"\.?\s+\d{1,2}(?:st|nd|rd|th)?(?:,?\s+\d{4})?"
    r"|\d{1,2}(?:st|nd|rd|th)?\s+" + _MONTH + r"(?:\s+\d{4})?)\b"
)

START_DATE_PATTERNS = [
    re.compile(r"\b(?:from|starting|beginning|departing|leaving|on)\s+" + _DATE_SHAPE, re.IGNORECASE),
    re.compile(r"\b(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})\s+(?:to|until|through)\b", re.IGNORECASE),
    re.compile(r"\b(?:in|during|for)\s+(" + _MONTH + r"\s+\d{4}|" + _MONTH + r"\s+\d{1,2})\b", re.IGNORECASE),
]

END_DATE_PATTERNS = [
    re.compile(r"\b(?:to|until|through|ending|returning)(?:\s+on)?\s+" + _DATE_SHAPE, re.IGNORECASE),
]

DURATION_PATTERN = re.compile(r"\b(?:for|duration of|staying)\s+(\d+)\s+(days?|weeks?)\b", re.IGNORECASE)


def _first_group(patterns: List[re.Pattern], message: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(message)
        if match and match.group(1):
            return match.group(1).strip()
    return None


def extract_date_range(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """
    Match a compact "<Month> <D1>-<D2>" range.

    Both dates are synthesized as "<Month> <D>, <SYNTHESIZED_YEAR>".
    """
    match = DATE_RANGE.search(message)
    if not match:
        return None
    month = match.group(1).capitalize()
    return {
        "start_date": f"{month} {int(match.group(2))}, {SYNTHESIZED_YEAR}",
        "end_date": f"{month} {int(match.group(3))}, {SYNTHESIZED_YEAR}",
    }


def extract_date_phrases(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """
    Match separate end and start date phrases, then a "for N days" duration.

    A duration only produces an end date when a start date is known (from this
    message or an earlier one) and no end date exists yet. The end date is a
    textual offset ("June 5 + 7 days"), not a calendar computation.
    """
    updates: Dict[str, Any] = {}

    # End phrases first; their date is blanked so "returning on June 12"
    # cannot also match the "on <date>" start pattern.
    start_text = message
    end = None
    for pattern in END_DATE_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1):
            end = match.group(1).strip()
            begin, finish = match.span(1)
            start_text = message[:begin] + " " * (finish - begin) + message[finish:]
            break

    start = _first_group(START_DATE_PATTERNS, start_text)
    if start:
        updates["start_date"] = start

    if end and end != start:
        updates["end_date"] = end

    if "end_date" not in updates and not prior.is_field_filled("end_date"):
        duration = DURATION_PATTERN.search(message)
        known_start = updates.get("start_date") or prior.start_date
        if duration and known_start:
            unit = duration.group(2).lower()
            count = int(duration.group(1))
            if not unit.endswith("s") and count != 1:
                unit += "s"
            updates["end_date"] = f"{known_start} + {count} {unit}"

    return updates or None


# =============================================================================
# BUDGET / TRAVELERS
# =============================================================================

_AMOUNT = r"(\d+(?:,\d{3})*(?:\.\d{2})?)"

BUDGET_PATTERNS = [
    re.compile(
        r"\b(?:budget|spending|cost|price)\s+(?:(?:of|is|around|about)\s+)*\$?" + _AMOUNT,
        re.IGNORECASE,
    ),
    re.compile(r"\$" + _AMOUNT),
]

TRAVELER_PATTERNS = [
    re.compile(r"\b(\d+)\s+(?:people|travelers|travellers|persons|guests|adults)\b", re.IGNORECASE),
    re.compile(r"\b(?:traveling|travelling|going)\s+(?:with|as)\s+(\d+)\b", re.IGNORECASE),
]


def extract_budget(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    amount = _first_group(BUDGET_PATTERNS, message)
    if amount:
        return {"budget": f"${amount}"}
    return None


def extract_travelers(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    for pattern in TRAVELER_PATTERNS:
        for match in pattern.finditer(message):
            count = int(match.group(1))
            if count > 0:
                return {"travelers": count}
    return None


# =============================================================================
# ACCOMMODATION / INTERESTS
# =============================================================================

def _keyword_position(lower_message: str, keywords: List[str]) -> Optional[int]:
    positions = []
    for keyword in keywords:
        match = re.search(r"\b" + re.escape(keyword) + r"\b", lower_message)
        if match:
            positions.append(match.start())
    return min(positions) if positions else None


def extract_accommodation(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    lower = message.lower()
    for accommodation_type, keywords in ACCOMMODATION_KEYWORDS:
        if _keyword_position(lower, keywords) is not None:
            return {"accommodation_type": accommodation_type}
    return None


def extract_interests(message: str, prior: SlotStore) -> Optional[Dict[str, Any]]:
    """
    Collect every interest category mentioned, ordered by first mention.

    The result replaces any interests from earlier turns.
    """
    lower = message.lower()
    found = []
    for category, keywords in INTEREST_KEYWORDS:
        position = _keyword_position(lower, keywords)
        if position is not None:
            found.append((position, category))
    if not found:
        return None
    found.sort(key=lambda item: item[0])
    return {"interests": [category for _, category in found]}


# =============================================================================
# STRATEGY REGISTRY
# =============================================================================

SLOT_STRATEGIES: Dict[str, List[ExtractionStrategy]] = {
    "destination": [
        ExtractionStrategy("destination_phrase", extract_destination_phrase),
        ExtractionStrategy("destination_city_scan", extract_destination_city),
    ],
    "origin": [
        ExtractionStrategy("origin_phrase", extract_origin_phrase),
        ExtractionStrategy("origin_code_before_preposition", extract_origin_code),
        ExtractionStrategy("origin_known_code", extract_origin_known_code),
    ],
    "dates": [
        ExtractionStrategy("date_range", extract_date_range),
        ExtractionStrategy("date_phrases", extract_date_phrases),
    ],
    "budget": [
        ExtractionStrategy("budget_amount", extract_budget),
    ],
    "travelers": [
        ExtractionStrategy("traveler_count", extract_travelers),
    ],
    "accommodation": [
        ExtractionStrategy("accommodation_keyword", extract_accommodation),
    ],
    "interests": [
        ExtractionStrategy("interest_keywords", extract_interests),
    ],
}


# =============================================================================
# MAIN EXTRACTION FUNCTIONS
# =============================================================================

def extract_slots(user_message: str, prior: Optional[SlotStore] = None) -> ExtractionResult:
    """
    Extract slot values from a user message.

    Args:
        user_message: The user's message
        prior: Slots collected so far (used by the city scan and duration rules)

    Returns:
        ExtractionResult with only the attributes matched in this message
    """
    if prior is None:
        prior = SlotStore()

    result = ExtractionResult()
    if not isinstance(user_message, str) or not user_message.strip():
        return result

    for slot_name, strategies in SLOT_STRATEGIES.items():
        for strategy in strategies:
            try:
                updates = strategy.func(user_message, prior)
            except Exception as e:
                logger.warning(f"Extraction strategy {strategy.name} failed: {type(e).__name__}: {e}")
                updates = None
            if updates:
                result.extracted_data.update(updates)
                result.strategies[slot_name] = strategy.name
                logger.debug(f"Extracted {slot_name} via {strategy.name}: {updates}")
                break

    return result


def extract_preferences(user_message: str, prior: Optional[SlotStore] = None) -> SlotStore:
    """
    Return updated slots for a user message.

    The prior SlotStore is never mutated. Slots without a new explicit match
    keep their previous value; nothing is ever cleared.
    """
    if prior is None:
        prior = SlotStore()
    return apply_extraction(prior, extract_slots(user_message, prior))


def apply_extraction(prior: SlotStore, result: ExtractionResult) -> SlotStore:
    """Merge an ExtractionResult into a copy of the prior slots."""
    updated = prior.copy()
    for attr, value in result.extracted_data.items():
        setattr(updated, attr, value)

    if result.extracted_data:
        logger.info(f"Extraction: matched={list(result.strategies.keys())}")
    return updated
