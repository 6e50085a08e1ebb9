"""
Place tables shared by the extractor and the fallback catalog.

Both sides must agree on airport codes: an origin the extractor expanded to
"New York (JFK)" has to come back out of get_airport_code() as "JFK" when the
fallback catalog builds route strings.
"""
import re
from typing import Dict, List, Optional

# Well-known cities recognised by a plain substring scan (lowercase)
COMMON_CITIES: List[str] = [
    "paris",
    "tokyo",
    "london",
    "new york",
    "san francisco",
    "los angeles",
    "barcelona",
    "rome",
    "dubai",
    "singapore",
    "bangkok",
    "sydney",
    "amsterdam",
    "berlin",
    "madrid",
]

# Airport code -> canonical "City (CODE)" display form
AIRPORT_DISPLAY_NAMES: Dict[str, str] = {
    "RDU": "Raleigh-Durham (RDU)",
    "JFK": "New York (JFK)",
    "LAX": "Los Angeles (LAX)",
    "SFO": "San Francisco (SFO)",
    "ORD": "Chicago (ORD)",
    "DFW": "Dallas (DFW)",
    "ATL": "Atlanta (ATL)",
}

# Lowercase location fragment -> airport code, checked in order
CITY_AIRPORT_CODES: List[tuple] = [
    ("raleigh-durham", "RDU"),
    ("raleigh", "RDU"),
    ("rdu", "RDU"),
    ("new york", "JFK"),
    ("jfk", "JFK"),
    ("los angeles", "LAX"),
    ("lax", "LAX"),
    ("san francisco", "SFO"),
    ("sfo", "SFO"),
    ("chicago", "ORD"),
    ("dallas", "DFW"),
    ("atlanta", "ATL"),
    ("paris", "CDG"),
    ("cdg", "CDG"),
    ("tokyo", "NRT"),
    ("london", "LHR"),
    ("barcelona", "BCN"),
    ("rome", "FCO"),
]

_CODE_IN_PARENS = re.compile(r"\(([A-Z]{3})\)")


def expand_airport_code(code: str) -> str:
    """
    Expand a 3-letter airport code to its display form.

    Unrecognised codes are returned unchanged.
    """
    return AIRPORT_DISPLAY_NAMES.get(code, code)


def is_known_airport_code(code: str) -> bool:
    """Check whether a code is in the display table."""
    return code in AIRPORT_DISPLAY_NAMES


def get_airport_code(location: Optional[str]) -> str:
    """
    Get an airport code for a free-text location.

    Resolution order:
    1. An explicit "(CODE)" suffix, as produced by expand_airport_code()
    2. A known city or code fragment (case-insensitive)
    3. The first three letters of the location, uppercased

    Args:
        location: Display string such as "Paris" or "New York (JFK)"

    Returns:
        A 3-letter code, or "" for an empty location
    """
    if not location:
        return ""

    match = _CODE_IN_PARENS.search(location)
    if match:
        return match.group(1)

    lower = location.lower()
    for fragment, code in CITY_AIRPORT_CODES:
        if fragment in lower:
            return code

    return location.strip()[:3].upper()
