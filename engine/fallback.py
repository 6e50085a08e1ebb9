"""
Fallback catalog for retrieval.

Deterministic substitute data used whenever a live lookup fails, times out or
comes back empty. Records have the same shape as live ones. A few well-known
destinations get real hotel and restaurant names; everything else gets
generic placeholders built from the destination string.
"""
from typing import Callable, Dict, List, Optional

from trips.places import get_airport_code
from .records import (
    FLIGHTS,
    HOTELS,
    RESTAURANTS,
    FlightInfo,
    HotelInfo,
    RestaurantInfo,
    RetrievalQuery,
)

DEFAULT_ORIGIN = "RDU"


WELL_KNOWN_HOTELS: Dict[str, List[HotelInfo]] = {
    "paris": [
        HotelInfo(
            name="Hôtel des Grands Boulevards",
            address="17 Boulevard Poissonnière, 75002 Paris, France",
            price="$200-280/night",
            rating="4.5",
            neighborhood="2nd Arrondissement",
        ),
        HotelInfo(
            name="Hôtel La Comtesse",
            address="29 Avenue de Tourville, 75007 Paris, France",
            price="$250-320/night",
            rating="4.7",
            neighborhood="7th Arrondissement (near Eiffel Tower)",
        ),
        HotelInfo(
            name="Hôtel des Arts Montmartre",
            address="5 Rue Tholozé, 75018 Paris, France",
            price="$180-240/night",
            rating="4.3",
            neighborhood="Montmartre",
        ),
    ],
    "tokyo": [
        HotelInfo(
            name="Park Hotel Tokyo",
            address="1-7-1 Higashi Shimbashi, Minato City, Tokyo, Japan",
            price="$220-300/night",
            rating="4.5",
            neighborhood="Shiodome",
        ),
        HotelInfo(
            name="Hotel Gracery Shinjuku",
            address="1-19-1 Kabukicho, Shinjuku City, Tokyo, Japan",
            price="$150-220/night",
            rating="4.3",
            neighborhood="Shinjuku",
        ),
        HotelInfo(
            name="The Gate Hotel Kaminarimon",
            address="2-16-11 Kaminarimon, Taito City, Tokyo, Japan",
            price="$180-260/night",
            rating="4.6",
            neighborhood="Asakusa",
        ),
    ],
    "london": [
        HotelInfo(
            name="The Hoxton, Holborn",
            address="199-206 High Holborn, London WC1V 7BD, UK",
            price="$250-330/night",
            rating="4.5",
            neighborhood="Holborn",
        ),
        HotelInfo(
            name="citizenM Tower of London",
            address="40 Trinity Square, London EC3N 4DJ, UK",
            price="$200-280/night",
            rating="4.6",
            neighborhood="Tower Hill",
        ),
        HotelInfo(
            name="The Resident Covent Garden",
            address="51 Bedford Street, London WC2E 9HA, UK",
            price="$230-310/night",
            rating="4.5",
            neighborhood="Covent Garden",
        ),
    ],
}

WELL_KNOWN_RESTAURANTS: Dict[str, List[RestaurantInfo]] = {
    "paris": [
        RestaurantInfo(
            name="Bouillon Chartier",
            address="7 Rue du Faubourg Montmartre, 75009 Paris, France",
            cuisine="French",
            price_range="$",
            rating="4.3",
        ),
        RestaurantInfo(
            name="Le Relais de l'Entrecôte",
            address="20 Rue Saint-Benoît, 75006 Paris, France",
            cuisine="French steakhouse",
            price_range="$$",
            rating="4.4",
        ),
        RestaurantInfo(
            name="L'As du Fallafel",
            address="34 Rue des Rosiers, 75004 Paris, France",
            cuisine="Middle Eastern",
            price_range="$",
            rating="4.5",
        ),
    ],
    "tokyo": [
        RestaurantInfo(
            name="Ichiran Shibuya",
            address="1-22-7 Jinnan, Shibuya City, Tokyo, Japan",
            cuisine="Ramen",
            price_range="$",
            rating="4.4",
        ),
        RestaurantInfo(
            name="Tsukiji Sushisay",
            address="4-13-9 Tsukiji, Chuo City, Tokyo, Japan",
            cuisine="Sushi",
            price_range="$$",
            rating="4.3",
        ),
        RestaurantInfo(
            name="Gonpachi Nishi-Azabu",
            address="1-13-11 Nishiazabu, Minato City, Tokyo, Japan",
            cuisine="Izakaya",
            price_range="$$",
            rating="4.2",
        ),
    ],
    "london": [
        RestaurantInfo(
            name="Dishoom Covent Garden",
            address="12 Upper St Martin's Lane, London WC2H 9FB, UK",
            cuisine="Indian",
            price_range="$$",
            rating="4.6",
        ),
        RestaurantInfo(
            name="Borough Market",
            address="8 Southwark Street, London SE1 1TL, UK",
            cuisine="Street food",
            price_range="$-$$",
            rating="4.7",
        ),
        RestaurantInfo(
            name="The Churchill Arms",
            address="119 Kensington Church Street, London W8 7LN, UK",
            cuisine="Thai / Pub",
            price_range="$$",
            rating="4.5",
        ),
    ],
}


def well_known_destination(destination: Optional[str]) -> Optional[str]:
    """Return the catalog key for a destination, or None for a generic one."""
    lower = (destination or "").lower()
    for key in WELL_KNOWN_HOTELS:
        if key in lower:
            return key
    return None


# =============================================================================
# CATEGORY BUILDERS
# =============================================================================

def fallback_flights(query: RetrievalQuery) -> List[FlightInfo]:
    """Three one-stop itineraries routed through common US hubs."""
    origin_code = get_airport_code(query.origin or DEFAULT_ORIGIN)
    dest_code = get_airport_code(query.destination)

    return [
        FlightInfo(
            airline="Delta Airlines",
            route=f"{origin_code}-ATL-{dest_code}",
            departure_time="12:30 PM",
            arrival_time="7:35 AM (+1 day)",
            price="$850-950 roundtrip",
            stops="1 stop in Atlanta",
        ),
        FlightInfo(
            airline="American Airlines",
            route=f"{origin_code}-CLT-{dest_code}",
            departure_time="4:15 PM",
            arrival_time="10:50 AM (+1 day)",
            price="$870-980 roundtrip",
            stops="1 stop in Charlotte",
        ),
        FlightInfo(
            airline="Air France",
            route=f"{origin_code}-JFK-{dest_code}",
            departure_time="6:00 AM",
            arrival_time="8:30 AM (+1 day)",
            price="$920-1050 roundtrip",
            stops="1 stop in New York",
        ),
    ]


def fallback_hotels(query: RetrievalQuery) -> List[HotelInfo]:
    key = well_known_destination(query.destination)
    if key:
        return [HotelInfo(**vars(h)) for h in WELL_KNOWN_HOTELS[key]]

    destination = query.destination
    return [
        HotelInfo(
            name="City Center Hotel",
            address=destination,
            price="$200-280/night",
            rating="4.5",
            neighborhood="City Center",
        ),
        HotelInfo(
            name="Boutique Hotel",
            address=destination,
            price="$250-320/night",
            rating="4.7",
            neighborhood="Downtown",
        ),
        HotelInfo(
            name="Historic Hotel",
            address=destination,
            price="$180-240/night",
            rating="4.3",
            neighborhood="Historic District",
        ),
    ]


def fallback_restaurants(query: RetrievalQuery) -> List[RestaurantInfo]:
    key = well_known_destination(query.destination)
    if key:
        return [RestaurantInfo(**vars(r)) for r in WELL_KNOWN_RESTAURANTS[key]]

    return [
        RestaurantInfo(
            name="Local Restaurant",
            address=query.destination,
            cuisine="Local",
            price_range="$$",
            rating="4.5",
        ),
    ]


FALLBACK_BUILDERS: Dict[str, Callable[[RetrievalQuery], List]] = {
    FLIGHTS: fallback_flights,
    HOTELS: fallback_hotels,
    RESTAURANTS: fallback_restaurants,
}


def get_fallback(category: str, query: RetrievalQuery) -> List:
    """
    Get fallback records for a category.

    Raises:
        ValueError: If the category is unknown.
    """
    builder = FALLBACK_BUILDERS.get(category)
    if builder is None:
        raise ValueError(f"Unknown category: {category}. Valid categories: {list(FALLBACK_BUILDERS.keys())}")
    return builder(query)
