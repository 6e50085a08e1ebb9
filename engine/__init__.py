"""
Trip planning engine - extractor, planner, retrieval and plan assembly.
"""
from .state import (
    SlotStore,
    ConversationTurn,
    Role,
    append_turn,
    format_history,
    count_user_turns,
)
from .extract import (
    ExtractionResult,
    extract_slots,
    extract_preferences,
)
from .planner import (
    NextAction,
    PlannerResult,
    Question,
    decide_next_action,
    build_question,
    get_missing_slots,
)
from .records import (
    FlightInfo,
    HotelInfo,
    RestaurantInfo,
    Provenance,
    RetrievalQuery,
    RetrievalResult,
)
from .fallback import get_fallback
from .retrieval import CategoryFetcher, RetrievalOrchestrator
from .plan import TripPlan
from .assembler import GenerationRequest, build_generation_request, parse_plan
from .errors import (
    TripPlannerError,
    InvalidInputError,
    GenerationBackendError,
    GenerationConfigError,
)
from .turn import TurnResult, process_turn

__all__ = [
    "SlotStore",
    "ConversationTurn",
    "Role",
    "append_turn",
    "format_history",
    "count_user_turns",
    "ExtractionResult",
    "extract_slots",
    "extract_preferences",
    "NextAction",
    "PlannerResult",
    "Question",
    "decide_next_action",
    "build_question",
    "get_missing_slots",
    "FlightInfo",
    "HotelInfo",
    "RestaurantInfo",
    "Provenance",
    "RetrievalQuery",
    "RetrievalResult",
    "get_fallback",
    "CategoryFetcher",
    "RetrievalOrchestrator",
    "TripPlan",
    "GenerationRequest",
    "build_generation_request",
    "parse_plan",
    "TripPlannerError",
    "InvalidInputError",
    "GenerationBackendError",
    "GenerationConfigError",
    "TurnResult",
    "process_turn",
]
