"""
Single-turn processing.

process_turn is the one entry point the transport layer calls. It is stateless
across calls: the caller owns the slots and the history, passes them in, and
stores whatever comes back.

Order within a turn:
1. Validate the utterance (InvalidInputError before anything else), then
   check the backend has credentials (GenerationConfigError before any
   retrieval is spent)
2. Extract preferences into a copy of the prior slots
3. Run the dialogue policy
4. Run retrieval when the policy asks for it (advisory, never fatal)
5. Build the generation request and call the backend (errors are fatal)
6. Parse a plan out of the reply (failure means "no plan")
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .assembler import build_generation_request, parse_plan
from .errors import (
    MISSING_CREDENTIALS_MESSAGE,
    GenerationBackendError,
    GenerationConfigError,
    InvalidInputError,
    TripPlannerError,
)
from .extract import ExtractionResult, apply_extraction, extract_slots
from .plan import TripPlan
from .planner import PlannerResult, decide_next_action
from .records import RetrievalResult
from .retrieval import RetrievalOrchestrator
from .state import ConversationTurn, Role, SlotStore, append_turn

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """Everything the caller needs to store and display after one turn."""
    updated_slots: SlotStore
    planner_result: PlannerResult
    assistant_text: str
    plan: Optional[TripPlan] = None
    retrieval: Optional[RetrievalResult] = None
    history: List[ConversationTurn] = field(default_factory=list)
    turn_count: int = 0
    is_complete: bool = False
    extraction: Optional[ExtractionResult] = None

    @property
    def next_action(self):
        return self.planner_result.next_action


async def run_retrieval(
    orchestrator: Optional[RetrievalOrchestrator],
    slots: SlotStore,
) -> Optional[RetrievalResult]:
    """
    Run the orchestrator, treating any setup failure as "no retrieval data".

    Per-category failures are already absorbed by the orchestrator; this only
    catches failures of the run as a whole.
    """
    if orchestrator is None:
        logger.info("Retrieval requested but no orchestrator configured")
        return None
    try:
        return await orchestrator.retrieve(slots)
    except Exception as e:
        logger.warning(
            f"Retrieval run failed, continuing without data: {type(e).__name__}: {e}",
            exc_info=True,
        )
        return None


async def process_turn(
    utterance: str,
    prior_slots: Optional[SlotStore],
    history: Optional[List[ConversationTurn]],
    turn_count: int,
    llm: Any,
    orchestrator: Optional[RetrievalOrchestrator] = None,
) -> TurnResult:
    """
    Process one user utterance.

    Args:
        utterance: Raw user text
        prior_slots: Slots from the previous turn (never mutated)
        history: Transcript so far (never mutated)
        turn_count: Number of user turns before this one
        llm: Generative backend with async complete(system_prompt, messages) -> str
        orchestrator: Retrieval orchestrator; None disables retrieval

    Returns:
        TurnResult with new slots, history and turn count

    Raises:
        InvalidInputError: Missing, empty or non-string utterance
        GenerationBackendError: Backend call failed (GenerationConfigError
            when credentials are missing)
    """
    if not isinstance(utterance, str) or not utterance.strip():
        raise InvalidInputError("Message is required")

    if not getattr(llm, "is_configured", True):
        logger.error("Generation backend not configured, rejecting turn before retrieval")
        raise GenerationConfigError(MISSING_CREDENTIALS_MESSAGE)

    prior_slots = prior_slots if prior_slots is not None else SlotStore()
    history = history or []
    user_turn_count = turn_count + 1

    # Step 1: extraction
    extraction = extract_slots(utterance, prior_slots)
    slots = apply_extraction(prior_slots, extraction)
    turn_history = append_turn(history, Role.USER, utterance)

    # Step 2: policy
    planner_result = decide_next_action(slots, user_turn_count=user_turn_count)
    logger.info(
        f"Turn {user_turn_count}: action={planner_result.next_action.value} "
        f"rule={planner_result.rule} "
        f"question={planner_result.question.slot_name if planner_result.question else 'none'}"
    )

    # Step 3: retrieval completes (live or fallback) before the request is built
    retrieval = None
    if planner_result.trigger_retrieval:
        retrieval = await run_retrieval(orchestrator, slots)

    # Step 4: generation
    request = build_generation_request(slots, turn_history, retrieval, planner_result)
    try:
        assistant_text = await llm.complete(request.system_prompt, request.messages)
    except TripPlannerError:
        raise
    except Exception as e:
        raise GenerationBackendError(f"LLM API error: {e}") from e

    if not assistant_text:
        raise GenerationBackendError("No response content from LLM")

    # Step 5: plan parsing
    plan = parse_plan(assistant_text)
    is_complete = slots.is_slot_filled("destination") and plan is not None

    return TurnResult(
        updated_slots=slots,
        planner_result=planner_result,
        assistant_text=assistant_text,
        plan=plan,
        retrieval=retrieval,
        history=append_turn(turn_history, Role.ASSISTANT, assistant_text),
        turn_count=user_turn_count,
        is_complete=is_complete,
        extraction=extraction,
    )
