"""
Chat turn handler for the trip planner.

Sits between the HTTP endpoint and the engine:
1. Looks up (or starts) the session
2. Runs engine.process_turn with the session's slots and history
3. Stores the new state only when the turn succeeded
4. Builds the ChatResponse, summary log and metrics

Engine errors (InvalidInputError, GenerationBackendError) propagate to the
endpoint untouched; the session is not modified in that case.
"""
import logging
from typing import Any, Optional

from engine.errors import GenerationBackendError
from engine.planner import NextAction as PlannerNextAction
from engine.retrieval import RetrievalOrchestrator
from engine.turn import TurnResult, process_turn

from .models import ChatMessage, ChatRequest, ChatResponse, DebugPayload, NextAction, Question
from .session_store import SessionState, SessionStore

logger = logging.getLogger(__name__)


def _log_turn_summary(
    session_id: str,
    next_action: str,
    question_slot: Optional[str],
    slots_filled: int,
    retrieval_used: bool,
    plan_present: bool,
) -> None:
    """
    Structured summary log for each chat turn.

    One line per turn for monitoring and debugging:
    - session_id: Opaque session identifier
    - next_action: What the planner decided to do
    - question_slot: Which slot is being asked (if any)
    - slots_filled: Number of slots collected so far
    - retrieval_used: Whether retrieval data went into the request
    - plan_present: Whether a plan parsed out of the reply
    """
    logger.info(
        "[TRIP-SUMMARY] "
        f"id={session_id} "
        f"action={next_action} "
        f"question={question_slot or 'none'} "
        f"slots_filled={slots_filled} "
        f"retrieval={retrieval_used} "
        f"plan={plan_present}"
    )


# =============================================================================
# Internal Metrics Counters (for anomaly detection, not exposed via API)
# =============================================================================
class _TripMetrics:
    """
    Simple in-memory counters for trip planner metrics.

    These are for internal monitoring/logging only, not exposed via API.
    Counters reset on server restart.
    """

    def __init__(self):
        self.total_turns = 0
        self.ask_question_actions = 0
        self.generate_plan_actions = 0
        self.retrieval_runs = 0
        self.fallback_categories = 0
        self.plans_parsed = 0
        self.plan_parse_misses = 0
        self.generation_errors = 0

    def record_turn(self, result: TurnResult) -> None:
        """Record metrics for a completed turn."""
        self.total_turns += 1

        if result.next_action == PlannerNextAction.ASK_QUESTION:
            self.ask_question_actions += 1
        else:
            self.generate_plan_actions += 1
            if result.plan is None:
                self.plan_parse_misses += 1

        if result.plan is not None:
            self.plans_parsed += 1

        if result.retrieval is not None:
            self.retrieval_runs += 1
            self.fallback_categories += sum(
                1 for category in result.retrieval.provenance if result.retrieval.is_fallback(category)
            )

    def record_generation_error(self) -> None:
        self.generation_errors += 1

    def log_summary(self) -> None:
        """Log a summary of current metrics."""
        if self.total_turns == 0:
            return

        plan_rate = (self.plans_parsed / self.total_turns) * 100

        logger.info(
            f"[TRIP-METRICS] "
            f"total={self.total_turns} "
            f"plan_rate={plan_rate:.1f}% "
            f"plan_parse_misses={self.plan_parse_misses} "
            f"retrieval_runs={self.retrieval_runs} "
            f"fallback_categories={self.fallback_categories} "
            f"generation_errors={self.generation_errors} "
            f"actions={{ASK_QUESTION={self.ask_question_actions}, "
            f"GENERATE_PLAN={self.generate_plan_actions}}}"
        )


# Global metrics instance
_metrics = _TripMetrics()


def _build_debug_payload(result: TurnResult) -> DebugPayload:
    planner = result.planner_result
    return DebugPayload(
        planner_action=planner.next_action.value,
        planner_rule=planner.rule,
        planner_question_slot=planner.question.slot_name if planner.question else None,
        extraction_raw_data=dict(result.extraction.extracted_data) if result.extraction else {},
        merged_slots=result.updated_slots.to_dict(),
        missing_slots=list(planner.missing_slots or []),
        turn_count=result.turn_count,
        retrieval_triggered=planner.trigger_retrieval,
        retrieval_provenance=result.retrieval.provenance_summary() if result.retrieval else None,
    )


def _store_turn(store: SessionStore, session: SessionState, result: TurnResult) -> None:
    session.slots = result.updated_slots
    session.history = result.history
    session.turn_count = result.turn_count
    store.save(session)
    if result.is_complete:
        store.mark_completed(session)


async def handle_chat(
    request: ChatRequest,
    store: SessionStore,
    llm: Any,
    orchestrator: Optional[RetrievalOrchestrator] = None,
) -> ChatResponse:
    """
    Process one chat message.

    Args:
        request: The chat request
        store: Session store
        llm: Generative backend (LLMService or anything with async complete())
        orchestrator: Retrieval orchestrator; None disables retrieval

    Returns:
        ChatResponse for the endpoint

    Raises:
        InvalidInputError: Empty message
        GenerationBackendError: LLM call failed or is not configured
    """
    session = store.get_or_create(request.sessionId)
    message = request.message if isinstance(request.message, str) else ""
    msg_preview = message[:50] + "..." if len(message) > 50 else message
    logger.info(
        f"Chat turn: id={session.session_id}, turn={session.turn_count + 1}, "
        f"message='{msg_preview}'"
    )

    try:
        result = await process_turn(
            utterance=request.message,
            prior_slots=session.slots,
            history=session.history,
            turn_count=session.turn_count,
            llm=llm,
            orchestrator=orchestrator,
        )
    except GenerationBackendError:
        _metrics.record_generation_error()
        raise

    _store_turn(store, session, result)

    question = None
    if result.planner_result.question is not None:
        question = Question(
            text=result.planner_result.question.prompt,
            field=result.planner_result.question.slot_name,
        )

    response = ChatResponse(
        sessionId=session.session_id,
        message=ChatMessage(role="assistant", content=result.assistant_text),
        preferences=result.updated_slots.to_dict(),
        nextAction=NextAction(result.next_action.value),
        question=question,
        isPlanningComplete=result.is_complete,
        tripPlan=result.plan.to_dict() if result.plan else None,
        debugPayload=_build_debug_payload(result) if request.debug else None,
    )

    _log_turn_summary(
        session_id=session.session_id,
        next_action=result.next_action.value,
        question_slot=question.field if question else None,
        slots_filled=len(result.updated_slots.filled_slot_names()),
        retrieval_used=result.retrieval is not None,
        plan_present=result.plan is not None,
    )

    _metrics.record_turn(result)

    # Log metrics summary every 100 turns
    if _metrics.total_turns % 100 == 0:
        _metrics.log_summary()

    return response
