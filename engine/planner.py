"""
Deterministic dialogue planner.

This module is the SINGLE SOURCE OF TRUTH for conversation flow decisions.
Given the current slots and how many user turns have happened, it decides:
- Which slot to ask for next
- When live data retrieval should run
- When the generative backend should produce the final plan

NO LLM calls are made in this module. All logic is deterministic.

Decision order (first applicable rule wins):
1. No destination => ASK_QUESTION(destination)
2. Compute missing slots among origin, dates, interests, budget, travelers
3. All hard slots present => GENERATE_PLAN with retrieval (retrieval runs first)
4. Destination + dates and >= FORCE_GENERATION_TURNS user turns => GENERATE_PLAN with retrieval data section
5. Missing slots and < MAX_QUESTION_TURNS user turns => ASK_QUESTION(highest priority missing slot)
6. Otherwise => GENERATE_PLAN without retrieval
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
import logging

from trips.specs import DESTINATION_SLOT, SlotSpec, get_askable_slots
from .state import SlotStore, count_user_turns_in_text

logger = logging.getLogger(__name__)

# No further questions once this many user turns have happened
MAX_QUESTION_TURNS = 5

# Destination + dates are enough to force a plan after this many user turns
FORCE_GENERATION_TURNS = 6


class NextAction(str, Enum):
    """Possible next actions in the conversation flow."""
    ASK_QUESTION = "ASK_QUESTION"
    GENERATE_PLAN = "GENERATE_PLAN"


@dataclass
class Question:
    """A question to ask the user."""
    slot_name: str
    prompt: str
    priority: int


@dataclass
class PlannerResult:
    """
    Result of the planner decision.

    trigger_retrieval is only set when every hard slot is present; with_retrieval
    tells the prompt assembler to include the retrieval data section (live data
    or placeholders).
    """
    next_action: NextAction
    question: Optional[Question] = None
    with_retrieval: bool = False
    trigger_retrieval: bool = False
    rule: str = ""
    missing_slots: Optional[List[str]] = None

    @property
    def is_question(self) -> bool:
        return self.next_action == NextAction.ASK_QUESTION


# =============================================================================
# SLOT CHECKING
# =============================================================================

def get_missing_slots(slots: SlotStore) -> List[SlotSpec]:
    """
    Get the askable slots that are still missing, in priority order.

    Destination is excluded; it is handled before anything else.
    """
    return [spec for spec in get_askable_slots() if not slots.is_slot_filled(spec.name)]


def get_missing_slot_names(slots: SlotStore) -> List[str]:
    return [spec.name for spec in get_missing_slots(slots)]


# =============================================================================
# QUESTION BUILDING
# =============================================================================

def build_question(slot_spec: SlotSpec, slots: SlotStore) -> Question:
    """
    Build a Question from a SlotSpec, interpolating current slot values.

    Args:
        slot_spec: The slot specification
        slots: Current slot values

    Returns:
        A Question ready for the prompt assembler
    """
    return Question(
        slot_name=slot_spec.name,
        prompt=slot_spec.render_prompt(slots.to_dict()),
        priority=slot_spec.priority or 0,
    )


# =============================================================================
# MAIN PLANNER
# =============================================================================

def decide_next_action(
    slots: SlotStore,
    history_text: str = "",
    user_turn_count: Optional[int] = None,
) -> PlannerResult:
    """
    Decide the next action in the conversation flow.

    Args:
        slots: Current slot values (already updated for this turn)
        history_text: Rendered transcript; used to count user turns when
            user_turn_count is not given
        user_turn_count: Number of user turns so far, including this one

    Returns:
        PlannerResult with the decision
    """
    if user_turn_count is None:
        user_turn_count = count_user_turns_in_text(history_text)

    # Rule 1: destination is the only hard prerequisite
    if not slots.is_slot_filled("destination"):
        logger.info("Planner: no destination => ASK_QUESTION(destination)")
        return PlannerResult(
            next_action=NextAction.ASK_QUESTION,
            question=build_question(DESTINATION_SLOT, slots),
            rule="ask_destination",
            missing_slots=["destination"] + get_missing_slot_names(slots),
        )

    # Rule 2: missing slots in priority order
    missing = get_missing_slots(slots)
    missing_names = [spec.name for spec in missing]

    # Rule 3: everything needed for retrieval is present
    if slots.is_retrieval_ready():
        logger.info("Planner: all hard slots filled => GENERATE_PLAN(with_retrieval)")
        return PlannerResult(
            next_action=NextAction.GENERATE_PLAN,
            with_retrieval=True,
            trigger_retrieval=True,
            rule="retrieval_ready",
            missing_slots=missing_names,
        )

    # Rule 4: forced completion so the conversation cannot loop forever
    if slots.has_dates() and user_turn_count >= FORCE_GENERATION_TURNS:
        logger.info(
            f"Planner: destination+dates after {user_turn_count} turns => GENERATE_PLAN(forced)"
        )
        return PlannerResult(
            next_action=NextAction.GENERATE_PLAN,
            with_retrieval=True,
            rule="forced_completion",
            missing_slots=missing_names,
        )

    # Rule 5: keep asking while the question budget lasts
    if missing and user_turn_count < MAX_QUESTION_TURNS:
        next_slot = missing[0]
        logger.info(f"Planner: Next slot to ask: {next_slot.name}")
        return PlannerResult(
            next_action=NextAction.ASK_QUESTION,
            question=build_question(next_slot, slots),
            rule="ask_missing",
            missing_slots=missing_names,
        )

    # Rule 6: terminal fallback, generate with whatever we have
    logger.info(
        f"Planner: question budget exhausted ({user_turn_count} turns, "
        f"missing={missing_names}) => GENERATE_PLAN(without retrieval)"
    )
    return PlannerResult(
        next_action=NextAction.GENERATE_PLAN,
        with_retrieval=False,
        rule="terminal_fallback",
        missing_slots=missing_names,
    )
