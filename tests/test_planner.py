"""
Tests for the deterministic dialogue planner.

These tests verify that:
1. Rules are applied in order (destination first, then retrieval readiness,
   forced completion, questions, terminal fallback)
2. A filled slot is never asked again
3. The conversation always reaches plan generation within a bounded number of turns
"""

import itertools

import pytest

from engine.planner import (
    FORCE_GENERATION_TURNS,
    MAX_QUESTION_TURNS,
    NextAction,
    decide_next_action,
    get_missing_slot_names,
)
from engine.state import SlotStore


def full_slots(**overrides) -> SlotStore:
    values = dict(
        destination="Paris",
        origin="New York",
        start_date="June 5, 2024",
        end_date="June 13, 2024",
        budget="$2000",
        travelers=2,
    )
    values.update(overrides)
    return SlotStore(**values)


class TestDestinationRule:
    """Rule 1: destination is the only hard prerequisite."""

    def test_empty_slots_ask_destination(self):
        result = decide_next_action(SlotStore(), user_turn_count=1)

        assert result.next_action == NextAction.ASK_QUESTION
        assert result.question.slot_name == "destination"
        assert result.rule == "ask_destination"

    def test_destination_asked_even_when_everything_else_is_set(self):
        """Other slots do not matter while the destination is missing."""
        result = decide_next_action(full_slots(destination=None), user_turn_count=1)
        assert result.question.slot_name == "destination"

    def test_blank_destination_counts_as_missing(self):
        result = decide_next_action(SlotStore(destination="   "), user_turn_count=1)
        assert result.question.slot_name == "destination"


class TestRetrievalReadyRule:
    """Rule 3: all hard slots present => generate with retrieval."""

    def test_all_hard_slots_trigger_retrieval(self):
        result = decide_next_action(full_slots(), user_turn_count=1)

        assert result.next_action == NextAction.GENERATE_PLAN
        assert result.with_retrieval is True
        assert result.trigger_retrieval is True
        assert result.rule == "retrieval_ready"
        assert result.question is None

    def test_interests_are_optional(self):
        """Missing interests do not block retrieval."""
        result = decide_next_action(full_slots(), user_turn_count=1)
        assert result.missing_slots == ["interests"]
        assert result.trigger_retrieval is True

    def test_one_missing_hard_slot_blocks_retrieval(self):
        result = decide_next_action(full_slots(travelers=None), user_turn_count=1)
        assert result.next_action == NextAction.ASK_QUESTION
        assert result.trigger_retrieval is False


class TestForcedCompletionRule:
    """Rule 4: destination + dates after enough turns => generate."""

    def test_forced_after_turn_ceiling(self):
        slots = SlotStore(destination="Paris", start_date="June 5", end_date="June 9")
        result = decide_next_action(slots, user_turn_count=FORCE_GENERATION_TURNS)

        assert result.next_action == NextAction.GENERATE_PLAN
        assert result.with_retrieval is True
        assert result.trigger_retrieval is False
        assert result.rule == "forced_completion"

    def test_not_forced_without_both_dates(self):
        """Only a start date is not enough for forced completion."""
        slots = SlotStore(destination="Paris", start_date="June 5")
        result = decide_next_action(slots, user_turn_count=FORCE_GENERATION_TURNS)
        assert result.rule == "terminal_fallback"


class TestAskMissingRule:
    """Rule 5: ask the highest-priority missing slot while turns remain."""

    def test_asks_origin_first(self):
        result = decide_next_action(SlotStore(destination="Paris"), user_turn_count=1)
        assert result.question.slot_name == "origin"
        assert "Paris" in result.question.prompt

    def test_priority_order(self):
        """origin=1, dates=2, interests=3, budget=4, travelers=5."""
        slots = SlotStore(destination="Paris")
        asked = []
        for attr, value in [
            ("origin", "Boston"),
            ("start_date", "June 5"),
            ("end_date", "June 9"),
            ("interests", ["food"]),
            ("budget", "$2000"),
        ]:
            result = decide_next_action(slots, user_turn_count=1)
            if not asked or asked[-1] != result.question.slot_name:
                asked.append(result.question.slot_name)
            setattr(slots, attr, value)

        assert asked == ["origin", "dates", "interests", "budget"]
        assert decide_next_action(slots, user_turn_count=1).question.slot_name == "travelers"

    def test_dates_need_both_ends(self):
        slots = SlotStore(destination="Paris", origin="Boston", start_date="June 5")
        result = decide_next_action(slots, user_turn_count=2)
        assert result.question.slot_name == "dates"

    def test_no_questions_at_turn_ceiling(self):
        result = decide_next_action(SlotStore(destination="Paris"), user_turn_count=MAX_QUESTION_TURNS)

        assert result.next_action == NextAction.GENERATE_PLAN
        assert result.with_retrieval is False
        assert result.rule == "terminal_fallback"


class TestTurnCounting:
    """The turn count may come from the rendered transcript."""

    def test_counts_user_markers(self):
        history = "\n\n".join(
            f"User: message {i}\n\nAssistant: reply {i}" for i in range(MAX_QUESTION_TURNS)
        )
        result = decide_next_action(SlotStore(destination="Paris"), history_text=history)
        assert result.rule == "terminal_fallback"

    def test_short_history_still_asks(self):
        result = decide_next_action(SlotStore(destination="Paris"), history_text="User: Paris")
        assert result.rule == "ask_missing"


class TestPlannerProperties:
    """Properties that hold for every slot combination."""

    OPTIONAL_VALUES = {
        "origin": "Boston",
        "start_date": "June 5",
        "end_date": "June 9",
        "interests": ["food"],
        "budget": "$2000",
        "travelers": 2,
    }

    def _all_combinations(self):
        names = list(self.OPTIONAL_VALUES)
        for size in range(len(names) + 1):
            for combo in itertools.combinations(names, size):
                yield SlotStore(destination="Paris", **{n: self.OPTIONAL_VALUES[n] for n in combo})

    def test_never_asks_filled_slot(self):
        for slots in self._all_combinations():
            for turn in range(1, FORCE_GENERATION_TURNS + 2):
                result = decide_next_action(slots, user_turn_count=turn)
                if result.is_question:
                    assert not slots.is_slot_filled(result.question.slot_name)
                    assert result.question.slot_name in get_missing_slot_names(slots)

    def test_terminates_within_bound(self):
        """With a destination, every state generates by turn FORCE_GENERATION_TURNS."""
        for slots in self._all_combinations():
            result = decide_next_action(slots, user_turn_count=FORCE_GENERATION_TURNS)
            assert result.next_action == NextAction.GENERATE_PLAN

    @pytest.mark.parametrize("turn", [1, 3, 5, 10])
    def test_trigger_retrieval_only_when_ready(self, turn):
        for slots in self._all_combinations():
            result = decide_next_action(slots, user_turn_count=turn)
            assert result.trigger_retrieval == slots.is_retrieval_ready()
