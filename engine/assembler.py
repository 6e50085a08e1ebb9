"""
Plan assembler.

Builds the request for the generative backend and parses a structured trip
plan back out of its reply.

PARSING DESIGN:
- A fenced ```json block wins when present
- Otherwise the largest top-level {...} block in the raw text is used
- Whichever is found gets one strict parse (json.loads + TripPlan validation)
- Any failure means "no plan"; the prose reply is still returned to the user
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import ValidationError

from .plan import TripPlan
from .planner import PlannerResult
from .records import CATEGORIES, RetrievalResult
from .state import ConversationTurn, Role, SlotStore, format_history

logger = logging.getLogger(__name__)

# Number of most recent turns passed as role-tagged context
HISTORY_WINDOW = 10

# Maximum chars of raw reply to log on a parse failure
MAX_ERROR_LOG_CHARS = 500

SYSTEM_PROMPT = """You are TripPlanner AI, a friendly and helpful travel planning assistant. You have a natural conversation with users to understand their trip needs, then use REAL, CURRENT information gathered from the internet to create personalized trip plans.

YOUR JOB:
1. Have a NATURAL, CONVERSATIONAL dialogue - ask questions one at a time, like talking to a friend
2. Gather the information needed to plan the trip:
   - Destination (city/country)
   - Origin (departure city/airport)
   - Exact travel dates (start and end)
   - Budget (specific amount)
   - Number of travelers
   - Interests/preferences (what they want to do/see)
3. Once destination + origin + dates + budget + travelers are known, the system AUTOMATICALLY looks up real flights, hotels and restaurants
4. Use that data to create a detailed, personalized plan

CONVERSATION STYLE:
- Be warm, friendly, and conversational
- Ask ONE question at a time
- Show interest in their answers
- Don't ask the same thing twice

IMPORTANT FOR PLAN GENERATION:
- Use the provided flight, hotel and restaurant data: real names, routes and prices
- Include specific addresses, opening hours, ticket prices
- Mention seasonal considerations and local tips
- Provide realistic cost estimates
- Warn about things like "book in advance" or "closed on Mondays"

When asked to produce a plan, respond conversationally first (2-3 sentences), then provide the JSON plan in a ```json block."""

# Defaults used in the plan instruction for slots that are still empty
PLAN_DEFAULTS: Dict[str, str] = {
    "destination": "the destination",
    "origin": "their location",
    "start_date": "the start date",
    "end_date": "the end date",
    "budget": "$2000",
    "travelers": "2",
    "accommodation_type": "hotel",
    "interests": "general sightseeing",
}


@dataclass
class GenerationRequest:
    """Payload for the generative backend: system directive + ordered messages."""
    system_prompt: str
    messages: List[Dict[str, str]] = field(default_factory=list)

    @property
    def instruction(self) -> str:
        """The final instruction block (last message)."""
        return self.messages[-1]["content"] if self.messages else ""


# =============================================================================
# REQUEST BUILDING
# =============================================================================

def _snapshot(slots: SlotStore) -> Dict[str, str]:
    """Slot values as display strings, with plan defaults for empty ones."""
    values = {}
    for name, default in PLAN_DEFAULTS.items():
        if not slots.is_field_filled(name):
            values[name] = default
            continue
        value = getattr(slots, name)
        if isinstance(value, list):
            values[name] = ", ".join(value)
        else:
            values[name] = str(value)
    # A missing end date reads better as the start date than as a placeholder
    if not slots.is_field_filled("end_date") and slots.is_field_filled("start_date"):
        values["end_date"] = values["start_date"]
    return values


def _retrieval_section(category: str, retrieval: Optional[RetrievalResult]) -> str:
    label = category[:-1] if category.endswith("s") else category
    if retrieval is None:
        return f"Real {label} data will be provided"
    return json.dumps([r.to_dict() for r in retrieval.get(category)], indent=2, ensure_ascii=False)


def _plan_template(values: Dict[str, str]) -> str:
    return f"""```json
{{
  "destination": "{values['destination']}",
  "origin": "{values['origin']}",
  "startDate": "{values['start_date']}",
  "endDate": "{values['end_date']}",
  "duration": <calculate days>,
  "budget": "{values['budget']}",
  "travelers": {values['travelers']},
  "flights": {{
    "outbound": {{"date": "{values['start_date']}", "route": "<actual route>", "suggestions": ["<airline suggestions>"]}},
    "return": {{"date": "{values['end_date']}", "route": "<actual return route>", "suggestions": ["<airline suggestions>"]}}
  }},
  "accommodation": {{
    "type": "{values['accommodation_type']}",
    "recommendations": ["<recommendations based on their preferences>"],
    "estimatedCost": "<cost estimate>"
  }},
  "itinerary": [
    {{
      "day": 1,
      "date": "{values['start_date']}",
      "activities": [
        {{"time": "<time>", "activity": "<activity matching their interests>", "location": "<location>", "notes": "<notes>"}}
      ]
    }}
  ],
  "transport": {{"type": "<transportation method>", "recommendations": ["<recommendations>"]}},
  "activities": [
    {{"name": "<activity name>", "location": "<location>", "description": "<description>", "estimatedCost": "<cost>"}}
  ],
  "totalEstimatedCost": "<total estimate>",
  "notes": "<personalized notes>"
}}
```"""


def build_plan_instruction(
    slots: SlotStore,
    history_text: str,
    retrieval: Optional[RetrievalResult],
) -> str:
    """Instruction block asking the backend for the final plan."""
    values = _snapshot(slots)
    sections = "\n\n".join(
        f"{category.upper()} DATA:\n{_retrieval_section(category, retrieval)}"
        for category in CATEGORIES
    )
    return f"""Based on your conversation with the user, create a PERSONALIZED trip plan.

CONVERSATION CONTEXT:
{history_text}

EXTRACTED PREFERENCES:
- Destination: {values['destination']}
- Origin: {values['origin']}
- Dates: {values['start_date']} to {values['end_date']}
- Budget: {values['budget']}
- Travelers: {values['travelers']}
- Accommodation: {values['accommodation_type']}
- Interests: {values['interests']}

STOP ASKING QUESTIONS. YOU HAVE ENOUGH INFORMATION TO GENERATE THE PLAN.

{sections}

Use the data above for flights, hotels and restaurants. Focus activities on their interests ({values['interests']}) and keep within a budget of {values['budget']}.

First, respond conversationally (2-3 sentences), then IMMEDIATELY provide the JSON plan:

{_plan_template(values)}"""


def build_question_instruction(slots: SlotStore, planner_result: PlannerResult) -> str:
    """Instruction block asking the backend to phrase the next question."""
    question = planner_result.question
    if question is None:
        raise ValueError("ASK_QUESTION decision without a question")

    if question.slot_name == "destination":
        return (
            "The user hasn't mentioned a destination yet. Ask them in a friendly, "
            f'conversational way: "{question.prompt}"\n\nBe warm and engaging.'
        )
    return (
        f"You're having a great conversation! The user wants to visit {slots.destination}.\n\n"
        f'Ask them this question naturally: "{question.prompt}"\n\n'
        "Ask only this one question. Be warm and conversational, not robotic."
    )


def build_generation_request(
    slots: SlotStore,
    history: List[ConversationTurn],
    retrieval: Optional[RetrievalResult],
    planner_result: PlannerResult,
) -> GenerationRequest:
    """
    Build the full generation payload for one turn.

    Args:
        slots: Slots after this turn's extraction
        history: Transcript including the current user turn
        retrieval: Retrieval result, or None when retrieval did not run
        planner_result: The policy decision for this turn

    Returns:
        GenerationRequest with the system directive, the last HISTORY_WINDOW
        turns and the instruction block
    """
    if planner_result.is_question:
        instruction = build_question_instruction(slots, planner_result)
    else:
        instruction = build_plan_instruction(slots, format_history(history), retrieval)

    messages = [
        {"role": "user" if turn.role == Role.USER else "assistant", "content": turn.text}
        for turn in history[-HISTORY_WINDOW:]
    ]
    messages.append({"role": "user", "content": instruction})

    logger.debug(
        f"Generation request: action={planner_result.next_action.value} "
        f"context_turns={len(messages) - 1} retrieval={'yes' if retrieval else 'no'}"
    )
    return GenerationRequest(system_prompt=SYSTEM_PROMPT, messages=messages)


# =============================================================================
# PLAN PARSING
# =============================================================================

_FENCED_JSON = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def _largest_brace_block(text: str) -> Optional[str]:
    """
    Find the longest balanced top-level {...} span.

    Braces inside JSON string literals are ignored.
    """
    best: Optional[str] = None
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                candidate = text[start:i + 1]
                if best is None or len(candidate) > len(best):
                    best = candidate

    return best


def find_plan_block(text: Optional[str]) -> Optional[str]:
    """Locate the structured block in a reply: fenced first, then raw braces."""
    if not text:
        return None
    match = _FENCED_JSON.search(text)
    if match:
        return match.group(1)
    return _largest_brace_block(text)


def parse_plan(text: Optional[str]) -> Optional[TripPlan]:
    """
    Parse a TripPlan out of generated text.

    Never raises. Returns None when there is no structured block, when it is
    not valid JSON, or when it does not validate as a complete plan.
    """
    block = find_plan_block(text)
    if block is None:
        logger.debug("No structured plan block in reply")
        return None

    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        logger.warning(
            f"Plan block is not valid JSON: {e} raw={block[:MAX_ERROR_LOG_CHARS]}"
        )
        return None

    if not isinstance(data, dict):
        logger.warning(f"Plan block is not an object: type={type(data).__name__}")
        return None

    try:
        return TripPlan.model_validate(data)
    except ValidationError as e:
        logger.warning(
            f"Plan block failed validation: {e.error_count()} errors "
            f"raw={block[:MAX_ERROR_LOG_CHARS]}"
        )
        return None
