"""
Pydantic models for the Trip Planner API.
Python 3.9 compatible - uses typing.List, typing.Dict, typing.Optional
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class NextAction(str, Enum):
    ASK_QUESTION = "ASK_QUESTION"
    GENERATE_PLAN = "GENERATE_PLAN"


class ChatMessage(BaseModel):
    role: str  # "user" or "assistant"
    content: str


class Question(BaseModel):
    text: str
    field: str


class ChatRequest(BaseModel):
    message: Optional[str] = None  # Validated by the engine, not here
    sessionId: Optional[str] = None
    debug: bool = False


class DebugPayload(BaseModel):
    """Debug information returned when debug=true."""
    planner_action: str
    planner_rule: str
    planner_question_slot: Optional[str] = None
    extraction_raw_data: Dict[str, Any]
    merged_slots: Dict[str, Any]
    missing_slots: List[str]
    turn_count: int
    retrieval_triggered: bool
    retrieval_provenance: Optional[Dict[str, Optional[str]]] = None


class ChatResponse(BaseModel):
    sessionId: str
    message: ChatMessage
    preferences: Dict[str, Any]
    nextAction: NextAction
    question: Optional[Question] = None
    isPlanningComplete: bool
    tripPlan: Optional[Dict[str, Any]] = None
    debugPayload: Optional[DebugPayload] = None  # Only present when debug=true
