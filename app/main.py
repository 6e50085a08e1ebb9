"""
Trip Planner Backend - FastAPI Application

Thin HTTP surface over the trip planning engine. Flow decisions are made by
the deterministic engine; the LLM only phrases questions and writes plans.

Python 3.9 compatible.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from engine.errors import GenerationBackendError, GenerationConfigError, InvalidInputError
from engine.retrieval import RetrievalOrchestrator

from .conversation import handle_chat
from .llm_service import LLMService, get_api_key, get_llm_service
from .models import ChatRequest, ChatResponse
from .scraper_service import build_default_orchestrator
from .session_store import SessionStore

VERSION = "1.0.0"

# Load environment variables from .env
# Try multiple paths to ensure we find .env
env_paths = [
    Path(__file__).parent.parent / ".env",  # project root
    Path.cwd() / ".env",  # current working directory
]
for env_path in env_paths:
    if env_path.exists():
        load_dotenv(env_path)
        break
else:
    load_dotenv()  # fallback to default behavior

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Service instances (Python 3.9 compatible type hints)
llm_service: Optional[LLMService] = None
orchestrator: Optional[RetrievalOrchestrator] = None
session_store: Optional[SessionStore] = None


def _mask_key(key: Optional[str]) -> str:
    """Mask API key showing only last 4 chars."""
    if not key:
        return "(not set)"
    if len(key) <= 4:
        return "****"
    return f"****{key[-4:]}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - initialize services."""
    global llm_service, orchestrator, session_store

    logger.info("=" * 60)
    logger.info("Initializing Trip Planner Backend")
    logger.info("=" * 60)

    api_key = get_api_key()
    logger.info(f"API key present: {bool(api_key)} ({_mask_key(api_key)})")
    logger.info(f"OPENAI_MODEL: {os.getenv('OPENAI_MODEL', 'gpt-4o')}")

    # Missing credentials are reported per request, not at startup
    llm_service = get_llm_service()
    if not llm_service.is_configured:
        logger.warning("LLM service NOT configured - /chat will return 500 until a key is set")

    orchestrator = build_default_orchestrator()
    logger.info("Retrieval orchestrator initialized successfully")

    session_store = SessionStore()
    logger.info(
        f"Session store initialized (ttl={session_store.ttl}, "
        f"completed_ttl={session_store.completed_ttl})"
    )

    logger.info("=" * 60)

    yield

    logger.info("Shutting down Trip Planner Backend")


app = FastAPI(
    title="Trip Planner Backend",
    description="Conversational trip planning API",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": VERSION}


@app.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest) -> ChatResponse:
    """
    Process one user message in a trip planning conversation.

    A missing, unknown or expired sessionId starts a new conversation; the
    response always carries the sessionId to use for the next turn.
    """
    if llm_service is None or session_store is None:
        raise HTTPException(status_code=503, detail="Service not initialized")

    try:
        return await handle_chat(request, session_store, llm_service, orchestrator)

    except InvalidInputError as e:
        logger.warning(f"Chat rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    except GenerationConfigError as e:
        logger.error(f"Chat failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    except GenerationBackendError as e:
        logger.error(f"METRIC chat_generation_error error={e}", exc_info=True)
        raise HTTPException(status_code=502, detail=str(e))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"METRIC chat_unexpected_error error={type(e).__name__}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred")


@app.delete("/chat/{session_id}", status_code=204)
async def delete_chat(session_id: str) -> Response:
    """Drop a conversation. Unknown ids are not an error."""
    if session_store is None:
        raise HTTPException(status_code=503, detail="Service not initialized")

    removed = session_store.delete(session_id)
    logger.info(f"Session delete: id={session_id}, removed={removed}")
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)
