"""Main entry point for the Busan Travel Assistant API."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import (
    PORT,
    ENVIRONMENT,
    LOG_LEVEL,
    LOG_FORMAT,
    CORS_ORIGINS,
    TURN_LOG_PATH,
    TURN_TIMEOUT_SECONDS,
    TURN_GRACE_SECONDS,
    MAX_MESSAGE_LENGTH,
    DEFAULT_REGION,
    APP_VERSION,
)
from logger import setup_logging
from models.api import (
    ChatRequest,
    ChatResponse,
    ChatDebug,
    SearchData,
    SearchResponse,
    ItineraryRequest,
    ItineraryUpdate,
    ItineraryResponse,
)
from services.answer_synthesizer import AnswerSynthesizer, SynthesisError
from services.conversation_manager import ConversationManager
from services.itinerary_generator import ItineraryGenerator
from services.itinerary_store import ItineraryStore
from services.llm_client import LLMClient
from services.local_search_client import LocalSearchClient, LocalSearchError
from services.response_assembler import assemble, user_turn
from services.turn_logger import TurnLogger

# Initialize logging
logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "죄송합니다. 일시적인 문제가 발생했어요. 다시 시도해 주세요."

# Initialize FastAPI app
app = FastAPI(
    title="Busan Travel Assistant",
    description="Travel chatbot that verifies recommended venues against local search",
    version=APP_VERSION
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
local_search_client: LocalSearchClient = None
answer_synthesizer: Optional[AnswerSynthesizer] = None
conversation_manager: ConversationManager = None
turn_logger: Optional[TurnLogger] = None
itinerary_generator: ItineraryGenerator = None
itinerary_store: ItineraryStore = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global local_search_client, answer_synthesizer, conversation_manager, turn_logger
    global itinerary_generator, itinerary_store

    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL, LOG_FORMAT)

    logger.info("Initializing Busan Travel Assistant services...")

    local_search_client = LocalSearchClient()
    conversation_manager = ConversationManager()

    # The LLM key is required for chat; without it the service starts degraded
    llm_client = None
    try:
        llm_client = LLMClient()
        answer_synthesizer = AnswerSynthesizer(llm_client, local_search_client)
    except ValueError as e:
        logger.error(f"Chat unavailable, LLM client not configured: {e}")
        answer_synthesizer = None

    # Without an LLM, itineraries are built from search results only
    itinerary_generator = ItineraryGenerator(llm_client, local_search_client)
    itinerary_store = ItineraryStore()

    try:
        turn_logger = TurnLogger(TURN_LOG_PATH)
    except OSError as e:
        logger.warning(f"Turn logging disabled, cannot open {TURN_LOG_PATH}: {e}")
        turn_logger = None

    logger.info("Service initialization complete")


@app.on_event("shutdown")
async def shutdown_event():
    if turn_logger is not None:
        turn_logger.close()


def _error_response(
    status_code: int,
    code: str,
    message: str,
    error: Optional[Exception] = None
) -> JSONResponse:
    """Build the uniform error body; internal detail only in development."""
    content: Dict[str, Any] = {
        "success": False,
        "message": message,
        "error": {"code": code},
    }
    if error is not None and ENVIRONMENT == "development":
        content["error"]["detail"] = f"{type(error).__name__}: {error}"
    return JSONResponse(status_code=status_code, content=content)


def _validation_message(path: str, errors) -> str:
    """User-facing message for a validation failure, chosen by error type."""
    if path != "/chat":
        return "Invalid request parameters"
    if any(err.get("type") == "string_too_long" for err in errors):
        return f"메시지는 {MAX_MESSAGE_LENGTH}자 이하여야 합니다."
    return "메시지가 필요합니다."


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Map request validation failures to 400 with field-level messages."""
    errors = exc.errors()
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in errors
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": _validation_message(request.url.path, errors),
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request parameters",
                "details": details,
            },
        },
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Busan Travel Assistant API"}


@app.get("/health")
async def health():
    """Liveness check."""
    return {
        "status": "healthy",
        "service": "busan-travel-assistant",
        "version": APP_VERSION
    }


@app.post("/chat", response_model=ChatResponse)
async def chat_endpoint(request: ChatRequest):
    """
    Main chat endpoint.

    Runs the message through draft, entity verification and merge, then
    returns the assistant ChatTurn. Draft-phase failures and turn timeouts
    map to a generic apology with status 500.

    Args:
        request: ChatRequest with message and optional sessionId

    Returns:
        ChatResponse with the assistant turn and debug counters
    """
    start_time = time.time()

    if not request.message.strip():
        return _error_response(400, "VALIDATION_ERROR", "메시지가 필요합니다.")

    if answer_synthesizer is None:
        return _error_response(503, "SERVICE_UNAVAILABLE", "AI 서비스가 설정되지 않았습니다.")

    session_id = request.session_id or conversation_manager.new_session_id()
    logger.info(f"Processing chat message for session {session_id}: {request.message[:100]}...")

    conversation_manager.add_turn(session_id, user_turn(request.message))

    # The synthesizer spends at most TURN_TIMEOUT_SECONDS across its phases;
    # this outer deadline only catches a pipeline that overruns its own budget
    turn_deadline = TURN_TIMEOUT_SECONDS + TURN_GRACE_SECONDS
    loop = asyncio.get_running_loop()
    try:
        answer = await asyncio.wait_for(
            loop.run_in_executor(None, answer_synthesizer.synthesize, request.message),
            timeout=turn_deadline
        )
    except asyncio.TimeoutError as e:
        logger.error(f"Chat turn timed out after {turn_deadline}s (session {session_id})")
        return _error_response(500, "TIMEOUT_ERROR", APOLOGY_MESSAGE, e)
    except SynthesisError as e:
        logger.error(f"Chat processing failed (session {session_id}): {e}")
        return _error_response(500, e.code, APOLOGY_MESSAGE, e)
    except Exception as e:
        logger.error(f"Unexpected error processing chat: {e}", exc_info=True)
        return _error_response(500, "INTERNAL_ERROR", APOLOGY_MESSAGE, e)

    assistant_turn = assemble(answer, session_id)
    conversation_manager.add_turn(session_id, assistant_turn)

    latency_ms = int((time.time() - start_time) * 1000)
    if turn_logger is not None:
        turn_logger.log_turn(session_id, request.message, answer, latency_ms)

    logger.info(
        f"Chat processed in {latency_ms}ms: type={answer.type}, "
        f"entities={len(answer.entities)}, venues={len(answer.venues)}, merged={answer.merge_applied}"
    )

    return ChatResponse(
        data=assistant_turn.to_dict(),
        debug=ChatDebug(
            has_search_results=len(answer.venues) > 0,
            locations_found=len(answer.entities),
            response_type=answer.type
        )
    )


@app.get("/chat/health")
async def chat_health():
    """
    Report provider configuration.

    The verdict depends on the LLM only; local search is best-effort.
    """
    llm_ready = answer_synthesizer is not None
    search_ready = local_search_client is not None and local_search_client.is_configured()

    body: Dict[str, Any] = {
        "status": "healthy" if llm_ready else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ai": {
            "llm": "configured" if llm_ready else "not_configured",
            "localSearch": "configured" if search_ready else "not_configured",
        },
        "version": APP_VERSION,
    }
    if not llm_ready:
        body["error"] = "AI service unavailable"
    elif not search_ready:
        body["note"] = "Local search is not configured; answers are LLM-only without venue verification"

    return JSONResponse(status_code=200 if llm_ready else 503, content=body)


@app.get("/chat/history")
async def get_chat_history(session_id: Optional[str] = Query(None, alias="sessionId")):
    """Return the stored turns for a session."""
    if not session_id:
        return _error_response(400, "MISSING_SESSION_ID", "Session ID is required")

    history = conversation_manager.get_history(session_id)
    return {
        "success": True,
        "data": [turn.to_dict() for turn in history],
        "metadata": {
            "sessionId": session_id,
            "messageCount": len(history),
            "conversationStart": history[0].timestamp.isoformat() if history else None,
        },
    }


@app.delete("/chat/history")
async def clear_chat_history(session_id: Optional[str] = Query(None, alias="sessionId")):
    """Drop a session's history."""
    if not session_id:
        return _error_response(400, "MISSING_SESSION_ID", "Session ID is required")

    conversation_manager.clear(session_id)
    return {
        "success": True,
        "message": "Chat history cleared successfully",
        "metadata": {
            "sessionId": session_id,
            "clearedAt": datetime.now(timezone.utc).isoformat(),
        },
    }


@app.get("/chat/stats")
async def get_conversation_stats(session_id: Optional[str] = Query(None, alias="sessionId")):
    """Return message counts and timing for a session."""
    if not session_id:
        return _error_response(400, "MISSING_SESSION_ID", "Session ID is required")

    return {"success": True, "data": conversation_manager.get_stats(session_id)}


@app.get("/chat/sessions")
async def get_active_sessions():
    """List live session ids (development only)."""
    if ENVIRONMENT != "development":
        return _error_response(403, "FORBIDDEN", "This endpoint is not available in production")

    sessions = conversation_manager.active_sessions()
    return {"success": True, "data": {"sessions": sessions, "count": len(sessions)}}


CATEGORY_SEARCHES = {
    "restaurants": ("search_restaurants", LocalSearchClient.RESTAURANT_QUALIFIER, "음식점 검색에 실패했습니다."),
    "accommodations": ("search_accommodations", LocalSearchClient.ACCOMMODATION_QUALIFIER, "숙소 검색에 실패했습니다."),
    "local": ("search_local", "", "지역 검색에 실패했습니다."),
}


def _category_search(kind: str, query: Optional[str], location: str, display: int):
    """Shared handler for the category search endpoints."""
    if not query or not query.strip():
        return _error_response(400, "MISSING_QUERY", "검색어가 필요합니다.")

    if local_search_client is None or not local_search_client.is_configured():
        return _error_response(503, "NOT_CONFIGURED", "네이버 API가 설정되지 않았습니다.")

    method_name, qualifier, failure_message = CATEGORY_SEARCHES[kind]
    try:
        venues = getattr(local_search_client, method_name)(query, location, display)
    except LocalSearchError as e:
        logger.error(f"{kind} search error ({e.error.code}): {e.error.message}")
        return _error_response(500, e.error.code, failure_message, e)
    except Exception as e:
        logger.error(f"Unexpected {kind} search error: {e}", exc_info=True)
        return _error_response(500, "INTERNAL_ERROR", failure_message, e)

    return SearchResponse(
        data=SearchData(
            total=len(venues),
            items=[venue.to_dict() for venue in venues],
            query=local_search_client.build_query(query, location, qualifier)
        )
    )


@app.get("/search/restaurants", response_model=SearchResponse)
def search_restaurants(
    query: Optional[str] = None,
    location: str = DEFAULT_REGION,
    display: int = Query(10, ge=1, le=100)
):
    """Search restaurants in a region."""
    return _category_search("restaurants", query, location, display)


@app.get("/search/accommodations", response_model=SearchResponse)
def search_accommodations(
    query: Optional[str] = None,
    location: str = DEFAULT_REGION,
    display: int = Query(10, ge=1, le=100)
):
    """Search accommodations in a region."""
    return _category_search("accommodations", query, location, display)


@app.get("/search/local", response_model=SearchResponse)
def search_local(
    query: Optional[str] = None,
    location: str = DEFAULT_REGION,
    display: int = Query(15, ge=1, le=100)
):
    """Search general places in a region."""
    return _category_search("local", query, location, display)


def _itinerary_not_found() -> JSONResponse:
    return _error_response(404, "NOT_FOUND", "Itinerary not found")


@app.post("/itinerary/generate", response_model=ItineraryResponse, response_model_exclude_none=True)
def generate_itinerary(request: ItineraryRequest):
    """
    Generate a day-by-day itinerary and store it.

    Falls back to a plan built from search results when the LLM fails, so
    only unexpected errors produce a 500.
    """
    logger.info(f"Generating itinerary for {request.destination}: {request.start_date} to {request.end_date}")
    try:
        itinerary = itinerary_generator.generate(request.to_query())
    except Exception as e:
        logger.error(f"Itinerary generation error: {e}", exc_info=True)
        return _error_response(500, "INTERNAL_ERROR", "여행 일정 생성에 실패했습니다.", e)

    itinerary_store.save(itinerary)
    return ItineraryResponse(
        data=itinerary.to_dict(),
        metadata={
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "estimatedBudget": itinerary.budget.total,
        }
    )


@app.get("/itinerary/{itinerary_id}", response_model=ItineraryResponse, response_model_exclude_none=True)
def get_itinerary(itinerary_id: str):
    """Return a stored itinerary."""
    itinerary = itinerary_store.get(itinerary_id)
    if itinerary is None:
        return _itinerary_not_found()
    return ItineraryResponse(data=itinerary.to_dict())


@app.put("/itinerary/{itinerary_id}", response_model=ItineraryResponse, response_model_exclude_none=True)
def update_itinerary(itinerary_id: str, request: ItineraryUpdate):
    """Replace trip parameters, and optionally day plans, of a stored itinerary."""
    itinerary = itinerary_store.get(itinerary_id)
    if itinerary is None:
        return _itinerary_not_found()

    updated = itinerary_generator.revise(
        itinerary,
        request.to_query(),
        days=request.days,
        recommendations=request.recommendations
    )
    itinerary_store.save(updated)
    return ItineraryResponse(data=updated.to_dict())


@app.post("/itinerary/{itinerary_id}/optimize", response_model=ItineraryResponse, response_model_exclude_none=True)
def optimize_itinerary(itinerary_id: str):
    """Reorder activities by start time and fit the budget to its target total."""
    itinerary = itinerary_store.get(itinerary_id)
    if itinerary is None:
        return _itinerary_not_found()

    optimized = itinerary_generator.optimize(itinerary)
    itinerary_store.save(optimized)
    return ItineraryResponse(
        data=optimized.to_dict(),
        metadata={
            "optimizationSummary": {
                "costSaved": itinerary.budget.total - optimized.budget.total,
                "timeOptimized": True,
            }
        }
    )


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Busan Travel Assistant API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
