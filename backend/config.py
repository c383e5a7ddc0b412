"""Configuration management for the Busan Travel Assistant."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
NAVER_CLIENT_ID = os.getenv("NAVER_CLIENT_ID", "")
NAVER_CLIENT_SECRET = os.getenv("NAVER_CLIENT_SECRET", "")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
TURN_LOG_PATH = os.getenv("TURN_LOG_PATH", "logs/chat_turns.jsonl")
APP_VERSION = "2.0.0"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:5173,http://localhost:3000"
).split(",")

# Model Configuration
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
DRAFT_MAX_TOKENS = 1500
DRAFT_TEMPERATURE = 0.7
MERGE_MAX_TOKENS = 2000
MERGE_TEMPERATURE = 0.5
ITINERARY_MAX_TOKENS = 4000
ITINERARY_TEMPERATURE = 0.8

# Per-call timeouts only hold as deadlines when the SDK does not retry
LLM_MAX_RETRIES = 0

# "keyword" extracts entities from the draft, "tool" lets the LLM call search functions
VERIFICATION_STRATEGY = os.getenv("VERIFICATION_STRATEGY", "keyword")

# Local Search Configuration
NAVER_LOCAL_SEARCH_URL = "https://openapi.naver.com/v1/search/local.json"
DEFAULT_REGION = os.getenv("DEFAULT_REGION", "부산")
USER_AGENT = "busan-travel-assistant/2.0.0"

# Pipeline limits
MAX_ENTITIES = 5
MAX_VENUES = 10
RESULTS_PER_ENTITY = 3
MAX_HISTORY_TURNS = 20
MAX_MESSAGE_LENGTH = 5000

# Timeouts (seconds)
LLM_TIMEOUT_SECONDS = 30.0
SEARCH_TIMEOUT_SECONDS = 10.0
VERIFICATION_TIMEOUT_SECONDS = 3.0
TURN_TIMEOUT_SECONDS = 60.0
# Merge and tool follow-up calls are skipped when less than this remains of the turn
MIN_MERGE_SECONDS = 1.0
# Slack the HTTP layer allows past the turn budget before failing the request
TURN_GRACE_SECONDS = 5.0

# Itinerary defaults
DEFAULT_TRIP_BUDGET = 1000
DEFAULT_CURRENCY = "USD"

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
