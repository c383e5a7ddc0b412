"""Services for the Busan Travel Assistant."""
from .entity_extractor import EntityExtractor
from .local_search_client import LocalSearchClient, LocalSearchError, SearchError, strip_markup
from .verification import VerificationFanOut
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError, ToolCall
from .answer_parser import parse_answer, extract_json_object
from .answer_synthesizer import AnswerSynthesizer, SynthesisError
from .response_assembler import assemble, user_turn
from .conversation_manager import ConversationManager, SessionStore, InMemorySessionStore
from .turn_logger import TurnLogger
from .budget_calculator import BudgetCalculator, default_budget
from .itinerary_generator import ItineraryGenerator
from .itinerary_store import ItineraryStore

__all__ = ['EntityExtractor', 'LocalSearchClient', 'LocalSearchError', 'SearchError', 'strip_markup', 'VerificationFanOut', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'ToolCall', 'parse_answer', 'extract_json_object', 'AnswerSynthesizer', 'SynthesisError', 'assemble', 'user_turn', 'ConversationManager', 'SessionStore', 'InMemorySessionStore', 'TurnLogger', 'BudgetCalculator', 'default_budget', 'ItineraryGenerator', 'ItineraryStore']
