"""Integration tests for the /chat endpoints."""
import time
import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock, patch
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))


@pytest.fixture
def client():
    """Create a test client with mocked services."""
    # Import after path is set
    from main import app
    from services.conversation_manager import ConversationManager

    # Mock the startup event to avoid initializing real services
    with patch('main.startup_event'):
        client = TestClient(app)

        # Manually set the global services
        import main
        main.answer_synthesizer = Mock()
        main.local_search_client = Mock()
        main.local_search_client.is_configured.return_value = True
        main.conversation_manager = ConversationManager()
        main.turn_logger = Mock()

        yield client


@pytest.fixture
def travel_answer():
    from models.answer import SynthesizedAnswer, TRAVEL
    from models.venue import ExtractedEntity, VerifiedVenue, DISTRICT

    venue = VerifiedVenue(
        title="해운대 암소갈비집",
        category="한식>육류,고기요리",
        description="",
        phone="051-746-0033",
        address="부산광역시 해운대구 중동 1225-1",
        road_address="부산광역시 해운대구 중동2로10번길 32-10",
        map_x="1291636780",
        map_y="351629550",
        link="",
    )
    return SynthesizedAnswer(
        answer="해운대 암소갈비집을 추천합니다.",
        type=TRAVEL,
        entities=(ExtractedEntity(text="해운대", kind=DISTRICT),),
        venues=(venue,),
        draft_answer="해운대에서 갈비를 드셔보세요.",
        merge_applied=True,
    )


class TestChatEndpoint:

    def test_travel_turn(self, client, travel_answer):
        import main
        main.answer_synthesizer.synthesize.return_value = travel_answer

        response = client.post("/chat", json={"message": "해운대 맛집 알려줘", "sessionId": "sess_test"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["role"] == "assistant"
        assert body["data"]["content"] == "해운대 암소갈비집을 추천합니다."
        metadata = body["data"]["metadata"]
        assert metadata["type"] == "travel"
        assert metadata["locations"] == ["해운대"]
        assert metadata["searchResults"][0]["title"] == "해운대 암소갈비집"
        assert body["debug"] == {
            "hasSearchResults": True,
            "locationsFound": 1,
            "responseType": "travel",
        }

        main.answer_synthesizer.synthesize.assert_called_once_with("해운대 맛집 알려줘")
        main.turn_logger.log_turn.assert_called_once()

    def test_turns_are_recorded_in_history(self, client, travel_answer):
        import main
        main.answer_synthesizer.synthesize.return_value = travel_answer

        client.post("/chat", json={"message": "해운대 맛집 알려줘", "sessionId": "sess_hist"})
        response = client.get("/chat/history", params={"sessionId": "sess_hist"})

        assert response.status_code == 200
        body = response.json()
        assert [t["role"] for t in body["data"]] == ["user", "assistant"]
        assert body["metadata"]["messageCount"] == 2

    def test_session_id_is_generated(self, client, travel_answer):
        import main
        main.answer_synthesizer.synthesize.return_value = travel_answer

        response = client.post("/chat", json={"message": "해운대 맛집 알려줘"})

        assert response.status_code == 200
        assert response.json()["data"]["metadata"]["sessionId"].startswith("sess_")

    def test_general_turn(self, client):
        import main
        from models.answer import SynthesizedAnswer, GENERAL
        main.answer_synthesizer.synthesize.return_value = SynthesizedAnswer(
            answer="안녕하세요! 부산 여행을 도와드릴게요.", type=GENERAL
        )

        response = client.post("/chat", json={"message": "안녕"})

        body = response.json()
        assert body["data"]["metadata"]["type"] == "general"
        assert body["data"]["metadata"]["searchResults"] == []
        assert body["debug"]["hasSearchResults"] is False
        assert body["debug"]["locationsFound"] == 0

    @pytest.mark.parametrize("payload", [
        {},
        {"message": ""},
        {"message": "   "},
        {"message": 123},
    ])
    def test_invalid_message(self, client, payload):
        import main

        response = client.post("/chat", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "메시지가 필요합니다."
        main.answer_synthesizer.synthesize.assert_not_called()

    def test_message_too_long(self, client):
        import main

        response = client.post("/chat", json={"message": "가" * 5001})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "메시지는 5000자 이하여야 합니다."
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["field"] == "message"
        main.answer_synthesizer.synthesize.assert_not_called()

    def test_synthesis_failure_returns_apology(self, client):
        import main
        from services.answer_synthesizer import SynthesisError
        main.answer_synthesizer.synthesize.side_effect = SynthesisError()

        response = client.post("/chat", json={"message": "해운대 맛집"})

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == main.APOLOGY_MESSAGE
        assert body["error"]["code"] == "PROCESSING_ERROR"
        assert "detail" not in body["error"]

    def test_unexpected_failure_detail_in_development(self, client):
        import main
        main.answer_synthesizer.synthesize.side_effect = RuntimeError("kaboom")

        with patch('main.ENVIRONMENT', "development"):
            response = client.post("/chat", json={"message": "해운대 맛집"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert body["error"]["detail"] == "RuntimeError: kaboom"

    def test_turn_timeout(self, client):
        import main
        main.answer_synthesizer.synthesize.side_effect = lambda message: time.sleep(0.5)

        with patch('main.TURN_TIMEOUT_SECONDS', 0.05), patch('main.TURN_GRACE_SECONDS', 0.0):
            response = client.post("/chat", json={"message": "해운대 맛집"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "TIMEOUT_ERROR"
        main.turn_logger.log_turn.assert_not_called()

    def test_hanging_merge_returns_draft_within_turn_budget(self, client, travel_answer):
        """A merge call that runs to its timeout still leaves a 200 with the draft."""
        import main
        from services.answer_synthesizer import AnswerSynthesizer
        from services.llm_client import LLMResponse, LLMClientError, LLMError

        draft = "해운대에서 맛있는 저녁을 드셔보세요."
        merge_timeouts = []

        def generate(**kwargs):
            if not merge_timeouts and "기존 답변" not in (kwargs.get("prompt") or ""):
                time.sleep(0.6)
                return LLMResponse(text=draft, tokens_input=1, tokens_output=1, latency_ms=600, model_used="m")
            merge_timeouts.append(kwargs["timeout"])
            time.sleep(kwargs["timeout"])
            raise LLMClientError(LLMError(code="TIMEOUT_ERROR", message="Request timed out.", details={}))

        llm = Mock()
        llm.generate.side_effect = generate
        search = Mock()
        search.search.return_value = list(travel_answer.venues)
        main.answer_synthesizer = AnswerSynthesizer(
            llm, search, timeout=1.0, turn_budget=1.0, min_merge_seconds=0.1
        )

        with patch('main.TURN_TIMEOUT_SECONDS', 1.0), patch('main.TURN_GRACE_SECONDS', 0.5):
            response = client.post("/chat", json={"message": "해운대 맛집 알려줘"})

        assert response.status_code == 200
        assert response.json()["data"]["content"] == draft
        assert len(merge_timeouts) == 1
        assert merge_timeouts[0] <= 0.4 + 0.05

    def test_llm_not_configured(self, client):
        import main
        main.answer_synthesizer = None

        response = client.post("/chat", json={"message": "해운대 맛집"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"


class TestChatHealth:

    def test_healthy(self, client):
        response = client.get("/chat/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["ai"] == {"llm": "configured", "localSearch": "configured"}
        assert "note" not in body

    def test_healthy_without_local_search(self, client):
        import main
        main.local_search_client.is_configured.return_value = False

        response = client.get("/chat/health")

        assert response.status_code == 200
        body = response.json()
        assert body["ai"]["localSearch"] == "not_configured"
        assert "note" in body

    def test_degraded_without_llm(self, client):
        import main
        main.answer_synthesizer = None

        response = client.get("/chat/health")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "degraded"
        assert body["error"] == "AI service unavailable"


class TestHistoryEndpoints:

    def test_history_requires_session_id(self, client):
        response = client.get("/chat/history")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_SESSION_ID"

    def test_unknown_session_history(self, client):
        response = client.get("/chat/history", params={"sessionId": "sess_none"})

        body = response.json()
        assert body["data"] == []
        assert body["metadata"]["conversationStart"] is None

    def test_clear_history(self, client, travel_answer):
        import main
        main.answer_synthesizer.synthesize.return_value = travel_answer
        client.post("/chat", json={"message": "해운대", "sessionId": "sess_clear"})

        response = client.delete("/chat/history", params={"sessionId": "sess_clear"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert main.conversation_manager.get_history("sess_clear") == []

    def test_stats(self, client, travel_answer):
        import main
        main.answer_synthesizer.synthesize.return_value = travel_answer
        client.post("/chat", json={"message": "해운대", "sessionId": "sess_stats"})

        response = client.get("/chat/stats", params={"sessionId": "sess_stats"})

        data = response.json()["data"]
        assert data["totalMessages"] == 2
        assert data["userMessages"] == 1
        assert data["assistantMessages"] == 1

    def test_sessions_forbidden_outside_development(self, client):
        with patch('main.ENVIRONMENT', "production"):
            response = client.get("/chat/sessions")

        assert response.status_code == 403

    def test_sessions_in_development(self, client, travel_answer):
        import main
        main.answer_synthesizer.synthesize.return_value = travel_answer
        client.post("/chat", json={"message": "해운대", "sessionId": "sess_dev"})

        with patch('main.ENVIRONMENT', "development"):
            response = client.get("/chat/sessions")

        assert response.status_code == 200
        assert "sess_dev" in response.json()["data"]["sessions"]


class TestServiceHealth:

    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["service"] == "busan-travel-assistant"
